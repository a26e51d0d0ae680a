"""
Tests unitarios para el módulo sign.py (firma PKCS#1 v1.5 de resúmenes)
"""

import hashlib
import io

import pytest

from rsa_seguro.core import sign
from rsa_seguro.core.errors import (
    ERR_BAD_DIGEST_LENGTH,
    ERR_BAD_SIGNATURE,
    ERR_NO_PRIVATE_KEY,
    ERR_OUTPUT_TOO_SMALL,
    ERR_UNKNOWN_DIGEST,
    SigningError,
    VerificationError,
)
from rsa_seguro.core.rsa_key import RSAKey


# ==============================
#  FIXTURES
# ==============================
@pytest.fixture
def sha256_digest():
    return hashlib.sha256(b"Documento importante").digest()


@pytest.fixture(scope="module")
def key_2048():
    """Clave de 2048 bits para el escenario de tamaño completo."""
    return RSAKey.generate(2048, 65537)


# ==============================
#  TEST: FIRMA Y VERIFICACIÓN
# ==============================
def test_sign_verify(private_key, public_key, sha256_digest):
    signature = private_key.sign(sha256_digest, sign.NID_sha256)
    assert len(signature) == private_key.size()
    public_key.verify(signature, sha256_digest, sign.NID_sha256)
    # La clave privada también verifica
    private_key.verify(signature, sha256_digest, sign.NID_sha256)


def test_sign_is_deterministic(private_key, sha256_digest):
    assert private_key.sign(sha256_digest, sign.NID_sha256) == \
        private_key.sign(sha256_digest, sign.NID_sha256)


@pytest.mark.parametrize("nid, hash_name", [
    (sign.NID_sha1, "sha1"),
    (sign.NID_sha224, "sha224"),
    (sign.NID_sha384, "sha384"),
    (sign.NID_sha512, "sha512"),
])
def test_sign_verify_digests(private_key, public_key, nid, hash_name):
    digest = hashlib.new(hash_name, b"datos").digest()
    signature = private_key.sign(digest, nid)
    public_key.verify(signature, digest, nid)


def test_signature_bit_flip(private_key, public_key, sha256_digest):
    """Alterar un bit de la firma hace fallar la verificación."""
    signature = bytearray(private_key.sign(sha256_digest, sign.NID_sha256))
    signature[-1] ^= 0x01
    with pytest.raises(VerificationError) as exc:
        public_key.verify(bytes(signature), sha256_digest, sign.NID_sha256)
    assert exc.value.code == ERR_BAD_SIGNATURE


def test_digest_changed(private_key, public_key, sha256_digest):
    """Cambiar un byte del resumen hace fallar la verificación."""
    signature = private_key.sign(sha256_digest, sign.NID_sha256)
    altered = bytes([sha256_digest[0] ^ 0xFF]) + sha256_digest[1:]
    with pytest.raises(VerificationError):
        public_key.verify(signature, altered, sign.NID_sha256)


def test_verify_wrong_digest_type(private_key, public_key):
    """Una firma SHA-1 no verifica como RIPEMD-160 aunque midan lo mismo."""
    digest = hashlib.sha1(b"datos").digest()
    signature = private_key.sign(digest, sign.NID_sha1)
    with pytest.raises(VerificationError):
        public_key.verify(signature, digest, sign.NID_ripemd160)


def test_verify_wrong_signature_length(public_key, sha256_digest):
    with pytest.raises(VerificationError) as exc:
        public_key.verify(b"\x00" * 10, sha256_digest, sign.NID_sha256)
    assert exc.value.code == ERR_BAD_SIGNATURE


def test_verify_other_key(private_key, sha256_digest):
    other = RSAKey.generate(1024).to_public_key()
    signature = private_key.sign(sha256_digest, sign.NID_sha256)
    with pytest.raises(VerificationError):
        other.verify(signature, sha256_digest, sign.NID_sha256)


# ==============================
#  TEST: ERRORES DE FIRMA
# ==============================
def test_sign_wrong_digest_length(private_key):
    with pytest.raises(SigningError) as exc:
        private_key.sign(b"\x00" * 31, sign.NID_sha256)
    assert exc.value.code == ERR_BAD_DIGEST_LENGTH


def test_sign_unknown_nid(private_key, sha256_digest):
    with pytest.raises(SigningError) as exc:
        private_key.sign(sha256_digest, 9999)
    assert exc.value.code == ERR_UNKNOWN_DIGEST


def test_verify_unknown_nid(public_key, sha256_digest):
    with pytest.raises(VerificationError) as exc:
        public_key.verify(b"\x00" * 128, sha256_digest, 9999)
    assert exc.value.code == ERR_UNKNOWN_DIGEST


def test_sign_with_public_key(public_key, sha256_digest):
    """Firmar con una clave sin material privado falla de forma controlada."""
    with pytest.raises(SigningError) as exc:
        public_key.sign(sha256_digest, sign.NID_sha256)
    assert exc.value.code == ERR_NO_PRIVATE_KEY


def test_sign_into(private_key, public_key, sha256_digest):
    out = bytearray(160)
    written = private_key.sign_into(out, sha256_digest, sign.NID_sha256)
    assert written == 128
    public_key.verify(bytes(out[:written]), sha256_digest, sign.NID_sha256)


def test_sign_into_small_buffer(private_key, sha256_digest):
    with pytest.raises(SigningError) as exc:
        private_key.sign_into(bytearray(127), sha256_digest, sign.NID_sha256)
    assert exc.value.code == ERR_OUTPUT_TOO_SMALL


# ==============================
#  TEST: RESÚMENES SIN CLASE EN EL BACKEND
# ==============================
def test_ripemd160_roundtrip(private_key, public_key):
    """RIPEMD-160 se firma con DigestInfo y PKCS#1 tipo 1."""
    digest = bytes(range(20))
    signature = private_key.sign(digest, sign.NID_ripemd160)
    assert len(signature) == 128
    public_key.verify(signature, digest, sign.NID_ripemd160)


def test_md5_sha1_roundtrip(private_key, public_key):
    """MD5+SHA1 (36 bytes) se firma sin DigestInfo."""
    digest = hashlib.md5(b"tls").digest() + hashlib.sha1(b"tls").digest()
    signature = private_key.sign(digest, sign.NID_md5_sha1)
    public_key.verify(signature, digest, sign.NID_md5_sha1)

    recovered = bytearray(128)
    written = public_key.public_decrypt(recovered, signature, 1)
    assert bytes(recovered[:written]) == digest


def test_digest_info_encoding():
    alg = sign.get_digest(sign.NID_sha256)
    encoded = sign.encode_digest_info(alg, b"\xaa" * 32)
    assert len(encoded) == 19 + 32
    assert encoded.startswith(bytes.fromhex("3031300d0609608648016503040201"))


def test_digest_by_name():
    assert sign.digest_by_name("SHA256").nid == sign.NID_sha256
    with pytest.raises(SigningError):
        sign.digest_by_name("whirlpool")


# ==============================
#  TEST: CLAVES RECARGADAS
# ==============================
def test_verify_with_reloaded_public_keys(private_key, sha256_digest):
    """La firma verifica con la clave pública releída en ambos formatos."""
    signature = private_key.sign(sha256_digest, sign.NID_sha256)

    pkcs1 = io.BytesIO()
    private_key.write_public_key(pkcs1)
    RSAKey.from_public_key_buffer(pkcs1.getvalue()).verify(
        signature, sha256_digest, sign.NID_sha256)

    spki = io.BytesIO()
    private_key.write_certificate_public_key(spki)
    RSAKey.from_certificate_public_key_buffer(spki.getvalue()).verify(
        signature, sha256_digest, sign.NID_sha256)


def test_2048_sha1_scenario(key_2048):
    """Clave de 2048 bits con resumen SHA-1 de 20 bytes."""
    assert key_2048.size() == 256
    digest = hashlib.sha1(b"escenario completo").digest()
    signature = key_2048.sign(digest, sign.NID_sha1)
    assert len(signature) == 256

    spki = io.BytesIO()
    key_2048.write_certificate_public_key(spki)
    reloaded = RSAKey.from_certificate_public_key(io.BytesIO(spki.getvalue()))
    reloaded.verify(signature, digest, sign.NID_sha1)

    altered = digest[:5] + bytes([digest[5] ^ 0x01]) + digest[6:]
    with pytest.raises(VerificationError):
        reloaded.verify(signature, altered, sign.NID_sha1)
