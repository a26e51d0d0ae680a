"""
Tests unitarios para el cifrado y descifrado RSA (crypto.py y RSAKey).
"""

import copy
import os

import pytest

from rsa_seguro.core.crypto import Padding, max_plaintext_len
from rsa_seguro.core.errors import (
    ERR_BAD_INPUT_LENGTH,
    ERR_DATA_TOO_LARGE,
    ERR_NO_PRIVATE_KEY,
    ERR_OUTPUT_TOO_SMALL,
    ERR_UNSUPPORTED_PADDING,
    CryptoOperationError,
)
from rsa_seguro.core.record import KeyRecord
from rsa_seguro.core.rsa_key import RSAKey


def _encrypt(key, data, padding):
    out = bytearray(key.size())
    written = key.public_encrypt(out, data, padding)
    return bytes(out[:written])


def _decrypt(key, data, padding):
    out = bytearray(key.size())
    written = key.private_decrypt(out, data, padding)
    return bytes(out[:written])


# ==============================
#  TEST: CONTRATOS DE TAMAÑO
# ==============================
def test_max_plaintext_len():
    assert max_plaintext_len(128, Padding.PKCS1) == 117
    assert max_plaintext_len(128, Padding.PKCS1_OAEP) == 87
    assert max_plaintext_len(128, Padding.NONE) == 128


def test_padding_values():
    """Los valores coinciden con las constantes RSA_*_PADDING."""
    assert int(Padding.PKCS1) == 1
    assert int(Padding.NONE) == 3
    assert int(Padding.PKCS1_OAEP) == 4


def test_unknown_padding(private_key):
    with pytest.raises(CryptoOperationError) as exc:
        private_key.public_encrypt(bytearray(128), b"hola", 2)
    assert exc.value.code == ERR_UNSUPPORTED_PADDING


# ==============================
#  TEST: CIFRADO CON LA PÚBLICA
# ==============================
@pytest.mark.parametrize("padding", [Padding.PKCS1, Padding.PKCS1_OAEP])
def test_public_encrypt_roundtrip(private_key, public_key, padding):
    """Lo cifrado con la pública se recupera con la privada."""
    message = b"Mensaje secreto de prueba"
    ciphertext = _encrypt(public_key, message, padding)
    assert len(ciphertext) == 128
    assert _decrypt(private_key, ciphertext, padding) == message


def test_public_encrypt_accepts_int_padding(private_key, public_key):
    ciphertext = _encrypt(public_key, b"abc", 4)
    assert _decrypt(private_key, ciphertext, 4) == b"abc"


def test_public_encrypt_is_randomized(public_key):
    message = b"mismo mensaje"
    assert _encrypt(public_key, message, Padding.PKCS1_OAEP) != \
        _encrypt(public_key, message, Padding.PKCS1_OAEP)


def test_public_encrypt_max_length(private_key, public_key):
    """Se admite exactamente size() - 11 bytes con PKCS1."""
    message = os.urandom(117)
    ciphertext = _encrypt(public_key, message, Padding.PKCS1)
    assert _decrypt(private_key, ciphertext, Padding.PKCS1) == message


@pytest.mark.parametrize("padding, length", [
    (Padding.PKCS1, 118),
    (Padding.PKCS1_OAEP, 88),
])
def test_public_encrypt_too_large(public_key, padding, length):
    with pytest.raises(CryptoOperationError) as exc:
        _encrypt(public_key, os.urandom(length), padding)
    assert exc.value.code == ERR_DATA_TOO_LARGE


def test_public_encrypt_output_too_small(public_key):
    """El búfer de salida se comprueba antes de cifrar."""
    with pytest.raises(CryptoOperationError) as exc:
        public_key.public_encrypt(bytearray(127), b"hola", Padding.PKCS1)
    assert exc.value.code == ERR_OUTPUT_TOO_SMALL


def test_public_encrypt_readonly_output(public_key):
    with pytest.raises(CryptoOperationError) as exc:
        public_key.public_encrypt(bytes(128), b"hola", Padding.PKCS1)
    assert exc.value.code == ERR_OUTPUT_TOO_SMALL


def test_public_encrypt_larger_output(private_key, public_key):
    """Un búfer más grande se acepta; se devuelven los bytes escritos."""
    out = bytearray(200)
    written = public_key.public_encrypt(out, b"hola", Padding.PKCS1_OAEP)
    assert written == 128
    assert _decrypt(private_key, bytes(out[:written]), Padding.PKCS1_OAEP) == b"hola"


def test_raw_roundtrip(private_key, public_key):
    """Sin padding la entrada mide exactamente size() bytes."""
    block = b"\x00" + os.urandom(127)
    ciphertext = _encrypt(public_key, block, Padding.NONE)
    assert _decrypt(private_key, ciphertext, Padding.NONE) == block


def test_raw_wrong_length(public_key):
    with pytest.raises(CryptoOperationError) as exc:
        _encrypt(public_key, b"\x00" * 100, Padding.NONE)
    assert exc.value.code == ERR_BAD_INPUT_LENGTH


def test_raw_value_above_modulus(public_key):
    with pytest.raises(CryptoOperationError):
        _encrypt(public_key, b"\xff" * 128, Padding.NONE)


# ==============================
#  TEST: DESCIFRADO CON LA PRIVADA
# ==============================
def test_private_decrypt_output_contract(private_key, public_key):
    """Con OAEP basta un búfer de size() - 41 bytes."""
    ciphertext = _encrypt(public_key, b"hola", Padding.PKCS1_OAEP)
    out = bytearray(87)
    written = private_key.private_decrypt(out, ciphertext, Padding.PKCS1_OAEP)
    assert bytes(out[:written]) == b"hola"

    with pytest.raises(CryptoOperationError) as exc:
        private_key.private_decrypt(bytearray(86), ciphertext, Padding.PKCS1_OAEP)
    assert exc.value.code == ERR_OUTPUT_TOO_SMALL


def test_private_decrypt_corrupted_oaep(private_key, public_key):
    ciphertext = bytearray(_encrypt(public_key, b"hola", Padding.PKCS1_OAEP))
    ciphertext[10] ^= 0x01
    with pytest.raises(CryptoOperationError):
        _decrypt(private_key, bytes(ciphertext), Padding.PKCS1_OAEP)


def test_private_decrypt_wrong_key(public_key):
    """Descifrar con otra clave falla con OAEP."""
    other = RSAKey.generate(1024)
    ciphertext = _encrypt(public_key, b"hola", Padding.PKCS1_OAEP)
    with pytest.raises(CryptoOperationError):
        _decrypt(other, ciphertext, Padding.PKCS1_OAEP)


def test_private_decrypt_on_public_key(public_key):
    """Una operación privada sobre una clave pública falla sin romper nada."""
    ciphertext = _encrypt(public_key, b"hola", Padding.PKCS1)
    with pytest.raises(CryptoOperationError) as exc:
        _decrypt(public_key, ciphertext, Padding.PKCS1)
    assert exc.value.code == ERR_NO_PRIVATE_KEY
    # El manejador sigue siendo utilizable
    assert public_key.size() == 128


# ==============================
#  TEST: CIFRADO CON LA PRIVADA
# ==============================
def test_private_encrypt_public_decrypt(private_key, public_key):
    """private_encrypt produce un bloque que public_decrypt recupera."""
    message = b"autenticado por el titular"
    out = bytearray(private_key.size())
    assert private_key.private_encrypt(out, message, Padding.PKCS1) == 128

    recovered = bytearray(128 - 11)
    written = public_key.public_decrypt(recovered, bytes(out), Padding.PKCS1)
    assert bytes(recovered[:written]) == message


def test_private_encrypt_is_deterministic(private_key):
    a = bytearray(128)
    b = bytearray(128)
    private_key.private_encrypt(a, b"dato", Padding.PKCS1)
    private_key.private_encrypt(b, b"dato", Padding.PKCS1)
    assert a == b


def test_private_encrypt_raw(private_key, public_key):
    block = b"\x00" + os.urandom(127)
    out = bytearray(128)
    private_key.private_encrypt(out, block, Padding.NONE)
    recovered = bytearray(128)
    public_key.public_decrypt(recovered, bytes(out), Padding.NONE)
    assert bytes(recovered) == block


def test_private_encrypt_rejects_oaep(private_key):
    with pytest.raises(CryptoOperationError) as exc:
        private_key.private_encrypt(bytearray(128), b"dato", Padding.PKCS1_OAEP)
    assert exc.value.code == ERR_UNSUPPORTED_PADDING


def test_private_encrypt_too_large(private_key):
    with pytest.raises(CryptoOperationError) as exc:
        private_key.private_encrypt(bytearray(128), os.urandom(118), Padding.PKCS1)
    assert exc.value.code == ERR_DATA_TOO_LARGE


def test_private_encrypt_on_public_key(public_key):
    with pytest.raises(CryptoOperationError) as exc:
        public_key.private_encrypt(bytearray(128), b"dato", Padding.PKCS1)
    assert exc.value.code == ERR_NO_PRIVATE_KEY


def test_public_decrypt_output_too_small(private_key, public_key):
    out = bytearray(128)
    private_key.private_encrypt(out, b"dato", Padding.PKCS1)
    with pytest.raises(CryptoOperationError) as exc:
        public_key.public_decrypt(bytearray(116), bytes(out), Padding.PKCS1)
    assert exc.value.code == ERR_OUTPUT_TOO_SMALL


def test_public_decrypt_bad_padding(public_key):
    """Un bloque que no es PKCS#1 tipo 1 no supera la comprobación."""
    garbage = b"\x00\x02" + os.urandom(126)
    with pytest.raises(CryptoOperationError):
        public_key.public_decrypt(bytearray(128), garbage, Padding.PKCS1)


# ==============================
#  TEST: BLINDING
# ==============================
def test_blinding_preserves_results(private_key, public_key):
    """Con blinding los resultados son idénticos, también tras renovar los factores."""
    key = RSAKey.from_record(KeyRecord(private_key.raw().private_key))
    expected = bytearray(128)
    key.private_encrypt(expected, b"dato", Padding.PKCS1)

    key.enable_blinding()
    for _ in range(40):
        out = bytearray(128)
        key.private_encrypt(out, b"dato", Padding.PKCS1)
        assert out == expected

    ciphertext = _encrypt(public_key, b"\x00" * 127 + b"\x07", Padding.NONE)
    assert _decrypt(key, ciphertext, Padding.NONE) == b"\x00" * 127 + b"\x07"


def test_blinding_visible_from_copy(private_key):
    key = RSAKey.from_record(KeyRecord(private_key.raw().private_key))
    other = copy.copy(key)
    key.enable_blinding()
    assert other.raw().blinding is key.raw().blinding
