"""
Módulo de firma digital de resúmenes.
- PKCS#1 v1.5 con DigestInfo (RSA_sign / RSA_verify)
- Identificadores de algoritmo de resumen: NIDs de OpenSSL
- El llamante aporta el resumen ya calculado
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Callable, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, utils

from .crypto import Padding, private_encrypt, public_decrypt
from .errors import (
    ERR_BAD_DIGEST_LENGTH,
    ERR_BAD_SIGNATURE,
    ERR_NO_PRIVATE_KEY,
    ERR_NO_PUBLIC_KEY,
    ERR_UNKNOWN_DIGEST,
    CryptoOperationError,
    SigningError,
    VerificationError,
    translate_errors,
)
from .record import KeyRecord



#  ALGORITMOS DE RESUMEN

NID_md5 = 4
NID_sha1 = 64
NID_md5_sha1 = 114
NID_ripemd160 = 117
NID_sha256 = 672
NID_sha384 = 673
NID_sha512 = 674
NID_sha224 = 675


@dataclass(frozen=True)
class DigestAlgorithm:
    """
    Algoritmo de resumen reconocido para firmas.

    Atributos:
        nid: Identificador numérico (NID de OpenSSL)
        name: Nombre corto
        digest_size: Longitud del resumen en bytes
        prefix: Cabecera DER de DigestInfo (vacía para MD5+SHA1)
        hash_factory: Clase de `cryptography`, o None si no existe en el backend
    """

    nid: int
    name: str
    digest_size: int
    prefix: bytes
    hash_factory: Optional[Callable[[], hashes.HashAlgorithm]] = None


DIGESTS = {
    alg.nid: alg
    for alg in (
        DigestAlgorithm(NID_md5, "md5", 16,
                        bytes.fromhex("3020300c06082a864886f70d020505000410"), hashes.MD5),
        DigestAlgorithm(NID_sha1, "sha1", 20,
                        bytes.fromhex("3021300906052b0e03021a05000414"), hashes.SHA1),
        DigestAlgorithm(NID_md5_sha1, "md5-sha1", 36, b""),
        DigestAlgorithm(NID_ripemd160, "ripemd160", 20,
                        bytes.fromhex("3021300906052b2403020105000414")),
        DigestAlgorithm(NID_sha224, "sha224", 28,
                        bytes.fromhex("302d300d06096086480165030402040500041c"), hashes.SHA224),
        DigestAlgorithm(NID_sha256, "sha256", 32,
                        bytes.fromhex("3031300d060960864801650304020105000420"), hashes.SHA256),
        DigestAlgorithm(NID_sha384, "sha384", 48,
                        bytes.fromhex("3041300d060960864801650304020205000430"), hashes.SHA384),
        DigestAlgorithm(NID_sha512, "sha512", 64,
                        bytes.fromhex("3051300d060960864801650304020305000440"), hashes.SHA512),
    )
}

DIGESTS_BY_NAME = {alg.name: alg for alg in DIGESTS.values()}


def get_digest(nid: int, error_cls=SigningError) -> DigestAlgorithm:
    """
    Devuelve el algoritmo de resumen para un NID.

    Raises:
        error_cls: Si el NID no es un algoritmo reconocido
    """
    try:
        return DIGESTS[nid]
    except (KeyError, TypeError) as e:
        raise error_cls(f"Algoritmo de resumen desconocido: {nid!r}",
                        code=ERR_UNKNOWN_DIGEST, cause=e) from e


def digest_by_name(name: str) -> DigestAlgorithm:
    try:
        return DIGESTS_BY_NAME[name.lower()]
    except KeyError as e:
        raise SigningError(
            f"Algoritmo de resumen desconocido: {name!r}. Disponibles: {', '.join(DIGESTS_BY_NAME)}",
            code=ERR_UNKNOWN_DIGEST, cause=e,
        ) from e


def encode_digest_info(alg: DigestAlgorithm, digest: bytes) -> bytes:
    """DigestInfo DER (o el resumen tal cual para MD5+SHA1)."""
    return alg.prefix + digest


def _check_digest(alg: DigestAlgorithm, digest: bytes, error_cls) -> None:
    if len(digest) != alg.digest_size:
        raise error_cls(
            f"Longitud de resumen inválida para {alg.name}: {len(digest)} bytes "
            f"(esperado: {alg.digest_size})",
            code=ERR_BAD_DIGEST_LENGTH,
        )



#  FIRMA DIGITAL (PKCS#1 v1.5)

def sign_digest(record: KeyRecord, digest: bytes, nid: int, size: int) -> bytes:
    """
    Firma un resumen con la clave privada del registro.

    Argumentos:
        record: Registro con material privado
        digest: Resumen ya calculado
        nid: Identificador del algoritmo de resumen
        size: Tamaño del módulo en bytes

    Returns:
        Firma de `size` bytes

    Raises:
        SigningError: Sin material privado, NID desconocido o longitud incorrecta
    """
    alg = get_digest(nid)
    _check_digest(alg, digest, SigningError)
    if not record.has_private:
        raise SigningError("La clave no contiene material privado", code=ERR_NO_PRIVATE_KEY)

    if alg.hash_factory is not None:
        with translate_errors(SigningError, "Error al firmar"):
            return record.private_key.sign(
                digest, padding.PKCS1v15(), utils.Prehashed(alg.hash_factory())
            )

    # Sin clase en el backend: DigestInfo + PKCS#1 tipo 1
    try:
        return private_encrypt(record, encode_digest_info(alg, digest), Padding.PKCS1, size)
    except CryptoOperationError as e:
        raise SigningError(f"Error al firmar: {e}", code=e.code, cause=e) from e


def verify_digest(record: KeyRecord, signature: bytes, digest: bytes, nid: int,
                  size: int) -> None:
    """
    Verifica la firma de un resumen.

    No distingue entre firma mal formada y firma que no corresponde: ambas
    lanzan VerificationError.

    Raises:
        VerificationError: Si la firma no es válida para el resumen
    """
    alg = get_digest(nid, VerificationError)
    _check_digest(alg, digest, VerificationError)
    public_key = record.public_key
    if public_key is None:
        raise VerificationError("La clave no contiene parámetros públicos",
                                code=ERR_NO_PUBLIC_KEY)
    if len(signature) != size:
        raise VerificationError(
            f"Tamaño de firma incorrecto: {len(signature)} bytes (esperado: {size})",
            code=ERR_BAD_SIGNATURE,
        )

    if alg.hash_factory is not None:
        with translate_errors(VerificationError, "Firma inválida", ERR_BAD_SIGNATURE):
            public_key.verify(
                signature, digest, padding.PKCS1v15(), utils.Prehashed(alg.hash_factory())
            )
        return

    try:
        recovered = public_decrypt(record, signature, Padding.PKCS1, size)
    except CryptoOperationError as e:
        raise VerificationError(f"Firma inválida: {e}", code=ERR_BAD_SIGNATURE, cause=e) from e
    if not hmac.compare_digest(recovered, encode_digest_info(alg, digest)):
        raise VerificationError("Firma inválida: el resumen no coincide", code=ERR_BAD_SIGNATURE)
