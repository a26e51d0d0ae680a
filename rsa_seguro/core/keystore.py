"""
Módulo de protección con frase de paso de claves privadas PEM
- Cifrado OpenSSL clásico al escribir: cabeceras Proc-Type / DEK-Info (la lectura la descifra el backend)
- EVP_BytesToKey (MD5, 1 iteración): derivación de la clave desde la frase de paso
- AES-CBC con padding PKCS7
- Callbacks de frase de paso: (buffer, max_len, is_write, user_arg) -> longitud
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from getpass import getpass
from typing import Any, Callable, Optional, Type, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .config import PEM_BUFSIZE
from .errors import (
    ERR_BAD_PASSPHRASE_LENGTH,
    ERR_UNKNOWN_CIPHER,
    InvalidArgument,
    KeyDecodingError,
    RSAKeyError,
)

logger = logging.getLogger(__name__)

PassphraseCallback = Callable[[bytearray, int, bool, Any], int]



#  CONSTANTES DE SEGURIDAD

SALT_SIZE = 8           # los primeros 8 bytes del IV hacen de sal
IV_SIZE = 16            # 128 bits para AES-CBC
AES_BLOCK_SIZE = 16     # Tamaño de bloque AES
PROC_TYPE_ENCRYPTED = "4,ENCRYPTED"



#  CIFRADORES SOPORTADOS

@dataclass(frozen=True)
class PemCipher:
    name: str
    key_size: int
    iv_size: int = IV_SIZE


CIPHERS = {
    cipher.name: cipher
    for cipher in (
        PemCipher("AES-128-CBC", 16),
        PemCipher("AES-192-CBC", 24),
        PemCipher("AES-256-CBC", 32),
    )
}


def get_cipher(cipher: Union[str, PemCipher]) -> PemCipher:
    """
    Resuelve un cifrador por nombre (sin distinguir mayúsculas).

    Raises:
        InvalidArgument: Si el cifrador no está soportado
    """
    if isinstance(cipher, PemCipher):
        return cipher
    if isinstance(cipher, str) and cipher.upper() in CIPHERS:
        return CIPHERS[cipher.upper()]
    raise InvalidArgument(
        f"Cifrador no soportado: {cipher!r}. Disponibles: {', '.join(CIPHERS)}",
        code=ERR_UNKNOWN_CIPHER,
    )



#  DERIVACIÓN DE CLAVES (EVP_BytesToKey)

def bytes_to_key(passphrase: bytes, salt: bytes, length: int) -> bytes:
    """
    Deriva una clave como EVP_BytesToKey con MD5 y una iteración.

    Argumentos:
        passphrase: Frase de paso
        salt: Sal (8 bytes)
        length: Longitud de la clave en bytes

    Returns:
        Clave derivada de 'length' bytes
    """
    derived = b""
    block = b""
    while len(derived) < length:
        digest = hashes.Hash(hashes.MD5())
        digest.update(block + passphrase + salt)
        block = digest.finalize()
        derived += block
    return derived[:length]



#  CIFRADO DEL CUERPO PEM

def encrypt_pem_body(body: bytes, passphrase: bytes,
                     cipher: Union[str, PemCipher]) -> tuple[dict[str, str], bytes]:
    """
    Cifra el cuerpo DER de una clave privada para un bloque PEM clásico.

    Argumentos:
        body: DER de la clave privada
        passphrase: Frase de paso
        cipher: Cifrador (nombre o PemCipher)

    Returns:
        Tupla (cabeceras PEM, cuerpo cifrado)
    """
    params = get_cipher(cipher)

    # 1. IV aleatorio; sus primeros 8 bytes son la sal
    iv = os.urandom(params.iv_size)
    key = bytes_to_key(passphrase, iv[:SALT_SIZE], params.key_size)

    # 2. Padding PKCS7
    padding_length = AES_BLOCK_SIZE - (len(body) % AES_BLOCK_SIZE)
    padded = body + bytes([padding_length] * padding_length)

    # 3. AES-CBC
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    headers = {
        "Proc-Type": PROC_TYPE_ENCRYPTED,
        "DEK-Info": f"{params.name},{iv.hex().upper()}",
    }
    return headers, ciphertext



#  CALLBACKS DE FRASE DE PASO

def request_passphrase(callback: Optional[PassphraseCallback], callback_arg: Any,
                       is_write: bool,
                       error_cls: Type[RSAKeyError] = KeyDecodingError) -> Optional[bytes]:
    """
    Pide una frase de paso al callback.

    Returns:
        La frase de paso, o None si no hay callback o devuelve 0

    Raises:
        error_cls: Si el callback declara más de PEM_BUFSIZE bytes
    """
    if callback is None:
        return None
    buffer = bytearray(PEM_BUFSIZE)
    length = callback(buffer, PEM_BUFSIZE, is_write, callback_arg)
    if not length or length < 0:
        return None
    if length > PEM_BUFSIZE:
        raise error_cls(
            f"El callback devolvió {length} bytes (máximo: {PEM_BUFSIZE})",
            code=ERR_BAD_PASSPHRASE_LENGTH,
        )
    return bytes(buffer[:length])


def _fill(buffer: bytearray, max_len: int, passphrase: bytes) -> int:
    length = min(len(passphrase), max_len)
    buffer[:length] = passphrase[:length]
    return length


def passphrase_callback(passphrase: Union[str, bytes]) -> PassphraseCallback:
    """Crea un callback que siempre entrega la misma frase de paso."""
    value = passphrase.encode("utf-8") if isinstance(passphrase, str) else bytes(passphrase)

    def callback(buffer: bytearray, max_len: int, is_write: bool, user_arg: Any) -> int:
        return _fill(buffer, max_len, value)

    return callback


def prompt_passphrase(buffer: bytearray, max_len: int, is_write: bool,
                      user_arg: Any = None) -> int:
    """
    Callback interactivo: pide la frase de paso por terminal.

    Al escribir la pide dos veces y devuelve 0 si no coinciden.
    `user_arg`, si es una cadena, se usa como texto del prompt.
    """
    prompt = user_arg if isinstance(user_arg, str) else "Frase de paso PEM: "
    first = getpass(prompt)
    if is_write:
        second = getpass("Repite la frase de paso: ")
        if first != second:
            logger.warning("[KEYSTORE] Las frases de paso no coinciden")
            return 0
    return _fill(buffer, max_len, first.encode("utf-8"))
