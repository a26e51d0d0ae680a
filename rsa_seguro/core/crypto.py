"""
Módulo de cifrado asimétrico RSA sobre un registro de clave.
- PKCS#1 v1.5 y OAEP (SHA-1): delegados en `cryptography`
- Sin padding y PKCS#1 tipo 1 (cifrado con la privada): transformación RSA directa
- Contratos de tamaño de los búferes de salida
"""

from __future__ import annotations

import enum
import logging
from typing import Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding

from .config import OAEP_PADDING_OVERHEAD, PKCS1_PADDING_OVERHEAD
from .errors import (
    ERR_BAD_INPUT_LENGTH,
    ERR_DATA_TOO_LARGE,
    ERR_DATA_TOO_LARGE_FOR_MODULUS,
    ERR_NO_PRIVATE_KEY,
    ERR_NO_PUBLIC_KEY,
    ERR_OUTPUT_TOO_SMALL,
    ERR_PADDING_CHECK,
    ERR_UNSUPPORTED_PADDING,
    CryptoOperationError,
    translate_errors,
)
from .record import KeyRecord

logger = logging.getLogger(__name__)


class Padding(enum.IntEnum):
    """Modos de padding (mismos valores que las constantes RSA_*_PADDING)."""

    PKCS1 = 1
    NONE = 3
    PKCS1_OAEP = 4


def as_padding(value: Union[int, Padding]) -> Padding:
    try:
        return Padding(value)
    except ValueError as e:
        raise CryptoOperationError(f"Modo de padding no soportado: {value!r}",
                                   code=ERR_UNSUPPORTED_PADDING, cause=e) from e


def _oaep() -> asym_padding.OAEP:
    return asym_padding.OAEP(
        mgf=asym_padding.MGF1(algorithm=hashes.SHA1()),
        algorithm=hashes.SHA1(),
        label=None,
    )



#  CONTRATOS DE TAMAÑO

def max_plaintext_len(size: int, padding: Padding) -> int:
    """Máximo de bytes que admite (o produce) el padding para un módulo de `size` bytes."""
    if padding is Padding.PKCS1:
        return size - PKCS1_PADDING_OVERHEAD
    if padding is Padding.PKCS1_OAEP:
        return size - OAEP_PADDING_OVERHEAD
    return size


def check_output_buffer(out, required: int) -> memoryview:
    """
    Comprueba que el búfer de salida es escribible y tiene al menos `required` bytes.

    Raises:
        CryptoOperationError: Si el búfer es demasiado pequeño o de solo lectura
    """
    try:
        view = memoryview(out).cast("B")
    except TypeError as e:
        raise CryptoOperationError("El búfer de salida no es un objeto de bytes",
                                   code=ERR_OUTPUT_TOO_SMALL, cause=e) from e
    if view.readonly:
        raise CryptoOperationError("El búfer de salida es de solo lectura",
                                   code=ERR_OUTPUT_TOO_SMALL)
    if len(view) < required:
        raise CryptoOperationError(
            f"Búfer de salida demasiado pequeño: {len(view)} bytes (mínimo: {required})",
            code=ERR_OUTPUT_TOO_SMALL,
        )
    return view


def copy_into(view: memoryview, result: bytes) -> int:
    view[:len(result)] = result
    return len(result)



#  TRANSFORMACIÓN RSA DIRECTA

def _require_public(record: KeyRecord):
    numbers = record.public_numbers()
    if numbers is None:
        raise CryptoOperationError("La clave no contiene parámetros públicos",
                                   code=ERR_NO_PUBLIC_KEY)
    return numbers


def _require_private(record: KeyRecord):
    numbers = record.private_numbers()
    if numbers is None:
        raise CryptoOperationError("La clave no contiene material privado",
                                   code=ERR_NO_PRIVATE_KEY)
    return numbers


def _to_int(data: bytes, modulus: int) -> int:
    value = int.from_bytes(data, "big")
    if value >= modulus:
        raise CryptoOperationError("Dato mayor que el módulo",
                                   code=ERR_DATA_TOO_LARGE_FOR_MODULUS)
    return value


def raw_public(record: KeyRecord, data: bytes) -> bytes:
    """x^e mod n, resultado de `size` bytes."""
    numbers = _require_public(record)
    size = (numbers.n.bit_length() + 7) // 8
    value = _to_int(data, numbers.n)
    return pow(value, numbers.e, numbers.n).to_bytes(size, "big")


def raw_private(record: KeyRecord, data: bytes) -> bytes:
    """
    x^d mod n por CRT, con blinding si el registro lo tiene activado.

    El resultado se comprueba con la clave pública; si el CRT falla se
    recalcula con el exponente privado completo.
    """
    numbers = _require_private(record)
    public = numbers.public_numbers
    n = public.n
    size = (n.bit_length() + 7) // 8
    value = _to_int(data, n)

    blinding = record.blinding
    x = blinding.blind(value) if blinding is not None else value

    p, q = numbers.p, numbers.q
    m1 = pow(x % p, numbers.dmp1, p)
    m2 = pow(x % q, numbers.dmq1, q)
    h = numbers.iqmp * (m1 - m2) % p
    result = m2 + h * q

    if pow(result, public.e, n) != x:
        logger.warning("[RSA] Resultado CRT inconsistente, se recalcula sin CRT")
        result = pow(x, numbers.d, n)

    if blinding is not None:
        result = blinding.unblind(result)
        blinding.update()
    return result.to_bytes(size, "big")


def _pad_pkcs1_type1(data: bytes, size: int) -> bytes:
    if len(data) > size - PKCS1_PADDING_OVERHEAD:
        raise CryptoOperationError(
            f"Dato demasiado grande para el tamaño de clave: {len(data)} bytes "
            f"(máximo: {size - PKCS1_PADDING_OVERHEAD})",
            code=ERR_DATA_TOO_LARGE,
        )
    return b"\x00\x01" + b"\xff" * (size - 3 - len(data)) + b"\x00" + data


def _require_exact(data: bytes, size: int) -> None:
    if len(data) != size:
        raise CryptoOperationError(
            f"Sin padding la entrada debe medir exactamente {size} bytes (recibido {len(data)})",
            code=ERR_BAD_INPUT_LENGTH,
        )


def _require_at_most(data: bytes, size: int) -> None:
    if len(data) > size:
        raise CryptoOperationError(
            f"Entrada mayor que el módulo: {len(data)} bytes (máximo: {size})",
            code=ERR_DATA_TOO_LARGE_FOR_MODULUS,
        )



#  OPERACIONES

def private_encrypt(record: KeyRecord, data: bytes, padding: Padding, size: int) -> bytes:
    """Cifra con la clave privada (PKCS#1 tipo 1 o sin padding)."""
    _require_private(record)
    if padding is Padding.PKCS1:
        block = _pad_pkcs1_type1(data, size)
    elif padding is Padding.NONE:
        _require_exact(data, size)
        block = data
    else:
        raise CryptoOperationError("private_encrypt no admite OAEP",
                                   code=ERR_UNSUPPORTED_PADDING)
    return raw_private(record, block)


def public_decrypt(record: KeyRecord, data: bytes, padding: Padding, size: int) -> bytes:
    """Descifra con la clave pública lo cifrado por private_encrypt."""
    public_key = record.public_key
    if public_key is None:
        raise CryptoOperationError("La clave no contiene parámetros públicos",
                                   code=ERR_NO_PUBLIC_KEY)
    _require_at_most(data, size)
    if padding is Padding.PKCS1:
        with translate_errors(CryptoOperationError, "Comprobación de padding fallida",
                              ERR_PADDING_CHECK):
            return public_key.recover_data_from_signature(
                data, asym_padding.PKCS1v15(), None
            )
    if padding is Padding.NONE:
        return raw_public(record, data)
    raise CryptoOperationError("public_decrypt no admite OAEP",
                               code=ERR_UNSUPPORTED_PADDING)


def public_encrypt(record: KeyRecord, data: bytes, padding: Padding, size: int) -> bytes:
    """Cifra con la clave pública."""
    public_key = record.public_key
    if public_key is None:
        raise CryptoOperationError("La clave no contiene parámetros públicos",
                                   code=ERR_NO_PUBLIC_KEY)
    if padding is Padding.NONE:
        _require_exact(data, size)
        return raw_public(record, data)

    limit = max_plaintext_len(size, padding)
    if len(data) > limit:
        raise CryptoOperationError(
            f"Dato demasiado grande para el tamaño de clave: {len(data)} bytes (máximo: {limit})",
            code=ERR_DATA_TOO_LARGE,
        )
    scheme = asym_padding.PKCS1v15() if padding is Padding.PKCS1 else _oaep()
    with translate_errors(CryptoOperationError, "Error al cifrar"):
        return public_key.encrypt(data, scheme)


def private_decrypt(record: KeyRecord, data: bytes, padding: Padding, size: int) -> bytes:
    """Descifra con la clave privada lo cifrado por public_encrypt."""
    _require_private(record)
    _require_at_most(data, size)
    if padding is Padding.NONE:
        return raw_private(record, data)

    scheme = asym_padding.PKCS1v15() if padding is Padding.PKCS1 else _oaep()
    with translate_errors(CryptoOperationError, "Error al descifrar", ERR_PADDING_CHECK):
        return record.private_key.decrypt(data, scheme)
