"""
Jerarquía de excepciones del manejador de claves RSA.

Cada error lleva un `code` corto (ver constantes ERR_*) que identifica la causa
sin exponer material de clave ni frases de paso en el mensaje.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Type

from cryptography.exceptions import InternalError, InvalidSignature, UnsupportedAlgorithm


#  CÓDIGOS DE ERROR

ERR_NULL_RECORD = "null_record"
ERR_BAD_RECORD = "bad_record"
ERR_BAD_EXPONENT = "bad_exponent"
ERR_KEY_SIZE_TOO_SMALL = "key_size_too_small"
ERR_NO_PUBLIC_KEY = "no_public_key"
ERR_NO_PRIVATE_KEY = "no_private_key"
ERR_HANDLE_CLOSED = "handle_closed"
ERR_RECORD_RELEASED = "record_released"
ERR_BAD_LENGTH = "bad_length"
ERR_FORMAT_MISMATCH = "format_mismatch"
ERR_BAD_PEM = "bad_pem"
ERR_BAD_DECRYPT = "bad_decrypt"
ERR_NO_PASSPHRASE = "no_passphrase"
ERR_BAD_PASSPHRASE_LENGTH = "bad_passphrase_length"
ERR_UNKNOWN_CIPHER = "unknown_cipher"
ERR_NOT_RSA = "not_rsa"
ERR_CHECK_FAILED = "check_failed"
ERR_OUTPUT_TOO_SMALL = "output_buffer_too_small"
ERR_DATA_TOO_LARGE = "data_too_large"
ERR_DATA_TOO_LARGE_FOR_MODULUS = "data_too_large_for_modulus"
ERR_BAD_INPUT_LENGTH = "bad_input_length"
ERR_PADDING_CHECK = "padding_check_failed"
ERR_UNSUPPORTED_PADDING = "unsupported_padding"
ERR_UNKNOWN_DIGEST = "unknown_digest"
ERR_BAD_DIGEST_LENGTH = "bad_digest_length"
ERR_BAD_SIGNATURE = "bad_signature"
ERR_BLINDING = "blinding"
ERR_BACKEND = "backend"


class RSAKeyError(Exception):
    """Excepción base para todos los fallos del manejador de claves."""

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause


class InvalidArgument(RSAKeyError, ValueError):
    """Argumento inválido (registro nulo, exponente par, parámetros incompatibles)."""


class KeyGenerationError(RSAKeyError):
    """Fallo durante la generación de una clave."""


class KeyDecodingError(RSAKeyError):
    """Fallo al cargar una clave: formato, truncado o frase de paso."""


class InvalidKeyState(RSAKeyError):
    """Falta material de clave o el material es inconsistente."""


class CryptoOperationError(RSAKeyError):
    """Fallo en un cifrado o descifrado."""


class SigningError(RSAKeyError):
    """Fallo al firmar un resumen."""


class VerificationError(RSAKeyError):
    """La firma no corresponde al resumen o está mal formada."""


class OperationError(RSAKeyError):
    """Fallo genérico de una operación (blinding, propiedad compartida)."""


class KeyEncodingError(OperationError):
    """Fallo al escribir una clave."""


# Excepciones de `cryptography` que se traducen a la jerarquía propia
BACKEND_ERRORS = (
    ValueError,
    TypeError,
    UnsupportedAlgorithm,
    InvalidSignature,
    InternalError,
)


@contextmanager
def translate_errors(
    error_cls: Type[RSAKeyError],
    message: str,
    code: str = ERR_BACKEND,
) -> Iterator[None]:
    """
    Convierte los fallos del backend en un error estructurado.

    Argumentos:
        error_cls: Clase de error a lanzar
        message: Mensaje base (se le añade la descripción del backend)
        code: Código a usar si el backend no aporta uno

    Raises:
        error_cls: Si el bloque lanza una excepción del backend
    """
    try:
        yield
    except RSAKeyError:
        raise
    except BACKEND_ERRORS as e:
        detail = str(e) or type(e).__name__
        raise error_cls(f"{message}: {detail}", code=code, cause=e) from e


__all__ = [
    "RSAKeyError",
    "InvalidArgument",
    "KeyGenerationError",
    "KeyDecodingError",
    "InvalidKeyState",
    "CryptoOperationError",
    "SigningError",
    "VerificationError",
    "OperationError",
    "KeyEncodingError",
    "translate_errors",
]
