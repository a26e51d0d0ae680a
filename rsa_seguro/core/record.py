"""
Registro de material de clave y propiedad compartida.
- KeyRecord: material RSA (objetos de `cryptography`) y estado de blinding
- Blinding: factores aleatorios contra ataques de temporización
- OwnershipCell: contador de referencias que libera el registro al llegar a cero
"""

from __future__ import annotations

import logging
import math
import secrets
import threading
from typing import Any, Callable, Optional, Union

from cryptography.hazmat.primitives.asymmetric import rsa

from .config import BLINDING_COUNTER
from .errors import (
    ERR_BAD_RECORD,
    ERR_BLINDING,
    ERR_RECORD_RELEASED,
    InvalidArgument,
    OperationError,
)

logger = logging.getLogger(__name__)

RSAKeyObject = Union[rsa.RSAPrivateKey, rsa.RSAPublicKey]



#  BLINDING

class Blinding:
    """
    Par de factores (r^e, r^-1) mod n aplicado a las operaciones privadas.

    Tras cada uso ambos factores se elevan al cuadrado, y cada
    BLINDING_COUNTER usos se elige un r nuevo.
    """

    def __init__(self, modulus: int, exponent: int, rng: Any = None) -> None:
        self.modulus = modulus
        self.exponent = exponent
        self._rng = rng if rng is not None else secrets.SystemRandom()
        self._refresh()

    def _refresh(self) -> None:
        n = self.modulus
        while True:
            r = self._rng.randrange(2, n)
            if math.gcd(r, n) == 1:
                break
        self._factor = pow(r, self.exponent, n)
        self._inverse = pow(r, -1, n)
        self._uses = 0

    def blind(self, value: int) -> int:
        return value * self._factor % self.modulus

    def unblind(self, value: int) -> int:
        return value * self._inverse % self.modulus

    def update(self) -> None:
        self._uses += 1
        if self._uses >= BLINDING_COUNTER:
            self._refresh()
            return
        n = self.modulus
        self._factor = self._factor * self._factor % n
        self._inverse = self._inverse * self._inverse % n



#  REGISTRO DE MATERIAL DE CLAVE

class KeyRecord:
    """
    Representación interna de una clave RSA.

    Puede estar vacío, contener solo la parte pública o contener la clave
    privada completa. No hay ningún indicador público/privado aparte del
    propio material.
    """

    def __init__(self, key: Optional[RSAKeyObject] = None) -> None:
        self._private_key: Optional[rsa.RSAPrivateKey] = None
        self._public_key: Optional[rsa.RSAPublicKey] = None
        self._private_numbers: Optional[rsa.RSAPrivateNumbers] = None
        self._public_numbers: Optional[rsa.RSAPublicNumbers] = None
        self.blinding: Optional[Blinding] = None
        self.released = False
        # celda de propiedad vigente; la fija OwnershipCell
        self.owner: Optional["OwnershipCell"] = None
        if key is not None:
            self.assign(key)

    def assign(self, key: RSAKeyObject) -> None:
        """Rellena el registro en sitio con una clave de `cryptography`."""
        if isinstance(key, rsa.RSAPrivateKey):
            self._private_key = key
            self._public_key = key.public_key()
        elif isinstance(key, rsa.RSAPublicKey):
            self._private_key = None
            self._public_key = key
        else:
            raise InvalidArgument(
                f"Se esperaba una clave RSA, recibido {type(key).__name__}",
                code=ERR_BAD_RECORD,
            )
        self._private_numbers = None
        self._public_numbers = None
        self.blinding = None
        self.released = False

    @property
    def private_key(self) -> Optional[rsa.RSAPrivateKey]:
        return self._private_key

    @property
    def public_key(self) -> Optional[rsa.RSAPublicKey]:
        return self._public_key

    @property
    def has_private(self) -> bool:
        return self._private_key is not None

    @property
    def has_public(self) -> bool:
        return self._public_key is not None

    @property
    def modulus_bits(self) -> int:
        return self._public_key.key_size if self._public_key is not None else 0

    def private_numbers(self) -> Optional[rsa.RSAPrivateNumbers]:
        if self._private_key is None:
            return None
        if self._private_numbers is None:
            self._private_numbers = self._private_key.private_numbers()
        return self._private_numbers

    def public_numbers(self) -> Optional[rsa.RSAPublicNumbers]:
        if self._public_key is None:
            return None
        if self._public_numbers is None:
            self._public_numbers = self._public_key.public_numbers()
        return self._public_numbers

    def enable_blinding(self, rng: Any = None) -> None:
        numbers = self.public_numbers()
        if numbers is None:
            raise OperationError(
                "No se puede activar el blinding en un registro vacío",
                code=ERR_BLINDING,
            )
        self.blinding = Blinding(numbers.n, numbers.e, rng)

    def disable_blinding(self) -> None:
        self.blinding = None

    def release(self) -> None:
        """Suelta todo el material; el registro queda vacío."""
        self._private_key = None
        self._public_key = None
        self._private_numbers = None
        self._public_numbers = None
        self.blinding = None
        self.released = True
        logger.debug("[RSA] Registro de clave liberado")



#  PROPIEDAD COMPARTIDA

class OwnershipCell:
    """
    Celda con contador de referencias sobre un KeyRecord.

    Cada manejador vivo tiene una referencia; la función de liberación se
    llama exactamente una vez, cuando se devuelve la última.

    La celda queda anotada en `record.owner` mientras viva, de modo que un
    manejador nuevo sobre el mismo registro se une a ella en lugar de crear
    un segundo contador.
    """

    def __init__(
        self,
        record: KeyRecord,
        release: Optional[Callable[[KeyRecord], None]] = None,
    ) -> None:
        self.record = record
        self._release = release or KeyRecord.release
        self._count = 0
        self._released = False
        self._lock = threading.Lock()
        record.owner = self

    @property
    def use_count(self) -> int:
        return self._count

    def acquire(self) -> KeyRecord:
        with self._lock:
            if self._released:
                raise OperationError(
                    "El registro de clave ya fue liberado",
                    code=ERR_RECORD_RELEASED,
                )
            self._count += 1
        return self.record

    def release(self) -> None:
        with self._lock:
            self._count -= 1
            if self._count > 0 or self._released:
                return
            self._released = True
        if self.record.owner is self:
            self.record.owner = None
        self._release(self.record)
