"""
Módulo core del manejador de claves RSA.

Módulos disponibles:
- rsa_key: RSAKey, manejador de claves con propiedad compartida
- crypto: Modos de padding y cifrado/descifrado RSA
- sign: Firma y verificación de resúmenes (PKCS#1 v1.5)
- keystore: Protección PEM con frase de paso y callbacks
- pem: Armadura PEM
- primes: Búsqueda de primos para la generación
- record: Registro de material de clave y propiedad compartida
- errors: Jerarquía de excepciones
"""

# Importar módulos para facilitar el uso
from . import config
from . import errors
from . import record
from . import primes
from . import pem
from . import keystore
from . import crypto
from . import sign
from . import rsa_key

from .crypto import Padding
from .rsa_key import RSAKey

__all__ = ['config', 'errors', 'record', 'primes', 'pem', 'keystore',
           'crypto', 'sign', 'rsa_key', 'Padding', 'RSAKey']
