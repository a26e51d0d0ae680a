"""
Constantes de configuración del paquete.
- Valores por defecto de generación de claves
- Tamaños de búfer y sobrecostes de padding
- Parámetros de la búsqueda de primos y del blinding
"""


#  GENERACIÓN DE CLAVES

DEFAULT_PUBLIC_EXPONENT = 65537
MIN_SECURE_MODULUS_BITS = 1024   # por debajo se considera inseguro (solo aviso)
MIN_MODULUS_BITS = 16            # por debajo no caben dos primos distintos
BACKEND_PUBLIC_EXPONENTS = (3, 65537)  # los que acepta rsa.generate_private_key

TRIAL_DIVISION_LIMIT = 2048      # primos pequeños para la criba previa

# Rondas de Miller-Rabin según el tamaño del candidato (BN_prime_checks_for_size)
MILLER_RABIN_ROUNDS = (
    (3747, 3),
    (1345, 4),
    (476, 5),
    (400, 6),
    (347, 7),
    (308, 8),
    (55, 27),
    (0, 34),
)


#  PEM

PEM_BUFSIZE = 1024               # longitud máxima de una frase de paso
PEM_LINE_LENGTH = 64
DEFAULT_PEM_CIPHER = "AES-256-CBC"


#  PADDING

PKCS1_PADDING_OVERHEAD = 11
OAEP_PADDING_OVERHEAD = 41       # OAEP con SHA-1: 2 * 20 + 1


#  BLINDING

BLINDING_COUNTER = 32            # usos antes de regenerar el factor


#  IMPRESIÓN

PRINT_BYTES_PER_LINE = 15
PRINT_INDENT = 4
