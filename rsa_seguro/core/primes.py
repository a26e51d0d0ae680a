"""
Búsqueda de primos probables y generación de los números de una clave RSA.

La notificación de progreso sigue las etapas clásicas de OpenSSL:
    0: un candidato ha superado la criba (n = candidatos generados)
    1: un candidato ha superado una ronda de Miller-Rabin (n = ronda)
    2: un primo se descarta por no ser coprimo con e o por repetirse
    3: un primo se acepta (n = 0 para p, 1 para q)
"""

from __future__ import annotations

import math
import secrets
from typing import Any, Callable, Optional

from cryptography.hazmat.primitives.asymmetric import rsa

from .config import MILLER_RABIN_ROUNDS, TRIAL_DIVISION_LIMIT

GenerateCallback = Callable[[int, int, Any], None]

STAGE_CANDIDATE = 0
STAGE_ROUND = 1
STAGE_REJECTED = 2
STAGE_FOUND = 3


def _small_primes(limit: int) -> tuple[int, ...]:
    sieve = bytearray([1]) * (limit + 1)
    sieve[0:2] = b"\x00\x00"
    for i in range(2, int(limit ** 0.5) + 1):
        if sieve[i]:
            sieve[i * i::i] = bytearray(len(sieve[i * i::i]))
    return tuple(i for i, is_prime in enumerate(sieve) if is_prime)


SMALL_PRIMES = _small_primes(TRIAL_DIVISION_LIMIT)


def miller_rabin_rounds(bits: int) -> int:
    """Número de rondas de Miller-Rabin para un candidato de `bits` bits."""
    for threshold, rounds in MILLER_RABIN_ROUNDS:
        if bits >= threshold:
            return rounds
    return MILLER_RABIN_ROUNDS[-1][1]


def _notify(callback: Optional[GenerateCallback], stage: int, n: int, arg: Any) -> None:
    if callback is not None:
        callback(stage, n, arg)


def is_probable_prime(
    n: int,
    rounds: Optional[int] = None,
    callback: Optional[GenerateCallback] = None,
    callback_arg: Any = None,
) -> bool:
    """
    Test de primalidad: criba por primos pequeños y Miller-Rabin.

    Argumentos:
        n: Entero a comprobar
        rounds: Rondas de Miller-Rabin (por defecto según el tamaño)
        callback: Notificación de progreso (etapa 1 por ronda superada)
        callback_arg: Argumento que se pasa tal cual al callback

    Returns:
        True si n es primo con alta probabilidad
    """
    if n < 2:
        return False
    for p in SMALL_PRIMES:
        if n == p:
            return True
        if n % p == 0:
            return False

    if rounds is None:
        rounds = miller_rabin_rounds(n.bit_length())

    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1

    for i in range(rounds):
        a = secrets.randbelow(n - 3) + 2
        x = pow(a, d, n)
        if x != 1 and x != n - 1:
            for _ in range(s - 1):
                x = x * x % n
                if x == n - 1:
                    break
            else:
                return False
        _notify(callback, STAGE_ROUND, i, callback_arg)
    return True


def generate_prime(
    bits: int,
    callback: Optional[GenerateCallback] = None,
    callback_arg: Any = None,
) -> int:
    """
    Genera un primo probable de exactamente `bits` bits.

    Los dos bits altos se fuerzan a 1 para que el producto de dos primos de
    la mitad de tamaño tenga exactamente el tamaño pedido.
    """
    top = 3 << (bits - 2) if bits >= 2 else 1 << (bits - 1)
    counter = 0
    while True:
        candidate = secrets.randbits(bits) | top | 1
        if any(candidate % p == 0 and candidate != p for p in SMALL_PRIMES):
            continue
        counter += 1
        _notify(callback, STAGE_CANDIDATE, counter, callback_arg)
        if is_probable_prime(candidate, callback=callback, callback_arg=callback_arg):
            return candidate


def generate_private_numbers(
    bits: int,
    exponent: int,
    callback: Optional[GenerateCallback] = None,
    callback_arg: Any = None,
) -> rsa.RSAPrivateNumbers:
    """
    Genera los números de una clave RSA de `bits` bits con exponente `exponent`.

    Argumentos:
        bits: Tamaño del módulo en bits (>= 16)
        exponent: Exponente público impar
        callback: Notificación de progreso
        callback_arg: Argumento que se pasa tal cual al callback

    Returns:
        RSAPrivateNumbers con p > q y d calculado módulo lcm(p-1, q-1)
    """
    bits_p = (bits + 1) // 2
    bits_q = bits - bits_p

    primes = []
    for index, size in enumerate((bits_p, bits_q)):
        while True:
            prime = generate_prime(size, callback, callback_arg)
            if math.gcd(prime - 1, exponent) != 1 or prime in primes:
                _notify(callback, STAGE_REJECTED, index, callback_arg)
                continue
            _notify(callback, STAGE_FOUND, index, callback_arg)
            primes.append(prime)
            break

    p, q = max(primes), min(primes)
    n = p * q
    d = pow(exponent, -1, math.lcm(p - 1, q - 1))

    return rsa.RSAPrivateNumbers(
        p=p,
        q=q,
        d=d,
        dmp1=rsa.rsa_crt_dmp1(d, p),
        dmq1=rsa.rsa_crt_dmq1(d, q),
        iqmp=rsa.rsa_crt_iqmp(p, q),
        public_numbers=rsa.RSAPublicNumbers(exponent, n),
    )
