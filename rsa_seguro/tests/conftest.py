"""
Fixtures compartidas: las claves se generan una sola vez por sesión.
"""

import pytest

from rsa_seguro.core.rsa_key import RSAKey


@pytest.fixture(scope="session")
def private_key():
    """Clave privada RSA de 1024 bits para testing."""
    return RSAKey.generate(1024, 65537)


@pytest.fixture(scope="session")
def public_key(private_key):
    """Parte pública de private_key."""
    return private_key.to_public_key()


@pytest.fixture
def sample_passphrase():
    """Frase de paso de prueba."""
    return "MiContraseñaSegura123!"
