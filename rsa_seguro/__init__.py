"""Manejador seguro de claves RSA sobre `cryptography`."""

__version__ = "0.1.0"
