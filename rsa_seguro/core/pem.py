"""
Armadura PEM: lectura y escritura de bloques -----BEGIN ...-----.

Cada cargador pide las etiquetas que acepta y los bloques con otras
etiquetas se ignoran; no hay detección automática de formato.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .config import PEM_LINE_LENGTH
from .errors import ERR_BAD_PEM, ERR_FORMAT_MISMATCH, KeyDecodingError


#  ETIQUETAS

LABEL_RSA_PRIVATE_KEY = "RSA PRIVATE KEY"
LABEL_PRIVATE_KEY = "PRIVATE KEY"
LABEL_ENCRYPTED_PRIVATE_KEY = "ENCRYPTED PRIVATE KEY"
LABEL_RSA_PUBLIC_KEY = "RSA PUBLIC KEY"
LABEL_PUBLIC_KEY = "PUBLIC KEY"

PRIVATE_KEY_LABELS = (LABEL_RSA_PRIVATE_KEY, LABEL_PRIVATE_KEY, LABEL_ENCRYPTED_PRIVATE_KEY)
PUBLIC_KEY_LABELS = (LABEL_RSA_PUBLIC_KEY,)
CERTIFICATE_PUBLIC_KEY_LABELS = (LABEL_PUBLIC_KEY,)

_BEGIN_RE = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----")


@dataclass
class PemBlock:
    label: str
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def encrypted(self) -> bool:
        """True si el bloque lleva cifrado OpenSSL clásico (Proc-Type: 4,ENCRYPTED)."""
        return self.headers.get("Proc-Type", "").replace(" ", "") == "4,ENCRYPTED"


def _parse_block(label: str, content: bytes) -> PemBlock:
    try:
        text = content.decode("ascii")
    except UnicodeDecodeError as e:
        raise KeyDecodingError("Bloque PEM con caracteres no ASCII", code=ERR_BAD_PEM, cause=e) from e

    lines = [line.strip() for line in text.splitlines()]
    while lines and not lines[0]:
        lines.pop(0)
    headers: dict[str, str] = {}
    while lines and ":" in lines[0]:
        name, _, value = lines.pop(0).partition(":")
        headers[name.strip()] = value.strip()

    encoded = "".join(lines)
    if not encoded:
        raise KeyDecodingError(f"Bloque PEM '{label}' vacío", code=ERR_BAD_PEM)
    try:
        body = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyDecodingError(f"Base64 inválido en el bloque '{label}'", code=ERR_BAD_PEM, cause=e) from e
    return PemBlock(label=label, body=body, headers=headers)


def decode(data: bytes, labels: Iterable[str]) -> PemBlock:
    """
    Devuelve el primer bloque PEM cuya etiqueta esté en `labels`.

    Argumentos:
        data: Texto PEM (puede contener varios bloques)
        labels: Etiquetas aceptadas

    Returns:
        PemBlock con cabeceras y cuerpo DER

    Raises:
        KeyDecodingError: Si no hay bloque con etiqueta aceptada o está corrupto
    """
    accepted = tuple(labels)
    pos = 0
    while True:
        begin = _BEGIN_RE.search(data, pos)
        if begin is None:
            break
        label = begin.group(1).decode("ascii")
        end_marker = b"-----END " + begin.group(1) + b"-----"
        end = data.find(end_marker, begin.end())
        if end < 0:
            if label in accepted:
                raise KeyDecodingError(f"Bloque PEM '{label}' truncado", code=ERR_BAD_PEM)
            break
        if label in accepted:
            return _parse_block(label, data[begin.end():end])
        pos = end + len(end_marker)

    expected = ", ".join(accepted)
    raise KeyDecodingError(
        f"No se encontró ningún bloque PEM del formato esperado ({expected})",
        code=ERR_FORMAT_MISMATCH,
    )


def encode(label: str, body: bytes, headers: Optional[dict[str, str]] = None) -> bytes:
    """Arma un bloque PEM con líneas de 64 caracteres."""
    encoded = base64.b64encode(body).decode("ascii")
    lines = [f"-----BEGIN {label}-----"]
    if headers:
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.append("")
    lines.extend(encoded[i:i + PEM_LINE_LENGTH] for i in range(0, len(encoded), PEM_LINE_LENGTH))
    lines.append(f"-----END {label}-----")
    return ("\n".join(lines) + "\n").encode("ascii")
