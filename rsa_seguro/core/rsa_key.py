"""
Manejador de claves RSA con propiedad compartida.

Un RSAKey tiene la misma semántica que un puntero a la clave: copiarlo
(`copy.copy`) produce otro manejador sobre el mismo registro, y el registro se
libera cuando se cierra o se recolecta el último manejador. RSAKey no sabe si
la clave es pública o privada; es responsabilidad del llamante no invocar
operaciones privadas sobre claves públicas (si lo hace, se lanza un error con
código "no_private_key").
"""

from __future__ import annotations

import io
import logging
import os
import sys
import weakref
from typing import IO, Any, Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from . import crypto, keystore, pem, primes
from .config import BACKEND_PUBLIC_EXPONENTS, DEFAULT_PUBLIC_EXPONENT, MIN_MODULUS_BITS, \
    MIN_SECURE_MODULUS_BITS, PRINT_BYTES_PER_LINE, PRINT_INDENT
from .crypto import Padding
from .errors import (
    ERR_BACKEND,
    ERR_BAD_DECRYPT,
    ERR_BAD_EXPONENT,
    ERR_BAD_LENGTH,
    ERR_BAD_PEM,
    ERR_CHECK_FAILED,
    ERR_HANDLE_CLOSED,
    ERR_KEY_SIZE_TOO_SMALL,
    ERR_NO_PASSPHRASE,
    ERR_NO_PRIVATE_KEY,
    ERR_NO_PUBLIC_KEY,
    ERR_NOT_RSA,
    ERR_NULL_RECORD,
    CryptoOperationError,
    InvalidArgument,
    InvalidKeyState,
    KeyDecodingError,
    KeyEncodingError,
    KeyGenerationError,
    SigningError,
    VerificationError,
    translate_errors,
)
from .keystore import PassphraseCallback, PemCipher
from .primes import GenerateCallback
from .record import KeyRecord, OwnershipCell
from .sign import sign_digest, verify_digest

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]
Buffer = Union[bytes, bytearray, memoryview]



#  UTILIDADES DE E/S

def _read_stream(stream: IO) -> bytes:
    data = stream.read()
    if isinstance(data, str):
        try:
            return data.encode("ascii")
        except UnicodeEncodeError as e:
            raise KeyDecodingError("El flujo contiene caracteres no ASCII",
                                   code=ERR_BAD_PEM, cause=e) from e
    return bytes(data)


def _write_stream(stream: IO, data: bytes) -> None:
    if isinstance(stream, io.TextIOBase):
        stream.write(data.decode("ascii"))
    else:
        stream.write(data)


def _read_buffer(buf: Buffer, buf_len: Optional[int]) -> bytes:
    if buf is None:
        raise InvalidArgument("El búfer no puede ser None", code=ERR_BAD_LENGTH)
    view = memoryview(buf).cast("B")
    if buf_len is None:
        return view.tobytes()
    if buf_len < 0 or buf_len > len(view):
        raise InvalidArgument(
            f"Longitud inválida: {buf_len} (el búfer tiene {len(view)} bytes)",
            code=ERR_BAD_LENGTH,
        )
    return view[:buf_len].tobytes()


def _format_number(name: str, value: int, indent: int) -> list[str]:
    pad = " " * indent
    if value.bit_length() <= 64:
        return [f"{pad}{name} {value} (0x{value:x})"]
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    if raw[0] & 0x80:
        raw = b"\x00" + raw
    lines = [f"{pad}{name}"]
    hex_bytes = [f"{b:02x}" for b in raw]
    for i in range(0, len(hex_bytes), PRINT_BYTES_PER_LINE):
        chunk = hex_bytes[i:i + PRINT_BYTES_PER_LINE]
        last = i + PRINT_BYTES_PER_LINE >= len(hex_bytes)
        lines.append(f"{pad}{' ' * PRINT_INDENT}{':'.join(chunk)}{'' if last else ':'}")
    return lines



#  MANEJADOR DE CLAVE

class RSAKey:
    """
    Clave RSA (con o sin parte privada) sobre un registro compartido.

    Dos RSAKey son iguales si comparten el mismo registro.
    """

    def __init__(self, record: Optional[KeyRecord] = None) -> None:
        """
        Crea un manejador sobre `record`, o sobre un registro vacío nuevo.

        Un registro vacío solo sirve como destino para rellenarlo después
        con `raw().assign(...)`. Si el registro ya tiene manejadores vivos,
        el nuevo se une a su contador.
        """
        if record is None:
            record = KeyRecord()
        cell = record.owner
        if cell is None:
            cell = OwnershipCell(record)
        self._attach(cell)

    def _attach(self, cell: OwnershipCell) -> None:
        cell.acquire()
        self._cell = cell
        self._finalizer = weakref.finalize(self, cell.release)

    @classmethod
    def _from_cell(cls, cell: OwnershipCell) -> "RSAKey":
        key = cls.__new__(cls)
        key._attach(cell)
        return key

    @classmethod
    def from_record(cls, record: Union[KeyRecord, rsa.RSAPrivateKey, rsa.RSAPublicKey]) -> "RSAKey":
        """
        Toma la propiedad de un registro existente.

        Un registro que ya pertenece a otros manejadores se comparte con
        ellos (como una copia): no se libera mientras quede alguno vivo.

        Argumentos:
            record: KeyRecord, o clave RSA de `cryptography` (se envuelve en
                un registro nuevo)

        Raises:
            InvalidArgument: Si record es None o no es una clave RSA
        """
        if record is None:
            raise InvalidArgument("El registro de clave no puede ser None", code=ERR_NULL_RECORD)
        if not isinstance(record, KeyRecord):
            record = KeyRecord(record)
        return cls(record)

    #  Propiedad compartida

    def __copy__(self) -> "RSAKey":
        return type(self)._from_cell(self._cell)

    def __deepcopy__(self, memo: dict) -> "RSAKey":
        # el registro nunca se duplica: una copia comparte la clave
        return self.__copy__()

    def close(self) -> None:
        """Devuelve la referencia de este manejador (idempotente)."""
        self._finalizer()

    def __enter__(self) -> "RSAKey":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    @property
    def use_count(self) -> int:
        """Número de manejadores vivos que comparten el registro."""
        return self._cell.use_count

    def raw(self) -> KeyRecord:
        """
        Registro subyacente.

        El registro pertenece a los manejadores: no debe liberarse a mano.
        """
        if self.closed:
            raise InvalidKeyState("El manejador de clave está cerrado", code=ERR_HANDLE_CLOSED)
        return self._cell.record

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RSAKey):
            return NotImplemented
        return self._cell.record is other._cell.record

    def __hash__(self) -> int:
        return id(self._cell.record)

    def __repr__(self) -> str:
        if self.closed:
            return "<RSAKey cerrado>"
        record = self._cell.record
        kind = "privada" if record.has_private else "pública" if record.has_public else "vacía"
        return f"<RSAKey {kind} {record.modulus_bits} bits use_count={self.use_count}>"

    #  Generación

    @classmethod
    def generate(
        cls,
        modulus_bits: int,
        public_exponent: int = DEFAULT_PUBLIC_EXPONENT,
        callback: Optional[GenerateCallback] = None,
        callback_arg: Any = None,
    ) -> "RSAKey":
        """
        Genera una clave privada RSA nueva.

        Argumentos:
            modulus_bits: Tamaño del módulo en bits. Por debajo de 1024 se
                considera inseguro, pero se acepta.
            public_exponent: Exponente público impar (típicamente 3, 17 o 65537)
            callback: Notificación de progreso callback(etapa, n, callback_arg)
                (con callback, o con tamaños o exponentes que el backend no
                admite, los primos se buscan aquí y no en `cryptography`)
            callback_arg: Argumento que se pasa tal cual al callback

        Returns:
            RSAKey con la clave privada

        Raises:
            InvalidArgument: Si el exponente no es impar o es menor que 3
            KeyGenerationError: Si la búsqueda o la construcción de la clave falla
        """
        if not isinstance(public_exponent, int) or public_exponent < 3 or public_exponent % 2 == 0:
            raise InvalidArgument(
                f"El exponente público debe ser un entero impar >= 3 (recibido {public_exponent!r})",
                code=ERR_BAD_EXPONENT,
            )
        if modulus_bits < MIN_MODULUS_BITS:
            raise KeyGenerationError(
                f"Tamaño de módulo demasiado pequeño: {modulus_bits} bits (mínimo: {MIN_MODULUS_BITS})",
                code=ERR_KEY_SIZE_TOO_SMALL,
            )
        if modulus_bits < MIN_SECURE_MODULUS_BITS:
            logger.warning("[KEYGEN] Módulo de %d bits: claves de menos de %d bits son inseguras",
                           modulus_bits, MIN_SECURE_MODULUS_BITS)

        logger.info("[KEYGEN] Generando clave RSA de %d bits (e=%d)", modulus_bits, public_exponent)
        if callback is None and public_exponent in BACKEND_PUBLIC_EXPONENTS \
                and modulus_bits >= MIN_SECURE_MODULUS_BITS:
            logger.debug("[KEYGEN] Generación delegada en el backend")
            with translate_errors(KeyGenerationError, "Error al generar la clave"):
                private_key = rsa.generate_private_key(public_exponent=public_exponent,
                                                       key_size=modulus_bits)
        else:
            # búsqueda propia de primos
            numbers = primes.generate_private_numbers(modulus_bits, public_exponent,
                                                      callback, callback_arg)
            with translate_errors(KeyGenerationError, "Error al construir la clave generada"):
                private_key = numbers.private_key(unsafe_skip_rsa_key_validation=True)
        return cls(KeyRecord(private_key))

    #  Carga

    @classmethod
    def _load_private(cls, data: bytes, callback: Optional[PassphraseCallback],
                      callback_arg: Any) -> "RSAKey":
        block = pem.decode(data, pem.PRIVATE_KEY_LABELS)
        password = None
        code = ERR_BACKEND
        if block.encrypted or block.label == pem.LABEL_ENCRYPTED_PRIVATE_KEY:
            password = keystore.request_passphrase(callback, callback_arg, False)
            if password is None:
                raise KeyDecodingError("La clave privada está cifrada y no hay frase de paso",
                                       code=ERR_NO_PASSPHRASE)
            code = ERR_BAD_DECRYPT

        # El backend descifra cualquier DEK-Info que soporte OpenSSL
        armored = pem.encode(block.label, block.body, block.headers)
        with translate_errors(KeyDecodingError, "No se pudo cargar la clave privada", code):
            key = serialization.load_pem_private_key(armored, password=password)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyDecodingError("La clave privada no es RSA", code=ERR_NOT_RSA)
        logger.debug("[RSA] Clave privada cargada (%d bits)", key.key_size)
        return cls(KeyRecord(key))

    @classmethod
    def _load_public(cls, data: bytes, labels: tuple[str, ...]) -> "RSAKey":
        block = pem.decode(data, labels)
        with translate_errors(KeyDecodingError, "No se pudo cargar la clave pública"):
            key = serialization.load_pem_public_key(pem.encode(block.label, block.body))
        if not isinstance(key, rsa.RSAPublicKey):
            raise KeyDecodingError("La clave pública no es RSA", code=ERR_NOT_RSA)
        logger.debug("[RSA] Clave pública cargada (%s, %d bits)", block.label, key.key_size)
        return cls(KeyRecord(key))

    @classmethod
    def from_private_key(cls, stream: IO, callback: Optional[PassphraseCallback] = None,
                         callback_arg: Any = None) -> "RSAKey":
        """
        Carga una clave privada PEM desde un flujo.

        Argumentos:
            stream: Objeto tipo fichero con read()
            callback: Se llama si el bloque está cifrado y hace falta frase de paso
            callback_arg: Argumento que se pasa tal cual al callback
        """
        return cls._load_private(_read_stream(stream), callback, callback_arg)

    @classmethod
    def from_private_key_file(cls, path: PathLike, callback: Optional[PassphraseCallback] = None,
                              callback_arg: Any = None) -> "RSAKey":
        with open(path, "rb") as f:
            return cls.from_private_key(f, callback, callback_arg)

    @classmethod
    def from_private_key_buffer(cls, buf: Buffer, buf_len: Optional[int] = None,
                                callback: Optional[PassphraseCallback] = None,
                                callback_arg: Any = None) -> "RSAKey":
        return cls._load_private(_read_buffer(buf, buf_len), callback, callback_arg)

    @classmethod
    def from_public_key(cls, stream: IO) -> "RSAKey":
        """Carga una clave pública PEM 'RSA PUBLIC KEY' (PKCS#1) desde un flujo."""
        return cls._load_public(_read_stream(stream), pem.PUBLIC_KEY_LABELS)

    @classmethod
    def from_public_key_file(cls, path: PathLike) -> "RSAKey":
        with open(path, "rb") as f:
            return cls.from_public_key(f)

    @classmethod
    def from_public_key_buffer(cls, buf: Buffer, buf_len: Optional[int] = None) -> "RSAKey":
        return cls._load_public(_read_buffer(buf, buf_len), pem.PUBLIC_KEY_LABELS)

    @classmethod
    def from_certificate_public_key(cls, stream: IO) -> "RSAKey":
        """Carga una clave pública PEM 'PUBLIC KEY' (SubjectPublicKeyInfo) desde un flujo."""
        return cls._load_public(_read_stream(stream), pem.CERTIFICATE_PUBLIC_KEY_LABELS)

    @classmethod
    def from_certificate_public_key_file(cls, path: PathLike) -> "RSAKey":
        with open(path, "rb") as f:
            return cls.from_certificate_public_key(f)

    @classmethod
    def from_certificate_public_key_buffer(cls, buf: Buffer,
                                           buf_len: Optional[int] = None) -> "RSAKey":
        return cls._load_public(_read_buffer(buf, buf_len), pem.CERTIFICATE_PUBLIC_KEY_LABELS)

    #  Escritura

    def _encode_private_key(self, cipher: Union[str, PemCipher, None],
                            passphrase: Union[str, bytes, None],
                            callback: Optional[PassphraseCallback],
                            callback_arg: Any) -> bytes:
        if passphrase is not None and callback is not None:
            raise InvalidArgument("Usa una frase de paso o un callback, no ambos")
        record = self.raw()
        if not record.has_private:
            code = ERR_NO_PRIVATE_KEY if record.has_public else ERR_NO_PUBLIC_KEY
            raise KeyEncodingError("La clave no contiene material privado", code=code)

        with translate_errors(KeyEncodingError, "Error al serializar la clave privada"):
            der = record.private_key.private_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            )
        if cipher is None:
            return pem.encode(pem.LABEL_RSA_PRIVATE_KEY, der)

        params = keystore.get_cipher(cipher)
        if passphrase is None:
            passphrase = keystore.request_passphrase(callback, callback_arg, True, KeyEncodingError)
        elif isinstance(passphrase, str):
            passphrase = passphrase.encode("utf-8")
        if passphrase is None:
            raise KeyEncodingError("Se pidió cifrado pero no hay frase de paso", code=ERR_NO_PASSPHRASE)

        headers, body = keystore.encrypt_pem_body(der, bytes(passphrase), params)
        return pem.encode(pem.LABEL_RSA_PRIVATE_KEY, body, headers)

    def _encode_public_key(self, fmt: serialization.PublicFormat) -> bytes:
        record = self.raw()
        if not record.has_public:
            raise KeyEncodingError("La clave no contiene parámetros públicos", code=ERR_NO_PUBLIC_KEY)
        with translate_errors(KeyEncodingError, "Error al serializar la clave pública"):
            return record.public_key.public_bytes(serialization.Encoding.PEM, fmt)

    def write_private_key(self, stream: IO, cipher: Union[str, PemCipher, None] = None,
                          passphrase: Union[str, bytes, None] = None, *,
                          callback: Optional[PassphraseCallback] = None,
                          callback_arg: Any = None) -> None:
        """
        Escribe la clave privada en PEM 'RSA PRIVATE KEY'.

        Argumentos:
            stream: Flujo de destino (binario o de texto)
            cipher: Cifrador ("AES-128-CBC", "AES-192-CBC", "AES-256-CBC") o
                None para no cifrar
            passphrase: Frase de paso (si cipher no es None)
            callback: Alternativa a passphrase, se llama con is_write=True
            callback_arg: Argumento que se pasa tal cual al callback

        Raises:
            KeyEncodingError: Sin material privado o sin frase de paso
            InvalidArgument: Cifrador no soportado, o passphrase y callback a la vez
        """
        data = self._encode_private_key(cipher, passphrase, callback, callback_arg)
        _write_stream(stream, data)
        logger.info("[KEYSTORE] Clave privada escrita (%s)",
                    keystore.get_cipher(cipher).name if cipher is not None else "sin cifrar")

    def write_private_key_file(self, path: PathLike, cipher: Union[str, PemCipher, None] = None,
                               passphrase: Union[str, bytes, None] = None, *,
                               callback: Optional[PassphraseCallback] = None,
                               callback_arg: Any = None) -> None:
        data = self._encode_private_key(cipher, passphrase, callback, callback_arg)
        with open(path, "wb") as f:
            f.write(data)
        logger.info("[KEYSTORE] Clave privada guardada en %s", path)

    def write_public_key(self, stream: IO) -> None:
        _write_stream(stream, self._encode_public_key(serialization.PublicFormat.PKCS1))

    def write_public_key_file(self, path: PathLike) -> None:
        data = self._encode_public_key(serialization.PublicFormat.PKCS1)
        with open(path, "wb") as f:
            f.write(data)
        logger.info("[KEYSTORE] Clave pública guardada en %s", path)

    def write_certificate_public_key(self, stream: IO) -> None:
        _write_stream(stream, self._encode_public_key(serialization.PublicFormat.SubjectPublicKeyInfo))

    def write_certificate_public_key_file(self, path: PathLike) -> None:
        data = self._encode_public_key(serialization.PublicFormat.SubjectPublicKeyInfo)
        with open(path, "wb") as f:
            f.write(data)
        logger.info("[KEYSTORE] Clave pública (SubjectPublicKeyInfo) guardada en %s", path)

    #  Vistas y diagnóstico

    def size(self) -> int:
        """Tamaño del módulo en bytes: ceil(bits / 8)."""
        record = self.raw()
        if not record.has_public:
            raise InvalidKeyState("La clave está vacía", code=ERR_NO_PUBLIC_KEY)
        return (record.modulus_bits + 7) // 8

    def to_public_key(self) -> "RSAKey":
        """Nueva clave con solo los parámetros públicos."""
        record = self.raw()
        if not record.has_public:
            raise InvalidKeyState("La clave no contiene parámetros públicos", code=ERR_NO_PUBLIC_KEY)
        return type(self)(KeyRecord(record.public_key))

    def check(self) -> None:
        """
        Comprueba la consistencia de una clave privada.

        Reconstruye la clave desde sus números dejando que el backend haga la
        validación completa (RSA_check_key).

        Raises:
            InvalidKeyState: Si falta material privado o algún parámetro no cuadra
        """
        numbers = self.raw().private_numbers()
        if numbers is None:
            raise InvalidKeyState("check() requiere una clave privada", code=ERR_NO_PRIVATE_KEY)

        with translate_errors(InvalidKeyState, "Clave inconsistente", ERR_CHECK_FAILED):
            numbers.private_key()
        logger.debug("[RSA] Clave de %d bits consistente", numbers.public_numbers.n.bit_length())

    def to_text(self, offset: int = 0) -> str:
        """Volcado legible en hexadecimal de los parámetros presentes."""
        record = self.raw()
        bits = record.modulus_bits
        pad = " " * offset
        private = record.private_numbers()
        if private is not None:
            public = private.public_numbers
            lines = [f"{pad}Private-Key: ({bits} bit, 2 primes)"]
            fields = (
                ("modulus:", public.n),
                ("publicExponent:", public.e),
                ("privateExponent:", private.d),
                ("prime1:", private.p),
                ("prime2:", private.q),
                ("exponent1:", private.dmp1),
                ("exponent2:", private.dmq1),
                ("coefficient:", private.iqmp),
            )
        else:
            public = record.public_numbers()
            if public is None:
                raise InvalidKeyState("La clave está vacía", code=ERR_NO_PUBLIC_KEY)
            lines = [f"{pad}Public-Key: ({bits} bit)"]
            fields = (("Modulus:", public.n), ("Exponent:", public.e))
        for name, value in fields:
            lines.extend(_format_number(name, value, offset))
        return "\n".join(lines) + "\n"

    def print(self, sink: Optional[IO] = None, offset: int = 0) -> None:
        """Escribe to_text(offset) en `sink` (por defecto sys.stdout)."""
        text = self.to_text(offset)
        if sink is None:
            sink = sys.stdout
        if isinstance(sink, io.TextIOBase):
            sink.write(text)
        else:
            sink.write(text.encode("ascii"))

    #  Blinding

    def enable_blinding(self, context: Any = None) -> None:
        """
        Activa el blinding contra ataques de temporización.

        Afecta a todos los manejadores que comparten el registro.

        Solo se aplica a la transformación RSA directa de este paquete:
        private_encrypt(), private_decrypt() con Padding.NONE y las firmas
        RIPEMD-160 y MD5+SHA1. El descifrado PKCS#1 v1.5 y OAEP y las firmas
        SHA-* pasan por `cryptography`, que siempre aplica su propio
        blinding, de modo que activarlo o no aquí no les afecta.

        Argumentos:
            context: Fuente aleatoria con randrange() (por defecto
                secrets.SystemRandom())
        """
        self.raw().enable_blinding(context)
        logger.debug("[RSA] Blinding activado")

    def disable_blinding(self) -> None:
        self.raw().disable_blinding()
        logger.debug("[RSA] Blinding desactivado")

    @property
    def blinding_enabled(self) -> bool:
        return self.raw().blinding is not None

    #  Cifrado y descifrado

    def _transform(self, operation, out, buf: Buffer, padding: Union[int, Padding],
                   encrypting: bool) -> int:
        mode = crypto.as_padding(padding)
        record = self.raw()
        if not record.has_public:
            raise CryptoOperationError("La clave está vacía", code=ERR_NO_PUBLIC_KEY)
        size = self.size()
        required = size if encrypting else crypto.max_plaintext_len(size, mode)
        view = crypto.check_output_buffer(out, required)
        result = operation(record, bytes(buf), mode, size)
        return crypto.copy_into(view, result)

    def private_encrypt(self, out, buf: Buffer, padding: Union[int, Padding]) -> int:
        """
        Cifra con la clave privada.

        Argumentos:
            out: Búfer escribible de al menos size() bytes
            buf: Datos; con PKCS1 como mucho size() - 11 bytes
            padding: Padding.PKCS1 o Padding.NONE

        Returns:
            Bytes escritos en out (size())

        Raises:
            CryptoOperationError: Si la operación falla
        """
        return self._transform(crypto.private_encrypt, out, buf, padding, True)

    def public_decrypt(self, out, buf: Buffer, padding: Union[int, Padding]) -> int:
        """
        Descifra con la clave pública lo producido por private_encrypt().

        `out` debe tener al menos size() - 11 bytes con PKCS1.
        """
        return self._transform(crypto.public_decrypt, out, buf, padding, False)

    def public_encrypt(self, out, buf: Buffer, padding: Union[int, Padding]) -> int:
        """
        Cifra con la clave pública.

        Según el padding, buf debe medir como mucho size() - 11 (PKCS1),
        size() - 41 (PKCS1_OAEP) o exactamente size() (NONE). `out` debe
        tener al menos size() bytes.
        """
        return self._transform(crypto.public_encrypt, out, buf, padding, True)

    def private_decrypt(self, out, buf: Buffer, padding: Union[int, Padding]) -> int:
        """
        Descifra con la clave privada lo producido por public_encrypt().

        El tamaño mínimo de `out` depende del padding; size() bytes siempre basta.
        """
        return self._transform(crypto.private_decrypt, out, buf, padding, False)

    #  Firma

    def sign(self, digest: Buffer, digest_type: int) -> bytes:
        """
        Firma un resumen (PKCS#1 v1.5).

        Argumentos:
            digest: Resumen ya calculado
            digest_type: NID del algoritmo de resumen (sign.NID_sha1, ...)

        Returns:
            Firma de size() bytes
        """
        result = bytearray(self.size())
        written = self.sign_into(result, digest, digest_type)
        return bytes(result[:written])

    def sign_into(self, out, digest: Buffer, digest_type: int) -> int:
        """Firma un resumen en `out` (al menos size() bytes); devuelve los bytes escritos."""
        record = self.raw()
        if not record.has_public:
            raise SigningError("La clave está vacía", code=ERR_NO_PUBLIC_KEY)
        size = self.size()
        try:
            view = crypto.check_output_buffer(out, size)
        except CryptoOperationError as e:
            raise SigningError(str(e), code=e.code, cause=e) from e
        signature = sign_digest(record, bytes(digest), digest_type, size)
        return crypto.copy_into(view, signature)

    def verify(self, signature: Buffer, digest: Buffer, digest_type: int) -> None:
        """
        Verifica la firma de un resumen.

        Raises:
            VerificationError: Si la firma no es válida (mal formada o no coincide)
        """
        record = self.raw()
        if not record.has_public:
            raise VerificationError("La clave está vacía", code=ERR_NO_PUBLIC_KEY)
        verify_digest(record, bytes(signature), bytes(digest), digest_type, self.size())
