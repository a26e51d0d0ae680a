# rsa_seguro/app.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from cryptography.hazmat.primitives import hashes

from rsa_seguro.core import keystore, sign
from rsa_seguro.core.config import DEFAULT_PEM_CIPHER
from rsa_seguro.core.errors import RSAKeyError
from rsa_seguro.core.rsa_key import RSAKey

PUBLIC_FORMATS = ("rsa", "spki")



# Utilidades

def compute_digest(data: bytes, digest_name: str) -> tuple[bytes, int]:
    """Calcula el resumen de `data`; devuelve (resumen, NID)."""
    alg = sign.digest_by_name(digest_name)
    if alg.hash_factory is None:
        raise RSAKeyError(f"El resumen '{alg.name}' no se puede calcular aquí")
    h = hashes.Hash(alg.hash_factory())
    h.update(data)
    return h.finalize(), alg.nid


def load_private(path: str) -> RSAKey:
    return RSAKey.from_private_key_file(path, keystore.prompt_passphrase,
                                        f"Frase de paso de '{path}': ")


def load_public(path: str, fmt: str) -> RSAKey:
    if fmt == "rsa":
        return RSAKey.from_public_key_file(path)
    return RSAKey.from_certificate_public_key_file(path)



# COMANDOS


def cmd_genkey(args: argparse.Namespace) -> None:
    """Genera una clave privada y la guarda en PEM."""
    print(f"[KEYGEN] Generando par RSA {args.bits} bits…")
    key = RSAKey.generate(args.bits, args.exponent)
    if args.cipher:
        key.write_private_key_file(args.out, args.cipher, callback=keystore.prompt_passphrase)
    else:
        key.write_private_key_file(args.out)
    print(f"[OK] Clave privada guardada en {args.out} ({key.size()} bytes de módulo).")


def cmd_pubout(args: argparse.Namespace) -> None:
    """Extrae la clave pública de una clave privada."""
    public = load_private(args.input).to_public_key()
    if args.format == "rsa":
        public.write_public_key_file(args.out)
    else:
        public.write_certificate_public_key_file(args.out)
    print(f"[OK] Clave pública guardada en {args.out}.")


def cmd_info(args: argparse.Namespace) -> None:
    """Muestra los parámetros de una clave."""
    key = load_public(args.input, args.pubin) if args.pubin else load_private(args.input)
    key.print(sys.stdout)


def cmd_check(args: argparse.Namespace) -> None:
    """Comprueba la consistencia de una clave privada."""
    load_private(args.input).check()
    print("[OK] ✓ Clave RSA consistente.")


def cmd_sign(args: argparse.Namespace) -> None:
    """Firma el resumen de un fichero."""
    key = load_private(args.input)
    digest, nid = compute_digest(Path(args.data).read_bytes(), args.digest)
    signature = key.sign(digest, nid)
    Path(args.out).write_bytes(signature)
    print(f"[OK] Firma de {len(signature)} bytes guardada en {args.out}.")


def cmd_verify(args: argparse.Namespace) -> None:
    """Verifica la firma de un fichero."""
    key = load_public(args.pubin, args.format)
    digest, nid = compute_digest(Path(args.data).read_bytes(), args.digest)
    key.verify(Path(args.sig).read_bytes(), digest, nid)
    print("[OK] ✓ Firma verificada correctamente.")



# PARSER CLI


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rsa-seguro",
        description="Gestión de claves RSA (generación, PEM, firma)",
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Muestra el log de la librería")

    sub = parser.add_subparsers(dest="cmd")

    genkey = sub.add_parser("genkey", help="Genera una clave privada RSA")
    genkey.add_argument("--out", required=True)
    genkey.add_argument("--bits", type=int, default=2048)
    genkey.add_argument("--exponent", type=int, default=65537)
    genkey.add_argument("--cipher", nargs="?", const=DEFAULT_PEM_CIPHER,
                        choices=sorted(keystore.CIPHERS),
                        help=f"Cifra la clave con una frase de paso (por defecto {DEFAULT_PEM_CIPHER})")
    genkey.set_defaults(func=cmd_genkey)

    pubout = sub.add_parser("pubout", help="Extrae la clave pública")
    pubout.add_argument("--in", dest="input", required=True)
    pubout.add_argument("--out", required=True)
    pubout.add_argument("--format", choices=PUBLIC_FORMATS, default="spki")
    pubout.set_defaults(func=cmd_pubout)

    info = sub.add_parser("info", help="Muestra los parámetros de una clave")
    info.add_argument("--in", dest="input", required=True)
    info.add_argument("--pubin", choices=PUBLIC_FORMATS,
                      help="La entrada es una clave pública en el formato indicado")
    info.set_defaults(func=cmd_info)

    check = sub.add_parser("check", help="Comprueba una clave privada")
    check.add_argument("--in", dest="input", required=True)
    check.set_defaults(func=cmd_check)

    sign_cmd = sub.add_parser("sign", help="Firma un fichero")
    sign_cmd.add_argument("--in", dest="input", required=True)
    sign_cmd.add_argument("--data", required=True)
    sign_cmd.add_argument("--out", required=True)
    sign_cmd.add_argument("--digest", default="sha256")
    sign_cmd.set_defaults(func=cmd_sign)

    verify = sub.add_parser("verify", help="Verifica la firma de un fichero")
    verify.add_argument("--pubin", required=True)
    verify.add_argument("--data", required=True)
    verify.add_argument("--sig", required=True)
    verify.add_argument("--digest", default="sha256")
    verify.add_argument("--format", choices=PUBLIC_FORMATS, default="spki")
    verify.set_defaults(func=cmd_verify)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    try:
        args.func(args)
    except (RSAKeyError, OSError) as e:
        print(f"[ERR] {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
