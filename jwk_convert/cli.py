#!/usr/bin/env python3
"""Command-line interface for converting PEM/DER keys to JWK.

Reads one or more keys from files or stdin and writes the JWK (or a JWK Set
when several keys are given) as JSON to stdout or a file.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import NoReturn

from .decoder import decode
from .errors import DecodeError
from .jwk import JWK, default_algorithm, thumbprint, to_jwk, to_jwks
from .keys import EncodingHint, PrivateKey

logger = logging.getLogger(__name__)

_PRIVATE_MEMBERS = ("d", "p", "q", "dp", "dq", "qi")


def _write_output(content: str, output_file: Path | None, secure: bool = False) -> None:
    """Write content to file or stdout.

    Args:
        content: The content to write
        output_file: The file path to write to, or None for stdout
        secure: If True, set restrictive permissions (600) because the JWK
            carries private key material; otherwise 644
    """
    if output_file and secure:
        # Create with 600 so private members are never readable by others.
        fd = os.open(output_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content + "\n")
        os.chmod(output_file, 0o600)
        print(f"Output written to: {output_file}", file=sys.stderr)
    elif output_file:
        output_file.write_text(content + "\n", encoding="utf-8")
        os.chmod(output_file, 0o644)
        print(f"Output written to: {output_file}", file=sys.stderr)
    else:
        sys.stdout.write(content)
        sys.stdout.write("\n")


def _read_input(key_file: str) -> bytes:
    """Read key bytes from a file, or from stdin for ``-``."""
    if key_file == "-":
        return sys.stdin.buffer.read()
    return Path(key_file).read_bytes()


def _error_exit(message: str, code: int = 1) -> NoReturn:
    """Print error message and exit."""
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(code)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jwk-convert",
        description="Convert PEM or DER encoded RSA, EC and OKP keys to JWK",
        epilog="""
Examples:
  # Convert a public key
  jwk-convert public.pem

  # Read a DER key from stdin and add a signing algorithm
  cat public.der | jwk-convert --format DER --alg ES256 --use sig

  # Publish only the public half of a private key, with a thumbprint kid
  jwk-convert private.pem --public --thumbprint-kid --alg auto

  # Build a JWK Set from several keys
  jwk-convert rsa.pem ec.pem --output jwks.json
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "keys",
        nargs="*",
        default=["-"],
        metavar="KEY",
        help="Key file(s) to convert (use stdin if not specified or '-')",
    )

    parser.add_argument(
        "--format",
        "-f",
        choices=[hint.value for hint in EncodingHint],
        help="Input encoding (detected from the input if not specified)",
    )

    parser.add_argument(
        "--public",
        action="store_true",
        help="Omit private key members, emitting only the public JWK",
    )

    parser.add_argument(
        "--alg",
        "-a",
        help="Value for the 'alg' member, or 'auto' to derive it from the key",
    )

    parser.add_argument(
        "--use",
        "-u",
        choices=["sig", "enc"],
        help="Value for the 'use' member",
    )

    kid_group = parser.add_mutually_exclusive_group()
    kid_group.add_argument("--kid", "-k", help="Value for the 'kid' member")
    kid_group.add_argument(
        "--thumbprint-kid",
        action="store_true",
        help="Use the RFC 7638 SHA-256 thumbprint as 'kid'",
    )

    parser.add_argument(
        "--jwks",
        action="store_true",
        help="Wrap the output in a JWK Set even for a single key",
    )

    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Output file for the JSON (use stdout if not specified)",
    )

    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation, 0 for compact output (default: 2)",
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log decoding details to stderr"
    )

    return parser


def _convert_one(key_file: str, args: argparse.Namespace) -> JWK:
    try:
        data = _read_input(key_file)
    except OSError as e:
        _error_exit(f"Failed to read input: {e}")

    hint = EncodingHint(args.format) if args.format else None
    try:
        key = decode(data, hint)
    except DecodeError as e:
        source = "stdin" if key_file == "-" else key_file
        _error_exit(f"{source}: {e}", e.exit_code)

    alg = default_algorithm(key) if args.alg == "auto" else args.alg
    kid = thumbprint(key) if args.thumbprint_kid else args.kid
    if isinstance(key, PrivateKey) and not args.public:
        logger.debug("%s is a private key, private members are included", key_file)
    return to_jwk(
        key, include_private=not args.public, alg=alg, use=args.use, kid=kid
    )


def convert() -> None:
    """Convert keys to JWK using command-line arguments."""
    args = _build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.indent < 0:
        _error_exit("--indent must not be negative", 2)
    if args.keys.count("-") > 1:
        _error_exit("stdin ('-') can only be read once", 2)

    jwks = [_convert_one(key_file, args) for key_file in args.keys]
    has_private = any(
        member in jwk for jwk in jwks for member in _PRIVATE_MEMBERS
    )

    document: object = to_jwks(jwks) if args.jwks or len(jwks) > 1 else jwks[0]
    content = json.dumps(document, indent=args.indent or None)

    try:
        _write_output(content, args.output, secure=has_private)
    except OSError as e:
        _error_exit(f"Failed to write output: {e}")


if __name__ == "__main__":
    convert()
