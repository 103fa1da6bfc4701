"""Errors raised while decoding key material.

Every error is a ``ValueError`` so callers that only care about "bad key
input" can catch that. ``exit_code`` is the process status the CLI uses.
"""


class DecodeError(ValueError):
    """Base class for all key decoding failures."""

    exit_code = 1


class MalformedPem(DecodeError):
    """The PEM envelope is structurally invalid or its body is not base64."""

    exit_code = 3


class MalformedDer(DecodeError):
    """The DER bytes do not match any supported key structure."""

    exit_code = 4


class UnsupportedAlgorithm(DecodeError):
    """The key's algorithm OID is not a supported key family."""

    exit_code = 5

    def __init__(self, oid: str, detail: str | None = None) -> None:
        super().__init__(detail or f"Unsupported key algorithm: {oid}")
        self.oid = oid


class UnsupportedCurve(DecodeError):
    """The EC curve parameter is missing or is not a supported named curve."""

    exit_code = 6

    def __init__(self, oid: str | None, detail: str | None = None) -> None:
        if detail is None:
            detail = (
                f"Unsupported named curve: {oid}"
                if oid is not None
                else "Missing named curve parameter"
            )
        super().__init__(detail)
        self.oid = oid


class UnsupportedPointFormat(DecodeError):
    """The EC point is not in uncompressed (``0x04``) form."""

    exit_code = 7

    def __init__(self, prefix: int) -> None:
        if prefix in (0x02, 0x03):
            message = f"Compressed EC points are not supported (prefix 0x{prefix:02x})"
        else:
            message = f"Unsupported EC point format (prefix 0x{prefix:02x})"
        super().__init__(message)
        self.prefix = prefix
