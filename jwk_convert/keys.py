"""Typed key material produced by the decoder and consumed by the JWK mapper.

Each supported key family is one frozen dataclass. RSA values are plain
integers (they have no fixed width); elliptic-curve and OKP values are raw
big-endian bytes of exactly the width their curve dictates.
"""

from dataclasses import dataclass
from enum import Enum

from cryptography.hazmat.primitives.asymmetric import ec


class EncodingHint(Enum):
    """Source encoding of the key bytes handed to the decoder."""

    PEM = "PEM"
    DER = "DER"


class Curve(Enum):
    """Named elliptic curves usable in an ``EC`` JWK.

    Each member carries the named-curve OID, the JWK ``crv`` string, the
    coordinate width in bytes and the matching ``cryptography`` curve class.
    """

    P256 = ("1.2.840.10045.3.1.7", "P-256", 32, ec.SECP256R1)
    P384 = ("1.3.132.0.34", "P-384", 48, ec.SECP384R1)
    P521 = ("1.3.132.0.35", "P-521", 66, ec.SECP521R1)
    SECP256K1 = ("1.3.132.0.10", "secp256k1", 32, ec.SECP256K1)

    def __init__(self, oid: str, crv: str, width: int, curve_class: type) -> None:
        self.oid = oid
        self.crv = crv
        self.width = width
        self.curve_class = curve_class

    @classmethod
    def from_oid(cls, oid: str) -> "Curve | None":
        for curve in cls:
            if curve.oid == oid:
                return curve
        return None

    @classmethod
    def from_name(cls, name: str) -> "Curve | None":
        """Look up a curve by its ``cryptography`` name (e.g. ``secp256r1``)."""
        for curve in cls:
            if curve.curve_class.name == name:
                return curve
        return None


class OkpCurve(Enum):
    """Octet key pair curves (RFC 8037), identified by their algorithm OID."""

    ED25519 = ("1.3.101.112", "Ed25519", 32)
    ED448 = ("1.3.101.113", "Ed448", 57)
    X25519 = ("1.3.101.110", "X25519", 32)
    X448 = ("1.3.101.111", "X448", 56)

    def __init__(self, oid: str, crv: str, width: int) -> None:
        self.oid = oid
        self.crv = crv
        self.width = width

    @classmethod
    def from_oid(cls, oid: str) -> "OkpCurve | None":
        for curve in cls:
            if curve.oid == oid:
                return curve
        return None


def _check_positive(**values: int) -> None:
    for name, value in values.items():
        if value <= 0:
            raise ValueError(f"{name} must be a positive integer")


def _check_width(width: int, **values: bytes) -> None:
    for name, value in values.items():
        if len(value) != width:
            raise ValueError(f"{name} must be exactly {width} bytes, got {len(value)}")


@dataclass(frozen=True)
class RsaPublic:
    modulus: int
    exponent: int

    def __post_init__(self) -> None:
        _check_positive(modulus=self.modulus, exponent=self.exponent)


@dataclass(frozen=True)
class RsaPrivate:
    """RSA private key in its PKCS#1 two-prime form (CRT values included)."""

    modulus: int
    public_exponent: int
    private_exponent: int
    prime1: int
    prime2: int
    exponent1: int
    exponent2: int
    coefficient: int

    def __post_init__(self) -> None:
        _check_positive(
            modulus=self.modulus,
            public_exponent=self.public_exponent,
            private_exponent=self.private_exponent,
            prime1=self.prime1,
            prime2=self.prime2,
            exponent1=self.exponent1,
            exponent2=self.exponent2,
            coefficient=self.coefficient,
        )

    def public_key(self) -> RsaPublic:
        return RsaPublic(modulus=self.modulus, exponent=self.public_exponent)


@dataclass(frozen=True)
class EcPublic:
    curve: Curve
    x: bytes
    y: bytes

    def __post_init__(self) -> None:
        _check_width(self.curve.width, x=self.x, y=self.y)


@dataclass(frozen=True)
class EcPrivate:
    curve: Curve
    x: bytes
    y: bytes
    d: bytes

    def __post_init__(self) -> None:
        _check_width(self.curve.width, x=self.x, y=self.y, d=self.d)

    def public_key(self) -> EcPublic:
        return EcPublic(curve=self.curve, x=self.x, y=self.y)


@dataclass(frozen=True)
class OkpPublic:
    curve: OkpCurve
    x: bytes

    def __post_init__(self) -> None:
        _check_width(self.curve.width, x=self.x)


@dataclass(frozen=True)
class OkpPrivate:
    curve: OkpCurve
    x: bytes
    d: bytes

    def __post_init__(self) -> None:
        _check_width(self.curve.width, x=self.x, d=self.d)

    def public_key(self) -> OkpPublic:
        return OkpPublic(curve=self.curve, x=self.x)


PublicKey = RsaPublic | EcPublic | OkpPublic
PrivateKey = RsaPrivate | EcPrivate | OkpPrivate
KeyVariant = PublicKey | PrivateKey
