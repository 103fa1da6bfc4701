"""Maps decoded keys to JWK (JSON Web Key) dicts.

Example::

    from jwk_convert import decode, to_jwk

    key = decode(pem_bytes)
    jwk = to_jwk(key, alg="ES256", use="sig")
    print(json.dumps(jwk))

Members are always emitted in the same order: ``kty``, the public members,
the private members, then ``alg``, ``use`` and ``kid`` when requested.
"""

import base64
import json
from typing import TypedDict

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa, x448, x25519

from .keys import (
    Curve,
    EcPrivate,
    EcPublic,
    KeyVariant,
    OkpCurve,
    OkpPrivate,
    OkpPublic,
    RsaPrivate,
    RsaPublic,
)

_DEFAULT_ALGORITHMS = {
    Curve.P256: "ES256",
    Curve.P384: "ES384",
    Curve.P521: "ES512",
    Curve.SECP256K1: "ES256K",
    OkpCurve.ED25519: "EdDSA",
    OkpCurve.ED448: "EdDSA",
}

# RFC 7638 section 3.2: required members per key type.
_THUMBPRINT_MEMBERS = {
    "EC": ("crv", "kty", "x", "y"),
    "RSA": ("e", "kty", "n"),
    "OKP": ("crv", "kty", "x"),
}


def _base64url_encode(data: bytes) -> str:
    """Encode bytes to base64url without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _base64url_uint(value: int) -> str:
    """Encode a positive integer as minimal big-endian base64url."""
    byte_length = (value.bit_length() + 7) // 8
    return _base64url_encode(value.to_bytes(byte_length, byteorder="big"))


def _rsa_to_jwk(key: RsaPublic | RsaPrivate, include_private: bool) -> "RSAPublicJWK | RSAPrivateJWK":
    """Build a JWK dict for an RSA key, optionally including private components."""
    public = key.public_key() if isinstance(key, RsaPrivate) else key
    jwk: RSAPublicJWK = {
        "kty": "RSA",
        "n": _base64url_uint(public.modulus),
        "e": _base64url_uint(public.exponent),
    }
    if include_private and isinstance(key, RsaPrivate):
        jwk_private: RSAPrivateJWK = {
            **jwk,
            "d": _base64url_uint(key.private_exponent),
            "p": _base64url_uint(key.prime1),
            "q": _base64url_uint(key.prime2),
            "dp": _base64url_uint(key.exponent1),
            "dq": _base64url_uint(key.exponent2),
            "qi": _base64url_uint(key.coefficient),
        }
        return jwk_private
    return jwk


def _ec_to_jwk(key: EcPublic | EcPrivate, include_private: bool) -> "ECPublicJWK | ECPrivateJWK":
    """Build a JWK dict for an EC key, optionally including the private scalar."""
    # Coordinates and scalar are already exactly curve.width bytes.
    jwk: ECPublicJWK = {
        "kty": "EC",
        "crv": key.curve.crv,
        "x": _base64url_encode(key.x),
        "y": _base64url_encode(key.y),
    }
    if include_private and isinstance(key, EcPrivate):
        jwk_private: ECPrivateJWK = {**jwk, "d": _base64url_encode(key.d)}
        return jwk_private
    return jwk


def _okp_to_jwk(key: OkpPublic | OkpPrivate, include_private: bool) -> "OKPPublicJWK | OKPPrivateJWK":
    """Build a JWK dict for an OKP key, optionally including the private key."""
    jwk: OKPPublicJWK = {
        "kty": "OKP",
        "crv": key.curve.crv,
        "x": _base64url_encode(key.x),
    }
    if include_private and isinstance(key, OkpPrivate):
        jwk_private: OKPPrivateJWK = {**jwk, "d": _base64url_encode(key.d)}
        return jwk_private
    return jwk


def to_jwk(
    key: KeyVariant,
    *,
    include_private: bool = True,
    alg: str | None = None,
    use: str | None = None,
    kid: str | None = None,
) -> "JWK":
    """Convert a decoded key to a JWK dict.

    Args:
        key: A key returned by ``decode`` or ``from_cryptography_key``.
        include_private: Emit the private members of private keys. When
            ``False`` a private key yields its public JWK.
        alg: Optional ``alg`` member, e.g. ``"ES256"``.
        use: Optional ``use`` member, ``"sig"`` or ``"enc"``.
        kid: Optional ``kid`` member, see ``thumbprint`` for a derived one.
    """
    jwk: JWK
    if isinstance(key, (RsaPublic, RsaPrivate)):
        jwk = _rsa_to_jwk(key, include_private)
    elif isinstance(key, (EcPublic, EcPrivate)):
        jwk = _ec_to_jwk(key, include_private)
    elif isinstance(key, (OkpPublic, OkpPrivate)):
        jwk = _okp_to_jwk(key, include_private)
    else:
        raise TypeError(f"Unsupported key type: {type(key).__name__}")

    if alg is not None:
        jwk["alg"] = alg
    if use is not None:
        jwk["use"] = use
    if kid is not None:
        jwk["kid"] = kid
    return jwk


def to_jwks(jwks: "list[JWK]") -> "JWKSet":
    """Wrap JWKs in a JWK Set (RFC 7517 section 5)."""
    return {"keys": list(jwks)}


def thumbprint(key: KeyVariant) -> str:
    """Compute the RFC 7638 SHA-256 JWK thumbprint of a key, base64url encoded.

    Only the required public members take part, so a private key and its
    public key share a thumbprint.
    """
    jwk = to_jwk(key, include_private=False)
    members = {name: jwk[name] for name in _THUMBPRINT_MEMBERS[jwk["kty"]]}
    canonical = json.dumps(members, separators=(",", ":"), sort_keys=True)
    digest = hashes.Hash(hashes.SHA256())
    digest.update(canonical.encode("utf-8"))
    return _base64url_encode(digest.finalize())


def default_algorithm(key: KeyVariant) -> str | None:
    """Suggest a JWS ``alg`` for a key, or ``None`` for key agreement keys."""
    if isinstance(key, (RsaPublic, RsaPrivate)):
        return "RS256"
    return _DEFAULT_ALGORITHMS.get(key.curve)


def from_cryptography_key(key: object) -> KeyVariant:
    """Convert a ``cryptography`` key object to the matching key variant."""
    if isinstance(key, rsa.RSAPrivateKey):
        pn = key.private_numbers()
        return RsaPrivate(
            modulus=pn.public_numbers.n,
            public_exponent=pn.public_numbers.e,
            private_exponent=pn.d,
            prime1=pn.p,
            prime2=pn.q,
            exponent1=pn.dmp1,
            exponent2=pn.dmq1,
            coefficient=pn.iqmp,
        )
    if isinstance(key, rsa.RSAPublicKey):
        numbers = key.public_numbers()
        return RsaPublic(modulus=numbers.n, exponent=numbers.e)

    if isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
        curve = Curve.from_name(key.curve.name)
        if curve is None:
            raise ValueError(f"Unsupported curve: {key.curve.name}")
        public = key.public_key() if isinstance(key, ec.EllipticCurvePrivateKey) else key
        numbers = public.public_numbers()
        x = numbers.x.to_bytes(curve.width, byteorder="big")
        y = numbers.y.to_bytes(curve.width, byteorder="big")
        if isinstance(key, ec.EllipticCurvePrivateKey):
            d = key.private_numbers().private_value.to_bytes(curve.width, byteorder="big")
            return EcPrivate(curve=curve, x=x, y=y, d=d)
        return EcPublic(curve=curve, x=x, y=y)

    for okp, private_type, public_type in _OKP_TYPES:
        if isinstance(key, private_type):
            raw_private = key.private_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PrivateFormat.Raw,
                encryption_algorithm=serialization.NoEncryption(),
            )
            return OkpPrivate(curve=okp, x=_raw_public(key.public_key()), d=raw_private)
        if isinstance(key, public_type):
            return OkpPublic(curve=okp, x=_raw_public(key))

    raise TypeError(f"Unsupported key type: {type(key).__name__}")


def _raw_public(key) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


_OKP_TYPES = (
    (OkpCurve.ED25519, ed25519.Ed25519PrivateKey, ed25519.Ed25519PublicKey),
    (OkpCurve.ED448, ed448.Ed448PrivateKey, ed448.Ed448PublicKey),
    (OkpCurve.X25519, x25519.X25519PrivateKey, x25519.X25519PublicKey),
    (OkpCurve.X448, x448.X448PrivateKey, x448.X448PublicKey),
)


class _Metadata(TypedDict, total=False):
    """Optional members appended after the key material."""

    alg: str
    use: str
    kid: str


class RSAPublicJWK(_Metadata):
    """JWK dict for an RSA public key, with required fields."""

    kty: str
    n: str
    e: str


class RSAPrivateJWK(RSAPublicJWK, total=False):
    """JWK dict for an RSA private key, including the private components."""

    d: str
    p: str
    q: str
    dp: str
    dq: str
    qi: str


class ECPublicJWK(_Metadata):
    """JWK dict for an EC public key, with required fields."""

    kty: str
    crv: str
    x: str
    y: str


class ECPrivateJWK(ECPublicJWK, total=False):
    """JWK dict for an EC private key, including the private scalar."""

    d: str


class OKPPublicJWK(_Metadata):
    """JWK dict for an OKP public key, with required fields."""

    kty: str
    crv: str
    x: str


class OKPPrivateJWK(OKPPublicJWK, total=False):
    """JWK dict for an OKP private key, including the private key."""

    d: str


JWK = RSAPublicJWK | RSAPrivateJWK | ECPublicJWK | ECPrivateJWK | OKPPublicJWK | OKPPrivateJWK


class JWKSet(TypedDict):
    keys: list[JWK]
