from .decoder import decode
from .errors import (
    DecodeError,
    MalformedDer,
    MalformedPem,
    UnsupportedAlgorithm,
    UnsupportedCurve,
    UnsupportedPointFormat,
)
from .jwk import default_algorithm, from_cryptography_key, thumbprint, to_jwk, to_jwks
from .keys import (
    Curve,
    EcPrivate,
    EcPublic,
    EncodingHint,
    KeyVariant,
    OkpCurve,
    OkpPrivate,
    OkpPublic,
    RsaPrivate,
    RsaPublic,
)

__all__ = [
    "decode",
    "to_jwk",
    "to_jwks",
    "thumbprint",
    "default_algorithm",
    "from_cryptography_key",
    "DecodeError",
    "MalformedPem",
    "MalformedDer",
    "UnsupportedAlgorithm",
    "UnsupportedCurve",
    "UnsupportedPointFormat",
    "Curve",
    "OkpCurve",
    "EncodingHint",
    "KeyVariant",
    "RsaPublic",
    "RsaPrivate",
    "EcPublic",
    "EcPrivate",
    "OkpPublic",
    "OkpPrivate",
]
