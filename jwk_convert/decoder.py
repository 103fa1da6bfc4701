"""Decodes PEM or DER encoded asymmetric keys into typed key variants.

Example::

    from jwk_convert import decode

    key = decode(Path("public.pem").read_bytes())

The decoder never touches the filesystem or network; it works only on the
bytes it is given. Every failure raises a subclass of ``DecodeError``.
"""

import base64
import binascii
import logging
import re
from typing import Any, Callable, NamedTuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, x448, x25519
from pyasn1.codec.der import decoder as der_decoder
from pyasn1.codec.der import encoder as der_encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import univ

from . import asn1
from .errors import (
    MalformedDer,
    MalformedPem,
    UnsupportedAlgorithm,
    UnsupportedCurve,
    UnsupportedPointFormat,
)
from .keys import (
    Curve,
    EcPrivate,
    EcPublic,
    EncodingHint,
    KeyVariant,
    OkpCurve,
    OkpPrivate,
    OkpPublic,
    PrivateKey,
    PublicKey,
    RsaPrivate,
    RsaPublic,
)

logger = logging.getLogger(__name__)

_PEM_BEGIN = re.compile(rb"-----BEGIN ([^\r\n-]*)-----")
_PEM_END = re.compile(rb"-----END ([^\r\n-]*)-----")

# Blocks that can precede a key in the same PEM file (``openssl ecparam -genkey``).
_SKIPPED_LABELS = frozenset({"EC PARAMETERS"})

_KEY_ALGORITHMS = frozenset({asn1.RSA_ENCRYPTION, asn1.EC_PUBLIC_KEY})

_OKP_PRIVATE_LOADERS: dict[OkpCurve, Callable[[bytes], Any]] = {
    OkpCurve.ED25519: ed25519.Ed25519PrivateKey.from_private_bytes,
    OkpCurve.ED448: ed448.Ed448PrivateKey.from_private_bytes,
    OkpCurve.X25519: x25519.X25519PrivateKey.from_private_bytes,
    OkpCurve.X448: x448.X448PrivateKey.from_private_bytes,
}


class RawKeyBytes(NamedTuple):
    """DER bytes together with the envelope they were found in."""

    data: bytes
    encoding: EncodingHint
    label: str | None


def decode(data: bytes | str, hint: EncodingHint | None = None) -> KeyVariant:
    """Decode a PEM or DER encoded key.

    Args:
        data: The encoded key. ``str`` input is UTF-8 encoded first and then
            detected like ``bytes``.
        hint: Force PEM or DER handling. When omitted, input containing a
            ``-----BEGIN`` marker is treated as PEM and anything else as DER.

    Returns:
        The public or private key variant matching the key's algorithm.

    Raises:
        MalformedPem: The PEM envelope is invalid.
        MalformedDer: The DER bytes do not form a supported key structure.
        UnsupportedAlgorithm: The key algorithm is not RSA, EC or OKP.
        UnsupportedCurve: The EC curve is missing or unsupported.
        UnsupportedPointFormat: The EC point is not uncompressed.
    """
    raw = _unwrap(data, hint)
    logger.debug(
        "Decoding %d DER bytes from %s input (label %r)",
        len(raw.data),
        raw.encoding.value,
        raw.label,
    )
    key = _parse(raw)
    logger.debug("Decoded %s", type(key).__name__)
    return key


def _unwrap(data: bytes | str, hint: EncodingHint | None) -> RawKeyBytes:
    if isinstance(data, str):
        data = data.encode("utf-8")

    if hint is EncodingHint.DER:
        return RawKeyBytes(data, EncodingHint.DER, None)
    if hint is None and _PEM_BEGIN.search(data) is None:
        return RawKeyBytes(data, EncodingHint.DER, None)
    return _read_pem(data)


def _read_pem(data: bytes) -> RawKeyBytes:
    """Return the first key block of a PEM document."""
    position = 0
    while True:
        begin = _PEM_BEGIN.search(data, position)
        if begin is None:
            if position:
                raise MalformedPem("PEM input contains no key block")
            raise MalformedPem("No PEM BEGIN marker found")

        label = begin.group(1).decode("latin-1")
        end = _PEM_END.search(data, begin.end())
        if end is None:
            raise MalformedPem(f"Missing END marker for PEM block {label!r}")
        end_label = end.group(1).decode("latin-1")
        if end_label != label:
            raise MalformedPem(
                f"PEM END label {end_label!r} does not match BEGIN label {label!r}"
            )

        if label not in _SKIPPED_LABELS:
            body = _pem_body(data[begin.end() : end.start()], label)
            return RawKeyBytes(body, EncodingHint.PEM, label)

        logger.debug("Skipping PEM block %r", label)
        position = end.end()


def _pem_body(body: bytes, label: str) -> bytes:
    # RFC 1421 headers only appear on legacy encrypted keys.
    if b":" in body:
        raise MalformedPem(
            f"PEM block {label!r} carries headers (encrypted keys are not supported)"
        )

    compact = b"".join(body.split())
    if not compact:
        raise MalformedPem(f"PEM block {label!r} is empty")
    try:
        return base64.b64decode(compact, validate=True)
    except binascii.Error as e:
        raise MalformedPem(f"PEM block {label!r} is not valid base64: {e}") from e


def _der_decode(der: bytes, spec: Any) -> Any:
    """Decode exactly one DER value against ``spec``, rejecting trailing bytes."""
    name = spec.__class__.__name__
    if not der:
        raise MalformedDer(f"Empty input where {name} was expected")
    try:
        value, rest = der_decoder.decode(der, asn1Spec=spec)
    except PyAsn1Error as e:
        raise MalformedDer(f"Invalid {name} structure: {e}") from e
    if rest:
        raise MalformedDer(f"{len(rest)} trailing bytes after {name}")
    # BER leniencies (e.g. padded INTEGERs) do not survive a DER round trip.
    if der_encoder.encode(value) != der:
        raise MalformedDer(f"{name} is not in canonical DER form")
    return value


def _parse(raw: RawKeyBytes) -> KeyVariant:
    if raw.label is not None:
        for label, spec, handler in _STRUCTURES:
            if label == raw.label:
                return handler(_der_decode(raw.data, spec()))
        logger.debug("Unknown PEM label %r, detecting structure from DER", raw.label)

    if not raw.data:
        raise MalformedDer("Empty DER input")

    for label, spec, handler in _STRUCTURES:
        try:
            value = _der_decode(raw.data, spec())
        except MalformedDer:
            continue
        logger.debug("DER input has the shape of a %r structure", label)
        return handler(value)

    raise MalformedDer("DER input does not match any supported key structure")


def _algorithm(identifier: Any) -> tuple[str, bytes | None]:
    """Split an AlgorithmIdentifier into its dotted OID and raw parameters."""
    oid = str(identifier["algorithm"])
    parameters = identifier["parameters"]
    return oid, bytes(parameters) if parameters.isValue else None


def _bit_string_octets(bit_string: Any) -> bytes:
    if len(bit_string) % 8:
        raise MalformedDer("Key BIT STRING has unused bits")
    return bit_string.asOctets()


def _positive(value: Any, field: str) -> int:
    number = int(value[field])
    if number <= 0:
        raise MalformedDer(f"RSA {field} must be a positive integer")
    return number


def _fixed_width(value: bytes, width: int, field: str) -> bytes:
    """Left-pad ``value`` with zero bytes to exactly ``width`` bytes."""
    significant = value.lstrip(b"\x00")
    if len(significant) > width:
        raise MalformedDer(f"{field} is longer than {width} bytes")
    return significant.rjust(width, b"\x00")


def _named_curve(parameters: bytes | None) -> Curve:
    if parameters is None:
        raise UnsupportedCurve(None)
    try:
        oid, rest = der_decoder.decode(parameters, asn1Spec=univ.ObjectIdentifier())
    except PyAsn1Error as e:
        raise UnsupportedCurve(
            None, "EC parameters are not a named curve identifier"
        ) from e
    if rest:
        raise MalformedDer("Trailing bytes after named curve identifier")

    curve = Curve.from_oid(str(oid))
    if curve is None:
        raise UnsupportedCurve(str(oid))
    return curve


def _ec_point(curve: Curve, point: bytes) -> tuple[bytes, bytes]:
    """Split an uncompressed SEC1 point into its fixed-width coordinates."""
    if not point:
        raise MalformedDer(f"Empty {curve.crv} point")
    if point[0] != 0x04:
        raise UnsupportedPointFormat(point[0])
    width = curve.width
    if len(point) != 1 + 2 * width:
        raise MalformedDer(
            f"Uncompressed {curve.crv} point must be {1 + 2 * width} bytes, got {len(point)}"
        )
    return point[1 : 1 + width], point[1 + width :]


def _derive_ec_point(curve: Curve, d: bytes) -> tuple[bytes, bytes]:
    try:
        private_key = ec.derive_private_key(
            int.from_bytes(d, byteorder="big"), curve.curve_class()
        )
    except ValueError as e:
        raise MalformedDer(f"Invalid {curve.crv} private scalar: {e}") from e
    numbers = private_key.public_key().public_numbers()
    return (
        numbers.x.to_bytes(curve.width, byteorder="big"),
        numbers.y.to_bytes(curve.width, byteorder="big"),
    )


def _derive_okp_public(curve: OkpCurve, d: bytes) -> bytes:
    private_key = _OKP_PRIVATE_LOADERS[curve](d)
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def _rsa_public_key(key: Any) -> RsaPublic:
    return RsaPublic(
        modulus=_positive(key, "modulus"),
        exponent=_positive(key, "publicExponent"),
    )


def _rsa_private_key(key: Any) -> RsaPrivate:
    version = int(key["version"])
    if version != 0 or key["otherPrimeInfos"].isValue:
        raise MalformedDer(f"Unsupported RSAPrivateKey version {version} (multi-prime)")
    return RsaPrivate(
        modulus=_positive(key, "modulus"),
        public_exponent=_positive(key, "publicExponent"),
        private_exponent=_positive(key, "privateExponent"),
        prime1=_positive(key, "prime1"),
        prime2=_positive(key, "prime2"),
        exponent1=_positive(key, "exponent1"),
        exponent2=_positive(key, "exponent2"),
        coefficient=_positive(key, "coefficient"),
    )


def _ec_private_key(key: Any, curve: Curve | None = None) -> EcPrivate:
    """Build an EC private key from a SEC1 ECPrivateKey.

    ``curve`` is the curve named by an enclosing PKCS#8 header, if any.
    """
    if int(key["version"]) != 1:
        raise MalformedDer(f"Unsupported ECPrivateKey version {int(key['version'])}")

    parameters = key["parameters"]
    if parameters.isValue:
        inner = _named_curve(bytes(parameters))
        if curve is not None and inner is not curve:
            raise MalformedDer(
                f"ECPrivateKey curve {inner.crv} does not match algorithm curve {curve.crv}"
            )
        curve = inner
    if curve is None:
        raise UnsupportedCurve(None)

    d = _fixed_width(bytes(key["privateKey"]), curve.width, "EC private key")
    if not any(d):
        raise MalformedDer("EC private key is zero")

    public_key = key["publicKey"]
    if public_key.isValue:
        x, y = _ec_point(curve, _bit_string_octets(public_key))
    else:
        logger.debug("ECPrivateKey has no public point, deriving it from the scalar")
        x, y = _derive_ec_point(curve, d)
    return EcPrivate(curve=curve, x=x, y=y, d=d)


def _from_spki(spki: Any) -> PublicKey:
    oid, parameters = _algorithm(spki["algorithm"])
    public_key = _bit_string_octets(spki["subjectPublicKey"])

    if oid == asn1.RSA_ENCRYPTION:
        return _rsa_public_key(_der_decode(public_key, asn1.RSAPublicKey()))

    if oid == asn1.EC_PUBLIC_KEY:
        curve = _named_curve(parameters)
        x, y = _ec_point(curve, public_key)
        return EcPublic(curve=curve, x=x, y=y)

    okp = OkpCurve.from_oid(oid)
    if okp is not None:
        if len(public_key) != okp.width:
            raise MalformedDer(f"{okp.crv} public key must be {okp.width} bytes")
        return OkpPublic(curve=okp, x=public_key)

    raise UnsupportedAlgorithm(oid)


def _from_pkcs8(info: Any) -> PrivateKey:
    version = int(info["version"])
    if version not in (0, 1):
        raise MalformedDer(f"Unsupported PKCS#8 version {version}")

    oid, parameters = _algorithm(info["privateKeyAlgorithm"])
    private_key = bytes(info["privateKey"])

    if oid == asn1.RSA_ENCRYPTION:
        return _rsa_private_key(_der_decode(private_key, asn1.RSAPrivateKey()))

    if oid == asn1.EC_PUBLIC_KEY:
        # The inner ECPrivateKey may name the curve instead.
        curve = _named_curve(parameters) if parameters is not None else None
        return _ec_private_key(_der_decode(private_key, asn1.ECPrivateKey()), curve)

    okp = OkpCurve.from_oid(oid)
    if okp is not None:
        d = bytes(_der_decode(private_key, univ.OctetString()))
        if len(d) != okp.width:
            raise MalformedDer(f"{okp.crv} private key must be {okp.width} bytes")
        public_key = info["publicKey"]
        if public_key.isValue:
            x = _bit_string_octets(public_key)
            if len(x) != okp.width:
                raise MalformedDer(f"{okp.crv} public key must be {okp.width} bytes")
        else:
            x = _derive_okp_public(okp, d)
        return OkpPrivate(curve=okp, x=x, d=d)

    raise UnsupportedAlgorithm(oid)


def _from_encrypted_pkcs8(info: Any) -> KeyVariant:
    oid = str(info["encryptionAlgorithm"]["algorithm"])
    if oid in _KEY_ALGORITHMS or OkpCurve.from_oid(oid) is not None:
        raise MalformedDer(
            f"Key algorithm {oid} where an encryption scheme was expected"
        )
    raise UnsupportedAlgorithm(
        oid, f"Encrypted private keys are not supported (encryption scheme {oid})"
    )


_STRUCTURES: list[tuple[str, Callable[[], Any], Callable[[Any], KeyVariant]]] = [
    ("PUBLIC KEY", asn1.SubjectPublicKeyInfo, _from_spki),
    ("PRIVATE KEY", asn1.OneAsymmetricKey, _from_pkcs8),
    ("RSA PUBLIC KEY", asn1.RSAPublicKey, _rsa_public_key),
    ("RSA PRIVATE KEY", asn1.RSAPrivateKey, _rsa_private_key),
    ("EC PRIVATE KEY", asn1.ECPrivateKey, _ec_private_key),
    ("ENCRYPTED PRIVATE KEY", asn1.EncryptedPrivateKeyInfo, _from_encrypted_pkcs8),
]
