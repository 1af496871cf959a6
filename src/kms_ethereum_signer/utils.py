"""Cryptographic utilities."""

import ecdsa
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from kms_ethereum_signer.exceptions import InvalidPublicKeyFormatError

# secp256k1 curve order
SECP256K1_N: int = ecdsa.SECP256k1.order
SECP256K1_HALF_N: int = SECP256K1_N // 2

PEM_HEADER = "-----BEGIN PUBLIC KEY-----"
PEM_FOOTER = "-----END PUBLIC KEY-----"


def extract_public_key_bytes(pem_str: str) -> bytes:
    """Extract the X9.62 uncompressed point (``0x04 || X || Y``) from a PEM public key."""
    if not pem_str.strip().startswith(PEM_HEADER):
        pem_str = f"{PEM_HEADER}\n{pem_str.strip()}\n{PEM_FOOTER}"

    try:
        public_key = serialization.load_pem_public_key(pem_str.encode("utf-8"))
    except ValueError as error:
        msg = f"Could not parse PEM public key: {error!s}"
        raise InvalidPublicKeyFormatError(msg) from error

    if not isinstance(public_key, ec.EllipticCurvePublicKey) or not isinstance(public_key.curve, ec.SECP256K1):
        msg = "Public key is not a secp256k1 elliptic curve key"
        raise InvalidPublicKeyFormatError(msg)

    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )


def int_to_bytes32(value: int) -> bytes:
    """Big-endian, zero-padded 32-byte encoding of a scalar."""
    return value.to_bytes(32, "big")
