"""Ethereum address derivation."""

from eth_typing import ChecksumAddress
from eth_utils import keccak, to_checksum_address

from kms_ethereum_signer.exceptions import InvalidPublicKeyFormatError

PUBLIC_KEY_LENGTH: int = 64
ADDRESS_LENGTH: int = 20


def derive_address(public_key: bytes) -> ChecksumAddress:
    """
    Derive the checksummed address of a raw secp256k1 public key.

    Args:
        public_key: The 64-byte ``X || Y`` point, without the ``0x04`` tag.

    Returns:
        ChecksumAddress: EIP-55 rendering of the last 20 bytes of ``keccak256(public_key)``.

    Raises:
        InvalidPublicKeyFormatError: If the key is not exactly 64 bytes.
    """
    if not isinstance(public_key, bytes | bytearray) or len(public_key) != PUBLIC_KEY_LENGTH:
        msg = f"Public key must be {PUBLIC_KEY_LENGTH} raw bytes, got {_describe(public_key)}"
        raise InvalidPublicKeyFormatError(msg)
    return to_checksum_address(keccak(bytes(public_key))[-ADDRESS_LENGTH:])


def addresses_match(left: str, right: str) -> bool:
    """Compare two hex addresses ignoring checksum casing."""
    return left.lower() == right.lower()


def _describe(value) -> str:
    if isinstance(value, bytes | bytearray):
        return f"{len(value)} bytes"
    return type(value).__name__
