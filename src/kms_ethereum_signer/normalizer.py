"""Turn a KMS DER signature into an Ethereum ``(v, r, s)`` signature."""

import logging

import ecdsa
from ecdsa.der import UnexpectedDER
from eth_keys import KeyAPI
from eth_keys.exceptions import BadSignature
from eth_typing import ChecksumAddress, Hash32

from kms_ethereum_signer.address import addresses_match, derive_address
from kms_ethereum_signer.exceptions import InvalidDigestLengthError, MalformedSignatureError, RecoveryFailureError
from kms_ethereum_signer.types.ethereum_types import LEGACY_V_OFFSET, Signature
from kms_ethereum_signer.utils import SECP256K1_HALF_N, SECP256K1_N, int_to_bytes32

logger = logging.getLogger(__name__)

MSG_HASH_LENGTH: int = 32
RECOVERY_IDS: tuple[int, int] = (0, 1)

_keys = KeyAPI()


def validate_digest(digest: bytes) -> bytes:
    """Reject anything that is not a 32-byte digest."""
    if not isinstance(digest, bytes | bytearray) or len(digest) != MSG_HASH_LENGTH:
        size = len(digest) if isinstance(digest, bytes | bytearray) else type(digest).__name__
        msg = f"Digest must be {MSG_HASH_LENGTH} bytes, got {size}"
        raise InvalidDigestLengthError(msg)
    return bytes(digest)


def decode_der_signature(der_signature: bytes) -> tuple[int, int]:
    """
    Decode a DER ``SEQUENCE { INTEGER r, INTEGER s }``.

    Raises:
        MalformedSignatureError: If the structure does not parse, carries
            trailing data, or either scalar lies outside ``[1, N)``.
    """
    try:
        r, s = ecdsa.util.sigdecode_der(bytes(der_signature), SECP256K1_N)
    except (UnexpectedDER, TypeError) as error:
        msg = f"Invalid DER signature: {error!s}"
        raise MalformedSignatureError(msg) from error

    for name, value in (("r", r), ("s", s)):
        if not 0 < value < SECP256K1_N:
            msg = f"Signature component {name} is out of range"
            raise MalformedSignatureError(msg)
    return r, s


def canonicalize_s(s: int) -> int:
    """Map ``s`` onto the lower half of the curve order (EIP-2)."""
    if s > SECP256K1_HALF_N:
        return SECP256K1_N - s
    return s


def recover_address(msg_hash: Hash32, r: int, s: int, v: int) -> ChecksumAddress | None:
    """
    Recover the signer address for one legacy recovery value.

    Returns:
        The address, or ``None`` if no public key is recoverable with ``v``.
    """
    signature = _keys.Signature(vrs=(v - LEGACY_V_OFFSET, r, s))
    try:
        public_key = signature.recover_public_key_from_msg_hash(msg_hash)
    except BadSignature:
        return None
    return derive_address(public_key.to_bytes())


def normalize_signature(digest: Hash32, der_signature: bytes, expected_address: str) -> Signature:
    """
    Normalize a DER signature and find its recovery value.

    Args:
        digest: The exact 32-byte digest that was signed.
        der_signature: DER-encoded ECDSA signature from the signing service.
        expected_address: Address of the key that produced the signature.

    Returns:
        Signature: Low-s signature with ``v`` in ``{27, 28}``.

    Raises:
        InvalidDigestLengthError: If ``digest`` is not 32 bytes.
        MalformedSignatureError: If the DER signature cannot be decoded.
        RecoveryFailureError: If neither recovery value yields ``expected_address``.
    """
    msg_hash = validate_digest(digest)
    r, s = decode_der_signature(der_signature)
    s = canonicalize_s(s)

    for recovery_id in RECOVERY_IDS:
        v = recovery_id + LEGACY_V_OFFSET
        recovered = recover_address(msg_hash, r, s, v)
        if recovered is not None and addresses_match(recovered, expected_address):
            logger.debug("Digest %s signed by %s with v=%d", msg_hash.hex(), recovered, v)
            return Signature(v=v, r=int_to_bytes32(r), s=int_to_bytes32(s))

    msg = f"Could not recover {expected_address} from signature over digest 0x{msg_hash.hex()}"
    raise RecoveryFailureError(msg)
