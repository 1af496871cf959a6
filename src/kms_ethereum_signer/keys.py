"""Public key resolution and the per-signer key identity cell."""

import logging
import threading
from collections.abc import Callable

from eth_typing import ChecksumAddress

from kms_ethereum_signer.address import PUBLIC_KEY_LENGTH, derive_address
from kms_ethereum_signer.exceptions import InvalidPublicKeyFormatError, KeyIdentityMismatchError

logger = logging.getLogger(__name__)

UNCOMPRESSED_KEY_PREFIX: bytes = b"\x04"
UNCOMPRESSED_KEY_LENGTH: int = len(UNCOMPRESSED_KEY_PREFIX) + PUBLIC_KEY_LENGTH


def parse_uncompressed_public_key(raw_key: bytes) -> bytes:
    """
    Validate an uncompressed public key and strip its format tag.

    Args:
        raw_key: ``0x04 || X || Y`` as returned by the key-info service.

    Returns:
        bytes: The 64-byte ``X || Y`` body.

    Raises:
        InvalidPublicKeyFormatError: On any other tag or length.
    """
    if not isinstance(raw_key, bytes | bytearray):
        msg = f"Public key must be bytes, got {type(raw_key).__name__}"
        raise InvalidPublicKeyFormatError(msg)
    if len(raw_key) != UNCOMPRESSED_KEY_LENGTH:
        msg = f"Uncompressed public key must be {UNCOMPRESSED_KEY_LENGTH} bytes, got {len(raw_key)}"
        raise InvalidPublicKeyFormatError(msg)
    if raw_key[:1] != UNCOMPRESSED_KEY_PREFIX:
        msg = f"Uncompressed public key must start with 0x04, got 0x{raw_key[:1].hex()}"
        raise InvalidPublicKeyFormatError(msg)
    return bytes(raw_key[1:])


class KeyIdentity:
    """
    Lazily resolved public key and address of one remote key.

    The loader runs at most once for concurrent first readers. A later
    ``refresh`` must reproduce the same address or the cell refuses it.
    """

    def __init__(self, loader: Callable[[], bytes]):
        self._loader = loader
        self._lock = threading.Lock()
        self._resolved: tuple[bytes, ChecksumAddress] | None = None

    @property
    def is_resolved(self) -> bool:
        return self._resolved is not None

    def resolve(self) -> tuple[bytes, ChecksumAddress]:
        """Return ``(public_key, address)``, loading them on first use."""
        resolved = self._resolved
        if resolved is None:
            with self._lock:
                resolved = self._resolved
                if resolved is None:
                    resolved = self._store(self._loader())
        return resolved

    def refresh(self) -> tuple[bytes, ChecksumAddress]:
        """Resolve the key again and check it against the cached identity."""
        with self._lock:
            return self._store(self._loader())

    @property
    def public_key(self) -> bytes:
        return self.resolve()[0]

    @property
    def address(self) -> ChecksumAddress:
        return self.resolve()[1]

    def _store(self, raw_key: bytes) -> tuple[bytes, ChecksumAddress]:
        public_key = parse_uncompressed_public_key(raw_key)
        address = derive_address(public_key)
        if self._resolved is not None and self._resolved[1] != address:
            msg = f"Key resolved to {address}, previously resolved to {self._resolved[1]}"
            raise KeyIdentityMismatchError(msg)
        if self._resolved is None:
            logger.debug("Resolved signer address %s", address)
            self._resolved = (public_key, address)
        return self._resolved
