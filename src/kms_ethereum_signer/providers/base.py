from abc import ABC, abstractmethod


class SigningProvider(ABC):
    """
    Remote custodial signing service.

    Implementations never expose private key material; they only sign
    digests and report the public key of a key handle.
    """

    @abstractmethod
    def sign_digest(self, key_handle: str, digest: bytes) -> bytes:
        """Sign a 32-byte digest as-is and return a DER-encoded ECDSA signature."""
        pass

    @abstractmethod
    def get_public_key(self, key_handle: str) -> bytes:
        """Return the uncompressed public key (``0x04 || X || Y``) of the key handle."""
        pass
