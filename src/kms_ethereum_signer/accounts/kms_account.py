import logging

from eth_account.messages import _hash_eip191_message, encode_defunct
from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from kms_ethereum_signer.address import addresses_match
from kms_ethereum_signer.base import BaseAccount
from kms_ethereum_signer.broadcast import Web3Broadcaster
from kms_ethereum_signer.config import BaseConfig
from kms_ethereum_signer.exceptions import ConfigurationError
from kms_ethereum_signer.keys import KeyIdentity
from kms_ethereum_signer.normalizer import normalize_signature, validate_digest
from kms_ethereum_signer.providers.base import SigningProvider
from kms_ethereum_signer.providers.google import GoogleCloudKMSProvider
from kms_ethereum_signer.types.ethereum_types import Signature, Transaction

logger = logging.getLogger(__name__)


class KMSAccount(BaseAccount):
    """Ethereum account whose private key lives in a remote signing service."""

    def __init__(self, provider: SigningProvider, key_handle: str):
        if not key_handle or not key_handle.strip():
            msg = "key_handle cannot be empty"
            raise ConfigurationError(msg)
        self._provider = provider
        self._key_handle = key_handle.strip()
        self._identity = KeyIdentity(self._load_public_key)

    @classmethod
    def from_config(cls, config: BaseConfig | None = None, client=None) -> "KMSAccount":
        """Create an account backed by Google Cloud KMS, reading the environment when no config is given."""
        provider = GoogleCloudKMSProvider(config or BaseConfig.from_env(), client=client)
        return cls(provider, provider.key_handle)

    @classmethod
    def load_from_kms(
        cls,
        project_id: str,
        location_id: str,
        key_ring_id: str,
        key_id: str,
        key_version: int = 1,
        service_account_path: str | None = None,
    ) -> "KMSAccount":
        """Create account from Google Cloud KMS key coordinates."""
        config = BaseConfig(
            project_id=project_id,
            location_id=location_id,
            key_ring_id=key_ring_id,
            key_id=key_id,
            key_version=key_version,
            service_account_path=service_account_path,
        )
        return cls.from_config(config)

    @property
    def key_handle(self) -> str:
        return self._key_handle

    def _load_public_key(self) -> bytes:
        return self._provider.get_public_key(self._key_handle)

    @property
    def public_key(self) -> bytes:
        """64-byte public key, fetched from the provider once."""
        return self._identity.public_key

    @property
    def address(self) -> ChecksumAddress:
        """Get Ethereum address derived from public key."""
        return self._identity.address

    def refresh_public_key(self) -> bytes:
        """
        Fetch the public key again and check it against the cached one.

        Raises:
            KeyIdentityMismatchError: If the service now reports a different key.
        """
        return self._identity.refresh()[0]

    def _sign_raw_hash(self, msghash: bytes) -> bytes:
        """Sign a message hash using the provider."""
        return self._provider.sign_digest(self._key_handle, validate_digest(msghash))

    def sign_digest(self, msghash: bytes) -> Signature:
        """
        Sign a 32-byte digest and normalize the result.

        Args:
            msghash: Digest to sign; it is signed as-is, never re-hashed.

        Returns:
            Signature: Low-s signature whose ``v`` recovers this account's address.
        """
        der_signature = self._sign_raw_hash(msghash)
        return normalize_signature(msghash, der_signature, self.address)

    def sign_message(self, message: str | bytes) -> Signature:
        """
        Sign a message with the KMS key.

        Args:
            message: Message to sign (str or bytes)

        Returns:
            Signature: The v, r, s components of the signature

        Example:
            >>> account = KMSAccount.from_config()
            >>> signature = account.sign_message("Hello Ethereum!")
        """
        # Convert message to SignableMessage format
        if isinstance(message, str):
            if message.startswith("0x"):
                signable_message = encode_defunct(hexstr=message)
            else:
                signable_message = encode_defunct(text=message)
        elif isinstance(message, bytes):
            signable_message = encode_defunct(primitive=message)
        else:
            raise TypeError(f"Unsupported message type: {type(message)}")

        return self.sign_digest(_hash_eip191_message(signable_message))

    def sign_transaction(self, transaction: Transaction) -> bytes:
        """
        Sign a transaction.

        Args:
            transaction: Transaction to sign

        Returns:
            bytes: Serialized signed transaction, ready to broadcast
        """
        if transaction.from_ and not addresses_match(transaction.from_, self.address):
            msg = f"Transaction sender {transaction.from_} is not the account address {self.address}"
            raise ConfigurationError(msg)

        msg_hash = transaction.signing_digest()
        signature = self.sign_digest(msg_hash)
        logger.debug("Signed transaction with nonce %d for %s", transaction.nonce, self.address)

        return transaction.model_copy(update={"signature": signature}).serialize_transaction()

    def send_transaction(self, transaction: Transaction, broadcaster: Web3Broadcaster) -> HexBytes:
        """Sign a transaction and hand it to ``broadcaster``; returns the transaction hash."""
        return broadcaster.send_raw_transaction(self.sign_transaction(transaction))
