from abc import ABC, abstractmethod

from eth_typing import ChecksumAddress

from kms_ethereum_signer.types.ethereum_types import Signature, Transaction


class BaseAccount(ABC):
    """Base class for remotely custodied Ethereum accounts."""

    @property
    @abstractmethod
    def address(self) -> ChecksumAddress:
        """Get the Ethereum address associated with this account."""
        pass

    @abstractmethod
    def sign_transaction(self, transaction: Transaction) -> bytes:
        """Sign a transaction and return its signed encoding."""
        pass

    @abstractmethod
    def sign_message(self, message: bytes | str) -> Signature:
        """Sign an EIP-191 personal message."""
        pass

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(address={self.address})"
