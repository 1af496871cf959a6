from kms_ethereum_signer.accounts.kms_account import KMSAccount
from kms_ethereum_signer.address import derive_address
from kms_ethereum_signer.broadcast import Web3Broadcaster
from kms_ethereum_signer.config import BaseConfig
from kms_ethereum_signer.exceptions import (
    ConfigurationError,
    InvalidDigestLengthError,
    InvalidPublicKeyFormatError,
    KeyIdentityMismatchError,
    KMSSignerError,
    MalformedSignatureError,
    RecoveryFailureError,
    SignatureError,
)
from kms_ethereum_signer.normalizer import normalize_signature
from kms_ethereum_signer.providers import GoogleCloudKMSProvider, SigningProvider
from kms_ethereum_signer.types.ethereum_types import Signature, Transaction

__all__ = [
    "BaseConfig",
    "ConfigurationError",
    "GoogleCloudKMSProvider",
    "InvalidDigestLengthError",
    "InvalidPublicKeyFormatError",
    "KMSAccount",
    "KMSSignerError",
    "KeyIdentityMismatchError",
    "MalformedSignatureError",
    "RecoveryFailureError",
    "Signature",
    "SignatureError",
    "SigningProvider",
    "Transaction",
    "Web3Broadcaster",
    "derive_address",
    "normalize_signature",
]
