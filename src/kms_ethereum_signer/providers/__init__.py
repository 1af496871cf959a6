from kms_ethereum_signer.providers.base import SigningProvider
from kms_ethereum_signer.providers.google import GoogleCloudKMSProvider

__all__ = ["GoogleCloudKMSProvider", "SigningProvider"]
