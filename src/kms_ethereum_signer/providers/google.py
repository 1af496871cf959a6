import logging

from google.cloud import kms

from kms_ethereum_signer.config import BaseConfig
from kms_ethereum_signer.exceptions import InvalidPublicKeyFormatError
from kms_ethereum_signer.providers.base import SigningProvider
from kms_ethereum_signer.utils import extract_public_key_bytes

logger = logging.getLogger(__name__)


class GoogleCloudKMSProvider(SigningProvider):
    """Google Cloud KMS implementation for ``EC_SIGN_SECP256K1_SHA256`` keys."""

    def __init__(self, config: BaseConfig, client: kms.KeyManagementServiceClient | None = None):
        self.config = config
        self.client = client or self._create_client()

    def _create_client(self) -> kms.KeyManagementServiceClient:
        """Create Google Cloud KMS client."""
        if self.config.service_account_path:
            return kms.KeyManagementServiceClient.from_service_account_json(self.config.service_account_path)
        return kms.KeyManagementServiceClient()

    @property
    def key_handle(self) -> str:
        """Full resource name of the configured key version."""
        return self.config.key_version_path

    def sign_digest(self, key_handle: str, digest: bytes) -> bytes:
        """Sign a digest using Google Cloud KMS."""
        # KMS signs the supplied bytes as a SHA-256-sized digest and does not re-hash them
        response = self.client.asymmetric_sign(request={"name": key_handle, "digest": {"sha256": digest}})
        logger.debug("KMS signed digest 0x%s with %s", digest.hex(), key_handle)
        return response.signature

    def get_public_key(self, key_handle: str) -> bytes:
        """Get the uncompressed public key from Google Cloud KMS."""
        response = self.client.get_public_key(request={"name": key_handle})
        if not response.pem:
            msg = f"No PEM data in public key response for {key_handle}"
            raise InvalidPublicKeyFormatError(msg)
        return extract_public_key_bytes(response.pem)
