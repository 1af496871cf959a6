"""Configuration settings for the application."""

import os

from pydantic import BaseModel, Field, field_validator

# Configuration Constants
ENV_PROJECT_ID = "GOOGLE_CLOUD_PROJECT"
ENV_LOCATION_ID = "GOOGLE_CLOUD_REGION"
ENV_KEY_RING_ID = "KEY_RING"
ENV_KEY_ID = "KEY_NAME"
ENV_KEY_VERSION = "KEY_VERSION"
ENV_WEB3_PROVIDER_URI = "WEB3_PROVIDER_URI"
DEFAULT_KEY_VERSION = 1
DEFAULT_WEB3_PROVIDER_URI = "http://localhost:8545"


class BaseConfig(BaseModel):
    """Application settings for a Google Cloud KMS signing key."""

    # Google Cloud settings
    project_id: str
    location_id: str
    key_ring_id: str
    key_id: str
    key_version: int = Field(DEFAULT_KEY_VERSION, ge=1)
    service_account_path: str | None = None

    # Web3 settings
    web3_provider_uri: str = DEFAULT_WEB3_PROVIDER_URI

    @field_validator("project_id", "location_id", "key_ring_id", "key_id", "web3_provider_uri")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        """Validate that fields are not empty or whitespace."""
        if not v or not v.strip():
            msg = "Field cannot be empty or whitespace"
            raise ValueError(msg)
        return v.strip()

    class Config:
        validate_assignment = True

    @property
    def key_ring_path(self) -> str:
        """Get the full key ring path."""
        return f"projects/{self.project_id}/locations/{self.location_id}/keyRings/{self.key_ring_id}"

    @property
    def key_version_path(self) -> str:
        """Get the full path to the configured key version, used as the key handle."""
        return f"{self.key_ring_path}/cryptoKeys/{self.key_id}/cryptoKeyVersions/{self.key_version}"

    def update(self, **kwargs) -> "BaseConfig":
        """Update fields in place; every assignment is validated."""
        for name, value in kwargs.items():
            setattr(self, name, value)
        return self

    @classmethod
    def from_env(cls) -> "BaseConfig":
        """
        Create configuration from environment variables.

        Returns:
            BaseConfig: Configuration instance with values from environment variables.

        Example:
            ```python
            config = BaseConfig.from_env()
            account = KMSAccount.from_config(config)
            ```
        """
        return cls(
            project_id=os.getenv(ENV_PROJECT_ID, ""),
            location_id=os.getenv(ENV_LOCATION_ID, ""),
            key_ring_id=os.getenv(ENV_KEY_RING_ID, ""),
            key_id=os.getenv(ENV_KEY_ID, ""),
            key_version=os.getenv(ENV_KEY_VERSION, DEFAULT_KEY_VERSION),
            web3_provider_uri=os.getenv(ENV_WEB3_PROVIDER_URI, DEFAULT_WEB3_PROVIDER_URI),
        )
