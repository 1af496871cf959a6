class KMSSignerError(Exception):
    """Base exception for KMS signer operations."""

    pass


class ConfigurationError(KMSSignerError):
    """Invalid or incomplete signer configuration."""

    pass


class InvalidPublicKeyFormatError(KMSSignerError):
    """Public key is not a 64-byte point or an uncompressed 0x04-tagged key."""

    pass


class KeyIdentityMismatchError(KMSSignerError):
    """A key handle resolved to a different address than the one cached."""

    pass


class InvalidDigestLengthError(KMSSignerError):
    """Digest handed to the signer is not exactly 32 bytes."""

    pass


class SignatureError(KMSSignerError):
    """Error during signature operations."""

    pass


class MalformedSignatureError(SignatureError):
    """DER signature could not be decoded."""

    pass


class RecoveryFailureError(SignatureError):
    """Neither recovery id reconstructs the expected address."""

    pass
