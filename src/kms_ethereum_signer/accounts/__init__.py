from kms_ethereum_signer.accounts.kms_account import KMSAccount

__all__ = ["KMSAccount"]
