from kms_ethereum_signer.types.ethereum_types import AccessListEntry, Signature, Transaction

__all__ = ["AccessListEntry", "Signature", "Transaction"]
