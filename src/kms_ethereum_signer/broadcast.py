"""Broadcasting signed transactions through a JSON-RPC node."""

import logging

from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.types import TxReceipt

from kms_ethereum_signer.config import DEFAULT_WEB3_PROVIDER_URI

logger = logging.getLogger(__name__)


class Web3Broadcaster:
    """Thin wrapper over ``web3.Web3`` for the calls a signer needs."""

    def __init__(self, provider_uri: str = DEFAULT_WEB3_PROVIDER_URI, web3: Web3 | None = None):
        self.web3 = web3 or Web3(Web3.HTTPProvider(provider_uri))

    @property
    def chain_id(self) -> int:
        return self.web3.eth.chain_id

    def get_transaction_count(self, address: ChecksumAddress) -> int:
        """Next nonce for ``address``, counting pending transactions."""
        return self.web3.eth.get_transaction_count(address, "pending")

    def send_raw_transaction(self, raw_transaction: bytes) -> HexBytes:
        tx_hash = self.web3.eth.send_raw_transaction(raw_transaction)
        logger.info("Broadcast transaction 0x%s", bytes(tx_hash).hex())
        return HexBytes(tx_hash)

    def wait_for_receipt(self, tx_hash: HexBytes, timeout: float = 120) -> TxReceipt:
        return self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
