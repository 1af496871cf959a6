"""Fixtures for integration tests against a real Google Cloud KMS key and a local node."""
import pytest

from kms_ethereum_signer.accounts.kms_account import KMSAccount
from kms_ethereum_signer.broadcast import Web3Broadcaster
from kms_ethereum_signer.config import BaseConfig

# Hardhat / anvil first development account
FUNDED_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


@pytest.fixture(scope="module")
def config() -> BaseConfig:
    return BaseConfig.from_env()


@pytest.fixture(scope="module")
def broadcaster(config: BaseConfig) -> Web3Broadcaster:
    return Web3Broadcaster(config.web3_provider_uri)


@pytest.fixture(scope="module")
def web3(broadcaster: Web3Broadcaster):
    return broadcaster.web3


@pytest.fixture(scope="module")
def kms_account(config: BaseConfig) -> KMSAccount:
    """Create real KMS account."""
    return KMSAccount.from_config(config)


@pytest.fixture
def fund_account(web3, kms_account: KMSAccount):
    """Fund the KMS account from the node's development account."""
    funded_account = web3.eth.account.from_key(FUNDED_PRIVATE_KEY)
    fund_tx = {
        "from": funded_account.address,
        "to": kms_account.address,
        "value": web3.to_wei(0.1, "ether"),
        "gas": 21000,
        "gasPrice": web3.eth.gas_price,
        "nonce": web3.eth.get_transaction_count(funded_account.address),
        "chainId": web3.eth.chain_id,
    }

    signed_tx = web3.eth.account.sign_transaction(fund_tx, funded_account.key)
    tx_hash = web3.eth.send_raw_transaction(signed_tx.raw_transaction)
    return web3.eth.wait_for_transaction_receipt(tx_hash)
