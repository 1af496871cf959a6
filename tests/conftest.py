from unittest.mock import MagicMock

import pytest
from google.cloud import kms

from fakes import TEST_ADDRESS, TEST_KEY_PATH, TEST_RECIPIENT, FakeSigningProvider, public_key_pem, sign_der
from kms_ethereum_signer.accounts.kms_account import KMSAccount
from kms_ethereum_signer.types.ethereum_types import Transaction


@pytest.fixture
def fake_provider() -> FakeSigningProvider:
    return FakeSigningProvider()


@pytest.fixture
def kms_account(fake_provider: FakeSigningProvider) -> KMSAccount:
    """Create a KMS account over the fake signing service."""
    return KMSAccount(fake_provider, TEST_KEY_PATH)


@pytest.fixture
def transaction_dict() -> dict:
    """Legacy EIP-155 transaction in web3.py field names."""
    return {
        "from": TEST_ADDRESS,
        "chainId": 55007,
        "nonce": 3,
        "value": 123,
        "data": "0x",
        "to": TEST_RECIPIENT,
        "gas": 21000,
        "gasPrice": 1,
    }


@pytest.fixture
def test_transaction(transaction_dict: dict) -> Transaction:
    """Create a test transaction."""
    return Transaction.from_dict(transaction_dict)


@pytest.fixture
def dynamic_fee_transaction() -> Transaction:
    return Transaction(
        type=2,
        chain_id=1,
        nonce=7,
        max_fee_per_gas=30_000_000_000,
        max_priority_fee_per_gas=1_000_000_000,
        gas_limit=60000,
        to=TEST_RECIPIENT,
        value=10**15,
        data="0x68656c6c6f",
        access_list=[{"address": TEST_RECIPIENT, "storageKeys": ["0x" + "00" * 31 + "01"]}],
    )


@pytest.fixture
def mock_kms_client() -> MagicMock:
    """Create a mock Google Cloud KMS client backed by private key 1."""
    mock_client = MagicMock(spec=kms.KeyManagementServiceClient)

    mock_public_key_response = MagicMock()
    mock_public_key_response.pem = public_key_pem(1)
    mock_client.get_public_key.return_value = mock_public_key_response

    def asymmetric_sign(request):
        response = MagicMock()
        response.signature = sign_der(request["digest"]["sha256"])
        return response

    mock_client.asymmetric_sign.side_effect = asymmetric_sign
    return mock_client
