import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
import rlp
from eth_account import Account
from eth_account.messages import encode_defunct
from hexbytes import HexBytes

from fakes import (
    OTHER_ADDRESS,
    OTHER_PRIVATE_KEY,
    TEST_ADDRESS,
    TEST_KEY_PATH,
    TEST_PUBLIC_KEY,
    TEST_RECIPIENT,
    FakeSigningProvider,
    uncompressed_public_key,
)
from kms_ethereum_signer.accounts.kms_account import KMSAccount
from kms_ethereum_signer.broadcast import Web3Broadcaster
from kms_ethereum_signer.exceptions import (
    ConfigurationError,
    InvalidDigestLengthError,
    InvalidPublicKeyFormatError,
    KeyIdentityMismatchError,
    RecoveryFailureError,
)
from kms_ethereum_signer.types.ethereum_types import Transaction
from kms_ethereum_signer.utils import SECP256K1_HALF_N


def test_account_initialization(kms_account: KMSAccount):
    """Test account initialization."""
    assert isinstance(kms_account, KMSAccount)
    assert kms_account.key_handle == TEST_KEY_PATH


@pytest.mark.parametrize("key_handle", ["", "   "])
def test_account_requires_key_handle(fake_provider: FakeSigningProvider, key_handle: str):
    with pytest.raises(ConfigurationError):
        KMSAccount(fake_provider, key_handle)


def test_get_public_key(kms_account: KMSAccount, fake_provider: FakeSigningProvider):
    """Test getting public key from the provider."""
    assert fake_provider.public_key_calls == 0
    public_key = kms_account.public_key
    assert public_key == TEST_PUBLIC_KEY
    assert len(public_key) == 64
    assert kms_account.address == TEST_ADDRESS
    assert fake_provider.public_key_calls == 1


def test_get_address(kms_account: KMSAccount):
    """Test deriving Ethereum address from public key."""
    address = kms_account.address
    assert address == TEST_ADDRESS
    assert address.startswith("0x")
    assert len(address) == 42
    assert str(kms_account) == f"KMSAccount(address={TEST_ADDRESS})"


def test_invalid_public_key_from_provider():
    account = KMSAccount(FakeSigningProvider(public_keys=[TEST_PUBLIC_KEY]), TEST_KEY_PATH)
    with pytest.raises(InvalidPublicKeyFormatError):
        account.address


def test_refresh_public_key(kms_account: KMSAccount, fake_provider: FakeSigningProvider):
    kms_account.address
    assert kms_account.refresh_public_key() == TEST_PUBLIC_KEY
    assert fake_provider.public_key_calls == 2


def test_refresh_public_key_mismatch():
    provider = FakeSigningProvider(
        public_keys=[b"\x04" + TEST_PUBLIC_KEY, uncompressed_public_key(OTHER_PRIVATE_KEY)]
    )
    account = KMSAccount(provider, TEST_KEY_PATH)
    assert account.address == TEST_ADDRESS

    with pytest.raises(KeyIdentityMismatchError):
        account.refresh_public_key()
    assert account.address == TEST_ADDRESS


def test_concurrent_address_resolution_fires_once():
    workers = 16
    provider = FakeSigningProvider(delay=0.05)
    account = KMSAccount(provider, TEST_KEY_PATH)
    barrier = threading.Barrier(workers)

    def read_address(_):
        barrier.wait()
        return account.address

    with ThreadPoolExecutor(max_workers=workers) as pool:
        addresses = list(pool.map(read_address, range(workers)))

    assert set(addresses) == {TEST_ADDRESS}
    assert provider.public_key_calls == 1


def test_sign_digest_invalid_length(kms_account: KMSAccount, fake_provider: FakeSigningProvider):
    with pytest.raises(InvalidDigestLengthError):
        kms_account.sign_digest(b"\x00" * 31)
    assert fake_provider.sign_calls == []


def test_sign_digest_passes_digest_unchanged(kms_account: KMSAccount, fake_provider: FakeSigningProvider):
    digest = bytes(range(32))
    signature = kms_account.sign_digest(digest)
    assert fake_provider.sign_calls == [(TEST_KEY_PATH, digest)]
    assert int.from_bytes(signature.s, "big") <= SECP256K1_HALF_N


def test_sign_digest_with_wrong_key_behind_handle():
    """The service signs with one key but reports another."""
    provider = FakeSigningProvider(private_key=OTHER_PRIVATE_KEY, public_keys=[b"\x04" + TEST_PUBLIC_KEY])
    account = KMSAccount(provider, TEST_KEY_PATH)
    with pytest.raises(RecoveryFailureError):
        account.sign_digest(bytes(32))


def test_sign_digest_propagates_provider_errors(kms_account: KMSAccount, fake_provider: FakeSigningProvider):
    fake_provider.sign_digest = MagicMock(side_effect=ConnectionError("service unavailable"))
    with pytest.raises(ConnectionError, match="service unavailable"):
        kms_account.sign_digest(bytes(32))


def test_sign_message(kms_account: KMSAccount):
    """Test message signing."""
    message = "Hello, Ethereum!"
    signature = kms_account.sign_message(message)

    # Verify the signature components
    assert signature.v in (27, 28)
    assert len(signature.r) == 32
    assert len(signature.s) == 32

    recovered_address = Account.recover_message(encode_defunct(text=message), vrs=signature.vrs)
    assert recovered_address == kms_account.address


def test_sign_hex_message(kms_account: KMSAccount):
    """Test signing hex messages."""
    hex_message = "0x48656c6c6f2c20457468657265756d21"  # "Hello, Ethereum!" in hex
    signature = kms_account.sign_message(hex_message)

    recovered_address = Account.recover_message(encode_defunct(hexstr=hex_message), vrs=signature.vrs)
    assert recovered_address == kms_account.address


def test_sign_bytes_message(kms_account: KMSAccount):
    message = b"\x00\x01binary"
    signature = kms_account.sign_message(message)

    recovered_address = Account.recover_message(encode_defunct(primitive=message), vrs=signature.vrs)
    assert recovered_address == kms_account.address


def test_invalid_message_type(kms_account: KMSAccount):
    """Test signing with invalid message type."""
    with pytest.raises(TypeError, match="Unsupported message type"):
        kms_account.sign_message(123)  # type: ignore


def test_sign_transaction(
    kms_account: KMSAccount, test_transaction: Transaction, fake_provider: FakeSigningProvider
):
    """Test transaction signing."""
    signed_tx = kms_account.sign_transaction(test_transaction)

    assert isinstance(signed_tx, bytes)
    assert len(fake_provider.sign_calls) == 1
    assert fake_provider.sign_calls[0][1] == test_transaction.signing_digest()

    recovered_address = Account.recover_transaction(signed_tx)
    assert recovered_address == kms_account.address

    # Verify transaction details are preserved
    nonce, gas_price, gas, to, value, data, v, r, s = rlp.decode(signed_tx)
    assert int.from_bytes(nonce, "big") == test_transaction.nonce
    assert int.from_bytes(gas_price, "big") == test_transaction.gas_price
    assert int.from_bytes(gas, "big") == test_transaction.gas_limit
    assert to == bytes.fromhex(TEST_RECIPIENT[2:])
    assert int.from_bytes(value, "big") == test_transaction.value
    assert data == b""
    assert int.from_bytes(v, "big") in (35 + 2 * 55007, 36 + 2 * 55007)
    assert int.from_bytes(s, "big") <= SECP256K1_HALF_N


def test_sign_pre_eip155_transaction(kms_account: KMSAccount):
    tx = Transaction(nonce=0, gas_price=10**9, gas_limit=21000, to=TEST_RECIPIENT, value=1)
    signed_tx = kms_account.sign_transaction(tx)

    assert int.from_bytes(rlp.decode(signed_tx)[6], "big") in (27, 28)
    assert Account.recover_transaction(signed_tx) == TEST_ADDRESS


def test_sign_dynamic_fee_transaction(kms_account: KMSAccount, dynamic_fee_transaction: Transaction):
    signed_tx = kms_account.sign_transaction(dynamic_fee_transaction)

    assert signed_tx[0] == 2
    fields = rlp.decode(signed_tx[1:])
    assert fields[9] in (b"", b"\x01")
    assert Account.recover_transaction(signed_tx) == TEST_ADDRESS


def test_sign_transaction_resolves_key_lazily(
    kms_account: KMSAccount, test_transaction: Transaction, fake_provider: FakeSigningProvider
):
    kms_account.sign_transaction(test_transaction)
    kms_account.sign_transaction(test_transaction)
    assert fake_provider.public_key_calls == 1
    assert len(fake_provider.sign_calls) == 2


def test_sign_transaction_wrong_sender(kms_account: KMSAccount, test_transaction: Transaction):
    tx = test_transaction.model_copy(update={"from_": OTHER_ADDRESS})
    with pytest.raises(ConfigurationError, match="not the account address"):
        kms_account.sign_transaction(tx)


def test_concurrent_transaction_signing(kms_account: KMSAccount, fake_provider: FakeSigningProvider):
    transactions = [
        Transaction(chain_id=1, nonce=nonce, gas_price=1, gas_limit=21000, to=TEST_RECIPIENT) for nonce in range(8)
    ]

    with ThreadPoolExecutor(max_workers=8) as pool:
        signed = list(pool.map(kms_account.sign_transaction, transactions))

    assert [Account.recover_transaction(raw) for raw in signed] == [TEST_ADDRESS] * 8
    assert fake_provider.public_key_calls == 1


def test_send_transaction(kms_account: KMSAccount, test_transaction: Transaction):
    web3 = MagicMock()
    web3.eth.send_raw_transaction.return_value = HexBytes(b"\x12" * 32)
    broadcaster = Web3Broadcaster(web3=web3)

    tx_hash = kms_account.send_transaction(test_transaction, broadcaster)

    assert tx_hash == HexBytes(b"\x12" * 32)
    raw = web3.eth.send_raw_transaction.call_args[0][0]
    assert Account.recover_transaction(raw) == TEST_ADDRESS


def test_from_config(mock_kms_client: MagicMock):
    from kms_ethereum_signer.config import BaseConfig

    config = BaseConfig(project_id="test-project", location_id="global", key_ring_id="test-ring", key_id="test-key")
    account = KMSAccount.from_config(config, client=mock_kms_client)

    assert account.key_handle == TEST_KEY_PATH
    assert account.address == TEST_ADDRESS

    signature = account.sign_message("Hello Ethereum!")
    assert Account.recover_message(encode_defunct(text="Hello Ethereum!"), vrs=signature.vrs) == TEST_ADDRESS
    mock_kms_client.get_public_key.assert_called_once_with(request={"name": TEST_KEY_PATH})
