import logging
import os

import dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install

from kms_ethereum_signer import BaseConfig, KMSAccount, Transaction, Web3Broadcaster

# Install rich traceback handler
install()

console = Console()

RECIPIENT = "0x08a74A0075a2C3A786A84439812a141C6C8b73f3"


def main():
    dotenv.load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    config = BaseConfig.from_env()
    account = KMSAccount.from_config(config)
    broadcaster = Web3Broadcaster(config.web3_provider_uri)

    console.print(f"[bold blue]Wallet address:[/bold blue] {account.address}")

    transaction = Transaction(
        chain_id=broadcaster.chain_id,
        nonce=broadcaster.get_transaction_count(account.address),
        gas_price=int(os.getenv("GAS_PRICE", "1")),
        gas_limit=21000,
        to=RECIPIENT,
        value=123,
        from_=account.address,
    )

    tx_hash = account.send_transaction(transaction, broadcaster)
    console.print(f"[green]Transaction sent: 0x{bytes(tx_hash).hex()}[/green]")

    receipt = broadcaster.wait_for_receipt(tx_hash)
    console.print(f"[green]Transaction confirmed in block {receipt['blockNumber']}[/green]")


if __name__ == "__main__":
    # Required environment variables:
    # GOOGLE_CLOUD_PROJECT
    # GOOGLE_CLOUD_REGION
    # KEY_RING
    # KEY_NAME
    # GOOGLE_APPLICATION_CREDENTIALS (path to service account JSON)
    # WEB3_PROVIDER_URI (e.g., http://localhost:8545)
    main()
