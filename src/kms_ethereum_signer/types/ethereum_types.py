import rlp
from eth_account import Account
from eth_utils import is_address, keccak, to_canonical_address, to_checksum_address, to_int
from pydantic import BaseModel, Field, field_validator, model_validator

from kms_ethereum_signer.exceptions import SignatureError
from kms_ethereum_signer.utils import SECP256K1_HALF_N, int_to_bytes32

SIGNATURE_LENGTH: int = 65
SCALAR_LENGTH: int = 32

# Legacy (pre EIP-155) recovery values are 27 and 28
LEGACY_V_OFFSET: int = 27
EIP155_V_OFFSET: int = 35

LEGACY_TRANSACTION_TYPE: int = 0
DYNAMIC_FEE_TRANSACTION_TYPE: int = 2
SUPPORTED_TRANSACTION_TYPES: tuple[int, ...] = (LEGACY_TRANSACTION_TYPE, DYNAMIC_FEE_TRANSACTION_TYPE)


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _scalar_to_bytes(value) -> bytes:
    if isinstance(value, int):
        return int_to_bytes32(value)
    if isinstance(value, str):
        return _hex_to_bytes(value).rjust(SCALAR_LENGTH, b"\x00")
    return bytes(value).rjust(SCALAR_LENGTH, b"\x00")


class Signature(BaseModel):
    """Represents a normalized Ethereum signature with v, r, s components."""

    v: int = Field(..., description="Recovery identifier, 27 or 28")
    r: bytes = Field(..., description="R component of signature")
    s: bytes = Field(..., description="S component of signature, lower half of the curve order")

    @field_validator("r", "s")
    @classmethod
    def validate_length(cls, v: bytes) -> bytes:
        if len(v) != SCALAR_LENGTH:
            msg = f"Length must be 32 bytes, got {len(v)} bytes"
            raise ValueError(msg)
        return v

    @field_validator("s")
    @classmethod
    def validate_low_s(cls, v: bytes) -> bytes:
        if int.from_bytes(v, "big") > SECP256K1_HALF_N:
            msg = "s must be in the lower half of the curve order"
            raise ValueError(msg)
        return v

    @field_validator("v")
    @classmethod
    def validate_v(cls, v: int) -> int:
        if v not in (LEGACY_V_OFFSET, LEGACY_V_OFFSET + 1):
            msg = f"v must be 27 or 28, got {v}"
            raise ValueError(msg)
        return v

    @property
    def recovery_id(self) -> int:
        """Raw y-parity bit (0 or 1)."""
        return self.v - LEGACY_V_OFFSET

    @property
    def vrs(self) -> tuple[int, int, int]:
        return self.v, int.from_bytes(self.r, "big"), int.from_bytes(self.s, "big")

    def to_hex(self) -> str:
        """Convert signature to hex string."""
        return "0x" + (self.r + self.s + bytes([self.v])).hex()

    @classmethod
    def from_hex(cls, hex_str: str) -> "Signature":
        """Create signature from hex string."""
        sig_bytes = _hex_to_bytes(hex_str)
        if len(sig_bytes) != SIGNATURE_LENGTH:
            msg = f"Invalid signature length: {len(sig_bytes)}"
            raise ValueError(msg)
        return cls(v=sig_bytes[64], r=sig_bytes[0:32], s=sig_bytes[32:64])


class AccessListEntry(BaseModel):
    """One EIP-2930 access list entry."""

    address: str
    storage_keys: list[str] = Field(default_factory=list, alias="storageKeys")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not is_address(v):
            msg = "Invalid Ethereum address"
            raise ValueError(msg)
        return to_checksum_address(v)

    @field_validator("storage_keys")
    @classmethod
    def validate_storage_keys(cls, v: list[str]) -> list[str]:
        for key in v:
            if len(_hex_to_bytes(key)) != SCALAR_LENGTH:
                msg = f"Storage key must be 32 bytes: {key}"
                raise ValueError(msg)
        return v

    def to_rlp(self) -> list:
        return [to_canonical_address(self.address), [_hex_to_bytes(key) for key in self.storage_keys]]

    class Config:
        populate_by_name = True


class Transaction(BaseModel):
    """Represents a legacy (type 0) or EIP-1559 (type 2) Ethereum transaction."""

    type: int = Field(LEGACY_TRANSACTION_TYPE, description="Transaction type")
    chain_id: int | None = Field(None, ge=1, description="Chain ID, omitted for pre EIP-155 transactions")
    nonce: int = Field(..., ge=0, description="Transaction nonce")
    gas_price: int | None = Field(None, ge=0, description="Gas price in Wei (type 0)")
    max_fee_per_gas: int | None = Field(None, ge=0, description="Fee cap in Wei (type 2)")
    max_priority_fee_per_gas: int | None = Field(None, ge=0, description="Priority fee in Wei (type 2)")
    gas_limit: int = Field(..., gt=0, description="Gas limit")
    to: str | None = Field(None, description="Recipient address, empty for contract creation")
    value: int = Field(0, ge=0, description="Transaction value in Wei")
    data: str = Field("0x", description="Transaction data")
    access_list: list[AccessListEntry] = Field(default_factory=list, description="EIP-2930 access list")
    from_: str | None = Field(None, alias="from", description="Sender address")
    signature: Signature | None = Field(None, description="Transaction signature")

    @field_validator("to", "from_")
    @classmethod
    def validate_address(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not is_address(v):
            msg = "Invalid Ethereum address"
            raise ValueError(msg)
        return to_checksum_address(v)

    @field_validator("data")
    @classmethod
    def validate_hex(cls, v: str) -> str:
        if not v.startswith("0x"):
            v = "0x" + v
        try:
            bytes.fromhex(v[2:])
        except ValueError as error:
            msg = "Invalid hex string"
            raise ValueError(msg) from error
        return v

    @model_validator(mode="after")
    def validate_fee_fields(self) -> "Transaction":
        if self.type not in SUPPORTED_TRANSACTION_TYPES:
            msg = f"Unsupported transaction type: {self.type}"
            raise ValueError(msg)

        if self.type == LEGACY_TRANSACTION_TYPE:
            if self.gas_price is None:
                msg = "gas_price is required for legacy transactions"
                raise ValueError(msg)
            if self.max_fee_per_gas is not None or self.max_priority_fee_per_gas is not None:
                msg = "Legacy transactions do not take max_fee_per_gas or max_priority_fee_per_gas"
                raise ValueError(msg)
            if self.access_list:
                msg = "Legacy transactions do not take an access list"
                raise ValueError(msg)
            return self

        if self.chain_id is None:
            msg = "chain_id is required for EIP-1559 transactions"
            raise ValueError(msg)
        if self.max_fee_per_gas is None or self.max_priority_fee_per_gas is None:
            msg = "max_fee_per_gas and max_priority_fee_per_gas are required for EIP-1559 transactions"
            raise ValueError(msg)
        if self.gas_price is not None:
            msg = "EIP-1559 transactions do not take gas_price"
            raise ValueError(msg)
        if self.max_priority_fee_per_gas > self.max_fee_per_gas:
            msg = "max_priority_fee_per_gas cannot exceed max_fee_per_gas"
            raise ValueError(msg)
        return self

    @property
    def is_typed(self) -> bool:
        return self.type != LEGACY_TRANSACTION_TYPE

    def _payload_fields(self) -> list:
        to = to_canonical_address(self.to) if self.to else b""
        data = _hex_to_bytes(self.data)
        if self.is_typed:
            return [
                self.chain_id,
                self.nonce,
                self.max_priority_fee_per_gas,
                self.max_fee_per_gas,
                self.gas_limit,
                to,
                self.value,
                data,
                [entry.to_rlp() for entry in self.access_list],
            ]
        return [self.nonce, self.gas_price, self.gas_limit, to, self.value, data]

    def _encode(self, fields: list) -> bytes:
        encoded = rlp.encode(fields)
        if self.is_typed:
            return bytes([self.type]) + encoded
        return encoded

    def unsigned_payload(self) -> bytes:
        """Canonical unsigned encoding that the signature commits to."""
        fields = self._payload_fields()
        if not self.is_typed and self.chain_id is not None:
            # EIP-155 replay protection
            fields += [self.chain_id, 0, 0]
        return self._encode(fields)

    def signing_digest(self) -> bytes:
        """Keccak-256 digest of the unsigned encoding."""
        return keccak(self.unsigned_payload())

    def signature_v(self, signature: Signature) -> int:
        """
        Map a legacy 27/28 recovery value onto this transaction format.

        Returns:
            int: ``v`` for pre EIP-155 transactions, ``recovery_id + 35 + 2 * chain_id``
            for EIP-155 transactions, the bare y-parity for typed transactions.
        """
        if self.is_typed:
            return signature.recovery_id
        if self.chain_id is None:
            return signature.v
        return signature.recovery_id + EIP155_V_OFFSET + 2 * self.chain_id

    def recovery_v(self, v: int) -> int:
        """Inverse of :meth:`signature_v`: the legacy 27/28 value for a transaction ``v``."""
        if self.is_typed:
            return v + LEGACY_V_OFFSET
        if self.chain_id is None:
            return v
        return v - EIP155_V_OFFSET - 2 * self.chain_id + LEGACY_V_OFFSET

    def encode_signed(self, signature: Signature) -> bytes:
        """Canonical signed encoding embedding ``signature``."""
        return self._encode(
            self._payload_fields()
            + [
                self.signature_v(signature),
                int.from_bytes(signature.r, "big"),
                int.from_bytes(signature.s, "big"),
            ]
        )

    def to_dict(self) -> dict:
        """Convert transaction to dictionary format for web3.py."""
        tx_dict = {
            "nonce": self.nonce,
            "gas": self.gas_limit,
            "value": self.value,
            "data": self.data,
        }
        if self.to:
            tx_dict["to"] = self.to
        if self.chain_id is not None:
            tx_dict["chainId"] = self.chain_id
        if self.from_:
            tx_dict["from"] = self.from_
        if self.is_typed:
            tx_dict.update(
                {
                    "type": self.type,
                    "maxFeePerGas": self.max_fee_per_gas,
                    "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
                    "accessList": [
                        {"address": entry.address, "storageKeys": list(entry.storage_keys)}
                        for entry in self.access_list
                    ],
                }
            )
        else:
            tx_dict["gasPrice"] = self.gas_price
        if self.signature:
            tx_dict.update(
                {
                    "v": self.signature_v(self.signature),
                    "r": "0x" + self.signature.r.hex(),
                    "s": "0x" + self.signature.s.hex(),
                }
            )
        return tx_dict

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        """
        Create transaction from dictionary.

        Args:
            data: Transaction data dictionary in either web3.py (camelCase) or
                model (snake_case) field names.

        Returns:
            Transaction: A new transaction instance

        Raises:
            ValueError: If required fields are missing or invalid
        """
        tx_data = data.copy()

        # Handle alternative field names and convert to our format
        renames = {
            "from": "from_",
            "gas": "gas_limit",
            "gasPrice": "gas_price",
            "chainId": "chain_id",
            "maxFeePerGas": "max_fee_per_gas",
            "maxPriorityFeePerGas": "max_priority_fee_per_gas",
            "accessList": "access_list",
            "input": "data",
        }
        for source, target in renames.items():
            if source in tx_data:
                tx_data[target] = tx_data.pop(source)
        if isinstance(tx_data.get("type"), str):
            tx_data["type"] = to_int(hexstr=tx_data["type"])
        if isinstance(tx_data.get("data"), bytes | bytearray):
            tx_data["data"] = "0x" + bytes(tx_data["data"]).hex()

        # Handle signature if present
        vrs = None
        if all(k in tx_data for k in ["v", "r", "s"]):
            vrs = (tx_data.pop("v"), tx_data.pop("r"), tx_data.pop("s"))

        transaction = cls(**tx_data)
        if vrs is not None:
            v, r, s = vrs
            transaction.signature = Signature(
                v=transaction.recovery_v(to_int(hexstr=v) if isinstance(v, str) else int(v)),
                r=_scalar_to_bytes(r),
                s=_scalar_to_bytes(s),
            )
        return transaction

    def serialize_transaction(self) -> bytes:
        """
        Serialize a signed transaction to bytes.

        Returns:
            bytes: The serialized transaction

        Raises:
            SignatureError: If transaction is not signed or signature verification fails
        """
        if not self.signature:
            msg = "The transaction is not signed."
            raise SignatureError(msg)

        signed_txn = self.encode_signed(self.signature)

        if self.from_ and Account.recover_transaction(signed_txn).lower() != self.from_.lower():
            msg = "Recovered signer doesn't match sender!"
            raise SignatureError(msg)

        return signed_txn

    class Config:
        populate_by_name = True
        validate_assignment = True
