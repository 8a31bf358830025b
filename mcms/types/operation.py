"""
Chain-agnostic operation types.

Defines:
  - Transaction, Operation, BatchOperation: what a proposal asks a chain to do
  - ChainMetadata: per-chain MCM contract identity and op-count window
  - TransactionResult: outcome of one mutating adapter call

``additional_fields`` stays a plain JSON object in these types so proposals
can be serialized unchanged; each chain family parses it into its own typed
fields at the adapter boundary.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eth_utils import decode_hex

from .chain_selector import ChainFamily


def _decode_data(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not value:
        return b""
    return decode_hex(value)


@dataclass
class Transaction:
    """
    Attributes:
        to: Target address in the chain's native format
        data: Call payload
        additional_fields: Chain-specific JSON object
        contract_type: Informational target contract type
        tags: Informational labels
    """
    to: str
    data: bytes = b""
    additional_fields: Dict[str, Any] = field(default_factory=dict)
    contract_type: str = ""
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to": self.to,
            "data": "0x" + self.data.hex(),
            "additionalFields": self.additional_fields,
            "contractType": self.contract_type,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            to=data["to"],
            data=_decode_data(data.get("data")),
            additional_fields=dict(data.get("additionalFields") or {}),
            contract_type=data.get("contractType", ""),
            tags=list(data.get("tags") or []),
        )


@dataclass
class Operation:
    chain_selector: int
    transaction: Transaction

    def to_dict(self) -> Dict[str, Any]:
        return {"chainSelector": self.chain_selector, **self.transaction.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        return cls(int(data["chainSelector"]), Transaction.from_dict(data))


@dataclass
class BatchOperation:
    """Transactions scheduled and executed atomically through a timelock."""
    chain_selector: int
    transactions: List[Transaction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainSelector": self.chain_selector,
            "transactions": [tx.to_dict() for tx in self.transactions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchOperation":
        return cls(
            int(data["chainSelector"]),
            [Transaction.from_dict(tx) for tx in data.get("transactions") or []],
        )


@dataclass
class ChainMetadata:
    """
    Attributes:
        starting_op_count: On-chain op count the proposal starts from
        mcm_address: MCM contract address or contract id
        additional_fields: Chain-specific JSON object
    """
    starting_op_count: int
    mcm_address: str
    additional_fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "startingOpCount": self.starting_op_count,
            "mcmAddress": self.mcm_address,
        }
        if self.additional_fields:
            result["additionalFields"] = self.additional_fields
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainMetadata":
        return cls(
            starting_op_count=int(data.get("startingOpCount", 0)),
            mcm_address=data["mcmAddress"],
            additional_fields=dict(data.get("additionalFields") or {}),
        )


@dataclass
class TransactionResult:
    """
    Attributes:
        hash: Transaction hash, signature or command id
        chain_family: Family that produced the result
        contract_address: Identity the next call against this contract must use
        raw_data: Chain-specific response payload
    """
    hash: str
    chain_family: ChainFamily
    contract_address: str
    raw_data: Any = None

    @property
    def new_contract_id(self) -> Optional[str]:
        if isinstance(self.raw_data, dict):
            return self.raw_data.get("NewMCMSContractID")
        return None
