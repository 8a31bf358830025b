"""
EVM additional-field payloads.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from eth_utils import is_address, to_checksum_address

from ..exceptions import InvalidAdditionalFields
from ..types.operation import Transaction


@dataclass(frozen=True)
class AdditionalFields:
    """Operation fields: ``{"value": <wei>}``."""
    value: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AdditionalFields":
        data = data or {}
        raw = data.get("value", 0)
        try:
            value = int(raw if raw is not None else 0)
        except (TypeError, ValueError):
            raise InvalidAdditionalFields(f"invalid EVM value: {raw!r}") from None
        if value < 0:
            raise InvalidAdditionalFields(f"EVM value must not be negative: {value}")
        return cls(value)

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value}


def parse_address(address: str, what: str = "address") -> str:
    if not is_address(address):
        raise InvalidAdditionalFields(f"invalid EVM {what}: {address!r}")
    return to_checksum_address(address)


def validate_transaction(tx: Transaction) -> AdditionalFields:
    """Parse and check one EVM transaction's fields."""
    parse_address(tx.to, "target address")
    return AdditionalFields.from_dict(tx.additional_fields)


def new_transaction(
    to: str,
    data: bytes,
    value: int = 0,
    contract_type: str = "",
    tags: Sequence[str] = (),
) -> Transaction:
    return Transaction(
        to=parse_address(to, "target address"),
        data=bytes(data),
        additional_fields=AdditionalFields(value).to_dict(),
        contract_type=contract_type,
        tags=list(tags),
    )
