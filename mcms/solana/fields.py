"""
Solana additional-field payloads.

Operation fields: ``{"accounts": [{publicKey, isSigner, isWritable}], "value": n}``.
Chain metadata fields: the three timelock role access controllers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import InvalidAdditionalFields, MissingField
from ..types.operation import ChainMetadata, Transaction
from .address import decode_pubkey, is_on_curve, is_zero_pubkey
from .instructions import AccountMeta, Instruction


@dataclass(frozen=True)
class AdditionalFields:
    accounts: List[AccountMeta] = field(default_factory=list)
    value: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AdditionalFields":
        data = data or {}
        accounts = data.get("accounts") or []
        if not isinstance(accounts, list):
            raise InvalidAdditionalFields("solana accounts must be a list")
        try:
            value = int(data.get("value") or 0)
        except (TypeError, ValueError):
            raise InvalidAdditionalFields(f"invalid solana value: {data.get('value')!r}") from None
        return cls([AccountMeta.from_dict(a) for a in accounts], value)

    def to_dict(self) -> Dict[str, Any]:
        return {"accounts": [a.to_dict() for a in self.accounts], "value": self.value}


def validate_transaction(tx: Transaction) -> AdditionalFields:
    """
    Raises:
        MissingField: the accounts list is absent
        InvalidAdditionalFields: malformed accounts or value
    """
    if "accounts" not in (tx.additional_fields or {}):
        raise MissingField("accounts")
    return AdditionalFields.from_dict(tx.additional_fields)


@dataclass(frozen=True)
class MetadataFields:
    proposer_role_access_controller: str
    canceller_role_access_controller: str
    bypasser_role_access_controller: str

    _KEYS = (
        ("proposerRoleAccessController", "proposer_role_access_controller"),
        ("cancellerRoleAccessController", "canceller_role_access_controller"),
        ("bypasserRoleAccessController", "bypasser_role_access_controller"),
    )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MetadataFields":
        """
        Raises:
            MissingField: a controller is absent
            InvalidAdditionalFields: a controller is malformed or the zero key
        """
        data = data or {}
        values = {}
        for json_key, attr in cls._KEYS:
            key = data.get(json_key)
            if not key:
                raise MissingField(json_key, f"{json_key} is required in chain metadata additional fields")
            decode_pubkey(key)
            if is_zero_pubkey(key):
                raise InvalidAdditionalFields(f"{json_key} cannot be the zero address")
            values[attr] = key
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {json_key: getattr(self, attr) for json_key, attr in self._KEYS}


def validate_chain_metadata(metadata: ChainMetadata) -> MetadataFields:
    return MetadataFields.from_dict(metadata.additional_fields)


def new_chain_metadata(
    starting_op_count: int,
    mcm_address: str,
    proposer_access_controller: str,
    canceller_access_controller: str,
    bypasser_access_controller: str,
) -> ChainMetadata:
    fields = MetadataFields(proposer_access_controller, canceller_access_controller, bypasser_access_controller)
    return ChainMetadata(starting_op_count, mcm_address, fields.to_dict())


def new_transaction(
    program_id: str,
    data: bytes,
    accounts: Sequence[AccountMeta],
    value: int = 0,
    contract_type: str = "",
    tags: Sequence[str] = (),
) -> Transaction:
    decode_pubkey(program_id)
    return Transaction(
        to=program_id,
        data=bytes(data),
        additional_fields=AdditionalFields(list(accounts), value).to_dict(),
        contract_type=contract_type,
        tags=list(tags),
    )


def transaction_from_instruction(ix: Instruction, contract_type: str = "", tags: Sequence[str] = ()) -> Transaction:
    """
    Wrap an instruction for MCMS execution.

    Off-curve accounts (PDAs) lose their signer flag; the MCM program signs
    for them through the invoke.
    """
    accounts = [
        AccountMeta(a.public_key, a.is_signer and is_on_curve(a.key_bytes), a.is_writable)
        for a in ix.accounts
    ]
    return new_transaction(ix.program_id, ix.data, accounts, 0, contract_type, tags)
