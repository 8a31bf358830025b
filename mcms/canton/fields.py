"""
Canton additional-field payloads.

Operation fields::

    {"targetInstanceId": ..., "functionName": ..., "operationData": <hex or text>,
     "targetCid": ..., "contractIds": [...]}

Chain metadata fields::

    {"chainId": n, "multisigId": ..., "instanceId": ...,
     "preOpCount": n, "postOpCount": n, "overridePreviousRoot": bool}
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import InvalidAdditionalFields, MissingField
from ..types.operation import ChainMetadata, Transaction


@dataclass(frozen=True)
class AdditionalFields:
    target_instance_id: str = ""
    function_name: str = ""
    operation_data: str = ""
    target_cid: str = ""
    contract_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AdditionalFields":
        data = data or {}
        contract_ids = data.get("contractIds") or []
        if not isinstance(contract_ids, list):
            raise InvalidAdditionalFields("canton contractIds must be a list")
        return cls(
            target_instance_id=str(data.get("targetInstanceId") or ""),
            function_name=str(data.get("functionName") or ""),
            operation_data=str(data.get("operationData") or ""),
            target_cid=str(data.get("targetCid") or ""),
            contract_ids=[str(c) for c in contract_ids],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetInstanceId": self.target_instance_id,
            "functionName": self.function_name,
            "operationData": self.operation_data,
            "targetCid": self.target_cid,
            "contractIds": list(self.contract_ids),
        }

    def require(self) -> "AdditionalFields":
        """
        Raises:
            MissingField: targetInstanceId, functionName or targetCid is empty
        """
        for json_key, value in (
            ("targetInstanceId", self.target_instance_id),
            ("functionName", self.function_name),
            ("targetCid", self.target_cid),
        ):
            if not value:
                raise MissingField(json_key, f"{json_key} is required in operation additional fields")
        return self


def validate_transaction(tx: Transaction) -> AdditionalFields:
    return AdditionalFields.from_dict(tx.additional_fields).require()


@dataclass(frozen=True)
class MetadataFields:
    chain_id: int
    multisig_id: str
    instance_id: str = ""
    pre_op_count: int = 0
    post_op_count: int = 0
    override_previous_root: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MetadataFields":
        data = data or {}
        try:
            fields = cls(
                chain_id=int(data.get("chainId") or 0),
                multisig_id=str(data.get("multisigId") or ""),
                instance_id=str(data.get("instanceId") or ""),
                pre_op_count=int(data.get("preOpCount") or 0),
                post_op_count=int(data.get("postOpCount") or 0),
                override_previous_root=bool(data.get("overridePreviousRoot", False)),
            )
        except (TypeError, ValueError) as e:
            raise InvalidAdditionalFields(f"invalid canton chain metadata: {e}") from e
        return fields.validate()

    def validate(self) -> "MetadataFields":
        """
        Raises:
            MissingField: chainId or multisigId is unset
            InvalidAdditionalFields: postOpCount < preOpCount
        """
        if self.chain_id == 0:
            raise MissingField("chainId", "chainId is required")
        if not self.multisig_id:
            raise MissingField("multisigId", "multisigId is required")
        if self.post_op_count < self.pre_op_count:
            raise InvalidAdditionalFields("postOpCount must be >= preOpCount")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "multisigId": self.multisig_id,
            "instanceId": self.instance_id,
            "preOpCount": self.pre_op_count,
            "postOpCount": self.post_op_count,
            "overridePreviousRoot": self.override_previous_root,
        }


def validate_chain_metadata(metadata: ChainMetadata) -> MetadataFields:
    return MetadataFields.from_dict(metadata.additional_fields)


def new_chain_metadata(
    pre_op_count: int,
    post_op_count: int,
    chain_id: int,
    multisig_id: str,
    mcms_contract_id: str,
    override_previous_root: bool = False,
    instance_id: str = "",
) -> ChainMetadata:
    if not mcms_contract_id:
        raise MissingField("mcmAddress", "MCMS contract ID is required")
    fields = MetadataFields(
        chain_id, multisig_id, instance_id, pre_op_count, post_op_count, override_previous_root
    ).validate()
    return ChainMetadata(pre_op_count, mcms_contract_id, fields.to_dict())


def new_transaction(
    target_cid: str,
    target_instance_id: str,
    function_name: str,
    operation_data: str,
    contract_ids: Sequence[str] = (),
    contract_type: str = "",
    tags: Sequence[str] = (),
) -> Transaction:
    fields = AdditionalFields(target_instance_id, function_name, operation_data, target_cid, list(contract_ids))
    return Transaction(
        to=target_cid,
        data=b"",
        additional_fields=fields.to_dict(),
        contract_type=contract_type,
        tags=list(tags),
    )
