"""
Canton timelock adapters.

The timelock is built into the MCMS template: a batch becomes a single
operation the MCMS contract dispatches to itself (ScheduleBatch,
CancelBatch or BypasserExecuteBatch) with the params hex-marshalled into
``operationData``. Operation-state views are non-consuming choices read
through ``ChainClient.read(contract_id, choice, {"submitter", "opId"})``.
"""

from typing import Dict, List, Tuple

from eth_utils import decode_hex

from ..constants import CANTON_MCMS_TEMPLATE_KEY
from ..crypto.hashing import keccak256
from ..exceptions import InvalidTimelockOperation, UnsupportedOnChain
from ..logger import get_logger
from ..sdk.client import ChainClient, read_state
from ..sdk.interfaces import TimelockConverter, TimelockExecutor, TimelockInspector
from ..types.operation import BatchOperation, ChainMetadata, Operation, Transaction, TransactionResult
from ..types.timelock import Duration, TimelockAction
from .encoding import (
    ascii_to_hex,
    encode_operation_data,
    ledger_duration_to_seconds,
    marshal_bypasser_execute_batch,
    marshal_cancel_batch,
    marshal_schedule_batch,
)
from .exercise import exercise
from .fields import AdditionalFields, validate_chain_metadata
from .inspector import CantonInspector

logger = get_logger(__name__)

FUNCTION_NAMES = {
    TimelockAction.SCHEDULE: "ScheduleBatch",
    TimelockAction.CANCEL: "CancelBatch",
    TimelockAction.BYPASS: "BypasserExecuteBatch",
}


def batch_to_calls(bop: BatchOperation) -> Tuple[List[Dict[str, str]], List[AdditionalFields]]:
    """
    Timelock call records for a batch.

    targetInstanceId falls back to the transaction's ``to`` and
    operationData to the hex of its ``data``.
    """
    calls = []
    fields_list = []
    for tx in bop.transactions:
        fields = AdditionalFields.from_dict(tx.additional_fields)
        operation_data = fields.operation_data
        if not operation_data and tx.data:
            operation_data = tx.data.hex()
        calls.append({
            "targetInstanceId": fields.target_instance_id or tx.to,
            "functionName": fields.function_name,
            "operationData": operation_data,
        })
        fields_list.append(fields)
    return calls, fields_list


def hash_timelock_op_id(calls: List[Dict[str, str]], predecessor_hex: str, salt_hex: str) -> bytes:
    encoded = "".join(
        ascii_to_hex(call["targetInstanceId"])
        + ascii_to_hex(call["functionName"])
        + encode_operation_data(call["operationData"])
        for call in calls
    )
    encoded += ascii_to_hex(predecessor_hex) + ascii_to_hex(salt_hex)
    return keccak256(decode_hex(encoded))


class CantonTimelockConverter(TimelockConverter):

    def convert_batch_to_chain_operations(
        self,
        metadata: ChainMetadata,
        bop: BatchOperation,
        timelock_address: str,
        mcm_address: str,
        delay: Duration,
        action: TimelockAction,
        predecessor: bytes,
        salt: bytes,
    ) -> Tuple[List[Operation], bytes]:
        meta = validate_chain_metadata(metadata)
        calls, fields_list = batch_to_calls(bop)
        predecessor_hex = bytes(predecessor).hex()
        salt_hex = bytes(salt).hex()
        op_id = hash_timelock_op_id(calls, predecessor_hex, salt_hex)

        if action == TimelockAction.SCHEDULE:
            operation_data = marshal_schedule_batch(calls, predecessor_hex, salt_hex, Duration.parse(delay).seconds)
        elif action == TimelockAction.CANCEL:
            operation_data = marshal_cancel_batch(op_id.hex())
        elif action == TimelockAction.BYPASS:
            operation_data = marshal_bypasser_execute_batch(calls)
        else:
            raise InvalidTimelockOperation(f"unsupported timelock action: {action}")

        contract_ids = [cid for fields in fields_list for cid in fields.contract_ids]
        tags = [tag for tx in bop.transactions for tag in tx.tags]
        op_fields = AdditionalFields(
            target_instance_id=meta.instance_id,
            function_name=FUNCTION_NAMES[TimelockAction(action)],
            operation_data=operation_data,
            target_cid=mcm_address,
            contract_ids=contract_ids,
        )
        op = Operation(
            chain_selector=bop.chain_selector,
            transaction=Transaction(
                to=mcm_address,
                data=b"\x00",
                additional_fields=op_fields.to_dict(),
                tags=tags,
            ),
        )
        return [op], op_id


class CantonTimelockInspector(TimelockInspector):
    """
    Role lists come from the proposer, canceller and bypasser sub-configs of
    the MCMS contract. There is no executor role: anyone may execute.
    """

    def __init__(self, client: ChainClient, party: str):
        self.client = client
        self.party = party
        self.inspector = CantonInspector(client)

    def _role_signers(self, address: str, role: str) -> List[str]:
        self.inspector.invalidate_cache()
        contract = self.inspector.contract(address)
        signers = ((contract.get(role) or {}).get("config") or {}).get("signers") or []
        return [s["signerAddress"] for s in signers]

    def _view(self, address: str, choice: str, op_id: bytes) -> bool:
        return bool(read_state(self.client, address, choice, {"submitter": self.party, "opId": bytes(op_id).hex()}))

    def get_proposers(self, address: str) -> List[str]:
        return self._role_signers(address, "proposer")

    def get_executors(self, address: str) -> List[str]:
        raise UnsupportedOnChain("unsupported on Canton: no separate executor role")

    def get_bypassers(self, address: str) -> List[str]:
        return self._role_signers(address, "bypasser")

    def get_cancellers(self, address: str) -> List[str]:
        return self._role_signers(address, "canceller")

    def is_operation(self, address: str, op_id: bytes) -> bool:
        return self._view(address, "IsOperation", op_id)

    def is_operation_pending(self, address: str, op_id: bytes) -> bool:
        return self._view(address, "IsOperationPending", op_id)

    def is_operation_ready(self, address: str, op_id: bytes) -> bool:
        return self._view(address, "IsOperationReady", op_id)

    def is_operation_done(self, address: str, op_id: bytes) -> bool:
        return self._view(address, "IsOperationDone", op_id)

    def get_min_delay(self, address: str) -> int:
        """The ledger reports microseconds; returned in seconds."""
        result = read_state(self.client, address, "GetMinDelay", {"submitter": self.party})
        return ledger_duration_to_seconds(result)


class CantonTimelockExecutor(CantonTimelockInspector, TimelockExecutor):

    def __init__(self, client: ChainClient, party: str, template_key: str = CANTON_MCMS_TEMPLATE_KEY):
        super().__init__(client, party)
        self.template_key = template_key

    def execute(
        self,
        bop: BatchOperation,
        timelock_address: str,
        predecessor: bytes,
        salt: bytes,
    ) -> TransactionResult:
        calls, fields_list = batch_to_calls(bop)
        predecessor_hex = bytes(predecessor).hex()
        salt_hex = bytes(salt).hex()
        op_id = hash_timelock_op_id(calls, predecessor_hex, salt_hex)
        arguments = {
            "submitter": self.party,
            "opId": op_id.hex(),
            "calls": calls,
            "predecessor": predecessor_hex,
            "salt": salt_hex,
            "targetCids": [f.target_cid for f in fields_list if f.target_cid],
        }
        logger.info(f"Executing scheduled batch {op_id.hex()} of {len(calls)} calls on {timelock_address}")
        return exercise(self.client, timelock_address, "ExecuteScheduledBatch", arguments,
                        step="execute-scheduled-batch", template_key=self.template_key,
                        timelock_operation=True)
