"""
EVM RBACTimelock adapters.

Defines:
  - EVMTimelockConverter: batch → one MCMS-routed timelock call
  - EVMTimelockInspector: role enumeration and operation state views
  - EVMTimelockExecutor: executeBatch once an operation is ready
"""

from typing import List, Sequence, Tuple

from eth_utils import to_checksum_address

from ..exceptions import InvalidTimelockOperation, OperationNotFound, OperationNotReady
from ..logger import get_logger
from ..sdk.client import ChainClient, read_state, submit_step
from ..sdk.interfaces import TimelockConverter, TimelockExecutor, TimelockInspector
from ..types.chain_selector import ChainFamily
from ..types.operation import (
    BatchOperation,
    ChainMetadata,
    Operation,
    Transaction,
    TransactionResult,
)
from ..types.timelock import Duration, TimelockAction
from .abi import (
    BYPASSER_ROLE,
    CANCELLER_ROLE,
    EXECUTOR_ROLE,
    PROPOSER_ROLE,
    decode_result,
    encode_call,
    hash_operation_batch,
    to_call_tuples,
)
from .fields import AdditionalFields, parse_address, validate_transaction

logger = get_logger(__name__)

TIMELOCK_CONTRACT_TYPE = "RBACTimelock"


def batch_to_calls(bop: BatchOperation) -> Tuple[List[Tuple[str, int, bytes]], List[str]]:
    """RBACTimelock.Call tuples plus the batch's aggregated tags."""
    calls = []
    tags: List[str] = []
    for tx in bop.transactions:
        fields = validate_transaction(tx)
        calls.append((tx.to, fields.value, tx.data))
        tags.extend(tx.tags)
    return to_call_tuples(calls), tags


class EVMTimelockConverter(TimelockConverter):

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
        calls, tags = batch_to_calls(bop)
        operation_id = hash_operation_batch(calls, predecessor, salt)

        if action == TimelockAction.SCHEDULE:
            data = encode_call("scheduleBatch", calls, bytes(predecessor), bytes(salt), Duration.parse(delay).seconds)
        elif action == TimelockAction.CANCEL:
            data = encode_call("cancel", operation_id)
        elif action == TimelockAction.BYPASS:
            data = encode_call("bypasserExecuteBatch", calls)
        else:
            raise InvalidTimelockOperation(f"invalid timelock operation: {action}")

        op = Operation(
            chain_selector=bop.chain_selector,
            transaction=Transaction(
                to=parse_address(timelock_address, "timelock address"),
                data=data,
                additional_fields=AdditionalFields(0).to_dict(),
                contract_type=TIMELOCK_CONTRACT_TYPE,
                tags=tags,
            ),
        )
        return [op], operation_id


class EVMTimelockInspector(TimelockInspector):

    def __init__(self, client: ChainClient):
        self.client = client

    def _call(self, address: str, name: str, *args) -> Tuple:
        raw = read_state(self.client, address, name, {"data": encode_call(name, *args)})
        return decode_result(name, raw)

    def _role_members(self, address: str, role: bytes) -> List[str]:
        (count,) = self._call(address, "getRoleMemberCount", role)
        members = []
        for i in range(int(count)):
            (member,) = self._call(address, "getRoleMember", role, i)
            members.append(to_checksum_address(member))
        return members

    def get_proposers(self, address: str) -> List[str]:
        return self._role_members(address, PROPOSER_ROLE)

    def get_executors(self, address: str) -> List[str]:
        return self._role_members(address, EXECUTOR_ROLE)

    def get_bypassers(self, address: str) -> List[str]:
        return self._role_members(address, BYPASSER_ROLE)

    def get_cancellers(self, address: str) -> List[str]:
        return self._role_members(address, CANCELLER_ROLE)

    def is_operation(self, address: str, op_id: bytes) -> bool:
        return bool(self._call(address, "isOperation", bytes(op_id))[0])

    def is_operation_pending(self, address: str, op_id: bytes) -> bool:
        return bool(self._call(address, "isOperationPending", bytes(op_id))[0])

    def is_operation_ready(self, address: str, op_id: bytes) -> bool:
        return bool(self._call(address, "isOperationReady", bytes(op_id))[0])

    def is_operation_done(self, address: str, op_id: bytes) -> bool:
        return bool(self._call(address, "isOperationDone", bytes(op_id))[0])

    def get_min_delay(self, address: str) -> int:
        return int(self._call(address, "getMinDelay")[0])


class EVMTimelockExecutor(EVMTimelockInspector, TimelockExecutor):
    """
    executeBatch is only sent for an operation that exists and is ready.
    RBACTimelock itself reports cancelled and never-scheduled ids as
    "operation is not ready".
    """

    def execute(
        self,
        bop: BatchOperation,
        timelock_address: str,
        predecessor: bytes,
        salt: bytes,
    ) -> TransactionResult:
        address = parse_address(timelock_address, "timelock address")
        calls, _ = batch_to_calls(bop)
        op_id = hash_operation_batch(calls, bytes(predecessor), bytes(salt))
        if not self.is_operation(address, op_id):
            raise OperationNotFound("executeBatch", message=f"operation 0x{op_id.hex()} is not scheduled on {address}")
        if not self.is_operation_ready(address, op_id):
            raise OperationNotReady("executeBatch", message=f"operation 0x{op_id.hex()} is not ready on {address}")

        data = encode_call("executeBatch", calls, bytes(predecessor), bytes(salt))
        logger.info(f"Executing batch 0x{op_id.hex()} of {len(calls)} calls on timelock {address}")
        result = submit_step(
            self.client, address, "executeBatch", {"data": data, "value": 0},
            step="executeBatch", timelock_operation=True,
        )
        return TransactionResult(result.tx_hash, ChainFamily.EVM, address, result.raw)
