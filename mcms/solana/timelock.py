"""
Solana RBACTimelock adapters.

A timelock operation is an account of its own, so scheduling stages it
first: initialize_operation, one append_instructions per instruction,
finalize_operation, then schedule_batch. Bypass stages a bypasser
operation the same way before bypasser_execute_batch. Every staged step
becomes one MCMS operation signed for by the mcm signer PDA.

Account reads (``ChainClient.read``):

  TimelockConfig    {proposer,executor,canceller,bypasserRoleAccessController, minDelay}
  AccessController  {accessList: [base58 keys]}
  Operation         {state: Initialized|Finalized|Scheduled|Done, timestamp}
"""

from typing import Dict, List, Sequence, Tuple

from ..crypto.hashing import keccak256
from ..exceptions import InvalidTimelockOperation, OperationNotFound
from ..logger import get_logger
from ..sdk.client import ChainClient, read_state
from ..sdk.interfaces import TimelockConverter, TimelockExecutor, TimelockInspector
from ..types.chain_selector import ChainFamily
from ..types.operation import BatchOperation, ChainMetadata, Operation, TransactionResult
from ..types.timelock import Duration, TimelockAction
from . import instructions as ix
from .address import (
    decode_pubkey,
    encode_pubkey,
    find_signer_pda,
    find_timelock_bypasser_operation_pda,
    find_timelock_config_pda,
    find_timelock_operation_pda,
    find_timelock_signer_pda,
    parse_contract_address,
    parse_program_id,
)
from .configurer import run_pipeline
from .fields import AdditionalFields, transaction_from_instruction, validate_chain_metadata
from .instructions import AccountMeta, InstructionData

logger = get_logger(__name__)

TIMELOCK_CONTRACT_TYPE = "RBACTimelock"

STATE_SCHEDULED = "Scheduled"
STATE_DONE = "Done"


# ══════════════════════════════════════════════════════════════════════
#  OPERATION ID
# ══════════════════════════════════════════════════════════════════════

def batch_to_instruction_data(bop: BatchOperation) -> Tuple[List[InstructionData], List[str]]:
    batch = []
    tags: List[str] = []
    for tx in bop.transactions:
        fields = AdditionalFields.from_dict(tx.additional_fields)
        batch.append(InstructionData(parse_program_id(tx.to), tx.data, list(fields.accounts)))
        tags.extend(tx.tags)
    return batch, tags


def hash_operation(batch: Sequence[InstructionData], predecessor: bytes, salt: bytes) -> bytes:
    """
    Timelock operation id.

    keccak256 over the instruction count, then per instruction its program
    id, accounts (key, signer flag, writable flag) and data, each list
    u32 little-endian length-prefixed, then predecessor and salt.
    """
    buffers = [ix.u32(len(batch))]
    for instruction in batch:
        buffers.append(ix.fixed(instruction.program_id, 32))
        buffers.append(ix.u32(len(instruction.accounts)))
        for meta in instruction.accounts:
            buffers.append(meta.key_bytes + ix.boolean(meta.is_signer) + ix.boolean(meta.is_writable))
        buffers.append(ix.byte_vec(instruction.data))
    buffers.append(ix.fixed(bytes(predecessor), 32))
    buffers.append(ix.fixed(bytes(salt), 32))
    return keccak256(b"".join(buffers))


def remaining_accounts(batch: Sequence[InstructionData]) -> List[AccountMeta]:
    """Program ids and accounts the timelock needs to invoke ``batch``, deduplicated in order."""
    seen: Dict[str, int] = {}
    accounts: List[AccountMeta] = []
    for instruction in batch:
        metas = [AccountMeta(encode_pubkey(instruction.program_id))] + list(instruction.accounts)
        for meta in metas:
            plain = AccountMeta(meta.public_key, False, meta.is_writable)
            if meta.public_key in seen:
                index = seen[meta.public_key]
                if plain.is_writable and not accounts[index].is_writable:
                    accounts[index] = plain
                continue
            seen[meta.public_key] = len(accounts)
            accounts.append(plain)
    return accounts


# ══════════════════════════════════════════════════════════════════════
#  CONVERTER
# ══════════════════════════════════════════════════════════════════════

class SolanaTimelockConverter(TimelockConverter):
    """Role access controllers come from the chain metadata additional fields."""

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
        controllers = validate_chain_metadata(metadata)
        program_id, seed = parse_contract_address(timelock_address)
        mcm_program, mcm_seed = parse_contract_address(mcm_address)
        authority = find_signer_pda(mcm_program, mcm_seed)
        config_pda = find_timelock_config_pda(program_id, seed)

        batch, tags = batch_to_instruction_data(bop)
        op_id = hash_operation(batch, predecessor, salt)

        if action == TimelockAction.SCHEDULE:
            controller = decode_pubkey(controllers.proposer_role_access_controller)
            op_pda = find_timelock_operation_pda(program_id, seed, op_id)
            common = (op_pda, config_pda, controller, authority)
            instructions = [ix.initialize_operation(program_id, seed, op_id, predecessor, salt, len(batch), *common)]
            instructions += [ix.append_instructions(program_id, seed, op_id, [item], *common) for item in batch]
            instructions.append(ix.finalize_operation(program_id, seed, op_id, *common))
            instructions.append(ix.schedule_batch(program_id, seed, op_id, Duration.parse(delay).seconds, *common))
        elif action == TimelockAction.CANCEL:
            controller = decode_pubkey(controllers.canceller_role_access_controller)
            op_pda = find_timelock_operation_pda(program_id, seed, op_id)
            instructions = [ix.cancel(program_id, seed, op_id, op_pda, config_pda, controller, authority)]
        elif action == TimelockAction.BYPASS:
            controller = decode_pubkey(controllers.bypasser_role_access_controller)
            op_pda = find_timelock_bypasser_operation_pda(program_id, seed, op_id)
            common = (op_pda, config_pda, controller, authority)
            instructions = [ix.initialize_bypasser_operation(program_id, seed, op_id, salt, len(batch), *common)]
            instructions += [ix.append_bypasser_instructions(program_id, seed, op_id, [item], *common) for item in batch]
            instructions.append(ix.finalize_bypasser_operation(program_id, seed, op_id, *common))
            instructions.append(ix.bypasser_execute_batch(
                program_id, seed, op_id, op_pda, config_pda,
                find_timelock_signer_pda(program_id, seed), controller, authority,
                remaining=remaining_accounts(batch),
            ))
        else:
            raise InvalidTimelockOperation(f"invalid timelock operation: {action}")

        ops = [
            Operation(bop.chain_selector, transaction_from_instruction(i, TIMELOCK_CONTRACT_TYPE, tags))
            for i in instructions
        ]
        return ops, op_id


# ══════════════════════════════════════════════════════════════════════
#  INSPECTOR / EXECUTOR
# ══════════════════════════════════════════════════════════════════════

class SolanaTimelockInspector(TimelockInspector):

    def __init__(self, client: ChainClient):
        self.client = client

    def _config(self, address: str) -> dict:
        program_id, seed = parse_contract_address(address)
        return read_state(self.client, encode_pubkey(find_timelock_config_pda(program_id, seed)), "TimelockConfig")

    def _role_members(self, address: str, controller_key: str) -> List[str]:
        controller = self._config(address)[controller_key]
        account = read_state(self.client, controller, "AccessController")
        return list(account.get("accessList") or [])

    def _operation(self, address: str, op_id: bytes):
        """Operation account, or None when it does not exist."""
        program_id, seed = parse_contract_address(address)
        pda = encode_pubkey(find_timelock_operation_pda(program_id, seed, op_id))
        try:
            return read_state(self.client, pda, "Operation", timelock_operation=True)
        except OperationNotFound:
            return None

    def get_proposers(self, address: str) -> List[str]:
        return self._role_members(address, "proposerRoleAccessController")

    def get_executors(self, address: str) -> List[str]:
        return self._role_members(address, "executorRoleAccessController")

    def get_bypassers(self, address: str) -> List[str]:
        return self._role_members(address, "bypasserRoleAccessController")

    def get_cancellers(self, address: str) -> List[str]:
        return self._role_members(address, "cancellerRoleAccessController")

    def is_operation(self, address: str, op_id: bytes) -> bool:
        op = self._operation(address, op_id)
        return op is not None and op.get("state") in (STATE_SCHEDULED, STATE_DONE)

    def is_operation_pending(self, address: str, op_id: bytes) -> bool:
        op = self._operation(address, op_id)
        return op is not None and op.get("state") == STATE_SCHEDULED

    def is_operation_ready(self, address: str, op_id: bytes) -> bool:
        op = self._operation(address, op_id)
        if op is None or op.get("state") != STATE_SCHEDULED:
            return False
        return int(op["timestamp"]) <= self.client.current_ledger_time()

    def is_operation_done(self, address: str, op_id: bytes) -> bool:
        op = self._operation(address, op_id)
        return op is not None and op.get("state") == STATE_DONE

    def get_min_delay(self, address: str) -> int:
        return int(self._config(address)["minDelay"])


class SolanaTimelockExecutor(SolanaTimelockInspector, TimelockExecutor):
    """
    Attributes:
        authority: base58 key holding the executor role
    """

    def __init__(self, client: ChainClient, authority: str):
        super().__init__(client)
        self.authority = authority

    def execute(
        self,
        bop: BatchOperation,
        timelock_address: str,
        predecessor: bytes,
        salt: bytes,
    ) -> TransactionResult:
        program_id, seed = parse_contract_address(timelock_address)
        batch, _ = batch_to_instruction_data(bop)
        op_id = hash_operation(batch, predecessor, salt)
        controller = self._config(timelock_address)["executorRoleAccessController"]

        instruction = ix.execute_batch(
            program_id, seed, op_id,
            operation_pda=find_timelock_operation_pda(program_id, seed, op_id),
            predecessor_operation_pda=find_timelock_operation_pda(program_id, seed, predecessor),
            config_pda=find_timelock_config_pda(program_id, seed),
            timelock_signer_pda=find_timelock_signer_pda(program_id, seed),
            role_controller=decode_pubkey(controller),
            authority=decode_pubkey(self.authority),
            remaining=remaining_accounts(batch),
        )
        logger.info(f"Executing batch 0x{op_id.hex()} of {len(batch)} instructions on timelock {timelock_address}")
        result = run_pipeline(self.client, [("executeBatch", instruction)], timelock_operation=True)
        return TransactionResult(result.tx_hash, ChainFamily.SOLANA, timelock_address, result.raw)
