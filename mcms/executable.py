"""
Driving signed proposals on chain.

  - Signable: checks collected signatures against each chain's live config
  - Executable: set_root per chain, then execute each operation with its proof
  - TimelockExecutable: runs scheduled batches once the timelock allows it

Mutating calls may return a new contract identity (ledgers that re-create
contracts on every call). It is written back into the proposal so the next
call targets the live contract.
"""

from typing import Dict, List, Mapping, Union

from .exceptions import InvalidTimelockOperation, QuorumNotReached, ValidationError
from .logger import get_logger
from .proposal import Proposal, TimelockProposal
from .sdk.interfaces import Encoder, Executor, Inspector, TimelockExecutor
from .types.operation import ChainMetadata, TransactionResult
from .types.signature import sort_signatures
from .types.timelock import TimelockAction

logger = get_logger(__name__)

AnyProposal = Union[Proposal, TimelockProposal]


def _as_proposal(proposal: AnyProposal) -> Proposal:
    if isinstance(proposal, TimelockProposal):
        return proposal.convert()[0]
    return proposal


class Signable:

    def __init__(self, proposal: AnyProposal, inspectors: Mapping[int, Inspector]):
        self.proposal = _as_proposal(proposal)
        self.inspectors = inspectors

    def recovered_signers(self) -> List[str]:
        signing_hash = self.proposal.signing_hash()
        return [sig.recover(signing_hash) for sig in self.proposal.signatures]

    def validate_signatures(self) -> None:
        """
        Raises:
            InvalidConfig: a signature recovers to an address outside a chain's config
            QuorumNotReached: a chain's config is not satisfied by the signatures
        """
        signers = self.recovered_signers()
        for selector in self.proposal.chain_selectors():
            inspector = self.inspectors.get(selector)
            if inspector is None:
                raise ValidationError(f"no inspector for chain {selector}")
            metadata = self.proposal.chain_metadata[selector]
            config = inspector.get_config(metadata.mcm_address)
            if not config.can_set_root(signers):
                raise QuorumNotReached(f"quorum not reached for chain {selector} with {len(signers)} signatures")


class Executable:
    """
    Attributes:
        proposal: The (converted) proposal being executed
        executors: Per-selector executors
    """

    def __init__(self, proposal: AnyProposal, executors: Mapping[int, Executor]):
        self.proposal = _as_proposal(proposal)
        self.executors = executors
        self.encoders: Dict[int, Encoder] = self.proposal.get_encoders()
        self.tx_nonces = self.proposal.transaction_nonces()
        self.tree = self.proposal.merkle_tree()

    def _executor(self, selector: int) -> Executor:
        executor = self.executors.get(selector)
        if executor is None:
            raise ValidationError(f"no executor for chain {selector}")
        return executor

    def _track(self, selector: int, result: TransactionResult) -> TransactionResult:
        metadata = self.proposal.chain_metadata[selector]
        if result.contract_address and result.contract_address.lower() != metadata.mcm_address.lower():
            logger.info(f"Chain {selector}: MCM contract is now {result.contract_address}")
            self.proposal.chain_metadata[selector] = ChainMetadata(
                metadata.starting_op_count, result.contract_address, metadata.additional_fields
            )
        return result

    def tx_nonce(self, index: int) -> int:
        if index >= len(self.tx_nonces):
            raise IndexError(f"index out of range: {index} >= {len(self.tx_nonces)}")
        return self.tx_nonces[index]

    def set_root(self, selector: int) -> TransactionResult:
        metadata = self.proposal.chain_metadata[selector]
        proof = self.tree.get_proof(self.encoders[selector].hash_metadata(metadata))
        signing_hash = self.proposal.signing_hash()
        signatures = sort_signatures(self.proposal.signatures, signing_hash)
        result = self._executor(selector).set_root(
            metadata, proof, self.tree.root, self.proposal.valid_until, signatures
        )
        return self._track(selector, result)

    def execute(self, index: int) -> TransactionResult:
        op = self.proposal.operations[index]
        selector = op.chain_selector
        metadata = self.proposal.chain_metadata[selector]
        nonce = self.tx_nonce(index)
        proof = self.tree.get_proof(self.encoders[selector].hash_operation(nonce, metadata, op))
        result = self._executor(selector).execute_operation(metadata, nonce, proof, op)
        return self._track(selector, result)


class TimelockExecutable:

    def __init__(self, proposal: TimelockProposal, executors: Mapping[int, TimelockExecutor]):
        if TimelockAction.parse(proposal.action) != TimelockAction.SCHEDULE:
            raise InvalidTimelockOperation(
                "TimelockExecutable can only be created from a TimelockProposal with action 'schedule'"
            )
        self.proposal = proposal
        self.executors = executors
        _, self.predecessors = proposal.convert()
        self.operation_ids = proposal.operation_ids()

    def is_ready(self) -> bool:
        """Every batch is scheduled and past its delay."""
        for index, bop in enumerate(self.proposal.operations):
            selector = bop.chain_selector
            timelock = self.proposal.timelock_addresses[selector]
            if not self.executors[selector].is_operation_ready(timelock, self.operation_ids[index]):
                logger.debug(f"Batch {index} (0x{self.operation_ids[index].hex()}) is not ready")
                return False
        return True

    def execute(self, index: int) -> TransactionResult:
        bop = self.proposal.operations[index]
        selector = bop.chain_selector
        timelock = self.proposal.timelock_addresses[selector]
        result = self.executors[selector].execute(
            bop, timelock, self.predecessors[index], self.proposal.salt()
        )
        if result.contract_address and result.contract_address.lower() != timelock.lower():
            self.proposal.timelock_addresses[selector] = result.contract_address
        return result
