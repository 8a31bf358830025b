"""
Chain client boundary.

Concrete RPC or ledger clients live outside this package. Adapters only see
``ChainClient``: a synchronous submit, a state query and the chain's own
clock. A client signals an on-chain rejection by raising ChainClientError;
adapters translate that into the MCMS error taxonomy with the failing step
attached.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import ChainClientError, classify_chain_error
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class CreatedEvent:
    """A resource created by a transaction (contract id plus its template)."""
    contract_id: str
    template_id: str = ""


@dataclass
class SubmitResult:
    """
    Attributes:
        tx_hash: Transaction hash, signature or update id
        created: Resources created by the transaction, in event order
        raw: Client-specific response
    """
    tx_hash: str
    created: List[CreatedEvent] = field(default_factory=list)
    raw: Any = None


class ChainClient(ABC):
    """
    Synchronous transport to one chain.

    Implementations block until the transaction is confirmed and raise
    ChainClientError when the chain rejects it. Timeouts and cancellation
    belong to the implementation; adapters never catch anything but
    ChainClientError.
    """

    @abstractmethod
    def submit(self, contract_address: str, entrypoint: str, arguments: Dict[str, Any]) -> SubmitResult:
        """Send one mutating call and wait for confirmation."""
        ...

    @abstractmethod
    def read(self, contract_address: str, query: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Run a read-only query against on-chain state."""
        ...

    @abstractmethod
    def current_ledger_time(self) -> int:
        """Latest block or ledger time, in unix seconds."""
        ...


def submit_step(
    client: ChainClient,
    contract_address: str,
    entrypoint: str,
    arguments: Dict[str, Any],
    step: str,
    timelock_operation: bool = False,
) -> SubmitResult:
    """
    Submit one pipeline step, translating client failures.

    ``timelock_operation`` marks calls that address a timelock operation id,
    so ledger "not ready" / "not found" rejections map onto
    OperationNotReady / OperationNotFound.

    Raises:
        SubmissionFailed: (or a subclass) naming ``step``
    """
    logger.debug(f"[{step}] submitting {entrypoint} to {contract_address}")
    try:
        result = client.submit(contract_address, entrypoint, arguments)
    except ChainClientError as exc:
        logger.error(f"[{step}] {entrypoint} on {contract_address} failed: {exc}")
        raise classify_chain_error(exc, step, timelock_operation) from exc
    logger.info(f"{entrypoint} on {contract_address} confirmed, tx {result.tx_hash}")
    return result


def read_state(
    client: ChainClient,
    contract_address: str,
    query: str,
    arguments: Optional[Dict[str, Any]] = None,
    timelock_operation: bool = False,
) -> Any:
    """Run a query, translating client failures with the query name as step."""
    try:
        return client.read(contract_address, query, arguments)
    except ChainClientError as exc:
        raise classify_chain_error(exc, query, timelock_operation) from exc
