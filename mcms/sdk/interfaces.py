"""
Adapter interfaces every chain family implements.

Each family ships one class per interface below. The classes agree in shape
and differ only in wire encoding; the proposal core never looks past these
methods.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..types.config import QuorumConfig
from ..types.operation import (
    BatchOperation,
    ChainMetadata,
    Operation,
    TransactionResult,
)
from ..types.signature import Signature
from ..types.timelock import Duration, TimelockAction


# ══════════════════════════════════════════════════════════════════════
#  LEAF ENCODING
# ══════════════════════════════════════════════════════════════════════

class Encoder(ABC):
    """
    Produces the Merkle leaves the on-chain contract recomputes.

    Attributes:
        chain_selector: Selector the leaves are bound to
        tx_count: Operations this proposal carries for the chain
        override_previous_root: Folded into the metadata leaf
    """

    def __init__(self, chain_selector: int, tx_count: int, override_previous_root: bool):
        self.chain_selector = chain_selector
        self.tx_count = tx_count
        self.override_previous_root = override_previous_root

    @abstractmethod
    def hash_operation(self, op_count: int, metadata: ChainMetadata, op: Operation) -> bytes:
        """
        Leaf of one operation.

        Args:
            op_count: Absolute on-chain nonce the operation executes at
            metadata: Chain metadata of the operation's chain
            op: The operation
        """
        ...

    @abstractmethod
    def hash_metadata(self, metadata: ChainMetadata) -> bytes:
        """Leaf of the chain metadata (op-count window and override flag)."""
        ...


# ══════════════════════════════════════════════════════════════════════
#  MCM CONTRACT
# ══════════════════════════════════════════════════════════════════════

class Configurer(ABC):
    """
    Pushes quorum configs on chain.

    A configurer built with an ``inspector`` invalidates that inspector's
    cached state after every successful set_config.
    """

    inspector: Optional["Inspector"] = None

    def _config_changed(self) -> None:
        if self.inspector is not None:
            self.inspector.invalidate_cache()

    @abstractmethod
    def set_config(self, mcm_address: str, cfg: QuorumConfig, clear_root: bool) -> TransactionResult:
        """Push ``cfg`` to the contract, optionally invalidating the current root."""
        ...


class Inspector(ABC):
    """Read-only view of an MCM contract."""

    @abstractmethod
    def get_config(self, mcm_address: str) -> QuorumConfig:
        """Live config, unflattened and validated."""
        ...

    @abstractmethod
    def get_op_count(self, mcm_address: str) -> int:
        ...

    @abstractmethod
    def get_root(self, mcm_address: str) -> Tuple[bytes, int]:
        """Current root and its valid-until timestamp."""
        ...

    @abstractmethod
    def get_root_metadata(self, mcm_address: str) -> ChainMetadata:
        ...

    def invalidate_cache(self) -> None:
        """Drop any cached contract state. Called after every mutating call."""
        pass


class Executor(ABC):
    """
    Submits roots and operations.

    Attributes:
        encoder: Leaf encoder for the proposal being executed
        inspector: Inspector for the same chain
    """

    encoder: Encoder
    inspector: Inspector

    @abstractmethod
    def set_root(
        self,
        metadata: ChainMetadata,
        proof: Sequence[bytes],
        root: bytes,
        valid_until: int,
        sorted_signatures: Sequence[Signature],
    ) -> TransactionResult:
        ...

    @abstractmethod
    def execute_operation(
        self,
        metadata: ChainMetadata,
        nonce: int,
        proof: Sequence[bytes],
        op: Operation,
    ) -> TransactionResult:
        ...


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK
# ══════════════════════════════════════════════════════════════════════

class TimelockConverter(ABC):

    @abstractmethod
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
        """
        Expand a batch into the MCMS-routed operations for ``action``.

        Returns:
            (operations, operation_id); the id does not depend on ``action``
        """
        ...


class TimelockInspector(ABC):
    """
    Role and operation-state queries.

    Operation states: absent, pending (scheduled, not done), ready (pending
    and unlocked by chain time) and done. A cancelled id reads as absent.
    """

    @abstractmethod
    def get_proposers(self, address: str) -> List[str]:
        ...

    @abstractmethod
    def get_executors(self, address: str) -> List[str]:
        ...

    @abstractmethod
    def get_bypassers(self, address: str) -> List[str]:
        ...

    @abstractmethod
    def get_cancellers(self, address: str) -> List[str]:
        ...

    @abstractmethod
    def is_operation(self, address: str, op_id: bytes) -> bool:
        ...

    @abstractmethod
    def is_operation_pending(self, address: str, op_id: bytes) -> bool:
        ...

    @abstractmethod
    def is_operation_ready(self, address: str, op_id: bytes) -> bool:
        ...

    @abstractmethod
    def is_operation_done(self, address: str, op_id: bytes) -> bool:
        ...

    @abstractmethod
    def get_min_delay(self, address: str) -> int:
        """Minimum delay in seconds."""
        ...


class TimelockExecutor(TimelockInspector):

    @abstractmethod
    def execute(
        self,
        bop: BatchOperation,
        timelock_address: str,
        predecessor: bytes,
        salt: bytes,
    ) -> TransactionResult:
        """Run a scheduled batch once it is ready."""
        ...


# ══════════════════════════════════════════════════════════════════════
#  READ CACHE
# ══════════════════════════════════════════════════════════════════════

class StateCache:
    """
    Last-read contract state, keyed by query, for a single address.

    Switching to another address drops everything. Callers invalidate after
    any mutating call on the cached address.
    """

    def __init__(self):
        self._address: Optional[str] = None
        self._entries: Dict[str, Any] = {}

    def get(self, address: str, key: str, loader: Callable[[], Any]) -> Any:
        if address != self._address:
            self.invalidate()
            self._address = address
        if key not in self._entries:
            self._entries[key] = loader()
        return self._entries[key]

    def invalidate(self) -> None:
        self._address = None
        self._entries.clear()
