"""
MCMS Types Module

Chain-agnostic data model shared by the proposal core and every adapter.
"""

from .chain_selector import (
    ChainDetails,
    ChainFamily,
    ChainSelector,
    get_chain_details,
    get_chain_family,
    get_evm_chain_id,
    register_chain,
)
from .config import (
    FlatConfig,
    QuorumConfig,
    flatten_config,
    normalize_address,
    unflatten_config,
)
from .operation import (
    BatchOperation,
    ChainMetadata,
    Operation,
    Transaction,
    TransactionResult,
)
from .signature import Signature, require_sorted_signatures, sort_signatures
from .timelock import Duration, TimelockAction

__all__ = [
    # Chains
    'ChainDetails',
    'ChainFamily',
    'ChainSelector',
    'get_chain_details',
    'get_chain_family',
    'get_evm_chain_id',
    'register_chain',
    # Config
    'FlatConfig',
    'QuorumConfig',
    'flatten_config',
    'normalize_address',
    'unflatten_config',
    # Operations
    'BatchOperation',
    'ChainMetadata',
    'Operation',
    'Transaction',
    'TransactionResult',
    # Signatures
    'Signature',
    'require_sorted_signatures',
    'sort_signatures',
    # Timelock
    'Duration',
    'TimelockAction',
]
