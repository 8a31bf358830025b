"""
Canton chain family: adapters for the MCMS Daml template.

Contract ids change on every consuming choice. Every mutating adapter
returns the new id in ``TransactionResult.contract_address``.
"""

from .configurer import CantonConfigurer
from .encoder import CantonEncoder
from .encoding import normalize_template_key
from .executor import CantonExecutor
from .fields import AdditionalFields, MetadataFields, new_chain_metadata, new_transaction
from .inspector import CantonInspector
from .timelock import (
    CantonTimelockConverter,
    CantonTimelockExecutor,
    CantonTimelockInspector,
    hash_timelock_op_id,
)

__all__ = [
    'AdditionalFields',
    'CantonConfigurer',
    'CantonEncoder',
    'CantonExecutor',
    'CantonInspector',
    'CantonTimelockConverter',
    'CantonTimelockExecutor',
    'CantonTimelockInspector',
    'MetadataFields',
    'hash_timelock_op_id',
    'new_chain_metadata',
    'new_transaction',
    'normalize_template_key',
]
