"""
EVM chain family: ManyChainMultiSig and RBACTimelock adapters.
"""

from .configurer import EVMConfigurer
from .encoder import EVMEncoder
from .executor import EVMExecutor
from .fields import AdditionalFields, new_transaction
from .inspector import EVMInspector
from .timelock import EVMTimelockConverter, EVMTimelockExecutor, EVMTimelockInspector

__all__ = [
    'AdditionalFields',
    'EVMConfigurer',
    'EVMEncoder',
    'EVMExecutor',
    'EVMInspector',
    'EVMTimelockConverter',
    'EVMTimelockExecutor',
    'EVMTimelockInspector',
    'new_transaction',
]
