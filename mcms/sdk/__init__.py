"""
MCMS adapter SDK

Interfaces every chain family implements and the chain-client boundary
they submit through. Family dispatch lives in ``mcms.sdk.registry``.
"""

from .client import ChainClient, CreatedEvent, SubmitResult, read_state, submit_step
from .interfaces import (
    Configurer,
    Encoder,
    Executor,
    Inspector,
    StateCache,
    TimelockConverter,
    TimelockExecutor,
    TimelockInspector,
)

__all__ = [
    # Chain client
    'ChainClient',
    'CreatedEvent',
    'SubmitResult',
    'read_state',
    'submit_step',
    # Adapters
    'Configurer',
    'Encoder',
    'Executor',
    'Inspector',
    'StateCache',
    'TimelockConverter',
    'TimelockExecutor',
    'TimelockInspector',
]
