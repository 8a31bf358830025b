"""
MCMS chain adapters

Proposal core and orchestration are lazily loaded so importing one chain
family does not pull in the others. For direct module access, import from
submodules:

    from mcms.types import QuorumConfig, ChainMetadata
    from mcms.evm import EVMEncoder, EVMExecutor
    from mcms.exceptions import OperationNotReady
"""


# Lazy imports to avoid loading every chain family at package import
def __getattr__(name):
    """Lazy module loading."""
    if name in ('Proposal', 'TimelockProposal'):
        from . import proposal
        return getattr(proposal, name)
    elif name in ('Executable', 'TimelockExecutable', 'Signable'):
        from . import executable
        return getattr(executable, name)
    elif name == 'SimulatedEVMClient':
        from .simulated import SimulatedEVMClient
        return SimulatedEVMClient
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'mcms' has no attribute {name!r}")

__all__ = [
    'Executable',
    'Proposal',
    'Signable',
    'SimulatedEVMClient',
    'TimelockExecutable',
    'TimelockProposal',
    'load_config',
]
