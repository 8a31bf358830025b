"""
MCMS Configuration

Loads all sections of mcms.toml.
Environment variables override TOML values.
"""

from .loader import (
    AdapterConfig,
    CantonConfig,
    ChainEntry,
    EVMConfig,
    LoggingConfig,
    ProposalConfig,
    SolanaConfig,
    load_config,
)

__all__ = [
    "AdapterConfig",
    "CantonConfig",
    "ChainEntry",
    "EVMConfig",
    "LoggingConfig",
    "ProposalConfig",
    "SolanaConfig",
    "load_config",
]
