"""
MCMS TOML Configuration Loader

Loads every section of mcms.toml with environment variable overrides.

Environment variable mapping:
    [logging] level              → MCMS_LOG_LEVEL
    [evm] simulated_backend      → MCMS_EVM_SIMULATED_BACKEND
    [solana] max_signers         → MCMS_SOLANA_MAX_SIGNERS
    [canton] party               → MCMS_CANTON_PARTY
    ...
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..constants import (
    CANTON_MCMS_TEMPLATE_KEY,
    DEFAULT_VALID_FOR_SECONDS,
    EVM_MAX_SIGNERS,
    PROPOSAL_VERSION,
    SOLANA_APPEND_SIGNATURES_BATCH_SIZE,
    SOLANA_APPEND_SIGNERS_BATCH_SIZE,
    SOLANA_MAX_SIGNERS,
)
from ..types.chain_selector import ChainDetails, ChainFamily, register_chain

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Section dataclasses, one per [section] of mcms.toml
# ---------------------------------------------------------------------------


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False
    file_path: str = "logs/mcms.log"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=data.get("level", "INFO"),
            file_output=data.get("file_output", False),
            file_path=data.get("file_path", "logs/mcms.log"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("MCMS_LOG_LEVEL"):
            self.level = v.upper()
        if v := os.environ.get("MCMS_LOG_FILE_OUTPUT"):
            self.file_output = _env_bool(v)
        if v := os.environ.get("MCMS_LOG_FILE_PATH"):
            self.file_path = v


@dataclass
class EVMConfig:
    """[evm] section."""
    simulated_backend: bool = False
    max_signers: int = EVM_MAX_SIGNERS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EVMConfig":
        return cls(
            simulated_backend=data.get("simulated_backend", False),
            max_signers=data.get("max_signers", EVM_MAX_SIGNERS),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("MCMS_EVM_SIMULATED_BACKEND"):
            self.simulated_backend = _env_bool(v)
        if v := os.environ.get("MCMS_EVM_MAX_SIGNERS"):
            self.max_signers = int(v)


@dataclass
class SolanaConfig:
    """[solana] section."""
    max_signers: int = SOLANA_MAX_SIGNERS
    append_signers_batch_size: int = SOLANA_APPEND_SIGNERS_BATCH_SIZE
    append_signatures_batch_size: int = SOLANA_APPEND_SIGNATURES_BATCH_SIZE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolanaConfig":
        return cls(
            max_signers=data.get("max_signers", SOLANA_MAX_SIGNERS),
            append_signers_batch_size=data.get(
                "append_signers_batch_size", SOLANA_APPEND_SIGNERS_BATCH_SIZE
            ),
            append_signatures_batch_size=data.get(
                "append_signatures_batch_size", SOLANA_APPEND_SIGNATURES_BATCH_SIZE
            ),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("MCMS_SOLANA_MAX_SIGNERS"):
            self.max_signers = int(v)
        if v := os.environ.get("MCMS_SOLANA_APPEND_SIGNERS_BATCH_SIZE"):
            self.append_signers_batch_size = int(v)
        if v := os.environ.get("MCMS_SOLANA_APPEND_SIGNATURES_BATCH_SIZE"):
            self.append_signatures_batch_size = int(v)


@dataclass
class CantonConfig:
    """[canton] section."""
    party: str = ""
    mcms_template_key: str = CANTON_MCMS_TEMPLATE_KEY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CantonConfig":
        return cls(
            party=data.get("party", ""),
            mcms_template_key=data.get("mcms_template_key", CANTON_MCMS_TEMPLATE_KEY),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("MCMS_CANTON_PARTY"):
            self.party = v


@dataclass
class ProposalConfig:
    """[proposal] section."""
    default_valid_for_seconds: int = DEFAULT_VALID_FOR_SECONDS
    version: str = PROPOSAL_VERSION

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalConfig":
        return cls(
            default_valid_for_seconds=data.get("default_valid_for_seconds", DEFAULT_VALID_FOR_SECONDS),
            version=data.get("version", PROPOSAL_VERSION),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("MCMS_PROPOSAL_VALID_FOR_SECONDS"):
            self.default_valid_for_seconds = int(v)


@dataclass
class ChainEntry:
    """One [[chains]] entry."""
    selector: int
    family: str
    chain_id: Union[int, str]
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainEntry":
        return cls(
            selector=int(data["selector"]),
            family=data["family"],
            chain_id=data["chain_id"],
            name=data.get("name", ""),
        )


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class AdapterConfig:
    """
    Unified adapter configuration.

    Loads every section of mcms.toml and applies environment variable
    overrides.
    """
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    evm: EVMConfig = field(default_factory=EVMConfig)
    solana: SolanaConfig = field(default_factory=SolanaConfig)
    canton: CantonConfig = field(default_factory=CantonConfig)
    proposal: ProposalConfig = field(default_factory=ProposalConfig)
    chains: List[ChainEntry] = field(default_factory=list)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdapterConfig":
        """Create AdapterConfig from a parsed TOML dict."""
        return cls(
            logging=LoggingConfig.from_dict(data.get("logging", {})),
            evm=EVMConfig.from_dict(data.get("evm", {})),
            solana=SolanaConfig.from_dict(data.get("solana", {})),
            canton=CantonConfig.from_dict(data.get("canton", {})),
            proposal=ProposalConfig.from_dict(data.get("proposal", {})),
            chains=[ChainEntry.from_dict(c) for c in data.get("chains", [])],
        )

    @classmethod
    def from_file(cls, config_path: str) -> "AdapterConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults plus environment overrides
        are returned instead.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomllib.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.logging.apply_env()
        self.evm.apply_env()
        self.solana.apply_env()
        self.canton.apply_env()
        self.proposal.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ValueError: on invalid config
        """
        if self.logging.level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.logging.level}")
        if not 1 <= self.evm.max_signers <= 255:
            raise ValueError("evm.max_signers must be between 1 and 255")
        if not 1 <= self.solana.max_signers <= 255:
            raise ValueError("solana.max_signers must be between 1 and 255")
        if self.solana.append_signers_batch_size < 1:
            raise ValueError("solana.append_signers_batch_size must be >= 1")
        if self.solana.append_signatures_batch_size < 1:
            raise ValueError("solana.append_signatures_batch_size must be >= 1")
        if self.proposal.default_valid_for_seconds < 1:
            raise ValueError("proposal.default_valid_for_seconds must be >= 1")
        families = {f.value for f in ChainFamily}
        for entry in self.chains:
            if entry.family not in families:
                raise ValueError(f"Unknown chain family for selector {entry.selector}: {entry.family}")
        return True

    def apply_chains(self) -> List[ChainDetails]:
        """Register every [[chains]] entry in the chain selector registry."""
        registered = []
        for entry in self.chains:
            registered.append(
                register_chain(entry.selector, entry.family, entry.chain_id, entry.name)
            )
            logger.debug("Registered chain selector=%d family=%s", entry.selector, entry.family)
        return registered

    # --- wiring -----------------------------------------------------------

    def configure_logging(self, console_output: bool = True) -> None:
        """Apply the [logging] section to the process-wide log manager."""
        from ..logger import configure_logging

        configure_logging(
            log_level=self.logging.level,
            log_file=Path(self.logging.file_path),
            console_output=console_output,
            file_output=self.logging.file_output,
        )

    def load_proposal(self, text: str):
        """
        Parse a proposal file (either kind) under this configuration.

        The file's version must match [proposal] version, and
        [evm] simulated_backend selects the simulated chain id for EVM leaves.

        Raises:
            ValidationError: on a version mismatch or an unknown kind
        """
        from ..exceptions import ValidationError
        from ..proposal import KIND_PROPOSAL, KIND_TIMELOCK_PROPOSAL, Proposal, TimelockProposal

        data = json.loads(text)
        version = data.get("version", PROPOSAL_VERSION)
        if version != self.proposal.version:
            raise ValidationError(
                f"unsupported proposal version: {version}, expected {self.proposal.version}"
            )
        kind = data.get("kind", KIND_PROPOSAL)
        if kind == KIND_TIMELOCK_PROPOSAL:
            proposal = TimelockProposal.from_dict(data)
        else:
            proposal = Proposal.from_dict(data)
        proposal.use_simulated_backend = self.evm.simulated_backend
        return proposal

    def derive_cancellation_proposal(self, proposal, metadata):
        return proposal.derive_cancellation_proposal(
            metadata, valid_for_seconds=self.proposal.default_valid_for_seconds
        )

    def derive_bypass_proposal(self, proposal, metadata):
        return proposal.derive_bypass_proposal(
            metadata, valid_for_seconds=self.proposal.default_valid_for_seconds
        )

    def evm_configurer(self, client, inspector=None):
        from ..evm.configurer import EVMConfigurer

        return EVMConfigurer(client, max_signers=self.evm.max_signers, inspector=inspector)

    def solana_configurer(self, client, authority: str, inspector=None):
        from ..solana.configurer import SolanaConfigurer

        return SolanaConfigurer(
            client,
            authority,
            max_signers=self.solana.max_signers,
            batch_size=self.solana.append_signers_batch_size,
            inspector=inspector,
        )

    def solana_executor(self, encoder, client, authority: str):
        from ..solana.executor import SolanaExecutor

        return SolanaExecutor(encoder, client, authority, batch_size=self.solana.append_signatures_batch_size)

    def _canton_party(self) -> str:
        if not self.canton.party:
            raise ValueError("canton.party is required for Canton submissions")
        return self.canton.party

    def canton_configurer(self, client, inspector=None):
        from ..canton.configurer import CantonConfigurer

        return CantonConfigurer(
            client,
            template_key=self.canton.mcms_template_key,
            inspector=inspector,
        )

    def canton_executor(self, encoder, client):
        from ..canton.executor import CantonExecutor

        return CantonExecutor(encoder, client, self._canton_party(), template_key=self.canton.mcms_template_key)

    def canton_timelock_executor(self, client):
        from ..canton.timelock import CantonTimelockExecutor

        return CantonTimelockExecutor(client, self._canton_party(), template_key=self.canton.mcms_template_key)

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
                "file_path": self.logging.file_path,
            },
            "evm": {
                "simulated_backend": self.evm.simulated_backend,
                "max_signers": self.evm.max_signers,
            },
            "solana": {
                "max_signers": self.solana.max_signers,
                "append_signers_batch_size": self.solana.append_signers_batch_size,
                "append_signatures_batch_size": self.solana.append_signatures_batch_size,
            },
            "canton": {
                "party": self.canton.party,
                "mcms_template_key": self.canton.mcms_template_key,
            },
            "proposal": {
                "default_valid_for_seconds": self.proposal.default_valid_for_seconds,
                "version": self.proposal.version,
            },
            "chains": [
                {"selector": c.selector, "family": c.family, "chain_id": c.chain_id, "name": c.name}
                for c in self.chains
            ],
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> AdapterConfig:
    """
    Load adapter configuration.

    Resolution order:
        1. Explicit *path* argument
        2. MCMS_CONFIG env var
        3. ./mcms.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("MCMS_CONFIG", "mcms.toml")

    cfg = AdapterConfig.from_file(path)
    cfg.validate()
    return cfg
