"""
EVM ManyChainMultiSig configurer.

The EVM contract accepts the whole flat config in a single setConfig call,
so the staging pipeline collapses to one transaction.
"""

from typing import Optional

from ..constants import EVM_MAX_SIGNERS
from ..logger import get_logger
from ..sdk.client import ChainClient, submit_step
from ..sdk.interfaces import Configurer, Inspector
from ..types.chain_selector import ChainFamily
from ..types.config import QuorumConfig, flatten_config
from ..types.operation import TransactionResult
from .abi import encode_call
from .fields import parse_address

logger = get_logger(__name__)


class EVMConfigurer(Configurer):

    def __init__(
        self,
        client: ChainClient,
        max_signers: int = EVM_MAX_SIGNERS,
        inspector: Optional[Inspector] = None,
    ):
        self.client = client
        self.max_signers = max_signers
        self.inspector = inspector

    def set_config(self, mcm_address: str, cfg: QuorumConfig, clear_root: bool) -> TransactionResult:
        address = parse_address(mcm_address, "MCM address")
        flat = flatten_config(cfg, self.max_signers)
        logger.info(
            f"Setting config on {address}: {len(flat.signer_addresses)} signers, "
            f"{flat.num_groups} groups, clear_root={clear_root}"
        )
        data = encode_call(
            "setConfig",
            flat.signer_addresses,
            flat.signer_groups,
            flat.group_quorums,
            flat.group_parents,
            clear_root,
        )
        result = submit_step(self.client, address, "setConfig", {"data": data, "value": 0}, step="setConfig")
        self._config_changed()
        return TransactionResult(
            hash=result.tx_hash,
            chain_family=ChainFamily.EVM,
            contract_address=address,
            raw_data=result.raw,
        )
