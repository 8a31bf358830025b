"""
Canton MCMS configurer.

The whole config goes in one SetConfig choice; signers are sent as
lowercase hex addresses without the 0x prefix, in the flattened order.
SetConfig takes no submitter; the acting party belongs to the ChainClient.
"""

from typing import Optional

from ..constants import CANTON_MAX_SIGNERS, CANTON_MCMS_TEMPLATE_KEY
from ..logger import get_logger
from ..sdk.client import ChainClient
from ..sdk.interfaces import Configurer, Inspector
from ..types.config import QuorumConfig, flatten_config
from ..types.operation import TransactionResult
from .encoding import strip_hex_prefix
from .exercise import exercise

logger = get_logger(__name__)


class CantonConfigurer(Configurer):

    def __init__(
        self,
        client: ChainClient,
        max_signers: int = CANTON_MAX_SIGNERS,
        template_key: str = CANTON_MCMS_TEMPLATE_KEY,
        inspector: Optional[Inspector] = None,
    ):
        self.client = client
        self.max_signers = max_signers
        self.template_key = template_key
        self.inspector = inspector

    def set_config(self, mcm_address: str, cfg: QuorumConfig, clear_root: bool) -> TransactionResult:
        flat = flatten_config(cfg, self.max_signers)
        signers = [
            {
                "signerAddress": strip_hex_prefix(address).lower(),
                "signerGroup": group,
                "signerIndex": index,
            }
            for index, (address, group) in enumerate(zip(flat.signer_addresses, flat.signer_groups))
        ]
        arguments = {
            "newSigners": signers,
            "newGroupQuorums": list(flat.group_quorums),
            "newGroupParents": list(flat.group_parents),
            "clearRoot": clear_root,
        }
        logger.info(f"Setting config on {mcm_address} with {len(signers)} signers")
        result = exercise(self.client, mcm_address, "SetConfig", arguments, step="set-config",
                          template_key=self.template_key)
        self._config_changed()
        return result
