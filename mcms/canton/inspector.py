"""
Canton MCMS inspector.

``ChainClient.read(contract_id, "MCMS")`` returns the active contract's
payload as a dict::

    {"mcmsId": ...,
     "config": {"signers": [{signerAddress, signerGroup, signerIndex}],
                "groupQuorums": [...], "groupParents": [...]},
     "expiringRoot": {"root": <hex>, "validUntil": <Daml Time>, "opCount": n},
     "rootMetadata": {"chainId", "multisigId", "preOpCount", "postOpCount", "overridePreviousRoot"},
     "proposer": {"config": {...}}, "canceller": {...}, "bypasser": {...}}

validUntil is a Daml Time (ISO-8601 string or microseconds) and
get_root returns it as unix seconds. A contract id that is no longer active
reads as "not found".
"""

from typing import Tuple

from eth_utils import decode_hex, to_checksum_address

from ..sdk.client import ChainClient, read_state
from ..sdk.interfaces import Inspector, StateCache
from ..types.config import QuorumConfig, unflatten_config
from ..types.operation import ChainMetadata
from .encoding import ledger_time_to_unix, strip_hex_prefix


def config_from_contract(config: dict) -> QuorumConfig:
    signers = config.get("signers") or []
    return unflatten_config(
        [to_checksum_address("0x" + strip_hex_prefix(s["signerAddress"])) for s in signers],
        [int(s["signerGroup"]) for s in signers],
        [int(q) for q in config.get("groupQuorums") or []],
        [int(p) for p in config.get("groupParents") or []],
    )


class CantonInspector(Inspector):

    def __init__(self, client: ChainClient):
        self.client = client
        self._cache = StateCache()

    def invalidate_cache(self) -> None:
        self._cache.invalidate()

    def contract(self, mcm_address: str) -> dict:
        return self._cache.get(mcm_address, "MCMS", lambda: read_state(self.client, mcm_address, "MCMS"))

    def get_config(self, mcm_address: str) -> QuorumConfig:
        return config_from_contract(self.contract(mcm_address)["config"])

    def get_op_count(self, mcm_address: str) -> int:
        return int(self.contract(mcm_address)["expiringRoot"]["opCount"])

    def get_root(self, mcm_address: str) -> Tuple[bytes, int]:
        expiring = self.contract(mcm_address)["expiringRoot"]
        root = decode_hex(strip_hex_prefix(expiring.get("root") or "")).rjust(32, b"\x00")
        return root, ledger_time_to_unix(expiring["validUntil"])

    def get_root_metadata(self, mcm_address: str) -> ChainMetadata:
        contract = self.contract(mcm_address)
        return ChainMetadata(
            starting_op_count=int(contract["rootMetadata"]["preOpCount"]),
            mcm_address=contract.get("mcmsId") or mcm_address,
        )
