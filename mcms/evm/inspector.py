"""
EVM ManyChainMultiSig inspector.
"""

from typing import Tuple

from eth_utils import to_checksum_address

from ..sdk.client import ChainClient, read_state
from ..sdk.interfaces import Inspector, StateCache
from ..types.config import QuorumConfig, unflatten_config
from ..types.operation import ChainMetadata
from .abi import decode_result, encode_call


class EVMInspector(Inspector):

    def __init__(self, client: ChainClient):
        self.client = client
        self._cache = StateCache()

    def invalidate_cache(self) -> None:
        self._cache.invalidate()

    def _call(self, address: str, name: str) -> Tuple:
        raw = read_state(self.client, address, name, {"data": encode_call(name)})
        return decode_result(name, raw)

    def get_config(self, mcm_address: str) -> QuorumConfig:
        (signers, quorums, parents), = self._cache.get(
            mcm_address, "getConfig", lambda: self._call(mcm_address, "getConfig")
        )
        return unflatten_config(
            [to_checksum_address(s[0]) for s in signers],
            [s[2] for s in signers],
            list(quorums),
            list(parents),
        )

    def get_op_count(self, mcm_address: str) -> int:
        (op_count,) = self._call(mcm_address, "getOpCount")
        return int(op_count)

    def get_root(self, mcm_address: str) -> Tuple[bytes, int]:
        root, valid_until = self._call(mcm_address, "getRoot")
        return bytes(root), int(valid_until)

    def get_root_metadata(self, mcm_address: str) -> ChainMetadata:
        (meta,) = self._call(mcm_address, "getRootMetadata")
        _chain_id, multisig, pre_op_count, _post_op_count, _override = meta
        return ChainMetadata(
            starting_op_count=int(pre_op_count),
            mcm_address=to_checksum_address(multisig),
        )
