"""
Solana mcm inspector.

Account reads go through ``ChainClient.read(pda, account_type)``, which
returns the Borsh-decoded account as a dict:

  MultisigConfig          {groupQuorums, groupParents, signers: [{evmAddress, index, group}]}
  ExpiringRootAndOpCount  {root, validUntil, opCount}
  RootMetadata            {chainId, multisig, preOpCount, postOpCount, overridePreviousRoot}
"""

from typing import Any, Tuple

from eth_utils import decode_hex, to_checksum_address

from ..sdk.client import ChainClient, read_state
from ..sdk.interfaces import Inspector, StateCache
from ..types.config import QuorumConfig, unflatten_config
from ..types.operation import ChainMetadata
from .address import (
    encode_pubkey,
    find_config_pda,
    find_expiring_root_and_op_count_pda,
    find_root_metadata_pda,
    parse_contract_address,
)


def as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        return bytes(value)
    return decode_hex(value)


class SolanaInspector(Inspector):

    def __init__(self, client: ChainClient):
        self.client = client
        self._cache = StateCache()

    def invalidate_cache(self) -> None:
        self._cache.invalidate()

    def _read(self, mcm_address: str, find_pda, account_type: str) -> dict:
        program_id, seed = parse_contract_address(mcm_address)
        pda = encode_pubkey(find_pda(program_id, seed))
        return read_state(self.client, pda, account_type)

    def get_config(self, mcm_address: str) -> QuorumConfig:
        account = self._cache.get(
            mcm_address,
            "MultisigConfig",
            lambda: self._read(mcm_address, find_config_pda, "MultisigConfig"),
        )
        signers = account.get("signers") or []
        return unflatten_config(
            [to_checksum_address(as_bytes(s["evmAddress"])) for s in signers],
            [int(s["group"]) for s in signers],
            list(account["groupQuorums"]),
            list(account["groupParents"]),
        )

    def get_op_count(self, mcm_address: str) -> int:
        account = self._read(mcm_address, find_expiring_root_and_op_count_pda, "ExpiringRootAndOpCount")
        return int(account["opCount"])

    def get_root(self, mcm_address: str) -> Tuple[bytes, int]:
        account = self._read(mcm_address, find_expiring_root_and_op_count_pda, "ExpiringRootAndOpCount")
        return as_bytes(account["root"]), int(account["validUntil"])

    def get_root_metadata(self, mcm_address: str) -> ChainMetadata:
        account = self._read(mcm_address, find_root_metadata_pda, "RootMetadata")
        return ChainMetadata(
            starting_op_count=int(account["preOpCount"]),
            mcm_address=mcm_address,
        )
