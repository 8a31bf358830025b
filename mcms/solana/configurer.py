"""
Solana mcm configurer.

A config does not fit in one Solana transaction, so it is staged:

  1. init_signers      allocate the staging account for N signers
  2. append_signers    one transaction per chunk of signers
  3. finalize_signers  seal the staged list
  4. set_config        swap in groups, quorums and parents; optionally clear the root

Steps run strictly in order. A failure stops the pipeline and names the
step; the contract keeps whatever the earlier steps staged.
"""

from typing import List, Optional, Tuple

from eth_utils import decode_hex

from ..constants import SOLANA_APPEND_SIGNERS_BATCH_SIZE, SOLANA_MAX_SIGNERS
from ..logger import get_logger
from ..sdk.client import ChainClient, SubmitResult, submit_step
from ..sdk.interfaces import Configurer, Inspector
from ..types.chain_selector import ChainFamily
from ..types.config import QuorumConfig, flatten_config
from ..types.operation import TransactionResult
from . import instructions as ix
from .address import (
    decode_pubkey,
    find_config_pda,
    find_config_signers_pda,
    find_expiring_root_and_op_count_pda,
    find_root_metadata_pda,
    parse_contract_address,
)

logger = get_logger(__name__)


def chunk_indexes(num_items: int, chunk_size: int) -> List[Tuple[int, int]]:
    return [(i, min(i + chunk_size, num_items)) for i in range(0, num_items, chunk_size)]


def run_pipeline(
    client: ChainClient,
    steps: List[Tuple[str, ix.Instruction]],
    timelock_operation: bool = False,
) -> SubmitResult:
    """Submit instructions one by one; the returned result is the last step's."""
    result = None
    total = len(steps)
    for index, (label, instruction) in enumerate(steps):
        logger.debug(f"[step {index + 1}/{total}] {label}")
        result = submit_step(
            client,
            instruction.program_id,
            instruction.name,
            instruction.to_arguments(),
            step=f"instruction {index} - {label}",
            timelock_operation=timelock_operation,
        )
    return result


class SolanaConfigurer(Configurer):
    """
    Attributes:
        authority: base58 key of the config owner paying for the transactions
    """

    def __init__(
        self,
        client: ChainClient,
        authority: str,
        max_signers: int = SOLANA_MAX_SIGNERS,
        batch_size: int = SOLANA_APPEND_SIGNERS_BATCH_SIZE,
        inspector: Optional[Inspector] = None,
    ):
        self.client = client
        self.authority = authority
        self.max_signers = max_signers
        self.batch_size = batch_size
        self.inspector = inspector

    def build_instructions(self, mcm_address: str, cfg: QuorumConfig, clear_root: bool) -> List[Tuple[str, ix.Instruction]]:
        program_id, seed = parse_contract_address(mcm_address)
        flat = flatten_config(cfg, self.max_signers)
        authority = decode_pubkey(self.authority)
        config_pda = find_config_pda(program_id, seed)
        signers_pda = find_config_signers_pda(program_id, seed)
        signers = [decode_hex(s) for s in flat.signer_addresses]

        steps = [(
            "initSigners",
            ix.init_signers(program_id, seed, len(signers), config_pda, signers_pda, authority),
        )]
        for i, (start, end) in enumerate(chunk_indexes(len(signers), self.batch_size)):
            steps.append((
                f"appendSigners{i}",
                ix.append_signers(program_id, seed, signers[start:end], config_pda, signers_pda, authority),
            ))
        steps.append((
            "finalizeSigners",
            ix.finalize_signers(program_id, seed, config_pda, signers_pda, authority),
        ))
        steps.append((
            "setConfig",
            ix.set_config(
                program_id, seed, flat.signer_groups, flat.group_quorums, flat.group_parents, clear_root,
                config_pda, signers_pda,
                find_root_metadata_pda(program_id, seed),
                find_expiring_root_and_op_count_pda(program_id, seed),
                authority,
            ),
        ))
        return steps

    def set_config(self, mcm_address: str, cfg: QuorumConfig, clear_root: bool) -> TransactionResult:
        steps = self.build_instructions(mcm_address, cfg, clear_root)
        logger.info(f"Setting config on {mcm_address} in {len(steps)} transactions")
        result = run_pipeline(self.client, steps)
        self._config_changed()
        return TransactionResult(result.tx_hash, ChainFamily.SOLANA, mcm_address, result.raw)
