"""
Solana mcm executor.

Signatures are too large for one transaction next to the root and proof,
so set_root first preloads them into a per-authority signatures account
(init, append in chunks, finalize) and then submits set_root against it.
"""

from typing import List, Sequence, Tuple

from ..constants import SOLANA_APPEND_SIGNATURES_BATCH_SIZE
from ..crypto.hashing import root_signing_hash
from ..exceptions import TooManySigners
from ..logger import get_logger
from ..sdk.client import ChainClient
from ..sdk.interfaces import Executor
from ..types.chain_selector import ChainFamily
from ..types.operation import ChainMetadata, Operation, TransactionResult
from ..types.signature import Signature, require_sorted_signatures
from . import instructions as ix
from .address import (
    decode_pubkey,
    find_config_pda,
    find_expiring_root_and_op_count_pda,
    find_root_metadata_pda,
    find_root_signatures_pda,
    find_seen_signed_hashes_pda,
    find_signer_pda,
    parse_contract_address,
    parse_program_id,
)
from .configurer import chunk_indexes, run_pipeline
from .encoder import SolanaEncoder
from .fields import validate_transaction
from .inspector import SolanaInspector

logger = get_logger(__name__)

MAX_SIGNATURES = 255


class SolanaExecutor(Executor):

    def __init__(
        self,
        encoder: SolanaEncoder,
        client: ChainClient,
        authority: str,
        batch_size: int = SOLANA_APPEND_SIGNATURES_BATCH_SIZE,
    ):
        self.encoder = encoder
        self.inspector = SolanaInspector(client)
        self.client = client
        self.authority = authority
        self.batch_size = batch_size

    def build_set_root_instructions(
        self,
        metadata: ChainMetadata,
        proof: Sequence[bytes],
        root: bytes,
        valid_until: int,
        sorted_signatures: Sequence[Signature],
    ) -> List[Tuple[str, ix.Instruction]]:
        if len(sorted_signatures) > MAX_SIGNATURES:
            raise TooManySigners(f"too many signatures: {len(sorted_signatures)} (max {MAX_SIGNATURES})")

        program_id, seed = parse_contract_address(metadata.mcm_address)
        authority = decode_pubkey(self.authority)
        config_pda = find_config_pda(program_id, seed)
        signatures_pda = find_root_signatures_pda(program_id, seed, root, valid_until, authority)
        signatures = [(sig.v, sig.r, sig.s) for sig in sorted_signatures]

        steps = [(
            "initSignatures",
            ix.init_signatures(program_id, seed, root, valid_until, len(signatures), signatures_pda, authority),
        )]
        for i, (start, end) in enumerate(chunk_indexes(len(signatures), self.batch_size)):
            steps.append((
                f"appendSignatures{i}",
                ix.append_signatures(program_id, seed, root, valid_until, signatures[start:end], signatures_pda, authority),
            ))
        steps.append((
            "finalizeSignatures",
            ix.finalize_signatures(program_id, seed, root, valid_until, signatures_pda, authority),
        ))
        steps.append((
            "setRoot",
            ix.set_root(
                program_id, seed, root, valid_until,
                chain_id=self.encoder.chain_selector,
                multisig=config_pda,
                pre_op_count=metadata.starting_op_count,
                post_op_count=metadata.starting_op_count + self.encoder.tx_count,
                override_previous_root=self.encoder.override_previous_root,
                proof=[bytes(p) for p in proof],
                signatures_pda=signatures_pda,
                root_metadata_pda=find_root_metadata_pda(program_id, seed),
                seen_signed_hashes_pda=find_seen_signed_hashes_pda(program_id, seed, root, valid_until),
                expiring_root_pda=find_expiring_root_and_op_count_pda(program_id, seed),
                config_pda=config_pda,
                authority=authority,
            ),
        ))
        return steps

    def set_root(
        self,
        metadata: ChainMetadata,
        proof: Sequence[bytes],
        root: bytes,
        valid_until: int,
        sorted_signatures: Sequence[Signature],
    ) -> TransactionResult:
        require_sorted_signatures(sorted_signatures, root_signing_hash(root, valid_until))
        steps = self.build_set_root_instructions(metadata, proof, root, valid_until, sorted_signatures)
        logger.info(
            f"Setting root 0x{bytes(root).hex()} on {metadata.mcm_address} "
            f"with {len(sorted_signatures)} signatures in {len(steps)} transactions"
        )
        result = run_pipeline(self.client, steps)
        self.inspector.invalidate_cache()
        return TransactionResult(result.tx_hash, ChainFamily.SOLANA, metadata.mcm_address, result.raw)

    def execute_operation(
        self,
        metadata: ChainMetadata,
        nonce: int,
        proof: Sequence[bytes],
        op: Operation,
    ) -> TransactionResult:
        fields = validate_transaction(op.transaction)
        program_id, seed = parse_contract_address(metadata.mcm_address)
        instruction = ix.execute(
            program_id, seed,
            chain_id=self.encoder.chain_selector,
            nonce=nonce,
            data=op.transaction.data,
            proof=[bytes(p) for p in proof],
            config_pda=find_config_pda(program_id, seed),
            root_metadata_pda=find_root_metadata_pda(program_id, seed),
            expiring_root_pda=find_expiring_root_and_op_count_pda(program_id, seed),
            to_program=parse_program_id(op.transaction.to),
            signer_pda=find_signer_pda(program_id, seed),
            authority=decode_pubkey(self.authority),
            remaining=fields.accounts,
        )
        logger.info(f"Executing op nonce={nonce} on {metadata.mcm_address} targeting {op.transaction.to}")
        result = run_pipeline(self.client, [("execute", instruction)])
        self.inspector.invalidate_cache()
        return TransactionResult(result.tx_hash, ChainFamily.SOLANA, metadata.mcm_address, result.raw)
