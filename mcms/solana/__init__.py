"""
Solana chain family: mcm and timelock program adapters.

Contract addresses are "<programID>.<seed>"; every on-chain account the
adapters touch is a PDA derived from the program id and the seed.
"""

from .address import contract_address, find_signer_pda, parse_contract_address
from .configurer import SolanaConfigurer
from .encoder import SolanaEncoder
from .executor import SolanaExecutor
from .fields import AdditionalFields, MetadataFields, new_chain_metadata, new_transaction, transaction_from_instruction
from .inspector import SolanaInspector
from .instructions import AccountMeta, Instruction
from .timelock import SolanaTimelockConverter, SolanaTimelockExecutor, SolanaTimelockInspector

__all__ = [
    'AccountMeta',
    'AdditionalFields',
    'Instruction',
    'MetadataFields',
    'SolanaConfigurer',
    'SolanaEncoder',
    'SolanaExecutor',
    'SolanaInspector',
    'SolanaTimelockConverter',
    'SolanaTimelockExecutor',
    'SolanaTimelockInspector',
    'contract_address',
    'find_signer_pda',
    'new_chain_metadata',
    'new_transaction',
    'parse_contract_address',
    'transaction_from_instruction',
]
