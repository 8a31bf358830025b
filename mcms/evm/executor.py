"""
EVM ManyChainMultiSig executor.
"""

from typing import Sequence

from ..crypto.hashing import root_signing_hash
from ..logger import get_logger
from ..sdk.client import ChainClient, submit_step
from ..sdk.interfaces import Executor
from ..types.chain_selector import ChainFamily
from ..types.operation import ChainMetadata, Operation, TransactionResult
from ..types.signature import Signature, require_sorted_signatures
from .abi import encode_call
from .encoder import EVMEncoder
from .inspector import EVMInspector

logger = get_logger(__name__)


class EVMExecutor(Executor):

    def __init__(self, encoder: EVMEncoder, client: ChainClient):
        self.encoder = encoder
        self.inspector = EVMInspector(client)
        self.client = client

    def set_root(
        self,
        metadata: ChainMetadata,
        proof: Sequence[bytes],
        root: bytes,
        valid_until: int,
        sorted_signatures: Sequence[Signature],
    ) -> TransactionResult:
        require_sorted_signatures(sorted_signatures, root_signing_hash(root, valid_until))
        root_metadata = self.encoder.to_root_metadata_tuple(metadata)
        data = encode_call(
            "setRoot",
            bytes(root),
            valid_until,
            root_metadata,
            [bytes(p) for p in proof],
            [(sig.v, sig.r, sig.s) for sig in sorted_signatures],
        )
        address = root_metadata[1]
        logger.info(f"Setting root 0x{bytes(root).hex()} on {address} with {len(sorted_signatures)} signatures")
        result = submit_step(self.client, address, "setRoot", {"data": data, "value": 0}, step="setRoot")
        self.inspector.invalidate_cache()
        return TransactionResult(result.tx_hash, ChainFamily.EVM, address, result.raw)

    def execute_operation(
        self,
        metadata: ChainMetadata,
        nonce: int,
        proof: Sequence[bytes],
        op: Operation,
    ) -> TransactionResult:
        op_tuple = self.encoder.to_op_tuple(nonce, metadata, op)
        data = encode_call("execute", op_tuple, [bytes(p) for p in proof])
        address = op_tuple[1]
        logger.info(f"Executing op nonce={nonce} on {address} targeting {op_tuple[3]}")
        result = submit_step(self.client, address, "execute", {"data": data, "value": 0}, step="execute")
        self.inspector.invalidate_cache()
        return TransactionResult(result.tx_hash, ChainFamily.EVM, address, result.raw)
