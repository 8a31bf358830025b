"""
Canton MCMS executor.

Every choice re-creates the MCMS contract; the returned TransactionResult
carries the new contract id and callers must use it for the next call.
"""

from typing import Sequence

from ..constants import CANTON_MCMS_TEMPLATE_KEY, CANTON_SELF_TARGET
from ..crypto.hashing import root_signing_hash
from ..logger import get_logger
from ..sdk.client import ChainClient
from ..sdk.interfaces import Executor
from ..types.operation import ChainMetadata, Operation, TransactionResult
from ..types.signature import Signature, require_sorted_signatures
from .encoder import CantonEncoder
from .encoding import to_hex_list, to_ledger_time
from .exercise import exercise
from .fields import validate_chain_metadata, validate_transaction
from .inspector import CantonInspector

logger = get_logger(__name__)

class CantonExecutor(Executor):
    """
    Attributes:
        party: Party submitting the choices (the ``submitter`` argument)
    """

    def __init__(
        self,
        encoder: CantonEncoder,
        client: ChainClient,
        party: str,
        template_key: str = CANTON_MCMS_TEMPLATE_KEY,
    ):
        self.encoder = encoder
        self.inspector = CantonInspector(client)
        self.client = client
        self.party = party
        self.template_key = template_key

    def set_root(
        self,
        metadata: ChainMetadata,
        proof: Sequence[bytes],
        root: bytes,
        valid_until: int,
        sorted_signatures: Sequence[Signature],
    ) -> TransactionResult:
        signed_hash = root_signing_hash(root, valid_until)
        require_sorted_signatures(sorted_signatures, signed_hash)
        meta = validate_chain_metadata(metadata)

        # The template verifies against the uncompressed public key
        signatures = [
            {
                "publicKey": sig.recover_public_key(signed_hash).to_bytes(prefixed=True).hex(),
                "r": sig.r.hex(),
                "s": sig.s.hex(),
            }
            for sig in sorted_signatures
        ]
        arguments = {
            "submitter": self.party,
            "newRoot": bytes(root).hex(),
            "validUntil": to_ledger_time(valid_until),
            "metadata": {
                "chainId": meta.chain_id,
                "multisigId": meta.multisig_id,
                "preOpCount": meta.pre_op_count,
                "postOpCount": meta.post_op_count,
                "overridePreviousRoot": meta.override_previous_root,
            },
            "metadataProof": to_hex_list(proof),
            "signatures": signatures,
        }
        logger.info(f"Setting root 0x{bytes(root).hex()} on {metadata.mcm_address} with {len(signatures)} signatures")
        result = exercise(self.client, metadata.mcm_address, "SetRoot", arguments, step="set-root",
                          template_key=self.template_key)
        self.inspector.invalidate_cache()
        return result

    def execute_operation(
        self,
        metadata: ChainMetadata,
        nonce: int,
        proof: Sequence[bytes],
        op: Operation,
    ) -> TransactionResult:
        fields = validate_transaction(op.transaction)
        meta = validate_chain_metadata(metadata)
        canton_op = {
            "chainId": meta.chain_id,
            "multisigId": meta.multisig_id,
            "nonce": nonce,
            "targetInstanceId": fields.target_instance_id,
            "functionName": fields.function_name,
            "operationData": fields.operation_data,
        }

        if fields.target_instance_id == CANTON_SELF_TARGET:
            choice = "ExecuteMcmsOp"
            arguments = {"submitter": self.party, "op": canton_op, "opProof": to_hex_list(proof)}
        else:
            choice = "ExecuteOp"
            target_cid = fields.target_cid
            # Self-dispatched timelock ops go to the current MCMS contract id
            if meta.instance_id and fields.target_instance_id == meta.instance_id:
                target_cid = metadata.mcm_address
            arguments = {
                "submitter": self.party,
                "targetCid": target_cid,
                "op": canton_op,
                "opProof": to_hex_list(proof),
                "contractIds": list(fields.contract_ids),
            }

        logger.info(f"Executing op nonce={nonce} {fields.function_name} on {fields.target_instance_id} via {choice}")
        result = exercise(self.client, metadata.mcm_address, choice, arguments, step="execute-op",
                          template_key=self.template_key)
        self.inspector.invalidate_cache()
        return result
