"""
Canton leaf encoder.

The MCMS Daml template builds its leaves as hex strings and hashes the
decoded bytes, so the same composition is reproduced here. Op counts,
pre/post counts and the override flag come from the chain metadata
additional fields, which is also what set_root submits.
"""

from eth_utils import decode_hex

from ..crypto.hashing import keccak256
from ..sdk.interfaces import Encoder
from ..types.operation import ChainMetadata, Operation
from .encoding import ascii_to_hex, encode_operation_data, int_to_hex, pad_left32
from .fields import AdditionalFields, validate_chain_metadata


class CantonEncoder(Encoder):

    def hash_operation(self, op_count: int, metadata: ChainMetadata, op: Operation) -> bytes:
        meta = validate_chain_metadata(metadata)
        fields = AdditionalFields.from_dict(op.transaction.additional_fields)
        encoded = (
            pad_left32(int_to_hex(meta.chain_id))
            + ascii_to_hex(meta.multisig_id)
            + pad_left32(int_to_hex(op_count))
            + ascii_to_hex(fields.target_instance_id)
            + ascii_to_hex(fields.function_name)
            + encode_operation_data(fields.operation_data)
        )
        return keccak256(decode_hex(encoded))

    def hash_metadata(self, metadata: ChainMetadata) -> bytes:
        meta = validate_chain_metadata(metadata)
        encoded = (
            pad_left32(int_to_hex(meta.chain_id))
            + ascii_to_hex(meta.multisig_id)
            + pad_left32(int_to_hex(meta.pre_op_count))
            + pad_left32(int_to_hex(meta.post_op_count))
            + ("01" if meta.override_previous_root else "00")
        )
        return keccak256(decode_hex(encoded))
