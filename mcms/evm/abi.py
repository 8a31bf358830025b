"""
ABI surface of the EVM ManyChainMultiSig and RBACTimelock contracts.

Call data is the 4-byte function selector followed by the ABI-encoded
arguments. Argument and return types are listed explicitly because the
tuple-typed parameters cannot be recovered by splitting a signature on
commas.
"""

from typing import Any, Dict, List, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from ..crypto.hashing import keccak256


OP_TUPLE = "(uint256,address,uint40,address,uint256,bytes)"
ROOT_METADATA_TUPLE = "(uint256,address,uint40,uint40,bool)"
SIGNATURE_TUPLE = "(uint8,bytes32,bytes32)"
SIGNER_TUPLE = "(address,uint8,uint8)"
CONFIG_TUPLE = f"({SIGNER_TUPLE}[],uint8[32],uint8[32])"
CALL_TUPLE = "(address,uint256,bytes)"


# name → (argument types, return types)
MCM_FUNCTIONS: Dict[str, Tuple[List[str], List[str]]] = {
    "setConfig": (["address[]", "uint8[]", "uint8[32]", "uint8[32]", "bool"], []),
    "setRoot": (["bytes32", "uint32", ROOT_METADATA_TUPLE, "bytes32[]", f"{SIGNATURE_TUPLE}[]"], []),
    "execute": ([OP_TUPLE, "bytes32[]"], []),
    "getConfig": ([], [CONFIG_TUPLE]),
    "getOpCount": ([], ["uint40"]),
    "getRoot": ([], ["bytes32", "uint32"]),
    "getRootMetadata": ([], [ROOT_METADATA_TUPLE]),
}

TIMELOCK_FUNCTIONS: Dict[str, Tuple[List[str], List[str]]] = {
    "scheduleBatch": ([f"{CALL_TUPLE}[]", "bytes32", "bytes32", "uint256"], []),
    "cancel": (["bytes32"], []),
    "bypasserExecuteBatch": ([f"{CALL_TUPLE}[]"], []),
    "executeBatch": ([f"{CALL_TUPLE}[]", "bytes32", "bytes32"], []),
    "getRoleMemberCount": (["bytes32"], ["uint256"]),
    "getRoleMember": (["bytes32", "uint256"], ["address"]),
    "isOperation": (["bytes32"], ["bool"]),
    "isOperationPending": (["bytes32"], ["bool"]),
    "isOperationReady": (["bytes32"], ["bool"]),
    "isOperationDone": (["bytes32"], ["bool"]),
    "getMinDelay": ([], ["uint256"]),
}

ALL_FUNCTIONS = {**MCM_FUNCTIONS, **TIMELOCK_FUNCTIONS}

# RBACTimelock role identifiers
ADMIN_ROLE = keccak256(b"ADMIN_ROLE")
PROPOSER_ROLE = keccak256(b"PROPOSER_ROLE")
EXECUTOR_ROLE = keccak256(b"EXECUTOR_ROLE")
CANCELLER_ROLE = keccak256(b"CANCELLER_ROLE")
BYPASSER_ROLE = keccak256(b"BYPASSER_ROLE")


def function_signature(name: str) -> str:
    arg_types, _ = ALL_FUNCTIONS[name]
    return f"{name}({','.join(arg_types)})"


def function_selector(name: str) -> bytes:
    return function_signature_to_4byte_selector(function_signature(name))


_SELECTORS: Dict[bytes, str] = {function_selector(name): name for name in ALL_FUNCTIONS}


def encode_call(name: str, *args: Any) -> bytes:
    """
    Encode function call data (selector + ABI-encoded arguments).
    """
    arg_types, _ = ALL_FUNCTIONS[name]
    if not arg_types:
        return function_selector(name)
    return function_selector(name) + encode(arg_types, list(args))


def decode_call(data: bytes) -> Tuple[str, Tuple[Any, ...]]:
    """
    Split call data into function name and decoded arguments.

    Raises:
        ValueError: unknown selector
    """
    name = _SELECTORS.get(bytes(data[:4]))
    if name is None:
        raise ValueError(f"unknown function selector 0x{bytes(data[:4]).hex()}")
    arg_types, _ = ALL_FUNCTIONS[name]
    if not arg_types:
        return name, ()
    return name, decode(arg_types, bytes(data[4:]))


def encode_result(name: str, *values: Any) -> bytes:
    _, return_types = ALL_FUNCTIONS[name]
    return encode(return_types, list(values))


def decode_result(name: str, data: bytes) -> Tuple[Any, ...]:
    _, return_types = ALL_FUNCTIONS[name]
    return decode(return_types, bytes(data))


def to_call_tuples(calls: Sequence[Tuple[str, int, bytes]]) -> List[Tuple[str, int, bytes]]:
    return [(to_checksum_address(target), int(value), bytes(data)) for target, value, data in calls]


def hash_operation_batch(calls: Sequence[Tuple[str, int, bytes]], predecessor: bytes, salt: bytes) -> bytes:
    """
    Operation id as RBACTimelock.hashOperationBatch computes it:
    keccak256(abi.encode(calls, predecessor, salt)).
    """
    encoded = encode(
        [f"{CALL_TUPLE}[]", "bytes32", "bytes32"],
        [to_call_tuples(calls), bytes(predecessor), bytes(salt)],
    )
    return keccak256(encoded)
