"""
In-memory EVM ledger.

Hosts ManyChainMultiSig and RBACTimelock contracts behind the ChainClient
boundary so the EVM adapters can be driven end to end without a node:

  - SimulatedEVMClient: deploys contracts, owns the clock, dispatches
    ABI-encoded calls the way the deployed contracts handle them
  - TargetCall: a call that reached a plain (non-MCMS) target

Reverts surface as SimulatedRevert (a ChainClientError) with the contract's
revert message; every state change of a reverted transaction is rolled back.
"""

import copy
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from eth_abi import encode
from eth_utils import to_checksum_address

from .constants import EVM_MAX_SIGNERS, NUM_GROUPS, SIMULATED_EVM_CHAIN_ID, ZERO_HASH
from .crypto.hashing import keccak256, root_signing_hash
from .crypto.merkle import verify_proof
from .evm.abi import (
    ADMIN_ROLE,
    BYPASSER_ROLE,
    CANCELLER_ROLE,
    EXECUTOR_ROLE,
    MCM_FUNCTIONS,
    OP_TUPLE,
    PROPOSER_ROLE,
    ROOT_METADATA_TUPLE,
    decode_call,
    encode_result,
    hash_operation_batch,
)
from .evm.encoder import METADATA_DOMAIN_SEPARATOR, OP_DOMAIN_SEPARATOR
from .exceptions import ChainClientError, InvalidSignature
from .logger import get_logger
from .sdk.client import ChainClient, SubmitResult
from .types.signature import Signature

logger = get_logger(__name__)

DONE_TIMESTAMP = 1


class SimulatedRevert(ChainClientError):
    """A simulated contract reverted."""
    pass


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SimulatedRevert(message)


@dataclass
class TargetCall:
    """
    Attributes:
        sender: Address that made the call (MCM or timelock)
        target: Called address
        value: Wei attached
        data: Raw call data
    """
    sender: str
    target: str
    value: int
    data: bytes


@dataclass
class MultisigState:
    owner: str
    signers: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    signer_order: List[str] = field(default_factory=list)
    group_quorums: List[int] = field(default_factory=lambda: [0] * NUM_GROUPS)
    group_parents: List[int] = field(default_factory=lambda: [0] * NUM_GROUPS)
    root: bytes = ZERO_HASH
    valid_until: int = 0
    op_count: int = 0
    root_metadata: Tuple = (0, "", 0, 0, False)
    seen_signed_hashes: Set[bytes] = field(default_factory=set)


@dataclass
class TimelockState:
    min_delay: int
    roles: Dict[bytes, List[str]] = field(default_factory=dict)
    timestamps: Dict[bytes, int] = field(default_factory=dict)

    def has_role(self, role: bytes, account: str) -> bool:
        return to_checksum_address(account) in self.roles.get(role, [])

    def is_operation(self, op_id: bytes) -> bool:
        return self.timestamps.get(op_id, 0) > 0

    def is_pending(self, op_id: bytes) -> bool:
        return self.timestamps.get(op_id, 0) > DONE_TIMESTAMP

    def is_ready(self, op_id: bytes, now: int) -> bool:
        timestamp = self.timestamps.get(op_id, 0)
        return timestamp > DONE_TIMESTAMP and timestamp <= now

    def is_done(self, op_id: bytes) -> bool:
        return self.timestamps.get(op_id, 0) == DONE_TIMESTAMP


class SimulatedEVMClient(ChainClient):
    """
    Single-sender EVM ledger with a caller-controlled clock.

    Attributes:
        sender: Externally owned account that signs every submitted transaction
        now: Current block timestamp, moved forward with ``advance``
        calls: Calls that reached plain targets, in execution order
    """

    def __init__(self, start_time: Optional[int] = None, sender: Optional[str] = None):
        self.chain_id = SIMULATED_EVM_CHAIN_ID
        self._nonce = 0
        self.now = int(time.time()) if start_time is None else int(start_time)
        self.sender = to_checksum_address(sender) if sender else self._new_address()
        self.calls: List[TargetCall] = []
        self.block_number = 0
        self._multisigs: Dict[str, MultisigState] = {}
        self._timelocks: Dict[str, TimelockState] = {}
        self._targets: Dict[str, Callable[[str, int, bytes], None]] = {}

    def _new_address(self) -> str:
        self._nonce += 1
        return to_checksum_address(keccak256(b"simulated-evm" + self._nonce.to_bytes(8, "big"))[12:])

    # ── Deployment and clock ─────────────────────────────────────────

    def deploy_mcm(self, owner: Optional[str] = None) -> str:
        address = self._new_address()
        self._multisigs[address] = MultisigState(owner=to_checksum_address(owner or self.sender))
        logger.debug(f"Deployed ManyChainMultiSig at {address}")
        return address

    def deploy_timelock(
        self,
        min_delay: int,
        admin: str,
        proposers: Iterable[str] = (),
        executors: Iterable[str] = (),
        cancellers: Iterable[str] = (),
        bypassers: Iterable[str] = (),
    ) -> str:
        address = self._new_address()
        roles = {
            ADMIN_ROLE: [admin],
            PROPOSER_ROLE: list(proposers),
            EXECUTOR_ROLE: list(executors),
            CANCELLER_ROLE: list(cancellers),
            BYPASSER_ROLE: list(bypassers),
        }
        self._timelocks[address] = TimelockState(
            min_delay=int(min_delay),
            roles={role: [to_checksum_address(m) for m in members] for role, members in roles.items()},
        )
        logger.debug(f"Deployed RBACTimelock at {address} with min delay {min_delay}s")
        return address

    def register_target(self, address: str, handler: Callable[[str, int, bytes], None]) -> None:
        """Route calls to ``address`` through ``handler(sender, value, data)``."""
        self._targets[to_checksum_address(address)] = handler

    def advance(self, seconds: int) -> int:
        self.now += int(seconds)
        return self.now

    def multisig(self, address: str) -> MultisigState:
        return self._multisigs[to_checksum_address(address)]

    def timelock(self, address: str) -> TimelockState:
        return self._timelocks[to_checksum_address(address)]

    # ── ChainClient ──────────────────────────────────────────────────

    def current_ledger_time(self) -> int:
        return self.now

    def submit(self, contract_address: str, entrypoint: str, arguments: Dict[str, Any]) -> SubmitResult:
        address = to_checksum_address(contract_address)
        snapshot = copy.deepcopy((self._multisigs, self._timelocks, self.calls))
        try:
            self._call(self.sender, address, int(arguments.get("value", 0)), bytes(arguments["data"]))
        except ChainClientError:
            self._multisigs, self._timelocks, self.calls = snapshot
            raise
        self.block_number += 1
        tx_hash = "0x" + keccak256(
            address.encode() + bytes(arguments["data"]) + self.block_number.to_bytes(8, "big")
        ).hex()
        logger.debug(f"Block {self.block_number}: {entrypoint} on {address} ({tx_hash})")
        return SubmitResult(tx_hash=tx_hash, raw={"blockNumber": self.block_number})

    def read(self, contract_address: str, query: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        address = to_checksum_address(contract_address)
        name, args = self._decode(bytes((arguments or {})["data"]))
        if address in self._multisigs:
            return self._mcm_view(self._multisigs[address], name, args)
        if address in self._timelocks:
            return self._timelock_view(self._timelocks[address], name, args)
        raise SimulatedRevert(f"no contract deployed at {address}")

    # ── Dispatch ─────────────────────────────────────────────────────

    @staticmethod
    def _decode(data: bytes) -> Tuple[str, Tuple]:
        try:
            return decode_call(data)
        except ValueError as e:
            raise SimulatedRevert("call data does not match any function") from e

    def _call(self, sender: str, target: str, value: int, data: bytes) -> None:
        target = to_checksum_address(target)
        if target in self._multisigs:
            name, args = self._decode(data)
            self._mcm_call(self._multisigs[target], target, sender, name, args)
        elif target in self._timelocks:
            name, args = self._decode(data)
            self._timelock_call(self._timelocks[target], target, sender, name, args)
        else:
            handler = self._targets.get(target)
            if handler is not None:
                handler(sender, value, data)
            self.calls.append(TargetCall(sender, target, value, data))

    # ── ManyChainMultiSig ────────────────────────────────────────────

    def _mcm_call(self, state: MultisigState, address: str, sender: str, name: str, args: Tuple) -> None:
        if name == "setConfig":
            _require(to_checksum_address(sender) == state.owner, "Ownable: caller is not the owner")
            self._set_config(state, address, *args)
        elif name == "setRoot":
            self._set_root(state, address, *args)
        elif name == "execute":
            self._execute(state, address, *args)
        else:
            raise SimulatedRevert(f"ManyChainMultiSig: {name} is not a mutating call")

    def _set_config(self, state: MultisigState, address: str, addresses, groups, quorums, parents, clear_root) -> None:
        _require(len(addresses) == len(groups), "ManyChainMultiSig: signer addresses and groups length mismatch")
        _require(0 < len(addresses) <= EVM_MAX_SIGNERS, "ManyChainMultiSig: out of bound signers")
        quorums = [int(q) for q in quorums]
        parents = [int(p) for p in parents]
        _require(quorums[0] > 0, "ManyChainMultiSig: root group quorum must be set")
        _require(parents[0] == 0, "ManyChainMultiSig: root group must be its own parent")

        children = [0] * NUM_GROUPS
        for address, group in zip(addresses, groups):
            _require(int(group) < NUM_GROUPS, "ManyChainMultiSig: out of bounds group")
            children[int(group)] += 1
        for i in range(1, NUM_GROUPS):
            _require(parents[i] < i, "ManyChainMultiSig: out of bounds group parent")
            if quorums[i] > 0:
                _require(quorums[parents[i]] > 0, "ManyChainMultiSig: signer in disabled group")
                children[parents[i]] += 1
        for i in range(NUM_GROUPS):
            if quorums[i] == 0:
                _require(children[i] == 0, "ManyChainMultiSig: signer in disabled group")
            else:
                _require(children[i] >= quorums[i], "ManyChainMultiSig: out of bounds group quorum")

        ordered = [to_checksum_address(a) for a in addresses]
        for prev, cur in zip(ordered, ordered[1:]):
            _require(int(prev, 16) < int(cur, 16), "ManyChainMultiSig: signer addresses must be strictly increasing")

        state.signer_order = ordered
        state.signers = {a: (i, int(g)) for i, (a, g) in enumerate(zip(ordered, groups))}
        state.group_quorums = quorums
        state.group_parents = parents
        if clear_root:
            state.root = ZERO_HASH
            state.valid_until = 0
            state.root_metadata = (self.chain_id, address, state.op_count, state.op_count, True)

    def _set_root(self, state: MultisigState, address: str, root, valid_until, metadata, proof, signatures) -> None:
        root = bytes(root)
        signed_hash = root_signing_hash(root, int(valid_until))
        _require(signed_hash not in state.seen_signed_hashes, "ManyChainMultiSig: signed hash already seen")
        _require(state.group_quorums[0] > 0, "ManyChainMultiSig: missing config")

        votes = [0] * NUM_GROUPS
        previous = -1
        for v, r, s in signatures:
            try:
                signer = Signature(v=int(v), r=bytes(r), s=bytes(s)).recover(signed_hash)
            except InvalidSignature as e:
                raise SimulatedRevert(f"ManyChainMultiSig: invalid signature: {e}") from e
            _require(int(signer, 16) > previous, "ManyChainMultiSig: signer addresses must be strictly increasing")
            previous = int(signer, 16)
            _require(signer in state.signers, "ManyChainMultiSig: invalid signer")
            group = state.signers[signer][1]
            while True:
                votes[group] += 1
                if votes[group] != state.group_quorums[group] or group == 0:
                    break
                group = state.group_parents[group]
        _require(votes[0] >= state.group_quorums[0], "ManyChainMultiSig: insufficient signers")

        _require(int(valid_until) >= self.now, "ManyChainMultiSig: validUntil has passed")
        chain_id, multisig, pre_op_count, post_op_count, override = metadata
        _require(int(chain_id) == self.chain_id, "ManyChainMultiSig: wrong chain id")
        _require(to_checksum_address(multisig) == address, "ManyChainMultiSig: wrong multisig")

        leaf = keccak256(encode(["bytes32", ROOT_METADATA_TUPLE], [METADATA_DOMAIN_SEPARATOR, tuple(metadata)]))
        _require(verify_proof(root, leaf, [bytes(p) for p in proof]), "ManyChainMultiSig: proof cannot be verified")

        if state.op_count != state.root_metadata[3] and not override:
            raise SimulatedRevert("ManyChainMultiSig: pending operations")
        _require(state.op_count == int(pre_op_count), "ManyChainMultiSig: wrong pre-op count")
        _require(int(pre_op_count) <= int(post_op_count), "ManyChainMultiSig: wrong post-op count")

        state.seen_signed_hashes.add(signed_hash)
        state.root = root
        state.valid_until = int(valid_until)
        state.root_metadata = (int(chain_id), address, int(pre_op_count), int(post_op_count), bool(override))
        logger.debug(f"MCM {address}: root 0x{root.hex()} ops [{pre_op_count}, {post_op_count})")

    def _execute(self, state: MultisigState, address: str, op, proof) -> None:
        chain_id, multisig, nonce, to, value, data = op
        _require(state.root_metadata[3] > state.op_count, "ManyChainMultiSig: post-operation count reached")
        _require(int(chain_id) == self.chain_id, "ManyChainMultiSig: wrong chain id")
        _require(to_checksum_address(multisig) == address, "ManyChainMultiSig: wrong multisig")
        _require(self.now <= state.valid_until, "ManyChainMultiSig: root has expired")
        _require(int(nonce) == state.op_count, "ManyChainMultiSig: wrong nonce")

        leaf = keccak256(encode(["bytes32", OP_TUPLE], [OP_DOMAIN_SEPARATOR, tuple(op)]))
        _require(verify_proof(state.root, leaf, [bytes(p) for p in proof]), "ManyChainMultiSig: proof cannot be verified")

        state.op_count += 1
        self._call(address, to, int(value), bytes(data))

    def _mcm_view(self, state: MultisigState, name: str, args: Tuple) -> bytes:
        if name not in MCM_FUNCTIONS:
            raise SimulatedRevert(f"ManyChainMultiSig: no view named {name}")
        if name == "getConfig":
            signers = [(a, state.signers[a][0], state.signers[a][1]) for a in state.signer_order]
            return encode_result(name, (signers, state.group_quorums, state.group_parents))
        if name == "getOpCount":
            return encode_result(name, state.op_count)
        if name == "getRoot":
            return encode_result(name, state.root, state.valid_until)
        if name == "getRootMetadata":
            chain_id, multisig, pre, post, override = state.root_metadata
            multisig = multisig or "0x" + "00" * 20
            return encode_result(name, (chain_id, multisig, pre, post, override))
        raise SimulatedRevert(f"ManyChainMultiSig: {name} is not a view")

    # ── RBACTimelock ─────────────────────────────────────────────────

    def _only_role(self, state: TimelockState, role: bytes, sender: str, label: str) -> None:
        _require(
            state.has_role(role, sender),
            f"RBACTimelock: {sender} is missing {label} role",
        )

    def _timelock_call(self, state: TimelockState, address: str, sender: str, name: str, args: Tuple) -> None:
        if name == "scheduleBatch":
            calls, predecessor, salt, delay = args
            self._only_role(state, PROPOSER_ROLE, sender, "proposer")
            op_id = hash_operation_batch(calls, bytes(predecessor), bytes(salt))
            _require(not state.is_operation(op_id), "RBACTimelock: operation already scheduled")
            _require(int(delay) >= state.min_delay, "RBACTimelock: insufficient delay")
            state.timestamps[op_id] = self.now + int(delay)
            logger.debug(f"Timelock {address}: scheduled 0x{op_id.hex()} ready at {state.timestamps[op_id]}")
        elif name == "cancel":
            (op_id,) = args
            op_id = bytes(op_id)
            self._only_role(state, CANCELLER_ROLE, sender, "canceller")
            _require(state.is_pending(op_id), "RBACTimelock: operation cannot be cancelled")
            del state.timestamps[op_id]
            logger.debug(f"Timelock {address}: cancelled 0x{op_id.hex()}")
        elif name == "bypasserExecuteBatch":
            (calls,) = args
            self._only_role(state, BYPASSER_ROLE, sender, "bypasser")
            for target, value, data in calls:
                self._call(address, target, int(value), bytes(data))
        elif name == "executeBatch":
            calls, predecessor, salt = args
            self._only_role(state, EXECUTOR_ROLE, sender, "executor")
            op_id = hash_operation_batch(calls, bytes(predecessor), bytes(salt))
            _require(state.is_ready(op_id, self.now), "RBACTimelock: operation is not ready")
            predecessor = bytes(predecessor)
            _require(
                predecessor == ZERO_HASH or state.is_done(predecessor),
                "RBACTimelock: missing dependency",
            )
            for target, value, data in calls:
                self._call(address, target, int(value), bytes(data))
            state.timestamps[op_id] = DONE_TIMESTAMP
        else:
            raise SimulatedRevert(f"RBACTimelock: {name} is not a mutating call")

    def _timelock_view(self, state: TimelockState, name: str, args: Tuple) -> bytes:
        if name == "getRoleMemberCount":
            return encode_result(name, len(state.roles.get(bytes(args[0]), [])))
        if name == "getRoleMember":
            members = state.roles.get(bytes(args[0]), [])
            index = int(args[1])
            _require(index < len(members), "RBACTimelock: role member index out of bounds")
            return encode_result(name, members[index])
        if name == "isOperation":
            return encode_result(name, state.is_operation(bytes(args[0])))
        if name == "isOperationPending":
            return encode_result(name, state.is_pending(bytes(args[0])))
        if name == "isOperationReady":
            return encode_result(name, state.is_ready(bytes(args[0]), self.now))
        if name == "isOperationDone":
            return encode_result(name, state.is_done(bytes(args[0])))
        if name == "getMinDelay":
            return encode_result(name, state.min_delay)
        raise SimulatedRevert(f"RBACTimelock: {name} is not a view")
