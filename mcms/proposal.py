"""
MCMS Proposals

A Proposal is a batch of chain operations plus the chain metadata needed to
authorise them with one signed Merkle root. A TimelockProposal wraps batches
meant for a timelock and converts into a Proposal whose operations schedule,
cancel or bypass those batches.
"""

import json
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from eth_utils import decode_hex

from .constants import DEFAULT_VALID_FOR_SECONDS, PROPOSAL_VERSION, ZERO_HASH
from .crypto.hashing import root_signing_hash
from .crypto.keys import PrivateKey
from .crypto.merkle import MerkleTree
from .exceptions import ChainMetadataNotFound, InvalidTimelockOperation, InvalidValidUntil, ValidationError
from .logger import get_logger
from .sdk import registry
from .sdk.interfaces import Encoder, TimelockConverter
from .types.operation import BatchOperation, ChainMetadata, Operation
from .types.signature import Signature
from .types.timelock import Duration, TimelockAction

logger = get_logger(__name__)

KIND_PROPOSAL = "Proposal"
KIND_TIMELOCK_PROPOSAL = "TimelockProposal"


def _now() -> int:
    return int(time.time())


def _metadata_to_dict(chain_metadata: Mapping[int, ChainMetadata]) -> Dict[str, Any]:
    return {str(sel): md.to_dict() for sel, md in sorted(chain_metadata.items())}


def _metadata_from_dict(data: Mapping[str, Any]) -> Dict[int, ChainMetadata]:
    return {int(sel): ChainMetadata.from_dict(md) for sel, md in (data or {}).items()}


@dataclass
class BaseProposal:
    """
    Fields shared by both proposal kinds.

    Attributes:
        version: Proposal format version
        valid_until: Unix time after which the signed root is rejected on chain
        chain_metadata: Per-selector MCM address and starting op count
        signatures: Collected signatures over ``signing_hash()``
        override_previous_root: Replace a root that still has pending ops
        description: Free text, never hashed
        use_simulated_backend: EVM leaves use the simulated chain id
    """
    version: str = PROPOSAL_VERSION
    valid_until: int = 0
    chain_metadata: Dict[int, ChainMetadata] = field(default_factory=dict)
    signatures: List[Signature] = field(default_factory=list)
    override_previous_root: bool = False
    description: str = ""
    use_simulated_backend: bool = field(default=False, repr=False, compare=False)

    def chain_selectors(self) -> List[int]:
        return sorted(self.chain_metadata)

    def _validate_base(self, now: Optional[int]) -> None:
        if not self.version:
            raise ValidationError("proposal version is required")
        if not self.chain_metadata:
            raise ValidationError("proposal must carry chain metadata for at least one chain")
        now = _now() if now is None else now
        if self.valid_until <= now:
            raise InvalidValidUntil(f"invalid valid until: {self.valid_until} is not in the future")

    def _require_metadata(self, selector: int) -> ChainMetadata:
        metadata = self.chain_metadata.get(selector)
        if metadata is None:
            raise ChainMetadataNotFound(f"missing metadata for chain {selector}")
        return metadata

    def append_signature(self, signature: Signature) -> None:
        self.signatures.append(signature)

    def _base_dict(self, kind: str) -> Dict[str, Any]:
        return {
            "version": self.version,
            "kind": kind,
            "validUntil": self.valid_until,
            "signatures": [s.to_dict() for s in self.signatures],
            "overridePreviousRoot": self.override_previous_root,
            "chainMetadata": _metadata_to_dict(self.chain_metadata),
            "description": self.description,
        }

    @staticmethod
    def _base_kwargs(data: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "version": data.get("version", PROPOSAL_VERSION),
            "valid_until": int(data.get("validUntil", 0)),
            "chain_metadata": _metadata_from_dict(data.get("chainMetadata") or {}),
            "signatures": [Signature.from_dict(s) for s in data.get("signatures") or []],
            "override_previous_root": bool(data.get("overridePreviousRoot", False)),
            "description": data.get("description", ""),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal(BaseProposal):
    operations: List[Operation] = field(default_factory=list)

    def validate(self, now: Optional[int] = None) -> "Proposal":
        """
        Raises:
            ValidationError: missing version, chain metadata or operations
            InvalidValidUntil: valid_until is not in the future
            ChainMetadataNotFound: an operation's chain has no metadata
            MissingField / InvalidAdditionalFields: per-family field checks
        """
        self._validate_base(now)
        if not self.operations:
            raise ValidationError("proposal must contain at least one operation")
        for selector, metadata in self.chain_metadata.items():
            registry.validate_chain_metadata(selector, metadata)
        for op in self.operations:
            self._require_metadata(op.chain_selector)
            registry.validate_transaction(op.chain_selector, op.transaction)
        return self

    def transaction_counts(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for op in self.operations:
            counts[op.chain_selector] = counts.get(op.chain_selector, 0) + 1
        return counts

    def transaction_nonces(self) -> List[int]:
        """Absolute on-chain nonce of every operation, in proposal order."""
        seen: Dict[int, int] = {}
        nonces = []
        for op in self.operations:
            metadata = self._require_metadata(op.chain_selector)
            index = seen.get(op.chain_selector, 0)
            nonces.append(metadata.starting_op_count + index)
            seen[op.chain_selector] = index + 1
        return nonces

    def get_encoders(self) -> Dict[int, Encoder]:
        counts = self.transaction_counts()
        return registry.build_encoders(
            {sel: counts.get(sel, 0) for sel in self.chain_metadata},
            self.override_previous_root,
            self.use_simulated_backend,
        )

    def merkle_tree(self) -> MerkleTree:
        encoders = self.get_encoders()
        leaves = [encoders[sel].hash_metadata(self.chain_metadata[sel]) for sel in self.chain_selectors()]
        for op, nonce in zip(self.operations, self.transaction_nonces()):
            leaves.append(encoders[op.chain_selector].hash_operation(nonce, self.chain_metadata[op.chain_selector], op))
        leaves.sort()
        return MerkleTree(leaves)

    def signing_hash(self) -> bytes:
        return root_signing_hash(self.merkle_tree().root, self.valid_until)

    def sign(self, private_key: PrivateKey) -> Signature:
        signature = Signature.sign(private_key, self.signing_hash())
        self.append_signature(signature)
        logger.info(f"Proposal signed by {private_key.address}")
        return signature

    def to_dict(self) -> Dict[str, Any]:
        result = self._base_dict(KIND_PROPOSAL)
        result["operations"] = [op.to_dict() for op in self.operations]
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Proposal":
        kind = data.get("kind", KIND_PROPOSAL)
        if kind != KIND_PROPOSAL:
            raise ValidationError(f"invalid proposal kind: {kind}, expected {KIND_PROPOSAL}")
        return cls(
            operations=[Operation.from_dict(op) for op in data.get("operations") or []],
            **cls._base_kwargs(data),
        )

    @classmethod
    def from_json(cls, text: str) -> "Proposal":
        return cls.from_dict(json.loads(text))


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class TimelockProposal(BaseProposal):
    """
    Attributes:
        action: schedule, cancel or bypass
        delay: Timelock delay applied when scheduling
        timelock_addresses: Per-selector timelock address
        operations: Batches, each executed atomically by the timelock
        salt_override: Fixed salt, set when deriving from another proposal
    """
    action: TimelockAction = TimelockAction.SCHEDULE
    delay: Duration = field(default_factory=Duration)
    timelock_addresses: Dict[int, str] = field(default_factory=dict)
    operations: List[BatchOperation] = field(default_factory=list)
    salt_override: Optional[bytes] = None

    def validate(self, now: Optional[int] = None) -> "TimelockProposal":
        self._validate_base(now)
        TimelockAction.parse(self.action)
        if not self.operations:
            raise ValidationError("timelock proposal must contain at least one batch operation")
        for selector, metadata in self.chain_metadata.items():
            registry.validate_chain_metadata(selector, metadata, timelock=True)
        for bop in self.operations:
            self._require_metadata(bop.chain_selector)
            if bop.chain_selector not in self.timelock_addresses:
                raise ValidationError(f"missing timelock address for chain {bop.chain_selector}")
            if not bop.transactions:
                raise ValidationError(f"batch operation for chain {bop.chain_selector} has no transactions")
            for tx in bop.transactions:
                registry.validate_transaction(bop.chain_selector, tx, timelock=True)
        return self

    def transaction_counts(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for bop in self.operations:
            counts[bop.chain_selector] = counts.get(bop.chain_selector, 0) + len(bop.transactions)
        return counts

    def salt(self) -> bytes:
        """Salt override, else valid_until big-endian in the first 4 bytes."""
        if self.salt_override is not None:
            return bytes(self.salt_override)
        return int(self.valid_until).to_bytes(4, "big") + b"\x00" * 28

    def _convert(
        self, converters: Optional[Mapping[int, TimelockConverter]] = None
    ) -> Tuple[Proposal, List[bytes], List[bytes]]:
        if converters is None:
            converters = registry.build_converters(self.chain_metadata)
        action = TimelockAction.parse(self.action)
        salt = self.salt()
        last_op_id = {sel: ZERO_HASH for sel in self.chain_metadata}
        predecessors: List[bytes] = []
        op_ids: List[bytes] = []
        operations: List[Operation] = []

        for bop in self.operations:
            selector = bop.chain_selector
            converter = converters.get(selector)
            if converter is None:
                raise ValidationError(f"unable to find converter for chain selector {selector}")
            metadata = self._require_metadata(selector)
            predecessor = last_op_id.get(selector, ZERO_HASH)
            ops, op_id = converter.convert_batch_to_chain_operations(
                metadata,
                bop,
                self.timelock_addresses.get(selector, ""),
                metadata.mcm_address,
                self.delay,
                action,
                predecessor,
                salt,
            )
            predecessors.append(predecessor)
            op_ids.append(op_id)
            operations.extend(ops)
            last_op_id[selector] = op_id

        proposal = Proposal(
            version=self.version,
            valid_until=self.valid_until,
            chain_metadata=dict(self.chain_metadata),
            signatures=list(self.signatures),
            override_previous_root=self.override_previous_root,
            description=self.description,
            use_simulated_backend=self.use_simulated_backend,
            operations=operations,
        )
        return proposal, predecessors, op_ids

    def convert(
        self, converters: Optional[Mapping[int, TimelockConverter]] = None
    ) -> Tuple[Proposal, List[bytes]]:
        """
        Expand every batch into MCMS-routed timelock calls.

        Batches on the same chain are chained: each one's predecessor is the
        previous batch's operation id, starting from the zero hash.

        Returns:
            (proposal, predecessors) with one predecessor per batch
        """
        proposal, predecessors, _ = self._convert(converters)
        return proposal, predecessors

    def operation_ids(self, converters: Optional[Mapping[int, TimelockConverter]] = None) -> List[bytes]:
        return self._convert(converters)[2]

    def merkle_tree(self) -> MerkleTree:
        return self.convert()[0].merkle_tree()

    def signing_hash(self) -> bytes:
        return self.convert()[0].signing_hash()

    def sign(self, private_key: PrivateKey) -> Signature:
        signature = Signature.sign(private_key, self.signing_hash())
        self.append_signature(signature)
        logger.info(f"Timelock proposal signed by {private_key.address}")
        return signature

    def _derive(
        self,
        action: TimelockAction,
        metadata: Mapping[int, ChainMetadata],
        valid_for_seconds: int,
    ) -> "TimelockProposal":
        if TimelockAction.parse(self.action) != TimelockAction.SCHEDULE:
            raise InvalidTimelockOperation(
                f"cannot derive a {action.value} proposal from a non-schedule proposal"
            )
        new_metadata = {}
        for selector in self.chain_metadata:
            if selector not in metadata:
                raise ChainMetadataNotFound(
                    f"cannot replace chain metadata, missing metadata for chain {selector}"
                )
            new_metadata[selector] = metadata[selector]
        return replace(
            self,
            action=action,
            chain_metadata=new_metadata,
            signatures=[],
            valid_until=_now() + valid_for_seconds,
            salt_override=self.salt(),
            operations=list(self.operations),
            timelock_addresses=dict(self.timelock_addresses),
        )

    def derive_cancellation_proposal(
        self,
        metadata: Mapping[int, ChainMetadata],
        valid_for_seconds: int = DEFAULT_VALID_FOR_SECONDS,
    ) -> "TimelockProposal":
        """Cancel this schedule proposal's batches, through the canceller MCMs in ``metadata``."""
        return self._derive(TimelockAction.CANCEL, metadata, valid_for_seconds)

    def derive_bypass_proposal(
        self,
        metadata: Mapping[int, ChainMetadata],
        valid_for_seconds: int = DEFAULT_VALID_FOR_SECONDS,
    ) -> "TimelockProposal":
        """Run this proposal's batches immediately, through the bypasser MCMs in ``metadata``."""
        return self._derive(TimelockAction.BYPASS, metadata, valid_for_seconds)

    def to_dict(self) -> Dict[str, Any]:
        result = self._base_dict(KIND_TIMELOCK_PROPOSAL)
        result.update({
            "action": TimelockAction.parse(self.action).value,
            "delay": str(Duration.parse(self.delay)),
            "timelockAddresses": {str(sel): addr for sel, addr in sorted(self.timelock_addresses.items())},
            "operations": [bop.to_dict() for bop in self.operations],
        })
        if self.salt_override is not None:
            result["salt"] = "0x" + bytes(self.salt_override).hex()
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimelockProposal":
        kind = data.get("kind", KIND_TIMELOCK_PROPOSAL)
        if kind != KIND_TIMELOCK_PROPOSAL:
            raise ValidationError(f"invalid proposal kind: {kind}, expected {KIND_TIMELOCK_PROPOSAL}")
        salt = data.get("salt")
        return cls(
            action=TimelockAction.parse(data.get("action", "")),
            delay=Duration.parse(data.get("delay", 0)),
            timelock_addresses={int(sel): addr for sel, addr in (data.get("timelockAddresses") or {}).items()},
            operations=[BatchOperation.from_dict(bop) for bop in data.get("operations") or []],
            salt_override=decode_hex(salt) if salt else None,
            **cls._base_kwargs(data),
        )

    @classmethod
    def from_json(cls, text: str) -> "TimelockProposal":
        return cls.from_dict(json.loads(text))
