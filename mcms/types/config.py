"""
Quorum configuration model.

Defines:
  - QuorumConfig: recursive signer/group tree, the canonical form used by
    every chain family
  - FlatConfig: the fixed-size array layout every MCMS contract stores
  - flatten_config / unflatten_config: lossless conversion between the two

A group counts as one vote toward its parent once its own quorum is met.
Signers are kept in ascending address order, so a tree survives a
flatten/unflatten round trip unchanged.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from eth_utils import is_address, to_checksum_address

from ..constants import MAX_GROUP_INDEX, NUM_GROUPS
from ..exceptions import (
    ConfigTooLarge,
    GroupIndexOutOfRange,
    InvalidConfig,
    TooManySigners,
)


def normalize_address(address: str) -> str:
    """Checksummed form of an EVM-style signer address."""
    if not is_address(address):
        raise InvalidConfig(f"invalid signer address: {address!r}")
    return to_checksum_address(address)


def address_sort_key(address: str) -> int:
    return int(address, 16)


@dataclass(frozen=True)
class QuorumConfig:
    """
    One node of the signer tree.

    Attributes:
        quorum: Votes required at this node (signers plus satisfied groups)
        signers: Direct signers, ascending by address
        group_signers: Child groups, in flattening order
    """
    quorum: int
    signers: Tuple[str, ...] = ()
    group_signers: Tuple["QuorumConfig", ...] = ()

    def __post_init__(self):
        signers = tuple(sorted(
            (normalize_address(s) for s in self.signers),
            key=address_sort_key,
        ))
        object.__setattr__(self, "signers", signers)
        object.__setattr__(self, "group_signers", tuple(self.group_signers))

    @classmethod
    def new(
        cls,
        quorum: int,
        signers: Iterable[str] = (),
        group_signers: Iterable["QuorumConfig"] = (),
    ) -> "QuorumConfig":
        """Build and validate a config."""
        cfg = cls(quorum, tuple(signers), tuple(group_signers))
        cfg.validate()
        return cfg

    # ── Validation ───────────────────────────────────────────────────

    def validate(self) -> None:
        """
        Check the structural rules recursively.

        Raises:
            InvalidConfig: quorum or membership rule violated
            ConfigTooLarge: more than NUM_GROUPS nodes in the tree
        """
        self._validate_node()
        nodes = self.node_count()
        if nodes > NUM_GROUPS:
            raise ConfigTooLarge(
                f"config has {nodes} groups, max number is {NUM_GROUPS}"
            )

    def _validate_node(self) -> None:
        if self.quorum <= 0:
            raise InvalidConfig("invalid MCMS config: Quorum must be greater than 0")
        if self.quorum > 255:
            raise InvalidConfig("invalid MCMS config: Quorum must fit in a uint8")
        if not self.signers and not self.group_signers:
            raise InvalidConfig(
                "invalid MCMS config: Config must have at least one signer or group"
            )
        if len(self.signers) + len(self.group_signers) < self.quorum:
            raise InvalidConfig(
                "invalid MCMS config: Quorum must be less than or equal to "
                "the number of signers and groups"
            )
        for group in self.group_signers:
            group._validate_node()

    # ── Queries ──────────────────────────────────────────────────────

    def node_count(self) -> int:
        """This node plus all descendants."""
        return 1 + sum(g.node_count() for g in self.group_signers)

    def get_all_signers(self) -> List[str]:
        """Every signer in traversal order, duplicates included."""
        signers = list(self.signers)
        for group in self.group_signers:
            signers.extend(group.get_all_signers())
        return signers

    def all_signers(self) -> List[str]:
        """Every distinct signer in traversal order."""
        seen = set()
        result = []
        for signer in self.get_all_signers():
            if signer not in seen:
                seen.add(signer)
                result.append(signer)
        return result

    def can_set_root(self, recovered_signers: Sequence[str]) -> bool:
        """
        Whether ``recovered_signers`` reach quorum at the root.

        Raises:
            InvalidConfig: a recovered signer is not part of this config
        """
        recovered = [normalize_address(s) for s in recovered_signers]
        known = set(self.get_all_signers())
        for signer in recovered:
            if signer not in known:
                raise InvalidConfig(
                    f"recovered signer {signer} is not a valid signer in the MCMS proposal"
                )
        return self._is_group_at_consensus(set(recovered))

    def _is_group_at_consensus(self, recovered: set) -> bool:
        approvals = sum(1 for s in self.signers if s in recovered)
        approvals += sum(1 for g in self.group_signers if g._is_group_at_consensus(recovered))
        return approvals >= self.quorum

    # ── Serialization ────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quorum": self.quorum,
            "signers": list(self.signers),
            "groupSigners": [g.to_dict() for g in self.group_signers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuorumConfig":
        return cls(
            quorum=int(data["quorum"]),
            signers=tuple(data.get("signers") or ()),
            group_signers=tuple(cls.from_dict(g) for g in data.get("groupSigners") or ()),
        )


@dataclass
class FlatConfig:
    """
    Array layout of a QuorumConfig.

    ``signer_addresses`` and ``signer_groups`` are index-aligned and sorted by
    address as an unsigned integer. ``group_quorums`` and ``group_parents``
    always hold NUM_GROUPS entries; unused slots have quorum 0.
    """
    signer_addresses: List[str] = field(default_factory=list)
    signer_groups: List[int] = field(default_factory=list)
    group_quorums: List[int] = field(default_factory=lambda: [0] * NUM_GROUPS)
    group_parents: List[int] = field(default_factory=lambda: [0] * NUM_GROUPS)

    @property
    def num_groups(self) -> int:
        return sum(1 for q in self.group_quorums if q > 0)


def flatten_config(cfg: QuorumConfig, max_signers: Optional[int] = None) -> FlatConfig:
    """
    Convert a tree into the contract array layout.

    Groups are numbered depth-first in pre-order starting with the root at
    index 0, so every parent index is lower than its children's.

    Raises:
        InvalidConfig: the tree is structurally invalid or repeats a signer
        ConfigTooLarge: more than NUM_GROUPS groups
        TooManySigners: more than ``max_signers`` signers
    """
    cfg.validate()

    quorums: List[int] = []
    parents: List[int] = []
    signers: List[Tuple[str, int]] = []

    def visit(node: QuorumConfig, parent_index: int) -> None:
        index = len(quorums)
        quorums.append(node.quorum)
        parents.append(parent_index)
        for signer in node.signers:
            signers.append((signer, index))
        for child in node.group_signers:
            visit(child, index)

    visit(cfg, 0)

    addresses = [s for s, _ in signers]
    if len(set(addresses)) != len(addresses):
        raise InvalidConfig("invalid MCMS config: signer addresses must be unique")
    if max_signers is not None and len(signers) > max_signers:
        raise TooManySigners(
            f"too many signers: {len(signers)} max number is {max_signers}"
        )

    signers.sort(key=lambda item: address_sort_key(item[0]))
    padding = NUM_GROUPS - len(quorums)

    return FlatConfig(
        signer_addresses=[s for s, _ in signers],
        signer_groups=[g for _, g in signers],
        group_quorums=quorums + [0] * padding,
        group_parents=parents + [0] * padding,
    )


def unflatten_config(
    signer_addresses: Sequence[str],
    signer_groups: Sequence[int],
    group_quorums: Sequence[int],
    group_parents: Sequence[int],
) -> QuorumConfig:
    """
    Rebuild the tree from the contract array layout.

    Raises:
        GroupIndexOutOfRange: a signer group is not below NUM_GROUPS
        InvalidConfig: the rebuilt root is structurally invalid
    """
    if len(signer_addresses) != len(signer_groups):
        raise InvalidConfig("signer addresses and signer groups differ in length")

    signers_by_group: List[List[str]] = [[] for _ in range(NUM_GROUPS)]
    for address, group in zip(signer_addresses, signer_groups):
        group = int(group)
        if group < 0 or group > MAX_GROUP_INDEX:
            raise GroupIndexOutOfRange(
                f"signer group index {group} exceeds maximum of {MAX_GROUP_INDEX}"
            )
        signers_by_group[group].append(address)

    quorums = [int(q) for q in group_quorums][:NUM_GROUPS]
    parents = [int(p) for p in group_parents][:NUM_GROUPS]
    quorums += [0] * (NUM_GROUPS - len(quorums))
    parents += [0] * (NUM_GROUPS - len(parents))

    children: List[List[QuorumConfig]] = [[] for _ in range(NUM_GROUPS)]
    built: List[Optional[QuorumConfig]] = [None] * NUM_GROUPS

    # Highest index first so every child is complete before its parent
    for i in range(MAX_GROUP_INDEX, -1, -1):
        built[i] = QuorumConfig(quorums[i], tuple(signers_by_group[i]), tuple(children[i]))
        if i == 0 or quorums[i] == 0:
            continue
        parent = parents[i]
        if parent >= i:
            raise InvalidConfig(
                f"invalid MCMS config: group {i} has parent {parent}, parents must precede children"
            )
        children[parent].insert(0, built[i])

    root = built[0]
    root.validate()
    return root
