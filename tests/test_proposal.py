"""
Proposal Test Suite

Covers:
  - Proposal / TimelockProposal validation
  - Absolute nonces across interleaved chains
  - Merkle tree contents, signing hash, signing
  - JSON round trips for both proposal kinds
  - Timelock salt, predecessor chaining, operation ids
  - Cancellation / bypass derivation
  - Duration and action parsing

Run with:
    pytest tests/test_proposal.py -v
"""

import time

import pytest

from mcms.constants import DEFAULT_VALID_FOR_SECONDS, ZERO_HASH
from mcms.crypto.keys import PrivateKey
from mcms.evm.fields import new_transaction
from mcms.exceptions import (
    ChainMetadataNotFound,
    InvalidAdditionalFields,
    InvalidTimelockOperation,
    InvalidValidUntil,
    UnknownChainSelector,
    ValidationError,
)
from mcms.proposal import Proposal, TimelockProposal
from mcms.sdk.registry import new_encoder
from mcms.types.operation import BatchOperation, ChainMetadata, Operation, Transaction
from mcms.types.timelock import Duration, TimelockAction


SEL_A = 16015286601757825753   # sepolia
SEL_B = 10344971235874465080   # base sepolia
MCM_A = "0x" + "a1" * 20
MCM_B = "0x" + "b1" * 20
TIMELOCK_A = "0x" + "a2" * 20
TARGET = "0x" + "cc" * 20
NOW = 1_700_000_000
VALID_UNTIL = NOW + 86_400


def op(selector, data=b"\x01"):
    return Operation(selector, new_transaction(TARGET, data))


def proposal(**overrides):
    kwargs = dict(
        valid_until=VALID_UNTIL,
        chain_metadata={SEL_A: ChainMetadata(5, MCM_A), SEL_B: ChainMetadata(0, MCM_B)},
        operations=[op(SEL_A, b"\x01"), op(SEL_B, b"\x02"), op(SEL_A, b"\x03"), op(SEL_B, b"\x04")],
        description="rotate signers",
    )
    kwargs.update(overrides)
    return Proposal(**kwargs)


def timelock_proposal(**overrides):
    kwargs = dict(
        valid_until=VALID_UNTIL,
        chain_metadata={SEL_A: ChainMetadata(0, MCM_A)},
        timelock_addresses={SEL_A: TIMELOCK_A},
        delay=Duration(3600),
        operations=[
            BatchOperation(SEL_A, [new_transaction(TARGET, b"\x01"), new_transaction(TARGET, b"\x02")]),
            BatchOperation(SEL_A, [new_transaction(TARGET, b"\x03")]),
        ],
    )
    kwargs.update(overrides)
    return TimelockProposal(**kwargs)


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════

class TestProposalValidation:

    def test_valid(self):
        assert proposal().validate(now=NOW) is not None

    def test_version_required(self):
        with pytest.raises(ValidationError, match="version"):
            proposal(version="").validate(now=NOW)

    def test_metadata_required(self):
        with pytest.raises(ValidationError, match="chain metadata"):
            proposal(chain_metadata={}).validate(now=NOW)

    def test_operations_required(self):
        with pytest.raises(ValidationError, match="at least one operation"):
            proposal(operations=[]).validate(now=NOW)

    @pytest.mark.parametrize("valid_until", [NOW, NOW - 1])
    def test_expired(self, valid_until):
        with pytest.raises(InvalidValidUntil):
            proposal(valid_until=valid_until).validate(now=NOW)

    def test_defaults_to_wall_clock(self):
        with pytest.raises(InvalidValidUntil):
            proposal(valid_until=int(time.time()) - 10).validate()

    def test_operation_without_metadata(self):
        p = proposal(chain_metadata={SEL_A: ChainMetadata(0, MCM_A)})
        with pytest.raises(ChainMetadataNotFound):
            p.validate(now=NOW)

    def test_unknown_selector(self):
        p = proposal(chain_metadata={42: ChainMetadata(0, MCM_A)}, operations=[op(42)])
        with pytest.raises(UnknownChainSelector):
            p.validate(now=NOW)

    def test_family_field_checks(self):
        bad = Operation(SEL_A, Transaction(to=TARGET, additional_fields={"value": -5}))
        with pytest.raises(InvalidAdditionalFields):
            proposal(operations=[bad]).validate(now=NOW)


# ══════════════════════════════════════════════════════════════════════
#  NONCES / TREE / SIGNING
# ══════════════════════════════════════════════════════════════════════

class TestProposalHashing:

    def test_absolute_nonces(self):
        assert proposal().transaction_nonces() == [5, 0, 6, 1]

    def test_transaction_counts(self):
        assert proposal().transaction_counts() == {SEL_A: 2, SEL_B: 2}

    def test_tree_has_one_leaf_per_chain_and_op(self):
        p = proposal()
        tree = p.merkle_tree()
        assert len(tree.layers[0]) == 6

    def test_every_leaf_is_provable(self):
        p = proposal()
        tree = p.merkle_tree()
        encoders = p.get_encoders()
        for selector, md in p.chain_metadata.items():
            tree.get_proof(encoders[selector].hash_metadata(md))
        for operation, nonce in zip(p.operations, p.transaction_nonces()):
            tree.get_proof(encoders[operation.chain_selector].hash_operation(
                nonce, p.chain_metadata[operation.chain_selector], operation,
            ))

    def test_root_depends_on_starting_op_count(self):
        shifted = proposal(chain_metadata={SEL_A: ChainMetadata(6, MCM_A), SEL_B: ChainMetadata(0, MCM_B)})
        assert shifted.merkle_tree().root != proposal().merkle_tree().root

    def test_description_not_hashed(self):
        assert proposal(description="x").signing_hash() == proposal(description="y").signing_hash()

    def test_signing_hash_binds_valid_until(self):
        assert proposal(valid_until=VALID_UNTIL + 1).signing_hash() != proposal().signing_hash()

    def test_simulated_backend_changes_root(self):
        sim = proposal(use_simulated_backend=True)
        assert sim.get_encoders()[SEL_A].chain_id == 1337
        assert sim.merkle_tree().root != proposal().merkle_tree().root

    def test_sign(self):
        key = PrivateKey.from_int(99)
        p = proposal()
        signature = p.sign(key)
        assert p.signatures == [signature]
        assert signature.recover(p.signing_hash()) == key.address


class TestProposalSerialization:

    def test_json_round_trip(self):
        p = proposal()
        p.sign(PrivateKey.from_int(1))
        assert Proposal.from_json(p.to_json()) == p

    def test_wire_keys(self):
        data = proposal().to_dict()
        assert data["kind"] == "Proposal"
        assert data["version"] == "v1"
        assert set(data["chainMetadata"]) == {str(SEL_A), str(SEL_B)}
        assert data["operations"][0]["chainSelector"] == SEL_A
        assert data["operations"][0]["data"] == "0x01"

    def test_wrong_kind(self):
        data = proposal().to_dict()
        data["kind"] = "TimelockProposal"
        with pytest.raises(ValidationError, match="invalid proposal kind"):
            Proposal.from_dict(data)


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK PROPOSALS
# ══════════════════════════════════════════════════════════════════════

class TestTimelockProposal:

    def test_valid(self):
        timelock_proposal().validate(now=NOW)

    def test_timelock_address_required(self):
        with pytest.raises(ValidationError, match="missing timelock address"):
            timelock_proposal(timelock_addresses={}).validate(now=NOW)

    def test_empty_batch_rejected(self):
        with pytest.raises(ValidationError, match="no transactions"):
            timelock_proposal(operations=[BatchOperation(SEL_A, [])]).validate(now=NOW)

    def test_default_salt(self):
        assert timelock_proposal().salt() == VALID_UNTIL.to_bytes(4, "big") + b"\x00" * 28

    def test_salt_override(self):
        assert timelock_proposal(salt_override=b"\x09" * 32).salt() == b"\x09" * 32

    def test_transaction_counts(self):
        assert timelock_proposal().transaction_counts() == {SEL_A: 3}

    def test_predecessors_chain_per_selector(self):
        tp = timelock_proposal()
        converted, predecessors = tp.convert()
        op_ids = tp.operation_ids()
        assert len(converted.operations) == 2
        assert predecessors == [ZERO_HASH, op_ids[0]]
        assert op_ids[0] != op_ids[1]

    def test_converted_proposal_keeps_base_fields(self):
        tp = timelock_proposal(override_previous_root=True, use_simulated_backend=True)
        converted, _ = tp.convert()
        assert converted.valid_until == VALID_UNTIL
        assert converted.override_previous_root is True
        assert converted.use_simulated_backend is True
        assert converted.chain_metadata == tp.chain_metadata

    def test_signing_hash_matches_converted(self):
        tp = timelock_proposal()
        assert tp.signing_hash() == tp.convert()[0].signing_hash()

    def test_json_round_trip(self):
        tp = timelock_proposal(salt_override=b"\x07" * 32, action=TimelockAction.SCHEDULE)
        restored = TimelockProposal.from_json(tp.to_json())
        assert restored == tp
        assert restored.delay == Duration(3600)
        assert tp.to_dict()["delay"] == "1h0m0s"


class TestDerivedProposals:

    def canceller_metadata(self):
        return {SEL_A: ChainMetadata(3, "0x" + "dd" * 20)}

    def test_cancellation(self):
        tp = timelock_proposal()
        tp.sign(PrivateKey.from_int(5))
        before = int(time.time())
        cancel = tp.derive_cancellation_proposal(self.canceller_metadata())

        assert cancel.action == TimelockAction.CANCEL
        assert cancel.signatures == []
        assert cancel.chain_metadata == self.canceller_metadata()
        assert cancel.salt() == tp.salt()
        assert cancel.valid_until >= before + DEFAULT_VALID_FOR_SECONDS
        assert cancel.operation_ids() == tp.operation_ids()
        assert tp.action == TimelockAction.SCHEDULE
        assert len(tp.signatures) == 1

    def test_bypass(self):
        tp = timelock_proposal()
        bypass = tp.derive_bypass_proposal(self.canceller_metadata())
        assert bypass.action == TimelockAction.BYPASS
        assert bypass.operation_ids() == tp.operation_ids()

    def test_missing_metadata(self):
        with pytest.raises(ChainMetadataNotFound):
            timelock_proposal().derive_cancellation_proposal({})

    def test_only_from_schedule(self):
        cancel = timelock_proposal().derive_cancellation_proposal(self.canceller_metadata())
        with pytest.raises(InvalidTimelockOperation):
            cancel.derive_bypass_proposal(self.canceller_metadata())


# ══════════════════════════════════════════════════════════════════════
#  DURATION / ACTION / REGISTRY
# ══════════════════════════════════════════════════════════════════════

class TestDuration:

    @pytest.mark.parametrize("value,seconds", [
        (0, 0),
        (90, 90),
        ("90s", 90),
        ("1h30m", 5400),
        ("1h0m0s", 3600),
        ("2.5m", 150),
        ("", 0),
    ])
    def test_parse(self, value, seconds):
        assert Duration.parse(value).seconds == seconds

    @pytest.mark.parametrize("value", ["abc", "10x", "1h 30m", -1])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            Duration.parse(value)

    def test_str(self):
        assert str(Duration(5400)) == "1h30m0s"
        assert str(Duration(42)) == "42s"


class TestRegistry:

    def test_action_parse(self):
        assert TimelockAction.parse("bypass") == TimelockAction.BYPASS
        with pytest.raises(InvalidTimelockOperation):
            TimelockAction.parse("pause")

    def test_unknown_selector(self):
        with pytest.raises(UnknownChainSelector):
            new_encoder(42, 1, False)
