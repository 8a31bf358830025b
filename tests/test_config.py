"""
Quorum Configuration & Adapter Config Test Suite

Covers:
  - QuorumConfig structural validation (quorum bounds, empty nodes, 32 groups)
  - flatten_config / unflatten_config on flat and hierarchical trees
  - TooManySigners, GroupIndexOutOfRange, duplicate signers
  - can_set_root recursive quorum evaluation
  - mcms.toml loading, MCMS_* environment overrides, [[chains]] registration
  - Every section wired into logging, configurers, executors and proposals

Run with:
    pytest tests/test_config.py -v
"""

import logging
import time
from unittest.mock import MagicMock

import pytest

from mcms.canton.fields import new_transaction as canton_transaction
from mcms.config import AdapterConfig, load_config
from mcms.constants import NUM_GROUPS, ZERO_HASH
from mcms.exceptions import (
    ConfigTooLarge,
    GroupIndexOutOfRange,
    InvalidConfig,
    NoCreatedEvent,
    TooManySigners,
    ValidationError,
)
from mcms.evm.fields import new_transaction
from mcms.logger import configure_logging, get_logger
from mcms.proposal import Proposal, TimelockProposal
from mcms.sdk.client import ChainClient, CreatedEvent, SubmitResult
from mcms.solana.address import contract_address, encode_pubkey
from mcms.types.chain_selector import ChainFamily, get_chain_family, get_evm_chain_id, register_chain
from mcms.types.config import QuorumConfig, flatten_config, unflatten_config
from mcms.types.operation import BatchOperation, ChainMetadata, Operation
from mcms.types.timelock import Duration


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

def hierarchical(addresses):
    """
    Root (quorum 2): one direct signer plus two groups
      group 1 (quorum 1): two signers
      group 2 (quorum 2): three signers
    """
    return QuorumConfig.new(
        quorum=2,
        signers=[addresses[0]],
        group_signers=[
            QuorumConfig(1, (addresses[1], addresses[2])),
            QuorumConfig(2, (addresses[3], addresses[4], addresses[5])),
        ],
    )


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════

class TestQuorumConfigValidation:

    def test_valid_flat_config(self, addresses):
        cfg = QuorumConfig.new(2, addresses[:3])
        assert cfg.quorum == 2
        assert len(cfg.signers) == 3

    def test_signers_are_sorted_ascending(self, addresses):
        cfg = QuorumConfig(1, tuple(reversed(addresses[:6])))
        values = [int(s, 16) for s in cfg.signers]
        assert values == sorted(values)

    def test_zero_quorum_rejected(self, addresses):
        with pytest.raises(InvalidConfig, match="greater than 0"):
            QuorumConfig.new(0, addresses[:2])

    def test_quorum_above_members_rejected(self, addresses):
        with pytest.raises(InvalidConfig, match="less than or equal"):
            QuorumConfig.new(3, addresses[:2])

    def test_empty_node_rejected(self):
        with pytest.raises(InvalidConfig, match="at least one signer or group"):
            QuorumConfig.new(1)

    def test_invalid_nested_group_rejected(self, addresses):
        with pytest.raises(InvalidConfig):
            QuorumConfig.new(1, [addresses[0]], [QuorumConfig(2, (addresses[1],))])

    def test_invalid_address_rejected(self):
        with pytest.raises(InvalidConfig, match="invalid signer address"):
            QuorumConfig(1, ("not-an-address",))

    def test_thirty_two_groups_accepted(self, addresses):
        groups = [QuorumConfig(1, (addresses[i],)) for i in range(NUM_GROUPS - 1)]
        cfg = QuorumConfig.new(1, group_signers=groups)
        assert cfg.node_count() == NUM_GROUPS

    def test_thirty_three_groups_rejected(self, addresses):
        groups = [QuorumConfig(1, (addresses[i],)) for i in range(NUM_GROUPS)]
        with pytest.raises(ConfigTooLarge):
            QuorumConfig.new(1, group_signers=groups)

    def test_errors_share_validation_parent(self):
        assert issubclass(ConfigTooLarge, ValidationError)
        assert issubclass(TooManySigners, InvalidConfig)


# ══════════════════════════════════════════════════════════════════════
#  FLATTEN / UNFLATTEN
# ══════════════════════════════════════════════════════════════════════

class TestFlattenConfig:

    def test_flat_layout(self, addresses):
        flat = flatten_config(hierarchical(addresses))
        assert flat.group_quorums[:3] == [2, 1, 2]
        assert flat.group_parents[:3] == [0, 0, 0]
        assert flat.group_quorums[3:] == [0] * (NUM_GROUPS - 3)
        assert len(flat.group_quorums) == NUM_GROUPS
        assert len(flat.group_parents) == NUM_GROUPS
        assert flat.num_groups == 3

    def test_signers_sorted_with_groups(self, addresses):
        cfg = hierarchical(addresses)
        flat = flatten_config(cfg)
        values = [int(a, 16) for a in flat.signer_addresses]
        assert values == sorted(values)
        expected_group = {addresses[0]: 0, addresses[1]: 1, addresses[2]: 1,
                          addresses[3]: 2, addresses[4]: 2, addresses[5]: 2}
        for address, group in zip(flat.signer_addresses, flat.signer_groups):
            assert expected_group[address] == group

    def test_hierarchical_round_trip(self, addresses):
        cfg = hierarchical(addresses)
        flat = flatten_config(cfg)
        rebuilt = unflatten_config(
            flat.signer_addresses, flat.signer_groups, flat.group_quorums, flat.group_parents
        )
        assert rebuilt == cfg

    def test_deep_tree_round_trip(self, addresses):
        leaf = QuorumConfig(1, (addresses[10], addresses[11]))
        middle = QuorumConfig(2, (addresses[8], addresses[9]), (leaf,))
        cfg = QuorumConfig.new(1, [addresses[7]], [middle, QuorumConfig(1, (addresses[12],))])
        flat = flatten_config(cfg)
        # Pre-order numbering: root 0, middle 1, leaf 2, sibling 3
        assert flat.group_parents[:4] == [0, 0, 1, 0]
        rebuilt = unflatten_config(
            flat.signer_addresses, flat.signer_groups, flat.group_quorums, flat.group_parents
        )
        assert rebuilt == cfg

    def test_too_many_signers(self, addresses):
        cfg = QuorumConfig.new(1, addresses[:10])
        with pytest.raises(TooManySigners, match="max number is 5"):
            flatten_config(cfg, max_signers=5)

    def test_duplicate_signer_across_groups(self, addresses):
        cfg = QuorumConfig.new(1, [addresses[0]], [QuorumConfig(1, (addresses[0],))])
        with pytest.raises(InvalidConfig, match="unique"):
            flatten_config(cfg)

    def test_group_index_out_of_range(self, addresses):
        quorums = [1] + [0] * (NUM_GROUPS - 1)
        with pytest.raises(GroupIndexOutOfRange):
            unflatten_config([addresses[0]], [NUM_GROUPS], quorums, [0] * NUM_GROUPS)

    def test_parent_after_child_rejected(self, addresses):
        quorums = [1, 1, 1] + [0] * (NUM_GROUPS - 3)
        parents = [0, 2, 0] + [0] * (NUM_GROUPS - 3)
        with pytest.raises(InvalidConfig, match="parents must precede children"):
            unflatten_config(addresses[:3], [0, 1, 2], quorums, parents)

    def test_dict_round_trip(self, addresses):
        cfg = hierarchical(addresses)
        assert QuorumConfig.from_dict(cfg.to_dict()) == cfg


# ══════════════════════════════════════════════════════════════════════
#  QUORUM EVALUATION
# ══════════════════════════════════════════════════════════════════════

class TestCanSetRoot:

    def test_direct_signer_plus_group(self, addresses):
        cfg = hierarchical(addresses)
        assert cfg.can_set_root([addresses[0], addresses[1]]) is True

    def test_single_signer_not_enough(self, addresses):
        cfg = hierarchical(addresses)
        assert cfg.can_set_root([addresses[0]]) is False

    def test_two_groups_without_direct_signer(self, addresses):
        cfg = hierarchical(addresses)
        assert cfg.can_set_root([addresses[2], addresses[3], addresses[4]]) is True

    def test_partial_group_does_not_count(self, addresses):
        cfg = hierarchical(addresses)
        assert cfg.can_set_root([addresses[0], addresses[3]]) is False

    def test_unknown_signer_is_an_error(self, addresses):
        cfg = hierarchical(addresses)
        with pytest.raises(InvalidConfig, match="not a valid signer"):
            cfg.can_set_root([addresses[40]])

    def test_all_signers_deduplicated(self, addresses):
        cfg = hierarchical(addresses)
        assert sorted(cfg.all_signers()) == sorted(addresses[:6])


# ══════════════════════════════════════════════════════════════════════
#  ADAPTER CONFIG
# ══════════════════════════════════════════════════════════════════════

SAMPLE_TOML = """
[logging]
level = "WARNING"

[evm]
simulated_backend = true
max_signers = 100

[solana]
append_signers_batch_size = 20

[canton]
party = "alice::1220"

[[chains]]
selector = 777000111
family = "evm"
chain_id = 31337
name = "local-anvil"
"""


class TestAdapterConfig:

    def test_defaults(self):
        cfg = AdapterConfig()
        assert cfg.evm.max_signers == 255
        assert cfg.solana.max_signers == 180
        assert cfg.solana.append_signers_batch_size == 45
        assert cfg.solana.append_signatures_batch_size == 13
        assert cfg.canton.mcms_template_key == "MCMS.Main:MCMS"
        assert cfg.proposal.version == "v1"
        assert cfg.validate() is True

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "mcms.toml"
        path.write_text(SAMPLE_TOML)
        cfg = load_config(str(path))
        assert cfg.logging.level == "WARNING"
        assert cfg.evm.simulated_backend is True
        assert cfg.evm.max_signers == 100
        assert cfg.solana.append_signers_batch_size == 20
        assert cfg.canton.party == "alice::1220"
        assert cfg.chains[0].chain_id == 31337

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "absent.toml"))
        assert cfg.evm.max_signers == 255

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "mcms.toml"
        path.write_text(SAMPLE_TOML)
        monkeypatch.setenv("MCMS_LOG_LEVEL", "debug")
        monkeypatch.setenv("MCMS_EVM_SIMULATED_BACKEND", "false")
        monkeypatch.setenv("MCMS_CANTON_PARTY", "bob::1220")
        cfg = load_config(str(path))
        assert cfg.logging.level == "DEBUG"
        assert cfg.evm.simulated_backend is False
        assert cfg.canton.party == "bob::1220"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "other.toml"
        path.write_text(SAMPLE_TOML)
        monkeypatch.setenv("MCMS_CONFIG", str(path))
        assert load_config().evm.max_signers == 100

    def test_invalid_log_level(self):
        cfg = AdapterConfig()
        cfg.logging.level = "LOUD"
        with pytest.raises(ValueError, match="Invalid log level"):
            cfg.validate()

    def test_invalid_max_signers(self):
        cfg = AdapterConfig()
        cfg.solana.max_signers = 0
        with pytest.raises(ValueError, match="solana.max_signers"):
            cfg.validate()

    def test_unknown_chain_family(self):
        cfg = AdapterConfig.from_dict({"chains": [{"selector": 1, "family": "cosmos", "chain_id": 1}]})
        with pytest.raises(ValueError, match="Unknown chain family"):
            cfg.validate()

    def test_apply_chains_registers_selectors(self, tmp_path):
        path = tmp_path / "mcms.toml"
        path.write_text(SAMPLE_TOML)
        cfg = load_config(str(path))
        cfg.apply_chains()
        assert get_chain_family(777000111) == ChainFamily.EVM
        assert get_evm_chain_id(777000111) == 31337

    def test_to_dict_covers_every_section(self):
        data = AdapterConfig().to_dict()
        assert set(data) == {"logging", "evm", "solana", "canton", "proposal", "chains"}


# ══════════════════════════════════════════════════════════════════════
#  SECTION WIRING
# ══════════════════════════════════════════════════════════════════════

SEL_SEPOLIA = 16015286601757825753
MCM = "0x" + "a1" * 20
TIMELOCK = "0x" + "a2" * 20
TARGET = "0x" + "cc" * 20
SOLANA_AUTHORITY = encode_pubkey(b"\x11" * 32)
SOLANA_MCM = contract_address(encode_pubkey(b"\x22" * 32), b"test-mcm")
CANTON_CID = "00aa"
SEL_CANTON = 9268731218649498074


def chain_client():
    client = MagicMock(spec=ChainClient)
    client.submit.return_value = SubmitResult("0xabc")
    return client


def schedule_proposal():
    return TimelockProposal(
        valid_until=2_000_000_000,
        chain_metadata={SEL_SEPOLIA: ChainMetadata(0, MCM)},
        timelock_addresses={SEL_SEPOLIA: TIMELOCK},
        delay=Duration(3600),
        operations=[BatchOperation(SEL_SEPOLIA, [new_transaction(TARGET, b"\x01")])],
    )


class TestLoggingSection:

    def test_file_output_from_config(self, tmp_path):
        log_file = tmp_path / "adapter.log"
        cfg = AdapterConfig.from_dict({
            "logging": {"level": "DEBUG", "file_output": True, "file_path": str(log_file)},
        })
        try:
            cfg.configure_logging(console_output=False)
            assert logging.getLogger().level == logging.DEBUG
            get_logger("mcms.tests").debug("configured from mcms.toml")
            for handler in logging.getLogger().handlers:
                handler.flush()
            assert "configured from mcms.toml" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            configure_logging()

    def test_level_from_config(self):
        cfg = AdapterConfig.from_dict({"logging": {"level": "ERROR"}})
        try:
            cfg.configure_logging(console_output=False)
            assert logging.getLogger().level == logging.ERROR
        finally:
            configure_logging()


class TestEVMSection:

    def test_max_signers_override(self, addresses):
        client = chain_client()
        cfg = QuorumConfig.new(1, addresses[:3])
        AdapterConfig().evm_configurer(client).set_config(MCM, cfg, clear_root=False)

        limited = AdapterConfig.from_dict({"evm": {"max_signers": 2}})
        with pytest.raises(TooManySigners):
            limited.evm_configurer(client).set_config(MCM, cfg, clear_root=False)
        client.submit.assert_called_once()

    def test_simulated_backend_applied_to_loaded_proposal(self):
        text = Proposal(
            valid_until=2_000_000_000,
            chain_metadata={SEL_SEPOLIA: ChainMetadata(0, MCM)},
            operations=[Operation(SEL_SEPOLIA, new_transaction(TARGET, b"\x01"))],
        ).to_json()

        live = AdapterConfig().load_proposal(text)
        simulated = AdapterConfig.from_dict({"evm": {"simulated_backend": True}}).load_proposal(text)

        assert live.get_encoders()[SEL_SEPOLIA].is_sim is False
        assert simulated.get_encoders()[SEL_SEPOLIA].is_sim is True
        assert simulated.signing_hash() != live.signing_hash()


class TestSolanaSection:

    def test_append_signers_batch_size(self, addresses):
        cfg = QuorumConfig.new(1, addresses[:30])
        default_steps = AdapterConfig().solana_configurer(chain_client(), SOLANA_AUTHORITY).build_instructions(
            SOLANA_MCM, cfg, clear_root=False,
        )
        small = AdapterConfig.from_dict({"solana": {"append_signers_batch_size": 10}})
        small_steps = small.solana_configurer(chain_client(), SOLANA_AUTHORITY).build_instructions(
            SOLANA_MCM, cfg, clear_root=False,
        )
        assert [label for label, _ in default_steps if label.startswith("appendSigners")] == ["appendSigners0"]
        assert [label for label, _ in small_steps if label.startswith("appendSigners")] == [
            "appendSigners0", "appendSigners1", "appendSigners2",
        ]

    def test_max_signers_override(self, addresses):
        cfg = AdapterConfig.from_dict({"solana": {"max_signers": 5}})
        with pytest.raises(TooManySigners):
            cfg.solana_configurer(chain_client(), SOLANA_AUTHORITY).build_instructions(
                SOLANA_MCM, QuorumConfig.new(1, addresses[:6]), clear_root=False,
            )

    def test_append_signatures_batch_size(self):
        cfg = AdapterConfig.from_dict({"solana": {"append_signatures_batch_size": 4}})
        assert cfg.solana_executor(MagicMock(), chain_client(), SOLANA_AUTHORITY).batch_size == 4


class TestCantonSection:

    def canton_client(self, template):
        client = MagicMock(spec=ChainClient)
        client.submit.return_value = SubmitResult("update-1", created=[CreatedEvent("00bb", template)])
        return client

    def test_template_override(self, addresses):
        cfg = AdapterConfig.from_dict({"canton": {"mcms_template_key": "Custom.Main:MCMS"}})
        client = self.canton_client("9f2c:Custom.Main:MCMS")
        result = cfg.canton_configurer(client).set_config(CANTON_CID, QuorumConfig.new(1, addresses[:1]), False)
        assert result.contract_address == "00bb"

    def test_default_template_ignores_other_contracts(self, addresses):
        cfg = AdapterConfig()
        client = self.canton_client("9f2c:Custom.Main:MCMS")
        with pytest.raises(NoCreatedEvent):
            cfg.canton_configurer(client).set_config(CANTON_CID, QuorumConfig.new(1, addresses[:1]), False)

    def test_timelock_executor_submits_as_party(self):
        register_chain(SEL_CANTON, "canton", "canton-localnet", "canton-localnet")
        cfg = AdapterConfig.from_dict({
            "canton": {"party": "bob::1220", "mcms_template_key": "Custom.Main:MCMS"},
        })
        client = self.canton_client("9f2c:Custom.Main:MCMS")
        bop = BatchOperation(SEL_CANTON, [canton_transaction("00cc", "counter-1", "Increment", "")])
        result = cfg.canton_timelock_executor(client).execute(bop, CANTON_CID, ZERO_HASH, ZERO_HASH)
        assert client.submit.call_args[0][2]["submitter"] == "bob::1220"
        assert result.contract_address == "00bb"

    def test_executor_party(self):
        cfg = AdapterConfig.from_dict({"canton": {"party": "bob::1220"}})
        assert cfg.canton_executor(MagicMock(), chain_client()).party == "bob::1220"

    def test_party_required(self):
        with pytest.raises(ValueError, match="canton.party"):
            AdapterConfig().canton_timelock_executor(chain_client())


class TestProposalSection:

    def test_derived_validity_window(self):
        cfg = AdapterConfig.from_dict({"proposal": {"default_valid_for_seconds": 600}})
        canceller = {SEL_SEPOLIA: ChainMetadata(3, "0x" + "dd" * 20)}
        before = int(time.time())
        cancel = cfg.derive_cancellation_proposal(schedule_proposal(), canceller)
        bypass = cfg.derive_bypass_proposal(schedule_proposal(), canceller)
        after = int(time.time())
        for derived in (cancel, bypass):
            assert before + 600 <= derived.valid_until <= after + 600

    def test_version_mismatch_rejected(self):
        cfg = AdapterConfig.from_dict({"proposal": {"version": "v2"}})
        with pytest.raises(ValidationError, match="unsupported proposal version"):
            cfg.load_proposal(schedule_proposal().to_json())

    def test_timelock_kind_loaded(self):
        loaded = AdapterConfig().load_proposal(schedule_proposal().to_json())
        assert isinstance(loaded, TimelockProposal)
        assert loaded.timelock_addresses == {SEL_SEPOLIA: TIMELOCK}
