"""
Solana Adapter Test Suite

Covers:
  - base58 public keys, ed25519 on-curve check, program-derived addresses
  - "<programID>.<seed>" contract addresses
  - Leaf encoder field sensitivity
  - Staged config and set-root pipelines: chunking, labels, failure step names
  - Timelock converter op counts, op-id stability, PDA signer flags
  - Timelock and mcm inspectors against a mocked account reader

Run with:
    pytest tests/test_solana.py -v
"""

from unittest.mock import MagicMock

import pytest
from eth_utils import to_checksum_address

from mcms.constants import ZERO_HASH
from mcms.crypto.hashing import keccak256
from mcms.exceptions import (
    ChainClientError,
    InvalidAdditionalFields,
    InvalidContractAddress,
    MissingField,
    SubmissionFailed,
    TooManySigners,
)
from mcms.sdk.client import ChainClient, SubmitResult
from mcms.solana.address import (
    contract_address,
    decode_pubkey,
    encode_pubkey,
    find_config_pda,
    find_pda,
    find_program_address,
    is_on_curve,
    parse_contract_address,
)
from mcms.solana.configurer import SolanaConfigurer, chunk_indexes
from mcms.solana.encoder import SolanaEncoder
from mcms.solana.executor import SolanaExecutor
from mcms.solana.fields import (
    new_chain_metadata,
    new_transaction,
    validate_chain_metadata,
    validate_transaction,
)
from mcms.solana.inspector import SolanaInspector
from mcms.solana.instructions import AccountMeta, discriminator
from mcms.solana.timelock import SolanaTimelockConverter, SolanaTimelockInspector
from mcms.types.config import QuorumConfig
from mcms.types.operation import BatchOperation, ChainMetadata, Operation, Transaction
from mcms.types.signature import Signature
from mcms.types.timelock import Duration, TimelockAction


SEL_DEVNET = 16423721717087811551


def key(label: bytes) -> str:
    return encode_pubkey(keccak256(label))


MCM_PROGRAM = key(b"mcm-program")
TIMELOCK_PROGRAM = key(b"timelock-program")
TARGET_PROGRAM = key(b"target-program")
AUTHORITY = key(b"authority")
PROPOSER_AC = key(b"proposer-ac")
CANCELLER_AC = key(b"canceller-ac")
BYPASSER_AC = key(b"bypasser-ac")

MCM = contract_address(MCM_PROGRAM, b"test-mcm")
TIMELOCK = contract_address(TIMELOCK_PROGRAM, b"test-timelock")
ROOT = keccak256(b"root")
VALID_UNTIL = 2_000_000_000


def evm_addresses(n):
    return [to_checksum_address(keccak256(b"signer" + i.to_bytes(4, "big"))[12:]) for i in range(n)]


def dummy_signatures(n):
    return [Signature(v=27, r=i.to_bytes(32, "big"), s=b"\x02" * 32) for i in range(n)]


def metadata(starting=0):
    return new_chain_metadata(starting, MCM, PROPOSER_AC, CANCELLER_AC, BYPASSER_AC)


def target_tx(data=b"\x01", writable=True):
    return new_transaction(TARGET_PROGRAM, data, [AccountMeta(key(b"acct"), False, writable)])


@pytest.fixture
def client():
    mock = MagicMock(spec=ChainClient)
    mock.submit.return_value = SubmitResult(tx_hash="sig")
    return mock


# ══════════════════════════════════════════════════════════════════════
#  KEYS AND ADDRESSES
# ══════════════════════════════════════════════════════════════════════

class TestPublicKeys:

    def test_zero_key_is_system_program(self):
        assert encode_pubkey(b"\x00" * 32) == "11111111111111111111111111111111"

    def test_decode_round_trip(self):
        raw = keccak256(b"k")
        assert decode_pubkey(encode_pubkey(raw)) == raw

    def test_wrong_length_rejected(self):
        with pytest.raises(InvalidContractAddress, match="expected 32 bytes"):
            decode_pubkey(encode_pubkey(b"\x01" * 20))

    def test_bad_alphabet_rejected(self):
        with pytest.raises(InvalidContractAddress):
            decode_pubkey("0OIl")

    def test_base_point_is_on_curve(self):
        assert is_on_curve(bytes.fromhex("58" + "66" * 31))

    def test_pda_is_off_curve(self):
        program_id = decode_pubkey(MCM_PROGRAM)
        address, bump = find_program_address([b"multisig_config", b"seed"], program_id)
        assert not is_on_curve(address)
        assert 0 <= bump <= 255

    def test_pda_deterministic_and_seed_sensitive(self):
        program_id = decode_pubkey(MCM_PROGRAM)
        assert find_pda(program_id, [b"a"]) == find_pda(program_id, [b"a"])
        assert find_pda(program_id, [b"a"]) != find_pda(program_id, [b"b"])

    def test_seed_too_long(self):
        with pytest.raises(ValueError, match="seed too long"):
            find_pda(decode_pubkey(MCM_PROGRAM), [b"x" * 33])


class TestContractAddress:

    def test_format(self):
        assert MCM == f"{MCM_PROGRAM}.test-mcm"

    def test_parse_pads_seed(self):
        program_id, seed = parse_contract_address(MCM)
        assert program_id == decode_pubkey(MCM_PROGRAM)
        assert seed == b"test-mcm".ljust(32, b"\x00")

    @pytest.mark.parametrize("address", [MCM_PROGRAM, f"{MCM_PROGRAM}.a.b", "nope.seed"])
    def test_malformed(self, address):
        with pytest.raises(InvalidContractAddress):
            parse_contract_address(address)

    def test_seed_too_long(self):
        with pytest.raises(InvalidContractAddress, match="too long"):
            contract_address(MCM_PROGRAM, b"s" * 33)


# ══════════════════════════════════════════════════════════════════════
#  FIELDS
# ══════════════════════════════════════════════════════════════════════

class TestFields:

    def test_accounts_required(self):
        with pytest.raises(MissingField, match="accounts"):
            validate_transaction(Transaction(to=TARGET_PROGRAM, data=b"\x01"))

    def test_accounts_parsed(self):
        fields = validate_transaction(target_tx())
        assert fields.accounts == [AccountMeta(key(b"acct"), False, True)]

    def test_metadata_controllers_required(self):
        with pytest.raises(MissingField, match="proposerRoleAccessController"):
            validate_chain_metadata(ChainMetadata(0, MCM))

    def test_zero_controller_rejected(self):
        md = metadata()
        md.additional_fields["cancellerRoleAccessController"] = encode_pubkey(b"\x00" * 32)
        with pytest.raises(InvalidAdditionalFields, match="zero address"):
            validate_chain_metadata(md)


# ══════════════════════════════════════════════════════════════════════
#  ENCODER
# ══════════════════════════════════════════════════════════════════════

class TestEncoder:

    def setup_method(self):
        self.encoder = SolanaEncoder(SEL_DEVNET, tx_count=1, override_previous_root=False)

    def leaf(self, tx=None, nonce=0, md=None):
        return self.encoder.hash_operation(nonce, md or metadata(), Operation(SEL_DEVNET, tx or target_tx()))

    def test_deterministic(self):
        assert self.leaf() == self.leaf()

    def test_sensitivity(self):
        base = self.leaf()
        assert self.leaf(nonce=1) != base
        assert self.leaf(tx=target_tx(data=b"\x02")) != base
        assert self.leaf(tx=target_tx(writable=False)) != base
        other = new_chain_metadata(0, contract_address(MCM_PROGRAM, b"other"), PROPOSER_AC, CANCELLER_AC, BYPASSER_AC)
        assert self.leaf(md=other) != base

    def test_metadata_leaf(self):
        base = self.encoder.hash_metadata(metadata())
        assert self.encoder.hash_metadata(metadata(1)) != base
        assert SolanaEncoder(SEL_DEVNET, 1, True).hash_metadata(metadata()) != base
        assert SolanaEncoder(SEL_DEVNET, 2, False).hash_metadata(metadata()) != base


# ══════════════════════════════════════════════════════════════════════
#  STAGED PIPELINES
# ══════════════════════════════════════════════════════════════════════

class TestChunking:

    @pytest.mark.parametrize("n,size,expected", [
        (0, 45, []),
        (45, 45, [(0, 45)]),
        (100, 45, [(0, 45), (45, 90), (90, 100)]),
    ])
    def test_chunk_indexes(self, n, size, expected):
        assert chunk_indexes(n, size) == expected


class TestConfigurer:

    def test_instruction_labels(self, client):
        cfg = QuorumConfig.new(2, evm_addresses(100))
        steps = SolanaConfigurer(client, AUTHORITY).build_instructions(MCM, cfg, clear_root=False)
        labels = [label for label, _ in steps]
        assert labels == ["initSigners", "appendSigners0", "appendSigners1", "appendSigners2",
                          "finalizeSigners", "setConfig"]
        assert all(i.program_id == MCM_PROGRAM for _, i in steps)
        assert steps[0][1].data[:8] == discriminator("init_signers")

    def test_set_config_submits_every_step(self, client):
        cfg = QuorumConfig.new(1, evm_addresses(3))
        result = SolanaConfigurer(client, AUTHORITY).set_config(MCM, cfg, clear_root=True)
        assert client.submit.call_count == 4
        assert [c[0][1] for c in client.submit.call_args_list] == [
            "init_signers", "append_signers", "finalize_signers", "set_config",
        ]
        assert result.contract_address == MCM

    def test_failure_names_the_step(self, client):
        client.submit.side_effect = [SubmitResult("a"), ChainClientError("insufficient funds")]
        cfg = QuorumConfig.new(1, evm_addresses(3))
        with pytest.raises(SubmissionFailed) as info:
            SolanaConfigurer(client, AUTHORITY).set_config(MCM, cfg, clear_root=False)
        assert info.value.step == "instruction 1 - appendSigners0"
        assert client.submit.call_count == 2

    def test_signer_limit(self, client):
        cfg = QuorumConfig.new(1, evm_addresses(10))
        with pytest.raises(TooManySigners):
            SolanaConfigurer(client, AUTHORITY, max_signers=5).build_instructions(MCM, cfg, False)
        client.submit.assert_not_called()


class TestExecutor:

    def executor(self, client, tx_count=1):
        return SolanaExecutor(SolanaEncoder(SEL_DEVNET, tx_count, False), client, AUTHORITY)

    def test_signature_chunks(self, client):
        steps = self.executor(client).build_set_root_instructions(
            metadata(), [], ROOT, VALID_UNTIL, dummy_signatures(30)
        )
        assert [label for label, _ in steps] == [
            "initSignatures", "appendSignatures0", "appendSignatures1", "appendSignatures2",
            "finalizeSignatures", "setRoot",
        ]

    def test_too_many_signatures(self, client):
        with pytest.raises(TooManySigners):
            self.executor(client).build_set_root_instructions(
                metadata(), [], ROOT, VALID_UNTIL, dummy_signatures(256)
            )

    def test_set_root_binds_config_pda(self, client):
        steps = self.executor(client, tx_count=3).build_set_root_instructions(
            metadata(5), [], ROOT, VALID_UNTIL, dummy_signatures(1)
        )
        _, set_root = steps[-1]
        program_id, seed = parse_contract_address(MCM)
        body = set_root.data[8 + 32 + 32 + 4:]
        assert int.from_bytes(body[:8], "little") == SEL_DEVNET
        assert body[8:40] == find_config_pda(program_id, seed)
        assert int.from_bytes(body[40:48], "little") == 5
        assert int.from_bytes(body[48:56], "little") == 8

    def test_execute_passes_remaining_accounts(self, client):
        self.executor(client).execute_operation(metadata(), 0, [], Operation(SEL_DEVNET, target_tx()))
        address, entrypoint, arguments = client.submit.call_args[0]
        assert (address, entrypoint) == (MCM_PROGRAM, "execute")
        assert arguments["accounts"][-1] == {"publicKey": key(b"acct"), "isSigner": False, "isWritable": True}


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK
# ══════════════════════════════════════════════════════════════════════

class TestTimelockConverter:

    def convert(self, action, n=2):
        bop = BatchOperation(SEL_DEVNET, [target_tx(bytes([i])) for i in range(n)])
        return SolanaTimelockConverter().convert_batch_to_chain_operations(
            metadata(), bop, TIMELOCK, MCM, Duration(60), action, ZERO_HASH, b"\x05" * 32,
        )

    @pytest.mark.parametrize("action,expected", [
        (TimelockAction.SCHEDULE, 5),
        (TimelockAction.CANCEL, 1),
        (TimelockAction.BYPASS, 5),
    ])
    def test_operation_counts(self, action, expected):
        ops, _ = self.convert(action)
        assert len(ops) == expected
        assert all(op.transaction.to == TIMELOCK_PROGRAM for op in ops)

    def test_operation_id_shared_across_actions(self):
        assert len({self.convert(action)[1] for action in TimelockAction}) == 1

    def test_pda_signers_dropped(self):
        ops, _ = self.convert(TimelockAction.SCHEDULE)
        for op in ops:
            assert not any(a.is_signer for a in validate_transaction(op.transaction).accounts)

    def test_controllers_required(self):
        bop = BatchOperation(SEL_DEVNET, [target_tx()])
        with pytest.raises(MissingField):
            SolanaTimelockConverter().convert_batch_to_chain_operations(
                ChainMetadata(0, MCM), bop, TIMELOCK, MCM, Duration(0),
                TimelockAction.SCHEDULE, ZERO_HASH, ZERO_HASH,
            )


class TestTimelockInspector:

    def setup_method(self):
        self.client = MagicMock(spec=ChainClient)
        self.client.current_ledger_time.return_value = 1_000
        self.operation = None

        def read(address, query, arguments=None):
            if query == "TimelockConfig":
                return {
                    "proposerRoleAccessController": PROPOSER_AC,
                    "executorRoleAccessController": key(b"executor-ac"),
                    "cancellerRoleAccessController": CANCELLER_AC,
                    "bypasserRoleAccessController": BYPASSER_AC,
                    "minDelay": 600,
                }
            if query == "AccessController":
                return {"accessList": [AUTHORITY] if address == PROPOSER_AC else []}
            if query == "Operation":
                if self.operation is None:
                    raise ChainClientError("account does not exist")
                return self.operation
            raise AssertionError(query)

        self.client.read.side_effect = read
        self.inspector = SolanaTimelockInspector(self.client)

    def test_roles(self):
        assert self.inspector.get_proposers(TIMELOCK) == [AUTHORITY]
        assert self.inspector.get_bypassers(TIMELOCK) == []

    def test_min_delay(self):
        assert self.inspector.get_min_delay(TIMELOCK) == 600

    def test_missing_operation(self):
        assert self.inspector.is_operation(TIMELOCK, b"\x01" * 32) is False
        assert self.inspector.is_operation_ready(TIMELOCK, b"\x01" * 32) is False

    def test_scheduled_operation(self):
        self.operation = {"state": "Scheduled", "timestamp": 900}
        assert self.inspector.is_operation_pending(TIMELOCK, b"\x01" * 32)
        assert self.inspector.is_operation_ready(TIMELOCK, b"\x01" * 32)
        self.operation = {"state": "Scheduled", "timestamp": 1_100}
        assert not self.inspector.is_operation_ready(TIMELOCK, b"\x01" * 32)

    def test_done_operation(self):
        self.operation = {"state": "Done", "timestamp": 1}
        assert self.inspector.is_operation_done(TIMELOCK, b"\x01" * 32)
        assert not self.inspector.is_operation_pending(TIMELOCK, b"\x01" * 32)


class TestInspector:

    def test_get_config_unflattens(self):
        client = MagicMock(spec=ChainClient)
        signers = evm_addresses(2)
        client.read.return_value = {
            "signers": [{"evmAddress": s, "index": i, "group": 0} for i, s in enumerate(signers)],
            "groupQuorums": [2] + [0] * 31,
            "groupParents": [0] * 32,
        }
        cfg = SolanaInspector(client).get_config(MCM)
        assert cfg.quorum == 2
        assert set(cfg.signers) == set(signers)

    def test_config_is_cached(self):
        client = MagicMock(spec=ChainClient)
        client.read.return_value = {
            "signers": [{"evmAddress": evm_addresses(1)[0], "group": 0}],
            "groupQuorums": [1] + [0] * 31,
            "groupParents": [0] * 32,
        }
        inspector = SolanaInspector(client)
        inspector.get_config(MCM)
        inspector.get_config(MCM)
        assert client.read.call_count == 1
        inspector.invalidate_cache()
        inspector.get_config(MCM)
        assert client.read.call_count == 2

    def test_root(self):
        client = MagicMock(spec=ChainClient)
        client.read.return_value = {"root": "0x" + "ab" * 32, "validUntil": 77, "opCount": 3}
        inspector = SolanaInspector(client)
        assert inspector.get_root(MCM) == (b"\xab" * 32, 77)
        assert inspector.get_op_count(MCM) == 3
