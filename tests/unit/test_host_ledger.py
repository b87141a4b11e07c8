"""
test_host_ledger.py - Unit tests for HostLedger and InvokeContext

Tests:
- Ledger creation and configuration
- Program registration
- Test-mode balance operations
- Time management
- Transaction execution (atomicity, rejection, commit-time rent check)
- InvokeContext primitives (accounts, signers, transfers, allocation, logs)
"""

import pytest
from datetime import datetime, timedelta
from solders.pubkey import Pubkey

from pdastore import (
    HostLedger, ProgramConfig, Program, LedgerView, ExecuteResult,
    InstructionSet, InstructionVariant, RecordLayout, U64, STRING,
    Instruction, build_instruction, signer, writable, build_transaction,
    SYSTEM_PROGRAM_ID, U64_MAX, MAX_PERMITTED_DATA_LENGTH, DEFAULT_RENT,
    LedgerError, InvalidArgument, ProgramNotRegistered, MissingRequiredSignature,
    InsufficientFunds, IncorrectProgramId, NotRentExempt, AlreadyInitialized,
    InvalidRealloc, NotEnoughAccountKeys, ArithmeticOverflow,
)

from tests.helpers import run


STUB = InstructionSet("stub", 1, [
    InstructionVariant(0, "Transfer", RecordLayout("Transfer", ("lamports", U64))),
    InstructionVariant(1, "Fail", RecordLayout("Fail")),
    InstructionVariant(2, "Allocate", RecordLayout("Allocate", ("space", U64), ("lamports", U64))),
    InstructionVariant(3, "Log", RecordLayout("Log", ("message", STRING))),
])


def _transfer(ctx, manager, args):
    ctx.transfer(ctx.account(0), ctx.account(1), args["lamports"])


def _fail(ctx, manager, args):
    raise InvalidArgument("requested failure")


def _allocate(ctx, manager, args):
    ctx.create_account(ctx.account(1), ctx.program_id, args["space"])
    ctx.transfer(ctx.account(0), ctx.account(1), args["lamports"])


def _log(ctx, manager, args):
    ctx.log(args["message"])


def stub_program(program_id: Pubkey) -> Program:
    return Program(ProgramConfig(program_id), STUB, {
        "Transfer": _transfer, "Fail": _fail, "Allocate": _allocate, "Log": _log,
    })


@pytest.fixture
def stub_id():
    return Pubkey.new_unique()


@pytest.fixture
def stub_ledger(stub_id, alice):
    ledger = HostLedger("test", initial_time=datetime(2025, 1, 1), verbose=False, test_mode=True)
    ledger.register_program(stub_program(stub_id))
    ledger.set_balance(alice, 10_000_000)
    return ledger


def transfer_ix(stub_id, source, dest, lamports, source_signs=True):
    source_meta = signer(source) if source_signs else writable(source)
    return build_instruction(stub_id, STUB, "Transfer", [source_meta, writable(dest)], lamports=lamports)


def allocate_ix(stub_id, payer, new, space, lamports):
    return build_instruction(
        stub_id, STUB, "Allocate", [signer(payer), writable(new)], space=space, lamports=lamports,
    )


class TestLedgerCreation:
    """Tests for HostLedger initialization."""

    def test_create_ledger_minimal(self):
        ledger = HostLedger("test")
        assert ledger.name == "test"
        assert ledger.verbose is True
        assert ledger.current_time == datetime(1970, 1, 1)
        assert ledger.unix_timestamp == 0
        assert ledger.rent == DEFAULT_RENT

    def test_create_ledger_with_options(self):
        t = datetime(2025, 1, 1, 9, 30)
        ledger = HostLedger(name="test", initial_time=t, verbose=False)
        assert ledger.current_time == t
        assert ledger.verbose is False

    def test_implements_ledger_view(self):
        assert isinstance(HostLedger("test", verbose=False), LedgerView)


class TestRegistration:
    """Tests for program registration."""

    def test_register_program(self, stub_ledger, stub_id):
        assert stub_ledger.programs[stub_id].name == "stub"

    def test_register_duplicate(self, stub_ledger, stub_id):
        with pytest.raises(ValueError, match="already registered"):
            stub_ledger.register_program(stub_program(stub_id))

    def test_register_prints_when_verbose(self, capsys):
        ledger = HostLedger("test", verbose=True)
        ledger.register_program(stub_program(Pubkey.new_unique()))
        assert "Registered: stub v1" in capsys.readouterr().out

    def test_handler_table_must_match(self):
        with pytest.raises(ValueError, match="handlers missing"):
            Program(ProgramConfig(Pubkey.new_unique()), STUB, {"Transfer": _transfer})


class TestBalances:
    """Tests for test-mode balance operations."""

    def test_set_balance_requires_test_mode(self):
        ledger = HostLedger("prod", verbose=False)
        with pytest.raises(LedgerError, match="test_mode"):
            ledger.set_balance(Pubkey.new_unique(), 1)

    def test_set_balance_creates_wallet(self, stub_ledger, alice):
        account = stub_ledger.get_account(alice)
        assert account.owner == SYSTEM_PROGRAM_ID
        assert account.lamports == 10_000_000
        assert stub_ledger.get_balance(alice) == 10_000_000

    def test_set_balance_negative(self, stub_ledger, alice):
        with pytest.raises(ValueError):
            stub_ledger.set_balance(alice, -1)

    def test_set_balance_rejects_program_account(self, stub_ledger, stub_id, alice):
        new = Pubkey.new_unique()
        run(stub_ledger, allocate_ix(stub_id, alice, new, 0, DEFAULT_RENT.minimum_balance(0)), [alice])
        with pytest.raises(LedgerError, match="only funds wallets"):
            stub_ledger.set_balance(new, 1)

    def test_unknown_balance_is_zero(self, stub_ledger):
        assert stub_ledger.get_balance(Pubkey.new_unique()) == 0
        assert stub_ledger.get_account(Pubkey.new_unique()) is None

    def test_get_account_returns_copy(self, stub_ledger, alice):
        copy = stub_ledger.get_account(alice)
        copy.lamports = 0
        assert stub_ledger.get_balance(alice) == 10_000_000


class TestTime:
    """Tests for the logical clock."""

    def test_advance_time(self, stub_ledger):
        later = datetime(2025, 1, 2)
        stub_ledger.advance_time(later)
        assert stub_ledger.current_time == later
        assert stub_ledger.unix_timestamp == 1735689600 + 86400

    def test_cannot_move_backwards(self, stub_ledger):
        with pytest.raises(ValueError, match="backwards"):
            stub_ledger.advance_time(stub_ledger.current_time - timedelta(seconds=1))


class TestExecute:
    """Tests for transaction execution."""

    def test_empty_transaction(self, stub_ledger):
        receipt = stub_ledger.execute(build_transaction([]))
        assert receipt.result == ExecuteResult.APPLIED
        assert stub_ledger.transaction_log == []

    def test_transfer_applied(self, stub_ledger, stub_id, alice, bob):
        receipt = run(stub_ledger, transfer_ix(stub_id, alice, bob, 1_000), [alice])
        assert receipt.applied
        assert stub_ledger.get_balance(alice) == 10_000_000 - 1_000
        assert stub_ledger.get_balance(bob) == 1_000
        assert stub_ledger.get_account(bob).owner == SYSTEM_PROGRAM_ID

    def test_transaction_record(self, stub_ledger, stub_id, alice, bob):
        receipt = run(stub_ledger, transfer_ix(stub_id, alice, bob, 1), [alice])
        run(stub_ledger, transfer_ix(stub_id, alice, bob, 1), [alice])
        assert len(stub_ledger.transaction_log) == 2
        tx = stub_ledger.transaction_log[0]
        assert tx is receipt.transaction
        assert tx.sequence_number == 0
        assert tx.exec_id == "exec:test:000000000000:1735689600"
        assert tx.touched == frozenset([alice, bob])
        assert stub_ledger.transaction_log[1].sequence_number == 1

    def test_unregistered_program(self, stub_ledger, alice):
        ix = build_instruction(Pubkey.new_unique(), STUB, "Fail", [])
        receipt = run(stub_ledger, ix, [alice])
        assert receipt.result == ExecuteResult.REJECTED
        assert isinstance(receipt.error, ProgramNotRegistered)

    def test_failed_instruction_rolls_back_earlier_ones(self, stub_ledger, stub_id, alice, bob):
        receipt = run(stub_ledger, [
            transfer_ix(stub_id, alice, bob, 1_000),
            build_instruction(stub_id, STUB, "Fail", []),
        ], [alice])
        assert receipt.result == ExecuteResult.REJECTED
        assert isinstance(receipt.error, InvalidArgument)
        assert stub_ledger.get_balance(alice) == 10_000_000
        assert stub_ledger.get_account(bob) is None
        assert stub_ledger.transaction_log == []

    def test_later_instruction_sees_earlier_writes(self, stub_ledger, stub_id, alice, bob):
        carol = Pubkey.new_unique()
        receipt = run(stub_ledger, [
            transfer_ix(stub_id, alice, bob, 5_000),
            transfer_ix(stub_id, bob, carol, 5_000),
        ], [alice, bob])
        assert receipt.applied
        assert stub_ledger.get_balance(carol) == 5_000
        assert stub_ledger.get_account(bob) is None

    def test_zero_lamport_accounts_reclaimed(self, stub_ledger, stub_id, alice, bob):
        run(stub_ledger, transfer_ix(stub_id, alice, bob, 10_000_000), [alice])
        assert stub_ledger.get_account(alice) is None
        assert alice not in stub_ledger.list_accounts()

    def test_logs_on_receipt(self, stub_ledger, stub_id, alice):
        ix = build_instruction(stub_id, STUB, "Log", [], message="hello")
        receipt = run(stub_ledger, ix)
        assert "Program log: hello" in receipt.logs
        assert "Program log: Instruction: Log" in receipt.logs

    def test_logs_kept_on_rejection(self, stub_ledger, stub_id):
        receipt = run(stub_ledger, [
            build_instruction(stub_id, STUB, "Log", [], message="before"),
            build_instruction(stub_id, STUB, "Fail", []),
        ])
        assert "Program log: before" in receipt.logs
        assert receipt.logs[-1].startswith("Program failed: InvalidArgument")

    def test_malformed_data_rejected(self, stub_ledger, stub_id):
        receipt = run(stub_ledger, Instruction(program_id=stub_id, accounts=(), data=b"\x07"))
        assert receipt.result == ExecuteResult.REJECTED

    def test_verbose_output(self, stub_id, alice, bob, capsys):
        ledger = HostLedger("loud", verbose=True, test_mode=True)
        ledger.register_program(stub_program(stub_id))
        ledger.set_balance(alice, 1_000)
        capsys.readouterr()
        run(ledger, transfer_ix(stub_id, alice, bob, 1), [alice])
        out = capsys.readouterr().out
        assert "Transaction: exec:loud:" in out
        assert "APPLIED" in out
        run(ledger, build_instruction(stub_id, STUB, "Fail", []))
        assert "REJECTED" in capsys.readouterr().out

    def test_total_lamports_conserved(self, stub_ledger, stub_id, alice, bob):
        before = stub_ledger.total_lamports()
        run(stub_ledger, transfer_ix(stub_id, alice, bob, 123), [alice])
        run(stub_ledger, allocate_ix(stub_id, alice, Pubkey.new_unique(), 8, 2_000_000), [alice])
        assert stub_ledger.total_lamports() == before


class TestInvokeContext:
    """Tests for the primitives programs call through InvokeContext."""

    def test_unsigned_wallet_debit(self, stub_ledger, stub_id, alice, bob):
        receipt = run(stub_ledger, transfer_ix(stub_id, alice, bob, 1, source_signs=False), [alice])
        assert isinstance(receipt.error, MissingRequiredSignature)

    def test_signer_flag_requires_transaction_signature(self, stub_ledger, stub_id, alice, bob):
        receipt = run(stub_ledger, transfer_ix(stub_id, alice, bob, 1), [])
        assert isinstance(receipt.error, MissingRequiredSignature)

    def test_insufficient_funds(self, stub_ledger, stub_id, alice, bob):
        receipt = run(stub_ledger, transfer_ix(stub_id, alice, bob, 10_000_001), [alice])
        assert isinstance(receipt.error, InsufficientFunds)

    def test_missing_source(self, stub_ledger, stub_id, bob):
        ghost = Pubkey.new_unique()
        receipt = run(stub_ledger, transfer_ix(stub_id, ghost, bob, 1), [ghost])
        assert isinstance(receipt.error, InsufficientFunds)

    def test_destination_overflow(self, stub_ledger, stub_id, alice, bob):
        stub_ledger.set_balance(bob, U64_MAX)
        receipt = run(stub_ledger, transfer_ix(stub_id, alice, bob, 1), [alice])
        assert isinstance(receipt.error, ArithmeticOverflow)
        assert stub_ledger.get_balance(alice) == 10_000_000

    def test_zero_transfer_is_noop(self, stub_ledger, stub_id, alice, bob):
        receipt = run(stub_ledger, transfer_ix(stub_id, alice, bob, 0, source_signs=False), [])
        assert receipt.applied
        assert stub_ledger.get_account(bob) is None

    def test_not_enough_accounts(self, stub_ledger, stub_id, alice):
        ix = build_instruction(stub_id, STUB, "Transfer", [signer(alice)], lamports=1)
        receipt = run(stub_ledger, ix, [alice])
        assert isinstance(receipt.error, NotEnoughAccountKeys)

    def test_program_debits_own_account(self, stub_ledger, stub_id, alice, bob):
        new = Pubkey.new_unique()
        minimum = DEFAULT_RENT.minimum_balance(0)
        run(stub_ledger, allocate_ix(stub_id, alice, new, 0, minimum + 500), [alice])
        receipt = run(stub_ledger, transfer_ix(stub_id, new, bob, 500, source_signs=False))
        assert receipt.applied
        assert stub_ledger.get_balance(new) == minimum

    def test_cannot_debit_other_programs_account(self, stub_ledger, stub_id, alice, bob):
        other_id = Pubkey.new_unique()
        stub_ledger.register_program(stub_program(other_id))
        new = Pubkey.new_unique()
        run(stub_ledger, allocate_ix(other_id, alice, new, 0, DEFAULT_RENT.minimum_balance(0) + 1), [alice])
        receipt = run(stub_ledger, transfer_ix(stub_id, new, bob, 1, source_signs=False))
        assert isinstance(receipt.error, IncorrectProgramId)

    def test_allocate(self, stub_ledger, stub_id, alice):
        new = Pubkey.new_unique()
        receipt = run(stub_ledger, allocate_ix(stub_id, alice, new, 16, DEFAULT_RENT.minimum_balance(16)), [alice])
        assert receipt.applied
        account = stub_ledger.get_account(new)
        assert account.owner == stub_id
        assert account.data == bytearray(16)
        assert not account.is_initialized

    def test_allocate_existing(self, stub_ledger, stub_id, alice):
        receipt = run(stub_ledger, allocate_ix(stub_id, alice, alice, 0, 1), [alice])
        assert isinstance(receipt.error, AlreadyInitialized)

    def test_allocate_too_large(self, stub_ledger, stub_id, alice):
        receipt = run(
            stub_ledger, allocate_ix(stub_id, alice, Pubkey.new_unique(), MAX_PERMITTED_DATA_LENGTH + 1, 1), [alice],
        )
        assert isinstance(receipt.error, InvalidRealloc)

    def test_underfunded_account_rejected_at_commit(self, stub_ledger, stub_id, alice):
        new = Pubkey.new_unique()
        receipt = run(stub_ledger, allocate_ix(stub_id, alice, new, 16, DEFAULT_RENT.minimum_balance(16) - 1), [alice])
        assert isinstance(receipt.error, NotRentExempt)
        assert stub_ledger.get_account(new) is None
        assert stub_ledger.get_balance(alice) == 10_000_000


class TestClone:
    """Tests for HostLedger.clone()."""

    def test_clone_is_independent(self, stub_ledger, stub_id, alice, bob):
        cloned = stub_ledger.clone()
        run(cloned, transfer_ix(stub_id, alice, bob, 1_000), [alice])
        assert cloned.get_balance(bob) == 1_000
        assert stub_ledger.get_balance(bob) == 0
        assert stub_ledger.transaction_log == []
