"""
ledger.py - In-memory host ledger

The HostLedger stands in for the host runtime the core calls into and is called by.
It is the only module that commits account state.

Key responsibilities:
    - Implements the LedgerView protocol for safe read-only access
    - Dispatches each instruction of a transaction to its registered program
    - Executes transactions atomically against a working copy (all instructions
      commit together or nothing is committed)
    - Provides the primitives programs call through InvokeContext: account
      creation, checked lamport transfers, the clock, rent parameters and the
      verified-signer list
    - Reclaims zero-lamport accounts when a transaction commits
    - Always logs - every committed transaction is appended to transaction_log
"""

from __future__ import annotations
import calendar
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Set, TYPE_CHECKING

from solders.pubkey import Pubkey

from .core import (
    # Types
    Account, Instruction, PendingTransaction, Transaction, TransactionReceipt,
    ExecuteResult, SeedSet,
    # Constants
    SYSTEM_PROGRAM_ID, MAX_PERMITTED_DATA_LENGTH,
    # Exceptions
    LedgerError, ProgramError, AlreadyInitialized, ArithmeticOverflow,
    IncorrectProgramId, InsufficientFunds, InvalidRealloc, MissingRequiredSignature,
    NotEnoughAccountKeys, NotRentExempt, ProgramNotRegistered,
    # Helpers
    checked_add, checked_sub,
)
from .address import verify
from .rent import Rent, DEFAULT_RENT

if TYPE_CHECKING:
    from .processor import Program


class InvokeContext:
    """
    What a program sees while processing one instruction.

    All reads and writes go to the transaction's working copy; nothing reaches the
    ledger until every instruction in the transaction has succeeded.
    """

    def __init__(
        self,
        ledger: HostLedger,
        working: Dict[Pubkey, Account],
        instruction: Instruction,
        tx_signers: FrozenSet[Pubkey],
        logs: List[str],
    ):
        self._ledger = ledger
        self._working = working
        self._logs = logs
        self.instruction = instruction
        self.program_id = instruction.program_id
        self.rent: Rent = ledger.rent
        # Host-verified signers that this instruction marks as signers
        self.signers: FrozenSet[Pubkey] = frozenset(
            meta.pubkey for meta in instruction.accounts
            if meta.is_signer and meta.pubkey in tx_signers
        )

    # ------------------------------------------------------------------
    # Instruction accounts
    # ------------------------------------------------------------------

    @property
    def num_accounts(self) -> int:
        return len(self.instruction.accounts)

    def account(self, index: int) -> Pubkey:
        """
        Return the key of the index-th instruction account.

        Raises:
            NotEnoughAccountKeys: If the instruction lists fewer accounts.
        """
        if index >= len(self.instruction.accounts):
            raise NotEnoughAccountKeys(
                f"instruction needs account #{index}, only {len(self.instruction.accounts)} supplied"
            )
        return self.instruction.accounts[index].pubkey

    def is_signer(self, key: Pubkey) -> bool:
        return key in self.signers

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    @property
    def current_time(self) -> datetime:
        return self._ledger.current_time

    @property
    def unix_timestamp(self) -> int:
        return self._ledger.unix_timestamp

    # ------------------------------------------------------------------
    # Account access (working copy)
    # ------------------------------------------------------------------

    def get_account(self, address: Pubkey) -> Optional[Account]:
        """Return the mutable working copy of an account, or None if it does not exist."""
        if address in self._working:
            return self._working[address]
        committed = self._ledger.accounts.get(address)
        if committed is None:
            return None
        working = committed.copy()
        self._working[address] = working
        return working

    def get_balance(self, address: Pubkey) -> int:
        account = self.get_account(address)
        return account.lamports if account is not None else 0

    def create_account(
        self, address: Pubkey, owner: Pubkey, space: int, seeds: Optional[SeedSet] = None,
    ) -> Account:
        """
        Allocate a zero-filled account owned by owner.

        A new account starts with zero lamports. A plain wallet already sitting at
        address (system-owned, no data) is adopted instead when seeds derive address
        under the running program: it keeps its lamports and is reassigned to owner
        with space zeroed bytes.

        Raises:
            AlreadyInitialized: If any other account exists at address.
            InvalidRealloc: If space is negative or above the absolute size limit.
        """
        existing = self.get_account(address)
        if existing is not None and not (
            existing.is_bare_wallet
            and seeds is not None
            and verify(address, seeds, self.program_id)
        ):
            raise AlreadyInitialized(f"account {address} already in use")
        if space < 0 or space > MAX_PERMITTED_DATA_LENGTH:
            raise InvalidRealloc(f"cannot allocate {space} bytes")
        if existing is not None:
            existing.owner = owner
            existing.data = bytearray(space)
            return existing
        account = Account(address=address, owner=owner, lamports=0, data=bytearray(space))
        self._working[address] = account
        return account

    def transfer(self, source: Pubkey, dest: Pubkey, lamports: int) -> None:
        """
        Move lamports between accounts with checked arithmetic.

        Wallet (system-owned) sources must have signed; program-owned sources must be
        owned by the running program. A missing destination becomes a wallet.

        Raises:
            ArithmeticOverflow: On negative amounts or u64 overflow at the destination.
            InsufficientFunds: If the source holds fewer lamports than requested.
            MissingRequiredSignature: If a wallet source did not sign.
            IncorrectProgramId: If the source is owned by another program.
        """
        if lamports < 0:
            raise ArithmeticOverflow(f"negative transfer of {lamports} lamports")
        if lamports == 0 or source == dest:
            return
        src = self.get_account(source)
        if src is None:
            raise InsufficientFunds(f"{source} has no account")
        if src.owner == SYSTEM_PROGRAM_ID:
            if not self.is_signer(source):
                raise MissingRequiredSignature(f"{source} must sign to debit lamports")
        elif src.owner != self.program_id:
            raise IncorrectProgramId(f"{source} is owned by {src.owner}, not {self.program_id}")
        if src.lamports < lamports:
            raise InsufficientFunds(f"{source} holds {src.lamports} < {lamports} lamports")

        dst = self.get_account(dest)
        if dst is None:
            dst = Account(address=dest, owner=SYSTEM_PROGRAM_ID)
            self._working[dest] = dst
        new_dst = checked_add(dst.lamports, lamports)
        new_src = checked_sub(src.lamports, lamports)
        src.lamports = new_src
        dst.lamports = new_dst

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def log(self, message: str) -> None:
        """Append a program log line (collected on the receipt)."""
        self._logs.append(f"Program log: {message}")


class HostLedger:
    """
    Account ledger with atomic transaction execution and audit trail.

    Implements the LedgerView protocol.

    Design Principles:
        - Atomic: instructions run against a working copy that is committed only
          when the whole transaction succeeds.
        - Always logs: every committed transaction is recorded in transaction_log.

    Thread Safety:
        Not thread-safe. Account locking between transactions is the caller's concern.

    Example:
        ledger = HostLedger("main", verbose=False, test_mode=True)
        ledger.register_program(create_memo_program(ProgramConfig(program_id)))
        ledger.set_balance(alice, 10_000_000)

        tx = build_transaction([memo.initialize(program_id, alice, alice, "hi")], [alice])
        receipt = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False,
        rent: Optional[Rent] = None,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print registrations and transaction results (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
            rent: Rent parameters (default: host defaults)
        """
        self.name = name
        self.accounts: Dict[Pubkey, Account] = {}
        self.programs: Dict[Pubkey, Program] = {}
        self.transaction_log: List[Transaction] = []
        self.rent: Rent = rent or DEFAULT_RENT
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    @property
    def unix_timestamp(self) -> int:
        """Current logical time as whole seconds since the epoch (UTC)."""
        return calendar.timegm(self._current_time.utctimetuple())

    def get_balance(self, address: Pubkey) -> int:
        """Lamports held at address (0 if no account exists)."""
        account = self.accounts.get(address)
        return account.lamports if account is not None else 0

    def get_account(self, address: Pubkey) -> Optional[Account]:
        """Return a copy of the account at address, or None."""
        account = self.accounts.get(address)
        return account.copy() if account is not None else None

    def list_accounts(self) -> Set[Pubkey]:
        return set(self.accounts.keys())

    def total_lamports(self) -> int:
        """
        Sum of lamports across all accounts.

        Transactions only move lamports, so this is constant across execute() calls.
        """
        return sum(account.lamports for account in self.accounts.values())

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_program(self, program: Program) -> None:
        """
        Register a program so instructions addressed to its id can be dispatched.

        Raises:
            ValueError: If a program with the same id is already registered
        """
        program_id = program.program_id
        if program_id in self.programs:
            raise ValueError(f"Program {program_id} already registered")
        self.programs[program_id] = program
        if self.verbose:
            print(f"📝 Registered: {program.name} v{program.version} at {program_id}")

    def set_balance(self, address: Pubkey, lamports: int) -> None:
        """
        Set a wallet's lamports directly.

        WARNING: This method bypasses transaction execution and is only available in
        test mode.

        Raises:
            LedgerError: If called when test_mode is False, or if address holds a
                         program-owned account
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Set test_mode=True when creating HostLedger for testing."
            )
        if lamports < 0:
            raise ValueError(f"lamports must be non-negative, got {lamports}")
        account = self.accounts.get(address)
        if account is None:
            self.accounts[address] = Account(address=address, owner=SYSTEM_PROGRAM_ID, lamports=lamports)
        elif account.owner != SYSTEM_PROGRAM_ID:
            raise LedgerError(f"{address} is owned by {account.owner}; set_balance only funds wallets")
        else:
            account.lamports = lamports

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{unix_seconds}
        """
        return f"exec:{self.name}:{sequence:012d}:{self.unix_timestamp}"

    def execute(self, pending: PendingTransaction) -> TransactionReceipt:
        """
        Execute a PendingTransaction atomically.

        Instructions run in order against a working copy of the touched accounts.
        Any ProgramError discards the working copy. After the last instruction every
        written program-owned account must be rent exempt; zero-lamport accounts are
        then reclaimed and the rest committed.

        Returns:
            TransactionReceipt with result APPLIED or REJECTED (and the error)
        """
        if pending.is_empty():
            return TransactionReceipt(result=ExecuteResult.APPLIED)

        working: Dict[Pubkey, Account] = {}
        logs: List[str] = []

        try:
            for index, instruction in enumerate(pending.instructions):
                program = self.programs.get(instruction.program_id)
                if program is None:
                    raise ProgramNotRegistered(f"no program registered at {instruction.program_id}")
                logs.append(f"Program {instruction.program_id} invoke [{index}]")
                ctx = InvokeContext(self, working, instruction, pending.signers, logs)
                program.process(ctx, instruction.data)
                logs.append(f"Program {instruction.program_id} success")
            self._check_rent_exemption(working)
        except ProgramError as e:
            logs.append(f"Program failed: {type(e).__name__}: {e}")
            if self.verbose:
                print(f"✗ REJECTED: {type(e).__name__}: {e}")
            return TransactionReceipt(result=ExecuteResult.REJECTED, error=e, logs=tuple(logs))

        # Validation passed - commit
        for address, account in working.items():
            if account.lamports == 0:
                self.accounts.pop(address, None)
            else:
                self.accounts[address] = account

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            instructions=pending.instructions,
            signers=pending.signers,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            logs=tuple(logs),
            touched=frozenset(working.keys()),
        )
        self.transaction_log.append(tx)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return TransactionReceipt(result=ExecuteResult.APPLIED, logs=tuple(logs), transaction=tx)

    def _check_rent_exemption(self, working: Dict[Pubkey, Account]) -> None:
        for account in working.values():
            if account.owner == SYSTEM_PROGRAM_ID or account.lamports == 0:
                continue
            if not self.rent.is_exempt(account.lamports, account.byte_length):
                raise NotRentExempt(
                    f"{account.address} holds {account.lamports} < "
                    f"{self.rent.minimum_balance(account.byte_length)} for {account.byte_length} bytes"
                )

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """
        Print transaction details and result.

        Uses Transaction.__repr__ and appends a result line.
        """
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' ' + icon + ' ' + result)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> HostLedger:
        """
        Create a deep copy of this ledger.

        Accounts are fully independent; programs are shared (they hold no state).
        """
        cloned = HostLedger.__new__(HostLedger)
        cloned.name = self.name
        cloned.rent = self.rent
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned._next_sequence = self._next_sequence
        cloned.programs = dict(self.programs)
        cloned.transaction_log = list(self.transaction_log)
        cloned.accounts = {address: account.copy() for address, account in self.accounts.items()}
        return cloned
