"""
Core types and protocol constants for the derived-address account store.

This module provides the foundational data structures shared by every other module:
1. Constants: protocol limits for seeds, account sizes and lamport arithmetic
2. Protocols: LedgerView for read-only host ledger access
3. Data structures: Account, AccountMeta, Instruction, PendingTransaction, Transaction
4. Exceptions: ProgramError and the error taxonomy raised by the core
5. Checked arithmetic: u64 add/sub helpers that never saturate

Nothing in this module mutates ledger state. Account is the only mutable type and
is only ever mutated through an InvokeContext owned by the HostLedger.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    Any, Dict, FrozenSet, Optional, Protocol, Sequence, Tuple,
    runtime_checkable,
)

from solders.pubkey import Pubkey
from solders.system_program import ID as _SYSTEM_PROGRAM_ID


# ============================================================================
# CONSTANTS
# ============================================================================

# Owner of plain wallet accounts. Wallets hold lamports and no data.
SYSTEM_PROGRAM_ID: Pubkey = _SYSTEM_PROGRAM_ID

U64_MAX = 2 ** 64 - 1

# Address derivation limits
MAX_SEEDS = 16
MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"

# Account size limits
MAX_PERMITTED_DATA_INCREASE = 10 * 1024
MAX_PERMITTED_DATA_LENGTH = 10 * 1024 * 1024


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Ordered byte strings used only to derive an address. Never persisted.
SeedSet = Sequence[bytes]

# Decoded record or instruction arguments, keyed by field name.
Payload = Dict[str, Any]


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Every instruction succeeded and the working state was committed.
    REJECTED: An instruction raised a ProgramError; nothing was committed.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class RecordStatus(Enum):
    """Lifecycle state of a record slot."""
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    CLOSED = "closed"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class ProgramError(LedgerError):
    """
    Base exception for errors raised while processing an instruction.

    Every subclass carries a stable numeric code so receipts can be compared
    across runs without relying on message text.
    """
    code = 0


class InvalidInstruction(ProgramError):
    """Raised when instruction data is empty or its arguments are malformed."""
    code = 1


class UnknownDiscriminator(InvalidInstruction):
    """Raised when the leading byte does not name a variant of the instruction set."""
    code = 2


class DecodeError(ProgramError):
    """Raised when bytes do not match a layout exactly."""
    code = 3


class EncodeError(ProgramError):
    """Raised when a value cannot be encoded with a layout."""
    code = 4


class AddressMismatch(ProgramError):
    """Raised when a caller-supplied address differs from the re-derived one."""
    code = 5


class AlreadyInitialized(ProgramError):
    """Raised when Create targets an address that already holds an account."""
    code = 6


class UninitializedAccount(ProgramError):
    """Raised when Update, Resize or Close targets a record that is not active."""
    code = 7


class Unauthorized(ProgramError):
    """Raised when the caller is not the record's authority or did not sign."""
    code = 8


class DataTooLarge(ProgramError):
    """Raised when an encoded payload does not fit the allocated bytes."""
    code = 9


class InsufficientRent(ProgramError):
    """Raised when the funding party cannot cover the rent-exempt balance."""
    code = 10


class NotRentExempt(ProgramError):
    """Raised when an account balance is below its rent-exempt minimum."""
    code = 11


class ArithmeticOverflow(ProgramError):
    """Raised when lamport or length arithmetic leaves the u64 range."""
    code = 12


class NoValidBump(ProgramError):
    """Raised when no bump in 255..0 yields an off-curve address."""
    code = 13


class MaxSeedLengthExceeded(ProgramError):
    """Raised when a seed set has too many seeds or a seed is too long."""
    code = 14


class MissingRequiredSignature(ProgramError):
    """Raised when an account that must sign did not sign the transaction."""
    code = 15


class IncorrectProgramId(ProgramError):
    """Raised when an account is not owned by the program operating on it."""
    code = 16


class NotEnoughAccountKeys(ProgramError):
    """Raised when an instruction lists fewer accounts than its handler needs."""
    code = 17


class InvalidArgument(ProgramError):
    """Raised when an instruction argument is well-formed but not acceptable."""
    code = 18


class InvalidRealloc(ProgramError):
    """Raised when a resize exceeds the per-call or absolute size limits."""
    code = 19


class InsufficientFunds(ProgramError):
    """Raised when a transfer source holds fewer lamports than requested."""
    code = 20


class ContentTooLong(ProgramError):
    """Raised when a text field exceeds the program's configured maximum."""
    code = 21


class InvalidNoteId(ProgramError):
    """Raised when a note id does not match the next id in the user's index."""
    code = 22


class ProgramNotRegistered(ProgramError):
    """Raised when an instruction targets a program the ledger does not know."""
    code = 23


# ============================================================================
# CHECKED ARITHMETIC
# ============================================================================

def checked_add(a: int, b: int) -> int:
    """Add two u64 values, raising ArithmeticOverflow instead of wrapping."""
    result = a + b
    if a < 0 or b < 0 or result > U64_MAX:
        raise ArithmeticOverflow(f"{a} + {b} leaves the u64 range")
    return result


def checked_sub(a: int, b: int) -> int:
    """Subtract two u64 values, raising ArithmeticOverflow on underflow."""
    if a < 0 or b < 0 or b > a:
        raise ArithmeticOverflow(f"{a} - {b} leaves the u64 range")
    return a - b


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to host ledger state.

    Client code and tests use this to inspect accounts without the ability to
    modify them. HostLedger implements this protocol.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, address: Pubkey) -> int:
        """Return the lamports held at an address (0 if no account exists)."""
        ...

    def get_account(self, address: Pubkey) -> Optional['Account']:
        """Return a copy of the account at an address, or None."""
        ...


# ============================================================================
# ACCOUNTS
# ============================================================================

@dataclass(slots=True)
class Account:
    """
    A host-ledger-backed storage slot.

    Attributes:
        address: Where the account lives.
        owner: Program permitted to mutate the data and debit the lamports.
        lamports: Balance backing the account's storage.
        data: Raw record bytes. Length is the allocated byte_length.
        is_initialized: True once a Create has written the payload.
        closed: True once a Close has zeroed and drained the account.
    """
    address: Pubkey
    owner: Pubkey
    lamports: int = 0
    data: bytearray = field(default_factory=bytearray)
    is_initialized: bool = False
    closed: bool = False

    @property
    def byte_length(self) -> int:
        return len(self.data)

    @property
    def status(self) -> RecordStatus:
        if self.closed:
            return RecordStatus.CLOSED
        if self.is_initialized:
            return RecordStatus.ACTIVE
        return RecordStatus.UNINITIALIZED

    @property
    def is_bare_wallet(self) -> bool:
        """True for a system-owned account that holds only lamports."""
        return (self.owner == SYSTEM_PROGRAM_ID and not self.data
                and self.status == RecordStatus.UNINITIALIZED)

    def copy(self) -> Account:
        """Return an independent copy (the data buffer is not shared)."""
        return Account(
            address=self.address,
            owner=self.owner,
            lamports=self.lamports,
            data=bytearray(self.data),
            is_initialized=self.is_initialized,
            closed=self.closed,
        )

    def __repr__(self) -> str:
        return (f"Account({self.address}, owner={self.owner}, lamports={self.lamports}, "
                f"len={self.byte_length}, {self.status.value})")


# ============================================================================
# INSTRUCTIONS AND TRANSACTIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class AccountMeta:
    """An account referenced by an instruction, with its access flags."""
    pubkey: Pubkey
    is_signer: bool = False
    is_writable: bool = False


@dataclass(frozen=True, slots=True)
class Instruction:
    """
    A single call into a program.

    Attributes:
        program_id: Program that processes the instruction.
        accounts: Accounts the handler may read or write, in handler order.
        data: [1-byte discriminator][schema-specific arguments].
    """
    program_id: Pubkey
    accounts: Tuple[AccountMeta, ...]
    data: bytes

    def __post_init__(self):
        if not isinstance(self.accounts, tuple):
            object.__setattr__(self, 'accounts', tuple(self.accounts))
        if not isinstance(self.data, bytes):
            object.__setattr__(self, 'data', bytes(self.data))


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction before execution - represents INTENT.

    Attributes:
        instructions: Instructions executed in order, all-or-nothing.
        signers: Identities whose signatures the host has already verified.
    """
    instructions: Tuple[Instruction, ...]
    signers: FrozenSet[Pubkey] = frozenset()

    def __post_init__(self):
        if not isinstance(self.instructions, tuple):
            object.__setattr__(self, 'instructions', tuple(self.instructions))
        if not isinstance(self.signers, frozenset):
            object.__setattr__(self, 'signers', frozenset(self.signers))

    def is_empty(self) -> bool:
        return not self.instructions

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.instructions)} instructions, {len(self.signers)} signers)"


def build_transaction(
    instructions: Sequence[Instruction],
    signers: Sequence[Pubkey] = (),
) -> PendingTransaction:
    """
    Build a PendingTransaction from instructions and verified signers.

    Example:
        tx = build_transaction([memo.initialize(program_id, alice, alice, "hi")], [alice])
        receipt = ledger.execute(tx)
    """
    return PendingTransaction(instructions=tuple(instructions), signers=frozenset(signers))


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, committed record of a transaction - represents FACT.

    Attributes:
        instructions: Instructions that were applied
        signers: Verified signers of the transaction
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: Ledger time when this was committed
        sequence_number: Monotonic sequence within the ledger
        logs: Program log lines emitted while processing
        touched: Addresses whose accounts were written
    """
    instructions: Tuple[Instruction, ...]
    signers: FrozenSet[Pubkey]
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    logs: Tuple[str, ...] = ()
    touched: FrozenSet[Pubkey] = frozenset()

    def __repr__(self) -> str:
        w = 100  # Inner content width
        bar = "─" * w

        def pad(text: str) -> str:
            """Pad or truncate text to exactly w characters."""
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   ledger_name    : ' + self.ledger_name)}│",
            f"│{pad('   execution_time : ' + str(self.execution_time))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   signers        : ' + ', '.join(str(s) for s in sorted(self.signers, key=str)))}│",
            f"├{bar}┤",
            f"│{pad(' Instructions (' + str(len(self.instructions)) + '):')}│",
        ]
        for i, ix in enumerate(self.instructions):
            disc = ix.data[0] if ix.data else None
            lines.append(f"│{pad(f'   [{i}] program={ix.program_id} discriminator={disc} accounts={len(ix.accounts)}')}│")
        if self.logs:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Logs (' + str(len(self.logs)) + '):')}│")
            for line in self.logs:
                lines.append(f"│{pad('   ' + line)}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class TransactionReceipt:
    """
    Result of HostLedger.execute().

    Attributes:
        result: APPLIED or REJECTED
        error: The ProgramError that rejected the transaction, if any
        logs: Program log lines (kept for rejected transactions too)
        transaction: The committed Transaction record when applied
    """
    result: ExecuteResult
    error: Optional[ProgramError] = None
    logs: Tuple[str, ...] = ()
    transaction: Optional[Transaction] = None

    @property
    def applied(self) -> bool:
        return self.result == ExecuteResult.APPLIED

    def __repr__(self) -> str:
        if self.error is not None:
            return f"TransactionReceipt({self.result.value}: {type(self.error).__name__}: {self.error})"
        return f"TransactionReceipt({self.result.value})"
