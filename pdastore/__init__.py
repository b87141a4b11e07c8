"""
pdastore - Deterministic-address keyed account store

Records live at addresses derived from seeds and an owning program id, carry a
rent-exempt balance sized from their byte length, and move through
Uninitialized -> Active -> Closed under an authority check.

Usage:
    from solders.pubkey import Pubkey
    from pdastore import HostLedger, ProgramConfig, build_transaction
    from pdastore.programs import note, create_note_program

    program_id = Pubkey.new_unique()
    alice = Pubkey.new_unique()

    ledger = HostLedger("main", test_mode=True)
    ledger.register_program(create_note_program(ProgramConfig(program_id)))
    ledger.set_balance(alice, 1_000_000_000)

    tx = build_transaction([note.create(program_id, alice, 0, "hi")], [alice])
    receipt = ledger.execute(tx)

    note.read(ledger, program_id, alice, 0)["message"]   # "hi"
"""

# Core types
from .core import (
    LedgerView,
    Account,
    AccountMeta,
    Instruction,
    PendingTransaction,
    Transaction,
    TransactionReceipt,
    build_transaction,
    ExecuteResult,
    RecordStatus,
    SeedSet,
    Payload,
    SYSTEM_PROGRAM_ID,
    U64_MAX,
    MAX_SEEDS,
    MAX_SEED_LEN,
    PDA_MARKER,
    MAX_PERMITTED_DATA_INCREASE,
    MAX_PERMITTED_DATA_LENGTH,
    checked_add,
    checked_sub,
)

# Errors
from .core import (
    LedgerError,
    ProgramError,
    InvalidInstruction,
    UnknownDiscriminator,
    DecodeError,
    EncodeError,
    AddressMismatch,
    AlreadyInitialized,
    UninitializedAccount,
    Unauthorized,
    DataTooLarge,
    InsufficientRent,
    NotRentExempt,
    ArithmeticOverflow,
    NoValidBump,
    MaxSeedLengthExceeded,
    MissingRequiredSignature,
    IncorrectProgramId,
    NotEnoughAccountKeys,
    InvalidArgument,
    InvalidRealloc,
    InsufficientFunds,
    ContentTooLong,
    InvalidNoteId,
    ProgramNotRegistered,
)

# Address derivation
from .address import (
    derive,
    find_program_address,
    create_program_address,
    try_create_program_address,
    verify,
    verify_with_bump,
    seed_str,
    seed_u64,
    seed_pubkey,
)

# Codec
from .codec import (
    FieldType,
    RecordLayout,
    InstructionVariant,
    InstructionSet,
    DecodedInstruction,
    U8, U32, U64, I64, BOOL, PUBKEY, STRING, U64_VEC,
)

# Rent and configuration
from .rent import Rent, DEFAULT_RENT
from .config import ProgramConfig

# Authorization
from .auth import authorize, require_authority, require_fixed_authority

# Ledger, lifecycle and dispatch
from .ledger import HostLedger, InvokeContext
from .lifecycle import AccountLifecycleManager
from .processor import Program, build_instruction, signer, writable, readonly
