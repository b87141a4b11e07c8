"""
helpers.py - Ledger construction and transaction helpers shared by the test suites
"""

from datetime import datetime
from typing import Dict, Optional, Sequence

from solders.pubkey import Pubkey

from pdastore import (
    HostLedger, Instruction, ProgramConfig, TransactionReceipt, build_transaction,
)
from pdastore.programs import (
    create_counter_program,
    create_memo_program,
    create_note_program,
    create_token_metadata_program,
    create_vault_program,
)


# One SOL in lamports; enough for every record the tests create.
FUNDING = 1_000_000_000

PROGRAM_NAMES = ("memo", "note", "counter", "token_metadata", "vault")

_FACTORIES = {
    "memo": create_memo_program,
    "note": create_note_program,
    "counter": create_counter_program,
    "token_metadata": create_token_metadata_program,
    "vault": create_vault_program,
}


def make_ledger(
    program_ids: Optional[Dict[str, Pubkey]] = None,
    verbose: bool = False,
) -> HostLedger:
    """Test-mode ledger with every example program registered."""
    if program_ids is None:
        program_ids = {name: Pubkey.new_unique() for name in PROGRAM_NAMES}
    ledger = HostLedger("test", initial_time=datetime(2025, 1, 1), verbose=verbose, test_mode=True)
    for name in PROGRAM_NAMES:
        ledger.register_program(_FACTORIES[name](ProgramConfig(program_ids[name])))
    return ledger


def program_id(ledger: HostLedger, name: str) -> Pubkey:
    """Look up a registered program id by program name."""
    for pid, program in ledger.programs.items():
        if program.name == name:
            return pid
    raise KeyError(name)


def run(ledger: HostLedger, instructions, signers: Sequence[Pubkey] = ()) -> TransactionReceipt:
    """Execute one instruction (or a list of them) as a single transaction."""
    if isinstance(instructions, Instruction):
        instructions = [instructions]
    return ledger.execute(build_transaction(instructions, signers))


def snapshot(ledger: HostLedger) -> Dict[Pubkey, tuple]:
    """Capture (owner, lamports, data, flags) of every account."""
    return {
        address: (a.owner, a.lamports, bytes(a.data), a.is_initialized, a.closed)
        for address, a in ledger.accounts.items()
    }
