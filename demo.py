#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn pdastore Step by Step

This is a pedagogical walk through the derived-address record store. Each step
builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation   - The host ledger, programs, derived addresses
  4-7:  Lifecycle    - Create, rejected updates, resize, close and re-create
  8-10: Programs     - Compound resize, vault bumps, conservation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from solders.pubkey import Pubkey

from pdastore import (
    HostLedger, ProgramConfig, DEFAULT_RENT,
    build_transaction, derive, seed_pubkey, seed_str, seed_u64,
)
from pdastore.programs import (
    note, token_metadata, vault,
    create_note_program, create_token_metadata_program, create_vault_program,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    funding: int = 1_000_000_000
    first_message: str = "hi"
    longer_message: str = "hi, this message needs a bigger record"
    vault_extra: int = 250_000


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def submit(ledger: HostLedger, instructions, signers):
    receipt = ledger.execute(build_transaction(instructions, signers))
    print(f"Result: {receipt.result.value}")
    return receipt


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_host_ledger():
    """Create a ledger, register programs and fund two users."""
    step_header(1, "The Host Ledger",
        "Programs own records; the host ledger commits transactions atomically.")

    ledger = HostLedger("tutorial", initial_time=CONFIG.start_time, verbose=True, test_mode=True)
    ids = {name: Pubkey.new_unique() for name in ("note", "token_metadata", "vault")}
    ledger.register_program(create_note_program(ProgramConfig(ids["note"])))
    ledger.register_program(create_token_metadata_program(ProgramConfig(ids["token_metadata"])))
    ledger.register_program(create_vault_program(ProgramConfig(ids["vault"])))

    alice, bob = Pubkey.new_unique(), Pubkey.new_unique()
    ledger.set_balance(alice, CONFIG.funding)
    ledger.set_balance(bob, CONFIG.funding)

    section_header("Initial State")
    print(f"Current time:  {ledger.current_time}")
    print(f"Accounts:      {len(ledger.list_accounts())}")
    print(f"Total lamports: {ledger.total_lamports():,}")
    return ledger, ids, alice, bob


def step_02_derived_addresses(ids, alice):
    """Derive the address of alice's first note."""
    step_header(2, "Derived Addresses",
        "Seeds plus a program id always yield the same off-curve address.")

    seeds = [seed_str("note"), seed_pubkey(alice), seed_u64(0)]
    address, bump = derive(seeds, ids["note"])
    print(">>> derive(['note', alice, 0], note_program)")
    print(f"Address: {address}")
    print(f"Bump:    {bump}")
    print(f"On curve: {address.is_on_curve()}")

    section_header("Key Insight")
    print("""
    No one holds a private key for this address. The program proves it owns the
    record by re-deriving the address from the same seeds.
    """)


def step_03_rent():
    """Show how record size maps to the rent-exempt minimum."""
    step_header(3, "Rent",
        "Every record must hold at least the rent-exempt minimum for its size.")
    for size in (0, 70, 1024):
        print(f"minimum_balance({size:>4}) = {DEFAULT_RENT.minimum_balance(size):>12,} lamports")


# ============================================================================
# PHASE 2: LIFECYCLE (Steps 4-7)
# ============================================================================

def step_04_create(ledger, ids, alice):
    step_header(4, "Create",
        "Create allocates the exact encoded size and funds it from the signer.")
    submit(ledger, [note.create(ids["note"], alice, 0, CONFIG.first_message)], [alice])
    print(note.read(ledger, ids["note"], alice, 0))


def step_05_rejections(ledger, ids, alice, bob):
    step_header(5, "Rejected Updates",
        "Only the signing authority may update, and only within the allocation.")

    section_header("bob tries to edit alice's note")
    receipt = submit(ledger, [note.update(ids["note"], bob, 0, "yo", owner=alice)], [bob])
    print(f"Error: {type(receipt.error).__name__}")

    section_header("alice writes one byte too many")
    receipt = submit(ledger, [note.update(ids["note"], alice, 0, CONFIG.first_message + "!")], [alice])
    print(f"Error: {type(receipt.error).__name__}")
    print(f"Stored message is still: {note.read(ledger, ids['note'], alice, 0)['message']!r}")


def step_06_resize(ledger, ids, alice):
    step_header(6, "Resize",
        "Resize grows the record and charges exactly the rent difference.")

    ledger.advance_time(CONFIG.start_time + timedelta(hours=1))
    size = note.NOTE.fixed_size + 4 + len(CONFIG.longer_message.encode("utf-8"))
    before = ledger.get_balance(alice)
    submit(ledger, [
        note.resize(ids["note"], alice, 0, size),
        note.update(ids["note"], alice, 0, CONFIG.longer_message),
    ], [alice])
    print(f"alice paid {before - ledger.get_balance(alice):,} lamports for the extra bytes")
    print(note.read(ledger, ids["note"], alice, 0))


def step_07_close(ledger, ids, alice):
    step_header(7, "Close and Re-create",
        "Close zeroes the record and refunds every lamport; the address is reusable.")

    address, _ = note.note_address(ids["note"], alice, 0)
    held = ledger.get_balance(address)
    submit(ledger, [note.delete(ids["note"], alice, 0)], [alice])
    print(f"Refunded {held:,} lamports; account exists: {ledger.get_account(address) is not None}")

    submit(ledger, [note.create(ids["note"], alice, 0, "reborn")], [alice])
    print(note.read(ledger, ids["note"], alice, 0))


# ============================================================================
# PHASE 3: PROGRAMS (Steps 8-10)
# ============================================================================

def step_08_compound_resize(ledger, ids, alice):
    step_header(8, "Compound Resize",
        "Token metadata resizes to the new encoding on every update.")

    pid = ids["token_metadata"]
    mint, token_program = Pubkey.new_unique(), Pubkey.new_unique()
    submit(ledger, [token_metadata.register_metadata(pid, alice, mint, token_program, "Coin", "CN")], [alice])
    submit(ledger, [token_metadata.update_metadata(
        pid, alice, mint, token_program, "Coin", "CN", home="https://example.com/coin",
    )], [alice])
    address, _ = token_metadata.metadata_address(pid, token_program, mint)
    account = ledger.get_account(address)
    print(f"Record is now {account.byte_length} bytes holding {account.lamports:,} lamports")


def step_09_vault(ledger, ids, bob):
    step_header(9, "Vault Bumps",
        "Instructions carrying a bump must use the canonical one.")

    pid = ids["vault"]
    deposit = DEFAULT_RENT.minimum_balance(vault.VAULT_ACCOUNT_SIZE) + CONFIG.vault_extra
    _, canonical = vault.vault_address(pid, bob)

    wrong = (canonical - 1) % 256
    section_header(f"bump {wrong} (not canonical)")
    receipt = submit(ledger, [vault.initialize(pid, bob, deposit, bump=wrong)], [bob])
    print(f"Error: {type(receipt.error).__name__}")

    section_header(f"bump {canonical} (canonical)")
    submit(ledger, [vault.initialize(pid, bob, deposit)], [bob])
    print(vault.read(ledger, pid, bob))


def step_10_conservation(ledger):
    step_header(10, "Conservation",
        "Lamports only move; the total never changes.")
    expected = 2 * CONFIG.funding
    total = ledger.total_lamports()
    print(f"Total lamports: {total:,} (expected {expected:,})")
    print(f"Conserved: {total == expected}")
    print(f"Committed transactions: {len(ledger.transaction_log)}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       PDASTORE - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    ledger, ids, alice, bob = step_01_host_ledger()
    wait_for_enter()
    step_02_derived_addresses(ids, alice)
    wait_for_enter()
    step_03_rent()
    wait_for_enter()

    step_04_create(ledger, ids, alice)
    wait_for_enter()
    step_05_rejections(ledger, ids, alice, bob)
    wait_for_enter()
    step_06_resize(ledger, ids, alice)
    wait_for_enter()
    step_07_close(ledger, ids, alice)
    wait_for_enter()

    step_08_compound_resize(ledger, ids, alice)
    wait_for_enter()
    step_09_vault(ledger, ids, bob)
    wait_for_enter()
    step_10_conservation(ledger)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See pdastore/programs/*.py for the example programs
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
