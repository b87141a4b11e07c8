"""
vault.py - Pre-sized lamport vaults

Seeds: ["vault", payer]

Initialize carries the caller's bump and an explicit lamport amount. The bump must
be the canonical one and the amount must cover rent for the fixed vault size
(vault_size option, default 1024 bytes); anything above the minimum stays in the
vault until Close.

Instructions:
    0 Initialize{bump, lamports}   [payer (signer), vault (writable)]
    2 Close                        [authority (signer), vault (writable), receiver (writable)]
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from solders.pubkey import Pubkey

from ..address import derive, seed_pubkey, seed_str, verify_with_bump
from ..codec import InstructionSet, InstructionVariant, RecordLayout, PUBKEY, U8, U64
from ..config import ProgramConfig
from ..core import Instruction, InvalidArgument
from ..processor import Program, build_instruction, signer, writable


VAULT_ACCOUNT_SIZE = 1024

VAULT = RecordLayout(
    "Vault",
    ("authority", PUBKEY),
    ("bump", U8),
)

INSTRUCTIONS = InstructionSet("vault", 1, [
    InstructionVariant(0, "Initialize", RecordLayout("Initialize", ("bump", U8), ("lamports", U64))),
    InstructionVariant(2, "Close", RecordLayout("Close")),
])


def vault_seeds(payer: Pubkey) -> List[bytes]:
    return [seed_str("vault"), seed_pubkey(payer)]


def vault_address(program_id: Pubkey, payer: Pubkey) -> Tuple[Pubkey, int]:
    return derive(vault_seeds(payer), program_id)


# ============================================================================
# HANDLERS
# ============================================================================

def _initialize(ctx, manager, args):
    payer = ctx.account(0)
    vault = ctx.account(1)
    seeds = vault_seeds(payer)
    if not verify_with_bump(vault, seeds, args["bump"], manager.program_id):
        manager.check_address(vault, seeds)
        raise InvalidArgument(f"bump {args['bump']} is not the canonical bump")
    ctx.log(f"Bump seed: {args['bump']}")
    ctx.log(f"Lamports: {args['lamports']}")
    manager.create(
        vault, seeds, VAULT,
        {"authority": payer, "bump": args["bump"]},
        funder=payer,
        space=manager.config.option("vault_size", VAULT_ACCOUNT_SIZE),
        lamports=args["lamports"],
    )


def _close(ctx, manager, args):
    authority = ctx.account(0)
    vault = ctx.account(1)
    receiver = ctx.account(2)
    current = manager.load(vault, VAULT)
    manager.check_address(vault, vault_seeds(current["authority"]))
    manager.close(vault, VAULT, caller=authority, receiver=receiver)


def create_vault_program(config: ProgramConfig) -> Program:
    return Program(config, INSTRUCTIONS, {
        "Initialize": _initialize,
        "Close": _close,
    })


# ============================================================================
# CLIENT
# ============================================================================

def initialize(program_id: Pubkey, payer: Pubkey, lamports: int, bump: Optional[int] = None) -> Instruction:
    """Build Initialize; bump defaults to the canonical bump."""
    vault, canonical = vault_address(program_id, payer)
    return build_instruction(
        program_id, INSTRUCTIONS, "Initialize",
        [signer(payer), writable(vault)],
        bump=canonical if bump is None else bump, lamports=lamports,
    )


def close(program_id: Pubkey, authority: Pubkey, receiver: Pubkey) -> Instruction:
    vault, _ = vault_address(program_id, authority)
    return build_instruction(
        program_id, INSTRUCTIONS, "Close",
        [signer(authority), writable(vault), writable(receiver)],
    )


def read(view, program_id: Pubkey, payer: Pubkey) -> dict:
    vault, _ = vault_address(program_id, payer)
    account = view.get_account(vault)
    if account is None:
        raise KeyError(f"no vault for {payer}")
    return VAULT.decode(account.data, allow_padding=True)
