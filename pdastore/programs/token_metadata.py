"""
token_metadata.py - Display metadata keyed by token mint

Seeds: ["metadata", token_program, mint]

One metadata record per (token program, mint). The registering signer becomes the
authority. UpdateMetadata resizes the record to the exact size of the new encoding
before writing it: growth is paid by the authority and the balance above the new
rent-exempt minimum is returned to the authority on shrink.

Instructions:
    0 RegisterMetadata{name, symbol, icon, home}
        [authority (signer), metadata (writable), mint, token_program]
    1 UpdateMetadata{name, symbol, icon, home}
        [authority (signer), metadata (writable), mint, token_program]
"""

from __future__ import annotations
from typing import List, Tuple

from solders.pubkey import Pubkey

from ..address import derive, seed_pubkey, seed_str
from ..codec import InstructionSet, InstructionVariant, RecordLayout, PUBKEY, STRING
from ..config import ProgramConfig
from ..core import Instruction
from ..processor import Program, build_instruction, readonly, signer, writable


METADATA = RecordLayout(
    "TokenMetadata",
    ("mint", PUBKEY),
    ("authority", PUBKEY),
    ("name", STRING),
    ("symbol", STRING),
    ("icon", STRING),
    ("home", STRING),
)

_FIELDS = (("name", STRING), ("symbol", STRING), ("icon", STRING), ("home", STRING))

INSTRUCTIONS = InstructionSet("token_metadata", 1, [
    InstructionVariant(0, "RegisterMetadata", RecordLayout("RegisterMetadata", *_FIELDS)),
    InstructionVariant(1, "UpdateMetadata", RecordLayout("UpdateMetadata", *_FIELDS)),
])


def metadata_seeds(token_program: Pubkey, mint: Pubkey) -> List[bytes]:
    return [seed_str("metadata"), seed_pubkey(token_program), seed_pubkey(mint)]


def metadata_address(program_id: Pubkey, token_program: Pubkey, mint: Pubkey) -> Tuple[Pubkey, int]:
    return derive(metadata_seeds(token_program, mint), program_id)


# ============================================================================
# HANDLERS
# ============================================================================

def _register_metadata(ctx, manager, args):
    authority = ctx.account(0)
    metadata = ctx.account(1)
    mint = ctx.account(2)
    token_program = ctx.account(3)
    manager.create(
        metadata, metadata_seeds(token_program, mint), METADATA,
        {"mint": mint, "authority": authority, **args},
        funder=authority,
    )


def _update_metadata(ctx, manager, args):
    authority = ctx.account(0)
    metadata = ctx.account(1)
    mint = ctx.account(2)
    token_program = ctx.account(3)
    manager.check_address(metadata, metadata_seeds(token_program, mint))
    current = manager.load(metadata, METADATA)
    manager.update(
        metadata, METADATA, {**current, **args},
        caller=authority, allow_resize=True, funder=authority,
    )


def create_token_metadata_program(config: ProgramConfig) -> Program:
    return Program(config, INSTRUCTIONS, {
        "RegisterMetadata": _register_metadata,
        "UpdateMetadata": _update_metadata,
    })


# ============================================================================
# CLIENT
# ============================================================================

def _accounts(program_id, authority, mint, token_program):
    metadata, _ = metadata_address(program_id, token_program, mint)
    return [signer(authority), writable(metadata), readonly(mint), readonly(token_program)]


def register_metadata(
    program_id: Pubkey,
    authority: Pubkey,
    mint: Pubkey,
    token_program: Pubkey,
    name: str,
    symbol: str,
    icon: str = "",
    home: str = "",
) -> Instruction:
    return build_instruction(
        program_id, INSTRUCTIONS, "RegisterMetadata",
        _accounts(program_id, authority, mint, token_program),
        name=name, symbol=symbol, icon=icon, home=home,
    )


def update_metadata(
    program_id: Pubkey,
    authority: Pubkey,
    mint: Pubkey,
    token_program: Pubkey,
    name: str,
    symbol: str,
    icon: str = "",
    home: str = "",
) -> Instruction:
    return build_instruction(
        program_id, INSTRUCTIONS, "UpdateMetadata",
        _accounts(program_id, authority, mint, token_program),
        name=name, symbol=symbol, icon=icon, home=home,
    )


def read(view, program_id: Pubkey, token_program: Pubkey, mint: Pubkey) -> dict:
    metadata, _ = metadata_address(program_id, token_program, mint)
    account = view.get_account(metadata)
    if account is None:
        raise KeyError(f"no metadata for mint {mint}")
    return METADATA.decode(account.data, allow_padding=True)
