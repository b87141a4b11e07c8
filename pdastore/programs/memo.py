"""
memo.py - One text memo per authority

Seeds: ["memo", authority]

Instructions:
    0 Initialize{content}   [payer (signer), memo (writable), authority (signer)]
    1 Update{content}       [authority (signer), memo (writable)]
    2 Delete                [authority (signer), memo (writable), receiver (writable)]

Update never resizes: new content must fit the bytes allocated at Initialize.
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from solders.pubkey import Pubkey

from ..address import derive, seed_pubkey, seed_str
from ..codec import InstructionSet, InstructionVariant, RecordLayout, PUBKEY, STRING
from ..config import ProgramConfig
from ..core import Instruction, ContentTooLong, MissingRequiredSignature
from ..processor import Program, build_instruction, signer, writable


MEMO = RecordLayout(
    "Memo",
    ("authority", PUBKEY),
    ("content", STRING),
)

INSTRUCTIONS = InstructionSet("memo", 1, [
    InstructionVariant(0, "Initialize", RecordLayout("Initialize", ("content", STRING))),
    InstructionVariant(1, "Update", RecordLayout("Update", ("content", STRING))),
    InstructionVariant(2, "Delete", RecordLayout("Delete")),
])


def memo_seeds(authority: Pubkey) -> List[bytes]:
    return [seed_str("memo"), seed_pubkey(authority)]


def memo_address(program_id: Pubkey, authority: Pubkey) -> Tuple[Pubkey, int]:
    return derive(memo_seeds(authority), program_id)


def _check_content(manager, content: str) -> None:
    limit = manager.config.max_content_length
    if len(content.encode("utf-8")) > limit:
        raise ContentTooLong(f"memo content exceeds {limit} bytes")


# ============================================================================
# HANDLERS
# ============================================================================

def _initialize(ctx, manager, args):
    payer = ctx.account(0)
    memo = ctx.account(1)
    authority = ctx.account(2)
    _check_content(manager, args["content"])
    if not ctx.is_signer(authority):
        raise MissingRequiredSignature(f"authority {authority} must sign")
    manager.create(
        memo, memo_seeds(authority), MEMO,
        {"authority": authority, "content": args["content"]},
        funder=payer,
    )


def _update(ctx, manager, args):
    authority = ctx.account(0)
    memo = ctx.account(1)
    _check_content(manager, args["content"])
    current = manager.load(memo, MEMO)
    manager.check_address(memo, memo_seeds(current["authority"]))
    manager.update(memo, MEMO, {**current, "content": args["content"]}, caller=authority)


def _delete(ctx, manager, args):
    authority = ctx.account(0)
    memo = ctx.account(1)
    receiver = ctx.account(2)
    current = manager.load(memo, MEMO)
    manager.check_address(memo, memo_seeds(current["authority"]))
    manager.close(memo, MEMO, caller=authority, receiver=receiver)


def create_memo_program(config: ProgramConfig) -> Program:
    return Program(config, INSTRUCTIONS, {
        "Initialize": _initialize,
        "Update": _update,
        "Delete": _delete,
    })


# ============================================================================
# CLIENT
# ============================================================================

def initialize(program_id: Pubkey, payer: Pubkey, authority: Pubkey, content: str) -> Instruction:
    memo, _ = memo_address(program_id, authority)
    return build_instruction(
        program_id, INSTRUCTIONS, "Initialize",
        [signer(payer), writable(memo), signer(authority, writable=False)],
        content=content,
    )


def update(
    program_id: Pubkey, authority: Pubkey, content: str, owner: Optional[Pubkey] = None,
) -> Instruction:
    """owner selects whose memo is targeted (default: authority)."""
    memo, _ = memo_address(program_id, authority if owner is None else owner)
    return build_instruction(
        program_id, INSTRUCTIONS, "Update",
        [signer(authority, writable=False), writable(memo)],
        content=content,
    )


def delete(
    program_id: Pubkey, authority: Pubkey, receiver: Pubkey, owner: Optional[Pubkey] = None,
) -> Instruction:
    memo, _ = memo_address(program_id, authority if owner is None else owner)
    return build_instruction(
        program_id, INSTRUCTIONS, "Delete",
        [signer(authority, writable=False), writable(memo), writable(receiver)],
    )


def read(view, program_id: Pubkey, authority: Pubkey) -> dict:
    """Decode the authority's memo from a LedgerView."""
    memo, _ = memo_address(program_id, authority)
    account = view.get_account(memo)
    if account is None:
        raise KeyError(f"no memo for {authority}")
    return MEMO.decode(account.data, allow_padding=True)
