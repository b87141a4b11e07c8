"""
counter.py - Per-payer u64 counters

Seeds: ["counter", authority]

Instructions:
    0 CreateCounter          [payer (signer), counter (writable)]
    1 IncrementCounter       [counter (writable)]
    2 BatchIncrement         [counter (writable)] * n
    3 SetCounter{value}      [authority (signer), counter (writable)]

Anyone may increment. BatchIncrement skips (and logs) accounts that are not active
counters of this program instead of failing the batch.
"""

from __future__ import annotations
from typing import List, Sequence, Tuple

from solders.pubkey import Pubkey

from ..address import derive, seed_pubkey, seed_str
from ..codec import InstructionSet, InstructionVariant, RecordLayout, PUBKEY, U64
from ..config import ProgramConfig
from ..core import Instruction, RecordStatus, checked_add
from ..processor import Program, build_instruction, signer, writable


COUNTER = RecordLayout(
    "Counter",
    ("count", U64),
    ("authority", PUBKEY),
)

INSTRUCTIONS = InstructionSet("counter", 1, [
    InstructionVariant(0, "CreateCounter", RecordLayout("CreateCounter")),
    InstructionVariant(1, "IncrementCounter", RecordLayout("IncrementCounter")),
    InstructionVariant(2, "BatchIncrement", RecordLayout("BatchIncrement")),
    InstructionVariant(3, "SetCounter", RecordLayout("SetCounter", ("value", U64))),
])


def counter_seeds(authority: Pubkey) -> List[bytes]:
    return [seed_str("counter"), seed_pubkey(authority)]


def counter_address(program_id: Pubkey, authority: Pubkey) -> Tuple[Pubkey, int]:
    return derive(counter_seeds(authority), program_id)


def _increment(payload):
    payload["count"] = checked_add(payload["count"], 1)
    return payload


# ============================================================================
# HANDLERS
# ============================================================================

def _create_counter(ctx, manager, args):
    payer = ctx.account(0)
    counter = ctx.account(1)
    manager.create(counter, counter_seeds(payer), COUNTER, {"count": 0, "authority": payer}, funder=payer)


def _increment_counter(ctx, manager, args):
    counter = ctx.account(0)
    updated = manager.mutate(counter, COUNTER, _increment)
    ctx.log(f"Counter incremented to: {updated['count']}")


def _batch_increment(ctx, manager, args):
    ctx.log(f"Starting batch increment of {ctx.num_accounts} counters")
    incremented = 0
    for i in range(ctx.num_accounts):
        address = ctx.account(i)
        account = ctx.get_account(address)
        if account is None or account.owner != ctx.program_id or account.status != RecordStatus.ACTIVE:
            ctx.log(f"Skipping invalid account at index {i}")
            continue
        manager.mutate(address, COUNTER, _increment)
        incremented += 1
    ctx.log(f"Batch increment completed: {incremented} counters")


def _set_counter(ctx, manager, args):
    authority = ctx.account(0)
    counter = ctx.account(1)
    current = manager.load(counter, COUNTER)
    manager.update(counter, COUNTER, {**current, "count": args["value"]}, caller=authority)
    ctx.log(f"Counter set to: {args['value']}")


def create_counter_program(config: ProgramConfig) -> Program:
    return Program(config, INSTRUCTIONS, {
        "CreateCounter": _create_counter,
        "IncrementCounter": _increment_counter,
        "BatchIncrement": _batch_increment,
        "SetCounter": _set_counter,
    })


# ============================================================================
# CLIENT
# ============================================================================

def create_counter(program_id: Pubkey, payer: Pubkey) -> Instruction:
    counter, _ = counter_address(program_id, payer)
    return build_instruction(program_id, INSTRUCTIONS, "CreateCounter", [signer(payer), writable(counter)])


def increment_counter(program_id: Pubkey, counter: Pubkey) -> Instruction:
    return build_instruction(program_id, INSTRUCTIONS, "IncrementCounter", [writable(counter)])


def batch_increment(program_id: Pubkey, counters: Sequence[Pubkey]) -> Instruction:
    return build_instruction(
        program_id, INSTRUCTIONS, "BatchIncrement", [writable(c) for c in counters],
    )


def set_counter(program_id: Pubkey, authority: Pubkey, counter: Pubkey, value: int) -> Instruction:
    return build_instruction(
        program_id, INSTRUCTIONS, "SetCounter",
        [signer(authority, writable=False), writable(counter)],
        value=value,
    )


def read(view, counter: Pubkey) -> dict:
    account = view.get_account(counter)
    if account is None:
        raise KeyError(f"no counter at {counter}")
    return COUNTER.decode(account.data, allow_padding=True)
