"""
note.py - Numbered notes per user, with an optional note index

Seeds:
    note:  ["note", authority, u64 note_id]
    index: ["index", authority]

Notes are stamped with the ledger clock (created_at, updated_at in unix seconds).
Create allocates exactly the encoded size; Update must fit that allocation and
Resize (3) is the explicit way to make room.

The index is over-allocated for a fixed number of ids (index_capacity option,
default 100). When it is passed as the trailing account of Create, the new note id
must equal note_count; Delete removes the id from the list but never decrements
note_count, so ids are never reused.

Instructions:
    0 Create{note_id, message}   [user (signer), note (writable), index (writable, optional)]
    1 Update{note_id, message}   [authority (signer), note (writable)]
    2 Delete{note_id}            [authority (signer), note (writable), index (writable, optional)]
    3 Resize{note_id, new_size}  [authority (signer), note (writable)]
    4 InitializeIndex            [user (signer), index (writable)]
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from solders.pubkey import Pubkey

from ..address import derive, seed_pubkey, seed_str, seed_u64
from ..auth import require_authority
from ..codec import (
    InstructionSet, InstructionVariant, RecordLayout, I64, PUBKEY, STRING, U64, U64_VEC,
)
from ..config import ProgramConfig
from ..core import Instruction, ContentTooLong, InvalidNoteId, checked_add
from ..processor import Program, build_instruction, signer, writable


NOTE = RecordLayout(
    "Note",
    ("authority", PUBKEY),
    ("note_id", U64),
    ("created_at", I64),
    ("updated_at", I64),
    ("message", STRING),
)

NOTE_INDEX = RecordLayout(
    "NoteIndex",
    ("authority", PUBKEY),
    ("note_count", U64),
    ("note_ids", U64_VEC),
)

DEFAULT_INDEX_CAPACITY = 100

INSTRUCTIONS = InstructionSet("note", 1, [
    InstructionVariant(0, "Create", RecordLayout("Create", ("note_id", U64), ("message", STRING))),
    InstructionVariant(1, "Update", RecordLayout("Update", ("note_id", U64), ("message", STRING))),
    InstructionVariant(2, "Delete", RecordLayout("Delete", ("note_id", U64))),
    InstructionVariant(3, "Resize", RecordLayout("Resize", ("note_id", U64), ("new_size", U64))),
    InstructionVariant(4, "InitializeIndex", RecordLayout("InitializeIndex")),
])


def note_seeds(authority: Pubkey, note_id: int) -> List[bytes]:
    return [seed_str("note"), seed_pubkey(authority), seed_u64(note_id)]


def index_seeds(authority: Pubkey) -> List[bytes]:
    return [seed_str("index"), seed_pubkey(authority)]


def note_address(program_id: Pubkey, authority: Pubkey, note_id: int) -> Tuple[Pubkey, int]:
    return derive(note_seeds(authority, note_id), program_id)


def index_address(program_id: Pubkey, authority: Pubkey) -> Tuple[Pubkey, int]:
    return derive(index_seeds(authority), program_id)


def index_space(capacity: int) -> int:
    """Bytes for an index holding up to capacity ids (u32 count + u64 per id)."""
    return NOTE_INDEX.fixed_size + 4 + 8 * capacity


def _check_message(manager, message: str) -> None:
    limit = manager.config.max_content_length
    if len(message.encode("utf-8")) > limit:
        raise ContentTooLong(f"note message exceeds {limit} bytes")


def _load_note(manager, address: Pubkey, note_id: int) -> dict:
    current = manager.load(address, NOTE)
    manager.check_address(address, note_seeds(current["authority"], note_id))
    return current


# ============================================================================
# HANDLERS
# ============================================================================

def _create(ctx, manager, args):
    user = ctx.account(0)
    note = ctx.account(1)
    note_id = args["note_id"]
    _check_message(manager, args["message"])

    if ctx.num_accounts > 2:
        index = ctx.account(2)
        manager.check_address(index, index_seeds(user))
        require_authority(manager.load(index, NOTE_INDEX), user, ctx.signers)

        def append(payload):
            if note_id != payload["note_count"]:
                raise InvalidNoteId(f"expected note id {payload['note_count']}, got {note_id}")
            payload["note_ids"] = payload["note_ids"] + [note_id]
            payload["note_count"] = checked_add(payload["note_count"], 1)
            return payload

        manager.mutate(index, NOTE_INDEX, append)

    now = ctx.unix_timestamp
    manager.create(
        note, note_seeds(user, note_id), NOTE,
        {
            "authority": user,
            "note_id": note_id,
            "created_at": now,
            "updated_at": now,
            "message": args["message"],
        },
        funder=user,
    )
    ctx.log(f"Note {note_id} created")


def _update(ctx, manager, args):
    authority = ctx.account(0)
    note = ctx.account(1)
    _check_message(manager, args["message"])
    current = _load_note(manager, note, args["note_id"])
    manager.update(
        note, NOTE,
        {**current, "message": args["message"], "updated_at": ctx.unix_timestamp},
        caller=authority,
    )


def _delete(ctx, manager, args):
    authority = ctx.account(0)
    note = ctx.account(1)
    note_id = args["note_id"]
    _load_note(manager, note, note_id)
    manager.close(note, NOTE, caller=authority, receiver=authority)

    if ctx.num_accounts > 2:
        index = ctx.account(2)
        manager.check_address(index, index_seeds(authority))
        require_authority(manager.load(index, NOTE_INDEX), authority, ctx.signers)

        def remove(payload):
            payload["note_ids"] = [i for i in payload["note_ids"] if i != note_id]
            return payload

        manager.mutate(index, NOTE_INDEX, remove)
    ctx.log(f"Note {note_id} deleted")


def _resize(ctx, manager, args):
    authority = ctx.account(0)
    note = ctx.account(1)
    _load_note(manager, note, args["note_id"])
    manager.resize(note, NOTE, args["new_size"], caller=authority, funder=authority)


def _initialize_index(ctx, manager, args):
    user = ctx.account(0)
    index = ctx.account(1)
    capacity = manager.config.option("index_capacity", DEFAULT_INDEX_CAPACITY)
    manager.create(
        index, index_seeds(user), NOTE_INDEX,
        {"authority": user, "note_count": 0, "note_ids": []},
        funder=user,
        space=index_space(capacity),
    )


def create_note_program(config: ProgramConfig) -> Program:
    return Program(config, INSTRUCTIONS, {
        "Create": _create,
        "Update": _update,
        "Delete": _delete,
        "Resize": _resize,
        "InitializeIndex": _initialize_index,
    })


# ============================================================================
# CLIENT
# ============================================================================

def create(
    program_id: Pubkey, user: Pubkey, note_id: int, message: str, with_index: bool = False,
) -> Instruction:
    note, _ = note_address(program_id, user, note_id)
    accounts = [signer(user), writable(note)]
    if with_index:
        accounts.append(writable(index_address(program_id, user)[0]))
    return build_instruction(
        program_id, INSTRUCTIONS, "Create", accounts, note_id=note_id, message=message,
    )


def update(
    program_id: Pubkey,
    authority: Pubkey,
    note_id: int,
    message: str,
    owner: Optional[Pubkey] = None,
) -> Instruction:
    """owner selects whose note is targeted (default: authority)."""
    note, _ = note_address(program_id, authority if owner is None else owner, note_id)
    return build_instruction(
        program_id, INSTRUCTIONS, "Update",
        [signer(authority, writable=False), writable(note)],
        note_id=note_id, message=message,
    )


def delete(
    program_id: Pubkey,
    authority: Pubkey,
    note_id: int,
    with_index: bool = False,
    owner: Optional[Pubkey] = None,
) -> Instruction:
    owner = authority if owner is None else owner
    note, _ = note_address(program_id, owner, note_id)
    accounts = [signer(authority), writable(note)]
    if with_index:
        accounts.append(writable(index_address(program_id, owner)[0]))
    return build_instruction(program_id, INSTRUCTIONS, "Delete", accounts, note_id=note_id)


def resize(program_id: Pubkey, authority: Pubkey, note_id: int, new_size: int) -> Instruction:
    note, _ = note_address(program_id, authority, note_id)
    return build_instruction(
        program_id, INSTRUCTIONS, "Resize",
        [signer(authority), writable(note)],
        note_id=note_id, new_size=new_size,
    )


def initialize_index(program_id: Pubkey, user: Pubkey) -> Instruction:
    index, _ = index_address(program_id, user)
    return build_instruction(
        program_id, INSTRUCTIONS, "InitializeIndex", [signer(user), writable(index)],
    )


def read(view, program_id: Pubkey, authority: Pubkey, note_id: int) -> dict:
    note, _ = note_address(program_id, authority, note_id)
    account = view.get_account(note)
    if account is None:
        raise KeyError(f"no note {note_id} for {authority}")
    return NOTE.decode(account.data, allow_padding=True)


def read_index(view, program_id: Pubkey, authority: Pubkey) -> dict:
    index, _ = index_address(program_id, authority)
    account = view.get_account(index)
    if account is None:
        raise KeyError(f"no note index for {authority}")
    return NOTE_INDEX.decode(account.data, allow_padding=True)
