"""
address.py - Deterministic derived addresses

A derived address is computed from an ordered seed set and the owning program's id.
It has no private key: the hash result must lie OUTSIDE the ed25519 curve, so a
disambiguating "bump" byte is appended and searched from 255 down to 0 until the
result is off-curve.

    address = sha256(seed_0 || ... || seed_n || [bump] || program_id || "ProgramDerivedAddress")

The search is a pure, bounded loop. Callers never trust a supplied address: they
re-derive it from the seeds and compare.
"""

from __future__ import annotations
import hashlib
import struct
from typing import Optional, Sequence, Tuple

from solders.pubkey import Pubkey

from .core import (
    SeedSet, MAX_SEEDS, MAX_SEED_LEN, PDA_MARKER,
    MaxSeedLengthExceeded, NoValidBump, InvalidArgument,
)


# ============================================================================
# SEED HELPERS
# ============================================================================

def seed_str(value: str) -> bytes:
    """Literal tag seed (UTF-8 bytes)."""
    return value.encode("utf-8")


def seed_u64(value: int) -> bytes:
    """Numeric id seed (8-byte little-endian)."""
    return struct.pack("<Q", value)


def seed_pubkey(value: Pubkey) -> bytes:
    """Identifier seed (raw 32 bytes)."""
    return bytes(value)


def _check_seeds(seeds: SeedSet, extra: int = 0) -> None:
    if len(seeds) + extra > MAX_SEEDS:
        raise MaxSeedLengthExceeded(f"{len(seeds) + extra} seeds exceeds the limit of {MAX_SEEDS}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise MaxSeedLengthExceeded(f"seed of {len(seed)} bytes exceeds {MAX_SEED_LEN}")


def _hash(seeds: Sequence[bytes], program_id: Pubkey) -> bytes:
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes(program_id))
    hasher.update(PDA_MARKER)
    return hasher.digest()


# ============================================================================
# DERIVATION
# ============================================================================

def try_create_program_address(seeds: SeedSet, program_id: Pubkey) -> Optional[Pubkey]:
    """
    Hash seeds (bump already included) into an address.

    Returns None when the result lands on the curve (forbidden subspace).
    """
    _check_seeds(seeds)
    candidate = Pubkey.from_bytes(_hash(seeds, program_id))
    if candidate.is_on_curve():
        return None
    return candidate


def create_program_address(seeds: SeedSet, program_id: Pubkey) -> Pubkey:
    """
    Like try_create_program_address() but raises for on-curve results.

    Raises:
        InvalidArgument: If the seeds hash onto the curve.
        MaxSeedLengthExceeded: If the seed set breaks the seed limits.
    """
    address = try_create_program_address(seeds, program_id)
    if address is None:
        raise InvalidArgument("seeds produce an on-curve address")
    return address


def derive(seeds: SeedSet, program_id: Pubkey) -> Tuple[Pubkey, int]:
    """
    Find the canonical derived address and bump for (seeds, program_id).

    Trial bumps run from 255 down to 0; the first off-curve result wins.

    Returns:
        (address, bump)

    Raises:
        MaxSeedLengthExceeded: If seeds plus the bump exceed the seed limits.
        NoValidBump: If all 256 bumps produce on-curve results.

    Example:
        address, bump = derive([b"note", bytes(user), seed_u64(0)], program_id)
    """
    seeds = [bytes(s) for s in seeds]
    _check_seeds(seeds, extra=1)
    for bump in range(255, -1, -1):
        candidate = Pubkey.from_bytes(_hash(seeds + [bytes([bump])], program_id))
        if not candidate.is_on_curve():
            return candidate, bump
    raise NoValidBump(f"no off-curve address for {len(seeds)} seeds under {program_id}")


find_program_address = derive


def verify(candidate: Pubkey, seeds: SeedSet, program_id: Pubkey) -> bool:
    """Return True if candidate is the canonical derived address for the seeds."""
    address, _ = derive(seeds, program_id)
    return address == candidate


def verify_with_bump(candidate: Pubkey, seeds: SeedSet, bump: int, program_id: Pubkey) -> bool:
    """
    Return True if candidate is the canonical address AND bump is its canonical bump.

    Used by instructions that carry a caller-supplied bump.
    """
    address, canonical = derive(seeds, program_id)
    return address == candidate and bump == canonical
