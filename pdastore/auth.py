"""
auth.py - Authorization guard

Pure predicate consulted before every mutating lifecycle operation. A caller is
authorized when it equals the authority stored in the record AND the host ledger
verified its signature for the enclosing transaction. Balances and timestamps are
never inspected here.
"""

from __future__ import annotations
from typing import AbstractSet, Any, Mapping, Optional

from solders.pubkey import Pubkey

from .core import Unauthorized


def authorize(
    payload: Mapping[str, Any],
    caller: Pubkey,
    signers: AbstractSet[Pubkey],
    authority_field: str = "authority",
) -> bool:
    """Return True if caller is the stored authority and a verified signer."""
    stored = payload.get(authority_field)
    if stored is None:
        return False
    return stored == caller and caller in signers


def require_authority(
    payload: Mapping[str, Any],
    caller: Pubkey,
    signers: AbstractSet[Pubkey],
    authority_field: str = "authority",
) -> None:
    """
    Raise Unauthorized unless authorize() holds.

    Raises:
        Unauthorized: If the caller is not the authority or did not sign.
    """
    if not authorize(payload, caller, signers, authority_field):
        if caller not in signers:
            raise Unauthorized(f"{caller} did not sign the transaction")
        raise Unauthorized(f"{caller} is not the record authority")


def require_fixed_authority(
    current: Mapping[str, Any],
    updated: Mapping[str, Any],
    authority_field: Optional[str] = "authority",
) -> None:
    """
    Raise Unauthorized if updated names a different authority than current.

    The authority is written once at create and never reassigned.
    """
    if authority_field is None:
        return
    before, after = current.get(authority_field), updated.get(authority_field)
    if after != before:
        raise Unauthorized(f"{authority_field} is fixed at {before}, cannot become {after}")
