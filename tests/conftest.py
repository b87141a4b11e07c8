"""
conftest.py - Shared pytest fixtures for pdastore tests

Provides common fixtures used across unit, functional and conformance tests:
- Identities (program ids, funded users)
- Ledgers with every example program registered
"""

import pytest
from typing import Dict

from solders.pubkey import Pubkey

from pdastore import HostLedger

from tests.helpers import FUNDING, PROGRAM_NAMES, make_ledger


@pytest.fixture
def program_ids() -> Dict[str, Pubkey]:
    return {name: Pubkey.new_unique() for name in PROGRAM_NAMES}


@pytest.fixture
def alice() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def bob() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def ledger(program_ids, alice, bob) -> HostLedger:
    """Ledger with every example program registered and alice/bob funded."""
    ledger = make_ledger(program_ids)
    ledger.set_balance(alice, FUNDING)
    ledger.set_balance(bob, FUNDING)
    return ledger


@pytest.fixture
def empty_ledger() -> HostLedger:
    return HostLedger("empty", verbose=False, test_mode=True)
