"""
Temporal Conformance Tests

INVARIANT: Ledger time only moves forward and records see the clock of the
transaction that wrote them.

    ∀ t1 < t2:
        advance_time(t2) then advance_time(t1) raises ValueError

    ∀ note N updated at t:
        N.updated_at = unix(t) ≥ N.created_at
"""

import calendar

import pytest
from datetime import datetime, timedelta
from hypothesis import given, settings
from hypothesis import strategies as st
from solders.pubkey import Pubkey

from pdastore.programs import note

from tests.helpers import FUNDING, make_ledger, program_id, run


class TestTemporalProperties:
    """Property-based clock tests."""

    @given(st.lists(st.integers(min_value=0, max_value=86400 * 30), min_size=1, max_size=10))
    @settings(max_examples=40)
    def test_updates_follow_the_clock(self, steps):
        """
        PROPERTY: Each update stamps the ledger time; created_at never changes.
        """
        ledger = make_ledger()
        pid = program_id(ledger, "note")
        alice = Pubkey.new_unique()
        ledger.set_balance(alice, FUNDING)
        run(ledger, note.create(pid, alice, 0, "v"), [alice])
        created = note.read(ledger, pid, alice, 0)["created_at"]

        now = ledger.current_time
        for step in steps:
            now = now + timedelta(seconds=step)
            ledger.advance_time(now)
            run(ledger, note.update(pid, alice, 0, "v"), [alice])
            record = note.read(ledger, pid, alice, 0)
            assert record["updated_at"] == calendar.timegm(now.utctimetuple())
            assert record["created_at"] == created
            assert record["updated_at"] >= record["created_at"]

    @given(st.integers(min_value=1, max_value=10**6))
    @settings(max_examples=30)
    def test_time_never_moves_backwards(self, seconds):
        """
        PROPERTY: advance_time() rejects any earlier time and leaves the clock alone.
        """
        ledger = make_ledger()
        start = ledger.current_time
        with pytest.raises(ValueError):
            ledger.advance_time(start - timedelta(seconds=seconds))
        assert ledger.current_time == start


class TestTemporalExamples:
    """Example-based clock tests."""

    def test_exec_id_carries_unix_time(self):
        ledger = make_ledger()
        pid = program_id(ledger, "note")
        alice = Pubkey.new_unique()
        ledger.set_balance(alice, FUNDING)
        ledger.advance_time(datetime(2025, 1, 2))

        receipt = run(ledger, note.create(pid, alice, 0, "t"), [alice])

        assert receipt.transaction.exec_id == "exec:test:000000000000:1735776000"
        assert receipt.transaction.execution_time == datetime(2025, 1, 2)

    def test_advance_to_same_time_is_allowed(self):
        ledger = make_ledger()
        ledger.advance_time(ledger.current_time)
        assert ledger.current_time == datetime(2025, 1, 1)
