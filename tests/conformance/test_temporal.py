"""
Temporal Conformance Tests

INVARIANT: The ledger clock is the only clock.

    ∀ depository state s, times t1 ≤ t2:
        views at t2 = project(s, t2)
        events carry the ledger time at which they happened

Time only moves forward, notes mature against the ledger clock, and nothing
reads the wall clock.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from tests.scenario import build_ledger, build_depository, create_market, advance, at


class TestTemporal:

    def test_events_stamped_with_ledger_time(self):
        ledger = build_ledger()
        depository = build_depository(ledger)
        market_id = create_market(depository)
        advance(ledger, 1234)
        depository.deposit("bob", market_id, Decimal("1000"), Decimal("1000"))

        assert [e.timestamp for e in depository.event_log] == [at(0), at(1234)]

    def test_clock_cannot_rewind(self):
        ledger = build_ledger()
        advance(ledger, 100)
        with pytest.raises(ValueError):
            ledger.advance_time(at(50))

    @given(st.integers(min_value=0, max_value=200))
    @settings(max_examples=30, deadline=None)
    def test_notes_mature_on_ledger_clock(self, seconds):
        ledger = build_ledger()
        depository = build_depository(ledger)
        market_id = create_market(depository)
        depository.deposit("bob", market_id, Decimal("10000"), Decimal("500"))
        advance(ledger, seconds)

        _, matured = depository.pending_for("bob", 0)
        assert matured == (seconds >= 100)

    def test_views_follow_clock_without_writes(self):
        ledger = build_ledger()
        depository = build_depository(ledger)
        market_id = create_market(depository)
        stored = depository.registry.get(market_id)

        debts = []
        for _ in range(4):
            advance(ledger, 3600)
            debts.append(depository.current_debt(market_id))

        assert debts == sorted(debts, reverse=True)
        assert depository.registry.get(market_id) == stored
