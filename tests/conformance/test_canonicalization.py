"""
Canonicalization Conformance Tests

INVARIANT: Semantically equivalent transactions share one intent_id.

    ∀ q1, q2: q1 == q2 ⟹ intent_id(move(q1)) == intent_id(move(q2))

Trailing zeros and move order never change the identity of a transaction,
so a retried deposit or redemption is recognised however its amounts were
written.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from depository import Move, PendingTransaction, TransactionOrigin, OriginType
from depository.core import _normalize_decimal
from tests.scenario import T0


ORIGIN = TransactionOrigin(OriginType.CONTRACT, "depository:1", "DEPOSIT")


@st.composite
def equivalent_decimals(draw):
    """Pairs of equal positive Decimals with different exponents."""
    base = draw(st.decimals(
        min_value=Decimal("0.000001"),
        max_value=Decimal("1000000"),
        places=6,
        allow_nan=False,
        allow_infinity=False,
    ))
    return base, base.quantize(Decimal("0.000000000"))


class TestCanonicalization:

    @given(equivalent_decimals())
    @settings(max_examples=200)
    def test_equal_decimals_normalize_identically(self, pair):
        d1, d2 = pair
        assert _normalize_decimal(d1) == _normalize_decimal(d2)

    @given(equivalent_decimals())
    @settings(max_examples=100)
    def test_equal_quantities_share_intent(self, pair):
        d1, d2 = pair
        tx1 = PendingTransaction((Move(d1, "DAI", "bob", "treasury", "bond_market_0"),), ORIGIN, T0)
        tx2 = PendingTransaction((Move(d2, "DAI", "bob", "treasury", "bond_market_0"),), ORIGIN, T0)
        assert tx1.intent_id == tx2.intent_id

    def test_integral_decimal_has_no_exponent(self):
        assert _normalize_decimal(Decimal("1E+3")) == "1000"
        assert _normalize_decimal(Decimal("25.150")) == "25.15"

    def test_source_id_distinguishes_intents(self):
        move = Move(Decimal("1000"), "DAI", "bob", "treasury", "bond_market_0")
        other = TransactionOrigin(OriginType.CONTRACT, "depository:2", "DEPOSIT")
        assert (PendingTransaction((move,), ORIGIN, T0).intent_id
                != PendingTransaction((move,), other, T0).intent_id)
