"""
Atomicity Conformance Tests

INVARIANT: A depository call either commits completely or not at all.

    ∀ call C on BondDepository:
        C returns ⟹ market records, notes, rewards and ledger move together
        C raises  ⟹ none of them change

A ledger transaction that is not APPLIED surfaces as TransferFailed and the
depository keeps its previous state, so the call can be retried once the
cause is fixed.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from depository import (
    Ledger, Move, ExecuteResult, build_transaction, token,
    TransferFailed, SlippageExceeded, MaxPayoutExceeded,
)
from tests.scenario import build_ledger, build_depository, create_market, advance


def _state(depository, ledger):
    """Everything a failed call must leave untouched."""
    return (
        [depository.registry.get(i) for i in depository.registry.market_ids()],
        {account: depository.notes.notes_for(account) for account in ("alice", "bob", "erin")},
        {account: depository.rewards_of(account) for account in ("carol", "deployer", "dave")},
        list(depository.event_log),
        {
            (wallet, symbol): ledger.get_balance(wallet, symbol)
            for wallet in sorted(ledger.list_wallets())
            for symbol in ledger.list_tokens()
        },
        len(ledger.transaction_log),
    )


class TestLedgerAtomicity:
    """The ledger applies every move of a transaction or none."""

    def test_failing_move_rolls_back_all(self):
        ledger = Ledger("test", verbose=False, test_mode=True)
        ledger.register_token(token("DAI", "Dai"))
        for wallet in ("alice", "bob", "carol"):
            ledger.register_wallet(wallet)
        ledger.set_balance("alice", "DAI", Decimal("100"))

        tx = build_transaction(ledger, [
            Move(Decimal("50"), "DAI", "alice", "bob", "pay"),
            Move(Decimal("10"), "DAI", "carol", "bob", "pay"),
        ])
        assert ledger.execute(tx) == ExecuteResult.REJECTED
        assert ledger.get_balance("alice", "DAI") == Decimal("100")
        assert ledger.get_balance("bob", "DAI") == Decimal("0")
        assert ledger.transaction_log == []


class TestDepositAtomicity:

    def test_unfunded_deposit_changes_nothing(self):
        ledger = build_ledger()
        depository = build_depository(ledger)
        market_id = create_market(depository)
        before = _state(depository, ledger)

        with pytest.raises(TransferFailed):
            depository.deposit("alice", market_id, Decimal("1000"), Decimal("500"), referrer="carol")

        assert _state(depository, ledger) == before
        assert depository.indexes_for("alice") == []

    def test_rejected_quote_changes_nothing(self):
        ledger = build_ledger()
        depository = build_depository(ledger)
        market_id = create_market(depository)
        advance(ledger, 3600)
        before = _state(depository, ledger)

        with pytest.raises(SlippageExceeded):
            depository.deposit("bob", market_id, Decimal("1000"), Decimal("1"))
        with pytest.raises(MaxPayoutExceeded):
            depository.deposit("bob", market_id, Decimal("5000000"), Decimal("1000"))

        # the tune that was due at 3600 did not happen either
        assert _state(depository, ledger) == before

    @given(st.decimals(min_value=Decimal("0.01"), max_value=Decimal("600000"), places=2))
    @settings(max_examples=30, deadline=None)
    def test_deposit_beyond_balance_never_commits(self, amount):
        """
        PROPERTY: Any deposit the payer cannot fund leaves all state as it was.
        """
        ledger = build_ledger()
        ledger.set_balance("alice", "DAI", amount / 2)
        depository = build_depository(ledger)
        market_id = create_market(depository)
        before = _state(depository, ledger)

        with pytest.raises(TransferFailed):
            depository.deposit("alice", market_id, amount, Decimal("1000"))
        assert _state(depository, ledger) == before


class TestRedemptionAtomicity:

    def test_failed_redemption_keeps_notes(self):
        ledger = build_ledger()
        depository = build_depository(ledger)
        market_id = create_market(depository)
        depository.deposit("bob", market_id, Decimal("10000"), Decimal("500"), receiver="erin")
        advance(ledger, 100)
        before = _state(depository, ledger)

        with pytest.raises(TransferFailed):
            depository.redeem_all("erin")
        assert _state(depository, ledger) == before
        assert depository.indexes_for("erin") == [0]

        ledger.register_wallet("erin")
        assert depository.redeem_all("erin") == Decimal("25")
        assert ledger.get_balance("erin", "OHM") == Decimal("25")


class TestRewardAtomicity:

    def test_failed_claim_keeps_balance(self):
        ledger = build_ledger()
        depository = build_depository(ledger)
        depository.whitelist("deployer", "dave")
        market_id = create_market(depository)
        depository.deposit("bob", market_id, Decimal("10000"), Decimal("500"), referrer="dave")
        before = _state(depository, ledger)

        with pytest.raises(TransferFailed):
            depository.get_reward("dave")
        assert _state(depository, ledger) == before
        assert depository.rewards_of("dave") == Decimal("0.025")

        ledger.register_wallet("dave")
        assert depository.get_reward("dave") == Decimal("0.025")
        assert depository.get_reward("dave") == Decimal("0")
        assert ledger.get_balance("dave", "OHM") == Decimal("0.025")
