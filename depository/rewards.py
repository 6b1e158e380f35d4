"""
rewards.py - Reward Ledger

Front-end operators that refer deposits earn a share of the payout, and the
DAO earns a share of every deposit. Shares are set in basis points. A referrer
only earns once it is whitelisted; the share of a non-whitelisted referrer
goes to the DAO instead.

Rewards are minted alongside each payout and held by the depository until
claimed.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Optional, Set

from .core import BPS_DENOMINATOR, quantize_down, to_decimal


def _validate_bps(name: str, value: Decimal) -> Decimal:
    value = to_decimal(value)
    if value < 0 or value > BPS_DENOMINATOR:
        raise ValueError(f"{name} must be between 0 and {BPS_DENOMINATOR} bps, got {value}")
    return value


class FrontEndRewarder:
    """Reward rates, the referrer whitelist and unclaimed balances."""

    def __init__(self, ref_bps: Decimal = Decimal("0"), dao_bps: Decimal = Decimal("0")):
        self.ref_bps = _validate_bps("ref_bps", ref_bps)
        self.dao_bps = _validate_bps("dao_bps", dao_bps)
        self.whitelisted: Set[str] = set()
        self._rewards: Dict[str, Decimal] = {}

    def set_rewards(self, ref_bps: Decimal, dao_bps: Decimal) -> None:
        """
        Raises:
            ValueError: If either rate is outside [0, 10000]
        """
        ref = _validate_bps("ref_bps", ref_bps)
        dao = _validate_bps("dao_bps", dao_bps)
        self.ref_bps, self.dao_bps = ref, dao

    def whitelist(self, account: str) -> None:
        if not account or not account.strip():
            raise ValueError("account cannot be empty")
        self.whitelisted.add(account)

    def is_whitelisted(self, account: Optional[str]) -> bool:
        return account is not None and account in self.whitelisted

    def compute_rewards(self, payout: Decimal, referrer: Optional[str], dao: str, places: int) -> Dict[str, Decimal]:
        """
        Reward accruals owed on one payout, keyed by account.

        Each share is rounded down separately. Zero shares are left out.
        """
        to_ref = quantize_down(payout * self.ref_bps / BPS_DENOMINATOR, places)
        to_dao = quantize_down(payout * self.dao_bps / BPS_DENOMINATOR, places)

        deltas: Dict[str, Decimal] = {}
        if self.is_whitelisted(referrer) and referrer != dao:
            deltas[referrer] = to_ref
            deltas[dao] = to_dao
        else:
            deltas[dao] = to_ref + to_dao
        return {account: amount for account, amount in deltas.items() if amount > 0}

    def accrue(self, deltas: Dict[str, Decimal]) -> None:
        for account, amount in deltas.items():
            self._rewards[account] = self._rewards.get(account, Decimal("0")) + amount

    def rewards_of(self, account: str) -> Decimal:
        return self._rewards.get(account, Decimal("0"))

    def clear(self, account: str) -> Decimal:
        """Zero an account's balance and return what it held."""
        return self._rewards.pop(account, Decimal("0"))
