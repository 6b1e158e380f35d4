"""
pricing.py - Pricing Engine

Pure functions that turn a market's stored state into a price, a payout and a
per-deposit ration. Storage is lazy: debt decay and max-payout refresh are
computed on demand from (stored record, now) and returned as a new record.

Key Formulas:
    debt_ratio = total_debt / base_supply
    price = control_variable * debt_ratio
    payout = amount / price                                 (rounded down)
    total_debt_now = total_debt * max(0, 1 - elapsed / horizon)
    max_payout = capacity_in_payout * deposit_interval / time_remaining
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from .config import DECAY_HORIZON_LENGTH, DECAY_HORIZON_VESTING
from .core import quantize_down, to_decimal
from .decay import elapsed_seconds, debt_decay, decayed_debt
from .market import Market, MarketRecord


def debt_ratio(total_debt: Decimal, base_supply: Decimal) -> Decimal:
    """Outstanding debt as a fraction of the payout token's base supply."""
    if base_supply <= 0:
        raise ValueError(f"base supply must be positive, got {base_supply}")
    return total_debt / base_supply


def market_price(control_variable: Decimal, total_debt: Decimal, base_supply: Decimal) -> Decimal:
    """Price of one payout token, in quote token."""
    return control_variable * debt_ratio(total_debt, base_supply)


def payout_for(amount: Decimal, price: Decimal, places: int) -> Decimal:
    """
    Payout-token amount bought by `amount` of quote token at `price`.

    Raises:
        ValueError: If the price is not positive
    """
    amount = to_decimal(amount)
    if price <= 0:
        raise ValueError(f"cannot compute a payout at price {price}")
    return quantize_down(amount / price, places)


def capacity_in_payout(market: Market, price: Decimal, places: int) -> Decimal:
    """Remaining capacity expressed in the payout token."""
    if not market.capacity_in_quote:
        return market.capacity
    if price <= 0:
        return Decimal("0")
    return quantize_down(market.capacity / price, places)


def max_payout_for(capacity_payout: Decimal, deposit_interval: int, time_remaining: int, places: int) -> Decimal:
    """Remaining capacity spread evenly over the deposit intervals left."""
    if time_remaining <= 0:
        return capacity_payout
    return quantize_down(capacity_payout * Decimal(deposit_interval) / Decimal(time_remaining), places)


def decay_horizon(record: MarketRecord, horizon: str) -> int:
    """
    Seconds over which a market's debt decays to zero.

    "length" uses the market length. "vesting" uses the note vesting period:
    the vesting seconds of a fixed-term market, or the time from creation to
    expiry of a fixed-expiry market.
    """
    if horizon == DECAY_HORIZON_LENGTH:
        return record.metadata.length
    if horizon == DECAY_HORIZON_VESTING:
        terms = record.terms
        if terms.fixed_term:
            return terms.vesting
        return elapsed_seconds(record.metadata.created, terms.vesting)
    raise ValueError(f"unknown decay horizon {horizon!r}")


def pending_debt_decay(record: MarketRecord, now: datetime, horizon: str, places: int) -> Decimal:
    """Debt that would be retired if the market were touched at `now`."""
    elapsed = elapsed_seconds(record.metadata.last_decay, now)
    return debt_decay(record.market.total_debt, elapsed, decay_horizon(record, horizon), places)


def accrue_debt(record: MarketRecord, now: datetime, horizon: str, places: int) -> MarketRecord:
    """Apply debt decay over the whole interval since last_decay, in one step."""
    elapsed = elapsed_seconds(record.metadata.last_decay, now)
    total_debt = decayed_debt(record.market.total_debt, elapsed, decay_horizon(record, horizon), places)
    market = replace(record.market, total_debt=total_debt)
    metadata = replace(record.metadata, last_decay=now)
    return replace(record, market=market, metadata=metadata)


def refresh_max_payout(record: MarketRecord, now: datetime, price: Decimal, places: int) -> MarketRecord:
    """
    Recompute max_payout once a full deposit interval has passed since the
    last ration. Before that the stored ration stands.

    The new ration is the remaining capacity over the deposit intervals left,
    the same formula a tune uses. It is not capped by the previous ration:
    after idle intervals the same capacity is spread over fewer intervals, so
    max_payout grows.
    """
    metadata = record.metadata
    if elapsed_seconds(metadata.last_ration, now) < metadata.deposit_interval:
        return record
    time_remaining = elapsed_seconds(now, record.terms.conclusion)
    if time_remaining <= 0:
        return record

    capacity = capacity_in_payout(record.market, price, places)
    max_payout = max_payout_for(capacity, metadata.deposit_interval, time_remaining, places)
    return replace(
        record,
        market=replace(record.market, max_payout=max_payout),
        metadata=replace(metadata, last_ration=now),
    )
