"""
tuning.py - Tuning Controller

The controller keeps a market selling on schedule by lowering its control
variable when outstanding debt falls behind the debt the remaining capacity
implies. It has two states, Idle (adjustment.active is False) and Adjusting.

Lowering is never applied at once: a tune records an Adjustment and every
later interaction applies the share of it that has come due (see
decay.control_decay). Raising is never done; a market that is ahead of
schedule simply stops adjusting and lets the higher debt carry the price.
A tune while no debt is outstanding leaves the control variable where it is
and the controller Idle, since the control variable must stay positive.

Key Formulas (at a tune boundary):
    time_remaining = conclusion - now
    max_payout = capacity * deposit_interval / time_remaining
    target_debt = capacity * length / time_remaining
    new_cv = control_variable * actual_debt_ratio / target_debt_ratio
    behind schedule  <=>  new_cv < control_variable
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .core import quantize_down
from .decay import control_decay, elapsed_seconds
from .market import Adjustment, MarketRecord
from .pricing import (
    accrue_debt, capacity_in_payout, debt_ratio, market_price,
    max_payout_for, refresh_max_payout,
)


@dataclass(frozen=True, slots=True)
class TuneResult:
    """Outcome of one tune: the updated record plus the values it was based on."""
    record: MarketRecord
    old_control_variable: Decimal
    new_control_variable: Decimal
    target_debt_ratio: Decimal
    actual_debt_ratio: Decimal

    @property
    def active(self) -> bool:
        return self.record.adjustment.active


def apply_control_decay(record: MarketRecord, now: datetime) -> MarketRecord:
    """
    Apply the share of a pending adjustment that has come due by `now`.

    A full interval applies exactly the remaining change; partial steps
    shorten the interval by the time consumed, so they add up to the change.
    """
    adjustment = record.adjustment
    if not adjustment.active:
        return record

    decay, seconds_since, still_active = control_decay(adjustment, now)
    terms = replace(record.terms, control_variable=record.terms.control_variable - decay)
    if still_active:
        adjustment = replace(
            adjustment,
            change=adjustment.change - decay,
            time_to_adjusted=adjustment.time_to_adjusted - seconds_since,
            last_adjustment=now,
        )
    else:
        adjustment = Adjustment(last_adjustment=now)
    return replace(record, terms=terms, adjustment=adjustment)


def project_record(
    record: MarketRecord,
    now: datetime,
    base_supply: Decimal,
    horizon: str,
    payout_decimals: int,
) -> MarketRecord:
    """
    Bring a stored record forward to `now` without a deposit.

    Applies control decay, then debt decay, then the max-payout refresh.
    """
    record = apply_control_decay(record, now)
    record = accrue_debt(record, now, horizon, payout_decimals)
    price = market_price(record.terms.control_variable, record.market.total_debt, base_supply)
    return refresh_max_payout(record, now, price, payout_decimals)


def tune_due(record: MarketRecord, now: datetime) -> bool:
    metadata = record.metadata
    return elapsed_seconds(metadata.last_tune, now) >= metadata.tune_interval


def compute_tune(
    record: MarketRecord,
    now: datetime,
    base_supply: Decimal,
    payout_decimals: int,
    control_variable_places: int,
) -> Optional[TuneResult]:
    """
    Re-target the control variable if a tune interval has passed.

    Returns None when no tune is due or the market has concluded.
    """
    if not tune_due(record, now):
        return None
    time_remaining = elapsed_seconds(now, record.terms.conclusion)
    if time_remaining <= 0:
        return None

    market, terms, metadata = record.market, record.terms, record.metadata
    control_variable = terms.control_variable
    price = market_price(control_variable, market.total_debt, base_supply)

    capacity = capacity_in_payout(market, price, payout_decimals)
    max_payout = max_payout_for(capacity, metadata.deposit_interval, time_remaining, payout_decimals)
    target_debt = quantize_down(
        capacity * Decimal(metadata.length) / Decimal(time_remaining), payout_decimals
    )
    actual_ratio = debt_ratio(market.total_debt, base_supply)

    target_ratio = debt_ratio(target_debt, base_supply) if target_debt > 0 else Decimal("0")
    new_control_variable = control_variable
    # no outstanding debt means no ratio to scale by
    if target_ratio > 0 and actual_ratio > 0:
        new_control_variable = quantize_down(
            control_variable * actual_ratio / target_ratio, control_variable_places
        )
        if new_control_variable <= 0:
            new_control_variable = control_variable

    if new_control_variable < control_variable:
        adjustment = Adjustment(
            change=control_variable - new_control_variable,
            last_adjustment=now,
            time_to_adjusted=metadata.tune_interval,
            active=True,
        )
    else:
        adjustment = Adjustment(last_adjustment=now)

    tune_below_capacity = quantize_down(
        market.capacity - market.capacity * Decimal(metadata.tune_interval) / Decimal(time_remaining),
        payout_decimals,
    )
    tuned = replace(
        record,
        market=replace(market, max_payout=max_payout),
        metadata=replace(
            metadata,
            last_tune=now,
            last_ration=now,
            last_tune_debt=market.total_debt,
            tune_below_capacity=max(tune_below_capacity, Decimal("0")),
        ),
        adjustment=adjustment,
    )
    return TuneResult(
        record=tuned,
        old_control_variable=control_variable,
        new_control_variable=new_control_variable,
        target_debt_ratio=target_ratio,
        actual_debt_ratio=actual_ratio,
    )
