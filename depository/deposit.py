"""
deposit.py - Deposit Processor

compute_deposit() validates a purchase and returns the complete post-deposit
market record as an immutable DepositQuote. Nothing is stored here; the
facade commits the quote only once the token transfers behind it apply.

Order of operations:
    1. market must be live
    2. project control decay, debt decay and ration refresh to now
    3. price, slippage check
    4. payout, max-payout check
    5. capacity check
    6. update capacity, debt and running totals
    7. max-debt circuit breaker, otherwise tune
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .config import DepositoryConfig
from .core import (
    MarketClosed, SlippageExceeded, MaxPayoutExceeded, CapacityExceeded,
    to_decimal,
)
from .market import MarketRecord, market_is_live, note_maturity, close_record
from .pricing import market_price, payout_for
from .tuning import TuneResult, compute_tune, project_record


@dataclass(frozen=True, slots=True)
class DepositQuote:
    """Everything a deposit will change, computed before anything is committed."""
    record: MarketRecord
    amount: Decimal
    payout: Decimal
    price: Decimal
    matures_at: datetime
    closed_by_debt: bool = False
    tune: Optional[TuneResult] = None


def compute_deposit(
    record: MarketRecord,
    now: datetime,
    amount: Decimal,
    max_price: Decimal,
    base_supply: Decimal,
    config: DepositoryConfig,
) -> DepositQuote:
    """
    Price a deposit of `amount` quote token and compute the resulting state.

    Raises:
        ValueError: If amount is negative
        MarketClosed: If the market has concluded or has no capacity left
        SlippageExceeded: If the price is above max_price
        MaxPayoutExceeded: If the payout is above the current ration, or a
            non-zero amount meets a zero price
        CapacityExceeded: If the deposit would take more than the capacity left
    """
    amount = to_decimal(amount)
    max_price = to_decimal(max_price)
    if amount < 0:
        raise ValueError(f"deposit amount must be non-negative, got {amount}")

    market_id = record.market_id
    if not market_is_live(record, now):
        raise MarketClosed(f"Market {market_id} is closed")

    places = config.payout_decimals
    record = project_record(record, now, base_supply, config.decay_horizon, places)

    price = market_price(record.terms.control_variable, record.market.total_debt, base_supply)
    if price > max_price:
        raise SlippageExceeded(f"Market {market_id} price {price} is above max price {max_price}")

    market = record.market
    if price > 0:
        payout = payout_for(amount, price, places)
    elif amount == 0:
        payout = Decimal("0")
    else:
        # all debt has decayed away, so any amount buys unbounded payout
        raise MaxPayoutExceeded(
            f"Market {market_id} has no outstanding debt and cannot price a deposit of {amount}"
        )
    if payout > market.max_payout:
        raise MaxPayoutExceeded(
            f"Market {market_id} payout {payout} is above max payout {market.max_payout}"
        )

    used = amount if market.capacity_in_quote else payout
    if used > market.capacity:
        raise CapacityExceeded(
            f"Market {market_id} deposit needs {used} but only {market.capacity} capacity remains"
        )

    market = replace(
        market,
        capacity=market.capacity - used,
        total_debt=market.total_debt + payout,
        sold=market.sold + payout,
        purchased=market.purchased + amount,
    )
    record = replace(record, market=market)

    tune = None
    closed_by_debt = market.total_debt > record.terms.max_debt
    if closed_by_debt:
        record = close_record(record)
    else:
        tune = compute_tune(
            record, now, base_supply, places, config.control_variable_places
        )
        if tune is not None:
            record = tune.record

    return DepositQuote(
        record=record,
        amount=amount,
        payout=payout,
        price=price,
        matures_at=note_maturity(record.terms, now),
        closed_by_debt=closed_by_debt,
        tune=tune,
    )
