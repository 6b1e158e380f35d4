"""
market.py - Market Registry

This module holds the four per-market records and the arena that stores them.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - Market: Capacity, debt and running totals
   - Terms: Control variable, vesting, conclusion, max debt
   - Metadata: Timestamps and intervals driving decay and tuning
   - Adjustment: Pending control-variable change
   - MarketRecord: The four records of one market, committed together

2. PURE CALCULATION FUNCTIONS:
   - validate_intervals(length, deposit_interval, tune_interval, tolerance)
   - compute_market_creation(...) -> MarketRecord
   - market_is_live(record, now) -> bool

3. STATEFUL ARENA (MarketRegistry):
   - Struct-of-arrays storage indexed by dense market id
   - Ids are allocated monotonically and never reused

Key Formulas:
    target_debt = capacity                      (capacity in payout token)
                = capacity / initial_price      (capacity in quote token)
    max_payout = target_debt * deposit_interval / length
    max_debt = target_debt + target_debt * buffer / 100_000
    control_variable = initial_price * base_supply / target_debt
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Dict, List, Union

from .core import (
    BUFFER_DENOMINATOR, MarketNotFound, InvalidInterval,
    quantize_down, to_decimal,
)
from .decay import elapsed_seconds


Vesting = Union[int, datetime]


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Market:
    """
    Running state of one market.

    capacity is expressed in the quote token when capacity_in_quote is set,
    otherwise in the payout token. sold and purchased only ever grow.
    """
    market_id: int
    quote_token: str
    capacity_in_quote: bool
    capacity: Decimal       # Remaining capacity (never negative)
    total_debt: Decimal     # Outstanding debt in payout token, as of last_decay
    max_payout: Decimal     # Largest payout a single deposit may take
    sold: Decimal           # Payout token sold so far
    purchased: Decimal      # Quote token received so far

    def __post_init__(self):
        for name in ('capacity', 'total_debt', 'max_payout', 'sold', 'purchased'):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                object.__setattr__(self, name, to_decimal(value))


@dataclass(frozen=True, slots=True)
class Terms:
    """
    Pricing terms of one market.

    vesting is a number of seconds when fixed_term is set (notes mature that
    long after purchase) and an absolute datetime otherwise (every note
    matures at the same instant).
    """
    fixed_term: bool
    control_variable: Decimal  # Scaling factor between debt ratio and price
    vesting: Vesting
    conclusion: datetime       # Market closes at this instant
    max_debt: Decimal          # Circuit breaker: exceeding it closes the market

    def __post_init__(self):
        if not isinstance(self.control_variable, Decimal):
            object.__setattr__(self, 'control_variable', to_decimal(self.control_variable))
        if not isinstance(self.max_debt, Decimal):
            object.__setattr__(self, 'max_debt', to_decimal(self.max_debt))


@dataclass(frozen=True, slots=True)
class Metadata:
    """Timestamps and intervals that drive lazy decay, rationing and tuning."""
    created: datetime
    last_tune: datetime
    last_decay: datetime
    last_ration: datetime          # When max_payout was last recomputed
    length: int                    # Seconds from creation to conclusion
    deposit_interval: int          # Target seconds between max-size deposits
    tune_interval: int             # Minimum seconds between tunes
    tune_below_capacity: Decimal   # Capacity expected once the next tune interval passes
    last_tune_debt: Decimal        # Outstanding debt at the last tune


@dataclass(frozen=True, slots=True)
class Adjustment:
    """Pending control-variable change, applied linearly over time_to_adjusted seconds."""
    change: Decimal = Decimal("0")
    last_adjustment: datetime = datetime(1970, 1, 1)
    time_to_adjusted: int = 0
    active: bool = False


@dataclass(frozen=True, slots=True)
class MarketRecord:
    """All four records of one market, read and committed as a unit."""
    market: Market
    terms: Terms
    metadata: Metadata
    adjustment: Adjustment

    @property
    def market_id(self) -> int:
        return self.market.market_id


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def validate_intervals(length: int, deposit_interval: int, tune_interval: int, tolerance: Decimal) -> int:
    """
    Check that the market's intervals are usable.

    length / deposit_interval has to land within `tolerance` (relative) of a
    positive whole number of intervals.

    Returns:
        The number of deposit intervals in the market.

    Raises:
        InvalidInterval: On a non-positive interval or a ragged tiling
    """
    if deposit_interval <= 0:
        raise InvalidInterval(f"deposit_interval must be positive, got {deposit_interval}")
    if tune_interval <= 0:
        raise InvalidInterval(f"tune_interval must be positive, got {tune_interval}")

    ratio = Decimal(length) / Decimal(deposit_interval)
    intervals = ratio.to_integral_value(rounding=ROUND_HALF_EVEN)
    if intervals < 1:
        raise InvalidInterval(
            f"deposit_interval {deposit_interval}s is longer than the market ({length}s)"
        )
    if abs(ratio - intervals) > tolerance * intervals:
        raise InvalidInterval(
            f"market length {length}s is not a whole number of {deposit_interval}s intervals"
        )
    return int(intervals)


def _validate_vesting(fixed_term: bool, vesting: Vesting, now: datetime) -> None:
    if fixed_term:
        if isinstance(vesting, bool) or not isinstance(vesting, int):
            raise ValueError(f"fixed-term vesting must be a number of seconds, got {vesting!r}")
        if vesting < 0:
            raise ValueError(f"vesting must be non-negative, got {vesting}")
    else:
        if not isinstance(vesting, datetime):
            raise ValueError(f"fixed-expiry vesting must be a datetime, got {vesting!r}")
        if vesting < now:
            raise ValueError(f"vesting expiry {vesting} is in the past")


def compute_market_creation(
    market_id: int,
    quote_token: str,
    capacity: Decimal,
    initial_price: Decimal,
    buffer: Decimal,
    capacity_in_quote: bool,
    fixed_term: bool,
    vesting: Vesting,
    conclusion: datetime,
    deposit_interval: int,
    tune_interval: int,
    now: datetime,
    base_supply: Decimal,
    payout_decimals: int,
    control_variable_places: int,
    interval_tolerance: Decimal,
) -> MarketRecord:
    """
    Build the initial records of a new market.

    The control variable is chosen so that the market opens at exactly
    initial_price against the current base supply.

    Raises:
        ValueError: On non-positive capacity or price, negative buffer,
            conclusion not in the future, mistyped vesting or empty supply
        InvalidInterval: See validate_intervals
    """
    capacity = to_decimal(capacity)
    initial_price = to_decimal(initial_price)
    buffer = to_decimal(buffer)
    base_supply = to_decimal(base_supply)

    if not quote_token or not quote_token.strip():
        raise ValueError("quote_token cannot be empty")
    if capacity <= 0:
        raise ValueError(f"capacity must be positive, got {capacity}")
    if initial_price <= 0:
        raise ValueError(f"initial_price must be positive, got {initial_price}")
    if buffer < 0:
        raise ValueError(f"buffer must be non-negative, got {buffer}")
    if conclusion <= now:
        raise ValueError(f"conclusion {conclusion} must be after {now}")
    if base_supply <= 0:
        raise ValueError(f"base supply must be positive, got {base_supply}")
    _validate_vesting(fixed_term, vesting, now)

    length = elapsed_seconds(now, conclusion)
    validate_intervals(length, deposit_interval, tune_interval, interval_tolerance)

    if capacity_in_quote:
        target_debt = quantize_down(capacity / initial_price, payout_decimals)
    else:
        target_debt = capacity
    if target_debt <= 0:
        raise ValueError(f"capacity {capacity} is too small to sell any payout token")

    max_payout = quantize_down(
        target_debt * Decimal(deposit_interval) / Decimal(length), payout_decimals
    )
    max_debt = quantize_down(
        target_debt + target_debt * buffer / BUFFER_DENOMINATOR, payout_decimals
    )
    control_variable = quantize_down(
        initial_price * base_supply / target_debt, control_variable_places
    )

    market = Market(
        market_id=market_id,
        quote_token=quote_token,
        capacity_in_quote=capacity_in_quote,
        capacity=capacity,
        total_debt=target_debt,
        max_payout=max_payout,
        sold=Decimal("0"),
        purchased=Decimal("0"),
    )
    terms = Terms(
        fixed_term=fixed_term,
        control_variable=control_variable,
        vesting=vesting,
        conclusion=conclusion,
        max_debt=max_debt,
    )
    metadata = Metadata(
        created=now,
        last_tune=now,
        last_decay=now,
        last_ration=now,
        length=length,
        deposit_interval=deposit_interval,
        tune_interval=tune_interval,
        tune_below_capacity=capacity,
        last_tune_debt=target_debt,
    )
    return MarketRecord(market, terms, metadata, Adjustment(last_adjustment=now))


def market_is_live(record: MarketRecord, now: datetime) -> bool:
    """A market is live while it has capacity left and has not concluded."""
    return record.market.capacity > 0 and now < record.terms.conclusion


def note_maturity(terms: Terms, now: datetime) -> datetime:
    """When a note bought at `now` becomes redeemable."""
    if terms.fixed_term:
        return now + timedelta(seconds=terms.vesting)
    return terms.vesting


def close_record(record: MarketRecord) -> MarketRecord:
    """Return the record with its capacity zeroed; conclusion is left alone."""
    return replace(record, market=replace(record.market, capacity=Decimal("0")))


# ============================================================================
# ARENA
# ============================================================================

class MarketRegistry:
    """
    Struct-of-arrays storage for every market ever created.

    Markets are addressed by a dense integer id equal to their position in
    the arrays. Closed markets stay in place; ids are never reused.
    """

    def __init__(self):
        self._markets: List[Market] = []
        self._terms: List[Terms] = []
        self._metadata: List[Metadata] = []
        self._adjustments: List[Adjustment] = []
        self._markets_for_quote: Dict[str, List[int]] = {}

    def __len__(self) -> int:
        return len(self._markets)

    @property
    def next_id(self) -> int:
        return len(self._markets)

    def append(self, record: MarketRecord) -> int:
        """Store a freshly created market. Its id must be next_id."""
        if record.market_id != self.next_id:
            raise ValueError(f"expected market id {self.next_id}, got {record.market_id}")
        self._markets.append(record.market)
        self._terms.append(record.terms)
        self._metadata.append(record.metadata)
        self._adjustments.append(record.adjustment)
        self._markets_for_quote.setdefault(record.market.quote_token, []).append(record.market_id)
        return record.market_id

    def get(self, market_id: int) -> MarketRecord:
        """
        Raises:
            MarketNotFound: If the id was never allocated
        """
        if isinstance(market_id, bool) or not isinstance(market_id, int) \
                or market_id < 0 or market_id >= len(self._markets):
            raise MarketNotFound(f"Market {market_id} not found")
        return MarketRecord(
            self._markets[market_id],
            self._terms[market_id],
            self._metadata[market_id],
            self._adjustments[market_id],
        )

    def commit(self, record: MarketRecord) -> None:
        """Replace all four records of an existing market at once."""
        market_id = record.market_id
        self.get(market_id)
        self._markets[market_id] = record.market
        self._terms[market_id] = record.terms
        self._metadata[market_id] = record.metadata
        self._adjustments[market_id] = record.adjustment

    def market_ids(self) -> List[int]:
        return list(range(len(self._markets)))

    def market_ids_for(self, quote_token: str) -> List[int]:
        return list(self._markets_for_quote.get(quote_token, []))

    def live_markets(self, now: datetime) -> List[int]:
        """Ids of live markets, ascending. Recomputed on every call."""
        return [i for i in self.market_ids() if market_is_live(self.get(i), now)]

    def live_markets_for(self, quote_token: str, now: datetime) -> List[int]:
        """Ids of live markets quoted in `quote_token`, ascending."""
        return [i for i in self.market_ids_for(quote_token) if market_is_live(self.get(i), now)]
