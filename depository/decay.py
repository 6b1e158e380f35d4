"""
decay.py - Decay Clock

Pure time arithmetic shared by pricing and tuning. Nothing here reads a
ledger or mutates a market; every function is a function of its arguments.

Debt decays linearly: a market's outstanding debt is retired at a rate of
total_debt / horizon per second, so after `horizon` seconds without a deposit
all of it is gone. The retirement is always computed in one step over the
full elapsed interval since the last decay, never iteratively.

Control-variable adjustments are spread over `time_to_adjusted` seconds; the
portion of the remaining change applied at any interaction is proportional to
the time elapsed since the last adjustment.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Tuple, TYPE_CHECKING

from .core import quantize_down

if TYPE_CHECKING:
    from .market import Adjustment


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, never negative."""
    seconds = int((end - start).total_seconds())
    return max(seconds, 0)


def decay_factor(elapsed: int, horizon: int) -> Decimal:
    """
    Fraction of debt still outstanding after `elapsed` seconds.

    max(0, 1 - elapsed / horizon). A non-positive horizon retires everything.
    """
    if horizon <= 0:
        return Decimal("0")
    factor = Decimal(1) - Decimal(elapsed) / Decimal(horizon)
    return max(factor, Decimal("0"))


def debt_decay(total_debt: Decimal, elapsed: int, horizon: int, places: int) -> Decimal:
    """
    Amount of debt retired over `elapsed` seconds, rounded down.

    Never more than total_debt.
    """
    if total_debt <= 0 or elapsed <= 0:
        return Decimal("0")
    if decay_factor(elapsed, horizon) == 0:
        return total_debt
    retired = quantize_down(total_debt * Decimal(elapsed) / Decimal(horizon), places)
    return min(retired, total_debt)


def decayed_debt(total_debt: Decimal, elapsed: int, horizon: int, places: int) -> Decimal:
    """Outstanding debt after `elapsed` seconds of linear decay."""
    return total_debt - debt_decay(total_debt, elapsed, horizon, places)


def control_decay(adjustment: 'Adjustment', now: datetime) -> Tuple[Decimal, int, bool]:
    """
    Portion of a pending control-variable change due at `now`.

    Returns:
        (decay, seconds_since, still_active)

        decay is change * seconds_since / time_to_adjusted while the
        adjustment has time left, otherwise the full remaining change.
        An inactive adjustment yields (0, 0, False).
    """
    if not adjustment.active:
        return Decimal("0"), 0, False

    seconds_since = elapsed_seconds(adjustment.last_adjustment, now)
    if seconds_since >= adjustment.time_to_adjusted:
        return adjustment.change, seconds_since, False

    decay = adjustment.change * Decimal(seconds_since) / Decimal(adjustment.time_to_adjusted)
    return decay, seconds_since, True
