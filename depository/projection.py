"""
projection.py - Vectorized price paths

Forecasts how a market's price falls if nobody bonds, so an operator can see
when a market will reach a given price before picking its parameters, and a
bonder can pick when to deposit. The forecast assumes debt decays linearly
and any pending adjustment finishes with no tune in between.

Paths are float64 numpy arrays meant for plotting. Deposits and tunes never
read them, so their float rounding stays out of stored market state.

Provides:
- debt_path: outstanding debt on a grid of offsets
- control_variable_path: control variable on a grid of offsets
- project_prices: (offsets, prices) for a live market
"""

from typing import Tuple, TYPE_CHECKING
import numpy as np

from .pricing import decay_horizon

if TYPE_CHECKING:
    from .depository import BondDepository
    from .market import MarketRecord


def time_grid(horizon_seconds: float, steps: int) -> np.ndarray:
    """Evenly spaced offsets in seconds from 0 to horizon_seconds inclusive."""
    if horizon_seconds <= 0:
        raise ValueError("horizon_seconds must be positive")
    if steps < 1:
        raise ValueError("steps must be at least 1")
    return np.linspace(0.0, float(horizon_seconds), steps + 1)


def debt_path(total_debt: float, horizon: float, offsets: np.ndarray) -> np.ndarray:
    """total_debt * max(0, 1 - t / horizon) for every offset t."""
    offsets = np.asarray(offsets, dtype=float)
    if horizon <= 0:
        return np.zeros_like(offsets)
    return total_debt * np.clip(1.0 - offsets / horizon, 0.0, None)


def control_variable_path(
    control_variable: float,
    change: float,
    time_to_adjusted: float,
    active: bool,
    offsets: np.ndarray,
) -> np.ndarray:
    """Control variable with a pending adjustment spread over time_to_adjusted."""
    offsets = np.asarray(offsets, dtype=float)
    if not active or time_to_adjusted <= 0:
        return np.full_like(offsets, control_variable)
    applied = np.clip(offsets / time_to_adjusted, 0.0, 1.0)
    return control_variable - change * applied


def project_record_prices(
    record: 'MarketRecord',
    base_supply: float,
    horizon: str,
    offsets: np.ndarray,
) -> np.ndarray:
    """Prices at each offset from a record already projected to the start time."""
    if base_supply <= 0:
        raise ValueError("base supply must be positive")
    adjustment = record.adjustment
    cv = control_variable_path(
        float(record.terms.control_variable),
        float(adjustment.change),
        float(adjustment.time_to_adjusted),
        adjustment.active,
        offsets,
    )
    debt = debt_path(
        float(record.market.total_debt),
        float(decay_horizon(record, horizon)),
        offsets,
    )
    return cv * debt / float(base_supply)


def project_prices(
    depository: 'BondDepository',
    market_id: int,
    horizon_seconds: float,
    steps: int = 100,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Price path of a market from now, assuming nobody deposits.

    Returns:
        (offsets in seconds, prices in quote token)
    """
    offsets = time_grid(horizon_seconds, steps)
    record, base_supply = depository.snapshot(market_id)
    prices = project_record_prices(record, float(base_supply), depository.config.decay_horizon, offsets)
    return offsets, prices
