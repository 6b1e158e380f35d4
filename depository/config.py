"""
config.py - Tunables for a BondDepository instance
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .core import DEFAULT_PAYOUT_DECIMALS, DEFAULT_CONTROL_VARIABLE_PLACES, to_decimal


DECAY_HORIZON_LENGTH = "length"
DECAY_HORIZON_VESTING = "vesting"


@dataclass(frozen=True, slots=True)
class DepositoryConfig:
    """
    Immutable configuration passed to BondDepository.

    Attributes:
        payout_decimals: Places payout-token amounts (payout, debt, max payout,
            rewards) are rounded down to.
        control_variable_places: Places the control variable and adjustment
            change are rounded down to when a tune computes them.
        decay_horizon: "length" decays debt over the market length,
            "vesting" over the note vesting period.
        interval_tolerance: Relative tolerance allowed between
            length / deposit_interval and the nearest positive integer.
        verbose: Print events as they happen. None inherits the ledger's flag.
    """
    payout_decimals: int = DEFAULT_PAYOUT_DECIMALS
    control_variable_places: int = DEFAULT_CONTROL_VARIABLE_PLACES
    decay_horizon: str = DECAY_HORIZON_LENGTH
    interval_tolerance: Decimal = Decimal("0.01")
    verbose: Optional[bool] = None

    def __post_init__(self):
        if self.payout_decimals < 0:
            raise ValueError(f"payout_decimals must be non-negative, got {self.payout_decimals}")
        if self.control_variable_places < 0:
            raise ValueError(
                f"control_variable_places must be non-negative, got {self.control_variable_places}"
            )
        if self.decay_horizon not in (DECAY_HORIZON_LENGTH, DECAY_HORIZON_VESTING):
            raise ValueError(
                f"decay_horizon must be '{DECAY_HORIZON_LENGTH}' or '{DECAY_HORIZON_VESTING}', "
                f"got {self.decay_horizon!r}"
            )
        tolerance = to_decimal(self.interval_tolerance)
        if tolerance < 0 or tolerance >= 1:
            raise ValueError(f"interval_tolerance must be in [0, 1), got {tolerance}")
        object.__setattr__(self, 'interval_tolerance', tolerance)
