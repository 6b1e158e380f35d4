"""
scenario.py - Standard bond market scenario for tests

A 10 000 OHM market opening at 400 DAI, one day long, rationed over 4-hour
deposit intervals and tuned hourly.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from depository import (
    Ledger, BondDepository, DepositoryConfig, RoleAuthority, LedgerTreasury,
    IndexedStaking, MarketRecord, compute_market_creation, token,
    TOKEN_TYPE_PAYOUT, TOKEN_TYPE_QUOTE, TOKEN_TYPE_STAKED,
)


T0 = datetime(2024, 1, 1)

CAPACITY = Decimal("10000")
INITIAL_PRICE = Decimal("400")
BUFFER = Decimal("200000")
VESTING = 100
LENGTH = 86400
DEPOSIT_INTERVAL = 14400
TUNE_INTERVAL = 3600
REF_REWARD_BPS = Decimal("10")
DAO_REWARD_BPS = Decimal("50")
STAKING_INDEX = Decimal("50")

BASE_SUPPLY = Decimal("1000000")
BOB_DAI = Decimal("10000000")

WALLETS = ("treasury", "depository", "staking", "deployer", "alice", "bob", "carol")


def build_ledger(start: datetime = T0) -> Ledger:
    """Ledger with OHM, DAI, gOHM and the standard wallets funded."""
    ledger = Ledger("bonds", start, verbose=False, test_mode=True)
    ledger.register_token(token("OHM", "Olympus", 9, TOKEN_TYPE_PAYOUT))
    ledger.register_token(token("DAI", "Dai Stablecoin", 18, TOKEN_TYPE_QUOTE))
    ledger.register_token(token("gOHM", "Governance OHM", 18, TOKEN_TYPE_STAKED))
    for wallet in WALLETS:
        ledger.register_wallet(wallet)
    ledger.set_balance("deployer", "OHM", BASE_SUPPLY)
    ledger.set_balance("bob", "DAI", BOB_DAI)
    return ledger


def build_depository(ledger: Ledger, config: Optional[DepositoryConfig] = None) -> BondDepository:
    """Depository where 'deployer' holds every role, with rewards set and carol whitelisted."""
    authority = RoleAuthority(
        governor="deployer", guardian="deployer", policy="deployer", vault="deployer",
    )
    depository = BondDepository(
        ledger,
        authority,
        LedgerTreasury(ledger, "OHM"),
        IndexedStaking("OHM", "gOHM", STAKING_INDEX),
        config=config,
    )
    depository.set_rewards("deployer", REF_REWARD_BPS, DAO_REWARD_BPS)
    depository.whitelist("deployer", "carol")
    return depository


def create_market(depository: BondDepository, **overrides) -> int:
    """Create the standard market, with any parameter overridden by keyword."""
    now = depository.ledger.current_time
    params = dict(
        quote_token="DAI",
        capacity=CAPACITY,
        initial_price=INITIAL_PRICE,
        buffer=BUFFER,
        capacity_in_quote=False,
        fixed_term=True,
        vesting=VESTING,
        conclusion=now + timedelta(seconds=LENGTH),
        deposit_interval=DEPOSIT_INTERVAL,
        tune_interval=TUNE_INTERVAL,
    )
    params.update(overrides)
    return depository.create("deployer", **params)


def advance(ledger: Ledger, seconds: int) -> datetime:
    """Move the ledger clock forward and return the new time."""
    new_time = ledger.current_time + timedelta(seconds=seconds)
    ledger.advance_time(new_time)
    return new_time


def market_record(market_id: int = 0, now: datetime = T0, **overrides) -> MarketRecord:
    """Records of the standard market as compute_market_creation builds them."""
    params = dict(
        market_id=market_id,
        quote_token="DAI",
        capacity=CAPACITY,
        initial_price=INITIAL_PRICE,
        buffer=BUFFER,
        capacity_in_quote=False,
        fixed_term=True,
        vesting=VESTING,
        conclusion=now + timedelta(seconds=LENGTH),
        deposit_interval=DEPOSIT_INTERVAL,
        tune_interval=TUNE_INTERVAL,
        now=now,
        base_supply=BASE_SUPPLY,
        payout_decimals=9,
        control_variable_places=18,
        interval_tolerance=Decimal("0.01"),
    )
    params.update(overrides)
    return compute_market_creation(**params)


def at(seconds: int) -> datetime:
    """T0 plus a number of seconds."""
    return T0 + timedelta(seconds=seconds)
