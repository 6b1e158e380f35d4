"""
conftest.py - Shared pytest fixtures for depository tests

Provides common fixtures used across unit, functional and conformance tests:
- A funded token ledger
- A wired BondDepository with rewards configured
- The standard market
"""

import pytest
from datetime import datetime

from depository import Ledger, BondDepository

from tests.scenario import T0, build_ledger, build_depository, create_market


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def ledger() -> Ledger:
    """Ledger with OHM/DAI/gOHM, 1M OHM base supply and 10M DAI for bob."""
    return build_ledger()


@pytest.fixture
def depository(ledger) -> BondDepository:
    return build_depository(ledger)


@pytest.fixture
def market_id(depository) -> int:
    """The standard 10 000 OHM market, created at T0."""
    return create_market(depository)
