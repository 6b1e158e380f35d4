"""
depository - Bond Depository Pricing Engine

Continuous bond markets: a treasury sells a payout token for quote tokens at
a price that decays over time, rationed per deposit interval and re-tuned to
keep the sale on schedule.

Usage:
    from datetime import datetime, timedelta
    from decimal import Decimal
    from depository import (
        Ledger, token, Move, build_transaction, SYSTEM_WALLET, BondDepository,
        RoleAuthority, LedgerTreasury, IndexedStaking,
        TOKEN_TYPE_PAYOUT, TOKEN_TYPE_STAKED,
    )

    ledger = Ledger("bonds", datetime(2024, 1, 1))
    ledger.register_token(token("OHM", "Olympus", 9, TOKEN_TYPE_PAYOUT))
    ledger.register_token(token("DAI", "Dai Stablecoin", 18))
    ledger.register_token(token("gOHM", "Governance OHM", 18, TOKEN_TYPE_STAKED))
    for wallet in ("treasury", "depository", "staking", "dao", "bob"):
        ledger.register_wallet(wallet)
    ledger.execute(build_transaction(ledger, [
        Move(Decimal("1000000"), "OHM", SYSTEM_WALLET, "dao", "genesis"),
        Move(Decimal("50000"), "DAI", SYSTEM_WALLET, "bob", "genesis"),
    ]))

    depository = BondDepository(
        ledger,
        RoleAuthority(governor="dao", guardian="dao", policy="dao", vault="dao"),
        LedgerTreasury(ledger, "OHM"),
        IndexedStaking("OHM", "gOHM", Decimal("50")),
    )
    market_id = depository.create(
        "dao", "DAI", Decimal("10000"), Decimal("400"), Decimal("200000"),
        False, True, 100, ledger.current_time + timedelta(days=1), 14400, 3600,
    )
    payout, matures_at, index = depository.deposit(
        "bob", market_id, Decimal("10000"), Decimal("500")
    )
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Token,
    token,
    ExecuteResult,
    DepositoryEvent,
    DepositoryError,
    MarketNotFound,
    MarketClosed,
    SlippageExceeded,
    MaxPayoutExceeded,
    CapacityExceeded,
    InvalidInterval,
    Unauthorized,
    NoteNotFound,
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    TransferFailed,
    SYSTEM_WALLET,
    TOKEN_TYPE_PAYOUT,
    TOKEN_TYPE_QUOTE,
    TOKEN_TYPE_STAKED,
    QUANTITY_EPSILON,
    BPS_DENOMINATOR,
    BUFFER_DENOMINATOR,
    quantize_down,
)

# Token ledger
from .ledger import Ledger

# Configuration
from .config import DepositoryConfig, DECAY_HORIZON_LENGTH, DECAY_HORIZON_VESTING

# Market records
from .market import (
    Market,
    Terms,
    Metadata,
    Adjustment,
    MarketRecord,
    MarketRegistry,
    compute_market_creation,
    validate_intervals,
)

# Pure pricing, decay and tuning
from .decay import elapsed_seconds, decay_factor, debt_decay, decayed_debt, control_decay
from .pricing import market_price, payout_for, debt_ratio, max_payout_for
from .tuning import TuneResult, apply_control_decay, compute_tune, project_record
from .deposit import DepositQuote, compute_deposit

# Notes and rewards
from .notes import Note, NoteKeeper
from .rewards import FrontEndRewarder

# Collaborators
from .authority import Authority, RoleAuthority
from .collaborators import Treasury, LedgerTreasury, Staking, IndexedStaking

# Facade
from .depository import BondDepository

# Projection
from .projection import project_prices


__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction',
    'Token', 'token', 'ExecuteResult',
    'DepositoryEvent',
    # Errors
    'DepositoryError', 'MarketNotFound', 'MarketClosed', 'SlippageExceeded',
    'MaxPayoutExceeded', 'CapacityExceeded', 'InvalidInterval', 'Unauthorized',
    'NoteNotFound', 'LedgerError', 'UnitNotRegistered',
    'WalletNotRegistered', 'TransferFailed',
    # Constants
    'SYSTEM_WALLET', 'TOKEN_TYPE_PAYOUT', 'TOKEN_TYPE_QUOTE', 'TOKEN_TYPE_STAKED',
    'QUANTITY_EPSILON', 'BPS_DENOMINATOR', 'BUFFER_DENOMINATOR', 'quantize_down',
    # Ledger and config
    'Ledger', 'DepositoryConfig', 'DECAY_HORIZON_LENGTH', 'DECAY_HORIZON_VESTING',
    # Markets
    'Market', 'Terms', 'Metadata', 'Adjustment', 'MarketRecord', 'MarketRegistry',
    'compute_market_creation', 'validate_intervals',
    # Pricing, decay, tuning, deposits
    'elapsed_seconds', 'decay_factor', 'debt_decay', 'decayed_debt', 'control_decay',
    'market_price', 'payout_for', 'debt_ratio', 'max_payout_for',
    'TuneResult', 'apply_control_decay', 'compute_tune', 'project_record',
    'DepositQuote', 'compute_deposit',
    # Notes and rewards
    'Note', 'NoteKeeper', 'FrontEndRewarder',
    # Collaborators
    'Authority', 'RoleAuthority', 'Treasury', 'LedgerTreasury', 'Staking', 'IndexedStaking',
    # Facade
    'BondDepository',
    'project_prices',
]

__version__ = '1.0.0'
