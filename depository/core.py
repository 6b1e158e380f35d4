"""
Core types and pure functions for the bond depository.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only token ledger access
2. Immutable data structures: Move, PendingTransaction, Transaction, Token
3. Exceptions: DepositoryError, LedgerError and their domain-specific subtypes
4. Type alias: BalanceMap
5. Events: DepositoryEvent records for the depository audit trail
6. Token factory and Decimal helpers

All functions in this module are pure and operate on read-only views.
No function can mutate ledger or market state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_DOWN, getcontext
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Pricing, decay and tuning require deterministic Decimal arithmetic.
# The global context is configured once at module load time.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
#   - prec=50: enough headroom for cv * debt / supply chains
#   - rounding=ROUND_HALF_EVEN: banker's rounding for intermediate results
#
_DEPOSITORY_DECIMAL_CONTEXT = getcontext()
_DEPOSITORY_DECIMAL_CONTEXT.prec = 50
_DEPOSITORY_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for minting and burning.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# Token type constants (strings, not enum).
TOKEN_TYPE_PAYOUT = "PAYOUT"
TOKEN_TYPE_QUOTE = "QUOTE"
TOKEN_TYPE_STAKED = "STAKED"

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-18")

# Reward rates are expressed in basis points.
BPS_DENOMINATOR = Decimal("10000")

# Max-debt buffer is expressed in thousandths of a percent (1e5 = 100%).
BUFFER_DENOMINATOR = Decimal("100000")

# Default precisions.
DEFAULT_PAYOUT_DECIMALS = 9
DEFAULT_CONTROL_VARIABLE_PLACES = 18

# Capability names checked against the Authority collaborator.
CAPABILITY_CREATE = "create"
CAPABILITY_CLOSE = "close"
CAPABILITY_SET_REWARDS = "set_rewards"
CAPABILITY_WHITELIST = "whitelist"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from token symbol to quantity held in a single wallet.
BalanceMap = Dict[str, Decimal]


# ============================================================================
# DECIMAL HELPERS
# ============================================================================

def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats and strings to Decimal via str() to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_down(value: Decimal, places: int) -> Decimal:
    """Round toward zero to a fixed number of decimal places."""
    return value.quantize(Decimal(10) ** -places, rounding=ROUND_DOWN)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to the token ledger.

    Collaborators and the depository use this protocol to query balances and
    the logical clock without being able to modify anything. The Ledger class
    implements it and also provides mutation methods.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, token_symbol: str) -> Decimal:
        """Return the balance of a token in a wallet."""
        ...

    def circulating_supply(self, token_symbol: str) -> Decimal:
        """Return the amount of a token held outside the system wallet."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_token(self, symbol: str) -> 'Token':
        """Return the Token object for a given symbol."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: Intent was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation (insufficient balance, unknown
              wallet or token).
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"
    CONTRACT = "contract"
    SYSTEM = "system"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class DepositoryError(Exception):
    """Base exception for all bond depository errors."""
    pass


class MarketNotFound(DepositoryError):
    """Raised when a market id has never been allocated."""
    pass


class MarketClosed(DepositoryError):
    """Raised when depositing into a market that has concluded or run out of capacity."""
    pass


class SlippageExceeded(DepositoryError):
    """Raised when the market price is above the caller's max price."""
    pass


class MaxPayoutExceeded(DepositoryError):
    """Raised when a deposit's payout exceeds the per-interval ration."""
    pass


class CapacityExceeded(DepositoryError):
    """Raised when a deposit would take more than the remaining capacity."""
    pass


class InvalidInterval(DepositoryError):
    """Raised when market intervals are non-positive or do not tile the market length."""
    pass


class Unauthorized(DepositoryError):
    """Raised when the caller lacks the capability for a governance call."""
    pass


class NoteNotFound(DepositoryError):
    """Raised when a note index does not exist for an account."""
    pass


class LedgerError(DepositoryError):
    """Base exception for token ledger errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when operating on a token that has not been registered."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when operating on a wallet that has not been registered."""
    pass


class TransferFailed(LedgerError):
    """Raised when the token ledger rejects the transfers backing an operation."""
    pass


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the specific source (depository name + nonce)
        event_type: Specific event within the source (e.g., "DEPOSIT", "REDEEM")
    """
    origin_type: OriginType
    source_id: str
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of a token between two wallets.

    Attributes:
        quantity: The amount to transfer (must be finite and non-zero).
        token_symbol: The token being transferred (e.g., "OHM", "DAI").
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: Decimal
    token_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.token_symbol or not self.token_symbol.strip():
            raise ValueError("Move token_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if abs(self.quantity) < QUANTITY_EPSILON:
            raise ValueError("Move quantity is effectively zero")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.token_symbol}: {self.source}→{self.dest})"


def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string representation.

    Decimal("1.0") and Decimal("1.00") both become "1".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _compute_intent_id(moves: Tuple[Move, ...], origin: TransactionOrigin) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    Based solely on the moves and the origin, never on timestamps, so the
    same intent always hashes the same. Used for idempotency checking.
    """
    sorted_moves = tuple(sorted(
        moves,
        key=lambda m: (_normalize_decimal(m.quantity), m.token_symbol, m.source, m.dest, m.contract_id)
    ))

    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")

    for m in sorted_moves:
        qty = _normalize_decimal(m.quantity)
        content_parts.append(f"move:{qty}|{m.token_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A set of token moves before execution - represents INTENT.

    Built by the depository and its collaborators, then submitted to
    Ledger.execute(), which applies every move or none of them.

    Attributes:
        moves: Tuple of token transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When this pending transaction was created
        intent_id: Content-addressable hash of the transaction intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            object.__setattr__(self, 'intent_id', _compute_intent_id(self.moves, self.origin))

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves."""
        return not self.moves

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: Moves to include in the transaction
        origin: Transaction origin (defaults to CONTRACT origin)

    Example:
        tx = build_transaction(ledger, [
            Move(Decimal("100"), "DAI", "bob", "treasury", "bond_deposit")
        ])
        ledger.execute(tx)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.CONTRACT,
            source_id="contract",
        )

    return PendingTransaction(
        moves=tuple(moves),
        origin=origin,
        timestamp=view.current_time,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of token movements - represents FACT.

    Attributes:
        moves: Tuple of token transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was created
        intent_id: Content hash from PendingTransaction (for idempotency)
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
        sequence_number: Monotonic sequence within the ledger
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        lines = [
            f"Transaction {self.exec_id} ({self.origin})",
            f"  intent_id={self.intent_id} sequence={self.sequence_number}",
        ]
        for i, move in enumerate(self.moves):
            lines.append(f"  [{i}] {move.quantity} {move.token_symbol}: {move.source} → {move.dest}")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class Token:
    """
    Definition of a token held in the ledger.

    Attributes:
        symbol: Short identifier (e.g., "OHM", "DAI").
        name: Human-readable name.
        token_type: PAYOUT, QUOTE or STAKED.
        decimals: Number of decimal places balances are rounded to.
        min_balance: Minimum allowed balance in any non-system wallet.
    """
    symbol: str
    name: str
    token_type: str
    decimals: int = 18
    min_balance: Decimal = Decimal("0")

    def round(self, value: Decimal) -> Decimal:
        """Round a quantity down to this token's precision."""
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return quantize_down(value, self.decimals)


def token(symbol: str, name: str, decimals: int = 18, token_type: str = TOKEN_TYPE_QUOTE) -> Token:
    """
    Create a token definition.

    Args:
        symbol: Token symbol (e.g., "DAI").
        name: Full name (e.g., "Dai Stablecoin").
        decimals: Precision balances are rounded to (default: 18).
        token_type: PAYOUT, QUOTE or STAKED (default: QUOTE).
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    return Token(symbol=symbol, name=name, token_type=token_type, decimals=decimals)


# ============================================================================
# EVENTS
# ============================================================================

EVENT_CREATE_MARKET = "CreateMarket"
EVENT_CLOSE_MARKET = "CloseMarket"
EVENT_BOND = "Bond"
EVENT_TUNED = "Tuned"
EVENT_REDEEM = "Redeem"
EVENT_REWARD = "Reward"


@dataclass(frozen=True, slots=True)
class DepositoryEvent:
    """
    Immutable record of something the depository did.

    The event log is the depository's audit trail, alongside the token
    ledger's transaction log.

    Attributes:
        name: Event type (CreateMarket, CloseMarket, Bond, Tuned, Redeem, Reward)
        timestamp: Ledger time at which the event happened
        market_id: Market concerned, if any
        params: Event-specific values as a frozen tuple of (key, value) pairs
    """
    name: str
    timestamp: datetime
    market_id: Optional[int] = None
    params: tuple = ()

    @property
    def params_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v}" for k, v in self.params)
        market = f" market={self.market_id}" if self.market_id is not None else ""
        return f"{self.name}({self.timestamp.isoformat()}{market}{', ' + body if body else ''})"


def make_event(name: str, timestamp: datetime, market_id: Optional[int] = None, **params: Any) -> DepositoryEvent:
    """Build a DepositoryEvent with params frozen in sorted key order."""
    return DepositoryEvent(
        name=name,
        timestamp=timestamp,
        market_id=market_id,
        params=tuple(sorted((k, copy.copy(v)) for k, v in params.items())),
    )
