"""
ledger.py - Token ledger backing the bond depository

The Ledger class holds wallet balances for the payout, quote and staked tokens
the depository moves around. It is the only place token balances change.

Key responsibilities:
    - Implements LedgerView protocol for read-only access by collaborators
    - Executes transactions atomically (all moves succeed or all fail)
    - Maintains wallet balances and token definitions
    - Owns the logical clock every decay and tuning computation reads
    - Always validates and always logs
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Set, Optional, Tuple
from decimal import Decimal

from .core import (
    Move, Transaction, Token,
    PendingTransaction,
    ExecuteResult,
    BalanceMap,
    SYSTEM_WALLET,
    LedgerError, UnitNotRegistered, WalletNotRegistered,
    to_decimal,
)


class Ledger:
    """
    Wallet balances for the bond tokens, changed only by executed transactions.

    The treasury mints payout tokens out of SYSTEM_WALLET, bonders pay quote
    tokens into the treasury and staked notes are parked in the depository
    wallet until redeemed. Treasury and staking collaborators receive the
    ledger as a LedgerView and only read balances and the clock from it.

    Every pending transaction is checked against token and wallet
    registration and against each token's minimum balance before any move
    lands. Applied transactions are kept in transaction_log in sequence order.

    BondDepository holds a lock around every call it makes here; the ledger
    itself does no locking.

    Example:
        ledger = Ledger("bonds")
        ledger.register_token(token("DAI", "Dai Stablecoin"))
        ledger.register_wallet("bob")
        ledger.register_wallet("treasury")

        tx = build_transaction(ledger, [
            Move(Decimal("100"), "DAI", "bob", "treasury", "bond_deposit")
        ])
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Enable debug output (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.tokens: Dict[str, Token] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, token_symbol: str) -> Decimal:
        """
        Get the balance of a token in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If token is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if token_symbol not in self.tokens:
            raise UnitNotRegistered(f"Token {token_symbol} not registered")
        return self.balances[wallet_id].get(token_symbol, Decimal("0"))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_tokens(self) -> List[str]:
        return sorted(self.tokens.keys())

    def get_token(self, symbol: str) -> Token:
        """Return the Token object for a given symbol."""
        if symbol not in self.tokens:
            raise UnitNotRegistered(f"Token {symbol} not registered")
        return self.tokens[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, token_symbol: str) -> Decimal:
        """
        Sum of a token's balances across all wallets, system wallet included.

        Always zero for a closed double-entry system: whatever was minted out
        of SYSTEM_WALLET sits somewhere else.
        """
        if token_symbol not in self.tokens:
            raise UnitNotRegistered(f"Token {token_symbol} not registered")
        return sum(
            (self.balances[w].get(token_symbol, Decimal("0")) for w in sorted(self.registered_wallets)),
            Decimal("0"),
        )

    def circulating_supply(self, token_symbol: str) -> Decimal:
        """
        Amount of a token held outside the system wallet.

        Wallets are sorted before summation to keep accumulation order
        deterministic.
        """
        if token_symbol not in self.tokens:
            raise UnitNotRegistered(f"Token {token_symbol} not registered")
        return sum(
            (
                self.balances[w].get(token_symbol, Decimal("0"))
                for w in sorted(self.registered_wallets)
                if w != SYSTEM_WALLET
            ),
            Decimal("0"),
        )

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))
        return wallet_id

    def register_token(self, token: Token) -> None:
        """
        Register a new token in the ledger.

        Raises:
            ValueError: If token symbol is already registered
        """
        if token.symbol in self.tokens:
            raise ValueError(f"Token {token.symbol} already registered")
        self.tokens[token.symbol] = token
        if self.verbose:
            print(f"📝 Registered: {token.symbol} ({token.name}) [{token.token_type}, {token.decimals} dp]")

    def set_balance(self, wallet_id: str, token_symbol: str, quantity: Decimal) -> None:
        """
        Set a wallet's balance for a token directly.

        WARNING: This bypasses double-entry accounting and is only available
        in test mode. Use build_transaction() and execute() otherwise.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if token_symbol not in self.tokens:
            raise UnitNotRegistered(f"Token {token_symbol} not registered")
        quantity = to_decimal(quantity)
        self.balances[wallet_id][token_symbol] = quantity

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}
        """
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves succeed together or all fail together. Execution is
        idempotent: a pending transaction with the same intent_id is not
        applied twice.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if transaction was already executed
            ExecuteResult.REJECTED if validation failed
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"⚠️  ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        valid, reason = self._validate_pending(pending)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            moves=pending.moves,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )

        self._execute_moves(tx.moves)

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            print(f"{tx!r}\n  ✓ APPLIED")
        return ExecuteResult.APPLIED

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate pending transaction against all constraints.

        Checks performed:
        1. Timestamp validation (transaction must not be from the future)
        2. Token and wallet registration
        3. Minimum balance after netting all moves

        Returns:
            Tuple of (success, reason); reason is empty on success
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        for move in pending.moves:
            if move.token_symbol not in self.tokens:
                return False, f"token not registered: {move.token_symbol}"
            if not self.is_registered(move.source):
                return False, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return False, f"wallet not registered: {move.dest}"

        net: Dict[Tuple[str, str], Decimal] = {}
        for move in pending.moves:
            tok = self.tokens[move.token_symbol]
            key_src = (move.source, move.token_symbol)
            key_dst = (move.dest, move.token_symbol)
            net[key_src] = tok.round(net.get(key_src, Decimal("0")) - move.quantity)
            net[key_dst] = tok.round(net.get(key_dst, Decimal("0")) + move.quantity)

        # SYSTEM_WALLET is exempt: it is the mint
        for (wallet, symbol), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            tok = self.tokens[symbol]
            proposed = tok.round(self.balances[wallet][symbol] + delta)
            if proposed < tok.min_balance:
                return False, f"{wallet} {symbol}: {proposed} < min {tok.min_balance}"

        return True, ""

    def _execute_moves(self, moves) -> None:
        """Apply moves to wallet balances, rounding to each token's precision."""
        for move in moves:
            tok = self.tokens[move.token_symbol]
            new_src_balance = tok.round(
                self.balances[move.source][move.token_symbol] - move.quantity
            )
            self.balances[move.source][move.token_symbol] = new_src_balance
            new_dst_balance = tok.round(
                self.balances[move.dest][move.token_symbol] + move.quantity
            )
            self.balances[move.dest][move.token_symbol] = new_dst_balance
