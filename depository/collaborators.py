"""
collaborators.py - Treasury and staking collaborators

The depository takes in quote tokens and hands out payout tokens, but it
neither holds reserves nor stakes anything itself. It asks a Treasury for the
base supply and for the moves that take deposits and mint payouts, and a
Staking converter for the moves that turn payout tokens into staked tokens.

Classes:
- Treasury: Protocol for the treasury collaborator
- LedgerTreasury: Treasury backed by a token Ledger
- Staking: Protocol for the staking converter
- IndexedStaking: Fixed-index staking backed by a token Ledger

All methods that move tokens return lists of Move; nothing here executes a
transaction.
"""

from decimal import Decimal
from typing import List, Protocol, runtime_checkable

from .core import LedgerView, Move, SYSTEM_WALLET, to_decimal


@runtime_checkable
class Treasury(Protocol):
    """
    Protocol for treasuries.

    base_supply() is the payout-token supply that debt ratios are measured
    against.
    """
    payout_token: str

    def base_supply(self) -> Decimal:
        """Current supply of the payout token."""
        ...

    def deposit_moves(self, source: str, token_symbol: str, amount: Decimal, contract_id: str) -> List[Move]:
        """Moves that send `amount` of a quote token from source to the treasury."""
        ...

    def mint_moves(self, to: str, amount: Decimal, contract_id: str) -> List[Move]:
        """Moves that mint `amount` of payout token to `to`."""
        ...


class LedgerTreasury:
    """
    Treasury whose reserves live in a wallet of a token Ledger.

    Payout tokens are minted out of SYSTEM_WALLET, so the base supply is the
    payout token's circulating supply.
    """

    def __init__(self, view: LedgerView, payout_token: str, wallet: str = "treasury"):
        """
        Args:
            view: Ledger the treasury reads supply from
            payout_token: Symbol of the token the treasury mints
            wallet: Wallet receiving quote-token deposits
        """
        self.view = view
        self.payout_token = payout_token
        self.wallet = wallet

    def base_supply(self) -> Decimal:
        return self.view.circulating_supply(self.payout_token)

    def deposit_moves(self, source: str, token_symbol: str, amount: Decimal, contract_id: str) -> List[Move]:
        amount = to_decimal(amount)
        if amount <= 0:
            return []
        return [Move(amount, token_symbol, source, self.wallet, contract_id)]

    def mint_moves(self, to: str, amount: Decimal, contract_id: str) -> List[Move]:
        amount = to_decimal(amount)
        if amount <= 0:
            return []
        return [Move(amount, self.payout_token, SYSTEM_WALLET, to, contract_id)]

    def __repr__(self):
        return f"LedgerTreasury({self.payout_token}, wallet={self.wallet})"


@runtime_checkable
class Staking(Protocol):
    """Protocol for converting payout tokens into staked tokens."""

    def balance_to(self, amount: Decimal) -> Decimal:
        """Staked tokens worth `amount` payout tokens."""
        ...

    def balance_from(self, amount: Decimal) -> Decimal:
        """Payout tokens worth `amount` staked tokens."""
        ...

    def stake_moves(self, source: str, to: str, amount: Decimal, contract_id: str) -> List[Move]:
        """Moves that stake `amount` payout tokens held by source on behalf of `to`."""
        ...


class IndexedStaking:
    """
    Staking at a fixed index: one staked token is worth `index` payout tokens.

    Staked payout tokens are parked in the staking wallet and the staked token
    is minted to the recipient.
    """

    def __init__(self, payout_token: str, staked_token: str, index: Decimal, wallet: str = "staking"):
        index = to_decimal(index)
        if index <= 0:
            raise ValueError(f"staking index must be positive, got {index}")
        self.payout_token = payout_token
        self.staked_token = staked_token
        self.index = index
        self.wallet = wallet

    def balance_to(self, amount: Decimal) -> Decimal:
        return to_decimal(amount) / self.index

    def balance_from(self, amount: Decimal) -> Decimal:
        return to_decimal(amount) * self.index

    def stake_moves(self, source: str, to: str, amount: Decimal, contract_id: str) -> List[Move]:
        amount = to_decimal(amount)
        if amount <= 0:
            return []
        return [
            Move(amount, self.payout_token, source, self.wallet, contract_id),
            Move(self.balance_to(amount), self.staked_token, SYSTEM_WALLET, to, contract_id),
        ]

    def __repr__(self):
        return f"IndexedStaking({self.payout_token}->{self.staked_token}, index={self.index})"
