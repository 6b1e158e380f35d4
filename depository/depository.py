"""
depository.py - BondDepository facade

BondDepository is the only stateful object of the engine. It owns the market
arena, the notes and the reward balances, and it is the only place any of
them change.

Every mutating call follows the same shape:
    1. read the stored records and project them to the ledger's current time
    2. compute the complete new state with pure functions
    3. execute the token moves backing it as one ledger transaction
    4. commit the new state only if that transaction was APPLIED

A call that raises leaves every record exactly as it was.

Thread Safety:
    Every public method holds one re-entrant lock for its whole duration.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple, Iterable
import threading

from .authority import Authority
from .collaborators import Treasury, Staking
from .config import DepositoryConfig
from .core import (
    Move, ExecuteResult, OriginType, TransactionOrigin,
    DepositoryEvent, make_event, build_transaction,
    Unauthorized, TransferFailed,
    CAPABILITY_CREATE, CAPABILITY_CLOSE, CAPABILITY_SET_REWARDS, CAPABILITY_WHITELIST,
    EVENT_CREATE_MARKET, EVENT_CLOSE_MARKET, EVENT_BOND, EVENT_TUNED,
    EVENT_REDEEM, EVENT_REWARD,
    to_decimal,
)
from .deposit import compute_deposit
from .ledger import Ledger
from .market import (
    Market, Terms, Metadata, Adjustment, MarketRecord, MarketRegistry,
    Vesting, compute_market_creation, market_is_live, close_record,
)
from .notes import Note, NoteKeeper
from .pricing import debt_ratio, market_price, payout_for, pending_debt_decay
from .rewards import FrontEndRewarder
from .tuning import apply_control_decay, project_record


class BondDepository:
    """
    Continuous bond markets selling a treasury's payout token for quote tokens.

    Example:
        depository = BondDepository(ledger, authority, treasury, staking)
        market_id = depository.create(
            "policy", "DAI", Decimal("10000"), Decimal("400"), Decimal("200000"),
            capacity_in_quote=False, fixed_term=True, vesting=100,
            conclusion=ledger.current_time + timedelta(days=1),
            deposit_interval=14400, tune_interval=3600,
        )
        payout, matures_at, index = depository.deposit(
            "bob", market_id, Decimal("10000"), Decimal("500"), "bob", "carol"
        )
    """

    def __init__(
        self,
        ledger: Ledger,
        authority: Authority,
        treasury: Treasury,
        staking: Staking,
        wallet: str = "depository",
        config: Optional[DepositoryConfig] = None,
    ):
        """
        Args:
            ledger: Token ledger; its clock is the depository's clock
            authority: Answers capability checks and names the DAO account
            treasury: Supplies base supply, deposit and mint moves
            staking: Converts redemptions to staked tokens
            wallet: Ledger wallet that holds payout tokens until redeemed
            config: Precision and decay settings (default: DepositoryConfig())
        """
        self.ledger = ledger
        self.authority = authority
        self.treasury = treasury
        self.staking = staking
        self.wallet = wallet
        self.config = config or DepositoryConfig()
        self.payout_token = treasury.payout_token

        self.registry = MarketRegistry()
        self.notes = NoteKeeper()
        self.rewards = FrontEndRewarder()
        self.event_log: List[DepositoryEvent] = []

        self._lock = threading.RLock()
        self._nonce = 0

    @property
    def verbose(self) -> bool:
        if self.config.verbose is not None:
            return self.config.verbose
        return bool(getattr(self.ledger, 'verbose', False))

    def _now(self) -> datetime:
        return self.ledger.current_time

    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================

    def _require(self, caller: str, capability: str) -> None:
        if not self.authority.is_authorized(caller, capability):
            raise Unauthorized(f"{caller} is not allowed to {capability}")

    def _emit(self, name: str, market_id: Optional[int] = None, **params) -> DepositoryEvent:
        event = make_event(name, self._now(), market_id, **params)
        self.event_log.append(event)
        if self.verbose:
            print(f"🏦 {event!r}")
        return event

    def _execute(self, moves: List[Move], event_type: str) -> None:
        """
        Execute moves as one ledger transaction.

        Raises:
            TransferFailed: Unless the ledger reports APPLIED
        """
        if not moves:
            return
        self._nonce += 1
        origin = TransactionOrigin(
            origin_type=OriginType.CONTRACT,
            source_id=f"{self.wallet}:{self._nonce}",
            event_type=event_type,
        )
        result = self.ledger.execute(build_transaction(self.ledger, moves, origin))
        if result != ExecuteResult.APPLIED:
            raise TransferFailed(f"{event_type} transfer {result.value}: {moves}")

    def _projected(self, market_id: int) -> MarketRecord:
        record = self.registry.get(market_id)
        return project_record(
            record, self._now(), self.treasury.base_supply(),
            self.config.decay_horizon, self.config.payout_decimals,
        )

    # ========================================================================
    # READ SURFACE
    # ========================================================================

    def market_count(self) -> int:
        with self._lock:
            return len(self.registry)

    def snapshot(self, market_id: int) -> Tuple[MarketRecord, Decimal]:
        """All four records as of now, with the base supply they were priced against."""
        with self._lock:
            return self._projected(market_id), self.treasury.base_supply()

    def markets(self, market_id: int) -> Market:
        """Market record as of now."""
        with self._lock:
            return self._projected(market_id).market

    def terms(self, market_id: int) -> Terms:
        """Terms as of now, pending control decay applied."""
        with self._lock:
            return self._projected(market_id).terms

    def metadata(self, market_id: int) -> Metadata:
        with self._lock:
            return self._projected(market_id).metadata

    def adjustments(self, market_id: int) -> Adjustment:
        with self._lock:
            return self._projected(market_id).adjustment

    def live_markets(self) -> List[int]:
        with self._lock:
            return self.registry.live_markets(self._now())

    def live_markets_for(self, quote_token: str) -> List[int]:
        with self._lock:
            return self.registry.live_markets_for(quote_token, self._now())

    def is_live(self, market_id: int) -> bool:
        with self._lock:
            return market_is_live(self.registry.get(market_id), self._now())

    def market_price(self, market_id: int) -> Decimal:
        """Quote tokens per payout token if a deposit were made now."""
        with self._lock:
            record = self._projected(market_id)
            return market_price(
                record.terms.control_variable, record.market.total_debt, self.treasury.base_supply()
            )

    def payout_for(self, amount: Decimal, market_id: int) -> Decimal:
        """
        Payout tokens `amount` quote tokens would buy now.

        Raises:
            ValueError: If the market price is zero
        """
        with self._lock:
            return payout_for(amount, self.market_price(market_id), self.config.payout_decimals)

    def current_debt(self, market_id: int) -> Decimal:
        with self._lock:
            return self._projected(market_id).market.total_debt

    def debt_decay(self, market_id: int) -> Decimal:
        """Debt retired since the market was last touched."""
        with self._lock:
            return pending_debt_decay(
                self.registry.get(market_id), self._now(),
                self.config.decay_horizon, self.config.payout_decimals,
            )

    def current_control_variable(self, market_id: int) -> Decimal:
        with self._lock:
            return apply_control_decay(self.registry.get(market_id), self._now()).terms.control_variable

    def debt_ratio(self, market_id: int) -> Decimal:
        with self._lock:
            return debt_ratio(self.current_debt(market_id), self.treasury.base_supply())

    def notes_for(self, account: str) -> List[Note]:
        with self._lock:
            return self.notes.notes_for(account)

    def indexes_for(self, account: str) -> List[int]:
        with self._lock:
            return self.notes.indexes_for(account)

    def pending_for(self, account: str, index: int) -> Tuple[Decimal, bool]:
        """(payout, matured) for one note."""
        with self._lock:
            return self.notes.pending_for(account, index, self._now())

    def rewards_of(self, account: str) -> Decimal:
        with self._lock:
            return self.rewards.rewards_of(account)

    # ========================================================================
    # MARKET LIFECYCLE
    # ========================================================================

    def create(
        self,
        caller: str,
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
    ) -> int:
        """
        Open a new market.

        Returns:
            The new market id

        Raises:
            Unauthorized: If caller lacks the create capability
            UnitNotRegistered: If the quote token is unknown to the ledger
            InvalidInterval: If the intervals do not tile the market length
            ValueError: On any other bad parameter
        """
        with self._lock:
            self._require(caller, CAPABILITY_CREATE)
            self.ledger.get_token(quote_token)
            now = self._now()
            record = compute_market_creation(
                market_id=self.registry.next_id,
                quote_token=quote_token,
                capacity=capacity,
                initial_price=initial_price,
                buffer=buffer,
                capacity_in_quote=capacity_in_quote,
                fixed_term=fixed_term,
                vesting=vesting,
                conclusion=conclusion,
                deposit_interval=deposit_interval,
                tune_interval=tune_interval,
                now=now,
                base_supply=self.treasury.base_supply(),
                payout_decimals=self.config.payout_decimals,
                control_variable_places=self.config.control_variable_places,
                interval_tolerance=self.config.interval_tolerance,
            )
            market_id = self.registry.append(record)
            self._emit(
                EVENT_CREATE_MARKET, market_id,
                base_token=self.payout_token,
                quote_token=quote_token,
                initial_price=to_decimal(initial_price),
            )
            return market_id

    def close(self, caller: str, market_id: int) -> None:
        """
        Stop a market by zeroing its capacity. Closing a closed market is a no-op.

        Raises:
            Unauthorized: If caller lacks the close capability
            MarketNotFound: If the id is unknown
        """
        with self._lock:
            self._require(caller, CAPABILITY_CLOSE)
            record = self.registry.get(market_id)
            if record.market.capacity <= 0:
                return
            self.registry.commit(close_record(record))
            self._emit(EVENT_CLOSE_MARKET, market_id)

    # ========================================================================
    # DEPOSITS
    # ========================================================================

    def deposit(
        self,
        caller: str,
        market_id: int,
        amount: Decimal,
        max_price: Decimal,
        receiver: Optional[str] = None,
        referrer: Optional[str] = None,
    ) -> Tuple[Decimal, datetime, int]:
        """
        Buy a bond: pay `amount` quote tokens, receive a note for the payout.

        Args:
            caller: Account paying the quote token
            market_id: Market to buy from
            amount: Quote tokens paid
            max_price: Highest acceptable price
            receiver: Owner of the note (default: caller)
            referrer: Front end credited with the referral reward

        Returns:
            (payout, matures_at, note_index)

        Raises:
            MarketClosed, SlippageExceeded, MaxPayoutExceeded, CapacityExceeded,
            TransferFailed, MarketNotFound, ValueError
        """
        with self._lock:
            receiver = receiver or caller
            now = self._now()
            record = self.registry.get(market_id)
            quote = compute_deposit(
                record, now, amount, max_price, self.treasury.base_supply(), self.config
            )

            payout = quote.payout
            rewards = self.rewards.compute_rewards(
                payout, referrer, self.authority.guardian, self.config.payout_decimals
            )
            contract_id = f"bond_market_{market_id}"
            moves = self.treasury.deposit_moves(
                caller, record.market.quote_token, quote.amount, contract_id
            )
            moves += self.treasury.mint_moves(
                self.wallet, payout + sum(rewards.values(), Decimal("0")), contract_id
            )
            self._execute(moves, "DEPOSIT")

            self.registry.commit(quote.record)
            self.rewards.accrue(rewards)
            index = self.notes.add(Note(
                buyer=receiver,
                market_id=market_id,
                payout=payout,
                created=now,
                matures_at=quote.matures_at,
            ))

            self._emit(EVENT_BOND, market_id, amount=quote.amount, price=quote.price)
            if quote.closed_by_debt:
                self._emit(EVENT_CLOSE_MARKET, market_id)
            elif quote.tune is not None:
                self._emit(
                    EVENT_TUNED, market_id,
                    old_control_variable=quote.tune.old_control_variable,
                    new_control_variable=quote.tune.new_control_variable,
                    active=quote.tune.active,
                    tune_below_capacity=quote.tune.record.metadata.tune_below_capacity,
                )
            return payout, quote.matures_at, index

    # ========================================================================
    # REDEMPTION
    # ========================================================================

    def _redeem(self, account: str, indexes: Optional[Iterable[int]], as_staked: bool) -> Decimal:
        now = self._now()
        ready = self.notes.redeemable(account, now, indexes)
        if not ready:
            return Decimal("0")
        total = self.notes.total_for(account, ready)

        contract_id = "bond_redemption"
        if as_staked:
            moves = self.staking.stake_moves(self.wallet, account, total, contract_id)
        elif total > 0:
            moves = [Move(total, self.payout_token, self.wallet, account, contract_id)]
        else:
            moves = []
        self._execute(moves, "REDEEM")

        self.notes.mark_redeemed(account, ready)
        self._emit(EVENT_REDEEM, account=account, indexes=tuple(ready), payout=total, staked=as_staked)
        return total

    def redeem(self, account: str, indexes: Iterable[int], as_staked: bool = False) -> Decimal:
        """
        Redeem the given notes; unmatured or already redeemed ones are skipped.

        Returns:
            Payout tokens redeemed (before any staking conversion)

        Raises:
            NoteNotFound: If an index does not exist
            TransferFailed: If the ledger rejects the payout; notes stay unredeemed
        """
        with self._lock:
            return self._redeem(account, list(indexes), as_staked)

    def redeem_all(self, account: str, as_staked: bool = False) -> Decimal:
        """Redeem every matured, unredeemed note of an account."""
        with self._lock:
            return self._redeem(account, None, as_staked)

    def push_note(self, caller: str, to: str, index: int) -> None:
        """Offer one of the caller's notes to `to`."""
        with self._lock:
            self.notes.push_note(caller, to, index)

    def pull_note(self, caller: str, from_account: str, index: int) -> int:
        """Take a note pushed to the caller; returns its new index."""
        with self._lock:
            return self.notes.pull_note(caller, from_account, index)

    # ========================================================================
    # REWARDS AND GOVERNANCE
    # ========================================================================

    def get_reward(self, caller: str) -> Decimal:
        """
        Claim all accrued rewards. A second claim returns zero.

        Raises:
            TransferFailed: If the ledger rejects the transfer; the balance is kept
        """
        with self._lock:
            amount = self.rewards.rewards_of(caller)
            if amount <= 0:
                return Decimal("0")
            self._execute(
                [Move(amount, self.payout_token, self.wallet, caller, "bond_rewards")], "REWARD"
            )
            self.rewards.clear(caller)
            self._emit(EVENT_REWARD, account=caller, amount=amount)
            return amount

    def set_rewards(self, caller: str, ref_bps: Decimal, dao_bps: Decimal) -> None:
        with self._lock:
            self._require(caller, CAPABILITY_SET_REWARDS)
            self.rewards.set_rewards(ref_bps, dao_bps)

    def whitelist(self, caller: str, account: str) -> None:
        with self._lock:
            self._require(caller, CAPABILITY_WHITELIST)
            self.rewards.whitelist(account)
