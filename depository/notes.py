"""
notes.py - Vesting Ledger

Every deposit leaves a Note: a claim on `payout` payout tokens that becomes
redeemable at `matures_at`. Notes are kept per account in purchase order and
addressed by their position in that list. A note is never changed after it
is written except for its redeemed flag.

Notes can change hands in two steps: the owner pushes a note to a recipient,
and the recipient pulls it. Pulling retires the sender's note and appends a
copy owned by the recipient.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Iterable, Tuple

from .core import NoteNotFound, Unauthorized, to_decimal


@dataclass(frozen=True, slots=True)
class Note:
    """A vesting claim on payout tokens."""
    buyer: str
    market_id: int
    payout: Decimal
    created: datetime
    matures_at: datetime
    redeemed: bool = False

    def __post_init__(self):
        if not isinstance(self.payout, Decimal):
            object.__setattr__(self, 'payout', to_decimal(self.payout))

    def is_matured(self, now: datetime) -> bool:
        return now >= self.matures_at


class NoteKeeper:
    """Per-account note lists plus pending note transfers."""

    def __init__(self):
        self._notes: Dict[str, List[Note]] = {}
        # (owner, index) -> approved recipient
        self._transfers: Dict[Tuple[str, int], str] = {}

    def add(self, note: Note) -> int:
        """Append a note for its buyer and return its index."""
        notes = self._notes.setdefault(note.buyer, [])
        notes.append(note)
        return len(notes) - 1

    def get(self, account: str, index: int) -> Note:
        """
        Raises:
            NoteNotFound: If the account has no note at that index
        """
        notes = self._notes.get(account, [])
        if isinstance(index, bool) or not isinstance(index, int) or index < 0 or index >= len(notes):
            raise NoteNotFound(f"{account} has no note at index {index}")
        return notes[index]

    def notes_for(self, account: str) -> List[Note]:
        return list(self._notes.get(account, []))

    def indexes_for(self, account: str) -> List[int]:
        """Indexes of the account's unredeemed notes, matured or not."""
        return [i for i, note in enumerate(self._notes.get(account, [])) if not note.redeemed]

    def pending_for(self, account: str, index: int, now: datetime) -> Tuple[Decimal, bool]:
        """Payout of one note and whether it can be redeemed at `now`."""
        note = self.get(account, index)
        if note.redeemed:
            return Decimal("0"), False
        return note.payout, note.is_matured(now)

    def redeemable(self, account: str, now: datetime, indexes: Optional[Iterable[int]] = None) -> List[int]:
        """
        Indexes among `indexes` (default: all) that are matured and unredeemed.

        Raises:
            NoteNotFound: If any requested index does not exist
        """
        if indexes is None:
            indexes = range(len(self._notes.get(account, [])))
        result = []
        for index in indexes:
            note = self.get(account, index)
            if not note.redeemed and note.is_matured(now) and index not in result:
                result.append(index)
        return result

    def total_for(self, account: str, indexes: Iterable[int]) -> Decimal:
        return sum((self.get(account, i).payout for i in indexes), Decimal("0"))

    def mark_redeemed(self, account: str, indexes: Iterable[int]) -> None:
        notes = self._notes.get(account, [])
        for index in indexes:
            notes[index] = replace(self.get(account, index), redeemed=True)
            self._transfers.pop((account, index), None)

    def push_note(self, owner: str, to: str, index: int) -> None:
        """
        Approve `to` to pull the owner's note at `index`.

        Raises:
            NoteNotFound: If the note does not exist or was already redeemed
        """
        note = self.get(owner, index)
        if note.redeemed:
            raise NoteNotFound(f"{owner} note {index} is already redeemed")
        if not to or not to.strip():
            raise ValueError("note recipient cannot be empty")
        self._transfers[(owner, index)] = to

    def pull_note(self, caller: str, from_account: str, index: int) -> int:
        """
        Take over a note the owner pushed to `caller`.

        Returns:
            Index of the new note in the caller's list

        Raises:
            NoteNotFound: If the note does not exist or was already redeemed
            Unauthorized: If the note was not pushed to caller
        """
        note = self.get(from_account, index)
        if note.redeemed:
            raise NoteNotFound(f"{from_account} note {index} is already redeemed")
        if self._transfers.get((from_account, index)) != caller:
            raise Unauthorized(f"{from_account} note {index} was not pushed to {caller}")

        self.mark_redeemed(from_account, [index])
        return self.add(replace(note, buyer=caller))
