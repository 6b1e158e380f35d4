"""
test_notes.py - Unit tests for the vesting ledger

Tests:
- Note dataclass
- NoteKeeper: add, indexes_for, pending_for, redeemable, mark_redeemed
- Note transfers: push_note / pull_note
"""

import pytest
from decimal import Decimal

from depository import Note, NoteKeeper, NoteNotFound, Unauthorized
from tests.scenario import at


def _note(buyer="bob", payout="25", created=0, matures=100) -> Note:
    return Note(buyer=buyer, market_id=0, payout=Decimal(payout), created=at(created), matures_at=at(matures))


class TestNote:

    def test_maturity(self):
        note = _note()
        assert not note.is_matured(at(99))
        assert note.is_matured(at(100))

    def test_payout_converted(self):
        note = Note("bob", 0, 25, at(0), at(100))
        assert note.payout == Decimal("25")

    def test_note_is_frozen(self):
        with pytest.raises(AttributeError):
            _note().redeemed = True


class TestNoteKeeper:

    def test_indexes_are_per_account(self):
        keeper = NoteKeeper()
        assert keeper.add(_note("bob")) == 0
        assert keeper.add(_note("bob")) == 1
        assert keeper.add(_note("alice")) == 0
        assert keeper.indexes_for("bob") == [0, 1]
        assert keeper.indexes_for("carol") == []

    def test_pending_for(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        assert keeper.pending_for("bob", 0, at(50)) == (Decimal("25"), False)
        assert keeper.pending_for("bob", 0, at(100)) == (Decimal("25"), True)

    def test_pending_for_redeemed_note(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        keeper.mark_redeemed("bob", [0])
        assert keeper.pending_for("bob", 0, at(100)) == (Decimal("0"), False)

    def test_unknown_index_raises(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        with pytest.raises(NoteNotFound):
            keeper.get("bob", 1)
        with pytest.raises(NoteNotFound):
            keeper.get("alice", 0)

    def test_redeemable_skips_unmatured_and_redeemed(self):
        keeper = NoteKeeper()
        keeper.add(_note(matures=100))
        keeper.add(_note(matures=500))
        keeper.add(_note(matures=50))
        keeper.mark_redeemed("bob", [2])
        assert keeper.redeemable("bob", at(200)) == [0]
        assert keeper.redeemable("bob", at(200), [1, 2]) == []
        assert keeper.redeemable("bob", at(600), [1, 0, 1]) == [1, 0]

    def test_redeemable_bad_index_raises(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        with pytest.raises(NoteNotFound):
            keeper.redeemable("bob", at(200), [0, 7])

    def test_total_and_mark_redeemed(self):
        keeper = NoteKeeper()
        keeper.add(_note(payout="25"))
        keeper.add(_note(payout="12.5"))
        assert keeper.total_for("bob", [0, 1]) == Decimal("37.5")
        keeper.mark_redeemed("bob", [0, 1])
        assert keeper.indexes_for("bob") == []
        assert all(note.redeemed for note in keeper.notes_for("bob"))

    def test_notes_for_returns_copy(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        keeper.notes_for("bob").clear()
        assert len(keeper.notes_for("bob")) == 1


class TestNoteTransfer:

    def test_push_then_pull(self):
        keeper = NoteKeeper()
        keeper.add(_note("bob", payout="25"))
        keeper.push_note("bob", "alice", 0)
        new_index = keeper.pull_note("alice", "bob", 0)

        assert new_index == 0
        assert keeper.indexes_for("bob") == []
        moved = keeper.get("alice", 0)
        assert moved.buyer == "alice"
        assert moved.payout == Decimal("25")
        assert moved.matures_at == at(100)

    def test_pull_without_push_raises(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        with pytest.raises(Unauthorized):
            keeper.pull_note("alice", "bob", 0)

    def test_pull_by_wrong_recipient_raises(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        keeper.push_note("bob", "alice", 0)
        with pytest.raises(Unauthorized):
            keeper.pull_note("carol", "bob", 0)

    def test_pull_twice_raises(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        keeper.push_note("bob", "alice", 0)
        keeper.pull_note("alice", "bob", 0)
        with pytest.raises(NoteNotFound):
            keeper.pull_note("alice", "bob", 0)

    def test_push_redeemed_note_raises(self):
        keeper = NoteKeeper()
        keeper.add(_note())
        keeper.mark_redeemed("bob", [0])
        with pytest.raises(NoteNotFound):
            keeper.push_note("bob", "alice", 0)

    def test_push_unknown_note_raises(self):
        with pytest.raises(NoteNotFound):
            NoteKeeper().push_note("bob", "alice", 0)
