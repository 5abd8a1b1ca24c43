"""Tests for query evaluation: filtering and ordering."""
import pytest

from notekeep.models.schema import Note, NotePatch, Priority
from notekeep.storage.queries import NoteQuery, QueryKind


class TestNoteQuery:
    def test_queries_are_hashable_values(self):
        assert NoteQuery.search("a") == NoteQuery.search("a")
        assert len({NoteQuery.all(), NoteQuery.all(), NoteQuery.by_priority()}) == 2

    def test_invalid_fields_rejected(self):
        with pytest.raises(ValueError):
            NoteQuery.search("a", fields=("tags",))
        with pytest.raises(ValueError):
            NoteQuery.search("a", fields=())

    def test_matches(self):
        note = Note(title="Groceries", content="Milk and EGGS")
        assert NoteQuery.search("gro").matches(note)
        assert NoteQuery.search("eggs").matches(note)
        assert not NoteQuery.search("eggs", fields=("title",)).matches(note)
        assert NoteQuery.search("").matches(note)
        assert NoteQuery.by_priority().matches(note)

    def test_describe(self):
        assert NoteQuery.all().describe() == "all notes"
        assert NoteQuery.search("x").describe() == "search 'x'"
        assert NoteQuery.by_priority(descending=False).describe() == "priority low first"
        assert NoteQuery.search("x").kind is QueryKind.SEARCH


class TestAllQuery:
    def test_stable_insertion_order(self, note_store):
        ids = [note_store.insert(Note(title=t)) for t in ("c", "a", "b")]
        first = note_store.fetch(NoteQuery.all())
        second = note_store.fetch(NoteQuery.all())
        assert [n.id for n in first] == ids
        assert first == second


class TestSearch:
    def test_case_insensitive_title_filter(self, note_store):
        note_store.insert(Note(title="Groceries"))
        note_store.insert(Note(title="Gym"))
        result = note_store.fetch(NoteQuery.search("gro"))
        assert [n.title for n in result] == ["Groceries"]

    def test_content_is_searched(self, note_store):
        note_store.insert(Note(title="List", content="buy Bread"))
        note_store.insert(Note(title="Other", content="nothing"))
        assert [n.title for n in note_store.fetch(NoteQuery.search("BREAD"))] == ["List"]
        assert note_store.fetch(NoteQuery.search("bread", fields=("title",))) == ()

    def test_empty_text_matches_everything(self, note_store):
        for t in ("a", "b", ""):
            note_store.insert(Note(title=t))
        assert len(note_store.fetch(NoteQuery.search(""))) == 3

    def test_wildcards_are_literal(self, note_store):
        note_store.insert(Note(title="100% done"))
        note_store.insert(Note(title="1000 things"))
        note_store.insert(Note(title="file_name"))
        note_store.insert(Note(title="fileXname"))
        assert [n.title for n in note_store.fetch(NoteQuery.search("100%"))] == ["100% done"]
        assert [n.title for n in note_store.fetch(NoteQuery.search("e_n"))] == ["file_name"]

    def test_non_ascii_case_folding(self, note_store):
        note_store.insert(Note(title="ÉTÉ plans"))
        note_store.insert(Note(title="Straße"))
        assert [n.title for n in note_store.fetch(NoteQuery.search("été"))] == ["ÉTÉ plans"]
        assert [n.title for n in note_store.fetch(NoteQuery.search("STRASSE"))] == ["Straße"]


class TestPrioritySort:
    def test_descending_puts_high_first_with_recent_ties_first(self, note_store, make_note):
        low = note_store.insert(make_note("low", priority=Priority.LOW, minutes=30))
        older_high = note_store.insert(make_note("older high", priority=Priority.HIGH, minutes=1))
        newer_high = note_store.insert(make_note("newer high", priority=Priority.HIGH, minutes=2))

        result = note_store.fetch(NoteQuery.by_priority(descending=True))
        assert [n.id for n in result] == [newer_high, older_high, low]

    def test_ascending_puts_low_first(self, note_store, make_note):
        note_store.insert(make_note("h", priority=Priority.HIGH, minutes=1))
        note_store.insert(make_note("m", priority=Priority.MEDIUM, minutes=2))
        note_store.insert(make_note("l1", priority=Priority.LOW, minutes=3))
        note_store.insert(make_note("l2", priority=Priority.LOW, minutes=4))

        result = note_store.fetch(NoteQuery.by_priority(descending=False))
        assert [n.title for n in result] == ["l2", "l1", "m", "h"]

    def test_update_moves_note_to_front_of_its_tier(self, note_store, make_note):
        first = note_store.insert(make_note("first", priority=Priority.HIGH, minutes=1))
        note_store.insert(make_note("second", priority=Priority.HIGH, minutes=2))
        note_store.update(first, NotePatch(content="touched"))

        result = note_store.fetch(NoteQuery.by_priority())
        assert [n.title for n in result] == ["first", "second"]

    def test_identical_timestamps_still_ordered(self, note_store, make_note):
        ids = [
            note_store.insert(make_note(str(i), priority=Priority.HIGH, minutes=0))
            for i in range(3)
        ]
        result = note_store.fetch(NoteQuery.by_priority())
        assert [n.id for n in result] == list(reversed(ids))
