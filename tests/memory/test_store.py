"""Tests for FactStore."""

import pytest

from chatforge.memory import FactStore
from chatforge.store import Database


@pytest.fixture
def store(db: Database) -> FactStore:
    return FactStore(db)


class TestFactStore:
    """Tests for saving and reading facts."""

    def test_insert_returns_with_id(self, store: FactStore):
        """insert_fact returns the fact with an assigned id."""
        fact = store.insert_fact("u1", "c1", "Has a dog named Buster", "pet")

        assert fact.id is not None
        assert fact.fact == "Has a dog named Buster"
        assert fact.category == "pet"
        assert fact.created_at is not None

    def test_facts_scoped_to_pair(self, store: FactStore):
        """Characters do not share what they know."""
        store.insert_fact("u1", "c1", "Likes tea")
        store.insert_fact("u1", "c2", "Likes coffee")
        store.insert_fact("u2", "c1", "Likes juice")

        assert [f.fact for f in store.get_facts("u1", "c1")] == ["Likes tea"]

    def test_facts_in_insertion_order(self, store: FactStore):
        store.insert_fact("u1", "c1", "First fact")
        store.insert_fact("u1", "c1", "Second fact")

        assert [f.fact for f in store.get_facts("u1", "c1")] == ["First fact", "Second fact"]

    def test_delete_fact(self, store: FactStore):
        fact = store.insert_fact("u1", "c1", "Likes tea")

        assert store.delete_fact(fact.id, "u1") is True
        assert store.get_facts("u1", "c1") == []

    def test_delete_other_users_fact(self, store: FactStore):
        fact = store.insert_fact("u1", "c1", "Likes tea")

        assert store.delete_fact(fact.id, "u2") is False
        assert len(store.get_facts("u1", "c1")) == 1

    def test_clear(self, store: FactStore):
        store.insert_fact("u1", "c1", "Likes tea")
        store.insert_fact("u1", "c1", "Has a cat")
        store.insert_fact("u1", "c2", "Other character")

        assert store.clear("u1", "c1") == 2
        assert len(store.get_facts("u1", "c2")) == 1
