"""Tests for blocsync.store.memory."""

from __future__ import annotations

import json

import pytest

from blocsync.models import Bloc, WriteStatus
from blocsync.store.base import BlocStore
from blocsync.store.memory import InMemoryBlocStore


def _bloc(bloc_id="b1", position="a0", page_id="p1", text="hello"):
    content = json.dumps({"type": "paragraph", "text": text, "$": {"updateAt": "1"}})
    return Bloc(bloc_id, position, content, page_id, "paragraph", 1, 1)


@pytest.fixture
async def seeded():
    store = InMemoryBlocStore()
    await store.create_bloc(_bloc())
    return store


class TestCreate:
    async def test_returns_id(self, store):
        assert await store.create_bloc(_bloc()) == "b1"
        assert len(store) == 1

    async def test_duplicate_or_empty_id_fails(self, seeded):
        assert await seeded.create_bloc(_bloc()) == ""
        assert await seeded.create_bloc(_bloc(bloc_id="")) == ""

    async def test_stored_copy_is_independent(self, store):
        bloc = _bloc()
        await store.create_bloc(bloc)
        bloc.position = "zz"
        assert (await store.get_bloc_by_id("b1")).position == "a0"


class TestContent:
    async def test_changed_content(self, seeded):
        new = json.dumps({"type": "paragraph", "text": "bye"})
        assert await seeded.update_bloc_content("b1", new, 5) is WriteStatus.SUCCESS
        bloc = await seeded.get_bloc_by_id("b1")
        assert (bloc.content, bloc.updated_at) == (new, 5)

    async def test_same_content_with_new_timestamp_is_no_change(self, seeded):
        same = json.dumps({"$": {"updateAt": "99"}, "text": "hello", "type": "paragraph"})
        assert await seeded.update_bloc_content("b1", same, 5) is WriteStatus.NO_CHANGE
        assert (await seeded.get_bloc_by_id("b1")).updated_at == 1

    async def test_unknown_id_is_no_change(self, store):
        assert await store.update_bloc_content("nope", "{}", 5) is WriteStatus.NO_CHANGE


class TestPosition:
    async def test_position(self, seeded):
        assert await seeded.update_bloc_position("b1", "a1", 5) is WriteStatus.SUCCESS
        assert await seeded.update_bloc_position("b1", "a1", 6) is WriteStatus.NO_CHANGE
        assert await seeded.update_bloc_position("nope", "a1", 6) is WriteStatus.NO_CHANGE


class TestPagesAndDeletes:
    async def test_get_by_page_is_position_ordered(self, store):
        for bloc_id, position in (("b3", "a2"), ("b1", "a0"), ("b2", "a0V")):
            await store.create_bloc(_bloc(bloc_id, position))
        await store.create_bloc(_bloc("other", "a1", page_id="p2"))
        assert [b.id for b in await store.get_blocs_by_page_id("p1")] == ["b1", "b2", "b3"]

    async def test_page_move_and_delete(self, seeded):
        assert await seeded.update_bloc_page_id("b1", "p2")
        assert not await seeded.update_bloc_page_id("nope", "p2")
        assert await seeded.get_blocs_by_page_id("p1") == []
        assert await seeded.delete_bloc_by_page_id("p2")
        assert not await seeded.delete_bloc_by_page_id("p2")
        assert len(seeded) == 0

    async def test_delete(self, seeded):
        assert await seeded.delete_bloc("b1")
        assert not await seeded.delete_bloc("b1")
        assert await seeded.get_bloc_by_id("b1") is None

    async def test_calls_are_recorded(self, seeded):
        await seeded.delete_bloc("b1")
        assert seeded.calls == ["create_bloc", "delete_bloc"]
        assert seeded.count("delete_bloc") == 1


def test_satisfies_store_protocol():
    assert isinstance(InMemoryBlocStore(), BlocStore)
