"""InMemoryObjectStore - ObjectStorePort contract on the dict backend."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from src.infra.objects.memory_store import InMemoryObjectStore
from src.shared.errors import NotFoundError, ValidationError
from src.shared.types import NewObject

ORG = "org_alpha"


@pytest.fixture()
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.mark.unit
class TestCreateAndGet:
    async def test_create_assigns_identity_and_timestamps(self, store) -> None:
        record = await store.create(ORG, type="Product", data={"name": "Lamp"})
        assert record.type == "Product"
        assert record.org_id == ORG
        assert record.created_at is not None
        assert record.created_at == record.updated_at
        assert record.deleted_at is None
        assert (await store.get(ORG, record.id)).data == {"name": "Lamp"}

    async def test_unicode_and_emoji_round_trip(self, store) -> None:
        text = "Zażółć gęślą jaźń 🚀 日本語"
        record = await store.create(ORG, type="Note", data={"text": text})
        assert (await store.get(ORG, record.id)).data["text"] == text

    async def test_large_document_over_one_megabyte(self, store) -> None:
        blob = "x" * (1024 * 1024 + 10)
        record = await store.create(ORG, type="Blob", data={"content": blob})
        fetched = await store.get(ORG, record.id)
        assert len(fetched.data["content"]) == len(blob)

    async def test_fifty_levels_of_nesting(self, store) -> None:
        doc: dict = {}
        node = doc
        for i in range(50):
            node["child"] = {"depth": i}
            node = node["child"]
        record = await store.create(ORG, type="Tree", data=doc)
        fetched = await store.get(ORG, record.id)
        node = fetched.data
        for _ in range(50):
            node = node["child"]
        assert node["depth"] == 49

    async def test_invalid_document_is_not_persisted(self, store) -> None:
        doc: dict = {}
        doc["loop"] = doc
        with pytest.raises(ValidationError):
            await store.create(ORG, type="Bad", data=doc)
        page = await store.list(ORG, type="Bad")
        assert page.items == []

    async def test_returned_record_is_a_copy(self, store) -> None:
        record = await store.create(ORG, type="Product", data={"tags": ["a"]})
        record.data["tags"].append("mutated")
        assert (await store.get(ORG, record.id)).data == {"tags": ["a"]}

    async def test_get_unknown_raises(self, store) -> None:
        with pytest.raises(NotFoundError):
            await store.get(ORG, uuid4())

    async def test_create_many_is_all_or_nothing(self, store) -> None:
        items = [
            NewObject(type="Product", data={"n": 1}),
            NewObject(type="Product", data="not-a-dict"),  # type: ignore[arg-type]
        ]
        with pytest.raises(ValidationError):
            await store.create_many(ORG, items)
        assert (await store.list(ORG, type="Product")).items == []

    async def test_create_many_preserves_order(self, store) -> None:
        items = [NewObject(type="Product", data={"n": i}) for i in range(3)]
        records = await store.create_many(ORG, items)
        assert [r.data["n"] for r in records] == [0, 1, 2]


@pytest.mark.unit
class TestList:
    async def test_filters_and_type(self, store) -> None:
        await store.create(ORG, type="Product", data={"color": "red"})
        await store.create(ORG, type="Product", data={"color": "blue"})
        await store.create(ORG, type="Order", data={"color": "red"})
        page = await store.list(ORG, type="Product", filters={"data.color": "red"})
        assert len(page.items) == 1
        assert page.items[0].data == {"color": "red"}

    async def test_nul_in_document_does_not_break_filtering(self, store) -> None:
        record = await store.create(ORG, type="Product", data={"name": "a\u0000b", "n": 1})
        assert (await store.get(ORG, record.id)).data["name"] == "a\u0000b"
        page = await store.list(ORG, type="Product", filters={"data.n": 1})
        assert [r.id for r in page.items] == [record.id]
        page = await store.list(ORG, type="Product", filters={"data.name": "ab"})
        assert page.items == []
        with pytest.raises(ValidationError, match="NUL"):
            await store.list(ORG, type="Product", filters={"data.name": "a\u0000b"})

    async def test_filter_is_exact_equality(self, store) -> None:
        await store.create(ORG, type="Product", data={"tags": ["red"], "n": 1, "flag": True})
        for filters in ({"data.tags": "red"}, {"data.flag": 1}, {"data.n": True}):
            page = await store.list(ORG, type="Product", filters=filters)
            assert page.items == []
        page = await store.list(ORG, type="Product", filters={"data.n": 1.0})
        assert len(page.items) == 1

    async def test_cursor_pagination_is_complete_and_stable(self, store) -> None:
        for i in range(7):
            await store.create(ORG, type="Item", data={"i": i})
        seen: list[int] = []
        cursor = None
        while True:
            page = await store.list(ORG, type="Item", limit=3, cursor=cursor)
            seen.extend(r.data["i"] for r in page.items)
            if page.next_cursor is None:
                break
            cursor = page.next_cursor
        assert seen == list(range(7))

    async def test_descending_order(self, store) -> None:
        for i in range(3):
            await store.create(ORG, type="Item", data={"i": i})
        page = await store.list(ORG, type="Item", descending=True)
        assert [r.data["i"] for r in page.items] == [2, 1, 0]

    async def test_skip(self, store) -> None:
        for i in range(4):
            await store.create(ORG, type="Item", data={"i": i})
        page = await store.list(ORG, type="Item", skip=2)
        assert [r.data["i"] for r in page.items] == [2, 3]

    async def test_exclude_deleted(self, store) -> None:
        keep = await store.create(ORG, type="Item", data={})
        gone = await store.create(ORG, type="Item", data={})
        await store.soft_delete(ORG, gone.id)
        all_items = await store.list(ORG, type="Item")
        live = await store.list(ORG, type="Item", exclude_deleted=True)
        assert len(all_items.items) == 2
        assert [r.id for r in live.items] == [keep.id]

    async def test_bad_cursor_rejected(self, store) -> None:
        with pytest.raises(ValidationError):
            await store.list(ORG, type="Item", cursor="not-a-cursor")


@pytest.mark.unit
class TestUpdate:
    async def test_merge_update_keeps_other_fields(self, store) -> None:
        record = await store.create(
            ORG, type="Product", data={"name": "Lamp", "price": 10}, metadata={"a": 1}
        )
        updated = await store.update(ORG, record.id, data={"price": 12}, metadata={"b": 2})
        assert updated.data == {"name": "Lamp", "price": 12}
        assert updated.metadata == {"a": 1, "b": 2}
        assert updated.updated_at >= record.updated_at

    async def test_links_are_replaced(self, store) -> None:
        record = await store.create(ORG, type="Line", data={}, links=["a"])
        updated = await store.update(ORG, record.id, links=["b", "c"])
        assert updated.links == ["b", "c"]

    async def test_concurrent_increments_are_not_lost(self, store) -> None:
        record = await store.create(ORG, type="Counter", data={"hits": 0})
        await asyncio.gather(
            *(store.update(ORG, record.id, increments={"hits": 1}) for _ in range(50))
        )
        assert (await store.get(ORG, record.id)).data["hits"] == 50

    async def test_invalid_update_leaves_document_unchanged(self, store) -> None:
        record = await store.create(ORG, type="Counter", data={"hits": "many"})
        with pytest.raises(ValidationError):
            await store.update(ORG, record.id, data={"other": 1}, increments={"hits": 1})
        assert (await store.get(ORG, record.id)).data == {"hits": "many"}

    async def test_update_unknown_raises(self, store) -> None:
        with pytest.raises(NotFoundError):
            await store.update(ORG, uuid4(), data={"x": 1})


@pytest.mark.unit
class TestSoftDeleteAndLinks:
    async def test_soft_delete_is_idempotent(self, store) -> None:
        record = await store.create(ORG, type="Item", data={})
        first = await store.soft_delete(ORG, record.id)
        second = await store.soft_delete(ORG, record.id)
        assert first.deleted_at is not None
        assert second.deleted_at == first.deleted_at

    async def test_deleted_object_still_readable_by_id(self, store) -> None:
        record = await store.create(ORG, type="Item", data={"x": 1})
        await store.soft_delete(ORG, record.id)
        fetched = await store.get(ORG, record.id)
        assert fetched.is_deleted
        assert fetched.data == {"x": 1}

    async def test_find_by_link_with_type(self, store) -> None:
        parent = await store.create(ORG, type="Order", data={})
        await store.create(ORG, type="Line", data={}, links=[str(parent.id)])
        await store.create(ORG, type="Note", data={}, links=[str(parent.id)])
        lines = await store.find_by_link(ORG, str(parent.id), type="Line")
        assert [r.type for r in lines] == ["Line"]


@pytest.mark.unit
class TestTransition:
    async def test_transition_applies_when_expected_matches(self, store) -> None:
        record = await store.create(ORG, type="Job", data={"status": "pending"})
        updated = await store.transition(
            ORG, record.id, expected={"status": "pending"}, changes={"status": "done", "r": 1}
        )
        assert updated is not None
        assert updated.data == {"status": "done", "r": 1}

    async def test_transition_is_noop_when_expected_differs(self, store) -> None:
        record = await store.create(ORG, type="Job", data={"status": "done"})
        result = await store.transition(
            ORG, record.id, expected={"status": "pending"}, changes={"status": "error"}
        )
        assert result is None
        assert (await store.get(ORG, record.id)).data["status"] == "done"

    async def test_racing_transitions_resolve_once(self, store) -> None:
        record = await store.create(ORG, type="Job", data={"status": "pending"})
        results = await asyncio.gather(
            *(
                store.transition(
                    ORG,
                    record.id,
                    expected={"status": "pending"},
                    changes={"status": "done", "winner": i},
                )
                for i in range(10)
            )
        )
        assert sum(1 for r in results if r is not None) == 1
