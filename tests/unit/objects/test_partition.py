"""Partition - every operation stays inside its organization."""

from __future__ import annotations

import pytest

from src.infra.objects.memory_store import InMemoryObjectStore
from src.objects.partition import Partition
from src.shared.errors import NotFoundError
from src.shared.types import NewObject


@pytest.fixture()
def shared_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def alpha(shared_store: InMemoryObjectStore) -> Partition:
    return Partition(store=shared_store, org_id="org_alpha")


@pytest.fixture()
def beta(shared_store: InMemoryObjectStore) -> Partition:
    return Partition(store=shared_store, org_id="org_beta")


@pytest.mark.unit
class TestPartitionIsolation:
    async def test_created_object_carries_org(self, alpha: Partition) -> None:
        record = await alpha.create("Product", {"name": "Lamp"})
        assert record.org_id == "org_alpha"

    async def test_other_org_cannot_get(self, alpha: Partition, beta: Partition) -> None:
        record = await alpha.create("Product", {"name": "Lamp"})
        with pytest.raises(NotFoundError):
            await beta.get(record.id)

    async def test_other_org_cannot_update_or_delete(
        self, alpha: Partition, beta: Partition
    ) -> None:
        record = await alpha.create("Product", {"name": "Lamp"})
        with pytest.raises(NotFoundError):
            await beta.update(record.id, data={"name": "Stolen"})
        with pytest.raises(NotFoundError):
            await beta.soft_delete(record.id)
        assert (await alpha.get(record.id)).data == {"name": "Lamp"}

    async def test_list_only_sees_own_org(self, alpha: Partition, beta: Partition) -> None:
        await alpha.create("Product", {"name": "A"})
        await beta.create("Product", {"name": "B"})
        page = await alpha.list("Product")
        assert [r.data["name"] for r in page.items] == ["A"]

    async def test_find_by_link_only_sees_own_org(
        self, alpha: Partition, beta: Partition
    ) -> None:
        parent = await alpha.create("Order", {})
        await alpha.create("Line", {}, links=[str(parent.id)])
        await beta.create("Line", {}, links=[str(parent.id)])
        children = await alpha.find_by_link(str(parent.id))
        assert len(children) == 1
        assert children[0].org_id == "org_alpha"

    async def test_create_many_and_transition(self, alpha: Partition) -> None:
        records = await alpha.create_many(
            [NewObject(type="Job", data={"status": "pending"}) for _ in range(2)]
        )
        updated = await alpha.transition(
            records[0].id, expected={"status": "pending"}, changes={"status": "done"}
        )
        assert updated is not None
        assert updated.data["status"] == "done"

    def test_repr_names_org(self, alpha: Partition) -> None:
        assert repr(alpha) == "Partition(org_id='org_alpha')"
