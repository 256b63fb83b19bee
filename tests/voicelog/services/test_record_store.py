import asyncio

import pytest

from voicelog.models.records import CommandKind
from voicelog.services.record_store import MemoryRecordStore


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.mark.asyncio
async def test_append_and_list(store):
    await store.append("s1", CommandKind.EXPENSE, {"amount": 1})
    await store.append("s1", CommandKind.EXPENSE, {"amount": 2})
    await store.append("s1", CommandKind.INCOME, {"amount": 3})

    expenses = await store.list_records("s1", CommandKind.EXPENSE)
    assert [row["amount"] for row in expenses] == [1, 2]
    assert [row["amount"] for row in await store.list_records("s1")] == [1, 2, 3]


@pytest.mark.asyncio
async def test_sheets_are_isolated(store):
    await store.append("s1", CommandKind.EXPENSE, {"amount": 1})

    assert await store.list_records("s2") == []


@pytest.mark.asyncio
async def test_rows_are_copied(store):
    row = {"amount": 1, "tags": ["a"]}
    returned = await store.append("s1", CommandKind.EXPENSE, row)
    row["tags"].append("b")
    returned["amount"] = 99

    listed = await store.list_records("s1", CommandKind.EXPENSE)
    assert listed == [{"amount": 1, "tags": ["a"]}]

    listed[0]["amount"] = 42
    assert (await store.list_records("s1"))[0]["amount"] == 1


@pytest.mark.asyncio
async def test_concurrent_appends(store):
    await asyncio.gather(
        *(store.append("s1", CommandKind.TIME_LOG, {"n": n}) for n in range(20))
    )
    assert len(await store.list_records("s1", CommandKind.TIME_LOG)) == 20


@pytest.mark.asyncio
async def test_kind_accepts_string_value(store):
    await store.append("s1", "income", {"amount": 5})
    assert len(await store.list_records("s1", "income")) == 1
