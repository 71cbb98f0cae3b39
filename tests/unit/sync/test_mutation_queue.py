"""Tests for the pending mutation queues."""

import asyncio
import re
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import select

from offline_sync.core.database import Database
from offline_sync.models.offline import PendingMutationRow
from offline_sync.sync.mutation_queue import InMemoryMutationQueue, SQLMutationQueue
from offline_sync.sync.schemas import MutationType

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(params=["memory", "sql"])
async def queue(request, tmp_path):
    """Each test runs against both queue implementations."""
    if request.param == "memory":
        yield InMemoryMutationQueue()
    else:
        db = Database(f"sqlite:///{tmp_path / 'queue.db'}")
        await db.init()
        yield SQLMutationQueue(db)
        await db.dispose()


class TestMutationQueue:
    """Behaviour shared by every mutation queue."""

    @pytest.mark.asyncio
    async def test_enqueue_assigns_id_and_zero_retries(self, queue):
        """The queue owns id generation and starts the retry counter at zero."""
        mutation = await queue.enqueue(MutationType.UPDATE, 7, {"Watched": True}, timestamp=T0)

        assert re.fullmatch(r"mutation_\d+_[0-9a-f]+", mutation.id)
        assert mutation.retry_count == 0
        assert mutation.last_error is None

        stored = await queue.get(mutation.id)
        assert stored == mutation

    @pytest.mark.asyncio
    async def test_enqueue_accepts_malformed_mutation(self, queue):
        """An UPDATE without data is queued; it is rejected at push time."""
        mutation = await queue.enqueue(MutationType.UPDATE, 7)

        assert mutation.payload is None
        assert await queue.count() == 1

    @pytest.mark.asyncio
    async def test_ordered_by_timestamp(self, queue):
        """Mutations come back oldest first regardless of insertion order."""
        late = await queue.enqueue(MutationType.DELETE, 1, timestamp=T0 + timedelta(minutes=5))
        early = await queue.enqueue(MutationType.UPDATE, 2, {"Notes": "x"}, timestamp=T0)

        ordered = await queue.get_all_ordered_by_timestamp()

        assert [m.id for m in ordered] == [early.id, late.id]

    @pytest.mark.asyncio
    async def test_equal_timestamps_keep_insertion_order(self, queue):
        """Ties on timestamp are broken by insertion order."""
        first = await queue.enqueue(MutationType.UPDATE, 1, {"Notes": "a"}, timestamp=T0)
        second = await queue.enqueue(MutationType.UPDATE, 1, {"Notes": "b"}, timestamp=T0)

        ordered = await queue.get_all_ordered_by_timestamp()

        assert [m.id for m in ordered] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_get_by_target(self, queue):
        """Only mutations for the requested record are returned."""
        await queue.enqueue(MutationType.UPDATE, 1, {"Notes": "a"}, timestamp=T0)
        await queue.enqueue(MutationType.UPDATE, 2, {"Notes": "b"}, timestamp=T0)
        await queue.enqueue(MutationType.DELETE, 1, timestamp=T0 + timedelta(seconds=1))

        mutations = await queue.get_by_target(1)

        assert [m.type for m in mutations] == [MutationType.UPDATE, MutationType.DELETE]

    @pytest.mark.asyncio
    async def test_update_persists_retry_bookkeeping(self, queue):
        """Retry count and last error survive an update."""
        mutation = await queue.enqueue(MutationType.UPDATE, 1, {"Notes": "a"}, timestamp=T0)

        updated = await queue.update(
            mutation.model_copy(update={"retry_count": 2, "last_error": "timeout"})
        )

        assert updated is True
        stored = await queue.get(mutation.id)
        assert stored.retry_count == 2
        assert stored.last_error == "timeout"

    @pytest.mark.asyncio
    async def test_update_of_removed_mutation(self, queue):
        """Updating a mutation that is no longer queued reports False."""
        mutation = await queue.enqueue(MutationType.DELETE, 1, timestamp=T0)
        await queue.remove(mutation.id)

        assert await queue.update(mutation.model_copy(update={"retry_count": 1})) is False

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, queue):
        """Removal is reported; clear drops everything."""
        first = await queue.enqueue(MutationType.DELETE, 1, timestamp=T0)
        await queue.enqueue(MutationType.DELETE, 2, timestamp=T0)

        assert await queue.remove(first.id) is True
        assert await queue.remove(first.id) is False
        assert await queue.clear() == 1
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_concurrent_enqueues_are_all_kept(self, queue):
        """Enqueues racing on the same timestamp each get their own queue slot."""
        mutations = await asyncio.gather(
            *(
                queue.enqueue(MutationType.UPDATE, i, {"Notes": str(i)}, timestamp=T0)
                for i in range(10)
            )
        )

        ordered = await queue.get_all_ordered_by_timestamp()

        assert await queue.count() == 10
        assert sorted(m.id for m in ordered) == sorted(m.id for m in mutations)


class TestSQLMutationQueue:
    """Storage details of the SQL queue."""

    @pytest_asyncio.fixture
    async def sql_queue(self, tmp_path):
        db = Database(f"sqlite:///{tmp_path / 'seq.db'}")
        await db.init()
        yield SQLMutationQueue(db)
        await db.dispose()

    @pytest.mark.asyncio
    async def test_seq_is_assigned_by_database(self, sql_queue):
        """Each row gets a distinct, increasing insertion number on insert."""
        await asyncio.gather(
            *(sql_queue.enqueue(MutationType.DELETE, i, timestamp=T0) for i in range(5))
        )
        await sql_queue.enqueue(MutationType.DELETE, 99, timestamp=T0)

        async with sql_queue.database.session() as session:
            rows = (
                await session.execute(
                    select(PendingMutationRow.seq, PendingMutationRow.target_id).order_by(
                        PendingMutationRow.seq
                    )
                )
            ).all()

        seqs = [row.seq for row in rows]
        assert len(set(seqs)) == 6
        assert rows[-1].target_id == 99
        assert [m.target_id for m in await sql_queue.get_all_ordered_by_timestamp()][-1] == 99
