"""Mutation Queue: durable collection of local writes awaiting a push.

Mutations are pushed oldest first (timestamp, then insertion order) so the
remote sees local edits in the order they were made.
"""

import itertools
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select

from offline_sync.core.database import Database
from offline_sync.models.offline import PendingMutationRow
from offline_sync.sync.schemas import MutationType, PendingMutation, utc_now
from offline_sync.utils.id_generator import generate_mutation_id
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)


class MutationQueue(ABC):
    """Interface of the pending mutation queue."""

    async def enqueue(
        self,
        mutation_type: MutationType,
        target_id: int,
        payload: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> PendingMutation:
        """Queue a mutation for later sync.

        The queue assigns the id and starts ``retry_count`` at zero. It never
        rejects a mutation; malformed ones are classified when pushed.

        Args:
            mutation_type: UPDATE or DELETE
            target_id: Id of the cached record the write applies to
            payload: Changed fields (remote field names) for UPDATE
            timestamp: When the local write happened, defaults to now

        Returns:
            The persisted mutation
        """
        timestamp = timestamp or utc_now()
        mutation = PendingMutation(
            id=generate_mutation_id(int(timestamp.timestamp() * 1000)),
            type=mutation_type,
            target_id=target_id,
            payload=payload,
            timestamp=timestamp,
            retry_count=0,
        )
        await self._insert(mutation)
        logger.info(
            "mutation_queued",
            mutation_id=mutation.id,
            type=mutation.type.value,
            target_id=target_id,
        )
        return mutation

    @abstractmethod
    async def _insert(self, mutation: PendingMutation) -> None:
        """Persist a new mutation."""

    @abstractmethod
    async def get(self, mutation_id: str) -> Optional[PendingMutation]:
        """Look a mutation up by id."""

    @abstractmethod
    async def get_all_ordered_by_timestamp(self) -> List[PendingMutation]:
        """All pending mutations, oldest first."""

    @abstractmethod
    async def get_by_target(self, target_id: int) -> List[PendingMutation]:
        """Pending mutations for one record, oldest first."""

    @abstractmethod
    async def remove(self, mutation_id: str) -> bool:
        """Drop a mutation; returns False if it was not queued."""

    @abstractmethod
    async def update(self, mutation: PendingMutation) -> bool:
        """Persist ``retry_count``/``last_error`` of a queued mutation.

        Returns False if the mutation is no longer queued.
        """

    @abstractmethod
    async def count(self) -> int:
        """Number of pending mutations."""

    @abstractmethod
    async def clear(self) -> int:
        """Drop every pending mutation."""


class InMemoryMutationQueue(MutationQueue):
    """Dictionary-backed mutation queue."""

    def __init__(self) -> None:
        """Initialize an empty queue."""
        self._mutations: Dict[str, PendingMutation] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()

    async def _insert(self, mutation: PendingMutation) -> None:
        if mutation.id in self._mutations:
            raise ValueError(f"Duplicate mutation id {mutation.id}")
        self._mutations[mutation.id] = mutation
        self._sequence[mutation.id] = next(self._counter)

    def _ordered(self) -> List[PendingMutation]:
        return sorted(
            self._mutations.values(),
            key=lambda m: (m.timestamp, self._sequence[m.id]),
        )

    async def get(self, mutation_id: str) -> Optional[PendingMutation]:
        """Look a mutation up by id."""
        return self._mutations.get(mutation_id)

    async def get_all_ordered_by_timestamp(self) -> List[PendingMutation]:
        """All pending mutations, oldest first."""
        return self._ordered()

    async def get_by_target(self, target_id: int) -> List[PendingMutation]:
        """Pending mutations for one record, oldest first."""
        return [m for m in self._ordered() if m.target_id == target_id]

    async def remove(self, mutation_id: str) -> bool:
        """Drop a mutation."""
        self._sequence.pop(mutation_id, None)
        return self._mutations.pop(mutation_id, None) is not None

    async def update(self, mutation: PendingMutation) -> bool:
        """Replace a queued mutation, keeping its queue position."""
        if mutation.id not in self._mutations:
            return False
        self._mutations[mutation.id] = mutation
        return True

    async def count(self) -> int:
        """Number of pending mutations."""
        return len(self._mutations)

    async def clear(self) -> int:
        """Drop every pending mutation."""
        removed = len(self._mutations)
        self._mutations.clear()
        self._sequence.clear()
        return removed


class SQLMutationQueue(MutationQueue):
    """Mutation queue persisted to the ``pending_mutations`` table."""

    def __init__(self, database: Database):
        """Initialize the queue.

        Args:
            database: Initialized local database
        """
        self.database = database

    @staticmethod
    def _from_row(row: PendingMutationRow) -> PendingMutation:
        return PendingMutation(
            id=row.id,
            type=MutationType(row.type),
            target_id=row.target_id,
            payload=row.payload,
            timestamp=row.timestamp.replace(tzinfo=timezone.utc),
            retry_count=row.retry_count,
            last_error=row.last_error,
        )

    @staticmethod
    async def _get_row(session: Any, mutation_id: str) -> Optional[PendingMutationRow]:
        stmt = select(PendingMutationRow).where(PendingMutationRow.id == mutation_id)
        return (await session.execute(stmt)).scalars().first()

    async def _insert(self, mutation: PendingMutation) -> None:
        async with self.database.session() as session:
            session.add(
                PendingMutationRow(
                    id=mutation.id,
                    type=mutation.type.value,
                    target_id=mutation.target_id,
                    payload=mutation.payload,
                    timestamp=mutation.timestamp.astimezone(timezone.utc).replace(
                        tzinfo=None
                    ),
                    retry_count=mutation.retry_count,
                    last_error=mutation.last_error,
                )
            )

    def _ordered_select(self) -> Any:
        return select(PendingMutationRow).order_by(
            PendingMutationRow.timestamp, PendingMutationRow.seq
        )

    async def get(self, mutation_id: str) -> Optional[PendingMutation]:
        """Look a mutation up by id."""
        async with self.database.session() as session:
            row = await self._get_row(session, mutation_id)
            return self._from_row(row) if row is not None else None

    async def get_all_ordered_by_timestamp(self) -> List[PendingMutation]:
        """All pending mutations through the timestamp index, oldest first."""
        async with self.database.session() as session:
            rows = (await session.execute(self._ordered_select())).scalars().all()
            return [self._from_row(row) for row in rows]

    async def get_by_target(self, target_id: int) -> List[PendingMutation]:
        """Pending mutations for one record through the target index."""
        stmt = self._ordered_select().where(PendingMutationRow.target_id == target_id)
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [self._from_row(row) for row in rows]

    async def remove(self, mutation_id: str) -> bool:
        """Drop a mutation."""
        async with self.database.session() as session:
            result = await session.execute(
                delete(PendingMutationRow).where(PendingMutationRow.id == mutation_id)
            )
            return bool(result.rowcount)

    async def update(self, mutation: PendingMutation) -> bool:
        """Persist the retry bookkeeping of a queued mutation."""
        async with self.database.session() as session:
            row = await self._get_row(session, mutation.id)
            if row is None:
                return False
            row.payload = mutation.payload
            row.retry_count = mutation.retry_count
            row.last_error = mutation.last_error
            return True

    async def count(self) -> int:
        """Number of pending mutations."""
        async with self.database.session() as session:
            result = await session.execute(select(func.count(PendingMutationRow.id)))
            return int(result.scalar_one())

    async def clear(self) -> int:
        """Drop every pending mutation."""
        async with self.database.session() as session:
            result = await session.execute(delete(PendingMutationRow))
            return result.rowcount or 0
