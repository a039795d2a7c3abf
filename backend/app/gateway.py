"""Policy-enforcing table access.

``Table`` is the single path from the service layer to the database. It
offers the same operations a generated backend client exposes (select,
insert, update, delete with filters) and applies the row-level security
policies from ``policies.py`` to each of them:

- reads, updates and deletes only ever touch rows matched by the combined
  ``using`` predicate, so rows the caller may not see behave as if absent;
- inserts and updates are flushed, then the new row versions are re-read
  through the ``check`` predicate inside the same transaction. A row that
  fails the check rolls the transaction back and raises
  ``RowLevelSecurityError``.

Filters are ordinary SQLAlchemy expressions::

    logs = Table(db, principal, MealLog)
    today = await logs.select(MealLog.logged_date == date.today(),
                              order_by=[MealLog.logged_time.desc()])

Writes are flushed but not committed; callers commit once per request.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy import ColumnElement, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base
from app.errors import NotFoundError, RowLevelSecurityError
from app.policies import Command, Principal, check_clause, using_clause

logger = logging.getLogger(__name__)


class Table:
    """Row-level-security aware access to one ORM table."""

    def __init__(self, db: AsyncSession, principal: Principal, model: type[Base]) -> None:
        self.db = db
        self.principal = principal
        self.model = model
        self._pk = model.__mapper__.primary_key[0]

    @property
    def name(self) -> str:
        return self.model.__tablename__

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def select(
        self,
        *criteria: ColumnElement[bool],
        order_by: Sequence[Any] = (),
        limit: int | None = None,
    ) -> list[Any]:
        """Return visible rows matching every criterion."""
        stmt = select(self.model).where(
            using_clause(self.model, self.principal, "select"), *criteria
        )
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def first(
        self, *criteria: ColumnElement[bool], order_by: Sequence[Any] = ()
    ) -> Any | None:
        rows = await self.select(*criteria, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def get(self, pk: int) -> Any:
        """Return the visible row with primary key ``pk``.

        Raises:
            NotFoundError: If the row does not exist or is not visible.
        """
        row = await self.first(self._pk == pk)
        if row is None:
            raise NotFoundError(f"{self.name} row {pk} not found.")
        return row

    async def count(self, *criteria: ColumnElement[bool]) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(using_clause(self.model, self.principal, "select"), *criteria)
        )
        return int((await self.db.execute(stmt)).scalar_one())

    # ── Writes ────────────────────────────────────────────────────────────────

    async def insert(self, **values: Any) -> Any:
        rows = await self.insert_many([values])
        return rows[0]

    async def insert_many(self, rows: Iterable[Mapping[str, Any]]) -> list[Any]:
        """Insert rows and verify each against the table's insert policies.

        Raises:
            ValueError: If a row names a column the table does not have.
            RowLevelSecurityError: If any new row fails the policy check.
        """
        objects = []
        for values in rows:
            self._validate_columns(values)
            objects.append(self.model(**values))
        if not objects:
            return []
        self.db.add_all(objects)
        await self.db.flush()
        await self._verify(objects, "insert")
        return objects

    async def update(
        self, values: Mapping[str, Any], *criteria: ColumnElement[bool]
    ) -> list[Any]:
        """Apply ``values`` to every row the caller may update.

        Returns the updated rows; an empty list means nothing matched (or
        nothing was updatable by this caller).
        """
        self._validate_columns(values)
        stmt = select(self.model).where(
            using_clause(self.model, self.principal, "update"), *criteria
        )
        targets = list((await self.db.execute(stmt)).scalars().all())
        for row in targets:
            for key, value in values.items():
                setattr(row, key, value)
        if targets:
            await self.db.flush()
            await self._verify(targets, "update")
        return targets

    async def delete(self, *criteria: ColumnElement[bool]) -> list[Any]:
        """Delete every row the caller may delete; returns the deleted rows."""
        stmt = select(self.model).where(
            using_clause(self.model, self.principal, "delete"), *criteria
        )
        targets = list((await self.db.execute(stmt)).scalars().all())
        if targets:
            ids = [getattr(row, self._pk.key) for row in targets]
            await self.db.execute(delete(self.model).where(self._pk.in_(ids)))
        return targets

    # ── Internals ─────────────────────────────────────────────────────────────

    def _validate_columns(self, values: Mapping[str, Any]) -> None:
        columns = self.model.__table__.columns
        unknown = sorted(key for key in values if key not in columns)
        if unknown:
            raise ValueError(f"Unknown column(s) for {self.name}: {', '.join(unknown)}")

    async def _verify(self, rows: list[Any], command: Command) -> None:
        if self.principal.service:
            return
        ids = [getattr(row, self._pk.key) for row in rows]
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(self._pk.in_(ids), check_clause(self.model, self.principal, command))
        )
        allowed = int((await self.db.execute(stmt)).scalar_one())
        if allowed != len(ids):
            await self.db.rollback()
            logger.warning(
                "RLS check failed: %s on %s by user %s",
                command,
                self.name,
                self.principal.user_id,
            )
            raise RowLevelSecurityError(self.name)
