"""
Store collaborator: prepared statements with positional ``?`` binding.

Statement text produced by the query builder uses ``?`` placeholders. SqlStore
runs it through a SQLAlchemy async engine by rewriting each placeholder into a
named bind, so values always travel separately from the statement text.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

_PLACEHOLDER = re.compile(r"\?")


@dataclass(frozen=True)
class QueryResult:
    results: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class RunMeta:
    last_row_id: Optional[int] = None
    changes: int = 0


@dataclass(frozen=True)
class RunResult:
    success: bool
    meta: RunMeta = field(default_factory=RunMeta)


class Statement(Protocol):
    def bind(self, *values: Any) -> "Statement": ...

    async def all(self) -> QueryResult: ...

    async def first(self) -> Optional[dict[str, Any]]: ...

    async def run(self) -> RunResult: ...


class Store(Protocol):
    def prepare(self, sql: str) -> Statement: ...


def to_named_binds(sql: str, values: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """Rewrite ``?`` placeholders as ``:p0, :p1, ...`` and pair them with values."""
    names: list[str] = []

    def _replace(_match: re.Match) -> str:
        name = f"p{len(names)}"
        names.append(name)
        return f":{name}"

    rewritten = _PLACEHOLDER.sub(_replace, sql)
    if len(names) != len(values):
        raise ValueError(
            f"Statement expects {len(names)} parameters but {len(values)} were bound"
        )
    return rewritten, dict(zip(names, values))


class SqlStatement:
    """A prepared statement bound to an engine. ``bind`` returns a new statement."""

    def __init__(self, engine: AsyncEngine, sql: str, values: tuple = ()):
        self._engine = engine
        self.sql = sql
        self.values = values

    def bind(self, *values: Any) -> "SqlStatement":
        return SqlStatement(self._engine, self.sql, tuple(values))

    def _compiled(self):
        sql, params = to_named_binds(self.sql, self.values)
        return text(sql), params

    async def all(self) -> QueryResult:
        stmt, params = self._compiled()
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt, params)
            rows = [dict(row._mapping) for row in result]
        return QueryResult(results=rows)

    async def first(self) -> Optional[dict[str, Any]]:
        stmt, params = self._compiled()
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt, params)
            row = result.first()
        return dict(row._mapping) if row is not None else None

    async def run(self) -> RunResult:
        stmt, params = self._compiled()
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt, params)
            meta = RunMeta(last_row_id=result.lastrowid, changes=result.rowcount)
        return RunResult(success=True, meta=meta)


class SqlStore:
    """Store implementation backed by a SQLAlchemy ``AsyncEngine``."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    def prepare(self, sql: str) -> SqlStatement:
        return SqlStatement(self.engine, sql)
