import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import psycopg
from pgvector import Vector
from pgvector.psycopg import register_vector_async

from .config import DEFAULT_EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)

VECTOR_TYPE_NAME = "vector"


# --- Tagged cell / parameter values ---


@dataclass(frozen=True)
class NullValue:
    pass


@dataclass(frozen=True)
class TextValue:
    value: str


@dataclass(frozen=True)
class IntValue:
    value: int


@dataclass(frozen=True)
class FloatValue:
    value: float


@dataclass(frozen=True)
class VectorValue:
    value: tuple[float, ...]

    def __len__(self) -> int:
        return len(self.value)


SqlValue = NullValue | TextValue | IntValue | FloatValue | VectorValue

# Column name -> value, in select-list order.
Row = dict[str, SqlValue]


class Params(dict[str, SqlValue]):
    """Named statement parameters, built explicitly with typed setters.

    >>> Params().text("title", "Ep1").integer("id", 7)
    {'title': TextValue(value='Ep1'), 'id': IntValue(value=7)}
    """

    def text(self, name: str, value: str) -> "Params":
        self[name] = TextValue(value)
        return self

    def integer(self, name: str, value: int) -> "Params":
        self[name] = IntValue(value)
        return self

    def real(self, name: str, value: float) -> "Params":
        self[name] = FloatValue(value)
        return self

    def vector(self, name: str, value) -> "Params":
        self[name] = VectorValue(tuple(float(x) for x in value))
        return self

    def null(self, name: str) -> "Params":
        self[name] = NullValue()
        return self

    def as_psycopg(self) -> dict[str, Any]:
        """Unwrap tagged values into what the driver binds."""
        return {name: to_driver_value(value) for name, value in self.items()}


def to_driver_value(value: SqlValue) -> Any:
    match value:
        case NullValue():
            return None
        case VectorValue(values):
            return Vector(list(values))
        case TextValue(v) | IntValue(v) | FloatValue(v):
            return v
    raise TypeError(f"Unsupported parameter value: {value!r}")


def decode_value(type_name: str | None, value: Any) -> SqlValue:
    """Decode one cell using the column's declared type, then the value itself."""
    if value is None:
        return NullValue()
    if type_name == VECTOR_TYPE_NAME:
        if hasattr(value, "to_list"):
            value = value.to_list()
        return VectorValue(tuple(float(x) for x in value))
    if isinstance(value, bool):
        return IntValue(int(value))
    if isinstance(value, int):
        return IntValue(value)
    if isinstance(value, (float, Decimal)):
        return FloatValue(float(value))
    if isinstance(value, str):
        return TextValue(value)
    return TextValue(str(value))


def decode_row(columns: list[tuple[str, str | None]], record) -> Row:
    return {
        name: decode_value(type_name, value)
        for (name, type_name), value in zip(columns, record)
    }


# --- Schema ---


def schema_statements(dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS) -> list[str]:
    """Idempotent DDL for the tables the service reads and writes."""
    return [
        "CREATE EXTENSION IF NOT EXISTS vector",
        f"""
        CREATE TABLE IF NOT EXISTS podcast_episodes (
            id SERIAL PRIMARY KEY,
            title TEXT NOT NULL,
            summary TEXT,
            transcript TEXT NOT NULL,
            embedding vector({dimensions})
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY,
            listening_history TEXT,
            embedding vector({dimensions})
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS suggested_podcasts (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users (id),
            podcast_id INTEGER NOT NULL REFERENCES podcast_episodes (id),
            similarity_score DOUBLE PRECISION NOT NULL
        )
        """,
    ]


class SqlExecutor:
    """Runs parameterized statements against PostgreSQL + pgvector.

    Every call opens its own connection, registers the vector type adapters on
    it and closes it on the way out, so statements issued by one request never
    share a transaction.
    """

    def __init__(self, connection_string: str | None = None):
        self.connection_string = connection_string or os.getenv("DATABASE_URL", "")
        if not self.connection_string:
            raise ValueError("DATABASE_URL must be set")

    async def _connect(self) -> psycopg.AsyncConnection:
        conn = await psycopg.AsyncConnection.connect(self.connection_string)
        try:
            await register_vector_async(conn)
        except BaseException:
            await conn.close()
            raise
        return conn

    @staticmethod
    def _type_name(conn: psycopg.AsyncConnection, type_code: int) -> str | None:
        info = conn.adapters.types.get(type_code)
        return info.name if info else None

    async def execute(self, sql: str, params: Params | None = None) -> list[Row]:
        """Execute ``sql`` and return its rows (``[]`` when there are none)."""
        logger.debug("Executing SQL: %s", " ".join(sql.split()))
        async with await self._connect() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, params.as_psycopg() if params else None)
                if cur.description is None:
                    return []
                columns = [
                    (col.name, self._type_name(conn, col.type_code))
                    for col in cur.description
                ]
                records = await cur.fetchall()
        return [decode_row(columns, record) for record in records]

    async def init_schema(self, dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS):
        """Create the vector extension and tables if they don't exist."""
        # The vector type may not exist yet, so skip adapter registration here.
        async with await psycopg.AsyncConnection.connect(self.connection_string) as conn:
            for statement in schema_statements(dimensions):
                await conn.execute(statement)
        logger.info(f"Schema ready (embedding dimensions: {dimensions})")
