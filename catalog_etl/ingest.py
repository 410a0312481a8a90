"""Load a source batch into its PostgreSQL table.

Two strategies:
- full replace: truncate the table, then insert; duplicates inside the batch
  are skipped (first writer wins)
- merge upsert: insert or overwrite the mutable columns of an existing row

Each record runs inside its own savepoint so a bad row is rolled back and
counted without aborting the rest of the batch.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, Optional, Protocol

import psycopg2
from psycopg2.extensions import connection as PGConnection

from .config import get_dsn
from .models import IngestStats, LoadStrategy, ProductRecord
from .schema import KEY_COLUMN, SourceSchema

LOGGER = logging.getLogger(__name__)


class ProductTable(Protocol):
    """Write access to one source table inside an open transaction."""

    schema: SourceSchema

    def truncate(self) -> None:
        ...

    def insert(self, record: ProductRecord) -> bool:
        """Insert; return False when the reference already exists."""
        ...

    def upsert(self, record: ProductRecord) -> bool:
        """Insert or update; return True when a new row was inserted."""
        ...

    def record_scope(self):
        """Context manager isolating one record's statements."""
        ...


class PostgresProductTable:
    """psycopg2-backed ProductTable bound to one connection."""

    def __init__(self, conn: PGConnection, schema: SourceSchema) -> None:
        self.conn = conn
        self.schema = schema

        cols = ", ".join(schema.column_names)
        values = ", ".join(f"%({c})s" for c in schema.column_names)
        updates = ",\n                ".join(f"{c} = EXCLUDED.{c}" for c in schema.mutable_columns)

        self._insert_sql = f"""
            INSERT INTO {schema.table} ({cols})
            VALUES ({values})
            ON CONFLICT ({KEY_COLUMN}) DO NOTHING
            RETURNING id;
        """
        self._upsert_sql = f"""
            INSERT INTO {schema.table} ({cols})
            VALUES ({values})
            ON CONFLICT ({KEY_COLUMN}) DO UPDATE
            SET
                {updates},
                last_seen = NOW()
            RETURNING (xmax = 0) AS inserted;
        """

    def truncate(self) -> None:
        with self.conn.cursor() as cur:
            cur.execute(f"TRUNCATE TABLE {self.schema.table} RESTART IDENTITY;")

    def insert(self, record: ProductRecord) -> bool:
        with self.conn.cursor() as cur:
            cur.execute(self._insert_sql, self.schema.row(record))
            return cur.fetchone() is not None

    def upsert(self, record: ProductRecord) -> bool:
        with self.conn.cursor() as cur:
            cur.execute(self._upsert_sql, self.schema.row(record))
            row = cur.fetchone()
        return bool(row[0]) if row is not None else False

    @contextmanager
    def record_scope(self) -> Iterator[None]:
        with self.conn.cursor() as cur:
            cur.execute("SAVEPOINT ingest_record;")
        try:
            yield
        except Exception:
            with self.conn.cursor() as cur:
                cur.execute("ROLLBACK TO SAVEPOINT ingest_record;")
            raise
        with self.conn.cursor() as cur:
            cur.execute("RELEASE SAVEPOINT ingest_record;")


class PostgresStore:
    """Opens one transaction per source load."""

    def __init__(
        self,
        dsn: Optional[str] = None,
        connect: Callable[[str], PGConnection] = psycopg2.connect,
    ) -> None:
        self._dsn = dsn
        self._connect = connect

    def connect(self) -> PGConnection:
        return self._connect(self._dsn or get_dsn())

    @contextmanager
    def open_table(self, schema: SourceSchema) -> Iterator[PostgresProductTable]:
        """Yield a table; commit if the block succeeds, roll back otherwise."""
        conn = self.connect()
        try:
            yield PostgresProductTable(conn, schema)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def create_tables(self, schemas: Iterable[SourceSchema]) -> None:
        conn = self.connect()
        try:
            with conn.cursor() as cur:
                for schema in schemas:
                    cur.execute(schema.ddl())
                    LOGGER.info("Ensured table %s", schema.table)
            conn.commit()
        finally:
            conn.close()


class IngestionEngine:
    """Applies a load strategy to a batch of eligible records."""

    def __init__(self, store: Optional[PostgresStore] = None) -> None:
        self.store = store or PostgresStore()

    def ingest(
        self,
        schema: SourceSchema,
        records: Iterable[ProductRecord],
        strategy: LoadStrategy,
    ) -> IngestStats:
        """Open the source table and load the batch in one transaction."""
        with self.store.open_table(schema) as table:
            return self.load(table, records, strategy)

    def load(
        self,
        table: ProductTable,
        records: Iterable[ProductRecord],
        strategy: LoadStrategy,
    ) -> IngestStats:
        stats = IngestStats(strategy=strategy)
        name = table.schema.table

        if strategy is LoadStrategy.FULL_REPLACE:
            LOGGER.info("Truncating %s", name)
            table.truncate()

        for record in records:
            try:
                with table.record_scope():
                    if strategy is LoadStrategy.FULL_REPLACE:
                        if table.insert(record):
                            stats.inserted += 1
                        else:
                            stats.skipped_duplicate += 1
                            LOGGER.info("Duplicate skipped in %s: %s (%s)", name, record.reference, record.name)
                    elif table.upsert(record):
                        stats.inserted += 1
                    else:
                        stats.updated += 1
            except Exception as exc:
                stats.failed += 1
                LOGGER.warning("Failed to load %s into %s: %s", record.reference, name, exc)
                continue

        LOGGER.info(
            "Loaded %s (%s): inserted=%s updated=%s duplicates=%s failed=%s",
            name,
            strategy.value,
            stats.inserted,
            stats.updated,
            stats.skipped_duplicate,
            stats.failed,
        )
        return stats
