"""Round trip against a real PostgreSQL database (set PG_DSN to run)."""
import os

import pytest

from catalog_etl.ingest import IngestionEngine, PostgresStore
from catalog_etl.models import LoadStrategy
from catalog_etl.queries import search_products
from catalog_etl.schema import SCHEMAS, TOPTEX

from conftest import make_record

pytestmark = pytest.mark.skipif(not os.getenv("PG_DSN"), reason="PG_DSN not set")


@pytest.fixture(scope="module")
def store():
    store = PostgresStore()
    store.create_tables(SCHEMAS.values())
    return store


def _rows(store, table):
    conn = store.connect()
    try:
        with conn.cursor() as cur:
            cur.execute(f"SELECT reference, nom, nb_couleurs FROM {table} ORDER BY reference")
            return cur.fetchall()
    finally:
        conn.close()


def test_full_replace_then_merge(store):
    engine = IngestionEngine(store=store)

    stats = engine.ingest(
        TOPTEX,
        [make_record("PG-A", "A1", color_count=2), make_record("PG-B"), make_record("PG-A", "A2")],
        LoadStrategy.FULL_REPLACE,
    )
    assert stats.inserted == 2
    assert stats.skipped_duplicate == 1
    assert _rows(store, "produits_toptex") == [("PG-A", "A1", 2), ("PG-B", "Product PG-B", None)]

    stats = engine.ingest(TOPTEX, [make_record("PG-A", "A3", color_count=9)], LoadStrategy.MERGE_UPSERT)
    assert stats.updated == 1
    assert _rows(store, "produits_toptex")[0] == ("PG-A", "A3", 9)


def test_search_finds_loaded_rows(store):
    IngestionEngine(store=store).ingest(
        TOPTEX, [make_record("PG-S", "Sweat capuche", brand="Kariban")], LoadStrategy.FULL_REPLACE
    )
    conn = store.connect()
    try:
        rows = search_products(conn, "capuche", sources=["toptex"], brand="kari")
    finally:
        conn.close()
    assert [r["reference"] for r in rows] == ["PG-S"]
    assert rows[0]["source"] == "toptex"
