from contextlib import contextmanager
from typing import Dict, List

import pytest

from catalog_etl.ingest import IngestionEngine
from catalog_etl.models import Outcome, ProductRecord
from catalog_etl.schema import SourceSchema
from catalog_etl.sources.base import ExtractionResult, SourceAdapter


class FakeSession:
    """BrowserSession stand-in driven by canned DOM state."""

    def __init__(self, items=None, present=(), texts=None, evaluate_error=None):
        self.items = list(items or [])
        self.present = set(present)
        self.texts = dict(texts or {})
        self.evaluate_error = evaluate_error
        self.calls: List[tuple] = []

    def navigate(self, url):
        self.calls.append(("navigate", url))

    def wait_for(self, selector, *, hidden=False, timeout_ms=5000):
        self.calls.append(("wait_for", selector, hidden))
        if hidden or selector in self.present:
            return Outcome.success(True)
        return Outcome.failure(f"timeout after {timeout_ms}ms waiting for {selector}")

    def evaluate(self, script, arg=None):
        self.calls.append(("evaluate",))
        if self.evaluate_error is not None:
            raise self.evaluate_error
        return self.items

    def text_of(self, selector):
        return self.texts.get(selector, "")

    def set_viewport(self, width, height):
        self.calls.append(("set_viewport", width, height))

    def scroll_to_bottom(self):
        self.calls.append(("scroll_to_bottom",))
        return 1

    def capture(self, path):
        self.calls.append(("capture", str(path)))
        return Outcome.success(str(path))

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


class ScriptedAdapter(SourceAdapter):
    """Adapter returning a scripted number of items per page.

    `script` maps a category URL to a list of page outcomes: an int item
    count, "fatal" for a missing required element, or an exception to raise.
    """

    base_url = "https://example.test"

    def __init__(self, name, script, *, paginated=True, categories=None, empty_refs=0):
        self.name = name
        self.paginated = paginated
        self.script = script
        self.empty_refs = empty_refs
        self.requests = []
        super().__init__(categories=categories)

    def fetch_page(self, session, request):
        self.requests.append((request.target.url, request.index))
        pages = self.script.get(request.target.url, [])
        step = pages[request.index - 1] if request.index <= len(pages) else pages[-1] if pages else 0
        if isinstance(step, Exception):
            raise step
        if step == "fatal":
            return ExtractionResult.failed("item list missing", fatal=True)
        items = tuple(
            {"reference": "" if i < self.empty_refs else f"{request.target.name}-{request.index}-{i}"}
            for i in range(step)
        )
        return ExtractionResult(items=items)

    def to_record(self, raw, target, page_label=""):
        return ProductRecord(
            source=self.name,
            reference=raw["reference"],
            name=f"Product {raw['reference']}",
            category=self.category_for(target, page_label),
        )


class MemoryTable:
    """ProductTable kept in a dict, with savepoint-like rollback per record."""

    def __init__(self, schema: SourceSchema, fail_on=()):
        self.schema = schema
        self.rows: Dict[str, dict] = {}
        self.fail_on = set(fail_on)
        self.next_id = 1
        self.truncated = 0

    def truncate(self):
        self.rows.clear()
        self.next_id = 1
        self.truncated += 1

    def _check(self, record):
        if record.reference in self.fail_on:
            raise ValueError(f"value too long for reference {record.reference}")

    def insert(self, record):
        row = self.schema.row(record)
        if record.reference in self.rows:
            return False
        self.rows[record.reference] = {"id": self.next_id, **row}
        self.next_id += 1
        self._check(record)
        return True

    def upsert(self, record):
        row = self.schema.row(record)
        existing = self.rows.get(record.reference)
        if existing is None:
            self.rows[record.reference] = {"id": self.next_id, **row}
            self.next_id += 1
            inserted = True
        else:
            updated = dict(existing)
            for column in self.schema.mutable_columns:
                updated[column] = row[column]
            self.rows[record.reference] = updated
            inserted = False
        self._check(record)
        return inserted

    @contextmanager
    def record_scope(self):
        saved = dict(self.rows)
        saved_id = self.next_id
        try:
            yield
        except Exception:
            self.rows = saved
            self.next_id = saved_id
            raise

    def column(self, reference, field):
        return self.rows[reference][self.schema.column_for(field)]


class MemoryStore:
    """PostgresStore stand-in holding one MemoryTable per schema."""

    def __init__(self, fail_sources=(), fail_on=()):
        self.tables: Dict[str, MemoryTable] = {}
        self.fail_sources = set(fail_sources)
        self.fail_on = fail_on
        self.opened: List[str] = []

    def table(self, schema):
        if schema.source not in self.tables:
            self.tables[schema.source] = MemoryTable(schema, fail_on=self.fail_on)
        return self.tables[schema.source]

    @contextmanager
    def open_table(self, schema):
        self.opened.append(schema.source)
        if schema.source in self.fail_sources:
            raise ConnectionError("could not connect to server")
        yield self.table(schema)


@contextmanager
def fake_session_factory_cm(session):
    yield session


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def engine(memory_store):
    return IngestionEngine(store=memory_store)


def make_record(reference, name="", source="toptex", **kwargs):
    return ProductRecord(source=source, reference=reference, name=name or f"Product {reference}", **kwargs)

