from contextlib import contextmanager

from catalog_etl.config import Settings
from catalog_etl.ingest import IngestionEngine
from catalog_etl.models import LoadStrategy, SourceStatus
from catalog_etl.orchestrator import Orchestrator, build_adapters, run_pipeline
from catalog_etl.schema import get_schema
from catalog_etl.sources.base import CategoryTarget

from conftest import FakeSession, MemoryStore, ScriptedAdapter, fake_session_factory_cm

A = CategoryTarget(url="https://example.test/a", name="a")
B = CategoryTarget(url="https://example.test/b", name="b")
C = CategoryTarget(url="https://example.test/c", name="c")


def _orchestrator(store, **kwargs):
    session = FakeSession()
    return Orchestrator(
        Settings(page_delay=0),
        engine=IngestionEngine(store=store),
        session_factory=lambda: fake_session_factory_cm(session),
        sleep=lambda _: None,
        **kwargs,
    )


def test_category_failure_does_not_stop_siblings():
    store = MemoryStore()
    adapter = ScriptedAdapter(
        "payper",
        {A.url: [3], B.url: [TimeoutError("Navigation timeout of 120000 ms exceeded")], C.url: [2]},
        paginated=False,
        categories=[A, B, C],
    )

    report = _orchestrator(store).run([adapter], LoadStrategy.FULL_REPLACE)

    source = report.get("payper")
    assert source.status is SourceStatus.OK
    assert source.records_extracted == 5
    assert len(store.tables["payper"].rows) == 5
    assert [e.category for e in source.events if e.stage == "crawl"] == ["b"]
    assert not report.failed


def test_navigation_failure_keeps_partial_category():
    store = MemoryStore()
    adapter = ScriptedAdapter("toptex", {A.url: [12, 7, TimeoutError("nav timeout"), 0]}, categories=[A])

    report = _orchestrator(store).run([adapter], LoadStrategy.FULL_REPLACE)

    source = report.get("toptex")
    assert source.status is SourceStatus.OK
    assert source.records_extracted == 19
    assert source.pages_visited == 3
    assert len(store.tables["toptex"].rows) == 19
    assert [e.stage for e in source.events] == ["crawl"]


def test_fatal_category_is_reported_and_skipped():
    store = MemoryStore()
    adapter = ScriptedAdapter("payper", {A.url: ["fatal"], B.url: [1]}, paginated=False, categories=[A, B])

    report = _orchestrator(store).run([adapter], LoadStrategy.FULL_REPLACE)

    source = report.get("payper")
    assert source.status is SourceStatus.OK
    assert source.pages_visited == 2
    assert any("skipped" in e.message and e.category == "a" for e in source.events)
    assert set(store.tables["payper"].rows) == {"b-1-0"}


def test_nothing_extracted_leaves_table_untouched():
    store = MemoryStore()
    store.table(get_schema("toptex")).rows["KEEP"] = {"id": 1, "reference": "KEEP"}
    adapter = ScriptedAdapter("toptex", {A.url: [0]}, categories=[A])

    report = _orchestrator(store).run([adapter], LoadStrategy.FULL_REPLACE)

    source = report.get("toptex")
    assert source.status is SourceStatus.NOOP
    assert source.ingest is None
    assert store.opened == []
    assert set(store.tables["toptex"].rows) == {"KEEP"}
    assert not report.failed


def test_records_without_reference_are_excluded():
    store = MemoryStore()
    adapter = ScriptedAdapter("toptex", {A.url: [5, 0]}, categories=[A], empty_refs=2)

    report = _orchestrator(store).run([adapter], LoadStrategy.FULL_REPLACE)

    source = report.get("toptex")
    assert source.records_extracted == 5
    assert source.ineligible == 2
    assert source.ingest.inserted == 3
    assert "" not in store.tables["toptex"].rows


def test_only_ineligible_records_is_a_noop():
    store = MemoryStore()
    adapter = ScriptedAdapter("toptex", {A.url: [2, 0]}, categories=[A], empty_refs=2)

    report = _orchestrator(store).run([adapter], LoadStrategy.FULL_REPLACE)

    assert report.get("toptex").status is SourceStatus.NOOP
    assert store.opened == []


def test_load_failure_does_not_block_next_source():
    store = MemoryStore(fail_sources={"toptex"})
    toptex = ScriptedAdapter("toptex", {A.url: [2, 0]}, categories=[A])
    payper = ScriptedAdapter("payper", {B.url: [3]}, paginated=False, categories=[B])

    report = _orchestrator(store).run([toptex, payper], LoadStrategy.FULL_REPLACE)

    assert report.get("toptex").status is SourceStatus.FAILED
    assert report.get("payper").status is SourceStatus.OK
    assert len(store.tables["payper"].rows) == 3
    assert report.failed
    assert store.opened == ["toptex", "payper"]


def test_session_failure_marks_source_failed():
    store = MemoryStore()
    calls = []

    @contextmanager
    def flaky_session():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("browser failed to launch")
        yield FakeSession()

    makito = ScriptedAdapter("makito", {A.url: [4]}, paginated=False, categories=[A])
    payper = ScriptedAdapter("payper", {B.url: [1]}, paginated=False, categories=[B])
    orchestrator = Orchestrator(
        Settings(),
        engine=IngestionEngine(store=store),
        session_factory=flaky_session,
        sleep=lambda _: None,
    )

    report = orchestrator.run([makito, payper], LoadStrategy.MERGE_UPSERT)

    assert report.get("makito").status is SourceStatus.FAILED
    assert "makito" not in store.tables
    assert report.get("payper").status is SourceStatus.OK


def test_deadline_aborts_and_discards_batch():
    store = MemoryStore()
    ticks = iter(range(100))
    toptex = ScriptedAdapter("toptex", {A.url: [2]}, categories=[A])
    payper = ScriptedAdapter("payper", {B.url: [1]}, paginated=False, categories=[B])

    orchestrator = _orchestrator(store, clock=lambda: next(ticks), deadline_seconds=3)
    report = orchestrator.run([toptex, payper], LoadStrategy.FULL_REPLACE)

    assert report.get("toptex").status is SourceStatus.ABORTED
    assert report.get("payper").status is SourceStatus.ABORTED
    assert store.opened == []
    assert report.failed
    assert payper.requests == []


def test_dry_run_does_not_touch_store():
    store = MemoryStore()
    adapter = ScriptedAdapter("payper", {A.url: [3]}, paginated=False, categories=[A])

    report = _orchestrator(store).run([adapter], LoadStrategy.FULL_REPLACE, dry_run=True)

    source = report.get("payper")
    assert source.status is SourceStatus.OK
    assert source.records_extracted == 3
    assert store.opened == []
    assert any("dry run" in e.message for e in source.events)


def test_report_to_dict():
    store = MemoryStore()
    adapter = ScriptedAdapter("toptex", {A.url: [1, 0]}, categories=[A])

    report = _orchestrator(store).run([adapter], LoadStrategy.MERGE_UPSERT)
    data = report.to_dict()

    assert data["failed"] is False
    assert data["total_records"] == 1
    assert data["sources"][0]["status"] == "ok"
    assert data["sources"][0]["pages_visited"] == 2
    assert data["sources"][0]["ingest"]["strategy"] == "merge-upsert"


def test_build_adapters_uses_catalog_override(tmp_path):
    settings = Settings(screenshot_dir=tmp_path)
    adapters = build_adapters(["makito", "toptex"], settings, {"toptex": [A]})

    assert [a.name for a in adapters] == ["makito", "toptex"]
    assert adapters[0].screenshot_dir == tmp_path
    assert adapters[1].categories == (A,)


def test_run_pipeline_defaults_to_settings_strategy(monkeypatch):
    store = MemoryStore()
    captured = {}

    def fake_run(self, adapters, strategy, *, dry_run=False):
        captured["sources"] = [a.name for a in adapters]
        captured["strategy"] = strategy
        captured["dry_run"] = dry_run
        return "report"

    monkeypatch.setattr(Orchestrator, "run", fake_run)
    settings = Settings(load_strategy=LoadStrategy.MERGE_UPSERT)

    result = run_pipeline(
        ["payper"],
        settings,
        engine=IngestionEngine(store=store),
        session_factory=lambda: fake_session_factory_cm(FakeSession()),
    )

    assert result == "report"
    assert captured == {"sources": ["payper"], "strategy": LoadStrategy.MERGE_UPSERT, "dry_run": False}



def test_zero_deadline_aborts_immediately():
    store = MemoryStore()
    adapter = ScriptedAdapter("payper", {A.url: [1]}, paginated=False, categories=[A])

    report = _orchestrator(store, clock=lambda: 10.0, deadline_seconds=0).run([adapter], LoadStrategy.FULL_REPLACE)

    assert report.get("payper").status is SourceStatus.ABORTED
    assert adapter.requests == []
