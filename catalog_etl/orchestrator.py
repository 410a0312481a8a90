"""Run every configured source: crawl, filter, load, report."""
from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager
from typing import Callable, Dict, List, Optional, Sequence

from .config import Settings
from .ingest import IngestionEngine
from .models import LoadStrategy, ProductRecord, RunReport, SourceReport, SourceStatus
from .pagination import DeadlineExceeded, PaginationController
from .schema import get_schema
from .sources import get_adapter
from .sources.base import CategoryTarget, SourceAdapter

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractContextManager]


def _default_session_factory(settings: Settings) -> SessionFactory:
    from .browser import open_browser_session

    return lambda: open_browser_session(settings)


class Orchestrator:
    """
    Sequence sources one after another.

    One browser session per source is shared by all its categories. A
    source's batch is loaded only after the whole source has been crawled;
    an aborted or crashed crawl discards the batch instead of flushing it.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        engine: Optional[IngestionEngine] = None,
        session_factory: Optional[SessionFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        deadline_seconds: Optional[float] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.engine = engine
        self.session_factory = session_factory or _default_session_factory(self.settings)
        self._clock = clock
        self._deadline = clock() + deadline_seconds if deadline_seconds is not None else None
        self.controller = PaginationController(
            self.settings.page_cap,
            self.settings.page_delay,
            sleep=sleep,
            deadline_check=self._expired,
        )

    def _expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def run(
        self,
        adapters: Sequence[SourceAdapter],
        strategy: LoadStrategy,
        *,
        dry_run: bool = False,
    ) -> RunReport:
        run_report = RunReport()
        LOGGER.info("Run started: sources=%s strategy=%s", [a.name for a in adapters], strategy.value)

        for adapter in adapters:
            report = run_report.add(SourceReport(source=adapter.name))

            if self._expired():
                report.status = SourceStatus.ABORTED
                report.add_event("run", "deadline reached before source started")
                LOGGER.warning("%s: not started, run deadline reached", adapter.name)
                continue

            batch = self._crawl_source(adapter, report)
            if batch is None:
                continue
            self._load_source(adapter, batch, report, strategy, dry_run)

        summary = run_report.to_dict()
        LOGGER.info(
            "Run finished: failed=%s total_records=%s",
            summary["failed"],
            summary["total_records"],
        )
        for source in summary["sources"]:
            LOGGER.info(
                "  %s: status=%s records=%s pages=%s events=%s ingest=%s",
                source["source"],
                source["status"],
                source["records_extracted"],
                source["pages_visited"],
                len(source["events"]),
                source["ingest"],
            )
        return run_report

    def _crawl_source(self, adapter: SourceAdapter, report: SourceReport) -> Optional[List[ProductRecord]]:
        batch: List[ProductRecord] = []
        try:
            with self.session_factory() as session:
                for target in adapter.categories:
                    label = target.name or target.url
                    LOGGER.info("==== %s: category %s ====", adapter.name, label)
                    try:
                        crawl = self.controller.crawl(adapter, session, target)
                    except DeadlineExceeded:
                        raise
                    except Exception as exc:
                        report.add_event("crawl", f"category failed: {exc}", label)
                        LOGGER.error("%s: category %s failed: %s", adapter.name, label, exc)
                        continue
                    report.pages_visited += crawl.pages
                    report.events.extend(crawl.events)
                    batch.extend(crawl.records)
                    report.records_extracted = len(batch)
        except DeadlineExceeded as exc:
            report.status = SourceStatus.ABORTED
            report.add_event("run", f"{exc}; discarded {len(batch)} records")
            LOGGER.warning("%s: aborted (%s), %s records discarded", adapter.name, exc, len(batch))
            return None
        except Exception as exc:
            report.status = SourceStatus.FAILED
            report.add_event("crawl", f"source crawl failed: {exc}")
            LOGGER.error("%s: crawl failed, %s records discarded: %s", adapter.name, len(batch), exc)
            return None

        LOGGER.info("%s: %s records extracted", adapter.name, len(batch))
        return batch

    def _load_source(
        self,
        adapter: SourceAdapter,
        batch: List[ProductRecord],
        report: SourceReport,
        strategy: LoadStrategy,
        dry_run: bool,
    ) -> None:
        eligible = [r for r in batch if r.is_eligible]
        report.ineligible = len(batch) - len(eligible)
        if report.ineligible:
            report.add_event("ingest", f"{report.ineligible} records without reference excluded")

        if not eligible:
            report.status = SourceStatus.NOOP
            report.add_event("ingest", "no records extracted, table left untouched")
            LOGGER.warning("%s: nothing to insert, skipping load", adapter.name)
            return

        if dry_run:
            report.add_event("ingest", f"dry run, {len(eligible)} records not saved")
            LOGGER.info("[DRY RUN] %s: would save %s records", adapter.name, len(eligible))
            return

        try:
            engine = self.engine or IngestionEngine()
            report.ingest = engine.ingest(get_schema(adapter.name), eligible, strategy)
        except Exception as exc:
            report.status = SourceStatus.FAILED
            report.add_event("ingest", f"load failed: {exc}")
            LOGGER.error("%s: load failed: %s", adapter.name, exc)


def build_adapters(
    sources: Sequence[str],
    settings: Settings,
    catalog: Optional[Dict[str, List[CategoryTarget]]] = None,
) -> List[SourceAdapter]:
    catalog = catalog or {}
    return [
        get_adapter(
            source,
            categories=catalog.get(source),
            screenshot_dir=settings.screenshot_dir,
        )
        for source in sources
    ]


def run_pipeline(
    sources: Sequence[str],
    settings: Settings,
    *,
    strategy: Optional[LoadStrategy] = None,
    catalog: Optional[Dict[str, List[CategoryTarget]]] = None,
    dry_run: bool = False,
    deadline_seconds: Optional[float] = None,
    engine: Optional[IngestionEngine] = None,
    session_factory: Optional[SessionFactory] = None,
) -> RunReport:
    """Build adapters for the requested sources and run them once."""
    adapters = build_adapters(sources, settings, catalog)
    orchestrator = Orchestrator(
        settings,
        engine=engine,
        session_factory=session_factory,
        deadline_seconds=deadline_seconds,
    )
    return orchestrator.run(adapters, strategy or settings.load_strategy, dry_run=dry_run)
