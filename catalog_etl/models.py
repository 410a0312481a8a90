"""
Models shared across the crawl and ingest stages.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

T = TypeVar("T")


class LoadStrategy(str, Enum):
    """How a source batch is written to its table."""
    FULL_REPLACE = "full-replace"    # truncate, then insert (first writer wins)
    MERGE_UPSERT = "merge-upsert"    # insert or overwrite mutable columns


class SourceStatus(str, Enum):
    OK = "ok"
    NOOP = "noop"            # nothing extracted, table left untouched
    FAILED = "failed"
    ABORTED = "aborted"      # run deadline hit, batch discarded


class ProductRecord(BaseModel):
    """Canonical product row extracted from one catalog entry."""

    model_config = ConfigDict(frozen=True)

    source: str
    reference: str = ""
    name: str = ""
    image: str = ""
    link: str = ""
    brand: str = ""
    category: str = ""
    price: str = ""
    color_count: Optional[int] = None
    colors: Tuple[str, ...] = ()

    @field_validator('reference', 'name', 'image', 'link', 'brand', 'category', 'price', mode='before')
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator('colors', mode='before')
    @classmethod
    def clean_colors(cls, v):
        if not v:
            return ()
        return tuple(str(c).strip() for c in v)

    @property
    def is_eligible(self) -> bool:
        """Only records with a natural key can be ingested."""
        return bool(self.reference)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one stage: either a value or an error message."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "Outcome[T]":
        return cls(error=error)


@dataclass(frozen=True)
class CrawlEvent:
    """Non-fatal event recorded while crawling or loading a source."""

    stage: str
    message: str
    category: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"stage": self.stage, "category": self.category, "message": self.message}


@dataclass
class IngestStats:
    """Per-load counters reported by the ingestion engine."""

    strategy: LoadStrategy = LoadStrategy.FULL_REPLACE
    inserted: int = 0
    updated: int = 0
    skipped_duplicate: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.updated + self.skipped_duplicate + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped_duplicate": self.skipped_duplicate,
            "failed": self.failed,
        }


@dataclass
class SourceReport:
    """Crawl and load summary for one source."""

    source: str
    records_extracted: int = 0
    pages_visited: int = 0
    ineligible: int = 0
    status: SourceStatus = SourceStatus.OK
    events: List[CrawlEvent] = field(default_factory=list)
    ingest: Optional[IngestStats] = None

    def add_event(self, stage: str, message: str, category: str = "") -> None:
        self.events.append(CrawlEvent(stage=stage, message=message, category=category))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "status": self.status.value,
            "records_extracted": self.records_extracted,
            "pages_visited": self.pages_visited,
            "ineligible": self.ineligible,
            "ingest": self.ingest.to_dict() if self.ingest else None,
            "events": [e.to_dict() for e in self.events],
        }


@dataclass
class RunReport:
    """Aggregate summary of one pipeline run."""

    sources: List[SourceReport] = field(default_factory=list)

    def add(self, report: SourceReport) -> SourceReport:
        self.sources.append(report)
        return report

    def get(self, source: str) -> Optional[SourceReport]:
        for report in self.sources:
            if report.source == source:
                return report
        return None

    @property
    def failed(self) -> bool:
        return any(
            r.status in (SourceStatus.FAILED, SourceStatus.ABORTED) for r in self.sources
        )

    @property
    def total_records(self) -> int:
        return sum(r.records_extracted for r in self.sources)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "failed": self.failed,
            "total_records": self.total_records,
            "sources": [r.to_dict() for r in self.sources],
        }
