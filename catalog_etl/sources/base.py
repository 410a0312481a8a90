"""
Base class for catalog adapters.
All source-specific adapters inherit from this.
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Tuple
from urllib.parse import urljoin

from ..categories import DEFAULT_NORMALIZER, CategoryNormalizer
from ..models import ProductRecord

if TYPE_CHECKING:
    from ..browser import BrowserSession

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class CategoryTarget:
    """One configured catalog entry point."""
    url: str
    name: str = ""


@dataclass(frozen=True)
class PageRequest:
    target: CategoryTarget
    index: int = 1


@dataclass(frozen=True)
class ExtractionResult:
    """Raw items read from one page.

    `fatal` means a required element never appeared; the whole category is
    skipped. `error` without `fatal` is an extraction failure for this page
    only.
    """
    items: Tuple[Mapping[str, Any], ...] = ()
    category_label: str = ""
    error: Optional[str] = None
    fatal: bool = False

    @property
    def empty(self) -> bool:
        return len(self.items) == 0

    @classmethod
    def failed(cls, error: str, *, fatal: bool = False) -> "ExtractionResult":
        return cls(error=error, fatal=fatal)


def absolute_url(base: str, href: Optional[str]) -> str:
    if not href:
        return ""
    return urljoin(base, href.strip())


def reference_from_link(link: str) -> str:
    """Final '/'-delimited segment of a detail link."""
    if not link:
        return ""
    path = link.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    return path.rsplit("/", 1)[-1]


def parse_color_count(value: Any) -> int:
    """'14 couleurs' -> 14, '' -> 0."""
    if isinstance(value, int):
        return value
    match = _DIGITS_RE.search(str(value or ""))
    return int(match.group(0)) if match else 0


class SourceAdapter(ABC):
    """
    Base class for catalog adapters.

    Subclasses must implement:
    - name: source key, also used in the run report
    - base_url: used to absolutize links and images
    - categories: default list of CategoryTarget
    - fetch_page(): read one page into an ExtractionResult
    - to_record(): turn one raw item into a ProductRecord
    """

    name: str
    base_url: str
    paginated: bool = False
    categories: Tuple[CategoryTarget, ...] = ()

    def __init__(
        self,
        normalizer: CategoryNormalizer = DEFAULT_NORMALIZER,
        categories: Optional[List[CategoryTarget]] = None,
    ) -> None:
        self.normalizer = normalizer
        if categories is not None:
            self.categories = tuple(categories)

    def page_url(self, request: PageRequest) -> str:
        return request.target.url

    @abstractmethod
    def fetch_page(self, session: "BrowserSession", request: PageRequest) -> ExtractionResult:
        """Navigate to the requested page and extract its raw items."""

    @abstractmethod
    def to_record(
        self,
        raw: Mapping[str, Any],
        target: CategoryTarget,
        page_label: str = "",
    ) -> ProductRecord:
        """Build the canonical record for one raw item."""

    def category_for(self, target: CategoryTarget, page_label: str = "") -> str:
        return self.normalizer.normalize(target.name or page_label)

    def build_records(self, result: ExtractionResult, target: CategoryTarget) -> List[ProductRecord]:
        records = []
        for index, raw in enumerate(result.items):
            try:
                records.append(self.to_record(raw, target, result.category_label))
            except (TypeError, ValueError) as e:
                logger.warning(f"{self.name}: skipping malformed item {index} on {target.url}: {e}")
        return records

    def _evaluate_items(self, session: "BrowserSession", script: str) -> ExtractionResult:
        try:
            items = session.evaluate(script)
        except Exception as e:
            logger.error(f"{self.name}: extraction failed: {e}")
            return ExtractionResult.failed(f"extraction failed: {e}")
        return ExtractionResult(items=tuple(items or ()))
