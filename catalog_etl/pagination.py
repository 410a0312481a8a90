"""Page loop for one category: when to fetch another page and when to stop."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .models import CrawlEvent, ProductRecord
from .sources.base import CategoryTarget, PageRequest, SourceAdapter

LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_CAP = 200


class DeadlineExceeded(Exception):
    """Run-level deadline reached between two page fetches."""


@dataclass
class CategoryCrawl:
    """Everything one category contributed to the source batch."""

    target: CategoryTarget
    records: List[ProductRecord] = field(default_factory=list)
    pages: int = 0
    events: List[CrawlEvent] = field(default_factory=list)
    skipped: bool = False
    cap_reached: bool = False


class PaginationController:
    """Fetch pages in increasing order until one is empty or the cap is hit.

    Non-paginated adapters get exactly one fetch.
    """

    def __init__(
        self,
        page_cap: int = DEFAULT_PAGE_CAP,
        page_delay: float = 2.0,
        *,
        sleep: Callable[[float], None] = time.sleep,
        deadline_check: Optional[Callable[[], bool]] = None,
    ) -> None:
        if page_cap < 1:
            raise ValueError("page_cap must be at least 1")
        self.page_cap = page_cap
        self.page_delay = page_delay
        self._sleep = sleep
        self._deadline_check = deadline_check

    def crawl(self, adapter: SourceAdapter, session, target: CategoryTarget) -> CategoryCrawl:
        crawl = CategoryCrawl(target=target)
        label = target.name or target.url
        index = 1

        while True:
            if self._deadline_check is not None and self._deadline_check():
                raise DeadlineExceeded(f"deadline reached before page {index} of {label}")

            try:
                result = adapter.fetch_page(session, PageRequest(target=target, index=index))
            except Exception as exc:
                # Earlier pages stay in the batch; the category ends here.
                crawl.pages += 1
                crawl.events.append(CrawlEvent("crawl", f"page {index} failed: {exc}", label))
                LOGGER.error("%s: page %s of %s failed: %s", adapter.name, index, label, exc)
                break
            crawl.pages += 1

            if result.fatal:
                crawl.skipped = True
                crawl.events.append(CrawlEvent("crawl", f"category skipped: {result.error}", label))
                LOGGER.warning("%s: category %s skipped: %s", adapter.name, label, result.error)
                break

            if result.error:
                crawl.events.append(CrawlEvent("extract", f"page {index}: {result.error}", label))

            if result.empty:
                if adapter.paginated:
                    LOGGER.info("%s: page %s of %s is empty, category done", adapter.name, index, label)
                break

            crawl.records.extend(adapter.build_records(result, target))

            if not adapter.paginated:
                break

            if index >= self.page_cap:
                crawl.cap_reached = True
                crawl.events.append(CrawlEvent("crawl", f"page cap reached: {self.page_cap}", label))
                LOGGER.warning("%s: page cap %s reached for %s", adapter.name, self.page_cap, label)
                break

            index += 1
            self._sleep(self.page_delay)

        LOGGER.info("%s: [%s] %s records from %s page(s)", adapter.name, label, len(crawl.records), crawl.pages)
        return crawl
