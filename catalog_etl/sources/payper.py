"""
Adapter for payperwear.com (flat category lists).
A category is one URL without pagination; the item list is required.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from ..models import ProductRecord
from .base import (
    CategoryTarget,
    ExtractionResult,
    PageRequest,
    SourceAdapter,
    absolute_url,
    parse_color_count,
    reference_from_link,
)

if TYPE_CHECKING:
    from ..browser import BrowserSession

logger = logging.getLogger(__name__)

_BASE = "https://www.payperwear.com/cat/it-fr/casual-workwear"

PAYPER_CATEGORIES = tuple(
    CategoryTarget(url=f"{_BASE}/{path}", name=path.rsplit("/", 1)[-1])
    for path in (
        "t-shirts-polo-shirts-shirts/polo-shirts",
        "t-shirts-polo-shirts-shirts/t-shirts",
        "t-shirts-polo-shirts-shirts/shirts",
        "sweatshirts-pullovers/sweatshirts",
        "sweatshirts-pullovers/pullovers",
        "sweatshirts-pullovers/polar-jackets",
        "jackets/4-season",
        "jackets/work-coats",
        "jackets/vests",
        "jackets/jackets",
        "jackets/soft-shells",
        "jackets/padded-soft-shells",
        "trousers/bermuda-shorts",
        "trousers/denim",
        "trousers/trousers",
        "trousers/sweat-trousers",
        "overalls-and-sets/overall-and-bib",
        "baselayers/thermal-shirts",
        "overalls-and-sets/anti-rain",
        "baselayers/thermal-pants",
        "swimwear/swimwear",
        "other/accessories",
        "other/merchandising",
        "other/neckwarmer",
        "topics/high-visibility",
        "topics/tech-nik",
        "topics/multipro",
        "topics/industry",
        "topics/corporate",
    )
)

TITLE_SELECTOR = ".catalogo-title h1"
ITEM_SELECTOR = ".catalogoItem"

EXTRACT_SCRIPT = """
() => Array.from(document.querySelectorAll('.catalogoItem')).map(div => {
    const a = div.querySelector('a');
    const label = div.querySelector('.catalogoItemLabel');
    const img = div.querySelector('.catalogoItemImg img');
    const colors = div.querySelector('.catalogoItemColors .label-danger');
    return {
        href: a ? (a.getAttribute('href') || '') : '',
        name: label ? (label.textContent || '') : '',
        image: img ? (img.getAttribute('src') || '') : '',
        colors: colors ? (colors.textContent || '') : '',
    };
})
"""


class PayperAdapter(SourceAdapter):
    """Flat list: label from the page title, extract everything in one pass."""

    name = "payper"
    base_url = "https://www.payperwear.com"
    paginated = False
    categories = PAYPER_CATEGORIES

    def fetch_page(self, session: "BrowserSession", request: PageRequest) -> ExtractionResult:
        session.navigate(self.page_url(request))

        title = ""
        title_ready = session.wait_for(TITLE_SELECTOR, timeout_ms=5000)
        if title_ready.ok:
            title = session.text_of(TITLE_SELECTOR)
        else:
            logger.warning(f"{self.name}: category title not found ({title_ready.error})")

        items_ready = session.wait_for(ITEM_SELECTOR, timeout_ms=5000)
        if not items_ready.ok:
            return ExtractionResult.failed(
                f"item list missing on {request.target.url}: {items_ready.error}", fatal=True
            )

        result = self._evaluate_items(session, EXTRACT_SCRIPT)
        logger.info(f"{self.name}: {len(result.items)} products on [{title or request.target.name}]")
        return ExtractionResult(items=result.items, category_label=title, error=result.error)

    def to_record(
        self,
        raw: Mapping[str, Any],
        target: CategoryTarget,
        page_label: str = "",
    ) -> ProductRecord:
        link = absolute_url(self.base_url, raw.get("href"))
        return ProductRecord(
            source=self.name,
            reference=raw.get("reference") or reference_from_link(link),
            name=raw.get("name", ""),
            link=link,
            image=absolute_url(self.base_url, raw.get("image")),
            color_count=parse_color_count(raw.get("colors")),
            category=self.category_for(target, page_label),
        )
