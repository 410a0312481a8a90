"""
Adapter for makito.es (infinite scroll catalog).
Each category URL is a single logical page; products are lazy-loaded while
scrolling.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from ..models import ProductRecord
from .base import CategoryTarget, ExtractionResult, PageRequest, SourceAdapter, absolute_url

if TYPE_CHECKING:
    from ..browser import BrowserSession

logger = logging.getLogger(__name__)

_SEARCH = (
    "https://makito.es/epages/Makito.sf/fr_FR/"
    "?ChangeAction=RealizaBusquedaAvanzada&ObjectID={object_id}&ViewAction=View&Page=1&PageSize={size}"
)

_OBJECT_IDS = (
    (49851, 1000), (23943, 1000), (23935, 1000), (23942, 10000), (23857, 10000),
    (23921, 1000), (23924, 1000), (23923, 1000), (23947, 1000), (23946, 1000),
    (23927, 1000), (23948, 1000), (23939, 1000), (23922, 1000), (23928, 1000),
    (23938, 1000), (23926, 1000), (8343132, 1000), (23940, 1000), (23925, 1000),
    (23945, 1000), (23930, 1000), (23944, 1000), (23937, 1000), (23931, 1000),
    (23933, 1000), (300703, 1000), (23932, 1000), (148654, 1000), (23836, 1000),
    (23941, 1000), (23934, 1000),
)

MAKITO_CATEGORIES = (
    CategoryTarget(url=_SEARCH.format(object_id=_OBJECT_IDS[0][0], size=_OBJECT_IDS[0][1])),
    CategoryTarget(
        url="https://makito.es/epages/Makito.sf/fr_FR/?ViewAction=Monitor&GUID=Store-67C1E0FF-E689-ADA0-FAF8-ACE979B3B378"
    ),
) + tuple(
    CategoryTarget(url=_SEARCH.format(object_id=object_id, size=size))
    for object_id, size in _OBJECT_IDS[1:]
)

SPINNER_SELECTOR = ".loading-spinner"
ITEM_SELECTOR = ".HotDeal"

EXTRACT_SCRIPT = """
() => Array.from(document.querySelectorAll('.HotDeal')).map(product => {
    const nameEl = product.querySelector('.ProductName');
    const imageEl = product.querySelector('.ImageArea img');
    const refEl = product.querySelector('.ProductNo');
    const colorEls = Array.from(product.querySelectorAll('.IconoColor'));
    return {
        name: nameEl ? (nameEl.textContent || '').trim() : '',
        href: nameEl ? (nameEl.getAttribute('href') || '') : '',
        image: imageEl ? (imageEl.getAttribute('src') || '') : '',
        reference: refEl ? (refEl.textContent || '') : '',
        colors: colorEls.map(c => c.getAttribute('title') || ''),
    };
})
"""


def clean_reference(text: str) -> str:
    """'Réf: 4120' -> '4120'."""
    text = (text or "").strip()
    for prefix in ("Réf:", "Ref:", "Réf :"):
        if text.startswith(prefix):
            return text[len(prefix):].strip()
    return text


class MakitoAdapter(SourceAdapter):
    """Infinite scroll catalog: wait, scroll to the bottom, extract once."""

    name = "makito"
    base_url = "https://makito.es"
    paginated = False
    categories = MAKITO_CATEGORIES

    viewport = (1280, 800)

    def __init__(self, *args, screenshot_dir=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.screenshot_dir = screenshot_dir
        self._captures = 0

    def fetch_page(self, session: "BrowserSession", request: PageRequest) -> ExtractionResult:
        session.set_viewport(*self.viewport)
        session.navigate(self.page_url(request))

        spinner = session.wait_for(SPINNER_SELECTOR, timeout_ms=5000)
        if spinner.ok:
            logger.info("Spinner detected, waiting for it to disappear")
            gone = session.wait_for(SPINNER_SELECTOR, hidden=True, timeout_ms=15000)
            if not gone.ok:
                logger.info(f"Spinner still visible: {gone.error}")
        else:
            logger.debug("No spinner on page")

        items_ready = session.wait_for(ITEM_SELECTOR, timeout_ms=5000)
        if not items_ready.ok:
            logger.warning(f"{ITEM_SELECTOR} not found within 5s, page may be empty or protected")

        session.scroll_to_bottom()

        if self.screenshot_dir is not None:
            session.capture(self.screenshot_dir / f"{self.name}-debug-{self._captures}.png")
            self._captures += 1

        result = self._evaluate_items(session, EXTRACT_SCRIPT)
        logger.info(f"{self.name}: {len(result.items)} products on {request.target.url}")
        return result

    def to_record(
        self,
        raw: Mapping[str, Any],
        target: CategoryTarget,
        page_label: str = "",
    ) -> ProductRecord:
        return ProductRecord(
            source=self.name,
            reference=clean_reference(raw.get("reference", "")),
            name=raw.get("name", ""),
            link=absolute_url(self.base_url, raw.get("href")),
            image=absolute_url(self.base_url, raw.get("image")),
            category=self.category_for(target, page_label),
            colors=[c for c in (raw.get("colors") or []) if c],
        )
