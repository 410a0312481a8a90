"""
Adapter for toptex.fr (paginated product grid).
Pages are addressed with ?page=N&limit=24; an empty page ends the category.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping
from urllib.parse import urlencode

from ..models import ProductRecord
from .base import (
    CategoryTarget,
    ExtractionResult,
    PageRequest,
    SourceAdapter,
    absolute_url,
    parse_color_count,
)

if TYPE_CHECKING:
    from ..browser import BrowserSession

logger = logging.getLogger(__name__)

PAGE_SIZE = 24

TOPTEX_CATEGORIES = (
    CategoryTarget(url="https://www.toptex.fr/produits/vetements.html", name="vetements"),
    CategoryTarget(url="https://www.toptex.fr/produits/casquettes-et-bonnets.html", name="casquettes-et-bonnets"),
    CategoryTarget(url="https://www.toptex.fr/produits/bagagerie.html", name="bagagerie"),
    CategoryTarget(url="https://www.toptex.fr/produits/linge-de-maison.html", name="linge-de-maison"),
    CategoryTarget(url="https://www.toptex.fr/produits/chaussures.html", name="chaussures"),
)

EXTRACT_SCRIPT = """
() => Array.from(document.querySelectorAll('ul#cat_products_grid li[data-objectid]')).map(li => {
    const refSpan = li.querySelector('.product-ref span');
    const descLink = li.querySelector('.product-description a');
    const brandTag = descLink ? descLink.querySelector('b') : null;
    const img = li.querySelector('.product-image-wrapper img');
    const price = li.querySelector('.product-price');
    const colors = li.querySelector('.product-colors-nb-value');
    return {
        reference: refSpan ? (refSpan.textContent || '') : '',
        object_id: li.getAttribute('data-objectid') || '',
        brand: brandTag ? (brandTag.textContent || '') : '',
        description: descLink ? (descLink.textContent || '') : '',
        image: img ? (img.getAttribute('src') || '') : '',
        price: price ? (price.textContent || '') : '',
        color_count: colors ? (colors.textContent || '') : '0',
    };
})
"""


def split_description(text: str) -> str:
    """'Kariban - Espadrilles unisexe' -> 'Espadrilles unisexe'."""
    text = (text or "").strip()
    parts = text.split(" - ")
    return parts[1].strip() if len(parts) > 1 else text


class TopTexAdapter(SourceAdapter):
    """Paginated grid: one navigation per page, no scrolling."""

    name = "toptex"
    base_url = "https://www.toptex.fr"
    paginated = True
    categories = TOPTEX_CATEGORIES
    page_size = PAGE_SIZE

    def page_url(self, request: PageRequest) -> str:
        query = urlencode({"page": request.index, "limit": self.page_size})
        separator = "&" if "?" in request.target.url else "?"
        return f"{request.target.url}{separator}{query}"

    def fetch_page(self, session: "BrowserSession", request: PageRequest) -> ExtractionResult:
        session.navigate(self.page_url(request))
        result = self._evaluate_items(session, EXTRACT_SCRIPT)
        logger.info(f"{self.name}: {len(result.items)} products on page {request.index} of {request.target.name}")
        return result

    def to_record(
        self,
        raw: Mapping[str, Any],
        target: CategoryTarget,
        page_label: str = "",
    ) -> ProductRecord:
        return ProductRecord(
            source=self.name,
            reference=raw.get("reference", ""),
            brand=raw.get("brand", ""),
            name=split_description(raw.get("description", "")),
            image=absolute_url(self.base_url, raw.get("image")),
            price=raw.get("price", ""),
            color_count=parse_color_count(raw.get("color_count")),
            category=self.category_for(target, page_label),
        )
