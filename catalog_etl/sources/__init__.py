"""
Catalog adapters for the supported sources.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Type

from ..categories import DEFAULT_NORMALIZER, CategoryNormalizer
from ..errors import UnknownSourceError
from .base import CategoryTarget, ExtractionResult, PageRequest, SourceAdapter
from .makito import MakitoAdapter
from .payper import PayperAdapter
from .toptex import TopTexAdapter

SOURCES: Dict[str, Type[SourceAdapter]] = {
    MakitoAdapter.name: MakitoAdapter,
    TopTexAdapter.name: TopTexAdapter,
    PayperAdapter.name: PayperAdapter,
}


def get_adapter(
    source: str,
    *,
    categories: Optional[List[CategoryTarget]] = None,
    normalizer: CategoryNormalizer = DEFAULT_NORMALIZER,
    screenshot_dir=None,
) -> SourceAdapter:
    """Get adapter instance for a source name."""
    if source not in SOURCES:
        raise UnknownSourceError(source, SOURCES)
    adapter_cls = SOURCES[source]
    if adapter_cls is MakitoAdapter:
        return MakitoAdapter(normalizer, categories, screenshot_dir=screenshot_dir)
    return adapter_cls(normalizer, categories)


__all__ = [
    'SOURCES',
    'get_adapter',
    'CategoryTarget',
    'ExtractionResult',
    'PageRequest',
    'SourceAdapter',
    'MakitoAdapter',
    'TopTexAdapter',
    'PayperAdapter',
]
