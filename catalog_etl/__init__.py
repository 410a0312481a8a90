"""
Catalog crawl-and-ingest pipeline.

Collects product listings from several supplier catalogs:
- Makito - infinite scroll catalog
- TopTex - paginated product grid
- Payper - flat category lists

Each source owns its own PostgreSQL table keyed by the product reference.
"""

from .models import ProductRecord, RunReport, SourceReport, IngestStats, LoadStrategy

__all__ = [
    'ProductRecord',
    'RunReport',
    'SourceReport',
    'IngestStats',
    'LoadStrategy',
]
