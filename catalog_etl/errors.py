"""Exceptions raised by the pipeline."""


class CatalogEtlError(Exception):
    """Base error for the catalog pipeline."""


class ConfigurationError(CatalogEtlError):
    """Missing or invalid configuration (DSN, catalog file, env values)."""


class UnknownSourceError(CatalogEtlError):
    """Requested source is not in the registry."""

    def __init__(self, source: str, available):
        self.source = source
        self.available = list(available)
        super().__init__(f"Unknown source: {source}. Available: {self.available}")
