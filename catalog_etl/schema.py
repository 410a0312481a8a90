"""Per-source table layout.

Each source owns one table keyed by `reference`. Columns that do not apply
to a source are absent from its table rather than stored as NULL.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .errors import UnknownSourceError
from .models import ProductRecord

KEY_COLUMN = "reference"


@dataclass(frozen=True)
class Column:
    name: str          # column in the table
    field: str         # ProductRecord attribute
    sql_type: str
    mutable: bool = True   # overwritten by a merge upsert


@dataclass(frozen=True)
class SourceSchema:
    source: str
    table: str
    columns: Tuple[Column, ...]

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def mutable_columns(self) -> Tuple[str, ...]:
        """Columns overwritten by a merge upsert."""
        return tuple(c.name for c in self.columns if c.mutable and c.name != KEY_COLUMN)

    def has_field(self, field: str) -> bool:
        return any(c.field == field for c in self.columns)

    def column_for(self, field: str) -> str:
        for c in self.columns:
            if c.field == field:
                return c.name
        raise KeyError(field)

    def row(self, record: ProductRecord) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for c in self.columns:
            value = getattr(record, c.field)
            if isinstance(value, tuple):
                value = list(value)
            values[c.name] = value
        return values

    def ddl(self) -> str:
        cols = ",\n    ".join(
            f"{c.name} {c.sql_type}" + (" NOT NULL UNIQUE" if c.name == KEY_COLUMN else "")
            for c in self.columns
        )
        return (
            f"CREATE TABLE IF NOT EXISTS {self.table} (\n"
            f"    id SERIAL PRIMARY KEY,\n"
            f"    {cols},\n"
            f"    last_seen TIMESTAMPTZ NOT NULL DEFAULT NOW()\n"
            f");"
        )


MAKITO = SourceSchema(
    source="makito",
    table="produits",
    columns=(
        Column("reference", "reference", "TEXT"),
        Column("nom", "name", "TEXT"),
        Column("lien", "link", "TEXT", mutable=False),
        Column("image", "image", "TEXT"),
        Column("couleurs", "colors", "TEXT[]"),
    ),
)

TOPTEX = SourceSchema(
    source="toptex",
    table="produits_toptex",
    columns=(
        Column("reference", "reference", "TEXT"),
        Column("marque", "brand", "TEXT"),
        Column("nom", "name", "TEXT"),
        Column("image", "image", "TEXT"),
        Column("prix", "price", "TEXT"),
        Column("nb_couleurs", "color_count", "INTEGER"),
        Column("categorie", "category", "TEXT"),
    ),
)

PAYPER = SourceSchema(
    source="payper",
    table="produits_payper",
    columns=(
        Column("reference", "reference", "TEXT"),
        Column("categorie", "category", "TEXT"),
        Column("nom", "name", "TEXT"),
        Column("lien", "link", "TEXT", mutable=False),
        Column("image", "image", "TEXT"),
        Column("nb_couleurs", "color_count", "INTEGER"),
        Column("marque", "brand", "TEXT"),
    ),
)

SCHEMAS: Dict[str, SourceSchema] = {s.source: s for s in (MAKITO, TOPTEX, PAYPER)}


def get_schema(source: str) -> SourceSchema:
    if source not in SCHEMAS:
        raise UnknownSourceError(source, SCHEMAS)
    return SCHEMAS[source]
