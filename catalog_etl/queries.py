"""Filtered reads over the source tables, used by the catalog browser."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from psycopg2.extras import RealDictCursor

from .schema import SCHEMAS, SourceSchema

MAX_PAGE_SIZE = 500

# Unified projection: field -> SQL type used for NULL placeholders
PROJECTION = (
    ("reference", "TEXT"),
    ("name", "TEXT"),
    ("link", "TEXT"),
    ("image", "TEXT"),
    ("brand", "TEXT"),
    ("category", "TEXT"),
    ("price", "TEXT"),
    ("color_count", "INTEGER"),
    ("colors", "TEXT[]"),
)


def _select_for(schema: SourceSchema, where: List[str]) -> str:
    fields = [f"'{schema.source}' AS source"]
    for field, sql_type in PROJECTION:
        if schema.has_field(field):
            fields.append(f"{schema.column_for(field)} AS {field}")
        else:
            fields.append(f"NULL::{sql_type} AS {field}")
    where_sql = f" WHERE {' AND '.join(where)}" if where else ""
    return f"SELECT {', '.join(fields)} FROM {schema.table}{where_sql}"


def build_search_query(
    query: str = "",
    *,
    sources: Optional[Iterable[str]] = None,
    brand: Optional[str] = None,
    color: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[str, Dict[str, Any]]:
    """Build the UNION query and its parameters.

    Sources lacking the column a filter needs (brand, colour list) cannot
    match that filter and are left out of the union.
    """
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    params: Dict[str, Any] = {"limit": page_size, "offset": (page - 1) * page_size}

    wanted = list(sources) if sources else list(SCHEMAS)
    colors = [c.strip().lower() for c in (color or "").split(",") if c.strip()]

    selects = []
    for source in wanted:
        schema = SCHEMAS.get(source)
        if schema is None:
            continue
        where = []
        if query:
            where.append(f"{schema.column_for('name')} ILIKE %(pattern)s")
            params["pattern"] = f"%{query}%"
        if brand:
            if not schema.has_field("brand"):
                continue
            where.append(f"{schema.column_for('brand')} ILIKE %(brand)s")
            params["brand"] = f"%{brand}%"
        if colors:
            if not schema.has_field("colors"):
                continue
            where.append(
                f"EXISTS (SELECT 1 FROM unnest({schema.column_for('colors')}) AS c "
                f"WHERE lower(c) = ANY(%(colors)s))"
            )
            params["colors"] = colors
        selects.append(_select_for(schema, where))

    if not selects:
        return "", params

    union = "\nUNION ALL\n".join(selects)
    sql = (
        f"SELECT * FROM (\n{union}\n) AS products\n"
        f"ORDER BY name, source, reference\n"
        f"LIMIT %(limit)s OFFSET %(offset)s"
    )
    return sql, params


def search_products(conn, query: str = "", **filters) -> List[Dict[str, Any]]:
    """Return one page of matching rows tagged with their source."""
    sql, params = build_search_query(query, **filters)
    if not sql:
        return []
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        return [dict(row) for row in cur.fetchall()]
