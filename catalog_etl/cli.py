"""
CLI for the catalog crawl-and-ingest pipeline.

Usage:
    python -m catalog_etl.cli run
    python -m catalog_etl.cli run --source toptex --strategy merge-upsert
    python -m catalog_etl.cli init-db
    python -m catalog_etl.cli search --query polo --source payper
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Optional, Tuple

import click
import psycopg2

from .config import Settings, load_catalog
from .errors import CatalogEtlError
from .ingest import PostgresStore
from .models import LoadStrategy
from .orchestrator import run_pipeline
from .queries import search_products
from .schema import SCHEMAS
from .sources import SOURCES

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose: bool):
    """Catalog crawl-and-ingest CLI."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.option('--source', '-s', 'sources', multiple=True, type=click.Choice(list(SOURCES)),
              help='Source to crawl (repeatable, default: all)')
@click.option('--strategy', type=click.Choice([s.value for s in LoadStrategy]),
              help='Load strategy (default: CRAWL_LOAD_STRATEGY or full-replace)')
@click.option('--catalog', type=click.Path(exists=True, dir_okay=False),
              help='YAML file overriding the category URLs')
@click.option('--deadline', type=float, help='Abort the run after this many seconds')
@click.option('--dry-run', is_flag=True, help='Crawl but do not save to database')
def run(sources: Tuple[str, ...], strategy: Optional[str], catalog: Optional[str],
        deadline: Optional[float], dry_run: bool):
    """Crawl the catalogs and load each source's table."""
    try:
        settings = Settings.from_env()
        catalog_targets = load_catalog(catalog) if catalog else None
    except CatalogEtlError as e:
        LOGGER.error(f"Configuration error: {e}")
        sys.exit(EXIT_FAILED)

    selected = list(sources) or list(SOURCES)
    try:
        report = run_pipeline(
            selected,
            settings,
            strategy=LoadStrategy(strategy) if strategy else None,
            catalog=catalog_targets,
            dry_run=dry_run,
            deadline_seconds=deadline,
        )
    except KeyboardInterrupt:
        LOGGER.warning("Interrupted, unsaved batches discarded")
        sys.exit(EXIT_INTERRUPTED)

    click.echo(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    sys.exit(EXIT_FAILED if report.failed else EXIT_OK)


@cli.command()
def init_db():
    """Create the source tables if they do not exist."""
    try:
        PostgresStore().create_tables(SCHEMAS.values())
    except (CatalogEtlError, psycopg2.Error) as e:
        click.echo(f"Error initializing schema: {e}")
        sys.exit(EXIT_FAILED)
    click.echo(f"Tables ready: {', '.join(s.table for s in SCHEMAS.values())}")


@cli.command()
@click.option('--query', '-q', default='', help='Case-insensitive name filter')
@click.option('--source', '-s', 'sources', multiple=True, type=click.Choice(list(SCHEMAS)),
              help='Restrict to source (repeatable)')
@click.option('--brand', '-b', help='Brand filter (sources with a brand column)')
@click.option('--color', '-c', help='Colour filter, comma separated (sources with colour lists)')
@click.option('--page', '-p', default=1, help='Page number')
@click.option('--limit', '-l', default=20, help='Page size')
def search(query: str, sources: Tuple[str, ...], brand: Optional[str], color: Optional[str],
           page: int, limit: int):
    """Search the stored products."""
    store = PostgresStore()
    try:
        conn = store.connect()
    except (CatalogEtlError, psycopg2.Error) as e:
        click.echo(f"Error: {e}")
        sys.exit(EXIT_FAILED)
    try:
        rows = search_products(
            conn, query, sources=sources or None, brand=brand, color=color,
            page=page, page_size=limit,
        )
    except psycopg2.Error as e:
        click.echo(f"Error searching products: {e}")
        sys.exit(EXIT_FAILED)
    finally:
        conn.close()

    if not rows:
        click.echo("No products found")
        return

    for row in rows:
        colors = ", ".join(row["colors"] or []) if row.get("colors") else row.get("color_count")
        click.echo(f"[{row['source']}] {row['reference']} | {row['name']}")
        if row.get("brand"):
            click.echo(f"  Marque: {row['brand']}")
        if row.get("category"):
            click.echo(f"  Catégorie: {row['category']}")
        if row.get("price"):
            click.echo(f"  Prix: {row['price']}")
        click.echo(f"  Couleurs: {colors if colors is not None else 'N/A'}")
        click.echo(f"  Image: {row['image'] or 'N/A'}")


if __name__ == '__main__':
    cli()
