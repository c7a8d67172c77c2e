from __future__ import annotations

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Tuple

import typer
import uvicorn

from domain_indexer.config import Settings, get_settings
from domain_indexer.infrastructure.db_factory import SCHEMA_PATH, apply_schema, build_dsn
from domain_indexer.infrastructure.store import RecordStore, open_store
from domain_indexer.pipeline.normalizer import normalize, parse_identifier
from domain_indexer.reporter import print_record, print_summary
from domain_indexer.service import run_daemon, run_once
from domain_indexer.sources.abstract import EventSource
from domain_indexer.sources.web3_source import Web3EventSource
from domain_indexer.trigger import create_app
from domain_indexer.utils.logging import configure_logging

app = typer.Typer(help="Domain name event indexer CLI.")


def _configure() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json, app_env=settings.app_env)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"RPC={settings.rpc_url} | registrar={settings.registrar_addr} "
        f"token={settings.effective_token_addr} resolver={settings.resolver_addr} | "
        f"deployment_block={settings.deployment_block} window={settings.backfill_window_size}"
    )
    typer.echo(
        f"store={settings.store_backend} "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"trigger secret {'set' if settings.cron_secret else 'NOT set'}"
    )


@app.command("init-db")
def init_db(
    schema: Path = typer.Option(SCHEMA_PATH, "--schema", help="SQL file to apply."),
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
) -> None:
    """
    Create the read-model tables and view.
    """
    _configure()
    apply_schema(dsn or build_dsn(), schema_path=schema)
    typer.echo(f"Schema applied from {schema}.")


@asynccontextmanager
async def _open_resources(settings: Settings) -> AsyncIterator[Tuple[EventSource, RecordStore]]:
    """
    Open the store, then the event source; whichever was opened is closed on exit.
    """
    store = await open_store(settings)
    try:
        source = Web3EventSource.from_settings(settings)
        try:
            yield source, store
        finally:
            await source.close()
    finally:
        await store.close()


async def _backfill(from_block: Optional[int], to_block: Optional[int], as_json: bool) -> None:
    settings = get_settings()
    async with _open_resources(settings) as (source, store):
        summary = await run_once(settings, source, store, from_block=from_block, to_block=to_block)
    if as_json:
        typer.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        print_summary(summary)


@app.command()
def backfill(
    from_block: Optional[int] = typer.Option(
        None, "--from-block", help="First block to process (default: cursor + 1)."
    ),
    to_block: Optional[int] = typer.Option(
        None, "--to-block", help="Last block to process (default: current head)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
) -> None:
    """
    Run one bounded backfill and checkpoint the cursor per window.
    """
    _configure()
    asyncio.run(_backfill(from_block, to_block, as_json))


async def _daemon() -> None:
    settings = get_settings()
    async with _open_resources(settings) as (source, store):
        await run_daemon(settings, source, store)


@app.command()
def daemon() -> None:
    """
    Backfill to the current head, then keep applying live events.
    """
    _configure()
    asyncio.run(_daemon())


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (default from settings)."),
) -> None:
    """
    Serve the authenticated backfill trigger endpoint.
    """
    _configure()
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_config=None,
    )


async def _show(record_id: str) -> None:
    settings = get_settings()
    store = await open_store(settings)
    try:
        record = await store.get_record(record_id)
    finally:
        await store.close()
    print_record(record)


@app.command()
def show(
    identifier: str = typer.Argument(..., help="Name, 0x-prefixed node, or decimal token id."),
) -> None:
    """
    Print the stored record for a name, node or token id.
    """
    _configure()
    try:
        record_id = normalize(parse_identifier(identifier))
    except (TypeError, ValueError) as exc:
        typer.echo(f"Invalid identifier: {exc}", err=True)
        raise typer.Exit(code=2)
    typer.echo(f"id={record_id}")
    asyncio.run(_show(record_id))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
