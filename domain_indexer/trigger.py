"""
HTTP trigger for externally scheduled backfill runs.

Endpoints:
- GET /api/sync  -> one backfill from the persisted cursor to the current head

The request must carry ``Authorization: Bearer <CRON_SECRET>``. Anything else is
rejected with 401 before the event source or the store is touched.

Usage:
    uvicorn domain_indexer.trigger:create_app --factory
"""

from __future__ import annotations

import secrets
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from domain_indexer.config import Settings, get_settings
from domain_indexer.errors import AuthorizationError
from domain_indexer.infrastructure.store import RecordStore, open_store
from domain_indexer.service import run_once
from domain_indexer.sources.abstract import EventSource
from domain_indexer.sources.web3_source import Web3EventSource
from domain_indexer.utils.logging import get_logger

log = get_logger(__name__)

SourceFactory = Callable[[Settings], EventSource]
StoreFactory = Callable[[Settings], Awaitable[RecordStore]]


def check_authorization(header: Optional[str], secret: str) -> None:
    """
    Raises
    ------
    AuthorizationError
        If no secret is configured or the header does not match it.
    """
    if not secret:
        raise AuthorizationError("trigger secret is not configured")
    expected = f"Bearer {secret}"
    if header is None or not secrets.compare_digest(header.encode(), expected.encode()):
        raise AuthorizationError("bearer token mismatch")


def create_app(
    settings: Optional[Settings] = None,
    source_factory: SourceFactory = Web3EventSource.from_settings,
    store_factory: StoreFactory = open_store,
) -> FastAPI:
    """
    Build the trigger application. Source and store are created per request
    and closed when the run ends.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="Domain Indexer Trigger",
        version="0.1.0",
        description="Runs one bounded backfill per authorized request.",
    )

    @app.get("/api/sync", response_class=PlainTextResponse)
    async def sync(request: Request) -> PlainTextResponse:
        try:
            check_authorization(request.headers.get("Authorization"), settings.cron_secret)
        except AuthorizationError as exc:
            log.warning(f"[TRIGGER] Rejected: {exc}", extra={"client": getattr(request.client, "host", None)})
            return PlainTextResponse("Unauthorized", status_code=401)

        log.info("[TRIGGER] Backfill requested")
        source: Optional[EventSource] = None
        store: Optional[RecordStore] = None
        try:
            source = source_factory(settings)
            store = await store_factory(settings)
            summary = await run_once(settings, source, store)
        except Exception:  # noqa: BLE001 - any failure maps to 500; committed windows stay committed
            log.exception("[TRIGGER] Backfill failed")
            return PlainTextResponse("Internal Server Error", status_code=500)
        finally:
            if store is not None:
                await store.close()
            if source is not None:
                await source.close()

        return PlainTextResponse(summary.to_text(), status_code=200)

    return app


__all__ = ["check_authorization", "create_app"]
