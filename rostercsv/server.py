"""
HTTP Route Layer
================
FastAPI front end over one ``RosterEngine``.

Routes::

    GET  /health                    → "OK"
    GET  /{name}/roster             → CSV download (default region)
    GET  /{region}/{name}/roster    → CSV download
    GET  /{name}/raw                → CSV for spreadsheet import (default region)
    GET  /{region}/{name}/raw       → CSV for spreadsheet import
    POST /refresh                   → start a bulk refresh of priority characters
    GET  /cache                     → cache entries (operator view)

Run with: python -m rostercsv serve
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from .engine import RosterEngine
from .run_config import EngineConfig

logger = logging.getLogger(__name__)

_FAILURE_MESSAGE = "Could not obtain the roster (timeout or no data)"
_CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def create_app(
    config: Optional[EngineConfig] = None,
    engine: Optional[RosterEngine] = None,
) -> FastAPI:
    """Build the app. ``engine`` is started on startup and shut down on exit."""
    config = config or (engine.config if engine is not None else EngineConfig.from_env())
    engine = engine or RosterEngine(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("[SERVER] Starting roster engine...")
        await engine.start()
        app.state.engine = engine
        try:
            yield
        finally:
            logger.info("[SERVER] Shutting down roster engine...")
            await engine.shutdown()

    app = FastAPI(
        title="Roster CSV",
        description="Character roster stats as CSV",
        lifespan=lifespan,
    )

    async def _csv_or_error(request: Request, region: str, name: str, download: bool) -> Response:
        try:
            csv_text = await request.app.state.engine.get_csv_for_roster(region, name)
        except Exception as exc:
            logger.error(f"[SERVER] {region}/{name} failed: {exc}")
            return PlainTextResponse(_FAILURE_MESSAGE, status_code=504)

        if download:
            headers = {"Content-Disposition": f'attachment; filename="{region}_{name}_roster.csv"'}
        else:
            headers = {"Cache-Control": "no-cache"}
        return Response(content=csv_text, media_type=_CSV_MEDIA_TYPE, headers=headers)

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "OK"

    @app.get("/cache")
    async def cache_entries(request: Request) -> dict:
        return {"entries": request.app.state.engine.cache_snapshot()}

    @app.post("/refresh")
    async def refresh(request: Request) -> dict:
        started = request.app.state.engine.trigger_bulk_refresh(advance_clock=True)
        return {"started": started}

    @app.get("/{name}/roster")
    async def roster_default(request: Request, name: str) -> Response:
        return await _csv_or_error(request, config.default_region, name, download=True)

    @app.get("/{region}/{name}/roster")
    async def roster(request: Request, region: str, name: str) -> Response:
        return await _csv_or_error(request, region, name, download=True)

    @app.get("/{name}/raw")
    async def raw_default(request: Request, name: str) -> Response:
        return await _csv_or_error(request, config.default_region, name, download=False)

    @app.get("/{region}/{name}/raw")
    async def raw(request: Request, region: str, name: str) -> Response:
        return await _csv_or_error(request, region, name, download=False)

    return app


def serve(config: EngineConfig) -> None:
    """Run the app under uvicorn until interrupted."""
    import uvicorn

    app = create_app(config)
    logger.info(f"[SERVER] Roster CSV server on http://{config.host}:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port, log_level="info")
