"""
HTTP control surface for custom match ingestion.

Every endpoint answers with the same envelope:

    {"success": true, "data": ...}
    {"success": false, "error": "..."}

Run with:
    uvicorn pulseh2h.web.main:app

The module-level app builds its orchestrator from settings on startup. Tests
and embedding code call create_app(orchestrator) with their own.
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from pulseh2h import __version__
from pulseh2h.config import settings
from pulseh2h.matches import utc_now
from pulseh2h.orchestrator import IngestionOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _ok(data: Any = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"success": True, "data": data}, status_code=status_code)


def _fail(error: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse({"success": False, "error": error}, status_code=status_code)


def _orchestrator(request: Request) -> IngestionOrchestrator:
    return request.app.state.orchestrator


router = APIRouter(prefix="/api/custom-matches")


@router.get("/status")
async def get_status(request: Request):
    return _ok(_orchestrator(request).get_status())


@router.get("/stats")
async def get_stats(request: Request):
    try:
        return _ok(await _orchestrator(request).get_stats())
    except Exception as exc:
        logger.error("Failed to get ingestion stats: %s", exc)
        return _fail(str(exc))


@router.post("/start")
async def start_ingestion(request: Request):
    try:
        await _orchestrator(request).start()
    except Exception as exc:
        logger.error("Failed to start custom match ingestion: %s", exc)
        return _fail(str(exc))
    return _ok({"message": "Custom match ingestion started"})


@router.post("/stop")
async def stop_ingestion(request: Request):
    await _orchestrator(request).stop()
    return _ok({"message": "Custom match ingestion stopped"})


@router.post("/run")
async def run_ingestion(request: Request):
    result = await _orchestrator(request).run_manual_ingestion()
    return _ok(result.to_dict())


@router.post("/cleanup")
async def cleanup(request: Request):
    await _orchestrator(request).cleanup()
    return _ok({"message": "Cleanup completed"})


@router.post("/clear-cache")
async def clear_cache(request: Request):
    await _orchestrator(request).deduplicator.cleanup()
    return _ok({"message": "De-duplication cache cleared"})


@router.get("/date/{date_key}")
async def get_matches_for_date(date_key: str, request: Request):
    if not DATE_KEY_PATTERN.match(date_key):
        return _fail("Invalid date format. Use YYYY-MM-DD", status_code=400)

    try:
        matches = _orchestrator(request).storage.get_matches(date_key)
    except Exception as exc:
        logger.error("Failed to read matches for %s: %s", date_key, exc)
        return _fail(str(exc))

    return _ok({
        "date": date_key,
        "matches": [m.to_dict() for m in matches],
        "count": len(matches),
    })


@router.get("/dates")
async def list_dates(request: Request):
    dates = _orchestrator(request).storage.list_available_dates()
    return _ok({"dates": dates, "count": len(dates)})


@router.get("/storage/stats")
async def storage_stats(request: Request):
    return _ok(_orchestrator(request).storage.get_storage_stats())


@router.get("/health")
async def health(request: Request):
    status = _orchestrator(request).get_status()
    return _ok({
        "status": "healthy",
        "is_running": status["is_running"],
        "last_run": status["last_run"]["timestamp"] if status["last_run"] else None,
        "version": __version__,
        "checked_at": utc_now().isoformat(),
    })


def create_app(orchestrator: Optional[IngestionOrchestrator] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        orchestrator: Pipeline to control. When omitted one is built from
            settings at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.orchestrator is None
        if owned:
            app.state.orchestrator = build_orchestrator()
        yield
        if owned:
            await app.state.orchestrator.aclose()

    app = FastAPI(title="SC2 Pulse H2H Ingestion", version=__version__, lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.include_router(router)
    return app


logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
