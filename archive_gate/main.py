"""FastAPI application for archive-gate.

Provides:
- Closed-hours gating for the archive routes (redirect middleware)
- Archive status and a once-per-second countdown stream (/api/archive/...)
- Launch countdown (/launch-countdown)
- Proxies to the Outside Observations comparison / vector-store API (/api/...)
- Health checks (/health)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
load_dotenv(override=True)

from fastapi import FastAPI, Query, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse
from pydantic import BaseModel

from archive_gate.closed_hours import (
    closed_hours_label,
    evaluate_gate,
    time_until_launch,
    utc_now,
)
from archive_gate.config import get_settings
from archive_gate.gate_monitor import GateMonitor
from archive_gate.gating import GatingPolicy, resolve_page_type
from archive_gate.models.entities import (
    ClosedHoursConfig,
    CompareImagesRequest,
    CompareItemsRequest,
    GateSnapshot,
    LaunchCountdownValue,
    VectorStoreItemRequest,
    VectorStoreQueryRequest,
)
from archive_gate.observations_client import (
    COMPARE_CONFIG_MESSAGES,
    QUERY_CONFIG_MESSAGES,
    SERVER_CONFIG_MESSAGES,
    UPDATE_CONFIG_MESSAGES,
    ObservationsAPIError,
    ObservationsClient,
)

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CLOSED_TITLE = "The archive will open in:"
OPEN_TITLE = "The archive is open."
INVALID_BODY_MESSAGE = "Invalid request body. Expected JSON."


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # Startup
    logger.info("Starting archive-gate API...")
    settings = get_settings()

    app.state.clock = utc_now
    app.state.closed_hours = settings.closed_hours
    app.state.gating_policy = GatingPolicy(
        open_route=settings.archive_route,
        closed_route=settings.archive_closed_route,
        gated_prefixes=settings.gated_prefixes,
    )
    app.state.launch_at = settings.launch_at

    if not app.state.closed_hours.enabled:
        logger.warning("Closed hours not configured, archive gate disabled")
    else:
        logger.info(f"Archive closed {closed_hours_label(app.state.closed_hours)}")

    # Read the window and clock through app.state so they can be swapped at runtime
    app.state.gate_monitor = GateMonitor(
        lambda: app.state.closed_hours,
        clock=lambda: app.state.clock(),
        interval_s=settings.gate_poll_interval_s,
    )
    await app.state.gate_monitor.start()

    app.state.observations_client = ObservationsClient()
    if not app.state.observations_client.configured:
        logger.warning("Outside Observations API not configured, proxy routes will return 500")

    yield

    # Shutdown
    logger.info("Shutting down archive-gate API...")
    await app.state.gate_monitor.stop()
    await app.state.observations_client.aclose()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="archive-gate",
    description="Closed-hours gate and AI service proxy for the Outside Observations archive",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def current_snapshot(app: FastAPI) -> GateSnapshot:
    """Evaluate the gate against a fresh clock reading."""
    return evaluate_gate(app.state.closed_hours, app.state.clock())


@app.middleware("http")
async def closed_hours_gate(request: Request, call_next):
    """Redirect gated routes according to the closed-hours window."""
    pathname = request.url.path
    page_type = resolve_page_type(pathname)
    request.state.page_type = page_type

    policy: Optional[GatingPolicy] = getattr(request.app.state, "gating_policy", None)
    closed_hours: Optional[ClosedHoursConfig] = getattr(request.app.state, "closed_hours", None)
    gated = (
        policy is not None
        and closed_hours is not None
        and closed_hours.enabled
        and request.method in ("GET", "HEAD")
        and not pathname.startswith("/api/")
    )

    response = None
    if gated:
        snapshot = current_snapshot(request.app)
        decision = policy.decide(pathname, snapshot.is_closed)
        target = policy.target_for(decision)
        if target is not None:
            logger.debug(f"{decision.value}: {pathname} -> {target}")
            response = RedirectResponse(target, status_code=307)

    if response is None:
        response = await call_next(request)
    response.headers["x-page-type"] = page_type.value
    response.headers["x-pathname"] = pathname
    return response


@app.exception_handler(ObservationsAPIError)
async def observations_error_handler(request: Request, exc: ObservationsAPIError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def proxy_body_error_handler(request: Request, exc: RequestValidationError):
    """Answer unparseable proxy bodies with 400 {error} instead of 422."""
    if request.method == "POST" and request.url.path.startswith("/api/"):
        logger.warning(f"Rejected body for {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": INVALID_BODY_MESSAGE})
    return await request_validation_exception_handler(request, exc)


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    gate_enabled: bool
    observations_configured: bool


class ArchivePageResponse(BaseModel):
    """Response model for the archive pages."""
    page_type: str
    title: str
    status: GateSnapshot


class LaunchCountdownResponse(BaseModel):
    """Response model for the launch countdown."""
    launch_at: str
    launched: bool
    remaining: LaunchCountdownValue


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


# =============================================================================
# Pages
# =============================================================================

@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint."""
    return {"message": "Welcome to archive-gate API. Visit /docs for API documentation."}


@app.get("/health", response_model=HealthResponse)
@app.head("/health", include_in_schema=False)
async def health_check(request: Request):
    """Check API status."""
    return HealthResponse(
        status="ok",
        gate_enabled=request.app.state.closed_hours.enabled,
        observations_configured=request.app.state.observations_client.configured,
    )


@app.get("/archive", response_model=ArchivePageResponse)
async def archive_page(request: Request):
    """Open archive page. Redirected to the closed page during closed hours."""
    return ArchivePageResponse(
        page_type=request.state.page_type.value,
        title=OPEN_TITLE,
        status=current_snapshot(request.app),
    )


@app.get("/archive/closed", response_model=ArchivePageResponse)
async def archive_closed_page(request: Request):
    """Closed archive page with the countdown to reopening."""
    snapshot = current_snapshot(request.app)
    return ArchivePageResponse(
        page_type=request.state.page_type.value,
        title=CLOSED_TITLE if snapshot.is_closed else OPEN_TITLE,
        status=snapshot,
    )


@app.get("/launch-countdown", response_model=LaunchCountdownResponse)
async def launch_countdown(request: Request):
    """Days/hours/minutes/seconds until launch."""
    launch_at = request.app.state.launch_at
    remaining = time_until_launch(launch_at, request.app.state.clock())
    return LaunchCountdownResponse(
        launch_at=launch_at.isoformat(),
        launched=remaining.is_zero,
        remaining=remaining,
    )


# =============================================================================
# Archive Status
# =============================================================================

@app.get("/api/archive/status", response_model=GateSnapshot)
async def archive_status(request: Request):
    """Current closed state and time to the next boundary."""
    return current_snapshot(request.app)


@app.get("/api/archive/countdown/stream")
async def archive_countdown_stream(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, description="Close the stream after this many events"),
):
    """Server-Sent Events stream with one gate snapshot per tick."""
    monitor: GateMonitor = request.app.state.gate_monitor
    queue = monitor.subscribe()

    async def events():
        sent = 0
        try:
            while limit is None or sent < limit:
                if await request.is_disconnected():
                    break
                try:
                    snapshot = await asyncio.wait_for(queue.get(), timeout=monitor.interval_s * 5)
                except asyncio.TimeoutError:
                    # Keep the connection alive between ticks
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {snapshot.model_dump_json()}\n\n"
                sent += 1
        finally:
            monitor.unsubscribe(queue)

    return StreamingResponse(events(), media_type="text/event-stream")


# =============================================================================
# Outside Observations Proxies
# =============================================================================

@app.post("/api/compare-images")
async def compare_images(request: Request, payload: CompareImagesRequest):
    """Compare two images via the AI comparison service."""
    client: ObservationsClient = request.app.state.observations_client
    client.check_configured(COMPARE_CONFIG_MESSAGES)
    if not payload.image1 or not payload.image2:
        return _bad_request("Both image1 and image2 payloads are required.")
    return await client.compare_images(payload.image1, payload.image2)


@app.post("/api/compare-items")
async def compare_items(request: Request, payload: CompareItemsRequest):
    """Compare two archive items via the AI comparison service."""
    client: ObservationsClient = request.app.state.observations_client
    client.check_configured(COMPARE_CONFIG_MESSAGES)
    if not payload.item1 or not payload.item2:
        return _bad_request("Both item1 and item2 payloads are required.")
    return await client.compare_items(payload.item1, payload.item2)


@app.post("/api/vector-store/query")
async def vector_store_query(request: Request, payload: VectorStoreQueryRequest):
    """Semantic search against the vector store."""
    client: ObservationsClient = request.app.state.observations_client
    client.check_configured(QUERY_CONFIG_MESSAGES)
    if not payload.query or not isinstance(payload.query, str):
        return _bad_request("A search query is required and must be a string.")
    return await client.query_vector_store(payload.query, payload.max_items)


@app.post("/api/vector-store/add-image")
async def vector_store_add_image(request: Request, payload: VectorStoreItemRequest):
    """Add an image description to the vector store."""
    client: ObservationsClient = request.app.state.observations_client
    client.check_configured(SERVER_CONFIG_MESSAGES)
    if not payload.id or not payload.description:
        return _bad_request("Both id and description are required")
    return await client.add_image(payload.id, payload.description)


@app.post("/api/vector-store/update-item")
async def vector_store_update_item(request: Request, payload: VectorStoreItemRequest):
    """Update the description of an existing vector-store item."""
    client: ObservationsClient = request.app.state.observations_client
    client.check_configured(UPDATE_CONFIG_MESSAGES)
    if not payload.id or not payload.description:
        return _bad_request("Both id and description are required")
    return await client.update_item(payload.id, payload.description)


@app.get("/api/vector-store/get-all-images")
async def vector_store_get_all_images(request: Request):
    """List every image in the vector store."""
    client: ObservationsClient = request.app.state.observations_client
    return await client.get_all_images()


@app.delete("/api/vector-store/delete-image/{item_id}")
async def vector_store_delete_image(request: Request, item_id: str):
    """Delete an image from the vector store."""
    client: ObservationsClient = request.app.state.observations_client
    client.check_configured(SERVER_CONFIG_MESSAGES)
    if not item_id.strip():
        return _bad_request("Image ID is required")
    return await client.delete_image(item_id)


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
