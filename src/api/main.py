"""FastAPI backend for the GRC portal.

Provides HTTP endpoints so the report can be consumed by web clients.
Storage access is scoped per request to the caller's bearer token and
injected through FastAPI dependencies.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from src.config import get_settings
from src.inventory.repository import InventoryRepository
from src.observability.metrics import APP_INFO, COMPONENT_HEALTHY, REQUEST_DURATION, REQUESTS_TOTAL
from src.report.generator import ReportSnapshot, format_report_markdown, score_rating
from src.report.loader import ReportLoader
from src.storage.client import StorageClient
from src.storage.session import SessionClient, SessionError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class SessionRequest(BaseModel):
    """Request body for POST /session."""

    email: str
    password: str


class SessionResponse(BaseModel):
    """Response body for POST /session."""

    access_token: str
    user_id: str
    email: str | None
    expires_at: datetime | None = None


class ReportResponse(BaseModel):
    """Response body for GET /report."""

    snapshot: ReportSnapshot
    rating: str
    markdown: str
    stale: bool
    error: str | None = None
    timestamp: str


class ComponentHealth(BaseModel):
    """Health status of a single backend component."""

    name: str
    status: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str
    components: list[ComponentHealth]


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared storage client once at startup."""
    APP_INFO.info({"version": "0.1.0"})
    app.state.storage = StorageClient.from_settings()
    logger.info("GRC portal API ready (backend %s)", app.state.storage.base_url)
    yield
    logger.info("Shutting down GRC portal API")


app = FastAPI(title="GRC & Cybersecurity Portal", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_access_token(authorization: Annotated[str | None, Header()] = None) -> str:
    """Extract the operator's bearer token from the Authorization header."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = authorization[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return token


def get_repository(request: Request, token: Annotated[str, Depends(get_access_token)]) -> InventoryRepository:
    """Inventory repository scoped to the caller's session."""
    storage: StorageClient = request.app.state.storage
    return InventoryRepository(storage.with_token(token))


def get_session_client() -> SessionClient:
    return SessionClient.from_settings()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/session", response_model=SessionResponse)
async def create_session(
    request: SessionRequest,
    sessions: Annotated[SessionClient, Depends(get_session_client)],
) -> SessionResponse:
    """Sign an operator in with email and password."""
    start = time.monotonic()
    try:
        session = await sessions.sign_in_with_password(request.email, request.password)
    except SessionError as exc:
        REQUESTS_TOTAL.labels(endpoint="/session", status="error").inc()
        REQUEST_DURATION.labels(endpoint="/session").observe(time.monotonic() - start)
        logger.warning("Sign-in failed for %s: %s", request.email, exc)
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    REQUESTS_TOTAL.labels(endpoint="/session", status="success").inc()
    REQUEST_DURATION.labels(endpoint="/session").observe(time.monotonic() - start)
    return SessionResponse(
        access_token=session["access_token"],
        user_id=session["user"]["id"],
        email=session["user"]["email"],
        expires_at=session["expires_at"],
    )


@app.get("/report", response_model=ReportResponse)
async def report(repository: Annotated[InventoryRepository, Depends(get_repository)]) -> ReportResponse:
    """Compute the security report for the caller's inventory.

    Storage failures are not errors here: the response carries the all-zero
    snapshot with ``stale`` set and the failure message in ``error``.
    """
    start = time.monotonic()
    loader = ReportLoader(repository)

    try:
        snapshot = await loader.refresh()
        generated_at = datetime.now(UTC).isoformat()
        markdown = format_report_markdown(snapshot, generated_at=generated_at)
    except Exception as exc:
        REQUESTS_TOTAL.labels(endpoint="/report", status="error").inc()
        REQUEST_DURATION.labels(endpoint="/report").observe(time.monotonic() - start)
        logger.exception("Report generation failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    status = "stale" if loader.stale else "success"
    REQUESTS_TOTAL.labels(endpoint="/report", status=status).inc()
    REQUEST_DURATION.labels(endpoint="/report").observe(time.monotonic() - start)

    return ReportResponse(
        snapshot=snapshot,
        rating=score_rating(snapshot["security_score"]),
        markdown=markdown,
        stale=loader.stale,
        error=loader.last_error,
        timestamp=generated_at,
    )


async def _check_component(client: httpx.AsyncClient, name: str, url: str, api_key: str) -> ComponentHealth:
    try:
        resp = await client.get(url, headers={"apikey": api_key})
    except Exception as exc:
        return ComponentHealth(name=name, status="unhealthy", detail=str(exc))
    if resp.status_code == 200:
        return ComponentHealth(name=name, status="healthy")
    return ComponentHealth(name=name, status="unhealthy", detail=f"HTTP {resp.status_code}")


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Check reachability of the backend's auth and storage services."""
    settings = get_settings()
    base = settings.supabase_url.rstrip("/")

    async with httpx.AsyncClient(timeout=5.0) as client:
        components = [
            await _check_component(client, "auth", f"{base}/auth/v1/health", settings.supabase_anon_key),
            await _check_component(client, "storage", f"{base}/rest/v1/", settings.supabase_anon_key),
        ]

    for comp in components:
        COMPONENT_HEALTHY.labels(component=comp.name).set(1.0 if comp.status == "healthy" else 0.0)

    healthy_count = sum(1 for c in components if c.status == "healthy")
    if healthy_count == len(components):
        overall = "healthy"
    elif healthy_count == 0:
        overall = "unhealthy"
    else:
        overall = "degraded"

    return HealthResponse(status=overall, components=components)
