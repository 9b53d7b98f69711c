"""FastAPI backend for the GTM traffic datasource.

Serves query batches and health checks to the dashboard front end.
The reporting client is built once at startup and shared across requests.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from gtm_traffic.datasource import TrafficDatasource
from gtm_traffic.errors import ConfigurationError
from gtm_traffic.models import HealthResult, QueryDataRequest, QueryDataResponse
from gtm_traffic.observability.metrics import APP_INFO, REQUEST_DURATION, REQUESTS_TOTAL
from gtm_traffic.reporting.client import ReportingClient

logger = logging.getLogger(__name__)


class HealthRequest(BaseModel):
    """Request body for POST /api/health."""

    settings: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the reporting client at startup, close it on shutdown."""
    APP_INFO.info({"version": "0.1.0"})

    client = ReportingClient.from_settings()
    app.state.datasource = TrafficDatasource(client)
    logger.info("GTM traffic datasource ready")
    try:
        yield
    finally:
        await client.aclose()
        logger.info("Shutting down GTM traffic datasource")


app = FastAPI(title="GTM Traffic Datasource", lifespan=lifespan)


def _datasource(request: Request) -> TrafficDatasource:
    return request.app.state.datasource  # type: ignore[no-any-return]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/api/query", response_model=QueryDataResponse)
async def query(body: QueryDataRequest, request: Request) -> QueryDataResponse:
    """Run a batch of queries. Per-query failures are reported in their slots."""
    start = time.monotonic()
    try:
        result = await _datasource(request).query_data(body)
    except ConfigurationError as exc:
        REQUESTS_TOTAL.labels(endpoint="/api/query", status="error").inc()
        raise HTTPException(status_code=400, detail=exc.message) from exc
    finally:
        REQUEST_DURATION.labels(endpoint="/api/query").observe(time.monotonic() - start)

    REQUESTS_TOTAL.labels(endpoint="/api/query", status="success").inc()
    return result


@app.get("/api/health", response_model=HealthResult)
async def health(request: Request) -> HealthResult:
    """Check the configured credentials against the reporting API."""
    return await _health(request, None)


@app.post("/api/health", response_model=HealthResult)
async def health_with_settings(request: Request, body: HealthRequest | None = None) -> HealthResult:
    """Check the credentials sent in the body (falls back to configured ones)."""
    return await _health(request, body.settings if body else None)


async def _health(request: Request, settings: dict[str, Any] | None) -> HealthResult:
    start = time.monotonic()
    result = await _datasource(request).check_health(settings)
    REQUEST_DURATION.labels(endpoint="/api/health").observe(time.monotonic() - start)
    REQUESTS_TOTAL.labels(endpoint="/api/health", status=result.status.value).inc()
    return result
