"""Query orchestration for the GTM traffic datasource.

Each query in a batch runs through validate -> build request -> fetch ->
map response on its own. Failures are written into that query's result slot
so the rest of the batch still renders.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from pydantic import ValidationError

from gtm_traffic.config import Credentials, Settings, get_settings
from gtm_traffic.errors import ConfigurationError, GtmTrafficError, InvalidQuery, NoZonesSpecified
from gtm_traffic.models import (
    DataQuery,
    HealthResult,
    HealthStatus,
    QueryBody,
    QueryDataRequest,
    QueryDataResponse,
    QueryResult,
    TimeSeries,
)
from gtm_traffic.observability.metrics import DATASOURCE_HEALTHY, QUERIES_TOTAL, QUERY_DURATION
from gtm_traffic.reporting.client import ReportingClient, decode_error_body, rows_to_points, status_line
from gtm_traffic.reporting.window import (
    AlignedWindow,
    Interval,
    align_window,
    round_to_interval,
    select_interval,
)
from gtm_traffic.reporting.zones import parse_zone_list

logger = logging.getLogger(__name__)

# The access check asks for a zone nobody owns; a working setup gets exactly this 403.
ACCESS_CHECK_ZONE = "-fake-"
ACCESS_CHECK_WINDOW = timedelta(minutes=5)
ACCESS_CHECK_EXPECTED_STATUS = 403
ACCESS_CHECK_EXPECTED_TITLE = f"Some of the requested objects are unauthorized: [{ACCESS_CHECK_ZONE}]"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def metric_label(body: QueryBody) -> str:
    """The configured metric name, or ``"<zones> hits"`` when none is set."""
    return body.metric_name or f"{body.zone_names} hits"


def _decode_body(query: DataQuery) -> QueryBody:
    try:
        return QueryBody.model_validate(query.body)
    except ValidationError as e:
        raise InvalidQuery(f"Invalid query: {e.error_count()} validation error(s)") from e


class TrafficDatasource:
    """Answers query batches and health checks against the reporting API.

    The reporting client is owned by the caller. Credentials come from the
    batch itself when it carries them, otherwise from the application settings.
    """

    def __init__(
        self,
        client: ReportingClient,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._settings = settings
        self._clock = clock

    def resolve_credentials(self, raw: dict[str, Any] | None = None) -> Credentials:
        """Decode the credential bundle. Raises ConfigurationError."""
        if raw is not None:
            return Credentials.decode(raw)
        return Credentials.from_settings(self._settings or get_settings())

    async def query_data(self, request: QueryDataRequest) -> QueryDataResponse:
        """Run every query of the batch, one result slot per refId.

        Raises ConfigurationError before any query runs if credentials are unusable.
        """
        credentials = self.resolve_credentials(request.settings)

        response = QueryDataResponse()
        for query in request.queries:
            response.responses[query.ref_id] = await self.query(query, credentials)
        return response

    async def query(self, query: DataQuery, credentials: Credentials) -> QueryResult:
        """Run one query, capturing any pipeline error into the result."""
        logger.info("Query %s", query.ref_id)
        start = time.monotonic()
        try:
            series = await self._run(query, credentials)
        except GtmTrafficError as e:
            logger.info("Query %s failed (%s): %s", query.ref_id, e.kind, e.message)
            QUERIES_TOTAL.labels(status="error", kind=e.kind).inc()
            return QueryResult(error=e.message, error_kind=e.kind)
        finally:
            QUERY_DURATION.observe(time.monotonic() - start)

        QUERIES_TOTAL.labels(status="success", kind="").inc()
        return QueryResult(series=series)

    async def _run(self, query: DataQuery, credentials: Credentials) -> TimeSeries:
        body = _decode_body(query)
        start, end = query.time_range.start, query.time_range.end
        logger.info(
            "Query %s: from=%s to=%s maxDataPoints=%d zoneNames=%r metricName=%r",
            query.ref_id,
            start,
            end,
            body.max_data_points,
            body.zone_names,
            body.metric_name,
        )

        if not body.zone_names:
            raise NoZonesSpecified()

        interval = select_interval(start, end, body.max_data_points)
        window = align_window(start, end, interval, now=self._clock())

        zones = parse_zone_list(body.zone_names)
        if not zones:
            raise NoZonesSpecified("Enter one zone name")

        report = await self._client.fetch_report(credentials, zones, window, interval)
        points = rows_to_points(report.data)

        return TimeSeries(
            name=metric_label(body),
            timestamps=[t for t, _ in points],
            values=[v for _, v in points],
        )

    async def check_health(self, raw_settings: dict[str, Any] | None = None) -> HealthResult:
        """Verify credentials and connectivity by probing with a zone nobody owns."""
        try:
            credentials = self.resolve_credentials(raw_settings)
        except ConfigurationError:
            DATASOURCE_HEALTHY.set(0)
            return HealthResult(
                status=HealthStatus.UNKNOWN,
                message="Internal error. Failed to decode datasource settings",
            )

        now = self._clock()
        window = AlignedWindow(
            start=round_to_interval(now - ACCESS_CHECK_WINDOW, Interval.FINE),
            end=round_to_interval(now, Interval.FINE),
        )
        try:
            response = await self._client.check_access(credentials, window, Interval.FINE, ACCESS_CHECK_ZONE)
        except GtmTrafficError as e:
            result = HealthResult(status=HealthStatus.ERROR, message=e.message)
        else:
            result = evaluate_access_check(response)

        if result.status is HealthStatus.OK:
            DATASOURCE_HEALTHY.set(1)
        else:
            DATASOURCE_HEALTHY.set(0)
            logger.warning("Health check failed: %s", result.message)
        return result


def evaluate_access_check(response: httpx.Response) -> HealthResult:
    """Judge the access check response. Only the expected 'unauthorized object' 403 passes."""
    body = decode_error_body(response)
    title = body.errors[0].title if body is not None and body.errors else None

    if response.status_code != ACCESS_CHECK_EXPECTED_STATUS:
        detail = title if title is not None else status_line(response)
        return HealthResult(
            status=HealthStatus.ERROR,
            message=f"Unexpected status code. Datasource failed: {detail}",
        )

    if title is None:
        return HealthResult(
            status=HealthStatus.ERROR,
            message=f"Unexpected response format. Datasource failed: {status_line(response)}",
        )

    if title != ACCESS_CHECK_EXPECTED_TITLE:
        return HealthResult(
            status=HealthStatus.ERROR,
            message=f"Unexpected error type. Datasource failed: {title}",
        )

    return HealthResult(status=HealthStatus.OK, message="Data source is working")
