"""Client for the GTM ``load-balancing-dns-traffic-all-properties`` report.

Builds the report-data request for a set of zones and an aligned window,
sends it once (no retries), and turns the row-oriented answer into time
series points.

API reference:
https://developer.akamai.com/api/core_features/reporting/load-balancing-dns-traffic-all-properties.html
"""

import logging
import re
from datetime import UTC, datetime
from typing import Any, TypedDict
from urllib.parse import quote_plus

import httpx
import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from gtm_traffic.config import Credentials, get_settings
from gtm_traffic.errors import MalformedResponse, MalformedSample, RemoteRejection, TransportError
from gtm_traffic.observability.metrics import REPORT_API_CALLS_TOTAL, REPORT_ROWS
from gtm_traffic.reporting.signing import EdgeGridSigner
from gtm_traffic.reporting.window import AlignedWindow, Interval

logger = logging.getLogger(__name__)

REPORT_DATA_PATH = "/reporting-api/v1/reports/load-balancing-dns-traffic-all-properties/versions/2/report-data"
OBJECT_TYPE = "fpdomain"
REPORT_METRICS = ["startdatetime", "hits"]

_INTEGER = re.compile(r"[+-]?[0-9]+")


# --- Request ---


class ReportRequestBody(TypedDict):
    objectType: str
    objectIds: list[str]
    metrics: list[str]


def build_report_body(zones: list[str]) -> ReportRequestBody:
    return {"objectType": OBJECT_TYPE, "objectIds": list(zones), "metrics": list(REPORT_METRICS)}


def format_api_time(t: datetime) -> str:
    """RFC3339 in UTC, escaped for use in a query string."""
    return quote_plus(t.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"))


def build_report_path(window: AlignedWindow, interval: Interval) -> str:
    return (
        f"{REPORT_DATA_PATH}?start={format_api_time(window.start)}"
        f"&end={format_api_time(window.end)}&interval={interval.value}"
    )


def build_access_check_path(window: AlignedWindow, interval: Interval, zone: str) -> str:
    """Same report, but as a GET naming a single object in the query string."""
    return f"{build_report_path(window, interval)}&objectIds={quote_plus(zone)}"


def base_url(host: str) -> str:
    if host.startswith(("https://", "http://")):
        return host.rstrip("/")
    return f"https://{host.rstrip('/')}"


# --- Response models ---


class ReportRow(BaseModel):
    startdatetime: str = ""  # epoch milliseconds
    hits: str = ""  # float, or "N/A" when the API has no value

    @field_validator("startdatetime", "hits", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        # Numbers and nulls are judged by the row parser, not rejected with the report
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class ReportMetadata(BaseModel):
    """Echo of the request. Informational only."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    available_data_ends: str = ""
    end: str = ""
    interval: str = ""
    name: str = ""
    object_ids: list[str] = Field(default_factory=list)
    object_type: str = ""
    output_type: str = ""
    row_count: int = 0
    start: str = ""
    version: str = ""


class ReportResponse(BaseModel):
    data: list[ReportRow] = Field(default_factory=list)
    metadata: ReportMetadata | None = None


class ApiError(BaseModel):
    title: str = ""
    type: str = ""


class ApiErrorResponse(BaseModel):
    errors: list[ApiError] = Field(default_factory=list)
    instance: str = ""
    title: str = ""
    type: str = ""


# --- Response handling ---


def status_line(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


def decode_error_body(response: httpx.Response) -> ApiErrorResponse | None:
    """Decode the API's problem-details body, or None if it is something else."""
    try:
        return ApiErrorResponse.model_validate_json(response.content)
    except ValidationError:
        return None


def rejection_message(response: httpx.Response) -> str:
    """First error title from the body; the HTTP status line when there is none."""
    body = decode_error_body(response)
    if body is None or not body.errors:
        return status_line(response)
    return body.errors[0].title


def parse_report(response: httpx.Response) -> ReportResponse:
    if not response.is_success:
        message = rejection_message(response)
        logger.info("Reporting API rejected request: %s", message)
        raise RemoteRejection(response.status_code, message)

    try:
        return ReportResponse.model_validate_json(response.content)
    except ValidationError as e:
        raise MalformedResponse(f"Unexpected report format: {status_line(response)}") from e


def _parse_hits(text: str) -> float:
    # "N/A" and anything else unparsable count as no traffic
    if text != text.strip() or "_" in text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def rows_to_points(rows: list[ReportRow]) -> list[tuple[datetime, float]]:
    """Convert report rows to (time, hits) pairs, keeping row order.

    A row whose start time is not an integer millisecond timestamp fails the
    whole conversion, since the sample cannot be placed on the time axis.
    """
    points: list[tuple[datetime, float]] = []
    for row in rows:
        try:
            if not _INTEGER.fullmatch(row.startdatetime):
                raise ValueError("not an integer")
            millis = int(row.startdatetime)
            seconds = millis // 1000 if millis >= 0 else -(-millis // 1000)  # toward zero
            sample_time = datetime.fromtimestamp(seconds, tz=UTC)
        except (ValueError, OverflowError, OSError) as e:
            logger.error("Error parsing sample time %r: %s", row.startdatetime, e)
            raise MalformedSample(f"Invalid sample time: {row.startdatetime!r}") from e
        points.append((sample_time, _parse_hits(row.hits)))
    return points


# --- HTTP ---


class ReportingClient:
    """Sends signed requests to the reporting API over an owned httpx client.

    Credentials are passed per call so one client can serve every batch.
    """

    def __init__(self, http: httpx.AsyncClient, max_body: int = 131072) -> None:
        self._http = http
        self._max_body = max_body

    @classmethod
    def from_settings(cls) -> "ReportingClient":
        settings = get_settings()
        return cls(
            httpx.AsyncClient(timeout=settings.request_timeout_seconds),
            max_body=settings.max_body,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ReportingClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _send(
        self,
        credentials: Credentials,
        method: str,
        path: str,
        body: ReportRequestBody | None = None,
    ) -> httpx.Response:
        url = f"{base_url(credentials.host)}{path}"
        logger.info("Reporting API %s %s", method, path)
        try:
            response = await self._http.request(
                method,
                url,
                json=body,
                auth=EdgeGridSigner(credentials, max_body=self._max_body),
            )
        except httpx.ConnectError as e:
            REPORT_API_CALLS_TOTAL.labels(method=method, status="connect_error").inc()
            raise TransportError(f"Cannot connect to reporting API at {credentials.host}: {e}") from e
        except httpx.TimeoutException as e:
            REPORT_API_CALLS_TOTAL.labels(method=method, status="timeout").inc()
            raise TransportError(f"Reporting API request timed out: {e}") from e
        except httpx.HTTPError as e:
            REPORT_API_CALLS_TOTAL.labels(method=method, status="error").inc()
            raise TransportError(f"Reporting API communication error: {e}") from e
        except httpx.InvalidURL as e:
            REPORT_API_CALLS_TOTAL.labels(method=method, status="invalid_url").inc()
            raise TransportError(f"Invalid reporting API URL for host {credentials.host!r}: {e}") from e
        except requests.RequestException as e:
            REPORT_API_CALLS_TOTAL.labels(method=method, status="signing_error").inc()
            raise TransportError(f"Cannot sign reporting API request: {e}") from e

        REPORT_API_CALLS_TOTAL.labels(method=method, status=str(response.status_code)).inc()
        logger.info("Reporting API status: %s", status_line(response))
        return response

    async def fetch_report(
        self,
        credentials: Credentials,
        zones: list[str],
        window: AlignedWindow,
        interval: Interval,
    ) -> ReportResponse:
        """POST the report-data request for ``zones`` and decode the answer."""
        response = await self._send(
            credentials, "POST", build_report_path(window, interval), build_report_body(zones)
        )
        report = parse_report(response)
        REPORT_ROWS.observe(len(report.data))
        logger.info("Reporting API returned %d rows", len(report.data))
        return report

    async def check_access(
        self,
        credentials: Credentials,
        window: AlignedWindow,
        interval: Interval,
        zone: str,
    ) -> httpx.Response:
        """GET the report for a single zone and hand back the raw response."""
        return await self._send(credentials, "GET", build_access_check_path(window, interval, zone))
