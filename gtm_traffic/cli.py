"""Command-line access to the GTM traffic datasource.

Usage:
    python -m gtm_traffic.cli --zones example.akadns.net --from 2024-01-15T00:00:00Z
    python -m gtm_traffic.cli --health

Credentials are read from GTM_* environment variables or a .env file.
"""

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime, timedelta

from gtm_traffic.datasource import TrafficDatasource
from gtm_traffic.errors import ConfigurationError
from gtm_traffic.models import DataQuery, HealthStatus, QueryDataRequest, TimeRange
from gtm_traffic.reporting.client import ReportingClient

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)

DEFAULT_LOOKBACK = timedelta(hours=6)


def _parse_time(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query GTM DNS traffic (hits) for one or more zones")
    parser.add_argument("--zones", default="", help="Comma-separated zone names")
    parser.add_argument("--from", dest="start", type=_parse_time, default=None, help="Start time (RFC3339)")
    parser.add_argument("--to", dest="end", type=_parse_time, default=None, help="End time (RFC3339), default now")
    parser.add_argument("--max-data-points", type=int, default=1000, help="Points the display can render")
    parser.add_argument("--metric-name", default="", help="Series label (default '<zones> hits')")
    parser.add_argument("--health", action="store_true", help="Only check credentials and connectivity")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level")
    return parser


async def _run(args: argparse.Namespace) -> int:
    async with ReportingClient.from_settings() as client:
        datasource = TrafficDatasource(client)

        if args.health:
            health = await datasource.check_health()
            print(f"{health.status.value}: {health.message}")
            return 0 if health.status is HealthStatus.OK else 1

        end = args.end or datetime.now(UTC)
        start = args.start or end - DEFAULT_LOOKBACK
        request = QueryDataRequest(
            queries=[
                DataQuery(
                    ref_id="A",
                    time_range=TimeRange(start=start, end=end),
                    body={
                        "zoneNames": args.zones,
                        "metricName": args.metric_name,
                        "maxDataPoints": args.max_data_points,
                    },
                )
            ]
        )
        try:
            response = await datasource.query_data(request)
        except ConfigurationError as e:
            print(f"Configuration error: {e.message}", file=sys.stderr)
            print("Set GTM_CLIENT_SECRET, GTM_HOST, GTM_ACCESS_TOKEN and GTM_CLIENT_TOKEN.", file=sys.stderr)
            return 2

    result = response.responses["A"]
    if result.series is None:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    print(result.series.name)
    for sample_time, value in result.series.points:
        print(f"{sample_time.isoformat()}\t{value:g}")
    return 0


def main() -> None:
    """Parse args, run one query (or the health check) and print the result."""
    args = _build_parser().parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
