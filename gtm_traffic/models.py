"""Pydantic models for the query batch exchanged with the panel front end."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TimeRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: datetime = Field(alias="from")
    end: datetime = Field(alias="to")


class QueryBody(BaseModel):
    """The panel's per-query settings."""

    model_config = ConfigDict(populate_by_name=True)

    zone_names: str = Field(default="", alias="zoneNames")
    metric_name: str = Field(default="", alias="metricName")
    max_data_points: int = Field(default=0, alias="maxDataPoints", ge=0)
    interval_ms: int = Field(default=0, alias="intervalMs", ge=0)  # unused
    data_source_id: int = Field(default=0, alias="dataSourceId", ge=0)  # unused


class DataQuery(BaseModel):
    """One query of a batch. The body is validated later, per query."""

    model_config = ConfigDict(populate_by_name=True)

    ref_id: str = Field(default="A", alias="refId")
    time_range: TimeRange = Field(alias="timeRange")
    body: dict[str, Any] = Field(default_factory=dict, alias="json")


class QueryDataRequest(BaseModel):
    """A batch of queries, optionally carrying the datasource credentials."""

    settings: dict[str, Any] | None = None
    queries: list[DataQuery] = Field(default_factory=list)


class TimeSeries(BaseModel):
    name: str
    timestamps: list[datetime] = Field(default_factory=list)
    values: list[float] = Field(default_factory=list)

    @property
    def points(self) -> list[tuple[datetime, float]]:
        return list(zip(self.timestamps, self.values, strict=True))


class QueryResult(BaseModel):
    """Result slot for one query: a series, or the reason there is none."""

    series: TimeSeries | None = None
    error: str | None = None
    error_kind: str | None = None


class QueryDataResponse(BaseModel):
    responses: dict[str, QueryResult] = Field(default_factory=dict)


class HealthStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
    UNKNOWN = "unknown"


class HealthResult(BaseModel):
    status: HealthStatus
    message: str
