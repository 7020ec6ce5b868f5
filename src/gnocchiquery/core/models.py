"""Core domain models for Gnocchi queries and their results."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# A sample as received on the wire: [timestamp_iso8601, granularity_seconds, value]
RawSample = Sequence[Any]

# A reconciled point: (value, timestamp in milliseconds since the epoch)
Point = tuple[Any, int]


class QueryMode(str, Enum):
    """How a dashboard target selects the metrics it draws."""

    METRIC = "metric"
    RESOURCE = "resource"
    RESOURCE_SEARCH = "resource_search"
    RESOURCE_AGGREGATION = "resource_aggregation"
    DYNAMIC_AGGREGATES = "dynamic_aggregates"


@dataclass(frozen=True)
class Series:
    """A named time series ready for display.

    Attributes:
        name: Display label of the series.
        points: (value, timestamp_ms) pairs, strictly ascending by timestamp.
    """

    name: str
    points: tuple[Point, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        """Return the dashboard wire shape ``{target, datapoints}``."""
        return {"target": self.name, "datapoints": [list(p) for p in self.points]}


@dataclass(frozen=True)
class TimeRange:
    """Query time range. Naive datetimes are interpreted as UTC."""

    start: datetime
    end: datetime | None = None

    @staticmethod
    def _iso(moment: datetime) -> str:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        return moment.astimezone(UTC).isoformat().replace("+00:00", "Z")

    @property
    def start_iso(self) -> str:
        return self._iso(self.start)

    @property
    def end_iso(self) -> str | None:
        return self._iso(self.end) if self.end is not None else None


@dataclass(frozen=True)
class QuerySpec:
    """A single dashboard target.

    Attributes:
        query_mode: Selection strategy for the target.
        resource_type: Gnocchi resource type used in URLs and searches.
        metric_name: Regex (or literal name) matched against metric names.
        metric_id: Metric UUID for ``metric`` mode.
        resource_id: Resource id for ``resource`` mode.
        resource_search: Filter-language string or JSON search document.
        label: Label template (``$attr`` / ``${attr}`` placeholders).
        aggregator: Aggregation method requested from the API.
        reaggregator: Cross-metric aggregation for ``resource_aggregation``.
        granularity: Granularity template, sent as-is when non-empty.
        fill: Fill strategy for server-side aggregation.
        needed_overlap: Overlap percentage for server-side aggregation.
        draw_missing_datapoint_as_zero: Synthesize zero points in gaps.
        operations: Operations pipeline for ``dynamic_aggregates``.
        hide: Hidden targets are not queried.
    """

    query_mode: QueryMode = QueryMode.METRIC
    resource_type: str = "generic"
    metric_name: str = ""
    metric_id: str = ""
    resource_id: str = ""
    resource_search: str = ""
    label: str = ""
    aggregator: str = "mean"
    reaggregator: str | None = None
    granularity: str = ""
    fill: str | None = None
    needed_overlap: float | None = None
    draw_missing_datapoint_as_zero: bool = False
    operations: str = ""
    hide: bool = False

    @classmethod
    def from_target(cls, target: Mapping[str, Any]) -> "QuerySpec":
        """Build a QuerySpec from a dashboard target dictionary.

        Accepts the editor's ``queryMode`` key as well as ``query_mode``.
        Unknown keys are ignored and missing keys keep their defaults.
        """
        mode = target.get("queryMode", target.get("query_mode", QueryMode.METRIC))
        kwargs: dict[str, Any] = {"query_mode": QueryMode(mode)}
        for name in cls.__dataclass_fields__:
            if name != "query_mode" and target.get(name) is not None:
                kwargs[name] = target[name]
        return cls(**kwargs)


@dataclass(frozen=True)
class RequestDescriptor:
    """A backend-agnostic description of one HTTP call.

    ``url`` is relative to the API base URL unless the gateway has none.
    ``body`` is either a JSON-serializable object or raw JSON text.
    """

    url: str
    method: str = "GET"
    headers: Mapping[str, str] | None = None
    params: Mapping[str, Any] | None = None
    body: Any = None


@dataclass(frozen=True)
class AuthState:
    """Credential obtained from the identity service.

    Always replaced as a whole so a token is never paired with a stale URL.
    """

    token: str | None
    base_url: str


@dataclass(frozen=True)
class ConnectionStatus:
    """Outcome of a datasource connectivity check."""

    status: str
    message: str
    title: str

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True)
class MetricFindValue:
    """A template variable option."""

    text: str
    value: Any = None


def sanitize_url(url: str) -> str:
    """Append a trailing slash to ``url`` if it lacks one."""
    return url if url.endswith("/") else url + "/"
