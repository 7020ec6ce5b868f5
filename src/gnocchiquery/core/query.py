"""Classify dashboard targets and build the Gnocchi requests they need.

``plan_query`` turns a :class:`QuerySpec` into one of the plan variants below.
Each variant carries everything needed to execute it; the datasource only
sends requests and reconciles responses.
"""

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any, assert_never

from gnocchiquery.core.errors import ValidationError
from gnocchiquery.core.labels import resolve_label
from gnocchiquery.core.models import QueryMode, QuerySpec, RequestDescriptor, TimeRange
from gnocchiquery.core.ports import TemplateResolverPort
from gnocchiquery.core.templating import (
    format_label_template,
    format_query_template,
    format_unsupported_multi_value,
)

UNLABELED = "unlabeled"

_SEARCH_MODES = (QueryMode.RESOURCE_SEARCH, QueryMode.RESOURCE_AGGREGATION)


def is_json_query(query: str) -> bool:
    """Return True if a search is a JSON document rather than a filter string."""
    return query.strip()[:1] == "{"


def validate_json_query(query: str) -> Any:
    """Parse a JSON-classified search, raising ValidationError if malformed."""
    try:
        return json.loads(query)
    except json.JSONDecodeError as err:
        raise ValidationError(f"Query JSON is malformed: {err}") from err


def check_mandatory_fields(spec: QuerySpec) -> None:
    """Raise ValidationError naming every mandatory field left empty."""
    missing: list[str] = []
    match spec.query_mode:
        case QueryMode.METRIC:
            if not spec.metric_id:
                missing.append("Metric ID")
        case QueryMode.RESOURCE:
            if not spec.resource_id:
                missing.append("Resource ID")
            if not spec.metric_name:
                missing.append("Metric regex")
        case QueryMode.RESOURCE_SEARCH | QueryMode.RESOURCE_AGGREGATION:
            if not spec.resource_search:
                missing.append("Query")
            if not spec.metric_name:
                missing.append("Metric regex")
        case QueryMode.DYNAMIC_AGGREGATES:
            pass
        case _:
            assert_never(spec.query_mode)
    if missing:
        raise ValidationError(", ".join(missing) + " must be filled")


def build_search_request(resource_type: str, search: str) -> RequestDescriptor:
    """Build a resource search request.

    JSON searches travel as the request body, filter strings as the
    ``filter`` query parameter.
    """
    url = f"v1/search/resource/{resource_type}"
    if is_json_query(search):
        return RequestDescriptor(url=url, method="POST", body=search)
    return RequestDescriptor(url=url, method="POST", params={"filter": search})


def build_measures_params(
    time_range: TimeRange, granularity: str, aggregation: str | None
) -> dict[str, Any]:
    """Build the query parameters shared by every measures request.

    ``end`` and ``stop`` carry the same value because different Gnocchi
    endpoints read different names.
    """
    params: dict[str, Any] = {"start": time_range.start_iso}
    if time_range.end is not None:
        params["end"] = time_range.end_iso
        params["stop"] = time_range.end_iso
    if granularity:
        params["granularity"] = granularity
    if aggregation is not None:
        params["aggregation"] = aggregation
    return params


def select_metrics(
    resources: Iterable[Mapping[str, Any]],
    pattern: re.Pattern[str],
    label: str,
    aggregation: str,
) -> dict[str, str]:
    """Map the id of every metric whose name matches ``pattern`` to its label."""
    metrics: dict[str, str] = {}
    for resource in resources:
        for name, metric_id in (resource.get("metrics") or {}).items():
            if pattern.search(name):
                metrics[metric_id] = resolve_label(label, resource, name, aggregation)
    return metrics


@dataclass(frozen=True)
class MetricPlan:
    """Fetch one metric by id, then its measures."""

    metric_id: str
    label: str
    aggregator: str
    measures: RequestDescriptor
    fill_gaps: bool

    @property
    def metric_request(self) -> RequestDescriptor:
        return RequestDescriptor(url=f"v1/metric/{self.metric_id}")


@dataclass(frozen=True)
class ResourcePlan:
    """Fetch one resource, then the measures of its named metric."""

    resource_type: str
    resource_id: str
    metric_name: str
    label: str
    aggregator: str
    measures: RequestDescriptor
    fill_gaps: bool

    @property
    def resource_request(self) -> RequestDescriptor:
        return RequestDescriptor(url=f"v1/resource/{self.resource_type}/{self.resource_id}")


@dataclass(frozen=True)
class ResourceSearchPlan:
    """Search resources, then fetch each matching metric as its own series."""

    search: RequestDescriptor
    metric_pattern: re.Pattern[str]
    label: str
    aggregator: str
    measures: RequestDescriptor
    fill_gaps: bool

    def measures_for(self, metric_id: str) -> RequestDescriptor:
        return replace(self.measures, url=f"v1/metric/{metric_id}/measures")


@dataclass(frozen=True)
class ResourceAggregationPlan:
    """Search resources, then aggregate all matching metrics into one series."""

    search: RequestDescriptor
    metric_pattern: re.Pattern[str]
    label: str
    aggregator: str
    measures: RequestDescriptor

    def measures_for(self, metric_ids: Iterable[str]) -> RequestDescriptor:
        params = dict(self.measures.params or {})
        params["metric"] = list(metric_ids)
        return replace(self.measures, params=params)


@dataclass(frozen=True)
class DynamicAggregatesPlan:
    """Run a server-side operations pipeline in a single request."""

    label: str
    request: RequestDescriptor

    @property
    def searched(self) -> bool:
        return "search" in (self.request.body or {})


QueryPlan = (
    MetricPlan
    | ResourcePlan
    | ResourceSearchPlan
    | ResourceAggregationPlan
    | DynamicAggregatesPlan
)


def _compile_metric_regex(metric_regex: str) -> re.Pattern[str]:
    try:
        return re.compile(metric_regex)
    except re.error as err:
        raise ValidationError(f"Metric regex is invalid: {err}") from err


def plan_query(
    spec: QuerySpec,
    time_range: TimeRange,
    resolver: TemplateResolverPort,
    scoped_vars: Mapping[str, Any] | None = None,
) -> QueryPlan:
    """Resolve, validate and plan one target.

    Args:
        spec: The dashboard target.
        time_range: Range of the query.
        resolver: Dashboard variable resolver.
        scoped_vars: Per-panel variables passed to the resolver.

    Returns:
        The plan variant matching ``spec.query_mode``.

    Raises:
        ValidationError: If mandatory fields are missing, a multi-value
            variable is used where only one value is allowed, or a JSON
            search is malformed. Nothing has been sent at that point.
    """
    check_mandatory_fields(spec)

    def resolve(template: str, formatter: Any) -> str:
        return resolver.replace(template or "", scoped_vars, formatter)

    metric_regex = resolve(spec.metric_name, "regex")
    resource_search = resolve(spec.resource_search, format_query_template)
    operations = resolve(spec.operations, format_unsupported_multi_value("Operations"))
    resource_id = resolve(spec.resource_id, format_unsupported_multi_value("Resource ID"))
    metric_id = resolve(spec.metric_id, format_unsupported_multi_value("Metric ID"))
    label = resolve(spec.label, format_label_template)
    granularity = resolve(spec.granularity, format_unsupported_multi_value("Granularity"))

    search_document = None
    if is_json_query(resource_search) and (
        spec.query_mode in _SEARCH_MODES
        or spec.query_mode is QueryMode.DYNAMIC_AGGREGATES
    ):
        search_document = validate_json_query(resource_search)

    dynamic = spec.query_mode is QueryMode.DYNAMIC_AGGREGATES
    params = build_measures_params(
        time_range, granularity, None if dynamic else spec.aggregator
    )
    fill_gaps = bool(spec.draw_missing_datapoint_as_zero)

    match spec.query_mode:
        case QueryMode.METRIC:
            return MetricPlan(
                metric_id=metric_id,
                label=label,
                aggregator=spec.aggregator,
                measures=RequestDescriptor(
                    url=f"v1/metric/{metric_id}/measures", params=params
                ),
                fill_gaps=fill_gaps,
            )
        case QueryMode.RESOURCE:
            url = (
                f"v1/resource/{spec.resource_type}/{resource_id}"
                f"/metric/{metric_regex}/measures"
            )
            return ResourcePlan(
                resource_type=spec.resource_type,
                resource_id=resource_id,
                metric_name=metric_regex,
                label=label,
                aggregator=spec.aggregator,
                measures=RequestDescriptor(url=url, params=params),
                fill_gaps=fill_gaps,
            )
        case QueryMode.RESOURCE_SEARCH:
            return ResourceSearchPlan(
                search=build_search_request(spec.resource_type, resource_search),
                metric_pattern=_compile_metric_regex(metric_regex),
                label=label,
                aggregator=spec.aggregator,
                measures=RequestDescriptor(url="", params=params),
                fill_gaps=fill_gaps,
            )
        case QueryMode.RESOURCE_AGGREGATION:
            params["reaggregation"] = spec.reaggregator
            params["fill"] = spec.fill
            params["needed_overlap"] = (
                0 if spec.needed_overlap is None else spec.needed_overlap
            )
            # gap filling is left to the server side ``fill`` option here
            return ResourceAggregationPlan(
                search=build_search_request(spec.resource_type, resource_search),
                metric_pattern=_compile_metric_regex(metric_regex),
                label=label or UNLABELED,
                aggregator=spec.aggregator,
                measures=RequestDescriptor(url="v1/aggregation/metric", params=params),
            )
        case QueryMode.DYNAMIC_AGGREGATES:
            params["fill"] = spec.fill
            params["needed_overlap"] = spec.needed_overlap
            params["details"] = "true"
            body: dict[str, Any] = {"operations": operations}
            if resource_search.strip():
                body["search"] = (
                    search_document if search_document is not None else resource_search
                )
                body["resource_type"] = spec.resource_type
            return DynamicAggregatesPlan(
                label=label or UNLABELED,
                request=RequestDescriptor(
                    url="v1/aggregates", method="POST", params=params, body=body
                ),
            )
        case _:
            assert_never(spec.query_mode)
