"""Unpack batched ``/v1/aggregates`` responses into series."""

from collections.abc import Mapping
from typing import Any

from gnocchiquery.core.labels import resolve_label
from gnocchiquery.core.measures import parse_measures
from gnocchiquery.core.models import Series


def _references_by_id(result: Mapping[str, Any]) -> dict[str, Mapping[str, Any]]:
    return {ref["id"]: ref for ref in result.get("references") or [] if "id" in ref}


def parse_aggregates(
    label: str | None, result: Mapping[str, Any], searched: bool
) -> list[Series]:
    """Convert an aggregates response into a flat list of series.

    Without a resource search the measures are keyed
    ``measures[metric_id][aggregation]``; with one they are keyed
    ``measures[resource_id][metric_name][aggregation]`` and ``references``
    holds the matching resources. Aggregates are never gap-filled.

    Args:
        label: Label template applied to every leaf series.
        result: Decoded response body.
        searched: True when the request carried a resource search.

    Returns:
        One series per leaf, in response order.
    """
    measures: Mapping[str, Any] = result.get("measures") or {}
    series: list[Series] = []

    if not searched:
        for metric_id, by_aggregation in measures.items():
            for aggregation, samples in by_aggregation.items():
                name = resolve_label(label, None, metric_id, aggregation)
                series.append(parse_measures(name, samples, fill_gaps=False))
        return series

    resources = _references_by_id(result)
    for resource_id, by_metric in measures.items():
        resource = resources.get(resource_id)
        for metric_name, by_aggregation in by_metric.items():
            for aggregation, samples in by_aggregation.items():
                name = resolve_label(label, resource, metric_name, aggregation)
                series.append(parse_measures(name, samples, fill_gaps=False))
    return series
