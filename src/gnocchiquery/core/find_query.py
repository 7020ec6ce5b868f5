"""Parser for the template variable query mini-language.

Two forms are understood::

    resources(<resource_type>, <display>, <value>, <search>)
    resources(<resource_type>, <attribute>, <search>)   # legacy
    metrics(<resource_id>)

In the legacy form ``attribute`` is used both as value and, prefixed with
``$``, as display template.
"""

import re
from dataclasses import dataclass

_RESOURCES = re.compile(
    r"^resources\(([^,]*),\s?([^,]*),\s?([^\)]+?),\s?([^\)]+?)\)"
)
_LEGACY_RESOURCES = re.compile(r"^resources\(([^,]*),\s?([^,]*),\s?([^\)]+?)\)")
_METRICS = re.compile(r"^metrics\(([^\)]+?)\)")


@dataclass(frozen=True)
class ResourcesFindQuery:
    """List resources matching a search."""

    resource_type: str
    display_attribute: str
    value_attribute: str
    search: str


@dataclass(frozen=True)
class MetricsFindQuery:
    """List the metric names of one resource."""

    resource_id: str


FindQuery = ResourcesFindQuery | MetricsFindQuery


def parse_find_query(query: str) -> FindQuery | None:
    """Parse a variable query.

    Returns:
        The parsed query, or None when the text matches no known form.
    """
    match = _RESOURCES.match(query)
    if match:
        resource_type, display, value, search = match.groups()
    else:
        match = _LEGACY_RESOURCES.match(query)
        if match:
            resource_type, value, search = match.groups()
            display = "$" + value
    if match:
        return ResourcesFindQuery(
            resource_type=resource_type,
            display_attribute=display,
            value_attribute=value.removeprefix("$"),
            search=search,
        )

    match = _METRICS.match(query)
    if match:
        return MetricsFindQuery(resource_id=match.group(1))
    return None
