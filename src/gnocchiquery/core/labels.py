"""Series label templating.

Labels are templates such as ``"${host}-$metric"``. Placeholders resolve
against the resource's attributes and two reserved names, ``metric`` and
``aggregation``. The reserved names take precedence, so a resource attribute
literally called ``metric`` or ``aggregation`` is shadowed.
"""

import re
from collections.abc import Mapping
from typing import Any

NO_LABEL = "no label"

_PLACEHOLDER = re.compile(r"\$\{(\w+)\}|\$(\w+)")


def _substitutions(
    resource: Mapping[str, Any] | None, metric_name: str, aggregation: str
) -> dict[str, str]:
    """Merge substitution sources, later sources winning."""
    values = {str(key): str(value) for key, value in (resource or {}).items()}
    values["metric"] = str(metric_name)
    values["aggregation"] = str(aggregation)
    return values


def resolve_label(
    template: str | None,
    resource: Mapping[str, Any] | None,
    metric_name: str,
    aggregation: str,
) -> str:
    """Resolve a label template for one series.

    Each name is replaced at its first ``${name}`` occurrence and at its first
    ``$name`` occurrence; later repeats and unknown names stay verbatim.
    Substituted text is not scanned again.

    Args:
        template: Label template. Empty or None selects the default label.
        resource: Resource attributes, or None when no resource is known.
        metric_name: Value for ``$metric``.
        aggregation: Value for ``$aggregation``.

    Returns:
        The resolved label. Without a template this is the resource id, or
        ``"no label"`` when there is no resource.
    """
    if not template:
        if resource and resource.get("id") is not None:
            return str(resource["id"])
        return NO_LABEL

    values = _substitutions(resource, metric_name, aggregation)
    used: set[tuple[str, bool]] = set()

    def _replace(match: re.Match[str]) -> str:
        braced = match.group(1) is not None
        name = match.group(1) if braced else match.group(2)
        if name not in values or (name, braced) in used:
            return match.group(0)
        used.add((name, braced))
        return values[name]

    return _PLACEHOLDER.sub(_replace, template)
