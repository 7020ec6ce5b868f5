"""In-process dashboard variable resolver.

Implements TemplateResolverPort for applications that hold their dashboard
variables themselves rather than delegating to a dashboard server.
"""

import re
from collections.abc import Callable, Mapping
from typing import Any

from gnocchiquery.core.ports import Formatter

VariableValue = str | list[str]

_VARIABLE = re.compile(r"\$\{(\w+)\}|\[\[(\w+)\]\]|\$(\w+)")


def _format_regex(value: VariableValue) -> str:
    if isinstance(value, str):
        return value
    return "(" + "|".join(re.escape(v) for v in value) + ")"


def _format_pipe(value: VariableValue) -> str:
    return value if isinstance(value, str) else "|".join(value)


def _format_csv(value: VariableValue) -> str:
    return value if isinstance(value, str) else ",".join(value)


NAMED_FORMATS: dict[str, Callable[[VariableValue], str]] = {
    "regex": _format_regex,
    "pipe": _format_pipe,
    "csv": _format_csv,
}


def _unwrap(value: Any) -> VariableValue:
    """Accept plain values as well as ``{"text": ..., "value": ...}`` entries."""
    if isinstance(value, Mapping):
        value = value.get("value")
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return "" if value is None else str(value)


class VariableTemplateResolver:
    """Resolve ``$var``, ``${var}`` and ``[[var]]`` from a variable mapping.

    Scoped variables shadow the resolver's own. Unknown names are left as
    they are, so series label placeholders such as ``$id`` survive until the
    label resolver handles them.
    """

    def __init__(self, variables: Mapping[str, Any] | None = None) -> None:
        self._variables = dict(variables or {})

    def set_variable(self, name: str, value: VariableValue) -> None:
        """Set or replace a dashboard variable."""
        self._variables[name] = value

    def replace(
        self,
        template: str,
        scoped_vars: Mapping[str, Any] | None = None,
        formatter: Formatter | str | None = None,
    ) -> str:
        """Substitute known variables in ``template``.

        Raises:
            ValueError: If ``formatter`` names an unknown format.
        """
        if isinstance(formatter, str):
            if formatter not in NAMED_FORMATS:
                raise ValueError(f"Unknown variable format: {formatter}")
            formatter = NAMED_FORMATS[formatter]
        format_value = formatter or _format_csv
        scope = {**self._variables, **(scoped_vars or {})}

        def _replace(match: re.Match[str]) -> str:
            name = next(group for group in match.groups() if group is not None)
            if name not in scope:
                return match.group(0)
            return format_value(_unwrap(scope[name]))

        return _VARIABLE.sub(_replace, template)
