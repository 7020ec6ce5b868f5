"""Per-field formatters for dashboard variable substitution."""

from gnocchiquery.core.errors import ValidationError
from gnocchiquery.core.ports import Formatter


def format_unsupported_multi_value(field: str) -> Formatter:
    """Build a formatter that rejects multi-value variables for ``field``."""

    def _format(value: str | list[str]) -> str:
        if isinstance(value, str):
            return value
        if len(value) > 1:
            raise ValidationError(
                f"Templating multi value in '{field}' is unsupported"
            )
        return value[0] if value else ""

    return _format


def format_label_template(value: str | list[str]) -> str:
    """Use the first value of a multi-value variable in labels."""
    if isinstance(value, str):
        return value
    return value[0] if value else ""


def format_query_template(value: str | list[str]) -> str:
    """Render a multi-value variable as a quoted list literal.

    The values ``a`` and ``b`` become ``["a", "b"]``, which the filter
    language accepts on the right-hand side of ``in``.
    """
    if isinstance(value, str):
        return value
    quoted = ['"' + v.replace('"', '\\"') + '"' for v in value]
    return "[" + ", ".join(quoted) + "]"
