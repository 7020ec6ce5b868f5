"""Tests for variable formatters and the in-process resolver."""

import pytest

from gnocchiquery.adapters.templating import VariableTemplateResolver
from gnocchiquery.core.errors import ValidationError
from gnocchiquery.core.ports import TemplateResolverPort
from gnocchiquery.core.templating import (
    format_label_template,
    format_query_template,
    format_unsupported_multi_value,
)

pytestmark = [pytest.mark.unit, pytest.mark.tier(0)]


class TestFormatters:
    """Tests for the per-field formatters."""

    def test_single_value_passes_through_every_formatter(self) -> None:
        for formatter in (
            format_unsupported_multi_value("Metric ID"),
            format_label_template,
            format_query_template,
        ):
            assert formatter("abc") == "abc"

    def test_multi_value_is_rejected_for_single_value_fields(self) -> None:
        formatter = format_unsupported_multi_value("Resource ID")
        with pytest.raises(ValidationError, match="Templating multi value in 'Resource ID'"):
            formatter(["r1", "r2"])

    def test_one_element_list_is_accepted(self) -> None:
        assert format_unsupported_multi_value("Granularity")(["300"]) == "300"

    def test_label_uses_first_value(self) -> None:
        assert format_label_template(["a", "b"]) == "a"

    def test_query_renders_quoted_list(self) -> None:
        assert format_query_template(["a", 'b"c']) == '["a", "b\\"c"]'


class TestVariableTemplateResolver:
    """Tests for VariableTemplateResolver."""

    def test_satisfies_port(self) -> None:
        resolver: TemplateResolverPort = VariableTemplateResolver()
        assert isinstance(resolver, TemplateResolverPort)

    def test_all_reference_syntaxes(self) -> None:
        resolver = VariableTemplateResolver({"a": "1", "b": "2", "c": "3"})
        assert resolver.replace("$a ${b} [[c]]") == "1 2 3"

    def test_unknown_variables_are_kept(self) -> None:
        resolver = VariableTemplateResolver({"a": "1"})
        assert resolver.replace("$a $id ${metric}") == "1 $id ${metric}"

    def test_scoped_vars_shadow_globals(self) -> None:
        resolver = VariableTemplateResolver({"host": "global"})
        scoped = {"host": {"text": "Scoped", "value": "scoped"}}
        assert resolver.replace("$host", scoped) == "scoped"

    def test_regex_format_joins_escaped_alternatives(self) -> None:
        resolver = VariableTemplateResolver({"m": ["cpu.util", "memory"]})
        assert resolver.replace("^$m$", formatter="regex") == r"^(cpu\.util|memory)$"

    def test_callable_formatter_receives_lists(self) -> None:
        resolver = VariableTemplateResolver({"h": ["a", "b"]})
        assert resolver.replace("$h", formatter=format_query_template) == '["a", "b"]'

    def test_default_format_is_csv(self) -> None:
        resolver = VariableTemplateResolver()
        resolver.set_variable("h", ["a", "b"])
        assert resolver.replace("$h") == "a,b"

    def test_unknown_named_format(self) -> None:
        with pytest.raises(ValueError, match="Unknown variable format"):
            VariableTemplateResolver().replace("x", formatter="lucene")
