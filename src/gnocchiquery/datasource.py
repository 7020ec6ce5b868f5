"""Gnocchi datasource: dashboard queries, editor suggestions and variables."""

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any, assert_never

from gnocchiquery.adapters.templating import VariableTemplateResolver
from gnocchiquery.config import DatasourceSettings
from gnocchiquery.core.aggregates import parse_aggregates
from gnocchiquery.core.errors import ApiError
from gnocchiquery.core.find_query import (
    MetricsFindQuery,
    ResourcesFindQuery,
    parse_find_query,
)
from gnocchiquery.core.gateway import AuthenticatedGateway
from gnocchiquery.core.identity import KeystoneIdentity
from gnocchiquery.core.labels import resolve_label
from gnocchiquery.core.logs import get_logger
from gnocchiquery.core.measures import parse_measures
from gnocchiquery.core.models import (
    ConnectionStatus,
    MetricFindValue,
    QueryMode,
    QuerySpec,
    RequestDescriptor,
    Series,
    TimeRange,
)
from gnocchiquery.core.ports import TemplateResolverPort, TransportPort
from gnocchiquery.core.query import (
    DynamicAggregatesPlan,
    MetricPlan,
    QueryPlan,
    ResourceAggregationPlan,
    ResourcePlan,
    ResourceSearchPlan,
    build_search_request,
    is_json_query,
    plan_query,
    select_metrics,
    validate_json_query,
)
from gnocchiquery.core.templating import format_query_template
from gnocchiquery.core.version import DEFAULT_VERSION, parse_version

logger = get_logger(__name__)


class GnocchiDatasource:
    """Query Gnocchi on behalf of a dashboard.

    Example:
        ```python
        settings = DatasourceSettings(url="http://gnocchi:8041", mode="noauth",
                                      project="demo", username="demo")
        async with HttpxTransport() as transport:
            datasource = GnocchiDatasource(settings, transport)
            series = await datasource.query(
                [QuerySpec(query_mode=QueryMode.METRIC, metric_id=metric_id)],
                TimeRange(start=start, end=end),
            )
        ```
    """

    def __init__(
        self,
        settings: DatasourceSettings,
        transport: TransportPort,
        resolver: TemplateResolverPort | None = None,
    ) -> None:
        """Initialize the datasource.

        Args:
            settings: Connection and authentication settings.
            transport: Transport used for Gnocchi and Keystone calls.
            resolver: Dashboard variable resolver. Defaults to a
                VariableTemplateResolver without variables.
        """
        self.settings = settings
        self.resolver = resolver or VariableTemplateResolver()
        identity = None
        base_url: str | None = settings.url
        if settings.keystone:
            identity = KeystoneIdentity(
                transport,
                endpoint=settings.url,
                username=settings.username,
                password=settings.password,
                project=settings.project,
                domain=settings.domain,
            )
            base_url = None
        self.gateway = AuthenticatedGateway(
            transport, settings.default_headers(), base_url, identity
        )
        self._version: int | None = None

    # Queries

    async def query(
        self,
        targets: Iterable[QuerySpec | Mapping[str, Any]],
        time_range: TimeRange,
        scoped_vars: Mapping[str, Any] | None = None,
    ) -> list[Series]:
        """Run every visible target and flatten the resulting series.

        All targets are planned before any request is sent, so a
        ValidationError in one target prevents the whole query. Requests of
        all targets then run concurrently; the first failure fails the query.

        Raises:
            ValidationError: A target is incomplete or malformed.
            ApiError: A request failed.
        """
        specs = [t if isinstance(t, QuerySpec) else QuerySpec.from_target(t) for t in targets]
        plans = [
            plan_query(spec, time_range, self.resolver, scoped_vars)
            for spec in specs
            if not spec.hide
        ]
        results = await asyncio.gather(*(self._execute(plan) for plan in plans))
        return [series for target_series in results for series in target_series]

    async def _execute(self, plan: QueryPlan) -> list[Series]:
        match plan:
            case MetricPlan():
                metric = await self.gateway.request(plan.metric_request)
                label = plan.metric_id
                if plan.label:
                    # the embedded resource may lack some attributes
                    label = resolve_label(
                        plan.label, metric.get("resource"), metric.get("name", ""), plan.aggregator
                    )
                return [await self._retrieve_measures(label, plan.measures, plan.fill_gaps)]

            case ResourcePlan():
                resource = await self.gateway.request(plan.resource_request)
                label = resolve_label(plan.label, resource, plan.metric_name, plan.aggregator)
                return [await self._retrieve_measures(label, plan.measures, plan.fill_gaps)]

            case ResourceSearchPlan():
                resources = await self.gateway.request(plan.search)
                metrics = select_metrics(
                    resources or [], plan.metric_pattern, plan.label, plan.aggregator
                )
                return list(
                    await asyncio.gather(
                        *(
                            self._retrieve_measures(label, plan.measures_for(metric_id), plan.fill_gaps)
                            for metric_id, label in metrics.items()
                        )
                    )
                )

            case ResourceAggregationPlan():
                resources = await self.gateway.request(plan.search)
                metrics = select_metrics(
                    resources or [], plan.metric_pattern, plan.label, plan.aggregator
                )
                if not metrics:
                    logger.debug("No metric matches %s", plan.metric_pattern.pattern)
                    return []
                return [await self._retrieve_measures(plan.label, plan.measures_for(metrics), False)]

            case DynamicAggregatesPlan():
                result = await self.gateway.request(plan.request)
                return parse_aggregates(plan.label, result or {}, plan.searched)

            case _:
                assert_never(plan)

    async def _retrieve_measures(
        self, label: str, request: RequestDescriptor, fill_gaps: bool
    ) -> Series:
        measures = await self.gateway.request(request)
        return parse_measures(label, measures or [], fill_gaps)

    # Editor support

    async def test_datasource(self) -> ConnectionStatus:
        """Check that the API answers with the configured credentials."""
        try:
            await self.gateway.request(RequestDescriptor(url="v1/resource"))
        except ApiError as err:
            if err.status == 401:
                return ConnectionStatus(
                    "error", "Data source authentification fail", "Authentification error"
                )
            return ConnectionStatus(
                "error",
                err.message or "Unexpected error (is cors configured correctly ?)",
                "Error",
            )
        return ConnectionStatus("success", "Data source is working", "Success")

    async def suggest(self, kind: str, spec: QuerySpec) -> list[str]:
        """Autocomplete values for the query editor.

        Args:
            kind: ``"metrics"`` (metric ids), ``"resources"`` (resource ids)
                or ``"metric_names"`` (metric names of the target's resource,
                resource mode only).
            spec: Target being edited.

        Returns:
            Suggestions, empty for unknown kinds.
        """
        if kind == "metrics":
            items = await self.gateway.request(RequestDescriptor(url="v1/metric"))
            return [item["id"] for item in items or []]
        if kind == "resources":
            items = await self.gateway.request(RequestDescriptor(url="v1/resource/generic"))
            return [item["id"] for item in items or []]
        if kind == "metric_names":
            if spec.query_mode is not QueryMode.RESOURCE or not spec.resource_id:
                return []
            resource = await self.gateway.request(
                RequestDescriptor(url=f"v1/resource/generic/{spec.resource_id}")
            )
            return list((resource or {}).get("metrics") or {})
        return []

    async def metric_find_query(self, query: str) -> list[MetricFindValue]:
        """Resolve a template variable query.

        See :mod:`gnocchiquery.core.find_query` for the accepted forms.

        Raises:
            ValidationError: The search is malformed JSON.
            ApiError: A request failed.
        """
        parsed = parse_find_query(query)
        match parsed:
            case ResourcesFindQuery():
                resource_type = self.resolver.replace(parsed.resource_type)
                search = self.resolver.replace(parsed.search, {}, format_query_template)
                if is_json_query(search):
                    validate_json_query(search)
                resources = await self.gateway.request(
                    build_search_request(resource_type, search)
                ) or []
                if parsed.value_attribute == "metrics":
                    names = dict.fromkeys(
                        name for resource in resources for name in resource.get("metrics") or {}
                    )
                    return [MetricFindValue(text=name, value=name) for name in names]
                return [
                    MetricFindValue(
                        text=resolve_label(parsed.display_attribute, resource, "unknown", "none"),
                        value=resource.get(parsed.value_attribute),
                    )
                    for resource in resources
                ]

            case MetricsFindQuery():
                resource_id = self.resolver.replace(parsed.resource_id)
                resource = await self.gateway.request(
                    RequestDescriptor(url=f"v1/resource/generic/{resource_id}")
                )
                return [
                    MetricFindValue(text=name, value=name)
                    for name in (resource or {}).get("metrics") or {}
                ]

            case None:
                return []

            case _:
                assert_never(parsed)

    async def require_version(self, version: str) -> bool:
        """Return True if the Gnocchi build is at least ``version``.

        The build is fetched from the API root once and cached. A build that
        is missing or unparsable counts as 3.1.0.
        """
        if self._version is None:
            root = await self.gateway.request(RequestDescriptor(url=""))
            build = root.get("build") if isinstance(root, Mapping) else None
            logger.info("Gnocchi build: %s", build)
            self._version = parse_version(build or DEFAULT_VERSION)
        return self._version >= parse_version(version)
