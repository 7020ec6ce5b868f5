"""End-to-end datasource tests over httpx.MockTransport."""

import json
from collections.abc import Callable

import httpx
import pytest

from gnocchiquery import (
    ApiError,
    DatasourceSettings,
    GnocchiDatasource,
    HttpxTransport,
    QueryMode,
    QuerySpec,
    Series,
    TimeRange,
)
from tests.fakes import BASE_URL, KEYSTONE_URL, iso, keystone_token_body, ms

pytestmark = [pytest.mark.integration, pytest.mark.tier(2)]

MakeTransport = Callable[[Callable[[httpx.Request], httpx.Response]], HttpxTransport]


class TestResourceQuery:
    """A resource target resolved through the real transport."""

    async def test_resource_series(
        self,
        mock_http: MakeTransport,
        noauth_settings: DatasourceSettings,
        time_range: TimeRange,
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/v1/resource/generic/r1":
                return httpx.Response(200, json={"id": "r1", "metrics": {"cpu.util": "m1"}})
            if request.url.path == "/v1/resource/generic/r1/metric/cpu.*/measures":
                return httpx.Response(
                    200,
                    json=[
                        [iso(0), 300.0, 1.0],
                        [iso(0), 60.0, 1.5],
                        [iso(1), 60.0, 2.5],
                    ],
                )
            return httpx.Response(404, json={"message": "not found"})

        datasource = GnocchiDatasource(noauth_settings, mock_http(handler))
        result = await datasource.query(
            [
                QuerySpec(
                    query_mode=QueryMode.RESOURCE,
                    resource_id="r1",
                    metric_name="cpu.*",
                    label="$id",
                    granularity="60",
                )
            ],
            time_range,
        )

        assert result == [Series("r1", ((1.5, ms(0)), (2.5, ms(1))))]
        measures = seen[1]
        assert measures.url.params["granularity"] == "60"
        assert measures.url.params["aggregation"] == "mean"
        assert measures.headers["X-Project-Id"] == "demo"
        assert measures.headers["X-User-Id"] == "alice"

    async def test_server_error_message_is_cleaned(
        self,
        mock_http: MakeTransport,
        noauth_settings: DatasourceSettings,
        time_range: TimeRange,
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={
                    "code": 400,
                    "message": "The server could not comply with the request since it is "
                    "either malformed or otherwise incorrect.<br /><br />"
                    "Invalid input: Granularity '7' for metric m1 does not exist",
                },
            )

        datasource = GnocchiDatasource(noauth_settings, mock_http(handler))

        with pytest.raises(ApiError) as exc_info:
            await datasource.query([QuerySpec(metric_id="m1")], time_range)

        assert exc_info.value.message == (
            "Invalid input: Granularity '7' for metric m1 does not exist"
        )


class TestKeystoneFlow:
    """Keystone token exchange through the real transport."""

    async def test_token_is_exchanged_and_sent(
        self,
        mock_http: MakeTransport,
        keystone_settings: DatasourceSettings,
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if str(request.url) == KEYSTONE_URL + "v3/auth/tokens":
                return httpx.Response(
                    201,
                    json=keystone_token_body("http://gnocchi.test"),
                    headers={"X-Subject-Token": "gAAAA"},
                )
            if str(request.url) == BASE_URL + "v1/resource":
                return httpx.Response(200, json=[])
            return httpx.Response(404)

        datasource = GnocchiDatasource(keystone_settings, mock_http(handler))
        status = await datasource.test_datasource()

        assert status.ok
        grant = json.loads(seen[0].content)
        assert grant["auth"]["identity"]["password"]["user"]["name"] == "alice"
        assert grant["auth"]["scope"]["project"]["name"] == "demo"
        assert seen[1].headers["X-Auth-Token"] == "gAAAA"
        assert datasource.gateway.auth_state is not None
        assert datasource.gateway.auth_state.base_url == BASE_URL
