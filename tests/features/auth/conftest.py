"""BDD step definitions for Keystone authentication features."""

import pytest
from pytest_bdd import given, parsers, then, when
from tests.features.auth.steps_helpers import (
    METRICS_URL,
    TOKENS_URL,
    AuthScenarioContext,
    keystone_datasource,
    run_async,
    script_tokens,
)

from gnocchiquery.core.errors import ApiError
from gnocchiquery.core.models import AuthState, QuerySpec


@pytest.fixture
def ctx() -> AuthScenarioContext:
    """Fresh scenario context for each test."""
    return AuthScenarioContext()


# === Background Steps ===
@given("a Gnocchi datasource using Keystone")
def step_keystone_datasource(ctx: AuthScenarioContext) -> None:
    ctx.datasource = keystone_datasource(ctx.transport)


@given(parsers.parse('Keystone issues numbered tokens for the metric endpoint "{endpoint}"'))
def step_keystone_tokens(ctx: AuthScenarioContext, endpoint: str) -> None:
    script_tokens(ctx.transport, endpoint)


# === Setup Steps ===
@given("the datasource holds an expired token")
def step_expired_token(ctx: AuthScenarioContext) -> None:
    assert ctx.datasource is not None
    ctx.datasource.gateway._auth = AuthState(token="expired", base_url="http://gnocchi.test/")


@given("Gnocchi accepts every request")
def step_gnocchi_accepts(ctx: AuthScenarioContext) -> None:
    ctx.transport.add("GET", METRICS_URL, [{"id": "m1"}])


@given("Gnocchi rejects the next request with 401")
def step_gnocchi_rejects_once(ctx: AuthScenarioContext) -> None:
    ctx.transport.fail("GET", METRICS_URL, 401, "Unauthorized")
    ctx.transport.add("GET", METRICS_URL, [{"id": "m1"}])


@given("Gnocchi rejects every request with 401")
def step_gnocchi_rejects_always(ctx: AuthScenarioContext) -> None:
    ctx.transport.fail("GET", METRICS_URL, 401, "Unauthorized")


@given("Keystone is unreachable")
def step_keystone_unreachable(ctx: AuthScenarioContext) -> None:
    ctx.transport.fail("POST", TOKENS_URL, 0)


# === Action Steps ===
@when("the dashboard lists metrics")
def step_list_metrics(ctx: AuthScenarioContext) -> None:
    assert ctx.datasource is not None
    try:
        ctx.result = run_async(ctx.datasource.suggest("metrics", QuerySpec()))
    except ApiError as err:
        ctx.error = err


# === Assertion Steps ===
@then("the request succeeds")
def step_request_succeeds(ctx: AuthScenarioContext) -> None:
    assert ctx.error is None
    assert ctx.result == ["m1"]


@then(parsers.parse('the request fails with error category "{category}"'))
def step_request_fails(ctx: AuthScenarioContext, category: str) -> None:
    assert ctx.error is not None
    assert ctx.error.category.value == category


@then(parsers.parse("Keystone was asked for {count:d} token"))
def step_keystone_calls(ctx: AuthScenarioContext, count: int) -> None:
    assert len(ctx.transport.sent("POST", TOKENS_URL)) == count


@then(parsers.parse('Gnocchi saw the tokens "{tokens}"'))
def step_gnocchi_tokens(ctx: AuthScenarioContext, tokens: str) -> None:
    sent = ctx.transport.sent("GET", METRICS_URL)
    assert [r.headers["X-Auth-Token"] for r in sent] == tokens.split(", ")


@then("Gnocchi saw no request")
def step_gnocchi_no_request(ctx: AuthScenarioContext) -> None:
    assert ctx.transport.sent("GET", METRICS_URL) == []
