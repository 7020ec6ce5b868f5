"""Tests for datasource settings."""

import pytest

from gnocchiquery.config import AuthMode, DatasourceSettings
from gnocchiquery.core.version import parse_version

pytestmark = [pytest.mark.unit, pytest.mark.tier(0)]


class TestDatasourceSettings:
    """Tests for DatasourceSettings."""

    def test_url_gets_trailing_slash(self) -> None:
        assert DatasourceSettings(url="http://gnocchi:8041").url == "http://gnocchi:8041/"

    def test_string_mode_is_coerced(self) -> None:
        assert DatasourceSettings(url="http://g/", mode="keystone").mode is AuthMode.KEYSTONE

    def test_empty_domain_and_roles_fall_back_to_defaults(self) -> None:
        settings = DatasourceSettings(url="http://g/", domain="", roles="")
        assert settings.domain == "default"
        assert settings.roles == "admin"

    def test_noauth_headers(self) -> None:
        settings = DatasourceSettings(
            url="http://g/", mode=AuthMode.NOAUTH, project="p1", username="u1"
        )
        assert settings.default_headers() == {
            "Content-Type": "application/json",
            "X-Project-Id": "p1",
            "X-User-Id": "u1",
            "X-Domain-Id": "default",
            "X-Roles": "admin",
        }

    def test_token_headers(self) -> None:
        settings = DatasourceSettings(url="http://g/", mode=AuthMode.TOKEN, token="t0k")
        assert settings.default_headers()["X-Auth-Token"] == "t0k"

    def test_keystone_headers_carry_no_credentials(self) -> None:
        settings = DatasourceSettings(url="http://k/", mode=AuthMode.KEYSTONE)
        assert settings.default_headers() == {"Content-Type": "application/json"}
        assert settings.keystone is True


class TestFromInstanceSettings:
    """Tests for DatasourceSettings.from_instance_settings()."""

    def test_keystone_definition(self) -> None:
        settings = DatasourceSettings.from_instance_settings(
            {
                "name": "prod",
                "url": "http://keystone:5000",
                "jsonData": {
                    "mode": "keystone",
                    "username": "admin",
                    "password": "pw",
                    "project": "demo",
                    "domain": "",
                },
            }
        )
        assert settings.mode is AuthMode.KEYSTONE
        assert settings.url == "http://keystone:5000/"
        assert settings.domain == "default"
        assert settings.name == "prod"

    def test_basic_auth_takes_precedence(self) -> None:
        settings = DatasourceSettings.from_instance_settings(
            {"url": "http://g", "basicAuth": "Basic Zm9vOmJhcg==", "jsonData": {"mode": "token"}}
        )
        assert settings.mode is AuthMode.BASIC
        assert settings.default_headers()["Authorization"] == "Basic Zm9vOmJhcg=="

    def test_missing_json_data_means_noauth(self) -> None:
        settings = DatasourceSettings.from_instance_settings({"url": "http://g"})
        assert settings.mode is AuthMode.NOAUTH


class TestParseVersion:
    """Tests for parse_version()."""

    def test_components_are_weighted(self) -> None:
        assert parse_version("4.3.2") == 4_003_002

    def test_extra_components_are_ignored(self) -> None:
        assert parse_version("4.3.2.1") == 4_003_002

    @pytest.mark.parametrize("version", ["", "4", "4.x.1", "4.3.1rc1"])
    def test_unparsable_versions_default_to_3_1_0(self, version: str) -> None:
        assert parse_version(version) == 3_001_000
