"""Datasource settings and authentication modes."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gnocchiquery.core.models import sanitize_url

DEFAULT_DOMAIN = "default"
DEFAULT_ROLES = "admin"


class AuthMode(str, Enum):
    """How requests to Gnocchi are authenticated."""

    BASIC = "basic"
    TOKEN = "token"
    NOAUTH = "noauth"
    KEYSTONE = "keystone"


@dataclass(frozen=True)
class DatasourceSettings:
    """Connection settings of one Gnocchi datasource.

    Attributes:
        url: Gnocchi API URL, or the Keystone URL in Keystone mode.
        mode: Authentication mode.
        username: User name (Keystone, or ``X-User-Id`` in noauth mode).
        password: Keystone password.
        project: Project name (Keystone) or id (noauth).
        domain: Domain id, defaults to ``"default"``.
        roles: Roles sent in noauth mode, defaults to ``"admin"``.
        token: Static token for token mode.
        basic_auth: Full ``Authorization`` header value for basic mode.
        name: Display name of the datasource.
    """

    url: str
    mode: AuthMode = AuthMode.NOAUTH
    username: str = ""
    password: str = ""
    project: str = ""
    domain: str = DEFAULT_DOMAIN
    roles: str = DEFAULT_ROLES
    token: str = ""
    basic_auth: str = ""
    name: str = "gnocchi"

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", sanitize_url(self.url))
        object.__setattr__(self, "mode", AuthMode(self.mode))
        if not self.domain:
            object.__setattr__(self, "domain", DEFAULT_DOMAIN)
        if not self.roles:
            object.__setattr__(self, "roles", DEFAULT_ROLES)

    @classmethod
    def from_instance_settings(cls, settings: Mapping[str, Any]) -> "DatasourceSettings":
        """Build settings from a dashboard datasource definition.

        Args:
            settings: Mapping with ``url``, optional ``name``, ``basicAuth``
                and a ``jsonData`` mapping holding ``mode``, ``project``,
                ``username``, ``password``, ``roles``, ``domain`` and
                ``token``. A ``basicAuth`` value selects basic mode whatever
                ``jsonData.mode`` says.
        """
        json_data: Mapping[str, Any] = settings.get("jsonData") or {}
        basic_auth = settings.get("basicAuth") or ""
        mode = AuthMode.BASIC if basic_auth else AuthMode(json_data.get("mode") or "noauth")
        return cls(
            url=settings["url"],
            mode=mode,
            username=json_data.get("username") or "",
            password=json_data.get("password") or "",
            project=json_data.get("project") or "",
            domain=json_data.get("domain") or DEFAULT_DOMAIN,
            roles=json_data.get("roles") or DEFAULT_ROLES,
            token=json_data.get("token") or "",
            basic_auth=basic_auth,
            name=settings.get("name") or "gnocchi",
        )

    @property
    def keystone(self) -> bool:
        return self.mode is AuthMode.KEYSTONE

    def default_headers(self) -> dict[str, str]:
        """Headers sent with every Gnocchi request for this mode."""
        headers = {"Content-Type": "application/json"}
        if self.mode is AuthMode.BASIC:
            headers["Authorization"] = self.basic_auth
        elif self.mode is AuthMode.TOKEN:
            headers["X-Auth-Token"] = self.token
        elif self.mode is AuthMode.NOAUTH:
            headers["X-Project-Id"] = self.project
            headers["X-User-Id"] = self.username
            headers["X-Domain-Id"] = self.domain
            headers["X-Roles"] = self.roles
        return headers
