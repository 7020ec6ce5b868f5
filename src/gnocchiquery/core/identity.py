"""Keystone password authentication and service catalog lookup."""

from collections.abc import Mapping
from typing import Any

from gnocchiquery.core.errors import ApiError, ErrorCategory
from gnocchiquery.core.logs import get_logger
from gnocchiquery.core.models import AuthState, RequestDescriptor, sanitize_url
from gnocchiquery.core.ports import TransportError, TransportPort

logger = get_logger(__name__)

SERVICE_TYPE = "metric"
TOKEN_HEADER = "X-Subject-Token"


def build_password_grant(
    username: str, password: str, domain: str, project: str
) -> dict[str, Any]:
    """Build a Keystone v3 password grant scoped to ``project`` in ``domain``."""
    return {
        "auth": {
            "identity": {
                "methods": ["password"],
                "password": {
                    "user": {
                        "name": username,
                        "password": password,
                        "domain": {"id": domain},
                    }
                },
            },
            "scope": {
                "project": {
                    "domain": {"id": domain},
                    "name": project,
                }
            },
        }
    }


def find_service_endpoint(
    body: Mapping[str, Any] | None,
    service_type: str = SERVICE_TYPE,
    interface: str = "public",
) -> str | None:
    """Return the first ``interface`` endpoint URL of ``service_type``.

    Args:
        body: Decoded token response with a ``token.catalog`` list.
        service_type: Catalog entry type to look for.
        interface: Endpoint interface to select.

    Returns:
        The endpoint URL, or None if the catalog has no such endpoint.
    """
    catalog = ((body or {}).get("token") or {}).get("catalog") or []
    for service in catalog:
        if service.get("type") != service_type:
            continue
        for endpoint in service.get("endpoints") or []:
            if endpoint.get("interface") == interface and endpoint.get("url"):
                return str(endpoint["url"])
    return None


def _identity_error(err: TransportError) -> ApiError:
    if err.status == 0:
        return ApiError(
            ErrorCategory.NETWORK, "Keystone failure: Connection failed", status=0
        )
    if err.status is None:
        return ApiError(
            ErrorCategory.NETWORK,
            "Keystone failure: No response status code, is CORS correctly configured ?",
        )
    message = f"({err.status} {err.status_text})"
    if isinstance(err.data, Mapping) and isinstance(err.data.get("error"), Mapping):
        detail = err.data["error"].get("message")
        if detail:
            message += f" {detail}"
    return ApiError(
        ErrorCategory.AUTH, f"Keystone failure: {message}", err.status, err.data
    )


async def authenticate(
    transport: TransportPort,
    username: str,
    password: str,
    domain: str,
    project: str,
    identity_endpoint: str,
) -> AuthState:
    """Exchange a password for a token and discover the metric service URL.

    Args:
        transport: Transport used for the identity request.
        username: Keystone user name.
        password: Keystone password.
        domain: Domain id of both the user and the project.
        project: Project name the token is scoped to.
        identity_endpoint: Keystone base URL.

    Returns:
        The new credential, with a base URL ending in ``/``.

    Raises:
        ApiError: ``network`` if Keystone is unreachable, ``auth`` if it
            refused the credentials or its catalog lacks a public metric
            endpoint.
    """
    request = RequestDescriptor(
        url=sanitize_url(identity_endpoint) + "v3/auth/tokens",
        method="POST",
        headers={"Content-Type": "application/json"},
        body=build_password_grant(username, password, domain, project),
    )
    try:
        response = await transport.send(request)
    except TransportError as err:
        error = _identity_error(err)
        logger.warning("%s", error.message)
        raise error from err

    base_url = find_service_endpoint(response.data)
    if base_url is None:
        raise ApiError(
            ErrorCategory.AUTH,
            f"'{SERVICE_TYPE}' endpoint not found in Keystone catalog",
            response.status,
        )
    logger.info("Authenticated against Keystone, metric endpoint is %s", base_url)
    return AuthState(token=response.header(TOKEN_HEADER), base_url=sanitize_url(base_url))


class KeystoneIdentity:
    """Keystone credentials bound to a transport.

    The gateway calls :meth:`authenticate` whenever it needs a fresh token.
    """

    def __init__(
        self,
        transport: TransportPort,
        endpoint: str,
        username: str,
        password: str,
        project: str,
        domain: str = "default",
    ) -> None:
        self._transport = transport
        self.endpoint = sanitize_url(endpoint)
        self.username = username
        self._password = password
        self.project = project
        self.domain = domain

    async def authenticate(self) -> AuthState:
        """Run the password exchange and return the new credential."""
        return await authenticate(
            self._transport,
            self.username,
            self._password,
            self.domain,
            self.project,
            self.endpoint,
        )
