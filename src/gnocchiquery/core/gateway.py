"""Authenticated access to the Gnocchi API.

Every backend call goes through :class:`AuthenticatedGateway`, which prefixes
the API base URL, applies default headers, obtains a Keystone token when
needed and normalizes failures into :class:`ApiError`.
"""

import asyncio
import re
from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Protocol

from gnocchiquery.core.errors import ApiError, ErrorCategory
from gnocchiquery.core.logs import describe_request, get_logger
from gnocchiquery.core.models import AuthState, RequestDescriptor
from gnocchiquery.core.ports import TransportError, TransportPort

logger = get_logger(__name__)

# One initial attempt plus at most one retry after re-authentication.
MAX_ATTEMPTS = 2

AUTH_FAILURE = "Gnocchi authentication failure"

_PECAN_PREAMBLE = re.compile(r"[^<]*<br /><br />")
_HTML_TAG = re.compile(r"<[^>]+>")


class IdentityProvider(Protocol):
    """Anything able to produce a fresh credential, e.g. KeystoneIdentity."""

    async def authenticate(self) -> AuthState: ...


def clean_server_message(message: str) -> str:
    """Strip the pecan error preamble and HTML markup from a server message."""
    message = _PECAN_PREAMBLE.sub("", message)
    message = message.replace("<br />", "\n", 1)
    return _HTML_TAG.sub("", message).strip()


def normalize_error(err: TransportError) -> ApiError:
    """Map a transport failure onto the ApiError taxonomy."""
    if err.status is None:
        return ApiError(
            ErrorCategory.NETWORK,
            "Gnocchi error: No response status code, is CORS correctly "
            f"configured ? (detail: {err})",
        )
    if err.status == 0:
        return ApiError(ErrorCategory.NETWORK, "Gnocchi error: Connection failed", 0)
    if err.status == 401:
        return ApiError(ErrorCategory.AUTH, AUTH_FAILURE, 401, err.data)

    server_message = None
    if isinstance(err.data, Mapping) and isinstance(err.data.get("message"), str):
        server_message = err.data["message"]
    if server_message is not None and 300 <= err.status < 500:
        return ApiError(
            ErrorCategory.CLIENT, clean_server_message(server_message), err.status, err.data
        )
    if server_message is not None and err.status >= 500:
        return ApiError(
            ErrorCategory.SERVER, clean_server_message(server_message), err.status, err.data
        )
    return ApiError(ErrorCategory.MALFORMED, str(err), err.status, err.data)


class AuthenticatedGateway:
    """Sends requests to Gnocchi with authentication and error handling.

    In Keystone mode the base URL is unknown until the first identity
    exchange. The gateway is the only writer of its :class:`AuthState`, which
    is always replaced as a whole.

    Example:
        ```python
        gateway = AuthenticatedGateway(
            HttpxTransport(), base_url="http://gnocchi:8041/",
            default_headers={"X-Auth-Token": token},
        )
        metrics = await gateway.request(RequestDescriptor(url="v1/metric"))
        ```
    """

    def __init__(
        self,
        transport: TransportPort,
        default_headers: Mapping[str, str] | None = None,
        base_url: str | None = None,
        identity: IdentityProvider | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            transport: Transport performing the HTTP calls.
            default_headers: Headers sent when a request carries none.
            base_url: API base URL, ignored when ``identity`` is given.
            identity: Identity provider enabling Keystone mode.
        """
        self._transport = transport
        self._default_headers = dict(default_headers or {})
        self._identity = identity
        self._auth: AuthState | None = None
        if identity is None:
            self._auth = AuthState(token=None, base_url=base_url or "")
        self._auth_lock: asyncio.Lock | None = None

    @property
    def auth_state(self) -> AuthState | None:
        """Current credential, None before the first Keystone exchange."""
        return self._auth

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the authentication lock (lazy to avoid event loop issues)."""
        if self._auth_lock is None:
            self._auth_lock = asyncio.Lock()
        return self._auth_lock

    async def _exchange(self, stale: AuthState | None) -> tuple[AuthState, bool]:
        """Replace ``stale`` with a fresh credential.

        Returns the current credential and whether this call performed the
        exchange. If another caller already replaced ``stale`` while this one
        waited on the lock, its credential is reused.
        """
        assert self._identity is not None
        async with self._get_lock():
            if self._auth is not None and self._auth is not stale:
                return self._auth, False
            self._auth = await self._identity.authenticate()
            return self._auth, True

    def _prepare(self, request: RequestDescriptor, state: AuthState) -> RequestDescriptor:
        headers = request.headers
        if headers is None:
            headers = dict(self._default_headers)
            if state.token:
                headers["X-Auth-Token"] = state.token
        url = state.base_url + request.url if state.base_url else request.url
        return replace(request, url=url, method=request.method or "GET", headers=headers)

    async def request(self, request: RequestDescriptor) -> Any:
        """Send ``request`` and return the decoded response body.

        A 401 in Keystone mode triggers one re-authentication and one retry,
        unless this call already authenticated before its first attempt.

        Raises:
            ApiError: The normalized failure.
        """
        state = self._auth
        exchanged = False
        if state is None:
            state, exchanged = await self._exchange(None)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            prepared = self._prepare(request, state)
            logger.debug("%s (attempt %d)", describe_request(prepared.method, prepared.url), attempt)
            try:
                response = await self._transport.send(prepared)
            except TransportError as err:
                if (
                    err.status == 401
                    and self._identity is not None
                    and not exchanged
                    and attempt < MAX_ATTEMPTS
                ):
                    logger.info("Token rejected by Gnocchi, re-authenticating")
                    state, _ = await self._exchange(state)
                    exchanged = True
                    continue
                error = normalize_error(err)
                logger.warning(
                    "%s failed: %s", describe_request(prepared.method, prepared.url), error.message
                )
                raise error from err
            return response.data

        raise ApiError(ErrorCategory.AUTH, AUTH_FAILURE, 401)
