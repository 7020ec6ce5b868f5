"""httpx implementation of TransportPort."""

from typing import Any

import httpx

from gnocchiquery.core.models import RequestDescriptor
from gnocchiquery.core.ports import TransportError, TransportResponse


def _decode_body(response: httpx.Response) -> Any:
    """Decode a JSON body, falling back to text for non-JSON payloads."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _request_kwargs(request: RequestDescriptor) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if request.params:
        # None means "not set"; lists become repeated parameters
        kwargs["params"] = {k: v for k, v in request.params.items() if v is not None}
    if request.headers:
        kwargs["headers"] = dict(request.headers)
    if isinstance(request.body, (str, bytes)):
        kwargs["content"] = request.body
    elif request.body is not None:
        kwargs["json"] = request.body
    return kwargs


class HttpxTransport:
    """Transport sending requests with an ``httpx.AsyncClient``.

    Connection failures surface as ``TransportError(status=0)``, other
    failures without a response (timeouts, protocol errors) as
    ``TransportError(status=None)`` and non-2xx responses with their status.

    Example:
        ```python
        async with HttpxTransport(timeout=10.0) as transport:
            datasource = GnocchiDatasource(settings, transport)
            series = await datasource.query(targets, time_range)
        ```
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        verify: bool = True,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Client to use. When omitted one is created on first use
                and closed by :meth:`aclose`.
            timeout: Request timeout in seconds for an owned client.
            verify: Verify TLS certificates for an owned client.
        """
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._verify = verify

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the client (lazy to avoid event loop issues)."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, verify=self._verify)
        return self._client

    async def send(self, request: RequestDescriptor) -> TransportResponse:
        """Send a request and decode its JSON response."""
        client = self._get_client()
        try:
            response = await client.request(
                request.method, request.url, **_request_kwargs(request)
            )
        except httpx.ConnectError as err:
            raise TransportError(0, detail=str(err)) from err
        except httpx.HTTPError as err:
            raise TransportError(None, detail=f"{type(err).__name__}: {err}") from err

        data = _decode_body(response)
        if not response.is_success:
            raise TransportError(response.status_code, response.reason_phrase, data)
        return TransportResponse(
            data=data, headers=dict(response.headers), status=response.status_code
        )

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
