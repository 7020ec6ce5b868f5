"""Port interfaces for the collaborators of the query pipeline.

These protocols define the contracts that transport and templating adapters
must implement. The core depends only on these interfaces, not on httpx or on
a particular dashboard templating engine.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from gnocchiquery.core.models import RequestDescriptor

# Formats a variable's value for one field. ``value`` is a string or a list of
# strings for multi-value variables; the formatter returns the text to inline.
Formatter = Callable[[str | list[str]], str]


@dataclass(frozen=True)
class TransportResponse:
    """A successful HTTP response.

    Attributes:
        data: Decoded JSON body (or None for an empty body).
        headers: Response headers, matched case-insensitively by adapters.
        status: HTTP status code.
    """

    data: Any
    headers: Mapping[str, str] = field(default_factory=dict)
    status: int = 200

    def header(self, name: str) -> str | None:
        """Return a header value by case-insensitive name."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


class TransportError(Exception):
    """A failed HTTP exchange.

    ``status`` is None when no response was received at all and 0 when the
    connection itself failed.
    """

    def __init__(
        self,
        status: int | None,
        status_text: str = "",
        data: Any = None,
        detail: str = "",
    ) -> None:
        super().__init__(detail or status_text or f"HTTP {status}")
        self.status = status
        self.status_text = status_text
        self.data = data
        self.detail = detail


@runtime_checkable
class TransportPort(Protocol):
    """Port for sending HTTP requests.

    Adapters implementing this protocol perform the actual network I/O.
    Examples: HttpxTransport.
    """

    async def send(self, request: RequestDescriptor) -> TransportResponse:
        """Send a fully resolved request.

        Args:
            request: Request with an absolute URL.

        Returns:
            The decoded response.

        Raises:
            TransportError: On connection failure or non-2xx status.
        """
        ...


@runtime_checkable
class TemplateResolverPort(Protocol):
    """Port for dashboard variable substitution.

    Examples: VariableTemplateResolver.
    """

    def replace(
        self,
        template: str,
        scoped_vars: Mapping[str, Any] | None = None,
        formatter: Formatter | str | None = None,
    ) -> str:
        """Resolve variables in ``template``.

        Args:
            template: Text containing variable references.
            scoped_vars: Per-query variables that shadow global ones.
            formatter: Callable applied to each variable value, or the name
                of a built-in format such as ``"regex"``.

        Returns:
            The resolved text.
        """
        ...
