"""Transport adapters implementing TransportPort."""

from gnocchiquery.adapters.transport.httpx_transport import HttpxTransport

__all__ = ["HttpxTransport"]
