"""Error taxonomy shared by the query pipeline."""

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Normalized classes of API failures."""

    NETWORK = "network"
    AUTH = "auth"
    CLIENT = "client"
    SERVER = "server"
    MALFORMED = "malformed"


_RETRYABLE = frozenset({ErrorCategory.NETWORK, ErrorCategory.SERVER})


class GnocchiQueryError(Exception):
    """Base class for all errors raised by gnocchiquery."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GnocchiQueryError):
    """A query target is incomplete or malformed.

    Raised before any request is sent and never retried.
    """


class ApiError(GnocchiQueryError):
    """A backend or identity-service call failed.

    Attributes:
        category: Normalized failure class.
        message: Human readable message, cleaned of server markup.
        status: HTTP status code if one was received.
        data: Raw response body of the failure, if any.
    """

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        status: int | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.status = status
        self.data = data

    @property
    def retryable(self) -> bool:
        """True when repeating the call later may succeed."""
        return self.category in _RETRYABLE

    def __repr__(self) -> str:
        return (
            f"ApiError(category={self.category.value!r}, "
            f"status={self.status!r}, message={self.message!r})"
        )
