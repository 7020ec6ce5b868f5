"""gnocchiquery - turn dashboard query targets into Gnocchi time series."""

from gnocchiquery.adapters.templating import VariableTemplateResolver
from gnocchiquery.adapters.transport import HttpxTransport
from gnocchiquery.config import AuthMode, DatasourceSettings
from gnocchiquery.core.errors import (
    ApiError,
    ErrorCategory,
    GnocchiQueryError,
    ValidationError,
)
from gnocchiquery.core.logs import get_logger
from gnocchiquery.core.models import (
    ConnectionStatus,
    MetricFindValue,
    QueryMode,
    QuerySpec,
    Series,
    TimeRange,
)
from gnocchiquery.datasource import GnocchiDatasource

__all__ = [
    "ApiError",
    "AuthMode",
    "ConnectionStatus",
    "DatasourceSettings",
    "ErrorCategory",
    "GnocchiDatasource",
    "GnocchiQueryError",
    "HttpxTransport",
    "MetricFindValue",
    "QueryMode",
    "QuerySpec",
    "Series",
    "TimeRange",
    "ValidationError",
    "VariableTemplateResolver",
    "get_logger",
]
