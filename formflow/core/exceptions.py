"""Custom exceptions and error handling for FormFlow API."""

from fastapi import HTTPException, status


class FormFlowException(HTTPException):
    """Base exception for FormFlow API."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.error_code = error_code


# Validation Errors (400)
class ValidationError(FormFlowException):
    """Raised when input validation fails."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="VALIDATION_ERROR",
        )


# Connector errors. test_connection and execute_query carry these in
# ConnectionTestResult.error / QueryResult.error instead of raising.
class ConnectorError(Exception):
    """Base class for data-source connector failures."""


class UnsupportedSourceTypeError(ConnectorError):
    """Raised when a source type is outside the supported set."""

    def __init__(self, source_type: str):
        super().__init__(f"Unsupported source type: {source_type}")
        self.source_type = source_type


class ConfigurationError(ConnectorError):
    """Raised when a required connection setting is missing or invalid."""


class ConnectionFailedError(ConnectorError):
    """Raised when a connection or session cannot be opened."""


class IntrospectionError(ConnectorError):
    """Raised when schema discovery fails after connecting."""


class QueryError(ConnectorError):
    """Raised when a native query cannot be parsed or executed."""


class QueryTimeoutError(QueryError):
    """Raised when a query exceeds QUERY_TIMEOUT_SECONDS."""
