from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Connector limits
    CONNECT_TIMEOUT_SECONDS: float = 5.0
    QUERY_TIMEOUT_SECONDS: float = 30.0
    QUERY_ROW_LIMIT: int = 1000
    INTROSPECTION_COLUMN_LIMIT: int = 100

    # SQL Server ODBC driver name passed to aioodbc
    MSSQL_ODBC_DRIVER: str = "ODBC Driver 18 for SQL Server"

    # Default database, used when a data source sets useDefaultDatabase
    PGHOST: Optional[str] = None
    PGPORT: Optional[int] = None
    PGDATABASE: Optional[str] = None
    PGUSER: Optional[str] = None
    PGPASSWORD: Optional[str] = None

    # Rate limit for the connection test endpoint
    TEST_CONNECTION_RATE_LIMIT: str = "30/minute"

    def validate_limits(self) -> list[str]:
        """Validate connector limits. Returns list of errors."""
        errors = []
        if self.CONNECT_TIMEOUT_SECONDS <= 0:
            errors.append("CONNECT_TIMEOUT_SECONDS must be positive")
        if self.QUERY_TIMEOUT_SECONDS <= 0:
            errors.append("QUERY_TIMEOUT_SECONDS must be positive")
        if self.QUERY_ROW_LIMIT <= 0:
            errors.append("QUERY_ROW_LIMIT must be positive")
        if self.INTROSPECTION_COLUMN_LIMIT <= 0:
            errors.append("INTROSPECTION_COLUMN_LIMIT must be positive")
        return errors

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
