from sqlalchemy import text
from sqlalchemy.engine import URL

from formflow.core.exceptions import ConfigurationError
from formflow.services.connectors.config import SQLDialect
from formflow.services.connectors.resolver import ASYNC_DRIVERS, async_url, resolve_endpoint
from formflow.services.connectors.sql import SQLConnector


class MSSQLConnector(SQLConnector):
    """Connector for Microsoft SQL Server via aioodbc."""

    engine_name = "SQL Server"
    dialect = SQLDialect.MSSQL
    version_sql = "SELECT @@VERSION"

    def engine_target(self) -> tuple[URL, dict]:
        config = self.config
        # pyodbc login timeout, whole seconds
        connect_args = {"timeout": max(1, int(self.settings.CONNECT_TIMEOUT_SECONDS))}
        if config.connection_string:
            return async_url(config.connection_string, self.dialect), connect_args

        # No conventional host: SQL Server needs an explicit server name
        endpoint = resolve_endpoint(config, self.defaults, self.dialect, default_host=None)
        if not endpoint.host or not endpoint.database:
            raise ConfigurationError("Server and database name are required for SQL Server connections")

        url = URL.create(
            ASYNC_DRIVERS[self.dialect],
            username=endpoint.user,
            password=endpoint.password,
            host=endpoint.host,
            port=endpoint.port,
            database=endpoint.database,
            query={
                "driver": self.settings.MSSQL_ODBC_DRIVER,
                "Encrypt": "yes",
                "TrustServerCertificate": "yes" if config.trust_server_certificate else "no",
            },
        )
        return url, connect_args

    def display_info(self) -> dict:
        config = self.config
        endpoint = resolve_endpoint(config, self.defaults, self.dialect, default_host=None)
        return {
            "server": self.server_label(config, endpoint.host),
            "database": endpoint.database if not config.connection_string else "via connection string",
        }

    def tables_statement(self):
        return text(
            """
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_CATALOG = DB_NAME()
              AND TABLE_TYPE = 'BASE TABLE'
              AND (:schema IS NULL OR TABLE_SCHEMA = :schema)
            ORDER BY TABLE_NAME
            """
        ).bindparams(schema=self.config.schema_name)

    def columns_statement(self):
        return text(
            """
            SELECT TOP (:limit) TABLE_NAME, COLUMN_NAME, DATA_TYPE
            FROM INFORMATION_SCHEMA.COLUMNS
            WHERE TABLE_CATALOG = DB_NAME()
              AND (:schema IS NULL OR TABLE_SCHEMA = :schema)
            ORDER BY TABLE_NAME, ORDINAL_POSITION
            """
        ).bindparams(schema=self.config.schema_name, limit=self.column_limit)
