from sqlalchemy import text
from sqlalchemy.engine import URL

from formflow.core.exceptions import ConfigurationError
from formflow.services.connectors.config import SQLDialect
from formflow.services.connectors.resolver import ASYNC_DRIVERS, async_url, resolve_endpoint
from formflow.services.connectors.sql import SQLConnector

DEFAULT_SCHEMA = "public"


class PostgresConnector(SQLConnector):
    """Connector for PostgreSQL-compatible servers via asyncpg."""

    engine_name = "PostgreSQL"
    dialect = SQLDialect.POSTGRESQL
    version_sql = "SELECT version()"

    def engine_target(self) -> tuple[URL, dict]:
        config = self.config
        connect_args = {"timeout": self.settings.CONNECT_TIMEOUT_SECONDS}
        if config.connection_string:
            return async_url(config.connection_string, self.dialect), connect_args

        endpoint = resolve_endpoint(config, self.defaults, self.dialect)
        if not endpoint.database:
            raise ConfigurationError("Host and database name are required for PostgreSQL connections")
        if config.ssl:
            connect_args["ssl"] = "require"

        url = URL.create(
            ASYNC_DRIVERS[self.dialect],
            username=endpoint.user,
            password=endpoint.password,
            host=endpoint.host,
            port=endpoint.port,
            database=endpoint.database,
        )
        return url, connect_args

    def display_info(self) -> dict:
        config = self.config
        endpoint = resolve_endpoint(config, self.defaults, self.dialect)
        return {
            "server": self.server_label(config, endpoint.host),
            "database": endpoint.database if not config.connection_string else "via connection string",
        }

    @property
    def schema(self) -> str:
        return self.config.schema_name or DEFAULT_SCHEMA

    def tables_statement(self):
        return text(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = :schema
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
            """
        ).bindparams(schema=self.schema)

    def columns_statement(self):
        return text(
            """
            SELECT table_name, column_name, data_type
            FROM information_schema.columns
            WHERE table_schema = :schema
            ORDER BY table_name, ordinal_position
            LIMIT :limit
            """
        ).bindparams(schema=self.schema, limit=self.column_limit)
