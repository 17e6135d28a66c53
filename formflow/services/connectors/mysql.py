from sqlalchemy import text
from sqlalchemy.engine import URL

from formflow.core.exceptions import ConfigurationError
from formflow.services.connectors.config import SQLDialect
from formflow.services.connectors.resolver import ASYNC_DRIVERS, async_url, resolve_endpoint
from formflow.services.connectors.sql import SQLConnector


class MySQLConnector(SQLConnector):
    """Connector for MySQL/MariaDB via aiomysql."""

    engine_name = "MySQL"
    dialect = SQLDialect.MYSQL
    version_sql = "SELECT VERSION()"

    def engine_target(self) -> tuple[URL, dict]:
        config = self.config
        connect_args = {"connect_timeout": self.settings.CONNECT_TIMEOUT_SECONDS}
        if config.connection_string:
            return async_url(config.connection_string, self.dialect), connect_args

        endpoint = resolve_endpoint(config, self.defaults, self.dialect)
        if not endpoint.database:
            raise ConfigurationError("Host and database name are required for MySQL connections")

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

    def tables_statement(self):
        # Falls back to the connection's current database when no schema is set
        return text(
            """
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = COALESCE(:schema, DATABASE())
              AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
            """
        ).bindparams(schema=self.config.schema_name)

    def columns_statement(self):
        return text(
            """
            SELECT TABLE_NAME, COLUMN_NAME, DATA_TYPE
            FROM INFORMATION_SCHEMA.COLUMNS
            WHERE TABLE_SCHEMA = COALESCE(:schema, DATABASE())
            ORDER BY TABLE_NAME, ORDINAL_POSITION
            LIMIT :limit
            """
        ).bindparams(schema=self.config.schema_name, limit=self.column_limit)
