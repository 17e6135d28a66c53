from sqlalchemy import text
from sqlalchemy.engine import URL

from formflow.core.exceptions import ConfigurationError
from formflow.services.connectors.config import SQLDialect
from formflow.services.connectors.resolver import ASYNC_DRIVERS, async_url, resolve_endpoint
from formflow.services.connectors.sql import SQLConnector


class OracleConnector(SQLConnector):
    """Connector for Oracle Database via python-oracledb (thin mode)."""

    engine_name = "Oracle"
    dialect = SQLDialect.ORACLE
    version_sql = "SELECT banner FROM v$version WHERE banner LIKE 'Oracle%'"

    def engine_target(self) -> tuple[URL, dict]:
        config = self.config
        connect_args = {"tcp_connect_timeout": self.settings.CONNECT_TIMEOUT_SECONDS}
        if config.connection_string:
            return async_url(config.connection_string, self.dialect), connect_args

        endpoint = resolve_endpoint(config, self.defaults, self.dialect, default_host=None)
        if not endpoint.user:
            raise ConfigurationError("A user name is required for Oracle connections")

        if config.connect_string:
            # Easy Connect / TNS string goes straight to the driver
            connect_args["dsn"] = config.connect_string
            url = URL.create(ASYNC_DRIVERS[self.dialect], username=endpoint.user, password=endpoint.password)
            return url, connect_args

        if not endpoint.host or not config.service:
            raise ConfigurationError("A connect string or host and service name are required for Oracle connections")

        url = URL.create(
            ASYNC_DRIVERS[self.dialect],
            username=endpoint.user,
            password=endpoint.password,
            host=endpoint.host,
            port=endpoint.port,
            query={"service_name": config.service},
        )
        return url, connect_args

    def display_info(self) -> dict:
        config = self.config
        endpoint = resolve_endpoint(config, self.defaults, self.dialect, default_host=None)
        via = config.connection_string or config.connect_string
        return {
            "server": "via connection string" if via else (endpoint.host or "unknown"),
            "service": "via connection string" if via else config.service,
        }

    @property
    def owner(self) -> str:
        config = self.config
        owner = config.schema_name or resolve_endpoint(config, self.defaults, self.dialect).user or ""
        return owner.upper()

    def tables_statement(self):
        return text(
            """
            SELECT table_name
            FROM all_tables
            WHERE owner = :owner
            ORDER BY table_name
            """
        ).bindparams(owner=self.owner)

    def columns_statement(self):
        return text(
            """
            SELECT table_name, column_name, data_type
            FROM all_tab_columns
            WHERE owner = :owner
            ORDER BY table_name, column_id
            FETCH FIRST :limit ROWS ONLY
            """
        ).bindparams(owner=self.owner, limit=self.column_limit)
