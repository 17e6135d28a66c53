import logging
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection

from formflow.core.exceptions import ConfigurationError, ConnectionFailedError
from formflow.services.connectors.config import SQLDialect
from formflow.services.connectors.normalize import group_columns
from formflow.services.connectors.resolver import ASYNC_DRIVERS, async_url
from formflow.services.connectors.results import QueryResult, SchemaSnapshot
from formflow.services.connectors.sql import VERBATIM, SQLConnector

logger = logging.getLogger(__name__)


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SQLiteConnector(SQLConnector):
    """Connector for SQLite database files via aiosqlite."""

    engine_name = "SQLite"
    dialect = SQLDialect.SQLITE
    version_sql = "SELECT sqlite_version()"

    def _db_path(self) -> Path:
        config = self.config
        if config.connection_string:
            database = async_url(config.connection_string, self.dialect).database
        else:
            database = config.filename
        if not database:
            raise ConfigurationError("A database filename is required for SQLite connections")
        db_path = Path(database)
        # Connecting would silently create a new, empty database
        if not db_path.exists():
            raise ConnectionFailedError(f"SQLite database file does not exist: {db_path}")
        return db_path

    def engine_target(self) -> tuple[URL, dict]:
        url = URL.create(ASYNC_DRIVERS[self.dialect], database=str(self._db_path()))
        return url, {"timeout": self.settings.CONNECT_TIMEOUT_SECONDS}

    def display_info(self) -> dict:
        return {"filename": str(self._db_path())}

    def tables_statement(self):
        return text(
            """
            SELECT name
            FROM sqlite_master
            WHERE type = 'table'
              AND name NOT LIKE 'sqlite_%'
            ORDER BY name
            """
        )

    async def introspect(self, conn: AsyncConnection) -> SchemaSnapshot:
        table_rows = await conn.execute(self.tables_statement())
        tables = [row[0] for row in table_rows.all()]

        triples = []
        for table_name in tables:
            remaining = self.column_limit - len(triples)
            if remaining <= 0:
                break
            info = await conn.exec_driver_sql(f"PRAGMA table_info({_quote_identifier(table_name)})")
            # (cid, name, type, notnull, dflt_value, pk)
            for col in info.all()[:remaining]:
                triples.append((table_name, col[1], col[2] or ""))

        return SchemaSnapshot(tables=tables, fields=group_columns(triples))

    async def run_query(self, conn: AsyncConnection, query: str) -> QueryResult:
        if query.strip().upper().startswith("SELECT"):
            return await super().run_query(conn, query)

        await conn.exec_driver_sql(query, execution_options=VERBATIM)
        await conn.commit()
        return QueryResult(rows=[])
