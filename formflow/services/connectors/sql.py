"""Shared plumbing for connectors backed by SQLAlchemy's asyncio engine."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.elements import TextClause

from formflow.services.connectors.base import BaseConnector
from formflow.services.connectors.config import SQLConnectionConfig, SQLDialect
from formflow.services.connectors.normalize import group_columns, rows_from_sequences
from formflow.services.connectors.results import QueryResult, SchemaSnapshot

logger = logging.getLogger(__name__)

# Run query text exactly as given: no bind-parameter parsing, no % formatting.
VERBATIM = {"no_parameters": True}


class SQLConnector(BaseConnector):
    """
    Base for relational connectors. Each dialect provides its engine URL,
    a version probe and two catalog statements (table names, then
    table/column/type triples in declaration order).
    """

    config_model = SQLConnectionConfig
    dialect: SQLDialect
    version_sql: str = "SELECT 1"

    def engine_target(self) -> tuple[URL, dict]:
        """Return the async engine URL and driver connect_args."""
        raise NotImplementedError

    def display_info(self) -> dict:
        return {}

    def tables_statement(self) -> TextClause:
        raise NotImplementedError

    def columns_statement(self) -> TextClause:
        raise NotImplementedError

    @property
    def column_limit(self) -> int:
        return self.settings.INTROSPECTION_COLUMN_LIMIT

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncConnection]:
        url, connect_args = self.engine_target()
        target = url.render_as_string(hide_password=True)
        # One engine per call; NullPool so dispose() really closes the socket.
        engine = create_async_engine(url, poolclass=NullPool, connect_args=connect_args)
        try:
            conn = engine.connect()
            await self.connect_with_timeout(conn.start(), target)
            try:
                yield conn
            finally:
                await conn.close()
        finally:
            await engine.dispose()

    async def server_info(self, conn: AsyncConnection) -> dict:
        result = await conn.execute(text(self.version_sql))
        version = result.scalar()
        return {**self.display_info(), "version": str(version) if version is not None else "Unknown"}

    async def introspect(self, conn: AsyncConnection) -> SchemaSnapshot:
        table_rows = await conn.execute(self.tables_statement())
        tables = [row[0] for row in table_rows.all()]

        column_rows = await conn.execute(self.columns_statement())
        grouped = group_columns(column_rows.all())

        return SchemaSnapshot(
            tables=tables,
            fields={name: grouped[name] for name in tables if name in grouped},
        )

    async def run_query(self, conn: AsyncConnection, query: str) -> QueryResult:
        result = await conn.exec_driver_sql(query, execution_options=VERBATIM)
        if not result.returns_rows:
            await conn.commit()
            return QueryResult(rows=[], fields=[])

        columns = [str(key) for key in result.keys()]
        values = result.fetchmany(self.settings.QUERY_ROW_LIMIT)
        await conn.commit()
        return QueryResult(
            rows=rows_from_sequences(columns, values),
            fields=self.columns_from_names(columns),
        )

    @staticmethod
    def server_label(config: SQLConnectionConfig, host: Optional[Any]) -> str:
        if config.connection_string:
            return "via connection string"
        return str(host) if host else "unknown"
