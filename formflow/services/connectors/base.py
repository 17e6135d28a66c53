import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Awaitable, Optional, TypeVar

from formflow.core.config import Settings, settings as app_settings
from formflow.core.exceptions import (
    ConnectionFailedError,
    ConnectorError,
    IntrospectionError,
    QueryTimeoutError,
)
from formflow.services.connectors.config import ConnectionConfig
from formflow.services.connectors.resolver import EnvironmentDefaults, parse_config
from formflow.services.connectors.results import (
    ConnectionTestResult,
    FieldDescriptor,
    QueryColumn,
    QueryResult,
    SchemaSnapshot,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def describe(exc: BaseException) -> str:
    """Human-readable text for an exception, falling back to its class name."""
    return str(exc) or type(exc).__name__


class BaseConnector(ABC):
    """
    Abstract base class for all data-source connectors.

    Subclasses supply the engine-specific pieces (session, server_info,
    introspect, run_query); the public test_connection / execute_query
    methods own error conversion, timeouts and the guaranteed release of
    whatever session() acquires.
    """

    engine_name: str = "Data source"
    config_model: type[ConnectionConfig] = ConnectionConfig

    def __init__(
        self,
        config: Any = None,
        defaults: Optional[EnvironmentDefaults] = None,
        settings: Optional[Settings] = None,
    ):
        self.raw_config = config
        self.settings = settings or app_settings
        self.defaults = defaults or EnvironmentDefaults.from_settings(self.settings)
        self._config: Optional[ConnectionConfig] = None

    @property
    def config(self) -> Any:
        """The raw config validated against config_model. Raises ConfigurationError."""
        if self._config is None:
            self._config = parse_config(self.config_model, self.raw_config)
        return self._config

    @abstractmethod
    def session(self) -> AbstractAsyncContextManager:
        """Open a connection/session; closing it releases every handle."""
        ...

    @abstractmethod
    async def server_info(self, session) -> dict:
        """Liveness probe: engine/server metadata for ConnectionTestResult.info."""
        ...

    @abstractmethod
    async def introspect(self, session) -> SchemaSnapshot:
        """Enumerate tables/collections and their fields."""
        ...

    @abstractmethod
    async def run_query(self, session, query: Any) -> QueryResult:
        """Run a prepared native query and normalize the result."""
        ...

    def prepare_query(self, query: str) -> Any:
        """Parse the query text before any I/O. Raise QueryError to reject it."""
        return query

    async def test_connection(self) -> ConnectionTestResult:
        """Connect, probe, introspect. Never raises."""
        try:
            async with self.session() as session:
                # Lazy clients do their first real I/O here, so a probe
                # failure is still a connection failure.
                info = await self.server_info(session)
                try:
                    schema = await self.introspect(session)
                except ConnectorError:
                    raise
                except Exception as exc:
                    raise IntrospectionError(describe(exc)) from exc
        except IntrospectionError as exc:
            cause = exc.__cause__ or exc
            logger.error(f"{self.engine_name} schema introspection failed: {exc}")
            return ConnectionTestResult.failure(
                f"{self.engine_name} schema introspection failed: {exc}", cause,
            )
        except Exception as exc:
            logger.error(f"{self.engine_name} connection failed: {describe(exc)}")
            return ConnectionTestResult.failure(
                f"{self.engine_name} connection failed: {describe(exc)}", exc,
            )

        logger.info(f"{self.engine_name} connection successful ({len(schema.tables)} tables)")
        return ConnectionTestResult.ok(
            f"{self.engine_name} connection successful", info=info, schema=schema,
        )

    async def execute_query(self, query: str) -> QueryResult:
        """Run query text in the engine's native language. Never raises."""
        timeout = self.settings.QUERY_TIMEOUT_SECONDS
        try:
            prepared = self.prepare_query(query)
            async with self.session() as session:
                try:
                    return await asyncio.wait_for(self.run_query(session, prepared), timeout)
                except asyncio.TimeoutError as exc:
                    raise QueryTimeoutError(f"Query exceeded the {timeout:g}s timeout") from exc
        except Exception as exc:
            logger.error(f"{self.engine_name} query failed: {exc}")
            return QueryResult.failed(exc)

    async def connect_with_timeout(self, awaitable: Awaitable[T], target: str) -> T:
        """Await a connect step, bounded by CONNECT_TIMEOUT_SECONDS."""
        timeout = self.settings.CONNECT_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise ConnectionFailedError(
                f"Timed out after {timeout:g}s connecting to {target}"
            ) from exc

    @staticmethod
    def columns_from_names(names) -> list[QueryColumn]:
        return [QueryColumn(name=str(name)) for name in names]

    @staticmethod
    def single_table(name: str, fields: list[FieldDescriptor], listed: bool = True) -> SchemaSnapshot:
        """Snapshot for sources exposing one implicit table."""
        return SchemaSnapshot(tables=[name] if listed else [], fields={name: fields})
