import logging
from typing import Any, Optional

from formflow.core.config import Settings
from formflow.core.exceptions import ConnectorError, UnsupportedSourceTypeError
from formflow.services.connectors import get_connector
from formflow.services.connectors.resolver import parse_stored_config, resolve_table_name
from formflow.services.connectors.results import ConnectionTestResult, FieldDescriptor, QueryResult

logger = logging.getLogger(__name__)


class DataSourceService:
    """
    Single entry point for data-source connectivity. Callers pass the
    source type and its config; the matching connector does the rest.
    test_connection and execute_query never raise.
    """

    @staticmethod
    async def test_connection(
        source_type: str,
        config: Any,
        settings: Optional[Settings] = None,
    ) -> ConnectionTestResult:
        """Test a data source and discover its tables and fields."""
        try:
            connector = get_connector(source_type, config, settings=settings)
        except UnsupportedSourceTypeError as exc:
            logger.warning(f"Connection test rejected: {exc}")
            return ConnectionTestResult.failure(str(exc))

        return await connector.test_connection()

    @staticmethod
    async def execute_query(
        source_type: str,
        config: Any,
        query: str,
        settings: Optional[Settings] = None,
    ) -> QueryResult:
        """Run a native query against a data source."""
        try:
            connector = get_connector(source_type, config, settings=settings)
        except UnsupportedSourceTypeError as exc:
            logger.warning(f"Query rejected: {exc}")
            return QueryResult.failed(exc)

        return await connector.execute_query(query)

    @staticmethod
    async def get_table_fields(
        source_type: str,
        config: Any,
        table: Optional[str] = None,
        selected_fields: Optional[list[str]] = None,
        settings: Optional[Settings] = None,
    ) -> tuple[str, list[FieldDescriptor]]:
        """
        Field list for one table of a stored data source, for refreshing
        the cached field list. The table comes from the argument, then
        config["table"], then the first table discovered. When
        selected_fields is given, it decides each field's selected flag.

        Raises ConnectorError when the source cannot be introspected.
        """
        result = await DataSourceService.test_connection(source_type, config, settings=settings)
        if not result.success:
            raise result.error if isinstance(result.error, ConnectorError) else ConnectorError(result.message)

        discovered = list(result.tables or []) or list((result.fields or {}).keys())
        table_name = resolve_table_name(table or _configured_table(config), discovered)
        if table_name not in (result.fields or {}):
            raise ConnectorError(f"Table '{table_name}' was not found in the data source")

        fields = result.fields[table_name]
        if selected_fields is not None:
            chosen = set(selected_fields)
            fields = [
                FieldDescriptor(name=f.name, type=f.type, selected=f.name in chosen)
                for f in fields
            ]
        return table_name, fields

    @staticmethod
    def parse_stored_config(raw: Any) -> dict:
        """Config as persisted (dict or JSON string) → dict."""
        return parse_stored_config(raw)


def _configured_table(config: Any) -> Optional[str]:
    try:
        data = parse_stored_config(config)
    except ConnectorError:
        return None
    for key in ("table", "tableName", "collection", "sheetName", "listName"):
        if data.get(key):
            return str(data[key])
    return None
