from typing import Any, Optional

from formflow.core.config import Settings
from formflow.core.exceptions import ConfigurationError, UnsupportedSourceTypeError
from formflow.services.connectors.base import BaseConnector
from formflow.services.connectors.config import (
    TYPE_ALIASES,
    SourceType,
    SQLDialect,
    normalize_dialect,
)
from formflow.services.connectors.excel import ExcelConnector
from formflow.services.connectors.mongodb import MongoDBConnector
from formflow.services.connectors.mssql import MSSQLConnector
from formflow.services.connectors.mysql import MySQLConnector
from formflow.services.connectors.oracle import OracleConnector
from formflow.services.connectors.postgres import PostgresConnector
from formflow.services.connectors.resolver import EnvironmentDefaults, parse_stored_config
from formflow.services.connectors.results import (
    ConnectionTestResult,
    FieldDescriptor,
    QueryColumn,
    QueryResult,
    SchemaSnapshot,
)
from formflow.services.connectors.sharepoint import SharePointConnector
from formflow.services.connectors.sqlite import SQLiteConnector

SQL_CONNECTORS: dict[SQLDialect, type[BaseConnector]] = {
    SQLDialect.POSTGRESQL: PostgresConnector,
    SQLDialect.MYSQL: MySQLConnector,
    SQLDialect.MSSQL: MSSQLConnector,
    SQLDialect.ORACLE: OracleConnector,
    SQLDialect.SQLITE: SQLiteConnector,
}

# SourceType.DATABASE has no single class; it dispatches on dialect.
CONNECTOR_REGISTRY: dict[SourceType, Optional[type[BaseConnector]]] = {
    SourceType.DATABASE: None,
    SourceType.SQLITE: SQLiteConnector,
    SourceType.MONGODB: MongoDBConnector,
    SourceType.EXCEL: ExcelConnector,
    SourceType.SHAREPOINT: SharePointConnector,
}


def resolve_source_type(source_type: str) -> tuple[SourceType, Optional[SQLDialect]]:
    """Map a caller's type tag onto a SourceType (and a forced dialect for shorthands)."""
    key = (source_type or "").strip().lower()
    if key in TYPE_ALIASES:
        return TYPE_ALIASES[key]
    try:
        return SourceType(key), None
    except ValueError:
        raise UnsupportedSourceTypeError(source_type)


def _peek_dialect(source_type: str, config: Any) -> SQLDialect:
    """Read the dialect tag of a relational config without validating the rest."""
    try:
        data = parse_stored_config(config)
    except ConfigurationError:
        # The connector re-parses the config and reports the problem
        return SQLDialect.POSTGRESQL
    value = normalize_dialect(data.get("dialect"))
    try:
        return SQLDialect(value)
    except ValueError:
        raise UnsupportedSourceTypeError(f"{source_type}/{value}")


def get_connector(
    source_type: str,
    config: Any = None,
    defaults: Optional[EnvironmentDefaults] = None,
    settings: Optional[Settings] = None,
    **kwargs,
) -> BaseConnector:
    """Factory: return the connector for a source type. No I/O happens here."""
    kind, dialect = resolve_source_type(source_type)

    if kind is SourceType.DATABASE:
        connector_cls = SQL_CONNECTORS[dialect or _peek_dialect(source_type, config)]
    else:
        connector_cls = CONNECTOR_REGISTRY[kind]

    return connector_cls(config, defaults=defaults, settings=settings, **kwargs)


__all__ = [
    "BaseConnector",
    "ConnectionTestResult",
    "FieldDescriptor",
    "QueryColumn",
    "QueryResult",
    "SchemaSnapshot",
    "SourceType",
    "SQLDialect",
    "EnvironmentDefaults",
    "PostgresConnector",
    "MySQLConnector",
    "MSSQLConnector",
    "OracleConnector",
    "SQLiteConnector",
    "MongoDBConnector",
    "ExcelConnector",
    "SharePointConnector",
    "CONNECTOR_REGISTRY",
    "SQL_CONNECTORS",
    "get_connector",
    "resolve_source_type",
]
