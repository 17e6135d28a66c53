"""Typed connection settings, one model per engine family."""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SourceType(str, Enum):
    DATABASE = "database"        # relational SQL, dispatched again on dialect
    SQLITE = "sqlite"            # embedded file database
    MONGODB = "mongodb"          # document store
    EXCEL = "excel"              # spreadsheet file
    SHAREPOINT = "sharepoint"    # remote list service


class SQLDialect(str, Enum):
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    MSSQL = "mssql"
    ORACLE = "oracle"
    SQLITE = "sqlite"


DIALECT_ALIASES = {
    "postgres": SQLDialect.POSTGRESQL,
    "pg": SQLDialect.POSTGRESQL,
    "sqlserver": SQLDialect.MSSQL,
    "sql_server": SQLDialect.MSSQL,
}

# Dialect names also accepted directly as a source type.
TYPE_ALIASES = {
    "postgresql": (SourceType.DATABASE, SQLDialect.POSTGRESQL),
    "postgres": (SourceType.DATABASE, SQLDialect.POSTGRESQL),
    "mysql": (SourceType.DATABASE, SQLDialect.MYSQL),
    "mssql": (SourceType.DATABASE, SQLDialect.MSSQL),
    "oracle": (SourceType.DATABASE, SQLDialect.ORACLE),
}


def normalize_dialect(value):
    """Lower-case a dialect tag and expand aliases. Blank means PostgreSQL."""
    if value is None or value == "":
        return SQLDialect.POSTGRESQL
    if isinstance(value, str):
        lowered = value.strip().lower()
        return DIALECT_ALIASES.get(lowered, lowered)
    return value


class ConnectionConfig(BaseModel):
    """Base for engine configs. Unknown keys are ignored; values are read-only."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class SQLConnectionConfig(ConnectionConfig):
    dialect: SQLDialect = SQLDialect.POSTGRESQL
    connection_string: Optional[str] = Field(
        None, validation_alias=AliasChoices("connectionString", "connection_string", "uri", "url"),
    )
    connect_string: Optional[str] = Field(
        None, validation_alias=AliasChoices("connectString", "connect_string", "dsn"),
    )
    host: Optional[str] = Field(None, validation_alias=AliasChoices("host", "server"))
    port: Optional[int] = None
    database: Optional[str] = Field(None, validation_alias=AliasChoices("database", "dbname"))
    schema_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("schema", "schemaName", "schema_name"),
    )
    user: Optional[str] = Field(None, validation_alias=AliasChoices("user", "username"))
    password: Optional[str] = None
    service: Optional[str] = Field(
        None, validation_alias=AliasChoices("service", "serviceName", "service_name"),
    )
    filename: Optional[str] = Field(
        None, validation_alias=AliasChoices("filename", "filePath", "file_path", "path"),
    )
    ssl: bool = False
    trust_server_certificate: bool = Field(
        True, validation_alias=AliasChoices("trustServerCertificate", "trust_server_certificate"),
    )
    table: Optional[str] = Field(None, validation_alias=AliasChoices("table", "tableName", "table_name"))
    use_default_database: bool = Field(
        False, validation_alias=AliasChoices("useDefaultDatabase", "use_default_database"),
    )

    @field_validator("dialect", mode="before")
    @classmethod
    def coerce_dialect(cls, value):
        return normalize_dialect(value)

    @field_validator("port", mode="before")
    @classmethod
    def blank_port(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class MongoConnectionConfig(ConnectionConfig):
    uri: Optional[str] = Field(
        None, validation_alias=AliasChoices("uri", "connectionString", "connection_string"),
    )
    host: Optional[str] = Field(None, validation_alias=AliasChoices("host", "server"))
    port: Optional[int] = None
    database: Optional[str] = Field(None, validation_alias=AliasChoices("database", "dbname"))
    username: Optional[str] = Field(None, validation_alias=AliasChoices("username", "user"))
    password: Optional[str] = None
    auth_source: Optional[str] = Field(None, validation_alias=AliasChoices("authSource", "auth_source"))
    collection: Optional[str] = Field(
        None, validation_alias=AliasChoices("collection", "table", "collectionName"),
    )


class ExcelConnectionConfig(ConnectionConfig):
    file_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("fileUrl", "file_url", "url", "filePath", "file_path", "filename", "path"),
    )
    sheet_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("sheetName", "sheet_name", "sheet", "table"),
    )
    access_token: Optional[str] = Field(None, validation_alias=AliasChoices("accessToken", "access_token"))


class SharePointConnectionConfig(ConnectionConfig):
    url: Optional[str] = Field(None, validation_alias=AliasChoices("url", "siteUrl", "site_url"))
    list_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("listName", "list_name", "list", "table"),
    )
    access_token: Optional[str] = Field(None, validation_alias=AliasChoices("accessToken", "access_token"))
