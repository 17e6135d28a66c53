"""
Config resolution: turn the loose configuration a caller sends into the
minimal, validated parameter set one connector needs.

Precedence for each discrete setting:
    connection string (wins outright) > explicit value >
    EnvironmentDefaults (only with useDefaultDatabase) > engine default
"""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from formflow.core.config import Settings
from formflow.core.exceptions import ConfigurationError
from formflow.services.connectors.config import ConnectionConfig, SQLConnectionConfig, SQLDialect

ConfigT = TypeVar("ConfigT", bound=ConnectionConfig)

DEFAULT_HOST = "localhost"
DEFAULT_PORTS = {
    SQLDialect.POSTGRESQL: 5432,
    SQLDialect.MYSQL: 3306,
    SQLDialect.MSSQL: 1433,
    SQLDialect.ORACLE: 1521,
}
MONGO_DEFAULT_PORT = 27017

ASYNC_DRIVERS = {
    SQLDialect.POSTGRESQL: "postgresql+asyncpg",
    SQLDialect.MYSQL: "mysql+aiomysql",
    SQLDialect.MSSQL: "mssql+aioodbc",
    SQLDialect.ORACLE: "oracle+oracledb",
    SQLDialect.SQLITE: "sqlite+aiosqlite",
}

# URL backends that belong to each dialect, for validating connection strings
URL_BACKENDS = {
    SQLDialect.POSTGRESQL: {"postgresql", "postgres"},
    SQLDialect.MYSQL: {"mysql", "mariadb"},
    SQLDialect.MSSQL: {"mssql"},
    SQLDialect.ORACLE: {"oracle"},
    SQLDialect.SQLITE: {"sqlite"},
}


@dataclass(frozen=True)
class EnvironmentDefaults:
    """Process-wide default database, injected rather than read from os.environ."""
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "EnvironmentDefaults":
        return cls(
            host=settings.PGHOST,
            port=settings.PGPORT,
            database=settings.PGDATABASE,
            user=settings.PGUSER,
            password=settings.PGPASSWORD,
        )


@dataclass(frozen=True)
class ResolvedEndpoint:
    """Discrete connection parameters after precedence has been applied."""
    host: Optional[str]
    port: int
    database: Optional[str]
    user: Optional[str]
    password: Optional[str]


def parse_stored_config(raw: Any) -> dict:
    """
    Accept a config as stored by the persistence layer: a dict, a JSON
    string needing one parse step, or nothing at all.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Stored configuration is not valid JSON: {exc.msg}") from exc
    if isinstance(raw, ConnectionConfig):
        return raw.model_dump()
    if not isinstance(raw, Mapping):
        raise ConfigurationError("Configuration must be a JSON object")
    return dict(raw)


def parse_config(model: type[ConfigT], raw: Any) -> ConfigT:
    """Validate a raw config bag against one engine's config model."""
    if isinstance(raw, model):
        return raw
    data = parse_stored_config(raw)
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        problems = ", ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration ({problems})") from exc


def resolve_endpoint(
    config: SQLConnectionConfig,
    defaults: EnvironmentDefaults,
    dialect: SQLDialect,
    default_host: Optional[str] = DEFAULT_HOST,
) -> ResolvedEndpoint:
    """
    Apply the explicit > environment > conventional precedence chain.
    The environment defaults describe a PostgreSQL server, so other
    dialects skip them.
    """
    use_env = config.use_default_database and dialect is SQLDialect.POSTGRESQL
    env = defaults if use_env else EnvironmentDefaults()
    return ResolvedEndpoint(
        host=config.host or env.host or default_host,
        port=config.port or env.port or DEFAULT_PORTS.get(dialect, 0),
        database=config.database or env.database,
        user=config.user or env.user,
        password=config.password if config.password is not None else env.password,
    )


def async_url(connection_string: str, dialect: SQLDialect) -> URL:
    """Parse a caller-supplied connection string and point it at the async driver."""
    try:
        url = make_url(connection_string)
    except ArgumentError as exc:
        raise ConfigurationError(f"Could not parse connection string: {exc}") from exc
    if url.get_backend_name() not in URL_BACKENDS[dialect]:
        raise ConfigurationError(
            f"Connection string scheme '{url.drivername}' does not match the {dialect.value} dialect"
        )
    return url.set(drivername=ASYNC_DRIVERS[dialect])


def resolve_table_name(explicit: Optional[str], discovered: list[str], kind: str = "table") -> str:
    """Use the configured table, else the first one discovered, else fail."""
    if explicit:
        return explicit
    if discovered:
        return discovered[0]
    raise ConfigurationError(f"No {kind} specified and none could be discovered")
