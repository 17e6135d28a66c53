import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from urllib.parse import quote_plus

from bson import json_util
from bson.errors import BSONError
from pymongo import AsyncMongoClient
from pymongo.errors import ConfigurationError as MongoConfigurationError

from formflow.core.exceptions import ConfigurationError, QueryError
from formflow.services.connectors.base import BaseConnector
from formflow.services.connectors.config import MongoConnectionConfig
from formflow.services.connectors.normalize import (
    document_value_type,
    is_default_selected,
    rows_from_mappings,
)
from formflow.services.connectors.resolver import DEFAULT_HOST, MONGO_DEFAULT_PORT, resolve_table_name
from formflow.services.connectors.results import FieldDescriptor, QueryResult, SchemaSnapshot

logger = logging.getLogger(__name__)

ID_FIELD = "_id"


def infer_document_fields(document: Optional[dict]) -> list[FieldDescriptor]:
    """Derive a field list from one sampled document. _id is always selected."""
    if not document:
        return []
    fields = []
    for key, value in document.items():
        fields.append(FieldDescriptor(
            name=key,
            type=document_value_type(value),
            selected=key == ID_FIELD or is_default_selected(key),
        ))
    return fields


def parse_filter(query: Optional[str]) -> dict:
    """Parse a JSON (MongoDB Extended JSON) filter document. Blank means match all."""
    if query is None or not query.strip():
        return {}
    try:
        parsed = json_util.loads(query)
    except (ValueError, TypeError, BSONError) as exc:
        raise QueryError(f"MongoDB query must be a JSON filter document: {exc}") from exc
    if not isinstance(parsed, dict):
        raise QueryError("MongoDB query must be a JSON object")
    return parsed


class MongoDBConnector(BaseConnector):
    """Connector for MongoDB via PyMongo's asyncio client."""

    engine_name = "MongoDB"
    config_model = MongoConnectionConfig

    def connection_uri(self) -> str:
        config = self.config
        if config.uri:
            return config.uri
        if not config.database:
            raise ConfigurationError("Database name is required for MongoDB connections")

        auth = ""
        if config.username and config.password:
            auth = f"{quote_plus(config.username)}:{quote_plus(config.password)}@"
        host = config.host or DEFAULT_HOST
        port = config.port or MONGO_DEFAULT_PORT
        uri = f"mongodb://{auth}{host}:{port}/{config.database}"
        if config.auth_source:
            uri += f"?authSource={quote_plus(config.auth_source)}"
        return uri

    def database_name(self, client: AsyncMongoClient) -> str:
        if self.config.database:
            return self.config.database
        try:
            return client.get_default_database().name
        except MongoConfigurationError as exc:
            raise ConfigurationError("Database name is required for MongoDB connections") from exc

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncMongoClient]:
        timeout_ms = int(self.settings.CONNECT_TIMEOUT_SECONDS * 1000)
        client = AsyncMongoClient(
            self.connection_uri(),
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
        try:
            yield client
        finally:
            await client.close()

    async def server_info(self, client: AsyncMongoClient) -> dict:
        build_info = await client.admin.command("buildInfo")
        return {
            "server": "via connection string" if self.config.uri else (self.config.host or DEFAULT_HOST),
            "database": self.database_name(client),
            "version": build_info.get("version", "Unknown"),
        }

    async def introspect(self, client: AsyncMongoClient) -> SchemaSnapshot:
        db = client[self.database_name(client)]
        names = sorted(await db.list_collection_names())

        fields = {}
        for name in names:
            # One sample per collection keeps the test fast
            sample = await db[name].find_one()
            fields[name] = infer_document_fields(sample)
        return SchemaSnapshot(tables=names, fields=fields)

    def prepare_query(self, query: str) -> Any:
        return parse_filter(query)

    async def run_query(self, client: AsyncMongoClient, query: dict) -> QueryResult:
        db = client[self.database_name(client)]
        collection = self.config.collection
        if not collection:
            collection = resolve_table_name(None, sorted(await db.list_collection_names()), "collection")

        cursor = db[collection].find(query).limit(self.settings.QUERY_ROW_LIMIT)
        documents = await cursor.to_list(length=None)
        return QueryResult(rows=rows_from_mappings(documents))
