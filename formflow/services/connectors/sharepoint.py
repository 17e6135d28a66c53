import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from urllib.parse import quote

import httpx

from formflow.core.exceptions import ConfigurationError, QueryError
from formflow.services.connectors.base import BaseConnector
from formflow.services.connectors.config import SharePointConnectionConfig
from formflow.services.connectors.normalize import is_default_selected, rows_from_mappings
from formflow.services.connectors.resolver import resolve_table_name
from formflow.services.connectors.results import FieldDescriptor, QueryResult, SchemaSnapshot

logger = logging.getLogger(__name__)

ODATA_ACCEPT = "application/json;odata=nometadata"

NUMBER_FIELD_TYPES = {"Counter", "Integer", "Number", "Currency"}
DATETIME_FIELD_TYPES = {"DateTime"}
BOOLEAN_FIELD_TYPES = {"Boolean"}


def map_field_type(type_as_string: str) -> str:
    """Map a SharePoint TypeAsString onto text/number/datetime/boolean."""
    if type_as_string in NUMBER_FIELD_TYPES:
        return "number"
    if type_as_string in DATETIME_FIELD_TYPES:
        return "datetime"
    if type_as_string in BOOLEAN_FIELD_TYPES:
        return "boolean"
    return "text"


def list_path(title: str) -> str:
    escaped = quote(title.replace("'", "''"), safe="")
    return f"/_api/web/lists/getbytitle('{escaped}')"


def parse_odata_options(query: Optional[str]) -> dict[str, str]:
    """Parse '$select=...&$filter=...' style query text into request params."""
    text = (query or "").strip().lstrip("?")
    if not text:
        return {}
    params = dict(httpx.QueryParams(text).multi_items())
    bad = [key for key in params if not key.startswith("$")]
    if bad:
        raise QueryError(
            f"SharePoint queries take OData options such as $select, $filter and $top; got: {', '.join(bad)}"
        )
    return params


def _clean_item(item: dict) -> dict:
    return {k: v for k, v in item.items() if not k.startswith("odata.") and k != "__metadata"}


class SharePointConnector(BaseConnector):
    """Connector for SharePoint lists over the SharePoint REST API (bearer token auth)."""

    engine_name = "SharePoint"
    config_model = SharePointConnectionConfig

    def __init__(self, config: Any = None, *args, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs):
        super().__init__(config, *args, **kwargs)
        self.transport = transport

    @property
    def site_url(self) -> str:
        if not self.config.url:
            raise ConfigurationError("SharePoint site URL is required")
        return self.config.url.rstrip("/")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[httpx.AsyncClient]:
        headers = {"Accept": ODATA_ACCEPT}
        if self.config.access_token:
            headers["Authorization"] = f"Bearer {self.config.access_token}"
        timeout = httpx.Timeout(
            self.settings.QUERY_TIMEOUT_SECONDS, connect=self.settings.CONNECT_TIMEOUT_SECONDS,
        )
        async with httpx.AsyncClient(
            base_url=self.site_url,
            headers=headers,
            timeout=timeout,
            transport=self.transport,
        ) as client:
            yield client

    async def _get(self, client: httpx.AsyncClient, path: str, params: Optional[dict] = None) -> dict:
        resp = await client.get(path, params=params)
        resp.raise_for_status()
        return resp.json()

    async def _list_titles(self, client: httpx.AsyncClient) -> list[str]:
        data = await self._get(client, "/_api/web/lists", {
            "$filter": "Hidden eq false",
            "$select": "Title",
            "$orderby": "Title",
        })
        return [entry["Title"] for entry in data.get("value", []) if entry.get("Title")]

    async def _list_name(self, client: httpx.AsyncClient) -> str:
        if self.config.list_name:
            return self.config.list_name
        return resolve_table_name(None, await self._list_titles(client), "list")

    async def server_info(self, client: httpx.AsyncClient) -> dict:
        web = await self._get(client, "/_api/web", {"$select": "Title"})
        return {
            "url": self.site_url,
            "site": web.get("Title"),
            "listName": self.config.list_name,
        }

    async def introspect(self, client: httpx.AsyncClient) -> SchemaSnapshot:
        list_name = self.config.list_name
        if not list_name:
            titles = await self._list_titles(client)
            if not titles:
                # Reachable site without visible lists
                return SchemaSnapshot()
            list_name = titles[0]
        data = await self._get(client, f"{list_path(list_name)}/fields", {
            "$filter": "Hidden eq false",
            "$select": "InternalName,Title,TypeAsString",
        })

        fields = []
        for meta in data.get("value", []):
            name = meta.get("InternalName") or meta.get("Title")
            if not name:
                continue
            fields.append(FieldDescriptor(
                name=name,
                type=map_field_type(meta.get("TypeAsString", "")),
                selected=is_default_selected(name),
            ))
        return self.single_table(list_name, fields)

    def prepare_query(self, query: str) -> dict[str, str]:
        return parse_odata_options(query)

    async def run_query(self, client: httpx.AsyncClient, params: dict[str, str]) -> QueryResult:
        list_name = await self._list_name(client)
        params = {"$top": str(self.settings.QUERY_ROW_LIMIT), **params}
        data = await self._get(client, f"{list_path(list_name)}/items", params)
        items = [_clean_item(item) for item in data.get("value", [])]
        return QueryResult(rows=rows_from_mappings(items[: self.settings.QUERY_ROW_LIMIT]))
