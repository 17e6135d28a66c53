"""Tests for the SharePoint list connector using httpx.MockTransport."""

import asyncio

import httpx
import pytest

from formflow.core.exceptions import QueryError
from formflow.services.connectors import SharePointConnector
from formflow.services.connectors.sharepoint import list_path, map_field_type, parse_odata_options

SITE = "https://contoso.sharepoint.com/sites/team"


def run(coro):
    return asyncio.run(coro)


def sharepoint_handler(requests):
    """Build a handler that serves a site with a 'Tasks' list."""

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path.endswith("/_api/web"):
            return httpx.Response(200, json={"Title": "Team Site"})
        if path.endswith("/_api/web/lists"):
            return httpx.Response(200, json={"value": [{"Title": "Tasks"}, {"Title": "Zeta"}]})
        if path.endswith("/fields"):
            return httpx.Response(200, json={"value": [
                {"InternalName": "ID", "Title": "ID", "TypeAsString": "Counter"},
                {"InternalName": "Title", "Title": "Title", "TypeAsString": "Text"},
                {"InternalName": "DueDate", "Title": "Due", "TypeAsString": "DateTime"},
                {"InternalName": "Done", "Title": "Done", "TypeAsString": "Boolean"},
            ]})
        if path.endswith("/items"):
            return httpx.Response(200, json={"value": [
                {"odata.type": "SP.Data.TasksListItem", "ID": 1, "Title": "Write docs", "Done": False},
            ]})
        return httpx.Response(404, json={"error": "not found"})

    return handler


class TestHelpers:
    """Test SharePoint helper functions."""

    def test_field_type_mapping(self):
        assert map_field_type("Counter") == "number"
        assert map_field_type("Currency") == "number"
        assert map_field_type("DateTime") == "datetime"
        assert map_field_type("Boolean") == "boolean"
        assert map_field_type("Note") == "text"

    def test_list_path_escapes_quotes(self):
        assert list_path("Bob's List") == "/_api/web/lists/getbytitle('Bob%27%27s%20List')"

    def test_odata_options(self):
        assert parse_odata_options("$select=Title&$top=5") == {"$select": "Title", "$top": "5"}
        assert parse_odata_options("") == {}

    def test_odata_options_reject_plain_keys(self):
        with pytest.raises(QueryError):
            parse_odata_options("select=Title")


class TestSharePointConnector:
    """Test the connector against a mocked SharePoint REST API."""

    def test_connection_reads_list_fields(self, test_settings):
        requests = []
        connector = SharePointConnector(
            {"url": SITE + "/", "listName": "Tasks", "accessToken": "tok"},
            settings=test_settings,
            transport=httpx.MockTransport(sharepoint_handler(requests)),
        )
        result = run(connector.test_connection())

        assert result.success is True
        assert result.message == "SharePoint connection successful"
        assert result.tables == ["Tasks"]
        assert [(f.name, f.type, f.selected) for f in result.fields["Tasks"]] == [
            ("ID", "number", True),
            ("Title", "text", True),
            ("DueDate", "datetime", False),
            ("Done", "boolean", False),
        ]
        assert result.info == {"url": SITE, "site": "Team Site", "listName": "Tasks"}
        assert all(r.headers["Authorization"] == "Bearer tok" for r in requests)

    def test_first_list_used_when_unnamed(self, test_settings):
        requests = []
        connector = SharePointConnector(
            {"siteUrl": SITE},
            settings=test_settings,
            transport=httpx.MockTransport(sharepoint_handler(requests)),
        )
        result = run(connector.test_connection())

        assert result.success is True
        assert result.tables == ["Tasks"]

    def test_unauthorized_fails(self, test_settings):
        connector = SharePointConnector(
            {"url": SITE, "listName": "Tasks"},
            settings=test_settings,
            transport=httpx.MockTransport(lambda request: httpx.Response(401)),
        )
        result = run(connector.test_connection())

        assert result.success is False
        assert result.message.startswith("SharePoint connection failed:")

    def test_missing_url_fails(self, test_settings):
        result = run(SharePointConnector({}, settings=test_settings).test_connection())
        assert result.success is False
        assert "SharePoint site URL is required" in result.message

    def test_query_items(self, test_settings):
        requests = []
        connector = SharePointConnector(
            {"url": SITE, "listName": "Tasks"},
            settings=test_settings,
            transport=httpx.MockTransport(sharepoint_handler(requests)),
        )
        result = run(connector.execute_query("$select=ID,Title,Done"))

        assert result.error is None
        assert result.rows == [{"ID": 1, "Title": "Write docs", "Done": False}]
        params = requests[-1].url.params
        assert params["$select"] == "ID,Title,Done"
        assert params["$top"] == str(test_settings.QUERY_ROW_LIMIT)

    def test_invalid_query_does_no_io(self, test_settings):
        requests = []
        connector = SharePointConnector(
            {"url": SITE, "listName": "Tasks"},
            settings=test_settings,
            transport=httpx.MockTransport(sharepoint_handler(requests)),
        )
        result = run(connector.execute_query("filter=Done"))

        assert isinstance(result.error, QueryError)
        assert requests == []


class TestSharePointEmptySite:
    """Test a reachable site that has no visible lists."""

    @staticmethod
    def empty_site(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/_api/web"):
            return httpx.Response(200, json={"Title": "Empty Site"})
        if request.url.path.endswith("/_api/web/lists"):
            return httpx.Response(200, json={"value": []})
        return httpx.Response(404)

    def test_connection_succeeds_with_empty_schema(self, test_settings):
        connector = SharePointConnector(
            {"url": SITE},
            settings=test_settings,
            transport=httpx.MockTransport(self.empty_site),
        )
        result = run(connector.test_connection())

        assert result.success is True
        assert result.tables == []
        assert result.fields == {}

    def test_query_without_lists_fails(self, test_settings):
        connector = SharePointConnector(
            {"url": SITE},
            settings=test_settings,
            transport=httpx.MockTransport(self.empty_site),
        )
        result = run(connector.execute_query(""))

        assert result.rows == []
        assert "No list specified" in str(result.error)
