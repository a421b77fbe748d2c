"""Tests for the Graph services against a mocked HTTP transport."""
import json
from unittest.mock import Mock

import httpx
import pytest

from spdrive.errors import ErrorKind, StorageError
from spdrive.services.api_client import GraphAPIClient
from spdrive.services.auth import ClientCredentialsTokenProvider, StaticTokenProvider
from spdrive.services.files import FileService, parse_timestamp
from spdrive.services.folders import FolderService
from spdrive.services.paths import item_url, split_path
from spdrive.services.transport import ChunkTransport


class Router:
    """httpx mock handler keyed by (method, path); records every request."""

    def __init__(self, routes):
        self.routes = {key: list(value) if isinstance(value, list) else value for key, value in routes.items()}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"error": {"code": "itemNotFound"}})
        route = self.routes[key]
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def sent(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]


def _client(router):
    return GraphAPIClient(StaticTokenProvider("token-1"), transport=httpx.MockTransport(router))


class TestPaths:
    def test_item_url(self):
        assert item_url("d1", "/") == "/drives/d1/root"
        assert item_url("d1", "", "/children") == "/drives/d1/root/children"
        assert item_url("d1", "/A/B/") == "/drives/d1/root:/A/B"
        assert item_url("d1", "A", "/children") == "/drives/d1/root:/A:/children"
        assert item_url("d1", "/My Docs/a#1.txt") == "/drives/d1/root:/My%20Docs/a%231.txt"

    def test_split_path(self):
        assert split_path("a/b/c.txt") == ("/a/b", "c.txt")
        assert split_path("/c.txt") == ("/", "c.txt")
        assert split_path("c.txt") == ("/", "c.txt")

    def test_parse_timestamp(self):
        assert parse_timestamp("2024-01-01T00:00:00Z") == 1704067200
        assert parse_timestamp(None) is None


class TestGraphAPIClient:
    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        router = Router({("GET", "/v1.0/me"): httpx.Response(200, json={"id": "me"})})

        async with _client(router) as client:
            body = await client.request("GET", "/me")

        assert body == {"id": "me"}
        assert router.requests[0].headers["Authorization"] == "Bearer token-1"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        router = Router({("DELETE", "/v1.0/x"): httpx.Response(204)})

        async with _client(router) as client:
            assert await client.request("DELETE", "/x") == {}

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with _client(Router({})) as client:
            with pytest.raises(StorageError) as exc_info:
                await client.request("GET", "/missing")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_forbidden(self):
        router = Router({("GET", "/v1.0/x"): httpx.Response(403, json={"error": "denied"})})

        async with _client(router) as client:
            with pytest.raises(StorageError) as exc_info:
                await client.request("GET", "/x")

        assert exc_info.value.kind is ErrorKind.AUTHENTICATION_FAILED

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        router = Router({("GET", "/v1.0/x"): [httpx.Response(503), httpx.Response(200, json={"ok": True})]})

        async with _client(router) as client:
            assert await client.request("GET", "/x") == {"ok": True}

        assert len(router.requests) == 2

    @pytest.mark.asyncio
    async def test_requires_context(self):
        client = _client(Router({}))
        with pytest.raises(RuntimeError, match="not initialized"):
            await client.request("GET", "/x")


class TestFolderService:
    @pytest.mark.asyncio
    async def test_create_folder_recursive_creates_missing_segments(self):
        router = Router({
            ("GET", "/v1.0/drives/d1/root:/A"): httpx.Response(200, json={"id": "a", "folder": {}}),
            ("POST", "/v1.0/drives/d1/root:/A:/children"): httpx.Response(201, json={"id": "b", "folder": {}}),
        })

        async with _client(router) as client:
            service = FolderService(client, "d1")
            item = await service.create_folder_recursive("/A/B")
            again = await service.create_folder_recursive("A/B/")

        assert item == {"id": "b", "folder": {}}
        assert again is item
        created = router.sent("POST", "/v1.0/drives/d1/root:/A:/children")
        assert len(created) == 1
        assert json.loads(created[0].content) == {
            "name": "B",
            "folder": {},
            "@microsoft.graph.conflictBehavior": "fail",
        }
        assert len(router.requests) == 3

    @pytest.mark.asyncio
    async def test_create_folder_tolerates_concurrent_creation(self):
        router = Router({
            ("GET", "/v1.0/drives/d1/root:/A"): [
                httpx.Response(404),
                httpx.Response(200, json={"id": "a", "folder": {}}),
            ],
            ("POST", "/v1.0/drives/d1/root/children"): httpx.Response(409, json={"error": "nameAlreadyExists"}),
        })

        async with _client(router) as client:
            item = await FolderService(client, "d1").create_folder_recursive("/A")

        assert item["id"] == "a"

    @pytest.mark.asyncio
    async def test_check_folder_exists(self):
        router = Router({
            ("GET", "/v1.0/drives/d1/root:/Docs"): httpx.Response(200, json={"id": "1", "folder": {}}),
            ("GET", "/v1.0/drives/d1/root:/a.txt"): httpx.Response(200, json={"id": "2", "file": {}}),
        })

        async with _client(router) as client:
            service = FolderService(client, "d1")
            assert await service.check_folder_exists("/Docs") is True
            assert await service.check_folder_exists("/a.txt") is False
            assert await service.check_folder_exists("/Missing") is False

    @pytest.mark.asyncio
    async def test_request_folder_items_follows_next_link(self):
        next_link = "https://graph.microsoft.com/v1.0/drives/d1/items/1/children/page2"
        router = Router({
            ("GET", "/v1.0/drives/d1/root:/Docs:/children"): httpx.Response(
                200, json={"value": [{"name": "a"}], "@odata.nextLink": next_link}
            ),
            ("GET", "/v1.0/drives/d1/items/1/children/page2"): httpx.Response(200, json={"value": [{"name": "b"}]}),
        })

        async with _client(router) as client:
            items = await FolderService(client, "d1").request_folder_items("/Docs")

        assert [i["name"] for i in items] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_delete_folder_evicts_cache(self):
        router = Router({
            ("GET", "/v1.0/drives/d1/root:/A"): httpx.Response(200, json={"id": "a", "folder": {}}),
            ("DELETE", "/v1.0/drives/d1/root:/A"): httpx.Response(204),
        })

        async with _client(router) as client:
            service = FolderService(client, "d1")
            await service.create_folder_recursive("/A")
            await service.delete_folder("/A")
            await service.create_folder_recursive("/A")

        assert len(router.sent("GET", "/v1.0/drives/d1/root:/A")) == 2


class TestFileService:
    ITEM = {
        "id": "f1",
        "size": 12,
        "file": {"mimeType": "application/pdf"},
        "lastModifiedDateTime": "2024-01-01T00:00:00Z",
        "@microsoft.graph.downloadUrl": "https://download/f1",
    }

    @pytest.mark.asyncio
    async def test_write_file(self):
        router = Router({("PUT", "/v1.0/drives/d1/root:/Docs/a.json:/content"): httpx.Response(201, json=self.ITEM)})

        async with _client(router) as client:
            await FileService(client, "d1").write_file("/Docs/a.json", b"{}", "application/json")

        request = router.requests[0]
        assert request.content == b"{}"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_read_file(self):
        router = Router({("GET", "/v1.0/drives/d1/root:/a.txt:/content"): httpx.Response(200, content=b"hello")})

        async with _client(router) as client:
            assert await FileService(client, "d1").read_file("/a.txt") == b"hello"

    @pytest.mark.asyncio
    async def test_metadata_lookups(self):
        router = Router({("GET", "/v1.0/drives/d1/root:/a.pdf"): httpx.Response(200, json=self.ITEM)})

        async with _client(router) as client:
            service = FileService(client, "d1")
            assert await service.check_file_exists("/a.pdf") is True
            assert await service.check_file_exists("/missing.pdf") is False
            assert await service.check_file_mime_type("/a.pdf") == "application/pdf"
            assert await service.check_file_size("/a.pdf") == 12
            assert await service.check_file_last_modified("/a.pdf") == 1704067200
            assert await service.request_file_stream_url("/a.pdf") == "https://download/f1"

    @pytest.mark.asyncio
    async def test_missing_download_url(self):
        item = {k: v for k, v in self.ITEM.items() if k != "@microsoft.graph.downloadUrl"}
        router = Router({("GET", "/v1.0/drives/d1/root:/a.pdf"): httpx.Response(200, json=item)})

        async with _client(router) as client:
            with pytest.raises(StorageError) as exc_info:
                await FileService(client, "d1").request_file_stream_url("/a.pdf")

        assert exc_info.value.kind is ErrorKind.UNABLE_TO_READ_FILE

    @pytest.mark.asyncio
    async def test_move_file(self):
        router = Router({
            ("GET", "/v1.0/drives/d1/root:/Archive"): httpx.Response(200, json={"id": "arch", "folder": {}}),
            ("PATCH", "/v1.0/drives/d1/root:/a.pdf"): httpx.Response(200, json=self.ITEM),
        })

        async with _client(router) as client:
            await FileService(client, "d1").move_file("/a.pdf", "/Archive", "b.pdf")

        patch = router.sent("PATCH", "/v1.0/drives/d1/root:/a.pdf")[0]
        assert json.loads(patch.content) == {"parentReference": {"id": "arch"}, "name": "b.pdf"}

    @pytest.mark.asyncio
    async def test_copy_file(self):
        router = Router({
            ("GET", "/v1.0/drives/d1/root"): httpx.Response(200, json={"id": "root", "folder": {}}),
            ("POST", "/v1.0/drives/d1/root:/a.pdf:/copy"): httpx.Response(202),
        })

        async with _client(router) as client:
            await FileService(client, "d1").copy_file("/a.pdf", "/", "c.pdf")

        copy = router.sent("POST", "/v1.0/drives/d1/root:/a.pdf:/copy")[0]
        assert json.loads(copy.content) == {"parentReference": {"driveId": "d1", "id": "root"}, "name": "c.pdf"}

    @pytest.mark.asyncio
    async def test_create_upload_session(self):
        router = Router({
            ("POST", "/v1.0/drives/d1/items/p1:/big.bin:/createUploadSession"): httpx.Response(
                200, json={"uploadUrl": "https://upload/1"}
            ),
        })

        async with _client(router) as client:
            service = FileService(client, "d1")
            url = service.get_file_base_url(item_id="p1", suffix=":/big.bin")
            response = await service.create_upload_session(url)

        assert url == "/drives/d1/items/p1:/big.bin"
        assert response == {"uploadUrl": "https://upload/1"}


class TestChunkTransport:
    @pytest.mark.asyncio
    async def test_put_is_unauthenticated(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(202)

        async with ChunkTransport(httpx.MockTransport(handler)) as transport:
            response = await transport.put(
                "https://upload/1", b"abc", {"Content-Range": "bytes 0-2/10", "Content-Length": "3"}, 120
            )

        assert response.status_code == 202
        assert "Authorization" not in seen[0].headers
        assert seen[0].headers["Content-Range"] == "bytes 0-2/10"
        assert seen[0].content == b"abc"

    @pytest.mark.asyncio
    async def test_stream(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"payload"))

        async with ChunkTransport(transport) as chunk_transport:
            data = b"".join([part async for part in chunk_transport.stream("https://download/1")])

        assert data == b"payload"


class TestClientCredentialsTokenProvider:
    @pytest.fixture
    def msal_app(self, monkeypatch):
        app = Mock()
        factory = Mock(return_value=app)
        monkeypatch.setattr("spdrive.services.auth.msal.ConfidentialClientApplication", factory)
        return factory, app

    @pytest.mark.asyncio
    async def test_app_is_built_once(self, msal_app):
        factory, app = msal_app
        app.acquire_token_for_client.return_value = {"access_token": "abc", "token_source": "cache"}
        provider = ClientCredentialsTokenProvider("t1", "c1", "s1")

        assert await provider.get_token() == "abc"
        assert await provider.get_token() == "abc"

        factory.assert_called_once()
        kwargs = factory.call_args.kwargs
        assert kwargs["client_id"] == "c1"
        assert kwargs["client_credential"] == "s1"
        assert kwargs["authority"] == "https://login.microsoftonline.com/t1"
        app.acquire_token_for_client.assert_called_with(scopes=["https://graph.microsoft.com/.default"])

    @pytest.mark.asyncio
    async def test_error_result(self, msal_app):
        _, app = msal_app
        app.acquire_token_for_client.return_value = {
            "error": "invalid_client",
            "error_description": "AADSTS7000215: Invalid client secret provided.",
        }
        provider = ClientCredentialsTokenProvider("t1", "c1", "bad")

        with pytest.raises(StorageError) as exc_info:
            await provider.get_token()

        assert exc_info.value.kind is ErrorKind.AUTHENTICATION_FAILED
        assert "invalid_client" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_invalid_authority(self, msal_app):
        factory, _ = msal_app
        factory.side_effect = ValueError("Unable to get authority configuration")
        provider = ClientCredentialsTokenProvider("bad tenant", "c1", "s1")

        with pytest.raises(StorageError) as exc_info:
            await provider.get_token()

        assert exc_info.value.kind is ErrorKind.AUTHENTICATION_FAILED
