from __future__ import annotations

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from fleetview.infra.http import BearerAuth, HttpClient, HttpError, NetworkError, ParseError

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


class RefreshingAuth:
    """Hands out a stale token until the first 401, then a fresh one."""

    def __init__(self) -> None:
        self.token = "stale-token"
        self.refreshes = 0

    async def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def on_401(self) -> None:
        self.refreshes += 1
        self.token = "fresh-token"


def make_app(*, token: str = "valid-token") -> web.Application:
    app = web.Application()

    async def json_echo(request: web.Request) -> web.Response:
        auth = request.headers.get("Authorization", "")
        if auth != f"Bearer {token}":
            return web.Response(status=401, text="unauthorized")
        body = await request.json() if request.can_read_body else {}
        return web.json_response({
            "echo": body,
            "params": dict(request.query),
            "method": request.method,
            "cache_control": request.headers.get("Cache-Control"),
            "custom": request.headers.get("X-Custom"),
        })

    async def text_endpoint(_: web.Request) -> web.Response:
        return web.Response(text="plain-text-response")

    async def empty_json(_: web.Request) -> web.Response:
        return web.Response(status=204, body=b"")

    async def broken_json(_: web.Request) -> web.Response:
        return web.Response(text="{not json", content_type="application/json")

    async def error_endpoint(_: web.Request) -> web.Response:
        return web.json_response({"error": "not found"}, status=404)

    async def server_error(_: web.Request) -> web.Response:
        return web.Response(status=500, text="internal server error")

    async def auth_refresh(request: web.Request) -> web.Response:
        if request.headers.get("Authorization") != "Bearer fresh-token":
            return web.Response(status=401, text="expired")
        return web.json_response({"ok": True})

    async def no_auth_endpoint(_: web.Request) -> web.Response:
        return web.json_response({"public": True})

    app.router.add_route("*", "/echo", json_echo)
    app.router.add_post("/text", text_endpoint)
    app.router.add_get("/empty", empty_json)
    app.router.add_get("/broken", broken_json)
    app.router.add_get("/not-found", error_endpoint)
    app.router.add_get("/server-error", server_error)
    app.router.add_get("/auth-refresh", auth_refresh)
    app.router.add_get("/public", no_auth_endpoint)
    return app


@pytest.fixture
async def server():
    srv = TestServer(make_app())
    await srv.start_server()
    yield srv
    await srv.close()


@pytest.fixture
def base_url(server: TestServer) -> str:
    return f"http://{server.host}:{server.port}"


# ─── BearerAuth ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_bearer_auth_headers():
    auth = BearerAuth("my-token")
    h = await auth.headers()
    assert h["Authorization"] == "Bearer my-token"
    assert h["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_bearer_on_401_is_noop():
    auth = BearerAuth("t")
    await auth.on_401()


# ─── HttpClient basic requests ───────────────────────────────────────


@pytest.mark.asyncio
async def test_get_json_with_params(base_url: str):
    async with HttpClient(base_url, BearerAuth("valid-token")) as http:
        result = await http.get("/echo", params={"limit": 200})
    assert result["params"]["limit"] == "200"
    assert result["method"] == "GET"


@pytest.mark.asyncio
async def test_put_json(base_url: str):
    async with HttpClient(base_url, BearerAuth("valid-token")) as http:
        result = await http.put("/echo", json={"tags": ["gpu"]})
    assert result["echo"] == {"tags": ["gpu"]}
    assert result["method"] == "PUT"


@pytest.mark.asyncio
async def test_post_and_delete(base_url: str):
    async with HttpClient(base_url, BearerAuth("valid-token")) as http:
        posted = await http.post("/echo")
        deleted = await http.delete("/echo")
    assert posted["method"] == "POST"
    assert deleted["method"] == "DELETE"


@pytest.mark.asyncio
async def test_plain_text_body_is_a_parse_error(base_url: str):
    async with HttpClient(base_url) as http:
        with pytest.raises(ParseError):
            await http.post("/text")


@pytest.mark.asyncio
async def test_empty_body_returns_none(base_url: str):
    async with HttpClient(base_url) as http:
        result = await http.get("/empty")
    assert result is None


@pytest.mark.asyncio
async def test_requests_disable_caching(base_url: str):
    async with HttpClient(base_url, BearerAuth("valid-token")) as http:
        result = await http.get("/echo")
    assert result["cache_control"] == "no-store"


# ─── Errors ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_http_error_on_404(base_url: str):
    async with HttpClient(base_url) as http:
        with pytest.raises(HttpError) as exc_info:
            await http.get("/not-found")
    assert exc_info.value.status == 404
    assert exc_info.value.not_found


@pytest.mark.asyncio
async def test_http_error_on_5xx(base_url: str):
    async with HttpClient(base_url) as http:
        with pytest.raises(HttpError) as exc_info:
            await http.get("/server-error")
    assert exc_info.value.status == 500
    assert not exc_info.value.not_found
    assert exc_info.value.body == "internal server error"


def test_http_error_str():
    err = HttpError(status=429, body="rate limited")
    assert str(err) == "HTTP 429: rate limited"


@pytest.mark.asyncio
async def test_malformed_json_raises_parse_error(base_url: str):
    async with HttpClient(base_url) as http:
        with pytest.raises(ParseError):
            await http.get("/broken")


@pytest.mark.asyncio
async def test_unreachable_host_raises_network_error():
    async with HttpClient("http://127.0.0.1:1", timeout=2) as http:
        with pytest.raises(NetworkError):
            await http.get("/anything")


# ─── Auth ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_no_auth(base_url: str):
    async with HttpClient(base_url) as http:
        result = await http.get("/public")
    assert result["public"] is True


@pytest.mark.asyncio
async def test_default_headers(base_url: str):
    async with HttpClient(
        base_url,
        BearerAuth("valid-token"),
        default_headers={"X-Custom": "yes"},
    ) as http:
        result = await http.get("/echo")
    assert result["custom"] == "yes"


@pytest.mark.asyncio
async def test_401_refreshes_auth_and_retries_once(base_url: str):
    auth = RefreshingAuth()
    async with HttpClient(base_url, auth) as http:
        result = await http.get("/auth-refresh")
    assert result["ok"] is True
    assert auth.refreshes == 1


@pytest.mark.asyncio
async def test_401_without_auth_is_http_error(base_url: str):
    async with HttpClient(base_url) as http:
        with pytest.raises(HttpError) as exc_info:
            await http.get("/auth-refresh")
    assert exc_info.value.status == 401


# ─── Context manager & session lifecycle ─────────────────────────────


@pytest.mark.asyncio
async def test_close_idempotent(base_url: str):
    http = HttpClient(base_url)
    await http.close()
    await http.close()


@pytest.mark.asyncio
async def test_session_created_lazily(base_url: str):
    http = HttpClient(base_url)
    assert http._session is None
    await http.get("/public")
    assert http._session is not None
    await http.close()


@pytest.mark.asyncio
async def test_base_url_trailing_slash_stripped():
    http = HttpClient("http://example.com/")
    assert http.base_url == "http://example.com"
    await http.close()
