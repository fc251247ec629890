import asyncio
import io
from typing import Any

from aiohttp.test_utils import TestClient
from pytest import mark

from hybrid_nat.payloads import client, port, proxy, server

UNREACHABLE = "http://127.0.0.1:1/"


@mark.asyncio
async def test_server_reports_identity(aiohttp_client: Any) -> None:
    http: TestClient = await aiohttp_client(server.make_app("host-a", "cr-spoke-1", delay=0))
    resp = await http.get("/anything")
    assert resp.status == 200
    assert resp.content_type == "text/plain"
    assert await resp.text() == "OK\nHostname: host-a\nService: cr-spoke-1\n"


@mark.asyncio
async def test_server_waits_before_answering(aiohttp_client: Any) -> None:
    http: TestClient = await aiohttp_client(server.make_app("h", "s", delay=0.2))
    loop = asyncio.get_running_loop()
    started = loop.time()
    resp = await http.get("/")
    assert resp.status == 200
    assert loop.time() - started >= 0.2


def test_port_defaults_to_8080() -> None:
    assert port({}) == 8080
    assert port({"PORT": "9090"}) == 9090


@mark.asyncio
async def test_client_requires_target() -> None:
    out, err = io.StringIO(), io.StringIO()
    assert await client.async_main(environ={}, out=out, err=err) == 1
    assert err.getvalue() == "TARGET_URL environment variable is required\n"
    assert out.getvalue() == ""


@mark.asyncio
async def test_client_prints_status_and_body(aiohttp_server: Any) -> None:
    target = await aiohttp_server(server.make_app("vm-hub", "", delay=0))
    url = str(target.make_url("/"))
    out, err = io.StringIO(), io.StringIO()

    assert await client.async_main(environ={"TARGET_URL": url}, out=out, err=err) == 0

    assert out.getvalue() == (f"Requesting {url} ...\n"
                              "Status: 200\nBody:\nOK\nHostname: vm-hub\nService: \n\n")
    assert err.getvalue() == ""


@mark.asyncio
async def test_client_reports_error_statuses_as_responses(aiohttp_server: Any) -> None:
    target = await aiohttp_server(proxy.make_app(UNREACHABLE, "h", "s"))
    out, err = io.StringIO(), io.StringIO()
    assert await client.fetch(str(target.make_url("/")), out=out, err=err) == 0
    assert "Status: 502\n" in out.getvalue()


@mark.asyncio
async def test_client_fails_on_transport_errors() -> None:
    out, err = io.StringIO(), io.StringIO()
    assert await client.async_main(environ={"TARGET_URL": UNREACHABLE}, out=out, err=err) == 1
    assert out.getvalue() == f"Requesting {UNREACHABLE} ...\n"
    assert err.getvalue().startswith("ERROR: ")
    assert len(err.getvalue().strip()) > len("ERROR:")


@mark.asyncio
async def test_proxy_relays_target(aiohttp_server: Any, aiohttp_client: Any) -> None:
    target = await aiohttp_server(server.make_app("vm-hub", "", delay=0))
    url = str(target.make_url("/"))
    http: TestClient = await aiohttp_client(proxy.make_app(url, "proxy-host", "cr-spoke-1"))

    resp = await http.get("/")

    assert resp.status == 200
    assert await resp.text() == (
        "Proxy OK\nHostname: proxy-host\nService: cr-spoke-1\n"
        f"Target: {url}\nTarget status: 200\nTarget body:\nOK\nHostname: vm-hub\nService: \n\n"
    )


@mark.asyncio
async def test_proxy_answers_bad_gateway(aiohttp_client: Any) -> None:
    http: TestClient = await aiohttp_client(proxy.make_app(UNREACHABLE, "proxy-host", "cr-1"))
    resp = await http.get("/")
    assert resp.status == 502
    body = await resp.text()
    assert body.startswith(f"ERROR proxying to {UNREACHABLE}: ")
    assert body.endswith("Hostname: proxy-host\nService: cr-1\n")
