import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer, unused_port

from modules.serverlist.models import ServerRecord
from modules.serverlist.prober import DEFAULT_USER_AGENT, HealthProber, parse_info_payload



def _info_app(handler) -> web.Application:
    app = web.Application()
    app.router.add_get("/info", handler)
    return app


async def _probe_with(handler, *, timeout_sec: float = 2.0):
    async with TestServer(_info_app(handler)) as server:
        record = ServerRecord(id=1, address=f"{server.host}:{server.port}", region="")
        async with HealthProber(timeout_sec=timeout_sec) as prober:
            return await prober.probe(record)


def test_probe_success_reads_online_and_version():
    seen = {}

    async def handler(request: web.Request) -> web.Response:
        seen["ua"] = request.headers.get("User-Agent")
        return web.json_response({"online": 7, "version": "0.2.3"})

    result = asyncio.run(_probe_with(handler))

    assert result.ok
    assert result.online_count == 7
    assert result.version == "0.2.3"
    assert result.failure_reason is None
    assert seen["ua"] == DEFAULT_USER_AGENT


def test_probe_non_2xx_reports_status():
    async def handler(_: web.Request) -> web.Response:
        return web.Response(status=502, text="bad gateway")

    result = asyncio.run(_probe_with(handler))

    assert not result.ok
    assert result.online_count == -1
    assert result.version == "unknown"
    assert result.failure_reason == "Request failed with status code 502"


def test_probe_invalid_json_is_malformed():
    async def handler(_: web.Request) -> web.Response:
        return web.Response(text="<html>hi</html>", content_type="text/html")

    result = asyncio.run(_probe_with(handler))

    assert not result.ok
    assert result.failure_reason == "malformed response body: invalid JSON"


def test_probe_missing_fields_is_malformed():
    async def handler(_: web.Request) -> web.Response:
        return web.json_response({"online": "many"})

    result = asyncio.run(_probe_with(handler))

    assert not result.ok
    assert result.failure_reason.startswith("malformed response body")


def test_probe_timeout_is_reported():
    async def handler(_: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.json_response({"online": 1, "version": "x"})

    result = asyncio.run(_probe_with(handler, timeout_sec=0.2))

    assert not result.ok
    assert result.failure_reason == "timeout of 200ms exceeded"


def test_probe_connection_refused_is_a_failure():
    async def _run():
        record = ServerRecord(id=1, address=f"127.0.0.1:{unused_port()}", region="")
        async with HealthProber(timeout_sec=2) as prober:
            return await prober.probe(record)

    result = asyncio.run(_run())

    assert not result.ok
    assert result.failure_reason


def test_close_leaves_borrowed_session_open():
    async def _run():
        session = aiohttp.ClientSession()
        try:
            prober = HealthProber(session=session)
            await prober.close()
            assert not session.closed
        finally:
            await session.close()

    asyncio.run(_run())


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"online": True, "version": "x"},
        {"online": -2, "version": "x"},
        {"online": 1, "version": 3},
    ],
)
def test_parse_info_payload_rejects_bad_shapes(payload):
    with pytest.raises(ValueError):
        parse_info_payload(payload)
