import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from scheduler.exceptions import VendorFetchError
from vendors.http_fetcher import HttpPriceFetcher


async def extract(request):
    vendor_id = request.match_info["vendor_id"]
    request.app["requests"].append({
        "vendor_id": vendor_id,
        "authorization": request.headers.get("Authorization"),
        "body": await request.json(),
    })
    if vendor_id == "broken":
        return web.json_response({"error": "browser crashed"}, status=500)
    if vendor_id == "empty":
        return web.json_response({"success": False, "error": "No menu found"})
    return web.json_response({"success": True, "items_updated": 12, "vendor_name": "Cafe Nader", "menu_url": "x"})


@pytest.fixture
def automation_app():
    app = web.Application()
    app["requests"] = []
    app.router.add_post("/api/vendors/{vendor_id}/extract", extract)
    return app


async def start(app):
    server = TestServer(app)
    await server.start_server()
    return server


@pytest.mark.asyncio
async def test_successful_extraction(automation_app):
    server = await start(automation_app)
    fetcher = HttpPriceFetcher(str(server.make_url("/")), api_key="secret")
    try:
        result = await fetcher.fetch("v1", timeout=30)
    finally:
        await fetcher.close()
        await server.close()

    assert result.vendor_id == "v1"
    assert result.items_updated == 12
    assert result.vendor_name == "Cafe Nader"
    assert result.details == {"menu_url": "x"}

    request = automation_app["requests"][0]
    assert request["authorization"] == "Bearer secret"
    assert request["body"] == {"vendor_id": "v1", "timeout_ms": 30000}


@pytest.mark.asyncio
async def test_http_error_raises_fetch_error(automation_app):
    server = await start(automation_app)
    fetcher = HttpPriceFetcher(str(server.make_url("/")))
    try:
        with pytest.raises(VendorFetchError) as excinfo:
            await fetcher.fetch("broken")
    finally:
        await fetcher.close()
        await server.close()

    assert excinfo.value.status == 500
    assert excinfo.value.vendor_id == "broken"
    assert str(excinfo.value) == "browser crashed"
    assert automation_app["requests"][0]["authorization"] is None


@pytest.mark.asyncio
async def test_unsuccessful_extraction_raises(automation_app):
    server = await start(automation_app)
    fetcher = HttpPriceFetcher(str(server.make_url("/")))
    try:
        with pytest.raises(VendorFetchError, match="No menu found"):
            await fetcher.fetch("empty")
    finally:
        await fetcher.close()
        await server.close()


@pytest.mark.asyncio
async def test_unreachable_service(automation_app):
    server = await start(automation_app)
    base_url = str(server.make_url("/"))
    await server.close()

    fetcher = HttpPriceFetcher(base_url)
    try:
        with pytest.raises(VendorFetchError, match="unreachable"):
            await fetcher.fetch("v1")
    finally:
        await fetcher.close()


@pytest.mark.asyncio
async def test_close_is_idempotent():
    fetcher = HttpPriceFetcher("http://localhost:1")
    await fetcher.close()
    await fetcher.close()
