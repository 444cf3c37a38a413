import pytest
from capacity_guard.main import app
from capacity_guard.utils.request_context import (
    generate_request_id,
    get_request_id,
    request_id_middleware,
    set_request_id,
)
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient


def test_request_id_set_and_get() -> None:
    set_request_id("req-abc")
    assert get_request_id() == "req-abc"
    set_request_id(None)
    assert get_request_id() is None


def test_generate_request_id_is_hex() -> None:
    value = generate_request_id()
    assert len(value) == 32
    int(value, 16)


def _app() -> FastAPI:
    app = FastAPI()

    @app.get("/check")
    async def check() -> dict[str, str]:
        return {"rid": get_request_id() or ""}

    app.middleware("http")(request_id_middleware)
    return app


@pytest.mark.asyncio
async def test_middleware_generates_and_sets_header() -> None:
    transport = ASGITransport(app=_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/check")
    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.json()["rid"] == resp.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_middleware_uses_incoming_header() -> None:
    transport = ASGITransport(app=_app())
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-Request-ID": "host-77"}) as client:
        resp = await client.get("/check")
    assert resp.headers["X-Request-ID"] == "host-77"
    assert resp.json()["rid"] == "host-77"


@pytest.mark.asyncio
async def test_health_endpoint_carries_request_id() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("X-Request-ID")
