from datetime import datetime, timedelta
from typing import AsyncIterator

import pytest
from capacity_guard.config import get_settings
from capacity_guard.deps import get_capacity_engine, get_hook_caller, get_session
from capacity_guard.routers import hooks, slots
from capacity_guard.utils.auth import create_hook_token
from fastapi import FastAPI
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


@pytest.fixture(autouse=True)
def _hook_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOOK_SECRET", "testsecret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client(engine) -> TestClient:
    app = FastAPI()

    async def override_get_session() -> AsyncIterator[DummySession]:
        yield DummySession()

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_capacity_engine] = lambda: engine
    app.include_router(hooks.router)
    app.include_router(slots.router)
    return TestClient(app)


def _token(secret: str = "testsecret", *, expired: bool = False) -> str:
    delta = timedelta(seconds=-1) if expired else timedelta(minutes=5)
    return create_hook_token(caller="fluent-host", secret=secret, expires_delta=delta)


@pytest.mark.parametrize("router", [hooks.router, slots.router])
def test_routers_require_hook_token(router) -> None:
    assert any(dep.dependency == get_hook_caller for dep in router.dependencies)
    for route in router.routes:
        if not isinstance(route, APIRoute):
            continue
        assert any(dep.call == get_hook_caller for dep in route.dependant.dependencies)


def test_before_create_rejects_missing_header(client: TestClient) -> None:
    res = client.post("/hooks/bookings/before-create", json={"event_id": 8, "event_type": "group"})
    assert res.status_code == 401
    assert res.headers.get("www-authenticate", "").lower().startswith("bearer")


@pytest.mark.parametrize("header", ["Bearer invalid", "Basic abc", "Bearer"])
def test_before_create_rejects_bad_credentials(client: TestClient, header: str) -> None:
    res = client.post(
        "/hooks/bookings/before-create",
        json={"event_id": 8, "event_type": "group"},
        headers={"Authorization": header},
    )
    assert res.status_code == 401


def test_before_create_rejects_expired_token(client: TestClient) -> None:
    res = client.post(
        "/hooks/bookings/before-create",
        json={"event_id": 8, "event_type": "group"},
        headers={"Authorization": f"Bearer {_token(expired=True)}"},
    )
    assert res.status_code == 401


def test_before_create_rejects_token_signed_with_other_secret(client: TestClient) -> None:
    res = client.post(
        "/hooks/bookings/before-create",
        json={"event_id": 8, "event_type": "group"},
        headers={"Authorization": f"Bearer {_token('othersecret')}"},
    )
    assert res.status_code == 401


def test_before_create_over_http(client: TestClient, add_booking) -> None:
    add_booking(1, 10)
    headers = {"Authorization": f"Bearer {_token()}"}

    res = client.post(
        "/hooks/bookings/before-create",
        json={"event_id": 8, "event_type": "group", "slot_start": "2026-11-07T10:00:00Z"},
        headers=headers,
    )
    assert res.status_code == 400
    assert res.json() == {"message": "Sorry, this time slot is already full."}

    res = client.post(
        "/hooks/bookings/before-create",
        json={"event_id": 8, "event_type": "group", "slot_start": "2026-11-07T11:00:00Z"},
        headers=headers,
    )
    assert res.status_code == 204


def test_slot_capacity_over_http(client: TestClient, add_booking) -> None:
    add_booking(1, 3)
    res = client.get(
        "/events/8/slots/capacity",
        params={"slot_start": "2026-11-07T19:00:00+09:00"},
        headers={"Authorization": f"Bearer {_token()}"},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["enforced"] is True
    assert (body["ceiling"], body["used"], body["remaining"]) == (10, 3, 7)
    assert datetime.fromisoformat(body["slot_start"]) == datetime(2026, 11, 7, 10, 0)
