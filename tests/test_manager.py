from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List

import httpx

from usercrud.client import UsersAPIClient
from usercrud.config import Settings
from usercrud.database import Database
from usercrud.manager import ClientStateManager
from usercrud.models import Draft
from usercrud.service import create_api_app
from usercrud.state import ClientState


def _user_payload(user_id: str, name: str) -> dict:
    return {
        "id": user_id,
        "name": name,
        "email": f"{user_id}@example.com",
        "phone": None,
        "age": None,
        "address": None,
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-01-01T00:00:00Z",
    }


def _asgi_client(tmp_path: Path) -> UsersAPIClient:
    db_path = tmp_path / "users.sqlite3"
    app = create_api_app(database=Database(db_path), settings=Settings(database_path=db_path))
    return UsersAPIClient("http://testserver/api", transport=httpx.ASGITransport(app=app))


def test_manager_create_edit_delete_against_api(tmp_path: Path) -> None:
    async def scenario() -> None:
        manager = ClientStateManager(_asgi_client(tmp_path), message_timeout=None)
        await manager.mount()
        assert manager.mounted
        assert manager.state.records == ()
        assert manager.state.loading is False

        manager.set_draft(Draft(name="Ann", email="a@x.com", age="30"))
        await manager.submit()
        state = manager.state
        assert [record.name for record in state.records] == ["Ann"]
        assert state.records[0].age == 30
        assert state.draft == Draft()
        assert state.success is not None
        user_id = state.records[0].id

        assert manager.edit(user_id)
        manager.change("name", "Ann B")
        await manager.submit()
        state = manager.state
        assert state.editing_id is None
        assert state.records[0].name == "Ann B"
        assert state.success.text == "User updated successfully!"

        assert await manager.delete(user_id, confirmed=True)
        assert manager.state.records == ()
        assert manager.state.success.text == "User deleted successfully!"

        await manager.reload()
        assert manager.state.records == ()

    asyncio.run(scenario())


def test_failed_create_keeps_draft_and_shows_server_message(tmp_path: Path) -> None:
    async def scenario() -> None:
        manager = ClientStateManager(_asgi_client(tmp_path), message_timeout=None)
        await manager.mount()

        manager.set_draft(Draft(name="Ann"))
        await manager.submit()

        state = manager.state
        assert state.records == ()
        assert state.draft.name == "Ann"
        assert state.error is not None
        assert state.error.text == "Email is required"

    asyncio.run(scenario())


def test_failed_update_keeps_edit_mode(tmp_path: Path) -> None:
    async def scenario() -> None:
        client = _asgi_client(tmp_path)
        manager = ClientStateManager(client, message_timeout=None)
        created = await client.create_user({"name": "Ann", "email": "a@x.com"})
        await manager.mount()

        await client.delete_user(created.id)
        manager.edit(created.id)
        await manager.submit()

        state = manager.state
        assert state.editing_id == created.id
        assert state.error is not None
        assert state.error.text == "User not found"

    asyncio.run(scenario())


def test_unconfirmed_delete_sends_no_request() -> None:
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[])

    client = UsersAPIClient("http://testserver/api", transport=httpx.MockTransport(handler))

    async def scenario() -> None:
        manager = ClientStateManager(client, message_timeout=None)
        assert await manager.delete("abc", confirmed=False) is False

    asyncio.run(scenario())
    assert calls == []


def test_load_failure_reports_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "User database is unavailable"})

    client = UsersAPIClient("http://testserver/api", transport=httpx.MockTransport(handler))

    async def scenario() -> ClientState:
        manager = ClientStateManager(client, message_timeout=None)
        await manager.mount()
        return manager.state

    state = asyncio.run(scenario())
    assert state.loading is False
    assert state.error is not None
    assert state.error.text == "User database is unavailable"


def test_slow_stale_response_does_not_overwrite_newer_list() -> None:
    calls = {"count": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            await asyncio.sleep(0.1)
            return httpx.Response(200, json=[_user_payload("old", "Old")])
        return httpx.Response(200, json=[_user_payload("new", "New")])

    client = UsersAPIClient("http://testserver/api", transport=httpx.MockTransport(handler))

    async def scenario() -> ClientState:
        manager = ClientStateManager(client, message_timeout=None)
        await asyncio.gather(manager.reload(), manager.reload())
        return manager.state

    state = asyncio.run(scenario())
    assert [record.id for record in state.records] == ["new"]
    assert state.loading is False


def test_transient_messages_expire_without_clearing_newer_ones() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=[])
        body = json.loads(request.content)
        return httpx.Response(400, json={"message": f"rejected {body['name']}"})

    client = UsersAPIClient("http://testserver/api", transport=httpx.MockTransport(handler))

    async def scenario() -> None:
        manager = ClientStateManager(client, message_timeout=0.2)
        await manager.mount()

        manager.set_draft(Draft(name="first"))
        await manager.submit()
        await asyncio.sleep(0.12)

        manager.set_draft(Draft(name="second"))
        await manager.submit()
        await asyncio.sleep(0.12)

        # The first message's timer has fired by now; the newer message stays.
        assert manager.state.error is not None
        assert manager.state.error.text == "rejected second"

        await asyncio.sleep(0.2)
        assert manager.state.error is None
        manager.close()

    asyncio.run(scenario())


def test_subscribers_are_notified_until_unsubscribed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[_user_payload("a", "Ann")])

    client = UsersAPIClient("http://testserver/api", transport=httpx.MockTransport(handler))
    seen: List[ClientState] = []

    async def scenario() -> None:
        manager = ClientStateManager(client, message_timeout=None)
        unsubscribe = manager.subscribe(seen.append)
        await manager.mount()
        assert seen[0].loading is True
        assert seen[-1].records[0].name == "Ann"

        count = len(seen)
        unsubscribe()
        manager.edit("a")
        assert len(seen) == count
        assert manager.state.editing_id == "a"

    asyncio.run(scenario())
