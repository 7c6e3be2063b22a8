from __future__ import annotations

import asyncio
import json
import time
import urllib.request

import pytest

from nip07_bridge import (
    BridgeSettings,
    BridgeStartupError,
    ExtensionError,
    Mode,
    NIP07Bridge,
    OperationSupersededError,
    SessionClosedError,
)


async def wait_for_mode(bridge: NIP07Bridge, mode: Mode, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while bridge.mode is not mode:
        if time.monotonic() > deadline:
            raise AssertionError(f"bridge never entered {mode.value}, still {bridge.mode.value}")
        await asyncio.sleep(0.01)


def fetch_json(url: str):
    with urllib.request.urlopen(url, timeout=2) as response:
        return json.loads(response.read())


def post_json(url: str, body) -> int:
    request = urllib.request.Request(
        url,
        data=json.dumps(body).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(request, timeout=2) as response:
        return response.status


def test_public_key_over_loopback(fast_settings):
    async def _main() -> None:
        async with NIP07Bridge.running(fast_settings) as bridge:
            assert bridge.url == f"http://localhost:{bridge.port}/"
            task = asyncio.create_task(bridge.get_public_key())
            await wait_for_mode(bridge, Mode.PUBLIC_KEY)

            state = await asyncio.to_thread(fetch_json, bridge.url + "api/state")
            assert state == {"mode": "publicKey", "data": {}, "id": bridge.session.operation.request_id}

            status = await asyncio.to_thread(post_json, bridge.url + "public-key", {"publicKey": "abc123"})
            assert status == 200
            assert await task == "abc123"

            state = await asyncio.to_thread(fetch_json, bridge.url + "api/state")
            assert state == {"mode": "idle", "data": None, "id": None}
        assert bridge.closed

    asyncio.run(_main())


def test_sequential_operations_return_to_idle(fast_settings):
    async def _main() -> None:
        async with NIP07Bridge.running(fast_settings) as bridge:
            client = bridge.app.test_client()

            task = asyncio.create_task(bridge.sign_events([{"kind": 1, "content": "gm"}]))
            await wait_for_mode(bridge, Mode.SIGN)
            client.post("/signed-events", json=[{"id": "e1", "sig": "s1"}])
            assert await task == [{"id": "e1", "sig": "s1"}]
            assert bridge.mode is Mode.IDLE

            task = asyncio.create_task(bridge.nip04_encrypt("peer", "hello"))
            await wait_for_mode(bridge, Mode.NIP04_ENCRYPT)
            client.post("/encryption-result", json={"result": "cipher?iv=x"})
            assert await task == "cipher?iv=x"
            assert bridge.mode is Mode.IDLE

    asyncio.run(_main())


def test_repeated_identical_operations_report_distinct_state(fast_settings):
    async def _main() -> None:
        async with NIP07Bridge.running(fast_settings) as bridge:
            states = []
            for key in ("k1", "k2"):
                task = asyncio.create_task(bridge.get_public_key())
                await wait_for_mode(bridge, Mode.PUBLIC_KEY)
                states.append(await asyncio.to_thread(fetch_json, bridge.url + "api/state"))
                await asyncio.to_thread(post_json, bridge.url + "public-key", {"publicKey": key})
                assert await task == key

            assert [state["mode"] for state in states] == ["publicKey", "publicKey"]
            assert states[0]["data"] == states[1]["data"]
            assert states[0] != states[1]

    asyncio.run(_main())


def test_async_with_starts_unstarted_bridge(fast_settings):
    async def _main() -> None:
        async with NIP07Bridge(fast_settings) as bridge:
            task = asyncio.create_task(bridge.get_public_key())
            await wait_for_mode(bridge, Mode.PUBLIC_KEY)
            await asyncio.to_thread(post_json, bridge.url + "public-key", {"publicKey": "abc123"})
            assert await task == "abc123"
        assert bridge.closed

    asyncio.run(_main())


def test_extension_error_reaches_caller(fast_settings):
    async def _main() -> None:
        async with NIP07Bridge.running(fast_settings) as bridge:
            task = asyncio.create_task(bridge.nip44_encrypt("peer", "hello"))
            await wait_for_mode(bridge, Mode.NIP44_ENCRYPT)
            bridge.app.test_client().post("/encryption-result", json={"error": "rejected by user"})
            with pytest.raises(ExtensionError, match="rejected by user"):
                await task

    asyncio.run(_main())


def test_close_fails_pending_operation(fast_settings):
    async def _main() -> None:
        bridge = await NIP07Bridge.start(fast_settings)
        task = asyncio.create_task(bridge.nip44_decrypt("peer", "cipher"))
        await wait_for_mode(bridge, Mode.NIP44_DECRYPT)

        started = time.monotonic()
        await bridge.close()
        with pytest.raises(SessionClosedError):
            await task
        assert time.monotonic() - started < fast_settings.shutdown_grace + 2
        assert bridge.mode is Mode.IDLE
        assert bridge.session.should_close

    asyncio.run(_main())


def test_shutdown_flag_visible_during_grace():
    settings = BridgeSettings(port=0, open_browser=False, browser_open_delay=0, shutdown_grace=0.5)

    async def _main() -> None:
        bridge = await NIP07Bridge.start(settings)
        url = bridge.url + "api/shutdown"
        assert await asyncio.to_thread(fetch_json, url) == {"shouldClose": False}
        closing = asyncio.create_task(bridge.close())
        await asyncio.sleep(0.1)
        assert await asyncio.to_thread(fetch_json, url) == {"shouldClose": True}
        await closing

    asyncio.run(_main())


def test_close_is_idempotent(fast_settings):
    async def _main() -> None:
        bridge = await NIP07Bridge.start(fast_settings)
        await asyncio.gather(bridge.close(), bridge.close())
        await bridge.close()
        assert bridge.closed
        with pytest.raises(SessionClosedError):
            await bridge.get_public_key()

    asyncio.run(_main())


def test_second_operation_supersedes_first(fast_settings):
    async def _main() -> None:
        async with NIP07Bridge.running(fast_settings) as bridge:
            first = asyncio.create_task(bridge.get_public_key())
            await wait_for_mode(bridge, Mode.PUBLIC_KEY)
            second = asyncio.create_task(bridge.sign_events([{"kind": 1}]))
            await wait_for_mode(bridge, Mode.SIGN)
            with pytest.raises(OperationSupersededError):
                await first
            bridge.app.test_client().post("/signed-events", json=[{"id": "e1"}])
            assert await second == [{"id": "e1"}]

    asyncio.run(_main())


def test_caller_timeout_returns_session_to_idle(fast_settings):
    async def _main() -> None:
        async with NIP07Bridge.running(fast_settings) as bridge:
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(bridge.get_public_key(), timeout=0.1)
            assert bridge.mode is Mode.IDLE

    asyncio.run(_main())


def test_port_in_use_is_a_startup_error(busy_port):
    settings = BridgeSettings(port=busy_port, open_browser=False, browser_open_delay=0)

    with pytest.raises(BridgeStartupError, match=str(busy_port)):
        asyncio.run(NIP07Bridge.start(settings))


def test_browser_opened_once_per_session(no_browser):
    settings = BridgeSettings(port=0, browser_open_delay=0, shutdown_grace=0.05)

    async def _main() -> None:
        async with NIP07Bridge.running(settings) as bridge:
            client = bridge.app.test_client()
            for key in ("k1", "k2"):
                task = asyncio.create_task(bridge.get_public_key())
                await wait_for_mode(bridge, Mode.PUBLIC_KEY)
                client.post("/public-key", json={"publicKey": key})
                assert await task == key
            assert no_browser == [bridge.url]

    asyncio.run(_main())
