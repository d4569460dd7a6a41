import asyncio
import json

import pytest
import websockets
from websockets.exceptions import InvalidHandshake

from bridge import CommandBridgeServer
from commands import BackendCommands, build_registry
from connection import ConnectionValidator
from settings import Config, ConfigStore


@pytest.fixture
def bridge(store: ConfigStore, bus) -> CommandBridgeServer:
    commands = BackendCommands(store, ConnectionValidator(bus=bus), bus=bus)
    return CommandBridgeServer(build_registry(commands), host="127.0.0.1", port=0, bus=bus)


async def next_frame(ws, frame_type: str, timeout: float = 5.0) -> dict:
    """Read frames until one of the given type arrives, skipping pushed events"""
    async def read():
        while True:
            frame = json.loads(await ws.recv())
            if frame.get("type") == frame_type:
                return frame
    return await asyncio.wait_for(read(), timeout)


async def test_handle_message_rejects_bad_frames(bridge: CommandBridgeServer):
    not_json = await bridge.handle_message("{nope")
    not_object = await bridge.handle_message("[1, 2]")
    no_command = await bridge.handle_message('{"id": 3}')

    assert not_json["ok"] is False and not_json["error"].startswith("Invalid message")
    assert not_object == {
        "type": "command_response", "id": None, "ok": False,
        "error": "Invalid message: expected a JSON object",
    }
    assert no_command == {"type": "command_response", "id": 3, "ok": False, "error": "Missing command"}


async def test_command_key_is_required(bridge: CommandBridgeServer):
    response = await bridge.handle_message(json.dumps({"id": 4, "cmd": "get_config"}))

    assert response == {"type": "command_response", "id": 4, "ok": False, "error": "Missing command"}


async def test_handle_message_runs_commands(bridge: CommandBridgeServer):
    response = await bridge.handle_message(json.dumps({"id": "a", "command": "get_config"}))

    assert response == {
        "type": "command_response", "id": "a", "ok": True,
        "data": {"server_url": "", "api_key": "", "preferences": {}},
    }


async def test_round_trip_over_websocket(bridge: CommandBridgeServer, store: ConfigStore, remote_api):
    server = await remote_api(401)
    await bridge.start_server()
    try:
        async with websockets.connect(f"ws://127.0.0.1:{bridge.bound_port}") as ws:
            ready = await next_frame(ws, "ready")
            assert ready["commands"] == ["get_config", "save_config", "validate_connection"]

            record = {"server_url": server.url, "api_key": "sk-bad", "preferences": {}}
            await ws.send(json.dumps({"id": 1, "command": "save_config", "args": {"config": record}}))
            saved = await next_frame(ws, "command_response")
            assert saved == {"type": "command_response", "id": 1, "ok": True, "data": None}

            await ws.send(json.dumps({"id": 2, "command": "get_config"}))
            loaded = await next_frame(ws, "command_response")
            assert loaded["id"] == 2 and loaded["data"] == record

            await ws.send(json.dumps({
                "id": 3, "command": "validate_connection",
                "args": {"serverUrl": server.url, "apiKey": "sk-bad"},
            }))
            checked = await next_frame(ws, "command_response")
            assert checked == {
                "type": "command_response", "id": 3, "ok": False,
                "error": "Invalid API key or unauthorized",
            }
    finally:
        await bridge.close()

    assert store.exists()


async def test_events_are_pushed_to_clients(bridge: CommandBridgeServer):
    await bridge.start_server()
    try:
        async with websockets.connect(f"ws://127.0.0.1:{bridge.bound_port}") as ws:
            await next_frame(ws, "ready")
            await ws.send(json.dumps({"id": 1, "command": "get_config"}))

            seen = set()
            while "config.loaded" not in seen:
                frame = await next_frame(ws, "system_event")
                seen.add(frame["event"]["type"])
    finally:
        await bridge.close()


def test_start_and_stop_in_background_thread(bridge: CommandBridgeServer):
    from websockets.sync.client import connect

    assert bridge.start()
    try:
        with connect(f"ws://127.0.0.1:{bridge.bound_port}") as ws:
            assert json.loads(ws.recv(timeout=5))["type"] == "ready"
            ws.send(json.dumps({"id": 9, "command": "nope"}))
            while True:
                frame = json.loads(ws.recv(timeout=5))
                if frame["type"] == "command_response":
                    break
            assert frame == {"type": "command_response", "id": 9, "ok": False, "error": "Command 'nope' not found"}
    finally:
        bridge.stop()

    assert not bridge.thread.is_alive()


async def test_foreign_origin_is_refused(bridge: CommandBridgeServer, store: ConfigStore):
    store.save(Config(server_url="https://chat.example.com", api_key="sk-live-secret"))
    await bridge.start_server()
    try:
        with pytest.raises(InvalidHandshake):
            async with websockets.connect(f"ws://127.0.0.1:{bridge.bound_port}",
                                          origin="https://evil.example"):
                pass
    finally:
        await bridge.close()


async def test_listed_origin_is_accepted(store: ConfigStore, bus):
    commands = BackendCommands(store, ConnectionValidator(bus=bus), bus=bus)
    bridge = CommandBridgeServer(build_registry(commands), host="127.0.0.1", port=0, bus=bus,
                                 allowed_origins=["http://localhost:1420"])
    await bridge.start_server()
    try:
        async with websockets.connect(f"ws://127.0.0.1:{bridge.bound_port}",
                                      origin="http://localhost:1420") as ws:
            assert (await next_frame(ws, "ready"))["type"] == "ready"

        with pytest.raises(InvalidHandshake):
            async with websockets.connect(f"ws://127.0.0.1:{bridge.bound_port}",
                                          origin="http://localhost:3000"):
                pass
    finally:
        await bridge.close()


async def test_close_cancels_commands_in_flight(bridge: CommandBridgeServer):
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def slow(args):
        started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.set()
            raise

    bridge.registry.register("slow", slow)
    await bridge.start_server()

    ws = await websockets.connect(f"ws://127.0.0.1:{bridge.bound_port}")
    try:
        await next_frame(ws, "ready")
        await ws.send(json.dumps({"id": 1, "command": "slow"}))
        await asyncio.wait_for(started.wait(), 5)

        await bridge.close()

        assert cancelled.is_set()
        assert bridge.server is None
    finally:
        await ws.close()
