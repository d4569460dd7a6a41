"""
WebSocket command bridge between the GUI and the backend commands.

Request frame:   {"id": 7, "command": "validate_connection",
                  "args": {"server_url": "...", "api_key": "..."}}
Response frame:  {"type": "command_response", "id": 7, "ok": true, "data": true}
             or  {"type": "command_response", "id": 7, "ok": false, "error": "..."}

Backend events are pushed to every client as {"type": "system_event", ...}.

Browsers may only connect from an allowed Origin; clients that send no
Origin header are native and always accepted.
"""

import asyncio
import json
import threading
from typing import Any, Dict, Iterable, List, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed

from commands import CommandRegistry
from config import BRIDGE_CONFIG
from core.logging_config import get_logger
from events import event_bus as default_event_bus, EventBus, EventTypes, SystemEvent

logger = get_logger(__name__)


def _response(request_id: Any, ok: bool, **payload) -> Dict[str, Any]:
    message = {"type": "command_response", "id": request_id, "ok": ok}
    message.update(payload)
    return message


class CommandBridgeServer:
    """Serves the command registry over a local WebSocket"""

    def __init__(self,
                 registry: CommandRegistry,
                 host: Optional[str] = None,
                 port: Optional[int] = None,
                 bus: Optional[EventBus] = None,
                 allowed_origins: Optional[Iterable[str]] = None):
        """
        Initialize the bridge

        Args:
            registry: Commands the GUI may invoke
            host: Interface to bind (defaults to BRIDGE_CONFIG)
            port: Port to bind, 0 for any free port (defaults to BRIDGE_CONFIG)
            bus: Event bus whose events are pushed to clients
            allowed_origins: Browser origins that may connect (defaults to BRIDGE_CONFIG).
                Handshakes without an Origin header are always accepted.
        """
        self.registry = registry
        self.host = host if host is not None else BRIDGE_CONFIG["host"]
        self.port = port if port is not None else BRIDGE_CONFIG["port"]
        self.bus = bus or default_event_bus
        if allowed_origins is None:
            allowed_origins = BRIDGE_CONFIG.get("allowed_origins", [])
        self.allowed_origins: List[Optional[str]] = [None] + list(allowed_origins)

        self.clients: Set[Any] = set()
        self.server = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.thread: Optional[threading.Thread] = None
        self.bound_port: Optional[int] = None
        self._ready = threading.Event()
        self._tasks: Set[asyncio.Task] = set()

    async def handle_message(self, message) -> Dict[str, Any]:
        """Decode one request frame, run the command and build the response frame"""
        try:
            data = json.loads(message)
        except (TypeError, ValueError) as e:
            return _response(None, False, error=f"Invalid message: {e}")

        if not isinstance(data, dict):
            return _response(None, False, error="Invalid message: expected a JSON object")

        request_id = data.get("id")
        command = data.get("command")
        if not command or not isinstance(command, str):
            return _response(request_id, False, error="Missing command")

        result = await self.registry.invoke(command, data.get("args"))
        return _response(request_id, **result.to_dict())

    async def handle_client(self, websocket, path=None):
        """Handle a WebSocket client connection"""
        self.clients.add(websocket)
        logger.info(f"Client connected: {websocket.remote_address} (Total: {len(self.clients)})")
        self.bus.emit(EventTypes.BRIDGE_CLIENT_CONNECT, {"clients": len(self.clients)},
                      source="CommandBridgeServer")

        try:
            await websocket.send(json.dumps({
                "type": "ready",
                "commands": self.registry.names(),
            }))

            # Frames are handled concurrently; responses may arrive out of order
            async for message in websocket:
                task = asyncio.ensure_future(self._respond(websocket, message))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

        except ConnectionClosed:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info(f"Client disconnected (Total: {len(self.clients)})")
            self.bus.emit(EventTypes.BRIDGE_CLIENT_DISCONNECT, {"clients": len(self.clients)},
                          source="CommandBridgeServer")

    async def _respond(self, websocket, message):
        response = await self.handle_message(message)
        try:
            await websocket.send(json.dumps(response, default=str))
        except ConnectionClosed:
            logger.debug(f"Client went away before response {response.get('id')!r} was sent")

    async def start_server(self):
        """Bind the listening socket and start accepting clients"""
        self.loop = asyncio.get_running_loop()
        self.server = await websockets.serve(
            self.handle_client, self.host, self.port, origins=self.allowed_origins
        )
        self.bound_port = self.server.sockets[0].getsockname()[1]
        self.bus.on_all(self._handle_system_event)
        logger.info(f"Command bridge running on ws://{self.host}:{self.bound_port}")
        self._ready.set()
        return self.server

    async def serve(self):
        """Run the bridge until cancelled"""
        await self.start_server()
        try:
            await asyncio.Future()
        finally:
            await self.close()

    async def close(self):
        """Close client connections and the listening socket"""
        self.bus.off("*", self._handle_system_event)

        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for client in list(self.clients):
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error closing client connection: {e}")
            self.clients.discard(client)

        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        self._ready.clear()

    def run_in_thread(self):
        """Run the server on a private event loop"""
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

        try:
            self.loop.run_until_complete(self.start_server())
            self.loop.run_forever()
        except Exception as e:
            logger.error(f"Command bridge error: {e}", exc_info=True)
        finally:
            self._ready.set()
            self.loop.close()

    def start(self, timeout: float = 5.0) -> bool:
        """
        Start the bridge in a background thread.

        Returns:
            True once the socket is bound
        """
        if self.thread and self.thread.is_alive():
            return True

        self._ready.clear()
        self.thread = threading.Thread(target=self.run_in_thread, name="command-bridge", daemon=True)
        self.thread.start()
        self._ready.wait(timeout)
        return self.bound_port is not None and self.server is not None

    def stop(self):
        """Stop a bridge started with start()"""
        logger.info("Stopping command bridge...")

        if self.loop and self.loop.is_running():
            future = asyncio.run_coroutine_threadsafe(self.close(), self.loop)
            try:
                future.result(timeout=3.0)
            except Exception as e:
                logger.error(f"Error during bridge shutdown: {e}")
            self.loop.call_soon_threadsafe(self.loop.stop)

        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=2.0)
            if self.thread.is_alive():
                logger.warning("Command bridge thread did not stop gracefully")

        logger.info("Command bridge stopped")

    def _handle_system_event(self, event: SystemEvent):
        """Forward bus events to connected clients (called on the bus thread)"""
        if self.loop and self.loop.is_running() and self.clients:
            asyncio.run_coroutine_threadsafe(self._broadcast_event(event), self.loop)

    async def _broadcast_event(self, event: SystemEvent):
        message = json.dumps({
            "type": "system_event",
            "event": event.to_dict()
        }, default=str)

        disconnected = []
        for client in list(self.clients):
            try:
                await client.send(message)
            except (ConnectionClosed, OSError):
                disconnected.append(client)

        for client in disconnected:
            self.clients.discard(client)
