"""
Status WebSocket Server Module

Real-time link status streaming to operator console clients via WebSocket.

Outbound JSON messages (one per line of activity):
  {"type": "status", "status": {...}}
  {"type": "event", "kind": "WARNING", "content": "...", "summary": "...", "severity": "..."}
  {"type": "connectivity", "connected": false}
  {"type": "notice", "text": "..."}
  {"type": "fatal", "message": "..."}

Inbound JSON messages:
  {"command": "open_bridge"}  ->  {"type": "command_result", "command": "...", "outcome": "sent"}
"""

import asyncio
import json
import logging
import threading
from typing import Any, Callable, Dict, Optional, Set

import websockets
from websockets.asyncio.server import ServerConnection, serve

from common.events import describe_event
from common.protocol import InboundMessage, MessageKind, StatusSnapshot
from .core.status_sink import NoticeSink, StatusSink

logger = logging.getLogger(__name__)


def encode_status(snapshot: StatusSnapshot) -> Dict[str, Any]:
    return {"type": "status", "status": snapshot.as_dict()}


def encode_event(kind: MessageKind, content: str) -> Dict[str, Any]:
    detail = describe_event(InboundMessage(kind, content, content))
    return {
        "type": "event",
        "kind": kind.value,
        "content": content,
        "summary": detail.summary,
        "severity": detail.severity,
    }


def encode_connectivity(connected: bool) -> Dict[str, Any]:
    return {"type": "connectivity", "connected": connected}


class StatusWebSocketServer(StatusSink, NoticeSink):
    """
    WebSocket server for operator console clients.

    Broadcasts link activity to all connected clients and forwards client
    commands to command_handler.
    """

    def __init__(self, port: int, host: str = "0.0.0.0",
                 command_handler: Optional[Callable[[str], str]] = None):
        """
        Initialize WebSocket server.

        Args:
            port: WebSocket server port
            host: Bind address
            command_handler: Called with a command token, returns the outcome string
        """
        self.port = port
        self.host = host
        self.command_handler = command_handler
        self.clients: Set[ServerConnection] = set()
        self.running = False
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_future: Optional[asyncio.Future] = None
        self._shutdown_lock = threading.Lock()
        self._shutdown_requested = False

        self.latest_status: Optional[StatusSnapshot] = None
        self.connected: Optional[bool] = None

    async def start(self):
        """Start the WebSocket server and serve until shutdown()."""
        with self._shutdown_lock:
            self.loop = asyncio.get_running_loop()
            self._stop_future = self.loop.create_future()
            if self._shutdown_requested:
                logger.info("Status WebSocket server shut down before it started")
                return

        try:
            async with serve(self.handle_client, self.host, self.port):
                self.running = True
                logger.info(f"Status WebSocket server started on port {self.port}")
                await self._stop_future
        except OSError as e:
            logger.error(f"Status WebSocket server error: {e}")
        finally:
            self.running = False
            logger.info("Status WebSocket server stopped")

    async def handle_client(self, websocket: ServerConnection):
        """
        Handle a console client connection.

        Args:
            websocket: WebSocket connection
        """
        client_addr = websocket.remote_address
        logger.info(f"WebSocket client connected: {client_addr}")

        self.clients.add(websocket)

        try:
            # Bring the new client up to date
            if self.latest_status is not None:
                await websocket.send(json.dumps(encode_status(self.latest_status)))
            if self.connected is not None:
                await websocket.send(json.dumps(encode_connectivity(self.connected)))

            async for message in websocket:
                reply = self.handle_message(message)
                if reply is not None:
                    await websocket.send(json.dumps(reply))

        except websockets.exceptions.ConnectionClosed:
            logger.info(f"WebSocket client disconnected: {client_addr}")
        except Exception as e:
            logger.error(f"Error handling WebSocket client {client_addr}: {e}")
        finally:
            self.clients.discard(websocket)

    def handle_message(self, message) -> Optional[Dict[str, Any]]:
        """
        Handle one client message.

        Returns:
            Reply to send back, or None
        """
        try:
            request = json.loads(message)
        except (TypeError, ValueError):
            return {"type": "error", "message": "invalid JSON"}

        if not isinstance(request, dict) or not isinstance(request.get("command"), str):
            return {"type": "error", "message": "expected {\"command\": \"<token>\"}"}

        command = request["command"]
        if self.command_handler is None:
            return {"type": "command_result", "command": command, "outcome": "unavailable"}

        outcome = self.command_handler(command)
        return {"type": "command_result", "command": command, "outcome": outcome}

    async def broadcast(self, payload: Dict[str, Any]):
        """
        Broadcast a message to all connected clients.

        Args:
            payload: JSON-serialisable message
        """
        if not self.clients:
            return

        message = json.dumps(payload)

        disconnected_clients = set()
        for client in list(self.clients):
            try:
                await client.send(message)
            except websockets.exceptions.ConnectionClosed:
                disconnected_clients.add(client)
            except Exception as e:
                logger.error(f"Error broadcasting to client: {e}")
                disconnected_clients.add(client)

        self.clients -= disconnected_clients

    def broadcast_sync(self, payload: Dict[str, Any]):
        """
        Schedule a broadcast from any thread.

        Does nothing while the server is not running.
        """
        if self.loop and self.running:
            asyncio.run_coroutine_threadsafe(self.broadcast(payload), self.loop)

    def on_status(self, snapshot: StatusSnapshot):
        self.latest_status = snapshot
        self.broadcast_sync(encode_status(snapshot))

    def on_event(self, kind: MessageKind, content: str):
        self.broadcast_sync(encode_event(kind, content))

    def on_connectivity_changed(self, connected: bool):
        self.connected = connected
        self.broadcast_sync(encode_connectivity(connected))

    def on_fatal(self, message: str):
        self.broadcast_sync({"type": "fatal", "message": message})

    def on_notice(self, text: str):
        self.broadcast_sync({"type": "notice", "text": text})

    def shutdown(self):
        """
        Stop serving. Safe to call from any thread, more than once.

        Also takes effect if called before start() has begun serving.
        """
        with self._shutdown_lock:
            self._shutdown_requested = True
            if self.loop is None or self._stop_future is None:
                return

        def _finish():
            if not self._stop_future.done():
                self._stop_future.set_result(None)

        try:
            self.loop.call_soon_threadsafe(_finish)
        except RuntimeError:
            # Loop already closed
            pass


def run_websocket_server(server: StatusWebSocketServer):
    """
    Run WebSocket server in a thread.

    Args:
        server: StatusWebSocketServer instance
    """
    asyncio.run(server.start())


def start_websocket_thread(server: StatusWebSocketServer) -> threading.Thread:
    thread = threading.Thread(target=run_websocket_server, args=(server,),
                              name="status-websocket", daemon=True)
    thread.start()
    return thread
