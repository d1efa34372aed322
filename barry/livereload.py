"""WebSocket endpoint that tells browsers to reload the page."""

from __future__ import annotations

import contextlib
from typing import Any


class LiveReloader:
    """Tracks connected browsers and pushes reload notices to them."""

    def __init__(self) -> None:
        self._clients: set[Any] = set()

    async def handler(self, websocket: Any) -> None:
        """Accept a WebSocket and keep it registered until it disconnects."""
        try:
            await websocket.accept()
        except Exception:  # noqa: BLE001 - a failed handshake just drops the client
            return
        self._clients.add(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    break
        except Exception:  # noqa: BLE001 - any read failure ends the connection
            pass
        finally:
            self._clients.discard(websocket)

    async def broadcast_reload(self) -> None:
        """Send ``reload`` to every client, dropping those that fail."""
        for websocket in list(self._clients):
            try:
                await websocket.send_text("reload")
            except Exception:  # noqa: BLE001 - broken clients are removed
                self._clients.discard(websocket)
                with contextlib.suppress(Exception):
                    await websocket.close()