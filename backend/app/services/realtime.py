import asyncio
import contextlib
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from app.core.config import settings

logger = logging.getLogger(__name__)


class WebSocketClient:
    """
    Broadcaster handle for one browser connection.

    ``send`` may be called from any thread. Frames are queued on the
    connection's event loop and written by ``pump`` in order, so a slow
    socket only backs up its own queue. When the queue is full new frames
    are dropped.
    """

    def __init__(
        self,
        websocket: WebSocket,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        queue_size: Optional[int] = None,
    ):
        self.websocket = websocket
        self.client_id = uuid.uuid4().hex
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size or settings.WS_SEND_QUEUE_SIZE)
        self._pump_task: Optional[asyncio.Task] = None

    def send(self, event_type: str, payload: Dict[str, Any]) -> None:
        frame = {"event": event_type, "data": jsonable_encoder(payload)}
        self._loop.call_soon_threadsafe(self._enqueue, frame)

    def _enqueue(self, frame: Dict[str, Any]) -> None:
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(
                "client send buffer full, event dropped",
                extra={"client_id": self.client_id, "event": frame.get("event")},
            )

    def start(self) -> "asyncio.Task":
        self._pump_task = self._loop.create_task(self.pump())
        return self._pump_task

    async def close(self) -> None:
        """Stop the send loop and wait for it to finish unwinding."""
        task = self._pump_task
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._pump_task = None

    async def pump(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await self.websocket.send_json(frame)
            except Exception:
                logger.info("client send loop stopped", extra={"client_id": self.client_id})
                return
