import asyncio
import json
import uuid
from datetime import datetime
from typing import AsyncIterator, Union

from fastapi import WebSocket
from pydantic import BaseModel

from constants import SEND_TIMEOUT_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionClosed(Exception):
    """Raised when sending on a connection whose transport is already gone."""


class Connection:
    """One WebSocket to a single remote participant.

    The object itself is the participant key inside a room, so it hashes by
    identity. It owns nothing beyond its id and liveness flag.
    """

    def __init__(self, websocket: WebSocket, send_timeout: float = SEND_TIMEOUT_SECONDS):
        self.websocket = websocket
        self.send_timeout = send_timeout
        self.connection_id = str(uuid.uuid4())
        self.connected_at = datetime.now().isoformat()
        self.closed = False

    def __repr__(self) -> str:
        return f"Connection({self.connection_id[:8]})"

    async def send(self, message: Union[BaseModel, dict]) -> None:
        """Send one frame, giving up after ``send_timeout`` seconds."""
        if self.closed:
            raise ConnectionClosed(self.connection_id)
        if isinstance(message, BaseModel):
            payload = message.model_dump(by_alias=True)
        else:
            payload = message
        await asyncio.wait_for(self.websocket.send_text(json.dumps(payload)), timeout=self.send_timeout)

    async def frames(self) -> AsyncIterator[str]:
        """Yield inbound text frames until the client disconnects.

        Binary frames are logged and skipped; only text carries JSON frames.
        """
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                logger.warning(f"Dropping non-text frame from connection {self.connection_id}")
                continue
            yield text
        self.closed = True

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket for connection {self.connection_id}: {e}")
