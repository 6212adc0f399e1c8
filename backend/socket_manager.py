from fastapi import WebSocket, WebSocketDisconnect
from typing import Dict, List, Optional
import json
import time
import uuid
import asyncio
import logging

from pydantic import ValidationError

import config
from coordinator import Coordinator
from messages import Command, Event, parse_command

logger = logging.getLogger(__name__)


class Session:
    """One live WebSocket connection and its outbound queue."""

    def __init__(self, session_id: str, websocket: WebSocket):
        self.session_id = session_id
        self.websocket = websocket
        self.queue: asyncio.Queue = asyncio.Queue()
        self.msg_timestamps: List[float] = []
        self.pump_task: Optional[asyncio.Task] = None

    def start(self):
        self.pump_task = asyncio.create_task(self._pump())

    def stop(self):
        if self.pump_task:
            self.pump_task.cancel()
            self.pump_task = None

    async def _pump(self):
        """Write queued messages to the socket in order."""
        try:
            while True:
                message = await self.queue.get()
                await self.websocket.send_json(message)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.info("Stopped sending to session %s (connection lost)", self.session_id)


class ConnectionHub:
    """Tracks connected sessions and delivers coordinator events to them.

    ``send`` and ``broadcast`` only enqueue; each session's pump task does
    the actual socket writes, so a slow client never holds up a command.
    """

    def __init__(self, allowed_origins: Optional[List[str]] = None,
                 rate_limit_per_sec: int = config.WS_RATE_LIMIT_PER_SEC,
                 max_message_size: int = config.MAX_WS_MESSAGE_SIZE):
        self.sessions: Dict[str, Session] = {}
        self.allowed_origins: List[str] = allowed_origins or []
        self.rate_limit_per_sec = rate_limit_per_sec
        self.max_message_size = max_message_size

    def send(self, session_id: str, event: Event) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            return
        session.queue.put_nowait(event.to_wire())

    def broadcast(self, event: Event) -> None:
        message = event.to_wire()
        for session in list(self.sessions.values()):
            session.queue.put_nowait(message)

    async def connect(self, websocket: WebSocket, coordinator: Coordinator):
        # Validate WebSocket origin
        origin = websocket.headers.get("origin", "")
        if self.allowed_origins and origin not in self.allowed_origins:
            logger.warning("Rejected WebSocket from unauthorized origin: %s", origin)
            await websocket.close(code=1008)
            return

        await websocket.accept()
        session_id = uuid.uuid4().hex
        session = Session(session_id, websocket)
        self.sessions[session_id] = session
        session.start()
        logger.info("Client connected: %s", session_id)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                data = message.get("text")
                if data is None:
                    logger.warning("Dropped binary frame from session %s", session_id)
                    continue
                command = self._decode(session, data)
                if command is not None:
                    coordinator.dispatch(session_id, command)
        except WebSocketDisconnect:
            logger.info("Client disconnected: %s", session_id)
        except Exception:
            logger.exception("WebSocket error for session %s", session_id)
        finally:
            self.sessions.pop(session_id, None)
            session.stop()
            coordinator.disconnect(session_id)

    def _decode(self, session: Session, data: str) -> Optional[Command]:
        """Turn a raw frame into a command, or None if it must be dropped.

        Nothing is sent back for a dropped frame; the protocol has no
        error channel.
        """
        size = len(data.encode("utf-8"))
        if size > self.max_message_size:
            logger.warning("Dropped oversize message (%d bytes) from session %s",
                           size, session.session_id)
            return None

        # Per-session rate limiting
        if self.rate_limit_per_sec:
            now = time.time()
            timestamps = session.msg_timestamps
            timestamps[:] = [t for t in timestamps if now - t < 1.0]
            if len(timestamps) >= self.rate_limit_per_sec:
                logger.warning("Rate limit hit by session %s, message dropped", session.session_id)
                return None
            timestamps.append(now)

        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Malformed JSON from session %s: %s", session.session_id, data[:100])
            return None

        try:
            return parse_command(message)
        except ValidationError as exc:
            msg_type = message.get("type") if isinstance(message, dict) else None
            logger.warning("Rejected %r message from session %s: %d validation error(s)",
                           msg_type, session.session_id, exc.error_count())
            return None
