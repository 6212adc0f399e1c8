from fastapi import FastAPI, WebSocket, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import uvicorn
import logging
import socket as socketlib

import config
config.setup_logging()

from buzzer import BuzzerRace
from coordinator import Coordinator
from socket_manager import ConnectionHub

logger = logging.getLogger(__name__)


def get_local_ip():
    try:
        s = socketlib.socket(socketlib.AF_INET, socketlib.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "127.0.0.1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Buzzer server ready on port %d", config.PORT)
    logger.info("Players can connect from phones on the same WiFi via %s", get_local_ip())
    yield
    logger.info("Shutting down buzzer server")


STATUS_PAGE = """<html>
  <body style="font-family: Arial; text-align: center; padding: 50px;">
    <h1>Kvizzing Game Server</h1>
    <p>Server is running!</p>
    <p>Connected players: {count}</p>
  </body>
</html>
"""


def create_app(hub: Optional[ConnectionHub] = None,
               coordinator: Optional[Coordinator] = None) -> FastAPI:
    """Build the app around one hub and one coordinator.

    The coordinator is the only owner of game state; handlers reach it
    through ``app.state`` rather than a module global.
    """
    origins = config.parse_origins(config.ALLOWED_ORIGINS)
    if hub is None:
        hub = ConnectionHub(allowed_origins=origins)
    if coordinator is None:
        coordinator = Coordinator(hub, race=BuzzerRace(first_only=config.BUZZER_FIRST_ONLY))

    app = FastAPI(title="Kvizzing Buzzer Server", lifespan=lifespan)
    app.state.hub = hub
    app.state.coordinator = coordinator

    # Configure CORS; open to any origin unless a list is configured
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    @app.get("/", response_class=HTMLResponse)
    async def status_page(request: Request):
        count = len(request.app.state.coordinator.registry)
        return STATUS_PAGE.format(count=count)

    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "ok",
            "players": len(request.app.state.coordinator.registry),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.app.state.hub.connect(websocket, websocket.app.state.coordinator)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host=config.HOST, port=config.PORT)
