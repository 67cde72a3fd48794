from contextlib import asynccontextmanager
from typing import Optional
import time

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from backend import RoomRegistry
from connection import Connection
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL
from logging_config import get_logger, setup_logging
from reaper import Reaper
from relay import RelaySession
from routers.rooms import health_router, rooms_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(registry: Optional[RoomRegistry] = None, reaper: Optional[Reaper] = None) -> FastAPI:
    """Build the relay application around an owned room registry.

    The registry lives as long as the app; the reaper runs for the lifespan
    of the server and is cancelled on shutdown.
    """
    if registry is None:
        registry = RoomRegistry()
    if reaper is None:
        reaper = Reaper(registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.started_at = time.monotonic()
        reaper.start()
        try:
            yield
        finally:
            await reaper.stop()
            logger.info(f"Relay shut down with {len(registry)} rooms still registered")

    app = FastAPI(title="Gesture Relay", lifespan=lifespan)
    app.state.registry = registry
    app.state.reaper = reaper
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rooms_router)
    app.include_router(health_router)

    @app.websocket("/room/{room_id}")
    async def websocket_endpoint(room_id: str, websocket: WebSocket):
        """Relay channel for one participant.

        ``room_id`` in the path is informational; the room actually joined is
        the one named in the first ``join`` frame.
        """
        await websocket.accept()
        connection = Connection(websocket)
        logger.info(f"WebSocket connection {connection.connection_id} accepted on /room/{room_id}")

        session = RelaySession(connection, registry)
        try:
            await session.run()
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection.connection_id}: {e}", exc_info=True)
        finally:
            await connection.close()
            logger.info(f"WebSocket connection {connection.connection_id} closed")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
