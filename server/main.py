"""FastAPI WebSocket server for the Pears card game."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from catalog import load_catalog
from config import config
from handlers import ConnectionContext, dispatch, handle_disconnect
from logging_config import connection_id_var, setup_logging
from room import RoomManager
from routers.health import router as health_router
from routers.health import set_health_dependencies

# Initialize Sentry if configured
if config.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.ENVIRONMENT,
        traces_sample_rate=0.1 if config.ENVIRONMENT == "production" else 1.0,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
    )

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)

room_manager = RoomManager(settings=config.game)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the card catalog before accepting connections."""
    room_manager.catalog = load_catalog(config.CARD_DATA_DIR)
    set_health_dependencies(room_manager=room_manager)

    logger.info(f"Pears server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _close_all_websockets()
    room_manager.rooms.clear()
    logger.info("Shutdown complete")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(room_manager.rooms.values()):
        for websocket in list(room.connections.values()):
            try:
                await websocket.close(code=1001, reason="Server shutting down")
            except Exception as e:
                logger.debug(f"Closing websocket failed: {e}")
    logger.info("All WebSocket connections closed")


app = FastAPI(
    title="Pears Card Game",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials="*" not in config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    connection_id_var.set(connection_id)
    logger.debug("WebSocket connected")

    ctx = ConnectionContext(websocket=websocket, connection_id=connection_id)

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({
                    "type": "error",
                    "code": "BAD_MESSAGE",
                    "message": "Messages must be valid JSON.",
                })
                continue
            await dispatch(data, ctx, room_manager=room_manager)
    except WebSocketDisconnect:
        logger.debug("WebSocket disconnected")
    finally:
        await handle_disconnect(ctx, room_manager=room_manager)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Pears server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
