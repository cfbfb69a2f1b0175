# syncroom/main.py

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from syncroom.core.config import settings
from syncroom.core.logging import setup_logging, get_logger
from syncroom.core.state import AppState
from syncroom.api.routes import root, health, rooms, chat, soundcloud
from syncroom.api import websocket as websocket_module

# Configure logging first
setup_logging()
logger = get_logger(__name__)


def create_app(app_state: Optional[AppState] = None) -> FastAPI:
    """
    Build the FastAPI app with its own, freshly constructed services.

    Args:
        app_state: Preassembled services (tests inject their own); a new
            AppState is created when omitted
    """
    app = FastAPI(title="SyncRoom")
    app.state.syncroom = app_state or AppState()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(rooms.router)
    app.include_router(chat.router)
    app.include_router(soundcloud.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("🚀 Application starting - rooms and chat are in memory only")

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.syncroom.soundcloud.close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("syncroom.main:app", host=settings.HOST, port=settings.PORT)
