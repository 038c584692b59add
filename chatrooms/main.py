# chatrooms/main.py

from __future__ import annotations

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from chatrooms import __version__
from chatrooms.core import state
from chatrooms.core.config import settings
from chatrooms.core.database import init_db
from chatrooms.core.errors import register_exception_handlers
from chatrooms.core.logging import setup_logging, get_logger
from chatrooms.api.routes import auth, chatrooms, health, messages, root
from chatrooms.api import websocket as websocket_module
from chatrooms.services.attachment_store import MEDIA_URL_PREFIX

# Configure logging first
setup_logging()
logger = get_logger(__name__)

# FastAPI app
app = FastAPI(title="Chatrooms API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(chatrooms.router)
app.include_router(messages.router)

# WebSocket routes
app.include_router(websocket_module.router)

# Stored attachments
os.makedirs(settings.MEDIA_ROOT, exist_ok=True)
app.mount(MEDIA_URL_PREFIX, StaticFiles(directory=settings.MEDIA_ROOT), name="media")


@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Application starting (pub/sub: %s)", settings.PUB_SUB_SERVICE)
    init_db()
    await state.notifier.start(settings)


@app.on_event("shutdown")
async def on_shutdown():
    await state.notifier.stop()
    logger.info("Application stopped")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chatrooms.main:app", host="0.0.0.0", port=8000)
