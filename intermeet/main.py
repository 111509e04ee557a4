# intermeet/main.py

from __future__ import annotations

import asyncio

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from intermeet.core import state
from intermeet.core.config import settings
from intermeet.core.errors import InterMeetError
from intermeet.core.logging import setup_logging, get_logger
from intermeet.services.redis_pub_sub import AsyncRedisPubSubService
from intermeet.api.routes import root, health, rooms, admission, lobby, chat, profile
from intermeet.api import websocket as websocket_module

# Configure logging first
setup_logging()
logger = get_logger(__name__)

app = FastAPI(title="InterMeet")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes (admission before rooms so /rooms/join is not read as a room code)
app.include_router(root.router)
app.include_router(health.router)
app.include_router(admission.router)
app.include_router(rooms.router)
app.include_router(lobby.router)
app.include_router(chat.router)
app.include_router(profile.router)

# WebSocket routes
app.include_router(websocket_module.router)

_background_tasks: set[asyncio.Task] = set()


@app.exception_handler(InterMeetError)
async def intermeet_error_handler(request: Request, exc: InterMeetError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def periodic_expiry_sweep(interval_seconds: float):
    """Background task: deactivate expired rooms and drop stale rate-limit windows."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            state.rooms.sweep_expired()
            state.rate_limiter.cleanup()
        except Exception:
            logger.exception("Expiry sweep failed")


def _spawn(coro) -> None:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


@app.on_event("startup")
async def startup_event():
    logger.info("🚀 InterMeet starting (pub/sub: %s)", settings.PUB_SUB_SERVICE)

    if settings.PUB_SUB_SERVICE == "redis":
        redis_service = AsyncRedisPubSubService(
            state.connection_manager,
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            access_key=settings.REDIS_ACCESS_KEY,
            ssl=settings.REDIS_SSL,
        )
        await redis_service.connect()

        state.redis_service = redis_service
        state.publisher.redis_service = redis_service

        # Start subscriber in background
        _spawn(redis_service.listen("room:*"))

    _spawn(periodic_expiry_sweep(settings.EXPIRY_SWEEP_INTERVAL_SECONDS))


@app.on_event("shutdown")
async def on_shutdown():
    for task in list(_background_tasks):
        task.cancel()
    if state.redis_service is not None:
        await state.redis_service.close()
        state.redis_service = None
        state.publisher.redis_service = None


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("intermeet.main:app", host="0.0.0.0", port=8000)
