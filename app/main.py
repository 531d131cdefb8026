from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from app.api.routes import polls, questions, queue
from app.api.ws.routes import router as ws_router
from app.core.config import Settings, settings
from app.core.logging import configure_logging
from app.db import engine, init_db, session_factory
from app.services.monitor import AutoAdvanceMonitor
from app.services.notifier import BroadcastHub
from app.services.scheduler import QueueScheduler


def install_services(app: FastAPI, bind: AsyncEngine, config: Settings) -> None:
    """Wire the notifier, scheduler and monitor onto ``app.state``."""
    hub = BroadcastHub()
    factory = session_factory(bind)
    scheduler = QueueScheduler(
        factory,
        notifier=hub,
        default_poll_duration=config.default_poll_duration,
        default_break_between_polls=config.default_break_between_polls,
    )
    app.state.session_factory = factory
    app.state.hub = hub
    app.state.scheduler = scheduler
    app.state.monitor = AutoAdvanceMonitor(scheduler, interval_seconds=config.monitor_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    install_services(app, engine, settings)
    if settings.monitor_enabled:
        app.state.monitor.start()
    try:
        yield
    finally:
        await app.state.monitor.stop()
        await engine.dispose()


app = FastAPI(title="Poll Queue", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# HTTP routes
app.include_router(questions.router)
app.include_router(queue.router)
app.include_router(polls.router)

# WebSocket routes
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
