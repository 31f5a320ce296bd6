import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import AsyncSessionLocal
from app.routers import admin, auth, buildings, game, player, trades, troops
from app.services.map_generator import initialize_territories
from app.services.plot_service import create_ai_players
from app.tasks.scheduler import build_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.scheduler_enabled:
        async with AsyncSessionLocal() as db:
            seeded = await initialize_territories(db)
            ai_players = await create_ai_players(db)
        logger.info("Seeded %d territories and %d AI players", seeded, len(ai_players))
        scheduler = build_scheduler(AsyncSessionLocal)
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


app = FastAPI(
    title="Frontline",
    description="Persistent real-time strategy backend: economy, construction, troops, trade and territory",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:8000", "http://127.0.0.1:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(player.router)
app.include_router(buildings.router)
app.include_router(troops.router)
app.include_router(trades.router)
app.include_router(game.router)
app.include_router(admin.router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
