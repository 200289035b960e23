"""SKYOPTIMA - airspace conflict-avoidance simulation.

Main FastAPI application.  Run with::

    python -m uvicorn app.main:app --app-dir src --port 8080
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

from app.config import settings
from app.routers.simulation import router as simulation_router
from app.routers.ws import EventBridge, router as ws_router


def _create_simulation_engine():
    """Create the SimulationEngine from settings. Returns engine or None."""
    if not settings.simulation_enabled:
        return None

    from airspace.comms.event_bus import EventBus
    from airspace.simulation import SimulationEngine

    engine = SimulationEngine(
        EventBus(),
        aircraft_count=settings.simulation_aircraft_count,
        tick_ms=settings.simulation_tick_ms,
        world_size=settings.simulation_world_size,
        min_separation=settings.simulation_min_separation,
        seed=settings.simulation_seed,
    )
    status = engine.status()
    logger.info(
        f"Simulation engine created: {status['entityCount']} aircraft, "
        f"world {status['worldSize']}, separation {status['minSeparation']}, "
        f"tick {status['tickPeriodMs']} ms"
    )
    return engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan -- create the engine, stop it on shutdown."""
    logger.info(f"Starting {settings.app_name}...")

    sim_engine = None
    try:
        sim_engine = _create_simulation_engine()
        if sim_engine is not None and settings.simulation_autostart:
            sim_engine.start()
    except Exception as e:
        logger.warning(f"Simulation engine failed to start: {e}")
        sim_engine = None
    app.state.simulation_engine = sim_engine

    # Bridge engine events to WebSocket clients
    bridge = None
    if sim_engine is not None:
        bridge = EventBridge(sim_engine.event_bus, asyncio.get_running_loop())
        bridge.start()
        logger.info("Simulation event bridge started")

    logger.info("=" * 60)
    logger.info(f"  {settings.app_name} ONLINE")
    logger.info("=" * 60)

    yield

    if sim_engine is not None:
        sim_engine.stop()
    if bridge is not None:
        bridge.stop()
    logger.info(f"{settings.app_name} shutting down...")


# Create FastAPI app
app = FastAPI(
    title="SKYOPTIMA",
    description="Airspace conflict-avoidance simulation",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(simulation_router)
app.include_router(ws_router)


@app.middleware("http")
async def no_store(request: Request, call_next):
    """Serve every response uncached; the client polls for live state."""
    response = await call_next(request)
    response.headers.setdefault("Cache-Control", "no-store")
    return response


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": "0.1.0",
        "system": settings.app_name,
    }


# Static front-end; mounted last so API routes take precedence
public_path = Path(settings.public_dir)
if public_path.is_dir():
    app.mount("/", StaticFiles(directory=public_path, html=True), name="public")
