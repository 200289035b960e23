"""Simulation control API -- start, stop, reset, configure, poll state.

Paths match the browser client, which polls ``/updateSimulation``
and ``/getAlerts`` and drives everything else with plain GET requests.

Handlers are sync so FastAPI runs them in its threadpool: stop/reset may
wait on the tick thread, and queries wait on the engine lock.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request, Response

router = APIRouter(tags=["simulation"])


def _get_engine(request: Request):
    """Retrieve the SimulationEngine from app state."""
    engine = getattr(request.app.state, "simulation_engine", None)
    if engine is None:
        raise HTTPException(503, "Simulation engine not available")
    return engine


def _parse_int(value: Optional[str]) -> Optional[int]:
    """Lenient integer parse: anything unparseable is treated as absent."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


@router.get("/startSimulation")
def start_simulation(request: Request):
    """Begin periodic ticking."""
    _get_engine(request).start()
    return {"status": "started"}


@router.get("/stopSimulation")
def stop_simulation(request: Request):
    """Stop scheduling ticks; a tick already running completes."""
    _get_engine(request).stop()
    return {"status": "stopped"}


@router.get("/reset")
def reset_simulation(request: Request):
    """Stop and reseed the fleet."""
    _get_engine(request).reset()
    return {"status": "reset"}


@router.get("/status")
def get_status(request: Request):
    return _get_engine(request).status()


@router.get("/updateSimulation")
def update_simulation(request: Request, response: Response):
    """Fleet snapshot with predictive warnings and the event log."""
    engine = _get_engine(request)
    _no_store(response)
    return engine.snapshot()


@router.get("/getAlerts")
def get_alerts(request: Request, response: Response):
    """Active separation advisories (near-misses plus forecast conflicts)."""
    engine = _get_engine(request)
    _no_store(response)
    return engine.alerts()


@router.get("/configure")
def configure(
    request: Request,
    n: Optional[str] = None,
    tick: Optional[str] = None,
):
    """Set aircraft count and/or tick period (ms).  Returns status."""
    engine = _get_engine(request)
    return engine.configure(count=_parse_int(n), tick_ms=_parse_int(tick))


@router.get("/configureAdvanced")
def configure_advanced(
    request: Request,
    n: Optional[str] = None,
    tick: Optional[str] = None,
    world: Optional[str] = None,
    sep: Optional[str] = None,
):
    """Like /configure, plus world size and minimum separation."""
    engine = _get_engine(request)
    return engine.configure_advanced(
        count=_parse_int(n),
        tick_ms=_parse_int(tick),
        world_size=_parse_int(world),
        min_separation=_parse_int(sep),
    )
