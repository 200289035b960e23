"""SimulationEngine -- fixed-period tick loop driving the aircraft fleet.

Architecture
------------
The engine is the single owner of all mutable simulation state: the fleet,
the event log, the active alert list, the avoidance pair table and the
configuration knobs.  Everything lives behind one coarse ``threading.Lock``.

One daemon thread (``sim-tick``) runs :meth:`do_tick` at the configured
period.  A tick holds the state lock for its whole duration, so the HTTP
request threads calling :meth:`status`, :meth:`snapshot` or :meth:`alerts`
always observe the state either before or after a tick, never halfway.

Tick pipeline (in order):
  1. kinematics   -- countdowns, speed floor, move, torus wrap
  2. proximity    -- reclassify non-protected statuses
  3. near-miss    -- rebuild alerts, log near_miss events
  4. forecast     -- linear look-ahead over ~5 s
  5. avoidance    -- engage newly flagged pairs, release finished ones

A failure anywhere in the pipeline is caught at the tick boundary and logged
as an ``error`` event; the next tick runs normally.

Lifecycle calls (start/stop/reset/configure) are serialized by a separate
re-entrant lock and never hold the state lock while joining the tick thread,
so an in-flight tick always completes.  Changing the tick period restarts the
thread with the new period.

Data flow:
  Engine --(sim_event, sim_telemetry)--> EventBus --> subscribers
"""

from __future__ import annotations

import dataclasses
import math
import random
import threading
import time

from loguru import logger

from airspace.comms.event_bus import EventBus

from .aircraft import Aircraft, PairKey, seed_fleet
from .avoidance import AvoidanceEngine
from .event_log import (
    EVENT_ERROR,
    EVENT_INFO,
    EVENT_NEAR_MISS,
    EVENT_RESET,
    Alert,
    EventLog,
)
from .forecast import forecast_conflicts
from .kinematics import step_all
from .proximity import advisory_for, classify_fleet, find_near_misses

# Configuration bounds
MIN_AIRCRAFT = 3
MAX_AIRCRAFT = 10
MIN_TICK_MS = 100
MAX_TICK_MS = 2**31 - 1  # int32 milliseconds
MIN_WORLD_SIZE = 50
MAX_WORLD_SIZE = 1000
MIN_SEPARATION = 2

# Defaults
DEFAULT_AIRCRAFT = 5
DEFAULT_TICK_MS = 1000
DEFAULT_WORLD_SIZE = 100
DEFAULT_SEPARATION = 8


def clamp_aircraft_count(n: int) -> int:
    return min(MAX_AIRCRAFT, max(MIN_AIRCRAFT, int(n)))


def clamp_tick_ms(ms: int) -> int:
    return min(MAX_TICK_MS, max(MIN_TICK_MS, int(ms)))


def clamp_world_size(size: int) -> int:
    return min(MAX_WORLD_SIZE, max(MIN_WORLD_SIZE, int(size)))


def clamp_min_separation(sep: int, world_size: int) -> int:
    return min(world_size // 2, max(MIN_SEPARATION, int(sep)))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SimulationEngine:
    """Runs the conflict-avoidance simulation and answers state queries."""

    def __init__(
        self,
        event_bus: EventBus | None = None,
        aircraft_count: int = DEFAULT_AIRCRAFT,
        tick_ms: int = DEFAULT_TICK_MS,
        world_size: int = DEFAULT_WORLD_SIZE,
        min_separation: int = DEFAULT_SEPARATION,
        seed: int | None = None,
    ) -> None:
        self._event_bus = event_bus or EventBus()
        self._rng = random.Random(seed)

        self._lock = threading.Lock()
        self._lifecycle_lock = threading.RLock()
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None

        self._aircraft_count = clamp_aircraft_count(aircraft_count)
        self._tick_ms = clamp_tick_ms(tick_ms)
        self._world_size = clamp_world_size(world_size)
        self._min_separation = clamp_min_separation(min_separation, self._world_size)

        self._fleet: dict[str, Aircraft] = {}
        self._events = EventLog()
        self._alerts: list[Alert] = []
        self._avoidance = AvoidanceEngine(self._rng)
        self._tick_counter = 0

        self._reseed()

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def running(self) -> bool:
        return self._thread is not None

    @property
    def tick_count(self) -> int:
        return self._tick_counter

    # -- Fleet access -------------------------------------------------------

    def get_aircraft(self, aircraft_id: str) -> Aircraft | None:
        """Copy of one aircraft as of the last completed tick."""
        with self._lock:
            aircraft = self._fleet.get(aircraft_id)
            return dataclasses.replace(aircraft) if aircraft is not None else None

    def get_fleet(self) -> list[Aircraft]:
        with self._lock:
            return [dataclasses.replace(a) for a in self._fleet.values()]

    def get_events(self) -> list[dict]:
        with self._lock:
            return self._events.to_list()

    def active_avoidance(self) -> list[PairKey]:
        with self._lock:
            return self._avoidance.tracked_pairs

    def _reseed(self) -> None:
        """Replace the fleet.  Caller holds the state lock (or is __init__)."""
        self._fleet = seed_fleet(self._aircraft_count, self._world_size, self._rng)
        self._avoidance.clear()
        self._alerts = []

    # -- Event logging ------------------------------------------------------

    def _emit(self, event_type: str, message: str) -> None:
        """Record an event.  Caller holds the state lock."""
        event = self._events.add(event_type, message)
        if event_type == EVENT_ERROR:
            logger.error(f"Simulation: {message}")
        else:
            logger.debug(f"Simulation [{event_type}] {message}")
        self._event_bus.publish("sim_event", event.to_dict())

    # -- Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._thread is not None:
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._tick_loop,
                args=(self._stop_event, self._tick_ms / 1000.0),
                name="sim-tick",
                daemon=True,
            )
            self._thread.start()
            with self._lock:
                self._emit(EVENT_INFO, "Simulation started")
            logger.info(f"Simulation started ({self._tick_ms} ms tick)")

    def stop(self) -> None:
        with self._lifecycle_lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
            if stop_event is not None:
                stop_event.set()
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=max(2.0, 2 * self._tick_ms / 1000.0))
                if thread.is_alive():
                    logger.warning("Simulation tick thread did not exit in time")
            with self._lock:
                self._emit(EVENT_INFO, "Simulation stopped")
            if thread is not None:
                logger.info("Simulation stopped")

    def reset(self) -> None:
        with self._lifecycle_lock:
            self.stop()
            with self._lock:
                self._reseed()
                self._emit(EVENT_RESET, "Simulation reset")
            logger.info(f"Simulation reset with {self._aircraft_count} aircraft")

    def configure(self, count: int | None = None, tick_ms: int | None = None) -> dict:
        """Change aircraft count and/or tick period; returns :meth:`status`."""
        return self.configure_advanced(count=count, tick_ms=tick_ms)

    def configure_advanced(
        self,
        count: int | None = None,
        tick_ms: int | None = None,
        world_size: int | None = None,
        min_separation: int | None = None,
    ) -> dict:
        """Change any configuration knob.  Out-of-range values are clamped.

        A count change reseeds the fleet.  A tick change restarts the
        scheduler when it is running.  The separation bound is checked
        against the world size that results from this same call.
        """
        with self._lifecycle_lock:
            restart = False
            with self._lock:
                if count is not None:
                    self._aircraft_count = clamp_aircraft_count(count)
                    self._reseed()
                if tick_ms is not None:
                    new_tick = clamp_tick_ms(tick_ms)
                    restart = self._thread is not None
                    self._tick_ms = new_tick
                if world_size is not None:
                    self._world_size = clamp_world_size(world_size)
                    self._min_separation = clamp_min_separation(
                        self._min_separation, self._world_size,
                    )
                    for aircraft in self._fleet.values():
                        aircraft.x %= self._world_size
                        aircraft.y %= self._world_size
                if min_separation is not None:
                    self._min_separation = clamp_min_separation(
                        min_separation, self._world_size,
                    )
            if restart:
                self.stop()
                self.start()
            logger.info(
                f"Simulation configured: n={self._aircraft_count} tick={self._tick_ms}ms "
                f"world={self._world_size} sep={self._min_separation}"
            )
            return self.status()

    # -- Tick loop ----------------------------------------------------------

    def _tick_loop(self, stop_event: threading.Event, period_s: float) -> None:
        next_at = time.monotonic()
        while not stop_event.is_set():
            self.do_tick()
            next_at += period_s
            delay = next_at - time.monotonic()
            if delay < 0:
                # Overran the period; don't burst to catch up
                next_at = time.monotonic()
                delay = 0.0
            if stop_event.wait(delay):
                break

    def do_tick(self) -> None:
        """Execute one full tick.  Called from the tick thread, or directly
        in tests to exercise the pipeline without starting threads."""
        with self._lock:
            try:
                self._run_pipeline()
            except Exception as e:
                logger.exception("Simulation tick failed")
                self._emit(EVENT_ERROR, f"Tick error: {e}")
            self._tick_counter += 1
            telemetry = [a.to_dict() for a in self._fleet.values()]
        self._event_bus.publish("sim_telemetry", telemetry)

    def _run_pipeline(self) -> None:
        dt = self._tick_ms / 1000.0
        world = self._world_size
        sep = self._min_separation
        fleet = list(self._fleet.values())

        step_all(fleet, dt, world)
        classify_fleet(fleet, sep, world)

        self._alerts = []
        for miss in find_near_misses(fleet, sep, world):
            self._emit(EVENT_NEAR_MISS, miss.message)
            self._alerts.append(
                Alert(
                    a1=miss.first.aircraft_id,
                    a2=miss.second.aircraft_id,
                    advisory=advisory_for(miss.first, miss.second, sep, world),
                )
            )

        forecast = forecast_conflicts(fleet, sep, world, self._tick_ms)
        self._avoidance.engage(forecast.conflicts, self._fleet, self._tick_ms, self._emit)
        self._avoidance.release(self._fleet)

    # -- Queries ------------------------------------------------------------

    def status(self) -> dict:
        with self._lock:
            return {
                "running": self._thread is not None,
                "tickPeriodMs": self._tick_ms,
                "worldSize": self._world_size,
                "minSeparation": self._min_separation,
                "entityCount": len(self._fleet),
            }

    def snapshot(self) -> dict:
        """Fleet positions, fresh forecast warnings and the event log."""
        with self._lock:
            fleet = list(self._fleet.values())
            forecast = forecast_conflicts(
                fleet, self._min_separation, self._world_size, self._tick_ms,
            )
            return {
                "world": self._world_size,
                "aircraft": [
                    {
                        "id": a.aircraft_id,
                        "x": _round_half_up(a.x),
                        "y": _round_half_up(a.y),
                        "speed": _round_half_up(a.speed),
                        "direction": _round_half_up(a.heading),
                        "status": a.status,
                    }
                    for a in fleet
                ],
                "warnings": forecast.warnings,
                "events": self._events.to_list(),
            }

    def alerts(self) -> dict:
        """Current near-miss alerts plus forecast advisories.

        Read-only: the forecast alerts are computed for this response and
        never stored, so polling does not change engine state.
        """
        with self._lock:
            forecast = forecast_conflicts(
                list(self._fleet.values()),
                self._min_separation,
                self._world_size,
                self._tick_ms,
                with_alerts=True,
            )
            return {"alerts": [a.to_dict() for a in self._alerts + forecast.alerts]}
