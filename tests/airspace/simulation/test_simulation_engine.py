"""Unit tests for SimulationEngine -- the tick pipeline driven by do_tick().

Tests cover:
  - Configuration clamping (count, tick, world, separation)
  - status / snapshot / alerts response shapes
  - Coincident-aircraft scenario (critical proximity, near-miss, alert)
  - Head-on scenario (conflict predicted, avoidance applied, headings turned)
  - No re-trigger while a pair is deviated
  - Tick errors logged as events without breaking later ticks
  - Event log bound, reset, EventBus publishing
"""

from __future__ import annotations

import pytest

from airspace.comms.event_bus import EventBus
from airspace.simulation.aircraft import (
    ALL_STATUSES,
    STATUS_DEVIATED,
    STATUS_NORMAL,
    PairKey,
)
from airspace.simulation.engine import MAX_TICK_MS, SimulationEngine

pytestmark = pytest.mark.unit


def _make_engine(**kwargs) -> SimulationEngine:
    params = dict(aircraft_count=5, tick_ms=1000, world_size=100, min_separation=8, seed=1234)
    params.update(kwargs)
    return SimulationEngine(EventBus(), **params)


def _place(engine: SimulationEngine, aircraft_id: str, x: float, y: float,
           heading: float, speed: float = 1.0) -> None:
    a = engine._fleet[aircraft_id]
    a.x, a.y = x, y
    a.heading = heading
    a.speed = a.base_speed = speed
    a.status = STATUS_NORMAL
    a.deviation_ticks_remaining = 0


def _park_bystanders(engine: SimulationEngine) -> None:
    """Move AC3..AC5 into a formation that never conflicts with y=50 traffic."""
    _place(engine, "AC3", 10, 10, heading=0.0, speed=0.5)
    _place(engine, "AC4", 10, 85, heading=0.0, speed=0.5)
    _place(engine, "AC5", 85, 10, heading=0.0, speed=0.5)


def _events(engine: SimulationEngine, event_type: str) -> list[dict]:
    return [e for e in engine.get_events() if e["type"] == event_type]


def _heading_delta(before: float, after: float) -> float:
    return abs((after - before + 180.0) % 360.0 - 180.0)


# ==========================================================================
# Configuration
# ==========================================================================

class TestConfiguration:
    def test_defaults(self):
        engine = SimulationEngine()
        assert engine.status() == {
            "running": False,
            "tickPeriodMs": 1000,
            "worldSize": 100,
            "minSeparation": 8,
            "entityCount": 5,
        }

    def test_count_clamped_low(self):
        engine = _make_engine()
        assert engine.configure(count=2)["entityCount"] == 3

    def test_count_clamped_high(self):
        engine = _make_engine()
        assert engine.configure(count=50)["entityCount"] == 10

    def test_count_reseeds(self):
        engine = _make_engine()
        engine.configure(count=7)
        assert [a.aircraft_id for a in engine.get_fleet()] == [f"AC{i}" for i in range(1, 8)]

    def test_tick_clamped(self):
        engine = _make_engine()
        assert engine.configure(tick_ms=10)["tickPeriodMs"] == 100

    def test_tick_change_keeps_fleet(self):
        engine = _make_engine()
        before = [a.position for a in engine.get_fleet()]
        engine.configure(tick_ms=500)
        assert [a.position for a in engine.get_fleet()] == before

    def test_separation_clamped_to_half_world(self):
        engine = _make_engine()
        status = engine.configure_advanced(min_separation=1000, world_size=100)
        assert status["minSeparation"] == 50

    def test_separation_floor(self):
        engine = _make_engine()
        assert engine.configure_advanced(min_separation=0)["minSeparation"] == 2

    @pytest.mark.parametrize("world,expected", [(10, 50), (5000, 1000), (300, 300)])
    def test_world_clamped(self, world, expected):
        engine = _make_engine()
        assert engine.configure_advanced(world_size=world)["worldSize"] == expected

    def test_shrinking_world_rewraps_and_reclamps(self):
        engine = _make_engine(world_size=1000, min_separation=400)
        engine.configure_advanced(world_size=50)
        status = engine.status()
        assert status["minSeparation"] == 25
        for a in engine.get_fleet():
            assert 0.0 <= a.x < 50 and 0.0 <= a.y < 50

    def test_constructor_clamps(self):
        engine = SimulationEngine(aircraft_count=99, tick_ms=1, world_size=1, min_separation=999)
        assert engine.status() == {
            "running": False,
            "tickPeriodMs": 100,
            "worldSize": 50,
            "minSeparation": 25,
            "entityCount": 10,
        }


# ==========================================================================
# Queries
# ==========================================================================

class TestSnapshot:
    def test_shape_and_rounding(self):
        engine = _make_engine()
        _place(engine, "AC1", 10.5, 20.49, heading=359.6, speed=1.5)
        snap = engine.snapshot()
        assert snap["world"] == 100
        assert set(snap) == {"world", "aircraft", "warnings", "events"}
        first = snap["aircraft"][0]
        assert first == {
            "id": "AC1", "x": 11, "y": 20, "speed": 2, "direction": 360, "status": "normal",
        }
        for a in snap["aircraft"]:
            assert isinstance(a["x"], int)
            assert a["status"] in ALL_STATUSES

    def test_warnings_from_fresh_forecast(self):
        engine = _make_engine()
        _park_bystanders(engine)
        _place(engine, "AC1", 40, 50, heading=0.0, speed=2.0)
        _place(engine, "AC2", 60, 50, heading=180.0, speed=2.0)
        assert engine.snapshot()["warnings"] == ["Conflict predicted: AC1 and AC2"]

    def test_snapshot_is_read_only(self):
        engine = _make_engine()
        _place(engine, "AC1", 40, 50, heading=0.0, speed=2.0)
        _place(engine, "AC2", 60, 50, heading=180.0, speed=2.0)
        engine.snapshot()
        assert engine.get_aircraft("AC1").status == STATUS_NORMAL
        assert engine.active_avoidance() == []


class TestAlertsQuery:
    def test_forecast_alerts_not_stored(self):
        engine = _make_engine()
        _park_bystanders(engine)
        _place(engine, "AC1", 40, 50, heading=0.0, speed=2.0)
        _place(engine, "AC2", 60, 50, heading=180.0, speed=2.0)

        first = engine.alerts()["alerts"]
        second = engine.alerts()["alerts"]
        assert len(first) == len(second) == 1
        assert first[0]["advisory"].startswith("CAUTION: AC1 and AC2")
        assert set(first[0]) == {"id", "a1", "a2", "advisory"}
        assert engine.get_events() == []


# ==========================================================================
# Tick scenarios
# ==========================================================================

class TestCoincidentAircraft:
    """Two aircraft at the same point with the same heading."""

    def _run(self) -> SimulationEngine:
        engine = _make_engine()
        _park_bystanders(engine)
        _place(engine, "AC1", 50, 50, heading=0.0, speed=1.0)
        _place(engine, "AC2", 50, 50, heading=0.0, speed=1.0)
        engine.do_tick()
        return engine

    def test_near_miss_logged(self):
        engine = self._run()
        misses = _events(engine, "near_miss")
        assert [e["message"] for e in misses] == ["Near-miss: AC1 and AC2 d=0.0"]

    def test_immediate_alert_with_critical_status(self):
        engine = self._run()
        alerts = [a for a in engine.alerts()["alerts"] if "critical_proximity" in a["advisory"]]
        assert len(alerts) == 1
        assert (alerts[0]["a1"], alerts[0]["a2"]) == ("AC1", "AC2")
        assert alerts[0]["advisory"] == (
            "IMMEDIATE: AC1 and AC2 separation 0.0 (min 8). "
            "AC1 status: critical_proximity, AC2 status: critical_proximity"
        )

    def test_bystanders_unaffected(self):
        engine = self._run()
        for aid in ("AC3", "AC4", "AC5"):
            assert engine.get_aircraft(aid).status == STATUS_NORMAL


class TestHeadOnConflict:
    """Converging pair outside separation now, inside the buffer soon."""

    def _setup(self) -> SimulationEngine:
        engine = _make_engine()
        _park_bystanders(engine)
        _place(engine, "AC1", 40, 50, heading=0.0, speed=2.0)
        _place(engine, "AC2", 60, 50, heading=180.0, speed=2.0)
        return engine

    def test_one_tick_applies_avoidance(self):
        engine = self._setup()
        engine.do_tick()

        assert len(_events(engine, "conflict_predicted")) == 1
        assert len(_events(engine, "avoidance_applied")) == 1
        assert _events(engine, "near_miss") == []
        ac1, ac2 = engine.get_aircraft("AC1"), engine.get_aircraft("AC2")
        assert ac1.status == ac2.status == STATUS_DEVIATED
        assert 35.0 <= _heading_delta(0.0, ac1.heading) <= 55.0
        assert 35.0 <= _heading_delta(180.0, ac2.heading) <= 55.0
        assert engine.active_avoidance() == [PairKey("AC1", "AC2")]

    def test_event_order_most_recent_first(self):
        engine = self._setup()
        engine.do_tick()
        types = [e["type"] for e in engine.get_events()]
        assert types == ["avoidance_applied", "conflict_predicted"]

    def test_no_retrigger_while_deviated(self):
        engine = self._setup()
        engine.do_tick()
        # Countdown is 8 ticks; 7 more keep both aircraft deviated
        for _ in range(7):
            engine.do_tick()
            assert engine.get_aircraft("AC1").status == STATUS_DEVIATED
        pair_events = [
            e for e in _events(engine, "conflict_predicted")
            if e["message"] == "In collision course: AC1 and AC2"
        ]
        assert len(pair_events) == 1

    def test_pair_released_after_countdown(self):
        engine = self._setup()
        engine.do_tick()
        for a in engine._fleet.values():
            if a.status == STATUS_DEVIATED:
                a.deviation_ticks_remaining = 1
        # Park the pair far apart so nothing re-flags it
        ac1, ac2 = engine._fleet["AC1"], engine._fleet["AC2"]
        ac1.x, ac1.y, ac1.heading = 40.0, 30.0, 0.0
        ac2.x, ac2.y, ac2.heading = 40.0, 60.0, 0.0
        engine.do_tick()
        assert engine.get_aircraft("AC1").status == STATUS_NORMAL
        assert PairKey("AC1", "AC2") not in engine.active_avoidance()


class TestTickErrors:
    def test_error_event_and_recovery(self, monkeypatch):
        engine = _make_engine()

        def boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("airspace.simulation.engine.step_all", boom)
        engine.do_tick()
        errors = _events(engine, "error")
        assert [e["message"] for e in errors] == ["Tick error: boom"]

        monkeypatch.undo()
        before = [a.position for a in engine.get_fleet()]
        engine.do_tick()
        assert [a.position for a in engine.get_fleet()] != before
        assert len(_events(engine, "error")) == 1
        assert engine.tick_count == 2


class TestEventBound:
    def test_log_never_exceeds_200(self):
        engine = _make_engine(aircraft_count=10, world_size=50, min_separation=25)
        for _ in range(100):
            engine.do_tick()
            assert len(engine.get_events()) <= 200
        assert len(engine.get_events()) == 200


class TestReset:
    def test_reset_reseeds_and_clears(self):
        engine = _make_engine()
        _park_bystanders(engine)
        _place(engine, "AC1", 40, 50, heading=0.0, speed=2.0)
        _place(engine, "AC2", 60, 50, heading=180.0, speed=2.0)
        engine.do_tick()
        assert engine.active_avoidance()

        engine.reset()

        assert engine.active_avoidance() == []
        assert all(a.status == STATUS_NORMAL for a in engine.get_fleet())
        events = engine.get_events()
        assert events[0]["type"] == "reset"
        assert events[0]["message"] == "Simulation reset"
        assert events[1]["message"] == "Simulation stopped"
        assert engine.status()["running"] is False

    def test_stop_when_idle_logs_event(self):
        engine = _make_engine()
        engine.stop()
        engine.stop()
        assert [e["message"] for e in engine.get_events()] == [
            "Simulation stopped", "Simulation stopped",
        ]


class TestEventBusPublishing:
    def test_events_and_telemetry_published(self):
        bus = EventBus()
        engine = SimulationEngine(bus, seed=1)
        events_q = bus.subscribe("sim_event")
        telemetry_q = bus.subscribe("sim_telemetry")

        engine.stop()
        engine.do_tick()

        assert events_q.get_nowait()["data"]["message"] == "Simulation stopped"
        msg = telemetry_q.get_nowait()
        assert len(msg["data"]) == 5
        assert msg["data"][0]["id"] == "AC1"


class TestTickUpperBound:
    def test_huge_tick_clamped(self):
        engine = _make_engine()
        status = engine.configure(tick_ms=10**13)
        assert status["tickPeriodMs"] == MAX_TICK_MS

    def test_constructor_clamps_huge_tick(self):
        engine = SimulationEngine(tick_ms=10**13)
        assert engine.status()["tickPeriodMs"] == MAX_TICK_MS


class TestFleetAccessCopies:
    def test_get_aircraft_returns_copy(self):
        engine = _make_engine()
        copy = engine.get_aircraft("AC1")
        copy.x = -999.0
        copy.status = STATUS_DEVIATED
        live = engine.get_aircraft("AC1")
        assert live.x != -999.0
        assert live.status == STATUS_NORMAL

    def test_get_fleet_returns_copies(self):
        engine = _make_engine()
        for a in engine.get_fleet():
            a.speed = 0.0
        assert all(a.speed >= 1.0 for a in engine.get_fleet())

    def test_unknown_aircraft(self):
        assert _make_engine().get_aircraft("AC99") is None
