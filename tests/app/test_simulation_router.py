"""Unit tests for the simulation control router.

Mocked-engine tests check routing, argument parsing and the 503 path; a
second group drives a real SimulationEngine through the HTTP surface.
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from airspace.comms.event_bus import EventBus
from airspace.simulation import SimulationEngine
from app.routers.simulation import router

pytestmark = pytest.mark.unit


def _make_app(engine=None):
    app = FastAPI()
    app.include_router(router)
    app.state.simulation_engine = engine
    return app


def _status(**overrides):
    status = {
        "running": False,
        "tickPeriodMs": 1000,
        "worldSize": 100,
        "minSeparation": 8,
        "entityCount": 5,
    }
    status.update(overrides)
    return status


def _mock_engine():
    engine = MagicMock()
    engine.status.return_value = _status()
    engine.configure.return_value = _status()
    engine.configure_advanced.return_value = _status()
    engine.snapshot.return_value = {"world": 100, "aircraft": [], "warnings": [], "events": []}
    engine.alerts.return_value = {"alerts": []}
    return engine


class TestWithoutEngine:
    @pytest.mark.parametrize("path", [
        "/startSimulation", "/stopSimulation", "/reset", "/status",
        "/updateSimulation", "/getAlerts", "/configure", "/configureAdvanced",
    ])
    def test_503(self, path):
        client = TestClient(_make_app(engine=None))
        assert client.get(path).status_code == 503


class TestLifecycleEndpoints:
    def test_start(self):
        engine = _mock_engine()
        resp = TestClient(_make_app(engine)).get("/startSimulation")
        assert resp.status_code == 200
        assert resp.json() == {"status": "started"}
        engine.start.assert_called_once()

    def test_stop(self):
        engine = _mock_engine()
        resp = TestClient(_make_app(engine)).get("/stopSimulation")
        assert resp.json() == {"status": "stopped"}
        engine.stop.assert_called_once()

    def test_reset(self):
        engine = _mock_engine()
        resp = TestClient(_make_app(engine)).get("/reset")
        assert resp.json() == {"status": "reset"}
        engine.reset.assert_called_once()


class TestQueryEndpoints:
    def test_status(self):
        engine = _mock_engine()
        resp = TestClient(_make_app(engine)).get("/status")
        assert resp.json() == _status()

    def test_update_simulation_no_store(self):
        engine = _mock_engine()
        resp = TestClient(_make_app(engine)).get("/updateSimulation")
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        assert resp.json()["world"] == 100

    def test_get_alerts_no_store(self):
        engine = _mock_engine()
        resp = TestClient(_make_app(engine)).get("/getAlerts")
        assert resp.headers["cache-control"] == "no-store"
        assert resp.json() == {"alerts": []}


class TestConfigureParsing:
    def test_configure_passes_ints(self):
        engine = _mock_engine()
        TestClient(_make_app(engine)).get("/configure?n=7&tick=250")
        engine.configure.assert_called_once_with(count=7, tick_ms=250)

    def test_configure_ignores_garbage(self):
        engine = _mock_engine()
        resp = TestClient(_make_app(engine)).get("/configure?n=abc&tick=")
        assert resp.status_code == 200
        engine.configure.assert_called_once_with(count=None, tick_ms=None)

    def test_configure_advanced_partial(self):
        engine = _mock_engine()
        TestClient(_make_app(engine)).get("/configureAdvanced?world=300&sep=x")
        engine.configure_advanced.assert_called_once_with(
            count=None, tick_ms=None, world_size=300, min_separation=None,
        )


class TestRealEngine:
    @pytest.fixture
    def engine(self):
        eng = SimulationEngine(EventBus(), seed=42)
        yield eng
        eng.stop()

    def test_configure_clamps(self, engine):
        client = TestClient(_make_app(engine))
        data = client.get("/configure?n=50&tick=10").json()
        assert data["entityCount"] == 10
        assert data["tickPeriodMs"] == 100

    def test_configure_huge_tick_clamped(self, engine):
        client = TestClient(_make_app(engine))
        resp = client.get("/configure?tick=10000000000000")
        assert resp.status_code == 200
        assert resp.json()["tickPeriodMs"] == 2**31 - 1

    def test_configure_advanced_clamps_separation(self, engine):
        client = TestClient(_make_app(engine))
        data = client.get("/configureAdvanced?world=100&sep=1000").json()
        assert data["worldSize"] == 100
        assert data["minSeparation"] == 50

    def test_snapshot_shape(self, engine):
        client = TestClient(_make_app(engine))
        data = client.get("/updateSimulation").json()
        assert data["world"] == 100
        assert [a["id"] for a in data["aircraft"]] == ["AC1", "AC2", "AC3", "AC4", "AC5"]
        for a in data["aircraft"]:
            assert set(a) == {"id", "x", "y", "speed", "direction", "status"}

    def test_start_stop_roundtrip(self, engine):
        client = TestClient(_make_app(engine))
        client.get("/startSimulation")
        assert client.get("/status").json()["running"] is True
        client.get("/stopSimulation")
        assert client.get("/status").json()["running"] is False
        messages = [e["message"] for e in client.get("/updateSimulation").json()["events"]]
        assert messages.index("Simulation stopped") < messages.index("Simulation started")
