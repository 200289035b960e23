"""Simulation subsystem -- fleet, kinematics, proximity, forecast, avoidance."""
from .aircraft import (
    ALL_STATUSES,
    MIN_SPEED,
    PROTECTED_STATUSES,
    STATUS_CONFLICT_COURSE,
    STATUS_CRITICAL,
    STATUS_DEVIATED,
    STATUS_NORMAL,
    STATUS_WARNING,
    Aircraft,
    PairKey,
    iter_pairs,
    seed_fleet,
)
from .avoidance import AvoidanceEngine, PairState, deviation_ticks
from .engine import SimulationEngine
from .event_log import Alert, Event, EventLog
from .forecast import Forecast, PredictedConflict, forecast_conflicts, horizon_steps
from .geometry import advance, normalize_heading, torus_distance, wrap
from .kinematics import step_aircraft, step_all
from .proximity import advisory_for, classify, classify_fleet, find_near_misses

__all__ = [
    "ALL_STATUSES",
    "Aircraft",
    "Alert",
    "AvoidanceEngine",
    "Event",
    "EventLog",
    "Forecast",
    "MIN_SPEED",
    "PROTECTED_STATUSES",
    "PairKey",
    "PairState",
    "PredictedConflict",
    "STATUS_CONFLICT_COURSE",
    "STATUS_CRITICAL",
    "STATUS_DEVIATED",
    "STATUS_NORMAL",
    "STATUS_WARNING",
    "SimulationEngine",
    "advance",
    "advisory_for",
    "classify",
    "classify_fleet",
    "deviation_ticks",
    "find_near_misses",
    "forecast_conflicts",
    "horizon_steps",
    "iter_pairs",
    "normalize_heading",
    "seed_fleet",
    "step_aircraft",
    "step_all",
    "torus_distance",
    "wrap",
]
