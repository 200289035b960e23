"""Near-term conflict forecaster.

Every aircraft is extrapolated in a straight line at its current heading and
speed for ``horizon_steps(tick_ms)`` ticks (about five seconds of flight).
A pair is a predicted conflict when the projected torus distance at any step
falls below ``min_separation * PREDICTIVE_BUFFER``.  Avoidance maneuvers are
not re-simulated; the projection is purely linear.

The forecaster never mutates aircraft or engine state.  Callers decide what
to do with the result: the tick pipeline feeds ``conflicts`` to the avoidance
engine, snapshots use ``warnings``, and the alert query uses ``alerts``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .aircraft import Aircraft, PairKey, iter_pairs
from .event_log import Alert
from .geometry import project_track, torus_distances
from .proximity import advisory_for

PREDICTIVE_BUFFER = 1.3

_HORIZON_MS = 5000
_MIN_HORIZON_STEPS = 5
_MIN_TICK_MS = 100


def horizon_steps(tick_ms: int) -> int:
    """Number of look-ahead steps, never fewer than five."""
    return max(_MIN_HORIZON_STEPS, _HORIZON_MS // max(_MIN_TICK_MS, tick_ms))


@dataclass(frozen=True)
class PredictedConflict:
    pair: PairKey
    first: Aircraft
    second: Aircraft
    step: int  # first violating step, 1-based


@dataclass
class Forecast:
    """Result of one forecasting pass."""

    predicted: list[PredictedConflict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)

    @property
    def conflicts(self) -> list[PairKey]:
        return [c.pair for c in self.predicted]


def forecast_conflicts(
    fleet: list[Aircraft],
    min_separation: int,
    world_size: float,
    tick_ms: int,
    with_alerts: bool = False,
) -> Forecast:
    """Project the fleet forward and flag pairs predicted to lose separation.

    Args:
        fleet: Aircraft in store order.
        min_separation: Live minimum separation; the predictive threshold is
            this times PREDICTIVE_BUFFER.
        world_size: Side of the torus.
        tick_ms: Tick period; sets both the step length and the horizon.
        with_alerts: Also build an advisory Alert per conflicting pair.
    """
    result = Forecast()
    if len(fleet) < 2:
        return result

    steps = horizon_steps(tick_ms)
    dt = tick_ms / 1000.0
    threshold = min_separation * PREDICTIVE_BUFFER

    tracks = {
        a.aircraft_id: project_track(a.position, a.heading, a.speed, dt, steps, world_size)
        for a in fleet
    }

    for p, q in iter_pairs(fleet):
        distances = torus_distances(tracks[p.aircraft_id], tracks[q.aircraft_id], world_size)
        violations = np.flatnonzero(distances < threshold)
        if violations.size == 0:
            continue
        result.predicted.append(
            PredictedConflict(
                pair=PairKey(p.aircraft_id, q.aircraft_id),
                first=p,
                second=q,
                step=int(violations[0]) + 1,
            )
        )
        result.warnings.append(f"Conflict predicted: {p.aircraft_id} and {q.aircraft_id}")
        if with_alerts:
            result.alerts.append(
                Alert(
                    a1=p.aircraft_id,
                    a2=q.aircraft_id,
                    advisory=advisory_for(p, q, min_separation, world_size),
                )
            )
    return result
