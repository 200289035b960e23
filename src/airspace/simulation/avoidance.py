"""Avoidance engine -- per-pair maneuver state machine.

Each aircraft pair (keyed by :class:`PairKey`) is either untracked or
``UNDER_AVOIDANCE``:

    untracked --(forecast flags pair)--> UNDER_AVOIDANCE
        both aircraft: conflict_course, then the maneuver sets deviated
        events: conflict_predicted, avoidance_applied

    UNDER_AVOIDANCE --(neither aircraft deviated)--> untracked

The exit check runs every tick whether or not the forecaster still flags the
pair, so a pair stays tracked for as long as either deviation countdown is
running.  A tracked pair is never re-triggered.
"""

from __future__ import annotations

import enum
import random
from typing import Callable, Iterable, Mapping

from .aircraft import (
    MIN_SPEED,
    STATUS_CONFLICT_COURSE,
    STATUS_DEVIATED,
    Aircraft,
    PairKey,
)
from .event_log import EVENT_AVOIDANCE_APPLIED, EVENT_CONFLICT_PREDICTED
from .geometry import normalize_heading

# Turn magnitude range (degrees)
TURN_MIN_DEG = 35.0
TURN_MAX_DEG = 55.0

# Deviated status is held for ~2 s, at least 8 ticks
_DEVIATION_HOLD_MS = 2000
_MIN_DEVIATION_TICKS = 8

# Optional speed-up during the maneuver
SPEED_BOOST = 1.1
SPEED_BOOST_CAP = 1.2  # times base_speed
_BOOST_PROBABILITY = 0.5


class PairState(enum.Enum):
    UNDER_AVOIDANCE = "under_avoidance"


def deviation_ticks(tick_ms: int) -> int:
    return max(_MIN_DEVIATION_TICKS, _DEVIATION_HOLD_MS // max(1, tick_ms))


EventSink = Callable[[str, str], object]


class AvoidanceEngine:
    """Tracks which pairs are maneuvering and applies evasive turns."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._pairs: dict[PairKey, PairState] = {}

    # -- State queries ------------------------------------------------------

    def state_of(self, pair: PairKey) -> PairState | None:
        return self._pairs.get(pair)

    def is_tracked(self, pair: PairKey) -> bool:
        return pair in self._pairs

    @property
    def tracked_pairs(self) -> list[PairKey]:
        return sorted(self._pairs)

    def clear(self) -> None:
        self._pairs.clear()

    # -- Transitions --------------------------------------------------------

    def engage(
        self,
        conflicts: Iterable[PairKey],
        fleet: Mapping[str, Aircraft],
        tick_ms: int,
        emit: EventSink,
    ) -> list[PairKey]:
        """Start avoidance for every newly flagged pair.

        Returns the pairs that entered ``UNDER_AVOIDANCE`` on this call.
        """
        engaged: list[PairKey] = []
        for pair in conflicts:
            if pair in self._pairs:
                continue
            p = fleet.get(pair.a)
            q = fleet.get(pair.b)
            if p is None or q is None:
                continue

            p.status = STATUS_CONFLICT_COURSE
            q.status = STATUS_CONFLICT_COURSE
            emit(EVENT_CONFLICT_PREDICTED, f"In collision course: {p.aircraft_id} and {q.aircraft_id}")

            self.apply_maneuver(p, tick_ms)
            self.apply_maneuver(q, tick_ms)

            self._pairs[pair] = PairState.UNDER_AVOIDANCE
            emit(EVENT_AVOIDANCE_APPLIED, f"Successfully deviated: {p.aircraft_id} and {q.aircraft_id}")
            engaged.append(pair)
        return engaged

    def release(self, fleet: Mapping[str, Aircraft]) -> list[PairKey]:
        """Drop pairs where neither aircraft is still deviated."""
        released: list[PairKey] = []
        for pair in list(self._pairs):
            p = fleet.get(pair.a)
            q = fleet.get(pair.b)
            if p is None or q is None or (
                p.status != STATUS_DEVIATED and q.status != STATUS_DEVIATED
            ):
                del self._pairs[pair]
                released.append(pair)
        return released

    # -- Maneuver -----------------------------------------------------------

    def apply_maneuver(self, aircraft: Aircraft, tick_ms: int) -> float:
        """Turn one aircraft 35-55 degrees left or right and hold deviated.

        Returns the signed turn applied, in degrees.
        """
        turn = self._rng.uniform(TURN_MIN_DEG, TURN_MAX_DEG)
        if self._rng.random() < 0.5:
            turn = -turn
        aircraft.heading = normalize_heading(aircraft.heading + turn)
        aircraft.status = STATUS_DEVIATED
        aircraft.deviation_ticks_remaining = deviation_ticks(tick_ms)

        aircraft.speed = max(MIN_SPEED, aircraft.speed)
        if self._rng.random() < _BOOST_PROBABILITY:
            boosted = min(aircraft.speed * SPEED_BOOST, aircraft.base_speed * SPEED_BOOST_CAP)
            # The cap never pulls speed below the floor
            aircraft.speed = max(MIN_SPEED, boosted)
        return turn
