"""Proximity classification and near-miss detection.

Status priority, highest first:

    critical_proximity  (any neighbour closer than CRITICAL_DISTANCE)
    warning_proximity   (any neighbour closer than min_separation)
    conflict_course / deviated   (protected, owned by the avoidance engine)
    normal

Protected statuses are never overwritten here, so the effective order for a
protected aircraft is simply "keep what you have".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .aircraft import (
    STATUS_CRITICAL,
    STATUS_NORMAL,
    STATUS_WARNING,
    PROTECTED_STATUSES,
    Aircraft,
    iter_pairs,
)
from .geometry import torus_distance

CRITICAL_DISTANCE = 1.0

SEVERITY_IMMEDIATE = "IMMEDIATE"
SEVERITY_CAUTION = "CAUTION"


def classify(current_status: str, distances: Iterable[float], min_separation: float) -> str:
    """Return the display status for one aircraft.

    Args:
        current_status: Status before classification.
        distances: Torus distances from this aircraft to every other one.
        min_separation: Configured minimum separation.
    """
    if current_status in PROTECTED_STATUSES:
        return current_status
    status = STATUS_NORMAL
    for d in distances:
        if d < CRITICAL_DISTANCE:
            return STATUS_CRITICAL
        if d < min_separation:
            status = STATUS_WARNING
    return status


def classify_fleet(fleet: list[Aircraft], min_separation: float, world_size: float) -> None:
    """Recompute every aircraft's status from current pairwise distances."""
    distances: dict[str, list[float]] = {a.aircraft_id: [] for a in fleet}
    for p, q in iter_pairs(fleet):
        d = torus_distance(p.position, q.position, world_size)
        distances[p.aircraft_id].append(d)
        distances[q.aircraft_id].append(d)
    for aircraft in fleet:
        aircraft.status = classify(
            aircraft.status, distances[aircraft.aircraft_id], min_separation,
        )


@dataclass(frozen=True)
class NearMiss:
    """A pair currently inside the minimum separation."""

    first: Aircraft
    second: Aircraft
    distance: float

    @property
    def message(self) -> str:
        return (
            f"Near-miss: {self.first.aircraft_id} and {self.second.aircraft_id} "
            f"d={self.distance:.1f}"
        )


def find_near_misses(
    fleet: list[Aircraft], min_separation: float, world_size: float,
) -> list[NearMiss]:
    misses: list[NearMiss] = []
    for p, q in iter_pairs(fleet):
        d = torus_distance(p.position, q.position, world_size)
        if d < min_separation:
            misses.append(NearMiss(p, q, d))
    return misses


def advisory_for(p: Aircraft, q: Aircraft, min_separation: int, world_size: float) -> str:
    """Human-readable separation advisory for a pair, as of right now."""
    d = torus_distance(p.position, q.position, world_size)
    severity = SEVERITY_IMMEDIATE if d < min_separation else SEVERITY_CAUTION
    return (
        f"{severity}: {p.aircraft_id} and {q.aircraft_id} separation {d:.1f} "
        f"(min {min_separation}). {p.aircraft_id} status: {p.status}, "
        f"{q.aircraft_id} status: {q.status}"
    )
