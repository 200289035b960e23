"""Aircraft entities, status tags and canonical pair identity."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterator

# Status tags
STATUS_NORMAL = "normal"
STATUS_CONFLICT_COURSE = "conflict_course"
STATUS_DEVIATED = "deviated"
STATUS_WARNING = "warning_proximity"
STATUS_CRITICAL = "critical_proximity"

ALL_STATUSES = (
    STATUS_NORMAL,
    STATUS_CONFLICT_COURSE,
    STATUS_DEVIATED,
    STATUS_WARNING,
    STATUS_CRITICAL,
)

# Set by the avoidance engine; proximity classification never overwrites them.
PROTECTED_STATUSES = frozenset({STATUS_CONFLICT_COURSE, STATUS_DEVIATED})

# Aircraft can't stop
MIN_SPEED = 0.5

# Seeding ranges
_SEED_SPEED_MIN = 1.0
_SEED_SPEED_MAX = 3.0


@dataclass
class Aircraft:
    """One simulated aircraft on the torus."""

    aircraft_id: str
    x: float
    y: float
    speed: float  # units per second
    heading: float  # degrees, 0 = +X, 90 = up
    base_speed: float = 0.0
    status: str = STATUS_NORMAL
    deviation_ticks_remaining: int = 0

    def __post_init__(self) -> None:
        if self.base_speed <= 0.0:
            self.base_speed = self.speed

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)

    @property
    def is_protected(self) -> bool:
        return self.status in PROTECTED_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.aircraft_id,
            "x": self.x,
            "y": self.y,
            "speed": self.speed,
            "heading": self.heading,
            "status": self.status,
        }


@dataclass(frozen=True, order=True)
class PairKey:
    """Unordered aircraft pair, stored with ``a <= b``.

    ``PairKey("B", "A")`` and ``PairKey("A", "B")`` compare and hash equal.
    """

    a: str
    b: str

    def __post_init__(self) -> None:
        if self.a > self.b:
            first, second = self.b, self.a
            object.__setattr__(self, "a", first)
            object.__setattr__(self, "b", second)

    def __contains__(self, aircraft_id: str) -> bool:
        return aircraft_id in (self.a, self.b)

    def __str__(self) -> str:
        return f"{self.a}/{self.b}"


def seed_fleet(count: int, world_size: float, rng: random.Random) -> dict[str, Aircraft]:
    """Create ``count`` aircraft with random positions, headings and speeds.

    Identifiers are ``AC1..ACn`` in insertion order.
    """
    fleet: dict[str, Aircraft] = {}
    for i in range(count):
        speed = _SEED_SPEED_MIN + rng.random() * (_SEED_SPEED_MAX - _SEED_SPEED_MIN)
        aircraft = Aircraft(
            aircraft_id=f"AC{i + 1}",
            x=rng.random() * world_size,
            y=rng.random() * world_size,
            speed=speed,
            heading=rng.random() * 360.0,
            base_speed=speed,
        )
        fleet[aircraft.aircraft_id] = aircraft
    return fleet


def iter_pairs(fleet: list[Aircraft]) -> Iterator[tuple[Aircraft, Aircraft]]:
    """Yield every unordered pair once, in fleet order (i < j)."""
    for i in range(len(fleet)):
        for j in range(i + 1, len(fleet)):
            yield fleet[i], fleet[j]
