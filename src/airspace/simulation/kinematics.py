"""Kinematics step -- advance every aircraft one tick on the torus."""

from __future__ import annotations

from typing import Iterable

from .aircraft import MIN_SPEED, STATUS_DEVIATED, STATUS_NORMAL, Aircraft
from .geometry import advance


def step_aircraft(aircraft: Aircraft, dt: float, world_size: float) -> None:
    """Advance one aircraft by ``dt`` seconds.

    The deviation countdown runs before the move; a ``deviated`` aircraft
    whose countdown has reached zero returns to ``normal``.
    """
    if aircraft.deviation_ticks_remaining > 0:
        aircraft.deviation_ticks_remaining -= 1
    if aircraft.deviation_ticks_remaining == 0 and aircraft.status == STATUS_DEVIATED:
        aircraft.status = STATUS_NORMAL

    aircraft.speed = max(MIN_SPEED, aircraft.speed)
    aircraft.x, aircraft.y = advance(
        aircraft.position, aircraft.heading, aircraft.speed, dt, world_size,
    )


def step_all(fleet: Iterable[Aircraft], dt: float, world_size: float) -> None:
    for aircraft in fleet:
        step_aircraft(aircraft, dt, world_size)
