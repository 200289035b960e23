"""Torus geometry helpers shared by kinematics, proximity and forecasting.

Coordinate convention:
    The world is a square of side ``world_size`` whose edges wrap on both
    axes.  Heading 0 points along +X and 90 points "up" on screen, which is
    -Y in world coordinates (screen Y grows downward).
"""

from __future__ import annotations

import math

import numpy as np


def wrap(value: float, world_size: float) -> float:
    """Fold a coordinate into [0, world_size)."""
    value %= world_size
    if value < 0:
        value += world_size
    # -1e-17 % 100 == 100.0 in floating point
    if value >= world_size:
        value = 0.0
    return value


def normalize_heading(degrees: float) -> float:
    """Fold a heading into [0, 360)."""
    return wrap(degrees, 360.0)


def velocity(heading: float, speed: float) -> tuple[float, float]:
    """Velocity vector for a heading in degrees and a scalar speed."""
    rad = math.radians(heading)
    return (math.cos(rad) * speed, -math.sin(rad) * speed)


def advance(
    position: tuple[float, float],
    heading: float,
    speed: float,
    dt: float,
    world_size: float,
) -> tuple[float, float]:
    """Move one step along ``heading`` and wrap onto the torus."""
    vx, vy = velocity(heading, speed)
    return (
        wrap(position[0] + vx * dt, world_size),
        wrap(position[1] + vy * dt, world_size),
    )


def torus_distance(
    a: tuple[float, float],
    b: tuple[float, float],
    world_size: float,
) -> float:
    """Shortest distance between two points on the wrap-around grid."""
    dx = abs(a[0] - b[0])
    dy = abs(a[1] - b[1])
    half = world_size / 2.0
    if dx > half:
        dx = world_size - dx
    if dy > half:
        dy = world_size - dy
    return math.hypot(dx, dy)


# -- Vectorized variants (forecasting) --------------------------------------

def project_track(
    position: tuple[float, float],
    heading: float,
    speed: float,
    dt: float,
    steps: int,
    world_size: float,
) -> np.ndarray:
    """Positions after 1..steps straight-line steps, shape (steps, 2).

    Equivalent to calling :func:`advance` repeatedly, since wrapping is
    applied modulo ``world_size`` and composes.
    """
    vx, vy = velocity(heading, speed)
    n = np.arange(1, steps + 1, dtype=float)[:, None]
    track = np.array(position, dtype=float) + n * np.array([vx, vy]) * dt
    return np.mod(track, world_size)


def torus_distances(a: np.ndarray, b: np.ndarray, world_size: float) -> np.ndarray:
    """Row-wise torus distance between two (N, 2) position arrays."""
    delta = np.abs(a - b)
    delta = np.where(delta > world_size / 2.0, world_size - delta, delta)
    return np.hypot(delta[:, 0], delta[:, 1])
