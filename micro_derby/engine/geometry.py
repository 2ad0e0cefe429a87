from __future__ import annotations

import math
from typing import Tuple

from .constants import GOAL_EPSILON, GOAL_RADIUS_FACTOR


def _distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    return (dx * dx + dy * dy) ** 0.5


def goal_radius(width: float, height: float) -> float:
    """Radius of the quarter-disc goal anchored at the top-right corner."""
    return GOAL_RADIUS_FACTOR * max(width, height)


def distance_to_goal(x: float, y: float, width: float) -> float:
    return _distance((x, y), (width, 0.0))


def within_goal(x: float, y: float, width: float, height: float) -> bool:
    return distance_to_goal(x, y, width) < goal_radius(width, height)


def unit_toward_goal(x: float, y: float, width: float) -> Tuple[float, float, float]:
    """Returns (ux, uy, magnitude) for the vector from (x, y) to (width, 0).

    The unit vector is (0, 0) when the point sits on the corner.
    """
    dx = width - x
    dy = 0.0 - y
    magnitude = _distance((x, y), (width, 0.0))
    if magnitude <= GOAL_EPSILON:
        return 0.0, 0.0, magnitude
    return dx / magnitude, dy / magnitude, magnitude


def heading_degrees(vx: float, vy: float) -> float:
    """Direction of travel in degrees, in the same (y-down) frame as positions."""
    return math.degrees(math.atan2(vy, vx))
