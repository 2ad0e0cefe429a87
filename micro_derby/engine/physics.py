from __future__ import annotations

import random
from dataclasses import replace
from typing import Tuple

from .constants import ATTRACTION, DRAG, GOAL_EPSILON, JITTER_SPAN, RESTITUTION, TAIL_LENGTH
from .data_models import RacerState
from .geometry import goal_radius, unit_toward_goal, within_goal


def _reflect(position: float, velocity: float, bound: float) -> Tuple[float, float]:
    if position < 0.0:
        return 0.0, velocity * -RESTITUTION
    if position > bound:
        return bound, velocity * -RESTITUTION
    return position, velocity


class PhysicsKernel:
    """Per-frame kinematics for racers drifting toward the top-right goal.

    Each step applies, in order: goal-ward attraction, uniform jitter, drag,
    position integration, wall reflection, trail append and the goal test.
    Finished racers are returned untouched.
    """

    def __init__(self, width: float, height: float) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive, got {width}x{height}")
        self.width = float(width)
        self.height = float(height)
        self.goal_radius = goal_radius(self.width, self.height)

    def step(self, state: RacerState, rng: random.Random) -> RacerState:
        """Returns the racer's state one frame later."""
        if state.finished:
            return state

        x, y, vx, vy = state.x, state.y, state.vx, state.vy

        ux, uy, magnitude = unit_toward_goal(x, y, self.width)
        if magnitude <= GOAL_EPSILON:
            # Sitting on the corner: no usable direction, already home.
            return self._finish(state, x, y, vx, vy, state.tail)

        vx += ux * ATTRACTION
        vy += uy * ATTRACTION
        vx += (rng.random() - 0.5) * JITTER_SPAN
        vy += (rng.random() - 0.5) * JITTER_SPAN
        vx *= DRAG
        vy *= DRAG

        x += vx
        y += vy
        x, vx = _reflect(x, vx, self.width)
        y, vy = _reflect(y, vy, self.height)

        tail = (*state.tail, (x, y))[-TAIL_LENGTH:]

        if within_goal(x, y, self.width, self.height):
            return self._finish(state, x, y, vx, vy, tail)
        return replace(state, x=x, y=y, vx=vx, vy=vy, tail=tail)

    @staticmethod
    def _finish(state, x, y, vx, vy, tail) -> RacerState:
        return replace(
            state,
            x=x,
            y=y,
            vx=vx,
            vy=vy,
            tail=tail,
            finished=True,
            final_x=x,
            final_y=y,
        )
