"""
Builds the per-race initial state: racer spawns and decorative dust.
"""

from __future__ import annotations

import random
from typing import Dict, Sequence, Tuple

from micro_derby.config import DUST_COUNT

from .constants import (
    DUST_MAX_OPACITY,
    DUST_MAX_SIZE,
    SPAWN_X_FRACTION,
    SPAWN_Y_FRACTION,
    VX_RANGE,
    VY_RANGE,
)
from .data_models import DustParticle, RacerProfile, RacerState
from .roster import ROSTER


def random_velocity(rng: random.Random) -> Tuple[float, float]:
    """Draws a fresh (vx, vy) heading up and to the right."""
    vx = VX_RANGE[0] + rng.random() * (VX_RANGE[1] - VX_RANGE[0])
    vy = VY_RANGE[1] - rng.random() * (VY_RANGE[1] - VY_RANGE[0])
    return vx, vy


def spawn_racer(profile: RacerProfile, width: float, height: float, rng: random.Random) -> RacerState:
    x = rng.random() * (width * SPAWN_X_FRACTION)
    y = height * SPAWN_Y_FRACTION + rng.random() * (height * (1.0 - SPAWN_Y_FRACTION))
    vx, vy = random_velocity(rng)
    return RacerState(profile=profile, x=x, y=y, vx=vx, vy=vy)


def spawn_racers(
    width: float,
    height: float,
    rng: random.Random,
    roster: Sequence[RacerProfile] = ROSTER,
) -> Dict[int, RacerState]:
    """One fresh state per profile, keyed and ordered by racer id."""
    return {profile.racer_id: spawn_racer(profile, width, height, rng) for profile in roster}


def generate_dust(
    width: float,
    height: float,
    rng: random.Random,
    count: int = DUST_COUNT,
) -> Tuple[DustParticle, ...]:
    return tuple(
        DustParticle(
            x=rng.random() * width,
            y=rng.random() * height,
            size=rng.random() * DUST_MAX_SIZE,
            opacity=rng.random() * DUST_MAX_OPACITY,
        )
        for _ in range(max(0, count))
    )
