from __future__ import annotations

from typing import Dict, Tuple

from .data_models import RacerProfile

ROSTER: Tuple[RacerProfile, ...] = (
    RacerProfile(racer_id=1, name="Red Shift", color="#ff4d4f", emoji="\U0001F534"),
    RacerProfile(racer_id=2, name="Blue Streak", color="#1890ff", emoji="\U0001F535"),
    RacerProfile(racer_id=3, name="Lime Ghost", color="#a0d911", emoji="\U0001F7E2"),
    RacerProfile(racer_id=4, name="Golden Gallop", color="#ffc53d", emoji="\U0001F7E1"),
    RacerProfile(racer_id=5, name="Cyan Comet", color="#597ef7", emoji="\U0001F9CA"),
    RacerProfile(racer_id=6, name="Violet Venom", color="#722ed1", emoji="\U0001F7E3"),
    RacerProfile(racer_id=7, name="Orange Fury", color="#fa8c16", emoji="\U0001F7E0"),
    RacerProfile(racer_id=8, name="Pink Phantom", color="#eb2f96", emoji="\U0001F338"),
)

PROFILES_BY_ID: Dict[int, RacerProfile] = {profile.racer_id: profile for profile in ROSTER}


def get_profile(racer_id: int) -> RacerProfile:
    try:
        return PROFILES_BY_ID[racer_id]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Unknown racer id: {racer_id!r}") from exc


def is_valid_racer_id(racer_id: object) -> bool:
    return isinstance(racer_id, int) and not isinstance(racer_id, bool) and racer_id in PROFILES_BY_ID
