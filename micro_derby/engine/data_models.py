from __future__ import annotations

import itertools
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from micro_derby.results import Outcome

Point = Tuple[float, float]

_SESSION_IDS = itertools.count(1)


class Phase(Enum):
    """Race phase. SETUP -> RACING -> FINISHED, restart goes back to SETUP."""

    SETUP = "setup"
    RACING = "racing"
    FINISHED = "finished"


@dataclass(frozen=True)
class RacerProfile:
    racer_id: int
    name: str
    color: str
    emoji: str


@dataclass(frozen=True)
class DustParticle:
    x: float
    y: float
    size: float
    opacity: float


@dataclass
class RacerState:
    """Kinematic state of one racer for the lifetime of a single race.

    Ticks never edit a state in place: they build a replacement with
    ``dataclasses.replace`` so a frame reads one consistent snapshot.
    """

    profile: RacerProfile
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    tail: Tuple[Point, ...] = ()
    finished: bool = False
    final_x: float = 0.0
    final_y: float = 0.0

    @property
    def racer_id(self) -> int:
        return self.profile.racer_id


@dataclass
class RaceSession:
    """Aggregate root for one race. Only one session is live at a time."""

    width: float
    height: float
    difficulty: int
    phase: Phase = Phase.SETUP
    racers: Dict[int, RacerState] = field(default_factory=dict)
    dust: Tuple[DustParticle, ...] = ()
    rankings: List[int] = field(default_factory=list)
    bet: Optional[int] = None
    rng: random.Random = field(default_factory=random.Random, repr=False)
    session_id: int = field(default_factory=lambda: next(_SESSION_IDS))
    frame: int = 0
    elapsed: float = 0.0
    outcome: Optional["Outcome"] = None
