from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from micro_derby.config import DEFAULT_DIFFICULTY, FRAME_RATE, MAX_FRAMES

from .constants import MAX_DIFFICULTY, MIN_DIFFICULTY
from .data_models import Phase, RaceSession, RacerState
from .factory import generate_dust, spawn_racers
from .perturbation import PerturbationScheduler
from .physics import PhysicsKernel
from .roster import is_valid_racer_id

Viewport = Tuple[float, float]


@dataclass
class TickResult:
    session: RaceSession
    new_finishers: List[int]
    phase_changed: bool


def clamp_difficulty(value: float) -> int:
    return int(np.clip(int(round(value)), MIN_DIFFICULTY, MAX_DIFFICULTY))


def _validate_difficulty(difficulty: object) -> int:
    if isinstance(difficulty, bool) or not isinstance(difficulty, (int, np.integer)):
        raise ValueError(f"Difficulty must be an integer, got {difficulty!r}")
    if not MIN_DIFFICULTY <= int(difficulty) <= MAX_DIFFICULTY:
        raise ValueError(
            f"Difficulty must be within [{MIN_DIFFICULTY}, {MAX_DIFFICULTY}], got {difficulty}"
        )
    return int(difficulty)


def _validate_viewport(viewport: Viewport) -> Viewport:
    width, height = viewport
    if width <= 0 or height <= 0:
        raise ValueError(f"Viewport must be positive, got {width}x{height}")
    return float(width), float(height)


def _new_rng(seed: Optional[int]) -> random.Random:
    return random.Random(seed)


def setup_session(
    viewport: Viewport,
    difficulty: int = DEFAULT_DIFFICULTY,
    rng_seed: Optional[int] = None,
) -> RaceSession:
    """A fresh SETUP session with preview racers and dust for the viewport."""
    width, height = _validate_viewport(viewport)
    rng = _new_rng(rng_seed)
    return RaceSession(
        width=width,
        height=height,
        difficulty=clamp_difficulty(difficulty),
        phase=Phase.SETUP,
        racers=spawn_racers(width, height, rng),
        dust=generate_dust(width, height, rng),
        rng=rng,
    )


def start_race(
    selected_id: int,
    viewport: Viewport,
    difficulty: int = DEFAULT_DIFFICULTY,
    rng_seed: Optional[int] = None,
) -> RaceSession:
    """Validates the bet and difficulty, then returns a new RACING session."""
    if not is_valid_racer_id(selected_id):
        raise ValueError(f"Unknown racer id: {selected_id!r}")
    difficulty = _validate_difficulty(difficulty)
    width, height = _validate_viewport(viewport)

    rng = _new_rng(rng_seed)
    return RaceSession(
        width=width,
        height=height,
        difficulty=difficulty,
        phase=Phase.RACING,
        racers=spawn_racers(width, height, rng),
        dust=generate_dust(width, height, rng),
        bet=selected_id,
        rng=rng,
    )


def tick(session: RaceSession, dt: float = 0.0, physics: Optional[PhysicsKernel] = None) -> TickResult:
    """Advance every unfinished racer by one frame.

    All racers are stepped from the snapshot taken at the start of the tick
    and the collection is swapped in one assignment. Racers finishing in the
    same tick are ranked in collection order, up to the difficulty cutoff.
    """
    if session.phase is not Phase.RACING:
        return TickResult(session=session, new_finishers=[], phase_changed=False)

    physics = physics or PhysicsKernel(session.width, session.height)
    snapshot: Dict[int, RacerState] = session.racers
    rng = session.rng

    next_racers = {racer_id: physics.step(state, rng) for racer_id, state in snapshot.items()}

    new_finishers: List[int] = []
    for racer_id, state in next_racers.items():
        if len(session.rankings) >= session.difficulty:
            break
        if state.finished and not snapshot[racer_id].finished and racer_id not in session.rankings:
            session.rankings.append(racer_id)
            new_finishers.append(racer_id)

    session.racers = next_racers
    session.frame += 1
    session.elapsed += dt

    phase_changed = False
    if len(session.rankings) >= session.difficulty:
        session.phase = Phase.FINISHED
        phase_changed = True

    return TickResult(session=session, new_finishers=new_finishers, phase_changed=phase_changed)


class RaceLoop:
    """Owns the single live session and its phase transitions."""

    def __init__(
        self,
        width: float,
        height: float,
        difficulty: int = DEFAULT_DIFFICULTY,
        rng_seed: Optional[int] = None,
        on_finished: Optional[Callable[[RaceSession], None]] = None,
    ) -> None:
        self._viewport = _validate_viewport((width, height))
        self._difficulty = clamp_difficulty(difficulty)
        self._rng_seed = rng_seed
        self._on_finished = on_finished
        self._physics = PhysicsKernel(*self._viewport)
        self._session = setup_session(self._viewport, self._difficulty, rng_seed)

    @property
    def session(self) -> RaceSession:
        return self._session

    @property
    def phase(self) -> Phase:
        return self._session.phase

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def difficulty(self) -> int:
        return self._difficulty

    def set_difficulty(self, value: float) -> int:
        """Slider-style setter: clamps into range. Only honoured during SETUP."""
        if self._session.phase is not Phase.SETUP:
            return self._difficulty
        self._difficulty = clamp_difficulty(value)
        self._session.difficulty = self._difficulty
        return self._difficulty

    def resize(self, width: float, height: float) -> bool:
        """Records the new viewport; re-seeds the preview only while in SETUP."""
        self._viewport = _validate_viewport((width, height))
        if self._session.phase is not Phase.SETUP:
            return False
        self._session = setup_session(self._viewport, self._difficulty, self._rng_seed)
        return True

    def start_race(self, selected_id: int, viewport: Optional[Viewport] = None) -> RaceSession:
        viewport = viewport or self._viewport
        session = start_race(selected_id, viewport, self._difficulty, self._rng_seed)
        self._viewport = (session.width, session.height)
        self._physics = PhysicsKernel(session.width, session.height)
        self._session = session
        return session

    def tick(self, dt: float = 0.0) -> TickResult:
        result = tick(self._session, dt, self._physics)
        if result.phase_changed and self._on_finished is not None:
            self._on_finished(self._session)
        return result

    def restart(self) -> RaceSession:
        self._session = setup_session(self._viewport, self._difficulty, self._rng_seed)
        return self._session

    def run_until_finished(
        self,
        on_tick: Optional[Callable[[TickResult], None]] = None,
        max_ticks: int = MAX_FRAMES,
        dt: float = 1.0 / FRAME_RATE,
        perturbation: Optional[PerturbationScheduler] = None,
    ) -> int:
        """Ticks until FINISHED or max_ticks. Returns the number of ticks taken.

        With a scheduler, velocity kicks run on the simulated clock and fire
        between ticks once their deadline in `session.elapsed` has passed.
        """
        session = self._session
        if perturbation is not None:
            perturbation.start_simulated(session)
        ticks = 0
        try:
            while session.phase is Phase.RACING and ticks < max_ticks:
                result = self.tick(dt)
                ticks += 1
                if perturbation is not None:
                    perturbation.advance(session)
                if on_tick:
                    on_tick(result)
        finally:
            if perturbation is not None:
                perturbation.cancel_all()
        return ticks
