"""
Independent, self-rescheduling velocity kicks for every racer.

Each racer gets its own asyncio task that sleeps for a random delay, then
replaces the racer's velocity with a fresh spawn-range draw. The chain stops
when the racer finishes, the phase leaves RACING, or the session it was
started for is no longer the live one.

Unpaced runs use the same chains on the session's simulated clock: each
racer keeps a deadline in `session.elapsed` and `advance` fires the ones
that are due.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import replace
from typing import Callable, Dict, Optional, Tuple

from micro_derby.config import PERTURBATION_DELAY_MS

from .data_models import Phase, RaceSession
from .factory import random_velocity


def apply_perturbation(session: RaceSession, racer_id: int, rng: Optional[random.Random] = None) -> bool:
    """Re-randomises one racer's velocity. Returns False when nothing changed."""
    if session.phase is not Phase.RACING:
        return False
    state = session.racers.get(racer_id)
    if state is None or state.finished:
        return False
    vx, vy = random_velocity(rng or session.rng)
    session.racers[racer_id] = replace(state, vx=vx, vy=vy)
    return True


class PerturbationScheduler:
    """Runs one perturbation chain per racer, bound to a single session."""

    def __init__(
        self,
        delay_range_ms: Tuple[float, float] = PERTURBATION_DELAY_MS,
        live_session: Optional[Callable[[], Optional[RaceSession]]] = None,
    ) -> None:
        low, high = delay_range_ms
        if low < 0 or high <= 0 or high < low:
            raise ValueError(f"Invalid perturbation delay range: {delay_range_ms}")
        self.delay_range_ms = (float(low), float(high))
        self._live_session = live_session
        self._session: Optional[RaceSession] = None
        self._token: Optional[int] = None
        self._tasks: Dict[int, asyncio.Task] = {}
        self._deadlines: Dict[int, float] = {}
        self.fired = 0

    @property
    def active(self) -> bool:
        return bool(self._deadlines) or any(not task.done() for task in self._tasks.values())

    @property
    def task_count(self) -> int:
        return len(self._deadlines) + sum(1 for task in self._tasks.values() if not task.done())

    def next_delay(self, rng: random.Random) -> float:
        """Seconds until the next kick, uniform in [low, high) milliseconds."""
        low, high = self.delay_range_ms
        return (low + rng.random() * (high - low)) / 1000.0

    def start(self, session: RaceSession) -> None:
        """Cancels any previous chains and starts one per racer of `session`.

        Must be called from inside a running event loop.
        """
        self.cancel_all()
        self._session = session
        self._token = session.session_id
        loop = asyncio.get_running_loop()
        for racer_id in session.racers:
            self._tasks[racer_id] = loop.create_task(
                self._chain(session, session.session_id, racer_id),
                name=f"perturb-{session.session_id}-{racer_id}",
            )

    def start_simulated(self, session: RaceSession) -> None:
        """Starts one chain per racer on the session's simulated clock.

        Nothing fires on its own; the frame driver calls `advance` after
        every tick.
        """
        self.cancel_all()
        self._session = session
        self._token = session.session_id
        self._deadlines = {
            racer_id: session.elapsed + self.next_delay(session.rng) for racer_id in session.racers
        }

    def advance(self, session: RaceSession) -> int:
        """Fires every simulated chain whose deadline has passed. Returns the kicks applied."""
        token = self._token
        kicks = 0
        for racer_id, deadline in list(self._deadlines.items()):
            while deadline <= session.elapsed:
                if not self._is_live(session, token, racer_id):
                    del self._deadlines[racer_id]
                    break
                if apply_perturbation(session, racer_id):
                    kicks += 1
                deadline += self.next_delay(session.rng)
            else:
                self._deadlines[racer_id] = deadline
        self.fired += kicks
        return kicks

    def cancel_all(self) -> None:
        """Invalidates the session token and cancels every outstanding chain."""
        self._token = None
        self._session = None
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()
        self._deadlines.clear()

    async def shutdown(self) -> None:
        tasks = [task for task in self._tasks.values() if not task.done()]
        self.cancel_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _is_live(self, session: RaceSession, token: int, racer_id: int) -> bool:
        if self._token != token or self._session is not session:
            return False
        if self._live_session is not None and self._live_session() is not session:
            return False
        if session.phase is not Phase.RACING:
            return False
        state = session.racers.get(racer_id)
        return state is not None and not state.finished

    async def _chain(self, session: RaceSession, token: int, racer_id: int) -> None:
        while True:
            await asyncio.sleep(self.next_delay(session.rng))
            if not self._is_live(session, token, racer_id):
                return
            if apply_perturbation(session, racer_id):
                self.fired += 1
            if not self._is_live(session, token, racer_id):
                return
