"""
Async frame driver: one simulate-then-render step per frame, with the
perturbation chains interleaving on the same event loop.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Tuple

import numpy as np

from micro_derby.config import DEFAULT_DIFFICULTY, FRAME_RATE, MAX_FRAMES, PERTURBATION_DELAY_MS
from micro_derby.engine import PerturbationScheduler, RaceLoop, RaceSession, RenderPipeline
from micro_derby.engine.data_models import Phase
from micro_derby.penalty_notifier import PenaltyNotifier
from micro_derby.results import Outcome, ResultEvaluator, format_finish_order

FrameSink = Callable[[RaceSession, Optional[np.ndarray]], None]


class RaceEngine:
    def __init__(
        self,
        width: float,
        height: float,
        difficulty: int = DEFAULT_DIFFICULTY,
        rng_seed: Optional[int] = None,
        notifier: Optional[PenaltyNotifier] = None,
        renderer: Optional[RenderPipeline] = None,
        frame_rate: float = FRAME_RATE,
        perturbation_delay_ms: Tuple[float, float] = PERTURBATION_DELAY_MS,
        render: bool = True,
        verbose: bool = True,
    ):
        if frame_rate <= 0:
            raise ValueError(f"Frame rate must be positive, got {frame_rate}")
        self.frame_interval = 1.0 / frame_rate
        self.verbose = verbose
        self.race_loop = RaceLoop(width, height, difficulty=difficulty, rng_seed=rng_seed)
        if self.race_loop.difficulty != difficulty:
            self._log(f"Difficulty {difficulty} is out of range; racing with {self.race_loop.difficulty}.")
        self.scheduler = PerturbationScheduler(
            delay_range_ms=perturbation_delay_ms,
            live_session=lambda: self.race_loop.session,
        )
        self.evaluator = ResultEvaluator(notifier)
        self.renderer = renderer if renderer is not None else (RenderPipeline() if render else None)
        self.last_frame: Optional[np.ndarray] = None
        self._closed = False

    @property
    def session(self) -> RaceSession:
        return self.race_loop.session

    @property
    def status_text(self) -> str:
        return self.evaluator.status_text

    def _log(self, message: str) -> None:
        if self.verbose:
            print(f"[RaceEngine] {message}")

    def set_difficulty(self, value: float) -> int:
        return self.race_loop.set_difficulty(value)

    def resize(self, width: float, height: float) -> bool:
        reseeded = self.race_loop.resize(width, height)
        if reseeded:
            self.draw()
        return reseeded

    def draw(self) -> Optional[np.ndarray]:
        if self.renderer is None:
            return None
        self.last_frame = self.renderer.draw(self.session)
        return self.last_frame

    def frame(self) -> Optional[np.ndarray]:
        """One unified step: simulate, apply due kicks, render, settle if done."""
        result = self.race_loop.tick(self.frame_interval)
        self.scheduler.advance(self.session)
        pixels = self.draw()
        if result.phase_changed:
            self.scheduler.cancel_all()
            self._log(f"Race finished after {self.session.frame} frames. Rankings: {self.session.rankings}")
            self.evaluator.settle(self.session)
        return pixels

    async def run_race(
        self,
        bet: int,
        on_frame: Optional[FrameSink] = None,
        max_frames: int = MAX_FRAMES,
        realtime: bool = True,
    ) -> Optional[Outcome]:
        """Starts a race on `bet` and drives it until FINISHED or max_frames."""
        if self._closed:
            raise RuntimeError("RaceEngine has been shut down")

        self.scheduler.cancel_all()
        self.evaluator.reset()
        session = self.race_loop.start_race(bet)
        self._log(
            f"Race {session.session_id} started: bet={bet} difficulty={session.difficulty} "
            f"viewport={int(session.width)}x{int(session.height)}"
        )
        if realtime:
            self.scheduler.start(session)
        else:
            # kicks follow session.elapsed instead of wall-clock sleeps
            self.scheduler.start_simulated(session)

        try:
            frames = 0
            while session.phase is Phase.RACING and frames < max_frames:
                pixels = self.frame()
                frames += 1
                if on_frame:
                    on_frame(session, pixels)
                # yield to the perturbation chains between frames
                await asyncio.sleep(self.frame_interval if realtime else 0)
        finally:
            self.scheduler.cancel_all()

        if session.phase is not Phase.FINISHED:
            self._log(f"Race {session.session_id} stopped after {max_frames} frames without finishing.")
            return None

        if self.verbose:
            for line in format_finish_order(session.rankings, session.bet):
                print(f"  {line}")
        return session.outcome

    def restart(self) -> RaceSession:
        if self._closed:
            raise RuntimeError("RaceEngine has been shut down")
        self.scheduler.cancel_all()
        self.evaluator.reset()
        session = self.race_loop.restart()
        self.draw()
        return session

    async def shutdown(self) -> None:
        self._closed = True
        await self.scheduler.shutdown()
        await self.evaluator.notifier.drain()
        if self.renderer is not None:
            self.renderer.close()
