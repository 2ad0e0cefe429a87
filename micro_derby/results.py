from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from micro_derby.engine.data_models import Phase, RaceSession
from micro_derby.engine.roster import get_profile
from micro_derby.penalty_notifier import PenaltyNotifier

PENALTY_FAILED_TEXT = "CONNECTION FAILED to penalty endpoint"


@dataclass(frozen=True)
class Qualified:
    rank: int

    @property
    def status_text(self) -> str:
        return f"SAFE: Finished #{self.rank}. No signal sent."


@dataclass(frozen=True)
class NotQualified:
    @property
    def status_text(self) -> str:
        return "DEFEAT: Did not make the cut. Transmitting penalty... ⚡"


Outcome = Union[Qualified, NotQualified]


def evaluate(rankings: Sequence[int], bet: int) -> Outcome:
    """Qualified with a 1-based rank when the bet made the cut, else NotQualified."""
    rankings = list(rankings)
    if bet in rankings:
        return Qualified(rank=rankings.index(bet) + 1)
    return NotQualified()


class ResultEvaluator:
    """
    Settles a finished session exactly once: computes the outcome, stores it on
    the session, and fires the penalty signal when the bet missed the cut.
    """

    def __init__(self, notifier: Optional[PenaltyNotifier] = None):
        self.notifier = notifier or PenaltyNotifier()
        self.status_text = ""

    def settle(self, session: RaceSession) -> Optional[Outcome]:
        if session.phase is not Phase.FINISHED:
            return None
        if session.outcome is not None:
            return session.outcome
        if session.bet is None:
            raise ValueError("Cannot settle a race without a bet")

        outcome = evaluate(session.rankings, session.bet)
        session.outcome = outcome
        self.status_text = outcome.status_text
        print(f"[ResultEvaluator] {self.status_text}")

        if isinstance(outcome, NotQualified):
            try:
                self.notifier.fire()
            except Exception as err:
                self.status_text = PENALTY_FAILED_TEXT
                print(f"[ResultEvaluator] Penalty dispatch failed: {err}")
        return outcome

    def reset(self) -> None:
        self.status_text = ""


def format_finish_order(rankings: Sequence[int], bet: Optional[int] = None) -> List[str]:
    lines = []
    for idx, racer_id in enumerate(rankings, start=1):
        profile = get_profile(racer_id)
        line = f"{idx}. {profile.emoji} {profile.name}"
        if racer_id == bet:
            line += "  YOU"
        lines.append(line)
    return lines
