"""
Race engine package for the eight-racer drift derby.

The package is split into data models, the physics kernel, the perturbation
scheduler, the phase state machine and the renderer. The async driver in
``micro_derby.race_engine`` composes these pieces into the frame loop.
"""

from .data_models import DustParticle, Phase, RaceSession, RacerProfile, RacerState  # noqa: F401
from .factory import generate_dust, random_velocity, spawn_racers  # noqa: F401
from .geometry import distance_to_goal, goal_radius, within_goal  # noqa: F401
from .perturbation import PerturbationScheduler, apply_perturbation  # noqa: F401
from .physics import PhysicsKernel  # noqa: F401
from .race_loop import RaceLoop, TickResult, setup_session, start_race, tick  # noqa: F401
from .render import RenderPipeline  # noqa: F401
from .roster import ROSTER, get_profile  # noqa: F401

__all__ = [
    "DustParticle",
    "Phase",
    "RaceSession",
    "RacerProfile",
    "RacerState",
    "generate_dust",
    "random_velocity",
    "spawn_racers",
    "distance_to_goal",
    "goal_radius",
    "within_goal",
    "PerturbationScheduler",
    "apply_perturbation",
    "PhysicsKernel",
    "RaceLoop",
    "TickResult",
    "setup_session",
    "start_race",
    "tick",
    "RenderPipeline",
    "ROSTER",
    "get_profile",
]
