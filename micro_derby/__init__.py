"""
Micro Derby - an eight-racer drift race used as the front end of a wagering mini-game.

The engine covers race phases, per-frame physics, per-racer velocity
perturbation, finish ranking, result evaluation and frame rendering.
"""

__version__ = "0.1.0"
