"""Numeric constants shared by the physics, spawn and render code."""

RACER_COUNT = 8
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = RACER_COUNT

# Bounded trail history per racer.
TAIL_LENGTH = 20

# Spawn zone as fractions of the viewport: bottom-left corner.
SPAWN_X_FRACTION = 0.10
SPAWN_Y_FRACTION = 0.90

# Spawn and perturbation velocity ranges (pixels per frame).
VX_RANGE = (0.3, 0.8)
VY_RANGE = (-0.8, -0.3)

# --- Per-frame physics ---
GOAL_RADIUS_FACTOR = 0.15
ATTRACTION = 0.02
JITTER_SPAN = 0.3
DRAG = 0.998
RESTITUTION = 0.8
GOAL_EPSILON = 1e-9

# --- Rendering ---
TRACK_COLOR = '#1a1a1a'
RACER_WIDTH = 4.0
RACER_HEIGHT = 2.0
UNFINISHED_MARKER_SCALE = 1.5
TRAIL_MAX_OPACITY = 0.4
FINISHED_TRAIL_OPACITY = 0.1
OUTLINE_SIZE = 24.0
OUTLINE_OPACITY = 0.8
GOAL_FILL = (1.0, 1.0, 1.0, 0.05)
GOAL_EDGE = (1.0, 1.0, 1.0, 0.2)
GOAL_EDGE_WIDTH_PX = 2.0
DUST_MAX_SIZE = 2.0
DUST_MAX_OPACITY = 0.2
