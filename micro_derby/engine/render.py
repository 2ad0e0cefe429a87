"""
Draws a race session onto an off-screen Agg canvas.

The pipeline only reads session state. Every call returns a fresh
(height, width, 4) uint8 RGBA array in viewport pixel coordinates, y down.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.collections import LineCollection
from matplotlib.colors import to_rgba
from matplotlib.figure import Figure
from matplotlib.patches import Ellipse, Rectangle, Wedge

from micro_derby.config import RENDER_DPI, SHOW_OUTLINES

from .constants import (
    FINISHED_TRAIL_OPACITY,
    GOAL_EDGE,
    GOAL_EDGE_WIDTH_PX,
    GOAL_FILL,
    OUTLINE_OPACITY,
    OUTLINE_SIZE,
    RACER_HEIGHT,
    RACER_WIDTH,
    TAIL_LENGTH,
    TRACK_COLOR,
    TRAIL_MAX_OPACITY,
    UNFINISHED_MARKER_SCALE,
)
from .data_models import DustParticle, Phase, RaceSession, RacerState
from .geometry import goal_radius, heading_degrees

RGBA = Tuple[float, float, float, float]


def trail_opacities(state: RacerState) -> List[float]:
    """Opacity per tail point: older points fade, finished trails stay dim."""
    if state.finished:
        return [FINISHED_TRAIL_OPACITY] * len(state.tail)
    return [(idx / TAIL_LENGTH) * TRAIL_MAX_OPACITY for idx in range(len(state.tail))]


def marker_geometry(state: RacerState) -> Tuple[float, float, float]:
    """(width, height, angle in degrees) of the racer's oval marker."""
    if state.finished:
        half_w, half_h = RACER_WIDTH, RACER_HEIGHT
    else:
        half_w = RACER_WIDTH / UNFINISHED_MARKER_SCALE
        half_h = RACER_HEIGHT / UNFINISHED_MARKER_SCALE
    return 2.0 * half_w, 2.0 * half_h, heading_degrees(state.vx, state.vy)


def marker_color(state: RacerState) -> str:
    return state.profile.color if state.finished else "#ffffff"


class RenderPipeline:
    """Renders sessions to RGBA frames.

    The figure is reused between frames and resized when the viewport changes;
    the session passed in is never written to.
    """

    def __init__(self, dpi: int = RENDER_DPI, show_outlines: bool = SHOW_OUTLINES) -> None:
        self.dpi = dpi
        self.show_outlines = show_outlines
        self._figure = Figure(dpi=dpi, facecolor=TRACK_COLOR)
        self._canvas = FigureCanvasAgg(self._figure)
        self._axes = self._figure.add_axes((0.0, 0.0, 1.0, 1.0))
        self._size: Optional[Tuple[int, int]] = None

    def _px_to_points(self, pixels: float) -> float:
        return pixels * 72.0 / self.dpi

    def _prepare(self, width: float, height: float) -> None:
        size = (max(1, int(round(width))), max(1, int(round(height))))
        if size != self._size:
            self._figure.set_size_inches(size[0] / self.dpi, size[1] / self.dpi)
            self._size = size

        ax = self._axes
        ax.clear()
        ax.set_facecolor(TRACK_COLOR)
        ax.set_xlim(0.0, width)
        ax.set_ylim(height, 0.0)
        ax.set_axis_off()
        ax.set_autoscale_on(False)

    def _draw_dust(self, dust: Sequence[DustParticle]) -> None:
        if not dust:
            return
        xs = [d.x for d in dust]
        ys = [d.y for d in dust]
        # scatter sizes are marker areas in points^2; dust size is a radius in px
        sizes = [(2.0 * self._px_to_points(d.size)) ** 2 for d in dust]
        colors = [(1.0, 1.0, 1.0, d.opacity) for d in dust]
        self._axes.scatter(xs, ys, s=sizes, c=colors, linewidths=0, zorder=1)

    def _draw_goal(self, width: float, height: float) -> None:
        radius = goal_radius(width, height)
        # y grows downward, so 90..180 degrees sweeps from the top edge to the right edge
        self._axes.add_patch(
            Wedge(
                (width, 0.0),
                radius,
                90.0,
                180.0,
                facecolor=GOAL_FILL,
                edgecolor=GOAL_EDGE,
                linewidth=self._px_to_points(GOAL_EDGE_WIDTH_PX),
                zorder=2,
            )
        )

    def _draw_trail(self, state: RacerState) -> None:
        if len(state.tail) < 2:
            return
        points = state.tail
        opacities = trail_opacities(state)
        segments = [(points[idx - 1], points[idx]) for idx in range(1, len(points))]
        colors = [(1.0, 1.0, 1.0, opacities[idx]) for idx in range(1, len(points))]
        self._axes.add_collection(LineCollection(segments, colors=colors, linewidths=self._px_to_points(1.0), zorder=3))

    def _draw_marker(self, state: RacerState) -> None:
        width, height, angle = marker_geometry(state)
        self._axes.add_patch(
            Ellipse(
                (state.x, state.y),
                width,
                height,
                angle=angle,
                facecolor=marker_color(state),
                edgecolor="none",
                zorder=4,
            )
        )

    def _draw_outline(self, state: RacerState) -> None:
        half = OUTLINE_SIZE / 2.0
        self._axes.add_patch(
            Rectangle(
                (state.x - half, state.y - half),
                OUTLINE_SIZE,
                OUTLINE_SIZE,
                facecolor="none",
                edgecolor=to_rgba(state.profile.color, OUTLINE_OPACITY),
                linewidth=self._px_to_points(2.0),
                zorder=5,
            )
        )

    def draw(self, session: RaceSession, dust: Optional[Iterable[DustParticle]] = None) -> np.ndarray:
        """Renders the session (and its dust unless `dust` is given) to RGBA pixels."""
        width, height = session.width, session.height
        self._prepare(width, height)
        self._draw_dust(tuple(dust) if dust is not None else session.dust)
        self._draw_goal(width, height)

        racers = tuple(session.racers.values())
        for state in racers:
            self._draw_trail(state)
        for state in racers:
            self._draw_marker(state)
        if self.show_outlines and session.phase is Phase.RACING:
            for state in racers:
                if not state.finished:
                    self._draw_outline(state)

        self._canvas.draw()
        return np.asarray(self._canvas.buffer_rgba()).copy()

    def close(self) -> None:
        self._figure.clear()
