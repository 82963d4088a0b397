"""
Scene and chart rendering for the induction simulation.

``Demo`` draws the coil and the magnet inside its viewport, converts mouse
drags into position intents for the ``Simulation`` and renders the EMF and
flux history as step charts.  It never computes physics itself; everything
shown comes from ``Simulation.state``, ``Simulation.data`` and
``Simulation.history``.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np
import pygame

from simulation import (
    HistoryPoint,
    Simulation,
    SourceType,
    X_LIMITS,
    Y_LIMITS,
    effective_field_strength,
    field_at,
)
from ui_base import get_font

# Magnet bar size in simulation millimetres.
MAGNET_LENGTH = 60.0
MAGNET_HEIGHT = 22.0
# Axial extent of the drawn coil.
COIL_LENGTH = 46.0
COIL_RING_RADIUS = 32.0
# Depth squash for the perspective of the coil rings.
RING_PERSPECTIVE = 0.32
MAX_DRAWN_RINGS = 24

NORTH_COLOR = (220, 60, 70)
SOUTH_COLOR = (60, 110, 235)
WIRE_COLOR = (196, 132, 62)
CURRENT_COLOR = (80, 230, 130)
AC_SOURCE_COLOR = (245, 170, 60)

# Samples used for the field-coupling curve under the scene.
FIELD_PROFILE_SAMPLES = 160

# History chart visuals
GRAPH_DEFAULT_GRID_LINES = 4
GRAPH_GRID_COLOR = (222, 227, 242)
GRAPH_MIN_HALF_RANGE = 0.05
GRAPH_PADDING_FRACTION = 0.15

SCENE_PARAM_KEYS = frozenset({'field_strength', 'turns', 'ac_frequency'})


class Demo:
    def __init__(self, app, simulation: Simulation, position, demo_size, graph_config: Optional[dict] = None):
        """
        Initialize the scene renderer.

        Parameters
        ----------
        app : App
            Parent application holding the pygame screen.
        simulation : Simulation
            Simulation providing state, telemetry and history.
        position : tuple
            (x, y) of the top-left corner of the scene viewport.
        demo_size : tuple
            (width, height) of the viewport in pixels.
        graph_config : dict, optional
            ``graph`` section of the config (grid lines, colours, range).
        """
        self.app = app
        self.screen = app.screen
        self.simulation = simulation
        self.main = pygame.Rect(*position, *demo_size)
        self.dragging = False
        self._drag_offset = (0.0, 0.0)
        self.hovering_magnet = False
        self.params: dict = {}
        self._sync_params_from_state()
        self._configure_graphs(graph_config or {})

    def _configure_graphs(self, graph_cfg: dict) -> None:
        grid_lines_value = graph_cfg.get('grid_lines', GRAPH_DEFAULT_GRID_LINES)
        try:
            grid_lines = int(grid_lines_value)
        except (TypeError, ValueError):
            grid_lines = GRAPH_DEFAULT_GRID_LINES
        self.graph_grid_lines: int = max(2, grid_lines)
        self.graph_grid_color = _color_or(graph_cfg.get('grid_color'), GRAPH_GRID_COLOR)
        self.emf_color = _color_or(graph_cfg.get('emf_color'), CURRENT_COLOR)
        self.flux_color = _color_or(graph_cfg.get('flux_color'), (72, 104, 255))
        try:
            half_range = abs(float(graph_cfg.get('min_half_range', GRAPH_MIN_HALF_RANGE)))
        except (TypeError, ValueError):
            half_range = GRAPH_MIN_HALF_RANGE
        if not math.isfinite(half_range) or half_range <= 0.0:
            half_range = GRAPH_MIN_HALF_RANGE
        self.graph_min_half_range: float = half_range

    def resize_viewport(self, position: tuple[int, int], demo_size: tuple[int, int]) -> None:
        self.main = pygame.Rect(*position, *demo_size)

    # ------------------------------------------------------------ Coordinates
    def _scale(self) -> float:
        """Pixels per simulation millimetre (uniform in both axes)."""
        sx = self.main.width / (X_LIMITS[1] - X_LIMITS[0] + MAGNET_LENGTH)
        sy = self.main.height / (Y_LIMITS[1] - Y_LIMITS[0] + 2 * COIL_RING_RADIUS)
        return max(0.1, min(sx, sy))

    def to_screen(self, x: float, y: float) -> tuple[int, int]:
        scale = self._scale()
        cx, cy = self.main.center
        return int(round(cx + x * scale)), int(round(cy - y * scale))

    def to_simulation(self, point: tuple[int, int]) -> tuple[float, float]:
        scale = self._scale()
        cx, cy = self.main.center
        return (point[0] - cx) / scale, (cy - point[1]) / scale

    def magnet_rect(self) -> pygame.Rect:
        state = self.simulation.state
        scale = self._scale()
        width = int(MAGNET_LENGTH * scale)
        height = int(MAGNET_HEIGHT * scale)
        rect = pygame.Rect(0, 0, width, height)
        rect.center = self.to_screen(state.magnet_x, state.magnet_y)
        return rect

    # ------------------------------------------------------------ Interaction
    def handle_mouse_down(self, point: tuple[int, int]) -> bool:
        """Start dragging when the magnet is clicked; return True if consumed."""
        if not self.magnet_rect().inflate(12, 12).collidepoint(point):
            return False
        state = self.simulation.state
        mx, my = self.to_simulation(point)
        self._drag_offset = (state.magnet_x - mx, state.magnet_y - my)
        self.dragging = True
        return True

    def handle_mouse_motion(self, point: tuple[int, int]) -> None:
        self.hovering_magnet = self.magnet_rect().collidepoint(point)
        if not self.dragging:
            return
        mx, my = self.to_simulation(point)
        self.simulation.set_position(mx + self._drag_offset[0], my + self._drag_offset[1])

    def handle_mouse_up(self) -> None:
        self.dragging = False

    # ------------------------------------------------------------ Parameters
    def _sync_params_from_state(self) -> None:
        state = self.simulation.state
        self.params = {
            'field_strength': state.field_strength,
            'turns': state.turns,
            'ac_frequency': state.ac_frequency,
        }

    @staticmethod
    def _values_differ(old_val, new_val) -> bool:
        try:
            return abs(float(new_val) - float(old_val)) > 1e-6
        except (TypeError, ValueError):
            return new_val != old_val

    def apply_slider_params(self, slider_params: dict) -> bool:
        """Submit slider changes to the simulation; return True if any changed."""
        changes = {}
        for key, new_val in slider_params.items():
            if key not in SCENE_PARAM_KEYS:
                continue
            if not self._values_differ(self.params.get(key), new_val):
                continue
            changes[key] = new_val
            self.params[key] = new_val
        if changes:
            self.simulation.update(changes)
        return bool(changes)

    # ------------------------------------------------------------ Drawing
    def draw_check(self, palette: dict) -> None:
        """Draw the scene for the current (already ticked) simulation state."""
        state = self.simulation.state
        data = self.simulation.data
        clip = self.screen.get_clip()
        self.screen.set_clip(self.main)

        self._draw_field_profile(palette)
        self._draw_coil(back=True)
        if state.source_type == SourceType.AC_COIL:
            self._draw_ac_source()
        else:
            self._draw_magnet()
        self._draw_coil(back=False)
        if data.current_direction != 0:
            self._draw_current_arrows(data.current_direction, data.emf)

        self.screen.set_clip(clip)

    def _coil_ring_count(self) -> int:
        return max(1, min(MAX_DRAWN_RINGS, int(self.simulation.state.turns)))

    def _ring_rects(self) -> list[pygame.Rect]:
        scale = self._scale()
        count = self._coil_ring_count()
        ring_h = int(2 * COIL_RING_RADIUS * scale)
        ring_w = max(6, int(ring_h * RING_PERSPECTIVE))
        xs = np.linspace(-COIL_LENGTH / 2, COIL_LENGTH / 2, count) if count > 1 else np.zeros(1)
        rects = []
        for x in xs:
            rect = pygame.Rect(0, 0, ring_w, ring_h)
            rect.center = self.to_screen(float(x), 0.0)
            rects.append(rect)
        return rects

    def _wire_color(self) -> tuple[int, int, int]:
        data = self.simulation.data
        if data.current_direction == 0:
            return WIRE_COLOR
        glow = min(1.0, abs(data.emf) / 2.0)
        return tuple(int(WIRE_COLOR[i] + (CURRENT_COLOR[i] - WIRE_COLOR[i]) * glow) for i in range(3))

    def _draw_coil(self, back: bool) -> None:
        color = self._wire_color()
        if back:
            color = tuple(int(c * 0.55) for c in color)
            start, stop = math.pi / 2, 3 * math.pi / 2
        else:
            start, stop = -math.pi / 2, math.pi / 2
        for rect in self._ring_rects():
            pygame.draw.arc(self.screen, color, rect, start, stop, 3)

    def _draw_magnet(self) -> None:
        state = self.simulation.state
        rect = self.magnet_rect()
        half = rect.copy()
        half.width = rect.width // 2
        # The north pole faces the coil unless the magnet is reversed.
        left_color, right_color = (SOUTH_COLOR, NORTH_COLOR)
        if state.is_reversed:
            left_color, right_color = right_color, left_color
        pygame.draw.rect(self.screen, left_color, half, border_top_left_radius=6, border_bottom_left_radius=6)
        right = half.copy()
        right.left = half.right
        right.width = rect.width - half.width
        pygame.draw.rect(self.screen, right_color, right, border_top_right_radius=6, border_bottom_right_radius=6)
        outline = (255, 255, 255) if self.hovering_magnet or self.dragging else (30, 30, 40)
        pygame.draw.rect(self.screen, outline, rect, width=2, border_radius=6)
        font = get_font(max(14, rect.height), bold=True)
        for area, color in ((half, left_color), (right, right_color)):
            text = font.render('N' if color == NORTH_COLOR else 'S', True, (255, 255, 255))
            self.screen.blit(text, text.get_rect(center=area.center))

    def _draw_ac_source(self) -> None:
        state = self.simulation.state
        omega = 2.0 * math.pi * state.ac_frequency
        level = math.sin(omega * state.current_time)
        rect = self.magnet_rect()
        base = tuple(int(c * (0.45 + 0.55 * abs(level))) for c in AC_SOURCE_COLOR)
        pygame.draw.rect(self.screen, (40, 36, 30), rect, border_radius=6)
        windings = 7
        for i in range(windings):
            x = rect.left + int((i + 0.5) * rect.width / windings)
            pygame.draw.line(self.screen, base, (x, rect.top - 3), (x, rect.bottom + 3), 3)
        pygame.draw.rect(self.screen, base, rect, width=2, border_radius=6)

    def _draw_current_arrows(self, direction: int, emf: float) -> None:
        rects = self._ring_rects()
        if not rects:
            return
        front = rects[len(rects) // 2]
        size = max(6, int(6 + min(10.0, abs(emf) * 4)))
        # Positive EMF is drawn as clockwise flow seen from the magnet side.
        top_y, bottom_y = front.top, front.bottom
        sign = 1 if direction > 0 else -1
        for y, flow in ((top_y, sign), (bottom_y, -sign)):
            x = front.centerx
            tip = (x + flow * size, y)
            tail_top = (x - flow * size, y - size // 2)
            tail_bottom = (x - flow * size, y + size // 2)
            pygame.draw.polygon(self.screen, CURRENT_COLOR, (tip, tail_top, tail_bottom))

    def field_profile(self, samples: int = FIELD_PROFILE_SAMPLES) -> tuple[np.ndarray, np.ndarray]:
        """Return magnet positions and the field they would produce at the coil."""
        state = self.simulation.state
        xs = np.linspace(X_LIMITS[0], X_LIMITS[1], samples)
        b0 = effective_field_strength(state.field_strength, state.is_reversed)
        return xs, field_at(xs, state.magnet_y, b0)

    def _draw_field_profile(self, palette: dict) -> None:
        xs, values = self.field_profile()
        state = self.simulation.state
        peak = max(abs(state.field_strength), 1e-9)
        baseline_y = self.main.bottom - 18
        amplitude = self.main.height * 0.18
        points = []
        for x, value in zip(xs, values):
            sx, _ = self.to_screen(float(x), 0.0)
            points.append((sx, int(baseline_y - amplitude * float(value) / peak)))
        pygame.draw.line(self.screen, palette['grid'], (self.main.left, baseline_y), (self.main.right, baseline_y), 1)
        if len(points) >= 2:
            pygame.draw.lines(self.screen, palette['muted'], False, points, 2)
        marker_x, _ = self.to_screen(state.magnet_x, 0.0)
        b0 = effective_field_strength(state.field_strength, state.is_reversed)
        marker_value = field_at(state.magnet_x, state.magnet_y, b0)
        marker_y = int(baseline_y - amplitude * marker_value / peak)
        pygame.draw.circle(self.screen, palette['accent'], (marker_x, marker_y), 5)

    # ------------------------------------------------------------ Charts
    def _compute_graph_limits(self, values: Sequence[float]) -> tuple[float, float]:
        """Return symmetric axis limits that keep the recent signal visible."""
        peak = max((abs(v) for v in values), default=0.0)
        half_range = max(self.graph_min_half_range, peak * (1.0 + GRAPH_PADDING_FRACTION))
        return -half_range, half_range

    def draw_history_graph(
        self,
        target_surface: pygame.Surface,
        rect: pygame.Rect,
        samples: Optional[Sequence[HistoryPoint]] = None,
        series: str = 'emf',
        line_color: Optional[tuple[int, int, int]] = None,
        background: Optional[tuple[int, int, int, int]] = (0, 0, 0, 0),
        zero_color: tuple[int, int, int] = (0, 0, 0),
        highlight_bounds: bool = True,
        highlight_color: tuple[int, int, int] = (192, 80, 80),
    ) -> Optional[tuple[float, float]]:
        """
        Render a step-style chart of one history series.

        The chart is drawn onto ``target_surface`` inside ``rect``.

        Returns
        -------
        Optional[Tuple[float, float]]
            The ``(min, max)`` values of the vertical axis, or ``None`` when
            there are fewer than two samples.
        """
        data = self.simulation.history.read_all() if samples is None else list(samples)
        rect = pygame.Rect(rect)
        if len(data) < 2 or rect.width <= 1 or rect.height <= 1:
            return None
        if series not in ('emf', 'flux'):
            raise ValueError(f"Unknown history series: {series!r}")
        if line_color is None:
            line_color = self.emf_color if series == 'emf' else self.flux_color

        t0 = data[0].time
        times = [p.time - t0 for p in data]
        values = [float(getattr(p, series)) for p in data]
        t_max = times[-1]
        if not math.isfinite(t_max) or t_max <= 0.0:
            # Timestamps collapsed (e.g. a frozen clock); fall back to sample order.
            times = [float(i) for i in range(len(data))]
            t_max = times[-1]

        axis_min, axis_max = self._compute_graph_limits(values)
        axis_span = axis_max - axis_min

        graph_surface = pygame.Surface((rect.width, rect.height), pygame.SRCALPHA)
        if background is not None:
            graph_surface.fill(background)

        for idx in range(self.graph_grid_lines + 1):
            y = int(round(rect.height * idx / self.graph_grid_lines))
            pygame.draw.line(graph_surface, self.graph_grid_color, (0, y), (rect.width, y), 1)

        def value_to_y(value: float) -> int:
            y_rel = (value - axis_min) / axis_span
            return int(round(rect.height - y_rel * rect.height))

        if highlight_bounds:
            low, high = min(values), max(values)
            pygame.draw.line(graph_surface, highlight_color, (0, value_to_y(low)), (rect.width, value_to_y(low)), 1)
            if high != low:
                pygame.draw.line(graph_surface, highlight_color, (0, value_to_y(high)), (rect.width, value_to_y(high)), 1)

        zero_y = value_to_y(0.0)
        pygame.draw.line(graph_surface, zero_color, (0, zero_y), (rect.width, zero_y), 2)

        def to_point(time_value: float, value: float) -> tuple[int, int]:
            x = time_value / t_max * rect.width
            return int(round(max(0.0, min(rect.width, x)))), max(0, min(rect.height, value_to_y(value)))

        points: list[tuple[int, int]] = [to_point(times[0], values[0])]
        prev_val = values[0]
        for time_value, value in zip(times[1:], values[1:]):
            points.append(to_point(time_value, prev_val))
            points.append(to_point(time_value, value))
            prev_val = value
        pygame.draw.lines(graph_surface, line_color, False, points, 2)

        target_surface.blit(graph_surface, rect.topleft)
        return axis_min, axis_max


def _color_or(value, fallback: tuple[int, int, int]) -> tuple[int, int, int]:
    if isinstance(value, (list, tuple)) and len(value) == 3:
        try:
            return tuple(int(max(0, min(255, c))) for c in value)
        except (TypeError, ValueError):
            return fallback
    return fallback
