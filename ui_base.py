from __future__ import annotations

from typing import Dict, Tuple

import pygame

_FONT_CACHE: Dict[Tuple[int, bool], pygame.font.Font] = {}

# Colour palettes for the two display themes.
DARK_THEME = {
    'background_top': (8, 10, 22),
    'background_bottom': (22, 26, 48),
    'panel': (18, 22, 40),
    'panel_border': (52, 60, 92),
    'text': (232, 236, 248),
    'muted': (138, 146, 170),
    'accent': (99, 102, 241),
    'graph_bg': (12, 14, 28),
    'grid': (44, 50, 78),
    'zero_line': (160, 166, 190),
}
LIGHT_THEME = {
    'background_top': (230, 236, 255),
    'background_bottom': (246, 248, 254),
    'panel': (248, 249, 253),
    'panel_border': (214, 220, 235),
    'text': (38, 44, 60),
    'muted': (112, 120, 140),
    'accent': (72, 104, 255),
    'graph_bg': (254, 255, 255),
    'grid': (222, 227, 242),
    'zero_line': (0, 0, 0),
}


def theme(dark: bool) -> dict:
    return DARK_THEME if dark else LIGHT_THEME


def calc_scale(size: Tuple[int, int], base: Tuple[int, int] = (1280, 760)) -> float:
    """Return a layout scale relative to the reference window size."""
    return max(0.6, min(size[0] / base[0], size[1] / base[1]))


def get_font(size: int, bold: bool = False) -> pygame.font.Font:
    """Return a cached default font of the requested size."""
    size = max(8, int(size))
    key = (size, bold)
    font = _FONT_CACHE.get(key)
    if font is None:
        if not pygame.font.get_init():
            pygame.font.init()
        font = pygame.font.Font(None, size)
        font.set_bold(bold)
        _FONT_CACHE[key] = font
    return font


def build_vertical_gradient(
    size: Tuple[int, int],
    top_color: Tuple[int, int, int],
    bottom_color: Tuple[int, int, int],
) -> pygame.Surface:
    """Render a top-to-bottom colour gradient surface."""
    width, height = max(1, size[0]), max(1, size[1])
    surface = pygame.Surface((width, height))
    for y in range(height):
        frac = y / max(1, height - 1)
        color = tuple(int(top_color[i] + (bottom_color[i] - top_color[i]) * frac) for i in range(3))
        pygame.draw.line(surface, color, (0, y), (width, y))
    return surface


class ResponsiveScreen:
    """Base for screens that lay themselves out for the current window size.

    Subclasses implement ``_relayout(size)``; ``handle_resize`` refreshes the
    target surface from the app and lays the screen out again.
    """

    def __init__(self, app):
        self.app = app
        self.screen = app.screen
        self.layout_scale = calc_scale(app.window_size)

    def _relayout(self, size: Tuple[int, int]) -> None:
        raise NotImplementedError

    def handle_resize(self, size: Tuple[int, int]) -> None:
        self.screen = self.app.screen
        self.layout_scale = calc_scale(size)
        self._relayout(size)
