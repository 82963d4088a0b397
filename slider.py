from __future__ import annotations

from typing import Optional, Tuple

import pygame

from ui_base import get_font, theme


class Slider:
    """Horizontal track with a draggable knob mapping to ``[low, high]``."""

    def __init__(self, rect: pygame.Rect, bounds: Tuple[float, float], initial: float, step: float):
        self.rect = pygame.Rect(rect)
        self.low, self.high = float(bounds[0]), float(bounds[1])
        self.step = float(step) if step > 0 else 0.0
        self.value = self._snap(initial)
        self.grabbed = False
        self.hovered = False
        self.knob_radius = max(7, self.rect.height // 2)
        self.button_rect = pygame.Rect(0, 0, self.knob_radius * 2, self.knob_radius * 2)
        self._place_knob()

    def _snap(self, value: float) -> float:
        value = min(max(float(value), self.low), self.high)
        if self.step > 0:
            value = self.low + round((value - self.low) / self.step) * self.step
            value = min(max(value, self.low), self.high)
        return value

    def _place_knob(self) -> None:
        span = self.high - self.low
        frac = (self.value - self.low) / span if span > 0 else 0.0
        self.button_rect.center = (int(self.rect.left + frac * self.rect.width), self.rect.centery)

    def set_value(self, value: float) -> None:
        self.value = self._snap(value)
        self._place_knob()

    def move_slider(self, mouse_position: Tuple[int, int]) -> None:
        if self.rect.width <= 0:
            return
        frac = (mouse_position[0] - self.rect.left) / self.rect.width
        frac = min(max(frac, 0.0), 1.0)
        self.set_value(self.low + frac * (self.high - self.low))


class ParamSlider:
    """Labelled slider bound to one entry of a parameter dictionary."""

    def __init__(
        self,
        screen: pygame.Surface,
        rect: pygame.Rect,
        key: str,
        label: str,
        bounds: Tuple[float, float],
        initial: float,
        step: float,
        decimals: int = 1,
        unit: str = '',
    ):
        self.screen = screen
        self.key = key
        self.label = label
        self.decimals = decimals
        self.unit = unit
        self.slider = Slider(rect, bounds, initial, step)
        self.visible = True

    @property
    def value(self) -> float:
        if self.decimals == 0:
            return int(round(self.slider.value))
        return round(self.slider.value, self.decimals)

    def draw_check(self, params: dict, palette: Optional[dict] = None) -> None:
        """Draw the slider and write its current value into ``params``.

        Colours come from ``palette`` (a ``ui_base`` theme), dark by default.
        """
        params[self.key] = self.value
        if not self.visible:
            return
        palette = palette or theme(True)
        rect = self.slider.rect
        font = get_font(16, bold=True)
        label = font.render(self.label.upper(), True, palette['muted'])
        self.screen.blit(label, (rect.left, rect.top - label.get_height() - 6))
        value_text = f"{self.value:.{self.decimals}f}{self.unit}"
        value_surface = font.render(value_text, True, palette['text'])
        self.screen.blit(value_surface, (rect.right - value_surface.get_width(), rect.top - value_surface.get_height() - 6))

        track = pygame.Rect(rect.left, rect.centery - 3, rect.width, 6)
        pygame.draw.rect(self.screen, palette['grid'], track, border_radius=3)
        fill = track.copy()
        fill.width = max(0, self.slider.button_rect.centerx - rect.left)
        pygame.draw.rect(self.screen, palette['accent'], fill, border_radius=3)
        radius = self.slider.knob_radius + (2 if self.slider.hovered else 0)
        pygame.draw.circle(self.screen, (255, 255, 255), self.slider.button_rect.center, radius)
        pygame.draw.circle(self.screen, palette['accent'], self.slider.button_rect.center, radius, width=2)
