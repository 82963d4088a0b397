from __future__ import annotations

from typing import Callable, Tuple

import pygame

from ui_base import get_font


class Button:
    """Rounded push button calling ``command`` when clicked."""

    def __init__(
        self,
        screen: pygame.Surface,
        rect: pygame.Rect,
        text: str,
        command: Callable[[], None],
        color: Tuple[int, int, int] = (72, 104, 255),
        text_color: Tuple[int, int, int] = (255, 255, 255),
        font_size: int = 20,
    ):
        self.screen = screen
        self.rect = pygame.Rect(rect)
        self.text = text
        self.command = command
        self.color = color
        self.text_color = text_color
        self.font_size = font_size
        self.active = False
        self.visible = True

    def set_text(self, text: str) -> None:
        self.text = text

    def draw_button(self) -> None:
        if not self.visible:
            return
        color = self.color
        if self.active:
            color = tuple(min(255, int(c * 1.25)) for c in color)
        pygame.draw.rect(self.screen, color, self.rect, border_radius=10)
        font = get_font(self.font_size, bold=True)
        label = font.render(self.text, True, self.text_color)
        label_rect = label.get_rect(center=self.rect.center)
        self.screen.blit(label, label_rect)
