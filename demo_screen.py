from __future__ import annotations

import logging
from typing import List, Optional

import pygame

from button import Button
from config import ConfigLoader
from demo import Demo
from simulation import Simulation, SourceType
from slider import ParamSlider
from tutor import Tutor, TutorStatus
from ui_base import ResponsiveScreen, build_vertical_gradient, get_font, theme

logger = logging.getLogger(__name__)

LIVE_EMF_THRESHOLD = 0.01
HIGHLIGHT_EMF_THRESHOLD = 0.05

SLIDER_DEFINITIONS = (
    # key, label, decimals, unit
    ('field_strength', 'Magnet Strength', 1, ' T'),
    ('turns', 'Coil Turns (N)', 0, ''),
    ('ac_frequency', 'AC Frequency', 1, ' Hz'),
)


def flow_label(direction: int) -> str:
    if direction == 0:
        return 'Static'
    return 'CW' if direction > 0 else 'CCW'


def wrap_text(text: str, font: pygame.font.Font, width: int) -> list[str]:
    """Split ``text`` into lines that fit ``width`` pixels."""
    lines: list[str] = []
    current = ''
    for word in text.split():
        candidate = f"{current} {word}".strip()
        if current and font.size(candidate)[0] > width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


class DemoScreen(ResponsiveScreen):
    """Main screen: scene, telemetry, controls, charts and tutor panel."""

    def __init__(self, app, simulation: Simulation, tutor: Optional[Tutor] = None, loader: Optional[ConfigLoader] = None):
        super().__init__(app)
        self.simulation = simulation
        self.tutor = tutor or Tutor()
        self.loader = loader or ConfigLoader()
        self.tutor_enabled = bool(self.loader.section('tutor').get('enabled', True))
        self.dark_mode = True
        self.ui_visible = True
        self.palette = theme(self.dark_mode)
        self.quit_requested = False
        self._was_paused = simulation.is_paused

        self.slider_params: dict = {}
        self.sliders: List[ParamSlider] = []
        self.slider_lookup: dict[str, ParamSlider] = {}
        self.slider_grabbed = False
        self.buttons: List[Button] = []
        self.pause_button: Button | None = None
        self.polarity_button: Button | None = None
        self.source_button: Button | None = None
        self.ui_button: Button | None = None
        self.theme_button: Button | None = None

        self.sim_rect: pygame.Rect | None = None
        self.telemetry_rect: pygame.Rect | None = None
        self.controls_rect: pygame.Rect | None = None
        self.graph_rect: pygame.Rect | None = None
        self.tutor_rect: pygame.Rect | None = None
        self.background: pygame.Surface | None = None

        self.demo = Demo(app, simulation, (0, 0), (1, 1), self.loader.section('graph'))
        self._relayout(self.app.window_size)

    # ------------------------------------------------------------------ Layout
    def _relayout(self, size: tuple[int, int]) -> None:
        width, height = size
        margin = int(20 * self.layout_scale)
        side_width = int(300 * self.layout_scale)
        graph_height = int(height * 0.28)

        self.sim_rect = pygame.Rect(margin, margin, width - side_width - 3 * margin, height - graph_height - 3 * margin)
        self.graph_rect = pygame.Rect(margin, self.sim_rect.bottom + margin, self.sim_rect.width, graph_height)
        side_left = self.sim_rect.right + margin
        self.telemetry_rect = pygame.Rect(side_left, margin, side_width, int(height * 0.24))
        self.controls_rect = pygame.Rect(side_left, self.telemetry_rect.bottom + margin, side_width, int(height * 0.42))
        tutor_top = self.controls_rect.bottom + margin
        self.tutor_rect = pygame.Rect(side_left, tutor_top, side_width, height - tutor_top - margin)

        self.demo.resize_viewport(self.sim_rect.topleft, self.sim_rect.size)
        self._rebuild_background()
        self._build_sliders()
        self._build_buttons()

    def _rebuild_background(self) -> None:
        self.background = build_vertical_gradient(
            self.app.window_size,
            self.palette['background_top'],
            self.palette['background_bottom'],
        )

    def _build_sliders(self) -> None:
        assert self.controls_rect is not None
        steps = self.loader.section('param_steps')
        state = self.simulation.state
        rect = self.controls_rect
        padding = int(18 * self.layout_scale)
        gap = int(56 * self.layout_scale)
        top = rect.top + padding + int(34 * self.layout_scale)
        self.sliders = []
        for idx, (key, label, decimals, unit) in enumerate(SLIDER_DEFINITIONS):
            slider_rect = pygame.Rect(rect.left + padding, top + idx * gap, rect.width - 2 * padding, 14)
            slider = ParamSlider(
                self.screen,
                slider_rect,
                key,
                label,
                self.simulation.get_param_bounds(key),
                getattr(state, key),
                float(steps.get(key, 1 if decimals == 0 else 0.1)),
                decimals=decimals,
                unit=unit,
            )
            self.sliders.append(slider)
        self.slider_lookup = {slider.key: slider for slider in self.sliders}

    def _build_buttons(self) -> None:
        assert self.controls_rect is not None
        rect = self.controls_rect
        padding = int(18 * self.layout_scale)
        button_h = int(34 * self.layout_scale)
        gap = int(8 * self.layout_scale)
        half_w = (rect.width - 2 * padding - gap) // 2
        row1 = rect.bottom - padding - 2 * button_h - gap
        row2 = rect.bottom - padding - button_h
        font_size = int(20 * self.layout_scale)
        accent = self.palette['accent']

        self.polarity_button = Button(self.screen, (rect.left + padding, row1, half_w, button_h), '', self.toggle_polarity, accent, font_size=font_size)
        self.source_button = Button(self.screen, (rect.left + padding + half_w + gap, row1, half_w, button_h), '', self.toggle_source, accent, font_size=font_size)
        self.pause_button = Button(self.screen, (rect.left + padding, row2, half_w, button_h), '', self.toggle_pause, (234, 88, 12), font_size=font_size)
        self.theme_button = Button(self.screen, (rect.left + padding + half_w + gap, row2, half_w, button_h), '', self.toggle_dark_mode, (70, 76, 94), font_size=font_size)
        # The hide/show toggle stays reachable while the rest of the UI is hidden.
        size = int(30 * self.layout_scale)
        self.ui_button = Button(self.screen, (self.sim_rect.right - size - 8, self.sim_rect.top + 8, size, size), '', self.toggle_ui, (70, 76, 94), font_size=font_size)
        self.buttons = [self.polarity_button, self.source_button, self.pause_button, self.theme_button]
        self._update_button_labels()

    def _update_button_labels(self) -> None:
        state = self.simulation.state
        if self.polarity_button:
            self.polarity_button.set_text('Polarity: S-N' if state.is_reversed else 'Polarity: N-S')
        if self.source_button:
            self.source_button.set_text('AC Source' if state.source_type == SourceType.AC_COIL else 'DC Magnet')
        if self.pause_button:
            self.pause_button.set_text('Resume' if state.is_paused else 'Pause')
        if self.theme_button:
            self.theme_button.set_text('Light' if self.dark_mode else 'Dark')
        if self.ui_button:
            self.ui_button.set_text('-' if self.ui_visible else '+')

    def handle_resize(self, size: tuple[int, int]) -> None:
        self.demo.screen = self.app.screen
        super().handle_resize(size)

    # ------------------------------------------------------------------ Commands
    def toggle_polarity(self) -> None:
        self.simulation.set_params(is_reversed=not self.simulation.state.is_reversed)

    def toggle_source(self) -> None:
        current = self.simulation.state.source_type
        target = SourceType.DC_MAGNET if current == SourceType.AC_COIL else SourceType.AC_COIL
        self.simulation.set_params(source_type=target)

    def toggle_pause(self) -> None:
        self.simulation.toggle_pause()

    def toggle_dark_mode(self) -> None:
        self.dark_mode = not self.dark_mode
        self.palette = theme(self.dark_mode)
        self._rebuild_background()
        self._update_button_labels()

    def toggle_ui(self) -> None:
        self.ui_visible = not self.ui_visible
        self._update_button_labels()

    # ------------------------------------------------------------------ Frame
    def frame(self, frame_index: int) -> None:
        """Run one frame: input, one simulation tick, tutor bookkeeping, drawing."""
        self._check_events()
        self.demo.apply_slider_params(self.slider_params)
        self.simulation.tick()
        self._sync_tutor()
        self._update_button_labels()
        self._update_screen()

    def _sync_tutor(self) -> None:
        paused = self.simulation.is_paused
        if paused and not self._was_paused and self.tutor_enabled:
            snapshot = self.simulation.tutor_snapshot()
            if snapshot is not None:
                self.tutor.request(snapshot)
        elif not paused and self._was_paused:
            self.tutor.reset()
        self._was_paused = paused

    # ------------------------------------------------------------------ Drawing
    def _update_screen(self) -> None:
        assert self.sim_rect is not None
        self.screen.blit(self.background, (0, 0))
        self._draw_panel(self.sim_rect)
        self.demo.draw_check(self.palette)
        self._draw_telemetry_panel()
        if self.ui_visible:
            self._draw_controls_panel()
            self._draw_graph_panel()
            self._draw_tutor_panel()
        self.ui_button.draw_button()

    def _draw_panel(self, rect: pygame.Rect) -> None:
        pygame.draw.rect(self.screen, self.palette['panel'], rect, border_radius=20)
        pygame.draw.rect(self.screen, self.palette['panel_border'], rect, width=2, border_radius=20)

    def _draw_title(self, rect: pygame.Rect, text: str) -> int:
        font = get_font(int(18 * self.layout_scale), bold=True)
        padding = int(18 * self.layout_scale)
        surface = font.render(text.upper(), True, self.palette['muted'])
        self.screen.blit(surface, (rect.left + padding, rect.top + padding))
        return rect.top + padding + surface.get_height()

    def _draw_telemetry_panel(self) -> None:
        assert self.telemetry_rect is not None
        rect = self.telemetry_rect
        data = self.simulation.data
        state = self.simulation.state
        self._draw_panel(rect)
        padding = int(18 * self.layout_scale)
        live = abs(data.emf) > LIVE_EMF_THRESHOLD
        dot_color = (34, 197, 94) if live else (75, 85, 99)
        top = self._draw_title(rect, 'Live Telemetry')
        pygame.draw.circle(self.screen, dot_color, (rect.right - padding, rect.top + padding + 6), 5)

        label_font = get_font(int(16 * self.layout_scale), bold=True)
        value_font = get_font(int(34 * self.layout_scale), bold=True)
        small_font = get_font(int(18 * self.layout_scale), bold=True)
        y = top + int(10 * self.layout_scale)
        emf_color = (74, 222, 128) if abs(data.emf) > HIGHLIGHT_EMF_THRESHOLD else self.palette['text']
        for label, value, unit, color in (
            ('Flux (Phi)', data.flux, 'Wb', self.palette['text']),
            ('EMF (e)', data.emf, 'V', emf_color),
        ):
            label_surface = label_font.render(label, True, self.palette['muted'])
            self.screen.blit(label_surface, (rect.left + padding, y))
            y += label_surface.get_height() + 2
            value_surface = value_font.render(f"{value:.3f}", True, color)
            self.screen.blit(value_surface, (rect.left + padding, y))
            unit_surface = label_font.render(unit, True, self.palette['muted'])
            self.screen.blit(unit_surface, (rect.left + padding + value_surface.get_width() + 6, y + value_surface.get_height() - unit_surface.get_height()))
            y += value_surface.get_height() + int(6 * self.layout_scale)

        pos_text = f"X:{state.magnet_x:.0f} Y:{state.magnet_y:.0f}"
        pos_surface = small_font.render(pos_text, True, self.palette['accent'])
        self.screen.blit(pos_surface, (rect.left + padding, rect.bottom - padding - pos_surface.get_height()))
        flow_surface = small_font.render(f"Flow: {flow_label(data.current_direction)}", True, self.palette['text'])
        self.screen.blit(flow_surface, (rect.right - padding - flow_surface.get_width(), rect.bottom - padding - flow_surface.get_height()))

    def _draw_controls_panel(self) -> None:
        assert self.controls_rect is not None
        self._draw_panel(self.controls_rect)
        self._draw_title(self.controls_rect, 'Controls')
        ac_active = self.simulation.state.source_type == SourceType.AC_COIL
        for slider in self.sliders:
            slider.visible = slider.key != 'ac_frequency' or ac_active
            slider.draw_check(self.slider_params, self.palette)
        for button in self.buttons:
            button.draw_button()

    def _draw_graph_panel(self) -> None:
        assert self.graph_rect is not None
        rect = self.graph_rect
        self._draw_panel(rect)
        padding = int(14 * self.layout_scale)
        gap = padding
        half_w = (rect.width - 2 * padding - gap) // 2
        font = get_font(int(16 * self.layout_scale), bold=True)
        samples = self.simulation.history.read_all()
        for idx, (series, title) in enumerate((('emf', 'Induced EMF (V)'), ('flux', 'Magnetic Flux (Wb)'))):
            left = rect.left + padding + idx * (half_w + gap)
            title_surface = font.render(title.upper(), True, self.palette['muted'])
            self.screen.blit(title_surface, (left, rect.top + padding))
            plot_top = rect.top + padding + title_surface.get_height() + 6
            plot_rect = pygame.Rect(left, plot_top, half_w, rect.bottom - padding - plot_top)
            pygame.draw.rect(self.screen, self.palette['graph_bg'], plot_rect, border_radius=10)
            limits = self.demo.draw_history_graph(
                self.screen,
                plot_rect,
                samples=samples,
                series=series,
                zero_color=self.palette['zero_line'],
            )
            if limits is not None:
                label = font.render(f"+/-{limits[1]:.3g}", True, self.palette['muted'])
                self.screen.blit(label, (plot_rect.right - label.get_width() - 6, plot_rect.top + 4))

    def _draw_tutor_panel(self) -> None:
        assert self.tutor_rect is not None
        rect = self.tutor_rect
        if rect.height <= 40:
            return
        self._draw_panel(rect)
        top = self._draw_title(rect, 'Tutor Insights')
        padding = int(18 * self.layout_scale)
        font = get_font(int(17 * self.layout_scale))
        width = rect.width - 2 * padding
        text = self.tutor.describe(self.simulation.data)
        if self.simulation.is_paused:
            status, analysis = self.tutor.poll()
            if status is TutorStatus.LOADING:
                text = 'Analysing the frozen state...'
            elif analysis:
                text = analysis
        y = top + int(8 * self.layout_scale)
        for line in wrap_text(text, font, width):
            if y + font.get_linesize() > rect.bottom - padding:
                break
            surface = font.render(line, True, self.palette['text'])
            self.screen.blit(surface, (rect.left + padding, y))
            y += font.get_linesize()

    # ------------------------------------------------------------------ Events
    def _check_events(self) -> None:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.quit_requested = True
            elif event.type == pygame.VIDEORESIZE:
                self.app.handle_resize(event.size)
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event)
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                if self.ui_button.rect.collidepoint(event.pos):
                    self.ui_button.command()
                    continue
                if self.ui_visible and self._check_buttons(event.pos):
                    continue
                self.demo.handle_mouse_down(event.pos)
            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                self.demo.handle_mouse_up()
            elif event.type == pygame.MOUSEMOTION:
                self.demo.handle_mouse_motion(event.pos)
        if self.ui_visible:
            self._check_sliders(pygame.mouse.get_pos(), pygame.mouse.get_pressed())

    def _handle_key(self, event: pygame.event.Event) -> None:
        if event.key == pygame.K_ESCAPE:
            self.quit_requested = True
        elif event.key == pygame.K_SPACE:
            self.toggle_pause()
        elif event.key == pygame.K_r:
            self.toggle_polarity()
        elif event.key == pygame.K_s:
            self.toggle_source()
        elif event.key == pygame.K_h:
            self.toggle_ui()
        elif event.key == pygame.K_d:
            self.toggle_dark_mode()

    def _check_buttons(self, mouse_position) -> bool:
        for button in self.buttons:
            if button.rect.collidepoint(mouse_position):
                button.command()
                return True
        return False

    def _check_sliders(self, mouse_position, mouse_pressed) -> None:
        for slider in self.sliders:
            slider.slider.hovered = False
            if not slider.visible:
                continue
            if slider.slider.button_rect.collidepoint(mouse_position):
                if mouse_pressed[0] and not self.slider_grabbed and not self.demo.dragging:
                    slider.slider.grabbed = True
                    self.slider_grabbed = True
                slider.slider.hovered = True
            if not mouse_pressed[0]:
                slider.slider.grabbed = False
                self.slider_grabbed = False
            if slider.slider.grabbed:
                slider.slider.move_slider(mouse_position)
                slider.slider.hovered = True
