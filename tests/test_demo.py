"""Headless checks of the scene and screen, using SDL's dummy drivers."""

from types import SimpleNamespace

import pygame
import pytest

from config import ConfigLoader
from demo import FIELD_PROFILE_SAMPLES, Demo
from demo_screen import DemoScreen, flow_label, wrap_text
from simulation import HistoryPoint, SourceType
from slider import ParamSlider
from tutor import Tutor, TutorStatus
from ui_base import ResponsiveScreen, calc_scale, theme


@pytest.fixture(scope="session")
def pygame_ready():
    pygame.init()
    yield
    pygame.quit()


@pytest.fixture
def demo(sim, pygame_ready):
    app = SimpleNamespace(screen=pygame.Surface((900, 500)))
    return Demo(app, sim, (0, 0), (900, 500), {'min_half_range': 0.1})


def _points(values, dt=0.016):
    return [HistoryPoint(time=i * dt, emf=v, flux=-v) for i, v in enumerate(values)]


class TestCoordinates:
    def test_round_trip(self, demo):
        x, y = demo.to_simulation(demo.to_screen(-80.0, 20.0))
        scale = demo._scale()
        assert x == pytest.approx(-80.0, abs=1.0 / scale)
        assert y == pytest.approx(20.0, abs=1.0 / scale)

    def test_origin_at_viewport_centre(self, demo):
        assert demo.to_screen(0.0, 0.0) == demo.main.center


class TestDragging:
    def test_drag_queues_position(self, demo, sim):
        grab = demo.magnet_rect().center
        assert demo.handle_mouse_down(grab)
        target = demo.to_screen(-20.0, 10.0)
        demo.handle_mouse_motion(target)
        demo.handle_mouse_up()
        assert sim.has_pending_updates()
        assert sim.state.magnet_x == -80.0
        sim.tick()
        scale = demo._scale()
        assert sim.state.magnet_x == pytest.approx(-20.0, abs=2.0 / scale)
        assert sim.state.magnet_y == pytest.approx(10.0, abs=2.0 / scale)

    def test_click_outside_magnet_ignored(self, demo, sim):
        assert not demo.handle_mouse_down(demo.to_screen(150.0, -80.0))
        demo.handle_mouse_motion(demo.to_screen(100.0, 0.0))
        assert not sim.has_pending_updates()


class TestSliderParams:
    def test_only_changes_are_submitted(self, demo, sim):
        assert not demo.apply_slider_params({'field_strength': 1.5, 'turns': 12})
        assert demo.apply_slider_params({'turns': 20, 'unrelated': 3})
        sim.tick()
        assert sim.state.turns == 20


class TestHistoryGraph:
    def test_needs_two_samples(self, demo):
        surface = pygame.Surface((300, 120))
        assert demo.draw_history_graph(surface, (0, 0, 300, 120), samples=_points([0.5])) is None

    def test_symmetric_limits(self, demo):
        surface = pygame.Surface((300, 120))
        limits = demo.draw_history_graph(surface, (0, 0, 300, 120), samples=_points([0.0, 1.0, -2.0]))
        assert limits == pytest.approx((-2.3, 2.3))

    def test_minimum_range(self, demo):
        surface = pygame.Surface((300, 120))
        limits = demo.draw_history_graph(surface, (0, 0, 300, 120), samples=_points([0.0, 0.0]))
        assert limits == (-0.1, 0.1)

    def test_flux_series(self, demo):
        surface = pygame.Surface((300, 120))
        limits = demo.draw_history_graph(surface, (0, 0, 300, 120), samples=_points([3.0, 1.0]), series='flux')
        assert limits == pytest.approx((-3.45, 3.45))

    def test_collapsed_timestamps(self, demo):
        surface = pygame.Surface((300, 120))
        samples = [HistoryPoint(time=5.0, emf=v, flux=v) for v in (0.2, 0.4, 0.1)]
        assert demo.draw_history_graph(surface, (0, 0, 300, 120), samples=samples) is not None

    def test_unknown_series(self, demo):
        surface = pygame.Surface((300, 120))
        with pytest.raises(ValueError):
            demo.draw_history_graph(surface, (0, 0, 300, 120), samples=_points([0.0, 1.0]), series='power')

    def test_reads_simulation_history(self, demo, sim):
        sim.set_position(-60.0, 0.0)
        sim.tick()
        sim.tick()
        surface = pygame.Surface((300, 120))
        assert demo.draw_history_graph(surface, (0, 0, 300, 120)) is not None


def test_field_profile(demo):
    xs, values = demo.field_profile()
    assert xs.shape == values.shape == (FIELD_PROFILE_SAMPLES,)
    assert values.max() == pytest.approx(1.5, rel=1e-2)


def test_scene_draws_for_both_sources(demo, sim):
    palette = {'grid': (40, 40, 40), 'muted': (120, 120, 120), 'accent': (80, 160, 255)}
    sim.set_position(-10.0, 0.0)
    sim.tick()
    demo.draw_check(palette)
    sim.set_params(source_type=SourceType.AC_COIL)
    sim.tick()
    demo.draw_check(palette)


def test_flow_label():
    assert flow_label(0) == 'Static'
    assert flow_label(1) == 'CW'
    assert flow_label(-1) == 'CCW'


def test_wrap_text(pygame_ready):
    font = pygame.font.Font(None, 20)
    lines = wrap_text("the induced current opposes the change in flux " * 3, font, 120)
    assert len(lines) > 1
    assert all(font.size(line)[0] <= 120 or ' ' not in line for line in lines)


class TestDemoScreen:
    @pytest.fixture
    def screen(self, sim, pygame_ready):
        window = pygame.display.set_mode((1280, 760))
        app = SimpleNamespace(screen=window, window_size=(1280, 760))
        return DemoScreen(app, sim, Tutor())

    def test_frame_ticks_simulation(self, screen, sim):
        screen.frame(0)
        screen.frame(1)
        assert sim.get_tick_count() == 2

    def test_pause_requests_tutor_and_resume_resets(self, screen, sim):
        screen.frame(0)
        screen.toggle_pause()
        screen.frame(1)
        assert screen.tutor.poll()[0] is TutorStatus.UNAVAILABLE
        assert screen.pause_button.text == 'Resume'
        screen.toggle_pause()
        screen.frame(2)
        assert screen.tutor.poll()[0] is TutorStatus.IDLE

    def test_toggles(self, screen, sim):
        screen.toggle_source()
        screen.toggle_polarity()
        screen.toggle_dark_mode()
        screen.toggle_ui()
        screen.frame(0)
        assert sim.state.source_type is SourceType.AC_COIL
        assert sim.state.is_reversed
        assert not screen.dark_mode
        assert not screen.ui_visible

    def test_resize(self, screen):
        screen.app.screen = pygame.display.set_mode((900, 600))
        screen.app.window_size = (900, 600)
        screen.handle_resize((900, 600))
        screen.frame(0)
        assert screen.sim_rect.right < 900
        assert screen.screen is screen.app.screen
        assert screen.demo.screen is screen.app.screen
        assert screen.layout_scale == calc_scale((900, 600))

    def test_tutor_disabled_in_config(self, sim, tmp_path, pygame_ready):
        path = tmp_path / 'config.json'
        path.write_text('{"tutor": {"enabled": false}}')
        window = pygame.display.set_mode((1280, 760))
        app = SimpleNamespace(screen=window, window_size=(1280, 760))
        screen = DemoScreen(app, sim, Tutor(), ConfigLoader(path))
        screen.toggle_pause()
        screen.frame(0)
        assert sim.is_paused
        assert screen.tutor.poll() == (TutorStatus.IDLE, None)

    def test_is_responsive_screen(self, screen):
        assert isinstance(screen, ResponsiveScreen)


def test_responsive_screen_requires_layout(pygame_ready):
    app = SimpleNamespace(screen=pygame.Surface((640, 480)), window_size=(640, 480))
    base = ResponsiveScreen(app)
    assert base.layout_scale == calc_scale((640, 480))
    with pytest.raises(NotImplementedError):
        base.handle_resize((800, 600))


@pytest.mark.parametrize('dark', [True, False])
def test_slider_uses_theme_colours(dark, pygame_ready):
    palette = theme(dark)
    surface = pygame.Surface((300, 80))
    surface.fill(palette['panel'])
    rect = pygame.Rect(20, 40, 240, 14)
    slider = ParamSlider(surface, rect, 'turns', 'Coil Turns', (1, 50), 1, 1, decimals=0)
    params = {}
    slider.draw_check(params, palette)
    assert params == {'turns': 1}
    # The knob sits at the left end, so the right end of the track is unfilled.
    assert surface.get_at((rect.right - 4, rect.centery))[:3] == palette['grid']
