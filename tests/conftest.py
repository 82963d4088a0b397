import os

import pytest

# Headless pygame for the rendering tests.
os.environ.setdefault('SDL_VIDEODRIVER', 'dummy')
os.environ.setdefault('SDL_AUDIODRIVER', 'dummy')

import config  # noqa: E402
from simulation import Simulation, SimulationState  # noqa: E402


class FakeClock:
    """Wall clock advancing by a fixed amount on every read."""

    def __init__(self, start: float = 1000.0, step: float = 0.016):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sim(fake_clock):
    """Simulation with the classroom defaults and a deterministic clock."""
    return Simulation(state=SimulationState(), clock=fake_clock)


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    config.clear_cache()
    yield
    config.clear_cache()
