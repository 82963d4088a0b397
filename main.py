"""
Entry point of the induction simulation.

Run ``python main.py`` (or the ``induction-lab`` script) to open the
window.  Drag the magnet through the coil, switch to the AC source, and
pause to freeze the telemetry for the tutor panel.
"""

from __future__ import annotations

import argparse
import logging
from typing import Callable, Optional, Sequence

import pygame

import config
from demo_screen import DemoScreen
from simulation import Simulation
from tutor import Tutor

logger = logging.getLogger(__name__)

DEFAULT_FPS = 60
DEFAULT_WINDOW_SIZE = (1280, 760)


class FrameLoop:
    """Call ``callback(frame_index)`` once per display frame until cancelled.

    ``clock`` only needs a ``tick(fps)`` method; ``pygame.time.Clock`` is
    used by default.  ``cancel()`` may be called from inside the callback,
    in which case the current frame finishes and no further frame runs.
    """

    def __init__(self, callback: Callable[[int], None], fps: int = DEFAULT_FPS, clock=None):
        if fps <= 0:
            raise ValueError("fps must be > 0")
        self._callback = callback
        self.fps = int(fps)
        self._clock = clock
        self._running = False
        self._cancelled = False
        self.frame_index = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop scheduling frames after the one in progress."""
        if not self._cancelled:
            logger.info("Frame loop cancelled after %d frames", self.frame_index)
        self._cancelled = True

    def run(self, max_frames: Optional[int] = None) -> int:
        """Run frames until cancelled (or ``max_frames`` reached); return the count run."""
        if self._running:
            raise RuntimeError("Frame loop is already running")
        if self._clock is None:
            self._clock = pygame.time.Clock()
        self._running = True
        ran = 0
        logger.info("Frame loop started at %d fps", self.fps)
        try:
            while not self._cancelled:
                if max_frames is not None and ran >= max_frames:
                    break
                self._callback(self.frame_index)
                self.frame_index += 1
                ran += 1
                if self._cancelled:
                    break
                self._clock.tick(self.fps)
        finally:
            self._running = False
            logger.info("Frame loop stopped")
        return ran


class App:
    """pygame window hosting the simulation screen."""

    def __init__(self, loader: config.ConfigLoader, start_paused: bool = False, fps: Optional[int] = None):
        window_cfg = loader.section('window')
        size = window_cfg.get('size', DEFAULT_WINDOW_SIZE)
        try:
            self.window_size = (int(size[0]), int(size[1]))
        except (TypeError, ValueError, IndexError):
            logger.warning("Invalid window size %r; using %s", size, DEFAULT_WINDOW_SIZE)
            self.window_size = DEFAULT_WINDOW_SIZE
        self.fps = int(fps or window_cfg.get('fps', DEFAULT_FPS))

        pygame.init()
        pygame.display.set_caption(str(window_cfg.get('title', 'Induction Lab')))
        self.screen = pygame.display.set_mode(self.window_size, pygame.RESIZABLE)

        self.simulation = Simulation.from_config(loader)
        if start_paused:
            self.simulation.pause()
        self.tutor = Tutor()
        self.active_screen = DemoScreen(self, self.simulation, self.tutor, loader)
        self.loop = FrameLoop(self._frame, fps=self.fps)

    def handle_resize(self, size: tuple[int, int]) -> None:
        self.window_size = (max(640, size[0]), max(420, size[1]))
        self.screen = pygame.display.set_mode(self.window_size, pygame.RESIZABLE)
        self.active_screen.handle_resize(self.window_size)

    def _frame(self, frame_index: int) -> None:
        self.active_screen.frame(frame_index)
        pygame.display.flip()
        if self.active_screen.quit_requested:
            self.loop.cancel()

    def run(self) -> None:
        try:
            self.loop.run()
        finally:
            self.loop.cancel()
            pygame.quit()


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interactive Faraday's law simulation.")
    parser.add_argument('--config', default=None, help='Path to a config.json file.')
    parser.add_argument('--log-level', default=None, help='Logging level (DEBUG, INFO, WARNING, ...).')
    parser.add_argument('--paused', action='store_true', help='Start with the simulation paused.')
    parser.add_argument('--fps', type=int, default=None, help='Target frames per second.')
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    loader = config.ConfigLoader(args.config)
    config.configure_logging(args.log_level, loader)
    app = App(loader, start_paused=args.paused, fps=args.fps)
    app.run()


if __name__ == '__main__':
    main()
