"""
Explanations of the frozen simulation shown while it is paused.

A local explanation is always available.  A deeper analysis can be
requested from a pluggable ``fetcher`` (any callable taking a prompt and
returning text, e.g. a wrapper around a remote text-generation service).
The fetch runs on a worker thread and only ever sees a frozen
``TutorSnapshot``; the frame loop polls for the result and never waits on
it.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Optional

from simulation import CalculatedData, TutorSnapshot

logger = logging.getLogger(__name__)

# Flux changes slower than this are described as constant.
STEADY_FLUX_THRESHOLD = 0.001

UNAVAILABLE_TEXT = "Analysis unavailable. The simulation keeps running normally."
FAILED_TEXT = "Error connecting to the tutor. Please check your connection."
EMPTY_RESPONSE_TEXT = "Unable to generate explanation."

SYSTEM_INSTRUCTION = (
    "You are an expert physics professor. Provide a concise 3-4 sentence "
    "explanation of what is happening physically, focusing on Lenz's Law and "
    "the cause of the EMF. Provide deep insights appropriate for a university "
    "undergraduate."
)

Fetcher = Callable[[str], str]


class TutorStatus(str, enum.Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    READY = 'ready'
    UNAVAILABLE = 'unavailable'


def basic_explanation(data) -> str:
    """Describe the induction state from ``d_flux_dt`` and ``emf``.

    Accepts either ``CalculatedData`` or ``TutorSnapshot``.
    """
    if abs(data.d_flux_dt) < STEADY_FLUX_THRESHOLD:
        return (
            "The magnetic flux is constant. No EMF is being induced because "
            "there is no change in the magnetic environment of the coil."
        )
    direction = 'increasing' if data.d_flux_dt > 0 else 'decreasing'
    return (
        f"The magnetic flux through the coil is {direction}. According to "
        f"Faraday's Law, this change induces an EMF of {data.emf:.2f}V. "
        f"Lenz's Law states the induced current will create its own magnetic "
        f"field to oppose this {direction} flux."
    )


def build_prompt(snapshot: TutorSnapshot) -> str:
    """Return the analysis request for a paused simulation."""
    return (
        "Explain the current state of this Faraday's Law simulation:\n"
        f"Magnet Position: X:{snapshot.magnet_x:g}mm, Y:{snapshot.magnet_y:g}mm\n"
        f"Field Strength: {snapshot.field_strength:g}T\n"
        f"Coil Turns: {snapshot.turns}\n"
        f"Current Induced EMF: {snapshot.emf:.4f}V\n"
        f"Current Flux: {snapshot.flux:.4f}Wb\n"
        f"Current Rate of Change of Flux (dPhi/dt): {snapshot.d_flux_dt:.4f}Wb/s"
    )


class Tutor:
    """Run at most one analysis request per pause.

    Parameters
    ----------
    fetcher : callable, optional
        ``fetcher(prompt) -> str``.  Without one every request resolves to
        ``UNAVAILABLE_TEXT`` immediately.
    """

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self._fetcher = fetcher
        self._lock = threading.Lock()
        self._status: TutorStatus = TutorStatus.IDLE
        self._text: Optional[str] = None
        self._generation: int = 0
        self._thread: Optional[threading.Thread] = None
        self.snapshot: Optional[TutorSnapshot] = None

    @property
    def has_fetcher(self) -> bool:
        return self._fetcher is not None

    def request(self, snapshot: TutorSnapshot) -> None:
        """Start an analysis of ``snapshot`` unless one is already running."""
        with self._lock:
            if self._status is TutorStatus.LOADING:
                return
            self._generation += 1
            generation = self._generation
            self.snapshot = snapshot
            if self._fetcher is None:
                self._status = TutorStatus.UNAVAILABLE
                self._text = UNAVAILABLE_TEXT
                return
            self._status = TutorStatus.LOADING
            self._text = None

        prompt = build_prompt(snapshot)
        logger.info("Requesting tutor analysis")
        self._thread = threading.Thread(
            target=self._run_fetch,
            args=(prompt, generation),
            name='tutor-fetch',
            daemon=True,
        )
        self._thread.start()

    def _run_fetch(self, prompt: str, generation: int) -> None:
        try:
            text = self._fetcher(prompt)
        except Exception:
            logger.warning("Tutor analysis failed", exc_info=True)
            self._finish(generation, TutorStatus.UNAVAILABLE, FAILED_TEXT)
            return
        self._finish(generation, TutorStatus.READY, text or EMPTY_RESPONSE_TEXT)

    def _finish(self, generation: int, status: TutorStatus, text: str) -> None:
        with self._lock:
            if generation != self._generation:
                # Reset (or a newer request) happened while we were fetching.
                return
            self._status = status
            self._text = text

    def poll(self) -> tuple[TutorStatus, Optional[str]]:
        """Return the current status and analysis text without blocking."""
        with self._lock:
            return self._status, self._text

    def reset(self) -> None:
        """Discard any analysis; a response still in flight is dropped on arrival."""
        with self._lock:
            self._generation += 1
            self._status = TutorStatus.IDLE
            self._text = None
            self.snapshot = None

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the running fetch finishes (used by tests and shutdown)."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def describe(self, data: CalculatedData) -> str:
        return basic_explanation(data)
