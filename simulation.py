"""
Simulation of electromagnetic induction between a magnet and a coil.

This module holds the numerical core of the application: a closed-form
model of the magnet's field along the coil axis, the flux/EMF calculator
for the two excitation sources (a dragged permanent magnet and an
oscillating AC source), the bounded history of recent samples used by the
charts, and the ``Simulation`` class that owns the mutable state and
advances it one fixed step per frame.

User interface code never writes to the state directly.  Position and
parameter changes are submitted through ``Simulation.set_position`` and
``Simulation.set_params`` and are applied atomically at the start of the
next tick.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterator, Optional, Tuple, Union

import numpy as np
from numpy import ndarray

logger = logging.getLogger(__name__)

################################################################################
# Model constants
################################################################################

# Fixed integration step (seconds).  The physics advances by exactly this
# amount per frame regardless of the real frame duration.
TIME_STEP: float = 0.016

# Coil centre along the magnet axis (simulation millimetres).
COIL_CENTER_X: float = 0.0
# Coil radius; the effective cross-section uses ``COIL_RADIUS / 10``.
COIL_RADIUS: float = 20.0

# Axial falloff scale of the field profile.
AXIAL_SIGMA: float = 30.0
# Lateral falloff scale; off-axis magnets couple more weakly.
RADIAL_SIGMA: float = 15.0

# Below this EMF magnitude the induced current is reported as zero.
CURRENT_DEADZONE: float = 0.01

# Number of samples kept for the EMF/flux charts.
HISTORY_CAPACITY: int = 100

# Position limits of the draggable magnet.
X_LIMITS: Tuple[float, float] = (-200.0, 200.0)
Y_LIMITS: Tuple[float, float] = (-100.0, 100.0)

# Clamp ranges for user-settable parameters.  ``config.json`` may narrow or
# widen them through its ``param_bounds`` section.
DEFAULT_PARAM_BOUNDS: Dict[str, Tuple[float, float]] = {
    'field_strength': (0.1, 5.0),
    'turns': (1, 50),
    'ac_frequency': (0.1, 5.0),
}

Number = Union[float, ndarray]


class SourceType(str, enum.Enum):
    """Excitation source driving the flux through the coil."""

    DC_MAGNET = 'DC_MAGNET'
    AC_COIL = 'AC_COIL'


################################################################################
# Field model
################################################################################

def _as_result(value: ndarray) -> Number:
    """Return plain floats for scalar input and arrays otherwise."""
    if np.ndim(value) == 0:
        return float(value)
    return value


def effective_field_strength(field_strength: float, is_reversed: bool) -> float:
    """Return the signed source strength; reversing the magnet flips the sign."""
    return -field_strength if is_reversed else field_strength


def radial_factor(y: Number) -> Number:
    """Coupling factor for a magnet displaced laterally by ``y``.

    Equals 1 on the axis and decreases strictly with ``|y|``.  The value
    never reaches zero, so the denominator is always at least one.
    """
    y_arr = np.asarray(y, dtype=float)
    return _as_result(1.0 / (1.0 + (y_arr / RADIAL_SIGMA) ** 2))


def field_at(x: Number, y: Number, b0: float) -> Number:
    """Field strength at the coil produced by a magnet at ``(x, y)``.

    Parameters
    ----------
    x : float or ndarray
        Axial magnet position relative to the coil (millimetres).
    y : float or ndarray
        Lateral offset of the magnet (millimetres).
    b0 : float
        Signed source strength, see ``effective_field_strength``.

    Returns
    -------
    float or ndarray
        ``b0 * (1 + (x/sigma)^2)^-1.5 * radial_factor(y)``.  Scalar input
        gives a ``float``; array input broadcasts.
    """
    dist = np.asarray(x, dtype=float) - COIL_CENTER_X
    axial = np.power(1.0 + (dist / AXIAL_SIGMA) ** 2, -1.5)
    return _as_result(b0 * axial * np.asarray(radial_factor(y)))


def field_gradient_at(x: Number, y: Number, b0: float) -> Number:
    """Closed-form axial derivative ``dB/dx`` of ``field_at``.

    The derivative vanishes at the coil centre, where the field peaks.
    """
    dist = np.asarray(x, dtype=float) - COIL_CENTER_X
    axial = np.power(1.0 + (dist / AXIAL_SIGMA) ** 2, -2.5)
    slope = 2.0 * dist / AXIAL_SIGMA ** 2
    return _as_result(-1.5 * b0 * axial * slope * np.asarray(radial_factor(y)))


################################################################################
# Data records
################################################################################

@dataclass
class SimulationState:
    """Mutable state of the simulation.

    Attributes
    ----------
    magnet_x, magnet_y: float
        Magnet position in simulation millimetres, limited to
        ``X_LIMITS`` and ``Y_LIMITS``.
    magnet_velocity: float
        Axial velocity derived every running tick from the position change.
    field_strength: float
        Magnitude of the source field (tesla-equivalent units).
    is_reversed: bool
        Swaps the magnet's poles.
    turns: int
        Number of coil windings.
    is_paused: bool
        Freezes time, telemetry and history while set.
    source_type: SourceType
        Selects the calculator branch.
    ac_frequency: float
        Oscillation frequency (Hz) of the AC source.
    current_time: float
        Simulation clock, advanced by ``TIME_STEP`` per running tick.
    """
    magnet_x: float = -80.0
    magnet_y: float = 0.0
    magnet_velocity: float = 0.0
    field_strength: float = 1.5
    is_reversed: bool = False
    turns: int = 12
    is_paused: bool = False
    source_type: SourceType = SourceType.DC_MAGNET
    ac_frequency: float = 1.0
    current_time: float = 0.0


@dataclass(frozen=True)
class CalculatedData:
    """Telemetry derived from the state on a single tick."""

    flux: float = 0.0
    d_flux_dt: float = 0.0
    emf: float = 0.0
    current_direction: int = 0


@dataclass(frozen=True)
class HistoryPoint:
    """One chart sample: wall-clock timestamp, EMF and flux."""

    time: float
    emf: float
    flux: float


@dataclass(frozen=True)
class TutorSnapshot:
    """Frozen view of the simulation handed to the tutor while paused."""

    magnet_x: float
    magnet_y: float
    field_strength: float
    turns: int
    emf: float
    flux: float
    d_flux_dt: float


class HistoryBuffer:
    """Fixed-capacity, insertion-ordered window of recent samples.

    Appending to a full buffer evicts the oldest sample.
    """

    def __init__(self, capacity: int = HISTORY_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._points: Deque[HistoryPoint] = deque(maxlen=int(capacity))

    @property
    def capacity(self) -> int:
        return int(self._points.maxlen)

    def append(self, point: HistoryPoint) -> None:
        self._points.append(point)

    def read_all(self) -> list[HistoryPoint]:
        """Return the samples oldest first."""
        return list(self._points)

    def latest(self) -> Optional[HistoryPoint]:
        return self._points[-1] if self._points else None

    def clear(self) -> None:
        self._points.clear()

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[HistoryPoint]:
        return iter(list(self._points))


################################################################################
# Flux / EMF calculator
################################################################################

def coil_area() -> float:
    """Cross-sectional area of the coil in the simulation's reduced units."""
    return math.pi * (COIL_RADIUS / 10.0) ** 2


def current_direction_for(emf: float) -> int:
    """Return -1, 0 or +1; EMF below ``CURRENT_DEADZONE`` counts as zero."""
    if abs(emf) < CURRENT_DEADZONE:
        return 0
    return 1 if emf > 0 else -1


def calculate_physics(state: SimulationState, dt: float = TIME_STEP) -> CalculatedData:
    """Compute flux, its rate of change, EMF and current direction.

    The function is pure: the velocity must already be stored in
    ``state.magnet_velocity`` and the AC branch reads ``state.current_time``.
    ``dt`` is accepted so callers can pass the tick length, but neither
    branch needs it since both derivatives are analytic.

    Parameters
    ----------
    state : SimulationState
        Current state; not modified.
    dt : float
        Length of the tick being evaluated.

    Returns
    -------
    CalculatedData
        Fresh telemetry record.
    """
    b0 = effective_field_strength(state.field_strength, state.is_reversed)
    area = coil_area()
    turns = state.turns
    b_local = field_at(state.magnet_x, state.magnet_y, b0)

    if state.source_type == SourceType.DC_MAGNET:
        flux = b_local * area * turns
        d_phi_dx = turns * area * field_gradient_at(state.magnet_x, state.magnet_y, b0)
        d_flux_dt = d_phi_dx * state.magnet_velocity
    else:
        omega = 2.0 * math.pi * state.ac_frequency
        phase = omega * state.current_time
        amplitude = b_local * area * turns
        flux = amplitude * math.sin(phase)
        d_flux_dt = amplitude * omega * math.cos(phase)

    emf = -d_flux_dt
    return CalculatedData(
        flux=float(flux),
        d_flux_dt=float(d_flux_dt),
        emf=float(emf),
        current_direction=current_direction_for(emf),
    )


################################################################################
# Simulation class
################################################################################

_SETTABLE_PARAMS = frozenset({
    'field_strength',
    'turns',
    'is_reversed',
    'source_type',
    'ac_frequency',
    'is_paused',
})


class Simulation:
    """Own the simulation state and advance it one fixed step per tick.

    Collaborators read ``state``, ``data`` and ``history`` and submit
    changes with ``set_position``/``set_params``.  Submitted changes are
    queued and applied together at the start of the next ``tick`` so a
    tick never sees a half-applied update.
    """

    def __init__(
        self,
        state: Optional[SimulationState] = None,
        dt: float = TIME_STEP,
        history_capacity: int = HISTORY_CAPACITY,
        param_bounds: Optional[Dict[str, Tuple[float, float]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Create a simulation.

        Parameters
        ----------
        state: SimulationState, optional
            Initial state; defaults match the classroom demo (magnet at
            x = -80, 1.5 T, 12 turns).
        dt: float
            Fixed tick length in seconds.
        history_capacity: int
            Number of chart samples to retain.
        param_bounds: dict, optional
            Clamp ranges overriding ``DEFAULT_PARAM_BOUNDS``.
        clock: callable
            Wall-clock source used to timestamp history samples.
        """
        if dt <= 0.0 or not math.isfinite(dt):
            raise ValueError("dt must be a positive finite number")
        self._state: SimulationState = state if state is not None else SimulationState()
        self._state.source_type = SourceType(self._state.source_type)
        self._dt: float = float(dt)
        self._clock = clock
        self._param_bounds: Dict[str, Tuple[float, float]] = dict(DEFAULT_PARAM_BOUNDS)
        if param_bounds:
            self._param_bounds.update(param_bounds)

        self._data: CalculatedData = CalculatedData()
        self.history: HistoryBuffer = HistoryBuffer(history_capacity)
        # Reference position for the backward-difference velocity.
        self._prev_x: float = self._state.magnet_x
        self._pending: Deque[Tuple[str, object]] = deque()
        self._tick_count: int = 0
        # Set once telemetry reflects the state, by a running tick or a paused prime.
        self._has_data: bool = False
        logger.info(
            "Simulation created: source=%s, B=%.2f, turns=%d, dt=%.3f",
            self._state.source_type.value,
            self._state.field_strength,
            self._state.turns,
            self._dt,
        )

    @classmethod
    def from_config(cls, loader, clock: Callable[[], float] = time.time) -> 'Simulation':
        """Build a simulation from the ``initial_state`` and ``param_bounds`` sections."""
        initial = loader.get('initial_state', {}) or {}
        defaults = SimulationState()
        bounds = _parse_param_bounds(loader.get('param_bounds', {}))
        limits = dict(DEFAULT_PARAM_BOUNDS, **bounds)
        state = SimulationState(
            magnet_x=_clamp(_float_or(initial.get('magnet_x'), defaults.magnet_x), *X_LIMITS),
            magnet_y=_clamp(_float_or(initial.get('magnet_y'), defaults.magnet_y), *Y_LIMITS),
            field_strength=_clamp(_float_or(initial.get('field_strength'), defaults.field_strength), *limits['field_strength']),
            is_reversed=bool(initial.get('is_reversed', defaults.is_reversed)),
            turns=int(round(_clamp(_float_or(initial.get('turns'), defaults.turns), *limits['turns']))),
            is_paused=bool(initial.get('is_paused', defaults.is_paused)),
            source_type=_source_or(initial.get('source_type'), defaults.source_type),
            ac_frequency=_clamp(_float_or(initial.get('ac_frequency'), defaults.ac_frequency), *limits['ac_frequency']),
        )
        dt = _float_or(loader.get('time_step'), TIME_STEP)
        capacity = int(_float_or(loader.get('history_capacity'), HISTORY_CAPACITY))
        return cls(state=state, dt=dt, history_capacity=capacity, param_bounds=bounds, clock=clock)

    # -------------------------------------------------------------------------
    # Read-only views
    @property
    def state(self) -> SimulationState:
        """Return the live state.  Treat it as read-only; submit intents instead."""
        return self._state

    @property
    def data(self) -> CalculatedData:
        """Return telemetry from the most recently completed tick."""
        return self._data

    @property
    def dt(self) -> float:
        return self._dt

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    def get_tick_count(self) -> int:
        """Return the number of running ticks completed so far."""
        return self._tick_count

    def get_param_bounds(self, name: str) -> Tuple[float, float]:
        return self._param_bounds[name]

    def has_pending_updates(self) -> bool:
        return bool(self._pending)

    def tutor_snapshot(self) -> Optional[TutorSnapshot]:
        """Return the frozen values for the tutor, or ``None`` while running."""
        if not self._state.is_paused:
            return None
        if not self._has_data:
            self._prime_paused_data()
        return TutorSnapshot(
            magnet_x=self._state.magnet_x,
            magnet_y=self._state.magnet_y,
            field_strength=self._state.field_strength,
            turns=self._state.turns,
            emf=self._data.emf,
            flux=self._data.flux,
            d_flux_dt=self._data.d_flux_dt,
        )

    # -------------------------------------------------------------------------
    # Intents
    def set_position(self, x: float, y: float) -> None:
        """Queue a magnet move; the position is clamped to the allowed box."""
        try:
            x = float(x)
            y = float(y)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric magnet position (%r, %r)", x, y)
            return
        if not (math.isfinite(x) and math.isfinite(y)):
            logger.warning("Ignoring non-finite magnet position (%r, %r)", x, y)
            return
        self._pending.append(('position', (_clamp(x, *X_LIMITS), _clamp(y, *Y_LIMITS))))

    def set_params(
        self,
        field_strength: float = None,
        turns: int = None,
        is_reversed: bool = None,
        source_type: Union[SourceType, str] = None,
        ac_frequency: float = None,
        is_paused: bool = None,
    ) -> None:
        """Queue parameter changes.

        Any parameter passed as ``None`` is left unchanged.  Numeric values
        are clamped to the configured bounds.
        """
        updates = {
            'field_strength': field_strength,
            'turns': turns,
            'is_reversed': is_reversed,
            'source_type': source_type,
            'ac_frequency': ac_frequency,
            'is_paused': is_paused,
        }
        self.update({key: value for key, value in updates.items() if value is not None})

    def update(self, changes: Dict[str, object]) -> None:
        """Queue a mapping of parameter changes by name.

        Raises
        ------
        ValueError
            If a name is not a settable parameter or a source type is unknown.
        """
        unknown = set(changes) - _SETTABLE_PARAMS
        if unknown:
            raise ValueError(f"Unknown simulation parameter(s): {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            normalized = self._normalize_param(name, value)
            if normalized is None:
                continue
            self._pending.append((name, normalized))

    def pause(self) -> None:
        self._pending.append(('is_paused', True))

    def resume(self) -> None:
        self._pending.append(('is_paused', False))

    def toggle_pause(self) -> None:
        """Queue the opposite of the pause flag as it will be after pending updates."""
        paused = self._state.is_paused
        for name, value in self._pending:
            if name == 'is_paused':
                paused = bool(value)
        self._pending.append(('is_paused', not paused))

    def _normalize_param(self, name: str, value):
        if name in ('is_reversed', 'is_paused'):
            return bool(value)
        if name == 'source_type':
            try:
                return SourceType(value)
            except ValueError:
                raise ValueError(f"Unknown source type: {value!r}") from None
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric value for %s: %r", name, value)
            return None
        if not math.isfinite(numeric):
            logger.warning("Ignoring non-finite value for %s: %r", name, value)
            return None
        low, high = self._param_bounds[name]
        numeric = _clamp(numeric, low, high)
        if name == 'turns':
            return int(round(numeric))
        return numeric

    def _apply_pending(self) -> None:
        """Apply every queued intent in submission order."""
        was_paused = self._state.is_paused
        while self._pending:
            name, value = self._pending.popleft()
            if name == 'position':
                self._state.magnet_x, self._state.magnet_y = value
            elif name == 'source_type' and value != self._state.source_type:
                logger.info("Source switched to %s", value.value)
                self._state.source_type = value
            else:
                setattr(self._state, name, value)

        if was_paused and not self._state.is_paused:
            # The magnet may have been dragged while paused; measure the next
            # velocity from where it is now.
            self._prev_x = self._state.magnet_x
            logger.info("Simulation resumed at t=%.3f s", self._state.current_time)
        elif not was_paused and self._state.is_paused:
            logger.info("Simulation paused at t=%.3f s", self._state.current_time)

    # -------------------------------------------------------------------------
    def tick(self) -> CalculatedData:
        """Advance the simulation by one fixed step.

        Queued intents are applied first.  While paused nothing else
        happens and the previous telemetry is returned unchanged; a
        simulation paused before its first running tick gets its telemetry
        computed once with the magnet at rest.
        """
        self._apply_pending()
        state = self._state
        if state.is_paused:
            if not self._has_data:
                self._prime_paused_data()
            return self._data

        dt = self._dt
        state.magnet_velocity = (state.magnet_x - self._prev_x) / dt
        data = calculate_physics(state, dt)
        self.history.append(HistoryPoint(time=self._clock(), emf=data.emf, flux=data.flux))
        state.current_time += dt
        self._prev_x = state.magnet_x
        self._data = data
        self._has_data = True
        self._tick_count += 1
        return data

    def _prime_paused_data(self) -> None:
        """Compute telemetry for a simulation that is paused before it ever ran.

        The magnet is treated as at rest. Time and history are left untouched.
        """
        at_rest = dataclasses.replace(self._state, magnet_velocity=0.0)
        self._data = calculate_physics(at_rest, self._dt)
        self._has_data = True
        logger.debug("Primed paused telemetry at t=%.3f s", self._state.current_time)

    def __iter__(self) -> 'Simulation':
        return self

    def __next__(self) -> CalculatedData:
        return self.tick()

    def copy_state(self) -> SimulationState:
        """Return a detached copy of the current state."""
        return dataclasses.replace(self._state)


################################################################################
# Helpers
################################################################################

def _clamp(value: float, low: float, high: float) -> float:
    return float(min(max(value, low), high))


def _float_or(value, fallback: float) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return float(fallback)
    if not math.isfinite(result):
        return float(fallback)
    return result


def _source_or(value, fallback: SourceType) -> SourceType:
    try:
        return SourceType(value)
    except ValueError:
        if value is not None:
            logger.warning("Unknown source type %r in config; using %s", value, fallback.value)
        return fallback


def _parse_param_bounds(raw) -> Dict[str, Tuple[float, float]]:
    """Read ``{"name": [low, high]}`` pairs, skipping malformed entries."""
    bounds: Dict[str, Tuple[float, float]] = {}
    if not isinstance(raw, dict):
        return bounds
    for name, entry in raw.items():
        if name not in DEFAULT_PARAM_BOUNDS:
            continue
        if not isinstance(entry, (list, tuple)) or len(entry) != 2:
            logger.warning("Ignoring malformed bounds for %s: %r", name, entry)
            continue
        try:
            low = float(entry[0])
            high = float(entry[1])
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed bounds for %s: %r", name, entry)
            continue
        if not (math.isfinite(low) and math.isfinite(high)) or high < low:
            logger.warning("Ignoring malformed bounds for %s: %r", name, entry)
            continue
        bounds[name] = (low, high)
    return bounds
