"""
Numerical solver: integrates States through a system of equations.

Three modes share one adaptive stepping loop:
    - to a single instant (forward or backward)
    - to a list of instants, each direction integrated once
    - until an event condition fires, with the crossing located between
      samples by root finding on the stepper's dense output

Steps land exactly on requested instants. The solver records every
accepted sample of its last call in ``observed_states``.

References:
    - Hairer, Nørsett & Wanner (1993). "Solving ODEs I: Nonstiff Problems",
      Sec. II.6 (dense output) and II.4 (step size control)
    - Shampine & Thompson (2000). "Event location for ordinary differential
      equations." Comp. Math. Appl. 39: 43-54.
"""

import copy
import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

import numpy as np

from .config import SolverSettings
from .constants import (
    DEFAULT_ABSOLUTE_TOLERANCE,
    DEFAULT_RELATIVE_TOLERANCE,
    DEFAULT_TIME_STEP,
    MINIMUM_TIME_STEP,
)
from .event_condition import EventCondition
from .integrators import (
    MIN_FACTOR,
    compute_new_step_size,
    cubic_hermite_interpolate,
    dp5_dense_output,
    dp5_step,
    error_norm,
    linear_interpolate,
    rk4_step,
)
from .root_solver import RootSolver
from .state import State
from .state_builder import StateBuilder
from .types import ConfigurationError, IntegrationError
from .validation import validate_solver_inputs

logger = logging.getLogger(__name__)

SystemFunction = Callable[[float, np.ndarray], np.ndarray]


class StepperType(Enum):
    """Integration scheme."""
    RUNGE_KUTTA_4 = auto()        # Fixed step
    RUNGE_KUTTA_DOPRI5 = auto()   # Adaptive Dormand-Prince 5(4)


class LogType(Enum):
    """What the solver reports through logging and the state logger."""
    NO_LOG = auto()
    LOG_CONSTANT = auto()   # Final state of each call
    LOG_ADAPTIVE = auto()   # Every accepted sample


class RootFindingStrategy(Enum):
    """How states between two samples are reconstructed for event location."""
    DENSE_OUTPUT = auto()           # Stepper continuous extension
    PROPAGATED = auto()             # Re-integrate from the previous sample
    LINEAR_INTERPOLATION = auto()   # Straight line between samples
    SKIP = auto()                   # Stop at the triggering sample


@dataclass(frozen=True)
class ConditionSolution:
    """
    Result of a conditional integration.

    Attributes:
        state: Root-located state, or the state at the target instant
        condition_is_satisfied: Whether the condition fired
        iteration_count: Root solver iterations spent locating the crossing
        root_solver_has_converged: Whether the crossing met the root tolerance
    """
    state: State
    condition_is_satisfied: bool
    iteration_count: int
    root_solver_has_converged: bool


@dataclass(frozen=True)
class _Step:
    """One accepted step, in seconds relative to the propagation start."""
    t0: float
    t1: float
    y0: np.ndarray
    y1: np.ndarray
    dy0: np.ndarray
    dy1: np.ndarray
    k: np.ndarray | None   # Dormand-Prince stages, None for RK4


class _Propagator:
    """Stepping state of one integration pass."""

    def __init__(self, solver: "NumericalSolver", system: SystemFunction, start_instant: float, y0: np.ndarray):
        self._solver = solver
        self._system = system
        self.start_instant = start_instant
        self.t = 0.0
        self.y = np.array(y0, dtype=np.float64)
        self.dy = self._derivative(0.0, self.y)
        if not np.all(np.isfinite(self.dy)):
            raise IntegrationError(f"Non-finite derivative at initial instant {start_instant:.6f} s")
        self.h = solver.time_step
        self._previous_error = 0.0

    def _derivative(self, t: float, y: np.ndarray) -> np.ndarray:
        return np.asarray(self._system(self.start_instant + t, y), dtype=np.float64)

    def step(self, t_limit: float) -> _Step:
        """Take one accepted step toward ``t_limit`` without passing it."""
        direction = 1.0 if t_limit > self.t else -1.0

        while True:
            remaining = t_limit - self.t
            landing = self.h >= abs(remaining) - MINIMUM_TIME_STEP
            h = remaining if landing else direction * self.h
            t_new = t_limit if landing else self.t + h

            if self._solver.stepper_type == StepperType.RUNGE_KUTTA_4:
                y_new = rk4_step(self._derivative, self.t, self.y, h, self.dy)
                if not np.all(np.isfinite(y_new)):
                    raise IntegrationError(f"Non-finite state at t={self.start_instant + t_new:.6f} s")
                k = None
                dy_new = self._derivative(t_new, y_new)
                break

            y_new, error, k = dp5_step(self._derivative, self.t, self.y, h, self.dy)
            if np.all(np.isfinite(y_new)) and np.all(np.isfinite(error)):
                norm = error_norm(
                    y_new, self.y, error,
                    self._solver.absolute_tolerance, self._solver.relative_tolerance,
                )
            else:
                norm = math.inf

            if norm <= 1.0:
                proposed = compute_new_step_size(abs(h), norm, self._previous_error, MINIMUM_TIME_STEP, math.inf)
                # A clamped landing step says nothing about the step the dynamics allow
                self.h = max(proposed, self.h) if landing else proposed
                self._previous_error = norm
                dy_new = k[6]
                break

            if math.isinf(norm):
                self.h = abs(h) * MIN_FACTOR
            else:
                self.h = compute_new_step_size(abs(h), norm, 0.0, 0.0, math.inf)
            if self.h < MINIMUM_TIME_STEP:
                raise IntegrationError(
                    f"Step size collapsed below {MINIMUM_TIME_STEP} s at "
                    f"t={self.start_instant + self.t:.6f} s (error norm {norm:.3e})"
                )

        step = _Step(self.t, t_new, self.y, y_new, self.dy, dy_new, k)
        self.t, self.y, self.dy = t_new, y_new, dy_new
        return step


class NumericalSolver:
    """
    Adaptive (or fixed-step) ODE integrator over States.

    A solver carries the samples of its last call, so each concurrent
    propagation needs its own instance; ``copy()`` is cheap.

    Args:
        log_type: What to report per call
        stepper_type: Integration scheme
        time_step: Initial step (adaptive) or fixed step (RK4), in seconds
        relative_tolerance: Component-wise relative error bound
        absolute_tolerance: Component-wise absolute error bound
        root_solver: Root solver used to locate event crossings
        root_finding_strategy: How intermediate states are reconstructed
        state_logger: Optional callback receiving each reported State

    Raises:
        ConfigurationError: If the settings fail validation

    Example:
        >>> solver = NumericalSolver.default_conditional()
        >>> solution = solver.integrate_time(state, state.instant + 3600.0, system, condition)
    """

    def __init__(
        self,
        log_type: LogType = LogType.NO_LOG,
        stepper_type: StepperType = StepperType.RUNGE_KUTTA_DOPRI5,
        time_step: float = DEFAULT_TIME_STEP,
        relative_tolerance: float = DEFAULT_RELATIVE_TOLERANCE,
        absolute_tolerance: float = DEFAULT_ABSOLUTE_TOLERANCE,
        root_solver: RootSolver | None = None,
        root_finding_strategy: RootFindingStrategy = RootFindingStrategy.DENSE_OUTPUT,
        state_logger: Callable[[State], None] | None = None,
    ):
        root_solver = root_solver if root_solver is not None else RootSolver.default()

        result = validate_solver_inputs(
            time_step,
            relative_tolerance,
            absolute_tolerance,
            root_solver.maximum_iteration_count,
            root_solver.tolerance,
        )
        for issue in result.warnings:
            logger.warning("Numerical solver setting: %s", issue)
        if not result.is_valid:
            raise ConfigurationError(f"Invalid numerical solver settings:\n{result}")

        self._log_type = log_type
        self._stepper_type = stepper_type
        self._time_step = float(time_step)
        self._relative_tolerance = float(relative_tolerance)
        self._absolute_tolerance = float(absolute_tolerance)
        self._root_solver = root_solver
        self._root_finding_strategy = root_finding_strategy
        self._state_logger = state_logger
        self._is_defined = True

        self._observed_states: list[State] = []
        self._last_time_step: float | None = None

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def default(cls) -> "NumericalSolver":
        return cls()

    @classmethod
    def default_conditional(cls, state_logger: Callable[[State], None] | None = None) -> "NumericalSolver":
        return cls(state_logger=state_logger)

    @classmethod
    def conditional(
        cls,
        time_step: float,
        relative_tolerance: float,
        absolute_tolerance: float,
        state_logger: Callable[[State], None] | None = None,
    ) -> "NumericalSolver":
        return cls(
            time_step=time_step,
            relative_tolerance=relative_tolerance,
            absolute_tolerance=absolute_tolerance,
            state_logger=state_logger,
        )

    @classmethod
    def fixed_step_size(cls, stepper_type: StepperType, time_step: float) -> "NumericalSolver":
        return cls(stepper_type=stepper_type, time_step=time_step)

    @classmethod
    def undefined(cls) -> "NumericalSolver":
        """Placeholder solver; Segment and Sequence refuse it."""
        solver = cls()
        solver._is_defined = False
        return solver

    @classmethod
    def from_settings(cls, settings: SolverSettings) -> "NumericalSolver":
        """
        Build a solver from serializable settings.

        Raises:
            ConfigurationError: If an enum name is unknown or a value is invalid
        """
        try:
            log_type = LogType[settings.log_type]
            stepper_type = StepperType[settings.stepper_type]
            strategy = RootFindingStrategy[settings.root_finding_strategy]
        except KeyError as e:
            raise ConfigurationError(f"Unknown solver option {e}") from e

        try:
            root_solver = RootSolver(settings.root_solver_maximum_iteration_count, settings.root_solver_tolerance)
        except ValueError as e:
            raise ConfigurationError(f"Invalid root solver settings: {e}") from e

        return cls(
            log_type=log_type,
            stepper_type=stepper_type,
            time_step=settings.time_step,
            relative_tolerance=settings.relative_tolerance,
            absolute_tolerance=settings.absolute_tolerance,
            root_solver=root_solver,
            root_finding_strategy=strategy,
        )

    def to_settings(self) -> SolverSettings:
        return SolverSettings(
            log_type=self._log_type.name,
            stepper_type=self._stepper_type.name,
            time_step=self._time_step,
            relative_tolerance=self._relative_tolerance,
            absolute_tolerance=self._absolute_tolerance,
            root_solver_maximum_iteration_count=self._root_solver.maximum_iteration_count,
            root_solver_tolerance=self._root_solver.tolerance,
            root_finding_strategy=self._root_finding_strategy.name,
        )

    def copy(self) -> "NumericalSolver":
        """Duplicate with the same settings and no recorded samples."""
        duplicate = copy.copy(self)
        duplicate._observed_states = []
        duplicate._last_time_step = None
        return duplicate

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def is_defined(self) -> bool:
        return self._is_defined

    @property
    def log_type(self) -> LogType:
        return self._log_type

    @property
    def stepper_type(self) -> StepperType:
        return self._stepper_type

    @property
    def time_step(self) -> float:
        return self._time_step

    @property
    def relative_tolerance(self) -> float:
        return self._relative_tolerance

    @property
    def absolute_tolerance(self) -> float:
        return self._absolute_tolerance

    @property
    def root_solver(self) -> RootSolver:
        return self._root_solver

    @property
    def root_finding_strategy(self) -> RootFindingStrategy:
        return self._root_finding_strategy

    @property
    def observed_states(self) -> list[State]:
        """Samples of the last call, in integration order."""
        return list(self._observed_states)

    @property
    def last_time_step(self) -> float | None:
        """Step size magnitude the last call would have continued with."""
        return self._last_time_step

    # -------------------------------------------------------------------------
    # Integration
    # -------------------------------------------------------------------------

    def integrate_time(
        self,
        state: State,
        target: float | list[float] | np.ndarray,
        system: SystemFunction,
        event_condition: EventCondition | None = None,
    ) -> State | list[State] | ConditionSolution:
        """
        Integrate ``state`` through ``system``.

        Args:
            state: Initial state
            target: An instant, or a list of instants (any order, either side
                of the initial instant)
            system: Right-hand side ``(instant, coordinates) -> derivative``
            event_condition: Stop early when this condition is satisfied
                (single instant only). RELATIVE targets are used as they
                stand; resolve them first with EventCondition.resolve.

        Returns:
            State at the instant, States in the order of ``target``, or a
            ConditionSolution when an event condition is given
        """
        if np.ndim(target) > 0:
            if event_condition is not None:
                raise ValueError("Conditional integration takes a single target instant")
            return self._integrate_instants(state, [float(t) for t in target], system)

        if event_condition is None:
            return self._integrate_instants(state, [float(target)], system)[0]

        return self._integrate_to_condition(state, float(target), system, event_condition)

    def _reset(self, state: State) -> None:
        self._observed_states = []
        self._observe(state)

    def _observe(self, state: State) -> None:
        self._observed_states.append(state)
        if self._log_type == LogType.LOG_ADAPTIVE:
            logger.debug("Sample %s", state)
        if self._state_logger is not None:
            self._state_logger(state)

    def _report_final(self, state: State) -> None:
        if self._log_type != LogType.NO_LOG:
            logger.debug("Final %s", state)

    def _advance(self, propagator: _Propagator, builder: StateBuilder, target_instant: float) -> State:
        t_target = target_instant - propagator.start_instant
        while propagator.t != t_target:
            step = propagator.step(t_target)
            instant = target_instant if step.t1 == t_target else propagator.start_instant + step.t1
            self._observe(builder.build(instant, step.y1))
        return self._observed_states[-1]

    def _integrate_instants(self, state: State, instants: list[float], system: SystemFunction) -> list[State]:
        builder = StateBuilder.from_state(state)
        self._reset(state)
        results: list[State | None] = [None] * len(instants)

        forward = sorted((i for i, t in enumerate(instants) if t >= state.instant), key=lambda i: instants[i])
        backward = sorted((i for i, t in enumerate(instants) if t < state.instant), key=lambda i: -instants[i])

        for indexes in (forward, backward):
            propagator = None
            for index in indexes:
                if instants[index] == state.instant:
                    results[index] = state
                    continue
                if propagator is None:
                    propagator = _Propagator(self, system, state.instant, state.coordinates)
                results[index] = self._advance(propagator, builder, instants[index])
            if propagator is not None:
                self._last_time_step = propagator.h

        for result in results:
            self._report_final(result)
        return results

    def _integrate_to_condition(
        self,
        state: State,
        instant: float,
        system: SystemFunction,
        event_condition: EventCondition,
    ) -> ConditionSolution:
        builder = StateBuilder.from_state(state)
        self._reset(state)

        if instant == state.instant:
            self._report_final(state)
            return ConditionSolution(state, False, 0, False)

        if event_condition.is_satisfied(state, state):
            self._report_final(state)
            return ConditionSolution(state, True, 0, True)

        propagator = _Propagator(self, system, state.instant, state.coordinates)
        t_target = instant - state.instant
        previous_state = state

        while propagator.t != t_target:
            step = propagator.step(t_target)
            sample_instant = instant if step.t1 == t_target else state.instant + step.t1
            current_state = builder.build(sample_instant, step.y1)

            if event_condition.is_satisfied(current_state, previous_state):
                self._last_time_step = propagator.h
                solution = self._locate_crossing(
                    step, state.instant, current_state, previous_state, event_condition, builder, system
                )
                self._observe(solution.state)
                self._report_final(solution.state)
                return solution

            self._observe(current_state)
            previous_state = current_state

        self._last_time_step = propagator.h
        self._report_final(previous_state)
        return ConditionSolution(previous_state, False, 0, False)

    # -------------------------------------------------------------------------
    # Event location
    # -------------------------------------------------------------------------

    def _interpolator(self, step: _Step, start_instant: float, system: SystemFunction) -> Callable[[float], np.ndarray]:
        """Coordinates at ``tau`` seconds after the step start."""
        h = step.t1 - step.t0
        strategy = self._root_finding_strategy

        if strategy == RootFindingStrategy.LINEAR_INTERPOLATION:
            return lambda tau: linear_interpolate(tau, 0.0, h, step.y0, step.y1)

        if strategy == RootFindingStrategy.PROPAGATED:
            def propagated(tau: float) -> np.ndarray:
                if tau == 0.0:
                    return step.y0.copy()
                propagator = _Propagator(self, system, start_instant + step.t0, step.y0)
                while propagator.t != tau:
                    propagator.step(tau)
                return propagator.y
            return propagated

        if step.k is not None:
            return lambda tau: dp5_dense_output(tau / h, h, step.y0, step.k)
        return lambda tau: cubic_hermite_interpolate(tau, 0.0, h, step.y0, step.y1, step.dy0, step.dy1)

    def _locate_crossing(
        self,
        step: _Step,
        start_instant: float,
        current_state: State,
        previous_state: State,
        event_condition: EventCondition,
        builder: StateBuilder,
        system: SystemFunction,
    ) -> ConditionSolution:
        if self._root_finding_strategy == RootFindingStrategy.SKIP:
            return ConditionSolution(current_state, True, 0, True)

        h = step.t1 - step.t0
        interpolate = self._interpolator(step, start_instant, system)

        def state_at(tau: float) -> State:
            tau = min(max(tau, min(0.0, h)), max(0.0, h))
            if tau == h:
                return current_state
            return builder.build(start_instant + step.t0 + tau, interpolate(tau))

        def is_satisfied(candidate: State) -> bool:
            return event_condition.is_satisfied(candidate, previous_state)

        def indicator(tau: float) -> float:
            return 1.0 if is_satisfied(state_at(tau)) else -1.0

        root = self._root_solver.bracket_and_solve(indicator, 0.5 * h, h > 0.0)

        if not root.has_converged:
            logger.warning(
                "Root solver did not converge locating '%s' between t=%.6f s and t=%.6f s (%d iterations)",
                getattr(event_condition, "name", event_condition),
                previous_state.instant,
                current_state.instant,
                root.iteration_count,
            )

        # Bracket the switch between an unsatisfied and a satisfied offset, then
        # bisect to the first representable offset on the satisfied side
        tau = min(max(root.root, min(0.0, h)), max(0.0, h))
        nudge = math.copysign(self._root_solver.tolerance, h)
        candidate = state_at(tau)

        if is_satisfied(candidate):
            satisfied_tau, satisfied_state = tau, candidate
            unsatisfied_tau = 0.0
            while (tau - nudge) * h > 0.0:
                trial_state = state_at(tau - nudge)
                if not is_satisfied(trial_state):
                    unsatisfied_tau = tau - nudge
                    break
                satisfied_tau, satisfied_state = tau - nudge, trial_state
                nudge *= 2.0
        else:
            unsatisfied_tau = tau
            satisfied_tau, satisfied_state = h, current_state
            while abs(tau + nudge) < abs(h):
                trial_state = state_at(tau + nudge)
                if is_satisfied(trial_state):
                    satisfied_tau, satisfied_state = tau + nudge, trial_state
                    break
                unsatisfied_tau = tau + nudge
                nudge *= 2.0

        while True:
            middle = 0.5 * (unsatisfied_tau + satisfied_tau)
            if middle == unsatisfied_tau or middle == satisfied_tau:
                break
            trial_state = state_at(middle)
            if is_satisfied(trial_state):
                satisfied_tau, satisfied_state = middle, trial_state
            else:
                unsatisfied_tau = middle

        return ConditionSolution(satisfied_state, True, root.iteration_count, root.has_converged)

    def __repr__(self) -> str:
        return (
            f"NumericalSolver({self._stepper_type.name}, time_step={self._time_step}, "
            f"rtol={self._relative_tolerance}, atol={self._absolute_tolerance})"
        )
