"""
Mission segments: bounded propagations ending on an event condition.

A segment pairs a list of dynamics with a stopping condition and a
numerical solver. Coast segments fly the natural dynamics; maneuver
segments add a thruster contribution.

References:
    - Sutton & Biblarz, "Rocket Propulsion Elements", 9th ed., Ch. 4
      (ideal delta-v)
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto

import numpy as np

from .constants import DEFAULT_MAXIMUM_PROPAGATION_DURATION, G0
from .coordinate_subset import MASS
from .dynamics import Dynamics, SystemOfEquations
from .event_condition import EventCondition
from .numerical_solver import NumericalSolver
from .state import State
from .types import ConfigurationError, PropagationExhaustedError

logger = logging.getLogger(__name__)


class SegmentType(Enum):
    """Kind of mission segment."""
    COAST = auto()      # Natural dynamics only
    MANEUVER = auto()   # Natural dynamics plus thrust


@dataclass
class SegmentSolution:
    """
    Trajectory produced by one segment.

    Attributes:
        name: Segment name
        dynamics: Dynamics flown, thruster included
        states: Every sample visited, ending on the root-located state
        condition_is_satisfied: Whether the stopping condition was reached
        segment_type: COAST or MANEUVER
        iteration_count: Root solver iterations spent on the final crossing
        root_solver_has_converged: Whether the final crossing met tolerance
    """
    name: str
    dynamics: list[Dynamics]
    states: list[State]
    condition_is_satisfied: bool
    segment_type: SegmentType
    iteration_count: int = 0
    root_solver_has_converged: bool = True

    @property
    def initial_state(self) -> State:
        return self.states[0]

    @property
    def final_state(self) -> State:
        return self.states[-1]

    @property
    def start_instant(self) -> float:
        return self.states[0].instant

    @property
    def end_instant(self) -> float:
        return self.states[-1].instant

    @property
    def propagation_duration(self) -> float:
        """Elapsed time of the segment (s)."""
        return self.end_instant - self.start_instant

    @property
    def initial_mass(self) -> float:
        return _mass_of(self.states[0])

    @property
    def final_mass(self) -> float:
        return _mass_of(self.states[-1])

    def compute_delta_mass(self) -> float:
        """Mass consumed over the segment (kg)."""
        return self.initial_mass - self.final_mass

    def compute_delta_v(self, specific_impulse: float) -> float:
        """
        Ideal delta-v from the mass consumed (Tsiolkovsky equation).

        ΔV = Isp × g0 × ln(m_initial / m_final)

        Args:
            specific_impulse: Specific impulse (s)

        Returns:
            Ideal delta-v (m/s)
        """
        return _ideal_delta_v(specific_impulse, self.initial_mass, self.final_mass)

    def get_dynamics_contribution(self, dynamics: Dynamics) -> np.ndarray:
        """
        Contribution of one of this segment's dynamics at every state.

        Returns:
            Array of shape (number of states, contribution size)
        """
        if dynamics not in self.dynamics:
            raise ValueError(f"Dynamics '{dynamics.name}' is not part of segment '{self.name}'")
        return np.array([dynamics.get_dynamics_contribution(state) for state in self.states])

    def calculate_states_at(self, instants, numerical_solver: NumericalSolver) -> list[State]:
        """
        Re-integrate the segment's dynamics to arbitrary instants.

        Raises:
            ValueError: If an instant lies outside the segment
        """
        instants = [float(instant) for instant in instants]
        lower, upper = sorted((self.start_instant, self.end_instant))
        outside = [instant for instant in instants if not lower <= instant <= upper]
        if outside:
            raise ValueError(f"Instants {outside} lie outside segment '{self.name}' [{lower}, {upper}]")

        system = SystemOfEquations.from_dynamics(self.dynamics, self.states[0])
        return numerical_solver.copy().integrate_time(self.states[0], instants, system)


def _mass_of(state: State) -> float:
    if not state.has_subset(MASS):
        raise ValueError("State does not carry a mass coordinate")
    return float(state.extract_coordinate(MASS)[0])


def _ideal_delta_v(specific_impulse: float, initial_mass: float, final_mass: float) -> float:
    if final_mass <= 0.0:
        return 0.0
    return specific_impulse * G0 * math.log(initial_mass / final_mass)


class Segment:
    """
    Propagation from an initial state until an event condition fires.

    A segment holds no run state: each solve works on a copy of its
    numerical solver and on a copy of its condition with RELATIVE
    targets captured at that solve's initial state. Segments can be
    shared and solved repeatedly.

    Args:
        name: Segment name, used in solutions and errors
        segment_type: COAST or MANEUVER
        event_condition: Stopping condition
        dynamics: Dynamics flown during the segment
        numerical_solver: Solver to integrate with

    Raises:
        ConfigurationError: If a collaborator is undefined
    """

    def __init__(
        self,
        name: str,
        segment_type: SegmentType,
        event_condition: EventCondition,
        dynamics: list[Dynamics],
        numerical_solver: NumericalSolver,
        thruster_dynamics: Dynamics | None = None,
    ):
        if not name:
            raise ConfigurationError("Segment name must not be empty")
        if event_condition is None:
            raise ConfigurationError(f"Segment '{name}' has an undefined event condition")
        if numerical_solver is None or not numerical_solver.is_defined():
            raise ConfigurationError(f"Segment '{name}' has an undefined numerical solver")
        if dynamics is None or any(item is None or not item.is_defined() for item in dynamics):
            raise ConfigurationError(f"Segment '{name}' has undefined dynamics")
        thruster_is_defined = thruster_dynamics is not None and thruster_dynamics.is_defined()
        if segment_type == SegmentType.MANEUVER and not thruster_is_defined:
            raise ConfigurationError(f"Maneuver segment '{name}' has an undefined thruster")

        self._name = name
        self._type = segment_type
        self._event_condition = event_condition
        self._dynamics = list(dynamics)
        self._numerical_solver = numerical_solver
        self._thruster_dynamics = thruster_dynamics

    @classmethod
    def coast(
        cls,
        name: str,
        event_condition: EventCondition,
        dynamics: list[Dynamics],
        numerical_solver: NumericalSolver,
    ) -> "Segment":
        return cls(name, SegmentType.COAST, event_condition, dynamics, numerical_solver)

    @classmethod
    def maneuver(
        cls,
        name: str,
        event_condition: EventCondition,
        thruster_dynamics: Dynamics,
        dynamics: list[Dynamics],
        numerical_solver: NumericalSolver,
    ) -> "Segment":
        return cls(name, SegmentType.MANEUVER, event_condition, dynamics, numerical_solver, thruster_dynamics)

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> SegmentType:
        return self._type

    @property
    def event_condition(self) -> EventCondition:
        return self._event_condition

    @property
    def dynamics(self) -> list[Dynamics]:
        """Every dynamics flown, thruster last for maneuvers."""
        if self._thruster_dynamics is None:
            return list(self._dynamics)
        return self._dynamics + [self._thruster_dynamics]

    @property
    def thruster_dynamics(self) -> Dynamics | None:
        return self._thruster_dynamics

    @property
    def numerical_solver(self) -> NumericalSolver:
        return self._numerical_solver

    def solve(
        self,
        state: State,
        maximum_propagation_duration: float = DEFAULT_MAXIMUM_PROPAGATION_DURATION,
    ) -> SegmentSolution:
        """
        Propagate ``state`` until the event condition is satisfied.

        Args:
            state: Initial state
            maximum_propagation_duration: Time allowed to reach the condition (s)

        Returns:
            SegmentSolution ending on the located crossing

        Raises:
            ConfigurationError: If a dynamics subset is missing from the state
            PropagationExhaustedError: If the condition is not reached in time
        """
        if not math.isfinite(maximum_propagation_duration) or maximum_propagation_duration <= 0.0:
            raise ValueError(
                f"Maximum propagation duration must be positive and finite, got {maximum_propagation_duration}"
            )

        dynamics = self.dynamics
        system = SystemOfEquations.from_dynamics(dynamics, state)
        event_condition = self._event_condition.resolve(state)
        numerical_solver = self._numerical_solver.copy()

        logger.info(
            "Segment '%s' (%s): propagating from t=%.3f s, limit %.1f s",
            self._name, self._type.name, state.instant, maximum_propagation_duration,
        )

        result = numerical_solver.integrate_time(
            state, state.instant + maximum_propagation_duration, system, event_condition
        )

        solution = SegmentSolution(
            name=self._name,
            dynamics=dynamics,
            states=numerical_solver.observed_states,
            condition_is_satisfied=result.condition_is_satisfied,
            segment_type=self._type,
            iteration_count=result.iteration_count,
            root_solver_has_converged=result.root_solver_has_converged,
        )

        if not result.condition_is_satisfied:
            raise PropagationExhaustedError(self._name, maximum_propagation_duration, solution)

        logger.info(
            "Segment '%s' reached '%s' at t=%.3f s (%d states)",
            self._name, event_condition.name, solution.end_instant, len(solution.states),
        )
        return solution

    def __repr__(self) -> str:
        return f"Segment({self._name!r}, {self._type.name}, condition={self._event_condition.name!r})"
