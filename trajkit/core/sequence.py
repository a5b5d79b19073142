"""
Mission sequences: ordered, repeatable chains of segments.

Each segment starts from the final state of the one before it. A
sequence runs either a fixed number of repetitions or until an outer
condition holds.
"""

import logging
import math
from dataclasses import dataclass

from .constants import DEFAULT_MAXIMUM_PROPAGATION_DURATION
from .dynamics import Dynamics
from .event_condition import EventCondition
from .numerical_solver import NumericalSolver
from .segment import Segment, SegmentSolution, _ideal_delta_v
from .state import State
from .types import ConfigurationError, PropagationExhaustedError

logger = logging.getLogger(__name__)


@dataclass
class SequenceSolution:
    """
    Trajectory produced by a sequence.

    Attributes:
        segment_solutions: Solutions in execution order
        execution_is_complete: False if a segment gave up before its condition
    """
    segment_solutions: list[SegmentSolution]
    execution_is_complete: bool

    @property
    def states(self) -> list[State]:
        """All states in order, without repeating segment boundary states."""
        states: list[State] = []
        for solution in self.segment_solutions:
            segment_states = solution.states
            if states and segment_states and segment_states[0].instant == states[-1].instant:
                segment_states = segment_states[1:]
            states.extend(segment_states)
        return states

    @property
    def start_instant(self) -> float:
        return self.segment_solutions[0].start_instant

    @property
    def end_instant(self) -> float:
        return self.segment_solutions[-1].end_instant

    @property
    def propagation_duration(self) -> float:
        return self.end_instant - self.start_instant

    @property
    def initial_mass(self) -> float:
        return self.segment_solutions[0].initial_mass

    @property
    def final_mass(self) -> float:
        return self.segment_solutions[-1].final_mass

    def compute_delta_mass(self) -> float:
        return self.initial_mass - self.final_mass

    def compute_delta_v(self, specific_impulse: float) -> float:
        """Ideal delta-v over the whole sequence (m/s)."""
        return _ideal_delta_v(specific_impulse, self.initial_mass, self.final_mass)

    def calculate_states_at(self, instants, numerical_solver: NumericalSolver) -> list[State]:
        """
        States at arbitrary instants, each computed within its own segment.

        Raises:
            ValueError: If an instant lies outside the sequence
        """
        instants = [float(instant) for instant in instants]
        results: list[State | None] = [None] * len(instants)

        for solution in self.segment_solutions:
            lower, upper = sorted((solution.start_instant, solution.end_instant))
            indexes = [i for i, t in enumerate(instants) if results[i] is None and lower <= t <= upper]
            if not indexes:
                continue
            states = solution.calculate_states_at([instants[i] for i in indexes], numerical_solver)
            for index, state in zip(indexes, states):
                results[index] = state

        outside = [instants[i] for i, result in enumerate(results) if result is None]
        if outside:
            raise ValueError(f"Instants {outside} lie outside the sequence")
        return results


class Sequence:
    """
    Ordered list of segments solved back to back.

    Args:
        segments: Initial segments
        numerical_solver: Solver for segments added through the helpers
            (default: NumericalSolver.default_conditional())
        dynamics: Dynamics for segments added through the helpers
        maximum_propagation_duration: Time limit of each segment (s)

    Raises:
        ConfigurationError: If a collaborator is undefined

    Example:
        >>> sequence = Sequence(dynamics=[PositionDerivative(), CentralBodyGravity()])
        >>> sequence.add_coast_segment(RealCondition.duration_condition(Criterion.POSITIVE_CROSSING, 600.0))
        >>> solution = sequence.solve(state, repetition_count=3)
    """

    def __init__(
        self,
        segments: list[Segment] | None = None,
        numerical_solver: NumericalSolver | None = None,
        dynamics: list[Dynamics] | None = None,
        maximum_propagation_duration: float = DEFAULT_MAXIMUM_PROPAGATION_DURATION,
    ):
        if numerical_solver is None:
            numerical_solver = NumericalSolver.default_conditional()
        elif not numerical_solver.is_defined():
            raise ConfigurationError("Sequence has an undefined numerical solver")
        if dynamics is not None and any(item is None or not item.is_defined() for item in dynamics):
            raise ConfigurationError("Sequence has undefined dynamics")
        if not math.isfinite(maximum_propagation_duration) or maximum_propagation_duration <= 0.0:
            raise ConfigurationError(
                f"Segment propagation duration limit must be positive, got {maximum_propagation_duration}"
            )

        self._segments: list[Segment] = []
        self._numerical_solver = numerical_solver
        self._dynamics = list(dynamics or [])
        self._maximum_propagation_duration = float(maximum_propagation_duration)

        self.add_segments(segments or [])

    @property
    def segments(self) -> list[Segment]:
        return list(self._segments)

    @property
    def numerical_solver(self) -> NumericalSolver:
        return self._numerical_solver

    @property
    def dynamics(self) -> list[Dynamics]:
        return list(self._dynamics)

    @property
    def maximum_propagation_duration(self) -> float:
        return self._maximum_propagation_duration

    def add_segment(self, segment: Segment) -> None:
        if segment is None:
            raise ConfigurationError("Cannot add an undefined segment")
        self._segments.append(segment)

    def add_segments(self, segments: list[Segment]) -> None:
        for segment in segments:
            self.add_segment(segment)

    def add_coast_segment(self, event_condition: EventCondition) -> Segment:
        """Append a coast with the sequence's dynamics and solver."""
        segment = Segment.coast(
            f"Coast {len(self._segments) + 1}",
            event_condition,
            self._dynamics,
            self._numerical_solver,
        )
        self.add_segment(segment)
        return segment

    def add_maneuver_segment(self, event_condition: EventCondition, thruster_dynamics: Dynamics) -> Segment:
        """Append a burn with the sequence's dynamics and solver."""
        segment = Segment.maneuver(
            f"Maneuver {len(self._segments) + 1}",
            event_condition,
            thruster_dynamics,
            self._dynamics,
            self._numerical_solver,
        )
        self.add_segment(segment)
        return segment

    def solve(self, state: State, repetition_count: int = 1) -> SequenceSolution:
        """
        Run the segment list ``repetition_count`` times.

        A segment that exhausts its time limit ends the run: its partial
        solution is kept and the result is flagged incomplete. Errors
        raised by dynamics propagate.

        Raises:
            ConfigurationError: If there are no segments or repetition_count < 1
        """
        if not self._segments:
            raise ConfigurationError("Sequence has no segments to solve")
        if repetition_count < 1:
            raise ConfigurationError(f"Repetition count must be at least 1, got {repetition_count}")

        solutions: list[SegmentSolution] = []
        current_state = state

        for repetition in range(repetition_count):
            logger.debug("Sequence repetition %d/%d from t=%.3f s", repetition + 1, repetition_count, current_state.instant)
            for segment in self._segments:
                try:
                    solution = segment.solve(current_state, self._maximum_propagation_duration)
                except PropagationExhaustedError as e:
                    logger.warning("Sequence stopped early: %s", e)
                    if e.solution is not None:
                        solutions.append(e.solution)
                    return SequenceSolution(solutions, execution_is_complete=False)

                solutions.append(solution)
                current_state = solution.final_state

        return SequenceSolution(solutions, execution_is_complete=True)

    def solve_to_condition(
        self,
        state: State,
        event_condition: EventCondition,
        maximum_propagation_duration: float = DEFAULT_MAXIMUM_PROPAGATION_DURATION,
    ) -> SequenceSolution:
        """
        Repeat the segment list until ``event_condition`` holds.

        The condition is checked after every segment against that
        segment's initial and final states. RELATIVE targets are
        captured once, at ``state``.

        Raises:
            ConfigurationError: If there are no segments
            PropagationExhaustedError: If the condition is not reached
                within ``maximum_propagation_duration``
        """
        if not self._segments:
            raise ConfigurationError("Sequence has no segments to solve")
        if event_condition is None:
            raise ConfigurationError("Sequence stopping condition is undefined")

        condition = event_condition.resolve(state)
        solutions: list[SegmentSolution] = []
        current_state = state

        while True:
            pass_start_instant = current_state.instant
            for segment in self._segments:
                remaining = maximum_propagation_duration - (current_state.instant - state.instant)
                if remaining <= 0.0:
                    raise PropagationExhaustedError(
                        condition.name,
                        maximum_propagation_duration,
                        SequenceSolution(solutions, execution_is_complete=False),
                        message=(
                            f"Sequence condition '{condition.name}' was not satisfied "
                            f"within {maximum_propagation_duration:.3f} s"
                        ),
                    )

                try:
                    solution = segment.solve(current_state, min(self._maximum_propagation_duration, remaining))
                except PropagationExhaustedError as e:
                    if e.solution is not None:
                        solutions.append(e.solution)
                    raise PropagationExhaustedError(
                        e.segment_name,
                        e.duration,
                        SequenceSolution(solutions, execution_is_complete=False),
                    ) from e

                solutions.append(solution)
                previous_state, current_state = current_state, solution.final_state

                if condition.is_satisfied(current_state, previous_state):
                    logger.info(
                        "Sequence condition '%s' satisfied at t=%.3f s after %d segments",
                        condition.name, current_state.instant, len(solutions),
                    )
                    return SequenceSolution(solutions, execution_is_complete=True)

            if current_state.instant == pass_start_instant:
                raise PropagationExhaustedError(
                    condition.name,
                    maximum_propagation_duration,
                    SequenceSolution(solutions, execution_is_complete=False),
                    message=(
                        f"Sequence made no progress toward '{condition.name}': "
                        f"every segment ended at its initial instant"
                    ),
                )

    def __repr__(self) -> str:
        names = ", ".join(segment.name for segment in self._segments)
        return f"Sequence([{names}])"
