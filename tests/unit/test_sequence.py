"""
Unit tests for mission sequences.
"""

import numpy as np
import pytest

from trajkit.core.event_condition import BooleanCondition, Criterion, RealCondition
from trajkit.core.forces import ConstantThrust, PositionDerivative
from trajkit.core.numerical_solver import NumericalSolver
from trajkit.core.segment import Segment, SegmentType
from trajkit.core.sequence import Sequence, SequenceSolution
from trajkit.core.types import ConfigurationError, PropagationExhaustedError


def duration(seconds: float) -> RealCondition:
    return RealCondition.duration_condition(Criterion.POSITIVE_CROSSING, seconds)


class TestSequenceSolve:
    """Test fixed-repetition solving."""

    def test_three_repetitions_chain(self, circular_state, two_body_dynamics):
        """Each repetition starts where the previous one ended."""
        sequence = Sequence(dynamics=two_body_dynamics)
        sequence.add_coast_segment(duration(100.0))

        solution = sequence.solve(circular_state, repetition_count=3)

        assert solution.execution_is_complete
        assert len(solution.segment_solutions) == 3
        for previous, current in zip(solution.segment_solutions[:-1], solution.segment_solutions[1:]):
            assert current.initial_state == previous.final_state
        assert solution.end_instant == pytest.approx(300.0, abs=1e-9)
        assert [s.name for s in solution.segment_solutions] == ["Coast 1"] * 3

    def test_repeated_segments_do_not_drift(self, circular_state, two_body_dynamics):
        """Chained duration segments end on the summed duration."""
        sequence = Sequence(dynamics=two_body_dynamics)
        sequence.add_coast_segment(duration(2.0))

        solution = sequence.solve(circular_state, repetition_count=3)

        ends = [s.end_instant for s in solution.segment_solutions]
        assert ends == pytest.approx([2.0, 4.0, 6.0], abs=1e-13)

    def test_states_skip_boundary_duplicates(self, circular_state, two_body_dynamics):
        """Concatenated states are strictly ordered in time."""
        sequence = Sequence(dynamics=two_body_dynamics)
        sequence.add_coast_segment(duration(50.0))
        sequence.add_coast_segment(duration(70.0))

        solution = sequence.solve(circular_state)
        instants = [s.instant for s in solution.states]

        assert all(b > a for a, b in zip(instants[:-1], instants[1:]))
        assert solution.propagation_duration == pytest.approx(120.0, abs=1e-9)

    def test_exhausted_segment_marks_incomplete(self, circular_state, two_body_dynamics):
        """A segment running out of time ends the run without raising."""
        sequence = Sequence(dynamics=two_body_dynamics, maximum_propagation_duration=50.0)
        sequence.add_coast_segment(duration(100.0))
        sequence.add_coast_segment(duration(10.0))

        solution = sequence.solve(circular_state)

        assert not solution.execution_is_complete
        assert len(solution.segment_solutions) == 1
        assert not solution.segment_solutions[0].condition_is_satisfied
        assert solution.end_instant == pytest.approx(50.0)

    def test_coast_and_maneuver(self, spacecraft_state, two_body_dynamics):
        """Mass only changes during the maneuver."""
        sequence = Sequence(dynamics=two_body_dynamics)
        sequence.add_coast_segment(duration(30.0))
        sequence.add_maneuver_segment(duration(20.0), ConstantThrust(thrust=200.0, specific_impulse=320.0))

        solution = sequence.solve(spacecraft_state)
        coast, burn = solution.segment_solutions

        assert burn.name == "Maneuver 2"
        assert burn.segment_type == SegmentType.MANEUVER
        assert coast.compute_delta_mass() == 0.0
        assert solution.compute_delta_mass() == pytest.approx(burn.compute_delta_mass())
        assert solution.compute_delta_v(320.0) > 0.0

    def test_calculate_states_at(self, circular_state, two_body_dynamics):
        """States are recomputed inside whichever segment holds them."""
        sequence = Sequence(dynamics=two_body_dynamics)
        sequence.add_coast_segment(duration(50.0))
        sequence.add_coast_segment(duration(50.0))
        solution = sequence.solve(circular_state)

        states = solution.calculate_states_at([75.0, 25.0], NumericalSolver.default())
        assert [s.instant for s in states] == [75.0, 25.0]
        with pytest.raises(ValueError):
            solution.calculate_states_at([500.0], NumericalSolver.default())


class TestSolveToCondition:
    """Test condition-driven repetition."""

    def test_repeats_until_condition(self, circular_state, two_body_dynamics):
        """Segments repeat until the outer condition is met."""
        sequence = Sequence(dynamics=two_body_dynamics)
        sequence.add_coast_segment(duration(100.0))

        solution = sequence.solve_to_condition(
            circular_state, RealCondition.instant_condition(Criterion.POSITIVE_CROSSING, 350.0)
        )

        assert solution.execution_is_complete
        assert len(solution.segment_solutions) == 4
        assert solution.end_instant == pytest.approx(400.0, abs=1e-9)

    def test_relative_outer_condition(self, orbit_builder):
        """A relative outer target is measured from the sequence start."""
        sequence = Sequence(dynamics=[])
        sequence.add_coast_segment(duration(100.0))
        state = orbit_builder.build(1.0e4, np.ones(6))

        solution = sequence.solve_to_condition(state, duration(250.0))

        assert len(solution.segment_solutions) == 3
        assert solution.end_instant == pytest.approx(1.03e4, abs=1e-9)

    def test_exhaustion_raises_with_partial_solution(self, circular_state, two_body_dynamics):
        """Running out of time raises, carrying what was computed."""
        sequence = Sequence(dynamics=two_body_dynamics)
        sequence.add_coast_segment(duration(100.0))

        with pytest.raises(PropagationExhaustedError) as exc_info:
            sequence.solve_to_condition(
                circular_state, BooleanCondition("never", lambda state: False), maximum_propagation_duration=250.0
            )

        partial = exc_info.value.solution
        assert isinstance(partial, SequenceSolution)
        assert not partial.execution_is_complete
        assert len(partial.segment_solutions) == 3
        assert partial.end_instant == pytest.approx(250.0)

    def test_no_progress_raises(self, circular_state, two_body_dynamics):
        """Segments that never advance time cannot reach the condition."""
        sequence = Sequence(dynamics=two_body_dynamics)
        sequence.add_coast_segment(BooleanCondition("immediately", lambda state: True))

        with pytest.raises(PropagationExhaustedError):
            sequence.solve_to_condition(circular_state, BooleanCondition("never", lambda state: False))


class TestSequenceConfiguration:
    """Test construction checks."""

    def test_empty_sequence_raises(self, circular_state):
        """Solving needs at least one segment."""
        with pytest.raises(ConfigurationError):
            Sequence().solve(circular_state)
        with pytest.raises(ConfigurationError):
            Sequence().solve_to_condition(circular_state, duration(10.0))

    def test_invalid_repetition_count(self, circular_state):
        """The repetition count must be positive."""
        sequence = Sequence()
        sequence.add_coast_segment(duration(10.0))
        with pytest.raises(ConfigurationError):
            sequence.solve(circular_state, repetition_count=0)

    def test_undefined_collaborators(self):
        """Undefined solver, dynamics or segments are rejected."""
        with pytest.raises(ConfigurationError):
            Sequence(numerical_solver=NumericalSolver.undefined())
        with pytest.raises(ConfigurationError):
            Sequence(dynamics=[None])
        with pytest.raises(ConfigurationError):
            Sequence(dynamics=[PositionDerivative(name="")])
        with pytest.raises(ConfigurationError):
            Sequence().add_segment(None)
        with pytest.raises(ConfigurationError):
            Sequence(maximum_propagation_duration=-1.0)

    def test_segments_are_kept_in_order(self):
        """Explicit segments are stored as given."""
        solver = NumericalSolver.default_conditional()
        first = Segment.coast("First", duration(1.0), [], solver)
        second = Segment.coast("Second", duration(2.0), [], solver)

        sequence = Sequence(segments=[first, second])

        assert [s.name for s in sequence.segments] == ["First", "Second"]
        assert sequence.maximum_propagation_duration == 30.0 * 86400.0
