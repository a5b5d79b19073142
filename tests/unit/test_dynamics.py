"""
Unit tests for dynamics aggregation and the reference force models.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from trajkit.core.constants import G0, MU_EARTH
from trajkit.core.coordinate_subset import CARTESIAN_POSITION, CARTESIAN_VELOCITY, MASS
from trajkit.core.dynamics import Dynamics, SystemOfEquations, build_contexts
from trajkit.core.forces import (
    CentralBodyGravity,
    ConstantThrust,
    PositionDerivative,
    calculate_point_mass_gravity,
)
from trajkit.core.types import ConfigurationError, DynamicsError, PropellantExhaustedError


class BadWidthDynamics(Dynamics):
    """Returns one value too many for its write footprint."""

    def __init__(self):
        super().__init__("Bad Width")

    def read_subsets(self):
        return [CARTESIAN_POSITION]

    def write_subsets(self):
        return [CARTESIAN_VELOCITY]

    def compute_contribution(self, instant, x, frame):
        return np.zeros(4)


class MassDrain(Dynamics):
    """Constant mass flow, reading nothing."""

    def __init__(self, rate):
        super().__init__("Mass Drain")
        self.rate = rate

    def read_subsets(self):
        return []

    def write_subsets(self):
        return [MASS]

    def compute_contribution(self, instant, x, frame):
        return np.array([-self.rate])


# =============================================================================
# Aggregation Tests
# =============================================================================

class TestSystemOfEquations:
    """Test context resolution and derivative accumulation."""

    def test_missing_read_subset_raises_before_stepping(self, circular_state):
        """A dynamics reading an unregistered subset is a configuration error."""
        thruster = ConstantThrust(thrust=10.0, specific_impulse=300.0)
        with pytest.raises(ConfigurationError):
            SystemOfEquations.from_dynamics([thruster], circular_state)

    def test_missing_write_subset_raises(self, circular_state):
        """A dynamics writing an unregistered subset is a configuration error."""
        with pytest.raises(ConfigurationError):
            build_contexts([MassDrain(1.0)], circular_state.coordinate_broker)

    def test_undefined_dynamics_raises(self, circular_state):
        """None in the dynamics list is rejected."""
        with pytest.raises(ConfigurationError):
            build_contexts([PositionDerivative(), None], circular_state.coordinate_broker)

    def test_contexts_hold_offsets(self, mass_builder):
        """Read and write indexes point into the full vector."""
        thruster = ConstantThrust(thrust=10.0, specific_impulse=300.0)
        (context,) = build_contexts([thruster], mass_builder.coordinate_broker)

        assert context.read_indexes == ((0, 3), (3, 3), (6, 1))
        assert context.write_indexes == ((3, 3), (6, 1))
        assert context.read_size == 7
        assert context.write_size == 4

    def test_two_body_derivative(self, circular_state):
        """Kinematics and gravity fill the position and velocity rates."""
        system = SystemOfEquations.from_dynamics(
            [PositionDerivative(), CentralBodyGravity()], circular_state
        )
        dxdt = system(circular_state.instant, circular_state.coordinates)

        r = circular_state.position[0]
        assert_allclose(dxdt[:3], circular_state.velocity)
        assert_allclose(dxdt[3:], [-MU_EARTH / r ** 2, 0.0, 0.0], rtol=1e-14)

    def test_contributions_to_same_subset_add(self, circular_state):
        """Two gravity fields writing velocity are summed."""
        single = SystemOfEquations.from_dynamics([CentralBodyGravity()], circular_state)
        double = SystemOfEquations.from_dynamics(
            [CentralBodyGravity(), CentralBodyGravity(MU_EARTH, name="Second Gravity")], circular_state
        )

        x = circular_state.coordinates
        assert_allclose(double(0.0, x), 2.0 * single(0.0, x), rtol=1e-15)

    def test_each_call_returns_fresh_array(self, circular_state):
        """The derivative does not accumulate across calls."""
        system = SystemOfEquations.from_dynamics([CentralBodyGravity()], circular_state)
        first = system(0.0, circular_state.coordinates)
        second = system(0.0, circular_state.coordinates)
        assert first is not second
        assert_allclose(first, second)

    def test_empty_dynamics_gives_zero_derivative(self, circular_state):
        """With nothing attached the state is constant."""
        system = SystemOfEquations.from_dynamics([], circular_state)
        assert np.all(system(0.0, circular_state.coordinates) == 0.0)

    def test_contribution_width_mismatch_raises(self, circular_state):
        """A contribution of the wrong width violates the dynamics contract."""
        system = SystemOfEquations.from_dynamics([BadWidthDynamics()], circular_state)
        with pytest.raises(DynamicsError):
            system(0.0, circular_state.coordinates)


# =============================================================================
# Force Model Tests
# =============================================================================

class TestForceModels:
    """Test the reference dynamics."""

    def test_point_mass_gravity_magnitude(self):
        """Gravity at radius r has magnitude mu / r^2, pointing inward."""
        position = np.array([3.0e6, 4.0e6, 0.0])
        acceleration = calculate_point_mass_gravity(position, MU_EARTH)

        assert_allclose(np.linalg.norm(acceleration), MU_EARTH / 5.0e6 ** 2, rtol=1e-14)
        assert_allclose(acceleration / np.linalg.norm(acceleration), -position / 5.0e6, rtol=1e-14)

    def test_gravity_rejects_non_positive_mu(self):
        """The gravitational parameter must be positive."""
        with pytest.raises(ValueError):
            CentralBodyGravity(0.0)

    def test_thrust_along_velocity(self, mass_builder):
        """Default thrust follows velocity and drains mass at F / (Isp g0)."""
        thruster = ConstantThrust(thrust=500.0, specific_impulse=300.0, dry_mass=100.0)
        state = mass_builder.build(0.0, [7.0e6, 0.0, 0.0, 0.0, 7.5e3, 0.0, 1000.0])

        contribution = thruster.get_dynamics_contribution(state)

        assert_allclose(contribution[:3], [0.0, 0.5, 0.0], atol=1e-15)
        assert contribution[3] == pytest.approx(-500.0 / (300.0 * G0))
        assert thruster.mass_flow_rate == pytest.approx(500.0 / (300.0 * G0))

    def test_thrust_fixed_direction(self, mass_builder):
        """A fixed direction is normalized and used as given."""
        thruster = ConstantThrust(thrust=100.0, specific_impulse=300.0, direction=[0.0, 0.0, 2.0])
        state = mass_builder.build(0.0, [7.0e6, 0.0, 0.0, 0.0, 7.5e3, 0.0, 50.0])

        contribution = thruster.get_dynamics_contribution(state)
        assert_allclose(contribution[:3], [0.0, 0.0, 2.0], atol=1e-15)

    def test_propellant_exhaustion_raises(self, mass_builder):
        """The thruster refuses to fire at or below dry mass."""
        thruster = ConstantThrust(thrust=100.0, specific_impulse=300.0, dry_mass=200.0)
        state = mass_builder.build(0.0, [7.0e6, 0.0, 0.0, 0.0, 7.5e3, 0.0, 200.0])
        with pytest.raises(PropellantExhaustedError):
            thruster.get_dynamics_contribution(state)

    def test_thruster_argument_validation(self):
        """Non-physical thruster parameters are rejected."""
        with pytest.raises(ValueError):
            ConstantThrust(thrust=0.0, specific_impulse=300.0)
        with pytest.raises(ValueError):
            ConstantThrust(thrust=10.0, specific_impulse=-1.0)
        with pytest.raises(ValueError):
            ConstantThrust(thrust=10.0, specific_impulse=300.0, dry_mass=-5.0)
