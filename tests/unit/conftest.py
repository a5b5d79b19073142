"""Shared fixtures for trajkit unit tests."""

import numpy as np
import pytest

from trajkit.core.constants import MU_EARTH
from trajkit.core.coordinate_subset import CARTESIAN_POSITION, CARTESIAN_VELOCITY, MASS
from trajkit.core.forces import CentralBodyGravity, PositionDerivative
from trajkit.core.frame import GCRF
from trajkit.core.state_builder import StateBuilder

ORBIT_RADIUS = 7.0e6  # m


@pytest.fixture
def orbit_builder():
    """Builder for position/velocity states in GCRF."""
    return StateBuilder(GCRF, [CARTESIAN_POSITION, CARTESIAN_VELOCITY])


@pytest.fixture
def mass_builder():
    """Builder for position/velocity/mass states in GCRF."""
    return StateBuilder(GCRF, [CARTESIAN_POSITION, CARTESIAN_VELOCITY, MASS])


@pytest.fixture
def circular_state(orbit_builder):
    """Circular equatorial orbit at 7000 km, starting on +x at t=0."""
    speed = np.sqrt(MU_EARTH / ORBIT_RADIUS)
    return orbit_builder.build(0.0, [ORBIT_RADIUS, 0.0, 0.0, 0.0, speed, 0.0])


@pytest.fixture
def orbital_period():
    """Period of the circular fixture orbit (s)."""
    return 2.0 * np.pi * np.sqrt(ORBIT_RADIUS ** 3 / MU_EARTH)


@pytest.fixture
def two_body_dynamics():
    """Kinematics plus point-mass Earth gravity."""
    return [PositionDerivative(), CentralBodyGravity()]


@pytest.fixture
def spacecraft_state(mass_builder):
    """1000 kg spacecraft on the circular fixture orbit."""
    speed = np.sqrt(MU_EARTH / ORBIT_RADIUS)
    return mass_builder.build(0.0, [ORBIT_RADIUS, 0.0, 0.0, 0.0, speed, 0.0, 1000.0])
