"""
Reference dynamics: kinematics, point-mass gravity and constant thrust.

These cover the force models needed to fly a coast/burn mission
timeline around a single central body. Heavier environment models
(harmonics, drag, third bodies) plug in through the same Dynamics
interface.

References:
    - Vallado, D.A. (2013). "Fundamentals of Astrodynamics and
      Applications", 4th ed., Ch. 1
    - Sutton & Biblarz, "Rocket Propulsion Elements", 9th ed., Ch. 2
"""

import numpy as np
from numba import jit

from .constants import G0, MU_EARTH
from .coordinate_subset import CARTESIAN_POSITION, CARTESIAN_VELOCITY, MASS, CoordinateSubset
from .dynamics import Dynamics
from .frame import Frame
from .types import PropellantExhaustedError


# =============================================================================
# Kernels (Numba JIT)
# =============================================================================

@jit(nopython=True, cache=True)
def calculate_point_mass_gravity(position: np.ndarray, mu: float) -> np.ndarray:
    """
    Point-mass gravitational acceleration.

        a = -mu * r / |r|^3

    Args:
        position: Position relative to the central body (m)
        mu: Gravitational parameter (m³/s²)

    Returns:
        Acceleration (m/s²)
    """
    r2 = position[0] * position[0] + position[1] * position[1] + position[2] * position[2]
    r3 = r2 * np.sqrt(r2)
    acceleration = np.zeros(3, dtype=np.float64)
    for i in range(3):
        acceleration[i] = -mu * position[i] / r3
    return acceleration


@jit(nopython=True, cache=True)
def calculate_thrust_acceleration(
    direction: np.ndarray,
    thrust: float,
    mass: float
) -> np.ndarray:
    """
    Acceleration from thrust along a direction.

    Args:
        direction: Thrust direction (normalized here)
        thrust: Thrust magnitude (N)
        mass: Current vehicle mass (kg)

    Returns:
        Acceleration (m/s²)
    """
    norm = np.sqrt(direction[0] ** 2 + direction[1] ** 2 + direction[2] ** 2)
    acceleration = np.zeros(3, dtype=np.float64)
    if norm < 1e-30:
        return acceleration
    scale = thrust / (mass * norm)
    for i in range(3):
        acceleration[i] = direction[i] * scale
    return acceleration


# =============================================================================
# Dynamics
# =============================================================================

class PositionDerivative(Dynamics):
    """Kinematics: d(position)/dt = velocity."""

    def __init__(self, name: str = "Position Derivative"):
        super().__init__(name)

    def read_subsets(self) -> list[CoordinateSubset]:
        return [CARTESIAN_VELOCITY]

    def write_subsets(self) -> list[CoordinateSubset]:
        return [CARTESIAN_POSITION]

    def compute_contribution(self, instant: float, x: np.ndarray, frame: Frame) -> np.ndarray:
        return x.copy()


class CentralBodyGravity(Dynamics):
    """
    Point-mass gravity of a central body at the frame origin.

    Args:
        gravitational_parameter: mu of the central body (m³/s²)
    """

    def __init__(self, gravitational_parameter: float = MU_EARTH, name: str = "Central Body Gravity"):
        super().__init__(name)
        if gravitational_parameter <= 0.0:
            raise ValueError(f"Gravitational parameter must be positive, got {gravitational_parameter}")
        self._mu = float(gravitational_parameter)

    @property
    def gravitational_parameter(self) -> float:
        return self._mu

    def read_subsets(self) -> list[CoordinateSubset]:
        return [CARTESIAN_POSITION]

    def write_subsets(self) -> list[CoordinateSubset]:
        return [CARTESIAN_VELOCITY]

    def compute_contribution(self, instant: float, x: np.ndarray, frame: Frame) -> np.ndarray:
        return calculate_point_mass_gravity(np.ascontiguousarray(x, dtype=np.float64), self._mu)


class ConstantThrust(Dynamics):
    """
    Constant-magnitude thrust with propellant depletion.

    Mass flow follows the rocket equation definition of Isp:
        m_dot = F / (Isp * g0)

    The thrust points along the current velocity unless a fixed
    direction (in the state frame) is given.

    Args:
        thrust: Thrust magnitude (N)
        specific_impulse: Specific impulse (s)
        dry_mass: Mass below which the thruster cannot fire (kg)
        direction: Fixed thrust direction, or None to follow velocity

    Raises:
        PropellantExhaustedError: During evaluation, once the mass has
            reached dry_mass
    """

    def __init__(
        self,
        thrust: float,
        specific_impulse: float,
        dry_mass: float = 0.0,
        direction: np.ndarray | None = None,
        name: str = "Constant Thrust",
    ):
        super().__init__(name)
        if thrust <= 0.0:
            raise ValueError(f"Thrust must be positive, got {thrust}")
        if specific_impulse <= 0.0:
            raise ValueError(f"Specific impulse must be positive, got {specific_impulse}")
        if dry_mass < 0.0:
            raise ValueError(f"Dry mass must be non-negative, got {dry_mass}")

        self._thrust = float(thrust)
        self._specific_impulse = float(specific_impulse)
        self._dry_mass = float(dry_mass)
        self._direction = None if direction is None else np.asarray(direction, dtype=np.float64)

    @property
    def thrust(self) -> float:
        return self._thrust

    @property
    def specific_impulse(self) -> float:
        return self._specific_impulse

    @property
    def dry_mass(self) -> float:
        return self._dry_mass

    @property
    def mass_flow_rate(self) -> float:
        return self._thrust / (self._specific_impulse * G0)

    def read_subsets(self) -> list[CoordinateSubset]:
        return [CARTESIAN_POSITION, CARTESIAN_VELOCITY, MASS]

    def write_subsets(self) -> list[CoordinateSubset]:
        return [CARTESIAN_VELOCITY, MASS]

    def compute_contribution(self, instant: float, x: np.ndarray, frame: Frame) -> np.ndarray:
        velocity = x[3:6]
        mass = x[6]

        if mass <= self._dry_mass:
            raise PropellantExhaustedError(
                f"Thruster '{self.name}' out of propellant at t={instant:.3f} s "
                f"(mass {mass:.3f} kg, dry mass {self._dry_mass:.3f} kg)"
            )

        direction = velocity if self._direction is None else self._direction
        acceleration = calculate_thrust_acceleration(
            np.ascontiguousarray(direction, dtype=np.float64), self._thrust, mass
        )

        contribution = np.empty(4, dtype=np.float64)
        contribution[:3] = acceleration
        contribution[3] = -self.mass_flow_rate
        return contribution
