"""
Physical constants and solver defaults for trajectory propagation.

All quantities are SI. Instants are float seconds on a continuous
time scale chosen by the caller (e.g. seconds past J2000 TT).

References:
    - IERS Conventions (2010), Table 1.1
    - NIST standard gravity
"""

from typing import Final

# Standard gravitational acceleration (m/s²)
# Used for mass flow: m_dot = F / (Isp * g0)
# Reference: NIST standard gravity
G0: Final[float] = 9.80665

# Earth gravitational parameter (m³/s²)
# Reference: IERS Conventions (2010)
MU_EARTH: Final[float] = 3.986004418e14

SECONDS_PER_DAY: Final[float] = 86400.0


# =============================================================================
# Numerical Solver Defaults
# =============================================================================

# Initial step (s) for adaptive steppers, fixed step for RK4
DEFAULT_TIME_STEP: Final[float] = 5.0

DEFAULT_RELATIVE_TOLERANCE: Final[float] = 1.0e-12
DEFAULT_ABSOLUTE_TOLERANCE: Final[float] = 1.0e-12

# Smallest adaptive step (s) before integration is declared unstable
MINIMUM_TIME_STEP: Final[float] = 1.0e-9


# =============================================================================
# Root Solver Defaults
# =============================================================================

DEFAULT_ROOT_SOLVER_MAXIMUM_ITERATION_COUNT: Final[int] = 100
DEFAULT_ROOT_SOLVER_TOLERANCE: Final[float] = 1.0e-12


# =============================================================================
# Segment / Sequence Defaults
# =============================================================================

# Upper bound on a single segment or condition-driven sequence (s)
DEFAULT_MAXIMUM_PROPAGATION_DURATION: Final[float] = 30.0 * SECONDS_PER_DAY
