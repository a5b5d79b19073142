"""
Runge-Kutta steppers for trajectory propagation.

Fixed and adaptive steppers plus the compiled step-control and
dense-output kernels behind the numerical solver. The adaptive method
is Dormand-Prince 5(4) with its continuous extension, so states between
accepted steps can be recovered without re-integrating.

Contents:
    - DP5: 7-stage embedded pair whose last stage is the next first stage
    - Mixed absolute/relative error scaling per component
    - PI step controller
    - DP5 continuous extension (4th order) and RK4 cubic Hermite extension
    - Kernels compiled with Numba

References:
    - Dormand, J.R. & Prince, P.J. (1980). "A family of embedded
      Runge-Kutta formulae." J. Comp. Appl. Math. 6(1): 19-26.
    - Shampine, L.F. (1986). "Some practical Runge-Kutta formulas."
      Math. Comp. 46(173): 135-150.
    - Hairer, Nørsett & Wanner (1993). "Solving ODEs I: Nonstiff Problems"
"""

from typing import Callable

import numpy as np
from numba import jit


# =============================================================================
# DP5 Tableau
# =============================================================================

# Stage abscissae as fractions of h
DP5_C = np.array([
    0.0,
    1.0 / 5.0,
    3.0 / 10.0,
    4.0 / 5.0,
    8.0 / 9.0,
    1.0,
    1.0
], dtype=np.float64)

# Stage coupling: row i combines k_0..k_{i-1} into the input of stage i
DP5_A = np.array([
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [1.0/5.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [3.0/40.0, 9.0/40.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [44.0/45.0, -56.0/15.0, 32.0/9.0, 0.0, 0.0, 0.0, 0.0],
    [19372.0/6561.0, -25360.0/2187.0, 64448.0/6561.0, -212.0/729.0, 0.0, 0.0, 0.0],
    [9017.0/3168.0, -355.0/33.0, 46732.0/5247.0, 49.0/176.0, -5103.0/18656.0, 0.0, 0.0],
    [35.0/384.0, 0.0, 500.0/1113.0, 125.0/192.0, -2187.0/6784.0, 11.0/84.0, 0.0]
], dtype=np.float64)

# Propagating (5th order) weights
DP5_B5 = np.array([
    35.0 / 384.0,
    0.0,
    500.0 / 1113.0,
    125.0 / 192.0,
    -2187.0 / 6784.0,
    11.0 / 84.0,
    0.0
], dtype=np.float64)

# Embedded (4th order) weights
DP5_B4 = np.array([
    5179.0 / 57600.0,
    0.0,
    7571.0 / 16695.0,
    393.0 / 640.0,
    -92097.0 / 339200.0,
    187.0 / 2100.0,
    1.0 / 40.0
], dtype=np.float64)

# Local error weights
DP5_E = DP5_B5 - DP5_B4

# Continuous extension: y(t0 + theta*h) = y0 + h * sum_i k_i * sum_j P_ij theta^(j+1)
# Rows sum to DP5_B5 so theta = 1 reproduces the accepted step
DP5_P = np.array([
    [1.0, -8048581381.0/2820520608.0, 8663915743.0/2820520608.0, -12715105075.0/11282082432.0],
    [0.0, 0.0, 0.0, 0.0],
    [0.0, 131558114200.0/32700410799.0, -68118460800.0/10900136933.0, 87487479700.0/32700410799.0],
    [0.0, -1754552775.0/470086768.0, 14199869525.0/1410260304.0, -10690763975.0/1880347072.0],
    [0.0, 127303824393.0/49829197408.0, -318862633887.0/49829197408.0, 701980252875.0/199316789632.0],
    [0.0, -282668133.0/205662961.0, 2019193451.0/616988883.0, -1453857185.0/822651844.0],
    [0.0, 40617522.0/29380423.0, -110615467.0/29380423.0, 69997945.0/29380423.0]
], dtype=np.float64)


# =============================================================================
# Step-Size Controller
# =============================================================================

# Multiplier on the error-based step estimate
SAFETY = 0.9

# PI controller: h_new = h * SAFETY * err^-ALPHA * (err_prev / err)^BETA
ALPHA = 0.2    # 1/5 for a 5th order pair
BETA = 0.04    # Weight of the previous accepted error

# Bounds on the step change between two attempts
MAX_FACTOR = 5.0
MIN_FACTOR = 0.2


@jit(nopython=True, cache=True)
def error_norm(
    y_new: np.ndarray,
    y_old: np.ndarray,
    error: np.ndarray,
    atol: float,
    rtol: float
) -> float:
    """
    Worst component of the local error, scaled by its own tolerance.

    Component i may carry atol + rtol * max(|y_old_i|, |y_new_i|) of
    error; the step is acceptable when the result is at most 1.

    Args:
        y_new: Proposed state at the end of the step
        y_old: State at the start of the step
        error: Embedded error estimate (5th minus 4th order solution)
        atol: Absolute tolerance
        rtol: Relative tolerance

    Returns:
        Max-norm of error over allowed error
    """
    worst = 0.0
    for i in range(error.shape[0]):
        allowed = atol + rtol * max(abs(y_old[i]), abs(y_new[i]))
        worst = max(worst, abs(error[i]) / max(allowed, 1e-300))
    return worst


@jit(nopython=True, cache=True)
def compute_new_step_size(
    h: float,
    err_norm: float,
    prev_err_norm: float,
    h_min: float,
    h_max: float
) -> float:
    """
    Next step magnitude from the PI controller.

    The growth factor is held within [MIN_FACTOR, MAX_FACTOR] and never
    exceeds SAFETY after a rejected step (err_norm > 1). Callers apply
    the integration direction.

    Args:
        h: Magnitude of the step just attempted
        err_norm: Its scaled error norm
        prev_err_norm: Norm of the last accepted step, 0 for none
        h_min: Smallest magnitude returned
        h_max: Largest magnitude returned

    Returns:
        Step magnitude for the next attempt
    """
    if err_norm <= 1e-30:
        growth = MAX_FACTOR
    else:
        growth = SAFETY * err_norm ** -ALPHA
        if prev_err_norm > 1e-30:
            growth *= (prev_err_norm / err_norm) ** BETA

    growth = min(max(growth, MIN_FACTOR), MAX_FACTOR)
    if err_norm > 1.0:
        growth = min(growth, SAFETY)

    return min(max(h * growth, h_min), h_max)


# =============================================================================
# Dense Output Kernels (Numba JIT)
# =============================================================================

@jit(nopython=True, cache=True)
def dp5_dense_output(
    theta: float,
    h: float,
    y0: np.ndarray,
    k: np.ndarray
) -> np.ndarray:
    """
    Evaluate the Dormand-Prince continuous extension.

    Args:
        theta: Normalized position in the step, (t - t0) / h
        h: Signed step size
        y0: State at step start
        k: Stage derivatives of the step, shape (7, n)

    Returns:
        Interpolated state at t0 + theta * h
    """
    n = len(y0)
    powers = np.empty(4, dtype=np.float64)
    powers[0] = theta
    for j in range(1, 4):
        powers[j] = powers[j - 1] * theta

    weights = np.zeros(7, dtype=np.float64)
    for i in range(7):
        for j in range(4):
            weights[i] += DP5_P[i, j] * powers[j]

    y_interp = np.empty(n, dtype=np.float64)
    for m in range(n):
        acc = 0.0
        for i in range(7):
            acc += weights[i] * k[i, m]
        y_interp[m] = y0[m] + h * acc

    return y_interp




@jit(nopython=True, cache=True)
def cubic_hermite_interpolate(
    t_target: float,
    t0: float,
    t1: float,
    y0: np.ndarray,
    y1: np.ndarray,
    dy0: np.ndarray,
    dy1: np.ndarray
) -> np.ndarray:
    """
    Cubic matching values and derivatives at both ends of a step.

    Used as the continuous extension of fixed-step RK4. Steps may run
    backward (t1 < t0).

    Args:
        t_target: Instant to evaluate, between t0 and t1
        t0, t1: Step endpoints
        y0, y1: States at the endpoints
        dy0, dy1: Derivatives at the endpoints

    Returns:
        State at t_target
    """
    h = t1 - t0
    if abs(h) < 1e-30:
        return y0.copy()

    s = (t_target - t0) / h
    s2 = s * s
    s3 = s2 * s

    # Weights of y0, h*dy0, y1 and h*dy1
    w_y0 = 2.0 * s3 - 3.0 * s2 + 1.0
    w_dy0 = (s3 - 2.0 * s2 + s) * h
    w_y1 = 3.0 * s2 - 2.0 * s3
    w_dy1 = (s3 - s2) * h

    return w_y0 * y0 + w_dy0 * dy0 + w_y1 * y1 + w_dy1 * dy1


@jit(nopython=True, cache=True)
def linear_interpolate(
    t_target: float,
    t0: float,
    t1: float,
    y0: np.ndarray,
    y1: np.ndarray
) -> np.ndarray:
    """Straight line between two samples (first order)."""
    h = t1 - t0
    if abs(h) < 1e-30:
        return y0.copy()
    return y0 + ((t_target - t0) / h) * (y1 - y0)



# =============================================================================
# Steppers
# =============================================================================

def dp5_step(
    f: Callable[[float, np.ndarray], np.ndarray],
    t: float,
    y: np.ndarray,
    h: float,
    k1: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Single Dormand-Prince 5(4) step.

    The derivative function is arbitrary Python, so stages are assembled
    here with vectorized NumPy; only the per-component kernels are JIT
    compiled.

    Args:
        f: Right-hand side f(t, y)
        t: Current time
        y: Current state
        h: Signed step size
        k1: Derivative at (t, y), reused from the previous step (FSAL)

    Returns:
        (y_new, error_estimate, k) where k has shape (7, n) and
        k[6] = f(t + h, y_new)
    """
    n = len(y)
    k = np.empty((7, n), dtype=np.float64)
    k[0] = k1

    for i in range(1, 6):
        y_stage = y + h * (DP5_A[i, :i] @ k[:i])
        k[i] = f(t + DP5_C[i] * h, y_stage)

    y_new = y + h * (DP5_B5[:6] @ k[:6])
    k[6] = f(t + h, y_new)

    error = h * (DP5_E @ k)
    return y_new, error, k


def rk4_step(
    f: Callable[[float, np.ndarray], np.ndarray],
    t: float,
    y: np.ndarray,
    h: float,
    k1: np.ndarray
) -> np.ndarray:
    """
    Classic 4th order Runge-Kutta step.

    Args:
        f: Right-hand side f(t, y)
        t: Current time
        y: Current state
        h: Signed step size
        k1: Derivative at (t, y)

    Returns:
        State at t + h
    """
    k2 = f(t + 0.5 * h, y + 0.5 * h * k1)
    k3 = f(t + 0.5 * h, y + 0.5 * h * k2)
    k4 = f(t + h, y + h * k3)
    return y + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
