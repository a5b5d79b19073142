"""
Scalar root finding for event location.

Provides bracket expansion from an initial guess, Brent refinement of
a valid bracket (scipy.optimize.brentq) and a plain bisection
fallback. Non-convergence is reported through the solution flag, not
raised.

References:
    - Brent, R.P. (1973). "Algorithms for Minimization Without
      Derivatives", Ch. 4
    - Press et al. (2007). "Numerical Recipes", 3rd ed., Sec. 9.1-9.3
"""

from dataclasses import dataclass
from typing import Callable

import numpy as np
from scipy.optimize import brentq

from .constants import DEFAULT_ROOT_SOLVER_MAXIMUM_ITERATION_COUNT, DEFAULT_ROOT_SOLVER_TOLERANCE


@dataclass(frozen=True)
class RootSolverSolution:
    """
    Result of a root search.

    Attributes:
        root: Best estimate of the root
        iteration_count: Function evaluations spent (bracketing included)
        has_converged: Whether the tolerance was reached within budget
    """
    root: float
    iteration_count: int
    has_converged: bool


class RootSolver:
    """
    Scalar root finder with a shared iteration budget.

    Args:
        maximum_iteration_count: Iteration budget per solve
        tolerance: Absolute tolerance on the root

    Example:
        >>> solver = RootSolver(100, 1e-12)
        >>> solver.bracket_and_solve(lambda x: x - 2.0, 1.0, True).root
        2.0
    """

    def __init__(
        self,
        maximum_iteration_count: int = DEFAULT_ROOT_SOLVER_MAXIMUM_ITERATION_COUNT,
        tolerance: float = DEFAULT_ROOT_SOLVER_TOLERANCE,
    ):
        if maximum_iteration_count < 1:
            raise ValueError(f"Maximum iteration count must be at least 1, got {maximum_iteration_count}")
        if tolerance <= 0.0:
            raise ValueError(f"Tolerance must be positive, got {tolerance}")
        self._maximum_iteration_count = int(maximum_iteration_count)
        self._tolerance = float(tolerance)

    @classmethod
    def default(cls) -> "RootSolver":
        return cls()

    @property
    def maximum_iteration_count(self) -> int:
        return self._maximum_iteration_count

    @property
    def tolerance(self) -> float:
        return self._tolerance

    def bracket_and_solve(
        self,
        function: Callable[[float], float],
        initial_guess: float,
        is_rising: bool,
    ) -> RootSolverSolution:
        """
        Expand a bracket outward from ``initial_guess``, then refine it.

        The expansion step starts at |initial_guess| (1 for a zero guess)
        and doubles until the function changes sign. ``is_rising`` tells
        which side of the guess the root lies on for a given sign.
        """
        guess = float(initial_guess)
        f_guess = function(guess)
        if f_guess == 0.0:
            return RootSolverSolution(guess, 0, True)

        # Rising and negative (or falling and positive) means the root is above
        search_up = (f_guess < 0.0) == is_rising
        step = abs(guess) if guess != 0.0 else 1.0

        lower = upper = guess
        f_lower = f_upper = f_guess
        iteration_count = 0

        while iteration_count < self._maximum_iteration_count:
            iteration_count += 1
            if search_up:
                lower, f_lower = upper, f_upper
                upper = upper + step
                f_upper = function(upper)
                if f_upper == 0.0:
                    return RootSolverSolution(upper, iteration_count, True)
            else:
                upper, f_upper = lower, f_lower
                lower = lower - step
                f_lower = function(lower)
                if f_lower == 0.0:
                    return RootSolverSolution(lower, iteration_count, True)

            if np.sign(f_lower) != np.sign(f_upper):
                break
            step *= 2.0
        else:
            return RootSolverSolution(guess, iteration_count, False)

        remaining = self._maximum_iteration_count - iteration_count
        if remaining < 1:
            return RootSolverSolution(0.5 * (lower + upper), iteration_count, False)

        refined = self._refine(function, lower, upper, remaining)
        return RootSolverSolution(refined.root, iteration_count + refined.iteration_count, refined.has_converged)

    def solve(self, function: Callable[[float], float], lower_bound: float, upper_bound: float) -> RootSolverSolution:
        """
        Refine a bracket with Brent's method.

        Raises:
            ValueError: If the function does not change sign over the bracket
        """
        return self._refine(function, lower_bound, upper_bound, self._maximum_iteration_count)

    def _refine(self, function, lower_bound: float, upper_bound: float, maximum_iteration_count: int) -> RootSolverSolution:
        f_lower = function(lower_bound)
        if f_lower == 0.0:
            return RootSolverSolution(float(lower_bound), 0, True)
        f_upper = function(upper_bound)
        if f_upper == 0.0:
            return RootSolverSolution(float(upper_bound), 0, True)
        if np.sign(f_lower) == np.sign(f_upper):
            raise ValueError(
                f"Root is not bracketed: f({lower_bound})={f_lower}, f({upper_bound})={f_upper}"
            )

        root, result = brentq(
            function,
            lower_bound,
            upper_bound,
            xtol=self._tolerance,
            maxiter=maximum_iteration_count,
            full_output=True,
            disp=False,
        )
        return RootSolverSolution(float(root), int(result.iterations), bool(result.converged))

    def bisection(self, function: Callable[[float], float], lower_bound: float, upper_bound: float) -> RootSolverSolution:
        """
        Plain bisection over a valid bracket.

        Raises:
            ValueError: If the function does not change sign over the bracket
        """
        lower, upper = float(lower_bound), float(upper_bound)
        f_lower = function(lower)
        if f_lower == 0.0:
            return RootSolverSolution(lower, 0, True)
        f_upper = function(upper)
        if f_upper == 0.0:
            return RootSolverSolution(upper, 0, True)
        if np.sign(f_lower) == np.sign(f_upper):
            raise ValueError(
                f"Root is not bracketed: f({lower_bound})={f_lower}, f({upper_bound})={f_upper}"
            )

        for iteration in range(1, self._maximum_iteration_count + 1):
            middle = 0.5 * (lower + upper)
            f_middle = function(middle)
            if f_middle == 0.0 or 0.5 * abs(upper - lower) < self._tolerance:
                return RootSolverSolution(middle, iteration, True)
            if np.sign(f_middle) == np.sign(f_lower):
                lower, f_lower = middle, f_middle
            else:
                upper = middle

        return RootSolverSolution(0.5 * (lower + upper), self._maximum_iteration_count, False)

    def __repr__(self) -> str:
        return f"RootSolver(maximum_iteration_count={self._maximum_iteration_count}, tolerance={self._tolerance})"
