"""
Input Validation Framework for numerical solver settings.

Checks integration step, tolerances and root solver settings before a
solver is built, with detailed error messages and warnings.
"""

import math
from dataclasses import dataclass, field
from enum import Enum


class ValidationSeverity(Enum):
    """How serious a settings problem is."""
    ERROR = "error"      # Solver cannot be built
    WARNING = "warning"  # Accepted, likely a mistake
    INFO = "info"        # Note only


@dataclass
class ValidationIssue:
    """One problem found in solver settings."""
    severity: ValidationSeverity
    field: str
    message: str
    value: float | None = None
    valid_range: tuple[float, float] | None = None

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.field}: {self.message}"


@dataclass
class ValidationResult:
    """Outcome of validating a set of solver settings."""
    is_valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]

    @property
    def infos(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.INFO]

    def __str__(self) -> str:
        if self.is_valid and not self.warnings:
            return "All settings valid"

        return "\n".join(str(issue) for issue in self.issues)


# =============================================================================
# Limits
# =============================================================================

# Tolerances below this cannot be met in double precision
TOLERANCE_MIN_ACHIEVABLE = 1e-15
# Tolerances above this give visibly inaccurate trajectories
TOLERANCE_MAX_RECOMMENDED = 1e-3

# Step above one day usually means a unit mistake (s)
TIME_STEP_MAX_RECOMMENDED = 86400.0

ROOT_SOLVER_ITERATIONS_MIN_RECOMMENDED = 20


# =============================================================================
# Validation Functions
# =============================================================================

def validate_time_step(time_step: float) -> list[ValidationIssue]:
    """
    Validate the initial (adaptive) or fixed (RK4) integration step.

    Args:
        time_step: Step size in seconds

    Returns:
        List of validation issues
    """
    issues = []

    if not math.isfinite(time_step) or time_step <= 0.0:
        issues.append(ValidationIssue(
            severity=ValidationSeverity.ERROR,
            field="Time Step",
            message=f"Time step must be positive and finite (got {time_step})",
            value=time_step
        ))
        return issues

    if time_step > TIME_STEP_MAX_RECOMMENDED:
        issues.append(ValidationIssue(
            severity=ValidationSeverity.WARNING,
            field="Time Step",
            message=f"Very large time step ({time_step:.1f} s) - check units",
            value=time_step
        ))

    return issues


def validate_tolerance(tolerance: float, name: str) -> list[ValidationIssue]:
    """
    Validate an integration tolerance.

    Args:
        tolerance: Tolerance value
        name: Field label ("Relative Tolerance", ...)

    Returns:
        List of validation issues
    """
    issues = []

    if not math.isfinite(tolerance) or tolerance <= 0.0:
        issues.append(ValidationIssue(
            severity=ValidationSeverity.ERROR,
            field=name,
            message=f"Tolerance must be positive and finite (got {tolerance})",
            value=tolerance
        ))
        return issues

    if tolerance < TOLERANCE_MIN_ACHIEVABLE:
        issues.append(ValidationIssue(
            severity=ValidationSeverity.WARNING,
            field=name,
            message=f"Tolerance {tolerance:.1e} is below double precision - steps may collapse",
            value=tolerance,
            valid_range=(TOLERANCE_MIN_ACHIEVABLE, TOLERANCE_MAX_RECOMMENDED)
        ))
    elif tolerance > TOLERANCE_MAX_RECOMMENDED:
        issues.append(ValidationIssue(
            severity=ValidationSeverity.WARNING,
            field=name,
            message=f"Loose tolerance {tolerance:.1e} - trajectory accuracy will be poor",
            value=tolerance,
            valid_range=(TOLERANCE_MIN_ACHIEVABLE, TOLERANCE_MAX_RECOMMENDED)
        ))

    return issues


def validate_root_solver(maximum_iteration_count: int, tolerance: float) -> list[ValidationIssue]:
    """
    Validate root solver settings used for event location.

    Args:
        maximum_iteration_count: Iteration budget
        tolerance: Absolute tolerance on the event time (s)

    Returns:
        List of validation issues
    """
    issues = []

    if maximum_iteration_count < 1:
        issues.append(ValidationIssue(
            severity=ValidationSeverity.ERROR,
            field="Root Solver Iterations",
            message=f"Iteration count must be at least 1 (got {maximum_iteration_count})",
            value=float(maximum_iteration_count)
        ))
    elif maximum_iteration_count < ROOT_SOLVER_ITERATIONS_MIN_RECOMMENDED:
        issues.append(ValidationIssue(
            severity=ValidationSeverity.WARNING,
            field="Root Solver Iterations",
            message=f"Only {maximum_iteration_count} iterations - event times may not converge",
            value=float(maximum_iteration_count)
        ))

    if not math.isfinite(tolerance) or tolerance <= 0.0:
        issues.append(ValidationIssue(
            severity=ValidationSeverity.ERROR,
            field="Root Solver Tolerance",
            message=f"Tolerance must be positive and finite (got {tolerance})",
            value=tolerance
        ))

    return issues


def validate_solver_inputs(
    time_step: float,
    relative_tolerance: float,
    absolute_tolerance: float,
    root_solver_maximum_iteration_count: int = 100,
    root_solver_tolerance: float = 1e-12
) -> ValidationResult:
    """
    Validate all numerical solver inputs.

    Args:
        time_step: Initial or fixed step (s)
        relative_tolerance: Relative integration tolerance
        absolute_tolerance: Absolute integration tolerance
        root_solver_maximum_iteration_count: Event location budget
        root_solver_tolerance: Event location tolerance (s)

    Returns:
        ValidationResult with all issues
    """
    all_issues = []

    all_issues.extend(validate_time_step(time_step))
    all_issues.extend(validate_tolerance(relative_tolerance, "Relative Tolerance"))
    all_issues.extend(validate_tolerance(absolute_tolerance, "Absolute Tolerance"))
    all_issues.extend(validate_root_solver(root_solver_maximum_iteration_count, root_solver_tolerance))

    # One ERROR invalidates the whole result
    has_errors = any(i.severity == ValidationSeverity.ERROR for i in all_issues)

    return ValidationResult(
        is_valid=not has_errors,
        issues=all_issues
    )
