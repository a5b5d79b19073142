"""Exception hierarchy for trajectory propagation."""


class TrajectoryError(Exception):
    """Base exception for propagation failures."""
    pass


class ConfigurationError(TrajectoryError):
    """Exception raised when a propagation is set up inconsistently.

    Always raised before the first integration step.
    """
    pass


class IntegrationError(TrajectoryError):
    """Exception raised when the integrator cannot make numerical progress."""
    pass


class DynamicsError(TrajectoryError):
    """Exception raised when a dynamics contribution is invalid."""
    pass


class PropellantExhaustedError(DynamicsError):
    """Exception raised when a thruster runs out of propellant mid-maneuver."""
    pass


class PropagationExhaustedError(TrajectoryError):
    """
    Exception raised when a stopping condition is not reached in time.

    Attributes:
        segment_name: Name of the segment (or sequence) that gave up
        duration: Propagation duration attempted (s)
        solution: Partial solution up to the point of exhaustion, if any
    """

    def __init__(self, segment_name: str, duration: float, solution=None, message: str | None = None):
        super().__init__(
            message or f"Segment '{segment_name}' did not satisfy its event condition within {duration:.3f} s"
        )
        self.segment_name = segment_name
        self.duration = duration
        self.solution = solution
