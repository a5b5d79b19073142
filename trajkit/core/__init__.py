"""Core propagation engine - states, dynamics, events, solvers and mission segments."""

from .constants import G0, MU_EARTH
from .types import (
    TrajectoryError,
    ConfigurationError,
    IntegrationError,
    DynamicsError,
    PropellantExhaustedError,
    PropagationExhaustedError,
)
from .frame import Frame, Transform, GCRF
from .coordinate_subset import (
    CoordinateSubset,
    CartesianPosition,
    CartesianVelocity,
    CARTESIAN_POSITION,
    CARTESIAN_VELOCITY,
    MASS,
    SURFACE_AREA,
    DRAG_COEFFICIENT,
)
from .coordinate_broker import CoordinateBroker
from .state import State
from .state_builder import StateBuilder
from .dynamics import (
    Dynamics,
    DynamicsContext,
    SystemOfEquations,
    build_contexts,
)
from .forces import (
    PositionDerivative,
    CentralBodyGravity,
    ConstantThrust,
)
from .root_solver import RootSolver, RootSolverSolution
from .event_condition import (
    Criterion,
    TargetType,
    Target,
    EventCondition,
    RealCondition,
    AngularCondition,
    BooleanCondition,
    LogicalType,
    LogicalCondition,
    wrap_angle,
)

# Solver configuration
from .validation import (
    ValidationResult,
    ValidationIssue,
    ValidationSeverity,
    validate_solver_inputs,
)
from .config import SolverSettings
from .numerical_solver import (
    NumericalSolver,
    ConditionSolution,
    StepperType,
    LogType,
    RootFindingStrategy,
)

# Mission timeline
from .segment import Segment, SegmentType, SegmentSolution
from .sequence import Sequence, SequenceSolution

__all__ = [
    # Constants
    'G0', 'MU_EARTH',
    # Errors
    'TrajectoryError', 'ConfigurationError', 'IntegrationError',
    'DynamicsError', 'PropellantExhaustedError', 'PropagationExhaustedError',
    # Frames
    'Frame', 'Transform', 'GCRF',
    # State model
    'CoordinateSubset', 'CartesianPosition', 'CartesianVelocity',
    'CARTESIAN_POSITION', 'CARTESIAN_VELOCITY', 'MASS', 'SURFACE_AREA', 'DRAG_COEFFICIENT',
    'CoordinateBroker', 'State', 'StateBuilder',
    # Dynamics
    'Dynamics', 'DynamicsContext', 'SystemOfEquations', 'build_contexts',
    'PositionDerivative', 'CentralBodyGravity', 'ConstantThrust',
    # Events
    'RootSolver', 'RootSolverSolution',
    'Criterion', 'TargetType', 'Target', 'EventCondition', 'RealCondition',
    'AngularCondition', 'BooleanCondition', 'LogicalType', 'LogicalCondition', 'wrap_angle',
    # Solver
    'ValidationResult', 'ValidationIssue', 'ValidationSeverity', 'validate_solver_inputs',
    'SolverSettings', 'NumericalSolver', 'ConditionSolution', 'StepperType', 'LogType',
    'RootFindingStrategy',
    # Mission timeline
    'Segment', 'SegmentType', 'SegmentSolution', 'Sequence', 'SequenceSolution',
]
