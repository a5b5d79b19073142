"""
Event conditions: predicates over consecutive state samples.

A condition maps a State to a scalar through an evaluator and decides,
from the current and previous samples, whether the event happened.
Conditions stop segments and sequences, and the numerical solver
locates the exact crossing between two samples.

Criteria:
    - POSITIVE_CROSSING: previous < target <= current
    - NEGATIVE_CROSSING: previous > target >= current
    - ANY_CROSSING: either crossing
    - STRICTLY_POSITIVE / STRICTLY_NEGATIVE: sign of current only
    - WITHIN_RANGE: current inside [lower, upper]

Relative targets are measured from the evaluator's value at the initial
state; resolve() returns a copy with that offset captured.
"""

import copy
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

from .state import State


class Criterion(Enum):
    """How a condition value is tested."""
    POSITIVE_CROSSING = auto()
    NEGATIVE_CROSSING = auto()
    ANY_CROSSING = auto()
    STRICTLY_POSITIVE = auto()
    STRICTLY_NEGATIVE = auto()
    WITHIN_RANGE = auto()


class TargetType(Enum):
    """How a target value is interpreted."""
    ABSOLUTE = auto()   # Compared as given
    RELATIVE = auto()   # Offset by the evaluator value at the initial state


@dataclass
class Target:
    """
    Target value of a condition.

    Attributes:
        value: Target value (or offset from the initial value if RELATIVE)
        type: ABSOLUTE or RELATIVE
        offset: Initial-state value captured for RELATIVE targets
    """
    value: float
    type: TargetType = TargetType.ABSOLUTE
    offset: float = 0.0

    @property
    def threshold(self) -> float:
        return self.value + self.offset


def _crossing(criterion: Criterion, current: float, previous: float) -> bool:
    if criterion == Criterion.POSITIVE_CROSSING:
        return previous < 0.0 <= current
    if criterion == Criterion.NEGATIVE_CROSSING:
        return previous > 0.0 >= current
    return (previous < 0.0 <= current) or (previous > 0.0 >= current)


class EventCondition(ABC):
    """
    Predicate over consecutive state samples.

    Args:
        name: Human-readable label
        criterion: How the evaluated value is tested
        evaluator: Maps a State to the tested value
        target: Value the evaluator is compared against
    """

    def __init__(
        self,
        name: str,
        criterion: Criterion,
        evaluator: Callable[[State], float],
        target: Target | float = 0.0,
    ):
        if evaluator is None:
            raise ValueError(f"Event condition '{name}' has no evaluator")
        self._name = name
        self._criterion = criterion
        self._evaluator = evaluator
        self._target = target if isinstance(target, Target) else Target(float(target))

    @property
    def name(self) -> str:
        return self._name

    @property
    def criterion(self) -> Criterion:
        return self._criterion

    @property
    def evaluator(self) -> Callable[[State], float]:
        return self._evaluator

    @property
    def target(self) -> Target:
        return self._target

    def evaluate(self, state: State) -> float:
        """Evaluator value at ``state``."""
        return float(self._evaluator(state))

    @abstractmethod
    def is_satisfied(self, current_state: State, previous_state: State) -> bool:
        """Whether the event happened between ``previous_state`` and ``current_state``."""

    def update_target(self, state: State) -> None:
        """Capture the offset of a RELATIVE target from ``state``, in place."""
        if self._target.type == TargetType.RELATIVE:
            self._target.offset = self.evaluate(state)

    def resolve(self, state: State) -> "EventCondition":
        """Copy of this condition with RELATIVE targets captured at ``state``."""
        resolved = copy.copy(self)
        resolved._target = copy.copy(self._target)
        resolved.update_target(state)
        return resolved

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r}, {self._criterion.name})"


class RealCondition(EventCondition):
    """Condition on a real-valued evaluator."""

    def __init__(
        self,
        name: str,
        criterion: Criterion,
        evaluator: Callable[[State], float],
        target: Target | float = 0.0,
    ):
        if criterion == Criterion.WITHIN_RANGE:
            raise ValueError("Use AngularCondition.within_range for range criteria")
        super().__init__(name, criterion, evaluator, target)

    def compute_value(self, state: State) -> float:
        """Signed distance of the evaluator from the target threshold."""
        return self.evaluate(state) - self._target.threshold

    def is_satisfied(self, current_state: State, previous_state: State) -> bool:
        current = self.compute_value(current_state)
        if self._criterion == Criterion.STRICTLY_POSITIVE:
            return current > 0.0
        if self._criterion == Criterion.STRICTLY_NEGATIVE:
            return current < 0.0
        return _crossing(self._criterion, current, self.compute_value(previous_state))

    @classmethod
    def duration_condition(cls, criterion: Criterion, duration: float) -> "RealCondition":
        """Condition on time elapsed since the initial state (s)."""
        return cls(
            f"Duration Condition ({duration} s)",
            criterion,
            lambda state: state.instant,
            Target(float(duration), TargetType.RELATIVE),
        )

    @classmethod
    def instant_condition(cls, criterion: Criterion, instant: float) -> "RealCondition":
        """Condition on reaching an absolute instant (s)."""
        return cls(
            f"Instant Condition ({instant} s)",
            criterion,
            lambda state: state.instant,
            Target(float(instant), TargetType.ABSOLUTE),
        )


def wrap_angle(angle: float) -> float:
    """Wrap an angle into (-pi, pi]."""
    wrapped = math.remainder(angle, 2.0 * math.pi)
    if wrapped <= -math.pi:
        wrapped += 2.0 * math.pi
    return wrapped


class AngularCondition(EventCondition):
    """
    Condition on an angle-valued evaluator (rad).

    Crossings are detected on the wrapped difference to the target, so
    a sample pair straddling +/-pi is handled. A WITHIN_RANGE condition
    whose lower bound exceeds its upper bound wraps through pi.
    """

    def __init__(
        self,
        name: str,
        criterion: Criterion,
        evaluator: Callable[[State], float],
        target: Target | float = 0.0,
        target_range: tuple[float, float] | None = None,
    ):
        if criterion in (Criterion.STRICTLY_POSITIVE, Criterion.STRICTLY_NEGATIVE):
            raise ValueError(f"Criterion {criterion.name} is not defined for angles")
        if (criterion == Criterion.WITHIN_RANGE) != (target_range is not None):
            raise ValueError("A target range goes with the WITHIN_RANGE criterion and only with it")
        super().__init__(name, criterion, evaluator, target)
        self._range: tuple[float, float] | None = None
        if target_range is not None:
            self._range = (wrap_angle(target_range[0]), wrap_angle(target_range[1]))

    @classmethod
    def within_range(
        cls,
        name: str,
        evaluator: Callable[[State], float],
        target_range: tuple[float, float],
    ) -> "AngularCondition":
        return cls(name, Criterion.WITHIN_RANGE, evaluator, target_range=target_range)

    @property
    def target_range(self) -> tuple[float, float] | None:
        return self._range

    def is_satisfied(self, current_state: State, previous_state: State) -> bool:
        current_angle = self.evaluate(current_state)

        if self._criterion == Criterion.WITHIN_RANGE:
            lower, upper = self._range
            angle = wrap_angle(current_angle)
            if lower <= upper:
                return lower <= angle <= upper
            return angle >= lower or angle <= upper

        previous_angle = self.evaluate(previous_state)
        target = self._target.threshold

        # Distance from the target seen from the previous sample, and the arc swept
        previous_offset = wrap_angle(previous_angle - target)
        delta = wrap_angle(current_angle - previous_angle)
        current_offset = previous_offset + delta

        return _crossing(self._criterion, current_offset, previous_offset)


class BooleanCondition(EventCondition):
    """
    Condition on a boolean evaluator.

    Satisfied whenever the evaluator returns True (False if inversed).
    """

    def __init__(
        self,
        name: str,
        evaluator: Callable[[State], bool],
        is_inversed: bool = False,
    ):
        super().__init__(name, Criterion.STRICTLY_POSITIVE, evaluator)
        self._is_inversed = is_inversed

    @property
    def is_inversed(self) -> bool:
        return self._is_inversed

    def evaluate(self, state: State) -> float:
        return 1.0 if bool(self._evaluator(state)) != self._is_inversed else 0.0

    def is_satisfied(self, current_state: State, previous_state: State) -> bool:
        return self.evaluate(current_state) > 0.0


class LogicalType(Enum):
    """Combination rule of a logical condition."""
    AND = auto()
    OR = auto()


class LogicalCondition(EventCondition):
    """
    AND / OR combination of child conditions.

    Every child sees the same (current, previous) pair and is always
    evaluated; there is no short-circuit.
    """

    def __init__(self, name: str, logical_type: LogicalType, conditions: list[EventCondition]):
        if not conditions:
            raise ValueError(f"Logical condition '{name}' needs at least one child condition")
        if any(condition is None for condition in conditions):
            raise ValueError(f"Logical condition '{name}' has an undefined child condition")
        super().__init__(name, Criterion.STRICTLY_POSITIVE, lambda state: 0.0)
        self._type = logical_type
        self._conditions = list(conditions)

    @property
    def type(self) -> LogicalType:
        return self._type

    @property
    def event_conditions(self) -> list[EventCondition]:
        return list(self._conditions)

    def evaluate(self, state: State) -> float:
        # No scalar value of its own; report how many children hold at this sample
        return float(sum(child.is_satisfied(state, state) for child in self._conditions))

    def is_satisfied(self, current_state: State, previous_state: State) -> bool:
        results = [child.is_satisfied(current_state, previous_state) for child in self._conditions]
        if self._type == LogicalType.AND:
            return all(results)
        return any(results)

    def update_target(self, state: State) -> None:
        for child in self._conditions:
            child.update_target(state)

    def resolve(self, state: State) -> "LogicalCondition":
        resolved = copy.copy(self)
        resolved._conditions = [child.resolve(state) for child in self._conditions]
        return resolved
