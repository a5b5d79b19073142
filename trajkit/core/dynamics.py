"""
Dynamics: pluggable contributions to the state derivative.

Each Dynamics declares the subsets it reads and writes and computes a
contribution from the packed read slice. A SystemOfEquations combines
any number of them into one ODE right-hand side:

    dx/dt = sum_i scatter_i(contribution_i(t, gather_i(x), frame))

Read/write offsets are resolved once per (dynamics list, broker) into
DynamicsContext tables, so every derivative evaluation is a plain
gather / compute / accumulate loop.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from .coordinate_broker import CoordinateBroker
from .coordinate_subset import CoordinateSubset
from .frame import Frame
from .state import State
from .types import ConfigurationError, DynamicsError


class Dynamics(ABC):
    """
    Contribution to the time derivative of a state vector.

    Implementations must not keep run-specific mutable state; one
    instance may be shared by concurrent propagations.
    """

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def is_defined(self) -> bool:
        return bool(self._name)

    @abstractmethod
    def read_subsets(self) -> list[CoordinateSubset]:
        """Subsets whose values are passed to compute_contribution, in order."""

    @abstractmethod
    def write_subsets(self) -> list[CoordinateSubset]:
        """Subsets whose derivatives the contribution adds to, in order."""

    @abstractmethod
    def compute_contribution(self, instant: float, x: np.ndarray, frame: Frame) -> np.ndarray:
        """
        Compute this contribution to the state derivative.

        Args:
            instant: Evaluation instant (s)
            x: Packed values of read_subsets()
            frame: Frame the state is expressed in

        Returns:
            Packed derivative of write_subsets()
        """

    def get_dynamics_contribution(self, state: State) -> np.ndarray:
        """Evaluate this contribution at a full State."""
        x = state.extract_coordinates(self.read_subsets())
        return np.asarray(self.compute_contribution(state.instant, x, state.frame), dtype=np.float64)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"


@dataclass(frozen=True)
class DynamicsContext:
    """
    Precomputed layout of one Dynamics against one broker.

    Attributes:
        dynamics: The contribution
        read_indexes: (offset, size) pairs of the read subsets in the full vector
        write_indexes: (offset, size) pairs of the write subsets in the full vector
        read_size: Total width of the packed read slice
        write_size: Total width of the packed contribution
    """
    dynamics: Dynamics
    read_indexes: tuple[tuple[int, int], ...]
    write_indexes: tuple[tuple[int, int], ...]
    read_size: int
    write_size: int


def _resolve_indexes(
    dynamics: Dynamics,
    subsets: list[CoordinateSubset],
    broker: CoordinateBroker,
    role: str,
) -> tuple[tuple[int, int], ...]:
    indexes = []
    for subset in subsets:
        if not broker.has_subset(subset):
            raise ConfigurationError(
                f"Dynamics '{dynamics.name}' {role} subset '{subset.name}', "
                f"which is not part of the state layout {broker!r}"
            )
        indexes.append((broker.get_subset_offset(subset), subset.size))
    return tuple(indexes)


def build_contexts(dynamics: list[Dynamics], broker: CoordinateBroker) -> list[DynamicsContext]:
    """
    Resolve read/write offsets of every Dynamics against ``broker``.

    Raises:
        ConfigurationError: If a Dynamics is undefined or reads or writes
            a subset the broker does not carry
    """
    contexts = []
    for item in dynamics:
        if item is None:
            raise ConfigurationError("Undefined dynamics in dynamics list")
        read_indexes = _resolve_indexes(item, item.read_subsets(), broker, "reads")
        write_indexes = _resolve_indexes(item, item.write_subsets(), broker, "writes")
        contexts.append(DynamicsContext(
            dynamics=item,
            read_indexes=read_indexes,
            write_indexes=write_indexes,
            read_size=sum(size for _, size in read_indexes),
            write_size=sum(size for _, size in write_indexes),
        ))
    return contexts


class SystemOfEquations:
    """
    Aggregated ODE right-hand side ``(instant, x) -> dx/dt``.

    Every call returns a fresh derivative array; contributions writing
    the same subset are summed.
    """

    def __init__(self, contexts: list[DynamicsContext], frame: Frame, size: int):
        self._contexts = list(contexts)
        self._frame = frame
        self._size = size

    @classmethod
    def from_dynamics(cls, dynamics: list[Dynamics], state: State) -> "SystemOfEquations":
        """Build contexts for ``dynamics`` against the layout of ``state``."""
        contexts = build_contexts(dynamics, state.coordinate_broker)
        return cls(contexts, state.frame, state.size)

    @property
    def contexts(self) -> list[DynamicsContext]:
        return list(self._contexts)

    @property
    def frame(self) -> Frame:
        return self._frame

    @property
    def size(self) -> int:
        return self._size

    def __call__(self, instant: float, x: np.ndarray) -> np.ndarray:
        dxdt = np.zeros(self._size, dtype=np.float64)

        for context in self._contexts:
            read = np.empty(context.read_size, dtype=np.float64)
            cursor = 0
            for offset, size in context.read_indexes:
                read[cursor:cursor + size] = x[offset:offset + size]
                cursor += size

            contribution = np.asarray(
                context.dynamics.compute_contribution(instant, read, self._frame),
                dtype=np.float64,
            )
            if contribution.size != context.write_size:
                raise DynamicsError(
                    f"Dynamics '{context.dynamics.name}' returned {contribution.size} values, "
                    f"expected {context.write_size}"
                )

            cursor = 0
            for offset, size in context.write_indexes:
                dxdt[offset:offset + size] += contribution[cursor:cursor + size]
                cursor += size

        return dxdt
