"""
Coordinate broker: maps an ordered set of subsets onto one flat vector.

Subsets are laid out contiguously in registration order. The broker
is the single source of truth for where each subset lives inside a
State's coordinate array.
"""

import numpy as np

from .coordinate_subset import CoordinateSubset
from .types import ConfigurationError


class CoordinateBroker:
    """
    Registry of distinct coordinate subsets and their offsets.

    Invariants:
        - number_of_coordinates == sum of subset sizes
        - offsets are strictly increasing in registration order
        - each subset is registered at most once

    Example:
        >>> broker = CoordinateBroker([CartesianPosition.default(), CoordinateSubset.mass()])
        >>> broker.get_subset_offset(CoordinateSubset.mass())
        3
    """

    def __init__(self, subsets: list[CoordinateSubset] | None = None):
        self._subsets: list[CoordinateSubset] = []
        self._offsets: dict[CoordinateSubset, int] = {}
        self._width = 0
        for subset in subsets or []:
            self.add_subset(subset)

    def add_subset(self, subset: CoordinateSubset) -> int:
        """
        Register a subset at the end of the layout.

        Returns:
            Offset of the new subset

        Raises:
            ConfigurationError: If the subset is already registered
        """
        if subset is None:
            raise ConfigurationError("Cannot register an undefined coordinate subset")
        if subset in self._offsets:
            raise ConfigurationError(f"Coordinate subset '{subset.name}' is already registered")

        offset = self._width
        self._subsets.append(subset)
        self._offsets[subset] = offset
        self._width += subset.size
        return offset

    @property
    def subsets(self) -> list[CoordinateSubset]:
        return list(self._subsets)

    @property
    def number_of_coordinates(self) -> int:
        return self._width

    @property
    def number_of_subsets(self) -> int:
        return len(self._subsets)

    def has_subset(self, subset: CoordinateSubset) -> bool:
        return subset in self._offsets

    def get_subset_offset(self, subset: CoordinateSubset) -> int:
        try:
            return self._offsets[subset]
        except KeyError:
            raise KeyError(f"Coordinate subset '{subset.name}' is not registered") from None

    def extract_coordinate(self, full_coordinates: np.ndarray, subset: CoordinateSubset) -> np.ndarray:
        """Slice of ``full_coordinates`` belonging to ``subset``."""
        if len(full_coordinates) != self._width:
            raise ValueError(
                f"Coordinate vector has {len(full_coordinates)} entries, broker expects {self._width}"
            )
        offset = self.get_subset_offset(subset)
        return full_coordinates[offset:offset + subset.size]

    def extract_coordinates(self, full_coordinates: np.ndarray, subsets: list[CoordinateSubset]) -> np.ndarray:
        """Concatenation of the slices of ``subsets``, in the given order."""
        if not subsets:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate([self.extract_coordinate(full_coordinates, subset) for subset in subsets])

    def __eq__(self, other) -> bool:
        if not isinstance(other, CoordinateBroker):
            return NotImplemented
        return self._subsets == other._subsets

    def __repr__(self) -> str:
        names = ", ".join(subset.name for subset in self._subsets)
        return f"CoordinateBroker([{names}])"
