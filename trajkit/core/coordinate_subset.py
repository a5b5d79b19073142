"""
Coordinate subsets: named, fixed-size slices of a state vector.

Each subset knows how to add, subtract and re-express its own slice
of a full state vector. Generic subsets (mass, drag coefficient, ...)
are frame-invariant; Cartesian position and velocity follow the frame
transform.

Subsets are immutable and shared by reference between States,
brokers and dynamics. Identity is name plus size.
"""

import numpy as np


class CoordinateSubset:
    """
    Named slice of a state vector.

    Attributes:
        name: Unique identifier (e.g. "MASS")
        size: Number of scalar coordinates (> 0)

    Example:
        >>> mass = CoordinateSubset("MASS", 1)
        >>> mass.size
        1
    """

    def __init__(self, name: str, size: int):
        if not name:
            raise ValueError("Coordinate subset name must not be empty")
        if size <= 0:
            raise ValueError(f"Coordinate subset '{name}' must have positive size, got {size}")
        self._name = name
        self._size = int(size)

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return self._size

    def __eq__(self, other) -> bool:
        if not isinstance(other, CoordinateSubset):
            return NotImplemented
        return self._name == other._name and self._size == other._size

    def __hash__(self) -> int:
        return hash((self._name, self._size))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r}, {self._size})"

    def add(self, instant, full_coordinates, another_full_coordinates, frame, coordinate_broker) -> np.ndarray:
        """Slice of the sum of two full vectors sharing a broker."""
        return (
            coordinate_broker.extract_coordinate(full_coordinates, self)
            + coordinate_broker.extract_coordinate(another_full_coordinates, self)
        )

    def subtract(self, instant, full_coordinates, another_full_coordinates, frame, coordinate_broker) -> np.ndarray:
        """Slice of the difference of two full vectors sharing a broker."""
        return (
            coordinate_broker.extract_coordinate(full_coordinates, self)
            - coordinate_broker.extract_coordinate(another_full_coordinates, self)
        )

    def in_frame(self, instant, full_coordinates, from_frame, to_frame, coordinate_broker) -> np.ndarray:
        """Slice re-expressed in ``to_frame``. Identity for frame-invariant subsets."""
        return coordinate_broker.extract_coordinate(full_coordinates, self).copy()

    # -------------------------------------------------------------------------
    # Predefined subsets
    # -------------------------------------------------------------------------

    @staticmethod
    def mass() -> "CoordinateSubset":
        return MASS

    @staticmethod
    def surface_area() -> "CoordinateSubset":
        return SURFACE_AREA

    @staticmethod
    def drag_coefficient() -> "CoordinateSubset":
        return DRAG_COEFFICIENT


class CartesianPosition(CoordinateSubset):
    """Cartesian position (m), transformed as a point."""

    def __init__(self, name: str = "CARTESIAN_POSITION"):
        super().__init__(name, 3)

    def in_frame(self, instant, full_coordinates, from_frame, to_frame, coordinate_broker) -> np.ndarray:
        position = coordinate_broker.extract_coordinate(full_coordinates, self)
        if from_frame == to_frame:
            return position.copy()
        return from_frame.get_transform_to(to_frame, instant).apply_to_position(position)

    @staticmethod
    def default() -> "CartesianPosition":
        return CARTESIAN_POSITION


class CartesianVelocity(CoordinateSubset):
    """
    Cartesian velocity (m/s).

    Re-expressing a velocity needs the matching position, so each
    velocity subset is bound to a position subset.
    """

    def __init__(self, position_subset: CartesianPosition, name: str = "CARTESIAN_VELOCITY"):
        super().__init__(name, 3)
        self._position_subset = position_subset

    @property
    def position_subset(self) -> CartesianPosition:
        return self._position_subset

    def in_frame(self, instant, full_coordinates, from_frame, to_frame, coordinate_broker) -> np.ndarray:
        velocity = coordinate_broker.extract_coordinate(full_coordinates, self)
        if from_frame == to_frame:
            return velocity.copy()
        if not coordinate_broker.has_subset(self._position_subset):
            raise ValueError(f"'{self.name}' needs '{self._position_subset.name}' to change frame")
        position = coordinate_broker.extract_coordinate(full_coordinates, self._position_subset)
        transform = from_frame.get_transform_to(to_frame, instant)
        return transform.apply_to_velocity(position, velocity)

    @staticmethod
    def default() -> "CartesianVelocity":
        return CARTESIAN_VELOCITY


CARTESIAN_POSITION = CartesianPosition()
CARTESIAN_VELOCITY = CartesianVelocity(CARTESIAN_POSITION)
MASS = CoordinateSubset("MASS", 1)
SURFACE_AREA = CoordinateSubset("SURFACE_AREA", 1)
DRAG_COEFFICIENT = CoordinateSubset("DRAG_COEFFICIENT", 1)
