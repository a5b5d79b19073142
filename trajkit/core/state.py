"""
Spacecraft state: instant, coordinates, frame and layout.

A State is an immutable value. Its coordinate array is copied on
construction and flagged read-only; every transformation returns a
new State.
"""

import numpy as np

from .coordinate_broker import CoordinateBroker
from .coordinate_subset import CARTESIAN_POSITION, CARTESIAN_VELOCITY, CoordinateSubset
from .frame import Frame


class State:
    """
    Immutable (instant, coordinates, frame, broker) value.

    Attributes:
        instant: Epoch of the state (s)
        coordinates: Flat coordinate vector laid out by the broker
        frame: Frame the coordinates are expressed in
        coordinate_broker: Layout of the coordinate vector

    Example:
        >>> broker = CoordinateBroker([CartesianPosition.default(), CartesianVelocity.default()])
        >>> state = State(0.0, np.zeros(6), GCRF, broker)
        >>> state.position
        array([0., 0., 0.])
    """

    def __init__(
        self,
        instant: float,
        coordinates,
        frame: Frame,
        coordinate_broker: CoordinateBroker,
    ):
        if frame is None:
            raise ValueError("State frame is undefined")
        if coordinate_broker is None:
            raise ValueError("State coordinate broker is undefined")

        values = np.array(coordinates, dtype=np.float64).reshape(-1)
        if values.size != coordinate_broker.number_of_coordinates:
            raise ValueError(
                f"State has {values.size} coordinates, broker expects "
                f"{coordinate_broker.number_of_coordinates}"
            )
        values.setflags(write=False)

        self._instant = float(instant)
        self._coordinates = values
        self._frame = frame
        self._coordinate_broker = coordinate_broker

    @property
    def instant(self) -> float:
        return self._instant

    @property
    def coordinates(self) -> np.ndarray:
        return self._coordinates

    @property
    def frame(self) -> Frame:
        return self._frame

    @property
    def coordinate_broker(self) -> CoordinateBroker:
        return self._coordinate_broker

    @property
    def coordinate_subsets(self) -> list[CoordinateSubset]:
        return self._coordinate_broker.subsets

    @property
    def size(self) -> int:
        return self._coordinates.size

    @property
    def position(self) -> np.ndarray:
        return self.extract_coordinate(CARTESIAN_POSITION)

    @property
    def velocity(self) -> np.ndarray:
        return self.extract_coordinate(CARTESIAN_VELOCITY)

    def has_subset(self, subset: CoordinateSubset) -> bool:
        return self._coordinate_broker.has_subset(subset)

    def extract_coordinate(self, subset: CoordinateSubset) -> np.ndarray:
        return self._coordinate_broker.extract_coordinate(self._coordinates, subset)

    def extract_coordinates(self, subsets: list[CoordinateSubset]) -> np.ndarray:
        return self._coordinate_broker.extract_coordinates(self._coordinates, subsets)

    def in_frame(self, frame: Frame) -> "State":
        """Same state re-expressed in ``frame``."""
        if frame == self._frame:
            return self

        coordinates = np.concatenate([
            subset.in_frame(self._instant, self._coordinates, self._frame, frame, self._coordinate_broker)
            for subset in self._coordinate_broker.subsets
        ])
        return State(self._instant, coordinates, frame, self._coordinate_broker)

    def _check_compatible(self, other: "State") -> None:
        if not isinstance(other, State):
            raise TypeError(f"Cannot combine State with {type(other).__name__}")
        if self._instant != other._instant:
            raise ValueError("Cannot combine states at different instants")
        if self._frame != other._frame:
            raise ValueError(
                f"Cannot combine states in frames '{self._frame.name}' and '{other._frame.name}'"
            )
        if self._coordinate_broker != other._coordinate_broker:
            raise ValueError("Cannot combine states with different coordinate layouts")

    def __add__(self, other: "State") -> "State":
        self._check_compatible(other)
        coordinates = np.concatenate([
            subset.add(self._instant, self._coordinates, other._coordinates, self._frame, self._coordinate_broker)
            for subset in self._coordinate_broker.subsets
        ])
        return State(self._instant, coordinates, self._frame, self._coordinate_broker)

    def __sub__(self, other: "State") -> "State":
        self._check_compatible(other)
        coordinates = np.concatenate([
            subset.subtract(self._instant, self._coordinates, other._coordinates, self._frame, self._coordinate_broker)
            for subset in self._coordinate_broker.subsets
        ])
        return State(self._instant, coordinates, self._frame, self._coordinate_broker)

    def __eq__(self, other) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return (
            self._instant == other._instant
            and self._frame == other._frame
            and self._coordinate_broker == other._coordinate_broker
            and np.array_equal(self._coordinates, other._coordinates)
        )

    __hash__ = None

    def is_near(self, other: "State", tolerance: float = 1e-9) -> bool:
        """Same instant, frame and layout with coordinates within ``tolerance``."""
        if not isinstance(other, State):
            return False
        return (
            abs(self._instant - other._instant) <= tolerance
            and self._frame == other._frame
            and self._coordinate_broker == other._coordinate_broker
            and bool(np.allclose(self._coordinates, other._coordinates, rtol=0.0, atol=tolerance))
        )

    def __repr__(self) -> str:
        return (
            f"State(instant={self._instant!r}, frame={self._frame.name!r}, "
            f"coordinates={np.array2string(self._coordinates, precision=6)})"
        )
