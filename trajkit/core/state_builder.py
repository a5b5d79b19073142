"""
State builder: produces States with a fixed frame and subset layout.
"""

import numpy as np

from .coordinate_broker import CoordinateBroker
from .coordinate_subset import CoordinateSubset
from .frame import Frame
from .state import State


class StateBuilder:
    """
    Factory for States sharing one frame and one coordinate broker.

    Args:
        frame: Frame of the produced states
        subsets: Either an existing CoordinateBroker (shared) or an
            ordered list of subsets to lay out in a new broker

    Example:
        >>> builder = StateBuilder(GCRF, [CartesianPosition.default(), CartesianVelocity.default()])
        >>> state = builder.build(0.0, np.array([7e6, 0, 0, 0, 7.5e3, 0]))
    """

    def __init__(self, frame: Frame, subsets: CoordinateBroker | list[CoordinateSubset]):
        if frame is None:
            raise ValueError("State builder frame is undefined")
        self._frame = frame
        if isinstance(subsets, CoordinateBroker):
            self._coordinate_broker = subsets
        else:
            self._coordinate_broker = CoordinateBroker(list(subsets))

    @classmethod
    def from_state(cls, state: State) -> "StateBuilder":
        """Builder reproducing the frame and layout of ``state``."""
        return cls(state.frame, state.coordinate_broker)

    @property
    def frame(self) -> Frame:
        return self._frame

    @property
    def coordinate_broker(self) -> CoordinateBroker:
        return self._coordinate_broker

    @property
    def coordinate_subsets(self) -> list[CoordinateSubset]:
        return self._coordinate_broker.subsets

    def build(self, instant: float, coordinates) -> State:
        """
        Create a State from a full coordinate vector.

        Raises:
            ValueError: If the vector width does not match the layout
        """
        coordinates = np.asarray(coordinates, dtype=np.float64).reshape(-1)
        if coordinates.size != self._coordinate_broker.number_of_coordinates:
            raise ValueError(
                f"Expected {self._coordinate_broker.number_of_coordinates} coordinates, "
                f"got {coordinates.size}"
            )
        return State(instant, coordinates, self._frame, self._coordinate_broker)

    def reduce(self, state: State) -> State:
        """
        Keep only this builder's subsets from ``state``.

        Raises:
            ValueError: If ``state`` lacks one of the builder's subsets or
                is in another frame
        """
        if state.frame != self._frame:
            raise ValueError(f"Cannot reduce a state in '{state.frame.name}' with a '{self._frame.name}' builder")

        missing = [s.name for s in self._coordinate_broker.subsets if not state.has_subset(s)]
        if missing:
            raise ValueError(f"Cannot reduce state: missing subsets {missing}")

        return self.build(state.instant, state.extract_coordinates(self._coordinate_broker.subsets))

    def expand(self, state: State, default_state: State) -> State:
        """
        Lay ``state`` out with this builder's subsets.

        Subsets absent from ``state`` are taken from ``default_state``.

        Raises:
            ValueError: If a subset is in neither state, or the frames differ
        """
        if state.frame != self._frame or default_state.frame != self._frame:
            raise ValueError("Cannot expand states expressed in a different frame than the builder")

        slices = []
        for subset in self._coordinate_broker.subsets:
            if state.has_subset(subset):
                slices.append(state.extract_coordinate(subset))
            elif default_state.has_subset(subset):
                slices.append(default_state.extract_coordinate(subset))
            else:
                raise ValueError(f"Cannot expand state: subset '{subset.name}' missing from both states")

        coordinates = np.concatenate(slices) if slices else np.zeros(0)
        return self.build(state.instant, coordinates)

    def __eq__(self, other) -> bool:
        if not isinstance(other, StateBuilder):
            return NotImplemented
        return self._frame == other._frame and self._coordinate_broker == other._coordinate_broker

    __hash__ = None

    def __repr__(self) -> str:
        return f"StateBuilder({self._frame.name!r}, {self._coordinate_broker!r})"
