"""
Reference frames and rigid transforms.

A Frame is a named node linked to an optional parent frame. Each
non-root frame carries a provider returning the Transform that maps
its coordinates into its parent's at a given instant. Transforms
between any two frames sharing a root are composed along the chain.

Transform convention (from frame A into frame B):
    p_B = R (p_A + t)
    v_B = R (v_A + u) - w x p_B

where R is the rotation matrix, t the translation, u the translation
rate and w the angular velocity of A relative to B, expressed in B.

References:
    - Vallado, D.A. (2013). "Fundamentals of Astrodynamics and
      Applications", 4th ed., Ch. 3
"""

from dataclasses import dataclass, field
from typing import Callable

import numpy as np


@dataclass(frozen=True)
class Transform:
    """
    Rigid transform with translation and rotation rates.

    Attributes:
        rotation: Rotation matrix R (3x3)
        translation: Translation t applied before rotation (m)
        velocity: Translation rate u (m/s)
        angular_velocity: Angular velocity w in the target frame (rad/s)
    """
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    def apply_to_position(self, position: np.ndarray) -> np.ndarray:
        return self.rotation @ (np.asarray(position) + self.translation)

    def apply_to_velocity(self, position: np.ndarray, velocity: np.ndarray) -> np.ndarray:
        p_b = self.apply_to_position(position)
        return self.rotation @ (np.asarray(velocity) + self.velocity) - np.cross(self.angular_velocity, p_b)

    def get_inverse(self) -> "Transform":
        r_t = self.rotation.T
        rotated_translation = self.rotation @ self.translation
        return Transform(
            rotation=r_t,
            translation=-rotated_translation,
            velocity=np.cross(self.angular_velocity, rotated_translation) - self.rotation @ self.velocity,
            angular_velocity=-(r_t @ self.angular_velocity),
        )

    def then(self, other: "Transform") -> "Transform":
        """
        Compose with a second transform applied afterwards.

        If self maps A into B and other maps B into C, the result maps
        A into C.
        """
        r1, r2 = self.rotation, other.rotation
        return Transform(
            rotation=r2 @ r1,
            translation=self.translation + r1.T @ other.translation,
            velocity=(
                self.velocity
                + r1.T @ other.velocity
                + r1.T @ np.cross(self.angular_velocity, other.translation)
            ),
            angular_velocity=other.angular_velocity + r2 @ self.angular_velocity,
        )


class Frame:
    """
    Named reference frame.

    Frames are immutable values compared by name. Root frames have no
    parent; every other frame supplies ``provider(instant) -> Transform``
    mapping its own coordinates into its parent's.

    Example:
        >>> rotating = Frame.rotating("ROT", GCRF, angular_rate=7.29e-5)
        >>> transform = rotating.get_transform_to(GCRF, 0.0)
    """

    def __init__(
        self,
        name: str,
        parent: "Frame | None" = None,
        provider: Callable[[float], Transform] | None = None,
    ):
        if not name:
            raise ValueError("Frame name must not be empty")
        if (parent is None) != (provider is None):
            raise ValueError(f"Frame '{name}' needs both a parent and a transform provider, or neither")
        self._name = name
        self._parent = parent
        self._provider = provider

    @property
    def name(self) -> str:
        return self._name

    @property
    def parent(self) -> "Frame | None":
        return self._parent

    def is_root(self) -> bool:
        return self._parent is None

    def __eq__(self, other) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return self._name == other._name

    def __hash__(self) -> int:
        return hash(self._name)

    def __repr__(self) -> str:
        return f"Frame({self._name!r})"

    def _ancestry(self) -> list["Frame"]:
        chain = [self]
        while chain[-1]._parent is not None:
            chain.append(chain[-1]._parent)
        return chain

    def _transform_to_ancestor(self, ancestor: "Frame", instant: float) -> Transform:
        transform = Transform.identity()
        frame = self
        while frame != ancestor:
            transform = transform.then(frame._provider(instant))
            frame = frame._parent
        return transform

    def get_transform_to(self, other: "Frame", instant: float) -> Transform:
        """
        Transform mapping coordinates in this frame into ``other``.

        Raises:
            ValueError: If the two frames do not share a root
        """
        if self == other:
            return Transform.identity()

        own_chain = self._ancestry()
        other_chain = other._ancestry()
        other_names = {frame.name for frame in other_chain}
        common = next((frame for frame in own_chain if frame.name in other_names), None)
        if common is None:
            raise ValueError(f"Frames '{self.name}' and '{other.name}' share no common root")

        up = self._transform_to_ancestor(common, instant)
        down = other._transform_to_ancestor(common, instant).get_inverse()
        return up.then(down)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def fixed(
        cls,
        name: str,
        parent: "Frame",
        rotation: np.ndarray | None = None,
        translation: np.ndarray | None = None,
    ) -> "Frame":
        """Frame with a constant offset from its parent."""
        transform = Transform(
            rotation=np.eye(3) if rotation is None else np.asarray(rotation, dtype=np.float64),
            translation=np.zeros(3) if translation is None else np.asarray(translation, dtype=np.float64),
        )
        return cls(name, parent, lambda instant: transform)

    @classmethod
    def rotating(
        cls,
        name: str,
        parent: "Frame",
        angular_rate: float,
        reference_instant: float = 0.0,
        reference_angle: float = 0.0,
    ) -> "Frame":
        """
        Frame spinning about its parent's z axis.

        Args:
            angular_rate: Spin rate (rad/s), counter-clockwise about +z
            reference_instant: Instant at which the spin angle equals reference_angle
            reference_angle: Spin angle at reference_instant (rad)
        """
        def provider(instant: float) -> Transform:
            theta = reference_angle + angular_rate * (instant - reference_instant)
            c, s = np.cos(theta), np.sin(theta)
            return Transform(
                rotation=np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]),
                angular_velocity=np.array([0.0, 0.0, -angular_rate]),
            )

        return cls(name, parent, provider)


# Geocentric celestial reference frame, treated as inertial
GCRF = Frame("GCRF")
