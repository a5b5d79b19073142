"""
Unit tests for coordinate subsets and the coordinate broker.

Covers layout offsets, extraction and registration errors.
"""

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from trajkit.core.coordinate_broker import CoordinateBroker
from trajkit.core.coordinate_subset import (
    CARTESIAN_POSITION,
    CARTESIAN_VELOCITY,
    MASS,
    CartesianPosition,
    CoordinateSubset,
)
from trajkit.core.types import ConfigurationError


class TestCoordinateSubset:
    """Test subset identity and validation."""

    def test_identity_is_name_and_size(self):
        """Subsets with the same name and size are equal and hash alike."""
        a = CoordinateSubset("BALLISTIC", 1)
        b = CoordinateSubset("BALLISTIC", 1)
        assert a == b
        assert hash(a) == hash(b)
        assert a != CoordinateSubset("BALLISTIC", 2)

    def test_non_positive_size_rejected(self):
        """Zero or negative size raises ValueError."""
        with pytest.raises(ValueError):
            CoordinateSubset("EMPTY", 0)
        with pytest.raises(ValueError):
            CoordinateSubset("NEGATIVE", -3)

    def test_empty_name_rejected(self):
        """An unnamed subset raises ValueError."""
        with pytest.raises(ValueError):
            CoordinateSubset("", 1)

    def test_predefined_subsets(self):
        """Static accessors return the shared module instances."""
        assert CoordinateSubset.mass() is MASS
        assert CartesianPosition.default() is CARTESIAN_POSITION
        assert CARTESIAN_VELOCITY.position_subset is CARTESIAN_POSITION
        assert CARTESIAN_POSITION.size == 3


class TestCoordinateBroker:
    """Test layout bookkeeping."""

    @pytest.fixture
    def broker(self):
        return CoordinateBroker([CARTESIAN_POSITION, CARTESIAN_VELOCITY, MASS])

    def test_width_is_sum_of_sizes(self, broker):
        """Total width equals the sum of registered subset sizes."""
        assert broker.number_of_coordinates == 7
        assert broker.number_of_subsets == 3

    def test_offsets_follow_registration_order(self, broker):
        """Offsets are contiguous and strictly increasing."""
        assert broker.get_subset_offset(CARTESIAN_POSITION) == 0
        assert broker.get_subset_offset(CARTESIAN_VELOCITY) == 3
        assert broker.get_subset_offset(MASS) == 6

    def test_add_subset_returns_offset(self):
        """Registering returns the new subset's offset."""
        broker = CoordinateBroker()
        assert broker.add_subset(MASS) == 0
        assert broker.add_subset(CARTESIAN_POSITION) == 1
        assert broker.number_of_coordinates == 4

    def test_duplicate_registration_raises(self, broker):
        """A subset can only be registered once."""
        with pytest.raises(ConfigurationError):
            broker.add_subset(MASS)
        with pytest.raises(ConfigurationError):
            CoordinateBroker([MASS, CoordinateSubset("MASS", 1)])

    def test_extract_then_reinsert_is_identity(self, broker):
        """Writing each extracted slice back at its offset rebuilds the vector."""
        full = np.arange(7, dtype=np.float64) * 1.5
        rebuilt = np.zeros(7)
        for subset in broker.subsets:
            offset = broker.get_subset_offset(subset)
            rebuilt[offset:offset + subset.size] = broker.extract_coordinate(full, subset)
        assert_array_equal(rebuilt, full)

    def test_extract_coordinates_concatenates_in_given_order(self, broker):
        """Multi-subset extraction follows the requested order."""
        full = np.arange(7, dtype=np.float64)
        extracted = broker.extract_coordinates(full, [MASS, CARTESIAN_POSITION])
        assert_array_equal(extracted, [6.0, 0.0, 1.0, 2.0])
        assert broker.extract_coordinates(full, []).size == 0

    def test_width_mismatch_raises(self, broker):
        """A vector of the wrong width cannot be sliced."""
        with pytest.raises(ValueError):
            broker.extract_coordinate(np.zeros(6), MASS)

    def test_unregistered_subset_raises(self, broker):
        """Looking up an unknown subset raises KeyError."""
        with pytest.raises(KeyError):
            broker.get_subset_offset(CoordinateSubset("DRAG", 1))
        assert not broker.has_subset(CoordinateSubset("DRAG", 1))

    def test_equality_depends_on_order(self, broker):
        """Brokers are equal only with the same subsets in the same order."""
        assert broker == CoordinateBroker([CARTESIAN_POSITION, CARTESIAN_VELOCITY, MASS])
        assert broker != CoordinateBroker([MASS, CARTESIAN_POSITION, CARTESIAN_VELOCITY])
