"""
Unit tests for splitting batches into ghost batches and batchifying them back
"""

import math

import numpy as np
import pytest
import tensorflow as tf

# Add parent directory to path for imports
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ghostnorm.exceptions import ConfigurationError, ShapeError
from ghostnorm.util.batching import (
    batchify, group_sizes, leading_size, num_ghost_batches, split)


class TestGroupSizes:
    """Test ghost batch size computation"""

    @pytest.mark.parametrize('batch_size, virtual_batch_size, expected', [
        (1, 1, [1]),
        (6, 2, [2, 2, 2]),
        (60, 64, [60]),
        (7, 2, [2, 2, 2, 1]),
        (128, 128, [128]),
        (130, 64, [64, 64, 2]),
    ])
    def test_scenarios(self, batch_size, virtual_batch_size, expected):
        """Test known batch size / virtual batch size combinations"""
        assert group_sizes(batch_size, virtual_batch_size) == expected

    def test_sizes_cover_batch(self):
        """Test count, coverage and the size of every group"""
        for batch_size in range(1, 40):
            for virtual_batch_size in range(1, 45):
                sizes = group_sizes(batch_size, virtual_batch_size)
                assert len(sizes) == math.ceil(batch_size / virtual_batch_size)
                assert len(sizes) == num_ghost_batches(batch_size, virtual_batch_size)
                assert sum(sizes) == batch_size
                assert all(s == virtual_batch_size for s in sizes[:-1])
                remainder = batch_size % virtual_batch_size
                if remainder == 0:
                    assert sizes[-1] == virtual_batch_size
                elif virtual_batch_size < batch_size:
                    assert sizes[-1] == remainder

    @pytest.mark.parametrize('virtual_batch_size', [0, -3, 2.5, True, '8'])
    def test_invalid_virtual_batch_size(self, virtual_batch_size):
        """Test that bad virtual batch sizes are rejected"""
        with pytest.raises(ConfigurationError):
            group_sizes(10, virtual_batch_size)

    def test_numpy_integer_accepted(self):
        """Test that numpy integers work as virtual batch size"""
        assert group_sizes(5, np.int64(2)) == [2, 2, 1]

    def test_empty_batch(self):
        """Test that an empty batch cannot be split"""
        with pytest.raises(ShapeError):
            group_sizes(0, 4)


class TestSplit:
    """Test the batch splitter"""

    def test_round_trip(self):
        """Test that batchify undoes split exactly"""
        x = np.arange(7 * 3, dtype=np.float32).reshape(7, 3)
        for sizes in ([2, 2, 2, 1], [7], [1] * 7, [3, 4]):
            parts = split(x, sizes)
            assert [p.shape[0] for p in parts] == sizes
            np.testing.assert_array_equal(batchify(parts).numpy(), x)

    def test_order_preserved(self):
        """Test that groups are contiguous and ordered"""
        x = np.arange(10)
        parts = split(x, group_sizes(10, 4))
        np.testing.assert_array_equal(parts[0].numpy(), [0, 1, 2, 3])
        np.testing.assert_array_equal(parts[1].numpy(), [4, 5, 6, 7])
        np.testing.assert_array_equal(parts[2].numpy(), [8, 9])

    def test_group_count(self):
        """Test splitting into a number of groups"""
        x = tf.zeros((6, 2))
        assert [p.shape[0] for p in split(x, 3)] == [2, 2, 2]
        assert [p.shape[0] for p in split(x, 4)] == [2, 2, 1, 1]
        assert [p.shape[0] for p in split(x, 1)] == [6]

    def test_unequal_groups_rejected_when_disallowed(self):
        """Test the allow_unequal flag"""
        x = tf.zeros((7, 2))
        with pytest.raises(ShapeError):
            split(x, 3, allow_unequal=False)
        with pytest.raises(ShapeError):
            split(x, [4, 3], allow_unequal=False)
        assert len(split(tf.zeros((8, 2)), 4, allow_unequal=False)) == 4

    @pytest.mark.parametrize('num_groups', [0, -1, 8])
    def test_invalid_group_count(self, num_groups):
        """Test that group counts outside [1, batch_size] are rejected"""
        with pytest.raises(ConfigurationError):
            split(tf.zeros((7, 2)), num_groups)

    @pytest.mark.parametrize('sizes', [[3, 3], [4, 4], [7, 0], []])
    def test_invalid_sizes(self, sizes):
        """Test that explicit sizes must be positive and cover the batch"""
        with pytest.raises(ShapeError):
            split(tf.zeros((7, 2)), sizes)

    def test_nested_batch(self):
        """Test splitting co-indexed tensors together"""
        batch = dict(image=np.random.rand(5, 2, 2).astype(np.float32), label=np.arange(5))
        parts = split(batch, [2, 2, 1])
        assert len(parts) == 3
        assert all(set(p.keys()) == {'image', 'label'} for p in parts)
        np.testing.assert_array_equal(parts[2]['label'].numpy(), [4])

        restored = batchify(parts)
        np.testing.assert_array_equal(restored['image'].numpy(), batch['image'])
        np.testing.assert_array_equal(restored['label'].numpy(), batch['label'])

    def test_mismatched_leading_sizes(self):
        """Test that co-indexed tensors must agree on the batch size"""
        with pytest.raises(ShapeError):
            split((tf.zeros((5, 2)), tf.zeros((4,))), 2)

    def test_empty_batch(self):
        """Test that an empty batch cannot be split"""
        with pytest.raises(ShapeError):
            split(tf.zeros((0, 3)), 1)

    def test_scalar_batch(self):
        """Test that a tensor without batch dimension cannot be split"""
        with pytest.raises(ShapeError):
            split(tf.constant(1.0), 1)

    def test_leading_size(self):
        """Test reading the batch size from a structure"""
        assert leading_size((tf.zeros((3, 1)), [tf.zeros((3,))])) == 3
        with pytest.raises(ShapeError):
            leading_size([])


class TestBatchify:
    """Test concatenating ghost batches"""

    def test_empty_sequence(self):
        """Test that there is nothing to batchify in an empty sequence"""
        with pytest.raises(ShapeError):
            batchify([])

    def test_single_batch_returned_as_is(self):
        """Test that a single sub-batch is the batch itself"""
        x = tf.ones((3, 2))
        assert batchify([x]) is x

    def test_structure_mismatch(self):
        """Test that all sub-batches need the same structure"""
        with pytest.raises((ValueError, TypeError)):
            batchify([(tf.zeros((1,)), tf.zeros((1,))), tf.zeros((1,))])
