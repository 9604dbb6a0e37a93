"""Splitting a batch into ghost batches along axis 0 and concatenating them back.

A batch here is a tensor or any nested structure of tensors understood by `tf.nest`
(tuples, lists, dicts), where all tensors share the same leading (batch) size.
"""

import numpy as np
import tensorflow as tf

from ghostnorm.exceptions import ConfigurationError, ShapeError


def check_virtual_batch_size(virtual_batch_size):
    if isinstance(virtual_batch_size, bool) or not isinstance(
            virtual_batch_size, (int, np.integer)):
        raise ConfigurationError(
            'virtual_batch_size', virtual_batch_size, 'must be an integer')
    if virtual_batch_size < 1:
        raise ConfigurationError(
            'virtual_batch_size', virtual_batch_size, 'must be at least 1')
    return int(virtual_batch_size)


def num_ghost_batches(batch_size, virtual_batch_size):
    """Returns how many ghost batches of at most `virtual_batch_size` cover the batch."""
    virtual_batch_size = check_virtual_batch_size(virtual_batch_size)
    if batch_size < 1:
        raise ShapeError('Cannot split an empty batch', shape=(batch_size,))
    return -(-batch_size // virtual_batch_size)


def group_sizes(batch_size, virtual_batch_size):
    """Sizes of the ghost batches: all equal to `virtual_batch_size` except the last one,
    which holds the remainder when the batch size is not divisible by it."""
    n_groups = num_ghost_batches(batch_size, virtual_batch_size)
    last = batch_size - virtual_batch_size * (n_groups - 1)
    return [virtual_batch_size] * (n_groups - 1) + [last]


def leading_size(batch):
    """Returns the static batch size shared by all tensors of `batch`.

    The size is read from the first tensor, and all other tensors must agree with it.
    """
    leaves = tf.nest.flatten(batch)
    if not leaves:
        raise ShapeError('The batch contains no tensors')

    sizes = []
    for leaf in leaves:
        shape = tf.TensorShape(leaf.shape)
        if shape.rank == 0:
            raise ShapeError('Batch tensors need a leading batch dimension', shape=shape)
        if shape.rank is None or shape[0] is None:
            raise ShapeError(
                'The batch size must be statically known to split into ghost batches',
                shape=shape)
        sizes.append(shape[0])

    batch_size = sizes[0]
    if any(size != batch_size for size in sizes[1:]):
        raise ShapeError(
            f'All tensors of a batch must have the same leading size, got {sizes}')
    if batch_size == 0:
        raise ShapeError('Cannot split an empty batch', shape=leaves[0].shape)
    return batch_size


def _resolve_sizes(batch_size, num_or_size_splits, allow_unequal):
    if isinstance(num_or_size_splits, bool):
        raise ConfigurationError('num_groups', num_or_size_splits, 'must be an integer')

    if isinstance(num_or_size_splits, (int, np.integer)):
        n_groups = int(num_or_size_splits)
        if not 1 <= n_groups <= batch_size:
            raise ConfigurationError(
                'num_groups', n_groups, f'must be between 1 and the batch size {batch_size}')
        base, remainder = divmod(batch_size, n_groups)
        if remainder and not allow_unequal:
            raise ShapeError(
                f'A batch of {batch_size} cannot be split into {n_groups} equal groups')
        return [base + 1] * remainder + [base] * (n_groups - remainder)

    sizes = [int(s) for s in num_or_size_splits]
    if not sizes or min(sizes) < 1:
        raise ShapeError(f'Group sizes must be positive, got {sizes}')
    if sum(sizes) != batch_size:
        raise ShapeError(f'Group sizes {sizes} do not add up to the batch size {batch_size}')
    if not allow_unequal and len(set(sizes)) > 1:
        raise ShapeError(f'Unequal group sizes {sizes} are not allowed')
    return sizes


def split(batch, num_groups, allow_unequal=True):
    """Splits `batch` into contiguous groups along the leading dimension.

    Args:
        batch: a tensor, array or nested structure of them with a common leading size.
        num_groups: either the number of groups, or an explicit list of group sizes.
            With a number of groups that does not divide the batch size, the earlier
            groups get one more sample than the later ones.
        allow_unequal: whether groups of different sizes are acceptable.

    Returns:
        A list of batches with the same structure as `batch`, in their original order.
    """
    batch = tf.nest.map_structure(tf.convert_to_tensor, batch)
    batch_size = leading_size(batch)
    sizes = _resolve_sizes(batch_size, num_groups, allow_unequal)
    if len(sizes) == 1:
        return [batch]

    parts_per_leaf = [tf.split(leaf, sizes, axis=0) for leaf in tf.nest.flatten(batch)]
    return [tf.nest.pack_sequence_as(batch, [parts[i] for parts in parts_per_leaf])
            for i in range(len(sizes))]


def batchify(sub_batches):
    """Concatenates a sequence of batches along the leading dimension, keeping their order.

    This is the inverse of `split`.
    """
    sub_batches = list(sub_batches)
    if not sub_batches:
        raise ShapeError('Cannot batchify an empty sequence of sub-batches')
    if len(sub_batches) == 1:
        return sub_batches[0]

    first = sub_batches[0]
    for sub_batch in sub_batches[1:]:
        tf.nest.assert_same_structure(first, sub_batch)

    flat_sub_batches = [tf.nest.flatten(sub_batch) for sub_batch in sub_batches]
    return tf.nest.pack_sequence_as(
        first, [tf.concat(list(parts), axis=0) for parts in zip(*flat_sub_batches)])
