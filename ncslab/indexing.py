import collections
import itertools
import logging
import numbers
from typing import Optional, Sequence, Tuple

import numpy as np

from ncslab.config import config, parse_buffer_size
from ncslab.dispatch import read_variable
from ncslab.errors import (ArgumentOutOfDomainError, BoundsCheckError, NegativeStepError,
                           err_rank_mismatch, err_too_many_indices)
from ncslab.types import tag_size
from ncslab.util import (compute_size, compute_strides, normalize_index, normalize_shape,
                         ravel_index, unravel_index)

logger = logging.getLogger(__name__)


def is_integer(x):
    return isinstance(x, numbers.Integral)


def ceildiv(a, b):
    return -(-a // b)


def normalize_integer_selection(dim_sel, dim_len):

    # normalize type to int
    dim_sel = int(dim_sel)

    # handle wraparound
    if dim_sel < 0:
        dim_sel = dim_len + dim_sel

    # handle out of bounds
    if dim_sel >= dim_len or dim_sel < 0:
        raise BoundsCheckError(dim_len)

    return dim_sel


def ensure_tuple(v):
    if not isinstance(v, tuple):
        v = (v,)
    return v


def check_selection_length(selection, shape):
    if len(selection) > len(shape):
        err_too_many_indices(selection, shape)


def replace_ellipsis(selection, shape):

    selection = ensure_tuple(selection)

    # count number of ellipsis present
    n_ellipsis = sum(1 for i in selection if i is Ellipsis)

    if n_ellipsis > 1:
        # more than 1 is an error
        raise IndexError("an index can only have a single ellipsis ('...')")

    elif n_ellipsis == 1:
        # locate the ellipsis, count how many items to left and right
        n_items_l = selection.index(Ellipsis)  # items to left of ellipsis
        n_items_r = len(selection) - (n_items_l + 1)  # items to right of ellipsis
        n_items = len(selection) - 1  # all non-ellipsis items

        if n_items >= len(shape):
            # ellipsis does nothing, just remove it
            selection = tuple(i for i in selection if i is not Ellipsis)

        else:
            # replace ellipsis with as many slices are needed for number of dims
            new_item = selection[:n_items_l] + ((slice(None),) * (len(shape) - n_items))
            if n_items_r:
                new_item += selection[-n_items_r:]
            selection = new_item

    # fill out selection if not completely specified
    if len(selection) < len(shape):
        selection += (slice(None),) * (len(shape) - len(selection))

    # check selection not too long
    check_selection_length(selection, shape)

    return selection


def dim_slice(start, count, stride):
    """Python slice addressing `count` items from `start` in steps of
    `stride` along one dimension of an in-memory array."""
    if count == 0:
        return slice(0, 0)
    stop = start + count * stride
    if stop < 0:
        stop = None
    return slice(start, stop, stride)


class HyperslabView(collections.namedtuple('HyperslabView', ('start', 'shape', 'stride'))):
    """A strided rectangular region of a parent array, one entry per
    dimension in each of `start`, `shape` and `stride`. Instances are
    immutable; operations that narrow a view return a new one.

    Parameters
    ----------
    start : sequence of ints
        Position of the first element in the parent array.
    shape : sequence of ints
        Number of elements along each dimension.
    stride : sequence of ints, optional
        Step between consecutive elements along each dimension, in elements
        of the parent array. Defaults to 1 everywhere.

    """

    __slots__ = ()

    def __new__(cls, start, shape, stride=None):
        shape = normalize_shape(shape)
        start = normalize_index(start, len(shape), what='start')
        if stride is None:
            stride = (1,) * len(shape)
        stride = normalize_index(stride, len(shape), what='stride')
        return super(HyperslabView, cls).__new__(cls, start, shape, stride)

    @classmethod
    def full(cls, shape):
        """View of the whole of an array with the given shape."""
        shape = normalize_shape(shape)
        return cls((0,) * len(shape), shape)

    @property
    def ndim(self):
        return len(self.shape)

    @property
    def size(self):
        return compute_size(self.shape)

    def replace_dim(self, dim, start=None, shape=None, stride=None):
        """Return a new view with the entries of one dimension replaced."""
        new_start, new_shape, new_stride = list(self.start), list(self.shape), list(self.stride)
        if start is not None:
            new_start[dim] = start
        if shape is not None:
            new_shape[dim] = shape
        if stride is not None:
            new_stride[dim] = stride
        return HyperslabView(new_start, new_shape, new_stride)

    def parent_index(self, index):
        """Map an index within this view to the parent array."""
        index = normalize_index(index, self.ndim)
        return tuple(s + i * st for s, i, st in zip(self.start, index, self.stride))

    def check(self, parent_shape):
        """Raise :class:`ncslab.errors.ArgumentOutOfDomainError` unless every
        element of the view lies inside an array of `parent_shape`."""
        parent_shape = normalize_shape(parent_shape)
        if len(parent_shape) != self.ndim:
            err_rank_mismatch('view', len(parent_shape), self.ndim)
        for dim, (s, n, st, extent) in enumerate(zip(self.start, self.shape, self.stride,
                                                     parent_shape)):
            if n == 0:
                continue
            last = s + (n - 1) * st
            if not (0 <= s < extent and 0 <= last < extent):
                raise ArgumentOutOfDomainError(
                    f'view exceeds bound {extent} of dimension {dim}')

    def subview(self, selection):
        """Narrow this view by a basic selection of integers and slices,
        expressed in the view's own index space.

        Returns
        -------
        view : HyperslabView
            Integers keep their dimension with length 1.
        drop_axes : tuple of ints
            Dimensions that were selected with an integer.

        """
        selection = replace_ellipsis(selection, self.shape)

        start, shape, stride, drop_axes = [], [], [], []
        for dim, (dim_sel, s, n, st) in enumerate(zip(selection, self.start, self.shape,
                                                      self.stride)):

            if is_integer(dim_sel):
                i = normalize_integer_selection(dim_sel, n)
                start.append(s + i * st)
                shape.append(1)
                stride.append(st)
                drop_axes.append(dim)

            elif isinstance(dim_sel, slice):
                sel_start, sel_stop, sel_step = dim_sel.indices(n)
                if sel_step < 1:
                    raise NegativeStepError()
                start.append(s + sel_start * st)
                shape.append(max(0, ceildiv(sel_stop - sel_start, sel_step)))
                stride.append(st * sel_step)

            else:
                raise IndexError('unsupported selection item for basic indexing; '
                                 'expected integer or slice, got {!r}'
                                 .format(type(dim_sel)))

        return HyperslabView(start, shape, stride), tuple(drop_axes)


def compute_block_size(blocksize: int, shape: Sequence[int],
                       start: Sequence[int]) -> Tuple[int, Tuple[int, ...]]:
    """Plan the next block of a row-major traversal of `shape`.

    The requested number of elements is reduced so that the block is a
    contiguous, rectangular sub-array beginning at `start`.

    Parameters
    ----------
    blocksize : int
        Maximum number of elements in the block.
    shape : tuple of ints
        Shape of the array being traversed.
    start : tuple of ints
        Index of the first element of the block.

    Returns
    -------
    blocksize : int
        Number of elements in the block.
    count : tuple of ints
        Edge lengths of the block.

    """
    shape = tuple(shape)
    start = tuple(start)
    if len(start) != len(shape):
        err_rank_mismatch('start', len(shape), len(start))
    blocksize = max(int(blocksize), 1)

    strides = compute_strides(shape)

    # outermost dimension whose stride fits in the block; dimensions of
    # length 1 do not move the cursor
    dim = next((i for i, s in enumerate(strides) if 0 < s <= blocksize), None)

    if dim is None:
        return compute_size(shape) - ravel_index(start, shape), shape

    # a block must not cross a partially consumed inner dimension
    for i in range(len(shape) - 1, dim, -1):
        if strides[i] != 0 and start[i] != 0:
            dim = i
            break

    inc = blocksize // strides[dim]
    if start[dim] + inc > shape[dim]:
        inc = shape[dim] - start[dim]
    blocksize = strides[dim] * inc

    # edge lengths are the full shape except up to and including dim
    count = list(shape)
    n = blocksize
    for i in range(dim + 1):
        if strides[i] != 0:
            q, n = divmod(n, strides[i])
            count[i] = max(q, 1)

    return blocksize, tuple(count)


def default_blocksize(backend, array_id) -> int:
    """Number of elements per block for an array: one storage chunk if the
    array is chunked, else the configured buffer size."""
    meta = backend.metadata(array_id)
    if meta.chunks:
        return max(compute_size(meta.chunks), 1)
    buffer_size = parse_buffer_size(config.get('block.buffer_size'))
    return max(buffer_size // tag_size(meta.tag), 1)


class BlockIterator(object):
    """Visit every element of an array region exactly once as a sequence of
    contiguous blocks of bounded size.

    Parameters
    ----------
    backend : ncslab.storage.Backend
        Storage backend to read from.
    array_id : int
        Identifier of the array.
    shape : tuple of ints
        Shape of the region to traverse.
    start : tuple of ints, optional
        Position within `shape` to begin at. Defaults to the origin.
    blocksize : int, optional
        Maximum number of elements per block. If not provided, derived from
        the array's chunk size, or from the ``block.buffer_size`` setting
        for unchunked arrays.
    origin : tuple of ints, optional
        Position of the region within the parent array.
    stride : tuple of ints, optional
        Step between region elements within the parent array.

    Examples
    --------
    >>> it = BlockIterator(backend, array_id, (4, 5), blocksize=10)  # doctest: +SKIP
    >>> while it.next():  # doctest: +SKIP
    ...     process(it.start, it.count, it.values())

    """

    def __init__(self, backend, array_id, shape, start=None, blocksize=None,
                 origin=None, stride=None):

        shape = normalize_shape(shape)
        ndim = len(shape)
        if start is None:
            start = (0,) * ndim
        elif len(start) != ndim:
            raise ArgumentOutOfDomainError(
                f'start has rank {len(start)}, expected {ndim}')
        if origin is None:
            origin = (0,) * ndim
        if stride is None:
            stride = (1,) * ndim

        self._backend = backend
        self._array_id = array_id
        self._shape = shape
        self._origin = normalize_index(origin, ndim, what='origin')
        self._stride = normalize_index(stride, ndim, what='stride')
        self._next = tuple(int(i) for i in start)
        self._start = self._next
        self._count = (0,) * ndim
        self._size = compute_size(shape)
        self._offset = ravel_index(self._next, shape)
        self._blocksize = 0
        if blocksize is None:
            blocksize = default_blocksize(backend, array_id)
        self._init_blocksize = max(int(blocksize), 1)

    @property
    def shape(self):
        """Shape of the region being traversed."""
        return self._shape

    @property
    def offset(self):
        """Linear offset of the end of the current block."""
        return self._offset

    @property
    def start(self):
        """Start index of the current block, relative to the region."""
        return self._start

    @property
    def count(self):
        """Edge lengths of the current block."""
        return self._count

    @property
    def blocksize(self):
        """Number of elements in the current block."""
        return self._blocksize

    def next(self) -> bool:
        """Move to the next block. Returns False once the region is
        exhausted."""
        if self._offset >= self._size:
            return False

        self._blocksize, self._count = compute_block_size(
            self._init_blocksize, self._shape, self._next)
        self._start = self._next
        self._next = unravel_index(self._blocksize, self._shape, self._start)
        self._offset += self._blocksize
        logger.debug('block start=%s count=%s size=%s', self._start, self._count,
                     self._blocksize)
        return True

    def __iter__(self):
        while self.next():
            yield self

    def _check_block(self):
        if self._blocksize == 0:
            raise ArgumentOutOfDomainError('no current block; call next() first')

    def selection(self):
        """The current block as ``(start, count, stride)`` in the parent
        array."""
        self._check_block()
        start = tuple(o + s * st for o, s, st in zip(self._origin, self._start, self._stride))
        return start, self._count, self._stride

    def values(self):
        """Read the values of the current block as a flat sequence."""
        start, count, stride = self.selection()
        return read_variable(self._backend, self._array_id, start, count, stride).value

    def read(self):
        """Read the values of the current block, shaped like the block."""
        values = self.values()
        if isinstance(values, np.ndarray):
            return values.reshape(self._count)
        return values


def cartesian_product(*columns):
    """Every combination of one item from each column, in row-major order
    (the last column varies fastest), matching the order values of a
    hyperslab are returned in.

    Examples
    --------
    >>> cartesian_product(['a', 'b'], ['x', 'y'])
    [('a', 'x'), ('a', 'y'), ('b', 'x'), ('b', 'y')]

    """
    return list(itertools.product(*columns))


def block_coverage(shape, blocksize, start: Optional[Sequence[int]] = None):
    """Plan all blocks of a traversal without reading, returning a list of
    ``(start, count, blocksize)``."""
    shape = normalize_shape(shape)
    position = tuple(start) if start is not None else (0,) * len(shape)
    if len(position) != len(shape):
        err_rank_mismatch('start', len(shape), len(position))
    offset = ravel_index(position, shape)
    size = compute_size(shape)
    blocks = []
    while offset < size:
        n, count = compute_block_size(blocksize, shape, position)
        blocks.append((position, count, n))
        position = unravel_index(n, shape, position)
        offset += n
    return blocks
