import numbers
from textwrap import TextWrapper
from typing import Any, Optional, Sequence, Tuple

import numpy as np
from asciitree import BoxStyle, LeftAligned
from asciitree.traversal import Traversal

from ncslab.errors import SizeOverflowError, err_rank_mismatch

# largest element count any shape may describe
MAX_SIZE = int(np.iinfo(np.int64).max)


def normalize_shape(shape) -> Tuple[int, ...]:
    """Convenience function to normalize the `shape` argument."""

    if shape is None:
        raise TypeError('shape is None')

    # handle 1D convenience form
    if isinstance(shape, numbers.Integral):
        shape = (int(shape),)

    # normalize
    shape = tuple(int(s) for s in shape)
    if any(s < 0 for s in shape):
        raise ValueError('shape must be non-negative, found {!r}'.format(shape))
    return shape


def normalize_index(index, ndim: int, what: str = 'index') -> Tuple[int, ...]:
    """Normalize an index-like argument to a tuple of ints of rank `ndim`."""
    if isinstance(index, numbers.Integral):
        index = (int(index),)
    index = tuple(int(i) for i in index)
    if len(index) != ndim:
        err_rank_mismatch(what, ndim, len(index))
    return index


def compute_strides(shape: Sequence[int]) -> Tuple[int, ...]:
    """Number of elements to step over to advance one position along each
    dimension, in row-major order. Dimensions of length 1 get a stride of 0.

    Examples
    --------
    >>> compute_strides((2, 3, 4))
    (12, 4, 1)
    >>> compute_strides((1,))
    (0,)

    """
    strides = [0] * len(shape)
    product = 1
    for i in range(len(shape) - 1, -1, -1):
        strides[i] = 0 if shape[i] == 1 else product
        product *= shape[i]
    return tuple(strides)


def compute_backstrides(shape: Sequence[int]) -> Tuple[int, ...]:
    """Number of elements to step back from the end of each dimension to its
    beginning, i.e., the stride times the dimension length minus one."""
    return tuple(stride * (extent - 1) if extent > 1 else 0
                 for stride, extent in zip(compute_strides(shape), shape))


def ravel_index(index: Sequence[int], shape: Sequence[int]) -> int:
    """Linear row-major offset of an index vector within `shape`."""
    if len(index) != len(shape):
        err_rank_mismatch('index', len(shape), len(index))
    return sum(i * s for i, s in zip(index, compute_strides(shape)))


def unravel_index(offset: int, shape: Sequence[int],
                  start: Optional[Sequence[int]] = None) -> Tuple[int, ...]:
    """Index vector for a linear row-major offset within `shape`. If `start`
    is given, `offset` is taken relative to it.

    An offset equal to the size of `shape` gives the past-the-end index,
    e.g., ``(2, 0)`` for shape ``(2, 3)``.
    """
    if start is not None:
        offset += ravel_index(start, shape)
    result = [0] * len(shape)
    for i, stride in enumerate(compute_strides(shape)):
        if stride != 0:
            result[i], offset = divmod(offset, stride)
    return tuple(result)


def squeeze(shape: Sequence[int]) -> Tuple[int, ...]:
    """Remove single-dimensional entries from a shape."""
    return tuple(s for s in shape if s != 1)


def compute_size(shape: Sequence[int]) -> int:
    """Number of elements in `shape`, raising
    :class:`ncslab.errors.SizeOverflowError` if it cannot be represented as
    a 64-bit signed integer."""
    n = 1
    for extent in shape:
        n *= extent
        if n > MAX_SIZE:
            raise SizeOverflowError(shape)
    return n


def human_readable_size(size) -> str:
    if size < 2**10:
        return '%s' % size
    elif size < 2**20:
        return '%.1fK' % (size / float(2**10))
    elif size < 2**30:
        return '%.1fM' % (size / float(2**20))
    elif size < 2**40:
        return '%.1fG' % (size / float(2**30))
    elif size < 2**50:
        return '%.1fT' % (size / float(2**40))
    else:
        return '%.1fP' % (size / float(2**50))


def info_text_report(items: Sequence[Tuple[str, Any]]) -> str:
    keys = [k for k, v in items]
    max_key_len = max(len(k) for k in keys)
    report = ''
    for k, v in items:
        wrapper = TextWrapper(width=80,
                              initial_indent=k.ljust(max_key_len) + ' : ',
                              subsequent_indent=' '*max_key_len + ' : ')
        text = wrapper.fill(str(v))
        report += text + '\n'
    return report


def info_html_report(items) -> str:
    report = '<table class="ncslab-info">'
    report += '<tbody>'
    for k, v in items:
        report += '<tr>' \
                  '<th style="text-align: left">%s</th>' \
                  '<td style="text-align: left">%s</td>' \
                  '</tr>' \
                  % (k, v)
    report += '</tbody>'
    report += '</table>'
    return report


class InfoReporter(object):

    def __init__(self, obj):
        self.obj = obj

    def __repr__(self):
        items = self.obj.info_items()
        return info_text_report(items)

    def _repr_html_(self):
        items = self.obj.info_items()
        return info_html_report(items)


class TreeNode(object):

    def __init__(self, obj, depth=0, level=None):
        self.obj = obj
        self.depth = depth
        self.level = level

    def get_children(self):
        if hasattr(self.obj, 'variables'):
            if self.level is None or self.depth < self.level:
                depth = self.depth + 1
                return [TreeNode(v, depth=depth, level=self.level)
                        for v in self.obj.variables.values()]
        return []

    def get_text(self):
        if hasattr(self.obj, 'variables'):
            return self.obj.name or '/'
        return '{} ({}) {} {}'.format(self.obj.name, ', '.join(self.obj.dimension_names),
                                      self.obj.type_name, self.obj.shape)


class TreeTraversal(Traversal):

    def get_children(self, node):
        return node.get_children()

    def get_root(self, tree):
        return tree

    def get_text(self, node):
        return node.get_text()


class TreeViewer(object):

    def __init__(self, dataset, level=None):

        self.dataset = dataset
        self.level = level

        self.text_kwargs = dict(
            horiz_len=2,
            label_space=1,
            indent=1
        )

        self.bytes_kwargs = dict(
            UP_AND_RIGHT="+",
            HORIZONTAL="-",
            VERTICAL="|",
            VERTICAL_AND_RIGHT="+"
        )

        self.unicode_kwargs = dict(
            UP_AND_RIGHT="└",
            HORIZONTAL="─",
            VERTICAL="│",
            VERTICAL_AND_RIGHT="├"
        )

    def __bytes__(self):
        drawer = LeftAligned(
            traverse=TreeTraversal(),
            draw=BoxStyle(gfx=self.bytes_kwargs, **self.text_kwargs)
        )
        root = TreeNode(self.dataset, level=self.level)
        return drawer(root).encode()

    def __str__(self):
        drawer = LeftAligned(
            traverse=TreeTraversal(),
            draw=BoxStyle(gfx=self.unicode_kwargs, **self.text_kwargs)
        )
        root = TreeNode(self.dataset, level=self.level)
        return drawer(root)

    def __repr__(self):
        return self.__str__()


class NoLock(object):
    """A lock that doesn't lock."""

    def __enter__(self):
        pass

    def __exit__(self, *args):
        pass


nolock = NoLock()


def typestr(o) -> str:
    return f"{type(o).__module__}.{type(o).__name__}"