import collections
import logging

import numpy as np

from ncslab.errors import ArgumentOutOfDomainError

logger = logging.getLogger(__name__)


class Selection(collections.namedtuple('Selection',
                                       ('coordinate_name', 'min_value', 'max_value', 'stride'))):
    """An inclusive range of coordinate values along one dimension.

    Parameters
    ----------
    coordinate_name : str
        Name of the dimension (and of its coordinate variable).
    min_value, max_value
        Bounds of the range, in coordinate units. Both ends are inclusive;
        the bounds may be given in either order.
    stride : int, optional
        Step between selected elements. Negative values select in reverse.

    """

    __slots__ = ()

    def __new__(cls, coordinate_name, min_value, max_value, stride=1):
        return super(Selection, cls).__new__(cls, coordinate_name, min_value, max_value,
                                             int(stride))


CoordinateGroup = collections.namedtuple('CoordinateGroup', ('value', 'view'))


def is_ascending(values) -> bool:
    """True if `values` never decrease."""
    values = np.asarray(values)
    if values.size < 2:
        return True
    return bool(np.all(values[1:] >= values[:-1]))


def coordinate_range(values, min_value, max_value):
    """Locate the run of coordinate values within ``[min_value, max_value]``.

    Returns
    -------
    start : int
        Index of the first coordinate in the range.
    nitems : int
        Number of coordinates in the range.

    """
    values = np.asarray(values)
    reverse = not is_ascending(values)
    if reverse:
        values = values[::-1]
    if min_value > max_value:
        min_value, max_value = max_value, min_value

    lower = int(np.searchsorted(values, min_value, side='left'))
    upper = int(np.searchsorted(values, max_value, side='right'))
    upper = max(upper, lower)

    start = len(values) - upper if reverse else lower
    return start, upper - lower


def select_view(view, dim, coords, selection):
    """Narrow `view` along dimension `dim` to the elements whose coordinates
    fall within `selection`.

    `coords` are the coordinate values of the whole parent dimension; the
    result replaces whatever the view held along `dim`.

    Examples
    --------
    >>> from ncslab.indexing import HyperslabView
    >>> view = HyperslabView.full((5,))
    >>> select_view(view, 0, [0, 10, 20, 30, 40], Selection('x', 10, 30))
    HyperslabView(start=(1,), shape=(3,), stride=(1,))

    """
    stride = selection.stride
    if stride == 0:
        raise ArgumentOutOfDomainError('selection stride must be non-zero')

    start, nitems = coordinate_range(coords, selection.min_value, selection.max_value)
    shape = nitems // abs(stride)
    if stride < 0 and shape > 0:
        start += (shape - 1) * abs(stride)

    logger.debug('select %s in [%r, %r]: start=%s shape=%s stride=%s',
                 selection.coordinate_name, selection.min_value, selection.max_value,
                 start, shape, stride)
    return view.replace_dim(dim, start=start, shape=shape, stride=stride)


def group_runs(values):
    """Split a sequence into maximal runs of adjacent equal values.

    Returns
    -------
    list of ``(value, begin, end)``

    Examples
    --------
    >>> [(int(v), b, e) for v, b, e in group_runs([1, 1, 2, 2, 2, 3])]
    [(1, 0, 2), (2, 2, 5), (3, 5, 6)]

    """
    runs = []
    n = len(values)
    begin = 0
    while begin < n:
        end = begin + 1
        while end < n and values[end] == values[begin]:
            end += 1
        runs.append((values[begin], begin, end))
        begin = end
    return runs


def group_view(view, dim, coords):
    """Split `view` along `dim` into one sub-view per run of equal values in
    `coords`, which hold the coordinates of the view's own elements."""
    groups = []
    stride = view.stride[dim]
    for value, begin, end in group_runs(coords):
        sub = view.replace_dim(dim, start=view.start[dim] + begin * stride,
                               shape=end - begin, stride=stride)
        groups.append(CoordinateGroup(value, sub))
    return groups
