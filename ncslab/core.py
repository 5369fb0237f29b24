import logging

import numpy as np

from ncslab.dispatch import read_scalar, read_variable, split_fixed_width
from ncslab.errors import (ArgumentOutOfDomainError, InvalidCoordinatesError,
                           InvalidDimensionError)
from ncslab.indexing import BlockIterator, HyperslabView, cartesian_product
from ncslab.selection import CoordinateGroup, Selection, group_view, select_view
from ncslab.times import is_datetime_like
from ncslab.types import TypeTag, tag_dtype, tag_name, tag_size
from ncslab.util import (InfoReporter, compute_size, human_readable_size, normalize_index,
                         typestr)

logger = logging.getLogger(__name__)


class Variable(object):
    """Read-only view of an array in a dataset, restricted to a strided
    hyperslab. Should not be instantiated directly, will be available via
    indexing a :class:`ncslab.dataset.Dataset`.

    All narrowing operations (:func:`select`, :func:`view`, :func:`group_by`)
    return new Variable objects sharing the same backend; no data is read
    until values are requested.

    Parameters
    ----------
    dataset : ncslab.dataset.Dataset
        The dataset holding the array.
    array_id : int
        Backend identifier of the array.
    view : HyperslabView, optional
        Region of the array to expose. Defaults to the whole array.

    Attributes
    ----------
    dataset
    array_id
    name
    tag
    type_name
    dtype
    dims
    dimension_names
    hyperslab
    start
    shape
    stride
    ndim
    size
    itemsize
    nbytes
    chunks
    storage
    is_coordinate
    attrs
    fill_value
    info

    Methods
    -------
    select
    group_by
    view
    get_coordinates
    coordinates
    values
    read
    get_value
    iter_blocks
    __getitem__
    __iter__

    """

    def __init__(self, dataset, array_id, view=None):
        self._dataset = dataset
        self._array_id = array_id
        self._meta = dataset._metadata[array_id]
        self._dims = tuple(dataset._dimensions_by_id[i] for i in self._meta.dimension_ids)
        self._parent_shape = tuple(d.length for d in self._dims)
        if view is None:
            view = HyperslabView.full(self._parent_shape)
        else:
            view.check(self._parent_shape)
        self._view = view
        self._attrs = dataset._attrs_by_id[array_id]

    def _replace(self, view):
        return type(self)(self._dataset, self._array_id, view)

    @property
    def dataset(self):
        """The dataset this variable belongs to."""
        return self._dataset

    @property
    def backend(self):
        return self._dataset.backend

    @property
    def array_id(self):
        return self._array_id

    @property
    def name(self):
        return self._meta.name

    @property
    def tag(self):
        """Element type, a :class:`ncslab.types.TypeTag`."""
        return self._meta.tag

    @property
    def type_name(self):
        return tag_name(self._meta.tag)

    @property
    def dtype(self):
        """The numpy dtype values are read as."""
        return tag_dtype(self._meta.tag)

    @property
    def dims(self):
        """The :class:`ncslab.dataset.Dimension` objects the variable is
        defined over."""
        return self._dims

    @property
    def dimension_names(self):
        return tuple(d.name for d in self._dims)

    @property
    def hyperslab(self):
        """The :class:`ncslab.indexing.HyperslabView` exposed by this
        variable."""
        return self._view

    @property
    def start(self):
        return self._view.start

    @property
    def shape(self):
        return self._view.shape

    @property
    def stride(self):
        return self._view.stride

    @property
    def ndim(self):
        return len(self._view.shape)

    @property
    def size(self):
        """The total number of elements in the view."""
        return self._view.size

    @property
    def itemsize(self):
        """The size in bytes of each item as stored by the backend."""
        return tag_size(self._meta.tag)

    @property
    def nbytes(self):
        return self.size * self.itemsize

    @property
    def chunks(self):
        """Storage chunk shape, or None if the array is contiguous."""
        return self._meta.chunks

    @property
    def storage(self):
        return 'chunked' if self._meta.chunks else 'contiguous'

    @property
    def is_coordinate(self):
        """True if this is the coordinate variable of its first dimension."""
        return bool(self._dims) and self._dims[0].coordinate_id == self._array_id

    @property
    def attrs(self):
        """An :class:`ncslab.attrs.Attributes` mapping of the variable's
        attributes."""
        return self._attrs

    @property
    def fill_value(self):
        """Value of the ``_FillValue`` attribute, or None."""
        return self._attrs.get('_FillValue')

    def _dimension_index(self, name):
        for i, d in enumerate(self._dims):
            if d.name == name:
                return i
        raise InvalidDimensionError(name)

    def view(self, selection=Ellipsis):
        """Return a variable over a sub-region given by integers and slices
        relative to the current view. Integer-indexed dimensions are kept
        with length 1.

        Examples
        --------
        >>> v = ds['tos']  # doctest: +SKIP
        >>> v.view((0, slice(None, None, 2))).shape  # doctest: +SKIP
        (1, 32)

        """
        view, _ = self._view.subview(selection)
        return self._replace(view)

    def select(self, *selections):
        """Narrow the variable by ranges of coordinate values.

        Parameters
        ----------
        *selections : Selection or tuple
            Each as ``(coordinate_name, min_value, max_value[, stride])``.
            Ranges are inclusive at both ends and are located in the full
            coordinate variable of the named dimension.

        Returns
        -------
        Variable

        Raises
        ------
        ncslab.errors.InvalidDimensionError
            If the variable has no dimension with the given name.
        ncslab.errors.VariableNotFoundError
            If the dimension has no coordinate variable.
        ncslab.errors.ArgumentOutOfDomainError
            If a stride is zero.

        Examples
        --------
        >>> v = ds['tos'].select(('lat', -10, 10), ('lon', 0, 90))  # doctest: +SKIP

        A range matching nothing yields an empty variable rather than an
        error::

            >>> ds['tos'].select(('lat', 100, 110)).size  # doctest: +SKIP
            0

        """
        view = self._view
        for sel in selections:
            if not isinstance(sel, Selection):
                sel = Selection(*sel)
            dim = self._dimension_index(sel.coordinate_name)
            decode_times = is_datetime_like(sel.min_value) or is_datetime_like(sel.max_value)
            coords = self._dataset.read_coordinates(self._dims[dim], decode_times=decode_times)
            if decode_times:
                sel = sel._replace(min_value=np.datetime64(sel.min_value, 'ns'),
                                   max_value=np.datetime64(sel.max_value, 'ns'))
            view = select_view(view, dim, coords, sel)
        logger.debug('%s: selected %s', self.name, view)
        return self._replace(view)

    def group_by(self, coordinate_name):
        """Split the variable along a dimension into runs of equal coordinate
        values.

        Returns
        -------
        list of CoordinateGroup
            ``(value, variable)`` pairs in coordinate order; the variables
            together cover the current view exactly once.

        """
        dim = self._dimension_index(coordinate_name)
        coords = self.get_coordinates(dim)
        return [CoordinateGroup(value, self._replace(view))
                for value, view in group_view(self._view, dim, coords)]

    def get_coordinates(self, dim, decode_times=False):
        """Coordinate values of the view along one dimension, given by index
        or by name. An unknown name gives an empty array."""
        if isinstance(dim, str):
            try:
                dim = self._dimension_index(dim)
            except InvalidDimensionError:
                return np.array([])
        dim = int(dim)
        if not 0 <= dim < self.ndim:
            raise ArgumentOutOfDomainError(f'dimension index {dim} not in [0, {self.ndim})')
        return self._dataset.read_coordinates(
            self._dims[dim], self.start[dim], self.shape[dim], self.stride[dim],
            decode_times=decode_times)

    def coordinates(self, *dtypes):
        """Coordinates of every element of the view, as a list of tuples in
        the same order as :func:`values`.

        Parameters
        ----------
        *dtypes : dtype, optional
            One type per dimension to convert each coordinate column to.

        Raises
        ------
        ncslab.errors.InvalidCoordinatesError
            If types are given and their number differs from the rank.

        """
        if dtypes and len(dtypes) != self.ndim:
            raise InvalidCoordinatesError(self.ndim, len(dtypes))
        columns = [self.get_coordinates(i) for i in range(self.ndim)]
        if dtypes:
            columns = [np.asarray(c).astype(dt) for c, dt in zip(columns, dtypes)]
        return cartesian_product(*columns)

    def values(self, dtype=None):
        """Read all values of the view in row-major order, as a flat numpy
        array for numeric types or a list of ``str`` for ``STRING``.

        ``CHAR`` variables of rank 1 are returned as a single ``str``; of
        higher rank as a list of ``str``, one per row of the last dimension,
        with trailing blanks removed.
        """
        view = self._view
        value = read_variable(self.backend, self._array_id, view.start, view.shape,
                              view.stride).value
        if self.tag == TypeTag.CHAR and self.ndim >= 2:
            return split_fixed_width(value, view.shape[-1], compute_size(view.shape[:-1]))
        if dtype is not None and isinstance(value, np.ndarray):
            value = value.astype(dtype)
        return value

    def read(self):
        """Read all values of the view into an array of the view's shape.
        ``CHAR`` variables of rank >= 2 lose their last dimension."""
        values = self.values()
        if self.tag == TypeTag.CHAR:
            if self.ndim < 2:
                return values
            return _object_array(values, self.shape[:-1])
        if isinstance(values, list):
            return _object_array(values, self.shape)
        return values.reshape(self.shape)

    def __array__(self, dtype=None, copy=None):
        a = self.read()
        if dtype is not None:
            a = a.astype(dtype)
        return a

    def __getitem__(self, selection):
        """Read values using basic indexing with integers and slices, relative
        to the current view, as for a numpy array. Negative steps are not
        supported."""
        view, drop_axes = self._view.subview(selection)
        out = self._replace(view).read()
        if not isinstance(out, np.ndarray):
            return out
        drop_axes = tuple(a for a in drop_axes if a < out.ndim)
        if drop_axes:
            out = out.squeeze(axis=drop_axes)
        if out.ndim == 0:
            out = out[()]
        return out

    def get_value(self, index):
        """Read the single element at `index` within the view."""
        index = normalize_index(index, self.ndim)
        for dim, (i, n) in enumerate(zip(index, self.shape)):
            if not 0 <= i < n:
                raise ArgumentOutOfDomainError(
                    f'index {i} out of range for dimension {dim} of length {n}')
        value = read_scalar(self.backend, self._array_id, self._view.parent_index(index)).value
        if isinstance(value, np.ndarray):
            return value[0]
        if isinstance(value, list):
            return value[0] if value else None
        return value

    def iter_blocks(self, blocksize=None):
        """Return a :class:`ncslab.indexing.BlockIterator` over the view.

        Examples
        --------
        >>> for block in ds['tos'].iter_blocks(blocksize=1000):  # doctest: +SKIP
        ...     total += block.values().sum()

        """
        return BlockIterator(self.backend, self._array_id, self.shape, blocksize=blocksize,
                             origin=self.start, stride=self.stride)

    def __iter__(self):
        """Iterate over all elements of the view in row-major order, reading
        one block at a time. ``CHAR`` variables iterate like :func:`values`:
        by character for rank 1, by fixed-width string for higher ranks."""
        if self.tag == TypeTag.CHAR:
            yield from self.values()
            return
        for block in self.iter_blocks():
            yield from block.values()

    def __len__(self):
        if self.shape:
            return self.shape[0]
        else:
            raise TypeError('len() of unsized object')

    def __eq__(self, other):
        return (
            isinstance(other, Variable) and
            self._dataset is other._dataset and
            self._array_id == other._array_id and
            self._view == other._view
        )

    def __hash__(self):
        return hash((id(self._dataset), self._array_id, self._view))

    def __repr__(self):
        t = type(self)
        r = '<{}.{} {!r}'.format(t.__module__, t.__name__, self.name)
        dims = ', '.join(f'{name}: {n}' for name, n in zip(self.dimension_names, self.shape))
        r += ' ({})'.format(dims)
        r += ' {}'.format(self.type_name)
        r += '>'
        return r

    @property
    def info(self):
        """Report some diagnostic information about the variable.

        Examples
        --------
        >>> ds['time'].info  # doctest: +SKIP
        Name         : time
        Type         : ncslab.core.Variable
        Data type    : double
        Dimensions   : time
        Shape        : (12,)
        Start        : (0,)
        Stride       : (1,)
        Storage      : contiguous
        Coordinate   : True
        Backend type : ncslab.storage.MemoryBackend
        No. bytes    : 96

        """
        return InfoReporter(self)

    def info_items(self):

        def bytestr(n):
            if n > 2**10:
                return '{} ({})'.format(n, human_readable_size(n))
            else:
                return str(n)

        items = []

        # basic info
        items += [('Name', self.name)]
        items += [
            ('Type', typestr(self)),
            ('Data type', self.type_name),
            ('Dimensions', ', '.join(self.dimension_names)),
            ('Shape', str(self.shape)),
            ('Start', str(self.start)),
            ('Stride', str(self.stride)),
        ]
        if self.chunks:
            items += [('Chunk shape', str(self.chunks))]
        items += [
            ('Storage', self.storage),
            ('Coordinate', str(self.is_coordinate)),
        ]

        # backend info
        items += [('Backend type', typestr(self.backend))]
        items += [('No. bytes', bytestr(self.nbytes))]

        return items


def _object_array(values, shape):
    out = np.empty(len(values), dtype=object)
    out[:] = values
    return out.reshape(shape)
