import logging
from collections.abc import Mapping

import numpy as np

from ncslab.attrs import Attributes
from ncslab.config import config
from ncslab.core import Variable
from ncslab.dispatch import read_variable, split_fixed_width
from ncslab.errors import VariableNotFoundError
from ncslab.indexing import dim_slice
from ncslab.storage import GLOBAL
from ncslab.sync import SynchronizedBackend
from ncslab.times import decode_cf_times
from ncslab.types import TypeTag
from ncslab.util import InfoReporter, TreeViewer, typestr

logger = logging.getLogger(__name__)


class Dimension(object):
    """A named dimension of a dataset. Should not be instantiated directly,
    will be available via the `.dims` mapping of a dataset."""

    def __init__(self, dataset, dim_id, name, length, coordinate_id=None, unlimited=False):
        self._dataset = dataset
        self._dim_id = dim_id
        self._name = name
        self._length = length
        self._coordinate_id = coordinate_id
        self._unlimited = unlimited

    @property
    def dim_id(self):
        return self._dim_id

    @property
    def name(self):
        return self._name

    @property
    def length(self):
        return self._length

    @property
    def coordinate_id(self):
        """Backend id of the coordinate variable, or None."""
        return self._coordinate_id

    @property
    def coordinate_variable(self):
        if self._coordinate_id is None:
            return None
        return self._dataset._variables_by_id[self._coordinate_id]

    @property
    def is_unlimited(self):
        return self._unlimited

    def coordinates(self, decode_times=False):
        """All values of the dimension's coordinate variable."""
        return self._dataset.read_coordinates(self, decode_times=decode_times)

    def __len__(self):
        return self._length

    def __eq__(self, other):
        return (
            isinstance(other, Dimension) and
            self._dataset is other._dataset and
            self._dim_id == other._dim_id
        )

    def __hash__(self):
        return hash((id(self._dataset), self._dim_id))

    def __repr__(self):
        r = '<ncslab.Dimension {!r} {}'.format(self._name, self._length)
        if self._unlimited:
            r += ' unlimited'
        r += '>'
        return r


class Dataset(Mapping):
    """A read-only collection of variables defined over shared dimensions,
    accessed through a storage backend. Variables are available by name via
    indexing.

    Metadata (dimensions, variable types and shapes, and the link from each
    dimension to its coordinate variable) is read once on construction.

    Parameters
    ----------
    backend : ncslab.storage.Backend
        The backend to read from. It is not closed by the dataset.
    name : string, optional
        Name shown in reports.
    synchronizer : object, optional
        Synchronizer serializing calls to the backend.
    cache_coordinates : bool, optional
        If True, coordinate variables are read once and kept in memory. Only
        valid if the data cannot change. Defaults to the
        ``coordinates.cache`` configuration value.

    Examples
    --------
    >>> ds = Dataset(backend)  # doctest: +SKIP
    >>> ds['tos'].select(('lat', -10, 10)).read()  # doctest: +SKIP

    """

    def __init__(self, backend, name='', synchronizer=None, cache_coordinates=None):
        if synchronizer is not None:
            backend = SynchronizedBackend(backend, synchronizer)
        if cache_coordinates is None:
            cache_coordinates = config.get('coordinates.cache')
        self._backend = backend
        self._name = name
        self._synchronizer = synchronizer
        self._cache_coordinates = bool(cache_coordinates)
        self._coordinate_cache = {}
        self._load_metadata()

    def _load_metadata(self):
        backend = self._backend
        unlimited = set(backend.unlimited_dimension_ids())

        self._dimensions_by_id = {}
        for dim_id in backend.dimension_ids():
            self._dimensions_by_id[dim_id] = Dimension(
                self, dim_id, backend.dimension_name(dim_id),
                backend.dimension_length(dim_id),
                coordinate_id=backend.coordinate_variable_id(dim_id),
                unlimited=dim_id in unlimited)
        self._dims = {d.name: d for d in self._dimensions_by_id.values()}

        self._metadata = {array_id: backend.metadata(array_id)
                          for array_id in backend.array_ids()}
        self._attrs_by_id = {array_id: Attributes(backend, array_id)
                             for array_id in self._metadata}
        self._variables_by_id = {array_id: Variable(self, array_id)
                                 for array_id in self._metadata}
        self._variables = {v.name: v for v in self._variables_by_id.values()}
        self._attrs = Attributes(backend, GLOBAL)

        logger.debug('loaded %d dimensions and %d variables', len(self._dims),
                     len(self._variables))

    @property
    def backend(self):
        return self._backend

    @property
    def name(self):
        return self._name

    @property
    def synchronizer(self):
        return self._synchronizer

    @property
    def dims(self):
        """Mapping of dimension name to :class:`Dimension`."""
        return self._dims

    @property
    def variables(self):
        """Mapping of variable name to :class:`ncslab.core.Variable`."""
        return self._variables

    @property
    def attrs(self):
        """Dataset-level attributes."""
        return self._attrs

    @property
    def cache_coordinates(self):
        return self._cache_coordinates

    def __getitem__(self, item):
        return self._variables[item]

    def __iter__(self):
        return iter(self._variables)

    def __len__(self):
        return len(self._variables)

    def __contains__(self, item):
        return item in self._variables

    def _ipython_key_completions_(self):
        return sorted(self._variables)

    def read_coordinates(self, dimension, start=0, count=None, stride=1, decode_times=False):
        """Read values of a dimension's coordinate variable.

        Parameters
        ----------
        dimension : Dimension or str
            The dimension.
        start, count, stride : int, optional
            Range of coordinates to read. Defaults to all of them.
        decode_times : bool, optional
            If True, convert the values to ``datetime64`` using the variable's
            CF ``units`` and ``calendar`` attributes.

        Raises
        ------
        ncslab.errors.VariableNotFoundError
            If the dimension has no coordinate variable.

        """
        if isinstance(dimension, str):
            dimension = self._dims[dimension]
        array_id = dimension.coordinate_id
        if array_id is None:
            raise VariableNotFoundError(dimension.name)
        if count is None:
            count = dimension.length

        if self._cache_coordinates:
            values = self._coordinate_cache.get(array_id)
            if values is None:
                values = self._read_coordinates(array_id, 0, dimension.length, 1)
                self._coordinate_cache[array_id] = values
            values = values[dim_slice(start, count, stride)]
        else:
            values = self._read_coordinates(array_id, start, count, stride)

        if decode_times:
            values = self._decode_times(array_id, values)
        return values

    def _read_coordinates(self, array_id, start, count, stride):
        meta = self._metadata[array_id]
        if meta.tag == TypeTag.CHAR and len(meta.dimension_ids) == 2:
            width = self._dimensions_by_id[meta.dimension_ids[1]].length
            text = read_variable(self._backend, array_id, (start, 0), (count, width),
                                 (stride, 1)).value
            values = split_fixed_width(text, width, count)
        else:
            values = read_variable(self._backend, array_id, (start,), (count,),
                                   (stride,)).value
        if isinstance(values, str):
            # one character per element, NUL padding included
            values = split_fixed_width(values, 1, count)
        if isinstance(values, list):
            out = np.empty(len(values), dtype=object)
            out[:] = values
            values = out
        return values

    def _decode_times(self, array_id, values):
        attrs = self._attrs_by_id[array_id]
        units = attrs.get('units')
        if not isinstance(units, str):
            raise ValueError(
                f'coordinate variable {self._metadata[array_id].name!r} has no time units')
        return decode_cf_times(values, units, attrs.get('calendar'))

    def tree(self, level=None):
        """Provide a ``print``-able display of the dataset's variables.

        Examples
        --------
        >>> print(ds.tree())  # doctest: +SKIP
        /
         ├── time (time) double (12,)
         ├── lat (lat) double (64,)
         ├── lon (lon) double (62,)
         └── tos (time, lat, lon) float (12, 64, 62)

        """
        return TreeViewer(self, level=level)

    def __repr__(self):
        t = type(self)
        r = '<{}.{}'.format(t.__module__, t.__name__)
        if self._name:
            r += ' {!r}'.format(self._name)
        r += ' ({} dimensions, {} variables)>'.format(len(self._dims), len(self._variables))
        return r

    @property
    def info(self):
        """Return diagnostic information about the dataset."""
        return InfoReporter(self)

    def info_items(self):

        items = []

        # basic info
        if self._name:
            items += [('Name', self._name)]
        items += [('Type', typestr(self))]

        items += [('Dimensions', ', '.join('{}: {}'.format(name, len(d))
                                           for name, d in self._dims.items()) or '-')]
        coords = [d.coordinate_variable.name for d in self._dims.values()
                  if d.coordinate_id is not None]
        if coords:
            items += [('Coordinates', ', '.join(coords))]
        data_vars = [name for name, v in self._variables.items() if not v.is_coordinate]
        if data_vars:
            items += [('Variables', ', '.join(data_vars))]

        # backend info
        items += [('Backend type', typestr(self._backend))]
        if self._synchronizer is not None:
            items += [('Synchronizer type', typestr(self._synchronizer))]
        items += [('Coordinates cached', str(self._cache_coordinates))]

        return items
