"""This module contains the storage backend interface and two
implementations: an in-memory backend holding numpy arrays and a wrapper
that logs every call made to another backend.

A backend identifies dimensions and arrays by integer ids, as the netCDF C
library does. Reads fill caller-provided, flat numpy buffers whose dtype
matches the array's :class:`ncslab.types.TypeTag`. For ``STRING`` arrays
the buffer receives one handle (a ``bytes`` object) per element, which the
caller returns with :meth:`Backend.free_strings` once it has copied them.

"""
import collections
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ncslab.errors import ArgumentOutOfDomainError, err_rank_mismatch
from ncslab.indexing import dim_slice
from ncslab.types import TypeTag, dtype_tag, normalize_tag, tag_dtype
from ncslab.util import normalize_shape

# array id used for dataset-level attributes
GLOBAL = -1


ArrayMetadata = collections.namedtuple('ArrayMetadata',
                                       ('name', 'tag', 'dimension_ids', 'chunks'))


class Backend(ABC):
    """Read-only access to a dataset of named, typed, n-dimensional arrays."""

    @abstractmethod
    def dimension_ids(self) -> Sequence[int]:
        """Ids of all dimensions, in definition order."""

    @abstractmethod
    def dimension_name(self, dim_id: int) -> str:
        ...

    @abstractmethod
    def dimension_length(self, dim_id: int) -> int:
        ...

    def unlimited_dimension_ids(self) -> Sequence[int]:
        return ()

    @abstractmethod
    def array_ids(self) -> Sequence[int]:
        """Ids of all arrays, in definition order."""

    @abstractmethod
    def metadata(self, array_id: int) -> ArrayMetadata:
        ...

    @abstractmethod
    def read_strided(self, array_id: int, start: Tuple[int, ...], count: Tuple[int, ...],
                     stride: Tuple[int, ...], out: np.ndarray) -> None:
        """Fill `out` with ``prod(count)`` elements in row-major order, taking
        ``count[i]`` elements along dimension ``i`` beginning at ``start[i]``
        and stepping ``stride[i]``."""

    def read_one(self, array_id: int, index: Tuple[int, ...], out: np.ndarray) -> None:
        """Fill `out` with the single element at `index`."""
        ndim = len(index)
        self.read_strided(array_id, tuple(index), (1,) * ndim, (1,) * ndim, out)

    def free_strings(self, handles: np.ndarray) -> None:
        """Release string handles produced by a ``STRING`` read."""

    @abstractmethod
    def attribute_names(self, array_id: int) -> List[str]:
        ...

    @abstractmethod
    def attribute_metadata(self, array_id: int, name: str) -> Tuple[TypeTag, int]:
        """Element type and number of elements of an attribute."""

    @abstractmethod
    def read_attribute(self, array_id: int, name: str, out: np.ndarray) -> None:
        ...

    def coordinate_variable_id(self, dim_id: int) -> Optional[int]:
        """Id of the coordinate variable of a dimension, or None.

        A coordinate variable has the same name as the dimension, and is
        either 1-dimensional over it or a 2-dimensional ``CHAR`` array whose
        first dimension it is.
        """
        name = self.dimension_name(dim_id)
        for array_id in self.array_ids():
            meta = self.metadata(array_id)
            if meta.name != name:
                continue
            ndim = len(meta.dimension_ids)
            if ndim == 1 or (ndim == 2 and meta.tag == TypeTag.CHAR):
                if meta.dimension_ids[0] == dim_id:
                    return array_id
            return None
        return None


class _MemoryArray(object):

    def __init__(self, name, tag, dimension_ids, data, chunks):
        self.name = name
        self.tag = tag
        self.dimension_ids = dimension_ids
        self.data = data
        self.chunks = chunks
        self.attrs = {}


class MemoryBackend(Backend):
    """Backend holding all data as numpy arrays in memory.

    Examples
    --------
    >>> backend = MemoryBackend()
    >>> t = backend.create_dimension('time', 3)
    >>> backend.create_variable('time', ['time'], [0., 1., 2.])
    0

    """

    def __init__(self):
        self._dimensions: List[Tuple[str, int]] = []
        self._unlimited = set()
        self._arrays: List[_MemoryArray] = []
        self._global_attrs: Dict[str, Tuple[TypeTag, np.ndarray]] = {}
        self._string_buffers = {}

    def __repr__(self):
        return f'<ncslab.MemoryBackend: {len(self._dimensions)} dimensions, ' \
               f'{len(self._arrays)} arrays>'

    # building

    def create_dimension(self, name: str, length: int, unlimited: bool = False) -> int:
        if any(n == name for n, _ in self._dimensions):
            raise ValueError(f'dimension {name!r} already exists')
        length = int(length)
        if length < 0:
            raise ValueError(f'dimension length must be non-negative, got {length}')
        self._dimensions.append((name, length))
        dim_id = len(self._dimensions) - 1
        if unlimited:
            self._unlimited.add(dim_id)
        return dim_id

    def _dimension_id(self, name):
        for dim_id, (n, _) in enumerate(self._dimensions):
            if n == name:
                return dim_id
        raise KeyError(name)

    def create_variable(self, name: str, dimensions: Sequence[str], data, tag=None,
                        chunks=None, attrs=None) -> int:
        """Add an array defined over named dimensions and return its id.

        ``CHAR`` data may be given as ``str`` or ``bytes``, in which case it is
        split into single characters; numpy unicode data is stored as
        ``STRING``.
        """
        if any(a.name == name for a in self._arrays):
            raise ValueError(f'variable {name!r} already exists')
        dimension_ids = tuple(self._dimension_id(d) for d in dimensions)
        shape = tuple(self._dimensions[d][1] for d in dimension_ids)

        data = _as_array(data, tag)
        if tag is None:
            tag = dtype_tag(data.dtype)
        tag = normalize_tag(tag)
        data = data.astype(tag_dtype(tag)).reshape(shape)

        if chunks is not None:
            chunks = normalize_shape(chunks)
            if len(chunks) != len(shape):
                err_rank_mismatch('chunks', len(shape), len(chunks))

        self._arrays.append(_MemoryArray(name, tag, dimension_ids, data, chunks))
        array_id = len(self._arrays) - 1
        for key, value in (attrs or {}).items():
            self.set_attribute(array_id, key, value)
        return array_id

    def set_attribute(self, array_id: int, name: str, value, tag=None):
        """Set an attribute of an array, or of the dataset if `array_id` is
        :data:`GLOBAL`. Text is stored as ``CHAR`` unless `tag` says
        otherwise."""
        if tag is None and isinstance(value, str):
            tag = TypeTag.CHAR
        value = _as_array(value, tag).ravel()
        if tag is None:
            tag = dtype_tag(value.dtype)
        tag = normalize_tag(tag)
        self._attributes(array_id)[name] = (tag, value.astype(tag_dtype(tag)))

    # reading

    def _array(self, array_id) -> _MemoryArray:
        if not 0 <= array_id < len(self._arrays):
            raise ArgumentOutOfDomainError(f'no array with id {array_id}')
        return self._arrays[array_id]

    def _attributes(self, array_id):
        if array_id == GLOBAL:
            return self._global_attrs
        return self._array(array_id).attrs

    def dimension_ids(self):
        return list(range(len(self._dimensions)))

    def _dimension(self, dim_id):
        if not 0 <= dim_id < len(self._dimensions):
            raise ArgumentOutOfDomainError(f'no dimension with id {dim_id}')
        return self._dimensions[dim_id]

    def dimension_name(self, dim_id):
        return self._dimension(dim_id)[0]

    def dimension_length(self, dim_id):
        return self._dimension(dim_id)[1]

    def unlimited_dimension_ids(self):
        return sorted(self._unlimited)

    def array_ids(self):
        return list(range(len(self._arrays)))

    def metadata(self, array_id):
        a = self._array(array_id)
        return ArrayMetadata(a.name, a.tag, a.dimension_ids, a.chunks)

    def read_strided(self, array_id, start, count, stride, out):
        a = self._array(array_id)
        shape = a.data.shape
        for what, v in (('start', start), ('count', count), ('stride', stride)):
            if len(v) != len(shape):
                err_rank_mismatch(what, len(shape), len(v))

        for dim, (s, n, st, extent) in enumerate(zip(start, count, stride, shape)):
            if n < 0 or s < 0 or s > extent or (n > 0 and s >= extent):
                raise ArgumentOutOfDomainError(f'start {s} out of range for dimension {dim}')
            if n > 0 and st == 0:
                raise ArgumentOutOfDomainError(f'zero stride for dimension {dim}')
            if n > 0 and not 0 <= s + (n - 1) * st < extent:
                raise ArgumentOutOfDomainError(f'count {n} exceeds dimension {dim}')

        values = a.data[tuple(dim_slice(s, n, st) for s, n, st in zip(start, count, stride))]
        self._fill(a.tag, values.ravel(), out)

    def _fill(self, tag, values, out):
        if out.shape != values.shape:
            raise ValueError(f'buffer holds {out.size} elements, expected {values.size}')
        if tag == TypeTag.STRING:
            for i, v in enumerate(values):
                out[i] = v.encode('utf-8')
            self._string_buffers[id(out)] = out
        else:
            out[...] = values

    def free_strings(self, handles):
        if self._string_buffers.pop(id(handles), None) is None:
            raise ValueError('string buffer was not allocated by this backend '
                             'or has already been freed')
        handles[...] = None

    @property
    def outstanding_strings(self) -> int:
        """Number of string buffers handed out and not yet freed."""
        return len(self._string_buffers)

    def attribute_names(self, array_id):
        return list(self._attributes(array_id))

    def attribute_metadata(self, array_id, name):
        tag, value = self._attributes(array_id)[name]
        return tag, value.size

    def read_attribute(self, array_id, name, out):
        tag, value = self._attributes(array_id)[name]
        self._fill(tag, value, out)


def _as_array(value, tag=None) -> np.ndarray:
    if tag is not None and normalize_tag(tag) == TypeTag.CHAR or isinstance(value, bytes):
        if isinstance(value, str):
            value = value.encode('utf-8')
        if isinstance(value, bytes):
            return np.frombuffer(value, dtype='S1').copy()
    if isinstance(value, str):
        value = [value]
    value = np.asarray(value)
    if value.dtype.kind == 'U':
        value = value.astype(object)
    return value


class LoggingBackend(Backend):
    """Backend wrapper that logs every call made to the wrapped backend.

    Parameters
    ----------
    backend : Backend
        Backend to wrap.
    log_level : str
        Log level.
    log_handler : logging.Handler
        Log handler.

    Attributes
    ----------
    counter : dict
        Number of times each method has been called.

    """

    def __init__(self, backend: Backend, log_level: str = 'DEBUG',
                 log_handler: Optional[logging.Handler] = None):
        self._backend = backend
        self.counter = defaultdict(int)
        self.log_level = log_level
        self.log_handler = log_handler
        self._configure_logger(log_level, log_handler)

    def _configure_logger(self, log_level='DEBUG', log_handler=None):
        self.log_level = log_level
        self.logger = logging.getLogger(f'LoggingBackend({self._backend!r})')
        self.logger.setLevel(log_level)

        if not self.logger.hasHandlers():
            if not log_handler:
                log_handler = self._default_handler()
            self.logger.addHandler(log_handler)

    def _default_handler(self) -> logging.Handler:
        handler = logging.StreamHandler()
        handler.setLevel(self.log_level)
        handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        return handler

    @contextmanager
    def log(self, method, *args):
        op = f'{type(self._backend).__name__}.{method}'
        self.logger.info('Calling %s%s', op, args)
        start_time = time.time()
        try:
            self.counter[method] += 1
            yield
        finally:
            end_time = time.time()
            self.logger.info('Finished %s in %.2f seconds', op, end_time - start_time)

    def __repr__(self):
        return f'LoggingBackend({self._backend!r})'

    def dimension_ids(self):
        with self.log('dimension_ids'):
            return self._backend.dimension_ids()

    def dimension_name(self, dim_id):
        with self.log('dimension_name', dim_id):
            return self._backend.dimension_name(dim_id)

    def dimension_length(self, dim_id):
        with self.log('dimension_length', dim_id):
            return self._backend.dimension_length(dim_id)

    def unlimited_dimension_ids(self):
        with self.log('unlimited_dimension_ids'):
            return self._backend.unlimited_dimension_ids()

    def array_ids(self):
        with self.log('array_ids'):
            return self._backend.array_ids()

    def metadata(self, array_id):
        with self.log('metadata', array_id):
            return self._backend.metadata(array_id)

    def read_strided(self, array_id, start, count, stride, out):
        with self.log('read_strided', array_id, start, count, stride):
            return self._backend.read_strided(array_id, start, count, stride, out)

    def read_one(self, array_id, index, out):
        with self.log('read_one', array_id, index):
            return self._backend.read_one(array_id, index, out)

    def free_strings(self, handles):
        with self.log('free_strings'):
            return self._backend.free_strings(handles)

    def attribute_names(self, array_id):
        with self.log('attribute_names', array_id):
            return self._backend.attribute_names(array_id)

    def attribute_metadata(self, array_id, name):
        with self.log('attribute_metadata', array_id, name):
            return self._backend.attribute_metadata(array_id, name)

    def read_attribute(self, array_id, name, out):
        with self.log('read_attribute', array_id, name):
            return self._backend.read_attribute(array_id, name, out)

    def coordinate_variable_id(self, dim_id):
        with self.log('coordinate_variable_id', dim_id):
            return self._backend.coordinate_variable_id(dim_id)
