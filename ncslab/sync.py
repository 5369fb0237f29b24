import os
from collections import defaultdict
from threading import Lock
from typing import Protocol

import fasteners

from ncslab.storage import Backend
from ncslab.util import nolock


class Synchronizer(Protocol):
    """Base class for synchronizers."""

    def __getitem__(self, item):
        # see subclasses
        ...


class ThreadSynchronizer(Synchronizer):
    """Provides synchronization using thread locks."""

    def __init__(self):
        self.mutex = Lock()
        self.locks = defaultdict(Lock)

    def __getitem__(self, item):
        with self.mutex:
            return self.locks[item]

    def __getstate__(self):
        return True

    def __setstate__(self, *args):
        # reinitialize from scratch
        self.__init__()


class ProcessSynchronizer(Synchronizer):
    """Provides synchronization using file locks via the
    `fasteners <https://fasteners.readthedocs.io/en/latest/api/inter_process/>`_
    package.

    Parameters
    ----------
    path : string
        Path to a directory on a file system that is shared by all processes.

    """

    def __init__(self, path):
        self.path = path

    def __getitem__(self, item):
        path = os.path.join(self.path, item)
        lock = fasteners.InterProcessLock(path)
        return lock


class SynchronizedBackend(Backend):
    """Backend wrapper that serializes calls to the wrapped backend.

    Every call holds the lock named `key`. Backends such as the netCDF C
    library are not safe to call from several threads at once; wrap them
    with a :class:`ThreadSynchronizer`.

    Parameters
    ----------
    backend : Backend
        Backend to wrap.
    synchronizer : Synchronizer, optional
        Source of locks. If None, calls are not synchronized.
    key : str, optional
        Name of the lock to hold.

    """

    def __init__(self, backend, synchronizer=None, key='backend'):
        self.backend = backend
        self.synchronizer = synchronizer
        self.key = key

    def __repr__(self):
        return f'SynchronizedBackend({self.backend!r})'

    def _lock(self):
        if self.synchronizer is None:
            return nolock
        return self.synchronizer[self.key]

    def dimension_ids(self):
        with self._lock():
            return self.backend.dimension_ids()

    def dimension_name(self, dim_id):
        with self._lock():
            return self.backend.dimension_name(dim_id)

    def dimension_length(self, dim_id):
        with self._lock():
            return self.backend.dimension_length(dim_id)

    def unlimited_dimension_ids(self):
        with self._lock():
            return self.backend.unlimited_dimension_ids()

    def array_ids(self):
        with self._lock():
            return self.backend.array_ids()

    def metadata(self, array_id):
        with self._lock():
            return self.backend.metadata(array_id)

    def coordinate_variable_id(self, dim_id):
        with self._lock():
            return self.backend.coordinate_variable_id(dim_id)

    def read_strided(self, array_id, start, count, stride, out):
        with self._lock():
            self.backend.read_strided(array_id, start, count, stride, out)

    def read_one(self, array_id, index, out):
        with self._lock():
            self.backend.read_one(array_id, index, out)

    def free_strings(self, handles):
        with self._lock():
            self.backend.free_strings(handles)

    def attribute_names(self, array_id):
        with self._lock():
            return self.backend.attribute_names(array_id)

    def attribute_metadata(self, array_id, name):
        with self._lock():
            return self.backend.attribute_metadata(array_id, name)

    def read_attribute(self, array_id, name, out):
        with self._lock():
            self.backend.read_attribute(array_id, name, out)
