from collections.abc import Mapping

import numpy as np

from ncslab.dispatch import read_attribute
from ncslab.storage import GLOBAL


class Attributes(Mapping):
    """Read-only access to the attributes of a variable or dataset. Should not
    be instantiated directly, will be available via the `.attrs` property of
    a variable or dataset.

    Text attributes are returned as ``str``, numeric attributes holding a
    single value as a numpy scalar and longer numeric attributes as 1-D
    arrays. Use ``attrs.get(name)`` to get None for an absent attribute.

    Parameters
    ----------
    backend : ncslab.storage.Backend
        The backend to read attributes from.
    array_id : int, optional
        The array whose attributes to read; :data:`ncslab.storage.GLOBAL`
        (default) for the dataset.
    cache : bool, optional
        If True (default), attributes will be cached locally.

    """

    def __init__(self, backend, array_id=GLOBAL, cache=True):
        self.backend = backend
        self.array_id = array_id
        self.cache = cache
        self._cached_asdict = None

    def _get_nosync(self):
        d = dict()
        for name in self.backend.attribute_names(self.array_id):
            value = read_attribute(self.backend, self.array_id, name).value
            if isinstance(value, np.ndarray) and value.size == 1:
                value = value[0]
            d[name] = value
        return d

    def asdict(self):
        """Retrieve all attributes as a dictionary."""
        if self.cache and self._cached_asdict is not None:
            return self._cached_asdict
        d = self._get_nosync()
        if self.cache:
            self._cached_asdict = d
        return d

    def refresh(self):
        """Refresh cached attributes from the backend."""
        if self.cache:
            self._cached_asdict = self._get_nosync()

    def __contains__(self, x):
        return x in self.asdict()

    def __getitem__(self, item):
        return self.asdict()[item]

    def __iter__(self):
        return iter(self.asdict())

    def __len__(self):
        return len(self.asdict())

    def keys(self):
        return self.asdict().keys()

    def __repr__(self):
        return f'<ncslab.Attributes: {sorted(self.keys())!r}>'

    def _ipython_key_completions_(self):
        return sorted(self)
