import numpy as np
import pytest

from ncslab.dataset import Dataset
from ncslab.storage import GLOBAL
from ncslab.tests.util import CountingBackend
from ncslab.types import TypeTag


def populate(backend):
    backend.create_dimension('time', 4, unlimited=True)
    backend.create_dimension('lat', 3)
    backend.create_dimension('lon', 5)
    backend.create_dimension('station', 3)
    backend.create_dimension('strlen', 6)
    backend.create_dimension('month', 6)

    backend.create_variable('time', ['time'], np.arange(4, dtype='f8'),
                            attrs={'units': 'days since 2000-01-01', 'calendar': 'standard'})
    backend.create_variable('lat', ['lat'], np.array([-10., 0., 10.]),
                            attrs={'units': 'degrees_north'})
    # descending
    backend.create_variable('lon', ['lon'], np.array([40., 30., 20., 10., 0.]))
    backend.create_variable('tos', ['time', 'lat', 'lon'],
                            np.arange(60, dtype='f4').reshape(4, 3, 5),
                            attrs={'units': 'K', '_FillValue': np.float32(1e20)})
    backend.create_variable('station', ['station', 'strlen'],
                            b'alpha\x00beta\x00\x00gamma\x00', tag=TypeTag.CHAR)
    backend.create_variable('obs', ['station'], np.array([1, 2, 3], dtype='i4'))
    backend.create_variable('label', ['lat'], np.array(['south', 'equator', 'north']))
    backend.create_variable('month', ['month'], np.array([1, 1, 2, 2, 2, 3], dtype='i4'))
    backend.create_variable('rain', ['month'], np.arange(6, dtype='f8'))
    backend.create_variable('grid', ['lat', 'lon'], np.arange(15, dtype='i2').reshape(3, 5),
                            chunks=(1, 5))

    backend.set_attribute(GLOBAL, 'title', 'sample')
    backend.set_attribute(GLOBAL, 'version', np.int32(3))
    return backend


@pytest.fixture
def backend():
    return populate(CountingBackend())


@pytest.fixture
def dataset(backend):
    return Dataset(backend, name='sample')
