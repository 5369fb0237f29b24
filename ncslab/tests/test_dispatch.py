import numpy as np
import pytest
from numpy.testing import assert_array_equal

from ncslab.dispatch import (Variant, decode_chars, dispatch, read_attribute, read_scalar,
                             read_variable, split_fixed_width)
from ncslab.errors import ArgumentOutOfDomainError, InvalidDataTypeError
from ncslab.storage import GLOBAL
from ncslab.types import TypeTag, dtype_tag, numeric_dtypes, tag_dtype, tag_name, tag_size


class FreeRecorder(object):

    def __init__(self):
        self.calls = []

    def __call__(self, handles):
        self.calls.append(handles)


@pytest.mark.parametrize('tag, dtype', list(numeric_dtypes.items()))
def test_dispatch_numeric(tag, dtype):

    def read_into(out):
        assert dtype == out.dtype
        out[:] = np.arange(out.size)

    v = dispatch(tag, 4, read_into)
    assert isinstance(v, Variant)
    assert tag == v.tag
    assert dtype == v.value.dtype
    assert_array_equal([0, 1, 2, 3], v.value)


def test_dispatch_raw_tag():
    v = dispatch(6, 2, lambda out: out.fill(1.5))
    assert TypeTag.DOUBLE == v.tag
    assert_array_equal([1.5, 1.5], v.value)


def test_dispatch_char():

    def read_into(out):
        out[:] = np.frombuffer(b'abc\x00\x00', dtype='S1')

    v = dispatch(TypeTag.CHAR, 5, read_into)
    assert TypeTag.CHAR == v.tag
    assert 'abc' == v.value


def test_dispatch_string():
    free = FreeRecorder()

    def read_into(out):
        assert object == out.dtype
        out[:] = [b'x', b'yy', None]

    v = dispatch(TypeTag.STRING, 3, read_into, free)
    assert ['x', 'yy', ''] == v.value
    assert 1 == len(free.calls)
    assert 3 == free.calls[0].size


def test_dispatch_string_released_on_error():
    free = FreeRecorder()

    def read_into(out):
        out[:] = [b'ok', b'\xff\xfe']

    with pytest.raises(UnicodeDecodeError):
        dispatch(TypeTag.STRING, 2, read_into, free)
    assert 1 == len(free.calls)


@pytest.mark.parametrize('tag', [0, 13, 99, -1, 'float'])
def test_dispatch_invalid_tag(tag):
    calls = []
    with pytest.raises(InvalidDataTypeError):
        dispatch(tag, 1, calls.append)
    assert [] == calls


def test_decode_chars():
    assert 'abc' == decode_chars(np.frombuffer(b'abc', dtype='S1'))
    assert 'a\x00c' == decode_chars(np.frombuffer(b'a\x00c\x00', dtype='S1'))
    assert '' == decode_chars(np.zeros(3, dtype='S1'))


def test_split_fixed_width():
    assert ['ab', 'c'] == split_fixed_width('ab c ', 3)
    assert ['alpha', 'beta', ''] == split_fixed_width('alphabeta', 5, 3)
    assert ['', ''] == split_fixed_width('', 0, 2)


def test_types():
    assert np.dtype('S1') == tag_dtype(TypeTag.CHAR)
    assert np.dtype(object) == tag_dtype(TypeTag.STRING)
    assert 8 == tag_size(TypeTag.STRING)
    assert 4 == tag_size(TypeTag.FLOAT)
    assert 1 == tag_size(TypeTag.CHAR)
    assert TypeTag.CHAR == dtype_tag('S1')
    assert TypeTag.STRING == dtype_tag('U5')
    assert TypeTag.INT64 == dtype_tag('i8')
    assert 'ushort' == tag_name(8)
    assert 'unknown' == tag_name(42)
    with pytest.raises(InvalidDataTypeError):
        dtype_tag('c16')


def test_read_variable(backend):
    v = read_variable(backend, 3, (1, 0, 1), (2, 1, 2), (2, 1, 3))
    assert TypeTag.FLOAT == v.tag
    assert_array_equal([16, 19, 46, 49], v.value)

    v = read_variable(backend, 6, (0,), (3,))
    assert TypeTag.STRING == v.tag
    assert ['south', 'equator', 'north'] == v.value
    assert 1 == backend.counter['free_strings']
    assert 0 == backend.outstanding_strings


def test_read_scalar(backend):
    assert 23 == read_scalar(backend, 3, (1, 1, 3)).value[0]
    assert ['equator'] == read_scalar(backend, 6, (1,)).value
    assert 0 == backend.outstanding_strings


def test_read_attribute(backend):
    v = read_attribute(backend, 0, 'units')
    assert TypeTag.CHAR == v.tag
    assert 'days since 2000-01-01' == v.value
    v = read_attribute(backend, GLOBAL, 'version')
    assert TypeTag.INT == v.tag
    assert_array_equal([3], v.value)
    with pytest.raises(KeyError):
        read_attribute(backend, 0, 'missing')


def test_backend_errors_propagate(backend):
    with pytest.raises(ArgumentOutOfDomainError) as excinfo:
        read_variable(backend, 3, (0, 0, 0), (5, 1, 1))
    notes = getattr(excinfo.value, '__notes__', [])
    assert any('while reading array 3' in n for n in notes)
