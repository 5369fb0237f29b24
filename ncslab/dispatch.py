"""Conversion of raw backend reads into typed values.

A backend reports the element type of each array and attribute as a
:class:`ncslab.types.TypeTag`. The functions here allocate a buffer of the
matching numpy dtype, let the backend fill it, and wrap the result as a
:class:`Variant`. Variable-length strings are copied out of the backend's
buffers and the backend's memory is released before returning, whether or
not the copy succeeds.

"""
import collections
import logging
from contextlib import contextmanager

import numpy as np
from numcodecs.compat import ensure_bytes, ensure_text

from ncslab.types import TypeTag, normalize_tag, numeric_dtypes
from ncslab.util import compute_size

logger = logging.getLogger(__name__)


Variant = collections.namedtuple('Variant', ('tag', 'value'))
Variant.__doc__ = """A value tagged with the element type it was read as.

`value` is a 1-dimensional numpy array for numeric tags, a ``str`` for
``CHAR`` and a list of ``str`` for ``STRING``, one per element."""


def decode_chars(buf) -> str:
    """Decode a buffer of single characters, dropping trailing NUL padding."""
    return ensure_text(ensure_bytes(buf).rstrip(b'\x00'), 'utf-8')


def split_fixed_width(text: str, width: int, nrows=None):
    """Split fixed-width text into rows of `width` characters, stripping
    trailing blanks and NULs from each row. Text shortened by dropped NUL
    padding is padded back out to `nrows` rows."""
    if width <= 0:
        return [''] * (nrows or 0)
    if nrows is not None:
        text = text.ljust(nrows * width, '\x00')
    return [text[i:i + width].rstrip(' \x00') for i in range(0, len(text), width)]


@contextmanager
def owned_strings(handles, free_strings):
    """Release backend string buffers when the block exits."""
    try:
        yield handles
    finally:
        if free_strings is not None:
            free_strings(handles)


def dispatch(tag, nitems, read_into, free_strings=None) -> Variant:
    """Read `nitems` values of type `tag` and return them as a :class:`Variant`.

    Parameters
    ----------
    tag : TypeTag or int
        Element type reported by the backend.
    nitems : int
        Number of elements to read.
    read_into : callable
        Called once with a preallocated numpy buffer to fill.
    free_strings : callable, optional
        Called once with the handle buffer after a ``STRING`` read.

    Raises
    ------
    ncslab.errors.InvalidDataTypeError
        If `tag` is not a known element type.

    """
    tag = normalize_tag(tag)

    if tag in numeric_dtypes:
        out = np.empty(nitems, dtype=numeric_dtypes[tag])
        read_into(out)
        return Variant(tag, out)

    elif tag == TypeTag.CHAR:
        out = np.zeros(nitems, dtype='S1')
        read_into(out)
        return Variant(tag, decode_chars(out))

    else:
        # STRING
        handles = np.full(nitems, None, dtype=object)
        read_into(handles)
        with owned_strings(handles, free_strings):
            # null handles read as empty strings
            value = ['' if h is None else ensure_text(h, 'utf-8') for h in handles]
        return Variant(tag, value)


def read_variable(backend, array_id, start, count, stride=None) -> Variant:
    """Read a strided hyperslab of an array in row-major order."""
    start, count = tuple(start), tuple(count)
    if stride is None:
        stride = (1,) * len(count)
    stride = tuple(stride)
    tag = backend.metadata(array_id).tag
    nitems = compute_size(count)
    logger.debug('read array %s start=%s count=%s stride=%s', array_id, start, count, stride)

    def read_into(out):
        try:
            backend.read_strided(array_id, start, count, stride, out)
        except Exception as e:
            e.add_note(f"while reading array {array_id} start={start} count={count} "
                       f"stride={stride}")
            raise

    return dispatch(tag, nitems, read_into, backend.free_strings)


def read_scalar(backend, array_id, index) -> Variant:
    """Read the single element at `index`."""
    index = tuple(index)
    tag = backend.metadata(array_id).tag

    def read_into(out):
        try:
            backend.read_one(array_id, index, out)
        except Exception as e:
            e.add_note(f"while reading array {array_id} index={index}")
            raise

    return dispatch(tag, 1, read_into, backend.free_strings)


def read_attribute(backend, array_id, name) -> Variant:
    """Read an attribute of an array, or of the dataset if `array_id` is
    :data:`ncslab.storage.GLOBAL`."""
    tag, length = backend.attribute_metadata(array_id, name)

    def read_into(out):
        try:
            backend.read_attribute(array_id, name, out)
        except Exception as e:
            e.add_note(f"while reading attribute {name!r} of array {array_id}")
            raise

    return dispatch(tag, length, read_into, backend.free_strings)
