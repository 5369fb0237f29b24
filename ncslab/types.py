from enum import IntEnum

import numpy as np

from ncslab.errors import InvalidDataTypeError


class TypeTag(IntEnum):
    """Element type tags reported by a storage backend. Values follow the
    netCDF external type numbering."""

    BYTE = 1
    CHAR = 2
    SHORT = 3
    INT = 4
    FLOAT = 5
    DOUBLE = 6
    UBYTE = 7
    USHORT = 8
    UINT = 9
    INT64 = 10
    UINT64 = 11
    STRING = 12


numeric_dtypes = {
    TypeTag.BYTE: np.dtype('i1'),
    TypeTag.SHORT: np.dtype('i2'),
    TypeTag.INT: np.dtype('i4'),
    TypeTag.FLOAT: np.dtype('f4'),
    TypeTag.DOUBLE: np.dtype('f8'),
    TypeTag.UBYTE: np.dtype('u1'),
    TypeTag.USHORT: np.dtype('u2'),
    TypeTag.UINT: np.dtype('u4'),
    TypeTag.INT64: np.dtype('i8'),
    TypeTag.UINT64: np.dtype('u8'),
}

# size of one backend string handle, a pointer
STRING_HANDLE_SIZE = 8


def normalize_tag(tag) -> TypeTag:
    """Convert a raw backend tag to a :class:`TypeTag`, failing on anything
    outside the closed set."""
    try:
        return TypeTag(int(tag))
    except (TypeError, ValueError):
        raise InvalidDataTypeError(tag)


def tag_dtype(tag) -> np.dtype:
    """The numpy dtype used to hold values of the given tag."""
    tag = normalize_tag(tag)
    if tag == TypeTag.CHAR:
        return np.dtype('S1')
    elif tag == TypeTag.STRING:
        return np.dtype(object)
    return numeric_dtypes[tag]


def tag_size(tag) -> int:
    """Element size in bytes."""
    tag = normalize_tag(tag)
    if tag == TypeTag.STRING:
        return STRING_HANDLE_SIZE
    return tag_dtype(tag).itemsize


def dtype_tag(dtype) -> TypeTag:
    """Inverse of :func:`tag_dtype`, used when registering numpy data."""
    dtype = np.dtype(dtype)
    if dtype == np.dtype('S1'):
        return TypeTag.CHAR
    if dtype.kind in 'OU':
        return TypeTag.STRING
    for tag, candidate in numeric_dtypes.items():
        if candidate == dtype:
            return tag
    raise InvalidDataTypeError(str(dtype))


def tag_name(tag) -> str:
    try:
        return normalize_tag(tag).name.lower()
    except InvalidDataTypeError:
        return 'unknown'
