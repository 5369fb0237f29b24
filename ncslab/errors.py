class _BaseSlabError(ValueError):
    _msg = ""

    def __init__(self, *args):
        super().__init__(self._msg.format(*args))


class _BaseSlabIndexError(IndexError):
    _msg = ""

    def __init__(self, *args):
        super().__init__(self._msg.format(*args))


class ArgumentOutOfDomainError(_BaseSlabIndexError):
    _msg = "argument out of domain: {0}"


class InvalidDimensionError(_BaseSlabError):
    _msg = "dimension not found: {0!r}"


class InvalidCoordinatesError(_BaseSlabError):
    _msg = "invalid coordinates; expected {0} columns, got {1}"


class VariableNotFoundError(_BaseSlabError):
    _msg = "no coordinate variable found for dimension {0!r}"


class InvalidDataTypeError(_BaseSlabError):
    _msg = "not a valid data type: {0!r}"


class SizeOverflowError(OverflowError):
    def __init__(self, shape):
        super().__init__(f"size of shape {tuple(shape)!r} exceeds the representable range")


class BoundsCheckError(_BaseSlabIndexError):
    _msg = "index out of bounds for dimension with length {0}"


class NegativeStepError(IndexError):
    def __init__(self):
        super().__init__("only slices with step >= 1 are supported")


def err_too_many_indices(selection, shape):
    raise IndexError(f"too many indices for array; expected {len(shape)}, got {len(selection)}")


def err_rank_mismatch(what, expected, got):
    raise ArgumentOutOfDomainError(f"{what} has rank {got}, expected {expected}")
