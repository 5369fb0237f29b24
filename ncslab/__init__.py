# flake8: noqa
from ncslab.config import config
from ncslab.core import Variable
from ncslab.dataset import Dataset, Dimension
from ncslab.dispatch import Variant, dispatch, read_attribute, read_scalar, read_variable
from ncslab.errors import (ArgumentOutOfDomainError, InvalidCoordinatesError,
                           InvalidDataTypeError, InvalidDimensionError, SizeOverflowError,
                           VariableNotFoundError)
from ncslab.indexing import (BlockIterator, HyperslabView, cartesian_product,
                             compute_block_size)
from ncslab.selection import CoordinateGroup, Selection
from ncslab.storage import GLOBAL, ArrayMetadata, Backend, LoggingBackend, MemoryBackend
from ncslab.sync import ProcessSynchronizer, SynchronizedBackend, ThreadSynchronizer
from ncslab.types import TypeTag
from ncslab.util import (compute_backstrides, compute_size, compute_strides, ravel_index,
                         squeeze, unravel_index)
from ncslab.version import version as __version__
