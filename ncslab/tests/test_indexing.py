import numpy as np
import pytest
from numpy.testing import assert_array_equal

from ncslab.config import config
from ncslab.errors import (ArgumentOutOfDomainError, BoundsCheckError, NegativeStepError)
from ncslab.indexing import (BlockIterator, HyperslabView, block_coverage, cartesian_product,
                             compute_block_size, default_blocksize, dim_slice,
                             normalize_integer_selection, replace_ellipsis)
from ncslab.storage import MemoryBackend
from ncslab.util import compute_size


@pytest.fixture
def backend():
    b = MemoryBackend()
    b.create_dimension('y', 4)
    b.create_dimension('x', 5)
    b.create_variable('a', ['y', 'x'], np.arange(20, dtype='i4').reshape(4, 5))
    b.create_variable('c', ['y', 'x'], np.arange(20, dtype='f8').reshape(4, 5), chunks=(2, 5))
    return b


def test_normalize_integer_selection():

    assert 1 == normalize_integer_selection(1, 100)
    assert 99 == normalize_integer_selection(-1, 100)
    with pytest.raises(IndexError):
        normalize_integer_selection(100, 100)
    with pytest.raises(BoundsCheckError):
        normalize_integer_selection(-1000, 100)


def test_replace_ellipsis():

    # 1D, single item
    assert (0,) == replace_ellipsis(0, (100,))

    # 1D
    assert (slice(None),) == replace_ellipsis(Ellipsis, (100,))
    assert (slice(None),) == replace_ellipsis(slice(None), (100,))

    # 2D, single item
    assert (0, 0) == replace_ellipsis((0, 0), (100, 100))
    assert (-1, 1) == replace_ellipsis((-1, 1), (100, 100))

    # 2D, single col/row
    assert (0, slice(None)) == replace_ellipsis((0, slice(None)), (100, 100))
    assert (0, slice(None)) == replace_ellipsis((0,), (100, 100))
    assert (slice(None), 0) == replace_ellipsis((slice(None), 0), (100, 100))

    # 2D slice
    assert ((slice(None), slice(None)) ==
            replace_ellipsis(Ellipsis, (100, 100)))
    assert ((slice(None), 0) ==
            replace_ellipsis((Ellipsis, 0), (100, 100)))

    with pytest.raises(IndexError):
        replace_ellipsis((Ellipsis, Ellipsis), (100, 100))
    with pytest.raises(IndexError):
        replace_ellipsis((0, 0, 0), (100, 100))


def test_dim_slice():
    a = np.arange(10)
    assert_array_equal([2, 3, 4], a[dim_slice(2, 3, 1)])
    assert_array_equal([1, 4, 7], a[dim_slice(1, 3, 3)])
    assert_array_equal([3, 2, 1, 0], a[dim_slice(3, 4, -1)])
    assert_array_equal([], a[dim_slice(5, 0, 1)])


def test_hyperslab_view():
    v = HyperslabView((1, 0), (2, 3), (2, 2))
    assert (1, 0) == v.start
    assert (2, 3) == v.shape
    assert (2, 2) == v.stride
    assert 6 == v.size
    assert 2 == v.ndim
    assert (3, 4) == v.parent_index((1, 2))
    v.check((4, 5))

    full = HyperslabView.full((4, 5))
    assert (0, 0) == full.start
    assert (1, 1) == full.stride
    assert full == HyperslabView((0, 0), (4, 5))

    r = full.replace_dim(1, start=2, shape=3)
    assert ((0, 2), (4, 3), (1, 1)) == tuple(r)
    # views are immutable values
    assert (0, 0) == full.start


def test_hyperslab_view_errors():
    with pytest.raises(ArgumentOutOfDomainError):
        HyperslabView((0,), (4, 5))
    with pytest.raises(ArgumentOutOfDomainError):
        HyperslabView((0, 0), (4, 5), (1,))
    with pytest.raises(ArgumentOutOfDomainError):
        HyperslabView((1, 0), (2, 3), (2, 2)).check((3, 5))
    with pytest.raises(ArgumentOutOfDomainError):
        HyperslabView((0,), (2,)).check((4, 5))
    # empty views are never out of bounds
    HyperslabView((5,), (0,)).check((5,))


def test_subview():
    full = HyperslabView.full((4, 5))

    v, drop = full.subview((1, slice(None, None, 2)))
    assert HyperslabView((1, 0), (1, 3), (1, 2)) == v
    assert (0,) == drop

    v, drop = full.subview(Ellipsis)
    assert full == v
    assert () == drop

    v, drop = full.subview((slice(-2, None), -1))
    assert HyperslabView((2, 4), (2, 1), (1, 1)) == v
    assert (1,) == drop

    # nested views compose their strides
    strided = HyperslabView((1, 0), (2, 3), (2, 2))
    v, drop = strided.subview((slice(1, None), 1))
    assert HyperslabView((3, 2), (1, 1), (2, 2)) == v

    v, _ = full.subview(slice(4, 10))
    assert (0, 5) == v.shape


def test_subview_errors():
    full = HyperslabView.full((4, 5))
    with pytest.raises(NegativeStepError):
        full.subview(slice(None, None, -1))
    with pytest.raises(BoundsCheckError):
        full.subview((4, 0))
    with pytest.raises(IndexError):
        full.subview((0, 0, 0))
    with pytest.raises(IndexError):
        full.subview(([0, 1],))


@pytest.mark.parametrize('blocksize, expect', [
    (1, (1, (1, 1, 1))),
    (3, (3, (1, 1, 3))),
    (5, (5, (1, 1, 5))),
    (19, (15, (1, 3, 5))),
    (20, (20, (1, 4, 5))),
    (45, (40, (2, 4, 5))),
    (100, (60, (3, 4, 5))),
])
def test_compute_block_size(blocksize, expect):
    assert expect == compute_block_size(blocksize, (3, 4, 5), (0, 0, 0))


def test_compute_block_size_partial():
    # clipped at the end of the outermost dimension
    assert (20, (1, 4, 5)) == compute_block_size(45, (3, 4, 5), (2, 0, 0))
    # clipped at the end of a row
    assert (1, (1, 1, 1)) == compute_block_size(3, (3, 4, 5), (0, 0, 4))
    # completes a partially consumed row before moving on
    assert (3, (1, 3)) == compute_block_size(10, (4, 5), (0, 2))


def test_compute_block_size_degenerate():
    assert (4, (1, 1, 4)) == compute_block_size(4, (3, 1, 4), (0, 0, 0))
    assert (8, (2, 1, 4)) == compute_block_size(9, (3, 1, 4), (0, 0, 0))
    # no dimension qualifies
    assert (1, (1, 1)) == compute_block_size(10, (1, 1), (0, 0))
    assert (1, ()) == compute_block_size(10, (), ())
    # budgets below 1 are treated as 1
    assert (1, (1, 1)) == compute_block_size(0, (2, 3), (0, 0))
    with pytest.raises(ArgumentOutOfDomainError):
        compute_block_size(10, (2, 3), (0,))


@pytest.mark.parametrize('shape', [(3, 4, 5), (7,), (2, 1, 3), (1, 1), (4, 0)])
@pytest.mark.parametrize('blocksize', [1, 3, 7, 20, 1000])
def test_block_coverage(shape, blocksize):
    blocks = block_coverage(shape, blocksize)
    assert compute_size(shape) == sum(n for _, _, n in blocks)
    for _, count, n in blocks:
        assert n == compute_size(count)
        assert n <= max(blocksize, 1) or len(blocks) == 1


def test_block_iterator(backend):
    expect = np.arange(20, dtype='i4')
    for blocksize in 1, 3, 5, 7, 20, 100:
        it = BlockIterator(backend, 0, (4, 5), blocksize=blocksize)
        values = []
        sizes = []
        while it.next():
            values.append(it.values())
            sizes.append(it.blocksize)
            assert compute_size(it.count) == it.blocksize
        assert 20 == sum(sizes)
        assert 20 == it.offset
        assert_array_equal(expect, np.concatenate(values))
        # exhausted iterators stay exhausted
        assert not it.next()


def test_block_iterator_states(backend):
    it = BlockIterator(backend, 0, (4, 5), blocksize=10)
    assert 0 == it.offset
    assert 0 == it.blocksize
    with pytest.raises(ArgumentOutOfDomainError):
        it.values()

    assert it.next()
    assert (0, 0) == it.start
    assert (2, 5) == it.count
    assert 10 == it.offset
    assert_array_equal(np.arange(10).reshape(2, 5), it.read())

    assert it.next()
    assert (2, 0) == it.start
    assert_array_equal(np.arange(10, 20), it.values())
    assert not it.next()


def test_block_iterator_protocol(backend):
    it = BlockIterator(backend, 0, (4, 5), blocksize=5)
    starts = [block.start for block in it]
    assert [(0, 0), (1, 0), (2, 0), (3, 0)] == starts


def test_block_iterator_start(backend):
    it = BlockIterator(backend, 0, (4, 5), start=(1, 3), blocksize=5)
    blocks = [(block.start, block.count) for block in BlockIterator(
        backend, 0, (4, 5), start=(1, 3), blocksize=5)]
    assert [((1, 3), (1, 2)), ((2, 0), (1, 5)), ((3, 0), (1, 5))] == blocks
    values = np.concatenate([block.values() for block in it])
    assert_array_equal(np.arange(8, 20), values)

    with pytest.raises(ArgumentOutOfDomainError):
        BlockIterator(backend, 0, (4, 5), start=(0,))


def test_block_iterator_strided(backend):
    # rows 1 and 3, every other column
    it = BlockIterator(backend, 0, (2, 3), origin=(1, 0), stride=(2, 2), blocksize=2)
    values = np.concatenate([block.values() for block in it])
    assert_array_equal([5, 7, 9, 15, 17, 19], values)
    assert it.offset == 6


def test_block_iterator_empty(backend):
    it = BlockIterator(backend, 0, (0, 5), blocksize=5)
    assert not it.next()
    assert [] == list(it)


def test_default_blocksize(backend):
    # one chunk
    assert 10 == default_blocksize(backend, 1)
    with config.set({'block.buffer_size': 8}):
        assert 2 == default_blocksize(backend, 0)
        it = BlockIterator(backend, 0, (4, 5))
        assert it.next()
        assert 2 == it.blocksize
    with config.set({'block.buffer_size': 1}):
        assert 1 == default_blocksize(backend, 0)
    assert 5000000 // 4 == default_blocksize(backend, 0)


def test_cartesian_product():
    assert [('a', 'x'), ('a', 'y'), ('b', 'x'), ('b', 'y')] == \
        cartesian_product(['a', 'b'], ['x', 'y'])
    assert [(1,), (2,)] == cartesian_product([1, 2])
    assert [] == cartesian_product([1, 2], [])
    assert [()] == cartesian_product()
    assert 24 == len(cartesian_product(range(2), range(3), range(4)))
