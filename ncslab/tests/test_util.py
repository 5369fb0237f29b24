import numpy as np
import pytest

from ncslab.errors import ArgumentOutOfDomainError, SizeOverflowError
from ncslab.util import (MAX_SIZE, compute_backstrides, compute_size, compute_strides,
                         human_readable_size, info_html_report, info_text_report,
                         normalize_index, normalize_shape, ravel_index, squeeze,
                         unravel_index)


def test_normalize_shape():
    assert (100,) == normalize_shape((100,))
    assert (100,) == normalize_shape([100])
    assert (100,) == normalize_shape(100)
    assert (100,) == normalize_shape(np.int64(100))
    assert () == normalize_shape(())
    with pytest.raises(TypeError):
        normalize_shape(None)
    with pytest.raises(ValueError):
        normalize_shape((-1, 2))


def test_normalize_index():
    assert (3,) == normalize_index(3, 1)
    assert (1, 2) == normalize_index([1, np.int32(2)], 2)
    with pytest.raises(ArgumentOutOfDomainError):
        normalize_index((1, 2), 3)


def test_compute_strides():
    assert (12, 4, 1) == compute_strides((2, 3, 4))
    assert (0,) == compute_strides((1,))
    assert () == compute_strides(())
    assert (3, 1) == compute_strides((5, 3))


def test_compute_strides_degenerate():
    # the running product continues through dimensions of length 1
    assert (4, 0, 1) == compute_strides((2, 1, 4))
    assert (0, 4, 1) == compute_strides((1, 3, 4))
    assert (0, 0) == compute_strides((1, 1))


def test_compute_backstrides():
    assert (12, 8, 3) == compute_backstrides((2, 3, 4))
    assert (4, 0, 3) == compute_backstrides((2, 1, 4))
    assert (0,) == compute_backstrides((1,))


@pytest.mark.parametrize('shape', [(2, 3, 4), (2, 1, 3), (5,), (1, 7, 1, 2)])
def test_ravel_unravel(shape):
    for offset in range(compute_size(shape)):
        index = unravel_index(offset, shape)
        assert all(0 <= i < n for i, n in zip(index, shape))
        assert offset == ravel_index(index, shape)


def test_ravel_index():
    assert 5 == ravel_index((1, 2), (2, 3))
    assert 23 == ravel_index((1, 2, 3), (2, 3, 4))
    assert 0 == ravel_index((), ())
    with pytest.raises(ArgumentOutOfDomainError):
        ravel_index((1,), (2, 3))


def test_unravel_index():
    assert (1, 1) == unravel_index(4, (2, 3))
    # past-the-end
    assert (2, 0) == unravel_index(6, (2, 3))
    # relative to a start index
    assert (1, 2) == unravel_index(3, (2, 3), start=(0, 2))
    assert (1, 0, 2) == unravel_index(5, (2, 1, 3))


def test_squeeze():
    assert (3, 4) == squeeze((1, 3, 1, 4))
    assert () == squeeze((1, 1))
    assert (0, 2) == squeeze((0, 2))


def test_compute_size():
    assert 24 == compute_size((2, 3, 4))
    assert 1 == compute_size(())
    assert 0 == compute_size((3, 0, 4))
    assert MAX_SIZE == compute_size((MAX_SIZE,))


def test_compute_size_overflow():
    with pytest.raises(SizeOverflowError):
        compute_size((2**40, 2**40))
    with pytest.raises(SizeOverflowError):
        compute_size((MAX_SIZE, 2))
    # overflow in an intermediate product is still an error
    with pytest.raises(SizeOverflowError):
        compute_size((2**40, 2**40, 0))
    with pytest.raises(OverflowError):
        compute_size((2**63,))


def test_human_readable_size():
    assert '100' == human_readable_size(100)
    assert '1.0K' == human_readable_size(2**10)
    assert '1.0M' == human_readable_size(2**20)
    assert '1.0G' == human_readable_size(2**30)
    assert '1.0T' == human_readable_size(2**40)
    assert '1.0P' == human_readable_size(2**50)


def test_info_reports():
    items = [('Name', 'tos'), ('Shape', '(4, 3, 5)')]
    text = info_text_report(items)
    assert text == 'Name  : tos\nShape : (4, 3, 5)\n'
    html = info_html_report(items)
    assert html.startswith('<table class="ncslab-info">')
    assert '<th style="text-align: left">Shape</th>' in html
