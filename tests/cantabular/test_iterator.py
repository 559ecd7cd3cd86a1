"""Unit tests for the dimension iterator."""

import itertools

import pytest

from dp_api_clients.cantabular import (
    CancelToken,
    DimensionIterator,
    IterationCancelledError,
    IteratorExhaustedError,
    TableShapeError,
    unravel_index,
)
from dp_api_clients.cantabular.cancel import CancelledError
from tests.conftest import CITIES, SIBLINGS, make_dimension


def _labels(row):
    return [category.label for category in row]


def test_iterator_walks_cells_in_row_major_order(city_siblings_table):
    cursor = DimensionIterator(city_siblings_table.dimensions)
    rows = [_labels(row) for row in cursor]

    expected = [[city, sib] for (_, city), (_, sib) in itertools.product(CITIES, SIBLINGS)]
    assert rows == expected
    assert cursor.end()


def test_iterator_manual_stepping(city_siblings_table):
    cursor = DimensionIterator(city_siblings_table.dimensions)
    assert not cursor.end()
    assert cursor.coordinates == (0, 0)
    assert cursor.category_at_column(0).label == "London"

    for _ in range(7):
        cursor.next()

    assert cursor.coordinates == (1, 0)
    assert cursor.category_at_column(0).label == "Liverpool"
    assert cursor.category_at_column(1).code == "0"


def test_iterator_raises_after_end():
    cursor = DimensionIterator([make_dimension("city", "City", CITIES)])
    for _ in range(len(CITIES)):
        assert not cursor.end()
        cursor.next()

    assert cursor.end()
    with pytest.raises(IteratorExhaustedError, match="after end of table"):
        cursor.next()
    with pytest.raises(IteratorExhaustedError):
        cursor.row()
    with pytest.raises(IteratorExhaustedError):
        cursor.category_at_column(0)


def test_iterator_reset_restarts_walk(city_siblings_table):
    cursor = DimensionIterator(city_siblings_table.dimensions)
    assert len(list(cursor)) == 21
    cursor.reset()
    assert cursor.coordinates == (0, 0)
    # iterating again restarts as well
    assert len(list(cursor)) == 21


def test_iterator_single_cell_table():
    cursor = DimensionIterator([make_dimension("only", "Only", [("0", "One")])] * 3)
    assert [_labels(row) for row in cursor] == [["One", "One", "One"]]


def test_iterator_zero_size_dimension_is_immediately_exhausted():
    cursor = DimensionIterator(
        [make_dimension("city", "City", CITIES), make_dimension("none", "None", [])]
    )
    assert cursor.end()
    assert list(cursor) == []


def test_iterator_requires_dimensions():
    with pytest.raises(TableShapeError):
        DimensionIterator([])


def test_iterator_honours_cancellation(city_siblings_table):
    token = CancelToken()
    cursor = DimensionIterator(city_siblings_table.dimensions, cancel=token)
    cursor.next()
    token.cancel()

    with pytest.raises(IterationCancelledError, match="context is done") as excinfo:
        cursor.next()

    assert isinstance(excinfo.value.__cause__, CancelledError)
    # position is unchanged by the cancelled step
    assert cursor.coordinates == (0, 1)


def test_iterator_honours_expired_deadline(city_siblings_table):
    cursor = DimensionIterator(
        city_siblings_table.dimensions, cancel=CancelToken.with_timeout(-1)
    )
    with pytest.raises(IterationCancelledError, match="deadline exceeded"):
        cursor.check_cancelled()


def test_unravel_index_agrees_with_iterator(city_siblings_table):
    sizes = [dim.size for dim in city_siblings_table.dimensions]
    cursor = DimensionIterator(city_siblings_table.dimensions)
    flat = 0
    while not cursor.end():
        assert unravel_index(flat, sizes) == cursor.coordinates
        cursor.next()
        flat += 1
    assert flat == 21


@pytest.mark.parametrize("flat", [-1, 21, 100])
def test_unravel_index_out_of_range(flat):
    with pytest.raises(TableShapeError):
        unravel_index(flat, [3, 7])


def test_unravel_index_three_dimensions():
    assert unravel_index(0, [2, 3, 4]) == (0, 0, 0)
    assert unravel_index(5, [2, 3, 4]) == (0, 1, 1)
    assert unravel_index(23, [2, 3, 4]) == (1, 2, 3)


@pytest.mark.parametrize("sizes", [(1,), (3, 7), (2, 1, 4), (4, 3, 2, 2)])
def test_iterator_visits_every_coordinate_once(sizes):
    dimensions = [
        make_dimension(f"d{i}", f"D{i}", [(str(c), f"c{c}") for c in range(size)])
        for i, size in enumerate(sizes)
    ]
    cursor = DimensionIterator(dimensions)
    seen = []
    while not cursor.end():
        seen.append(cursor.coordinates)
        cursor.next()

    assert seen == list(itertools.product(*(range(size) for size in sizes)))


def test_category_at_column_is_idempotent(city_siblings_table):
    cursor = DimensionIterator(city_siblings_table.dimensions)
    cursor.next()
    first = cursor.category_at_column(1)
    assert cursor.category_at_column(1) == first
    assert cursor.category_at_column(1).label == "1 sibling"


@pytest.mark.parametrize("column", [-1, -2, 2, 5])
def test_category_at_column_rejects_out_of_range(city_siblings_table, column):
    cursor = DimensionIterator(city_siblings_table.dimensions)
    with pytest.raises(IndexError, match=f"column {column} out of range for 2 dimensions"):
        cursor.category_at_column(column)
    assert cursor.coordinates == (0, 0)
