"""Row-major walks over the cells of a multi-dimensional table.

Table values are stored flat with the last dimension varying fastest. A cell
is addressed either by its flat index or by one index per dimension; the two
are related by mixed-radix arithmetic where each dimension's size is the
radix of its digit.
"""

from collections.abc import Iterator, Sequence

from attrs import define, field

from .cancel import CancelToken, raise_if_cancelled
from .errors import IteratorExhaustedError, TableShapeError
from .models import Category, Dimension


def unravel_index(flat: int, sizes: Sequence[int]) -> tuple[int, ...]:
    """Decode a flat row-major index into one index per dimension."""
    total = 1
    for size in sizes:
        total *= size
    if not 0 <= flat < total:
        raise TableShapeError(f"cell index {flat} outside table of {total} cells")
    indices = [0] * len(sizes)
    for pos in range(len(sizes) - 1, -1, -1):
        flat, indices[pos] = divmod(flat, sizes[pos])
    return tuple(indices)


@define(slots=True)
class DimensionIterator:
    """Cursor over the coordinates of a table, one cell at a time.

    The cursor starts on the first cell. ``next()`` moves it forward and
    ``end()`` reports when every cell has been visited. Iterating the object
    restarts from the first cell and yields the categories of each cell.
    """

    dimensions: tuple[Dimension, ...] = field(converter=tuple)
    cancel: CancelToken | None = None
    _indices: list[int] = field(init=False, repr=False)
    _empty: bool = field(init=False, repr=False)

    def __attrs_post_init__(self) -> None:
        if not self.dimensions:
            raise TableShapeError("cannot iterate a table without dimensions")
        self._indices = [0] * len(self.dimensions)
        self._empty = any(dim.size == 0 for dim in self.dimensions)

    def end(self) -> bool:
        """Return True once every cell has been visited."""
        return self._empty or self._indices[0] >= self.dimensions[0].size

    def check_cancelled(self) -> None:
        """Raise :class:`IterationCancelledError` if the cancel token has fired."""
        raise_if_cancelled(self.cancel)

    def next(self) -> None:
        """Advance to the following cell."""
        self.check_cancelled()
        if self.end():
            raise IteratorExhaustedError()
        for pos in range(len(self._indices) - 1, -1, -1):
            self._indices[pos] += 1
            # The first index is allowed to overflow; that is what end() detects.
            if self._indices[pos] < self.dimensions[pos].size or pos == 0:
                break
            self._indices[pos] = 0

    def category_at_column(self, column: int) -> Category:
        """Category of dimension ``column`` at the current cell."""
        if not 0 <= column < len(self.dimensions):
            raise IndexError(
                f"column {column} out of range for {len(self.dimensions)} dimensions"
            )
        if self.end():
            raise IteratorExhaustedError()
        return self.dimensions[column].categories[self._indices[column]]

    def row(self) -> tuple[Category, ...]:
        """Categories of every dimension at the current cell."""
        if self.end():
            raise IteratorExhaustedError()
        return tuple(
            dim.categories[idx] for dim, idx in zip(self.dimensions, self._indices)
        )

    @property
    def coordinates(self) -> tuple[int, ...]:
        return tuple(self._indices)

    def reset(self) -> None:
        """Move back to the first cell."""
        self._indices = [0] * len(self.dimensions)

    def __iter__(self) -> Iterator[tuple[Category, ...]]:
        self.reset()
        while not self.end():
            yield self.row()
            self.next()


__all__ = ["DimensionIterator", "unravel_index"]
