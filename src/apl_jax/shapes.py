"""Shape and index arithmetic shared by the value model and primitives."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from .errors import AxisOutOfRange


def flatten(shape: Sequence[int]) -> int:
    """Number of elements of an array with ``shape``; the empty shape is a scalar."""
    size = 1
    for dim in shape:
        size *= int(dim)
    return size


class IndexConverter:
    """Converts between multi-index vectors and row-major flat offsets."""

    def __init__(self, shape: Sequence[int]) -> None:
        self.shape: tuple[int, ...] = tuple(int(d) for d in shape)
        weights = [1] * len(self.shape)
        for axis in range(len(self.shape) - 2, -1, -1):
            weights[axis] = weights[axis + 1] * self.shape[axis + 1]
        self.weights: tuple[int, ...] = tuple(weights)

    def index(self, vec: Sequence[int]) -> int:
        return sum(w * int(i) for w, i in zip(self.weights, vec, strict=True))

    def indexes(self, offset: int) -> list[int]:
        vec: list[int] = []
        for weight in self.weights:
            if weight == 0:
                vec.append(0)
                continue
            q, offset = divmod(offset, weight)
            vec.append(q)
        return vec


def inc_array_index(vec: list[int], shape: Sequence[int]) -> None:
    """Advance ``vec`` in place to the next multi-index in row-major order.

    The last axis varies fastest. After the last valid index the vector wraps
    to all zeros; callers iterate exactly ``flatten(shape)`` times.
    """
    for axis in range(len(shape) - 1, -1, -1):
        vec[axis] += 1
        if vec[axis] < shape[axis]:
            return
        vec[axis] = 0


def iter_indexes(shape: Sequence[int]) -> Iterator[list[int]]:
    """Yield a fresh multi-index for every position of ``shape`` in row-major order."""
    vec = [0] * len(shape)
    for _ in range(flatten(shape)):
        yield list(vec)
        inc_array_index(vec, shape)


def normalize_axis(axis: int, rank: int) -> int:
    if axis < 0:
        axis += rank
    if axis < 0 or axis >= rank:
        raise AxisOutOfRange(f"axis out of range: {axis} (rank {rank})")
    return axis


def remove_axis(vec: Sequence[int], axis: int) -> tuple[int, ...]:
    return (*vec[:axis], *vec[axis + 1 :])


def collapse_shape(shape: Sequence[int]) -> tuple[int, ...]:
    """Drop single-element axes before a conformance check."""
    return tuple(int(d) for d in shape if d != 1)
