"""Index descriptors and the selectors they decode into for indexed assignment.

An ``IndexDescriptor`` is the integer carrier produced by indexing syntax. Its
meaning depends on the value being assigned into:

* arrays: flat zero-based offsets, ``-1`` marks a position to skip;
* tables: the first ``dims[0]`` entries are rows, the rest are columns;
* objects: non-negative entries are key positions in index origin, a leading
  negative entry ``-1-k`` descends into the value at key position ``k`` and
  applies the remaining entries one level deeper;
* lists: a zero-based depth path.

``decode_selector`` resolves that encoding once, against the target value, into
one of the selector types below.
"""

from __future__ import annotations

import numbers
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Union

from .errors import IndexOutOfRange, NotSettable, TypeMismatch, UnsupportedDepth
from .values import ElementType, ValueKind, as_scalar, is_array, kind_of, unify


@dataclass(frozen=True)
class IndexDescriptor:
    dims: tuple[int, ...]
    ints: tuple[int, ...]

    @classmethod
    def of(cls, ints: Sequence[int], dims: Sequence[int] | None = None) -> "IndexDescriptor":
        ints = tuple(int(i) for i in ints)
        return cls((len(ints),) if dims is None else tuple(int(d) for d in dims), ints)


@dataclass(frozen=True)
class Flat:
    """Flat array offsets; ``shape`` is the shape of the index expression."""

    offsets: tuple[int, ...]
    shape: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "offsets", tuple(int(o) for o in self.offsets))
        if self.shape is None:
            object.__setattr__(self, "shape", (len(self.offsets),))


@dataclass(frozen=True)
class TableCell:
    rows: tuple[int, ...]
    cols: tuple[int, ...]


@dataclass(frozen=True)
class KeyPositions:
    """Zero-based positions into an object's key order."""

    positions: tuple[int, ...]


@dataclass(frozen=True)
class ObjectDepth:
    position: int
    rest: "Selector"


@dataclass(frozen=True)
class DepthPath:
    path: tuple[int, ...]


Selector = Union[Flat, TableCell, KeyPositions, ObjectDepth, DepthPath]
SELECTOR_TYPES = (Flat, TableCell, KeyPositions, ObjectDepth, DepthPath)


def table_descriptor(rows: Sequence[int], cols: Sequence[int]) -> IndexDescriptor:
    return IndexDescriptor((len(rows),), (*map(int, rows), *map(int, cols)))


def _as_index_int(value: object) -> int:
    value = as_scalar(value)
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real) and float(value).is_integer():
        return int(value)
    raise TypeMismatch(f"index must be an integer, not {type(value).__name__}")


def as_index_descriptor(indexes: object) -> IndexDescriptor:
    """Coerce integers, integer sequences or integer arrays to an IndexDescriptor."""
    if isinstance(indexes, IndexDescriptor):
        descriptor = indexes
    elif is_array(indexes):
        arr, ok = unify(indexes)
        if not ok or arr.element_type is ElementType.COMPLEX:
            raise TypeMismatch("indexed assignment could not convert to an index array")
        descriptor = IndexDescriptor(arr.shape, tuple(_as_index_int(v) for v in arr.elements()))
    elif isinstance(indexes, (list, tuple)):
        descriptor = IndexDescriptor.of([_as_index_int(v) for v in indexes])
    elif kind_of(indexes) is ValueKind.SCALAR:
        descriptor = IndexDescriptor((), (_as_index_int(indexes),))
    else:
        raise TypeMismatch(f"indexed assignment could not convert {kind_of(indexes).value} to an index array")
    if not descriptor.ints:
        raise TypeMismatch("indexed assignment with an empty index array")
    return descriptor


def _key_position(position: int, keys: list[object]) -> int:
    if position < 0 or position >= len(keys):
        raise IndexOutOfRange(f"key position {position} out of range [0, {len(keys)})")
    return position


def decode_selector(descriptor: IndexDescriptor, target: object, origin: int) -> Selector:
    kind = kind_of(target)
    ints = descriptor.ints
    if kind is ValueKind.TABLE:
        nrows = descriptor.dims[0] if descriptor.dims else 0
        return TableCell(rows=ints[:nrows], cols=ints[nrows:])
    if kind is ValueKind.OBJECT:
        keys = target.keys()
        if len(ints) > 1 and ints[0] < 0:
            position = _key_position(-1 - ints[0], keys)
            nested = target.at(keys[position])
            if kind_of(nested) is ValueKind.TABLE:
                raise UnsupportedDepth("assign obj-depth: tables are not supported")
            rest = IndexDescriptor((len(ints) - 1,), ints[1:])
            return ObjectDepth(position, decode_selector(rest, nested, origin))
        if len(ints) == 1 and ints[0] < 0:
            return KeyPositions((_key_position(-1 - ints[0], keys),))
        return KeyPositions(tuple(_key_position(i - origin, keys) for i in ints))
    if kind is ValueKind.LIST:
        return DepthPath(ints)
    if kind in (ValueKind.UNIFORM_ARRAY, ValueKind.MIXED_ARRAY):
        return Flat(ints, descriptor.dims)
    if kind is ValueKind.SCALAR:
        raise UnsupportedDepth("assign obj-depth: cannot index into a scalar")
    raise NotSettable(f"cannot index into {kind.value}")
