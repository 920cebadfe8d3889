"""Runtime value model: scalars, uniform and mixed arrays, lists, objects and tables."""

from __future__ import annotations

import logging
import numbers
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final, Union

import jax
import jax.numpy as jnp

from .errors import ConversionError, IndexOutOfRange, KeyMismatch, NonConformant, TypeMismatch, UnsupportedDepth
from .shapes import flatten

logger = logging.getLogger(__name__)

_ENABLE_X64: Final[bool] = os.environ.get("APL_JAX_ENABLE_X64", "1") != "0"

if _ENABLE_X64:
    jax.config.update("jax_enable_x64", True)


class ElementType(str, Enum):
    INT = "int"
    FLOAT = "float"
    COMPLEX = "complex"

    @property
    def dtype(self):
        return jax.dtypes.canonicalize_dtype(_WIDE_DTYPES[self])

    @property
    def zero(self) -> object:
        return _ZEROS[self]


_WIDE_DTYPES: Final = {
    ElementType.INT: jnp.int64,
    ElementType.FLOAT: jnp.float64,
    ElementType.COMPLEX: jnp.complex128,
}
_ZEROS: Final[dict[ElementType, object]] = {
    ElementType.INT: 0,
    ElementType.FLOAT: 0.0,
    ElementType.COMPLEX: 0j,
}
_PROMOTION_ORDER: Final[tuple[ElementType, ...]] = (ElementType.INT, ElementType.FLOAT, ElementType.COMPLEX)


class ValueKind(str, Enum):
    SCALAR = "scalar"
    UNIFORM_ARRAY = "uniform_array"
    MIXED_ARRAY = "mixed_array"
    LIST = "list"
    OBJECT = "object"
    TABLE = "table"
    AXIS = "axis"


@dataclass(frozen=True)
class ValueInfo:
    kind: ValueKind
    shape: tuple[int, ...]
    rank: int
    depth: int


def as_scalar(value: object) -> object:
    """Unwrap 0-d jax arrays and numpy scalars into plain Python scalars."""
    if isinstance(value, jax.Array) and value.ndim == 0:
        return value.item()
    if isinstance(value, numbers.Number) and hasattr(value, "item"):
        return value.item()
    return value


def is_scalar(value: object) -> bool:
    if isinstance(value, jax.Array):
        return value.ndim == 0
    return isinstance(value, (numbers.Number, str))


def element_type_of(value: object) -> ElementType | None:
    value = as_scalar(value)
    if isinstance(value, numbers.Integral):
        return ElementType.INT
    if isinstance(value, numbers.Real):
        return ElementType.FLOAT
    if isinstance(value, numbers.Complex):
        return ElementType.COMPLEX
    return None


def _checked_int(value: int) -> int:
    info = jnp.iinfo(ElementType.INT.dtype)
    if not int(info.min) <= value <= int(info.max):
        raise TypeMismatch(f"integer {value} does not fit the {info.dtype} element type")
    return value


def coerce_element(value: object, element_type: ElementType, *, lenient: bool = False) -> object:
    """Convert ``value`` for storage in a uniform array of ``element_type``.

    Integers widen to float and complex. With ``lenient`` an integral float is
    also accepted by an integer array. Integers outside the range of the
    integer dtype are a type mismatch, so the array upgrades instead.
    """
    value = as_scalar(value)
    if element_type is ElementType.INT:
        if isinstance(value, numbers.Integral):
            return _checked_int(int(value))
        if lenient and isinstance(value, numbers.Real) and float(value).is_integer():
            return _checked_int(int(value))
    elif element_type is ElementType.FLOAT:
        if isinstance(value, numbers.Real):
            return float(value)
    elif element_type is ElementType.COMPLEX:
        if isinstance(value, numbers.Complex):
            return complex(value)
    raise TypeMismatch(f"cannot assign {type(value).__name__} to {element_type.value} array")


def convert_element(value: object, element_type: ElementType) -> object:
    try:
        return coerce_element(value, element_type, lenient=True)
    except TypeMismatch as err:
        raise ConversionError(f"cannot convert {type(as_scalar(value)).__name__} to {element_type.value}") from err


def common_element_type(values: Iterable[object], *, strict: bool) -> ElementType | None:
    """Element type shared by every value, or None.

    Without ``strict`` mixed numeric types promote int -> float -> complex.
    """
    found: set[ElementType] = set()
    for value in values:
        element_type = element_type_of(value)
        if element_type is None:
            return None
        found.add(element_type)
    if not found:
        return None
    if len(found) == 1:
        return found.pop()
    if strict:
        return None
    return max(found, key=_PROMOTION_ORDER.index)


def _check_shape(shape: Sequence[int]) -> tuple[int, ...]:
    dims = tuple(int(d) for d in shape)
    if any(d < 0 for d in dims):
        raise NonConformant(f"shape entries must be non-negative: {dims}")
    return dims


def _check_index(i: int, size: int) -> None:
    if i < 0 or i >= size:
        raise IndexOutOfRange(f"index {i} out of range [0, {size})")


def _nest(flat: list[object], dims: tuple[int, ...]) -> object:
    if not dims:
        return flat[0]
    if len(dims) == 1:
        return list(flat)
    step = flatten(dims[1:])
    return [_nest(flat[i * step : (i + 1) * step], dims[1:]) for i in range(dims[0])]


@dataclass(eq=False)
class UniformArray:
    """Array whose elements share one element type, stored as a flat jax buffer."""

    dims: tuple[int, ...]
    data: jax.Array
    element_type: ElementType

    def __post_init__(self) -> None:
        self.dims = _check_shape(self.dims)
        self.data = jnp.ravel(jnp.asarray(self.data, dtype=self.element_type.dtype))
        if int(self.data.shape[0]) != flatten(self.dims):
            raise NonConformant(f"uniform array holds {self.data.shape[0]} elements for shape {self.dims}")

    @classmethod
    def from_values(
        cls,
        values: Iterable[object],
        shape: Sequence[int] | None = None,
        element_type: ElementType | None = None,
    ) -> "UniformArray":
        items = [as_scalar(v) for v in values]
        if element_type is None:
            element_type = common_element_type(items, strict=False)
            if element_type is None:
                raise TypeMismatch("values do not share a numeric element type")
        converted = [coerce_element(v, element_type) for v in items]
        dims = (len(items),) if shape is None else tuple(shape)
        return cls(dims, jnp.asarray(converted, dtype=element_type.dtype), element_type)

    @property
    def shape(self) -> tuple[int, ...]:
        return self.dims

    @property
    def size(self) -> int:
        return int(self.data.shape[0])

    @property
    def rank(self) -> int:
        return len(self.dims)

    def zero(self) -> object:
        return self.element_type.zero

    def at(self, i: int) -> object:
        _check_index(i, self.size)
        return self.data[i].item()

    def set(self, i: int, value: object) -> None:
        _check_index(i, self.size)
        converted = coerce_element(value, self.element_type)
        self.data = self.data.at[i].set(converted)

    def elements(self) -> list[object]:
        return self.data.tolist()

    def tolist(self) -> object:
        return _nest(self.elements(), self.dims)

    def make(self, shape: Sequence[int]) -> "UniformArray":
        dims = _check_shape(shape)
        return UniformArray(dims, jnp.zeros((flatten(dims),), dtype=self.element_type.dtype), self.element_type)

    def reshape(self, shape: Sequence[int]) -> "UniformArray":
        dims = _check_shape(shape)
        size = flatten(dims)
        if self.size == 0:
            return self.make(dims)
        data = jnp.take(self.data, jnp.arange(size) % self.size)
        return UniformArray(dims, data, self.element_type)

    def take(self, offsets: Sequence[int], shape: Sequence[int] | None = None) -> "UniformArray":
        offsets = [int(o) for o in offsets]
        for offset in offsets:
            _check_index(offset, self.size)
        dims = (len(offsets),) if shape is None else _check_shape(shape)
        data = jnp.take(self.data, jnp.asarray(offsets, dtype=jnp.int32))
        return UniformArray(dims, data, self.element_type)

    def copy(self) -> "UniformArray":
        return UniformArray(self.dims, jnp.array(self.data, copy=True), self.element_type)


@dataclass(eq=False)
class MixedArray:
    """Array of boxed values of any kind."""

    dims: tuple[int, ...]
    values: list[object]

    def __post_init__(self) -> None:
        self.dims = _check_shape(self.dims)
        self.values = [as_scalar(v) for v in self.values]
        if len(self.values) != flatten(self.dims):
            raise NonConformant(f"mixed array holds {len(self.values)} elements for shape {self.dims}")

    @property
    def shape(self) -> tuple[int, ...]:
        return self.dims

    @property
    def size(self) -> int:
        return len(self.values)

    @property
    def rank(self) -> int:
        return len(self.dims)

    def zero(self) -> object:
        return 0

    def at(self, i: int) -> object:
        _check_index(i, self.size)
        return self.values[i]

    def set(self, i: int, value: object) -> None:
        _check_index(i, self.size)
        validate_value(value, where=f"element {i}")
        self.values[i] = copy_value(value)

    def elements(self) -> list[object]:
        return list(self.values)

    def tolist(self) -> object:
        return _nest(self.elements(), self.dims)

    def make(self, shape: Sequence[int]) -> "MixedArray":
        dims = _check_shape(shape)
        return MixedArray(dims, [0] * flatten(dims))

    def reshape(self, shape: Sequence[int]) -> "MixedArray":
        dims = _check_shape(shape)
        if not self.values:
            return self.make(dims)
        n = len(self.values)
        return MixedArray(dims, [copy_value(self.values[k % n]) for k in range(flatten(dims))])

    def take(self, offsets: Sequence[int], shape: Sequence[int] | None = None) -> "MixedArray":
        offsets = [int(o) for o in offsets]
        for offset in offsets:
            _check_index(offset, self.size)
        dims = (len(offsets),) if shape is None else _check_shape(shape)
        return MixedArray(dims, [copy_value(self.values[o]) for o in offsets])

    def copy(self) -> "MixedArray":
        return MixedArray(self.dims, [copy_value(v) for v in self.values])


Array = Union[UniformArray, MixedArray]


def is_array(value: object) -> bool:
    return isinstance(value, (UniformArray, MixedArray))


def make_array(prototype: Array, shape: Sequence[int] | None = None) -> Array:
    """Zero-filled array of the same representation as ``prototype``."""
    return prototype.make(prototype.shape if shape is None else shape)


def upgrade(array: UniformArray) -> MixedArray:
    """Rebuild a uniform array as a mixed array holding the same elements."""
    logger.debug("upgrading %s array of shape %s to mixed", array.element_type.value, array.shape)
    return MixedArray(array.shape, array.elements())


def unify(array: Array, strict: bool = False) -> tuple[Array, bool]:
    """Collapse a mixed array into a uniform one when its elements share a type.

    Returns the array unchanged with ``False`` when that is not possible.
    """
    if isinstance(array, UniformArray):
        return array, True
    element_type = common_element_type(array.values, strict=strict)
    if element_type is None:
        return array, False
    try:
        return UniformArray.from_values(array.values, array.shape, element_type), True
    except TypeMismatch:
        return array, False


def unify_array(array: Array) -> Array:
    return unify(array, strict=False)[0]


def array(values: Sequence[object], shape: Sequence[int] | None = None) -> Array:
    """Uniform array when every element is numeric, otherwise a mixed array."""
    items = [as_scalar(v) for v in values]
    dims = (len(items),) if shape is None else tuple(shape)
    if not items:
        return UniformArray(dims, jnp.zeros((0,)), ElementType.INT)
    return unify_array(MixedArray(dims, items))


def int_array(values: Sequence[int], shape: Sequence[int] | None = None) -> UniformArray:
    return UniformArray.from_values(values, shape, ElementType.INT)


@dataclass(eq=False)
class ListValue:
    """Ordered, arbitrarily nested sequence of values addressed by depth paths."""

    items: list[object]

    def __len__(self) -> int:
        return len(self.items)

    def _parent(self, path: Sequence[int]) -> "ListValue":
        if not path:
            raise IndexOutOfRange("empty depth index")
        current: object = self
        for depth, i in enumerate(path[:-1]):
            if not isinstance(current, ListValue):
                raise UnsupportedDepth(f"depth {depth} descends into {kind_of(current).value}")
            _check_index(i, len(current.items))
            current = current.items[i]
        if not isinstance(current, ListValue):
            raise UnsupportedDepth(f"depth {len(path) - 1} descends into {kind_of(current).value}")
        _check_index(path[-1], len(current.items))
        return current

    def get_deep(self, path: Sequence[int]) -> object:
        return self._parent(path).items[path[-1]]

    def set_deep(self, path: Sequence[int], value: object) -> None:
        validate_value(value, where="list element")
        self._parent(path).items[path[-1]] = copy_value(value)

    def copy(self) -> "ListValue":
        return ListValue([copy_value(v) for v in self.items])


class Dict:
    """Ordered key sequence plus a key -> value mapping.

    Backing store of objects and tables. Every key in the order is present in
    the mapping and vice versa.
    """

    def __init__(self, keys: Iterable[object] = (), mapping: dict[object, object] | None = None) -> None:
        self._keys: list[object] = []
        self._mapping: dict[object, object] = {}
        mapping = {} if mapping is None else mapping
        for key in keys:
            if key not in mapping:
                raise KeyMismatch(f"key {key!r} has no value")
            self._store(key, copy_value(mapping[key]))
        if len(self._keys) != len(mapping):
            raise KeyMismatch("mapping holds keys missing from the key order")

    def _store(self, key: object, value: object) -> None:
        key = as_scalar(key)
        if not is_scalar(key):
            raise TypeMismatch(f"{type(key).__name__} cannot be used as a key")
        validate_value(value, where=f"key {key!r}")
        if key not in self._mapping:
            self._keys.append(key)
        self._mapping[key] = value

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return as_scalar(key) in self._mapping

    def keys(self) -> list[object]:
        return list(self._keys)

    def at(self, key: object) -> object:
        try:
            return self._mapping[as_scalar(key)]
        except KeyError:
            raise KeyMismatch(f"no such key: {key!r}") from None

    def set(self, key: object, value: object) -> None:
        self._store(key, copy_value(value))

    def copy(self) -> "Dict":
        return type(self)(self._keys, self._mapping)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self._mapping[k]!r}" for k in self._keys)
        return f"{type(self).__name__}({{{items}}})"


class Object(Dict):
    """Keyed object: ordered unique keys mapped to arbitrary values."""


class Table(Dict):
    """Column store: every value is a rank-1 uniform array of ``rows`` elements."""

    def __init__(
        self,
        keys: Iterable[object] = (),
        columns: dict[object, object] | None = None,
        rows: int | None = None,
    ) -> None:
        keys = list(keys)
        columns = {} if columns is None else columns
        if rows is None:
            first = columns.get(keys[0]) if keys else None
            rows = first.size if is_array(first) else 0
        self.rows = int(rows)
        super().__init__(keys, columns)

    def _store(self, key: object, value: object) -> None:
        if not isinstance(value, UniformArray):
            raise TypeMismatch(f"table column {key!r} must be a uniform array, not {kind_of(value).value}")
        if value.shape != (self.rows,):
            raise NonConformant(f"table column {key!r} has shape {value.shape}, expected ({self.rows},)")
        super()._store(key, value)

    def copy(self) -> "Table":
        return Table(self._keys, self._mapping, self.rows)

    def __repr__(self) -> str:
        return f"{super().__repr__()[:-1]}, rows={self.rows})"


@dataclass(frozen=True)
class AxisValue:
    """Argument carrying an explicit axis specification, as in ``⌽[k] R``."""

    value: object
    axis: object

    def copy(self) -> "AxisValue":
        return AxisValue(copy_value(self.value), copy_value(self.axis))


Value = Union[int, float, complex, str, UniformArray, MixedArray, ListValue, Object, Table, AxisValue]


def kind_of(value: object) -> ValueKind:
    if isinstance(value, UniformArray):
        return ValueKind.UNIFORM_ARRAY
    if isinstance(value, MixedArray):
        return ValueKind.MIXED_ARRAY
    if isinstance(value, ListValue):
        return ValueKind.LIST
    if isinstance(value, Table):
        return ValueKind.TABLE
    if isinstance(value, Dict):
        return ValueKind.OBJECT
    if isinstance(value, AxisValue):
        return ValueKind.AXIS
    if is_scalar(value):
        return ValueKind.SCALAR
    raise TypeMismatch(f"unsupported runtime type {type(value).__name__}")


def copy_value(value: object) -> object:
    """Deep copy sharing no mutable storage with ``value``."""
    if kind_of(value) is ValueKind.SCALAR:
        return as_scalar(value)
    return value.copy()


def validate_value(value: object, *, where: str = "value") -> None:
    try:
        kind = kind_of(value)
    except TypeMismatch:
        raise TypeMismatch(f"{where} has unsupported runtime type {type(value).__name__}") from None
    if kind is ValueKind.MIXED_ARRAY:
        for idx, item in enumerate(value.values):
            validate_value(item, where=f"{where}[{idx}]")
    elif kind is ValueKind.LIST:
        for idx, item in enumerate(value.items):
            validate_value(item, where=f"{where}[{idx}]")


def shape_of(value: object) -> tuple[int, ...]:
    kind = kind_of(value)
    if kind in (ValueKind.UNIFORM_ARRAY, ValueKind.MIXED_ARRAY):
        return value.shape
    if kind is ValueKind.LIST:
        return (len(value),)
    if kind is ValueKind.OBJECT:
        return (len(value),)
    if kind is ValueKind.TABLE:
        return (value.rows, len(value))
    if kind is ValueKind.AXIS:
        return shape_of(value.value)
    return ()


def depth_of(value: object) -> int:
    kind = kind_of(value)
    if kind is ValueKind.SCALAR:
        return 0
    if kind is ValueKind.UNIFORM_ARRAY:
        return 0 if value.rank == 0 else 1
    if kind is ValueKind.MIXED_ARRAY:
        children = value.values
    elif kind is ValueKind.LIST:
        children = value.items
    elif kind in (ValueKind.OBJECT, ValueKind.TABLE):
        children = [value.at(k) for k in value.keys()]
    else:
        return depth_of(value.value)
    if not children:
        return 1
    return 1 + max(depth_of(item) for item in children)


def value_info(value: object) -> ValueInfo:
    shape = shape_of(value)
    return ValueInfo(kind=kind_of(value), shape=shape, rank=len(shape), depth=depth_of(value))


def values_match(left: object, right: object) -> bool:
    """Deep equality; arrays compare by shape and elements, not by representation."""
    lk, rk = kind_of(left), kind_of(right)
    if is_array(left) and is_array(right):
        if left.shape != right.shape:
            return False
        return all(values_match(a, b) for a, b in zip(left.elements(), right.elements(), strict=True))
    if lk is not rk:
        return False
    if lk is ValueKind.SCALAR:
        return as_scalar(left) == as_scalar(right)
    if lk is ValueKind.LIST:
        return len(left) == len(right) and all(
            values_match(a, b) for a, b in zip(left.items, right.items, strict=True)
        )
    if lk in (ValueKind.OBJECT, ValueKind.TABLE):
        if lk is ValueKind.TABLE and left.rows != right.rows:
            return False
        if left.keys() != right.keys():
            return False
        return all(values_match(left.at(k), right.at(k)) for k in left.keys())
    return values_match(left.value, right.value) and values_match(left.axis, right.axis)
