"""Axis primitives: reverse and rotate along an axis (``⌽`` and ``⊖``)."""

from __future__ import annotations

from .context import FunctionHandle, Registry, Session
from .errors import InvalidAxis, NonConformant, TypeMismatch
from .indexing import as_index_descriptor
from .shapes import IndexConverter, iter_indexes, normalize_axis, remove_axis
from .values import AxisValue, ElementType, UniformArray, is_array, unify


def split_axis(session: Session, value: AxisValue) -> tuple[object, list[int]]:
    """Unpack an axis argument into its base value and zero-based axis numbers."""
    try:
        descriptor = as_index_descriptor(value.axis)
    except TypeMismatch as err:
        raise InvalidAxis(f"axis must be integral: {err}") from err
    return value.value, [i - session.origin for i in descriptor.ints]


def _axis_argument(session: Session, right: object, axis: int) -> tuple[object, int]:
    if not isinstance(right, AxisValue):
        return right, axis
    base, axes = split_axis(session, right)
    if len(axes) != 1:
        raise InvalidAxis("axis must be a scalar or length 1")
    return base, axes[0]


def _rotated(i: int, n: int, size: int) -> int:
    k = (i + n) % size
    if k < 0:
        k += size
    return k


def _rotation_amounts(left: object) -> UniformArray:
    if is_array(left):
        amounts, ok = unify(left)
        if not ok:
            raise TypeMismatch("rotate: left argument must be integral")
        if amounts.element_type is not ElementType.INT:
            descriptor = as_index_descriptor(amounts)
            amounts = UniformArray.from_values(descriptor.ints, amounts.shape, ElementType.INT)
        return amounts
    descriptor = as_index_descriptor(left)
    return UniformArray.from_values(descriptor.ints, (1,), ElementType.INT)


def reverse(session: Session, right: object, axis: int = -1) -> object:
    """Reverse ``right`` along ``axis``; scalars are returned unchanged."""
    base, axis = _axis_argument(session, right, axis)
    if not is_array(base):
        return base

    shape = base.shape
    axis = normalize_axis(axis, len(shape))
    conv = IndexConverter(shape)
    sources = []
    for dst in iter_indexes(shape):
        src = list(dst)
        src[axis] = shape[axis] - dst[axis] - 1
        sources.append(conv.index(src))
    return base.take(sources, shape)


def rotate(session: Session, left: object, right: object, axis: int = -1) -> object:
    """Rotate ``right`` along ``axis`` by the amounts in ``left``.

    For a vector ``left`` is a single integer. Otherwise it must have the shape
    of ``right`` with ``axis`` removed; a single amount is repeated to that shape.
    """
    base, axis = _axis_argument(session, right, axis)
    if not is_array(base):
        return base

    shape = base.shape
    amounts = _rotation_amounts(left)
    axis = normalize_axis(axis, len(shape))

    if len(shape) == 1:
        if amounts.size != 1:
            raise NonConformant(f"rotate: wrong shape of L for vector R: {amounts.shape}")
        size = shape[0]
        if size == 0:
            return base.copy()
        n = amounts.at(0)
        return base.take([_rotated(i, n, size) for i in range(size)], shape)

    lshape = remove_axis(shape, axis)
    if amounts.size == 1 and amounts.shape != lshape:
        amounts = amounts.reshape(lshape)
    if amounts.shape != lshape:
        raise NonConformant(f"rotate L: has wrong shape: {amounts.shape} (R: {shape})")

    lconv = IndexConverter(lshape)
    rconv = IndexConverter(shape)
    counts = amounts.elements()
    sources = []
    for dst in iter_indexes(shape):
        n = counts[lconv.index(remove_axis(dst, axis))]
        src = list(dst)
        src[axis] = _rotated(dst[axis], n, shape[axis])
        sources.append(rconv.index(src))
    return base.take(sources, shape)


def reverse_last(session: Session, _left: object, right: object) -> object:
    return reverse(session, right, -1)


def reverse_first(session: Session, _left: object, right: object) -> object:
    return reverse(session, right, 0)


def rotate_last(session: Session, left: object, right: object) -> object:
    return rotate(session, left, right, -1)


def rotate_first(session: Session, left: object, right: object) -> object:
    return rotate(session, left, right, 0)


def _monadic(left: object, _right: object) -> bool:
    return left is None


def _dyadic(left: object, _right: object) -> bool:
    return left is not None


def register(registry: Registry) -> None:
    registry.register_primitive("⌽", FunctionHandle(reverse_last, _monadic, "reverse"))
    registry.register_doc("⌽", "reverse\n")
    registry.register_primitive("⊖", FunctionHandle(reverse_first, _monadic, "reverse first"))
    registry.register_doc("⊖", "reverse first\n")
    registry.register_primitive("⌽", FunctionHandle(rotate_last, _dyadic, "rotate"))
    registry.register_doc("⌽", "rotate\n")
    registry.register_primitive("⊖", FunctionHandle(rotate_first, _dyadic, "rotate first"))
    registry.register_doc("⊖", "rotate first\n")
