"""Assignment engine: plain, vector, modified and indexed assignment."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final

from .context import Registry, Session
from .errors import (
    APLRuntimeError,
    IndexOutOfRange,
    KeyMismatch,
    NonConformant,
    NotSettable,
    TypeMismatch,
    UndefinedVariable,
    UnsupportedDepth,
    with_context,
)
from .indexing import (
    SELECTOR_TYPES,
    DepthPath,
    Flat,
    KeyPositions,
    ObjectDepth,
    Selector,
    TableCell,
    as_index_descriptor,
    decode_selector,
)
from .shapes import collapse_shape
from .values import (
    Dict,
    ListValue,
    MixedArray,
    Object,
    Table,
    UniformArray,
    ValueKind,
    convert_element,
    copy_value,
    is_array,
    kind_of,
    unify,
    unify_array,
    upgrade,
)

logger = logging.getLogger(__name__)

ModFunction = Callable[[object, object], object]

_MISSING: Final = object()


@dataclass(frozen=True)
class Assignment:
    """Left side of ``←``: one name, or a vector of names, with optional indexes and modifier."""

    identifier: str | None = None
    identifiers: tuple[str, ...] | None = None
    indexes: object = None
    modifier: ModFunction | None = None


def assign(session: Session, name: str, value: object) -> None:
    session.assign(name, copy_value(value))


def assign_vector(session: Session, names: Sequence[str], right: object, mod: ModFunction | None = None) -> object:
    """Bind each name to the matching element of ``right``.

    A single-element right side is bound to every name.
    """
    arr = right if is_array(right) else unify_array(MixedArray((1,), [right]))
    shape = arr.shape
    if len(shape) != 1:
        raise NonConformant("vector assignment: rank of right argument must be 1")
    if shape[0] != 1 and shape[0] != len(names):
        raise NonConformant(f"vector assignment is non-conformant: {len(names)} names, {shape[0]} values")

    scalar = arr.at(0) if shape[0] == 1 else _MISSING
    for i, name in enumerate(names):
        value = scalar if scalar is not _MISSING else arr.at(i)
        assign_scalar(session, name, None, mod, value)
    return right


def assign_scalar(
    session: Session,
    name: str,
    indexes: object,
    mod: ModFunction | None,
    right: object,
) -> None:
    """Assign to a named variable, optionally indexed and/or through ``mod``."""
    if mod is None and indexes is None:
        assign(session, name, right)
        return

    current, scope = session.lookup_env(name)
    if scope is None:
        raise UndefinedVariable(f"assign {name}: modified/indexed: variable does not exist")

    try:
        updated = assign_value(session, current, indexes, mod, right)
    except APLRuntimeError as err:
        raise with_context(err, f"assign {name}") from err
    if updated is not None:
        session.assign_env(name, copy_value(updated), scope)


def assign_value(
    session: Session,
    dst: object,
    indexes: object,
    mod: ModFunction | None,
    right: object,
) -> object | None:
    """Assign into ``dst``.

    Returns the replacement value for arrays and modified assignment, or None
    when ``dst`` was updated in place.
    """
    if indexes is None:
        if mod is None:
            return copy_value(right)
        return mod(dst, right)

    kind = kind_of(dst)
    if kind in (ValueKind.SCALAR, ValueKind.AXIS):
        raise NotSettable(f"variable is no settable array: {kind.value}")

    if isinstance(indexes, SELECTOR_TYPES):
        selector = indexes
    else:
        selector = decode_selector(as_index_descriptor(indexes), dst, session.origin)

    if kind is ValueKind.TABLE:
        update_table(session, dst, selector, mod, right)
        return None
    if kind is ValueKind.OBJECT:
        update_object(session, dst, selector, mod, right)
        return None
    if kind is ValueKind.LIST:
        update_list(session, dst, selector, mod, right)
        return None
    return update_array(session, dst, selector, mod, right)


def _expect(selector: Selector, expected: type, target: str) -> None:
    if not isinstance(selector, expected):
        raise TypeMismatch(f"{target} cannot be indexed with {type(selector).__name__}")


def update_array(
    session: Session,
    array: UniformArray | MixedArray,
    selector: Selector,
    mod: ModFunction | None,
    right: object,
) -> UniformArray | MixedArray:
    """Write ``right`` into ``array`` at flat offsets, upgrading to mixed on a type mismatch.

    Offsets of -1 are skipped. Positions written before a failure stay written.
    """
    _expect(selector, Flat, "array")
    target = array

    def write(offset: int, value: object) -> None:
        nonlocal target
        if offset == -1:
            return
        if mod is not None:
            value = mod(target.at(offset), value)
        try:
            target.set(offset, value)
        except TypeMismatch:
            if not isinstance(target, UniformArray):
                raise
            target = upgrade(target)
            target.set(offset, value)

    if is_array(right):
        scalar = copy_value(right.at(0)) if right.size == 1 else _MISSING
    else:
        scalar = copy_value(right)

    if scalar is not _MISSING:
        for offset in selector.offsets:
            write(offset, copy_value(scalar))
        return target

    dst_shape = collapse_shape(selector.shape)
    src_shape = collapse_shape(right.shape)
    if len(dst_shape) != len(src_shape):
        raise NonConformant(f"indexed assignment: arrays have different rank: {len(dst_shape)} != {len(src_shape)}")
    if dst_shape != src_shape:
        raise NonConformant(f"indexed assignment: arrays are not conforming: {src_shape} != {dst_shape}")
    for i, offset in enumerate(selector.offsets):
        write(offset, copy_value(right.at(i)))
    return target


def update_list(session: Session, lst: ListValue, selector: Selector, mod: ModFunction | None, right: object) -> None:
    _expect(selector, DepthPath, "list")
    if mod is not None:
        right = mod(lst.get_deep(selector.path), right)
    lst.set_deep(selector.path, right)


def update_object(session: Session, obj: Dict, selector: Selector, mod: ModFunction | None, right: object) -> None:
    """Assign to keys of ``obj`` selected by position, or descend one level."""
    if isinstance(selector, ObjectDepth):
        _update_object_depth(session, obj, selector, mod, right)
        return
    _expect(selector, KeyPositions, "object")

    positions = selector.positions
    vectorize = is_array(right) and len(positions) > 1 and right.size == len(positions)
    keys = obj.keys()
    for i, position in enumerate(positions):
        if position < 0 or position >= len(keys):
            raise IndexOutOfRange(f"assign object: index {position} out of range")
        key = keys[position]
        value = right.at(i) if vectorize else right
        if mod is not None:
            try:
                value = mod(obj.at(key), value)
            except APLRuntimeError as err:
                raise with_context(err, f"mod assign object key {key!r}") from err
        obj.set(key, value)


def _update_object_depth(
    session: Session,
    obj: Dict,
    selector: ObjectDepth,
    mod: ModFunction | None,
    right: object,
) -> None:
    keys = obj.keys()
    if selector.position < 0 or selector.position >= len(keys):
        raise IndexOutOfRange(f"assign obj-depth: index {selector.position} out of range")
    key = keys[selector.position]
    value = obj.at(key)

    kind = kind_of(value)
    if kind is ValueKind.TABLE:
        raise UnsupportedDepth("assign obj-depth: tables are not supported")
    if kind is ValueKind.OBJECT:
        update_object(session, value, selector.rest, mod, right)
    elif kind is ValueKind.LIST:
        update_list(session, value, selector.rest, mod, right)
    elif kind in (ValueKind.UNIFORM_ARRAY, ValueKind.MIXED_ARRAY):
        value = update_array(session, value, selector.rest, mod, right)
    else:
        raise UnsupportedDepth(f"assign obj-depth: unsupported type: {kind.value}")
    obj.set(key, value)


def update_table(session: Session, table: Table, selector: Selector, mod: ModFunction | None, right: object) -> None:
    """Update selected rows of selected columns of ``table``.

    ``right`` may be an array of shape (rows, cols), a scalar broadcast to
    every selected cell, or an object/table keyed like the selected columns.
    """
    _expect(selector, TableCell, "table")
    rows = list(selector.rows)
    cols = list(selector.cols)

    all_keys = table.keys()
    keys: list[object] = []
    for col in cols:
        if col < 0 or col >= len(all_keys):
            raise IndexOutOfRange(f"table-update: col idx {col} out of range")
        keys.append(all_keys[col])
    for row in rows:
        if row < 0 or row >= table.rows:
            raise IndexOutOfRange(f"table-update: row idx {row} out of range")

    if is_array(right):
        source = _table_from_array(table, keys, rows, right)
    elif isinstance(right, Dict):
        source = right
    else:
        source = Object(keys, {key: right for key in keys})

    if source.keys() != keys:
        raise KeyMismatch("table-update: keys on the right do not match")

    for key in keys:
        if isinstance(source, Table):
            subcol = source.at(key)
            if subcol.shape != (len(rows),):
                raise NonConformant(f"table-update: right table has {subcol.size} rows instead of {len(rows)}")
            subcol = subcol.copy()
        else:
            value = source.at(key)
            if kind_of(value) is not ValueKind.SCALAR:
                raise TypeMismatch("table-update: dict contains an array, should be scalar")
            subcol = unify_array(MixedArray((len(rows),), [copy_value(value) for _ in rows]))
        try:
            column = _merge_column(table.at(key), rows, subcol, mod)
        except APLRuntimeError as err:
            raise with_context(err, f"table-update column {key!r}") from err
        table.set(key, column)


def _table_from_array(table: Table, keys: list[object], rows: list[int], right: UniformArray | MixedArray) -> Table:
    shape = right.shape
    if len(shape) == 1 and right.size == len(rows):
        shape = (shape[0], 1)
        right = right.reshape(shape)
    if len(shape) != 2:
        raise NonConformant("table-update: array on the right must have rank 2")
    if shape != (len(rows), len(keys)):
        raise NonConformant(f"table-update: array on the right has shape {shape}, expected ({len(rows)}, {len(keys)})")

    columns: dict[object, object] = {}
    for k, key in enumerate(keys):
        element_type = table.at(key).element_type
        values = []
        for i in range(len(rows)):
            try:
                values.append(convert_element(right.at(i * shape[1] + k), element_type))
            except APLRuntimeError as err:
                raise with_context(err, f"table-update column {key!r}") from err
        columns[key] = UniformArray.from_values(values, element_type=element_type)
    return Table(keys, columns, len(rows))


def _merge_column(
    column: UniformArray,
    rows: list[int],
    new: UniformArray | MixedArray,
    mod: ModFunction | None,
) -> UniformArray:
    if mod is not None:
        old = column.take(rows)
        result = mod(old, new)
        if not is_array(result):
            raise TypeMismatch("mod does not return an array")
        if len(result.shape) != 1:
            raise NonConformant("mod does not return a vector")
        if result.shape[0] != len(rows):
            raise NonConformant(f"mod returns vector of {result.shape[0]} elements instead of {len(rows)}")
        new, ok = unify(result, strict=True)
        if not ok:
            raise TypeMismatch("modified vector cannot be unified")

    if isinstance(new, UniformArray) and new.element_type is column.element_type:
        for i, row in enumerate(rows):
            column.set(row, new.at(i))
        return column

    values = column.elements()
    for i, row in enumerate(rows):
        values[row] = copy_value(new.at(i))
    merged, ok = unify(MixedArray(column.shape, values), strict=False)
    if not ok:
        raise TypeMismatch("cannot unify column")
    logger.debug("rebuilt table column as %s", merged.element_type.value)
    return merged


def assign_derived(session: Session, target: object, right: object, left: object = None) -> object:
    """Derived function of the ``←`` operator; returns the right argument."""
    if not isinstance(target, Assignment):
        raise TypeMismatch(f"cannot assign to {type(target).__name__}")
    if left is not None:
        raise APLRuntimeError("assign cannot be called dyadically")

    if target.identifiers is not None:
        if target.indexes is not None:
            raise APLRuntimeError("vector and indexed assignment cannot exist simultaneously")
        return assign_vector(session, target.identifiers, right, target.modifier)

    if target.identifier is None:
        raise TypeMismatch("assignment target has no name")
    assign_scalar(session, target.identifier, target.indexes, target.modifier, right)
    return right


def register(registry: Registry) -> None:
    registry.register_operator("←", assign_derived)
    registry.register_doc("←", "assign, variable specification\n")
