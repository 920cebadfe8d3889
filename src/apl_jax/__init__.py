"""apl-jax public API."""

from .errors import (
    APLError,
    APLRuntimeError,
    APLShapeError,
    APLTypeError,
    APLUnsupportedError,
    AxisOutOfRange,
    ConversionError,
    IndexOutOfRange,
    InvalidAxis,
    KeyMismatch,
    NonConformant,
    NotSettable,
    TypeMismatch,
    UndefinedVariable,
    UnsupportedDepth,
)
from .values import (
    AxisValue,
    ElementType,
    ListValue,
    MixedArray,
    Object,
    Table,
    UniformArray,
    ValueKind,
    array,
    copy_value,
    int_array,
    kind_of,
    unify,
    upgrade,
    value_info,
    values_match,
)
from .indexing import DepthPath, Flat, IndexDescriptor, KeyPositions, ObjectDepth, TableCell, table_descriptor
from .context import FunctionHandle, Registry, Session
from .assign import Assignment, assign_derived, assign_scalar, assign_vector
from .assign import register as _register_assign
from .primitives import reverse, rotate
from .primitives import register as _register_primitives


def new_session(*, origin: int | None = None) -> Session:
    """Session with the axis primitives and the assign operator registered."""
    registry = Registry()
    _register_primitives(registry)
    _register_assign(registry)
    return Session(origin=origin, registry=registry)


__all__ = [
    "new_session",
    "Session",
    "Registry",
    "FunctionHandle",
    "Assignment",
    "assign_vector",
    "assign_scalar",
    "assign_derived",
    "reverse",
    "rotate",
    "UniformArray",
    "MixedArray",
    "ListValue",
    "Object",
    "Table",
    "AxisValue",
    "ElementType",
    "ValueKind",
    "array",
    "int_array",
    "copy_value",
    "kind_of",
    "unify",
    "upgrade",
    "value_info",
    "values_match",
    "IndexDescriptor",
    "Flat",
    "TableCell",
    "KeyPositions",
    "ObjectDepth",
    "DepthPath",
    "table_descriptor",
    "APLError",
    "APLRuntimeError",
    "APLShapeError",
    "APLTypeError",
    "APLUnsupportedError",
    "IndexOutOfRange",
    "AxisOutOfRange",
    "NonConformant",
    "InvalidAxis",
    "TypeMismatch",
    "ConversionError",
    "NotSettable",
    "KeyMismatch",
    "UndefinedVariable",
    "UnsupportedDepth",
]
