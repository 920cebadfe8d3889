"""Structured error types for the array evaluation core."""

from __future__ import annotations


class APLError(Exception):
    """Base class for structured apl-jax errors."""


class APLRuntimeError(APLError):
    """Generic runtime failure during evaluation."""


class APLShapeError(APLRuntimeError):
    """Runtime shape/rank/axis compatibility failure."""


class IndexOutOfRange(APLShapeError, IndexError):
    pass


class AxisOutOfRange(APLShapeError):
    pass


class NonConformant(APLShapeError):
    """Shapes do not match after collapsing single-element axes."""


class InvalidAxis(APLShapeError):
    """Axis argument is not a scalar or length-1 vector."""


class APLTypeError(APLRuntimeError, TypeError):
    """Runtime type/value-kind compatibility failure."""


class TypeMismatch(APLTypeError):
    pass


class ConversionError(TypeMismatch):
    pass


class NotSettable(APLTypeError):
    pass


class KeyMismatch(APLTypeError):
    pass


class UndefinedVariable(APLRuntimeError, NameError):
    pass


class APLUnsupportedError(APLRuntimeError):
    """Feature exists in the language but is not supported in this execution path."""


class UnsupportedDepth(APLUnsupportedError):
    pass


def with_context(err: APLRuntimeError, context: str) -> APLRuntimeError:
    """Return an error of the same kind as ``err`` with ``context`` prefixed.

    Callers raise the result ``from err`` so the original stays reachable.
    """
    return type(err)(f"{context}: {err}")
