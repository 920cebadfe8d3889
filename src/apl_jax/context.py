"""Interpreter context: variable scopes, index origin and registries."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Final

from .errors import APLRuntimeError
from .values import copy_value, validate_value

logger = logging.getLogger(__name__)

_DEFAULT_INDEX_ORIGIN: Final[int] = int(os.environ.get("APL_JAX_INDEX_ORIGIN", "1"))


def _check_origin(origin: int) -> int:
    if origin not in (0, 1):
        raise ValueError(f"index origin must be 0 or 1, not {origin!r}")
    return origin


class Scope(MutableMapping[str, object]):
    def __init__(self, data: MutableMapping[str, object] | None = None, parent: "Scope | None" = None) -> None:
        self.data: dict[str, object] = {}
        self.parent = parent
        if data is not None:
            for key, value in data.items():
                validate_value(value, where=f"env[{key!r}]")
                self.data[key] = copy_value(value)

    def __getitem__(self, key: str) -> object:
        if key in self.data:
            return self.data[key]
        if self.parent is not None:
            return self.parent[key]
        raise KeyError(key)

    def __setitem__(self, key: str, value: object) -> None:
        validate_value(value, where=f"name {key!r}")
        self.data[key] = value

    def __delitem__(self, key: str) -> None:
        del self.data[key]

    def __iter__(self):
        seen: set[str] = set()
        current: Scope | None = self
        while current is not None:
            for name in current.data:
                if name not in seen:
                    seen.add(name)
                    yield name
            current = current.parent

    def __len__(self) -> int:
        return sum(1 for _ in self.__iter__())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        if key in self.data:
            return True
        if self.parent is not None:
            return key in self.parent
        return False

    def find_scope(self, key: str) -> "Scope | None":
        if key in self.data:
            return self
        if self.parent is not None:
            return self.parent.find_scope(key)
        return None


PrimitiveFn = Callable[["Session", object, object], object]


@dataclass(frozen=True)
class FunctionHandle:
    """Implementation of a primitive for the argument combinations it accepts.

    ``accepts`` receives ``(left, right)``; ``left`` is None for monadic calls.
    """

    fn: PrimitiveFn
    accepts: Callable[[object, object], bool] | None = None
    name: str = ""

    def applies(self, left: object, right: object) -> bool:
        return self.accepts is None or bool(self.accepts(left, right))


class Registry:
    """Symbol tables of primitive handles, operators and documentation."""

    def __init__(self) -> None:
        self.primitives: dict[str, list[FunctionHandle]] = {}
        self.operators: dict[str, Callable[..., object]] = {}
        self.symbols: dict[str, str] = {}
        self.doc: dict[str, str] = {}

    def register_primitive(self, symbol: str, handle: FunctionHandle) -> None:
        self.primitives.setdefault(symbol, []).append(handle)
        self._register_symbol(symbol)

    def register_operator(self, symbol: str, operator: Callable[..., object]) -> None:
        self.operators[symbol] = operator
        self._register_symbol(symbol)

    def register_doc(self, key: str, text: str) -> None:
        self.doc[key] = self.doc.get(key, "") + text

    def _register_symbol(self, symbol: str) -> None:
        if len(symbol) == 1:
            self.symbols[symbol] = symbol

    def handles(self, symbol: str) -> list[FunctionHandle]:
        """Handles for ``symbol``, last registered first."""
        return list(reversed(self.primitives.get(symbol, [])))

    def operator(self, symbol: str) -> Callable[..., object]:
        try:
            return self.operators[symbol]
        except KeyError:
            raise APLRuntimeError(f"unknown operator {symbol!r}") from None

    def call(self, session: "Session", symbol: str, left: object, right: object) -> object:
        for handle in self.handles(symbol):
            if handle.applies(left, right):
                logger.debug("dispatching %s to %s", symbol, handle.name or handle.fn.__name__)
                return handle.fn(session, left, right)
        valence = "monadic" if left is None else "dyadic"
        raise APLRuntimeError(f"no {valence} implementation registered for {symbol!r}")


class Session:
    """Per-session interpreter state.

    Holds the lexical scope chain of variable bindings, the index origin used
    to translate user-visible indices, and the registry of primitives and
    operators. Sessions share no bindings.
    """

    def __init__(
        self,
        bindings: MutableMapping[str, object] | None = None,
        *,
        origin: int | None = None,
        registry: Registry | None = None,
    ) -> None:
        self.scope = Scope(bindings)
        self.origin = _check_origin(_DEFAULT_INDEX_ORIGIN if origin is None else origin)
        self.registry = Registry() if registry is None else registry

    def __getitem__(self, name: str) -> object:
        return self.scope[name]

    def __contains__(self, name: object) -> bool:
        return name in self.scope

    def lookup(self, name: str) -> object | None:
        return self.lookup_env(name)[0]

    def lookup_env(self, name: str) -> tuple[object | None, Scope | None]:
        scope = self.scope.find_scope(name)
        if scope is None:
            return None, None
        return scope.data[name], scope

    def assign(self, name: str, value: object) -> None:
        self.scope[name] = value

    def assign_env(self, name: str, value: object, scope: Scope) -> None:
        scope[name] = value

    @contextmanager
    def child_scope(self) -> Iterator[Scope]:
        parent = self.scope
        self.scope = Scope(parent=parent)
        try:
            yield self.scope
        finally:
            self.scope = parent

    def call(self, symbol: str, left: object, right: object) -> object:
        return self.registry.call(self, symbol, left, right)

    def run(self, program: Callable[["Session"], object]) -> object:
        return program(self)
