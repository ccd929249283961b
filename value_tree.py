"""
Value Tree Module
Immutable JSON-like tree used where a format's native structure must be
kept verbatim apart from a few overwritten fields.

Every access site states what it expects (``get_str``, ``get_int``,
``get_array`` ...) and a mismatch raises ValueTreeError with the path of
the offending node, e.g. ``$.ppsf.project.tempo.const``.
"""

import json
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Sequence, Tuple


class Kind(Enum):
    OBJECT = 'object'
    ARRAY = 'array'
    STRING = 'string'
    NUMBER = 'number'
    BOOL = 'bool'
    NULL = 'null'


class ValueTreeError(Exception):
    """A node is missing or has an unexpected kind"""

    def __init__(self, path: str, expected: str, actual: str):
        super().__init__(f"{path}: expected {expected}, found {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual


_MISSING = object()


class Node:
    """
    A single tree node.

    Objects keep their key order and are exposed read-only, arrays are
    tuples. Nodes are never modified after construction: ``with_fields``
    and friends return new nodes sharing the untouched children.
    """

    __slots__ = ('kind', '_value', 'path')

    def __init__(self, kind: Kind, value: Any, path: str = '$'):
        self.kind = kind
        self._value = value
        self.path = path

    def __repr__(self) -> str:
        return f"Node({self.kind.value}, {self.path})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.to_python() == other.to_python()

    __hash__ = None

    def __bool__(self) -> bool:
        # A node is always truthy, even an empty array or object
        return True

    # Kind checks

    @property
    def is_null(self) -> bool:
        return self.kind == Kind.NULL

    def _expect(self, kind: Kind) -> Any:
        if self.kind != kind:
            raise ValueTreeError(self.path, kind.value, self.kind.value)
        return self._value

    # Scalar views

    def as_str(self) -> str:
        return self._expect(Kind.STRING)

    def as_bool(self) -> bool:
        return self._expect(Kind.BOOL)

    def as_float(self) -> float:
        return float(self._expect(Kind.NUMBER))

    def as_int(self) -> int:
        value = self._expect(Kind.NUMBER)
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueTreeError(self.path, 'integer', repr(value))
            return int(value)
        return value

    # Container views

    def fields(self) -> Mapping[str, 'Node']:
        return self._expect(Kind.OBJECT)

    def items(self) -> Tuple['Node', ...]:
        return self._expect(Kind.ARRAY)

    def __iter__(self) -> Iterator['Node']:
        return iter(self.items())

    def __len__(self) -> int:
        return len(self.items())

    def has(self, name: str) -> bool:
        return name in self.fields()

    def field(self, name: str, default: Any = _MISSING) -> 'Node':
        value = self.fields().get(name)
        if value is None:
            if default is _MISSING:
                raise ValueTreeError(f"{self.path}.{name}", 'field', 'nothing')
            return default
        return value

    def item(self, index: int, default: Any = _MISSING) -> 'Node':
        values = self.items()
        if 0 <= index < len(values):
            return values[index]
        if default is _MISSING:
            raise ValueTreeError(f"{self.path}[{index}]", 'item', 'nothing')
        return default

    # Typed field access: required

    def get_object(self, name: str) -> 'Node':
        node = self.field(name)
        node._expect(Kind.OBJECT)
        return node

    def get_array(self, name: str) -> Tuple['Node', ...]:
        return self.field(name).items()

    def get_str(self, name: str) -> str:
        return self.field(name).as_str()

    def get_int(self, name: str) -> int:
        return self.field(name).as_int()

    def get_float(self, name: str) -> float:
        return self.field(name).as_float()

    def get_bool(self, name: str) -> bool:
        return self.field(name).as_bool()

    # Typed field access: optional (absent or null gives the default)

    def _optional(self, name: str) -> Optional['Node']:
        node = self.fields().get(name)
        if node is None or node.is_null:
            return None
        return node

    def opt_object(self, name: str) -> Optional['Node']:
        node = self._optional(name)
        if node is not None:
            node._expect(Kind.OBJECT)
        return node

    def opt_array(self, name: str, default: Sequence['Node'] = ()) -> Tuple['Node', ...]:
        node = self._optional(name)
        return tuple(default) if node is None else node.items()

    def opt_str(self, name: str, default: Optional[str] = None) -> Optional[str]:
        node = self._optional(name)
        return default if node is None else node.as_str()

    def opt_int(self, name: str, default: Optional[int] = None) -> Optional[int]:
        node = self._optional(name)
        return default if node is None else node.as_int()

    def opt_float(self, name: str, default: Optional[float] = None) -> Optional[float]:
        node = self._optional(name)
        return default if node is None else node.as_float()

    def opt_bool(self, name: str, default: Optional[bool] = None) -> Optional[bool]:
        node = self._optional(name)
        return default if node is None else node.as_bool()

    # Structural copies

    def with_fields(self, **overrides: Any) -> 'Node':
        """Copy of an object node with some fields replaced or added"""
        return self.with_field_map(overrides)

    def with_field_map(self, overrides: Mapping[str, Any]) -> 'Node':
        # Field names like "track-editor" are not valid keyword arguments
        merged = dict(self.fields())
        for name, value in overrides.items():
            merged[name] = _adopt(value, f"{self.path}.{name}")
        return _object(merged, self.path)

    def to_python(self) -> Any:
        if self.kind == Kind.OBJECT:
            return {k: v.to_python() for k, v in self._value.items()}
        if self.kind == Kind.ARRAY:
            return [v.to_python() for v in self._value]
        return self._value


def _object(values: Mapping[str, Node], path: str) -> Node:
    rebased = {k: _rebase(v, f"{path}.{k}") for k, v in values.items()}
    return Node(Kind.OBJECT, MappingProxyType(rebased), path)


def _rebase(node: Node, path: str) -> Node:
    if node.path == path:
        return node
    return from_python(node.to_python(), path)


def _adopt(value: Any, path: str) -> Node:
    if isinstance(value, Node):
        return _rebase(value, path)
    return from_python(value, path)


def from_python(value: Any, path: str = '$') -> Node:
    """Build a tree from decoded JSON (dict/list/str/int/float/bool/None)"""
    # bool before int: bool is an int subclass
    if value is None:
        return Node(Kind.NULL, None, path)
    if isinstance(value, bool):
        return Node(Kind.BOOL, value, path)
    if isinstance(value, (int, float)):
        return Node(Kind.NUMBER, value, path)
    if isinstance(value, str):
        return Node(Kind.STRING, value, path)
    if isinstance(value, Mapping):
        children = {str(k): from_python(v, f"{path}.{k}") for k, v in value.items()}
        return Node(Kind.OBJECT, MappingProxyType(children), path)
    if isinstance(value, (list, tuple)):
        children = tuple(from_python(v, f"{path}[{i}]") for i, v in enumerate(value))
        return Node(Kind.ARRAY, children, path)
    if isinstance(value, Node):
        return _rebase(value, path)
    raise TypeError(f"Cannot store {type(value).__name__} in a value tree")


def array(values: Sequence[Any], path: str = '$') -> Node:
    return from_python([v.to_python() if isinstance(v, Node) else v for v in values], path)


def empty_object(path: str = '$') -> Node:
    return Node(Kind.OBJECT, MappingProxyType({}), path)


def overlay(base: Node, patch: Node) -> Node:
    """
    Recursively merge two trees.

    Objects merge key by key with the patch winning; any other
    combination returns the patch.
    """
    if base.kind != Kind.OBJECT or patch.kind != Kind.OBJECT:
        return _rebase(patch, base.path)
    merged = dict(base.fields())
    for name, value in patch.fields().items():
        if name in merged:
            merged[name] = overlay(merged[name], value)
        else:
            merged[name] = value
    return _object(merged, base.path)


def loads(text: str) -> Node:
    return from_python(json.loads(text))


def dumps(node: Node, indent: Optional[int] = None) -> str:
    return json.dumps(node.to_python(), ensure_ascii=False, indent=indent)
