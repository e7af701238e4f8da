"""Variable environment for a single PPL run."""

from typing import Callable, Dict, Iterator, List, Tuple

from .errors import DuplicateIdentifier, TypeMismatch, UndefinedIdentifier
from .values import IntValue, ListValue, Value, type_name, wrap_int64


class Environment:
    """Mapping from identifier to the value it exclusively owns.

    Bindings are created by declarations (or by instructions that create on
    first write) and live until the run ends. Typed accessors raise
    `TypeMismatch` when a binding holds the other kind of value.
    """

    def __init__(self):
        self._table: Dict[str, Value] = {}

    def exists(self, name: str) -> bool:
        return name in self._table

    def declare(self, name: str, value: Value) -> None:
        if name in self._table:
            raise DuplicateIdentifier(f"Identifier already declared: {name}")
        self._table[name] = value

    def read(self, name: str) -> Value:
        try:
            return self._table[name]
        except KeyError:
            raise UndefinedIdentifier(f"Undefined identifier: {name}") from None

    def read_integer(self, name: str) -> IntValue:
        value = self.read(name)
        if not isinstance(value, IntValue):
            raise TypeMismatch(f"Expected integer, {name} is a {type_name(value)}")
        return value

    def read_list(self, name: str) -> ListValue:
        value = self.read(name)
        if not isinstance(value, ListValue):
            raise TypeMismatch(f"Expected list, {name} is a {type_name(value)}")
        return value

    def write(self, name: str, value: Value) -> None:
        """Bind `name` to `value`, replacing any previous binding and type."""
        self._table[name] = value

    def mutate_integer(self, name: str, fn: Callable[[int], int]) -> None:
        """Replace the integer stored under `name` with `fn(old)` in place."""
        target = self.read_integer(name)
        target.value = wrap_int64(fn(target.value))

    def snapshot(self) -> List[Tuple[str, Value]]:
        """Return all bindings sorted by identifier."""
        return sorted(self._table.items(), key=lambda item: item[0])

    def __contains__(self, name: object) -> bool:
        return name in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._table))
