"""PPL value model: 64-bit integers and singly-linked lists.

A list owns its nodes and every node owns its element value. Values are
never shared between two live locations: anything inserted into a list or
bound to a second identifier goes through `deep_copy` first. Copying and
rendering walk lists with an explicit stack because nesting depth is
unbounded (a program can wrap a list inside itself in a loop).
"""

from typing import Any, Iterator, List, Optional, Tuple, Union

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


def wrap_int64(n: int) -> int:
    """Wrap an arbitrary Python int to signed 64-bit two's complement."""
    n &= (1 << 64) - 1
    if n > INT64_MAX:
        n -= 1 << 64
    return n


class IntValue:
    __slots__ = ("value",)

    def __init__(self, value: int = 0):
        self.value = wrap_int64(value)

    def __repr__(self) -> str:
        return f"IntValue({self.value})"


class Node:
    """One list cell. `next` is None at the end of the list."""

    __slots__ = ("value", "next")

    def __init__(self, value: "Value", next: Optional["Node"] = None):
        self.value = value
        self.next = next


class ListValue:
    __slots__ = ("head",)

    def __init__(self, head: Optional[Node] = None):
        self.head = head

    def is_empty(self) -> bool:
        return self.head is None

    def prepend(self, value: "Value") -> None:
        """Push `value` as the new head. The list takes ownership of it."""
        self.head = Node(value, self.head)

    def nodes(self) -> Iterator[Node]:
        node = self.head
        while node is not None:
            yield node
            node = node.next

    def __iter__(self) -> Iterator["Value"]:
        for node in self.nodes():
            yield node.value

    def __len__(self) -> int:
        return sum(1 for _ in self.nodes())

    def __repr__(self) -> str:
        return f"ListValue({render(self)})"


Value = Union[IntValue, ListValue]


def make_integer(n: int = 0) -> IntValue:
    return IntValue(n)


def make_empty_list() -> ListValue:
    return ListValue()


def type_name(value: Value) -> str:
    return "integer" if isinstance(value, IntValue) else "list"


def is_falsy(value: Value) -> bool:
    """Integer 0 and the empty list are falsy; everything else is truthy."""
    if isinstance(value, IntValue):
        return value.value == 0
    return value.is_empty()


def _copy_chain(node: Optional[Node], dest: ListValue) -> None:
    # copies the chain starting at `node` into `dest`, recursing into
    # nested lists through an explicit work stack
    work: List[Tuple[Optional[Node], ListValue]] = [(node, dest)]
    while work:
        src, target = work.pop()
        tail: Optional[Node] = None
        while src is not None:
            item = src.value
            if isinstance(item, IntValue):
                copied: Value = IntValue(item.value)
            else:
                copied = ListValue()
                work.append((item.head, copied))
            cell = Node(copied)
            if tail is None:
                target.head = cell
            else:
                tail.next = cell
            tail = cell
            src = src.next


def deep_copy(value: Value) -> Value:
    """Return a fully independent structural copy of `value`."""
    if isinstance(value, IntValue):
        return IntValue(value.value)
    copied = ListValue()
    _copy_chain(value.head, copied)
    return copied


def copy_after_head(value: ListValue) -> ListValue:
    """Deep copy of every node after the first; empty input gives an empty list."""
    copied = ListValue()
    if value.head is not None:
        _copy_chain(value.head.next, copied)
    return copied


def render(value: Value) -> str:
    """Render an integer as decimal and a list as `[e1, e2, ...]`."""
    if isinstance(value, IntValue):
        return str(value.value)
    out = ["["]
    # (next node to emit, whether it is the first element of its list)
    stack: List[Tuple[Optional[Node], bool]] = [(value.head, True)]
    while stack:
        node, first = stack.pop()
        if node is None:
            out.append("]")
            continue
        if not first:
            out.append(", ")
        stack.append((node.next, False))
        item = node.value
        if isinstance(item, IntValue):
            out.append(str(item.value))
        else:
            out.append("[")
            stack.append((item.head, True))
    return "".join(out)


def from_python(obj: Any) -> Value:
    """Build a value from a nested Python int/list structure."""
    if isinstance(obj, bool) or not isinstance(obj, (int, list)):
        raise TypeError(f"cannot convert {type(obj).__name__} to a PPL value")
    if isinstance(obj, int):
        return IntValue(obj)
    result = ListValue()
    for item in reversed(obj):
        result.prepend(from_python(item))
    return result


def to_python(value: Value) -> Any:
    if isinstance(value, IntValue):
        return value.value
    return [to_python(item) for item in value]
