"""PPL instruction set.

Instructions are a closed set of small frozen dataclasses, one per
mnemonic. `execute` looks the executor up in a table keyed by instruction
type; the table is checked at import time to cover every variant.

An executor returns the next 1-based line number, or `HALT` (None) to stop
the program. Executors validate everything they need before touching the
environment, so a failing instruction leaves no partial effect behind.
"""

from dataclasses import dataclass, fields
from typing import Callable, ClassVar, Dict, Optional, Tuple, Type, Union

from .environment import Environment
from .errors import EmptyList, InvalidJumpTarget, TypeMismatch
from .values import (
    IntValue,
    ListValue,
    copy_after_head,
    deep_copy,
    is_falsy,
    make_empty_list,
    make_integer,
    type_name,
    wrap_int64,
)

HALT = None

# argument kinds understood by the loader
IDENT = "identifier"
INT64 = "integer"
TARGET = "line number"


@dataclass(frozen=True)
class IntegerDecl:
    mnemonic: ClassVar[str] = "INTEGER"
    signature: ClassVar[Tuple[str, ...]] = (IDENT,)
    name: str


@dataclass(frozen=True)
class ListDecl:
    mnemonic: ClassVar[str] = "LIST"
    signature: ClassVar[Tuple[str, ...]] = (IDENT,)
    name: str


@dataclass(frozen=True)
class Merge:
    mnemonic: ClassVar[str] = "MERGE"
    signature: ClassVar[Tuple[str, ...]] = (IDENT, IDENT)
    source: str
    target: str


@dataclass(frozen=True)
class Copy:
    mnemonic: ClassVar[str] = "COPY"
    signature: ClassVar[Tuple[str, ...]] = (IDENT, IDENT)
    source: str
    target: str


@dataclass(frozen=True)
class Head:
    mnemonic: ClassVar[str] = "HEAD"
    signature: ClassVar[Tuple[str, ...]] = (IDENT, IDENT)
    source: str
    target: str


@dataclass(frozen=True)
class Tail:
    mnemonic: ClassVar[str] = "TAIL"
    signature: ClassVar[Tuple[str, ...]] = (IDENT, IDENT)
    source: str
    target: str


@dataclass(frozen=True)
class Assign:
    mnemonic: ClassVar[str] = "ASSIGN"
    signature: ClassVar[Tuple[str, ...]] = (IDENT, INT64)
    name: str
    literal: int


@dataclass(frozen=True)
class Chs:
    mnemonic: ClassVar[str] = "CHS"
    signature: ClassVar[Tuple[str, ...]] = (IDENT,)
    name: str


@dataclass(frozen=True)
class Add:
    mnemonic: ClassVar[str] = "ADD"
    signature: ClassVar[Tuple[str, ...]] = (IDENT, IDENT)
    name: str
    operand: str


@dataclass(frozen=True)
class If:
    mnemonic: ClassVar[str] = "IF"
    signature: ClassVar[Tuple[str, ...]] = (IDENT, TARGET)
    name: str
    target: int


@dataclass(frozen=True)
class Hlt:
    mnemonic: ClassVar[str] = "HLT"
    signature: ClassVar[Tuple[str, ...]] = ()


@dataclass(frozen=True)
class Nop:
    """Blank or comment line. Keeps line numbers stable for jumps."""

    mnemonic: ClassVar[str] = ""
    signature: ClassVar[Tuple[str, ...]] = ()


Instruction = Union[IntegerDecl, ListDecl, Merge, Copy, Head, Tail, Assign, Chs, Add, If, Hlt, Nop]

OPCODES: Dict[str, Type] = {
    cls.mnemonic: cls
    for cls in (IntegerDecl, ListDecl, Merge, Copy, Head, Tail, Assign, Chs, Add, If, Hlt)
}


def _integer(instr: IntegerDecl, env: Environment, line: int, line_count: int) -> Optional[int]:
    env.declare(instr.name, make_integer(0))
    return line + 1


def _list(instr: ListDecl, env: Environment, line: int, line_count: int) -> Optional[int]:
    env.declare(instr.name, make_empty_list())
    return line + 1


def _merge(instr: Merge, env: Environment, line: int, line_count: int) -> Optional[int]:
    source = env.read(instr.source)
    target = env.read(instr.target)
    if not isinstance(target, ListValue):
        raise TypeMismatch(f"MERGE target is not a list: {instr.target} is a {type_name(target)}")
    # copy before prepending: MERGE l l must not make l contain itself
    target.prepend(deep_copy(source))
    return line + 1


def _copy(instr: Copy, env: Environment, line: int, line_count: int) -> Optional[int]:
    source = env.read(instr.source)
    if not isinstance(source, ListValue):
        raise TypeMismatch(f"COPY source is not a list: {instr.source} is a {type_name(source)}")
    env.write(instr.target, deep_copy(source))
    return line + 1


def _head(instr: Head, env: Environment, line: int, line_count: int) -> Optional[int]:
    source = env.read(instr.source)
    if not isinstance(source, ListValue):
        raise TypeMismatch(f"HEAD source is not a list: {instr.source} is a {type_name(source)}")
    if source.head is None:
        raise EmptyList(f"HEAD on empty list: {instr.source}")
    env.write(instr.target, deep_copy(source.head.value))
    return line + 1


def _tail(instr: Tail, env: Environment, line: int, line_count: int) -> Optional[int]:
    source = env.read(instr.source)
    if not isinstance(source, ListValue):
        raise TypeMismatch(f"TAIL source is not a list: {instr.source} is a {type_name(source)}")
    env.write(instr.target, copy_after_head(source))
    return line + 1


def _assign(instr: Assign, env: Environment, line: int, line_count: int) -> Optional[int]:
    if env.exists(instr.name):
        existing = env.read(instr.name)
        if not isinstance(existing, IntValue):
            raise TypeMismatch(f"ASSIGN to non-integer: {instr.name} is a {type_name(existing)}")
        existing.value = wrap_int64(instr.literal)
    else:
        env.declare(instr.name, make_integer(instr.literal))
    return line + 1


def _chs(instr: Chs, env: Environment, line: int, line_count: int) -> Optional[int]:
    env.mutate_integer(instr.name, lambda n: -n)
    return line + 1


def _add(instr: Add, env: Environment, line: int, line_count: int) -> Optional[int]:
    # both operands must exist before either type is checked
    left = env.read(instr.name)
    right = env.read(instr.operand)
    if not isinstance(left, IntValue) or not isinstance(right, IntValue):
        raise TypeMismatch(
            f"ADD needs two integers, got {type_name(left)} {instr.name} "
            f"and {type_name(right)} {instr.operand}"
        )
    left.value = wrap_int64(left.value + right.value)
    return line + 1


def _if(instr: If, env: Environment, line: int, line_count: int) -> Optional[int]:
    value = env.read(instr.name)
    if not is_falsy(value):
        return line + 1
    if instr.target < 1 or instr.target > line_count:
        raise InvalidJumpTarget(
            f"IF jump out of range: {instr.target} (program has {line_count} lines)"
        )
    return instr.target


def _hlt(instr: Hlt, env: Environment, line: int, line_count: int) -> Optional[int]:
    return HALT


def _nop(instr: Nop, env: Environment, line: int, line_count: int) -> Optional[int]:
    return line + 1


Executor = Callable[..., Optional[int]]

_EXECUTORS: Dict[Type, Executor] = {
    IntegerDecl: _integer,
    ListDecl: _list,
    Merge: _merge,
    Copy: _copy,
    Head: _head,
    Tail: _tail,
    Assign: _assign,
    Chs: _chs,
    Add: _add,
    If: _if,
    Hlt: _hlt,
    Nop: _nop,
}

_missing = (set(OPCODES.values()) | {Nop}) - set(_EXECUTORS)
if _missing:
    raise RuntimeError(f"no executor for {sorted(cls.__name__ for cls in _missing)}")


def execute(instr: Instruction, env: Environment, line: int, line_count: int) -> Optional[int]:
    """Run one instruction at `line` and return the next line, or HALT."""
    return _EXECUTORS[type(instr)](instr, env, line, line_count)


def to_source(instr: Instruction) -> str:
    """Render an instruction back to its canonical one-line source form."""
    if isinstance(instr, Nop):
        return ""
    args = [str(getattr(instr, f.name)) for f in fields(instr)]
    return " ".join([instr.mnemonic] + args)
