"""Program loader: turns PPL source text into a line-indexed instruction list.

Each physical line is one instruction. Blank lines and full-line `#`
comments load as no-ops so that every line keeps its number as a jump
target. All validation (mnemonic, arity, identifier shape, integer
literals) happens here, before anything executes; the first problem found
raises `ParseError` with the offending line and column.
"""

import logging
import re
from pathlib import Path
from typing import Iterator, List, Union

from .errors import ParseError
from .instructions import IDENT, INT64, OPCODES, TARGET, Instruction, Nop, to_source
from .values import INT64_MAX, INT64_MIN

logger = logging.getLogger("ppl.loader")
logger.addHandler(logging.NullHandler())

_TOKEN_RE = re.compile(r"\S+")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*", re.ASCII)
_INT_RE = re.compile(r"[+-]?[0-9]+", re.ASCII)


class Program:
    """A loaded program. Lines are addressed 1-based, like jump targets."""

    def __init__(self, instructions: List[Instruction], source_lines: List[str]):
        self.instructions = instructions
        self.source_lines = source_lines

    def __len__(self) -> int:
        return len(self.instructions)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def at(self, line: int) -> Instruction:
        return self.instructions[line - 1]

    def line_text(self, line: int) -> str:
        return self.source_lines[line - 1]

    def dump(self) -> str:
        """Canonical source form, one instruction per line."""
        return "\n".join(to_source(i) for i in self.instructions)


def _hint(cls) -> str:
    args = " ".join(f"<{kind}>" for kind in cls.signature)
    return f"Write: {cls.mnemonic} {args}".rstrip()


def _parse_argument(kind: str, tok: "re.Match", line: int, raw: str) -> Union[str, int]:
    text = tok.group(0)
    column = tok.start() + 1
    if kind == IDENT:
        if not _IDENT_RE.fullmatch(text):
            raise ParseError(f"Invalid identifier: {text}", line=line, column=column, line_text=raw,
                             hint="Identifiers start with a letter or '_' and contain letters, digits or '_'.")
        return text
    if not _INT_RE.fullmatch(text):
        raise ParseError(f"Expected {kind}, got: {text}", line=line, column=column, line_text=raw)
    # a 64-bit value has at most 19 significant digits
    if len(text.lstrip("+-").lstrip("0")) > 19:
        raise ParseError(f"Integer constant out of 64-bit range: {text}", line=line, column=column, line_text=raw)
    value = int(text)
    if not INT64_MIN <= value <= INT64_MAX:
        raise ParseError(f"Integer constant out of 64-bit range: {text}", line=line, column=column, line_text=raw)
    if kind == TARGET and value <= 0:
        raise ParseError(f"IF target must be a positive line number, got: {text}",
                         line=line, column=column, line_text=raw)
    return value


def parse_line(raw: str, line: int) -> Instruction:
    """Parse one physical source line into an instruction."""
    tokens = list(_TOKEN_RE.finditer(raw))
    if not tokens or tokens[0].group(0).startswith("#"):
        return Nop()
    op = tokens[0].group(0)
    cls = OPCODES.get(op)
    if cls is None:
        raise ParseError(f"Unknown operation: {op}", line=line, column=tokens[0].start() + 1, line_text=raw,
                         hint=f"Known operations: {', '.join(sorted(OPCODES))}")
    args = tokens[1:]
    if len(args) != len(cls.signature):
        expected = len(cls.signature)
        noun = "argument" if expected == 1 else "arguments"
        column = args[expected].start() + 1 if len(args) > expected else len(raw.rstrip()) + 1
        raise ParseError(f"{op} requires {expected} {noun}, got {len(args)}",
                         line=line, column=column, line_text=raw, hint=_hint(cls))
    values = [_parse_argument(kind, tok, line, raw) for kind, tok in zip(cls.signature, args)]
    return cls(*values)


def _split_lines(code: str) -> List[str]:
    """Split on newlines only, dropping a trailing carriage return per line.

    Form feeds and Unicode line separators stay inside their line, so line
    numbers match what a jump target refers to.
    """
    if not code:
        return []
    lines = code.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [raw[:-1] if raw.endswith("\r") else raw for raw in lines]


def load_program(code: str) -> Program:
    """Parse source text into a `Program`, raising `ParseError` on the first bad line."""
    source_lines = _split_lines(code)
    instructions = [parse_line(raw, i) for i, raw in enumerate(source_lines, start=1)]
    logger.debug("loaded %d lines", len(instructions))
    return Program(instructions, source_lines)


def load_file(path: Union[str, Path]) -> Program:
    """Read and parse a program file. `OSError` propagates if it cannot be read."""
    text = Path(path).read_bytes().decode("utf-8")
    return load_program(text)
