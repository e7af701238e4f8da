"""Error types raised while loading and running PPL programs.

Every error carries a stable upper-case `code` (surfaced to API clients and
the CLI) and optional position details. Instructions raise these without a
line number; the interpreter attaches the originating line before the error
leaves the engine.
"""

from typing import Any, Dict, Optional


class PPLError(Exception):
    """Base class for all PPL load-time and run-time errors.

    Attributes:
        line: 1-based source line the error belongs to, if known
        column: 1-based column within that line
        line_text: the original source line, for diagnostics
        hint: optional short suggestion for the user
    """

    code = "PPL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        column: int = 1,
        line_text: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.line_text = line_text
        self.hint = hint

    def at(self, line: int, line_text: Optional[str] = None) -> "PPLError":
        """Attach a source position unless one is already present."""
        if self.line is None:
            self.line = line
        if line_text is not None and self.line_text is None:
            self.line_text = line_text
        return self

    def to_dict(self) -> Dict[str, Any]:
        err: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "line": self.line if self.line is not None else 0,
            "column": self.column,
        }
        if self.line_text is not None:
            err["context"] = {"line_text": self.line_text}
        if self.hint:
            err["hint"] = self.hint
        return err

    def __str__(self) -> str:
        if self.line:
            return f"Line {self.line}: {self.message}"
        return self.message


class ParseError(PPLError):
    """Raised by the loader for malformed lines, unknown mnemonics, bad arity
    or malformed literals. Nothing executes once this is raised."""

    code = "SYNTAX_ERROR"


class PPLRuntimeError(PPLError):
    """Base class for errors that abort a running program."""

    code = "RUNTIME_ERROR"


class DuplicateIdentifier(PPLRuntimeError):
    code = "DUPLICATE_IDENTIFIER"


class UndefinedIdentifier(PPLRuntimeError):
    code = "UNDEFINED_IDENTIFIER"


class TypeMismatch(PPLRuntimeError):
    code = "TYPE_MISMATCH"


class EmptyList(PPLRuntimeError):
    code = "EMPTY_LIST"


class InvalidJumpTarget(PPLRuntimeError):
    code = "INVALID_JUMP_TARGET"


class StepLimitExceeded(PPLRuntimeError):
    code = "STEP_LIMIT"


class TimeLimitExceeded(PPLRuntimeError):
    code = "TIMEOUT"


class OutputLimitExceeded(PPLRuntimeError):
    code = "OUTPUT_LIMIT"
