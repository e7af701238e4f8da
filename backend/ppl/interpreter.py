"""PPL execution engine.

`Interpreter.execute` is the fetch-execute loop: it walks a loaded
`Program` with a 1-based program counter, dispatches each instruction
against a single `Environment` and stops on HLT, on falling off the end, or
on the first instruction error. `Interpreter.run` wraps loading and
execution and returns the plain result dict shared by the CLI, the HTTP API
and the subprocess worker:

    {"output": str, "bindings": [{"name", "value"}], "warnings": [str],
     "steps": int, "errors": None | {"code", "message", "line", "column", ...}}

Runs are unbounded by default. `max_steps`, `max_time_s` and
`max_output_chars` impose limits only when set, either on the instance or
per call through `settings`.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from . import subprocess_runner
from .environment import Environment
from .errors import (
    OutputLimitExceeded,
    ParseError,
    PPLRuntimeError,
    StepLimitExceeded,
    TimeLimitExceeded,
)
from .instructions import HALT
from .instructions import execute as execute_instruction
from .loader import Program, load_program
from .values import Value, render

logger = logging.getLogger("ppl.interpreter")
logger.addHandler(logging.NullHandler())


def format_bindings(snapshot: List[Tuple[str, Value]]) -> List[Dict[str, str]]:
    return [{"name": name, "value": render(value)} for name, value in snapshot]


def format_output(bindings: List[Dict[str, str]]) -> str:
    """Console form of a snapshot: one `name = value` line per binding."""
    return "".join(f"{b['name']} = {b['value']}\n" for b in bindings)


class Interpreter:
    """Top-level PPL interpreter.

    Tunable attributes (defaults are set in __init__, None means unlimited):
    - max_steps: instructions executed before the run is stopped
    - max_time_s: wall-clock seconds before the run is stopped
    - max_output_chars: size cap on the rendered final snapshot

    After each run `steps` holds the number of instructions executed and
    `halted` tells whether the program stopped on an explicit HLT.
    """

    def __init__(self):
        self.max_steps: Optional[int] = None
        self.max_time_s: Optional[float] = None
        self.max_output_chars: Optional[int] = None
        self.steps = 0
        self.halted = False

    # --- Engine -------------------------------------------------------
    def execute(self, program: Program, env: Optional[Environment] = None) -> List[Tuple[str, Value]]:
        """Run `program` to completion and return the sorted final bindings.

        Args:
            program: a loaded program (see `loader.load_program`).
            env: environment to run against; a fresh one when omitted. It
                is mutated in place and is left as-is if the run fails.

        Raises:
            PPLRuntimeError: the first instruction error, with `line` set to
                the line that raised it. Also raised for configured limits.
        """
        if env is None:
            env = Environment()
        line_count = len(program)
        pc = 1
        self.steps = 0
        self.halted = False
        deadline = time.monotonic() + self.max_time_s if self.max_time_s is not None else None
        logger.debug("run start: %d lines", line_count)
        while pc <= line_count:
            if self.max_steps is not None and self.steps >= self.max_steps:
                raise StepLimitExceeded(f"Step limit exceeded ({self.max_steps} steps)").at(pc, program.line_text(pc))
            if deadline is not None and time.monotonic() > deadline:
                raise TimeLimitExceeded("Time limit exceeded").at(pc, program.line_text(pc))
            self.steps += 1
            try:
                next_line = execute_instruction(program.at(pc), env, pc, line_count)
            except PPLRuntimeError as e:
                logger.debug("runtime error at line %d after %d steps: %s", pc, self.steps, e.message)
                raise e.at(pc, program.line_text(pc))
            if next_line is HALT:
                self.halted = True
                logger.debug("halted at line %d after %d steps", pc, self.steps)
                return env.snapshot()
            pc = next_line
        logger.debug("fell off end after %d steps", self.steps)
        return env.snapshot()

    # --- Result helpers -------------------------------------------------
    def _error_result(self, err: Dict[str, Any], warnings: Optional[List[str]] = None) -> Dict[str, Any]:
        return {
            "output": "",
            "bindings": [],
            "warnings": warnings or [],
            "steps": self.steps,
            "errors": err,
        }

    def _finalize_run(self, snapshot: List[Tuple[str, Value]], warnings: List[str]) -> Dict[str, Any]:
        """Render the final snapshot and enforce the output cap."""
        bindings = format_bindings(snapshot)
        output = format_output(bindings)
        if self.max_output_chars is not None and len(output) > self.max_output_chars:
            err = OutputLimitExceeded(f"Output length limit reached ({self.max_output_chars} chars)", line=0)
            return self._error_result(err.to_dict(), warnings)
        return {
            "output": output,
            "bindings": bindings,
            "warnings": warnings,
            "steps": self.steps,
            "errors": None,
        }

    def _apply_settings(self, settings: Dict[str, Any]) -> None:
        for key in ("max_steps", "max_time_s", "max_output_chars"):
            if settings.get(key) is not None:
                setattr(self, key, settings[key])

    def _maybe_run_in_subprocess(self, code: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        # Run the program in a sandboxed worker process. Limits travel with
        # the settings; the worker runs them in-process.
        child_settings = {k: v for k, v in settings.items() if k not in ("use_subprocess", "timeout_s")}
        for key in ("max_steps", "max_time_s", "max_output_chars"):
            if key not in child_settings and getattr(self, key) is not None:
                child_settings[key] = getattr(self, key)
        try:
            rc, out, err = subprocess_runner.run_code_in_subprocess(
                code, child_settings, timeout_s=float(settings.get("timeout_s", 2))
            )
        except Exception as e:
            return self._error_result({"code": "SUBPROCESS_ERROR", "message": str(e), "line": 0, "column": 1})
        if rc == -1:
            return self._error_result({"code": "TIMEOUT", "message": "Subprocess time limit exceeded", "line": 0, "column": 1})
        if rc != 0:
            return self._error_result({"code": "SUBPROCESS_FAILED", "message": err, "line": 0, "column": 1})
        try:
            result = json.loads(out)
        except ValueError:
            return self._error_result({"code": "SUBPROCESS_FAILED", "message": f"Malformed worker output: {out!r}", "line": 0, "column": 1})
        self.steps = result.get("steps", 0)
        return result

    def run(self, code: str, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Load and execute PPL source text, returning the result dict.

        Load-time problems come back as a SYNTAX_ERROR and nothing runs.
        Run-time errors come back with the originating line and no
        bindings. `settings` may override the instance limits and may set
        `use_subprocess` (with optional `timeout_s`) to run in a worker.
        """
        settings_local: Dict[str, Any] = settings or {}
        self.steps = 0
        if settings_local.get("use_subprocess"):
            return self._maybe_run_in_subprocess(code, settings_local)
        self._apply_settings(settings_local)

        try:
            program = load_program(code)
        except ParseError as e:
            return self._error_result(e.to_dict())

        warnings: List[str] = []
        try:
            snapshot = self.execute(program)
        except PPLRuntimeError as e:
            return self._error_result(e.to_dict(), warnings)
        if not self.halted:
            warnings.append("Program reached its last line without HLT")
        return self._finalize_run(snapshot, warnings)
