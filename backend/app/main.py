"""FastAPI application entrypoints for running PPL programs.

Each `/run` request constructs a fresh `Interpreter`, so concurrent requests
never share an environment. Server-side caps bound every run: PPL itself
has no step limit and a program may loop forever, so the API always runs
with `max_steps`, `max_time_s` and `max_output_chars` set, clamped to the
values in `SAFE_LIMITS` whatever the client asks for.
"""

import logging
import math
import os
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI
from pydantic import BaseModel

from .. import db
from ..ppl.errors import ParseError
from ..ppl.interpreter import Interpreter
from ..ppl.loader import load_program

logger = logging.getLogger("ppl.api")
logger.addHandler(logging.NullHandler())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: initialize the database schema."""
    db.init_db()
    yield


app = FastAPI(title="PPL API", version="0.1", lifespan=lifespan)

SAFE_LIMITS: Dict[str, Any] = {
    "max_steps": 100_000,
    "max_time_s": 1.5,
    "max_output_chars": 5000,
}


def _cap_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Enforce server-side safe caps for runtime tunables.

    Clients may include a `settings` object with per-run limits. Requested
    values are honoured only up to `SAFE_LIMITS`; missing or invalid ones
    fall back to the cap. `use_subprocess` and `timeout_s` pass through
    (the timeout clamped to 5 seconds).

    Returns a dict suitable for passing directly into `Interpreter.run`.
    """
    settings = settings or {}
    caps: Dict[str, Any] = {}
    for key, ceiling in SAFE_LIMITS.items():
        requested = settings.get(key)
        try:
            value = type(ceiling)(requested) if requested is not None else ceiling
        except (TypeError, ValueError, OverflowError):
            value = ceiling
        if not math.isfinite(value) or value <= 0:
            value = ceiling
        caps[key] = min(value, ceiling)
    if settings.get("use_subprocess"):
        caps["use_subprocess"] = True
        try:
            timeout = float(settings.get("timeout_s", 2))
        except (TypeError, ValueError):
            timeout = 2.0
        caps["timeout_s"] = min(timeout, 5.0) if math.isfinite(timeout) and timeout > 0 else 2.0
    return caps


class RunRequest(BaseModel):
    """Request body for `/run`.

    Fields:
        code: PPL source text, one instruction per line.
        settings: optional run limits; capped server-side.
        script_id: optional id to associate this run with a saved script.
    """
    code: str
    settings: Optional[Dict[str, Any]] = None
    script_id: Optional[int] = None


class SaveScriptRequest(BaseModel):
    title: str
    code: str


@app.post("/run")
def run_code(req: RunRequest):
    """Load and run a program, returning the interpreter's result dict.

    Any unexpected exception becomes a SERVER_ERROR response so callers
    always receive the same JSON shape. The run is recorded in the Runs
    table; a persistence failure only adds a warning.
    """
    start = time.time()
    try:
        capped = _cap_settings(req.settings)
        it = Interpreter()
        result = it.run(req.code, settings=capped)
    except Exception as e:
        logger.exception("run failed")
        return {
            "output": "",
            "bindings": [],
            "warnings": [],
            "steps": 0,
            "duration_ms": int((time.time() - start) * 1000),
            "errors": {"code": "SERVER_ERROR", "message": str(e)},
        }
    result["duration_ms"] = int((time.time() - start) * 1000)

    errors = result.get("errors")
    try:
        db.save_run(
            req.script_id,
            "error" if errors else "ok",
            result.get("steps"),
            len(result.get("bindings") or []),
            result["duration_ms"],
            errors.get("code") if errors else None,
        )
    except Exception as e:
        logger.warning("failed to persist run: %s", e)
        result.setdefault('warnings', []).append(f"Failed to persist run: {e}")

    return result


@app.post('/save')
def save_script(req: SaveScriptRequest):
    """Store a program after checking that it loads."""
    try:
        load_program(req.code)
    except ParseError as e:
        return {'error': str(e), 'errors': e.to_dict()}
    try:
        script_id = db.save_script(req.title, req.code)
    except Exception as e:
        logger.warning("failed to save script: %s", e)
        return {'error': str(e)}
    return {'script_id': script_id}


@app.get('/scripts')
async def list_scripts():
    return db.list_scripts()


@app.get('/scripts/{script_id}')
async def get_script(script_id: int):
    s = db.get_script(script_id)
    if not s:
        return {'error': 'not found'}
    return s


@app.get('/stats')
async def list_stats(script_id: Optional[int] = None):
    return db.list_runs(script_id)


def serve():
    """Serve the API with uvicorn. `PPL_HOST` / `PPL_PORT` pick the address."""
    import uvicorn

    host = os.environ.get("PPL_HOST", "127.0.0.1")
    port = int(os.environ.get("PPL_PORT", "8000"))
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    serve()
