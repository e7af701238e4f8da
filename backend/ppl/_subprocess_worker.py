"""Subprocess worker that runs one PPL program and reports the result as JSON.

Executed as `python -m backend.ppl._subprocess_worker`. It reads a single
JSON object from stdin with shape {"code": "...", "settings": {...}}, runs
the program with an in-process `Interpreter` and writes the run result dict
to stdout. The parent process enforces wall-clock timeouts and resource
caps; this worker only applies the run limits found in `settings`.
"""

import json
import sys
from typing import Any, Dict

from backend.ppl.interpreter import Interpreter


def run_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Run the program described by a decoded worker payload."""
    code = payload.get("code", "")
    settings = dict(payload.get("settings") or {})
    # never recurse into another worker
    settings.pop("use_subprocess", None)
    return Interpreter().run(code, settings)


def main() -> None:
    raw = sys.stdin.read()
    try:
        payload = json.loads(raw)
    except ValueError as e:
        # Communicate payload decoding errors via JSON to the parent process
        print(json.dumps({"errors": {"code": "BAD_PAYLOAD", "message": str(e)}}))
        sys.exit(1)

    print(json.dumps(run_payload(payload)))


if __name__ == "__main__":
    main()
