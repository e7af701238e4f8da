import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_DB_PATH = Path(__file__).parent / 'ppl.db'


def db_path() -> Path:
    """Return the SQLite file in use.

    `PPL_DB_PATH` overrides the default. It is read on every call so tests
    can point the app at a temporary file after import.
    """
    return Path(os.environ.get('PPL_DB_PATH') or DEFAULT_DB_PATH)


def get_conn():
    """Return a new sqlite3 connection configured to return rows as dict-like objects.

    We create a fresh connection per-call. For the small scale of this project
    this simple approach is fine.
    """
    conn = sqlite3.connect(str(db_path()))
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Ensure the database file and required tables exist.

    This is idempotent and safe to call at application startup.
    """
    db_path().parent.mkdir(parents=True, exist_ok=True)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute('''
    CREATE TABLE IF NOT EXISTS Scripts (
      script_id INTEGER PRIMARY KEY,
      title TEXT NOT NULL,
      code_text TEXT NOT NULL,
      created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS Runs (
      run_id INTEGER PRIMARY KEY,
      script_id INTEGER NULL,
      status TEXT NOT NULL,
      steps INTEGER,
      binding_count INTEGER,
      duration_ms INTEGER,
      error_code TEXT NULL,
      created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''')
    conn.commit()
    conn.close()


def save_script(title: str, code_text: str) -> int:
    """Persist a program and return the new script_id."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'INSERT INTO Scripts (title, code_text) VALUES (?, ?)',
        (title, code_text),
    )
    script_id = cur.lastrowid
    conn.commit()
    conn.close()
    return script_id


def list_scripts() -> List[Dict[str, Any]]:
    """Return saved scripts (id, title, created_at), newest first."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'SELECT script_id, title, created_at FROM Scripts '
        'ORDER BY created_at DESC, script_id DESC'
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_script(script_id: int) -> Optional[Dict[str, Any]]:
    """Fetch a single script by id, returning None if not found."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'SELECT script_id, title, code_text, created_at FROM Scripts '
        'WHERE script_id = ?',
        (script_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def save_run(
    script_id: Optional[int],
    status: str,
    steps: Optional[int],
    binding_count: Optional[int],
    duration_ms: Optional[int],
    error_code: Optional[str] = None,
) -> int:
    """Persist a run row and return its run_id.

    `status` is "ok" or "error"; `error_code` holds the run's error code
    when there is one. Callers should treat a failure here as non-fatal.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO Runs (
            script_id, status, steps, binding_count, duration_ms, error_code
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (script_id, status, steps, binding_count, duration_ms, error_code),
    )
    run_id = cur.lastrowid
    conn.commit()
    conn.close()
    return run_id


def list_runs(script_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """List run rows, newest first, optionally filtering by script_id."""
    conn = get_conn()
    cur = conn.cursor()
    columns = "run_id, script_id, status, steps, binding_count, duration_ms, error_code, created_at"
    if script_id:
        cur.execute(
            f"SELECT {columns} FROM Runs WHERE script_id = ? ORDER BY created_at DESC, run_id DESC",
            (script_id,),
        )
    else:
        cur.execute(f"SELECT {columns} FROM Runs ORDER BY created_at DESC, run_id DESC")
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]
