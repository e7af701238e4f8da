import pytest

from backend import db


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Give every test its own SQLite file with the schema in place."""
    monkeypatch.setenv("PPL_DB_PATH", str(tmp_path / "ppl.db"))
    db.init_db()
    yield
