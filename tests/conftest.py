import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the store at a fresh SQLite file."""
    from config import settings
    import db

    monkeypatch.setattr(settings, "db_path", str(tmp_path / "posts.db"))
    db.init_db()
    return db
