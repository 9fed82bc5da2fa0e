
import pytest

import config
import db


@pytest.fixture
def db_file(tmp_path, monkeypatch):
    path = str(tmp_path / "budget_test.duckdb")
    monkeypatch.setattr(db, "DB_FILE", path)
    db.init_db()
    return path


@pytest.fixture
def conn(db_file):
    c = db.get_db()
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")
    return "s3cret"


class RecordingSink:
    def __init__(self):
        self.batches = []

    def emit(self, owner_id, title, alerts):
        self.batches.append((owner_id, title, list(alerts)))
        return True


@pytest.fixture
def sink():
    return RecordingSink()
