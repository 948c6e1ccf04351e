from datetime import datetime

import pytest

from uptier.changelog import ChangeLog
from uptier.config import Settings
from uptier.persistence import Database
from uptier.service import UptierService
from uptier.store import Store

NOW = datetime(2026, 10, 19, 10, 0)  # a Monday


class FakeClock:
    """Settable stand-in for datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def db(tmp_path, clock):
    database = Database.open(tmp_path / "tasks.db", clock=clock)
    yield database
    database.close()


@pytest.fixture
def store(db):
    return Store(db)


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path, _env_file=None)


@pytest.fixture
def changelog(tmp_path, clock):
    return ChangeLog(tmp_path / "db.changelog", clock=clock)


@pytest.fixture
def service(db, settings, changelog):
    return UptierService(db, settings, changelog)


@pytest.fixture
def inbox(store):
    return store.create_list("Inbox")
