from datetime import datetime, timedelta, timezone

import pytest

from app.repository import TokenRepository
from app.tokens import TokenManager


class FakeClock:
    def __init__(self):
        self.current = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository(tmp_path):
    repo = TokenRepository(str(tmp_path / "tokens.db"))
    repo.init()
    return repo


@pytest.fixture
def manager(repository, clock):
    return TokenManager(repository, clock=clock)
