from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from ledgersync.bootstrap import build_services
from ledgersync.core.config import Settings

TEST_SIGNING_KEY = "test-signing-key-0123456789abcdef"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_settings(data_dir: Path, **overrides) -> Settings:
    values = dict(
        signing_key=TEST_SIGNING_KEY,
        data_dir=data_dir,
        bcrypt_rounds=4,
        lock_timeout_seconds=5,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def services(settings, clock):
    return build_services(settings, clock=clock)


@pytest.fixture
def auth(services):
    return services.auth


@pytest.fixture
def engine(services):
    return services.sync


def create_test_client(data_dir: Path, **overrides) -> TestClient:
    from ledgersync_web.app import create_app

    app = create_app(make_settings(data_dir, **overrides))
    return TestClient(app)


@pytest.fixture
def client(tmp_path):
    return create_test_client(tmp_path)
