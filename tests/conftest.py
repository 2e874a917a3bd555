import pytest
from fastapi.testclient import TestClient

import auth
from config import Settings
from database import Pool
from main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'expenses.db'}",
        pg_min_conns=1,
        pg_max_conns=5,
        pg_health_check_period=0,
        log_dir=str(tmp_path / "logs"),
        log_level="WARNING",
    )


@pytest.fixture
def pool(settings):
    pool = Pool.open(settings.pool_config())
    yield pool
    pool.close()


@pytest.fixture
def client(settings, monkeypatch):
    # Full-cost bcrypt makes every signup take a noticeable fraction of a second
    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)
    app = create_app(settings)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def store(client):
    """The pool behind the running app, for looking at rows directly."""
    return client.app.state.pool
