import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Add the project root to the path so imports work
sys.path.insert(0, str(Path(__file__).parent.parent))

from idearater import database as db


@pytest.fixture
def engine():
    """In-memory SQLite engine installed as the process-wide engine."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.use_engine(engine)
    yield engine
    db.use_engine(None)
    engine.dispose()


@pytest.fixture
def configured_env(monkeypatch, engine):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.delenv("NEON_DATABASE_URL", raising=False)
    monkeypatch.setenv("DEEPSEEK_API_KEY", "test-key")
    monkeypatch.delenv("DEEPSEEK_MODEL", raising=False)
    monkeypatch.delenv("DEEPSEEK_API_URL", raising=False)
    monkeypatch.setenv("RERATE_ADMIN_TOKEN", "s3cret")
    monkeypatch.delenv("ADMIN_TOKEN", raising=False)
    return engine
