from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
import json
from pathlib import Path
from typing import Any

import pytest
import sqlalchemy as sa
from sqlalchemy import text

from db_ai_mcp.execute.runner import GatewayContext
from db_ai_mcp.services.client_registry import ClientRegistry
from db_ai_mcp.services.config_service import ConfigService


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    path = tmp_path / ".db-ai"
    path.mkdir()
    return path


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Path:
    """A SQLite file with a one-row ``users`` table."""
    db_path = tmp_path / "app.db"
    engine = sa.create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE users(id INTEGER PRIMARY KEY, name TEXT)"))
        conn.execute(text("INSERT INTO users(id, name) VALUES (1, 'a')"))
    engine.dispose()
    return db_path


@pytest.fixture
def write_config(config_dir: Path, sqlite_db: Path) -> Callable[..., Path]:
    """Write ``dbConfig.json`` targeting the SQLite fixture; keyword overrides win."""

    def _write(**overrides: Any) -> Path:
        payload: dict[str, Any] = {
            "provider": "sqlite",
            "host": "localhost",
            "port": 0,
            "user": "unused",
            "password": "unused",
            "database": str(sqlite_db),
            "OPERATIONS_ALLOWED": ["SELECT"],
            "outputFileName": "output.log",
        }
        payload.update(overrides)
        payload = {k: v for k, v in payload.items() if v is not None}
        path = config_dir / "dbConfig.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write


class TickingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def context(config_dir: Path) -> Iterator[GatewayContext]:
    ctx = GatewayContext(
        config=ConfigService(config_dir),
        clients=ClientRegistry(),
        clock=TickingClock(),
    )
    with ctx:
        yield ctx
