"""Test fixtures for AI Box."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("AIBOX_DB_PATH", str(tmp_path / "ai-box.db"))
    monkeypatch.setenv("AIBOX_CONFIG", str(tmp_path / "absent.yaml"))

    from ai_box.api import dependencies as deps

    deps.reset_state()
    yield
    deps.reset_state()


@pytest.fixture
def store(tmp_path: Path):
    from ai_box.db.sqlite import SQLiteDatabase
    from ai_box.db.store import Store

    db = SQLiteDatabase(tmp_path / "store.db")
    db.ensure_schema()
    yield Store(db)
    db.close()


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Title\n\nParagraph one.\n\nParagraph two is here."
