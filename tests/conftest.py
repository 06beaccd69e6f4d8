"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides temp-file backed stores.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("ALLOWED_CHAT_IDS", "")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "Europe/Stockholm")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path shared by every store in a test."""
    return str(tmp_path / "test_homeops.db")


@pytest.fixture
def message_db(tmp_db_path):
    from src.data.db import MessageDB
    return MessageDB(db_path=tmp_db_path)


@pytest.fixture
def activity_db(tmp_db_path):
    from src.data.db import ActivityDB
    return ActivityDB(db_path=tmp_db_path)


@pytest.fixture
def alias_db(tmp_db_path):
    from src.data.db import AliasDB
    return AliasDB(db_path=tmp_db_path)


@pytest.fixture
def counter_db(tmp_db_path):
    from src.data.db import ResponseCounterDB
    return ResponseCounterDB(db_path=tmp_db_path)


@pytest.fixture
def learning_db(tmp_db_path):
    from src.data.db import LearningDB
    return LearningDB(db_path=tmp_db_path)
