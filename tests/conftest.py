"""Shared fixtures: a throwaway SQLite store and a seeded user."""

from pathlib import Path

import pytest

from repquest.storage import Storage


@pytest.fixture
def storage(tmp_path: Path):
    store = Storage(tmp_path / "repquest_test.db")
    yield store
    store.close()


@pytest.fixture
def user_id(storage: Storage) -> str:
    return storage.create_user("user_test", "Tester").user_id
