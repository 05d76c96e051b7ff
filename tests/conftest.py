"""Shared fixtures: the sample match and account, temp SQLite stores and a mock API."""

from unittest.mock import MagicMock

import pytest
from factories import make_account, make_match, make_raw_match


@pytest.fixture
def raw_match() -> dict:
    return make_raw_match()


@pytest.fixture
def match():
    return make_match()


@pytest.fixture
def account():
    return make_account()


@pytest.fixture
def db(tmp_path):
    from valocoach.infra.database import DatabaseManager

    return DatabaseManager(f"sqlite:///{tmp_path / 'valocoach.db'}")


@pytest.fixture
def vector_store(tmp_path):
    from valocoach.infra.vector_store import VectorStore

    return VectorStore(f"sqlite:///{tmp_path / 'knowledge.db'}")


@pytest.fixture
def mock_api(account):
    """ValorantAPIClient stand-in that knows one account."""
    api = MagicMock()
    api.get_account.return_value = account
    return api
