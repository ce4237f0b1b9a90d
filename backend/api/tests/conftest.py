from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId


@pytest.fixture
def credentials_file(tmp_path, monkeypatch):
    path = tmp_path / "basic_auth.txt"
    path.write_text("# usuario:senha\nadmin:admin123\n\nlinha-invalida\n", encoding="utf-8")
    monkeypatch.setenv("BASIC_AUTH_CREDENTIALS_FILE", str(path))
    return path


@pytest.fixture
def registrations():
    """Coleção MongoDB falsa: métodos assíncronos do motor como AsyncMock."""
    coll = MagicMock()
    coll.find_one = AsyncMock(return_value=None)
    coll.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
    coll.update_one = AsyncMock()
    return coll


@pytest.fixture
def redis_client():
    r = MagicMock()
    r.rpush = AsyncMock(return_value=1)
    r.aclose = AsyncMock()
    return r
