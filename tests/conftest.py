import pytest

import llm
from app import app as flask_app
from store import JsonStore


@pytest.fixture
def store(tmp_path):
    return JsonStore(str(tmp_path / "db.json"))


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(llm, "OLLAMA_ENABLED", False)
    flask_app.config.update(TESTING=True, DATA_PATH=str(tmp_path / "db.json"))
    with flask_app.test_client() as c:
        yield c
