import asyncio

import pytest
from fastapi.testclient import TestClient

from dreamlog.api.deps import get_completion_client
from dreamlog.core.config import Settings
from dreamlog.db import init_models
from dreamlog.db.session import create_engine_for, create_session_factory
from dreamlog.main import create_app

SECRET = "test-signing-secret"
ALLOWED_ORIGIN = "https://app.dreamlog.test"


def make_settings(tmp_path, **overrides):
    values = {
        "SECRET_KEY": SECRET,
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'dreamlog-test.db'}",
        "CORS_ORIGINS": f"{ALLOWED_ORIGIN}/,http://localhost:5173",
        "COMPLETION_API_KEY": "test-key",
        "LOG_LEVEL": "DEBUG",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeCompletionClient:
    """Stands in for CompletionClient; records every call."""

    def __init__(self, content="", error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def complete(self, messages, *, max_tokens, temperature):
        self.calls.append({
            "messages": list(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.error is not None:
            raise self.error
        return {
            "id": "cmpl-test",
            "object": "chat.completion",
            "choices": [
                {"index": 0, "message": {"role": "assistant", "content": self.content}, "finish_reason": "stop"}
            ],
        }


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def fake_completion():
    return FakeCompletionClient()


@pytest.fixture
def app(settings, fake_completion):
    app = create_app(settings)
    app.dependency_overrides[get_completion_client] = lambda: fake_completion
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def login_headers(client):
    def _login(email="a@x.com", password="p"):
        response = client.post("/register", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        response = client.post("/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture
def auth_headers(login_headers):
    return login_headers()


@pytest.fixture
def run_db(settings):
    """Run ``fn(session)`` against a fresh engine on the test database."""

    def _run(fn):
        async def runner():
            engine = create_engine_for(settings)
            await init_models(engine)
            factory = create_session_factory(engine)
            try:
                async with factory() as session:
                    return await fn(session)
            finally:
                await engine.dispose()

        return asyncio.run(runner())

    return _run
