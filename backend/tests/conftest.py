import json

import httpx
import pytest
from fastapi.testclient import TestClient

from spelling_practice.gemini_client import GeminiClient
from spelling_practice.main import app
from spelling_practice.routers import extract, practice
from spelling_practice.settings import DEFAULT_ALLOWED_ORIGINS, settings


ORIGIN = "http://localhost:3000"


def gemini_reply(text, status_code=200):
    if status_code != 200:
        return httpx.Response(status_code, json={"error": {"message": text}})
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


class FakeGemini:
    """Records requests sent to the Gemini endpoint and answers with a canned reply."""

    def __init__(self):
        self.requests = []
        self.reply = gemini_reply(json.dumps(["apple", "banana"]))

    def respond_with(self, text, status_code=200):
        self.reply = gemini_reply(text, status_code)

    def handler(self, request):
        self.requests.append(request)
        return self.reply

    def client(self):
        return GeminiClient(api_key="test-key", transport=httpx.MockTransport(self.handler))

    @property
    def last_payload(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    monkeypatch.setattr(settings, "allowed_origins_raw", DEFAULT_ALLOWED_ORIGINS)
    extract._rate_limiter.clear()
    practice._sessions.clear()
    yield
    practice._sessions.clear()
    app.dependency_overrides.clear()


@pytest.fixture
def fake_gemini():
    fake = FakeGemini()
    app.dependency_overrides[extract.get_client_factory] = lambda: fake.client
    return fake


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def origin_headers():
    return {"Origin": ORIGIN}
