import pytest

from app.ielts_copilot.app import create_app


class FakeGeminiClient:
    """Stands in for GeminiClient; records calls and returns canned text or raises."""

    is_configured = True
    model = "fake-model"

    def __init__(self):
        self.responses = []
        self.calls = []

    def queue(self, response):
        self.responses.append(response)

    def generate_text(self, parts, **kwargs):
        self.calls.append({"parts": parts, **kwargs})
        response = self.responses.pop(0) if self.responses else "### 🧠 Example Responses by Band Level"
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_client():
    return FakeGeminiClient()


@pytest.fixture
def flask_app(fake_client):
    app = create_app('testing', MAX_IMAGE_BYTES=64)
    app.extensions['gemini_client'] = fake_client
    return app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()
