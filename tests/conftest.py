import pytest
from fastapi.testclient import TestClient

from vision_gateway.main import create_app
from vision_gateway.utils.config import Settings

API_KEY = "a" * 64
OTHER_API_KEY = "B" * 64


class FakeVisionClient:
    """Records provider calls instead of hitting the network"""

    def __init__(self, result=None, error=None):
        self.result = result if result is not None else {"status": "success", "data": {"analysis": {}}}
        self.error = error
        self.calls = []

    @property
    def call_count(self):
        return len(self.calls)

    async def analyze(self, payload, analysis_type):
        self.calls.append((payload.to_wire(), analysis_type))
        if self.error is not None:
            raise self.error
        return self.result


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "testing",
        "cloudinary_cloud_name": "demo",
        "cloudinary_api_key": "key",
        "cloudinary_api_secret": "secret",
        "api_keys": [API_KEY, OTHER_API_KEY],
        "allowed_origins": ["https://app.example.com"],
        "rate_limit_max": 100,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_client():
    return FakeVisionClient()


@pytest.fixture
def make_client(fake_client):
    """Build a TestClient around an app with the given settings overrides"""
    clients = []

    def _make(**overrides):
        app = create_app(make_settings(**overrides))
        app.state.vision_client = fake_client
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def auth_headers():
    return {"X-API-Key": API_KEY}
