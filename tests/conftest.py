"""Shared fixtures: fixed settings and a provider backed by httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from main import app, get_provider, get_settings
from vidgen.config import Settings
from vidgen.provider import ProviderClient

API_KEY = "pollo-test-key-0123456789"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        provider_api_key=API_KEY,
        provider_base_url="https://provider.test/api/platform",
        s3_bucket="media",
        s3_endpoint="https://account.r2.cloudflarestorage.com",
        s3_access_key="AKIDEXAMPLE",
        s3_secret_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        s3_region="auto",
        s3_public_base_url="https://cdn.example.com/",
    )


class ProviderStub:
    """Records outgoing requests and answers them from a queue of responses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"unexpected provider call: {request.method} {request.url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def provider_stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def provider(settings, provider_stub) -> ProviderClient:
    return ProviderClient.from_settings(settings, transport=httpx.MockTransport(provider_stub))


@pytest.fixture
def client(settings, provider):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_provider] = lambda: provider
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
