import time

import pytest

from gateway_authorizer.diagnostics import MemorySink
from gateway_authorizer.testing import FakeHttpClient, generate_signing_key


@pytest.fixture(scope="session")
def signing_key():
    return generate_signing_key("K1")


@pytest.fixture(scope="session")
def other_signing_key():
    return generate_signing_key("K2")


@pytest.fixture
def jwks(signing_key):
    return {"keys": [signing_key.public_jwk]}


@pytest.fixture
def http_client(jwks):
    return FakeHttpClient(document=jwks)


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def claims():
    now = int(time.time())
    return {
        "sub": "user123",
        "azp": "app456",
        "iss": "https://issuer.example.com/",
        "iat": now,
        "exp": now + 300,
    }
