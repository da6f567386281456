"""
Unit tests for the Lambda entry point
"""

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest
import requests

from gateway_authorizer import index
from gateway_authorizer.config import AuthorizerSettings
from gateway_authorizer.errors import InternalServerError, Unauthorized
from gateway_authorizer.policy_builder import ClaimsContextResolver
from gateway_authorizer.testing import METHOD_ARN, FakeHttpClient


@dataclass
class LambdaContext:
    function_name: str = "gateway-authorizer"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:gateway-authorizer"
    aws_request_id: str = "52fdfc07-2182-154f-163f-5f0f9a621d72"


@pytest.fixture
def settings():
    return AuthorizerSettings(jwk_key_list_url="https://issuer.example.com/jwks")


@pytest.fixture(autouse=True)
def reset_authorizer():
    yield
    index.set_authorizer(None)


def install(settings, http_client, sink, **kwargs):
    authorizer = index.build_authorizer(settings, http_client=http_client, sink=sink, **kwargs)
    index.set_authorizer(authorizer, settings)
    return authorizer


def request_event(token):
    return {
        "type": "REQUEST",
        "methodArn": METHOD_ARN,
        "path": "/items",
        "headers": {"Authorization": f"Bearer {token}"},
    }


class TestHandler:
    def test_allows_valid_token(self, settings, http_client, sink, signing_key, claims):
        install(settings, http_client, sink)
        token = signing_key.sign(claims)

        policy = index.handler(request_event(token), LambdaContext())

        assert policy["principalId"] == "user123"
        assert policy["context"] == {"jwt": token}

    def test_token_authorizer_event(self, settings, http_client, sink, signing_key, claims):
        install(settings, http_client, sink)
        event = {"type": "TOKEN", "methodArn": METHOD_ARN, "authorizationToken": f"Bearer {signing_key.sign(claims)}"}

        assert index.handler(event, LambdaContext())["principalId"] == "user123"

    def test_unauthorized_propagates_with_fixed_message(self, settings, http_client, sink):
        install(settings, http_client, sink)

        with pytest.raises(Unauthorized, match="^Unauthorized$"):
            index.handler({"methodArn": METHOD_ARN, "headers": {}}, LambdaContext())

    def test_key_fetch_failure_is_internal_server_error(self, settings, sink, signing_key, claims):
        install(settings, FakeHttpClient(error=requests.exceptions.ConnectionError("down")), sink)

        with pytest.raises(InternalServerError, match="^InternalServerError$"):
            index.handler(request_event(signing_key.sign(claims)), LambdaContext())

    def test_authorizer_built_from_environment(self, monkeypatch):
        monkeypatch.setenv("JWK_KEY_LIST_URL", "https://issuer.example.com/jwks")
        monkeypatch.delenv("USAGE_PLAN_ID", raising=False)

        authorizer = index.get_authorizer()

        assert authorizer is index.get_authorizer()
        assert authorizer.key_source.jwk_key_list_url == "https://issuer.example.com/jwks"
        assert authorizer.provisioning is None


class TestBuildAuthorizer:
    def test_provisioning_wired_when_usage_plan_configured(self, http_client, sink, signing_key, claims):
        settings = AuthorizerSettings(
            jwk_key_list_url="https://issuer.example.com/jwks", usage_plan_id="plan-1"
        )
        apigateway = MagicMock()
        apigateway.get_api_keys.return_value = {
            "items": [{"id": "k-1", "name": "app456", "value": "app456"}]
        }
        install(settings, http_client, sink, apigateway_client=apigateway)

        policy = index.handler(request_event(signing_key.sign(claims)), LambdaContext())

        assert policy["usageIdentifierKey"] == "app456"
        apigateway.get_usage_plan_key.assert_called_once_with(usagePlanId="plan-1", keyId="k-1")
        apigateway.create_api_key.assert_not_called()

    def test_claims_context_resolver_selected(self, http_client, sink):
        settings = AuthorizerSettings(
            jwk_key_list_url="https://issuer.example.com/jwks", context_resolver="claims"
        )

        authorizer = index.build_authorizer(settings, http_client=http_client, sink=sink)

        assert isinstance(authorizer.policy_builder.context_resolver, ClaimsContextResolver)
