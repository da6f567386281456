"""
Unit tests for decision assembly and client id derivation
"""

import json

from gateway_authorizer.policy_builder import (
    ClaimsContextResolver,
    ContextResolver,
    Decision,
    JwtContextResolver,
    PolicyBuilder,
)
from gateway_authorizer.verifier import Identity


class StaticContextResolver(ContextResolver):
    def __init__(self, context):
        self.context = context

    def resolve(self, identity, token):
        return self.context


class TestBuild:
    """Tests for PolicyBuilder.build"""

    def test_default_context_carries_raw_token(self):
        decision = PolicyBuilder().build(Identity(claims={"sub": "user123"}), "raw.token.value")

        assert decision.principal_id == "user123"
        assert decision.context == {"jwt": "raw.token.value"}
        assert decision.usage_identifier_key is None

    def test_custom_resolver_replaces_default_context(self):
        builder = PolicyBuilder(StaticContextResolver({"foo": "bar"}))

        decision = builder.build(Identity(claims={"sub": "user123"}), "raw.token.value")

        assert decision.to_response()["context"] == {"foo": "bar"}

    def test_response_shape(self):
        response = Decision(principal_id="user123", context={"jwt": "t"}).to_response()

        assert response == {
            "principalId": "user123",
            "policyDocument": {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Action": ["execute-api:Invoke"],
                        "Resource": ["arn:aws:execute-api:*:*:*"],
                    }
                ],
            },
            "context": {"jwt": "t"},
        }

    def test_usage_identifier_key_rendered_when_present(self):
        response = Decision(principal_id="p", usage_identifier_key="abc").to_response()

        assert response["usageIdentifierKey"] == "abc"
        assert "context" not in response


class TestClaimsContextResolver:
    def test_flattens_claims_into_scalar_values(self):
        identity = Identity(
            claims={
                "sub": "user123",
                "exp": 1700000000,
                "email_verified": True,
                "scope": ["read", "write"],
                "address": {"country": "NL"},
                "nickname": None,
            }
        )

        context = ClaimsContextResolver().resolve(identity, "token")

        assert context["sub"] == "user123"
        assert context["exp"] == 1700000000
        assert context["email_verified"] is True
        assert json.loads(context["scope"]) == ["read", "write"]
        assert json.loads(context["address"]) == {"country": "NL"}
        assert "nickname" not in context

    def test_jwt_resolver(self):
        assert JwtContextResolver().resolve(Identity(claims={"sub": "x"}), "t") == {"jwt": "t"}


class TestClientIdFor:
    """Tests for PolicyBuilder.client_id_for"""

    def test_machine_client_subject(self):
        identity = Identity(claims={"sub": "abc@clients", "azp": "ignored"})
        assert PolicyBuilder.client_id_for(identity) == "abc"

    def test_delegated_token_uses_azp(self):
        identity = Identity(claims={"sub": "user123", "azp": "app456"})
        assert PolicyBuilder.client_id_for(identity) == "app456"

    def test_suffix_must_be_at_the_end(self):
        identity = Identity(claims={"sub": "abc@clients.example", "azp": "app456"})
        assert PolicyBuilder.client_id_for(identity) == "app456"

    def test_no_azp_yields_none(self):
        assert PolicyBuilder.client_id_for(Identity(claims={"sub": "user123"})) is None

    def test_non_string_azp_yields_none(self):
        assert PolicyBuilder.client_id_for(Identity(claims={"sub": "user123", "azp": 12345})) is None
