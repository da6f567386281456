"""
Authorization decision assembly.

The decision grants invocation on every API stage and method; this authorizer
authenticates callers and leaves per-resource access control to the backends.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .verifier import Identity

POLICY_VERSION = "2012-10-17"
INVOKE_ACTION = "execute-api:Invoke"
ALL_RESOURCES = "arn:aws:execute-api:*:*:*"
MACHINE_CLIENT_SUFFIX = "@clients"


class ContextResolver(ABC):
    """Maps a verified identity and its raw token to the authorizer context"""

    @abstractmethod
    def resolve(self, identity: Identity, token: str) -> Optional[Dict[str, Any]]:
        """Return the context map handed to downstream integrations"""


class JwtContextResolver(ContextResolver):
    """Passes the raw token through as ``jwt``"""

    def resolve(self, identity: Identity, token: str) -> Dict[str, Any]:
        return {"jwt": token}


class ClaimsContextResolver(ContextResolver):
    """
    Exposes the verified claims as context values.

    API Gateway only accepts string, number and boolean context values, so
    nested claims are JSON encoded.
    """

    def resolve(self, identity: Identity, token: str) -> Dict[str, Any]:
        context = {}
        for name, value in identity.claims.items():
            if isinstance(value, (dict, list)):
                context[name] = json.dumps(value, default=str)
            elif isinstance(value, (str, int, float, bool)):
                context[name] = value
            elif value is not None:
                context[name] = str(value)
        return context


@dataclass
class Decision:
    principal_id: str
    context: Optional[Dict[str, Any]] = None
    usage_identifier_key: Optional[str] = None

    @property
    def policy_document(self) -> Dict[str, Any]:
        return {
            "Version": POLICY_VERSION,
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": [INVOKE_ACTION],
                    "Resource": [ALL_RESOURCES],
                }
            ],
        }

    def to_response(self) -> Dict[str, Any]:
        """Render the authorizer response API Gateway expects."""
        response = {
            "principalId": self.principal_id,
            "policyDocument": self.policy_document,
        }
        if self.context is not None:
            response["context"] = self.context
        if self.usage_identifier_key is not None:
            response["usageIdentifierKey"] = self.usage_identifier_key
        return response


class PolicyBuilder:
    def __init__(self, context_resolver: Optional[ContextResolver] = None):
        self.context_resolver = context_resolver or JwtContextResolver()

    def build(self, identity: Identity, token: str) -> Decision:
        return Decision(
            principal_id=identity.sub,
            context=self.context_resolver.resolve(identity, token),
        )

    @staticmethod
    def client_id_for(identity: Identity) -> Optional[str]:
        """
        Machine-to-machine tokens carry ``<client>@clients`` as subject;
        delegated tokens name the client in ``azp``.
        """
        principal_id = identity.sub
        if principal_id.endswith(MACHINE_CLIENT_SUFFIX):
            return principal_id.split("@")[0]
        return identity.azp
