"""
Bearer token extraction and unverified decoding.

Nothing returned from this module is trusted: it only selects the key that
the verifier will check the signature against.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from jose import jwt
from jose.exceptions import JOSEError

AUTHORIZATION_HEADER = "authorization"


@dataclass(frozen=True)
class AuthorizerRequest:
    """Inbound API Gateway authorizer request"""

    method_arn: Optional[str]
    path: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_event(cls, event: Dict[str, Any]):
        """
        Build a request from a REQUEST or TOKEN authorizer event.

        TOKEN events carry the header value in ``authorizationToken``; it is
        treated as the request's only Authorization header.
        """
        headers = event.get("headers") or {}
        if not headers and event.get("authorizationToken"):
            headers = {"Authorization": event["authorizationToken"]}
        return cls(
            method_arn=event.get("methodArn"),
            path=event.get("path"),
            headers=dict(headers),
        )

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive lookup; the first matching header wins."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if isinstance(key, str) and key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class UnverifiedToken:
    kid: Optional[str]
    algorithm: Optional[str]


def extract_token(request: AuthorizerRequest) -> Optional[str]:
    """
    Return the credential part of a ``<scheme> <credential>`` Authorization
    header, or None for a missing or malformed header.
    """
    header = request.header(AUTHORIZATION_HEADER)
    if not isinstance(header, str):
        return None
    fragments = header.split(" ")
    if len(fragments) != 2 or not fragments[1]:
        return None
    return fragments[1]


def decode_unverified(token: str) -> Optional[UnverifiedToken]:
    """
    Decode header and payload without verifying the signature.

    Returns:
        UnverifiedToken, or None when the token cannot be decoded
    """
    try:
        header = jwt.get_unverified_header(token)
        # the payload must be a JSON object even though it is not trusted yet
        jwt.get_unverified_claims(token)
    except JOSEError:
        return None

    kid = header.get("kid")
    alg = header.get("alg")
    return UnverifiedToken(
        kid=kid if isinstance(kid, str) and kid else None,
        algorithm=alg if isinstance(alg, str) else None,
    )
