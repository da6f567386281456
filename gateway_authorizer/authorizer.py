"""
Authorization decision pipeline.

    START -> TOKEN_EXTRACTED -> TOKEN_DECODED -> KID_RESOLVED -> KEY_RESOLVED
          -> VERIFIED -> DECIDED

Any failing step ends in REJECTED (``Unauthorized``) except a key set fetch
failure, which ends in ERRORED (``InternalServerError``). Each transition
records exactly one diagnostic event.
"""

from enum import Enum
from typing import Any, Dict, Optional

from .diagnostics import NO_KID_SPECIFIED, DiagnosticSink, redact_token
from .errors import (
    InternalServerError,
    KeyNotFound,
    KeySetFetchFailed,
    SignatureOrClaimsInvalid,
    Unauthorized,
)
from .key_source import KeySource
from .policy_builder import Decision, PolicyBuilder
from .provisioning import ProvisioningManager
from .token_inspector import AuthorizerRequest, decode_unverified, extract_token
from .verifier import Identity, Verifier


class AuthorizationState(str, Enum):
    START = "Start"
    TOKEN_EXTRACTED = "TokenExtracted"
    TOKEN_DECODED = "TokenDecoded"
    KID_RESOLVED = "KidResolved"
    KEY_RESOLVED = "KeyResolved"
    VERIFIED = "Verified"
    DECIDED = "Decided"
    REJECTED = "Rejected"
    ERRORED = "Errored"


class Authorizer:
    """Sequences token inspection, key resolution, verification and policy assembly"""

    def __init__(
        self,
        key_source: KeySource,
        verifier: Verifier,
        policy_builder: PolicyBuilder,
        sink: DiagnosticSink,
        provisioning: Optional[ProvisioningManager] = None,
    ):
        self.key_source = key_source
        self.verifier = verifier
        self.policy_builder = policy_builder
        self.sink = sink
        self.provisioning = provisioning

    def get_policy(self, request: AuthorizerRequest) -> Dict[str, Any]:
        """
        Decide on ``request`` and return the API Gateway authorizer response.

        Raises:
            Unauthorized: The caller could not be authenticated
            InternalServerError: The key set could not be fetched
        """
        self._record(AuthorizationState.START, request, level="INFO", title="Authorizer.getPolicy()")

        token = extract_token(request)
        if not token:
            header_state = "missing" if request.header("authorization") is None else "malformed"
            self._reject(request, None, "No token specified", authorizationHeader=header_state)
        self._record(AuthorizationState.TOKEN_EXTRACTED, request, token)

        unverified = decode_unverified(token)
        if unverified is None:
            self._reject(request, token, "Invalid token")
        self._record(AuthorizationState.TOKEN_DECODED, request, token)

        if not unverified.kid:
            self._reject(request, token, "Token did not provide a KID")
        self._record(AuthorizationState.KID_RESOLVED, request, token, kid=unverified.kid)

        # only an allow-listed header alg may shape the key
        algorithm = None
        if unverified.algorithm in self.verifier.algorithms:
            algorithm = unverified.algorithm
        try:
            key = self.key_source.resolve_key(unverified.kid, algorithm)
        except KeySetFetchFailed as e:
            self._record(
                AuthorizationState.ERRORED,
                request,
                token,
                level="ERROR",
                title="InternalServerError",
                details="Failed to get public key",
                kid=e.kid or NO_KID_SPECIFIED,
                keys=e.keys,
                fetched_at=e.fetched_at,
                error=e,
            )
            raise InternalServerError() from e
        except KeyNotFound as e:
            self._reject(
                request,
                token,
                "KID not found in public key list.",
                kid=e.kid or NO_KID_SPECIFIED,
                keys=e.keys,
                fetched_at=e.fetched_at,
            )
        self._record(AuthorizationState.KEY_RESOLVED, request, token, kid=unverified.kid)

        try:
            identity = self.verifier.verify(token, key)
        except SignatureOrClaimsInvalid as e:
            self._reject(request, token, "Error verifying token", error=e.__cause__ or e)
        self._record(AuthorizationState.VERIFIED, request, token, principalId=identity.sub)

        decision = self.policy_builder.build(identity, token)
        if self.provisioning is not None:
            decision.usage_identifier_key = self._provision(identity)
        self._record(
            AuthorizationState.DECIDED,
            request,
            token,
            level="INFO",
            title="Authorized",
            principalId=decision.principal_id,
            usageIdentifierKey=decision.usage_identifier_key,
        )
        return decision.to_response()

    def _provision(self, identity: Identity) -> Optional[str]:
        client_id = self.policy_builder.client_id_for(identity)
        if not client_id:
            self.sink.record(
                {
                    "level": "WARN",
                    "title": "FailedToEnsureApiKey",
                    "details": "No client id could be derived from the token",
                    "principalId": identity.sub,
                }
            )
            return None
        try:
            result = self.provisioning.ensure_provisioned(client_id)
        except Exception as e:
            self.sink.record(
                {
                    "level": "ERROR",
                    "title": "FailedToEnsureApiKey",
                    "details": "Failed to ensure that an api key exists",
                    "clientId": client_id,
                    "error": e,
                }
            )
            return None
        return result.key.value if result.ok else None

    def _reject(self, request: AuthorizerRequest, token: Optional[str], details: str, **extra):
        self._record(
            AuthorizationState.REJECTED,
            request,
            token,
            level="WARN",
            title="Unauthorized",
            details=details,
            **extra,
        )
        raise Unauthorized()

    def _record(
        self,
        state: AuthorizationState,
        request: AuthorizerRequest,
        token: Optional[str] = None,
        level: str = "DEBUG",
        title: Optional[str] = None,
        **extra,
    ):
        event = {
            "level": level,
            "title": title or state.value,
            "state": state.value,
            "method": request.method_arn,
        }
        if request.path is not None:
            event["path"] = request.path
        if token is not None:
            event["token"] = redact_token(token)
        event.update(extra)
        self.sink.record(event)
