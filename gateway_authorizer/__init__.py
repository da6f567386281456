"""
Gateway Authorizer
==================
API Gateway Lambda authorizer that verifies JWT bearer tokens against a
remote JSON Web Key Set and optionally provisions usage plan API keys.
"""

from .authorizer import AuthorizationState, Authorizer
from .config import AuthorizerSettings
from .diagnostics import DiagnosticSink, LoggerSink, MemorySink, redact_token
from .errors import (
    AuthorizerError,
    ConfigurationError,
    InternalServerError,
    KeyNotFound,
    KeyResolutionFailed,
    KeySetFetchFailed,
    ProvisioningError,
    SignatureOrClaimsInvalid,
    Unauthorized,
)
from .key_source import KeySet, KeySource
from .platform_client import PlatformClient
from .policy_builder import (
    ClaimsContextResolver,
    ContextResolver,
    Decision,
    JwtContextResolver,
    PolicyBuilder,
)
from .provisioning import (
    ApiGatewayKeyStore,
    ClientKey,
    KeyManagementStore,
    ProvisioningManager,
    ProvisioningResult,
)
from .service_token_provider import ServiceTokenProvider
from .token_inspector import AuthorizerRequest, UnverifiedToken, decode_unverified, extract_token
from .verifier import Identity, Verifier

__all__ = [
    "ApiGatewayKeyStore",
    "AuthorizationState",
    "Authorizer",
    "AuthorizerError",
    "AuthorizerRequest",
    "AuthorizerSettings",
    "ClaimsContextResolver",
    "ClientKey",
    "ConfigurationError",
    "ContextResolver",
    "Decision",
    "DiagnosticSink",
    "Identity",
    "InternalServerError",
    "JwtContextResolver",
    "KeyManagementStore",
    "KeyNotFound",
    "KeyResolutionFailed",
    "KeySet",
    "KeySetFetchFailed",
    "KeySource",
    "LoggerSink",
    "MemorySink",
    "PlatformClient",
    "PolicyBuilder",
    "ProvisioningError",
    "ProvisioningManager",
    "ProvisioningResult",
    "ServiceTokenProvider",
    "SignatureOrClaimsInvalid",
    "Unauthorized",
    "UnverifiedToken",
    "Verifier",
    "decode_unverified",
    "extract_token",
    "redact_token",
]
