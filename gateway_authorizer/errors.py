"""
Exception hierarchy for the gateway authorizer.

Only ``Unauthorized`` and ``InternalServerError`` ever leave the pipeline.
API Gateway inspects the error message of a failed authorizer invocation, so
both carry a fixed message.
"""


class AuthorizerError(Exception):
    """Base class for all authorizer errors"""


class ConfigurationError(AuthorizerError):
    """Raised when the authorizer is constructed with missing settings"""


class Unauthorized(AuthorizerError):
    """Caller input could not be authenticated (API Gateway 401)"""

    def __init__(self):
        super().__init__("Unauthorized")


class InternalServerError(AuthorizerError):
    """A dependency of the authorizer is unhealthy (API Gateway 500)"""

    def __init__(self):
        super().__init__("InternalServerError")


class KeyResolutionFailed(AuthorizerError):
    """A verification key could not be resolved for a key id"""

    def __init__(self, kid, message: str, keys=None, fetched_at=None):
        super().__init__(message)
        self.kid = kid
        # public metadata of the key set observed when resolution failed
        self.keys = keys or []
        self.fetched_at = fetched_at


class KeyNotFound(KeyResolutionFailed):
    """The fetched key set holds no key for the requested key id"""

    def __init__(self, kid, keys=None, fetched_at=None):
        super().__init__(kid, f"No matching key found for kid: {kid}", keys, fetched_at)


class KeySetFetchFailed(KeyResolutionFailed):
    """The remote key set could not be fetched or converted"""

    def __init__(self, kid, reason: str, keys=None, fetched_at=None):
        super().__init__(kid, f"Failed to get public key: {reason}", keys, fetched_at)


class SignatureOrClaimsInvalid(AuthorizerError):
    """Signature or claims verification failed; the cause is chained"""


class ProvisioningError(AuthorizerError):
    """API key or usage plan provisioning failed"""
