"""
Configuration for the Gateway Authorizer

Settings are read from the Lambda environment once per process. The
authorizer, its key cache and its clients are built from a single
``AuthorizerSettings`` instance.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .errors import ConfigurationError

DEFAULT_ALGORITHMS = ["RS256"]
CONTEXT_RESOLVERS = ("jwt", "claims")


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class AuthorizerSettings:
    """Environment-driven authorizer settings"""

    jwk_key_list_url: str
    usage_plan_id: Optional[str] = None
    jwt_algorithms: List[str] = field(default_factory=lambda: list(DEFAULT_ALGORITHMS))
    jwt_audience: Optional[str] = None
    jwt_issuer: Optional[str] = None
    context_resolver: str = "jwt"
    http_timeout_seconds: float = 10.0
    aws_region: str = "us-east-1"
    environment: str = "dev"

    def __post_init__(self):
        if not self.jwk_key_list_url:
            raise ConfigurationError(
                'Authorizer configuration error: missing required property "jwkKeyListUrl"'
            )
        if not self.jwt_algorithms:
            raise ConfigurationError(
                "Authorizer configuration error: at least one JWT algorithm is required"
            )
        if self.context_resolver not in CONTEXT_RESOLVERS:
            raise ConfigurationError(
                f"Authorizer configuration error: unknown context resolver '{self.context_resolver}'"
            )

    @property
    def provisioning_enabled(self) -> bool:
        return bool(self.usage_plan_id)

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None):
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from, defaults to ``os.environ``

        Returns:
            AuthorizerSettings

        Raises:
            ConfigurationError: If a required variable is missing or invalid
        """
        env = os.environ if environ is None else environ

        timeout = env.get("HTTP_TIMEOUT_SECONDS", "10")
        try:
            http_timeout_seconds = float(timeout)
        except ValueError:
            raise ConfigurationError(
                f"Authorizer configuration error: HTTP_TIMEOUT_SECONDS is not a number: {timeout}"
            )

        return cls(
            jwk_key_list_url=env.get("JWK_KEY_LIST_URL", ""),
            usage_plan_id=env.get("USAGE_PLAN_ID") or None,
            jwt_algorithms=_split_list(env.get("JWT_ALGORITHMS")) or list(DEFAULT_ALGORITHMS),
            jwt_audience=env.get("JWT_AUDIENCE") or None,
            jwt_issuer=env.get("JWT_ISSUER") or None,
            context_resolver=env.get("CONTEXT_RESOLVER", "jwt").lower(),
            http_timeout_seconds=http_timeout_seconds,
            aws_region=env.get("AWS_REGION", "us-east-1"),
            environment=env.get("ENVIRONMENT", "dev"),
        )


def log_environment_config(logger, settings: AuthorizerSettings):
    """Log the effective configuration once at cold start."""
    logger.info("Authorizer configuration:")
    logger.info(f"   - JWK_KEY_LIST_URL: {settings.jwk_key_list_url}")
    logger.info(f"   - USAGE_PLAN_ID: {settings.usage_plan_id}")
    logger.info(f"   - JWT_ALGORITHMS: {','.join(settings.jwt_algorithms)}")
    logger.info(f"   - JWT_AUDIENCE: {settings.jwt_audience}")
    logger.info(f"   - JWT_ISSUER: {settings.jwt_issuer}")
    logger.info(f"   - CONTEXT_RESOLVER: {settings.context_resolver}")
    logger.info(f"   - ENVIRONMENT: {settings.environment}")
    logger.info(f"   - AWS_REGION: {settings.aws_region}")
