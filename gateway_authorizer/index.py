"""
Custom API Gateway Lambda Authorizer.

This Lambda function validates the bearer token of every inbound request
against the issuer's JSON Web Key Set and returns an IAM policy document
allowing invocation. When a usage plan is configured, the caller's client id
is provisioned with an API key on that plan and returned as
``usageIdentifierKey``.
"""

import json
import time
from typing import Any, Dict, Optional

import boto3
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from .authorizer import Authorizer
from .config import AuthorizerSettings, log_environment_config
from .diagnostics import DiagnosticSink, LoggerSink
from .errors import InternalServerError, Unauthorized
from .key_source import KeySource
from .platform_client import PlatformClient
from .policy_builder import ClaimsContextResolver, JwtContextResolver, PolicyBuilder
from .provisioning import ApiGatewayKeyStore, ProvisioningManager
from .token_inspector import AuthorizerRequest
from .verifier import Verifier

logger = Logger()
metrics = Metrics(namespace="GatewayAuthorizer")
tracer = Tracer()

# Built on first invocation and reused while the execution environment is warm
_authorizer: Optional[Authorizer] = None
_settings: Optional[AuthorizerSettings] = None


def build_authorizer(
    settings: AuthorizerSettings,
    http_client=None,
    apigateway_client=None,
    sink: Optional[DiagnosticSink] = None,
) -> Authorizer:
    """
    Wire an Authorizer from settings.

    Args:
        settings: Authorizer settings
        http_client: Transport used for the JWKS fetch, defaults to PlatformClient
        apigateway_client: boto3 apigateway client, created when provisioning
            is enabled and none is given
        sink: Diagnostic sink, defaults to LoggerSink

    Returns:
        Authorizer
    """
    sink = sink or LoggerSink(logger)
    http_client = http_client or PlatformClient(timeout=settings.http_timeout_seconds)

    key_source = KeySource(
        settings.jwk_key_list_url,
        http_client,
        default_algorithm=settings.jwt_algorithms[0],
    )
    verifier = Verifier(
        settings.jwt_algorithms,
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )
    resolver = (
        ClaimsContextResolver()
        if settings.context_resolver == "claims"
        else JwtContextResolver()
    )

    provisioning = None
    if settings.provisioning_enabled:
        client = apigateway_client or boto3.client(
            "apigateway", region_name=settings.aws_region
        )
        provisioning = ProvisioningManager(
            ApiGatewayKeyStore(client), settings.usage_plan_id, sink
        )

    return Authorizer(key_source, verifier, PolicyBuilder(resolver), sink, provisioning)


def get_authorizer() -> Authorizer:
    global _authorizer, _settings
    if _authorizer is None:
        _settings = AuthorizerSettings.from_environment()
        log_environment_config(logger, _settings)
        _authorizer = build_authorizer(_settings)
    return _authorizer


def set_authorizer(authorizer: Optional[Authorizer], settings: Optional[AuthorizerSettings] = None):
    """Replace the process-wide authorizer; ``None`` forces a rebuild."""
    global _authorizer, _settings
    _authorizer = authorizer
    _settings = settings


@tracer.capture_method
def authorize(event: Dict[str, Any], correlation_id: str) -> Dict[str, Any]:
    request = AuthorizerRequest.from_event(event)
    logger.info(
        f"Authorizing {request.method_arn}",
        extra={"correlation_id": correlation_id, "path": request.path},
    )
    return get_authorizer().get_policy(request)


@logger.inject_lambda_context
@tracer.capture_lambda_handler
@metrics.log_metrics
def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda handler for the Custom API Gateway Authorizer.

    Raising ``Unauthorized`` makes API Gateway answer 401; raising
    ``InternalServerError`` makes it answer 500.

    Args:
        event: API Gateway REQUEST or TOKEN authorizer event
        context: Lambda context

    Returns:
        Authorizer response with policy document
    """
    start_time = time.time()
    correlation_id = str(context.aws_request_id)
    metrics.add_metric(name="request.total", unit=MetricUnit.Count, value=1)

    if _settings is not None and not _settings.is_production:
        logger.debug(
            f"Event header names: {json.dumps(sorted((event.get('headers') or {}).keys()))}",
            extra={"correlation_id": correlation_id},
        )

    try:
        policy = authorize(event, correlation_id)
        metrics.add_metric(name="request.result_allow", unit=MetricUnit.Count, value=1)
        if "usageIdentifierKey" in policy:
            metrics.add_metric(name="request.usage_key_attached", unit=MetricUnit.Count, value=1)
        return policy
    except Unauthorized:
        metrics.add_metric(name="request.unauthorized", unit=MetricUnit.Count, value=1)
        raise
    except InternalServerError:
        metrics.add_metric(name="request.error", unit=MetricUnit.Count, value=1)
        logger.error(
            "Verification keys could not be fetched",
            extra={"correlation_id": correlation_id},
        )
        raise
    finally:
        execution_time = (time.time() - start_time) * 1000
        metrics.add_metric(
            name="request.latency", unit=MetricUnit.Milliseconds, value=execution_time
        )


# For backward compatibility
lambda_handler = handler
