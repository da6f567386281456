"""
Service token provider

Obtains a client-credentials access token for service-to-service calls.
The client secret is stored encrypted and unsealed with KMS on every token
request; the token itself is cached until its ``exp`` claim passes.
"""

import base64
import threading
import time
from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger
from jose import jwt
from jose.exceptions import JOSEError

from .errors import ConfigurationError

logger = Logger()

REQUIRED_PROPERTIES = ("client_id", "encrypted_client_secret", "audience", "token_endpoint")


class ServiceTokenProvider:
    """Client-credentials token source with an in-memory token cache"""

    def __init__(self, http_client, kms_client, configuration: Dict[str, Any]):
        """
        Args:
            http_client: Object with ``post(url, data, headers)`` returning a response
            kms_client: boto3 KMS client used to decrypt the client secret
            configuration: Mapping with client_id, encrypted_client_secret
                (base64), audience and token_endpoint
        """
        for name in REQUIRED_PROPERTIES:
            if not configuration.get(name):
                raise ConfigurationError(
                    f'Configuration error: missing required property "{name}"'
                )
        self.http_client = http_client
        self.kms_client = kms_client
        self.configuration = dict(configuration)
        self._lock = threading.Lock()
        self._token: Optional[str] = None

    def get_token(self) -> str:
        """Return a cached token, renewing it when missing or expired."""
        with self._lock:
            if self._token is None or self._is_expired(self._token):
                self._token = self.get_token_without_cache()
            return self._token

    def get_token_without_cache(self) -> str:
        secret = self._decrypt_secret()
        body = {
            "client_id": self.configuration["client_id"],
            "client_secret": secret,
            "audience": self.configuration["audience"],
            "grant_type": "client_credentials",
        }
        response = self.http_client.post(
            self.configuration["token_endpoint"],
            body,
            {"Content-Type": "application/json"},
        )
        token = response.json().get("access_token")
        if not token:
            raise ValueError("Token endpoint response did not contain an access_token")
        logger.info(f"Obtained service token for client {self.configuration['client_id']}")
        return token

    def _decrypt_secret(self) -> str:
        blob = base64.b64decode(self.configuration["encrypted_client_secret"])
        response = self.kms_client.decrypt(CiphertextBlob=blob)
        plaintext = response["Plaintext"]
        return plaintext.decode("utf-8") if isinstance(plaintext, bytes) else str(plaintext)

    @staticmethod
    def _is_expired(token: str) -> bool:
        try:
            exp = jwt.get_unverified_claims(token).get("exp")
        except JOSEError:
            return True
        # tokens without exp never expire locally
        return exp is not None and exp < time.time()
