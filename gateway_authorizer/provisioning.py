"""
API key provisioning for usage plans.

For an authenticated client the manager makes sure an API Gateway API key
named after the client exists and is attached to the configured usage plan.
Both steps are get-before-create. The key value is the client id, and API
Gateway rejects duplicate key values with a ConflictException, which is
treated as "already exists" so racing invocations converge on one key and
one association.
"""

import threading
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from .diagnostics import DiagnosticSink
from .errors import ProvisioningError

logger = Logger()

CONFLICT = "ConflictException"
NOT_FOUND = "NotFoundException"


@dataclass(frozen=True)
class ClientKey:
    id: str
    value: str
    client_id: str


@dataclass(frozen=True)
class ProvisioningResult:
    client_id: str
    key: Optional[ClientKey] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.key is not None


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class KeyManagementStore(ABC):
    """External system holding client keys and usage plan associations"""

    @abstractmethod
    def find_key(self, client_id: str) -> Optional[ClientKey]:
        """Return the key named ``client_id`` if one exists"""

    @abstractmethod
    def create_key(self, client_id: str) -> ClientKey:
        """Create the key for ``client_id``, or return it if it already exists"""

    @abstractmethod
    def find_association(self, key_id: str, usage_plan_id: str) -> bool:
        """Return whether the key is attached to the usage plan"""

    @abstractmethod
    def create_association(self, key_id: str, usage_plan_id: str) -> None:
        """Attach the key to the usage plan; already attached is success"""


class ApiGatewayKeyStore(KeyManagementStore):
    """KeyManagementStore over the boto3 ``apigateway`` client"""

    def __init__(self, client, page_size: int = 25):
        self.client = client
        self.page_size = page_size

    def find_key(self, client_id: str) -> Optional[ClientKey]:
        params = {"nameQuery": client_id, "includeValues": True, "limit": self.page_size}
        while True:
            response = self.client.get_api_keys(**params)
            # nameQuery is a prefix match
            for item in response.get("items", []):
                if item.get("name") == client_id and item.get("id"):
                    return ClientKey(
                        id=item["id"],
                        value=item.get("value", client_id),
                        client_id=client_id,
                    )
            position = response.get("position")
            if not position:
                return None
            params["position"] = position

    def create_key(self, client_id: str) -> ClientKey:
        try:
            item = self.client.create_api_key(
                name=client_id,
                value=client_id,
                description=f"Key for client {client_id}",
                enabled=True,
                generateDistinctId=True,
            )
        except ClientError as e:
            if _error_code(e) != CONFLICT:
                raise
            logger.info(f"API key for client {client_id} was created concurrently")
            existing = self.find_key(client_id)
            if existing is None:
                raise ProvisioningError(
                    f"API key for client {client_id} conflicts but cannot be found"
                ) from e
            return existing
        return ClientKey(
            id=item["id"], value=item.get("value", client_id), client_id=client_id
        )

    def find_association(self, key_id: str, usage_plan_id: str) -> bool:
        try:
            self.client.get_usage_plan_key(usagePlanId=usage_plan_id, keyId=key_id)
        except ClientError as e:
            if _error_code(e) == NOT_FOUND:
                return False
            raise
        return True

    def create_association(self, key_id: str, usage_plan_id: str) -> None:
        try:
            self.client.create_usage_plan_key(
                usagePlanId=usage_plan_id, keyId=key_id, keyType="API_KEY"
            )
        except ClientError as e:
            if _error_code(e) != CONFLICT:
                raise
            logger.info(f"API key {key_id} is already attached to usage plan {usage_plan_id}")


class ProvisioningManager:
    """Idempotent ensure-key / ensure-association workflow"""

    LOCK_STRIPES = 64

    def __init__(self, store: KeyManagementStore, usage_plan_id: str, sink: DiagnosticSink):
        if not usage_plan_id:
            raise ValueError("usage_plan_id is required for provisioning")
        self.store = store
        self.usage_plan_id = usage_plan_id
        self.sink = sink
        self._locks = [threading.Lock() for _ in range(self.LOCK_STRIPES)]

    def ensure_provisioned(self, client_id: str) -> ProvisioningResult:
        """
        Make sure ``client_id`` has an API key attached to the usage plan.

        Never raises; failures are recorded and returned in the result.
        """
        try:
            with self._lock_for(client_id):
                key = self._ensure_key(client_id)
                self._ensure_association(key)
        except Exception as e:
            self.sink.record(
                {
                    "level": "ERROR",
                    "title": "FailedToEnsureApiKey",
                    "details": "Failed to ensure that an api key exists",
                    "clientId": client_id,
                    "usagePlanId": self.usage_plan_id,
                    "error": e,
                }
            )
            return ProvisioningResult(client_id=client_id, error=e)
        return ProvisioningResult(client_id=client_id, key=key)

    def _lock_for(self, client_id: str) -> threading.Lock:
        if not isinstance(client_id, str) or not client_id:
            raise ProvisioningError(f"Invalid client id: {client_id!r}")
        return self._locks[zlib.crc32(client_id.encode("utf-8")) % self.LOCK_STRIPES]

    def _ensure_key(self, client_id: str) -> ClientKey:
        key = None
        try:
            key = self.store.find_key(client_id)
        except Exception as e:
            self.sink.record(
                {
                    "level": "ERROR",
                    "title": "FailedToGetApiKeys",
                    "details": "An error occurred while fetching api keys",
                    "clientId": client_id,
                    "error": e,
                }
            )

        if key is not None and key.id:
            return key

        self.sink.record(
            {
                "level": "INFO",
                "title": "ApiKeyNotFound",
                "details": "No api key has been found, attempting to create one.",
                "clientId": client_id,
            }
        )
        return self.store.create_key(client_id)

    def _ensure_association(self, key: ClientKey):
        if self.store.find_association(key.id, self.usage_plan_id):
            return
        self.sink.record(
            {
                "level": "INFO",
                "title": "UsagePlanKeyNotFound",
                "details": "Api key is not attached to the usage plan, attaching it.",
                "clientId": key.client_id,
                "keyId": key.id,
                "usagePlanId": self.usage_plan_id,
            }
        )
        self.store.create_association(key.id, self.usage_plan_id)
