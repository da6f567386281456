"""
Verification key source backed by a remote JSON Web Key Set (JWKS).

The key set is fetched lazily and shared by every caller. Concurrent callers
that arrive while a fetch is in flight wait on the same pending future instead
of issuing their own request. The cached set is discarded whenever a fetch
fails or a requested ``kid`` is missing from it, so the next lookup refetches
a possibly rotated set.

Failures are raised, never recorded; the caller owns the diagnostic event.
"""

import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from aws_lambda_powertools import Logger
from jose import jwk
from jose.exceptions import JOSEError

from .errors import KeyNotFound, KeySetFetchFailed

logger = Logger()


@dataclass
class KeySet:
    """One fetched snapshot of the remote key set"""

    fetched_at: float
    keys: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Any, fetched_at: Optional[float] = None):
        if not isinstance(document, dict):
            raise ValueError("JWKS document is not a JSON object")
        entries = document.get("keys") or []
        if not isinstance(entries, list):
            raise ValueError("JWKS 'keys' is not a list")
        keys = {
            entry["kid"]: entry
            for entry in entries
            if isinstance(entry, dict) and entry.get("kid")
        }
        return cls(fetched_at=fetched_at or time.time(), keys=keys)

    def metadata(self) -> List[Dict[str, Any]]:
        """Public, non-secret attributes of every key for diagnostics."""
        return [
            {name: entry.get(name) for name in ("kid", "kty", "alg", "use")}
            for entry in self.keys.values()
        ]


class KeySource:
    """Resolves verification keys by ``kid`` with single-flight fetching"""

    def __init__(
        self,
        jwk_key_list_url: str,
        http_client,
        default_algorithm: str = "RS256",
    ):
        """
        Args:
            jwk_key_list_url: URL of the JWKS document
            http_client: Object with ``get(url)`` returning a response with ``json()``
            default_algorithm: Algorithm for keys that declare no ``alg`` when
                the caller names none
        """
        self.jwk_key_list_url = jwk_key_list_url
        self.http_client = http_client
        self.default_algorithm = default_algorithm
        self._lock = threading.Lock()
        self._pending: Optional[Future] = None

    def resolve_key(self, kid: Optional[str], algorithm: Optional[str] = None):
        """
        Resolve a verification key for ``kid``.

        Args:
            kid: Key id from the token header
            algorithm: Algorithm to bind the key to when its JWK declares no
                ``alg``; must already be allow-listed by the caller

        Returns:
            jose.backends key object

        Raises:
            KeySetFetchFailed: The key set could not be fetched or the key
                could not be converted
            KeyNotFound: The fetched key set has no key for ``kid``
        """
        pending = self._acquire_fetch()
        try:
            key_set = pending.result()
        except Exception as e:
            self.invalidate(pending)
            raise KeySetFetchFailed(kid, str(e)) from e

        entry = key_set.keys.get(kid) if kid else None
        if entry is None:
            self.invalidate(pending)
            raise KeyNotFound(kid, keys=key_set.metadata(), fetched_at=key_set.fetched_at)

        try:
            return jwk.construct(entry, entry.get("alg") or algorithm or self.default_algorithm)
        except (JOSEError, ValueError, TypeError) as e:
            self.invalidate(pending)
            raise KeySetFetchFailed(
                kid,
                f"key could not be converted: {e}",
                keys=key_set.metadata(),
                fetched_at=key_set.fetched_at,
            ) from e

    def invalidate(self, expected: Optional[Future] = None):
        """
        Drop the cached key set.

        When ``expected`` is given the cache is only dropped if it still holds
        that fetch, so a stale caller cannot discard a newer set.
        """
        with self._lock:
            if expected is None or self._pending is expected:
                self._pending = None

    def _acquire_fetch(self) -> Future:
        with self._lock:
            if self._pending is not None:
                return self._pending
            pending = Future()
            self._pending = pending

        # this caller owns the fetch; everyone else waits on ``pending``
        try:
            pending.set_result(self._fetch())
        except Exception as e:
            pending.set_exception(e)
        return pending

    def _fetch(self) -> KeySet:
        start_time = time.time()
        logger.info(f"Fetching JWKS from: {self.jwk_key_list_url}")
        response = self.http_client.get(self.jwk_key_list_url)
        key_set = KeySet.from_document(response.json())
        fetch_time = (time.time() - start_time) * 1000
        logger.info(
            f"Successfully fetched JWKS with {len(key_set.keys)} keys in {fetch_time:.2f}ms"
        )
        return key_set
