"""
Diagnostic events for offline reconstruction of authorization decisions.

A diagnostic event is a flat mapping with at least ``level`` and ``title``.
Sinks are fire-and-forget: recording an event never raises into the caller.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from aws_lambda_powertools import Logger

logger = Logger()

NO_KID_SPECIFIED = "NO_KID_SPECIFIED"

# header.payload.signature -> header.payload.<sig>
_JWT_PATTERN = re.compile(
    r"(eyJ[a-zA-Z0-9_-]{5,}\.eyJ[a-zA-Z0-9_-]{5,})\.[a-zA-Z0-9_-]*", re.IGNORECASE
)


def redact_token(value: Optional[str]) -> Optional[str]:
    """Strip the signature segment from every JWT found in ``value``."""
    if not value:
        return value
    return _JWT_PATTERN.sub(lambda match: f"{match.group(1)}.<sig>", value)


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return redact_token(value)
    if isinstance(value, dict):
        return {key: _redact(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    if isinstance(value, BaseException):
        return redact_token(f"{type(value).__name__}: {value}")
    return value


class DiagnosticSink(ABC):
    """Receives structured diagnostic events"""

    @abstractmethod
    def record(self, event: Dict[str, Any]) -> None:
        """Record one event. Must not raise."""


class LoggerSink(DiagnosticSink):
    """Writes diagnostic events through a powertools Logger with redaction"""

    _LEVELS = {
        "DEBUG": "debug",
        "INFO": "info",
        "WARN": "warning",
        "WARNING": "warning",
        "ERROR": "error",
    }

    def __init__(self, target: Optional[Logger] = None):
        self.logger = target or logger

    def record(self, event: Dict[str, Any]) -> None:
        try:
            payload = _redact(dict(event))
            level = str(payload.pop("level", "INFO")).upper()
            title = payload.pop("title", "Diagnostic")
            log = getattr(self.logger, self._LEVELS.get(level, "info"))
            log(title, extra={"diagnostic": payload})
        except Exception:
            # fire-and-forget
            pass


class MemorySink(DiagnosticSink):
    """Keeps events in memory; used by tests and local debugging"""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def record(self, event: Dict[str, Any]) -> None:
        self.events.append(dict(event))

    def titles(self) -> List[str]:
        return [event.get("title") for event in self.events]

    def find(self, **criteria) -> List[Dict[str, Any]]:
        return [
            event
            for event in self.events
            if all(event.get(key) == value for key, value in criteria.items())
        ]
