"""
Outbound HTTP client for platform calls.

Every call gets a request id that is logged with the request and, on failure,
with the error so calls can be correlated in the logs.
"""

import uuid
from typing import Any, Dict, Optional

import requests
from aws_lambda_powertools import Logger

logger = Logger()

INVALID_TOKEN = "Invalid token"


class PlatformClient:
    """Thin wrapper around a requests session"""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """
        Perform an HTTP call and raise on non-2xx responses.

        Args:
            method: HTTP method
            url: Absolute URL
            body: Optional JSON body
            headers: Optional request headers

        Returns:
            requests.Response

        Raises:
            ValueError: If ``url`` is empty
            requests.exceptions.RequestException: On transport or HTTP errors
        """
        request_id = str(uuid.uuid4())
        logger.info(
            "Platform Request",
            extra={"request_id": request_id, "method": method.upper(), "url": url},
        )

        if not url:
            logger.warning(
                "Platform Request Error",
                extra={"request_id": request_id, "exception": "url must be defined"},
            )
            raise ValueError('PlatformClient Error: "url" must be defined')

        try:
            response = self.session.request(
                method.upper(),
                url,
                json=body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            title = (
                "Platform call skipped due to a token error"
                if str(e) == INVALID_TOKEN
                else "Platform Response Error"
            )
            logger.info(title, extra={"request_id": request_id, "exception": str(e)})
            raise

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> requests.Response:
        return self.request("GET", url, headers=headers)

    def post(
        self, url: str, data: Any, headers: Optional[Dict[str, str]] = None
    ) -> requests.Response:
        return self.request("POST", url, body=data, headers=headers)

    def put(
        self, url: str, data: Any, headers: Optional[Dict[str, str]] = None
    ) -> requests.Response:
        return self.request("PUT", url, body=data, headers=headers)
