"""
EMS API Client - Request Logging

Structured, redacted logging of EMS API traffic. Bearer tokens, proxy
credentials and the credential fields of the token exchange form never reach
the log output.
"""

import json
import logging
from typing import Any, Mapping, Optional

from ..shared.constants import REDACTED, SENSITIVE_FIELDS, SENSITIVE_HEADERS

logger = logging.getLogger("ems-api")


def redact_headers(headers: Optional[Mapping[str, str]]) -> dict:
    if not headers:
        return {}
    return {
        name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def redact_data(data: Any) -> Any:
    """Mask credential fields in a form or JSON payload, recursively."""
    if isinstance(data, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_FIELDS else redact_data(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact_data(item) for item in data]
    return data


class RequestResponseLogger:
    """Logs one JSON line per request and per response."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log_request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        data: Optional[Any] = None,
        operation: str = "unknown",
    ):
        """Log an outgoing request.

        Mapping and list payloads are logged with credential fields masked.
        Other payloads are only flagged as present.

        Args:
            method: HTTP method
            url: Request URL
            headers: Request headers
            data: Form or JSON payload
            operation: Operation name for context
        """
        request = {
            "method": method,
            "url": url,
            "headers": redact_headers(headers),
            "has_data": bool(data),
        }
        if isinstance(data, (Mapping, list, tuple)):
            request["data"] = redact_data(data)

        log_data = {"operation": operation, "request": request}
        self.logger.info(f"API Request: {json.dumps(log_data, default=str)}")

    def log_response(
        self,
        status_code: int,
        response_size: Optional[int] = None,
        duration_ms: Optional[float] = None,
        operation: str = "unknown",
        error: Optional[Exception] = None,
    ):
        """Log a response, at WARNING level unless the status is 2xx.

        A status code of 0 stands for a request that never got an answer.
        """
        success = 200 <= status_code < 300
        log_data = {
            "operation": operation,
            "response": {
                "status_code": status_code,
                "response_size": response_size,
                "duration_ms": duration_ms,
                "success": success,
                "has_error": error is not None,
            },
        }
        if error is not None:
            log_data["error"] = str(error)

        self.logger.log(
            logging.INFO if success else logging.WARNING,
            f"API Response: {json.dumps(log_data)}",
        )


request_logger = RequestResponseLogger(logger)
