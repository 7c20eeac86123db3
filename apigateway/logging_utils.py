"""Logging utilities for the gateway.

Provides JSON logging configuration and structured, sanitized log records for
invocations.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional

from pythonjsonlogger import json as jsonlogger

from apigateway.events import ProxyResponse
from apigateway.request import Request

# Header names (or prefixes) whose values never reach the logs
SENSITIVE_HEADER_PREFIXES = [
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
    "x-auth",
    "x-token",
    "x-secret",
    "x-amz-security-token",
]

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


def configure_json_logging(level: str = "INFO", pretty: bool = False) -> None:
    """Configure the root logger to emit JSON.

    All child loggers inherit the handler, so this should run before the
    first invocation is served.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        pretty: If True, use indented JSON (for local development).
                If False, use compact JSON (for CloudWatch).
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)

    if pretty:
        formatter: logging.Formatter = _PrettyJsonFormatter()
    else:
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            timestamp=True,
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


class _PrettyJsonFormatter(logging.Formatter):
    """Indented JSON formatter for terminals.

    Long string values are truncated so a large body does not flood the
    screen.
    """

    def __init__(self, max_string_length: int = 500) -> None:
        super().__init__()
        self.max_string_length = max_string_length

    def _truncate(self, value: Any) -> Any:
        if isinstance(value, str) and len(value) > self.max_string_length:
            return value[: self.max_string_length] + f"... (truncated, {len(value)} chars)"
        if isinstance(value, dict):
            return {k: self._truncate(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._truncate(v) for v in value]
        return value

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = self._truncate(value)
        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_data, indent=2, ensure_ascii=False, default=str)


def _is_sensitive_header(key: str) -> bool:
    key_lower = key.lower()
    return any(key_lower.startswith(prefix) for prefix in SENSITIVE_HEADER_PREFIXES)


def sanitize_headers(headers: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten and redact headers for logging.

    Repeated keys (from a multimap) are joined with ", ". Sensitive headers
    are replaced with [REDACTED].

    Args:
        headers: Header mapping or multimap

    Returns:
        Plain dictionary safe to log
    """
    sanitized: Dict[str, str] = {}
    for key, value in headers.items():
        if _is_sensitive_header(key):
            sanitized[key] = "[REDACTED]"
        elif key in sanitized:
            sanitized[key] = f"{sanitized[key]}, {value}"
        else:
            sanitized[key] = str(value)
    return sanitized


def format_request_log(request: Request) -> Dict[str, Any]:
    """Structured log entry describing a built request."""
    return {
        "request_id": request.headers.get("X-Request-Id", ""),
        "stage": request.headers.get("X-Stage", ""),
        "http_method": request.method,
        "request_path": request.request_uri,
        "request_headers": sanitize_headers(request.headers),
        "remote_addr": request.remote_addr,
        "content_length": request.content_length,
    }


def format_response_log(
    request_id: str,
    response: ProxyResponse,
    duration_ms: float,
    success: bool = True,
) -> Dict[str, Any]:
    """Structured log entry describing a finalized response.

    Args:
        request_id: Gateway request ID
        response: Outbound envelope
        duration_ms: Processing duration in milliseconds
        success: Whether the invocation succeeded

    Returns:
        Dictionary with structured log data
    """
    headers: Dict[str, Any] = dict(response.headers)
    for key, values in response.multi_value_headers.items():
        headers[key] = ", ".join(values)
    return {
        "request_id": request_id,
        "response_status": response.status_code,
        "response_headers": sanitize_headers(headers),
        "response_body_length": len(response.body),
        "is_base64_encoded": response.is_base64_encoded,
        "duration_ms": round(duration_ms, 2),
        "success": success,
    }


def format_lambda_context(lambda_ctx: Optional[Any]) -> Dict[str, Any]:
    """Lambda runtime metadata worth logging, if a context object is present."""
    if lambda_ctx is None:
        return {}
    remaining = getattr(lambda_ctx, "get_remaining_time_in_millis", None)
    return {
        "aws_request_id": getattr(lambda_ctx, "aws_request_id", None),
        "lambda_function_name": getattr(lambda_ctx, "function_name", None),
        "lambda_memory_limit": getattr(lambda_ctx, "memory_limit_in_mb", None),
        "lambda_remaining_time_ms": remaining() if callable(remaining) else None,
    }
