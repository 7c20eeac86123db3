"""Errors raised while translating a gateway invocation.

Every error is fatal to the current invocation only. Each one carries a short
stage label so the runtime's failure report says which step went wrong.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for invocation translation failures."""

    stage = "invoking gateway"

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        """Initialize the error.

        Args:
            message: Description of the underlying failure
            stage: Optional override for the class-level stage label
        """
        if stage:
            self.stage = stage
        self.message = message
        super().__init__(f"{self.stage}: {message}")


class DecodeError(GatewayError):
    """Raised when the inbound envelope is not a well-formed event."""

    stage = "decoding event"


class PathParseError(GatewayError):
    """Raised when the event path cannot be parsed as a URL."""

    stage = "parsing path"


class BodyDecodeError(GatewayError):
    """Raised when a base64 flagged body is not valid base64."""

    stage = "decoding base64 body"


class ConstructionError(GatewayError):
    """Raised when the request cannot be assembled (e.g. invalid method)."""

    stage = "creating request"
