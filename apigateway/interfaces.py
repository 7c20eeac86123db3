"""Handler interface served by the gateway.

A handler receives the built ``Request`` and writes its answer into a
``ResponseWriter``. Anything callable with that signature can be served;
``HTTPHandler`` is the class-based form.
"""

from abc import ABC, abstractmethod
from typing import Callable, Union

from apigateway.request import Request
from apigateway.response import ResponseWriter

HandlerCallable = Callable[[Request, ResponseWriter], None]


class HTTPHandler(ABC):
    """Abstract base class for request handlers."""

    @abstractmethod
    def serve_http(self, request: Request, writer: ResponseWriter) -> None:
        """Handle one request.

        Args:
            request: Request built from the gateway event
            writer: Sink receiving status, headers, and body
        """
        pass


class HandlerFunc(HTTPHandler):
    """Adapts a plain function to ``HTTPHandler``."""

    def __init__(self, func: HandlerCallable) -> None:
        self.func = func

    def serve_http(self, request: Request, writer: ResponseWriter) -> None:
        self.func(request, writer)


def as_handler(handler: Union[HTTPHandler, HandlerCallable]) -> HTTPHandler:
    """Return ``handler`` as an ``HTTPHandler``, wrapping callables."""
    if isinstance(handler, HTTPHandler):
        return handler
    if callable(handler):
        return HandlerFunc(handler)
    raise TypeError(f"handler must be an HTTPHandler or callable, got {type(handler).__name__}")
