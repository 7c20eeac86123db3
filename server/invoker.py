"""Invocation shim serving an HTTP handler behind API Gateway.

One invocation is: decode the event, build the request, call the handler
once with a fresh ``ResponseWriter``, finalize, and encode the outbound
envelope. Nothing is shared between invocations except the handler and the
(read-only) configuration.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Sequence, Union

from apigateway.config import GatewayConfig
from apigateway.context import Context
from apigateway.errors import GatewayError
from apigateway.events import ProxyResponse, decode_event
from apigateway.interfaces import HandlerCallable, HTTPHandler, as_handler
from apigateway.logging_utils import format_request_log, format_response_log
from apigateway.request import build_request
from apigateway.response import ResponseWriter

logger = logging.getLogger(__name__)

InvokeFunc = Callable[[bytes, Optional[Context]], bytes]
Decorator = Callable[[Callable[..., Any]], Callable[..., Any]]


class Gateway:
    """Wraps an HTTP handler so it can be invoked with gateway events."""

    def __init__(
        self,
        handler: Union[HTTPHandler, HandlerCallable],
        *,
        config: Optional[GatewayConfig] = None,
        decorators: Sequence[Decorator] = (),
    ) -> None:
        """Initialize the gateway.

        Args:
            handler: HTTPHandler, or a callable taking (request, writer)
            config: Gateway configuration; defaults apply when omitted
            decorators: Wrappers applied, in order, to ``invoke`` by
                ``handler_func``
        """
        self.handler = as_handler(handler)
        self.config = config or GatewayConfig()
        self.decorators = list(decorators)

    def handler_func(self) -> InvokeFunc:
        """Return ``invoke`` wrapped by the configured decorators."""
        func: InvokeFunc = self.invoke
        for decorator in self.decorators:
            func = decorator(func)
        return func

    def invoke(self, payload: bytes, context: Optional[Context] = None) -> bytes:
        """Serve one raw event payload.

        Args:
            payload: JSON encoded gateway event
            context: Ambient invocation context

        Returns:
            JSON encoded outbound envelope

        Raises:
            GatewayError: If the event cannot be decoded or turned into a
                request; the handler is not invoked
        """
        response = self._serve(payload, context)
        return response.model_dump_json(by_alias=True).encode("utf-8")

    def invoke_event(
        self, event: Dict[str, Any], context: Optional[Context] = None
    ) -> Dict[str, Any]:
        """Serve one already decoded event document.

        Raises:
            GatewayError: Same conditions as ``invoke``
        """
        return self._serve(event, context).to_payload()

    def _serve(self, payload: Any, context: Optional[Context]) -> ProxyResponse:
        start_time = time.perf_counter()

        try:
            event = decode_event(payload, self.config.schema_version)
            request = build_request(
                event,
                context,
                base_path=self.config.base_path,
                prepend_stage=self.config.prepend_stage,
            )
        except GatewayError as e:
            logger.error(
                f"Failed to translate gateway event: {e}",
                extra={"error_type": type(e).__name__, "error_stage": e.stage},
            )
            raise

        request_id = event.request_context.request_id
        logger.debug("Incoming gateway request", extra=format_request_log(request))

        writer = ResponseWriter()
        self.handler.serve_http(request, writer)
        response = writer.end()

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Gateway request processed",
            extra=format_response_log(request_id, response, duration_ms),
        )
        return response


def decode_response(payload: bytes) -> ProxyResponse:
    """Parse an encoded outbound envelope back into a ProxyResponse."""
    return ProxyResponse.model_validate(json.loads(payload))
