"""AWS Lambda adapter for the gateway.

The Python Lambda runtime hands the function an already decoded event
dictionary plus a context object, and serializes whatever dictionary comes
back. This adapter seeds the invocation context from the runtime and serves
the event through a ``Gateway``.
"""

import logging
import os
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Union

from apigateway.config import GatewayConfig
from apigateway.context import TRACE_ID_KEY, Context, with_lambda_context
from apigateway.errors import GatewayError
from apigateway.interfaces import HandlerCallable, HTTPHandler
from apigateway.logging_utils import format_lambda_context
from server.invoker import Decorator, Gateway

logger = logging.getLogger(__name__)

TRACE_ID_ENV_VAR = "_X_AMZN_TRACE_ID"


class LambdaContext(Protocol):
    """Protocol for AWS Lambda context object.

    This defines the expected interface for Lambda context objects,
    which provide runtime information about the Lambda execution environment.
    """

    aws_request_id: str
    function_name: Optional[str]
    memory_limit_in_mb: Optional[int]


LambdaHandler = Callable[[Dict[str, Any], Optional[LambdaContext]], Dict[str, Any]]


def invocation_context(lambda_ctx: Optional[LambdaContext]) -> Context:
    """Build the ambient context for one Lambda invocation.

    Carries the runtime context object and, when the runtime exported one,
    the X-Ray trace id.
    """
    ctx = Context.background()
    if lambda_ctx is not None:
        ctx = with_lambda_context(ctx, lambda_ctx)
    trace_id = os.environ.get(TRACE_ID_ENV_VAR)
    if trace_id:
        ctx = ctx.with_value(TRACE_ID_KEY, trace_id)
    return ctx


def make_lambda_handler(
    handler: Union[HTTPHandler, HandlerCallable, Gateway],
    *,
    config: Optional[GatewayConfig] = None,
    decorators: Sequence[Decorator] = (),
) -> LambdaHandler:
    """Create a Lambda entry point serving ``handler``.

    Args:
        handler: HTTP handler to serve, or a ready Gateway
        config: Gateway configuration (ignored when a Gateway is given)
        decorators: Wrappers applied, in order, to the returned function

    Returns:
        Function with the ``(event, context)`` signature Lambda expects
    """
    gateway = (
        handler
        if isinstance(handler, Gateway)
        else Gateway(handler, config=config)
    )

    def lambda_handler(
        event: Dict[str, Any], context: Optional[LambdaContext]
    ) -> Dict[str, Any]:
        """AWS Lambda handler function.

        Args:
            event: API Gateway event (payload format 1.0 or 2.0)
            context: Lambda context object

        Returns:
            API Gateway response dictionary

        Raises:
            GatewayError: If the event cannot be translated; Lambda reports
                it as the invocation's error
        """
        lambda_metadata = format_lambda_context(context)
        logger.info("Lambda invocation started", extra=lambda_metadata)

        try:
            response = gateway.invoke_event(event, invocation_context(context))
        except GatewayError as e:
            logger.error(
                f"Error in Lambda handler: {e}",
                extra={**lambda_metadata, "error_type": type(e).__name__},
            )
            raise

        logger.info(
            "Lambda invocation completed",
            extra={**lambda_metadata, "status_code": response["statusCode"]},
        )
        return response

    entry: LambdaHandler = lambda_handler
    for decorator in decorators:
        entry = decorator(entry)
    return entry
