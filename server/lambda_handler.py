"""Deployable AWS Lambda entry point.

Point the function's handler setting at ``server.lambda_handler.handler``
and name the HTTP handler to serve in the configuration (``handler:
"package.module:attribute"``), either through the ``GATEWAY_CONFIG``
environment variable or a bundled ``config.yaml``.
"""

import importlib
import logging
from typing import Any, Dict, Optional

from apigateway.config import ConfigurationError, GatewayConfig, get_logging_config, load_config
from apigateway.interfaces import HTTPHandler, as_handler
from apigateway.logging_utils import configure_json_logging
from server.adapters.aws_lambda import LambdaContext, LambdaHandler, make_lambda_handler

logger = logging.getLogger(__name__)

# Global variables for Lambda container reuse
_config: Optional[GatewayConfig] = None
_lambda_handler: Optional[LambdaHandler] = None


def _load_config() -> GatewayConfig:
    """Load configuration once per container and configure logging with it."""
    global _config

    if _config is not None:
        return _config

    _config = load_config()
    configure_json_logging(**get_logging_config(_config))
    return _config


def load_handler(import_path: str) -> HTTPHandler:
    """Import the HTTP handler named by ``package.module:attribute``.

    Args:
        import_path: Module path and attribute separated by a colon

    Returns:
        The handler, wrapped as HTTPHandler when it is a plain callable

    Raises:
        ConfigurationError: If the module or attribute cannot be loaded
    """
    module_path, _, attribute = import_path.partition(":")
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigurationError(f"Failed to import handler module {module_path}: {e}") from e

    try:
        target = getattr(module, attribute)
    except AttributeError:
        raise ConfigurationError(
            f"Handler module {module_path} has no attribute {attribute!r}"
        ) from None

    try:
        return as_handler(target)
    except TypeError as e:
        raise ConfigurationError(f"Invalid handler {import_path}: {e}") from e


def get_lambda_handler() -> LambdaHandler:
    """Get or create the Lambda handler for this container (warm starts)."""
    global _lambda_handler

    if _lambda_handler is not None:
        return _lambda_handler

    config = _load_config()
    if not config.handler:
        raise ConfigurationError(
            "No handler configured. Set 'handler: package.module:attribute' "
            "in GATEWAY_CONFIG or config.yaml."
        )

    _lambda_handler = make_lambda_handler(load_handler(config.handler), config=config)
    logger.info("Gateway initialized", extra={"handler": config.handler})
    return _lambda_handler


def handler(event: Dict[str, Any], context: Optional[LambdaContext]) -> Dict[str, Any]:
    """AWS Lambda handler function.

    Args:
        event: API Gateway event
        context: Lambda context

    Returns:
        API Gateway response dictionary
    """
    return get_lambda_handler()(event, context)
