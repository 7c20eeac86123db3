"""Run a gateway handler locally for testing (no Lambda needed).

Every incoming HTTP request is turned into an HTTP API (payload format 2.0)
event and served through the same ``Gateway`` used in Lambda, so handlers
see exactly what they would see behind API Gateway.

Usage:
    apigateway-local            # reads config.yaml / GATEWAY_CONFIG
"""

import asyncio
import base64
import json
import logging
import time
import uuid
from typing import Any, Dict

from aiohttp import web
from multidict import CIMultiDict

from apigateway.config import ConfigurationError, get_logging_config, load_config
from apigateway.errors import GatewayError
from apigateway.events import ProxyResponse
from apigateway.logging_utils import configure_json_logging
from server.invoker import Gateway, decode_response
from server.lambda_handler import load_handler

logger = logging.getLogger(__name__)

GATEWAY_APP_KEY = web.AppKey("gateway", Gateway)


def event_from_request(request: web.Request, body: bytes) -> Dict[str, Any]:
    """Build an HTTP API event from a local HTTP request.

    Args:
        request: Incoming aiohttp request
        body: Request body, already read

    Returns:
        Event document in payload format 2.0
    """
    headers: Dict[str, str] = {}
    cookies = []
    for key, value in request.headers.items():
        name = key.lower()
        if name == "cookie":
            cookies.extend(c.strip() for c in value.split(";") if c.strip())
            continue
        headers[name] = f"{headers[name]},{value}" if name in headers else value

    try:
        body_text = body.decode("utf-8")
        is_base64 = False
    except UnicodeDecodeError:
        body_text = base64.b64encode(body).decode("ascii")
        is_base64 = True

    raw_path = request.rel_url.raw_path
    peername = request.transport.get_extra_info("peername") if request.transport else None
    return {
        "version": "2.0",
        "routeKey": "$default",
        "rawPath": raw_path,
        "rawQueryString": request.rel_url.raw_query_string,
        "cookies": cookies,
        "headers": headers,
        "body": body_text,
        "isBase64Encoded": is_base64,
        "requestContext": {
            "requestId": str(uuid.uuid4()),
            "stage": "$default",
            "routeKey": "$default",
            "timeEpoch": int(time.time() * 1000),
            "http": {
                "method": request.method,
                "path": raw_path,
                "protocol": f"HTTP/{request.version.major}.{request.version.minor}",
                "sourceIp": request.remote or (peername[0] if peername else ""),
                "userAgent": request.headers.get("User-Agent", ""),
            },
        },
    }


def response_from_payload(response: ProxyResponse) -> web.Response:
    """Turn an outbound envelope into an aiohttp response."""
    headers: CIMultiDict = CIMultiDict(response.headers)
    for key, values in response.multi_value_headers.items():
        for value in values:
            headers.add(key, value)

    body = (
        base64.b64decode(response.body)
        if response.is_base64_encoded
        else response.body.encode("utf-8")
    )
    return web.Response(body=body, status=response.status_code, headers=headers)


async def handle_request(request: web.Request) -> web.Response:
    """Serve one local request through the gateway."""
    gateway = request.app[GATEWAY_APP_KEY]
    body = await request.read()
    event = event_from_request(request, body)

    try:
        payload = await asyncio.get_running_loop().run_in_executor(
            None, gateway.invoke, json.dumps(event).encode("utf-8")
        )
    except GatewayError as e:
        logger.error(f"Error translating local request: {e}", exc_info=True)
        return web.Response(text=str(e), status=502, content_type="text/plain")

    return response_from_payload(decode_response(payload))


def create_app(gateway: Gateway) -> web.Application:
    """Create the aiohttp application serving ``gateway`` on every path."""
    app = web.Application()
    app[GATEWAY_APP_KEY] = gateway
    app.router.add_route("*", "/{tail:.*}", handle_request)
    return app


async def start_server() -> None:
    """Start local HTTP server."""
    config = load_config()
    logging_config = get_logging_config(config)
    # Pretty-print JSON for better local readability
    configure_json_logging(level=logging_config["level"], pretty=True)

    if not config.handler:
        raise ConfigurationError("No handler configured. Set 'handler' in config.yaml.")

    gateway = Gateway(load_handler(config.handler), config=config)
    runner = web.AppRunner(create_app(gateway))
    await runner.setup()
    site = web.TCPSite(runner, config.local_server.host, config.local_server.port)
    await site.start()

    logger.info(
        "Local gateway running",
        extra={
            "url": f"http://{config.local_server.host}:{config.local_server.port}/",
            "handler": config.handler,
        },
    )

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


def main() -> None:
    try:
        asyncio.run(start_server())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
