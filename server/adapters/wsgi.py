"""WSGI adapter: serve a PEP 3333 application through the gateway.

The environ is built from the gateway ``Request`` and the application's
status, headers, and body are written into the ``ResponseWriter``.
"""

import sys
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote_to_bytes

from apigateway.headers import header_keys
from apigateway.interfaces import HTTPHandler
from apigateway.request import Request
from apigateway.response import ResponseWriter

WSGIApp = Callable[[Dict[str, Any], Callable[..., Any]], Iterable[bytes]]

# Environ key under which applications find the gateway request
REQUEST_ENVIRON_KEY = "apigateway.request"


def _split_host(host: str, scheme: str) -> Tuple[str, str]:
    default_port = "443" if scheme == "https" else "80"
    if not host:
        return "localhost", default_port
    if host.startswith("["):
        end = host.find("]")
        name, rest = host[: end + 1], host[end + 1 :]
        return name, rest[1:] if rest.startswith(":") else default_port
    name, sep, port = host.partition(":")
    return name, port if sep and port else default_port


def build_environ(request: Request) -> Dict[str, Any]:
    """Build a WSGI environ for ``request``.

    Args:
        request: Request built from the gateway event

    Returns:
        WSGI environ dictionary
    """
    scheme = request.headers.get("X-Forwarded-Proto", "https").split(",")[0].strip() or "https"
    server_name, server_port = _split_host(request.host, scheme)

    environ: Dict[str, Any] = {
        "REQUEST_METHOD": request.method,
        "SCRIPT_NAME": "",
        # PEP 3333: native strings carrying the raw bytes as latin-1
        "PATH_INFO": unquote_to_bytes(request.url.path or "/").decode("latin-1"),
        "QUERY_STRING": request.query,
        "SERVER_NAME": server_name,
        "SERVER_PORT": server_port,
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REMOTE_ADDR": request.remote_addr,
        "CONTENT_TYPE": request.headers.get("Content-Type", ""),
        "CONTENT_LENGTH": str(request.content_length) if request.content_length else "",
        "wsgi.version": (1, 0),
        "wsgi.url_scheme": scheme,
        "wsgi.input": request.body,
        "wsgi.errors": sys.stderr,
        "wsgi.multithread": False,
        "wsgi.multiprocess": False,
        "wsgi.run_once": False,
        REQUEST_ENVIRON_KEY: request,
    }

    for key in header_keys(request.headers):
        name = key.upper().replace("-", "_")
        if name in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            continue
        separator = "; " if name == "COOKIE" else ", "
        environ["HTTP_" + name] = separator.join(request.headers.getall(key))

    return environ


class WSGIHandler(HTTPHandler):
    """Serves a WSGI application."""

    def __init__(self, app: WSGIApp) -> None:
        self.app = app

    def serve_http(self, request: Request, writer: ResponseWriter) -> None:
        state: Dict[str, Any] = {}

        def start_response(
            status: str,
            response_headers: List[Tuple[str, str]],
            exc_info: Optional[Any] = None,
        ) -> Callable[[bytes], None]:
            if exc_info is not None:
                try:
                    if writer.headers_committed:
                        raise exc_info[1].with_traceback(exc_info[2])
                finally:
                    exc_info = None
            elif "status" in state:
                raise AssertionError("start_response called twice without exc_info")

            state["status"] = int(status.split(" ", 1)[0])
            state["headers"] = list(response_headers)
            return write

        def commit() -> None:
            if writer.headers_committed:
                return
            if "status" not in state:
                raise RuntimeError("WSGI application did not call start_response")
            for key, value in state["headers"]:
                writer.add_header(key, value)
            writer.write_header(state["status"])

        def write(data: bytes) -> None:
            commit()
            writer.write(data)

        result = self.app(build_environ(request), start_response)
        try:
            for chunk in result:
                if chunk:
                    write(chunk)
            commit()
        finally:
            close = getattr(result, "close", None)
            if close is not None:
                close()
