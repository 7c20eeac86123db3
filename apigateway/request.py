"""HTTP request abstraction and the gateway event -> request builder."""

import base64
import binascii
import dataclasses
import io
import re
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional
from urllib.parse import SplitResult, parse_qs, unquote, urlsplit

from multidict import CIMultiDict

from apigateway.context import TRACE_ID_KEY, Context, with_event
from apigateway.errors import BodyDecodeError, ConstructionError, PathParseError
from apigateway.events import InboundEvent
from apigateway.headers import add_header, set_header

_METHOD_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_DEFAULT_ENDPOINT_RE = re.compile(
    r"\.execute-api\.[a-z0-9-]+\.amazonaws\.com(\.cn)?$", re.IGNORECASE
)


@dataclass
class Request:
    """An inbound HTTP request as seen by a handler."""

    method: str
    url: SplitResult
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: BinaryIO = field(default_factory=io.BytesIO)
    content_length: int = 0
    remote_addr: str = ""
    host: str = ""
    context: Context = field(default_factory=Context.background)

    @property
    def path(self) -> str:
        """Decoded URL path."""
        return unquote(self.url.path)

    @property
    def query(self) -> str:
        """Encoded query string, without the leading ``?``."""
        return self.url.query

    @property
    def request_uri(self) -> str:
        """Path and query as they would appear on the request line."""
        uri = self.url.path or "/"
        if self.url.query:
            uri += "?" + self.url.query
        return uri

    def query_params(self) -> Dict[str, List[str]]:
        return parse_qs(self.url.query, keep_blank_values=True)

    def cookies(self) -> Dict[str, str]:
        """Cookies parsed from every ``Cookie`` header."""
        out: Dict[str, str] = {}
        for header in self.headers.getall("Cookie", []):
            for part in header.split(";"):
                name, sep, value = part.strip().partition("=")
                if not sep or not name.strip():
                    continue
                out[name.strip()] = value.strip()
        return out

    def with_context(self, ctx: Context) -> "Request":
        """Shallow copy of the request carrying ``ctx``."""
        return dataclasses.replace(self, context=ctx)


def _parse_path(raw_path: str) -> SplitResult:
    if _CONTROL_RE.search(raw_path):
        raise ValueError(f"invalid control character in URL {raw_path!r}")
    parts = urlsplit(raw_path)
    bad = _BAD_ESCAPE_RE.search(parts.path)
    if bad:
        raise ValueError(f"invalid URL escape {parts.path[bad.start():bad.start() + 3]!r}")
    return parts


def _strip_base_path(path: str, base_path: str) -> str:
    if not base_path:
        return path
    prefix = "/" + base_path
    if path != prefix and not path.startswith(prefix + "/"):
        return path
    path = path[len(prefix):]
    if path.startswith("//"):
        path = path[1:]
    return path or "/"


def is_default_endpoint(host: str) -> bool:
    """Whether ``host`` is the default ``execute-api`` endpoint of an API."""
    hostname = host.rsplit(":", 1)[0] if host.count(":") == 1 else host
    return bool(_DEFAULT_ENDPOINT_RE.search(hostname))


def _encode_text(text: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates from JSON escapes become U+FFFD.
        repaired = text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")
        return repaired.encode("utf-8")


def _decode_body(event: InboundEvent) -> bytes:
    if not event.is_base64_encoded:
        return _encode_text(event.body)
    try:
        # Line breaks in wrapped base64 are ignored.
        return base64.b64decode(event.body.replace("\r", "").replace("\n", ""), validate=True)
    except (binascii.Error, ValueError) as e:
        raise BodyDecodeError(str(e)) from e


def build_request(
    event: InboundEvent,
    context: Optional[Context] = None,
    *,
    base_path: str = "",
    prepend_stage: bool = True,
) -> Request:
    """Build an HTTP request from a decoded gateway event.

    Args:
        event: Decoded v1 or v2 event
        context: Ambient context of the invocation; may carry a trace id
        base_path: Path prefix (without slashes) to strip, e.g. the base
            path of a custom domain mapping
        prepend_stage: Prepend the stage segment for v1 events served by the
            default execute-api endpoint

    Returns:
        Fully populated Request

    Raises:
        PathParseError: If the path is not a valid URL path
        BodyDecodeError: If a base64 flagged body is not valid base64
        ConstructionError: If the method is not a valid HTTP token
    """
    headers: CIMultiDict = CIMultiDict()
    for key, value in event.header_items():
        add_header(headers, key, value)
    host = headers.get("Host", "")

    # path
    raw_path = _strip_base_path(event.request_path(), base_path)
    stage = event.stage_prefix()
    if prepend_stage and stage and is_default_endpoint(host):
        raw_path = "/" + stage + raw_path
    try:
        parts = _parse_path(raw_path)
    except ValueError as e:
        raise PathParseError(str(e)) from e

    # querystring
    query = event.query_string(parts.query)

    body = _decode_body(event)

    method = (event.request_method() or "GET").upper()
    if not _METHOD_RE.match(method):
        raise ConstructionError(f"invalid method {method!r}")

    if not headers.get("Content-Length") and body:
        set_header(headers, "Content-Length", str(len(body)))

    set_header(headers, "X-Request-Id", event.request_context.request_id)
    set_header(headers, "X-Stage", event.request_context.stage)

    ctx = context or Context.background()
    trace_id = ctx.value(TRACE_ID_KEY)
    if trace_id:
        set_header(headers, "X-Amzn-Trace-Id", str(trace_id))

    return Request(
        method=method,
        url=SplitResult(scheme="", netloc=host, path=parts.path, query=query, fragment=""),
        headers=headers,
        body=io.BytesIO(body),
        content_length=len(body),
        remote_addr=event.source_ip(),
        host=host,
        context=with_event(ctx, event),
    )
