"""API Gateway event envelopes.

Two incompatible inbound shapes reach a Lambda function behind API Gateway:
the REST API proxy event (payload format 1.0) and the HTTP API event (payload
format 2.0). Both are modeled here with pydantic and expose the same small
interface (``request_method()``, ``request_path()``, ``query_string()``,
``header_items()``, ``source_ip()``, ``stage_prefix()``) so the request
builder never has to know which one it is looking at.
"""

import json
from typing import Any, Dict, List, Literal, Tuple, Union
from urllib.parse import parse_qsl, urlencode

from multidict import CIMultiDict
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from apigateway.errors import DecodeError
from apigateway.headers import replace_header, set_header

SchemaVersion = Literal["auto", "1.0", "2.0"]


class _EventModel(BaseModel):
    """Base model for envelope documents.

    Unknown fields are ignored and JSON ``null`` values fall back to the
    field default, so partially filled events never need null checks.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class RequestIdentity(_EventModel):
    """Caller identity of a REST API proxy event."""

    source_ip: str = Field(default="", alias="sourceIp")
    user_agent: str = Field(default="", alias="userAgent")


class ProxyRequestContext(_EventModel):
    """``requestContext`` of a REST API proxy event."""

    request_id: str = Field(default="", alias="requestId")
    stage: str = ""
    account_id: str = Field(default="", alias="accountId")
    api_id: str = Field(default="", alias="apiId")
    domain_name: str = Field(default="", alias="domainName")
    resource_path: str = Field(default="", alias="resourcePath")
    http_method: str = Field(default="", alias="httpMethod")
    protocol: str = ""
    authorizer: Dict[str, Any] = Field(default_factory=dict)
    identity: RequestIdentity = Field(default_factory=RequestIdentity)


class ProxyRequest(_EventModel):
    """REST API proxy event (payload format 1.0)."""

    version: str = "1.0"
    resource: str = ""
    path: str = ""
    http_method: str = Field(default="", alias="httpMethod")
    headers: Dict[str, str] = Field(default_factory=dict)
    multi_value_headers: Dict[str, List[str]] = Field(
        default_factory=dict, alias="multiValueHeaders"
    )
    query_string_parameters: Dict[str, str] = Field(
        default_factory=dict, alias="queryStringParameters"
    )
    multi_value_query_string_parameters: Dict[str, List[str]] = Field(
        default_factory=dict, alias="multiValueQueryStringParameters"
    )
    path_parameters: Dict[str, str] = Field(default_factory=dict, alias="pathParameters")
    stage_variables: Dict[str, str] = Field(default_factory=dict, alias="stageVariables")
    body: str = ""
    is_base64_encoded: bool = Field(default=False, alias="isBase64Encoded")
    request_context: ProxyRequestContext = Field(
        default_factory=ProxyRequestContext, alias="requestContext"
    )

    def request_method(self) -> str:
        return self.http_method

    def request_path(self) -> str:
        return self.path

    def query_string(self, base_query: str = "") -> str:
        """Merge the query parameters into a canonical query string.

        Parameters already present on the path come first, single-value
        parameters overwrite them, and multi-value parameters fully replace
        any same-key entry.

        Args:
            base_query: Query string found on the event path, if any

        Returns:
            Encoded query string with keys in sorted order
        """
        params: Dict[str, List[str]] = {}
        for key, value in parse_qsl(base_query, keep_blank_values=True):
            params.setdefault(key, []).append(value)
        for key, value in self.query_string_parameters.items():
            params[key] = [value]
        for key, values in self.multi_value_query_string_parameters.items():
            params[key] = list(values)
        return encode_query(params)

    def header_items(self) -> List[Tuple[str, str]]:
        """Header pairs, with multi-value headers superseding single ones."""
        headers: CIMultiDict = CIMultiDict()
        for key, value in self.headers.items():
            set_header(headers, key, value)
        for key, values in self.multi_value_headers.items():
            replace_header(headers, key, values)
        return list(headers.items())

    def source_ip(self) -> str:
        return self.request_context.identity.source_ip

    def stage_prefix(self) -> str:
        # The default execute-api endpoint serves /{stage}/... but the
        # event path omits the stage segment.
        stage = self.request_context.stage
        return "" if stage == "$default" else stage


class HTTPDescription(_EventModel):
    """``requestContext.http`` of an HTTP API event."""

    method: str = ""
    path: str = ""
    protocol: str = ""
    source_ip: str = Field(default="", alias="sourceIp")
    user_agent: str = Field(default="", alias="userAgent")


class HTTPRequestContext(_EventModel):
    """``requestContext`` of an HTTP API event."""

    request_id: str = Field(default="", alias="requestId")
    stage: str = ""
    account_id: str = Field(default="", alias="accountId")
    api_id: str = Field(default="", alias="apiId")
    domain_name: str = Field(default="", alias="domainName")
    route_key: str = Field(default="", alias="routeKey")
    time_epoch: int = Field(default=0, alias="timeEpoch")
    authorizer: Dict[str, Any] = Field(default_factory=dict)
    http: HTTPDescription = Field(default_factory=HTTPDescription)


class HTTPRequest(_EventModel):
    """HTTP API event (payload format 2.0)."""

    version: str = "2.0"
    route_key: str = Field(default="", alias="routeKey")
    raw_path: str = Field(default="", alias="rawPath")
    raw_query_string: str = Field(default="", alias="rawQueryString")
    cookies: List[str] = Field(default_factory=list)
    headers: Dict[str, str] = Field(default_factory=dict)
    query_string_parameters: Dict[str, str] = Field(
        default_factory=dict, alias="queryStringParameters"
    )
    path_parameters: Dict[str, str] = Field(default_factory=dict, alias="pathParameters")
    stage_variables: Dict[str, str] = Field(default_factory=dict, alias="stageVariables")
    body: str = ""
    is_base64_encoded: bool = Field(default=False, alias="isBase64Encoded")
    request_context: HTTPRequestContext = Field(
        default_factory=HTTPRequestContext, alias="requestContext"
    )

    def request_method(self) -> str:
        return self.request_context.http.method

    def request_path(self) -> str:
        return self.raw_path

    def query_string(self, base_query: str = "") -> str:
        # Already percent-encoded by the gateway; used verbatim.
        return self.raw_query_string

    def header_items(self) -> List[Tuple[str, str]]:
        """Header pairs with comma-joined values split into repeated entries.

        Surrounding whitespace is trimmed from each part, so ``"a, b"`` gives
        ``"a"`` and ``"b"`` rather than keeping the leading space of ``" b"``.
        The split is lossy for a value that legitimately contains a comma
        (``Date``, ``Expires``); the gateway does not preserve the original
        boundaries, so there is nothing better to split on.
        """
        items: List[Tuple[str, str]] = []
        for key, joined in self.headers.items():
            for value in joined.split(","):
                items.append((key, value.strip()))
        for cookie in self.cookies:
            items.append(("Cookie", cookie))
        return items

    def source_ip(self) -> str:
        return self.request_context.http.source_ip

    def stage_prefix(self) -> str:
        # rawPath already carries the stage segment when there is one.
        return ""


InboundEvent = Union[ProxyRequest, HTTPRequest]


class ProxyResponse(BaseModel):
    """Outbound response envelope shared by both payload formats."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode")
    headers: Dict[str, str] = Field(default_factory=dict)
    multi_value_headers: Dict[str, List[str]] = Field(
        default_factory=dict, alias="multiValueHeaders"
    )
    body: str = ""
    is_base64_encoded: bool = Field(default=False, alias="isBase64Encoded")

    def to_payload(self) -> Dict[str, Any]:
        """Response as the dictionary the Lambda runtime serializes."""
        return self.model_dump(by_alias=True)


def encode_query(params: Dict[str, List[str]]) -> str:
    """Encode query parameters sorted by key, keeping value order."""
    items = [(key, value) for key in sorted(params) for value in params[key]]
    return urlencode(items)


def detect_schema_version(data: Dict[str, Any]) -> str:
    """Work out which payload format a decoded event document uses.

    Args:
        data: Decoded event document

    Returns:
        "1.0" or "2.0"
    """
    version = str(data.get("version") or "")
    if version.startswith("2"):
        return "2.0"
    if version.startswith("1"):
        return "1.0"

    request_context = data.get("requestContext")
    if "rawPath" in data or (
        isinstance(request_context, dict) and "http" in request_context
    ):
        return "2.0"
    return "1.0"


def decode_event(
    payload: Union[bytes, bytearray, str, Dict[str, Any]],
    schema_version: SchemaVersion = "auto",
) -> InboundEvent:
    """Decode an inbound envelope into its typed event.

    Args:
        payload: Raw JSON bytes/text, or an already decoded document
        schema_version: "auto" to detect the format, or "1.0"/"2.0" to pin it

    Returns:
        ProxyRequest for payload format 1.0, HTTPRequest for 2.0

    Raises:
        DecodeError: If the payload is not a well-formed event
    """
    if isinstance(payload, (bytes, bytearray, str)):
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(str(e)) from e
    else:
        data = payload

    if not isinstance(data, dict):
        raise DecodeError(f"event must be a JSON object, got {type(data).__name__}")

    version = detect_schema_version(data) if schema_version == "auto" else schema_version
    model = HTTPRequest if version == "2.0" else ProxyRequest

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"invalid {version} event: {e}") from e
