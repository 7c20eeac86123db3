"""Tests for gateway event decoding."""

import json

import pytest

from apigateway.errors import DecodeError
from apigateway.events import (
    HTTPRequest,
    ProxyRequest,
    ProxyResponse,
    decode_event,
    detect_schema_version,
    encode_query,
)


class TestDetectSchemaVersion:
    """Test payload format detection."""

    def test_explicit_version_2(self):
        assert detect_schema_version({"version": "2.0"}) == "2.0"

    def test_explicit_version_1(self):
        """A 1.0 version wins even if the document looks like 2.0."""
        assert detect_schema_version({"version": "1.0", "rawPath": "/x"}) == "1.0"

    def test_raw_path_means_version_2(self):
        assert detect_schema_version({"rawPath": "/pets/luna"}) == "2.0"

    def test_http_request_context_means_version_2(self):
        assert detect_schema_version({"requestContext": {"http": {"method": "GET"}}}) == "2.0"

    def test_proxy_shape_means_version_1(self):
        assert detect_schema_version({"httpMethod": "GET", "path": "/pets"}) == "1.0"

    def test_empty_document_means_version_1(self):
        assert detect_schema_version({}) == "1.0"


class TestDecodeEvent:
    """Test decode_event."""

    def test_decodes_v2_bytes(self):
        payload = b'{"rawPath":"/pets/luna","requestContext":{"http":{"method":"POST"}}}'

        event = decode_event(payload)

        assert isinstance(event, HTTPRequest)
        assert event.raw_path == "/pets/luna"
        assert event.request_method() == "POST"

    def test_decodes_v1_document(self):
        event = decode_event(
            {
                "httpMethod": "DELETE",
                "path": "/pets/luna",
                "requestContext": {
                    "requestId": "1234",
                    "stage": "prod",
                    "identity": {"sourceIp": "1.2.3.4"},
                },
            }
        )

        assert isinstance(event, ProxyRequest)
        assert event.request_method() == "DELETE"
        assert event.request_path() == "/pets/luna"
        assert event.request_context.request_id == "1234"
        assert event.source_ip() == "1.2.3.4"

    def test_nulls_fall_back_to_defaults(self):
        """API Gateway sends null for absent maps; they become empty."""
        event = decode_event(
            json.dumps(
                {
                    "httpMethod": "GET",
                    "path": "/pets",
                    "headers": None,
                    "multiValueHeaders": None,
                    "queryStringParameters": None,
                    "multiValueQueryStringParameters": None,
                    "body": None,
                    "isBase64Encoded": None,
                }
            )
        )

        assert event.headers == {}
        assert event.query_string_parameters == {}
        assert event.body == ""
        assert event.is_base64_encoded is False

    def test_unknown_fields_are_ignored(self):
        event = decode_event({"version": "2.0", "rawPath": "/", "somethingNew": 1})
        assert isinstance(event, HTTPRequest)

    def test_pinned_schema_version(self):
        """A pinned version skips detection."""
        event = decode_event({"path": "/pets"}, schema_version="2.0")
        assert isinstance(event, HTTPRequest)
        assert event.raw_path == ""

    def test_malformed_json_raises_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_event(b"{not json")

        assert str(exc_info.value).startswith("decoding event:")

    def test_non_object_raises_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_event(b"[1, 2, 3]")

        assert "JSON object" in str(exc_info.value)

    def test_invalid_field_type_raises_decode_error(self):
        with pytest.raises(DecodeError):
            decode_event({"version": "2.0", "requestContext": "not-an-object"})


class TestUniformInterface:
    """Test the per-variant accessors used by the request builder."""

    def test_v1_query_merges_single_and_multi_values(self):
        event = ProxyRequest(
            query_string_parameters={"fields": "name,species", "order": "desc"},
            multi_value_query_string_parameters={"order": ["asc", "desc"]},
        )

        assert event.query_string() == "fields=name%2Cspecies&order=asc&order=desc"

    def test_v1_query_keeps_path_query(self):
        event = ProxyRequest(query_string_parameters={"order": "desc"})
        assert event.query_string("limit=5") == "limit=5&order=desc"

    def test_v1_headers_multi_value_supersedes_case_insensitively(self):
        event = ProxyRequest(
            headers={"X-Foo": "single", "Accept": "text/html"},
            multi_value_headers={"x-foo": ["a", "b"]},
        )

        assert event.header_items() == [("Accept", "text/html"), ("X-Foo", "a"), ("X-Foo", "b")]

    def test_v1_stage_prefix_ignores_default_stage(self):
        assert ProxyRequest(request_context={"stage": "prod"}).stage_prefix() == "prod"
        assert ProxyRequest(request_context={"stage": "$default"}).stage_prefix() == ""

    def test_v2_query_is_verbatim(self):
        event = HTTPRequest(raw_query_string="b=2&a=1%2C3")
        assert event.query_string("ignored=1") == "b=2&a=1%2C3"

    def test_v2_headers_split_on_commas_and_cookies_added(self):
        event = HTTPRequest(
            headers={"accept": "text/html, application/json"},
            cookies=["a=1", "b=2"],
        )

        assert event.header_items() == [
            ("accept", "text/html"),
            ("accept", "application/json"),
            ("Cookie", "a=1"),
            ("Cookie", "b=2"),
        ]

    def test_v2_source_ip_and_stage_prefix(self):
        event = HTTPRequest(
            request_context={"stage": "prod", "http": {"sourceIp": "9.8.7.6"}},
        )

        assert event.source_ip() == "9.8.7.6"
        assert event.stage_prefix() == ""


class TestEncodeQuery:
    """Test canonical query encoding."""

    def test_sorted_keys_and_escaping(self):
        query = encode_query({"multi_arr[]": ["arr1", "arr2"], "fields": ["name,species"]})
        assert query == "fields=name%2Cspecies&multi_arr%5B%5D=arr1&multi_arr%5B%5D=arr2"

    def test_empty(self):
        assert encode_query({}) == ""


class TestProxyResponse:
    """Test the outbound envelope model."""

    def test_to_payload_uses_wire_names(self):
        response = ProxyResponse(
            status_code=201,
            headers={"Content-Type": "application/json"},
            multi_value_headers={"Set-Cookie": ["a=1", "b=2"]},
            body="{}",
        )

        assert response.to_payload() == {
            "statusCode": 201,
            "headers": {"Content-Type": "application/json"},
            "multiValueHeaders": {"Set-Cookie": ["a=1", "b=2"]},
            "body": "{}",
            "isBase64Encoded": False,
        }
