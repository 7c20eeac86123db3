"""Tests for the WSGI adapter."""

import sys

import pytest

from apigateway.events import HTTPRequest, ProxyRequest
from apigateway.request import build_request
from apigateway.response import ResponseWriter
from server.adapters.wsgi import REQUEST_ENVIRON_KEY, WSGIHandler, build_environ
from server.invoker import Gateway, decode_response


def serve(app, event):
    writer = ResponseWriter()
    WSGIHandler(app).serve_http(build_request(event), writer)
    return writer.end()


class TestBuildEnviron:
    """Test build_environ."""

    def test_basic_environ(self):
        request = build_request(
            ProxyRequest(
                http_method="POST",
                path="/pets/tobi%20jr",
                query_string_parameters={"order": "desc"},
                headers={
                    "Host": "api.example.com",
                    "Content-Type": "application/json",
                    "X-Forwarded-Proto": "http",
                    "Accept": "text/html",
                },
                body="{}",
                request_context={"identity": {"sourceIp": "1.2.3.4"}},
            )
        )

        environ = build_environ(request)

        assert environ["REQUEST_METHOD"] == "POST"
        assert environ["PATH_INFO"] == "/pets/tobi jr"
        assert environ["QUERY_STRING"] == "order=desc"
        assert environ["SERVER_NAME"] == "api.example.com"
        assert environ["SERVER_PORT"] == "80"
        assert environ["wsgi.url_scheme"] == "http"
        assert environ["REMOTE_ADDR"] == "1.2.3.4"
        assert environ["CONTENT_TYPE"] == "application/json"
        assert environ["CONTENT_LENGTH"] == "2"
        assert environ["HTTP_ACCEPT"] == "text/html"
        assert "HTTP_CONTENT_TYPE" not in environ
        assert environ["wsgi.input"].read() == b"{}"
        assert environ[REQUEST_ENVIRON_KEY] is request
        assert environ["wsgi.errors"] is sys.stderr

    def test_defaults_without_host(self):
        environ = build_environ(build_request(ProxyRequest(path="/")))

        assert environ["SERVER_NAME"] == "localhost"
        assert environ["SERVER_PORT"] == "443"
        assert environ["wsgi.url_scheme"] == "https"
        assert environ["CONTENT_LENGTH"] == ""

    def test_host_with_port(self):
        environ = build_environ(
            build_request(ProxyRequest(path="/", headers={"Host": "localhost:8000"}))
        )

        assert environ["SERVER_NAME"] == "localhost"
        assert environ["SERVER_PORT"] == "8000"

    def test_repeated_headers_joined(self):
        request = build_request(
            HTTPRequest(
                raw_path="/",
                headers={"accept": "a/b,c/d"},
                cookies=["a=1", "b=2"],
            )
        )

        environ = build_environ(request)

        assert environ["HTTP_ACCEPT"] == "a/b, c/d"
        assert environ["HTTP_COOKIE"] == "a=1; b=2"


class TestWSGIHandler:
    """Test WSGIHandler."""

    def test_simple_app(self):
        def app(environ, start_response):
            start_response("201 Created", [("Content-Type", "application/json")])
            return [b'{"path": "', environ["PATH_INFO"].encode("latin-1"), b'"}']

        response = serve(app, ProxyRequest(path="/pets"))

        assert response.status_code == 201
        assert response.headers["Content-Type"] == "application/json"
        assert response.body == '{"path": "/pets"}'

    def test_repeated_response_headers(self):
        def app(environ, start_response):
            start_response(
                "200 OK",
                [("Content-Type", "text/plain"), ("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")],
            )
            return [b"ok"]

        response = serve(app, ProxyRequest(path="/"))

        assert response.multi_value_headers == {"Set-Cookie": ["a=1", "b=2"]}

    def test_empty_body_still_commits_status(self):
        def app(environ, start_response):
            start_response("204 No Content", [])
            return []

        response = serve(app, ProxyRequest(path="/"))

        assert response.status_code == 204
        assert response.body == ""

    def test_write_callable(self):
        def app(environ, start_response):
            write = start_response("200 OK", [("Content-Type", "text/plain")])
            write(b"hello ")
            return [b"world"]

        assert serve(app, ProxyRequest(path="/")).body == "hello world"

    def test_close_is_called(self):
        closed = []

        class Body:
            def __iter__(self):
                yield b"ok"

            def close(self):
                closed.append(True)

        def app(environ, start_response):
            start_response("200 OK", [("Content-Type", "text/plain")])
            return Body()

        serve(app, ProxyRequest(path="/"))

        assert closed == [True]

    def test_start_response_not_called(self):
        def app(environ, start_response):
            return [b"oops"]

        with pytest.raises(RuntimeError):
            serve(app, ProxyRequest(path="/"))

    def test_start_response_twice_without_exc_info(self):
        def app(environ, start_response):
            start_response("200 OK", [])
            start_response("500 Internal Server Error", [])
            return []

        with pytest.raises(AssertionError):
            serve(app, ProxyRequest(path="/"))

    def test_error_replaces_uncommitted_response(self):
        def app(environ, start_response):
            start_response("200 OK", [("Content-Type", "text/plain")])
            try:
                raise ValueError("boom")
            except ValueError:
                start_response("500 Internal Server Error", [("Content-Type", "text/plain")], sys.exc_info())
            return [b"error"]

        response = serve(app, ProxyRequest(path="/"))

        assert response.status_code == 500
        assert response.body == "error"

    def test_error_after_commit_reraises(self):
        def app(environ, start_response):
            write = start_response("200 OK", [("Content-Type", "text/plain")])
            write(b"partial")
            try:
                raise ValueError("boom")
            except ValueError:
                start_response("500 Internal Server Error", [], sys.exc_info())
            return []

        with pytest.raises(ValueError, match="boom"):
            serve(app, ProxyRequest(path="/"))

    def test_through_gateway(self):
        def app(environ, start_response):
            start_response("200 OK", [("Content-Type", "text/plain")])
            return [environ["REQUEST_METHOD"].encode("ascii")]

        gateway = Gateway(WSGIHandler(app))
        response = decode_response(
            gateway.invoke(b'{"rawPath":"/","requestContext":{"http":{"method":"PUT"}}}')
        )

        assert response.body == "PUT"
