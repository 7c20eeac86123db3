"""Tests for the request execution context."""

import pytest

from apigateway.context import (
    Context,
    ContextKey,
    get_event,
    lambda_context,
    request_context,
    with_event,
    with_lambda_context,
)
from apigateway.events import ProxyRequest


class TestContext:
    """Test the immutable context chain."""

    def test_background_is_empty(self):
        key = ContextKey("k")
        assert Context.background().value(key) is None
        assert key not in Context.background()

    def test_with_value_does_not_mutate_parent(self):
        key = ContextKey("k")
        parent = Context.background()

        child = parent.with_value(key, 1)

        assert child.value(key) == 1
        assert parent.value(key) is None

    def test_child_shadows_parent(self):
        key = ContextKey("k")
        ctx = Context.background().with_value(key, 1).with_value(key, 2)
        assert ctx.value(key) == 2

    def test_keys_compare_by_identity(self):
        first = ContextKey("same")
        second = ContextKey("same")

        ctx = Context.background().with_value(first, "a")

        assert ctx.value(second, "missing") == "missing"
        assert first in ctx
        assert second not in ctx

    def test_none_is_a_stored_value(self):
        key = ContextKey("k")
        ctx = Context.background().with_value(key, None)
        assert key in ctx

    def test_rejects_plain_keys(self):
        with pytest.raises(TypeError):
            Context.background().with_value("k", 1)


class TestAccessors:
    """Test the gateway metadata accessors."""

    def test_event_round_trip(self):
        event = ProxyRequest(request_context={"stage": "prod", "requestId": "abc"})

        ctx = with_event(None, event)

        assert get_event(ctx) is event
        assert request_context(ctx).request_id == "abc"

    def test_missing_event(self):
        assert get_event(None) is None
        assert get_event(Context.background()) is None
        assert request_context(Context.background()) is None

    def test_lambda_context(self):
        marker = object()
        ctx = with_lambda_context(Context.background(), marker)

        assert lambda_context(ctx) is marker
        assert lambda_context(None) is None
