"""Execution context carried by each request.

The HTTP abstraction itself has no place for gateway metadata (stage, raw
identity, authorizer claims). Instead the decoded event is attached to the
request's ``Context`` under a private key and read back through the typed
accessors below. Keys are ``ContextKey`` instances compared by identity, so
handler code can add its own values without ever colliding with ours.
"""

from typing import TYPE_CHECKING, Any, Optional, Union

if TYPE_CHECKING:
    from apigateway.events import (
        HTTPRequestContext,
        InboundEvent,
        ProxyRequestContext,
    )


class ContextKey:
    """Identity-compared key for context values."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"<ContextKey {self.name}>"


class Context:
    """Immutable chain of key/value pairs.

    ``with_value`` never mutates; it returns a child context whose lookups
    fall back to the parent.
    """

    __slots__ = ("_parent", "_key", "_value")

    def __init__(
        self,
        parent: Optional["Context"] = None,
        key: Optional[ContextKey] = None,
        value: Any = None,
    ) -> None:
        self._parent = parent
        self._key = key
        self._value = value

    @classmethod
    def background(cls) -> "Context":
        """Return an empty root context."""
        return cls()

    def with_value(self, key: ContextKey, value: Any) -> "Context":
        if not isinstance(key, ContextKey):
            raise TypeError("context keys must be ContextKey instances")
        return Context(self, key, value)

    def value(self, key: ContextKey, default: Any = None) -> Any:
        ctx: Optional[Context] = self
        while ctx is not None:
            if ctx._key is key:
                return ctx._value
            ctx = ctx._parent
        return default

    def __contains__(self, key: ContextKey) -> bool:
        sentinel = object()
        return self.value(key, sentinel) is not sentinel


# Seeded by runtime adapters with the upstream X-Ray trace id.
TRACE_ID_KEY = ContextKey("x-amzn-trace-id")

_EVENT_KEY = ContextKey("apigateway.event")
_LAMBDA_CONTEXT_KEY = ContextKey("apigateway.lambda-context")


def with_event(ctx: Optional[Context], event: "InboundEvent") -> Context:
    """Return a context carrying the decoded gateway event.

    Useful when exercising handlers locally with hand-built metadata such as
    authorizer claims.
    """
    return (ctx or Context.background()).with_value(_EVENT_KEY, event)


def get_event(ctx: Optional[Context]) -> Optional["InboundEvent"]:
    """Return the gateway event stored in ``ctx``, if any."""
    if ctx is None:
        return None
    return ctx.value(_EVENT_KEY)


def request_context(
    ctx: Optional[Context],
) -> Optional[Union["ProxyRequestContext", "HTTPRequestContext"]]:
    """Return the ``requestContext`` of the gateway event stored in ``ctx``."""
    event = get_event(ctx)
    if event is None:
        return None
    return event.request_context


def with_lambda_context(ctx: Optional[Context], lambda_ctx: Any) -> Context:
    """Return a context carrying the Lambda runtime context object."""
    return (ctx or Context.background()).with_value(_LAMBDA_CONTEXT_KEY, lambda_ctx)


def lambda_context(ctx: Optional[Context]) -> Any:
    """Return the Lambda runtime context object stored in ``ctx``, if any."""
    if ctx is None:
        return None
    return ctx.value(_LAMBDA_CONTEXT_KEY)
