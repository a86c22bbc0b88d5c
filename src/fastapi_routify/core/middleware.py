"""Middleware primitives for path routing.

Provides the per-method middleware stack used while composing routes and
the runtime chain that wraps a handler with ``(request, call_next)``
middleware. Zero framework dependencies.
"""

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from fastapi_routify.core.parser import HttpMethod

Frame = tuple[Callable[..., Any], ...]


class MiddlewareStack:
    """Middleware frames in scope, per HTTP method.

    A frame is the ordered batch of callables contributed by one middleware
    file. Frames are pushed when a middleware scope is entered and popped
    when it is left, so the stack after visiting a subtree equals the stack
    before it.
    """

    def __init__(self) -> None:
        self._frames: dict[HttpMethod, list[Frame]] = {}

    def push(self, method: HttpMethod, frame: Sequence[Callable[..., Any]]) -> None:
        self._frames.setdefault(method, []).append(tuple(frame))

    def pop(self, method: HttpMethod) -> Frame:
        frames = self._frames[method]
        frame = frames.pop()
        if not frames:
            del self._frames[method]
        return frame

    @contextmanager
    def scope(
        self,
        method: HttpMethod,
        frame: Sequence[Callable[..., Any]],
    ) -> Iterator[None]:
        """Push a frame for the duration of a block, popping it even on error."""
        self.push(method, frame)
        try:
            yield
        finally:
            self.pop(method)

    def chain_for(self, method: HttpMethod) -> list[Callable[..., Any]]:
        """Middleware applicable to a route of the given method.

        ``all`` frames come first, in push order, followed by the method's
        own frames in push order. A route for ``all`` only receives the
        ``all`` frames. Every call returns a new list, so a route factory
        may edit its chain without affecting other routes.
        """
        methods = [HttpMethod.ALL]
        if method is not HttpMethod.ALL:
            methods.append(method)

        chain: list[Callable[..., Any]] = []
        for m in methods:
            for frame in self._frames.get(m, ()):
                chain.extend(frame)
        return chain

    def depth(self, method: HttpMethod) -> int:
        """Number of frames currently pushed for a method."""
        return len(self._frames.get(method, ()))

    @property
    def is_empty(self) -> bool:
        return not self._frames


def build_middleware_chain(
    handler: Callable[..., Any],
    middleware_stack: Sequence[Callable[..., Any]],
) -> Callable[..., Any]:
    """Wrap a handler function with a middleware chain.

    Composes middleware in order so that the first middleware in the list
    is the outermost (executes first). Each middleware receives
    (request, call_next) where call_next invokes the next middleware or
    handler.

    Args:
        handler: The route handler function.
        middleware_stack: Ordered sequence of middleware (outermost first).

    Returns:
        A wrapped handler function that executes the middleware chain.
        If middleware_stack is empty, returns the handler unchanged.
    """
    chain = handler
    for mw in reversed(middleware_stack):
        chain = _wrap_with_middleware(chain, mw)
    return chain


def _wrap_with_middleware(
    next_handler: Callable[..., Any],
    middleware: Callable[..., Any],
) -> Callable[..., Any]:
    async def wrapped(request: Any) -> Any:
        async def call_next(req: Any) -> Any:
            return await next_handler(req)

        return await middleware(request, call_next)

    wrapped.__name__ = (
        f"{getattr(middleware, '__name__', 'middleware')}"
        f"_wrapping_{getattr(next_handler, '__name__', 'handler')}"
    )
    wrapped.__qualname__ = wrapped.__name__

    return wrapped
