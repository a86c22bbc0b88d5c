"""Router factory for path routing.

Composes the routes below a directory and registers them on a FastAPI
APIRouter in the order they were produced.
"""

import inspect
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from fastapi_routify.core.composer import RegistrationRecord, routify_path
from fastapi_routify.core.middleware import build_middleware_chain
from fastapi_routify.core.parser import PathSegment, parse_methods
from fastapi_routify.exceptions import ModuleContractError

logger = logging.getLogger(__name__)

# Verbs registered together, with the wildcard chain they inherit
_VerbGroup = tuple[tuple[str, ...], tuple[Callable[..., Any], ...]]


class APIRouterSink:
    """Registers RegistrationRecords on a FastAPI APIRouter.

    The last callable of a record is the FastAPI endpoint; every callable
    before it is ``async (request, call_next)`` middleware wrapped around
    it, outermost first.

    Starlette dispatches to the first matching route only, so wildcard
    records can't fall through to later routes the way they do on routers
    that chain matches. Instead:
        - a wildcard's handler chain is prepended, per verb, to every later
          record the wildcard matches for that verb. A record whose verbs
          inherit different chains is registered once per group of verbs;
        - close() registers each wildcard last, as a catch-all whose
          innermost step answers 404.

    Covered records inherit the wildcard's handler chain only. The
    wildcard's middleware chain runs for requests the wildcard answers
    itself, never in front of a covered record, whose own middleware chain
    already holds the middleware in scope.

    Args:
        router: Router to register on.
        methods: Optional allow-list of verbs. Verbs outside it are never
            registered, including the ones an ``all`` record expands to.

    Raises:
        ConfigurationError: If methods names an unsupported verb.

    Example:
        router = APIRouter()
        sink = APIRouterSink(router, methods=["get"])
        PathRoutifier(app, methods=["get"]).routify("routes", sink=sink)
        sink.close()
    """

    def __init__(self, router: APIRouter, *, methods: Iterable[str] | None = None) -> None:
        self.router = router
        self._allowed = (
            frozenset(verb for method in parse_methods(methods) for verb in method.verbs)
            if methods is not None
            else None
        )
        self._wildcards: list[tuple[RegistrationRecord, list[_VerbGroup]]] = []

    def register(self, record: RegistrationRecord) -> None:
        groups = self._group_verbs(record)
        if not groups:
            logger.debug(
                "Skipped route outside the methods allow-list",
                extra={"method": record.http_method.value.upper(), "path": record.fastapi_path},
            )
            return

        if record.is_star:
            self._wildcards.append((record, groups))
            logger.debug(
                "Deferred wildcard route",
                extra={"method": record.http_method.value.upper(), "path": record.fastapi_path},
            )
            return

        for verbs, inherited in groups:
            *middleware, endpoint = (*inherited, *record.callables)
            _add_route(
                router=self.router,
                path=record.fastapi_path,
                methods=verbs,
                endpoint=endpoint,
                middleware=middleware,
                source=record.source,
            )

    def close(self) -> None:
        """Register the deferred wildcard routes as catch-alls."""
        for record, groups in self._wildcards:
            for verbs, inherited in groups:
                _add_route(
                    router=self.router,
                    path=record.fastapi_path,
                    methods=verbs,
                    endpoint=_wildcard_not_found,
                    middleware=(*inherited, *record.callables),
                    source=record.source,
                )
        self._wildcards.clear()

    def _group_verbs(self, record: RegistrationRecord) -> list[_VerbGroup]:
        """Split a record's allowed verbs by the wildcard chain they inherit."""
        groups: dict[tuple[int, ...], tuple[list[str], tuple[Callable[..., Any], ...]]] = {}

        for verb in record.http_method.verbs:
            if self._allowed is not None and verb not in self._allowed:
                continue
            inherited = tuple(
                fn
                for wildcard, _ in self._wildcards
                if _covers(wildcard, record, verb)
                for fn in wildcard.handler_chain
            )
            key = tuple(id(fn) for fn in inherited)
            groups.setdefault(key, ([], inherited))[0].append(verb)

        return [(tuple(verbs), inherited) for verbs, inherited in groups.values()]


def _covers(wildcard: RegistrationRecord, record: RegistrationRecord, verb: str) -> bool:
    """Check if a wildcard runs before a later record for one verb.

    Segments are compared one by one: a parameter matches any segment, a
    literal only the same literal. The wildcard's last segment is followed
    by "*", so a literal there only has to start the record's segment.

    Examples:
        /wildcard*  covers  /wildcard, /wildcard/nested, /wildcards
        /:id*       covers  /owners, /owners/:id
        /owners*    doesn't cover  /:id
    """
    if verb not in wildcard.http_method.verbs:
        return False

    prefix, segments = wildcard.segments, record.segments
    if not prefix:
        return True
    if len(segments) < len(prefix):
        return False

    *leading, last = prefix
    if not all(_segment_matches(w, s) for w, s in zip(leading, segments)):
        return False

    candidate = segments[len(leading)]
    if last.is_parameter:
        return True
    return not candidate.is_parameter and candidate.name.startswith(last.name)


def _segment_matches(wanted: PathSegment, actual: PathSegment) -> bool:
    if wanted.is_parameter:
        return True
    return not actual.is_parameter and actual.name == wanted.name


async def _wildcard_not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Not Found"})


def create_router_from_path(
    base_path: str | Path,
    *,
    app: Any = None,
    prefix: str = "",
    middlewares_path: str | Path | None = None,
    ignore_pattern: re.Pattern[str] | str | None = None,
    methods: Iterable[str] | None = None,
    auto_name_anonymous_middleware: bool = False,
    logger: logging.Logger | None = None,
) -> APIRouter:
    """Create a FastAPI APIRouter from a directory of route files.

    Loads the middleware tree (if middlewares_path is given), composes the
    routes below base_path and registers them on a new APIRouter.

    Args:
        base_path: Root directory of the route files.
        app: Application handle passed to every factory.
        prefix: Optional URL prefix for all discovered routes.
        middlewares_path: Optional root of named middleware files.
        ignore_pattern: Filenames to skip while loading middleware.
        methods: Optional allow-list of HTTP verbs.
        auto_name_anonymous_middleware: Name anonymous middleware after
            their file.
        logger: Logger for composition events.

    Returns:
        A FastAPI APIRouter with all discovered routes registered.

    Raises:
        ConfigurationError: If base_path is empty or methods is invalid.
        RouteDiscoveryError: If base_path doesn't exist.
        FilenameGrammarError: If a filename combines invalid markers.
        ModuleLoadError: If a route or middleware file fails to load.
        ModuleContractError: If a factory breaks its contract.

    Example:
        from fastapi import FastAPI
        from fastapi_routify import create_router_from_path

        app = FastAPI()
        app.include_router(create_router_from_path("routes", app=app))
    """
    router = APIRouter(prefix=prefix)
    sink = APIRouterSink(router, methods=methods)

    records = routify_path(
        app,
        base_path,
        middlewares_path=middlewares_path,
        ignore_pattern=ignore_pattern,
        sink=sink,
        methods=methods,
        auto_name_anonymous_middleware=auto_name_anonymous_middleware,
        logger=logger,
    )
    sink.close()

    log = logger or logging.getLogger(__name__)
    log.info(
        "Route registration complete",
        extra={
            "route_count": len(records),
            "prefix": prefix or "(none)",
        },
    )

    return router


def _is_async(fn: Callable[..., Any]) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, "__call__", None)
    )


def _add_route(
    router: APIRouter,
    path: str,
    methods: Sequence[str],
    endpoint: Callable[..., Any],
    middleware: Sequence[Callable[..., Any]],
    source: Path,
) -> None:
    """Add an HTTP route to the router, wrapped by its middleware.

    Raises:
        ModuleContractError: If a middleware is not async.
    """
    for i, mw in enumerate(middleware):
        if not _is_async(mw):
            raise ModuleContractError(
                f"Middleware at index {i} for {path} must be async, "
                f"got {getattr(mw, '__name__', type(mw).__name__)}\n"
                f"  File: {source}"
            )

    kwargs: dict[str, Any] = {"description": endpoint.__doc__}

    if middleware:
        kwargs["route_class_override"] = _make_middleware_route(middleware)

    router.add_api_route(
        path=path,
        endpoint=endpoint,
        methods=list(methods),
        **kwargs,
    )

    logger.debug(
        "Registered route",
        extra={
            "methods": list(methods),
            "path": path,
            "middleware_count": len(middleware),
            "file": str(source),
        },
    )


def _make_middleware_route(
    middleware_stack: Sequence[Callable[..., Any]],
) -> type[APIRoute]:
    """Create a custom APIRoute subclass that wraps handlers with middleware.

    The wrapping happens in get_route_handler(), called AFTER FastAPI resolves
    dependency injection. This means middleware receives (request, call_next)
    where the handler has already had its path params, query params, etc. resolved.

    Args:
        middleware_stack: Ordered sequence of middleware (outermost first).

    Returns:
        A subclass of APIRoute with middleware wrapping.
    """
    stack = tuple(middleware_stack)

    class MiddlewareRoute(APIRoute):
        def get_route_handler(self) -> Callable[..., Any]:
            original_handler = super().get_route_handler()
            return build_middleware_chain(original_handler, stack)

    return MiddlewareRoute
