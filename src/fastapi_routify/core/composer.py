"""Route composer: turns a directory tree into ordered route registrations.

Walks the routes directory with the scanner, decodes filenames with the
parser, keeps the middleware frames and URL segments that are in scope
while recursing, and emits one RegistrationRecord per route file.

Layout example:

    routes/
        ^auth/
            all.py          -> middleware for every route below ^auth
            users/
                get.py      -> GET /users, runs ^auth/all.py first
        owners/
            get.py          -> GET /owners
            $id/
                get.py      -> GET /owners/:id
        wildcard/
            get.star.py     -> GET /wildcard*
"""

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from fastapi_routify.core.importer import invoke_factory
from fastapi_routify.core.middleware import MiddlewareStack
from fastapi_routify.core.parser import (
    DEFAULT_IGNORE_PATTERN,
    HttpMethod,
    PathSegment,
    RouteDescriptor,
    decode_filename,
    is_middleware_directory,
    normalize_middleware_name,
    parse_directory_name,
    parse_methods,
    segments_to_fastapi_path,
    segments_to_pattern,
    sort_descriptors,
)
from fastapi_routify.core.scanner import DirectoryListing, list_directory, traverse
from fastapi_routify.core.tree import DirectoryNode, MiddlewareNode
from fastapi_routify.exceptions import (
    ConfigurationError,
    ModuleContractError,
    ModuleLoadError,
    RouteDiscoveryError,
)

logger = logging.getLogger(__name__)

_SKIPPED_DIRECTORIES = frozenset({"__pycache__"})


@dataclass(frozen=True)
class RegistrationRecord:
    """One route to register on a router.

    Attributes:
        http_method: Verb to register, ALL meaning every verb.
        url_pattern: Express-style pattern, e.g. "/owners/:id" or "/wildcard*".
        segments: URL segments the pattern was built from.
        is_star: Whether the pattern matches everything below it.
        middleware_chain: Middleware in scope, after the route factory edited it.
        handler_chain: Callables returned by the route factory.
        source: The route file.
    """

    http_method: HttpMethod
    url_pattern: str
    segments: tuple[PathSegment, ...]
    is_star: bool
    middleware_chain: tuple[Callable[..., Any], ...]
    handler_chain: tuple[Callable[..., Any], ...]
    source: Path

    @property
    def callables(self) -> tuple[Callable[..., Any], ...]:
        """Middleware followed by handlers, in execution order."""
        return (*self.middleware_chain, *self.handler_chain)

    @property
    def fastapi_path(self) -> str:
        return segments_to_fastapi_path(self.segments, self.is_star)


class RouteSink(Protocol):
    """Receives registration records in emission order."""

    def register(self, record: RegistrationRecord) -> None: ...


@dataclass
class _Composition:
    """State owned by one routify() call."""

    middlewares: DirectoryNode
    sink: RouteSink | None
    middleware_stack: MiddlewareStack = field(default_factory=MiddlewareStack)
    route_stack: list[PathSegment] = field(default_factory=list)
    records: list[RegistrationRecord] = field(default_factory=list)


def describe_chain(callables: Sequence[Callable[..., Any]]) -> list[str]:
    """Name the callables that run before the final handler, for logging.

    Consecutive anonymous callables (lambdas and objects without a name)
    collapse into one "anonymous x N" entry.

    Examples:
        [auth, <lambda>, <lambda>, handler] -> ["auth", "anonymous x 2"]
    """
    names: list[str] = []
    anonymous = 0

    for fn in callables[:-1]:
        name = getattr(fn, "__name__", None)
        if name and name != "<lambda>":
            anonymous = 0
            names.append(name)
            continue

        anonymous += 1
        if names and names[-1].startswith("anonymous"):
            names[-1] = f"anonymous x {anonymous}"
        else:
            names.append("anonymous")

    return names


def _is_anonymous(fn: Callable[..., Any]) -> bool:
    return getattr(fn, "__name__", None) in (None, "", "<lambda>")


class PathRoutifier:
    """Builds route registrations from a routes directory.

    Not reentrant while a load_middlewares() or routify() call is running;
    independent instances can work on different trees at the same time.

    Args:
        app: Application handle passed to every factory.
        logger: Logger for route and middleware events. Defaults to this
            module's logger.
        auto_name_anonymous_middleware: Give anonymous middleware loaded by
            load_middlewares() their tree key as ``__name__``.
        methods: Optional allow-list of verbs. Files for other verbs are
            ignored; ``all`` is always allowed.

    Raises:
        ConfigurationError: If methods names an unsupported verb.

    Example:
        routifier = PathRoutifier(app, methods=["get", "post"])
        middlewares = routifier.load_middlewares("middlewares")
        records = routifier.routify("routes", middlewares)
    """

    def __init__(
        self,
        app: Any,
        *,
        logger: logging.Logger | None = None,
        auto_name_anonymous_middleware: bool = False,
        methods: Iterable[str] | None = None,
    ) -> None:
        self.app = app
        self.logger = logger or logging.getLogger(__name__)
        self.auto_name_anonymous_middleware = bool(auto_name_anonymous_middleware)
        self.methods = parse_methods(methods) if methods is not None else None

    # ----------------------------------------------------
    # Middleware tree

    def load_middlewares(
        self,
        middlewares_path: Path | str | None,
        ignore_pattern: re.Pattern[str] | str | None = None,
    ) -> DirectoryNode:
        """Load every middleware below a directory into a tree.

        Directory names and file stems become camel-cased keys. Each file
        exports ``factory(app)`` returning one middleware callable. When a
        file and a directory share a key, the file wins and the directory
        is skipped with a warning.

        Args:
            middlewares_path: Root of the middleware directory. Empty or None
                returns an empty tree.
            ignore_pattern: Regular expression for filenames that aren't
                middleware. Defaults to test modules.

        Returns:
            Root DirectoryNode of the loaded tree.

        Raises:
            RouteDiscoveryError: If middlewares_path doesn't exist.
            ModuleLoadError: If a middleware module fails to load.
            ModuleContractError: If a factory is missing or doesn't return
                exactly one callable.
        """
        root = DirectoryNode()
        if not middlewares_path:
            return root

        base = Path(middlewares_path).resolve()
        if ignore_pattern is None:
            pattern = DEFAULT_IGNORE_PATTERN
        elif isinstance(ignore_pattern, str):
            pattern = re.compile(ignore_pattern)
        else:
            pattern = ignore_pattern

        def visit(listing: DirectoryListing) -> None:
            parts = listing.directory.relative_to(base).parts
            if _SKIPPED_DIRECTORIES.intersection(parts):
                return

            keys = [normalize_middleware_name(part) for part in parts]
            node = root
            for key in keys:
                child = node.children.get(key)
                if isinstance(child, MiddlewareNode):
                    self.logger.warning(
                        "Ignoring middleware directory because a file with this name also exists",
                        extra={"path": "/".join(parts), "conflicting_name": key},
                    )
                    return
                if child is None:
                    child = node.children[key] = DirectoryNode(name=key)
                node = child

            for file_name in listing.files:
                self._load_middleware_file(listing.directory / file_name, node, keys, pattern)

        traverse(base, visit)
        return root

    def _load_middleware_file(
        self,
        file_path: Path,
        node: DirectoryNode,
        keys: list[str],
        pattern: re.Pattern[str],
    ) -> None:
        if file_path.suffix != ".py" or file_path.name == "__init__.py":
            return
        if pattern.search(file_path.name):
            self.logger.debug("Ignoring middleware file", extra={"file": str(file_path)})
            return

        key = normalize_middleware_name(file_path.stem)
        middleware_id = ".".join([*keys, key])

        if key in node.children:
            self.logger.warning(
                "Ignoring middleware file because its name is already taken",
                extra={"file": str(file_path), "middleware": middleware_id},
            )
            return

        try:
            handlers = invoke_factory(file_path, self.app)
            if len(handlers) != 1:
                raise ModuleContractError(
                    f"Middleware factory in {file_path} must return a single callable, "
                    f"got {len(handlers)}"
                )
        except (ModuleLoadError, ModuleContractError):
            self.logger.error(
                "Failed to load middleware",
                extra={"file": str(file_path), "middleware": middleware_id},
            )
            raise

        middleware = handlers[0]
        if self.auto_name_anonymous_middleware and _is_anonymous(middleware):
            try:
                middleware.__name__ = key
            except (AttributeError, TypeError):
                self.logger.debug(
                    "Cannot name anonymous middleware",
                    extra={"middleware": middleware_id, "type": type(middleware).__name__},
                )

        node.children[key] = MiddlewareNode(name=key, middleware=middleware)
        self.logger.info(
            f"Initialized middleware: {middleware_id}",
            extra={"middleware": middleware_id, "file": str(file_path)},
        )

    # ----------------------------------------------------
    # Routes

    def routify(
        self,
        routes_path: Path | str | None,
        middlewares: DirectoryNode | None = None,
        *,
        sink: RouteSink | None = None,
    ) -> list[RegistrationRecord]:
        """Compose the routes below a directory.

        Args:
            routes_path: Root of the routes directory.
            middlewares: Tree from load_middlewares(), handed to factories.
            sink: Optional receiver, called with each record as soon as it
                is produced.

        Returns:
            RegistrationRecords in registration order.

        Raises:
            ConfigurationError: If routes_path is empty.
            RouteDiscoveryError: If routes_path doesn't exist.
            FilenameGrammarError: If a filename combines invalid markers.
            ModuleLoadError: If a route or middleware module fails to load.
            ModuleContractError: If a factory breaks its contract.
        """
        if not routes_path:
            raise ConfigurationError("A routes directory is required")

        base = Path(routes_path).resolve()
        if not base.exists():
            raise RouteDiscoveryError(f"Routes directory does not exist: {base}")

        state = _Composition(
            middlewares=middlewares if middlewares is not None else DirectoryNode(),
            sink=sink,
        )
        self._walk(state, base, middleware_scope=False)

        self.logger.info(
            "Route composition complete",
            extra={"route_count": len(state.records), "base_path": str(base)},
        )
        return state.records

    def _walk(self, state: _Composition, directory: Path, *, middleware_scope: bool) -> None:
        listing = list_directory(directory)
        descriptors = self._decode(listing)

        if middleware_scope:
            self._visit_middleware_directory(state, listing, descriptors)
        else:
            self._visit_route_directory(state, listing, descriptors)

    def _decode(self, listing: DirectoryListing) -> list[RouteDescriptor]:
        descriptors = []
        for file_name in listing.files:
            descriptor = decode_filename(file_name, listing.directory, methods=self.methods)
            if descriptor is None:
                continue
            descriptor.validate()
            descriptors.append(descriptor)
        return sort_descriptors(descriptors)

    def _visit_middleware_directory(
        self,
        state: _Composition,
        listing: DirectoryListing,
        descriptors: list[RouteDescriptor],
    ) -> None:
        with ExitStack() as scopes:
            for descriptor in descriptors:
                if (
                    descriptor.has_numeric_prefix
                    or descriptor.is_star
                    or descriptor.has_middleware_prefix
                ):
                    self.logger.debug(
                        "Ignoring file in middleware directory",
                        extra={"file": str(descriptor.file_path)},
                    )
                    continue
                frame = self._load_middleware_frame(state, descriptor)
                scopes.enter_context(state.middleware_stack.scope(descriptor.http_method, frame))

            self._recurse(state, listing)

    def _visit_route_directory(
        self,
        state: _Composition,
        listing: DirectoryListing,
        descriptors: list[RouteDescriptor],
    ) -> None:
        with ExitStack() as scopes:
            # ^verb.py files are middleware for this directory and below
            for descriptor in descriptors:
                if descriptor.has_middleware_prefix:
                    frame = self._load_middleware_frame(state, descriptor)
                    scopes.enter_context(
                        state.middleware_stack.scope(descriptor.http_method, frame)
                    )

            for descriptor in descriptors:
                if not descriptor.has_middleware_prefix:
                    self._register_route(state, descriptor)

            self._recurse(state, listing)

    def _recurse(self, state: _Composition, listing: DirectoryListing) -> None:
        for name in listing.sub_directories:
            if name in _SKIPPED_DIRECTORIES:
                continue

            directory = listing.directory / name
            if is_middleware_directory(name):
                self._walk(state, directory, middleware_scope=True)
                continue

            state.route_stack.append(parse_directory_name(name))
            try:
                self._walk(state, directory, middleware_scope=False)
            finally:
                state.route_stack.pop()

    def _load_middleware_frame(
        self,
        state: _Composition,
        descriptor: RouteDescriptor,
    ) -> list[Callable[..., Any]]:
        try:
            return invoke_factory(descriptor.file_path, self.app, state.middlewares)
        except (ModuleLoadError, ModuleContractError):
            self.logger.error(
                "Failed to load route middleware",
                extra={
                    "file": str(descriptor.file_path),
                    "http_method": descriptor.http_method.value,
                    "endpoint": segments_to_pattern(state.route_stack),
                },
            )
            raise

    def _register_route(self, state: _Composition, descriptor: RouteDescriptor) -> None:
        method = descriptor.http_method
        url_pattern = segments_to_pattern(state.route_stack, descriptor.is_star)
        route_middleware = state.middleware_stack.chain_for(method)

        try:
            handlers = invoke_factory(
                descriptor.file_path,
                self.app,
                state.middlewares,
                route_middleware,
            )
        except (ModuleLoadError, ModuleContractError):
            self.logger.error(
                "Failed to load route handler",
                extra={
                    "file": str(descriptor.file_path),
                    "http_method": method.value,
                    "endpoint": url_pattern,
                },
            )
            raise

        record = RegistrationRecord(
            http_method=method,
            url_pattern=url_pattern,
            segments=tuple(state.route_stack),
            is_star=descriptor.is_star,
            middleware_chain=tuple(route_middleware),
            handler_chain=tuple(handlers),
            source=descriptor.file_path,
        )
        state.records.append(record)
        if state.sink is not None:
            state.sink.register(record)

        self.logger.info(
            f"Created route: {method.value.upper()} {url_pattern}",
            extra={
                "http_method": method.value,
                "endpoint": url_pattern,
                "middlewares": describe_chain(record.callables),
            },
        )


def routify_path(
    app: Any,
    routes_path: Path | str | None,
    *,
    middlewares_path: Path | str | None = None,
    ignore_pattern: re.Pattern[str] | str | None = None,
    sink: RouteSink | None = None,
    **options: Any,
) -> list[RegistrationRecord]:
    """Load middleware and compose routes in one call.

    Args:
        app: Application handle passed to every factory.
        routes_path: Root of the routes directory.
        middlewares_path: Optional root of the middleware directory.
        ignore_pattern: Filenames to skip while loading middleware.
        sink: Optional receiver for each record.
        **options: Passed to PathRoutifier.

    Returns:
        RegistrationRecords in registration order.
    """
    routifier = PathRoutifier(app, **options)
    middlewares = routifier.load_middlewares(middlewares_path, ignore_pattern)
    return routifier.routify(routes_path, middlewares, sink=sink)
