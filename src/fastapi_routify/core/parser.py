"""Filename and directory-name decoding for path routing.

Filenames encode HTTP verbs and ordering:
- get.py -> GET handler for the directory's URL
- 2.delete.py -> DELETE handler, explicitly ordered
- all.star.py -> handler for every verb on the URL and everything below it
- ^post.py -> POST middleware for this directory, no route of its own

Directory names encode URL segments:
- owners -> "owners" (literal segment)
- $id -> ":id" / "{id}" (path parameter)
- ^auth -> middleware scope, not part of the URL
"""

import re
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from fastapi_routify.exceptions import ConfigurationError, FilenameGrammarError

MIDDLEWARE_PREFIX = "^"
PARAMETER_PREFIX = "$"
WILDCARD_PARAMETER = "wildcard"

# Test modules living next to middleware are not middleware
DEFAULT_IGNORE_PATTERN = re.compile(r"(?:^test_.*|_test|\.tests?)\.py$")

_ROUTE_FILENAME = re.compile(r"^(\^)?(?:(\d+)\.)?([a-z]+)(\.star)?\.py$")


class HttpMethod(Enum):
    """HTTP verbs a route file can be named after."""

    ALL = "all"
    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"

    @property
    def verbs(self) -> tuple[str, ...]:
        """Upper-case verbs this method registers.

        Examples:
            GET -> ("GET",)
            ALL -> ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE")
        """
        if self is HttpMethod.ALL:
            return tuple(m.value.upper() for m in HttpMethod if m is not HttpMethod.ALL)
        return (self.value.upper(),)


_METHODS_BY_NAME = {m.value: m for m in HttpMethod}


def parse_methods(names: Iterable[str]) -> frozenset[HttpMethod]:
    """Convert verb names into HttpMethod members.

    Raises:
        ConfigurationError: If a name is not a supported verb.
    """
    methods = set()
    for name in names:
        method = _METHODS_BY_NAME.get(name.lower())
        if method is None:
            raise ConfigurationError(f"Unsupported HTTP method: {name!r}")
        methods.add(method)
    return frozenset(methods)


@dataclass(frozen=True)
class RouteDescriptor:
    """Routing information decoded from one filename.

    Attributes:
        file_name: Base filename, e.g. "1.get.py".
        file_path: Absolute path to the file.
        has_middleware_prefix: Filename starts with "^".
        order: Explicit numeric prefix, or None.
        http_method: Verb the file handles.
        is_star: Filename carries the ".star" wildcard marker.
    """

    file_name: str
    file_path: Path
    has_middleware_prefix: bool
    order: int | None
    http_method: HttpMethod
    is_star: bool

    @property
    def has_numeric_prefix(self) -> bool:
        return self.order is not None

    def validate(self) -> None:
        """Reject marker combinations that have no meaning.

        Raises:
            FilenameGrammarError: If the middleware prefix is combined with
                the wildcard marker.
        """
        if self.has_middleware_prefix and self.is_star:
            raise FilenameGrammarError(
                f"Invalid route filename '{self.file_name}' in {self.file_path.parent}: "
                f"'{MIDDLEWARE_PREFIX}' cannot be combined with '.star'"
            )


def decode_filename(
    file_name: str,
    directory: Path,
    *,
    methods: Collection[HttpMethod] | None = None,
) -> RouteDescriptor | None:
    """Decode a filename into a RouteDescriptor.

    Args:
        file_name: Base filename to decode.
        directory: Directory containing the file.
        methods: Optional allow-list. Files for other verbs are treated as
            not matching. ``all`` is always allowed.

    Returns:
        RouteDescriptor, or None if the name doesn't follow the route
        grammar. Combinations are not validated here, see
        RouteDescriptor.validate().

    Examples:
        "get.py" -> RouteDescriptor(http_method=GET, order=None, ...)
        "2.delete.py" -> RouteDescriptor(http_method=DELETE, order=2, ...)
        "all.star.py" -> RouteDescriptor(http_method=ALL, is_star=True, ...)
        "README.md" -> None
        "helpers.py" -> None
    """
    match = _ROUTE_FILENAME.match(file_name)
    if match is None:
        return None

    method = _METHODS_BY_NAME.get(match.group(3))
    if method is None:
        return None
    if methods is not None and method is not HttpMethod.ALL and method not in methods:
        return None

    prefix = match.group(2)
    return RouteDescriptor(
        file_name=file_name,
        file_path=(Path(directory) / file_name).resolve(),
        has_middleware_prefix=match.group(1) is not None,
        order=int(prefix) if prefix is not None else None,
        http_method=method,
        is_star=match.group(4) is not None,
    )


def _ordering_key(descriptor: RouteDescriptor) -> tuple[bool, int, str]:
    # Numbered files first, by value, so that 10.get.py follows 2.get.py
    return (
        descriptor.order is None,
        descriptor.order or 0,
        descriptor.file_name,
    )


def prioritize_wildcards(descriptors: list[RouteDescriptor]) -> list[RouteDescriptor]:
    """Move each wildcard ahead of its unordered sibling for the same verb.

    For every adjacent pair (current, next) where next is a wildcard, both
    share the verb and neither has a numeric or middleware prefix, the two
    are swapped. A swapped pair is not revisited.

    Args:
        descriptors: Sorted descriptors. Reordered in place.

    Returns:
        The same list.

    Examples:
        [get.py, get.star.py] -> [get.star.py, get.py]
        [1.get.py, get.star.py] -> unchanged
    """
    i = 0
    while i < len(descriptors) - 1:
        current, following = descriptors[i], descriptors[i + 1]
        if (
            following.is_star
            and current.http_method is following.http_method
            and not current.has_numeric_prefix
            and not following.has_numeric_prefix
            and not current.has_middleware_prefix
            and not following.has_middleware_prefix
        ):
            descriptors[i], descriptors[i + 1] = following, current
            i += 2
        else:
            i += 1
    return descriptors


def sort_descriptors(descriptors: Iterable[RouteDescriptor]) -> list[RouteDescriptor]:
    """Order descriptors for registration.

    Lexical order, numeric prefixes compared by value, then wildcard
    prioritization.
    """
    return prioritize_wildcards(sorted(descriptors, key=_ordering_key))


class SegmentType(Enum):
    """Type of a URL path segment."""

    STATIC = "static"
    PARAMETER = "parameter"


@dataclass(frozen=True)
class PathSegment:
    """A URL path segment contributed by one directory."""

    name: str
    segment_type: SegmentType
    original: str

    @property
    def is_parameter(self) -> bool:
        return self.segment_type is SegmentType.PARAMETER

    def to_pattern_segment(self) -> str:
        """Express-style segment: "owners" or ":id"."""
        if self.is_parameter:
            return f":{self.name}"
        return self.name

    def to_fastapi_segment(self) -> str:
        """Starlette-style segment: "owners" or "{id}"."""
        if self.is_parameter:
            return f"{{{self.name}}}"
        return self.name


def is_middleware_directory(name: str) -> bool:
    return name.startswith(MIDDLEWARE_PREFIX)


def parse_directory_name(name: str) -> PathSegment:
    """Parse a route directory name into a PathSegment.

    Middleware directories ("^auth") contribute no segment and must be
    handled by the caller.

    Raises:
        FilenameGrammarError: If a parameter directory has no name.

    Examples:
        "owners" -> PathSegment(name="owners", segment_type=STATIC, ...)
        "$id" -> PathSegment(name="id", segment_type=PARAMETER, ...)
    """
    if name.startswith(PARAMETER_PREFIX):
        parameter = name[len(PARAMETER_PREFIX) :]
        if not parameter:
            raise FilenameGrammarError(f"Parameter directory '{name}' needs a parameter name")
        return PathSegment(name=parameter, segment_type=SegmentType.PARAMETER, original=name)

    return PathSegment(name=name, segment_type=SegmentType.STATIC, original=name)


def segments_to_pattern(segments: Iterable[PathSegment], is_star: bool = False) -> str:
    """Build an express-style URL pattern.

    Examples:
        [] -> "/"
        [STATIC("owners"), PARAMETER("id")] -> "/owners/:id"
        [STATIC("wildcard")], is_star=True -> "/wildcard*"
    """
    pattern = "/" + "/".join(s.to_pattern_segment() for s in segments)
    if is_star:
        pattern += "*"
    return pattern


def segments_to_fastapi_path(segments: Iterable[PathSegment], is_star: bool = False) -> str:
    """Build a FastAPI path string.

    Wildcards become a trailing path-converter parameter, which like the
    express pattern matches the prefix itself and anything after it.

    Examples:
        [] -> "/"
        [STATIC("owners"), PARAMETER("id")] -> "/owners/{id}"
        [STATIC("wildcard")], is_star=True -> "/wildcard{wildcard:path}"
        [], is_star=True -> "/{wildcard:path}"
    """
    path = "/" + "/".join(s.to_fastapi_segment() for s in segments)
    if is_star:
        path += f"{{{WILDCARD_PARAMETER}:path}}"
    return path


def normalize_middleware_name(name: str) -> str:
    """Turn a file stem or directory name into a middleware tree key.

    Hyphens become word separators, then the name is camel-cased with a
    lowercase first letter.

    Examples:
        "valid-password" -> "validPassword"
        "has_account" -> "hasAccount"
        "misc" -> "misc"
    """
    camel = re.sub(r"(?:^|_)(.)", lambda m: m.group(1).upper(), name.replace("-", "_"))
    return camel[:1].lower() + camel[1:]
