"""Directory-driven route composition for FastAPI."""

# Primary API: the main entry points
from fastapi_routify.core.composer import (
    PathRoutifier,
    RegistrationRecord,
    RouteSink,
    routify_path,
)

# Core types: for advanced users and type checking
from fastapi_routify.core.parser import HttpMethod, PathSegment, RouteDescriptor, SegmentType
from fastapi_routify.core.scanner import DirectoryListing
from fastapi_routify.core.tree import DirectoryNode, MiddlewareNode

# Exceptions: for error handling
from fastapi_routify.exceptions import (
    ConfigurationError,
    FilenameGrammarError,
    ModuleContractError,
    ModuleLoadError,
    RouteDiscoveryError,
    RoutifyError,
)
from fastapi_routify.fastapi.router import APIRouterSink, create_router_from_path

__all__ = [
    # Primary API
    "create_router_from_path",
    "routify_path",
    "PathRoutifier",
    "APIRouterSink",
    # Core types
    "DirectoryListing",
    "DirectoryNode",
    "HttpMethod",
    "MiddlewareNode",
    "PathSegment",
    "RegistrationRecord",
    "RouteDescriptor",
    "RouteSink",
    "SegmentType",
    # Exceptions
    "ConfigurationError",
    "FilenameGrammarError",
    "ModuleContractError",
    "ModuleLoadError",
    "RouteDiscoveryError",
    "RoutifyError",
]

__version__ = "1.0.0"
