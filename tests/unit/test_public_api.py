"""Tests for public API exports in __init__.py."""

import fastapi_routify


def test_primary_api_export():
    """create_router_from_path is exported from root package."""
    from fastapi_routify import create_router_from_path

    assert callable(create_router_from_path)


def test_composer_exports():
    from fastapi_routify import APIRouterSink, PathRoutifier, RouteSink, routify_path

    assert callable(routify_path)
    assert hasattr(PathRoutifier, "routify")
    assert hasattr(PathRoutifier, "load_middlewares")
    assert hasattr(APIRouterSink, "register")
    assert hasattr(RouteSink, "register")


def test_core_types_exported():
    from fastapi_routify import (
        DirectoryListing,
        DirectoryNode,
        HttpMethod,
        MiddlewareNode,
        PathSegment,
        RegistrationRecord,
        RouteDescriptor,
        SegmentType,
    )

    assert HttpMethod.ALL.value == "all"
    assert SegmentType.PARAMETER.value == "parameter"
    for cls in (
        DirectoryListing,
        DirectoryNode,
        MiddlewareNode,
        PathSegment,
        RegistrationRecord,
        RouteDescriptor,
    ):
        assert hasattr(cls, "__dataclass_fields__"), cls


def test_exceptions_exported():
    from fastapi_routify import (
        ConfigurationError,
        FilenameGrammarError,
        ModuleContractError,
        ModuleLoadError,
        RouteDiscoveryError,
        RoutifyError,
    )

    for error in (
        ConfigurationError,
        FilenameGrammarError,
        ModuleContractError,
        ModuleLoadError,
        RouteDiscoveryError,
    ):
        assert issubclass(error, RoutifyError)


def test_all_names_resolve():
    """Every name in __all__ exists on the package."""
    for name in fastapi_routify.__all__:
        assert hasattr(fastapi_routify, name), name
