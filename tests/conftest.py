"""Shared pytest fixtures for fastapi-routify tests."""

from pathlib import Path
from textwrap import dedent

import pytest


def handler_source(name: str) -> str:
    """Route factory returning one function called ``name``."""
    return dedent(
        f"""
        def factory(app, middlewares, route_middleware):
            def {name}():
                return "{name}"
            return {name}
        """
    )


def middleware_source(name: str) -> str:
    """Route-middleware factory returning one async middleware called ``name``."""
    return dedent(
        f"""
        def factory(app, middlewares):
            async def {name}(request, call_next):
                return await call_next(request)
            return {name}
        """
    )


def named_middleware_source(name: str) -> str:
    """Middleware-tree factory returning one async middleware called ``name``."""
    return dedent(
        f"""
        def factory(app):
            async def {name}(request, call_next):
                return await call_next(request)
            return {name}
        """
    )


@pytest.fixture
def create_tree(tmp_path: Path):
    """Create files from a dict of relative paths to contents.

    Example:
        create_tree({
            "owners/get.py": handler_source("get_owners"),
            "^auth/all.py": middleware_source("auth"),
            "empty-dir/": "",
        })

    A key ending in "/" creates an empty directory. Returns the root.
    """

    def _create(spec: dict[str, str], parent_dir: Path | None = None) -> Path:
        base = parent_dir or tmp_path / "routes"
        base.mkdir(parents=True, exist_ok=True)

        for relative, content in spec.items():
            target = base / relative
            if relative.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)

        return base

    return _create


@pytest.fixture
def handler():
    return handler_source


@pytest.fixture
def middleware():
    return middleware_source


@pytest.fixture
def named_middleware():
    return named_middleware_source
