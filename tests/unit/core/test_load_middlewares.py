"""Tests for PathRoutifier.load_middlewares."""

import logging
import re
from pathlib import Path
from textwrap import dedent

import pytest

from fastapi_routify.core.composer import PathRoutifier
from fastapi_routify.core.tree import DirectoryNode, MiddlewareNode
from fastapi_routify.exceptions import (
    ModuleContractError,
    ModuleLoadError,
    RouteDiscoveryError,
)


@pytest.fixture
def middlewares_dir(tmp_path: Path) -> Path:
    return tmp_path / "middlewares"


ANONYMOUS = dedent(
    """
    def factory(app):
        return lambda request, call_next: call_next(request)
    """
)


class TestTreeShape:
    """Keys and nesting of the loaded tree."""

    def test_nested_tree(self, create_tree, named_middleware, middlewares_dir):
        root = create_tree(
            {
                "auth/users/valid-password.py": named_middleware("valid_password"),
                "auth/has_account.py": named_middleware("has_account"),
                "no-empty-body.py": named_middleware("no_empty_body"),
            },
            parent_dir=middlewares_dir,
        )

        tree = PathRoutifier(None).load_middlewares(root)

        assert tree.get("auth.users.validPassword").__name__ == "valid_password"
        assert tree["auth.hasAccount"].__name__ == "has_account"
        assert tree["noEmptyBody"].__name__ == "no_empty_body"
        assert isinstance(tree.lookup("auth", "users"), DirectoryNode)
        assert sorted(tree) == ["auth", "noEmptyBody"]

    def test_directory_keys_are_normalized(self, create_tree, named_middleware, middlewares_dir):
        root = create_tree(
            {"request-checks/json_body.py": named_middleware("json_body")},
            parent_dir=middlewares_dir,
        )

        tree = PathRoutifier(None).load_middlewares(root)

        assert list(tree) == ["requestChecks"]
        assert tree.lookup("requestChecks").name == "requestChecks"
        assert "requestChecks.jsonBody" in tree

    def test_to_dict(self, create_tree, named_middleware, middlewares_dir):
        root = create_tree(
            {"auth/token.py": named_middleware("token")},
            parent_dir=middlewares_dir,
        )

        tree = PathRoutifier(None).load_middlewares(root)

        assert list(tree.to_dict()) == ["auth"]
        assert tree.to_dict()["auth"]["token"].__name__ == "token"

    def test_empty_directory_becomes_empty_node(self, create_tree, middlewares_dir):
        root = create_tree({"empty/": ""}, parent_dir=middlewares_dir)

        tree = PathRoutifier(None).load_middlewares(root)

        assert tree.lookup("empty") == DirectoryNode(name="empty")

    @pytest.mark.parametrize("value", [None, ""])
    def test_no_path_returns_empty_tree(self, value):
        assert PathRoutifier(None).load_middlewares(value) == DirectoryNode()

    def test_missing_directory_raises(self, tmp_path: Path):
        with pytest.raises(RouteDiscoveryError, match="does not exist"):
            PathRoutifier(None).load_middlewares(tmp_path / "nope")

    def test_factory_receives_app(self, create_tree, middlewares_dir):
        root = create_tree(
            {
                "app-bound.py": dedent(
                    """
                    def factory(app):
                        async def app_bound(request, call_next):
                            return app
                        return app_bound
                    """
                )
            },
            parent_dir=middlewares_dir,
        )
        app = object()

        tree = PathRoutifier(app).load_middlewares(root)

        assert tree["appBound"].__closure__[0].cell_contents is app


class TestSkippedEntries:
    """Files and directories that aren't middleware."""

    def test_non_python_and_init_files(self, create_tree, named_middleware, middlewares_dir):
        root = create_tree(
            {
                "auth.py": named_middleware("auth"),
                "README.md": "docs",
                "__init__.py": "raise RuntimeError('never imported')\n",
                "__pycache__/cached.py": "raise RuntimeError('never imported')\n",
            },
            parent_dir=middlewares_dir,
        )

        tree = PathRoutifier(None).load_middlewares(root)

        assert list(tree) == ["auth"]

    def test_default_ignore_pattern(self, create_tree, named_middleware, middlewares_dir):
        root = create_tree(
            {
                "auth.py": named_middleware("auth"),
                "test_auth.py": "raise RuntimeError('never imported')\n",
                "auth.test.py": "raise RuntimeError('never imported')\n",
            },
            parent_dir=middlewares_dir,
        )

        tree = PathRoutifier(None).load_middlewares(root)

        assert list(tree) == ["auth"]

    @pytest.mark.parametrize("pattern", [r"^draft_", re.compile(r"^draft_")])
    def test_custom_ignore_pattern(self, create_tree, named_middleware, middlewares_dir, pattern):
        root = create_tree(
            {
                "auth.py": named_middleware("auth"),
                "draft_limits.py": "raise RuntimeError('never imported')\n",
                "test_helpers.py": named_middleware("helpers"),
            },
            parent_dir=middlewares_dir,
        )

        tree = PathRoutifier(None).load_middlewares(root, pattern)

        assert sorted(tree) == ["auth", "testHelpers"]


class TestConflicts:
    """Name collisions inside one directory."""

    def test_file_wins_over_directory(self, create_tree, named_middleware, middlewares_dir, caplog):
        root = create_tree(
            {
                "auth.py": named_middleware("auth_file"),
                "auth/token.py": named_middleware("token"),
            },
            parent_dir=middlewares_dir,
        )

        with caplog.at_level(logging.WARNING, logger="fastapi_routify.core.composer"):
            tree = PathRoutifier(None).load_middlewares(root)

        assert tree["auth"].__name__ == "auth_file"
        assert isinstance(tree.lookup("auth"), MiddlewareNode)
        assert "auth.token" not in tree
        assert any("file with this name also exists" in m for m in caplog.messages)

    def test_duplicate_normalized_file_names(
        self, create_tree, named_middleware, middlewares_dir, caplog
    ):
        root = create_tree(
            {
                "json-body.py": named_middleware("first"),
                "json_body.py": named_middleware("second"),
            },
            parent_dir=middlewares_dir,
        )

        with caplog.at_level(logging.WARNING, logger="fastapi_routify.core.composer"):
            tree = PathRoutifier(None).load_middlewares(root)

        # "json-body.py" sorts before "json_body.py"
        assert tree["jsonBody"].__name__ == "first"
        assert any("already taken" in m for m in caplog.messages)


class TestAnonymousMiddleware:
    """Automatic naming of lambdas."""

    def test_left_anonymous_by_default(self, create_tree, middlewares_dir):
        root = create_tree({"rate-limit.py": ANONYMOUS}, parent_dir=middlewares_dir)

        tree = PathRoutifier(None).load_middlewares(root)

        assert tree["rateLimit"].__name__ == "<lambda>"

    def test_named_after_key(self, create_tree, middlewares_dir):
        root = create_tree({"rate-limit.py": ANONYMOUS}, parent_dir=middlewares_dir)

        tree = PathRoutifier(None, auto_name_anonymous_middleware=True).load_middlewares(root)

        assert tree["rateLimit"].__name__ == "rateLimit"

    def test_named_functions_untouched(self, create_tree, named_middleware, middlewares_dir):
        root = create_tree({"rate-limit.py": named_middleware("limiter")}, parent_dir=middlewares_dir)

        tree = PathRoutifier(None, auto_name_anonymous_middleware=True).load_middlewares(root)

        assert tree["rateLimit"].__name__ == "limiter"


class TestLoadErrors:
    """Broken middleware files."""

    def test_factory_must_return_single_callable(self, create_tree, middlewares_dir, caplog):
        root = create_tree(
            {
                "pair.py": dedent(
                    """
                    def factory(app):
                        return [print, print]
                    """
                )
            },
            parent_dir=middlewares_dir,
        )

        with caplog.at_level(logging.ERROR, logger="fastapi_routify.core.composer"):
            with pytest.raises(ModuleContractError, match="single callable, got 2"):
                PathRoutifier(None).load_middlewares(root)

        [record] = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert record.middleware == "pair"

    def test_factory_returning_non_callable(self, create_tree, middlewares_dir):
        root = create_tree(
            {"bad.py": "def factory(app):\n    return 'nope'\n"},
            parent_dir=middlewares_dir,
        )

        with pytest.raises(ModuleContractError, match="returned str"):
            PathRoutifier(None).load_middlewares(root)

    def test_import_error(self, create_tree, middlewares_dir):
        root = create_tree(
            {"auth/broken.py": "def factory(app:\n"},
            parent_dir=middlewares_dir,
        )

        with pytest.raises(ModuleLoadError, match="SyntaxError"):
            PathRoutifier(None).load_middlewares(root)


def test_initialized_middleware_logged(create_tree, named_middleware, middlewares_dir, caplog):
    root = create_tree(
        {"auth/valid-token.py": named_middleware("valid_token")},
        parent_dir=middlewares_dir,
    )

    with caplog.at_level(logging.INFO, logger="fastapi_routify.core.composer"):
        PathRoutifier(None).load_middlewares(root)

    assert "Initialized middleware: auth.validToken" in caplog.messages
