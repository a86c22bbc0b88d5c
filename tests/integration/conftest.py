"""Shared fixtures for integration tests.

Provides a FastAPI app built from tests/integration/fixtures/app/. Each test
gets a fresh copy in tmp_path so module caching never leaks between tests.

App structure:
    middlewares/valid-token.py               # validToken: 401 unless x-token is "secret"
    middlewares/json-body.py                 # jsonBody: 415 unless the body is JSON
    routes/^all.py                           # validToken for every route
    routes/^auth/all.py                      # Scope middleware for /users
    routes/^auth/users/get.py                # GET /users
    routes/owners/$id/get.py                 # GET /owners/:id
    routes/owners/$id/^protected/all.py      # Scope middleware for /owners/:id/pets
    routes/owners/$id/^protected/post.py     # POST-only scope middleware
    routes/owners/$id/^protected/pets/post.py
    routes/skills/get.py                     # Two-step handler chain
    routes/skills/patch.py                   # Drops validToken from its chain
    routes/skills/post.py                    # Uses jsonBody from the tree
    routes/wildcard/get.star.py              # Runs before every GET under /wildcard
    routes/wildcard/nested/get.py
"""

import shutil
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fastapi_routify import create_router_from_path

FIXTURE_DIR = Path(__file__).parent / "fixtures" / "app"


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    """Copy the fixture app into tmp_path."""
    target = tmp_path / "app"
    shutil.copytree(FIXTURE_DIR, target)
    return target


@pytest.fixture
def app(app_dir: Path) -> FastAPI:
    application = FastAPI()
    application.include_router(
        create_router_from_path(
            app_dir / "routes",
            app=application,
            middlewares_path=app_dir / "middlewares",
        )
    )
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
