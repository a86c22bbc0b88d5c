"""Basic example demonstrating fastapi-routify.

Routes live in routes/, one file per HTTP verb; named middleware lives in
middlewares/ and is handed to every route factory.

Run with:
    uvicorn main:app --reload

Available endpoints:
    GET    /health          - Health check
    GET    /users           - List all users
    POST   /users           - Create a new user (needs x-api-key)
    GET    /users/{user_id} - Get user by ID
    PATCH  /users/{user_id} - Update user (needs x-api-key)
    DELETE /users/{user_id} - Delete user (needs x-api-key)
"""

import logging
from pathlib import Path

from fastapi import FastAPI

from fastapi_routify import create_router_from_path

logging.basicConfig(level=logging.INFO)

HERE = Path(__file__).parent

app = FastAPI(title="Basic Example")
app.state.users = {}
app.include_router(
    create_router_from_path(
        HERE / "routes",
        app=app,
        middlewares_path=HERE / "middlewares",
    )
)
