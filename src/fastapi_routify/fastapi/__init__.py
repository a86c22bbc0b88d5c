"""FastAPI adapter for path routing."""

from fastapi_routify.fastapi.router import APIRouterSink, create_router_from_path

__all__ = ["APIRouterSink", "create_router_from_path"]
