"""Rejects requests without the demo API key."""

from fastapi.responses import JSONResponse

API_KEY = "demo"


def factory(app):
    async def require_api_key(request, call_next):
        if request.headers.get("x-api-key") != API_KEY:
            return JSONResponse({"detail": "Missing or invalid API key"}, status_code=401)
        return await call_next(request)

    return require_api_key
