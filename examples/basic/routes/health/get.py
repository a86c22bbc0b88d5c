def factory(app, middlewares, route_middleware):
    async def health():
        """Health check."""
        return {"status": "ok"}

    return health
