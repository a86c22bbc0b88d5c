def factory(app, middlewares, route_middleware):
    async def list_users() -> dict:
        """List all users."""
        users = list(app.state.users.values())
        return {"users": users, "count": len(users)}

    return list_users
