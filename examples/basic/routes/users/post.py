from fastapi import HTTPException
from pydantic import BaseModel


class NewUser(BaseModel):
    name: str
    email: str


def factory(app, middlewares, route_middleware):
    async def create_user(user: NewUser) -> dict:
        """Create a new user."""
        users = app.state.users
        if any(existing["email"] == user.email for existing in users.values()):
            raise HTTPException(
                status_code=400,
                detail=f"Email {user.email} is already registered",
            )

        user_id = str(len(users) + 1)
        users[user_id] = {"id": user_id, **user.model_dump()}
        return users[user_id]

    return create_user
