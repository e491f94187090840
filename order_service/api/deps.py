# order_service/api/deps.py
from dataclasses import dataclass
from typing import Iterator

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from order_service.domain.errors import Forbidden, Unauthorized
from order_service.resources import Resources


@dataclass(frozen=True)
class CurrentUser:
    id: int
    email: str | None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_resources(request: Request) -> Resources:
    return request.app.state.resources


def get_db(resources: Resources = Depends(get_resources)) -> Iterator[Session]:
    db = resources.new_session()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    x_user_id: str | None = Header(None),
    x_user_email: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> CurrentUser:
    """The API gateway authenticates and forwards the user as x-user-* headers."""
    try:
        user_id = int(x_user_id) if x_user_id else None
    except ValueError:
        user_id = None
    if not user_id:
        raise Unauthorized("User not authenticated", code="UNAUTHORIZED")
    return CurrentUser(id=user_id, email=x_user_email, role=(x_user_role or "user").lower())


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise Forbidden("Admin access required", code="FORBIDDEN")
    return user
