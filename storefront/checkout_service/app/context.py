from __future__ import annotations

from dataclasses import dataclass

from .errors import NotAuthenticated


@dataclass(frozen=True, slots=True)
class UserContext:
    """The authenticated caller, passed explicitly into every cart and order operation."""

    id: str
    email: str = ""


def require_user(user: UserContext | None) -> UserContext:
    if user is None or not user.id.strip():
        raise NotAuthenticated("User must be authenticated")
    return user
