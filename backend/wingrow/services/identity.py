# Overview: Caller identity context shared by every lifecycle operation.

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ForbiddenError
from ..models.auth import ROLE_MANAGER, ROLE_ORGANIZER, VALID_ROLES

__all__ = ["CallerContext", "ROLE_MANAGER", "ROLE_ORGANIZER", "VALID_ROLES", "require_manager"]


@dataclass(frozen=True)
class CallerContext:
    """
    Who is calling: the identifier stamped on documents and the role gate.

    Built by the auth decorator from the session's user; services never read
    identity from request bodies.
    """
    user_id: str
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER


def require_manager(caller: CallerContext, message: str = "Managers only") -> None:
    if not caller.is_manager:
        raise ForbiddenError(message)
