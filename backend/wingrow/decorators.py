# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import ForbiddenError, UnauthorizedError
from .services import session_service


def require_auth(f):
    """
    Require a valid bearer token and establish the caller context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.caller: CallerContext (user_id + role) passed to services
    - g.session_context: The full SessionContext object

    Raises UnauthorizedError (401) before the view runs if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            raise UnauthorizedError("No token provided")

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(token)

        if not context:
            raise UnauthorizedError("Invalid or expired token")

        g.current_user = context.user
        g.caller = context.caller
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """
    Require the authenticated caller to hold `role`.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "caller"):
                raise UnauthorizedError()

            if g.caller.role != role:
                raise ForbiddenError(f"{role.capitalize()}s only")

            return f(*args, **kwargs)

        return decorated_function
    return decorator
