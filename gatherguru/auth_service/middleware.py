"""
Route guards.

protect authenticates the session cookie and attaches the principal to
flask.g; restrict_to then checks the principal's role. Stack them with
protect outermost:

    @bp.route("/profile")
    @protect
    @restrict_to("admin")
    def get_profile(): ...
"""

from functools import wraps
from typing import Callable, Optional

from flask import g, request

from gatherguru.auth_service.models import Principal, find_principal
from gatherguru.auth_service.utils import TOKEN_COOKIE_NAME, InvalidToken, get_token_service
from gatherguru.database.db_connection import get_db
from gatherguru.errors import Forbidden, Unauthorized


def authenticate() -> Principal:
    """
    Resolve the request's session cookie to a stored principal.

    Raises:
        Unauthorized: Missing, invalid or expired token, or the principal
            no longer exists.
    """
    token = request.cookies.get(TOKEN_COOKIE_NAME)
    if not token:
        raise Unauthorized()

    try:
        claims = get_token_service().verify(token)
    except InvalidToken:
        raise Unauthorized()

    principal = find_principal(get_db(), claims.role, claims.id)
    if principal is None:
        raise Unauthorized()

    return principal


def current_principal_or_none() -> Optional[Principal]:
    """Like authenticate(), but returns None instead of raising."""
    try:
        return authenticate()
    except Unauthorized:
        return None


def protect(view: Callable) -> Callable:
    @wraps(view)
    def wrapped(*args, **kwargs):
        g.principal = authenticate()
        return view(*args, **kwargs)

    return wrapped


def restrict_to(*roles: str) -> Callable[[Callable], Callable]:
    """
    Allow the view only for principals whose role is in `roles`.
    Must run after protect.
    """

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapped(*args, **kwargs):
            principal: Optional[Principal] = g.get("principal")
            if principal is None:
                raise Unauthorized()
            if principal.role not in roles:
                raise Forbidden()
            return view(*args, **kwargs)

        return wrapped

    return decorator
