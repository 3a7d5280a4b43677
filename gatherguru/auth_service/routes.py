"""
Authentication service route handlers.

Provides, for each principal role (admin, organizer, user):
- Registration
- Login (sets the HTTP-only session cookie)
- Logout (clears it)
- Profile retrieval and update
- Profile image upload

plus an admin-only listing of accounts. The handlers are shared; the
blueprints below only bind them to each role's URLs.
"""

import logging
import re
from typing import Any, Dict, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import Blueprint, Response, g, request
from pymongo.errors import DuplicateKeyError, PyMongoError

from gatherguru.auth_service.middleware import current_principal_or_none, protect, restrict_to
from gatherguru.auth_service.models import (
    ADMIN,
    ORGANIZER,
    PROFILE_FIELDS,
    ROLES,
    USER,
    count_principals,
    create_principal,
    find_by_email,
    list_principals,
    public_principal,
    update_principal,
)
from gatherguru.auth_service.utils import TOKEN_COOKIE_NAME, get_token_service
from gatherguru.config import get_settings
from gatherguru.database.db_connection import get_db
from gatherguru.errors import ApiError, DeleteError, Forbidden, Unauthorized, ValidationError
from gatherguru.responses import ok
from gatherguru.uploads import PROFILE_IMAGES, get_upload_adapter
from gatherguru.validation import json_body, str_field

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)
profile_bp = Blueprint("profile", __name__)
admin_bp = Blueprint("admin", __name__)
organizer_bp = Blueprint("organizer", __name__)

ph = PasswordHasher()

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_MIN_LENGTH = 8
INVALID_CREDENTIALS = "Invalid credentials"


def _clean_profile(role: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep only the profile fields the role may set, normalizing values.

    Raises:
        ValidationError: A field has the wrong type.
    """
    fields: Dict[str, Any] = {}
    for key in PROFILE_FIELDS[role]:
        if key not in data:
            continue
        value = data[key]
        if key == "interests":
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValidationError("interests must be a list of strings")
            fields[key] = [v.strip() for v in value if v.strip()]
        elif value is None:
            fields[key] = None
        elif isinstance(value, str):
            fields[key] = value.strip()
        else:
            raise ValidationError(f"{key} must be a string")

    if "name" in fields and not fields["name"]:
        raise ValidationError("Name cannot be empty")
    return fields


def _password(data: Dict[str, Any]) -> str:
    password = data.get("password")
    if password is None:
        return ""
    if not isinstance(password, str):
        raise ValidationError("password must be a string")
    return password


def _set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        TOKEN_COOKIE_NAME,
        token,
        max_age=get_token_service().max_age_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
    )


# --- REGISTER ---
def register_account(role: str) -> Tuple[Response, int]:
    """
    Register a new principal with the given role.

    Expects a JSON body with:
    - email (str): Unique within the role.
    - password (str): Minimum 8 characters.
    - name (str)
    - any profile fields allowed for the role

    Returns:
        201: JSON with the new account.
        400: Missing fields, invalid input, or email already exists.
        500: Database error.
    """
    data = json_body()
    email = (str_field(data, "email") or "").lower()
    password = _password(data)

    if not email or not password:
        raise ValidationError("Email and password required")
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")

    profile = _clean_profile(role, data)
    if not profile.get("name"):
        raise ValidationError("Name is required")

    db = get_db()
    if find_by_email(db, role, email):
        raise ValidationError("Email already exists")

    try:
        record = create_principal(db, role, email, ph.hash(password), profile)
    except DuplicateKeyError:
        raise ValidationError("Email already exists")
    except PyMongoError:
        logger.exception(f"Registration failed for {role}")
        raise ApiError("Registration failed")

    logger.info(f"Registered {role} {record['_id']}")
    return ok({"message": "Account created successfully", role: public_principal(record)}, 201)


# --- LOGIN ---
def login_account(role: str) -> Tuple[Response, int]:
    """
    Authenticate a principal and set the session cookie.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: JSON with the account; the token travels only in the cookie.
        400: Missing credentials.
        401: Invalid credentials (wrong password or email).
    """
    data = json_body()
    email = (str_field(data, "email") or "").lower()
    password = _password(data)

    if not email or not password:
        raise ValidationError("Email and password required")

    db = get_db()
    record = find_by_email(db, role, email)
    if not record:
        raise Unauthorized(INVALID_CREDENTIALS)

    # Verify password against hash
    try:
        ph.verify(record["password_hash"], password)
    except (VerificationError, InvalidHashError):
        raise Unauthorized(INVALID_CREDENTIALS)

    if ph.check_needs_rehash(record["password_hash"]):
        update_principal(db, role, str(record["_id"]), {"password_hash": ph.hash(password)})

    token = get_token_service().issue(str(record["_id"]), role)

    response, status = ok({"message": "Login successful", role: public_principal(record)})
    _set_session_cookie(response, token)
    return response, status


# --- LOGOUT ---
def logout_account() -> Tuple[Response, int]:
    """
    Clear the session cookie. The token itself stays valid until it expires.
    """
    settings = get_settings()
    response, status = ok({"message": "Logged out successfully"})
    response.delete_cookie(
        TOKEN_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
    )
    return response, status


# --- PROFILE ---
def get_profile() -> Tuple[Response, int]:
    principal = g.principal
    return ok({principal.role: public_principal(principal.record)})


def update_profile() -> Tuple[Response, int]:
    """
    Update the current principal's profile.

    Only the fields listed in PROFILE_FIELDS for the role are accepted;
    email and role never change here.

    Returns:
        200: Updated account.
        400: No valid fields provided.
    """
    principal = g.principal
    data = json_body()

    fields = _clean_profile(principal.role, data)
    if not fields:
        raise ValidationError("No valid fields provided")

    try:
        updated = update_principal(get_db(), principal.role, principal.id, fields)
    except PyMongoError:
        logger.exception(f"Profile update failed for {principal.role} {principal.id}")
        raise ApiError("Update failed")

    if updated is None:
        raise Unauthorized()

    return ok({"message": "Profile updated", principal.role: public_principal(updated)})


def upload_profile_image() -> Tuple[Response, int]:
    """
    Store a new profile image (multipart field "profileImage").

    The previous image, if any, is removed afterwards; a failure to remove
    it is logged and does not fail the request.
    """
    principal = g.principal
    adapter = get_upload_adapter()

    result = adapter.store(request.files.get("profileImage"), PROFILE_IMAGES)
    previous = principal.record.get("profile_image")

    try:
        updated = update_principal(get_db(), principal.role, principal.id, {"profile_image": result.to_dict()})
    except PyMongoError:
        logger.exception(f"Saving profile image failed for {principal.role} {principal.id}")
        raise ApiError("Update failed")

    if updated is None:
        raise Unauthorized()

    if previous and previous.get("key"):
        try:
            adapter.delete(previous["key"])
        except DeleteError:
            logger.warning(f"Could not delete previous profile image {previous['key']}")

    return ok({"message": "Profile image updated", principal.role: public_principal(updated)})


# --- USER ROUTES (/api) ---
@auth_bp.route("/register", methods=["POST"])
def register_user():
    return register_account(USER)


@auth_bp.route("/login", methods=["POST"])
def login_user():
    return login_account(USER)


@auth_bp.route("/logout", methods=["POST"])
@protect
def logout_user():
    return logout_account()


@profile_bp.route("", methods=["GET"])
@protect
@restrict_to(USER)
def get_user_profile():
    return get_profile()


@profile_bp.route("", methods=["PUT"])
@protect
@restrict_to(USER)
def update_user_profile():
    return update_profile()


@profile_bp.route("/image", methods=["POST"])
@protect
@restrict_to(USER)
def upload_user_image():
    return upload_profile_image()


# --- ORGANIZER ROUTES (/api/organizer) ---
@organizer_bp.route("/register", methods=["POST"])
def register_organizer():
    return register_account(ORGANIZER)


@organizer_bp.route("/login", methods=["POST"])
def login_organizer():
    return login_account(ORGANIZER)


@organizer_bp.route("/logout", methods=["POST"])
@protect
def logout_organizer():
    return logout_account()


@organizer_bp.route("/profile", methods=["GET"])
@protect
@restrict_to(ORGANIZER)
def get_organizer_profile():
    return get_profile()


@organizer_bp.route("/profile", methods=["PUT"])
@protect
@restrict_to(ORGANIZER)
def update_organizer_profile():
    return update_profile()


@organizer_bp.route("/profile/image", methods=["POST"])
@protect
@restrict_to(ORGANIZER)
def upload_organizer_image():
    return upload_profile_image()


# --- ADMIN ROUTES (/api/admin) ---
@admin_bp.route("/register", methods=["POST"])
def register_admin():
    """
    The first admin may register freely; after that only an
    authenticated admin can create another.
    """
    if count_principals(get_db(), ADMIN) > 0:
        principal = current_principal_or_none()
        if principal is None or principal.role != ADMIN:
            raise Forbidden("Only an admin can register another admin")
    return register_account(ADMIN)


@admin_bp.route("/login", methods=["POST"])
def login_admin():
    return login_account(ADMIN)


@admin_bp.route("/logout", methods=["POST"])
@protect
def logout_admin():
    return logout_account()


@admin_bp.route("/profile", methods=["GET"])
@protect
@restrict_to(ADMIN)
def get_admin_profile():
    return get_profile()


@admin_bp.route("/profile", methods=["PUT"])
@protect
@restrict_to(ADMIN)
def update_admin_profile():
    return update_profile()


@admin_bp.route("/profile/image", methods=["POST"])
@protect
@restrict_to(ADMIN)
def upload_admin_image():
    return upload_profile_image()


# --- LIST ACCOUNTS (ADMIN ONLY) ---
@admin_bp.route("/users", methods=["GET"])
@protect
@restrict_to(ADMIN)
def list_accounts():
    """
    List accounts of one role (?role=organizer) or of every role.

    Returns:
        200: { "users": [...] }
        400: Unknown role.
    """
    role = (request.args.get("role") or "").strip().lower()
    if role and role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    db = get_db()
    roles = [role] if role else list(ROLES)
    users = [public_principal(r) for each in roles for r in list_principals(db, each)]
    return ok({"count": len(users), "users": users})
