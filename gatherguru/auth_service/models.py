"""
Principal records for the authentication service.

Admins, organizers and users each live in their own collection. Every
record carries an immutable role tag, a unique lower-cased email used as
the login key, and an argon2 password hash that never leaves this module
through public_principal().
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

ADMIN = "admin"
ORGANIZER = "organizer"
USER = "user"

ROLES = (ADMIN, ORGANIZER, USER)

COLLECTIONS = {
    ADMIN: "admins",
    ORGANIZER: "organizers",
    USER: "users",
}

# Profile fields each role may set at registration or on PUT /profile
PROFILE_FIELDS = {
    ADMIN: ["name", "phone", "bio"],
    ORGANIZER: ["name", "phone", "bio", "organization", "website"],
    USER: ["name", "phone", "bio", "city", "interests"],
}


@dataclass(frozen=True)
class Principal:
    """An authenticated actor: one value, explicit role."""

    id: str
    role: str
    record: Dict[str, Any]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a string id; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _collection(db: Database, role: str):
    return db[COLLECTIONS[role]]


def find_principal(db: Database, role: str, principal_id: str) -> Optional[Principal]:
    if role not in COLLECTIONS:
        return None
    oid = to_object_id(principal_id)
    if oid is None:
        return None
    record = _collection(db, role).find_one({"_id": oid})
    if not record:
        return None
    return Principal(id=str(record["_id"]), role=role, record=record)


def find_by_email(db: Database, role: str, email: str) -> Optional[Dict[str, Any]]:
    return _collection(db, role).find_one({"email": email})


def count_principals(db: Database, role: str) -> int:
    return _collection(db, role).count_documents({})


def create_principal(
    db: Database,
    role: str,
    email: str,
    password_hash: str,
    profile: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Insert a new principal record and return it.

    Raises:
        pymongo.errors.DuplicateKeyError: If the email is already taken.
    """
    now = now_utc()
    doc = {
        "email": email,
        "password_hash": password_hash,
        "role": role,
        "profile_image": None,
        "created_at": now,
        "updated_at": now,
    }
    for key in PROFILE_FIELDS[role]:
        doc[key] = profile.get(key)

    result = _collection(db, role).insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def update_principal(
    db: Database, role: str, principal_id: str, fields: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Apply a $set to one principal and return the updated record."""
    oid = to_object_id(principal_id)
    if oid is None:
        return None
    updates = dict(fields)
    updates["updated_at"] = now_utc()
    return _collection(db, role).find_one_and_update(
        {"_id": oid},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )


def list_principals(db: Database, role: str) -> List[Dict[str, Any]]:
    return list(_collection(db, role).find({}).sort("created_at", 1))


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def public_principal(record: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a principal for JSON responses, without the password hash."""
    role = record.get("role", USER)
    out = {
        "id": str(record["_id"]),
        "email": record.get("email", ""),
        "role": role,
        "profile_image": record.get("profile_image"),
        "created_at": _iso(record.get("created_at")),
        "updated_at": _iso(record.get("updated_at")),
    }
    for key in PROFILE_FIELDS.get(role, []):
        out[key] = record.get(key)
    return out
