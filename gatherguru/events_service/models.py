"""
Event documents: categories, lifecycle stages and JSON serialization.

An event is built in steps. Basic details create a draft; a banner and
ticketing are attached afterwards; publishing makes it visible to the
public endpoints. The stage reported to clients is derived from which
steps are present rather than stored.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

CATEGORIES = [
    "Music",
    "Technology",
    "Sports",
    "Arts",
    "Business",
    "Food & Drink",
    "Education",
    "Health",
    "Community",
    "Other",
]

TICKET_TYPES = ["free", "paid"]

STAGE_BASIC = "basic"
STAGE_BANNER = "banner"
STAGE_TICKETING = "ticketing"
STAGE_PUBLISHED = "published"

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"

# Only these documents may ever reach a public endpoint
PUBLISHED_FILTER = {"published": True}


def canonical_category(value: Optional[str]) -> Optional[str]:
    """Match a category name case-insensitively; None if unknown."""
    if not isinstance(value, str) or not value:
        return None
    wanted = value.strip().lower()
    for name in CATEGORIES:
        if name.lower() == wanted:
            return name
    return None


def missing_steps(event: Dict[str, Any]) -> List[str]:
    """Steps that must be completed before the event can be published."""
    missing = []
    if not event.get("banner"):
        missing.append(STAGE_BANNER)
    if not event.get("ticketing"):
        missing.append(STAGE_TICKETING)
    return missing


def stage_of(event: Dict[str, Any]) -> str:
    if event.get("published"):
        return STAGE_PUBLISHED
    if event.get("ticketing"):
        return STAGE_TICKETING
    if event.get("banner"):
        return STAGE_BANNER
    return STAGE_BASIC


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def public_event(event: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(event["_id"]),
        "organizer_id": str(event["organizer_id"]) if event.get("organizer_id") else None,
        "title": event.get("title", ""),
        "description": event.get("description", ""),
        "category": event.get("category", ""),
        "start_date": _iso(event.get("start_date")),
        "end_date": _iso(event.get("end_date")),
        "location": event.get("location", ""),
        "banner": event.get("banner"),
        "ticketing": event.get("ticketing"),
        "published": bool(event.get("published")),
        "status": event.get("status", STATUS_DRAFT),
        "stage": stage_of(event),
        "views": int(event.get("views", 0)),
        "created_at": _iso(event.get("created_at")),
        "updated_at": _iso(event.get("updated_at")),
        "published_at": _iso(event.get("published_at")),
    }
