"""
Events service routes: staged event creation by organizers and the public
read endpoints. Public endpoints only ever see published events.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from flask import Blueprint, Response, g, request
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from gatherguru.auth_service.middleware import protect, restrict_to
from gatherguru.auth_service.models import ORGANIZER, to_object_id
from gatherguru.database.db_connection import get_db
from gatherguru.errors import ApiError, DeleteError, Forbidden, NotFound, ValidationError
from gatherguru.events_service.models import (
    CATEGORIES,
    PUBLISHED_FILTER,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    TICKET_TYPES,
    canonical_category,
    missing_steps,
    public_event,
)
from gatherguru.responses import ok
from gatherguru.uploads import EVENT_BANNERS, get_upload_adapter
from gatherguru.validation import json_body, str_field

logger = logging.getLogger(__name__)

events_bp = Blueprint("events", __name__)

# --- CONSTANTS FOR VALIDATION ---
TITLE_MAX_LENGTH = 200
POPULAR_DEFAULT_LIMIT = 8
POPULAR_MAX_LIMIT = 50
PAGE_DEFAULT_LIMIT = 20
PAGE_MAX_LIMIT = 100
EVENT_NOT_FOUND = "Event not found"


def parse_dt(val: Optional[str]) -> Optional[datetime]:
    """
    Safely parse an ISO-8601 or datetime-local string to a UTC datetime.

    Args:
        val (str): The date string to parse.

    Returns:
        datetime: The parsed datetime, or None if invalid.
    """
    if not val or not isinstance(val, str):
        return None
    try:
        # Handles 'YYYY-MM-DDTHH:MM' and '...Z' or '...+00:00'
        if val.endswith('Z'):
            val = val[:-1] + '+00:00'
        parsed = datetime.fromisoformat(val)
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _int_arg(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
    return max(minimum, min(value, maximum))


def _find(query: Dict[str, Any], sort: List[Tuple[str, int]], skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
    try:
        cursor = get_db()["events"].find(query).sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [public_event(e) for e in cursor]
    except PyMongoError:
        logger.exception("Database error listing events")
        raise ApiError("Failed to retrieve events")


def _owned_event(event_id: str) -> Dict[str, Any]:
    """
    Load an event the current organizer owns.

    Raises:
        NotFound: Bad id or no such event.
        Forbidden: The event belongs to another organizer.
    """
    oid = to_object_id(event_id)
    if oid is None:
        raise NotFound(EVENT_NOT_FOUND)

    event = get_db()["events"].find_one({"_id": oid})
    if not event:
        raise NotFound(EVENT_NOT_FOUND)

    if str(event.get("organizer_id")) != g.principal.id:
        raise Forbidden("You do not own this event")
    return event


def _save(event_id, updates: Dict[str, Any]) -> Dict[str, Any]:
    updates["updated_at"] = datetime.now(timezone.utc)
    try:
        updated = get_db()["events"].find_one_and_update(
            {"_id": event_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError:
        logger.exception(f"Database error updating event {event_id}")
        raise ApiError("Failed to update event")
    if updated is None:
        raise NotFound(EVENT_NOT_FOUND)
    return updated


# --- PUBLIC: CATEGORIES ---
@events_bp.route("/categories", methods=["GET"])
def get_event_categories() -> Tuple[Response, int]:
    """Category names with the number of published events in each."""
    events = get_db()["events"]
    categories = [
        {"name": name, "count": events.count_documents({**PUBLISHED_FILTER, "category": name})}
        for name in CATEGORIES
    ]
    return ok({"categories": categories})


# --- PUBLIC: POPULAR ---
@events_bp.route("/popular", methods=["GET"])
def get_popular_events() -> Tuple[Response, int]:
    limit = _int_arg("limit", POPULAR_DEFAULT_LIMIT, 1, POPULAR_MAX_LIMIT)
    events = _find(PUBLISHED_FILTER, [("views", DESCENDING), ("created_at", DESCENDING)], limit=limit)
    return ok({"count": len(events), "events": events})


# --- PUBLIC: BY CATEGORY ---
@events_bp.route("/category/<category>", methods=["GET"])
def get_events_by_category(category: str) -> Tuple[Response, int]:
    query = {
        **PUBLISHED_FILTER,
        "category": {"$regex": f"^{re.escape(category.strip())}$", "$options": "i"},
    }
    events = _find(query, [("start_date", ASCENDING)])
    return ok({"category": category, "count": len(events), "events": events})


# --- PUBLIC: SEARCH ---
@events_bp.route("/search", methods=["GET"])
def search_events() -> Tuple[Response, int]:
    """
    Search published events.

    Query parameters (all optional, combined with AND):
    - q: matched against title, description and location
    - category: exact category, case-insensitive
    - location: substring of the location
    """
    q = (request.args.get("q") or "").strip()
    category = (request.args.get("category") or "").strip()
    location = (request.args.get("location") or "").strip()

    clauses: List[Dict[str, Any]] = [dict(PUBLISHED_FILTER)]
    if q:
        pattern = {"$regex": re.escape(q), "$options": "i"}
        clauses.append({"$or": [{"title": pattern}, {"description": pattern}, {"location": pattern}]})
    if category:
        clauses.append({"category": {"$regex": f"^{re.escape(category)}$", "$options": "i"}})
    if location:
        clauses.append({"location": {"$regex": re.escape(location), "$options": "i"}})

    events = _find({"$and": clauses}, [("start_date", ASCENDING)])
    return ok({"count": len(events), "events": events})


# --- PUBLIC: ALL ---
@events_bp.route("/all", methods=["GET"])
def get_all_events() -> Tuple[Response, int]:
    page = _int_arg("page", 1, 1, 10**6)
    limit = _int_arg("limit", PAGE_DEFAULT_LIMIT, 1, PAGE_MAX_LIMIT)

    total = get_db()["events"].count_documents(PUBLISHED_FILTER)
    events = _find(PUBLISHED_FILTER, [("start_date", ASCENDING)], skip=(page - 1) * limit, limit=limit)

    return ok({
        "count": len(events),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
        "events": events,
    })


# --- PUBLIC: DETAILS ---
@events_bp.route("/<eventId>", methods=["GET"])
def get_event_details(eventId: str) -> Tuple[Response, int]:
    """
    Get a single published event by id and count the view.

    Returns:
        200: Event object.
        404: Unknown id, malformed id, or the event is still a draft.
    """
    oid = to_object_id(eventId)
    if oid is None:
        raise NotFound(EVENT_NOT_FOUND)

    event = get_db()["events"].find_one_and_update(
        {"_id": oid, **PUBLISHED_FILTER},
        {"$inc": {"views": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not event:
        raise NotFound(EVENT_NOT_FOUND)

    return ok({"event": public_event(event)})


# --- ORGANIZER: CREATE (BASIC DETAILS) ---
@events_bp.route("", methods=["POST"])
@protect
@restrict_to(ORGANIZER)
def create_event_basic() -> Tuple[Response, int]:
    """
    Create a draft event from its basic details.

    Validations:
    - title required, at most 200 characters
    - category must be one of CATEGORIES
    - start_date and end_date ISO-8601, start before end
    - location required

    Returns:
        201: { "event": {...} } in the basic stage.
        400: Validation error.
    """
    data = json_body()

    title = str_field(data, "title") or ""
    description = str_field(data, "description") or ""
    location = str_field(data, "location") or ""

    # --- START VALIDATION ---
    if not title:
        raise ValidationError("Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be {TITLE_MAX_LENGTH} characters or less.")

    category = canonical_category(str_field(data, "category"))
    if not category:
        raise ValidationError(f"category must be one of: {', '.join(CATEGORIES)}")

    start_dt = parse_dt(str_field(data, "start_date"))
    end_dt = parse_dt(str_field(data, "end_date"))
    if not start_dt or not end_dt:
        raise ValidationError("start_date and end_date are required in ISO-8601 format")
    if start_dt >= end_dt:
        raise ValidationError("start_date must be before end_date")

    if not location:
        raise ValidationError("Location is required")
    # --- END VALIDATION ---

    now = datetime.now(timezone.utc)
    doc = {
        "organizer_id": to_object_id(g.principal.id),
        "title": title,
        "description": description,
        "category": category,
        "start_date": start_dt,
        "end_date": end_dt,
        "location": location,
        "banner": None,
        "ticketing": None,
        "published": False,
        "status": STATUS_DRAFT,
        "views": 0,
        "created_at": now,
        "updated_at": now,
        "published_at": None,
    }

    try:
        result = get_db()["events"].insert_one(doc)
    except PyMongoError:
        logger.exception("Database error creating event")
        raise ApiError("Failed to create event")

    doc["_id"] = result.inserted_id
    logger.info(f"Organizer {g.principal.id} created event {result.inserted_id}")
    return ok({"message": "Event created", "event": public_event(doc)}, 201)


# --- ORGANIZER: BANNER ---
@events_bp.route("/<eventId>/banner", methods=["PATCH"])
@protect
@restrict_to(ORGANIZER)
def update_event_banner(eventId: str) -> Tuple[Response, int]:
    """
    Attach a banner image (multipart field "eventBanner").

    A stored file is not removed if the database update then fails.
    """
    event = _owned_event(eventId)
    adapter = get_upload_adapter()

    result = adapter.store(request.files.get("eventBanner"), EVENT_BANNERS)
    updated = _save(event["_id"], {"banner": result.to_dict()})

    previous = event.get("banner")
    if previous and previous.get("key"):
        try:
            adapter.delete(previous["key"])
        except DeleteError:
            logger.warning(f"Could not delete previous banner {previous['key']}")

    return ok({"message": "Banner updated", "event": public_event(updated)})


def _parse_tiers(raw: Any, ticket_type: str) -> List[Dict[str, Any]]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("tiers must be a non-empty list")

    tiers = []
    for i, tier in enumerate(raw):
        if not isinstance(tier, dict):
            raise ValidationError(f"tiers[{i}] must be an object")

        name = tier.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"tiers[{i}].name is required")

        price = tier.get("price", 0)
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            raise ValidationError(f"tiers[{i}].price must be a number >= 0")

        quantity = tier.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"tiers[{i}].quantity must be an integer >= 1")

        tiers.append({
            "name": name.strip(),
            "price": 0 if ticket_type == "free" else float(price),
            "quantity": quantity,
        })
    return tiers


# --- ORGANIZER: TICKETING ---
@events_bp.route("/<eventId>/ticketing", methods=["PATCH"])
@protect
@restrict_to(ORGANIZER)
def update_event_ticketing(eventId: str) -> Tuple[Response, int]:
    """
    Set ticket tiers and capacity.

    Expects JSON:
        {
            "ticket_type": "free" | "paid",
            "tiers": [{"name": str, "price": number, "quantity": int}, ...],
            "capacity": int (optional, defaults to the sum of quantities)
        }

    Returns:
        200: Updated event.
        400: Validation error, or the event is already published.
    """
    event = _owned_event(eventId)
    if event.get("published"):
        raise ValidationError("Ticketing cannot be changed after the event is published")

    data = json_body()

    ticket_type = data.get("ticket_type")
    if ticket_type not in TICKET_TYPES:
        raise ValidationError(f"ticket_type must be one of: {', '.join(TICKET_TYPES)}")

    tiers = _parse_tiers(data.get("tiers"), ticket_type)
    total_quantity = sum(t["quantity"] for t in tiers)

    capacity = data.get("capacity", total_quantity)
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < total_quantity:
        raise ValidationError("capacity must be an integer no smaller than the total tier quantity")

    ticketing = {"ticket_type": ticket_type, "tiers": tiers, "capacity": capacity}
    updated = _save(event["_id"], {"ticketing": ticketing})
    return ok({"message": "Ticketing updated", "event": public_event(updated)})


# --- ORGANIZER: PUBLISH ---
@events_bp.route("/<eventId>/publish", methods=["PATCH"])
@protect
@restrict_to(ORGANIZER)
def publish_event(eventId: str) -> Tuple[Response, int]:
    """
    Make a draft visible to the public endpoints.

    Publishing requires the banner and ticketing steps; the response lists
    whichever are missing. Publishing an already published event is a no-op.
    """
    event = _owned_event(eventId)
    if event.get("published"):
        return ok({"message": "Event is already published", "event": public_event(event)})

    missing = missing_steps(event)
    if missing:
        raise ValidationError(
            f"Complete these steps before publishing: {', '.join(missing)}",
            details={"missing": missing},
        )

    updated = _save(event["_id"], {
        "published": True,
        "status": STATUS_PUBLISHED,
        "published_at": datetime.now(timezone.utc),
    })
    logger.info(f"Event {event['_id']} published")
    return ok({"message": "Event published", "event": public_event(updated)})


# --- ORGANIZER: OWN EVENTS ---
@events_bp.route("/organizer/events", methods=["GET"])
@protect
@restrict_to(ORGANIZER)
def get_organizer_events() -> Tuple[Response, int]:
    """All of the organizer's events, drafts included, newest first."""
    events = _find(
        {"organizer_id": to_object_id(g.principal.id)},
        [("created_at", DESCENDING)],
    )
    return ok({"count": len(events), "events": events})


@events_bp.route("/organizer/events/<eventId>", methods=["GET"])
@protect
@restrict_to(ORGANIZER)
def get_organizer_event(eventId: str) -> Tuple[Response, int]:
    return ok({"event": public_event(_owned_event(eventId))})
