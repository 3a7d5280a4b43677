"""
MongoDB connection helper.
Provides connect() for the app factory and get_db() for use by services.
"""

import logging
from typing import Tuple

from flask import current_app
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from gatherguru.config import Settings

logger = logging.getLogger(__name__)

DB_EXTENSION_KEY = "gatherguru.db"
DEFAULT_DB_NAME = "gatherguru"


def connect(settings: Settings) -> Tuple[MongoClient, Database]:
    """
    Open a MongoClient with explicit timeouts and pick the database.

    The database name comes from MONGO_DB_NAME, then from the path of
    MONGO_URI, then falls back to "gatherguru".

    Returns:
        tuple: (client, database)
    """
    timeout = settings.mongo_timeout_ms
    client = MongoClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=timeout,
        connectTimeoutMS=timeout,
        socketTimeoutMS=timeout,
        retryWrites=True,
    )

    if settings.mongo_db_name:
        db = client[settings.mongo_db_name]
    else:
        db = client.get_default_database(default=DEFAULT_DB_NAME)

    logger.info(f"MongoDB client configured for database '{db.name}'")
    return client, db


def ensure_indexes(db: Database) -> None:
    """
    Create the indexes the services rely on. Safe to call repeatedly.
    """
    for collection in ("admins", "organizers", "users"):
        db[collection].create_index([("email", ASCENDING)], unique=True)

    events = db["events"]
    events.create_index([("organizer_id", ASCENDING), ("created_at", DESCENDING)])
    events.create_index([("published", ASCENDING), ("category", ASCENDING)])
    events.create_index([("published", ASCENDING), ("views", DESCENDING)])


def get_db() -> Database:
    """
    Return the database bound to the running application.

    Usage:
        db = get_db()
        db["events"].find_one({...})
    """
    return current_app.extensions[DB_EXTENSION_KEY]
