"""
MongoDB access for LuminaMarket.

One process-wide client is created at import time. pymongo connects lazily,
and a client that cannot even be built (bad URI, unresolvable SRV record) is
logged and left as None, so the app still starts; operations against a
missing or unreachable server fail per request instead.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog
from dotenv import load_dotenv
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

load_dotenv()

USERS = "users"
ITEMS = "items"
ORDERS = "orders"

DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGODB_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "luminamarket")


def connect(url: Optional[str], name: str) -> Tuple[Optional[MongoClient], Optional[Database]]:
    if not url:
        return None, None
    try:
        # mongodb+srv URIs are resolved here, before any server is contacted
        mongo_client = MongoClient(url, serverSelectionTimeoutMS=5000)
    except PyMongoError as e:
        structlog.get_logger().error("database_connection_failed", error=str(e))
        return None, None
    return mongo_client, mongo_client[name]


client, db = connect(DATABASE_URL, DATABASE_NAME)


def get_db() -> Optional[Database]:
    return db


def now() -> datetime:
    # BSON dates keep milliseconds only
    current = datetime.now(timezone.utc)
    return current.replace(microsecond=current.microsecond // 1000 * 1000)


def ping(database: Database) -> None:
    database.client.admin.command("ping")


def ensure_indexes(database: Database) -> None:
    database[USERS].create_index([("uid", ASCENDING)], unique=True)


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id."""
    stamp = now()
    document = dict(data)
    document["createdAt"] = stamp
    document["updatedAt"] = stamp
    result = database[collection_name].insert_one(document)
    document["_id"] = result.inserted_id
    return document


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)
