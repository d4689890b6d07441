"""
Resource services for users, items and orders.

Every function takes the database handle, performs a single storage
operation and returns JSON-ready dicts. pydantic and pymongo failures are
translated into the errors in `errors`.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
from errors import StorageError, ValidationError
from schemas import Item, Order, User, UserSync


def to_serializable(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for key, value in d.items():
        # pymongo hands back naive datetimes that are UTC
        if isinstance(value, datetime) and value.tzinfo is None:
            d[key] = value.replace(tzinfo=timezone.utc)
    return d


@contextmanager
def storage(db: Optional[Database]) -> Iterator[Database]:
    if db is None:
        raise StorageError("Database not available")
    try:
        yield db
    except PyMongoError as e:
        raise StorageError(str(e)) from e


def _validate(model, payload: Any):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e


# Items

def list_items(db: Optional[Database]) -> List[Dict[str, Any]]:
    with storage(db) as conn:
        docs = database.get_documents(conn, database.ITEMS, sort=[("_id", DESCENDING)])
    return [to_serializable(d) for d in docs]


def create_item(db: Optional[Database], payload: Any) -> Dict[str, Any]:
    item = _validate(Item, payload)
    with storage(db) as conn:
        doc = item.model_dump()
        # insert_one adds the generated _id to doc
        conn[database.ITEMS].insert_one(doc)
    return to_serializable(doc)


# Users

def get_user(db: Optional[Database], uid: str) -> Optional[Dict[str, Any]]:
    with storage(db) as conn:
        doc = conn[database.USERS].find_one({"uid": uid})
    return to_serializable(doc)


def sync_user(db: Optional[Database], payload: Any) -> Dict[str, Any]:
    """
    Insert or refresh the user keyed by `uid` in one atomic write.

    Fields present in the payload overwrite the stored ones, fields left out
    keep their stored values, and `lastLogin` is stamped with the current time.
    """
    sync = _validate(UserSync, payload)
    fields = sync.model_dump(exclude_unset=True, exclude={"uid"})
    fields["lastLogin"] = database.now()
    update: Dict[str, Any] = {"$set": fields}
    if "role" not in fields:
        update["$setOnInsert"] = {"role": User.model_fields["role"].default}
    with storage(db) as conn:
        doc = conn[database.USERS].find_one_and_update(
            {"uid": sync.uid},
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    return to_serializable(doc)


# Orders

def create_order(db: Optional[Database], payload: Any) -> Dict[str, Any]:
    order = _validate(Order, payload)
    data = order.model_dump(exclude={"items"})
    # line items are stored exactly as sent, with no recomputed total
    data["items"] = [line.model_dump(exclude_unset=True) for line in order.items]
    with storage(db) as conn:
        doc = database.create_document(conn, database.ORDERS, data)
    return to_serializable(doc)


def list_orders_by_email(db: Optional[Database], email: str) -> List[Dict[str, Any]]:
    with storage(db) as conn:
        docs = database.get_documents(
            conn, database.ORDERS, {"userEmail": email}, sort=[("createdAt", DESCENDING)]
        )
    return [to_serializable(d) for d in docs]


def list_all_orders(db: Optional[Database]) -> List[Dict[str, Any]]:
    with storage(db) as conn:
        docs = database.get_documents(conn, database.ORDERS, sort=[("createdAt", DESCENDING)])
    return [to_serializable(d) for d in docs]
