"""
MongoDB access for the Workforce Records API

Collections are named after the lowercased record type ("employee", "task").
Route handlers receive the database handle through the `get_db` dependency so
tests can swap in another client.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from bson import ObjectId
from dotenv import load_dotenv
from fastapi import HTTPException
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "workforce")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

# Bookkeeping fields never returned to callers
HIDDEN_FIELDS = ("createdAt", "updatedAt", "__v")
HIDDEN_PROJECTION = {field: 0 for field in HIDDEN_FIELDS}

client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS)
db = client[DATABASE_NAME]


def get_db() -> Database:
    return db


def ensure_indexes(database: Database) -> None:
    # employee.email uniqueness is enforced here, not only in the handlers
    database["employee"].create_index([("email", ASCENDING)], unique=True)
    database["task"].create_index([("employeeId", ASCENDING)])


# -------------------- Helpers --------------------

def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way BSON hands it back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail="Invalid id")
    return ObjectId(id_str)


def doc_to_dict(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            doc[key] = str(value)
    for field in HIDDEN_FIELDS:
        doc.pop(field, None)
    return doc


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert `data` with timestamps and a revision counter, return it as a response dict."""
    now = utcnow()
    doc = dict(data)
    doc["createdAt"] = now
    doc["updatedAt"] = now
    doc["__v"] = 0
    inserted = database[collection_name].insert_one(doc)
    doc["_id"] = inserted.inserted_id
    return doc_to_dict(doc)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
    skip: int = 0,
    limit: int = 0,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {}, HIDDEN_PROJECTION)
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return [doc_to_dict(doc) for doc in cursor]


def update_document(
    database: Database, collection_name: str, oid: ObjectId, updates: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Apply a partial `$set`; returns None when nothing matched."""
    updates = dict(updates)
    updates["updatedAt"] = utcnow()
    res = database[collection_name].update_one(
        {"_id": oid}, {"$set": updates, "$inc": {"__v": 1}}
    )
    if res.matched_count == 0:
        return None
    return doc_to_dict(database[collection_name].find_one({"_id": oid}, HIDDEN_PROJECTION))
