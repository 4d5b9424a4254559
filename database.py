"""
MongoDB access helpers.

The application talks to a single pymongo database handle. Routes receive it
through the ``get_db`` dependency so tests can swap in an in-memory database.
"""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, GEOSPHERE, TEXT, MongoClient
from pymongo.database import Database

import settings

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.DATABASE_URL and settings.DATABASE_NAME:
    client = MongoClient(settings.DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = client[settings.DATABASE_NAME]
else:
    logger.warning("DATABASE_URL / DATABASE_NAME not set, database unavailable")


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def utcnow() -> datetime:
    # naive UTC, matching what pymongo hands back for stored dates
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid id")


def _clean(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _clean(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_clean(v) for v in value]
    return value


def serialize_doc(doc):
    """Turn a raw Mongo document into JSON-safe output with ``id`` in place of ``_id``."""
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    out = _clean(doc)
    if _id is not None:
        out = {"id": str(_id), **out}
    return out


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict["createdAt"] = now
    data_dict["updatedAt"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    sort: Optional[list] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(database: Database) -> None:
    database["store"].create_index([("location", GEOSPHERE)])
    database["user"].create_index([("mobileNumber", ASCENDING)], unique=True)
    database["user"].create_index([("location", GEOSPHERE)])
    database["medicine"].create_index([("name", TEXT), ("description", TEXT)])
    database["medicine"].create_index([("store", ASCENDING)])
    database["medicine"].create_index([("category", ASCENDING)])
    database["order"].create_index([("user", ASCENDING), ("createdAt", DESCENDING)])
    database["order"].create_index([("store", ASCENDING), ("status", ASCENDING)])
    database["address"].create_index([("user", ASCENDING), ("isDefault", DESCENDING)])
    database["address"].create_index([("location", GEOSPHERE)])
    database["admin"].create_index([("email", ASCENDING)], unique=True)
    database["category"].create_index([("name", ASCENDING)], unique=True)
    database["otp"].create_index([("expiresAt", ASCENDING)], expireAfterSeconds=0)
    logger.info("Database indexes ensured")
