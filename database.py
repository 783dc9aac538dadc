"""
MongoDB access for the DevCamper API.

The client is created once when the application starts and the database
handle is stored on ``app.state``. Request handlers receive it through the
``get_db`` dependency instead of importing a module-level global.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, Request
from pydantic import BaseModel
from pymongo import ASCENDING, GEOSPHERE, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

# Never leave the server in a response body
PRIVATE_FIELDS = ("password_hash", "reset_password_token", "reset_password_expire")


def connect(url: Optional[str] = None, name: Optional[str] = None) -> Tuple[MongoClient, Database]:
    client = MongoClient(url or config.DATABASE_URL)
    db = client[name or config.DATABASE_NAME]
    logger.info("MongoDB client created for database %s", db.name)
    return client, db


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def ensure_indexes(db: Database, geo: bool = True) -> None:
    """Create the unique and geo indexes the API relies on."""
    db["bootcamp"].create_index([("name", ASCENDING)], unique=True)
    db["user"].create_index([("name", ASCENDING)], unique=True)
    db["user"].create_index([("email", ASCENDING)], unique=True)
    # one review per user per bootcamp
    db["review"].create_index([("bootcamp_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
    db["course"].create_index([("bootcamp_id", ASCENDING)])
    if geo:
        db["bootcamp"].create_index([("location", GEOSPHERE)])


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Union[str, ObjectId], resource: str = "resource") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {resource} id: {value}")


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a document and return it with its generated ``_id``."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(exclude_none=True)
    else:
        doc = {k: v for k, v in data.items() if v is not None}
    doc.setdefault("created_at", now_utc())
    result = db[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def serialize_doc(doc: Any) -> Any:
    """Make a Mongo document JSON friendly: ObjectIds become strings, secrets are dropped."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(item) for item in doc]
    if isinstance(doc, dict):
        return {k: serialize_doc(v) for k, v in doc.items() if k not in PRIVATE_FIELDS}
    return doc
