"""
Persistence-facing services, one per collection.

Services take already validated payloads from ``schemas`` and return raw Mongo
documents; serialization for the response happens in the routes. Derived
bootcamp fields (``average_cost``, ``average_rating``) are only ever written by
``update_average_cost`` and ``update_average_rating``.
"""
import logging
import os
import re
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
import geocoder
from auth import hash_password
from database import PRIVATE_FIELDS, create_document, to_object_id
from errors import ErrorResponse
from query import FieldTypes, QueryOptions, field_types, paginate
from schemas import (
    Bootcamp,
    BootcampCreate,
    BootcampUpdate,
    Course,
    CourseCreate,
    CourseUpdate,
    Review,
    ReviewCreate,
    ReviewUpdate,
    User,
    UserCreate,
    UserUpdate,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3963


def slugify(value: str) -> str:
    value = re.sub(r"[^\w\s-]", "", value.lower()).strip()
    return re.sub(r"[-\s_]+", "-", value)


def radius_filter(lng: float, lat: float, distance_miles: float) -> Dict[str, Any]:
    return {
        "location": {
            "$geoWithin": {"$centerSphere": [[lng, lat], distance_miles / EARTH_RADIUS_MILES]}
        }
    }


# -------------------- Aggregates --------------------

def _recompute_average(db: Database, child: str, source_field: str, target_field: str, bootcamp_id: str):
    pipeline = [
        {"$match": {"bootcamp_id": bootcamp_id}},
        {"$group": {"_id": "$bootcamp_id", "average": {"$avg": f"${source_field}"}}},
    ]
    result = list(db[child].aggregate(pipeline))
    if not result or result[0].get("average") is None:
        db["bootcamp"].update_one({"_id": ObjectId(bootcamp_id)}, {"$unset": {target_field: ""}})
        return None
    average = result[0]["average"]
    db["bootcamp"].update_one({"_id": ObjectId(bootcamp_id)}, {"$set": {target_field: average}})
    return average


def update_average_cost(db: Database, bootcamp_id: str) -> Optional[float]:
    """Store the mean course tuition on the bootcamp, or clear it when no courses remain."""
    try:
        return _recompute_average(db, "course", "tuition", "average_cost", bootcamp_id)
    except (PyMongoError, InvalidId):
        logger.exception("Could not update average cost of bootcamp %s", bootcamp_id)
        return None


def update_average_rating(db: Database, bootcamp_id: str) -> Optional[float]:
    """Store the mean review rating on the bootcamp, or clear it when no reviews remain."""
    try:
        return _recompute_average(db, "review", "rating", "average_rating", bootcamp_id)
    except (PyMongoError, InvalidId):
        logger.exception("Could not update average rating of bootcamp %s", bootcamp_id)
        return None


# -------------------- Base --------------------

class BaseService:
    collection_name = ""
    resource = "resource"
    model = None

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    @property
    def query_types(self) -> FieldTypes:
        """Fields whose query-string values are converted before filtering."""
        return field_types(self.model) if self.model else {}

    def populate(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return docs

    def list(self, options: QueryOptions, extra_filter: Optional[Dict[str, Any]] = None):
        docs, pagination = paginate(self.collection, options, extra_filter)
        return self.populate(docs), pagination

    def find(self, id: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"_id": to_object_id(id, self.resource)})

    def get(self, id: str) -> Optional[Dict[str, Any]]:
        doc = self.find(id)
        return self.populate([doc])[0] if doc else None

    def _set(self, id: str, fields: Dict[str, Any], unset: Optional[Dict[str, str]] = None):
        update: Dict[str, Any] = {}
        if fields:
            update["$set"] = fields
        if unset:
            update["$unset"] = unset
        if not update:
            return self.find(id)
        return self.collection.find_one_and_update(
            {"_id": to_object_id(id, self.resource)},
            update,
            return_document=ReturnDocument.AFTER,
        )

    def delete(self, id: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one_and_delete({"_id": to_object_id(id, self.resource)})

    def _lookup(self, collection: str, ids: List[str], fields: Tuple[str, ...]) -> Dict[str, Dict[str, Any]]:
        oids = [ObjectId(i) for i in set(ids) if ObjectId.is_valid(i)]
        if not oids:
            return {}
        projection = {f: 1 for f in fields}
        return {str(d["_id"]): d for d in self.db[collection].find({"_id": {"$in": oids}}, projection)}


# -------------------- Bootcamps --------------------

class BootcampService(BaseService):
    collection_name = "bootcamp"
    resource = "bootcamp"
    model = Bootcamp

    def populate(self, docs):
        ids = [str(d["_id"]) for d in docs]
        by_bootcamp = defaultdict(list)
        if ids:
            for course in self.db["course"].find({"bootcamp_id": {"$in": ids}}):
                by_bootcamp[course["bootcamp_id"]].append(course)
        for doc in docs:
            doc["courses"] = by_bootcamp.get(str(doc["_id"]), [])
        return docs

    def create(self, data: BootcampCreate, user: Dict[str, Any]) -> Dict[str, Any]:
        user_id = str(user["_id"])
        if user.get("role") != "admin" and self.collection.count_documents({"user_id": user_id}) > 0:
            raise ErrorResponse(f"The user with ID {user_id} has already published a bootcamp", 400)
        bootcamp = Bootcamp(
            **data.model_dump(),
            user_id=user_id,
            slug=slugify(data.name),
            location=geocoder.geocode(data.address),
        )
        doc = create_document(self.db, self.collection_name, bootcamp)
        logger.info("Bootcamp %s created by user %s", doc["_id"], user_id)
        return doc

    def update(self, id: str, data: BootcampUpdate) -> Optional[Dict[str, Any]]:
        fields = data.model_dump(exclude_none=True)
        if "name" in fields:
            fields["slug"] = slugify(fields["name"])
        if "address" in fields:
            location = geocoder.geocode(fields["address"])
            if location:
                fields["location"] = location
        return self._set(id, fields)

    def replace(self, id: str, data: BootcampCreate) -> Optional[Dict[str, Any]]:
        fields = data.model_dump(exclude_none=True)
        fields["slug"] = slugify(data.name)
        unset = {f: "" for f in ("website", "phone", "email") if f not in fields}
        location = geocoder.geocode(data.address)
        if location:
            fields["location"] = location
        else:
            unset["location"] = ""
        return self._set(id, fields, unset)

    def delete(self, id: str) -> Optional[Dict[str, Any]]:
        doc = super().delete(id)
        if doc:
            result = self.db["course"].delete_many({"bootcamp_id": str(doc["_id"])})
            logger.info("Bootcamp %s deleted with %d courses", doc["_id"], result.deleted_count)
        return doc

    def within_radius(self, zipcode: str, distance_miles: float) -> List[Dict[str, Any]]:
        location = geocoder.geocode(zipcode)
        if not location:
            raise ErrorResponse(f"Could not locate zipcode {zipcode}", 404)
        lng, lat = location["coordinates"]
        return self.populate(list(self.collection.find(radius_filter(lng, lat, distance_miles))))

    def save_photo(self, id: str, original_name: str, content: bytes) -> str:
        """Write the upload as ``photo_<id><ext>`` and point the bootcamp at it."""
        ext = os.path.splitext(original_name or "")[1]
        filename = f"photo_{id}{ext}"
        try:
            os.makedirs(config.FILE_UPLOAD_PATH, exist_ok=True)
            with open(os.path.join(config.FILE_UPLOAD_PATH, filename), "wb") as f:
                f.write(content)
        except OSError:
            logger.exception("Could not store photo for bootcamp %s", id)
            raise ErrorResponse("Problem with file upload", 500)
        self._set(id, {"photo": filename})
        return filename


# -------------------- Courses --------------------

class CourseService(BaseService):
    collection_name = "course"
    resource = "course"
    model = Course

    def populate(self, docs):
        bootcamps = self._lookup("bootcamp", [d.get("bootcamp_id") for d in docs], ("name", "description"))
        for doc in docs:
            doc["bootcamp"] = bootcamps.get(doc.get("bootcamp_id"))
        return docs

    def create(self, bootcamp_id: str, data: CourseCreate, user: Dict[str, Any]) -> Dict[str, Any]:
        course = Course(**data.model_dump(), bootcamp_id=bootcamp_id, user_id=str(user["_id"]))
        return create_document(self.db, self.collection_name, course)

    def update(self, id: str, data: CourseUpdate) -> Optional[Dict[str, Any]]:
        return self._set(id, data.model_dump(exclude_none=True))


# -------------------- Reviews --------------------

class ReviewService(BaseService):
    collection_name = "review"
    resource = "review"
    model = Review

    def populate(self, docs):
        bootcamps = self._lookup("bootcamp", [d.get("bootcamp_id") for d in docs], ("name", "description"))
        users = self._lookup("user", [d.get("user_id") for d in docs], ("name", "email"))
        for doc in docs:
            doc["bootcamp"] = bootcamps.get(doc.get("bootcamp_id"))
            doc["user"] = users.get(doc.get("user_id"))
        return docs

    def create(self, bootcamp_id: str, data: ReviewCreate, user: Dict[str, Any]) -> Dict[str, Any]:
        review = Review(**data.model_dump(), bootcamp_id=bootcamp_id, user_id=str(user["_id"]))
        return create_document(self.db, self.collection_name, review)

    def update(self, id: str, data: ReviewUpdate) -> Optional[Dict[str, Any]]:
        return self._set(id, data.model_dump(exclude_none=True))


# -------------------- Users --------------------

class UserService(BaseService):
    collection_name = "user"
    resource = "user"
    model = User

    def list(self, options: QueryOptions, extra_filter: Optional[Dict[str, Any]] = None):
        for name in list(options.filter) + [key for key, _ in options.sort or []]:
            if name in PRIVATE_FIELDS:
                raise ValueError(f"Cannot query on field: {name}")
        return super().list(options, extra_filter)

    def create(self, data: UserCreate) -> Dict[str, Any]:
        user = User(
            name=data.name,
            email=data.email,
            role=data.role,
            password_hash=hash_password(data.password),
        )
        doc = create_document(self.db, self.collection_name, user)
        logger.info("User %s registered with role %s", doc["_id"], doc["role"])
        return doc

    def get_by_email(self, email: str, include_password: bool = False) -> Optional[Dict[str, Any]]:
        projection = None if include_password else {"password_hash": 0}
        return self.collection.find_one({"email": email}, projection)

    def update(self, id: str, data: UserUpdate) -> Optional[Dict[str, Any]]:
        fields = data.model_dump(exclude_none=True)
        # hash only when a new password was supplied
        if "password" in fields:
            fields["password_hash"] = hash_password(fields.pop("password"))
        return self._set(id, fields)

    def set_password(self, id: str, password: str) -> Optional[Dict[str, Any]]:
        return self._set(
            id,
            {"password_hash": hash_password(password)},
            {"reset_password_token": "", "reset_password_expire": ""},
        )

    def set_reset_token(self, id: str, hashed_token: str, expire: datetime) -> None:
        self._set(id, {"reset_password_token": hashed_token, "reset_password_expire": expire})

    def clear_reset_token(self, id: str) -> None:
        self._set(id, {}, {"reset_password_token": "", "reset_password_expire": ""})

    def find_by_reset_token(self, hashed_token: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"reset_password_token": hashed_token})
