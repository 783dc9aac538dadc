"""
Load or wipe the sample data in ``_data/``.

    python seeder.py -i   # import users, bootcamps, courses and reviews
    python seeder.py -d   # delete them
"""
import argparse
import json
import logging
import os
from typing import Any, Dict, List

from bson import ObjectId
from pymongo.database import Database

import geocoder
from auth import hash_password
from database import connect, ensure_indexes, now_utc
from schemas import Bootcamp, Course, Review, User
from services import slugify, update_average_cost, update_average_rating

logger = logging.getLogger(__name__)

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "_data")
COLLECTIONS = ("user", "bootcamp", "course", "review")


def load(data_dir: str, name: str) -> List[Dict[str, Any]]:
    with open(os.path.join(data_dir, f"{name}.json"), encoding="utf-8") as f:
        return json.load(f)


def _with_id(raw: Dict[str, Any], doc: Dict[str, Any]) -> Dict[str, Any]:
    doc["_id"] = ObjectId(raw["_id"])
    doc["created_at"] = now_utc()
    return doc


def import_data(db: Database, data_dir: str = DATA_DIR) -> Dict[str, int]:
    users = [
        _with_id(u, User(
            name=u["name"],
            email=u["email"],
            role=u.get("role", "user"),
            password_hash=hash_password(u["password"]),
        ).model_dump(exclude_none=True))
        for u in load(data_dir, "users")
    ]
    bootcamps = [
        _with_id(b, Bootcamp(
            **b,
            slug=slugify(b["name"]),
            location=geocoder.geocode(b["address"]),
        ).model_dump(exclude_none=True))
        for b in load(data_dir, "bootcamps")
    ]
    courses = [_with_id(c, Course(**c).model_dump()) for c in load(data_dir, "courses")]
    reviews = [_with_id(r, Review(**r).model_dump()) for r in load(data_dir, "reviews")]

    counts = {}
    for name, docs in zip(COLLECTIONS, (users, bootcamps, courses, reviews)):
        if docs:
            db[name].insert_many(docs)
        counts[name] = len(docs)

    for bootcamp in bootcamps:
        update_average_cost(db, str(bootcamp["_id"]))
        update_average_rating(db, str(bootcamp["_id"]))
    return counts


def delete_data(db: Database) -> Dict[str, int]:
    return {name: db[name].delete_many({}).deleted_count for name in COLLECTIONS}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed the DevCamper database")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("-i", "--import", dest="do_import", action="store_true", help="import sample data")
    group.add_argument("-d", "--delete", dest="do_delete", action="store_true", help="delete all data")
    parser.add_argument("--data-dir", default=DATA_DIR)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s: %(name)s: %(message)s")
    client, db = connect()
    try:
        if args.do_import:
            ensure_indexes(db)
            logger.info("Data imported: %s", import_data(db, args.data_dir))
        else:
            logger.info("Data deleted: %s", delete_data(db))
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
