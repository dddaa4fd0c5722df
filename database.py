"""
MongoDB access for the Swipe Defend API.

One MongoClient is created at startup and kept for the life of the process;
route handlers receive the database through the `get_db` dependency.
"""

import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, Request
from pymongo import MongoClient
from pymongo.database import Database as MongoDatabase
from pymongo.errors import ConnectionFailure, PyMongoError
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult
from pymongo.server_api import ServerApi

from config import Settings

logger = logging.getLogger(__name__)

USERS = "users"
REVIEWS = "reviews"
PAYMENTS = "payments"
CONTACT = "contact"
SCORE_HISTORY = "scoreHistory"


class Database:
    """Owns the pooled MongoClient and the selected database."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[MongoClient] = None
        self.db: Optional[MongoDatabase] = None

    def connect(self) -> MongoDatabase:
        timeout = self.settings.db_timeout_ms
        self.client = MongoClient(
            self.settings.mongo_uri,
            server_api=ServerApi("1", strict=True, deprecation_errors=True),
            serverSelectionTimeoutMS=timeout,
            connectTimeoutMS=timeout,
            socketTimeoutMS=timeout,
            retryWrites=False,
            retryReads=False,
        )
        self.db = self.client[self.settings.db_name]
        return self.db

    def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            self.client.admin.command("ping")
        except PyMongoError as e:
            logger.error("MongoDB ping failed: %s", e)
            return False
        logger.info("Pinged MongoDB deployment, connection is up")
        return True

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            self.db = None


def get_db(request: Request) -> MongoDatabase:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise ConnectionFailure("MongoDB is not connected")
    return db


# Helpers

def to_obj_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id")


def sanitize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = {**doc}
    if isinstance(d.get("_id"), ObjectId):
        d["_id"] = str(d["_id"])
    return d


def insert_result(res: InsertOneResult) -> Dict[str, Any]:
    return {"acknowledged": res.acknowledged, "insertedId": str(res.inserted_id)}


def update_result(res: UpdateResult) -> Dict[str, Any]:
    upserted_id = res.upserted_id
    return {
        "acknowledged": res.acknowledged,
        "matchedCount": res.matched_count,
        "modifiedCount": res.modified_count,
        "upsertedId": str(upserted_id) if upserted_id is not None else None,
        "upsertedCount": 1 if upserted_id is not None else 0,
    }


def delete_result(res: DeleteResult) -> Dict[str, Any]:
    return {"acknowledged": res.acknowledged, "deletedCount": res.deleted_count}
