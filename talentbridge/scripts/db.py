"""Database helper (Mongo only).

Requires a MongoDB reachable via MONGO_URI. The client is built once per
process and shared; pymongo's client is thread-safe, so request handlers on
the FastAPI worker pool each read through it independently.
"""
import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .config import mongo_settings
from .errors import StorageFault

ACCOUNTS = "accounts"
SKILLS = "skills"
EQUIPMENT = "equipment"
ACCOUNT_SKILLS = "account_skills"
OPENINGS = "openings"
APPLICATIONS = "applications"
SKILL_EQUIPMENT_MAPPINGS = "skill_equipment_mappings"
SETTINGS = "settings"


@lru_cache(maxsize=1)
def get_db():
    cfg = mongo_settings()
    client = MongoClient(
        cfg.uri,
        serverSelectionTimeoutMS=cfg.timeout_ms,
        socketTimeoutMS=max(cfg.timeout_ms * 10, 5000),
    )
    return client[cfg.db_name]


@contextmanager
def storage_call(operation: str) -> Iterator[None]:
    """Translate driver errors into StorageFault so they never read as a miss."""
    try:
        yield
    except PyMongoError as e:
        logging.error(f"STORAGE fault op={operation} err={type(e).__name__}: {e}")
        raise StorageFault(operation, e) from e


def find_one(db, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    with storage_call(f"{collection}.find_one"):
        return db[collection].find_one(query)


def find_all(db, collection: str, query: Dict[str, Any]) -> List[Dict[str, Any]]:
    # Materialize inside the guard: cursors fetch lazily and can fail mid-iteration.
    with storage_call(f"{collection}.find"):
        return list(db[collection].find(query))


def read_settings(db, keys: List[str]) -> Dict[str, Any]:
    """Operator-stored ``{key, value}`` settings for the requested keys."""
    rows = find_all(db, SETTINGS, {"key": {"$in": list(keys)}})
    return {r["key"]: r.get("value") for r in rows if r.get("key")}


def ping(db) -> bool:
    with storage_call("ping"):
        db.command("ping")
    return True


def create_indexes(db) -> None:
    """Indexes backing both id spaces and the pool/assignment reads."""
    with storage_call("create_indexes"):
        for coll in (ACCOUNTS, SKILLS, EQUIPMENT, OPENINGS):
            db[coll].create_index("legacy_id", unique=True, sparse=True)
        for coll in (SKILLS, EQUIPMENT):
            db[coll].create_index("parent_id")
            db[coll].create_index("parent_legacy_id")
        db[ACCOUNTS].create_index([("role", 1), ("status", 1)])
        db[ACCOUNT_SKILLS].create_index([("account_id", 1), ("skill_id", 1)], unique=True)
        db[APPLICATIONS].create_index([("opening_id", 1), ("account_id", 1)])
        db[SETTINGS].create_index("key", unique=True)
