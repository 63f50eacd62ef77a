# school_portal/core/database.py
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.database import Database

from school_portal.core.config import CONFIG
from school_portal.core.exceptions import NotFoundError
from school_portal.core.logger import get_logger

logger = get_logger(__name__)

# MongoClient connects lazily, so importing this module never blocks on the server.
client = MongoClient(CONFIG.MONGO_URI)

db = client[CONFIG.MONGO_DB_NAME]

logger.info("MongoDB client configured for database '%s'", CONFIG.MONGO_DB_NAME)


def get_db() -> Database:
    """FastAPI dependency; tests override it with an in-memory database."""
    return db


def to_object_id(value: str) -> ObjectId | None:
    """Parse a path id, returning None for anything that is not a valid ObjectId."""
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize_doc(doc: dict | None) -> dict | None:
    """Convert a Mongo document into a JSON-friendly dict with a string `_id`."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            out[key] = str(value)
        elif isinstance(value, list):
            out[key] = [
                serialize_doc(v) if isinstance(v, dict) else (str(v) if isinstance(v, ObjectId) else v)
                for v in value
            ]
        elif isinstance(value, dict):
            out[key] = serialize_doc(value)
        else:
            out[key] = value
    return out


def ensure_indexes(database: Database) -> None:
    database["users"].create_index("email", unique=True)
    database["roles"].create_index("name", unique=True)
    database["permissions"].create_index("name", unique=True)
    database["departments"].create_index("name", unique=True)
    database["personnel"].create_index("email", unique=True)
    database["subjects"].create_index("code", unique=True)
    database["evaluation_form_responses"].create_index([("form", 1), ("semester", 1)])
    database["performance_evaluations"].create_index([("personnel", 1), ("evaluationDate", -1)])
    database["audit_logs"].create_index([("timestamp", -1)])


def find_or_404(collection, doc_id: str, resource: str) -> dict:
    oid = to_object_id(doc_id)
    doc = collection.find_one({"_id": oid}) if oid else None
    if doc is None:
        raise NotFoundError(resource, doc_id)
    return doc
