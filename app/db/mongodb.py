"""
MongoDB Connection Utility

MongoDB stores every university entity, one collection per kind:
departments, majors, subjects, professors, students, notifications,
exam periods, exam sessions, exam registrations, exam grades and
user accounts.

WHY indexes on pointers and membership lists?
- "subjects taught by P" and "departments of P" are never stored on
  the professor; they are answered by querying subjects.professor_ids
  and departments.staff
- "subjects of major M" / "majors of department D" read the
  child->parent pointer
Without these indexes every derived view is a collection scan.
"""
import logging

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        settings = get_settings()
        timeout_ms = settings.store_timeout_ms
        # Every operation is bounded; nothing blocks forever on a dead server
        _client = MongoClient(
            settings.mongodb_uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
    return _client


def get_mongo_db() -> Database:
    """Get the university database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[get_settings().mongodb_db]
    return _db


# Entity kind -> collection name (avoid typos)
COLLECTIONS = {
    "department": "departments",
    "major": "majors",
    "subject": "subjects",
    "professor": "professors",
    "student": "students",
    "notification": "notifications",
    "exam_period": "exam_periods",
    "exam_session": "exam_sessions",
    "exam_registration": "exam_registrations",
    "exam_grade": "exam_grades",
    "user": "users",
}


def get_collection(kind: str) -> Collection:
    """Get the collection holding one entity kind."""
    db = get_mongo_db()
    return db[COLLECTIONS[kind]]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except PyMongoError as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


def init_mongo_indexes():
    """
    Create indexes for the derived (query-side) views.
    Call this once during app startup.
    """
    db = get_mongo_db()

    # Child -> parent pointers
    db[COLLECTIONS["subject"]].create_index("major_id")
    db[COLLECTIONS["major"]].create_index("department_id")
    db[COLLECTIONS["student"]].create_index("major_id")

    # Membership lists (multikey): inverse views for professors
    db[COLLECTIONS["subject"]].create_index("professor_ids")
    db[COLLECTIONS["department"]].create_index("staff")

    # Eligibility lookups
    db[COLLECTIONS["exam_grade"]].create_index([
        ("student_id", 1),
        ("subject_id", 1)
    ])
    db[COLLECTIONS["exam_registration"]].create_index([
        ("student_id", 1),
        ("exam_session_id", 1)
    ])
    db[COLLECTIONS["exam_period"]].create_index("is_active")
    db[COLLECTIONS["notification"]].create_index("recipient_id")
    db[COLLECTIONS["user"]].create_index("role")

    logger.info("MongoDB indexes created successfully")
