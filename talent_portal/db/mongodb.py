"""
MongoDB Connection Utility

MongoDB stores every record of the portal:
- Tenants (holdings, marcas, tiendas) and staff users
- Job profiles and RQs (requisitions)
- Candidates with their embedded applications
- Calendar connections, rescue inbox, blacklist, email log
- Talent pool CV submissions

Documents are loosely typed: readers always supply defaults for
missing fields.
"""
import logging

from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.collection import Collection
from talent_portal.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the portal database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def set_mongo_db(db: Database) -> None:
    """Swap the active database (maintenance scripts and tests)."""
    global _db
    _db = db


def get_collection(name: str) -> Collection:
    """Get a specific collection by its name in COLLECTIONS."""
    db = get_mongo_db()
    return db[COLLECTIONS.get(name, name)]


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
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "users": "users",
    "holdings": "holdings",
    "marcas": "marcas",
    "tiendas": "tiendas",
    "job_profiles": "job_profiles",
    "rqs": "rqs",
    "candidates": "candidates",
    "rescue_inbox": "rescue_inbox",
    "blacklist": "blacklist",
    "calendar_connections": "calendar_connections",
    "new_hires": "nuevos_colaboradores",
    "email_log": "email_log",
    "talent_pool": "talent_pool",
    "talent_jobs": "talent_jobs",
    "talent_candidates": "talent_candidates",
    "talent_applications": "talent_applications",
    "interview_booking_requests": "interview_booking_requests",
    "interviews": "interviews",
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    db[COLLECTIONS["users"]].create_index("email", unique=True)
    db[COLLECTIONS["holdings"]].create_index("slug", unique=True)
    db[COLLECTIONS["marcas"]].create_index([("holdingId", ASCENDING), ("slug", ASCENDING)])
    db[COLLECTIONS["tiendas"]].create_index("marcaId")

    # Portal reads RQs by status; numbering scans by marca
    db[COLLECTIONS["rqs"]].create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
    db[COLLECTIONS["rqs"]].create_index("marcaId")
    db[COLLECTIONS["rqs"]].create_index("holdingId")

    db[COLLECTIONS["candidates"]].create_index("email")
    db[COLLECTIONS["candidates"]].create_index("dni")
    db[COLLECTIONS["candidates"]].create_index("portalSessionToken")
    db[COLLECTIONS["candidates"]].create_index("magicLinkToken")
    db[COLLECTIONS["candidates"]].create_index("applications.rqId")

    db[COLLECTIONS["rescue_inbox"]].create_index([("marcaId", ASCENDING), ("status", ASCENDING)])
    db[COLLECTIONS["blacklist"]].create_index("dni", unique=True)
    db[COLLECTIONS["talent_pool"]].create_index([("holdingSlug", ASCENDING), ("appliedAt", DESCENDING)])
    db[COLLECTIONS["talent_applications"]].create_index("culToken")
    db[COLLECTIONS["talent_candidates"]].create_index([("jobId", ASCENDING), ("status", ASCENDING)])

    logger.info("MongoDB indexes created successfully")
