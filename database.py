import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from errors import StorageUnavailableError
from settings import Settings
from storage import MemoryStorage, MongoStorage, Storage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageStatus:
    """Outcome of the one-time storage decision made at startup."""
    backend: str
    fallback: bool = False
    reason: Optional[str] = None


def get_client(settings: Settings) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(
        settings.DATABASE_URL,
        serverSelectionTimeoutMS=settings.DATABASE_TIMEOUT_MS,
        tz_aware=True,
    )


async def connect_mongo(settings: Settings) -> MongoStorage:
    """Open the MongoDB store, verify it answers and seed it if empty."""
    client = None
    try:
        client = get_client(settings)
        db = client[settings.DATABASE_NAME]
        await db.command("ping")
    except PyMongoError as e:
        if client is not None:
            client.close()
        raise StorageUnavailableError(f"MongoDB unreachable: {e}") from e
    storage = MongoStorage(db, client=client)
    try:
        await storage.init()
    except StorageUnavailableError:
        storage.close()
        raise
    return storage


async def init_storage(settings: Settings) -> Tuple[Storage, StorageStatus]:
    """Pick the storage backend once.

    With no DATABASE_URL the in-memory store is used outright. Otherwise
    MongoDB is tried first; if it is unavailable the service falls back to
    memory and the returned status says so.
    """
    if not settings.DATABASE_URL:
        logger.info("DATABASE_URL not set, using memory storage")
        return MemoryStorage(), StorageStatus(backend=MemoryStorage.kind)

    try:
        storage = await connect_mongo(settings)
    except StorageUnavailableError as e:
        logger.warning("Database storage failed, falling back to memory storage: %s", e)
        return MemoryStorage(), StorageStatus(backend=MemoryStorage.kind, fallback=True, reason=str(e))

    logger.info("Using MongoDB storage (database %s)", settings.DATABASE_NAME)
    return storage, StorageStatus(backend=MongoStorage.kind)
