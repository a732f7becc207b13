"""Verse repository and conversation store.

``Storage`` is the interface the orchestrator and the routes depend on.
``MemoryStorage`` keeps everything in process dicts; ``MongoStorage`` keeps it
in MongoDB collections through motor. Both seed the reference data on first
use when the verse store is empty.
"""

import logging
import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

import seed
from errors import InvalidInputError, NotFoundError, StorageUnavailableError
from schemas import Chapter, Conversation, Verse, utcnow

logger = logging.getLogger(__name__)

# Fields a caller may change through update_conversation
UPDATABLE_FIELDS = {"messages", "current_step", "progress_percentage", "selected_verse_id"}


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise InvalidInputError(f"Cannot update conversation fields: {', '.join(sorted(unknown))}")


def _matches(verse: Verse, needle: str) -> bool:
    haystacks = (verse.translation, verse.transliteration, verse.purport or "")
    return any(needle in h.lower() for h in haystacks)


class Storage(ABC):
    """Read-only verse repository plus per-session conversation store."""

    kind = "abstract"

    def close(self) -> None:
        """Release connections held by the backend."""

    # Verse repository

    @abstractmethod
    async def get_chapter(self, chapter_id: int) -> Optional[Chapter]: ...

    @abstractmethod
    async def list_chapters(self) -> List[Chapter]: ...

    @abstractmethod
    async def get_verse(self, verse_id: int) -> Optional[Verse]: ...

    @abstractmethod
    async def list_verses_by_chapter(self, chapter_id: int) -> List[Verse]: ...

    @abstractmethod
    async def search_verses(self, query: str) -> List[Verse]:
        """Case-insensitive substring search over translation, transliteration
        and purport, ordered by id. A blank query matches nothing."""

    # Conversation store

    @abstractmethod
    async def create_conversation(self, session_id: str) -> Conversation:
        """Create the conversation for ``session_id`` or return the existing one."""

    @abstractmethod
    async def get_conversation(self, session_id: str) -> Optional[Conversation]: ...

    @abstractmethod
    async def update_conversation(self, session_id: str, **fields: Any) -> Conversation:
        """Merge ``fields`` into the stored conversation.

        ``messages`` is replaced wholesale. Raises NotFoundError when the
        session has no conversation.
        """


class MemoryStorage(Storage):
    kind = "memory"

    def __init__(self):
        self._chapters: Dict[int, Chapter] = {}
        self._verses: Dict[int, Verse] = {}
        self._conversations: Dict[str, Conversation] = {}
        self._next_conversation_id = 1
        self._seed()

    def _seed(self) -> None:
        for c in seed.CHAPTERS:
            chapter = Chapter.model_validate(c)
            self._chapters[chapter.id] = chapter
        for v in seed.VERSES:
            verse = Verse.model_validate(v)
            self._verses[verse.id] = verse
        logger.info("Seeded memory storage with %d chapters, %d verses",
                    len(self._chapters), len(self._verses))

    async def get_chapter(self, chapter_id: int) -> Optional[Chapter]:
        return self._chapters.get(chapter_id)

    async def list_chapters(self) -> List[Chapter]:
        return sorted(self._chapters.values(), key=lambda c: c.chapter_number)

    async def get_verse(self, verse_id: int) -> Optional[Verse]:
        return self._verses.get(verse_id)

    async def list_verses_by_chapter(self, chapter_id: int) -> List[Verse]:
        verses = [v for v in self._verses.values() if v.chapter_id == chapter_id]
        return sorted(verses, key=lambda v: (v.verse_number, v.id))

    async def search_verses(self, query: str) -> List[Verse]:
        needle = query.strip().lower()
        if not needle:
            return []
        return [v for v in sorted(self._verses.values(), key=lambda v: v.id) if _matches(v, needle)]

    async def create_conversation(self, session_id: str) -> Conversation:
        existing = self._conversations.get(session_id)
        if existing is not None:
            return existing.model_copy(deep=True)
        conversation = Conversation(id=self._next_conversation_id, session_id=session_id)
        self._next_conversation_id += 1
        self._conversations[session_id] = conversation
        logger.info("Created conversation %d for session %s", conversation.id, session_id)
        return conversation.model_copy(deep=True)

    async def get_conversation(self, session_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(session_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def update_conversation(self, session_id: str, **fields: Any) -> Conversation:
        _check_fields(fields)
        existing = self._conversations.get(session_id)
        if existing is None:
            raise NotFoundError(f"Conversation not found: {session_id}")
        updated = Conversation.model_validate({**existing.model_dump(), **fields})
        self._conversations[session_id] = updated
        return updated.model_copy(deep=True)


class MongoStorage(Storage):
    """Storage over a motor database.

    Collections: ``chapter``, ``verse``, ``conversation`` and ``counter``
    (numeric id allocation for conversations).
    """

    kind = "mongodb"

    def __init__(self, db, client=None):
        self.db = db
        self.client = client

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

    @contextmanager
    def _guard(self):
        try:
            yield
        except PyMongoError as e:
            logger.error("MongoDB operation failed: %s", e)
            raise StorageUnavailableError(str(e)) from e

    @staticmethod
    def _strip(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if doc is None:
            return None
        d = dict(doc)
        d.pop("_id", None)
        return d

    async def _find(self, collection: str, filter_dict: Dict[str, Any], sort) -> List[Dict[str, Any]]:
        docs = []
        with self._guard():
            async for d in self.db[collection].find(filter_dict).sort(sort):
                docs.append(self._strip(d))
        return docs

    async def init(self) -> None:
        """Create indexes and seed reference data if the verse store is empty."""
        with self._guard():
            await self.db["conversation"].create_index("session_id", unique=True)
            await self.db["verse"].create_index([("chapter_id", ASCENDING), ("verse_number", ASCENDING)], unique=True)
            if await self.db["verse"].count_documents({}) == 0:
                await self.db["chapter"].insert_many([dict(c) for c in seed.CHAPTERS])
                await self.db["verse"].insert_many([dict(v) for v in seed.VERSES])
                logger.info("Seeded MongoDB with %d chapters, %d verses",
                            len(seed.CHAPTERS), len(seed.VERSES))

    async def get_chapter(self, chapter_id: int) -> Optional[Chapter]:
        with self._guard():
            doc = await self.db["chapter"].find_one({"id": chapter_id})
        return Chapter.model_validate(self._strip(doc)) if doc else None

    async def list_chapters(self) -> List[Chapter]:
        docs = await self._find("chapter", {}, [("chapter_number", ASCENDING)])
        return [Chapter.model_validate(d) for d in docs]

    async def get_verse(self, verse_id: int) -> Optional[Verse]:
        with self._guard():
            doc = await self.db["verse"].find_one({"id": verse_id})
        return Verse.model_validate(self._strip(doc)) if doc else None

    async def list_verses_by_chapter(self, chapter_id: int) -> List[Verse]:
        docs = await self._find("verse", {"chapter_id": chapter_id},
                                [("verse_number", ASCENDING), ("id", ASCENDING)])
        return [Verse.model_validate(d) for d in docs]

    async def search_verses(self, query: str) -> List[Verse]:
        needle = query.strip()
        if not needle:
            return []
        pattern = {"$regex": re.escape(needle), "$options": "i"}
        filter_dict = {"$or": [
            {"translation": pattern},
            {"transliteration": pattern},
            {"purport": pattern},
        ]}
        docs = await self._find("verse", filter_dict, [("id", ASCENDING)])
        return [Verse.model_validate(d) for d in docs]

    async def _next_id(self, name: str) -> int:
        doc = await self.db["counter"].find_one_and_update(
            {"_id": name},
            {"$inc": {"value": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["value"])

    async def create_conversation(self, session_id: str) -> Conversation:
        existing = await self.get_conversation(session_id)
        if existing is not None:
            return existing
        with self._guard():
            conversation = Conversation(id=await self._next_id("conversation"), session_id=session_id)
            try:
                await self.db["conversation"].insert_one(conversation.model_dump())
            except DuplicateKeyError:
                # Lost a creation race for the same session
                return await self.get_conversation(session_id)
        logger.info("Created conversation %d for session %s", conversation.id, session_id)
        return conversation

    async def get_conversation(self, session_id: str) -> Optional[Conversation]:
        with self._guard():
            doc = await self.db["conversation"].find_one({"session_id": session_id})
        return Conversation.model_validate(self._strip(doc)) if doc else None

    async def update_conversation(self, session_id: str, **fields: Any) -> Conversation:
        _check_fields(fields)
        existing = await self.get_conversation(session_id)
        if existing is None:
            raise NotFoundError(f"Conversation not found: {session_id}")
        merged = Conversation.model_validate({**existing.model_dump(), **fields})
        payload = merged.model_dump(include=set(fields))
        payload["updated_at"] = utcnow()
        with self._guard():
            doc = await self.db["conversation"].find_one_and_update(
                {"session_id": session_id},
                {"$set": payload},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError(f"Conversation not found: {session_id}")
        return Conversation.model_validate(self._strip(doc))
