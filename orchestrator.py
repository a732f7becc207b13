"""Reflection orchestrator: drives one conversation turn.

A turn loads the conversation, appends the user's message, asks the
responder for a reply, optionally resolves a verse, and commits everything
in a single store update. If the responder fails nothing is written.
"""

import asyncio
import logging
from typing import Dict, Optional

from errors import InvalidInputError, NotFoundError, ProcessingFailedError
from responder import Responder
from schemas import AIReply, AIResponse, Conversation, Message, TurnResult, Verse
from settings import Settings
from storage import Storage

logger = logging.getLogger(__name__)


class ReflectionOrchestrator:
    def __init__(self, storage: Storage, responder: Responder, settings: Settings):
        self.storage = storage
        self.responder = responder
        self.settings = settings
        # One lock per session; turns for the same session never interleave.
        # An entry lives only while some turn holds or waits on it.
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiting: Dict[str, int] = {}

    async def start(self, session_id: str) -> Conversation:
        return await self.storage.create_conversation(session_id)

    async def submit_message(self, session_id: str, text: str) -> TurnResult:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._waiting[session_id] = self._waiting.get(session_id, 0) + 1
        try:
            async with lock:
                return await self._turn(session_id, text)
        finally:
            self._waiting[session_id] -= 1
            if not self._waiting[session_id]:
                del self._waiting[session_id]
                del self._locks[session_id]

    async def _turn(self, session_id: str, text: str) -> TurnResult:
        conversation = await self.storage.get_conversation(session_id)
        if conversation is None:
            raise NotFoundError(f"Conversation not found: {session_id}")
        if not text or not text.strip():
            raise InvalidInputError("Message is required")

        messages = conversation.messages + [Message(role="user", content=text)]
        reply = await self._ask(session_id, messages)
        messages.append(Message(role="assistant", content=reply.message))

        fields = {
            "messages": messages,
            "current_step": conversation.current_step + 1,
            "progress_percentage": self._next_progress(conversation, reply),
        }

        verse = None
        if reply.should_show_shloka and reply.shloka_query and reply.shloka_query.strip():
            verse = await self._resolve_verse(conversation, reply.shloka_query)
            if verse is not None:
                fields["selected_verse_id"] = verse.id

        updated = await self.storage.update_conversation(session_id, **fields)
        logger.info("Session %s: step %d, progress %d%%%s", session_id, updated.current_step,
                    updated.progress_percentage, f", verse {verse.id}" if verse else "")

        return TurnResult(
            conversation=updated,
            ai_response=AIResponse(
                message=reply.message,
                options=reply.options,
                should_show_verse=reply.should_show_shloka,
            ),
            relevant_verse=verse,
        )

    async def _ask(self, session_id: str, messages) -> AIReply:
        try:
            return await asyncio.wait_for(self.responder.respond(messages),
                                          timeout=self.settings.AI_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            logger.error("Session %s: AI responder timed out after %.1fs",
                         session_id, self.settings.AI_TIMEOUT_SECONDS)
            raise ProcessingFailedError("AI responder timed out") from e
        except ProcessingFailedError:
            raise
        except Exception as e:
            logger.exception("Session %s: AI responder failed", session_id)
            raise ProcessingFailedError("AI responder failed") from e

    def _next_progress(self, conversation: Conversation, reply: AIReply) -> int:
        if reply.progress_percentage is not None:
            return reply.progress_percentage
        return min(100, conversation.progress_percentage + self.settings.DEFAULT_PROGRESS_STEP)

    async def _resolve_verse(self, conversation: Conversation, query: str) -> Optional[Verse]:
        """Find the verse for this turn.

        A verse already attached to the conversation is kept unless overwrite
        is enabled.
        """
        if conversation.selected_verse_id is not None and not self.settings.ALLOW_VERSE_OVERWRITE:
            return await self.storage.get_verse(conversation.selected_verse_id)
        results = await self.storage.search_verses(query)
        if not results:
            logger.info("No verse matched query %r", query)
            return None
        return results[0]
