"""AI responder: one language-model call per reflection turn.

The model is given the whole conversation and a fixed instruction contract,
and must answer with a JSON object that validates as ``AIReply``.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import anthropic
from pydantic import ValidationError

from errors import ProcessingFailedError
from schemas import AIReply, Message
from settings import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a compassionate guide helping users reflect through the wisdom of the Bhagavad Gita.

IMPORTANT RULES:
- Never give advice. Always encourage self-reflection and introspection.
- Use phrases like "Let's explore this together" or "That's a meaningful feeling"
- Ask thoughtful questions to help users go deeper
- Offer 2-3 clickable response options that are affirming and introspective
- Keep responses warm, compassionate, and non-judgmental
- Progress the conversation naturally toward deeper self-understanding
- When the user has reflected enough, set shouldShowShloka to true and give a
  short shlokaQuery naming the theme (for example "duty", "soul", "action")

Respond ONLY with JSON in this format (add no other text):
{
  "message": "your compassionate response",
  "options": ["option1", "option2", "option3"],
  "progressPercentage": number (0-100),
  "shouldShowShloka": boolean,
  "shlokaQuery": "search terms if shouldShowShloka is true"
}"""


class Responder(Protocol):
    async def respond(self, history: List[Message]) -> AIReply: ...


def build_messages(history: List[Message]) -> List[Dict[str, str]]:
    """Map the stored log to provider turns.

    The provider wants strictly alternating turns that open with the user, so
    consecutive same-role messages are merged and leading assistant turns are
    dropped.
    """
    turns: List[Dict[str, str]] = []
    for m in history:
        if not turns and m.role == "assistant":
            continue
        if turns and turns[-1]["role"] == m.role:
            turns[-1]["content"] += "\n\n" + m.content
        else:
            turns.append({"role": m.role, "content": m.content})
    return turns


def parse_reply_json(raw_text: str) -> Optional[Dict[str, Any]]:
    """Parse the JSON object from the model's text.

    Handles replies wrapped in markdown code fences or surrounded by prose.
    """
    text = raw_text.strip()

    if text.startswith("```"):
        lines = text.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines).strip()

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            parsed = json.loads(text[start:end + 1])
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    return None


def validate_reply(raw_text: str) -> AIReply:
    data = parse_reply_json(raw_text)
    if data is None:
        logger.warning("Model reply is not a JSON object: %.200s", raw_text)
        raise ProcessingFailedError("AI reply was not valid JSON")
    try:
        return AIReply.model_validate(data)
    except ValidationError as e:
        logger.warning("Model reply violates the response contract: %s", e)
        raise ProcessingFailedError("AI reply did not match the expected shape") from e


class AnthropicResponder:
    """Responder backed by Claude. Single attempt, no retries."""

    def __init__(self, settings: Settings, client: Optional[anthropic.AsyncAnthropic] = None):
        self.settings = settings
        self.client = client or anthropic.AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=settings.AI_TIMEOUT_SECONDS,
            max_retries=0,
        )

    async def respond(self, history: List[Message]) -> AIReply:
        messages = build_messages(history)
        if not messages:
            raise ProcessingFailedError("No user message to respond to")
        try:
            response = await self.client.messages.create(
                model=self.settings.MODEL_NAME,
                max_tokens=self.settings.AI_MAX_TOKENS,
                system=SYSTEM_PROMPT,
                messages=messages,
            )
        except anthropic.APIError as e:
            logger.error("Claude API call failed: %s", e)
            raise ProcessingFailedError("AI service request failed") from e

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        logger.debug("Claude reply (%d turns in): %s", len(messages), text)
        return validate_reply(text)
