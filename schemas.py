import math
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, field_validator
from pydantic.alias_generators import to_camel

# Application Schemas
#
# Fields are snake_case in Python and camelCase on the wire.


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Chapter(ApiModel):
    """A chapter of the Gita; seeded reference data"""
    id: int
    chapter_number: int = Field(..., ge=1, description="Chapter number, unique and ordered")
    title: str
    description: Optional[str] = None


class WordMeaning(ApiModel):
    sanskrit: str
    english: str


class Verse(ApiModel):
    """A shloka with translation, purport and word-by-word gloss"""
    id: int
    chapter_id: int = Field(..., description="Owning chapter id")
    verse_number: int = Field(..., ge=1)
    sanskrit: str
    transliteration: str
    translation: str
    purport: Optional[str] = None
    word_meanings: Optional[List[WordMeaning]] = None


class Message(ApiModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class Conversation(ApiModel):
    """Reflection state for one session"""
    id: int
    session_id: str
    messages: List[Message] = Field(default_factory=list)
    current_step: int = Field(0, ge=0)
    progress_percentage: int = Field(0, ge=0, le=100)
    selected_verse_id: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)


class AIReply(ApiModel):
    """Validated reply from the language model.

    Any deviation from this shape is a contract violation. The progress value
    is the one exception: out-of-range numbers are clamped rather than rejected.
    """
    message: StrictStr = Field(..., min_length=1)
    options: List[StrictStr] = Field(..., min_length=2, max_length=3)
    progress_percentage: Optional[int] = Field(None, alias="progressPercentage")
    should_show_shloka: StrictBool = Field(..., alias="shouldShowShloka")
    shloka_query: Optional[StrictStr] = Field(None, alias="shlokaQuery")

    @field_validator("progress_percentage", mode="before")
    @classmethod
    def clamp_progress(cls, value):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("progressPercentage must be a number")
        if not math.isfinite(value):
            raise ValueError("progressPercentage must be finite")
        return max(0, min(100, round(value)))


class AIResponse(ApiModel):
    message: str
    options: List[str] = Field(default_factory=list)
    should_show_verse: bool = False


class TurnResult(ApiModel):
    conversation: Conversation
    ai_response: AIResponse
    relevant_verse: Optional[Verse] = None


class VerseDetail(ApiModel):
    verse: Verse
    chapter: Optional[Chapter] = None


class SearchResults(ApiModel):
    results: List[Verse] = Field(default_factory=list)


# Request bodies

class ConversationCreate(ApiModel):
    session_id: str = Field(..., min_length=1, description="Client-generated session key")


class MessageCreate(ApiModel):
    message: str
