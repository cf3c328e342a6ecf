"""Data models for the news digest pipeline."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROMPT_EXCERPT_LIMIT = 1000


class Intent(BaseModel):
    """Structured interpretation of a user's query."""

    model_config = ConfigDict(frozen=True)

    topic_original: str = Field(..., min_length=1)
    language: str = Field(..., description="ISO-2 language of the original query.")
    country: str = Field(..., description="ISO-2 country most relevant to the query.")
    title: str = Field(..., min_length=1, description="Short display title.")

    @field_validator("language")
    @classmethod
    def _lower_language(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("country")
    @classmethod
    def _upper_country(cls, value: str) -> str:
        return value.strip().upper()


class FeedItem(BaseModel):
    """One news entry as returned by the feed, before summarization."""

    model_config = ConfigDict(frozen=True)

    title: str
    link: Optional[str] = None
    published_at: Optional[str] = Field(
        None, description="Raw feed date string, or an ISO timestamp for placeholders."
    )
    source: str


class SummarizedItem(FeedItem):
    summary: str


class NewsResponse(BaseModel):
    """Terminal payload returned to the caller."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    user_text: str
    topic_data: Intent
    news: List[SummarizedItem]
    header_image: str = ""


class ActivityRecord(BaseModel):
    """Write-once record handed to the remote activity sink."""

    user_id: str
    prompt: str
    topic: str
    language: str
    request_type: Literal["text", "voice"]

    @field_validator("prompt")
    @classmethod
    def _truncate_prompt(cls, value: str) -> str:
        return value[:PROMPT_EXCERPT_LIMIT]


class User(BaseModel):
    """Verified identity supplied by the auth layer."""

    id: Optional[str] = None
    email: Optional[str] = None
    role: str = "user"


class Transcription(BaseModel):
    text: str
    language: Optional[str] = None


class PipelineResult(BaseModel):
    """A completed response plus the activity record to send after delivery."""

    response: NewsResponse
    activity: Optional[ActivityRecord] = None


class TextQuery(BaseModel):
    text: Optional[str] = None


class VoiceQuery(BaseModel):
    audio: Optional[str] = Field(None, description="Base64-encoded audio bytes.")


class PromptRequest(BaseModel):
    prompt: Optional[str] = None
