"""
rag-context API Models
======================

Pydantic models for API request/response serialization.
Messages accept both plain `content` and chat-UI `parts`.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class MessagePart(BaseModel):
    """One part of a chat-UI message; only `text` parts carry query text."""
    type: str
    text: Optional[str] = None


class ChatMessage(BaseModel):
    role: str = "user"
    content: Optional[str] = None
    parts: Optional[List[MessagePart]] = None

    @property
    def text(self) -> str:
        if self.content:
            return self.content
        if not self.parts:
            return ""
        return " ".join(p.text for p in self.parts if p.type == "text" and p.text)


def last_message_text(messages: Optional[List[ChatMessage]]) -> str:
    """Text of the last message in a conversation ("" if there is none)."""
    if not messages:
        return ""
    return messages[-1].text


class ContextRequest(BaseModel):
    """Diagnostic retrieval request: a raw query or a conversation."""
    query: Optional[str] = Field(None, description="Free-text query")
    messages: Optional[List[ChatMessage]] = Field(None, description="Conversation; the last message is used")
    namespace: Optional[str] = Field(None, description="Namespace override")

    @property
    def text(self) -> str:
        return self.query or last_message_text(self.messages)


class SourceRecord(BaseModel):
    id: str
    score: float
    metadata: Dict[str, Any]


class ContextResponse(BaseModel):
    context: List[SourceRecord]


class ClearIndexResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)


class ChatResponse(BaseModel):
    answer: str
    sources: List[SourceRecord]


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    database: str
    database_version: Optional[str] = None
    pgvector: Optional[str] = None
    embeddings: str
