"""
Pydantic data models for API requests and responses.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    """Chat message model."""
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Chat request model with conversation history."""
    messages: List[ChatTurn] = Field(..., min_length=1)
    stream: Optional[bool] = Field(None, description="Streamed reply; omitted means the endpoint default")


class ChatReply(BaseModel):
    """Buffered chat reply."""
    reply: str
    model: str


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""
    error: str
    details: Optional[str] = None
