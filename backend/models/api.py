"""Request and response models for the HTTP API."""
from typing import Optional
from pydantic import BaseModel


class ChatRequest(BaseModel):
    """Body of POST /chat. Fields are optional so missing ones yield a 400, not a 422."""
    userId: Optional[str] = None
    message: Optional[str] = None


class ChatResponse(BaseModel):
    reply: str


class LogoutRequest(BaseModel):
    userId: Optional[str] = None


class LogoutResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
