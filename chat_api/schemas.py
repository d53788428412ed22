"""Typed request and response bodies for each endpoint."""

from typing import ClassVar, List, Optional
from pydantic import BaseModel, Field


class RegisterUserRequest(BaseModel):
    missing_message: ClassVar[str] = "Name and email are required"

    name: str = Field(min_length=1)
    email: str = Field(min_length=1)


class RegisterUserResponse(BaseModel):
    userId: str
    name: str
    email: str


class ChatRequest(BaseModel):
    missing_message: ClassVar[str] = "User ID and message are required"

    userId: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    reply: str


class GetMessagesRequest(BaseModel):
    missing_message: ClassVar[str] = "User ID is required"

    userId: str = Field(min_length=1)


class ChatMessage(BaseModel):
    id: int
    userId: str
    message: str
    reply: str
    createdAt: Optional[str] = None


class MessagesResponse(BaseModel):
    messages: List[ChatMessage]
