"""Subscriber schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.models.subscriber import SubscriberStatus


class SubscribeRequest(BaseModel):
    # Validated by the service so malformed input maps to 400, not 422
    email: Any = None
    source: str | None = Field(None, max_length=100)
    segments: list[str] | None = None
    tags: str | None = Field(None, description="Comma-separated alternative to segments")

    @field_validator("email", mode="before")
    @classmethod
    def drop_non_string_email(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None


class SubscribeResponse(BaseModel):
    success: bool
    message: str


class UnsubscribeRequest(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)


class AdminAddSubscriberRequest(BaseModel):
    email: str


class SubscriberResponse(BaseModel):
    id: str
    email: str
    status: SubscriberStatus
    source: str
    segments: list[str]
    created_at: datetime


class SubscriberListResponse(BaseModel):
    subscribers: list[SubscriberResponse]
    total: int


class SubscriberCountResponse(BaseModel):
    count: int
