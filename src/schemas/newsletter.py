"""Broadcast, audience and engagement schemas."""
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from src.services.audience import AudienceTarget, AudienceType


class AudienceTargetSchema(BaseModel):
    type: AudienceType = AudienceType.ALL
    sources: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    manual_ids: list[str] = Field(default_factory=list)

    def to_target(self) -> AudienceTarget:
        return AudienceTarget(
            type=self.type,
            sources=list(self.sources),
            tags=list(self.tags),
            manual_ids=list(self.manual_ids),
        )


class BroadcastRequest(BaseModel):
    target: AudienceTargetSchema | None = None


class BroadcastResponse(BaseModel):
    success: bool
    sent_count: int
    error_count: int
    cancelled: bool = False


class BroadcastQueuedResponse(BaseModel):
    success: bool = True
    task_id: str


class SendTestRequest(BaseModel):
    email: EmailStr


class SendTestResponse(BaseModel):
    success: bool
    message_id: str | None = None


class AudienceMetadataResponse(BaseModel):
    sources: list[str]
    tags: list[str]
    total_active: int


class AudienceCountResponse(BaseModel):
    count: int


class NewsletterEngagementResponse(BaseModel):
    newsletter_id: str
    subject: str | None = None
    sent_at: datetime | None = None
    total_opens: int
    unique_opens: int

    class Config:
        from_attributes = True


class TopNewslettersResponse(BaseModel):
    newsletters: list[NewsletterEngagementResponse]
