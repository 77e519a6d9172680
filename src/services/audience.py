"""Audience selection for broadcasts."""
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from src.models.subscriber import Subscriber
from src.services.registry import SubscriberRegistry


class AudienceType(str, Enum):
    ALL = "all"
    FILTER = "filter"
    MANUAL = "manual"


@dataclass
class AudienceTarget:
    type: AudienceType = AudienceType.ALL
    sources: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    manual_ids: list[str] = field(default_factory=list)


@dataclass
class AudienceMetadata:
    sources: list[str]
    tags: list[str]
    total_active: int


def matches_filter(subscriber: Subscriber, sources: Sequence[str], tags: Sequence[str]) -> bool:
    """A subscriber matches when its source is listed OR it holds any listed tag."""
    if not sources and not tags:
        return False
    source_match = bool(sources) and subscriber.source in sources
    tag_match = bool(tags) and not subscriber.segments.isdisjoint(tags)
    return source_match or tag_match


class AudienceResolver:
    """Turns an AudienceTarget into the ordered list of active recipients."""

    def __init__(self, registry: SubscriberRegistry):
        self.registry = registry

    async def resolve(self, target: AudienceTarget | None = None) -> Sequence[Subscriber]:
        target = target or AudienceTarget()

        if target.type == AudienceType.MANUAL:
            return await self.registry.list_active_by_ids(target.manual_ids)

        active = await self.registry.list_active()
        if target.type == AudienceType.FILTER:
            sources = [s.strip() for s in target.sources if s and s.strip()]
            tags = [t.strip() for t in target.tags if t and t.strip()]
            return [s for s in active if matches_filter(s, sources, tags)]

        return active

    async def count(self, target: AudienceTarget | None = None) -> int:
        if target is None or target.type == AudienceType.ALL:
            return await self.registry.count_active()
        return len(await self.resolve(target))

    async def metadata(self) -> AudienceMetadata:
        active = await self.registry.list_active()

        sources: set[str] = set()
        tags: set[str] = set()
        for subscriber in active:
            if subscriber.source and subscriber.source.strip():
                sources.add(subscriber.source.strip())
            tags.update(t.strip() for t in subscriber.segments if t.strip())

        return AudienceMetadata(
            sources=sorted(sources),
            tags=sorted(tags),
            total_active=len(active),
        )
