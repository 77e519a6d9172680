from fastapi import APIRouter

from src.api.v1.endpoints import health, newsletter, newsletters, subscribers, tracking

api_router = APIRouter()

# Public subscribe / unsubscribe endpoints
api_router.include_router(
    newsletter.router,
    tags=["Newsletter"],
)

# Open-tracking beacon
api_router.include_router(
    tracking.router,
    prefix="/tracking",
    tags=["Tracking"],
)

# Operator subscriber management
api_router.include_router(
    subscribers.router,
    prefix="/admin/subscribers",
    tags=["Admin: Subscribers"],
)

# Operator broadcasts, audiences and engagement
api_router.include_router(
    newsletters.router,
    prefix="/admin/newsletters",
    tags=["Admin: Newsletters"],
)

# Health check endpoints
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["Health"],
)
