"""
API module for FastAPI routes.
"""
from fastapi import APIRouter

from questline.api.routes import badges, health, onboarding, templates, websocket

api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(onboarding.router, prefix="/onboarding", tags=["Onboarding"])
api_router.include_router(badges.router, prefix="/badges", tags=["Badges"])

# WebSocket route (connects at /api/ws/onboarding)
api_router.include_router(websocket.router, tags=["WebSocket"])
