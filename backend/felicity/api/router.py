"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from felicity.api.routes import admin, auth, chat, organizer, participant, teams

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(admin.router)
api_router.include_router(organizer.router)
api_router.include_router(participant.router)
api_router.include_router(teams.router)
api_router.include_router(chat.router)
