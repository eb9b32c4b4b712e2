"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from app.api.routes import entries, summaries, search, usage

api_router = APIRouter()

# Include all route modules
api_router.include_router(entries.router)
api_router.include_router(summaries.router)
api_router.include_router(search.router)
api_router.include_router(usage.router)
