"""API v1 router aggregating all endpoint routers.

Knowledge base:
  /api/v1/knowledge/init, /search, /status, /clear, /ask
"""

from fastapi import APIRouter

from docsrag.api.v1.endpoints import knowledge

api_router = APIRouter()

api_router.include_router(knowledge.router, prefix="/knowledge", tags=["knowledge"])
