"""API router aggregating all endpoint routers.

Chat:
  /api/chat (POST streamed answer, GET liveness)
"""

from fastapi import APIRouter

from askaussie.api.endpoints import chat

api_router = APIRouter()

# -------------------------------------------------------------------------
# Constitution Q&A
# -------------------------------------------------------------------------
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
