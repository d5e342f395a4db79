from fastapi import APIRouter

from .chat import router as chat_router
from .health import router as health_router


# The voice runtime has no user session; requests are identified by appId.
api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(chat_router)
