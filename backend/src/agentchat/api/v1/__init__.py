from fastapi import APIRouter

from .chat import router as chat_router
from .chats import router as chats_router
from .health import router as health_router
from .media import router as media_router
from .providers import router as providers_router
from .users import router as users_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(users_router)
router.include_router(providers_router)
router.include_router(chat_router)
router.include_router(chats_router)
router.include_router(media_router)
