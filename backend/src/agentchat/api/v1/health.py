from fastapi import APIRouter

from ...core.logger import SERVER_VERSION
from ...schemas.base import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", version=SERVER_VERSION)
