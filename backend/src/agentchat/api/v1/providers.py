from typing import Annotated, Any

from fastapi import APIRouter, Depends

from ...ai.providers import catalog
from ...config import Settings
from ..dependencies import get_settings

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("", summary="Chat model catalog")
async def list_providers(
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, Any]:
    """Providers, their models, the defaults and which providers can run the agent."""
    return catalog(settings)
