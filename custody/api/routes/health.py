"""Health check endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from custody.api.dependencies.services import get_app_container
from custody.api.models.health import HealthResponse
from custody.bootstrap.container import CustodyContainer

router = APIRouter(prefix="/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    container: Annotated[CustodyContainer, Depends(get_app_container)],
) -> HealthResponse:
    return HealthResponse(status="healthy", storage=container.api_config.storage)
