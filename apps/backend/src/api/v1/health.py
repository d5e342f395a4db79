from fastapi import APIRouter

from core.config import get_settings
from schemas.api import ApiResponse, HealthStatus


router = APIRouter()


@router.get("/health", response_model=ApiResponse[HealthStatus])
def health_check() -> ApiResponse[HealthStatus]:
    """Liveness probe for the load balancer and the voice runtime.

    Deliberately touches neither the provider nor the database: a relay with a
    slow upstream should still report itself as up.
    """
    settings = get_settings()
    return ApiResponse(
        data=HealthStatus(
            status="healthy",
            message=f"{settings.APP_NAME} is running",
            environment=settings.ENVIRONMENT,
        ),
        message="Health check successful",
    )
