"""Health check endpoint."""

from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter

from idlink.config import Config
from idlink.domain.auth.port.provider_registry import ProviderRegistry

router = APIRouter(tags=["health"], route_class=DishkaRoute)


@router.get("/health")
async def health(config: FromDishka[Config], registry: FromDishka[ProviderRegistry]) -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": config.server.version,
        "providers": registry.available_providers(),
    }
