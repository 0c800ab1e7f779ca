"""Model lifecycle routes."""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from memoryvault.api.deps import AppSettings, Gateway
from memoryvault.services.gateway import ensure_model_loaded

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/model", tags=["model"])


class ModelStatus(BaseModel):
    name: str
    loaded: bool
    busy: bool


def _status(gateway: Gateway, settings: AppSettings) -> ModelStatus:
    return ModelStatus(name=settings.model_path, loaded=gateway.is_loaded(), busy=gateway.busy)


@router.get("", response_model=ModelStatus)
async def get_model_status(gateway: Gateway, settings: AppSettings) -> ModelStatus:
    return _status(gateway, settings)


@router.post("/load", response_model=ModelStatus)
async def load_model(gateway: Gateway, settings: AppSettings) -> ModelStatus:
    """Load the configured model now instead of before the first generation."""
    await ensure_model_loaded(gateway, settings)
    return _status(gateway, settings)


@router.post("/unload", response_model=ModelStatus)
async def unload_model(gateway: Gateway, settings: AppSettings) -> ModelStatus:
    await gateway.unload_model()
    logger.info("Model unloaded on request")
    return _status(gateway, settings)
