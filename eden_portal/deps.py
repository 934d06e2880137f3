"""Dependency injection helpers for FastAPI."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from .config import Settings, settings
from .services.eden_client import EdenClient, get_eden_client, initialize_eden_client


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return settings


def get_client(settings: Annotated[Settings, Depends(get_settings)]) -> EdenClient:
    """Get the shared Eden client, creating it if startup did not."""
    client = get_eden_client()
    if client is None:
        client = initialize_eden_client(settings)
    return client
