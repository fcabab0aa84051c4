import logging

import httpx
from fastapi import Request

logger = logging.getLogger(__name__)


async def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    FastAPI dependency provider for the shared httpx.AsyncClient instance.
    The client is created on application startup and stored on ``app.state``;
    its timeout bounds every call to the object store and notification service.
    """
    http_client = getattr(request.app.state, "http_client", None)
    if http_client is None:
        logger.error("Shared HTTP client requested before application startup created it.")
        raise RuntimeError("HTTP client is not initialized.")
    return http_client
