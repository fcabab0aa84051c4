# Client for the object-storage gateway that holds uploaded identity documents
import logging
from typing import Dict, Optional
from urllib.parse import quote

import httpx
from fastapi import Depends

from member_trust_service.app.config import settings
from member_trust_service.app.dependencies.http_client import get_http_client
from member_trust_service.app.service.exceptions import StorageFailure
from member_trust_service.app.service.interfaces.object_store import AbstractObjectStore

logger = logging.getLogger(__name__)

METADATA_HEADER_PREFIX = "x-object-meta-"


class HttpObjectStoreClient(AbstractObjectStore):
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        bucket: Optional[str] = None,
        token: Optional[str] = None,
    ):
        self.http_client = http_client
        self.base_url = (base_url if base_url is not None else settings.OBJECT_STORE_URL or "").rstrip("/")
        self.bucket = bucket or settings.OBJECT_STORE_BUCKET
        self.token = token if token is not None else settings.OBJECT_STORE_TOKEN

    def _object_url(self, path: str) -> str:
        if not self.base_url:
            logger.error("OBJECT_STORE_URL not set. Object storage is unavailable.")
            raise StorageFailure()
        return f"{self.base_url}/buckets/{self.bucket}/objects/{quote(path)}"

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def put(self, data: bytes, path: str, content_type: str, metadata: Dict[str, str]) -> str:
        request_url = self._object_url(path)
        headers = self._headers()
        headers["Content-Type"] = content_type
        for key, value in metadata.items():
            headers[f"{METADATA_HEADER_PREFIX}{key}"] = quote(str(value))

        logger.debug(f"Uploading {len(data)} bytes to object store at {path}")
        try:
            response = await self.http_client.put(request_url, content=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error storing object {path}: {e.response.status_code} - {e.response.text}", exc_info=True)
            raise StorageFailure() from e
        except httpx.RequestError as e:
            logger.error(f"Request error storing object {path}: {e}", exc_info=True)
            raise StorageFailure() from e
        logger.info(f"Stored object {path} ({content_type}, {len(data)} bytes).")
        return path

    async def signed_url(self, storage_ref: str, ttl_seconds: int) -> str:
        if not self.base_url:
            logger.error("OBJECT_STORE_URL not set. Cannot issue signed URLs.")
            raise StorageFailure()
        request_url = f"{self.base_url}/buckets/{self.bucket}/signed-urls"
        payload = {"path": storage_ref, "method": "GET", "expires_in": ttl_seconds}
        try:
            response = await self.http_client.post(request_url, json=payload, headers=self._headers())
            response.raise_for_status()
            return response.json()["url"]
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error issuing signed URL for {storage_ref}: {e.response.status_code} - {e.response.text}", exc_info=True)
            raise StorageFailure() from e
        except httpx.RequestError as e:
            logger.error(f"Request error issuing signed URL for {storage_ref}: {e}", exc_info=True)
            raise StorageFailure() from e
        except (KeyError, ValueError) as e:
            logger.error(f"Unexpected signed URL response for {storage_ref}: {e}", exc_info=True)
            raise StorageFailure() from e

    async def delete(self, storage_ref: str) -> None:
        request_url = self._object_url(storage_ref)
        try:
            response = await self.http_client.delete(request_url, headers=self._headers())
            if response.status_code == 404:
                logger.info(f"Object {storage_ref} already absent from object store.")
                return
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error deleting object {storage_ref}: {e.response.status_code} - {e.response.text}", exc_info=True)
            raise StorageFailure() from e
        except httpx.RequestError as e:
            logger.error(f"Request error deleting object {storage_ref}: {e}", exc_info=True)
            raise StorageFailure() from e
        logger.info(f"Deleted object {storage_ref}.")


# DI provider for HttpObjectStoreClient
def get_object_store(http_client: httpx.AsyncClient = Depends(get_http_client)) -> AbstractObjectStore:
    return HttpObjectStoreClient(http_client=http_client)
