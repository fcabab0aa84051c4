from abc import ABC, abstractmethod
from typing import Dict


class AbstractObjectStore(ABC):
    @abstractmethod
    async def put(self, data: bytes, path: str, content_type: str, metadata: Dict[str, str]) -> str:
        """
        Stores the bytes under the given path.

        Args:
            data: Raw file content.
            path: Object path inside the configured bucket.
            content_type: MIME type to record with the object.
            metadata: String metadata kept alongside the object.

        Returns:
            The storage reference to persist (normally the path itself).

        Raises:
            StorageFailure: if the object could not be written.
        """
        pass

    @abstractmethod
    async def signed_url(self, storage_ref: str, ttl_seconds: int) -> str:
        """
        Returns a time-limited read URL for a stored object.

        Raises:
            StorageFailure: if the URL could not be issued.
        """
        pass

    @abstractmethod
    async def delete(self, storage_ref: str) -> None:
        """
        Removes the object. Deleting an object that is already gone is not an error.

        Raises:
            StorageFailure: on transport or backend errors.
        """
        pass
