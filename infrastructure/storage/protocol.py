"""StorageProvider protocol and the in-memory file handle services pass to it."""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class UploadedFile:
    """A file received from a multipart request, fully read into memory."""

    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.content


class StorageProvider(Protocol):
    async def upload(self, file: UploadedFile, folder: str) -> str:
        """Store *file* under *folder* and return its public HTTPS URL.

        Raises:
            UpstreamError: when the storage service rejects or cannot be reached.
        """
        ...
