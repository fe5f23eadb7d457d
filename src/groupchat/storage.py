"""
Object storage — images shared in the conversation and profile avatars.

Objects live under `<user_id>/<epoch-millis>-<filename>` inside the bucket
for their scope, and are written with overwrite-on-conflict.
"""

import logging
import mimetypes
import time
from pathlib import Path
from typing import Optional, Union

from groupchat.errors import GroupChatError, UploadFailed
from groupchat.transport.http import HttpClient

logger = logging.getLogger(__name__)

MESSAGE_IMAGES = "message-images"
AVATARS = "avatars"
SCOPES = (MESSAGE_IMAGES, AVATARS)

FileInput = Union[str, Path, bytes]


def object_path(user_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{user_id}/{now_ms}-{filename}"


class StorageAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._http.base_url}/storage/v1/object/public/{bucket}/{path}"

    async def upload(
        self,
        user_id: str,
        file: FileInput,
        scope: str = MESSAGE_IMAGES,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """Store the file and return its public URL. Raises UploadFailed."""
        if scope not in SCOPES:
            raise UploadFailed(f"Unknown storage scope: {scope}")
        if isinstance(file, bytes):
            if not filename:
                raise UploadFailed("filename is required for raw bytes uploads")
            data = file
        else:
            p = Path(file)
            try:
                data = p.read_bytes()
            except OSError as e:
                raise UploadFailed(f"Cannot read {p}: {e}") from e
            filename = filename or p.name
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"

        path = object_path(user_id, filename)
        try:
            await self._http.upload(
                f"/storage/v1/object/{scope}/{path}",
                data,
                content_type,
                headers={"x-upsert": "true"},
            )
        except GroupChatError as e:
            raise UploadFailed(f"Upload to {scope} failed: {e}", details={"path": path}) from e
        logger.debug("Uploaded %s/%s (%d bytes)", scope, path, len(data))
        return self.public_url(scope, path)
