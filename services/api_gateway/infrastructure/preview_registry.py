"""Temporary preview handles for uploaded images, kept in memory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

logger = logging.getLogger(__name__)

PREVIEW_URI_PREFIX = "/v1/previews/"


@dataclass(frozen=True)
class Preview:
    preview_id: str
    file_name: str
    mime_type: str
    content: bytes


class InMemoryPreviewRegistry:
    """Maps preview URIs to uploaded bytes until the handle is revoked.

    Previews referenced by stored detections are never revoked, so memory use
    grows with the number of completed uploads.
    """

    def __init__(self) -> None:
        self._previews: dict[str, Preview] = {}

    def register(self, file_name: str, mime_type: str, content: bytes) -> str:
        preview = Preview(
            preview_id=uuid4().hex,
            file_name=file_name,
            mime_type=mime_type,
            content=content,
        )
        self._previews[preview.preview_id] = preview
        return f"{PREVIEW_URI_PREFIX}{preview.preview_id}"

    def revoke(self, uri: str) -> bool:
        preview = self._previews.pop(_preview_id(uri), None)
        if preview is None:
            return False
        logger.debug(f"Revoked preview for {preview.file_name}")
        return True

    def get(self, preview_id: str) -> Preview | None:
        return self._previews.get(preview_id)

    def clear(self) -> None:
        self._previews.clear()


def _preview_id(uri: str) -> str:
    if uri.startswith(PREVIEW_URI_PREFIX):
        return uri[len(PREVIEW_URI_PREFIX) :]
    return uri
