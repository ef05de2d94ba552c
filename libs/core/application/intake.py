"""Upload validation applied before a file enters the processing pipeline."""

from libs.core.application.contracts import UploadPayload
from libs.core.domain.errors import IntakeRejected

ACCEPTED_MIME_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/gif",
        "image/bmp",
        "image/webp",
    }
)
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def validate_upload(
    payload: UploadPayload,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> None:
    """Raise IntakeRejected when the upload cannot be processed."""
    file_name = payload["file_name"]
    if not file_name:
        raise IntakeRejected("<unnamed>", "file name is empty")

    mime_type = (payload["mime_type"] or "").lower()
    if mime_type not in ACCEPTED_MIME_TYPES:
        raise IntakeRejected(file_name, f"unsupported type {mime_type or 'unknown'}")

    byte_size = payload["byte_size"]
    if byte_size <= 0:
        raise IntakeRejected(file_name, "file is empty")
    if byte_size > max_bytes:
        raise IntakeRejected(
            file_name,
            f"file is {byte_size} bytes, limit is {max_bytes} bytes",
        )
