"""Photo models and upstream response normalization.

The admin service has shipped several response shapes over time (``_id`` vs
``id``, ``imageData`` vs ``url``/``imageUrl``, metadata nested or flat).
``normalize_photo`` maps any of them onto the single ``PhotoRecord`` shape the
rest of the package works with.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PhotoStatus(StrEnum):
    """Print status of a photo as tracked by the admin service."""

    PENDING = "pending"
    PRINTED = "printed"
    FAILED = "failed"


class PhotoMetadata(BaseModel):
    """Image metadata reported by the admin service."""

    model_config = ConfigDict(frozen=True)

    width: int = 0
    height: int = 0
    format: str = "jpeg"
    size: int = 0


class PhotoRecord(BaseModel):
    """A photo as consumed by the print engines."""

    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    image_data: str
    original_url: str = ""
    status: PhotoStatus = PhotoStatus.PENDING
    print_status: PhotoStatus = PhotoStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    metadata: PhotoMetadata = PhotoMetadata()


class PendingPhotos(BaseModel):
    """A page of photos returned by the admin service."""

    photos: list[PhotoRecord] = Field(default_factory=list)
    count: int = 0


class StatusAck(BaseModel):
    """Acknowledgement of a print status report."""

    success: bool
    message: str
    data: Any = None
    error: str | None = None


def _first(raw: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first truthy value among ``keys``."""
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return default


def _status(value: Any) -> PhotoStatus:
    try:
        return PhotoStatus(value)
    except ValueError:
        return PhotoStatus.PENDING


def normalize_photo(raw: dict[str, Any], default_event_id: str | None = None) -> PhotoRecord:
    """Map an upstream photo payload onto a PhotoRecord.

    Args:
        raw: Photo object as returned by the admin service.
        default_event_id: Event to assume when the payload carries none.

    Returns:
        The normalized photo.

    Raises:
        ValueError: If the payload has no identifier or a field can't be
            parsed (pydantic's ValidationError is a ValueError).
    """
    photo_id = _first(raw, "_id", "id")
    if not photo_id:
        raise ValueError("Photo payload has no identifier")

    nested = raw.get("metadata")
    if not isinstance(nested, dict):
        nested = {}
    metadata = PhotoMetadata(
        width=nested.get("width") or raw.get("width") or 0,
        height=nested.get("height") or raw.get("height") or 0,
        format=nested.get("format") or raw.get("format") or "jpeg",
        size=nested.get("size") or raw.get("size") or 0,
    )

    record: dict[str, Any] = {
        "id": str(photo_id),
        "event_id": str(_first(raw, "eventId", "event", default=default_event_id or "unknown")),
        "image_data": _first(raw, "imageData", "originalUrl", "url", "imageUrl", default=""),
        "original_url": _first(raw, "originalUrl", "url", "imageUrl", default=""),
        "status": _status(_first(raw, "status", "printStatus")),
        "print_status": _status(_first(raw, "printStatus", "status")),
        "metadata": metadata,
    }
    # Let pydantic parse ISO strings; missing timestamps fall back to now
    for source, target in (("createdAt", "created_at"), ("updatedAt", "updated_at")):
        if raw.get(source):
            record[target] = raw[source]

    return PhotoRecord.model_validate(record)
