"""Pydantic models for eventprint."""

from eventprint.models.job import JobStatus, PrintJob
from eventprint.models.photo import (
    PendingPhotos,
    PhotoMetadata,
    PhotoRecord,
    PhotoStatus,
    StatusAck,
    normalize_photo,
)
from eventprint.models.printer import PaperSize, PrinterConfig, PrintQuality

__all__ = [
    "JobStatus",
    "PaperSize",
    "PendingPhotos",
    "PhotoMetadata",
    "PhotoRecord",
    "PhotoStatus",
    "PrintJob",
    "PrintQuality",
    "PrinterConfig",
    "StatusAck",
    "normalize_photo",
]
