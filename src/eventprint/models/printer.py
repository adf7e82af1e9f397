"""Printer configuration models."""

from enum import StrEnum

from pydantic import BaseModel, Field


class PrintQuality(StrEnum):
    """Print quality presets."""

    DRAFT = "draft"
    NORMAL = "normal"
    HIGH = "high"


class PaperSize(StrEnum):
    """Supported photo paper sizes."""

    SIZE_4X6 = "4x6"
    SIZE_5X7 = "5x7"
    SIZE_8X10 = "8x10"


class PrinterConfig(BaseModel):
    """Configuration for the local photo printer."""

    name: str = "Default_Printer"
    quality: PrintQuality = PrintQuality.HIGH
    size: PaperSize = PaperSize.SIZE_4X6
    copies: int = Field(default=1, ge=1)
