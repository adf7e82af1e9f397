"""Tests for Pydantic models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from eventprint.models.job import JobStatus, PrintJob
from eventprint.models.photo import PhotoRecord, PhotoStatus, normalize_photo
from eventprint.models.printer import PaperSize, PrinterConfig, PrintQuality


class TestPrinterConfig:
    def test_defaults(self):
        config = PrinterConfig()
        assert config.name == "Default_Printer"
        assert config.quality == PrintQuality.HIGH
        assert config.size == PaperSize.SIZE_4X6
        assert config.copies == 1

    def test_from_yaml_values(self):
        config = PrinterConfig.model_validate({"name": "Canon_SELPHY", "quality": "draft", "size": "5x7"})
        assert config.quality == PrintQuality.DRAFT
        assert config.size == PaperSize.SIZE_5X7

    def test_invalid_copies(self):
        with pytest.raises(ValidationError):
            PrinterConfig(copies=0)


class TestPrintJob:
    def test_defaults(self):
        job = PrintJob(photo_id="p1", event_id="E1")
        assert job.status == JobStatus.QUEUED
        assert job.attempts == 0
        assert job.completed_at is None
        assert job.error is None

    def test_unique_ids(self):
        assert PrintJob(photo_id="p1", event_id="E1").id != PrintJob(photo_id="p1", event_id="E1").id


class TestNormalizePhoto:
    """Tests for mapping upstream photo payloads."""

    def test_current_shape(self):
        photo = normalize_photo(
            {
                "_id": "65f0c0ffee",
                "eventId": "E1",
                "imageData": "data:image/jpeg;base64,AAAA",
                "originalUrl": "https://cdn.example.com/65f0c0ffee.jpg",
                "status": "pending",
                "printStatus": "printed",
                "createdAt": "2024-10-12T10:00:00Z",
                "metadata": {"width": 1200, "height": 1800, "format": "jpeg", "size": 4096},
            }
        )

        assert photo.id == "65f0c0ffee"
        assert photo.event_id == "E1"
        assert photo.image_data.startswith("data:image/jpeg")
        assert photo.original_url == "https://cdn.example.com/65f0c0ffee.jpg"
        assert photo.status == PhotoStatus.PENDING
        assert photo.print_status == PhotoStatus.PRINTED
        assert photo.created_at.year == 2024
        assert photo.metadata.height == 1800

    def test_legacy_shape(self):
        photo = normalize_photo(
            {"id": 42, "event": "E2", "url": "https://cdn.example.com/42.jpg", "width": 600, "format": "png"}
        )

        assert photo.id == "42"
        assert photo.event_id == "E2"
        assert photo.image_data == "https://cdn.example.com/42.jpg"
        assert photo.metadata.width == 600
        assert photo.metadata.format == "png"

    def test_image_url_key(self):
        photo = normalize_photo({"_id": "p1", "imageUrl": "https://cdn.example.com/p1.png"})
        assert photo.image_data == "https://cdn.example.com/p1.png"

    def test_missing_event_uses_default(self):
        assert normalize_photo({"_id": "p1"}, default_event_id="E9").event_id == "E9"
        assert normalize_photo({"_id": "p1"}).event_id == "unknown"

    def test_unknown_status_is_pending(self):
        assert normalize_photo({"_id": "p1", "status": "archived"}).status == PhotoStatus.PENDING

    def test_missing_timestamps_default_to_now(self):
        photo = normalize_photo({"_id": "p1"})
        assert isinstance(photo.created_at, datetime)
        assert isinstance(photo.updated_at, datetime)

    @pytest.mark.parametrize("metadata", ["n/a", ["w", 100], 7])
    def test_non_object_metadata_falls_back_to_flat_keys(self, metadata):
        photo = normalize_photo({"_id": "p1", "metadata": metadata, "height": 900})
        assert photo.metadata.height == 900
        assert photo.metadata.format == "jpeg"

    def test_unparsable_field_is_a_value_error(self):
        with pytest.raises(ValueError):
            normalize_photo({"_id": "p1", "createdAt": "sometime"})

    def test_missing_id(self):
        with pytest.raises(ValueError, match="identifier"):
            normalize_photo({"eventId": "E1", "url": "https://cdn.example.com/x.jpg"})

    def test_records_are_immutable(self):
        photo = PhotoRecord(id="p1", event_id="E1", image_data="data:image/png;base64,AAAA")
        with pytest.raises(ValidationError):
            photo.image_data = "changed"
