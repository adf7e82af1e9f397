"""REST API routes for eventprint."""

import logging
import time
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from eventprint.dispatcher import DispatcherStatus
from eventprint.manager import QueueStatus
from eventprint.models.photo import PhotoRecord, PhotoStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

# These will be set by the app during startup
_app_state: dict[str, Any] = {}


def set_app_state(manager: Any, dispatcher: Any, gateway: Any, config: Any) -> None:
    """Set application state references for the routes."""
    _app_state["manager"] = manager
    _app_state["dispatcher"] = dispatcher
    _app_state["gateway"] = gateway
    _app_state["config"] = config
    _app_state["started_at"] = time.monotonic()


def _require(name: str) -> Any:
    value = _app_state.get(name)
    if value is None:
        raise HTTPException(status_code=500, detail=_error_body(f"{name.capitalize()} not initialized"))
    return value


def _error_body(error: str, message: str | None = None) -> dict[str, Any]:
    return {"success": False, "error": error, "message": message or error}


# Request/response models


class PollingRequest(BaseModel):
    """Start polling request body."""

    model_config = ConfigDict(populate_by_name=True)

    event_id: str | None = Field(default=None, alias="eventId")
    interval: int | None = Field(default=None, gt=0)


class PrintStatusRequest(BaseModel):
    """Bulk print status update request body."""

    model_config = ConfigDict(populate_by_name=True)

    photo_ids: list[str] = Field(alias="photoIds", min_length=1)
    status: PhotoStatus


class PrinterInfo(BaseModel):
    name: str
    quality: str
    size: str


class HealthResponse(BaseModel):
    success: bool = True
    status: str = "OK"
    timestamp: datetime
    printer: str
    queue: QueueStatus


class StatusResponse(BaseModel):
    success: bool = True
    printer: PrinterInfo
    queue: QueueStatus
    dispatcher: DispatcherStatus
    uptime: float


class QueueResponse(BaseModel):
    success: bool = True
    queue: QueueStatus


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    event_id: str | None = None
    interval_ms: int | None = None
    count: int | None = None


class EventPhotosResponse(BaseModel):
    success: bool = True
    photos: list[PhotoRecord]
    count: int
    limit: int
    offset: int


class PrintersResponse(BaseModel):
    success: bool = True
    printers: list[str]


# Endpoints


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check with the current queue state."""
    manager = _require("manager")
    config = _require("config")
    return HealthResponse(
        timestamp=datetime.now(),
        printer=config.printer.name,
        queue=manager.get_queue_status(),
    )


@router.get("/status", response_model=StatusResponse)
async def get_status() -> StatusResponse:
    """Printer configuration, job queue, print queue and uptime."""
    manager = _require("manager")
    dispatcher = _require("dispatcher")
    config = _require("config")
    return StatusResponse(
        printer=PrinterInfo(
            name=config.printer.name,
            quality=config.printer.quality,
            size=config.printer.size,
        ),
        queue=manager.get_queue_status(),
        dispatcher=dispatcher.get_status(),
        uptime=time.monotonic() - _app_state["started_at"],
    )


@router.get("/queue", response_model=QueueResponse)
async def get_queue() -> QueueResponse:
    """Get the job queue status."""
    manager = _require("manager")
    return QueueResponse(queue=manager.get_queue_status())


@router.get("/event/{event_id}/photos", response_model=EventPhotosResponse)
async def get_event_photos(
    event_id: str,
    photo_status: PhotoStatus | None = Query(default=None, alias="status"),
    limit: int = 50,
    offset: int = 0,
) -> EventPhotosResponse:
    """List an event's photos straight from the admin panel."""
    gateway = _require("gateway")
    try:
        response = await gateway.fetch_pending(event_id, photo_status, limit)
    except Exception as e:
        logger.error(f"Failed to fetch photos for event {event_id}: {e}")
        raise HTTPException(status_code=500, detail=_error_body("Failed to fetch photos", str(e))) from e
    return EventPhotosResponse(
        photos=response.photos,
        count=response.count,
        limit=limit,
        offset=offset,
    )


@router.post("/print/event/{event_id}", response_model=MessageResponse)
async def print_event(event_id: str) -> MessageResponse:
    """Print all pending photos of an event now."""
    manager = _require("manager")
    try:
        queued = await manager.print_event(event_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=_error_body(str(e))) from e
    except Exception as e:
        logger.error(f"Manual print request failed: {e}")
        raise HTTPException(status_code=500, detail=_error_body("Failed to start printing", str(e))) from e
    return MessageResponse(
        message=f"Started printing photos for event {event_id}",
        event_id=event_id,
        count=queued,
    )


@router.post("/print/test", response_model=MessageResponse)
async def print_test() -> MessageResponse:
    """Print a test page."""
    dispatcher = _require("dispatcher")
    result = await dispatcher.self_test()
    if not result.success:
        raise HTTPException(
            status_code=500,
            detail=_error_body("Test print failed", result.error or result.message),
        )
    return MessageResponse(message=result.message)


@router.get("/printers", response_model=PrintersResponse)
async def list_printers() -> PrintersResponse:
    """List printers installed on this machine."""
    dispatcher = _require("dispatcher")
    try:
        printers = await dispatcher.list_printers()
    except Exception as e:
        logger.error(f"Failed to get available printers: {e}")
        raise HTTPException(status_code=500, detail=_error_body("Failed to get available printers", str(e))) from e
    return PrintersResponse(printers=printers)


@router.post("/photos/print-status", response_model=MessageResponse)
async def update_print_status(request: PrintStatusRequest) -> MessageResponse:
    """Set the print status of several photos on the admin panel, e.g. to reprint failed ones."""
    gateway = _require("gateway")
    ack = await gateway.bulk_report_status(request.photo_ids, request.status)
    if not ack.success:
        raise HTTPException(status_code=500, detail=_error_body(ack.message, ack.error or ack.message))
    return MessageResponse(message=ack.message, count=len(request.photo_ids))


@router.post("/queue/clear", response_model=MessageResponse)
async def clear_queue() -> MessageResponse:
    """Drop every queued job."""
    manager = _require("manager")
    cleared = manager.clear_queue()
    return MessageResponse(message="Print queue cleared", count=cleared)


@router.post(
    "/polling/start",
    response_model=MessageResponse,
    responses={400: {"description": "Event ID missing"}},
)
async def start_polling(request: PollingRequest | None = None) -> MessageResponse:
    """Start polling an event for pending photos."""
    manager = _require("manager")
    config = _require("config")
    request = request or PollingRequest()

    if not request.event_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_body("Event ID is required to start polling"),
        )

    interval = request.interval or config.poll_interval_ms
    try:
        await manager.start_polling(request.event_id, interval)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=_error_body(str(e))) from e
    except Exception as e:
        logger.error(f"Failed to start polling: {e}")
        raise HTTPException(status_code=500, detail=_error_body("Failed to start polling", str(e))) from e

    return MessageResponse(
        message=f"Polling started for {request.event_id}",
        event_id=request.event_id,
        interval_ms=interval,
    )


@router.post("/polling/stop", response_model=MessageResponse)
async def stop_polling() -> MessageResponse:
    """Stop polling."""
    manager = _require("manager")
    manager.stop_polling()
    return MessageResponse(message="Polling stopped")
