"""Client for the admin panel's photo API."""

import json
import logging
from typing import Any

import aiohttp

from eventprint.models.photo import (
    PendingPhotos,
    PhotoRecord,
    PhotoStatus,
    StatusAck,
    normalize_photo,
)

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Exception raised when the admin panel request fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitedError(GatewayError):
    """The admin panel rejected the request with HTTP 429."""

    pass


class NotFoundError(GatewayError):
    """The requested photo does not exist."""

    pass


def _error_message(body: str) -> str:
    """Pull a human readable message out of an error response body."""
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or body)
    return body


class PhotoGateway:
    """Fetches photos from, and reports print status to, the admin panel."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"x-api-key": self.api_key, "Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this gateway created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode its JSON body.

        Raises:
            RateLimitedError: On HTTP 429.
            NotFoundError: On HTTP 404.
            GatewayError: On any other HTTP or transport failure.
        """
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().request(method, url, **kwargs) as resp:
                if resp.status == 429:
                    raise RateLimitedError(f"{method} {url} rate limited", status=429)
                if resp.status >= 400:
                    message = _error_message(await resp.text())
                    if resp.status == 404:
                        raise NotFoundError(f"{method} {url} not found: {message}", status=404)
                    raise GatewayError(f"{method} {url} failed: {resp.status} - {message}", status=resp.status)
                try:
                    # Empty bodies decode to None
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise GatewayError(f"{method} {url} returned invalid JSON") from e
        except (aiohttp.ClientError, TimeoutError) as e:
            raise GatewayError(f"{method} {url} failed: {e}") from e

    async def fetch_pending(
        self,
        event_id: str,
        status: PhotoStatus | None = PhotoStatus.PENDING,
        limit: int = 10,
    ) -> PendingPhotos:
        """Fetch photos of an event, filtered by print status.

        Tries ``/api/photos/event/{id}`` first and falls back to the older
        ``/api/photos?eventId=`` listing if that fails for any reason other
        than rate limiting.

        Raises:
            ValueError: If no event ID is given.
            RateLimitedError: If the admin panel is rate limiting us.
            GatewayError: If both endpoints fail.
        """
        if not event_id:
            raise ValueError("Event ID is required")

        params: dict[str, str | int] = {"limit": limit}
        if status:
            params["status"] = str(status)

        try:
            data = await self._request("GET", f"/api/photos/event/{event_id}", params=params)
            raw_photos = _dig(data, "photos", "data")
        except RateLimitedError:
            raise
        except GatewayError as primary_error:
            logger.warning(f"Primary fetch of pending photos failed: {primary_error}")
            try:
                data = await self._request("GET", "/api/photos", params={"eventId": event_id, **params})
            except GatewayError as fallback_error:
                logger.error(f"Failed to fetch pending photos (fallback also failed): {fallback_error}")
                if isinstance(fallback_error, RateLimitedError):
                    raise
                raise GatewayError(
                    f"Failed to fetch pending photos from server: {fallback_error}",
                    status=fallback_error.status,
                ) from fallback_error
            raw_photos = data if isinstance(data, list) else _dig(data, "photos", "data")
            if isinstance(raw_photos, dict):
                raw_photos = raw_photos.get("items") or []

        photos = []
        for raw in raw_photos or []:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object photo record for event {event_id}: {raw!r}")
                continue
            try:
                photos.append(normalize_photo(raw, default_event_id=event_id))
            except ValueError as e:
                logger.warning(f"Skipping malformed photo record for event {event_id}: {e}")
        count = len(photos)
        if isinstance(data, dict):
            count = data.get("totalCount") or data.get("count") or count
        return PendingPhotos(photos=photos, count=count)

    async def fetch_photo(self, photo_id: str) -> PhotoRecord:
        """Fetch a single photo with its image reference.

        Raises:
            NotFoundError: If the photo does not exist.
            GatewayError: If the request fails or the photo has no image.
        """
        data = await self._request("GET", f"/api/photos/{photo_id}")
        raw = _dig(data, "data", "photo") or data
        if not isinstance(raw, dict):
            raise GatewayError(f"Invalid photo response shape for photo {photo_id}")

        try:
            photo = normalize_photo({"_id": photo_id, **raw})
        except ValueError as e:
            raise GatewayError(f"Malformed photo record for photo {photo_id}: {e}") from e
        if not photo.image_data:
            raise GatewayError(f"Photo {photo_id} has no URL")
        return photo

    async def report_status(self, photo_id: str, status: PhotoStatus) -> StatusAck:
        """Report a photo's print status to the admin panel.

        Raises:
            GatewayError: If the update was rejected or could not be sent.
        """
        try:
            data = await self._request(
                "PATCH",
                f"/api/photos/{photo_id}/print-status",
                json={"status": str(status)},
            )
        except GatewayError as e:
            logger.error(f"Failed to update print status for photo {photo_id}: {e}")
            raise
        return StatusAck(
            success=True,
            message=f"Print status updated to {status} for photo {photo_id}",
            data=data,
        )

    async def bulk_report_status(self, photo_ids: list[str], status: PhotoStatus) -> StatusAck:
        """Report the same print status for several photos at once.

        Failures are returned in the acknowledgement rather than raised.
        """
        try:
            data = await self._request(
                "POST",
                "/api/photos/batch-update",
                json={"ids": photo_ids, "updates": {"status": str(status), "printStatus": str(status)}},
            )
        except GatewayError as e:
            logger.error(f"Failed to bulk update print status: {e}")
            return StatusAck(
                success=False,
                message="Failed to update print status for selected photos",
                error=str(e),
            )
        return StatusAck(
            success=True,
            message=f"Updated status to {status} for {len(photo_ids)} photos",
            data=data,
        )


def _dig(data: Any, *keys: str) -> Any:
    """Return the first non-empty value among ``keys`` of a dict response."""
    if not isinstance(data, dict):
        return None
    for key in keys:
        if data.get(key):
            return data[key]
    return None
