"""
Minimal Google Calendar v3 REST client.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from ...core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CALENDAR_ID = "primary"
DEFAULT_TIME_ZONE = "UTC"


class CalendarApiError(Exception):
    """Non-2xx answer from the Calendar API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def normalize_calendar_event(event: Optional[dict[str, Any]]) -> dict[str, Any]:
    event = event or {}
    start = event.get("start") or {}
    end = event.get("end") or {}
    return {
        "id": event.get("id") or "unknown",
        "summary": event.get("summary") or "Untitled event",
        "description": event.get("description"),
        "location": event.get("location"),
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "timeZone": start.get("timeZone") or end.get("timeZone"),
        "attendees": [
            {
                "email": attendee.get("email") or "unknown",
                "responseStatus": attendee.get("responseStatus"),
            }
            for attendee in event.get("attendees") or []
        ],
        "htmlLink": event.get("htmlLink"),
        "hangoutLink": event.get("hangoutLink"),
    }


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return f"HTTP {response.status_code}"


class GoogleCalendarClient:
    """Thin async wrapper over the events endpoints."""

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://www.googleapis.com/calendar/v3",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GoogleCalendarClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        response = await self._client.request(method, path, **kwargs)
        if not response.is_success:
            raise CalendarApiError(_error_message(response), response.status_code)
        return response.json()

    async def list_events(
        self,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
        max_results: int = 5,
        query: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "maxResults": min(max(max_results, 1), 25),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if time_min:
            params["timeMin"] = time_min
        if time_max:
            params["timeMax"] = time_max
        if query:
            params["q"] = query

        body = await self._request(
            "GET", f"/calendars/{quote(calendar_id, safe='')}/events", params=params
        )
        return [normalize_calendar_event(item) for item in body.get("items") or []]

    async def insert_event(
        self, calendar_id: str, event: dict[str, Any]
    ) -> dict[str, Any]:
        body = await self._request(
            "POST", f"/calendars/{quote(calendar_id, safe='')}/events", json=event
        )
        return normalize_calendar_event(body)
