"""
Google Calendar tools: list upcoming events and create new ones for the
signed-in user.
"""

from datetime import datetime, timezone
from typing import Optional

import httpx
from langchain_core.tools import StructuredTool, ToolException
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ...core.logger import get_logger
from ..google.calendar import (
    DEFAULT_CALENDAR_ID,
    DEFAULT_TIME_ZONE,
    CalendarApiError,
    GoogleCalendarClient,
)
from ..google.oauth import GoogleAuthError, get_google_access_token
from .base import ToolContext, make_tool

logger = get_logger(__name__)

LIST_EVENTS_TOOL = "google_calendar_list_events"
CREATE_EVENT_TOOL = "google_calendar_create_event"


def _parse_iso(value: str, field_name: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(
            f"{field_name} must be an ISO-8601 datetime, e.g. 2025-01-31T09:00:00-05:00"
        ) from None
    if parsed.tzinfo is None:
        raise ValueError(f"{field_name} must include a UTC offset or 'Z'")
    return parsed


class ListEventsArgs(BaseModel):
    calendarId: str = Field(
        default=DEFAULT_CALENDAR_ID, description="Calendar id, 'primary' by default."
    )
    timeMin: Optional[str] = Field(
        default=None,
        description="ISO-8601 lower bound with offset. Defaults to now.",
    )
    timeMax: Optional[str] = Field(
        default=None, description="ISO-8601 upper bound with offset."
    )
    maxResults: int = Field(default=5, ge=1, le=25, description="1-25 events.")
    query: Optional[str] = Field(default=None, description="Free text filter.")

    @field_validator("timeMin", "timeMax")
    @classmethod
    def _iso(cls, value: Optional[str], info):
        if value is not None:
            _parse_iso(value, info.field_name)
        return value


class Attendee(BaseModel):
    email: EmailStr
    optionalName: Optional[str] = None


class CreateEventArgs(BaseModel):
    calendarId: str = Field(default=DEFAULT_CALENDAR_ID)
    summary: str = Field(..., min_length=1, description="Event title.")
    description: Optional[str] = None
    location: Optional[str] = None
    startTime: str = Field(..., description="ISO-8601 start with offset.")
    endTime: str = Field(..., description="ISO-8601 end with offset.")
    timeZone: str = Field(default=DEFAULT_TIME_ZONE, description="IANA zone name.")
    attendees: Optional[list[Attendee]] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def _iso(cls, value: str, info):
        _parse_iso(value, info.field_name)
        return value

    @model_validator(mode="after")
    def _ordered(self):
        if _parse_iso(self.endTime, "endTime") <= _parse_iso(self.startTime, "startTime"):
            raise ValueError("endTime must be after startTime")
        return self


async def _access_token(context: ToolContext) -> str:
    timeout = context.settings.google.request_timeout
    async with context.session_factory() as db, context.http_client(timeout) as client:
        return await get_google_access_token(
            db, context.user_id, context.settings, client=client
        )


def _tool_error(action: str, exc: Exception) -> ToolException:
    if isinstance(exc, GoogleAuthError):
        return ToolException(
            f"Unable to {action}: Google authentication required. {exc}"
        )
    return ToolException(f"Unable to {action}: {exc}")


def _calendar_client(context: ToolContext, access_token: str) -> GoogleCalendarClient:
    google = context.settings.google
    return GoogleCalendarClient(
        access_token,
        base_url=google.calendar_api_base,
        timeout=google.request_timeout,
        transport=context.http_transport,
    )


def build_calendar_tools(context: ToolContext) -> list[StructuredTool]:

    async def list_events(args: ListEventsArgs) -> dict | str:
        time_min = args.timeMin or datetime.now(timezone.utc).isoformat()
        try:
            access_token = await _access_token(context)
            async with _calendar_client(context, access_token) as client:
                events = await client.list_events(
                    calendar_id=args.calendarId,
                    time_min=time_min,
                    time_max=args.timeMax,
                    max_results=args.maxResults,
                    query=args.query,
                )
        except (GoogleAuthError, CalendarApiError, httpx.HTTPError) as exc:
            raise _tool_error("list calendar events", exc) from exc
        if not events:
            return "No events found for the requested window."
        return {"calendarId": args.calendarId, "count": len(events), "events": events}

    async def create_event(args: CreateEventArgs) -> dict:
        body = {
            "summary": args.summary,
            "description": args.description,
            "location": args.location,
            "start": {"dateTime": args.startTime, "timeZone": args.timeZone},
            "end": {"dateTime": args.endTime, "timeZone": args.timeZone},
        }
        if args.attendees:
            body["attendees"] = [
                {"email": a.email, "displayName": a.optionalName}
                for a in args.attendees
            ]
        body = {key: value for key, value in body.items() if value is not None}
        try:
            access_token = await _access_token(context)
            async with _calendar_client(context, access_token) as client:
                event = await client.insert_event(args.calendarId, body)
        except (GoogleAuthError, CalendarApiError, httpx.HTTPError) as exc:
            raise _tool_error("create calendar event", exc) from exc
        logger.info(f"[Calendar] Created event {event['id']} for {context.user_id}")
        return {"calendarId": args.calendarId, "event": event}

    return [
        make_tool(
            name=LIST_EVENTS_TOOL,
            description=(
                "List upcoming Google Calendar events for the signed-in user. "
                "Times are ISO-8601 with an offset. Returns at most 25 events."
            ),
            args_schema=ListEventsArgs,
            handler=list_events,
        ),
        make_tool(
            name=CREATE_EVENT_TOOL,
            description=(
                "Create an event on the user's Google Calendar. Provide a summary, "
                "ISO-8601 startTime/endTime with offsets and optionally attendees."
            ),
            args_schema=CreateEventArgs,
            handler=create_event,
        ),
    ]
