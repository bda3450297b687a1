"""
Microsoft Graph API client for the provider's booking calendar.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import BookingNotFoundError, CalendarAPIError
from ..domain.models import Booking, BusyInterval
from .busy_intervals import DEFAULT_MAX_QUERY_DAYS

logger = logging.getLogger(__name__)

_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


class GraphCalendarClient:
    """
    Client for Microsoft Graph calendar operations.

    Busy time comes from ``calendarView`` rather than ``getSchedule`` because
    only events carry the identifier needed to tell a booking apart from its
    neighbours. Requests run in a worker thread so the async services are
    not blocked.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"
    PAGE_SIZE = 200

    def __init__(
        self,
        access_token: str,
        calendar_id: str = "",
        max_query_days: int = DEFAULT_MAX_QUERY_DAYS,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.calendar_id = calendar_id
        self.max_query_days = max_query_days
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    @property
    def calendar_path(self) -> str:
        if self.calendar_id:
            return f"{self.GRAPH_API_ENDPOINT}/me/calendars/{self.calendar_id}"
        return f"{self.GRAPH_API_ENDPOINT}/me/calendar"

    async def query_busy_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        """
        Return busy events overlapping ``[start, end)``.

        Raises:
            CalendarAPIError: If the span is too long or the API call fails
        """
        if (end - start).total_seconds() > self.max_query_days * 86400:
            raise CalendarAPIError(
                f"Busy query spans more than {self.max_query_days} days; split it into chunks"
            )
        return await asyncio.to_thread(self._query_busy_intervals, start, end)

    def _query_busy_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        url: Optional[str] = f"{self.calendar_path}/calendarView"
        params: Optional[Dict[str, Any]] = {
            "startDateTime": start.in_timezone("UTC").to_iso8601_string(),
            "endDateTime": end.in_timezone("UTC").to_iso8601_string(),
            "$select": "id,start,end,showAs,isCancelled",
            "$top": self.PAGE_SIZE,
        }

        intervals: List[BusyInterval] = []
        while url:
            data = self._request("GET", url, params=params)
            intervals.extend(self._parse_busy_events(data.get("value", [])))
            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        return intervals

    def _parse_busy_events(self, events: List[Dict[str, Any]]) -> List[BusyInterval]:
        intervals: List[BusyInterval] = []
        for event in events:
            if event.get("isCancelled") or str(event.get("showAs", "")).lower() == "free":
                continue
            try:
                intervals.append(
                    BusyInterval(
                        start=self._parse_datetime(event["start"]),
                        end=self._parse_datetime(event["end"]),
                        id=event.get("id"),
                    )
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Could not parse calendar event %s: %s", event.get("id"), exc)
        return intervals

    async def get_booking(self, booking_id: str) -> Booking:
        data = await asyncio.to_thread(
            self._request, "GET", f"{self.GRAPH_API_ENDPOINT}/me/events/{booking_id}",
            booking_id=booking_id,
        )
        return self._parse_booking(data)

    async def update_booking(
        self,
        booking_id: str,
        start: DateTime,
        end: DateTime,
        summary: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Booking:
        payload: Dict[str, Any] = {
            "start": {"dateTime": self._format_datetime(start), "timeZone": "UTC"},
            "end": {"dateTime": self._format_datetime(end), "timeZone": "UTC"},
        }
        if summary is not None:
            payload["subject"] = summary
        if description is not None:
            payload["body"] = {"contentType": "text", "content": description}

        data = await asyncio.to_thread(
            self._request, "PATCH", f"{self.GRAPH_API_ENDPOINT}/me/events/{booking_id}",
            json=payload, booking_id=booking_id,
        )
        logger.info("Booking %s moved to %s - %s", booking_id, start, end)
        return self._parse_booking(data)

    async def delete_booking(self, booking_id: str) -> None:
        await asyncio.to_thread(
            self._request, "DELETE", f"{self.GRAPH_API_ENDPOINT}/me/events/{booking_id}",
            booking_id=booking_id,
        )
        logger.info("Booking %s deleted", booking_id)

    def test_connection(self) -> Dict[str, Any]:
        """Fetch the signed-in user's profile to verify the token."""
        return self._request("GET", f"{self.GRAPH_API_ENDPOINT}/me")

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        booking_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            response = self.session.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Calendar request failed: {e}") from e

        if booking_id is not None and response.status_code == 404:
            raise BookingNotFoundError(booking_id)

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise CalendarAPIError(f"Calendar request failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def _parse_booking(self, event: Dict[str, Any]) -> Booking:
        try:
            body = event.get("body") or {}
            return Booking(
                event_id=event["id"],
                start=self._parse_datetime(event["start"]),
                end=self._parse_datetime(event["end"]),
                summary=event.get("subject") or "",
                description=body.get("content") or "",
            )
        except (KeyError, ValueError) as exc:
            raise CalendarAPIError(f"Invalid event payload: {exc}") from exc

    @staticmethod
    def _parse_datetime(value: Dict[str, Any]) -> DateTime:
        """Parse a Graph ``dateTimeTimeZone`` object into an aware DateTime."""
        text = _EXCESS_FRACTION.sub(r"\1", value["dateTime"])
        parsed = pendulum.parse(text, tz=value.get("timeZone") or "UTC")
        if not isinstance(parsed, DateTime):
            raise ValueError(f"Could not parse datetime: {value['dateTime']}")
        return parsed

    @staticmethod
    def _format_datetime(instant: DateTime) -> str:
        return instant.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss")
