"""
Meeting-link issuance (Zoom server-to-server OAuth).

Only called after a reservation has committed. Failures surface as MeetingLinkError and are
reported to the caller; they never touch slots or interview details.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from ..config import (
    MEETING_DEFAULT_DURATION_MIN,
    MEETING_TIMEOUT_S,
    ZOOM_ACCOUNT_ID,
    ZOOM_API_BASE_URL,
    ZOOM_CLIENT_ID,
    ZOOM_CLIENT_SECRET,
    ZOOM_JOIN_BEFORE_HOST,
    ZOOM_OAUTH_URL,
    ZOOM_WAITING_ROOM,
)
from ..utils.datetimes import to_utc_naive
from ..utils.error_handlers import UpstreamError

logger = logging.getLogger(__name__)


class MeetingLinkError(UpstreamError):
    """Link issuance failed; callers report it and keep the reservation."""


@dataclass(frozen=True)
class MeetingLink:
    start_url: str
    join_url: str
    meeting_id: str | None = None


def _safe_truncate(s: str, n: int = 500) -> str:
    s = s or ""
    return s if len(s) <= n else s[:n] + "..."


class ZoomMeetingLinkIssuer:
    def __init__(
        self,
        *,
        account_id: str | None,
        client_id: str | None,
        client_secret: str | None,
        oauth_url: str = ZOOM_OAUTH_URL,
        api_base_url: str = ZOOM_API_BASE_URL,
        join_before_host: bool = False,
        waiting_room: bool = True,
        timeout_s: float = MEETING_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_id = (account_id or "").strip()
        self.client_id = (client_id or "").strip()
        self.client_secret = (client_secret or "").strip()
        self.oauth_url = oauth_url
        self.api_base_url = (api_base_url or "").rstrip("/")
        self.join_before_host = join_before_host
        self.waiting_room = waiting_room
        self.timeout_s = timeout_s
        self.transport = transport
        self._token: str | None = None
        self._token_expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.account_id and self.client_id and self.client_secret)

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        r = await client.post(
            self.oauth_url,
            params={"grant_type": "account_credentials", "account_id": self.account_id},
            auth=(self.client_id, self.client_secret),
        )
        if r.status_code >= 400:
            raise MeetingLinkError(f"Zoom OAuth failed ({r.status_code}): {_safe_truncate(r.text)}")
        try:
            data = r.json() or {}
            token = data.get("access_token")
            # Refresh a minute early.
            expires_in = int(data.get("expires_in") or 3600)
        except (ValueError, TypeError, AttributeError) as e:
            raise MeetingLinkError(f"Zoom OAuth returned an unexpected body: {_safe_truncate(r.text)}") from e
        if not token:
            raise MeetingLinkError("Zoom OAuth response has no access_token")
        self._token = str(token)
        self._token_expires_at = time.monotonic() + max(expires_in - 60, 0)
        return self._token

    async def create_meeting(
        self,
        *,
        topic: str,
        start_time: datetime,
        duration_minutes: int | None = None,
    ) -> MeetingLink:
        if not self.configured:
            raise MeetingLinkError("Zoom is not configured (missing ZOOM_ACCOUNT_ID/ZOOM_CLIENT_ID/ZOOM_CLIENT_SECRET)")
        if not topic or start_time is None:
            raise MeetingLinkError("Invalid meeting details")

        body: dict[str, Any] = {
            "topic": topic,
            "type": 2,
            "timezone": "UTC",
            "start_time": to_utc_naive(start_time).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration": int(duration_minutes or MEETING_DEFAULT_DURATION_MIN),
            "settings": {
                "join_before_host": self.join_before_host,
                "waiting_room": self.waiting_room,
            },
        }

        t0 = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                token = await self._access_token(client)
                r = await client.post(
                    f"{self.api_base_url}/users/me/meetings",
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.TimeoutException as e:
            raise MeetingLinkError("Zoom request timed out") from e
        except httpx.HTTPError as e:
            raise MeetingLinkError(f"Zoom request failed: {type(e).__name__}") from e

        latency_ms = int((time.perf_counter() - t0) * 1000)
        if r.status_code >= 400:
            if r.status_code == 401:
                self._token = None
            raise MeetingLinkError(f"Zoom meeting creation failed ({r.status_code}): {_safe_truncate(r.text)}")

        try:
            data = r.json() or {}
            start_url = data.get("start_url")
            join_url = data.get("join_url")
            meeting_id = data.get("id")
        except (ValueError, TypeError, AttributeError) as e:
            raise MeetingLinkError(f"Zoom meeting response has an unexpected body: {_safe_truncate(r.text)}") from e
        if not start_url or not join_url:
            raise MeetingLinkError("Zoom response is missing start_url/join_url")
        logger.info("Zoom meeting created for %r in %sms", topic, latency_ms)
        return MeetingLink(
            start_url=str(start_url),
            join_url=str(join_url),
            meeting_id=str(meeting_id) if meeting_id is not None else None,
        )


_issuer = ZoomMeetingLinkIssuer(
    account_id=ZOOM_ACCOUNT_ID,
    client_id=ZOOM_CLIENT_ID,
    client_secret=ZOOM_CLIENT_SECRET,
    join_before_host=ZOOM_JOIN_BEFORE_HOST,
    waiting_room=ZOOM_WAITING_ROOM,
)


def get_meeting_link_issuer() -> ZoomMeetingLinkIssuer:
    """FastAPI dependency; tests override it with a fake."""
    return _issuer
