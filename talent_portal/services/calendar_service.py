"""
Calendar Service - Google and Microsoft calendar integration.

OAuth authorization-code flow per provider:
    1. authorization_url(user_id, holding_id)   -> redirect the recruiter
    2. exchange_code(code)                       -> tokens, stored per user
    3. refresh(refresh_token)                    -> new access token on expiry
    4. create_event(access_token, ...)           -> interview on their calendar

Plus link / ICS helpers for candidates without a connected calendar.
Connection documents keep `expiresAt` as epoch milliseconds.
"""

import base64
import json
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any
from urllib.parse import urlencode

import requests

from talent_portal.core.config import get_settings
from talent_portal.core.exceptions import (
    AuthorizationException,
    ExternalServiceException,
    NotFoundException,
    ValidationException,
)
from talent_portal.services.mongo_service import CalendarConnectionService

settings = get_settings()
logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15


def now_ms() -> int:
    return int(time.time() * 1000)


def encode_state(user_id: str, holding_id: str) -> str:
    return base64.b64encode(json.dumps({"userId": user_id, "holdingId": holding_id}).encode()).decode()


def decode_state(state: str) -> Dict[str, str]:
    """Raises ValidationException for anything that is not our base64 JSON."""
    try:
        decoded = json.loads(base64.b64decode(state).decode())
        return {"userId": decoded["userId"], "holdingId": decoded["holdingId"]}
    except (ValueError, KeyError, TypeError) as e:
        raise ValidationException(f"Invalid OAuth state: {e}")


# ============================================================
# PROVIDERS
# ============================================================

class CalendarProvider:
    """
    Shared OAuth plumbing. Subclasses set the endpoints and build events.

    Usage:
        provider = get_provider("google")
        url = provider.authorization_url(user_id, holding_id)
    """

    name = ""
    auth_endpoint = ""
    token_endpoint = ""
    scopes: List[str] = []
    extra_auth_params: Dict[str, str] = {}

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str = ""):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri or f"{settings.public_base_url.rstrip('/')}/api/calendar/{self.name}/callback"

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id)

    @property
    def can_exchange(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, user_id: str, holding_id: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            **self.extra_auth_params,
            "state": encode_state(user_id, holding_id),
        }
        return f"{self.auth_endpoint}?{urlencode(params)}"

    def _token_request(self, payload: Dict[str, str]) -> Optional[dict]:
        try:
            response = requests.post(
                self.token_endpoint,
                data={"client_id": self.client_id, "client_secret": self.client_secret, **payload},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=REQUEST_TIMEOUT_SECONDS
            )
        except requests.RequestException as e:
            logger.error(f"{self.name} token request failed: {e}")
            return None

        if not response.ok:
            logger.error(f"{self.name} token endpoint returned {response.status_code}: {response.text[:200]}")
            return None
        return response.json()

    def exchange_code(self, code: str) -> dict:
        """Authorization code -> {access_token, refresh_token, expires_in, ...}"""
        tokens = self._token_request({
            "code": code,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code"
        })
        if not tokens:
            raise ExternalServiceException(f"{self.name} token exchange failed")
        return tokens

    def refresh(self, refresh_token: str) -> Optional[dict]:
        """Returns the new tokens, or None when the provider refuses."""
        if not self.can_exchange or not refresh_token:
            return None
        return self._token_request({"refresh_token": refresh_token, "grant_type": "refresh_token"})

    def fetch_email(self, access_token: str) -> str:
        raise NotImplementedError

    def build_event(self, title: str, description: str, start_time: str, end_time: str,
                    attendees: List[dict] = None, location: str = None) -> dict:
        raise NotImplementedError

    def create_event(self, access_token: str, event: dict) -> Dict[str, Any]:
        raise NotImplementedError

    def _get_json(self, url: str, access_token: str) -> Optional[dict]:
        try:
            response = requests.get(url, headers={"Authorization": f"Bearer {access_token}"},
                                    timeout=REQUEST_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.warning(f"{self.name} GET {url} failed: {e}")
            return None
        return response.json() if response.ok else None

    def _post_event(self, url: str, access_token: str, event: dict) -> dict:
        try:
            response = requests.post(
                url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json"
                },
                json=event,
                timeout=REQUEST_TIMEOUT_SECONDS
            )
        except requests.RequestException as e:
            raise ExternalServiceException(f"{self.name} calendar unreachable: {e}")

        if not response.ok:
            logger.error(f"{self.name} calendar API error {response.status_code}: {response.text[:200]}")
            raise ExternalServiceException("Failed to create calendar event")
        return response.json()


class GoogleCalendarProvider(CalendarProvider):
    name = "google"
    auth_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    userinfo_endpoint = "https://www.googleapis.com/oauth2/v2/userinfo"
    events_endpoint = (
        "https://www.googleapis.com/calendar/v3/calendars/primary/events"
        "?conferenceDataVersion=1&sendUpdates=all"
    )
    scopes = [
        "https://www.googleapis.com/auth/calendar.events",
        "https://www.googleapis.com/auth/calendar.readonly",
    ]
    extra_auth_params = {"access_type": "offline", "prompt": "consent"}

    def fetch_email(self, access_token: str) -> str:
        info = self._get_json(self.userinfo_endpoint, access_token) or {}
        return info.get("email") or ""

    def build_event(self, title: str, description: str, start_time: str, end_time: str,
                    attendees: List[dict] = None, location: str = None) -> dict:
        return {
            "summary": title,
            "description": description,
            "location": location,
            "start": {"dateTime": start_time, "timeZone": settings.calendar_time_zone},
            "end": {"dateTime": end_time, "timeZone": settings.calendar_time_zone},
            "attendees": [
                {"email": a["email"], "displayName": a.get("name")}
                for a in attendees or []
            ],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 60},
                    {"method": "popup", "minutes": 30}
                ]
            },
            "conferenceData": {
                "createRequest": {
                    "requestId": f"interview-{uuid.uuid4().hex}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"}
                }
            }
        }

    def create_event(self, access_token: str, event: dict) -> Dict[str, Any]:
        created = self._post_event(self.events_endpoint, access_token, event)
        entry_points = (created.get("conferenceData") or {}).get("entryPoints") or [{}]
        return {
            "eventId": created.get("id"),
            "htmlLink": created.get("htmlLink"),
            "meetLink": created.get("hangoutLink") or entry_points[0].get("uri")
        }


class MicrosoftCalendarProvider(CalendarProvider):
    name = "microsoft"
    auth_endpoint = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
    token_endpoint = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
    userinfo_endpoint = "https://graph.microsoft.com/v1.0/me"
    events_endpoint = "https://graph.microsoft.com/v1.0/me/events"
    scopes = ["openid", "profile", "email", "Calendars.ReadWrite", "OnlineMeetings.ReadWrite"]
    extra_auth_params = {"response_mode": "query", "prompt": "consent"}
    # Windows zone name for America/Lima
    time_zone = "SA Pacific Standard Time"

    def fetch_email(self, access_token: str) -> str:
        info = self._get_json(self.userinfo_endpoint, access_token) or {}
        return info.get("mail") or info.get("userPrincipalName") or ""

    def build_event(self, title: str, description: str, start_time: str, end_time: str,
                    attendees: List[dict] = None, location: str = None) -> dict:
        event = {
            "subject": title,
            "body": {"contentType": "HTML", "content": (description or "").replace("\n", "<br>")},
            "start": {"dateTime": start_time, "timeZone": self.time_zone},
            "end": {"dateTime": end_time, "timeZone": self.time_zone},
            "attendees": [
                {"emailAddress": {"address": a["email"], "name": a.get("name")}, "type": "required"}
                for a in attendees or []
            ],
            "isOnlineMeeting": True,
            "onlineMeetingProvider": "teamsForBusiness"
        }
        if location:
            event["location"] = {"displayName": location}
        return event

    def create_event(self, access_token: str, event: dict) -> Dict[str, Any]:
        created = self._post_event(self.events_endpoint, access_token, event)
        return {
            "eventId": created.get("id"),
            "htmlLink": created.get("webLink"),
            "meetLink": (created.get("onlineMeeting") or {}).get("joinUrl")
        }


def get_provider(name: str) -> CalendarProvider:
    if name == "google":
        return GoogleCalendarProvider(settings.google_client_id, settings.google_client_secret,
                                      settings.google_redirect_uri)
    if name == "microsoft":
        return MicrosoftCalendarProvider(settings.microsoft_client_id, settings.microsoft_client_secret,
                                         settings.microsoft_redirect_uri)
    raise NotFoundException(f"Unknown calendar provider: {name}")


# ============================================================
# CONNECTIONS
# ============================================================

def connect(provider: CalendarProvider, code: str, user_id: str, holding_id: str) -> dict:
    """Exchange the code and store the connection for the user."""
    tokens = provider.exchange_code(code)
    email = provider.fetch_email(tokens["access_token"])

    connection = {
        "provider": provider.name,
        "accessToken": tokens["access_token"],
        "refreshToken": tokens.get("refresh_token"),
        "expiresAt": now_ms() + int(tokens.get("expires_in", 3600)) * 1000,
        "email": email,
        "holdingId": holding_id,
    }
    CalendarConnectionService().save(user_id, connection)
    logger.info(f"Calendar connected: provider={provider.name} user={user_id}")
    return connection


def get_access_token(provider: CalendarProvider, user_id: str) -> str:
    """
    Stored access token for the user, refreshed when expired.
    Raises AuthorizationException (needsAuth) when the user must reconnect.
    """
    connections = CalendarConnectionService()
    connection = connections.get(user_id)
    if not connection:
        raise AuthorizationException("Calendar not connected", {"needsAuth": True})

    if (connection.get("expiresAt") or 0) >= now_ms():
        return connection["accessToken"]

    tokens = provider.refresh(connection.get("refreshToken"))
    if not tokens or not tokens.get("access_token"):
        raise AuthorizationException("Token refresh failed, please reconnect", {"needsAuth": True})

    expires_at = now_ms() + int(tokens.get("expires_in", 3600)) * 1000
    connections.update_tokens(user_id, tokens["access_token"], expires_at)
    return tokens["access_token"]


def create_calendar_event(provider: CalendarProvider, user_id: str, title: str, description: str,
                          start_time: str, end_time: str, attendees: List[dict] = None,
                          location: str = None) -> Dict[str, Any]:
    access_token = get_access_token(provider, user_id)
    event = provider.build_event(title, description, start_time, end_time, attendees, location)
    created = provider.create_event(access_token, event)
    logger.info(f"Calendar event created: provider={provider.name} user={user_id} event={created['eventId']}")
    return {"success": True, **created}


# ============================================================
# LINKS AND ICS
# ============================================================

def _to_utc(value: datetime) -> datetime:
    """Naive values are already UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _compact_utc(value: datetime) -> str:
    return _to_utc(value).strftime("%Y%m%dT%H%M%SZ")


def _iso_utc(value: datetime) -> str:
    value = _to_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def create_interview_event(candidate_name: str, job_title: str, interviewer_name: str,
                           start_time: datetime, duration_minutes: int = 60,
                           meeting_link: str = None, candidate_email: str = None,
                           interviewer_email: str = None) -> Dict[str, Any]:
    """Interview event dict used by the link and ICS helpers. Times are naive UTC."""
    description = f"Entrevista para el puesto: {job_title}\n\n"
    description += f"Candidato: {candidate_name}\n"
    description += f"Entrevistador: {interviewer_name}\n"
    if meeting_link:
        description += f"\nLink de reunión: {meeting_link}"

    return {
        "title": f"Entrevista: {candidate_name} - {job_title}",
        "description": description,
        "startTime": start_time,
        "endTime": start_time + timedelta(minutes=duration_minutes),
        "location": meeting_link or "Por confirmar",
        "attendees": [email for email in (candidate_email, interviewer_email) if email],
    }


def google_calendar_url(event: dict) -> str:
    params = {
        "action": "TEMPLATE",
        "text": event["title"],
        "details": event["description"],
        "dates": f"{_compact_utc(event['startTime'])}/{_compact_utc(event['endTime'])}",
    }
    if event.get("location"):
        params["location"] = event["location"]
    if event.get("attendees"):
        params["add"] = ",".join(event["attendees"])
    return f"https://calendar.google.com/calendar/render?{urlencode(params)}"


def _outlook_params(event: dict) -> Dict[str, str]:
    params = {
        "path": "/calendar/action/compose",
        "rru": "addevent",
        "subject": event["title"],
        "body": event["description"],
        "startdt": _iso_utc(event["startTime"]),
        "enddt": _iso_utc(event["endTime"]),
    }
    if event.get("location"):
        params["location"] = event["location"]
    return params


def outlook_calendar_url(event: dict) -> str:
    return f"https://outlook.live.com/calendar/0/deeplink/compose?{urlencode(_outlook_params(event))}"


def office365_calendar_url(event: dict) -> str:
    return f"https://outlook.office.com/calendar/0/deeplink/compose?{urlencode(_outlook_params(event))}"


def generate_ics(event: dict, now: Optional[datetime] = None) -> str:
    """iCalendar text for one event, CRLF line endings."""
    now = now or datetime.utcnow()
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//LIAH//Talent//ES",
        "BEGIN:VEVENT",
        f"UID:{uuid.uuid4().hex}@liah.pe",
        f"DTSTAMP:{_compact_utc(now)}",
        f"DTSTART:{_compact_utc(event['startTime'])}",
        f"DTEND:{_compact_utc(event['endTime'])}",
        f"SUMMARY:{event['title']}",
        "DESCRIPTION:" + event["description"].replace("\n", "\\n"),
    ]
    if event.get("location"):
        lines.append(f"LOCATION:{event['location']}")
    for email in event.get("attendees") or []:
        lines.append(f"ATTENDEE:mailto:{email}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines)
