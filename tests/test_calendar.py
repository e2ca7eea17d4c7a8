"""Calendar OAuth flow, token refresh, event creation and link/ICS helpers."""

from datetime import datetime
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from talent_portal.core.exceptions import AuthorizationException, ValidationException
from talent_portal.services import calendar_service
from talent_portal.services.calendar_service import (
    GoogleCalendarProvider,
    MicrosoftCalendarProvider,
    create_calendar_event,
    create_interview_event,
    decode_state,
    encode_state,
    generate_ics,
    get_access_token,
    google_calendar_url,
    outlook_calendar_url,
)
from talent_portal.services.mongo_service import CalendarConnectionService

START = datetime(2026, 10, 20, 15, 0, 0)


def json_response(payload, status_code=200):
    response = MagicMock(status_code=status_code, ok=status_code < 400, text=str(payload))
    response.json.return_value = payload
    return response


@pytest.fixture
def google():
    return GoogleCalendarProvider("client-id", "client-secret", "https://api.example.com/callback")


@pytest.fixture
def configured_google():
    settings = calendar_service.settings
    with patch.object(settings, "google_client_id", "client-id"), \
            patch.object(settings, "google_client_secret", "client-secret"):
        yield


def test_state_round_trip():
    assert decode_state(encode_state("u1", "h1")) == {"userId": "u1", "holdingId": "h1"}

    for bad in ("not-base64!!", "bm90IGpzb24=", encode_state("u1", "h1")[:-4]):
        with pytest.raises(ValidationException):
            decode_state(bad)


def test_authorization_url(google):
    url = urlparse(google.authorization_url("u1", "h1"))
    params = parse_qs(url.query)

    assert url.netloc == "accounts.google.com"
    assert params["client_id"] == ["client-id"]
    assert params["redirect_uri"] == ["https://api.example.com/callback"]
    assert params["access_type"] == ["offline"]
    assert "https://www.googleapis.com/auth/calendar.events" in params["scope"][0]
    assert decode_state(params["state"][0]) == {"userId": "u1", "holdingId": "h1"}


def test_access_token_requires_connection(google):
    with pytest.raises(AuthorizationException) as exc:
        get_access_token(google, "u1")
    assert exc.value.extra == {"needsAuth": True}


def test_access_token_still_valid(google):
    CalendarConnectionService().save("u1", {"accessToken": "live", "expiresAt": calendar_service.now_ms() + 60000})
    with patch("talent_portal.services.calendar_service.requests.post") as post:
        assert get_access_token(google, "u1") == "live"
    post.assert_not_called()


def test_access_token_refresh(google):
    CalendarConnectionService().save("u1", {"accessToken": "old", "refreshToken": "r1", "expiresAt": 0})

    with patch("talent_portal.services.calendar_service.requests.post",
               return_value=json_response({"access_token": "new", "expires_in": 3600})) as post:
        assert get_access_token(google, "u1") == "new"

    assert post.call_args.kwargs["data"]["grant_type"] == "refresh_token"
    stored = CalendarConnectionService().get("u1")
    assert stored["accessToken"] == "new"
    assert stored["expiresAt"] > calendar_service.now_ms()


def test_access_token_refresh_refused(google):
    CalendarConnectionService().save("u1", {"accessToken": "old", "refreshToken": "r1", "expiresAt": 0})

    with patch("talent_portal.services.calendar_service.requests.post",
               return_value=json_response({"error": "invalid_grant"}, 400)):
        with pytest.raises(AuthorizationException) as exc:
            get_access_token(google, "u1")
    assert exc.value.extra["needsAuth"] is True


def test_create_google_event(google):
    CalendarConnectionService().save("u1", {"accessToken": "live", "expiresAt": calendar_service.now_ms() + 60000})
    created = {"id": "evt1", "htmlLink": "https://calendar/evt1", "hangoutLink": "https://meet/abc"}

    with patch("talent_portal.services.calendar_service.requests.post", return_value=json_response(created)) as post:
        result = create_calendar_event(google, "u1", "Entrevista", "Cajero", "2026-10-20T10:00:00",
                                       "2026-10-20T11:00:00", [{"email": "ana@example.com", "name": "Ana"}])

    assert result == {"success": True, "eventId": "evt1", "htmlLink": "https://calendar/evt1",
                      "meetLink": "https://meet/abc"}
    event = post.call_args.kwargs["json"]
    assert event["start"] == {"dateTime": "2026-10-20T10:00:00", "timeZone": "America/Lima"}
    assert event["attendees"] == [{"email": "ana@example.com", "displayName": "Ana"}]
    assert event["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {"type": "hangoutsMeet"}


def test_microsoft_event_shape():
    provider = MicrosoftCalendarProvider("cid", "secret")
    event = provider.build_event("Entrevista", "Línea 1\nLínea 2", "2026-10-20T10:00:00", "2026-10-20T11:00:00",
                                 [{"email": "ana@example.com"}], "Bembos Larco")

    assert event["body"] == {"contentType": "HTML", "content": "Línea 1<br>Línea 2"}
    assert event["start"]["timeZone"] == "SA Pacific Standard Time"
    assert event["attendees"][0]["emailAddress"]["address"] == "ana@example.com"
    assert event["location"] == {"displayName": "Bembos Larco"}
    assert event["isOnlineMeeting"] is True


# ============================================================
# LINKS / ICS
# ============================================================

def test_interview_event_and_links():
    event = create_interview_event("Ana Quispe", "Cajero", "Luis", START, 30,
                                   meeting_link="https://meet/abc", candidate_email="ana@example.com")

    assert event["title"] == "Entrevista: Ana Quispe - Cajero"
    assert event["endTime"] == datetime(2026, 10, 20, 15, 30, 0)
    assert event["location"] == "https://meet/abc"
    assert event["attendees"] == ["ana@example.com"]

    google_params = parse_qs(urlparse(google_calendar_url(event)).query)
    assert google_params["dates"] == ["20261020T150000Z/20261020T153000Z"]
    assert google_params["add"] == ["ana@example.com"]

    outlook_params = parse_qs(urlparse(outlook_calendar_url(event)).query)
    assert outlook_params["startdt"] == ["2026-10-20T15:00:00.000Z"]
    assert outlook_params["rru"] == ["addevent"]


def test_ics():
    event = create_interview_event("Ana", "Cajero", "Luis", START, candidate_email="ana@example.com")
    ics = generate_ics(event, now=datetime(2026, 10, 18, 9, 0, 0))
    lines = ics.split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert lines[-1] == "END:VCALENDAR"
    assert "DTSTAMP:20261018T090000Z" in lines
    assert "DTSTART:20261020T150000Z" in lines
    assert "DTEND:20261020T160000Z" in lines
    assert "LOCATION:Por confirmar" in lines
    assert "ATTENDEE:mailto:ana@example.com" in lines
    description = next(line for line in lines if line.startswith("DESCRIPTION:"))
    assert "\\n" in description and "\n" not in description


# ============================================================
# ROUTES
# ============================================================

def test_auth_route(client):
    assert client.get("/api/calendar/google/auth", params={"userId": "u1"}).status_code == 400
    assert client.get("/api/calendar/outlook/auth", params={"userId": "u1", "holdingId": "h1"}).status_code == 404

    not_configured = client.get("/api/calendar/google/auth", params={"userId": "u1", "holdingId": "h1"})
    assert not_configured.status_code == 500


def test_auth_route_redirects(client, configured_google):
    response = client.get("/api/calendar/google/auth", params={"userId": "u1", "holdingId": "h1"},
                          follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"].startswith("https://accounts.google.com/o/oauth2/v2/auth?")


def callback(client, **params):
    response = client.get("/api/calendar/google/callback", params=params, follow_redirects=False)
    assert response.status_code == 307
    return response.headers["location"].split("/talent?", 1)[1]


def test_callback_errors(client):
    assert callback(client, error="access_denied") == "error=access_denied"
    assert callback(client, code="abc") == "error=missing_params"
    assert callback(client, code="abc", state=encode_state("u1", "h1")) == "error=not_configured"


def test_callback_outcomes(client, configured_google):
    assert callback(client, code="abc", state="garbage") == "error=invalid_state"

    with patch("talent_portal.services.calendar_service.requests.post",
               return_value=json_response({}, 400)):
        assert callback(client, code="abc", state=encode_state("u1", "h1")) == "error=token_exchange_failed"

    tokens = json_response({"access_token": "at", "refresh_token": "rt", "expires_in": 3600})
    with patch("talent_portal.services.calendar_service.requests.post", return_value=tokens), \
            patch("talent_portal.services.calendar_service.requests.get",
                  return_value=json_response({"email": "luis@ngr.pe"})):
        assert callback(client, code="abc", state=encode_state("u1", "h1")) == "success=google_calendar_connected"

    connection = CalendarConnectionService().get("u1")
    assert connection["provider"] == "google"
    assert connection["refreshToken"] == "rt"
    assert connection["email"] == "luis@ngr.pe"
    assert connection["holdingId"] == "h1"


def test_create_event_route_needs_connection(client, make_user):
    user, headers = make_user("recruiter")
    response = client.post("/api/calendar/google/create-event", headers=headers, json={
        "userId": user["user_id"], "title": "Entrevista",
        "startTime": "2026-10-20T10:00:00", "endTime": "2026-10-20T11:00:00"
    })
    assert response.status_code == 401
    assert response.json()["needsAuth"] is True


def test_links_and_ics_routes(client, make_user):
    _, headers = make_user("recruiter")
    params = {"candidateName": "Ana", "jobTitle": "Cajero", "startTime": "2026-10-20T15:00:00"}

    links = client.get("/api/calendar/links", headers=headers, params=params).json()
    assert set(links) == {"google", "outlook", "office365"}
    assert links["office365"].startswith("https://outlook.office.com/")

    ics = client.get("/api/calendar/ics", params=params)
    assert ics.headers["content-type"].startswith("text/calendar")
    assert 'filename="entrevista.ics"' in ics.headers["content-disposition"]
    assert "SUMMARY:Entrevista: Ana - Cajero" in ics.text


def test_offset_start_times_are_converted_to_utc(client, make_user):
    _, headers = make_user("recruiter")
    params = {"candidateName": "Ana", "jobTitle": "Cajero", "startTime": "2026-05-01T10:00:00-05:00"}

    ics = client.get("/api/calendar/ics", params=params).text
    assert "DTSTART:20260501T150000Z" in ics
    assert "DTEND:20260501T160000Z" in ics

    links = client.get("/api/calendar/links", headers=headers, params=params).json()
    assert "20260501T150000Z" in links["google"]
    assert "2026-05-01T15%3A00%3A00.000Z" in links["outlook"]
