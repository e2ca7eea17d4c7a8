"""
Calendar Routes - Google / Microsoft OAuth and interview events.

GET /calendar/{provider}/auth?userId=&holdingId= - Redirect to the consent screen
GET /calendar/{provider}/callback - OAuth callback, redirects back to /talent
POST /calendar/{provider}/create-event - Create an event in the user's calendar
GET /calendar/links - Add-to-calendar links for an interview
GET /calendar/ics - Interview as an .ics download
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse, Response

from talent_portal.core.auth import require_staff
from talent_portal.core.config import get_settings
from talent_portal.core.exceptions import ValidationException, ExternalServiceException
from talent_portal.services.calendar_service import (
    get_provider,
    decode_state,
    connect,
    create_calendar_event,
    create_interview_event,
    google_calendar_url,
    outlook_calendar_url,
    office365_calendar_url,
    generate_ics,
)
from talent_portal.schemas.schemas import CalendarEventRequest

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])


def _back_to_talent(query: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.public_base_url}/talent?{query}")


@router.get("/links")
async def calendar_links(
    candidateName: str = Query(...),
    jobTitle: str = Query(...),
    interviewerName: str = Query(""),
    startTime: datetime = Query(...),
    durationMinutes: int = Query(60, ge=5, le=480),
    meetingLink: Optional[str] = Query(None),
    candidateEmail: Optional[str] = Query(None),
    interviewerEmail: Optional[str] = Query(None),
    user: dict = Depends(require_staff)
):
    event = create_interview_event(candidateName, jobTitle, interviewerName, startTime, durationMinutes,
                                   meetingLink, candidateEmail, interviewerEmail)
    return {
        "google": google_calendar_url(event),
        "outlook": outlook_calendar_url(event),
        "office365": office365_calendar_url(event),
    }


@router.get("/ics")
async def download_ics(
    candidateName: str = Query(...),
    jobTitle: str = Query(...),
    interviewerName: str = Query(""),
    startTime: datetime = Query(...),
    durationMinutes: int = Query(60, ge=5, le=480),
    meetingLink: Optional[str] = Query(None),
    candidateEmail: Optional[str] = Query(None),
    interviewerEmail: Optional[str] = Query(None)
):
    event = create_interview_event(candidateName, jobTitle, interviewerName, startTime, durationMinutes,
                                   meetingLink, candidateEmail, interviewerEmail)
    return Response(
        content=generate_ics(event),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="entrevista.ics"'}
    )


@router.get("/{provider_name}/auth")
async def start_auth(
    provider_name: str,
    userId: Optional[str] = Query(None),
    holdingId: Optional[str] = Query(None)
):
    if not userId or not holdingId:
        raise ValidationException("userId and holdingId are required")

    provider = get_provider(provider_name)
    if not provider.is_configured:
        raise HTTPException(status_code=500, detail=f"{provider_name} calendar is not configured")

    return RedirectResponse(provider.authorization_url(userId, holdingId), status_code=307)


@router.get("/{provider_name}/callback")
async def auth_callback(
    provider_name: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None)
):
    """Every outcome redirects back to the talent dashboard with a status query."""
    if error:
        logger.warning(f"{provider_name} OAuth error: {error}")
        return _back_to_talent(f"error={error}")

    if not code or not state:
        return _back_to_talent("error=missing_params")

    provider = get_provider(provider_name)
    if not provider.can_exchange:
        return _back_to_talent("error=not_configured")

    try:
        decoded = decode_state(state)
        connect(provider, code, decoded["userId"], decoded.get("holdingId"))
    except ValidationException:
        return _back_to_talent("error=invalid_state")
    except ExternalServiceException as e:
        logger.error(f"{provider_name} token exchange failed: {e}")
        return _back_to_talent("error=token_exchange_failed")

    return _back_to_talent(f"success={provider_name}_calendar_connected")


@router.post("/{provider_name}/create-event")
async def create_event(provider_name: str, request: CalendarEventRequest, user: dict = Depends(require_staff)):
    return create_calendar_event(
        get_provider(provider_name),
        request.userId,
        request.title,
        request.description,
        request.startTime,
        request.endTime,
        [a.model_dump(exclude_none=True) for a in request.attendees],
        request.location
    )
