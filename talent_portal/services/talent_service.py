"""
Talent Service - corporate (talent) pipeline.

Candidates applying to talent jobs live in `talent_candidates`:
- PENDING_ANALYSIS: passed the killer questions, waits for AI screening
- AUTO_REJECTED: failed a critical killer question, never analyzed
- SCREENING: AI match score stored, ready for the recruiter

    PENDING_ANALYSIS --process_candidate--> SCREENING
    AUTO_REJECTED --recover_candidate--> PENDING_ANALYSIS --> SCREENING

Talent applications (`talent_applications`) receive CUL requests: a
7-day upload token emailed to the candidate and consumed by upload_cul.

Interview self-booking (`interview_booking_requests`):
    create_request -> get_availability -> book_slot
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any
from zoneinfo import ZoneInfo

from talent_portal.core.config import get_settings
from talent_portal.core.exceptions import ValidationException, NotFoundException, ServiceException, GoneException
from talent_portal.services import calendar_service
from talent_portal.services.ai_service import AIService
from talent_portal.services.email_service import send_quietly
from talent_portal.db.mongodb import get_collection
from talent_portal.services.mongo_service import (
    DocumentService,
    HoldingService,
    CalendarConnectionService,
    serialize_doc,
)

settings = get_settings()
logger = logging.getLogger(__name__)

PENDING_ANALYSIS = "PENDING_ANALYSIS"
AUTO_REJECTED = "AUTO_REJECTED"
SCREENING = "SCREENING"

CUL_TOKEN_DAYS = 7

# Self-booking grid: next 7 days, weekdays only, 09:00-18:00 every 30 minutes
BOOKING_DAYS_AHEAD = 7
BOOKING_FIRST_HOUR = 9
BOOKING_LAST_HOUR = 18
DEFAULT_INTERVIEW_MINUTES = 60


def _utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def _as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TalentJobService(DocumentService):
    collection_name = "talent_jobs"
    label = "Job"


# ============================================================
# AI SCREENING
# ============================================================

class TalentCandidateService(DocumentService):
    collection_name = "talent_candidates"
    label = "Candidate"

    def process_candidate(self, candidate_id: str, force: bool = False,
                          ai: Optional[AIService] = None) -> Dict[str, Any]:
        """
        Run the CV <-> JD match for a PENDING_ANALYSIS candidate and move it
        to SCREENING. `force` analyzes regardless of the current status.
        """
        candidate = self.get(candidate_id)
        if candidate.get("status") != PENDING_ANALYSIS and not force:
            raise ValidationException(
                "Candidate not in PENDING_ANALYSIS status",
                {"currentStatus": candidate.get("status")}
            )

        job = TalentJobService().get(candidate.get("jobId") or "")
        jd_content = job.get("jd_content") or job.get("descripcion")
        if not jd_content:
            raise ValidationException("Job has no description to match against")

        # No parsed CV yet: match on the contact data the candidate gave
        cv_content = candidate.get("cvContent") or (
            f"Candidato: {candidate.get('nombre', '')}\n"
            f"Email: {candidate.get('email', '')}\n"
            f"LinkedIn: {candidate.get('linkedin') or 'No proporcionado'}"
        )

        analysis = (ai or AIService()).analyze_cv_match(cv_content, jd_content)
        self.update(candidate_id, {
            "status": SCREENING,
            "matchScore": analysis["matchScore"],
            "aiAnalysis": analysis,
            "analyzedAt": datetime.utcnow()
        })
        logger.info(f"Talent candidate {candidate_id} screened: score={analysis['matchScore']}")
        return {"candidateId": candidate_id, "matchScore": analysis["matchScore"], "status": SCREENING}

    def recover_candidate(self, candidate_id: str, recruiter_id: str,
                          ai: Optional[AIService] = None) -> Dict[str, Any]:
        """Bring an AUTO_REJECTED candidate back and screen it immediately."""
        candidate = self.get(candidate_id)
        if candidate.get("status") != AUTO_REJECTED:
            raise ValidationException(
                "Only AUTO_REJECTED candidates can be recovered",
                {"currentStatus": candidate.get("status")}
            )

        self.update(candidate_id, {
            "status": PENDING_ANALYSIS,
            "recoveredBy": recruiter_id,
            "recoveredAt": datetime.utcnow()
        })
        logger.info(f"Talent candidate {candidate_id} recovered by {recruiter_id}")
        return self.process_candidate(candidate_id, force=True, ai=ai)


# ============================================================
# CUL REQUESTS
# ============================================================

class TalentApplicationService(DocumentService):
    collection_name = "talent_applications"
    label = "Application"

    def request_cul(self, application_ids: List[str], holding_id: Optional[str] = None) -> Dict[str, Any]:
        """Issue a CUL upload token per application and email the link. Unknown ids are skipped."""
        if not application_ids:
            raise ValidationException("No candidates selected")

        holding = HoldingService().find_by_id_or_slug(holding_id) if holding_id else None
        if holding:
            company = holding.get("nombre") or settings.brand_name
        else:
            company = holding_id.capitalize() if holding_id else settings.brand_name

        results = []
        for application_id in application_ids:
            application = self.find_by_id(application_id)
            if not application:
                logger.info(f"CUL request skipped unknown application {application_id}")
                continue

            token = str(uuid.uuid4())
            now = datetime.utcnow()
            self.update(application_id, {
                "culRequestedAt": now,
                "culToken": token,
                "culTokenExpiresAt": now + timedelta(days=CUL_TOKEN_DAYS),
                "culStatus": "pending"
            })

            sent = False
            if application.get("email"):
                sent = send_quietly(
                    application["email"], "cul_request",
                    nombre=application.get("nombre") or "",
                    company=company,
                    link=f"{settings.public_base_url}/verify-cul/{token}"
                )
            results.append({"email": application.get("email"), "token": token, "success": sent})

        return {"success": True, "message": f"CUL requested from {len(results)} candidates", "results": results}

    def find_by_cul_token(self, token: str, now: Optional[datetime] = None) -> dict:
        """Application awaiting a CUL for this token. 404 unknown, 410 expired, 400 already sent."""
        application = serialize_doc(self.collection.find_one({"culToken": token})) if token else None
        if not application:
            raise NotFoundException("Enlace inválido o expirado")

        expiry = application.get("culTokenExpiresAt")
        if expiry and (now or datetime.utcnow()) > expiry:
            raise GoneException("Este enlace ha expirado. Solicita uno nuevo.")

        if application.get("culStatus") in ("uploaded", "verified"):
            raise ValidationException("Ya has subido tu CUL. Gracias!")
        return application

    def upload_cul(self, token: str, file_bytes: bytes, mime_type: str, filename: str,
                   ai: Optional[AIService] = None) -> Dict[str, Any]:
        """Record the uploaded CUL and store the AI analysis on the application."""
        application = self.find_by_cul_token(token)
        self.update(application["id"], {
            "culFileName": filename,
            "culUploadedAt": datetime.utcnow(),
            "culStatus": "uploaded"
        })

        analysis = (ai or AIService()).analyze_cul(file_bytes, mime_type, application.get("dni"))
        self.update(application["id"], {"culAnalysis": analysis, "culStatus": "verified"})
        logger.info(f"CUL uploaded for talent application {application['id']}")
        return {"success": True, "applicationId": application["id"], "analysis": analysis}


# ============================================================
# INTERVIEW SELF-BOOKING
# ============================================================

def booking_slots(now: datetime, tz: ZoneInfo) -> List[Dict[str, Any]]:
    """Half-hour slots for the next weekdays, local office hours, as UTC ISO strings."""
    today = now.astimezone(tz).date()
    slots = []
    for offset in range(1, BOOKING_DAYS_AHEAD + 1):
        day = today + timedelta(days=offset)
        if day.weekday() >= 5:
            continue
        times = []
        for hour in range(BOOKING_FIRST_HOUR, BOOKING_LAST_HOUR):
            for minute in (0, 30):
                local = datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)
                times.append(_utc_iso(local))
        slots.append({"date": day.isoformat(), "times": times})
    return slots


class BookingService(DocumentService):
    """
    Usage:
        service = BookingService()
        request_id = service.create_request({...}, recruiter)
        service.get_availability(request_id)
        service.book_slot(request_id, start_time)
    """

    collection_name = "interview_booking_requests"
    label = "Request"

    def create_request(self, data: Dict[str, Any], created_by: dict) -> str:
        """Store a pending request and email the candidate the booking link."""
        request_id = self.insert({
            **data,
            "status": "pending",
            "createdBy": created_by["user_id"]
        })
        send_quietly(
            data["candidateEmail"], "interview_booking",
            nombre=data.get("candidateName") or "",
            posicion=data.get("jobTitle") or "",
            entrevistador=data.get("interviewerName") or "",
            link=f"{settings.public_base_url}/agendar/{request_id}"
        )
        logger.info(f"Booking request {request_id} created for {data['candidateEmail']}")
        return request_id

    def get_availability(self, request_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        request = self.get(request_id)
        connection = CalendarConnectionService().get(request.get("interviewerId") or "")
        tz = ZoneInfo(settings.calendar_time_zone)

        # TODO: drop slots that overlap busy events once a free/busy query is added to the providers
        return {
            "success": True,
            "slots": booking_slots(_as_utc(now or datetime.utcnow()), tz),
            "calendarConnected": connection is not None,
            "request": {
                "candidateName": request.get("candidateName"),
                "jobTitle": request.get("jobTitle"),
                "interviewerName": request.get("interviewerName")
            }
        }

    def book_slot(self, request_id: str, start_time: datetime,
                  duration: Optional[int] = None) -> Dict[str, Any]:
        """
        Create the interview for a pending request and close the request.
        Calendar sync and the candidate email never fail the booking.
        """
        request = self.get(request_id)
        if request.get("status") != "pending":
            raise ValidationException("Esta solicitud ya ha sido procesada o ha expirado")

        duration = duration or DEFAULT_INTERVIEW_MINUTES
        start = _as_utc(start_time)
        end = start + timedelta(minutes=duration)
        now = datetime.utcnow()

        interview = get_collection("interviews").insert_one({
            "candidateId": request.get("candidateId"),
            "candidateName": request.get("candidateName"),
            "candidateEmail": request.get("candidateEmail"),
            "jobId": request.get("jobId"),
            "jobTitle": request.get("jobTitle"),
            "holdingId": request.get("holdingId"),
            "interviewerId": request.get("interviewerId"),
            "interviewerName": request.get("interviewerName"),
            "interviewerEmail": request.get("interviewerEmail"),
            "scheduledAt": start.replace(tzinfo=None),
            "duration": duration,
            "status": "scheduled",
            "createdAt": now,
            "bookingRequestId": request_id
        })
        interview_id = str(interview.inserted_id)

        self.update(request_id, {
            "status": "completed",
            "bookedAt": now,
            "interviewId": interview_id,
            "finalStartTime": _utc_iso(start)
        })

        self._sync_calendar(request, start, end)

        local = start.astimezone(ZoneInfo(settings.calendar_time_zone))
        send_quietly(
            request.get("candidateEmail"), "interview_scheduled",
            nombre=request.get("candidateName") or "",
            posicion=request.get("jobTitle") or "",
            fecha=local.strftime("%d/%m/%Y"),
            hora=local.strftime("%H:%M"),
            entrevistador=request.get("interviewerName") or ""
        )

        logger.info(f"Booking request {request_id} booked: interview {interview_id}")
        return {"success": True, "interviewId": interview_id}

    def _sync_calendar(self, request: dict, start: datetime, end: datetime) -> None:
        """Put the interview on the interviewer's connected calendar, if any."""
        interviewer_id = request.get("interviewerId")
        connection = CalendarConnectionService().get(interviewer_id or "")
        if not connection:
            return

        tz = ZoneInfo(settings.calendar_time_zone)
        attendees = [
            {"email": request.get(f"{who}Email"), "name": request.get(f"{who}Name")}
            for who in ("candidate", "interviewer")
            if request.get(f"{who}Email")
        ]
        try:
            calendar_service.create_calendar_event(
                calendar_service.get_provider(connection.get("provider")),
                interviewer_id,
                f"Entrevista (Agendada por Candidato): {request.get('candidateName', '')}",
                f"Entrevista para el puesto: {request.get('jobTitle', '')}\n\nAgendada vía link de autogestión.",
                start.astimezone(tz).strftime("%Y-%m-%dT%H:%M:%S"),
                end.astimezone(tz).strftime("%Y-%m-%dT%H:%M:%S"),
                attendees
            )
        except ServiceException as e:
            logger.error(f"Calendar sync failed for booking {request['id']}: {e}")
