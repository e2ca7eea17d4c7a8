"""Corporate pipeline: AI screening, recovery, CUL requests and interview self-booking."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest

from talent_portal.core.exceptions import ValidationException
from talent_portal.services.mongo_service import CalendarConnectionService, to_object_id
from talent_portal.services.talent_service import (
    AUTO_REJECTED,
    PENDING_ANALYSIS,
    SCREENING,
    BookingService,
    TalentApplicationService,
    TalentCandidateService,
    TalentJobService,
    booking_slots,
)


@pytest.fixture
def talent_job():
    return TalentJobService().insert({"titulo": "Analista de Datos", "jd_content": "SQL, Python y Power BI"})


@pytest.fixture
def mock_ai():
    with patch("talent_portal.services.talent_service.AIService") as ai_class:
        ai = ai_class.return_value
        ai.analyze_cv_match.return_value = {"matchScore": 82, "resumen": "Buen perfil"}
        yield ai


def add_candidate(job_id, status, **fields):
    return TalentCandidateService().insert({
        "jobId": job_id, "nombre": "Luis Rojas", "email": "luis@example.com", "status": status, **fields
    })


# ============================================================
# SCREENING / RECOVERY
# ============================================================

def test_process_candidate_moves_to_screening(client, make_user, talent_job, mock_ai):
    candidate_id = add_candidate(talent_job, PENDING_ANALYSIS, linkedin="linkedin.com/in/luis")
    _, headers = make_user("admin")

    response = client.post("/api/talent/process-candidate", json={"candidateId": candidate_id}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "candidateId": candidate_id, "matchScore": 82, "status": SCREENING}
    cv, jd = mock_ai.analyze_cv_match.call_args.args
    assert "Luis Rojas" in cv and "linkedin.com/in/luis" in cv
    assert jd == "SQL, Python y Power BI"

    stored = TalentCandidateService().get(candidate_id)
    assert stored["status"] == SCREENING
    assert stored["matchScore"] == 82
    assert stored["aiAnalysis"]["resumen"] == "Buen perfil"
    assert isinstance(stored["analyzedAt"], datetime)


def test_process_candidate_requires_pending_status(client, make_user, talent_job, mock_ai):
    candidate_id = add_candidate(talent_job, SCREENING, cvContent="Ya analizado")
    _, headers = make_user("admin")

    response = client.post("/api/talent/process-candidate", json={"candidateId": candidate_id}, headers=headers)
    assert response.status_code == 400
    assert response.json()["currentStatus"] == SCREENING
    mock_ai.analyze_cv_match.assert_not_called()

    forced = client.post("/api/talent/process-candidate", json={"candidateId": candidate_id, "force": True},
                         headers=headers)
    assert forced.status_code == 200
    assert mock_ai.analyze_cv_match.call_args.args[0] == "Ya analizado"


def test_process_candidate_unknown_job(client, make_user, mock_ai):
    candidate_id = add_candidate("0" * 24, PENDING_ANALYSIS)
    _, headers = make_user("admin")

    response = client.post("/api/talent/process-candidate", json={"candidateId": candidate_id}, headers=headers)

    assert response.status_code == 404
    assert response.json()["error"] == "Job not found"


def test_pipeline_routes_require_staff(client, talent_job):
    candidate_id = add_candidate(talent_job, PENDING_ANALYSIS)

    assert client.post("/api/talent/process-candidate", json={"candidateId": candidate_id}).status_code in (401, 403)
    assert client.post("/api/talent/request-cul", json={"applicationIds": []}).status_code in (401, 403)


def test_recover_candidate(client, make_user, talent_job, mock_ai):
    candidate_id = add_candidate(talent_job, AUTO_REJECTED)
    recruiter, headers = make_user("admin")

    response = client.post("/api/talent/recover-candidate", json={"candidateId": candidate_id}, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == SCREENING
    assert response.json()["matchScore"] == 82
    stored = TalentCandidateService().get(candidate_id)
    assert stored["recoveredBy"] == recruiter["user_id"]
    assert stored["status"] == SCREENING


def test_recover_only_auto_rejected(talent_job, mock_ai):
    candidate_id = add_candidate(talent_job, PENDING_ANALYSIS)

    with pytest.raises(ValidationException) as exc:
        TalentCandidateService().recover_candidate(candidate_id, "recruiter")

    assert exc.value.extra == {"currentStatus": PENDING_ANALYSIS}
    assert TalentCandidateService().get(candidate_id)["status"] == PENDING_ANALYSIS


# ============================================================
# CUL
# ============================================================

def test_request_cul_issues_tokens_and_emails(client, make_user, tenant, mongo_db):
    service = TalentApplicationService()
    first = service.insert({"nombre": "Ana", "email": "ana@example.com"})
    second = service.insert({"nombre": "Beto", "email": "beto@example.com"})
    _, headers = make_user("admin", holding_id=tenant["holding"]["id"])

    response = client.post("/api/talent/request-cul",
                           json={"applicationIds": [first, "0" * 24, second]}, headers=headers)

    body = response.json()
    assert response.status_code == 200
    assert body["message"] == "CUL requested from 2 candidates"
    assert [r["email"] for r in body["results"]] == ["ana@example.com", "beto@example.com"]

    stored = service.get(first)
    assert stored["culStatus"] == "pending"
    assert stored["culToken"] == body["results"][0]["token"]
    assert stored["culTokenExpiresAt"] - stored["culRequestedAt"] == timedelta(days=7)

    emails = list(mongo_db.email_log.find({"template": "cul_request"}))
    assert {e["to"] for e in emails} == {"ana@example.com", "beto@example.com"}
    assert emails[0]["subject"] == "Solicitud de CUL - NGR"


def test_request_cul_requires_applications():
    with pytest.raises(ValidationException):
        TalentApplicationService().request_cul([], "ngr")


def test_request_cul_company_fallback(mongo_db):
    application_id = TalentApplicationService().insert({"nombre": "Ana", "email": "ana@example.com"})

    TalentApplicationService().request_cul([application_id], "intercorp")

    assert mongo_db.email_log.find_one()["subject"] == "Solicitud de CUL - Intercorp"


def test_cul_upload_link(client, mongo_db):
    service = TalentApplicationService()
    application_id = service.insert({"nombre": "Ana", "email": "ana@example.com", "dni": "70123456"})
    token = service.request_cul([application_id])["results"][0]["token"]
    analysis = {"esDocumentoValido": True, "recomendacion": "aprobar", "confidence": 92}

    assert client.get(f"/api/talent/cul/{token}").json()["nombre"] == "Ana"

    with patch("talent_portal.services.talent_service.AIService") as ai_class:
        ai_class.return_value.analyze_cul.return_value = analysis
        response = client.post(f"/api/talent/cul/{token}",
                               files={"file": ("cul.pdf", b"%PDF-1.4 cul", "application/pdf")})

    assert response.status_code == 200
    assert response.json()["analysis"] == analysis
    assert ai_class.return_value.analyze_cul.call_args.args == (b"%PDF-1.4 cul", "application/pdf", "70123456")

    stored = service.get(application_id)
    assert stored["culStatus"] == "verified"
    assert stored["culFileName"] == "cul.pdf"
    assert stored["culAnalysis"] == analysis

    again = client.get(f"/api/talent/cul/{token}")
    assert again.status_code == 400
    assert again.json()["error"] == "Ya has subido tu CUL. Gracias!"


def test_cul_link_expired_and_unknown(client):
    service = TalentApplicationService()
    application_id = service.insert({"nombre": "Ana", "email": "ana@example.com"})
    token = service.request_cul([application_id])["results"][0]["token"]
    service.update(application_id, {"culTokenExpiresAt": datetime.utcnow() - timedelta(minutes=1)})

    expired = client.post(f"/api/talent/cul/{token}",
                          files={"file": ("cul.pdf", b"%PDF-1.4 cul", "application/pdf")})

    assert expired.status_code == 410
    assert service.get(application_id)["culStatus"] == "pending"
    assert client.get("/api/talent/cul/not-a-token").status_code == 404


# ============================================================
# SELF-BOOKING
# ============================================================

@pytest.fixture
def booking_request(make_user, mongo_db):
    interviewer, _ = make_user("admin", email="lucia@example.com")
    request_id = BookingService().create_request({
        "candidateId": "c1",
        "candidateName": "Ana Quispe",
        "candidateEmail": "ana@example.com",
        "jobId": "j1",
        "jobTitle": "Analista de Datos",
        "holdingId": "ngr",
        "interviewerId": interviewer["user_id"],
        "interviewerName": "Lucía",
        "interviewerEmail": "lucia@example.com",
    }, interviewer)
    return BookingService().get(request_id)


def test_booking_slots_skip_weekends():
    # Friday 10:00 in Lima
    now = datetime(2026, 10, 16, 15, 0, tzinfo=timezone.utc)

    slots = booking_slots(now, ZoneInfo("America/Lima"))

    assert [s["date"] for s in slots] == ["2026-10-19", "2026-10-20", "2026-10-21", "2026-10-22", "2026-10-23"]
    assert len(slots[0]["times"]) == 18
    assert slots[0]["times"][0] == "2026-10-19T14:00:00.000Z"
    assert slots[0]["times"][-1] == "2026-10-19T22:30:00.000Z"


def test_create_booking_request_route(client, make_user, mongo_db):
    interviewer, headers = make_user("admin", holding_id="ngr")

    response = client.post("/api/talent/calendar/booking-requests", json={
        "candidateName": "Ana Quispe",
        "candidateEmail": "ana@example.com",
        "jobTitle": "Analista de Datos",
        "interviewerId": interviewer["user_id"],
        "interviewerName": "Lucía",
    }, headers=headers)

    assert response.status_code == 201
    stored = BookingService().get(response.json()["requestId"])
    assert stored["status"] == "pending"
    assert stored["holdingId"] == "ngr"
    email = mongo_db.email_log.find_one({"template": "interview_booking"})
    assert email["to"] == "ana@example.com"
    assert email["subject"] == "Agenda tu entrevista - Analista de Datos"


def test_get_availability(client, booking_request):
    response = client.post("/api/talent/calendar/get-availability", json={"requestId": booking_request["id"]})

    body = response.json()
    assert response.status_code == 200
    assert body["request"] == {"candidateName": "Ana Quispe", "jobTitle": "Analista de Datos",
                               "interviewerName": "Lucía"}
    assert body["calendarConnected"] is False
    assert len(body["slots"]) == 5
    assert all(t.endswith(":00.000Z") for t in body["slots"][0]["times"])

    assert client.post("/api/talent/calendar/get-availability", json={"requestId": "0" * 24}).status_code == 404


def test_book_slot(client, booking_request, mongo_db):
    response = client.post("/api/talent/calendar/book-slot", json={
        "requestId": booking_request["id"], "startTime": "2026-10-19T14:00:00.000Z"
    })

    assert response.status_code == 200
    interview_id = response.json()["interviewId"]
    interview = mongo_db.interviews.find_one({"_id": to_object_id(interview_id)})
    assert interview["scheduledAt"] == datetime(2026, 10, 19, 14, 0)
    assert interview["duration"] == 60
    assert interview["status"] == "scheduled"
    assert interview["bookingRequestId"] == booking_request["id"]

    closed = BookingService().get(booking_request["id"])
    assert closed["status"] == "completed"
    assert closed["interviewId"] == interview_id
    assert closed["finalStartTime"] == "2026-10-19T14:00:00.000Z"

    email = mongo_db.email_log.find_one({"template": "interview_scheduled"})
    assert email["to"] == "ana@example.com"

    again = client.post("/api/talent/calendar/book-slot", json={
        "requestId": booking_request["id"], "startTime": "2026-10-20T14:00:00Z"
    })
    assert again.status_code == 400
    assert again.json()["error"] == "Esta solicitud ya ha sido procesada o ha expirado"
    assert mongo_db.interviews.count_documents({}) == 1


def test_book_slot_syncs_connected_calendar(booking_request):
    CalendarConnectionService().save(booking_request["interviewerId"], {"provider": "google"})

    with patch("talent_portal.services.talent_service.calendar_service.create_calendar_event") as create:
        BookingService().book_slot(booking_request["id"], datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc), 30)

    args = create.call_args.args
    assert args[1] == booking_request["interviewerId"]
    assert args[2] == "Entrevista (Agendada por Candidato): Ana Quispe"
    assert args[4:6] == ("2026-10-19T09:00:00", "2026-10-19T09:30:00")
    assert [a["email"] for a in args[6]] == ["ana@example.com", "lucia@example.com"]


def test_calendar_failure_does_not_fail_booking(booking_request):
    CalendarConnectionService().save(booking_request["interviewerId"], {"provider": "google"})

    # No stored tokens, so the calendar layer asks to reconnect
    result = BookingService().book_slot(booking_request["id"], datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc))

    assert result["success"] is True
    assert BookingService().get(booking_request["id"])["status"] == "completed"
