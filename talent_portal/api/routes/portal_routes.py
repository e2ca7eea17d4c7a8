"""
Portal Routes - public, candidate-facing endpoints.

Candidates do not log in with passwords. They register once and then
use magic links; every portal call carries an opaque session token.

Account:
    POST /portal/check-user, POST /portal/register
    POST /portal/magic-link, POST /portal/verify-magic-link, POST /portal/validate-session
Applications:
    POST /portal/apply, POST /portal/book-interview
    GET /portal/manager-availability?storeId=
Vacancies:
    GET /portal/vacancies, GET /portal/vacancies-aggregated, GET /portal/vacancy-count
    GET /portal/vacancy/{rqId}, GET /portal/vacancies-nearby?lat=&lng=
Talent pool:
    POST /portal/talent (multipart CV upload)
Recruiter side:
    POST /portal/notify-rescue, GET /portal/rescue-inbox, GET /portal/talent
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pymongo.errors import PyMongoError

from talent_portal.core.auth import require_recruiter
from talent_portal.services.candidate_service import (
    CandidateService,
    TalentPoolService,
    manager_availability,
    public_candidate,
)
from talent_portal.services.vacancy_service import VacancyService
from talent_portal.services.ai_service import AIService
from talent_portal.utils.file_upload import read_document
from talent_portal.schemas.schemas import (
    CheckUserRequest,
    PortalRegister,
    MagicLinkRequest,
    TokenRequest,
    PortalApply,
    BookInterview,
    NotifyRescue,
    MessageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/portal", tags=["Candidate Portal"])


# ============================================================
# ACCOUNT & SESSION
# ============================================================

@router.post("/check-user")
async def check_user(request: CheckUserRequest):
    return CandidateService().check_user(request.email)


@router.post("/register", status_code=201)
async def register(request: PortalRegister):
    return CandidateService().register(request.model_dump(mode="json", exclude_none=True))


@router.post("/magic-link", response_model=MessageResponse)
async def magic_link(request: MagicLinkRequest):
    CandidateService().request_magic_link(request.email)
    return MessageResponse(message="Enlace enviado")


@router.post("/verify-magic-link")
async def verify_magic_link(request: TokenRequest):
    return CandidateService().verify_magic_link(request.token)


@router.post("/validate-session")
async def validate_session(request: TokenRequest):
    candidate = CandidateService().validate_session(request.token)
    return {"valid": True, "candidate": public_candidate(candidate)}


# ============================================================
# APPLY / BOOK
# ============================================================

@router.post("/apply")
async def apply(request: PortalApply):
    """
    Flow A (KQs passed and store within commute distance) goes straight
    to interview scheduling; flow B lands in the recruiter rescue inbox.
    """
    return CandidateService().apply(
        request.candidateId,
        request.rqId,
        request.sessionToken,
        request.model_dump(include={"kqAnswers", "kqPassed", "isGeoMatch", "matchScore"})
    )


@router.post("/book-interview", response_model=MessageResponse)
async def book_interview(request: BookInterview):
    CandidateService().book_interview(
        request.sessionToken,
        request.rqId,
        request.applicationId,
        request.model_dump(include={"slotId", "slotDate", "slotTime"})
    )
    return MessageResponse(message="Entrevista agendada")


@router.get("/manager-availability")
async def get_manager_availability(storeId: Optional[str] = Query(None)):
    return {"availability": manager_availability(storeId)}


# ============================================================
# VACANCIES
# ============================================================

@router.get("/vacancies")
async def list_vacancies():
    vacancies = VacancyService().list_vacancies()
    return {"vacancies": vacancies, "count": len(vacancies)}


@router.get("/vacancies-aggregated")
async def vacancies_aggregated():
    vacancies = VacancyService().aggregate_vacancies()
    return {"vacancies": vacancies, "count": len(vacancies)}


@router.get("/vacancy-count")
async def vacancy_count():
    # The landing page counter must never break the page
    try:
        return VacancyService().count_vacancies()
    except PyMongoError as e:
        logger.error(f"Vacancy count failed: {e}")
        return {"count": 0}


@router.get("/vacancy/{rq_id}")
async def get_vacancy(rq_id: str):
    return VacancyService().get_vacancy(rq_id)


@router.get("/vacancies-nearby")
async def vacancies_nearby(lat: float = Query(...), lng: float = Query(...)):
    return VacancyService().nearby_vacancies(lat, lng)


# ============================================================
# TALENT POOL
# ============================================================

@router.post("/talent", status_code=201)
async def submit_talent(
    file: UploadFile = File(..., description="CV (PDF or image)"),
    nombre: str = Form(...),
    apellidos: str = Form(""),
    email: str = Form(...),
    telefono: str = Form(""),
    dni: str = Form(""),
    expectativa: str = Form(""),
    holdingSlug: str = Form("ngr")
):
    """Spontaneous CV submission. The CV is tagged with AI keywords for recruiter search."""
    content, mime_type, filename = await read_document(file)
    tags = AIService().extract_talent_keywords(content, mime_type)

    entry_id = TalentPoolService().submit(
        {
            "nombre": nombre,
            "apellidos": apellidos,
            "email": email,
            "telefono": telefono,
            "dni": dni,
            "expectativa": expectativa,
            "holdingSlug": holdingSlug,
        },
        filename,
        tags["keywords"],
        tags["summary"]
    )
    logger.info(f"Talent pool entry {entry_id} ({len(tags['keywords'])} keywords)")
    return {"success": True, "id": entry_id, "keywords": tags["keywords"]}


@router.get("/talent")
async def list_talent(
    holdingSlug: Optional[str] = Query(None),
    keyword: Optional[str] = Query(None),
    user: dict = Depends(require_recruiter)
):
    entries = TalentPoolService().list_entries(holdingSlug, keyword)
    return {"entries": entries, "count": len(entries)}


# ============================================================
# RESCUE (recruiter side)
# ============================================================

@router.post("/notify-rescue", response_model=MessageResponse)
async def notify_rescue(request: NotifyRescue, user: dict = Depends(require_recruiter)):
    CandidateService().notify_rescue(
        request.candidateId, request.applicationId, request.rqId, request.posicion,
        rescued_by=user["user_id"]
    )
    return MessageResponse(message="Candidato notificado")


@router.get("/rescue-inbox")
async def rescue_inbox(
    marcaId: Optional[str] = Query(None),
    status: str = Query("pending_review"),
    user: dict = Depends(require_recruiter)
):
    entries = CandidateService().rescue_inbox(marcaId, status)
    return {"entries": entries, "count": len(entries)}
