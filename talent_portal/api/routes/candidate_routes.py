"""
Candidate Routes (recruiter side)

GET /candidates - Search candidates (marcaId, status, culStatus, search)
GET /candidates/blacklist/{dni} - Blacklist check
POST /candidates/clean-reingreso - Release a returning employee
GET /candidates/{id} - Candidate details
GET /candidates/{id}/hire-history - Re-entry detection
PUT /candidates/{id}/validation - Store DNI / CUL validation results
PUT /candidates/{id}/applications/{appId}/status - Approve, reject or mark CUL
POST /candidates/{id}/mark-hired, POST /candidates/{id}/mark-not-hired
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from talent_portal.core.auth import require_recruiter, require_staff
from talent_portal.services.mongo_service import BlacklistService, has_hire_history
from talent_portal.services.candidate_service import CandidateService
from talent_portal.schemas.schemas import (
    ValidationUpdate,
    ApplicationStatusUpdate,
    MarkHired,
    MarkNotHired,
    CleanReingreso,
    MessageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/candidates", tags=["Candidates"])

PRIVATE_FIELDS = ("portalSessionToken", "portalSessionExpiry", "magicLinkToken", "magicLinkExpiry")


@router.get("")
async def search_candidates(
    marcaId: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    culStatus: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    user: dict = Depends(require_staff)
):
    candidates = CandidateService().search(marcaId, status, culStatus, search, limit)
    return {"candidates": candidates, "count": len(candidates)}


@router.get("/blacklist/{dni}")
async def check_blacklist(dni: str, user: dict = Depends(require_staff)):
    entry = BlacklistService().is_blacklisted(dni)
    return {"blacklisted": entry is not None, "entry": entry}


@router.post("/clean-reingreso")
async def clean_reingreso(body: CleanReingreso, user: dict = Depends(require_recruiter)):
    return CandidateService().clean_reingreso(body.dni)


@router.get("/{candidate_id}")
async def get_candidate(candidate_id: str, user: dict = Depends(require_staff)):
    candidate = CandidateService().get(candidate_id)
    for field in PRIVATE_FIELDS:
        candidate.pop(field, None)
    return candidate


@router.get("/{candidate_id}/hire-history")
async def hire_history(candidate_id: str, user: dict = Depends(require_staff)):
    candidate = CandidateService().get(candidate_id)
    return has_hire_history(candidate.get("applications") or [])


@router.put("/{candidate_id}/validation", response_model=MessageResponse)
async def update_validation(candidate_id: str, body: ValidationUpdate, user: dict = Depends(require_recruiter)):
    CandidateService().update_validation(candidate_id, body.updateType.value, body.data, user["user_id"])
    return MessageResponse(message="Validation updated")


@router.put("/{candidate_id}/applications/{application_id}/status")
async def update_application_status(candidate_id: str, application_id: str, body: ApplicationStatusUpdate,
                                    user: dict = Depends(require_staff)):
    application = CandidateService().update_application_status(
        candidate_id, application_id, body.action.value, user,
        reason=body.reason, cul_resultado=body.cul_resultado, send_email=body.sendEmail
    )
    return {"success": True, "application": application}


@router.post("/{candidate_id}/mark-hired")
async def mark_hired(candidate_id: str, body: MarkHired, user: dict = Depends(require_staff)):
    return CandidateService().mark_candidate_hired(
        candidate_id, body.applicationId, user["user_id"], body.startDate
    )


@router.post("/{candidate_id}/mark-not-hired", response_model=MessageResponse)
async def mark_not_hired(candidate_id: str, body: MarkNotHired, user: dict = Depends(require_staff)):
    CandidateService().mark_candidate_not_hired(candidate_id, body.applicationId, user["user_id"], body.reason)
    logger.info(f"Candidate {candidate_id} not hired: {body.reason}")
    return MessageResponse(message="Candidate marked as not hired")
