"""
Job Profile Routes

POST /job-profiles - Create profile
GET /job-profiles - List profiles (holdingId, marcaId)
GET /job-profiles/kq-suggestions/{categoria} - Default killer questions
GET /job-profiles/{id} - Profile details
PUT /job-profiles/{id} - Update profile
DELETE /job-profiles/{id} - Deactivate profile
GET /job-profiles/{id}/killer-questions - Profile KQs
PUT /job-profiles/{id}/killer-questions - Replace profile KQs
POST /job-profiles/{id}/validate-kq - Check answers against the KQs
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from talent_portal.core.auth import require_admin, require_staff
from talent_portal.services.killer_questions import (
    JobProfileService,
    get_suggested_kqs,
    validate_kq_answers,
)
from talent_portal.schemas.schemas import (
    JobProfileCreate, KillerQuestionsUpdate, KQValidationRequest, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/job-profiles", tags=["Job Profiles"])


@router.post("", status_code=201)
async def create_profile(profile: JobProfileCreate, user: dict = Depends(require_admin)):
    data = profile.model_dump(mode="json")
    data["holdingId"] = data.get("holdingId") or user.get("holdingId")
    profile_id = JobProfileService().create(data, user["user_id"])
    logger.info(f"Job profile {profile_id} '{profile.posicion}' created")
    return {"success": True, "id": profile_id}


@router.get("")
async def list_profiles(
    holdingId: Optional[str] = Query(None),
    marcaId: Optional[str] = Query(None),
    user: dict = Depends(require_staff)
):
    holding_id = holdingId or user.get("holdingId")
    return {"profiles": JobProfileService().list_profiles(holding_id, marcaId)}


@router.get("/kq-suggestions/{categoria}")
async def kq_suggestions(categoria: str, user: dict = Depends(require_staff)):
    return {"categoria": categoria, "suggestions": get_suggested_kqs(categoria)}


@router.get("/{profile_id}")
async def get_profile(profile_id: str, user: dict = Depends(require_staff)):
    return JobProfileService().get(profile_id)


@router.put("/{profile_id}", response_model=MessageResponse)
async def update_profile(profile_id: str, profile: JobProfileCreate, user: dict = Depends(require_admin)):
    profiles = JobProfileService()
    profiles.get(profile_id)
    profiles.update(profile_id, {**profile.model_dump(mode="json", exclude={"killerQuestions"}),
                                 "updatedBy": user["user_id"]})
    return MessageResponse(message="Job profile updated")


@router.delete("/{profile_id}", response_model=MessageResponse)
async def delete_profile(profile_id: str, user: dict = Depends(require_admin)):
    """Profiles referenced by RQs are kept; they only stop being offered."""
    profiles = JobProfileService()
    profiles.get(profile_id)
    profiles.update(profile_id, {"isActive": False})
    logger.info(f"Job profile {profile_id} deactivated by {user['email']}")
    return MessageResponse(message="Job profile deactivated")


@router.get("/{profile_id}/killer-questions")
async def get_killer_questions(profile_id: str, user: dict = Depends(require_staff)):
    return {"profileId": profile_id, "killerQuestions": JobProfileService().get_kqs(profile_id)}


@router.put("/{profile_id}/killer-questions", response_model=MessageResponse)
async def update_killer_questions(profile_id: str, body: KillerQuestionsUpdate,
                                  user: dict = Depends(require_admin)):
    profiles = JobProfileService()
    profiles.get(profile_id)
    profiles.update_kqs(profile_id, [kq.model_dump(mode="json") for kq in body.killerQuestions], user["user_id"])
    logger.info(f"KQs updated for profile {profile_id}: {len(body.killerQuestions)} questions")
    return MessageResponse(message="Killer questions updated")


@router.post("/{profile_id}/validate-kq")
async def validate_kq(profile_id: str, body: KQValidationRequest):
    """Public: the portal checks answers before submitting an application."""
    questions = JobProfileService().get(profile_id).get("killerQuestions") or []
    return validate_kq_answers(questions, body.answers)
