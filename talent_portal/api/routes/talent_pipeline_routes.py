"""
Talent Pipeline Routes - corporate candidates, CUL requests and self-booking.

POST /talent/process-candidate - AI screening of a PENDING_ANALYSIS candidate
POST /talent/recover-candidate - Recover an AUTO_REJECTED candidate and screen it
POST /talent/request-cul - Email CUL upload links to applicants
GET  /talent/cul/{token} - Validate a CUL upload link (public)
POST /talent/cul/{token} - Upload the CUL (public)
POST /talent/calendar/booking-requests - Invite a candidate to pick an interview slot
POST /talent/calendar/get-availability - Bookable slots for a request (public)
POST /talent/calendar/book-slot - Book a slot (public)
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from talent_portal.core.auth import require_staff
from talent_portal.core.rate_limit import rate_limited
from talent_portal.services.talent_service import (
    TalentCandidateService,
    TalentApplicationService,
    BookingService,
)
from talent_portal.utils.file_upload import read_document
from talent_portal.schemas.schemas import (
    ProcessCandidateRequest,
    RecoverCandidateRequest,
    RequestCULRequest,
    BookingRequestCreate,
    AvailabilityRequest,
    BookSlotRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/talent", tags=["Talent Pipeline"])


@router.post("/process-candidate", dependencies=[Depends(rate_limited("ai"))])
async def process_candidate(request: ProcessCandidateRequest, user: dict = Depends(require_staff)):
    result = TalentCandidateService().process_candidate(request.candidateId, force=request.force)
    return {"success": True, **result}


@router.post("/recover-candidate", dependencies=[Depends(rate_limited("ai"))])
async def recover_candidate(request: RecoverCandidateRequest, user: dict = Depends(require_staff)):
    result = TalentCandidateService().recover_candidate(request.candidateId, user["user_id"])
    return {"success": True, "message": "Candidate recovered and analyzed", **result}


@router.post("/request-cul", dependencies=[Depends(rate_limited("email"))])
async def request_cul(request: RequestCULRequest, user: dict = Depends(require_staff)):
    holding_id = request.holdingId or user.get("holdingId")
    return TalentApplicationService().request_cul(request.applicationIds, holding_id)


@router.get("/cul/{token}")
async def check_cul_link(token: str):
    application = TalentApplicationService().find_by_cul_token(token)
    return {"success": True, "nombre": application.get("nombre"), "email": application.get("email")}


@router.post("/cul/{token}", dependencies=[Depends(rate_limited("ai"))])
async def upload_cul(token: str, file: UploadFile = File(..., description="CUL (PDF or image)")):
    service = TalentApplicationService()
    # Reject stale links before reading the upload
    service.find_by_cul_token(token)
    content, mime_type, filename = await read_document(file)
    return service.upload_cul(token, content, mime_type, filename)


@router.post("/calendar/booking-requests", status_code=201)
async def create_booking_request(request: BookingRequestCreate, user: dict = Depends(require_staff)):
    data = request.model_dump()
    data["holdingId"] = data.get("holdingId") or user.get("holdingId")
    request_id = BookingService().create_request(data, user)
    return {"success": True, "requestId": request_id}


@router.post("/calendar/get-availability")
async def get_availability(request: AvailabilityRequest):
    return BookingService().get_availability(request.requestId)


@router.post("/calendar/book-slot")
async def book_slot(request: BookSlotRequest):
    return BookingService().book_slot(request.requestId, request.startTime, request.duration)
