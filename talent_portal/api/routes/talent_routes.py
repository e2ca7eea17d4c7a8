"""
Talent Routes - AI helpers for recruiters.

All endpoints are rate limited with the 'ai' preset.

POST /talent/analyze-cv - CV <-> JD match score
POST /talent/match-candidate - Candidate <-> job profile match
POST /talent/generate-jd - Draft a job description
POST /talent/parse-cv - Structured data from CV text
POST /talent/parse-cv-file - Structured data from an uploaded CV
POST /talent/analyze-document - DNI extraction (vision)
POST /talent/analyze-cul - CUL extraction (vision)
POST /talent/auto-validate-cul - CUL extraction stored on the candidate
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from talent_portal.core.auth import require_staff
from talent_portal.core.rate_limit import rate_limited
from talent_portal.services.ai_service import AIService, derive_cul_status
from talent_portal.utils.file_upload import (
    ALLOWED_EXTENSIONS,
    extract_text_from_file,
    get_file_extension,
    read_document,
)
from talent_portal.schemas.schemas import (
    CVMatchRequest,
    MatchCandidateRequest,
    GenerateJDRequest,
    ParseCVRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/talent",
    tags=["Talent AI"],
    dependencies=[Depends(rate_limited("ai"))]
)


@router.post("/analyze-cv")
async def analyze_cv(request: CVMatchRequest, user: dict = Depends(require_staff)):
    return AIService().analyze_cv_match(request.cvContent, request.jdContent)


@router.post("/match-candidate")
async def match_candidate(request: MatchCandidateRequest, user: dict = Depends(require_staff)):
    return AIService().match_candidate(request.jobProfile, request.candidateData, request.killerAnswers)


@router.post("/generate-jd")
async def generate_jd(request: GenerateJDRequest, user: dict = Depends(require_staff)):
    jd = AIService().generate_jd(request.titulo, request.descripcionBase, request.jdsSimilares)
    return {"success": True, "jd": jd}


@router.post("/parse-cv")
async def parse_cv(request: ParseCVRequest, user: dict = Depends(require_staff)):
    return {"success": True, "data": AIService().parse_cv(request.cvText)}


@router.post("/parse-cv-file")
async def parse_cv_file(
    file: UploadFile = File(..., description="CV (PDF, DOCX, TXT or image)"),
    user: dict = Depends(require_staff)
):
    """
    Text documents go through text extraction and the text prompt;
    images are sent to the vision models.
    """
    service = AIService()
    if get_file_extension(file.filename or "") in ALLOWED_EXTENSIONS:
        text, filename = await extract_text_from_file(file)
        data = service.parse_cv(text)
    else:
        content, mime_type, filename = await read_document(file)
        data = service.parse_cv_file(content, mime_type)

    logger.info(f"Parsed CV file {filename}")
    return {"success": True, "filename": filename, "data": data}


@router.post("/analyze-document")
async def analyze_document(
    file: UploadFile = File(..., description="DNI photo or PDF"),
    user: dict = Depends(require_staff)
):
    content, mime_type, _ = await read_document(file)
    return {"success": True, "data": AIService().analyze_dni(content, mime_type)}


@router.post("/analyze-cul")
async def analyze_cul(
    file: UploadFile = File(..., description="CUL (PDF or image)"),
    candidateDni: Optional[str] = Form(None),
    user: dict = Depends(require_staff)
):
    content, mime_type, _ = await read_document(file)
    analysis = AIService().analyze_cul(content, mime_type, candidateDni)
    return {"success": True, "analysis": analysis, **derive_cul_status(analysis)}


@router.post("/auto-validate-cul")
async def auto_validate_cul(
    file: UploadFile = File(..., description="CUL (PDF or image)"),
    candidateId: Optional[str] = Form(None),
    user: dict = Depends(require_staff)
):
    content, mime_type, _ = await read_document(file)
    return AIService().auto_validate_cul(candidateId, content, mime_type)
