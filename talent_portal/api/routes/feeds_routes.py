"""
Job Feed Routes - public job board feeds.

GET /feeds/indeed/{holdingId} - Indeed XML
GET /feeds/linkedin/{holdingId} - LinkedIn Limited Listings XML
GET /feeds/jobposting/{rqId} - schema.org JobPosting JSON-LD
"""

import logging

from fastapi import APIRouter
from fastapi.responses import Response, PlainTextResponse

from talent_portal.core.config import get_settings
from talent_portal.services.mongo_service import HoldingService
from talent_portal.services.rq_service import RQService
from talent_portal.services.feeds import (
    published_jobs,
    rq_to_job,
    build_indeed_xml,
    build_linkedin_xml,
    build_job_posting_jsonld,
)

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feeds", tags=["Job Feeds"])

XML_MEDIA_TYPE = "application/xml; charset=utf-8"
FEED_CACHE_HEADERS = {"Cache-Control": "public, max-age=3600"}


def _xml_response(content: str) -> Response:
    return Response(content=content, media_type=XML_MEDIA_TYPE, headers=FEED_CACHE_HEADERS)


@router.get("/indeed/{holding_id}")
async def indeed_feed(holding_id: str):
    holding = HoldingService().find_by_id_or_slug(holding_id)
    if not holding:
        return PlainTextResponse("Holding not found", status_code=404)

    jobs = published_jobs(holding["id"])
    logger.info(f"Indeed feed for {holding_id}: {len(jobs)} jobs")
    return _xml_response(build_indeed_xml(holding, jobs, settings.public_base_url))


@router.get("/linkedin/{holding_id}")
async def linkedin_feed(holding_id: str):
    holding = HoldingService().find_by_id_or_slug(holding_id)
    if not holding:
        return PlainTextResponse("Holding not found", status_code=404)

    jobs = published_jobs(holding["id"])
    logger.info(f"LinkedIn feed for {holding_id}: {len(jobs)} jobs")
    return _xml_response(build_linkedin_xml(holding, jobs, settings.public_base_url))


@router.get("/jobposting/{rq_id}")
async def job_posting(rq_id: str):
    rq = RQService().get(rq_id)
    holding = HoldingService().find_by_id(rq.get("holdingId") or "") or {}
    company = holding.get("nombre") or rq.get("marcaNombre") or ""
    return build_job_posting_jsonld(rq_to_job(rq), company, holding.get("logoUrl"))
