"""
Email Routes - transactional emails sent by staff.

All endpoints take the same body (EmailRequest) and fill the
matching template; `to` is required.

POST /emails/application, /emails/invitation, /emails/registration,
     /emails/rejection, /emails/selection, /emails/welcome,
     /emails/exit-survey, /emails/cul-request, /emails/onboarding
"""

import logging

from fastapi import APIRouter, Depends

from talent_portal.core.auth import require_staff
from talent_portal.core.exceptions import ValidationException
from talent_portal.core.rate_limit import rate_limited
from talent_portal.services.email_service import get_email_client
from talent_portal.schemas.schemas import EmailRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/emails",
    tags=["Emails"],
    dependencies=[Depends(rate_limited("email"))]
)


def _send(template: str, request: EmailRequest) -> dict:
    if not request.to:
        raise ValidationException("Missing recipient")

    values = request.model_dump(exclude={"to"}, exclude_none=True)
    return get_email_client().send_template(request.to, template, **values)


@router.post("/application")
async def send_application(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("application", request)


@router.post("/invitation")
async def send_invitation(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("invitation", request)


@router.post("/registration")
async def send_registration(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("registration", request)


@router.post("/rejection")
async def send_rejection(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("rejection", request)


@router.post("/selection")
async def send_selection(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("selection", request)


@router.post("/welcome")
async def send_welcome(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("welcome", request)


@router.post("/exit-survey")
async def send_exit_survey(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("exit_survey", request)


@router.post("/cul-request")
async def send_cul_request(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("cul_request", request)


@router.post("/onboarding")
async def send_onboarding(request: EmailRequest, user: dict = Depends(require_staff)):
    return _send("onboarding", request)
