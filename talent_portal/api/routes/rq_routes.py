"""
RQ Routes (requisitions)

POST /rqs - Create one RQ per vacancy
GET /rqs - List RQs (marcaId, tiendaId, status, approvalStatus)
GET /rqs/pending-for-me - RQs waiting on the caller's approval
POST /rqs/bulk-approve, POST /rqs/bulk-reject
GET /rqs/{id}
POST /rqs/{id}/approve, POST /rqs/{id}/reject
POST /rqs/{id}/start-recruitment, POST /rqs/{id}/close
POST /rqs/{id}/request-deletion, DELETE /rqs/{id}
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from talent_portal.core.auth import require_staff, require_roles, require_recruiter
from talent_portal.core.config import get_settings
from talent_portal.core.exceptions import ValidationException
from talent_portal.services.mongo_service import TiendaService, MarcaService, UserService
from talent_portal.services.killer_questions import JobProfileService
from talent_portal.services.rq_service import RQService
from talent_portal.services.email_service import send_quietly
from talent_portal.schemas.schemas import RQCreate, RQReject, RQBulkApprove, RQBulkReject, MessageResponse

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rqs", tags=["RQs"])

require_creator = require_roles("store_manager", "supervisor", "admin")
require_approver = require_roles("supervisor", "jefe_marca", "admin")


def _notify_creator_rejected(rq: dict, reason: str) -> None:
    creator = UserService().find_by_id(rq.get("creadoPor") or "")
    if creator and creator.get("email"):
        send_quietly(creator["email"], "rq_rejected", nombre=creator.get("displayName") or "",
                     posicion=rq.get("posicion") or "", rq_number=rq.get("rqNumber"), reason=reason)


def _notify_pending_approver(rq: dict) -> None:
    """Email whoever owns the RQ's current approval level."""
    if rq.get("approvalStatus") != "pending":
        return
    field = {2: "assignedSupervisor", 3: "assignedJefeMarca"}.get(rq.get("currentApprovalLevel"))
    approver = UserService().find_by_id(rq.get(field) or "") if field else None
    if approver and approver.get("email"):
        send_quietly(approver["email"], "rq_pending", nombre=approver.get("displayName") or "",
                     posicion=rq.get("posicion") or "", rq_number=rq.get("rqNumber"),
                     tienda=rq.get("tiendaNombre") or "", link=f"{settings.public_base_url}/rqs/{rq['id']}")


@router.post("", status_code=201)
async def create_rqs(body: RQCreate, user: dict = Depends(require_creator)):
    profile = JobProfileService().get(body.jobProfileId)
    tienda = TiendaService().get(body.tiendaId)
    if not tienda.get("marcaId"):
        raise ValidationException("Tienda has no marca")
    marca = MarcaService().get(tienda["marcaId"])

    rq_ids = RQService().create_rq_instances(profile, tienda, marca, body.numVacantes, user, body.motivo)
    # One notice per batch
    _notify_pending_approver(RQService().get(rq_ids[0]))
    return {"success": True, "rqIds": rq_ids, "count": len(rq_ids)}


@router.get("")
async def list_rqs(
    marcaId: Optional[str] = Query(None),
    tiendaId: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    approvalStatus: Optional[str] = Query(None),
    user: dict = Depends(require_staff)
):
    filters = {
        "marcaId": marcaId,
        "tiendaId": tiendaId,
        "status": status,
        "approvalStatus": approvalStatus,
    }
    if user["role"] != "super_admin" and user.get("holdingId"):
        filters["holdingId"] = user["holdingId"]
    return {"rqs": RQService().list_rqs(filters)}


@router.get("/pending-for-me")
async def pending_for_me(user: dict = Depends(require_staff)):
    return {"rqs": RQService().pending_for_user(user)}


@router.post("/bulk-approve")
async def bulk_approve(body: RQBulkApprove, user: dict = Depends(require_approver)):
    return RQService().bulk_approve(body.rqIds, user)


@router.post("/bulk-reject")
async def bulk_reject(body: RQBulkReject, user: dict = Depends(require_approver)):
    return RQService().bulk_reject(body.rqIds, user, body.reason)


@router.get("/{rq_id}")
async def get_rq(rq_id: str, user: dict = Depends(require_staff)):
    return RQService().get(rq_id)


@router.post("/{rq_id}/approve")
async def approve_rq(rq_id: str, user: dict = Depends(require_approver)):
    rq = RQService().approve_rq(rq_id, user)
    _notify_pending_approver(rq)
    return {
        "success": True,
        "approvalStatus": rq["approvalStatus"],
        "currentApprovalLevel": rq.get("currentApprovalLevel")
    }


@router.post("/{rq_id}/reject")
async def reject_rq(rq_id: str, body: RQReject, user: dict = Depends(require_approver)):
    rq = RQService().reject_rq(rq_id, user, body.reason)
    _notify_creator_rejected(rq, body.reason)
    return {"success": True, "approvalStatus": rq["approvalStatus"]}


@router.post("/{rq_id}/start-recruitment", response_model=MessageResponse)
async def start_recruitment(rq_id: str, user: dict = Depends(require_recruiter)):
    RQService().start_recruitment(rq_id)
    logger.info(f"RQ {rq_id} recruiting (by {user['email']})")
    return MessageResponse(message="Recruitment started")


@router.post("/{rq_id}/close", response_model=MessageResponse)
async def close_rq(rq_id: str, user: dict = Depends(require_recruiter)):
    RQService().close_rq(rq_id)
    logger.info(f"RQ {rq_id} closed by {user['email']}")
    return MessageResponse(message="RQ closed")


@router.post("/{rq_id}/request-deletion", response_model=MessageResponse)
async def request_deletion(rq_id: str, body: RQReject, user: dict = Depends(require_staff)):
    RQService().request_deletion(rq_id, user, body.reason)
    return MessageResponse(message="Deletion requested")


@router.delete("/{rq_id}", response_model=MessageResponse)
async def delete_rq(rq_id: str, reason: str = Query("Eliminado por administrador"),
                    user: dict = Depends(require_roles("admin", "jefe_marca"))):
    RQService().delete_rq(rq_id, user, reason)
    logger.info(f"RQ {rq_id} cancelled by {user['email']}: {reason}")
    return MessageResponse(message="RQ cancelled")
