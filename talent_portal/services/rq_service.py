"""
RQ Service - job requisitions (RQs) and their approval chain.

Lifecycle:
    create (one RQ per vacancy) -> approval chain (store_manager ->
    supervisor -> jefe_marca) -> recruiting -> filled / closed / cancelled

Approval flows:
- standard: created by a store manager. Level 1 is approved on creation,
  level 2 (supervisor) and level 3 (jefe de marca) are pending.
- short: created by a supervisor. Level 2 is approved by the creator,
  only level 3 is pending.
"""

import logging
import math
import random
import string
from datetime import datetime
from typing import Optional, List, Dict, Any

from talent_portal.db.mongodb import get_collection
from talent_portal.core.exceptions import ValidationException, ForbiddenException, NotFoundException
from talent_portal.services.mongo_service import DocumentService, UserService

logger = logging.getLogger(__name__)


MARCA_CODES = {
    "papajohns": "PJ",
    "papa_johns": "PJ",
    "papa-johns": "PJ",
    "kfc": "KFC",
    "starbucks": "SBX",
    "popeyes": "POP",
    "chillis": "CHL",
    "burgerking": "BK",
    "burger-king": "BK",
    "bembos": "BEM",
    "chinawok": "CW",
    "china-wok": "CW",
    "dunkin": "DNK",
}

LEVEL_ROLES = {1: "store_manager", 2: "supervisor", 3: "jefe_marca"}
ADMIN_APPROVERS = ("super_admin", "admin")


def get_marca_code(marca_key: str, explicit_code: Optional[str] = None) -> str:
    """
    Short brand code used in RQ numbers.

    Explicit code wins, then the known map (with or without a 'marca_'
    prefix), else the first three letters upper-cased.
    """
    if explicit_code:
        return explicit_code.upper()

    key = (marca_key or "").lower()
    if key in MARCA_CODES:
        return MARCA_CODES[key]

    without_prefix = key.replace("marca_", "", 1)
    if without_prefix in MARCA_CODES:
        return MARCA_CODES[without_prefix]

    return without_prefix[:3].upper()


def build_approval_chain(creator: dict, creator_role: str, now: datetime) -> List[dict]:
    """Initial chain for a new RQ given who created it."""
    if creator_role == "supervisor":
        return [
            {
                "level": 2,
                "role": "supervisor",
                "status": "approved",
                "approvedBy": creator["user_id"],
                "approvedByName": creator.get("displayName") or creator.get("email"),
                "approvedAt": now
            },
            {"level": 3, "role": "jefe_marca", "status": "pending"}
        ]

    return [
        {
            "level": 1,
            "role": "store_manager",
            "status": "approved",
            "approvedBy": creator["user_id"],
            "approvedByName": creator.get("displayName") or creator.get("email"),
            "approvedAt": now
        },
        {"level": 2, "role": "supervisor", "status": "pending"},
        {"level": 3, "role": "jefe_marca", "status": "pending"}
    ]


def next_pending_level(chain: List[dict], current_level: int) -> Optional[int]:
    """Lowest pending level above the current one, or None when the chain is done."""
    pending = [e["level"] for e in chain if e.get("status") == "pending" and e["level"] > current_level]
    return min(pending) if pending else None


class RQService(DocumentService):
    """
    All RQ reads and writes.

    Usage:
        service = RQService()
        ids = service.create_rq_instances(profile, tienda, marca, 2, user)
        service.approve_rq(ids[0], supervisor_user)
    """

    collection_name = "rqs"
    label = "RQ"

    # ============================================================
    # CREATION
    # ============================================================

    def generate_rq_number(self, marca_id: str, marca_code: str) -> str:
        """Next free RQ-{CODE}-{NNNNN} for the marca."""
        prefix = f"RQ-{marca_code}-"
        max_number = 0
        for rq in self.collection.find({"marcaId": marca_id}, {"rqNumber": 1}):
            rq_number = rq.get("rqNumber") or ""
            if not rq_number.startswith(prefix):
                continue
            try:
                number = int(rq_number.split("-")[2])
            except (IndexError, ValueError):
                continue
            max_number = max(max_number, number)
        return f"{prefix}{max_number + 1:05d}"

    def create_rq_instances(self, profile: dict, tienda: dict, marca: dict,
                            num_vacantes: int, creator: dict, motivo: str = None) -> List[str]:
        """
        One RQ per vacancy, grouped by a shared batchId.
        Returns the new RQ ids in instance order.
        """
        if num_vacantes < 1:
            raise ValidationException("numVacantes must be at least 1")

        creator_role = "supervisor" if creator.get("role") == "supervisor" else "store_manager"
        now = datetime.utcnow()
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        batch_id = f"batch_{int(now.timestamp() * 1000)}_{suffix}"

        marca_id = marca["id"]
        code = get_marca_code(marca.get("slug") or marca_id, marca.get("code"))
        first_number = int(self.generate_rq_number(marca_id, code).split("-")[2])

        supervisor = UserService().find_supervisor_for_store(tienda["id"])
        jefe = UserService().find_jefe_for_marca(marca_id)

        rq_ids = []
        for i in range(num_vacantes):
            chain = build_approval_chain(creator, creator_role, now)
            rq_ids.append(self.insert({
                "rqNumber": f"RQ-{code}-{first_number + i:05d}",
                "batchId": batch_id,
                "instanceNumber": i + 1,

                "jobProfileId": profile["id"],
                "puesto": profile.get("posicion"),
                "posicion": profile.get("posicion"),
                "modalidad": profile.get("modalidad") or "Full Time",
                "turno": profile.get("turno"),
                "categoria": profile.get("categoria") or "operativo",

                "tiendaId": tienda["id"],
                "tiendaNombre": tienda.get("nombre"),
                "tiendaDistrito": tienda.get("distrito"),
                "tiendaDireccion": tienda.get("direccion"),
                "marcaId": marca_id,
                "marcaNombre": marca.get("nombre"),
                "holdingId": marca.get("holdingId") or tienda.get("holdingId"),

                "vacantes": 1,
                "descripcion": profile.get("descripcion"),
                "requisitos": profile.get("requisitos"),
                "salario": profile.get("salario"),
                "beneficios": profile.get("beneficios") or [],
                "motivo": motivo,

                "status": "active",
                "filledCount": 0,
                "approvalStatus": "pending",
                "approvalFlow": "short" if creator_role == "supervisor" else "standard",
                "currentApprovalLevel": 3 if creator_role == "supervisor" else 2,
                "approvalChain": chain,
                "approvalHistory": [],
                "assignedSupervisor": supervisor["id"] if supervisor else None,
                "assignedSupervisorName": supervisor.get("displayName") if supervisor else None,
                "assignedJefeMarca": jefe["id"] if jefe else None,
                "assignedJefeMarcaName": jefe.get("displayName") if jefe else None,

                "alert_unfilled": False,
                "deletion_requested": False,
                "deletion_approved": False,

                "creadoPor": creator["user_id"],
                "creadorEmail": creator.get("email"),
                "createdByRole": creator_role,
                "createdAt": now
            }))

        logger.info(f"Created {len(rq_ids)} RQ(s) for marca {marca_id}, batch {batch_id}")
        return rq_ids

    # ============================================================
    # QUERIES
    # ============================================================

    def list_rqs(self, filters: Dict[str, Any]) -> List[dict]:
        query = {k: v for k, v in filters.items() if v}
        return self.find(query, sort=[("createdAt", -1)])

    def pending_for_user(self, user: dict) -> List[dict]:
        """RQs waiting on this user's approval level."""
        query: Dict[str, Any] = {"approvalStatus": "pending"}
        role = user["role"]
        if role == "supervisor":
            query.update({"currentApprovalLevel": 2, "assignedSupervisor": user["user_id"]})
        elif role == "jefe_marca":
            query.update({"currentApprovalLevel": 3, "assignedJefeMarca": user["user_id"]})
        elif role in ADMIN_APPROVERS:
            if role == "admin" and user.get("holdingId"):
                query["holdingId"] = user["holdingId"]
        else:
            return []
        return self.find(query, sort=[("createdAt", -1)])

    # ============================================================
    # APPROVAL
    # ============================================================

    def _check_approver(self, rq: dict, user: dict) -> int:
        if rq.get("approvalStatus") != "pending":
            raise ValidationException("RQ is not pending approval")

        level = rq.get("currentApprovalLevel") or 1
        if user["role"] in ADMIN_APPROVERS:
            return level

        expected = LEVEL_ROLES.get(level)
        if user["role"] != expected:
            raise ForbiddenException(f"Level {level} must be approved by {expected}")
        return level

    def approve_rq(self, rq_id: str, user: dict) -> dict:
        rq = self.get(rq_id)
        level = self._check_approver(rq, user)
        now = datetime.utcnow()
        approver_name = user.get("displayName") or user.get("email")

        chain = rq.get("approvalChain") or []
        for entry in chain:
            if entry["level"] == level:
                entry.update({
                    "status": "approved",
                    "approvedBy": user["user_id"],
                    "approvedByName": approver_name,
                    "approvedAt": now
                })

        history = (rq.get("approvalHistory") or []) + [{
            "level": level,
            "approvedBy": user["user_id"],
            "approvedByEmail": user.get("email"),
            "approvedAt": now,
            "action": "approved"
        }]

        fields = {"approvalChain": chain, "approvalHistory": history}
        next_level = next_pending_level(chain, level)
        if next_level:
            fields.update({"currentApprovalLevel": next_level, "approvalStatus": "pending"})
        else:
            fields.update({"approvalStatus": "approved", "approvedAt": now})

        self.update(rq_id, fields)
        logger.info(f"RQ {rq_id} approved at level {level} by {user.get('email')}")
        return {**rq, **fields}

    def reject_rq(self, rq_id: str, user: dict, reason: str) -> dict:
        rq = self.get(rq_id)
        level = self._check_approver(rq, user)
        now = datetime.utcnow()

        chain = rq.get("approvalChain") or []
        for entry in chain:
            if entry["level"] == level:
                entry.update({
                    "status": "rejected",
                    "approvedBy": user["user_id"],
                    "approvedByName": user.get("displayName") or user.get("email"),
                    "approvedAt": now,
                    "rejectionReason": reason
                })

        history = (rq.get("approvalHistory") or []) + [{
            "level": level,
            "approvedBy": user["user_id"],
            "approvedByEmail": user.get("email"),
            "approvedAt": now,
            "action": "rejected",
            "reason": reason
        }]

        fields = {
            "approvalStatus": "rejected",
            "status": "cancelled",
            "approvalChain": chain,
            "approvalHistory": history
        }
        self.update(rq_id, fields)
        logger.info(f"RQ {rq_id} rejected at level {level}: {reason}")
        return {**rq, **fields}

    def bulk_approve(self, rq_ids: List[str], user: dict) -> Dict[str, Any]:
        approved, failed = 0, []
        for rq_id in rq_ids:
            try:
                self.approve_rq(rq_id, user)
                approved += 1
            except (ValidationException, ForbiddenException, NotFoundException) as e:
                logger.info(f"Bulk approve skipped {rq_id}: {e}")
                failed.append(rq_id)
        return {"approved": approved, "failed": failed}

    def bulk_reject(self, rq_ids: List[str], user: dict, reason: str) -> Dict[str, Any]:
        rejected, failed = 0, []
        for rq_id in rq_ids:
            try:
                self.reject_rq(rq_id, user, reason)
                rejected += 1
            except (ValidationException, ForbiddenException, NotFoundException) as e:
                logger.info(f"Bulk reject skipped {rq_id}: {e}")
                failed.append(rq_id)
        return {"rejected": rejected, "failed": failed}

    # ============================================================
    # RECRUITMENT / CLOSURE
    # ============================================================

    def start_recruitment(self, rq_id: str) -> None:
        rq = self.get(rq_id)
        if rq.get("approvalStatus") != "approved":
            raise ValidationException("RQ must be approved before recruiting")
        self.update(rq_id, {"status": "recruiting", "recruitment_started_at": datetime.utcnow()})

    def close_rq(self, rq_id: str) -> None:
        self.get(rq_id)
        self.update(rq_id, {
            "status": "closed",
            "recruitment_ended_at": datetime.utcnow(),
            "alert_unfilled": False
        })

    def request_deletion(self, rq_id: str, user: dict, reason: str) -> None:
        self.get(rq_id)
        self.update(rq_id, {
            "deletion_requested": True,
            "deletion_requested_by": user["user_id"],
            "deletion_requested_at": datetime.utcnow(),
            "deletion_reason": reason
        })

    def delete_rq(self, rq_id: str, user: dict, reason: str) -> None:
        """Soft delete: the RQ is cancelled, never removed."""
        self.get(rq_id)
        self.update(rq_id, {
            "status": "cancelled",
            "approvalStatus": "rejected",
            "deletion_approved": True,
            "deletion_requested_by": user["user_id"],
            "deletion_requested_at": datetime.utcnow(),
            "deletion_reason": reason
        })

    def record_time_to_fill(self, rq_id: str, candidate_id: str, hired_at: datetime) -> Optional[dict]:
        """Add one hire to the RQ's time-to-fill stats (days since approval, or creation)."""
        rq = self.find_by_id(rq_id)
        if not rq:
            return None

        started = rq.get("approvedAt") or rq.get("createdAt") or hired_at
        days = math.ceil((hired_at - started).total_seconds() / 86400)

        current = rq.get("timeToFill") or {"total": 0, "count": 0, "hires": []}
        total = current.get("total", 0) + days
        count = current.get("count", 0) + 1
        ttf = {
            "total": total,
            "count": count,
            "average": round(total / count),
            "lastHireDate": hired_at,
            "hires": (current.get("hires") or []) + [
                {"candidateId": candidate_id, "days": days, "hiredAt": hired_at}
            ]
        }
        self.update(rq_id, {"timeToFill": ttf})
        logger.info(f"Time to fill for RQ {rq_id}: {days} days (average {ttf['average']})")
        return ttf

    def check_and_close_rq(self, rq_id: str) -> bool:
        """
        Close the RQ when every vacancy has a hired application.
        Returns True when the RQ was closed by this call.
        """
        rq = self.find_by_id(rq_id)
        if not rq:
            logger.error(f"RQ not found: {rq_id}")
            return False

        vacantes = rq.get("vacantes") or 1
        hired = 0
        candidates = get_collection("candidates").find({"applications.rqId": rq_id}, {"applications": 1})
        for candidate in candidates:
            hired += sum(
                1 for app in candidate.get("applications", [])
                if app.get("rqId") == rq_id and app.get("hiredStatus") == "hired"
            )

        if hired >= vacantes:
            now = datetime.utcnow()
            self.update(rq_id, {
                "status": "filled",
                "filledCount": hired,
                "filledAt": now,
                "closedAt": now,
                "closedBy": "system",
                "closureReason": f"Todas las {vacantes} vacantes han sido cubiertas"
            })
            logger.info(f"RQ {rq_id} closed automatically ({hired}/{vacantes} hired)")
            return True

        self.update(rq_id, {"filledCount": hired})
        return False

