"""
Candidate Service - candidates, their embedded applications and the
public portal flows (registration, magic links, sessions, apply, booking).

Candidate portal auth uses opaque UUID tokens stored on the candidate:
- portalSessionToken / portalSessionExpiry  (24 h)
- magicLinkToken / magicLinkExpiry          (24 h, one use)

Application flows:
- A: passed KQs and within commute distance -> straight to scheduling
- B: anything else -> recruiter rescue inbox
"""

import logging
import re
import time
import uuid
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Tuple

from talent_portal.core.config import get_settings
from talent_portal.core.exceptions import (
    NotFoundException,
    ValidationException,
    AuthorizationException,
    ForbiddenException,
)
from talent_portal.db.mongodb import get_collection
from talent_portal.services.mongo_service import (
    DocumentService,
    BlacklistService,
    UserService,
    TiendaService,
    serialize_doc,
    serialize_docs,
    to_object_id,
)
from talent_portal.services.killer_questions import JobProfileService, validate_kq_answers
from talent_portal.services.rq_service import RQService
from talent_portal.services.geo import is_within_acceptable_distance
from talent_portal.services.email_service import send_quietly

settings = get_settings()
logger = logging.getLogger(__name__)

BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36[remainder])
    return "".join(reversed(digits))


def generate_candidate_code() -> str:
    """PUB- + base36 of the current ms timestamp."""
    return "PUB-" + to_base36(int(time.time() * 1000)).upper()


def split_apellidos(apellidos: str) -> Tuple[str, str]:
    """'Quispe Mamani Rojas' -> ('Quispe', 'Mamani Rojas')"""
    parts = (apellidos or "").split(" ")
    return parts[0] if parts else "", " ".join(parts[1:])


def public_candidate(candidate: dict) -> dict:
    """Fields the portal may show back to the candidate."""
    return {
        "id": candidate["id"],
        "nombre": candidate.get("nombre", ""),
        "apellidoPaterno": candidate.get("apellidoPaterno", ""),
        "distrito": candidate.get("distrito", ""),
        "direccion": candidate.get("direccion", ""),
        "email": candidate.get("email", ""),
        "telefono": candidate.get("telefono", ""),
        "coordinates": candidate.get("coordinates"),
    }


def _is_expired(expiry: Optional[datetime]) -> bool:
    return expiry is None or datetime.utcnow() > expiry


class CandidateService(DocumentService):
    """
    Candidate documents and their applications.

    Usage:
        service = CandidateService()
        result = service.register({...})
        service.apply(result["candidateId"], rq_id, result["sessionToken"], {...})
    """

    collection_name = "candidates"
    label = "Candidate"

    # ============================================================
    # LOOKUPS
    # ============================================================

    def find_by_email(self, email: str) -> Optional[dict]:
        return serialize_doc(self.collection.find_one({"email": (email or "").lower()}))

    def find_by_session_token(self, token: str) -> Optional[dict]:
        if not token:
            return None
        return serialize_doc(self.collection.find_one({"portalSessionToken": token}))

    def _new_session(self) -> Dict[str, Any]:
        return {
            "portalSessionToken": str(uuid.uuid4()),
            "portalSessionExpiry": datetime.utcnow() + timedelta(hours=settings.portal_session_hours)
        }

    def _get_application(self, candidate: dict, application_id: str) -> dict:
        for app in candidate.get("applications") or []:
            if app.get("id") == application_id:
                return app
        raise NotFoundException("Application not found")

    def _update_application(self, candidate_id: str, application_id: str, fields: Dict[str, Any]) -> None:
        """$set fields on one embedded application."""
        self.collection.update_one(
            {"_id": to_object_id(candidate_id), "applications.id": application_id},
            {"$set": {
                **{f"applications.$.{k}": v for k, v in fields.items()},
                "updatedAt": datetime.utcnow()
            }}
        )

    # ============================================================
    # PORTAL: ACCOUNT & SESSION
    # ============================================================

    def check_user(self, email: str) -> Dict[str, Any]:
        candidate = self.find_by_email(email)
        return {"exists": candidate is not None, "candidateId": candidate["id"] if candidate else None}

    def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        for field in ("email", "nombre", "apellidos", "celular"):
            if not data.get(field):
                raise ValidationException("Campos obligatorios faltantes")

        email = data["email"].lower()
        if self.find_by_email(email):
            raise ValidationException("Email already registered")

        paterno, materno = split_apellidos(data["apellidos"])
        session = self._new_session()

        candidate_id = self.insert({
            "email": email,
            "nombre": data["nombre"],
            "apellidoPaterno": paterno,
            "apellidoMaterno": materno,
            "telefono": data["celular"],
            "dni": data.get("dni") or "",

            "departamento": data.get("departamento") or "Lima",
            "provincia": data.get("provincia") or "Lima",
            "distrito": data.get("distrito") or "",
            "direccion": data.get("direccion") or "",
            "coordinates": data.get("coordinates"),
            "formattedAddress": data.get("formattedAddress") or "",

            "candidateCode": generate_candidate_code(),
            "source": "portal_publico",
            "registeredViaPortal": True,
            "holdingSlug": data.get("holdingSlug") or "ngr",
            "cvUrl": data.get("cvUrl") or "",

            **session,

            "culStatus": "pending",
            "hasAccount": False,
            "blacklisted": False,
            "applications": []
        })

        logger.info(f"Portal register: created candidate {candidate_id}")
        return {"success": True, "candidateId": candidate_id, "sessionToken": session["portalSessionToken"]}

    def request_magic_link(self, email: str) -> str:
        """Store a fresh one-time token and email the link. Returns the token."""
        candidate = self.find_by_email(email)
        if not candidate:
            raise NotFoundException("Usuario no encontrado")

        token = str(uuid.uuid4())
        self.update(candidate["id"], {
            "magicLinkToken": token,
            "magicLinkExpiry": datetime.utcnow() + timedelta(hours=settings.magic_link_hours)
        })

        url = f"{settings.public_base_url}/portal/auth/{token}"
        send_quietly(candidate["email"], "magic_link", sender=settings.email_portal_from, magic_link_url=url)
        logger.info(f"Magic link issued for candidate {candidate['id']}")
        return token

    def verify_magic_link(self, token: str) -> Dict[str, Any]:
        """Exchange a magic-link token for a new portal session."""
        candidate = serialize_doc(self.collection.find_one({"magicLinkToken": token})) if token else None
        if not candidate:
            raise NotFoundException("Token no encontrado")

        if _is_expired(candidate.get("magicLinkExpiry")):
            raise AuthorizationException("Token expirado", {"expired": True})

        session = self._new_session()
        self.update(candidate["id"], {
            "magicLinkToken": None,
            "magicLinkExpiry": None,
            **session,
            "lastLoginAt": datetime.utcnow()
        })
        return {"success": True, "sessionToken": session["portalSessionToken"], "candidateId": candidate["id"]}

    def validate_session(self, token: str) -> dict:
        """Candidate for a live session token. 401 when unknown or expired."""
        candidate = self.find_by_session_token(token)
        if not candidate:
            raise AuthorizationException("Sesión no válida")
        if _is_expired(candidate.get("portalSessionExpiry")):
            raise AuthorizationException("Sesión expirada")
        return candidate

    # ============================================================
    # PORTAL: APPLY / BOOK / RESCUE
    # ============================================================

    def _is_blacklisted(self, candidate: dict) -> bool:
        if candidate.get("blacklisted"):
            return True
        return BlacklistService().is_blacklisted(candidate.get("dni")) is not None

    def _evaluate_kqs(self, rq: dict, answers: Dict[str, Any], client_passed: Optional[bool]):
        """Server-side KQ check against the RQ's job profile."""
        questions = JobProfileService().get_kqs(rq.get("jobProfileId")) if rq.get("jobProfileId") else []
        if not questions:
            passed = True if client_passed is None else bool(client_passed)
            return passed, {}, []

        result = validate_kq_answers(questions, answers)
        kq_results = {q["id"]: {"passed": q["id"] not in result["failedQuestions"]} for q in questions}
        return result["passed"], kq_results, result["failedQuestions"]

    def _evaluate_geo(self, candidate: dict, rq: dict, client_match: Optional[bool]) -> bool:
        coords = candidate.get("coordinates")
        store_coords = TiendaService().get_coordinates(rq.get("tiendaId")) if rq.get("tiendaId") else None
        if coords and store_coords:
            acceptable, _, _ = is_within_acceptable_distance(coords, store_coords, rq.get("turno"))
            return acceptable
        return True if client_match is None else bool(client_match)

    def apply(self, candidate_id: str, rq_id: str, session_token: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not candidate_id or not rq_id:
            raise ValidationException("Datos incompletos")

        candidate = self.find_by_id(candidate_id)
        if not candidate:
            raise NotFoundException("Candidato no encontrado")

        if not session_token or candidate.get("portalSessionToken") != session_token:
            raise AuthorizationException("Sesión inválida")

        if self._is_blacklisted(candidate):
            raise ForbiddenException("No es posible postular en este momento")

        rq = RQService().find_by_id(rq_id)
        if not rq:
            raise NotFoundException("Vacante no encontrada")

        if any(app.get("rqId") == rq_id for app in candidate.get("applications") or []):
            raise ValidationException("Ya postulaste a esta vacante")

        kq_answers = data.get("kqAnswers") or {}
        kq_passed, kq_results, failed_kqs = self._evaluate_kqs(rq, kq_answers, data.get("kqPassed"))
        is_geo_match = self._evaluate_geo(candidate, rq, data.get("isGeoMatch"))
        flow = "A" if kq_passed and is_geo_match else "B"

        application_id = str(uuid.uuid4())
        application = {
            "id": application_id,
            "rqId": rq_id,
            "rqNumber": rq.get("rqNumber") or "",
            "posicion": rq.get("posicion") or "",
            "modalidad": rq.get("modalidad") or "Full Time",
            "marcaId": rq.get("marcaId") or "",
            "marcaNombre": rq.get("marcaNombre") or "",
            "tiendaId": rq.get("tiendaId") or "",
            "tiendaNombre": rq.get("tiendaNombre") or "",
            "appliedAt": datetime.utcnow(),
            "source": "portal_publico",
            "categoria": rq.get("categoria") or "operativo",

            "kqAnswers": kq_answers,
            "kqResults": kq_results,
            "kqPassed": kq_passed,
            "isGeoMatch": is_geo_match,
            "matchScore": data.get("matchScore"),
            "flow": flow,

            "status": "pending_schedule" if flow == "A" else "in_review",
            "inRescueInbox": flow == "B"
        }

        self.collection.update_one(
            {"_id": to_object_id(candidate_id)},
            {"$push": {"applications": application}, "$set": {"updatedAt": datetime.utcnow()}}
        )

        if flow == "B":
            get_collection("rescue_inbox").insert_one({
                "candidateId": candidate_id,
                "applicationId": application_id,
                "rqId": rq_id,
                "rqNumber": rq.get("rqNumber") or "",
                "posicion": rq.get("posicion") or "",
                "marcaId": rq.get("marcaId") or "",
                "marcaNombre": rq.get("marcaNombre") or "",
                "tiendaId": rq.get("tiendaId") or "",
                "tiendaNombre": rq.get("tiendaNombre") or "",
                "candidateName": f"{candidate.get('nombre', '')} {candidate.get('apellidoPaterno', '')}".strip(),
                "candidateEmail": candidate.get("email"),
                "candidateDistrito": candidate.get("distrito"),
                "matchScore": data.get("matchScore"),
                "kqPassed": kq_passed,
                "status": "pending_review",
                "createdAt": datetime.utcnow(),
                "rejectionReasons": {
                    "geoMismatch": not is_geo_match,
                    "kqFailed": not kq_passed,
                    "failedKQs": failed_kqs
                }
            })

        send_quietly(
            candidate["email"], "application_received", sender=settings.email_portal_from,
            nombre=candidate.get("nombre") or "",
            posicion=rq.get("posicion") or "",
            company=rq.get("marcaNombre") or ""
        )
        logger.info(f"Portal apply: candidate={candidate_id} rq={rq_id} flow={flow} app={application_id}")
        return {"success": True, "applicationId": application_id, "flow": flow}

    def book_interview(self, session_token: str, rq_id: str, application_id: str, slot: Dict[str, Any]) -> None:
        if not session_token or not rq_id or not application_id:
            raise ValidationException("Datos incompletos")

        candidate = self.find_by_session_token(session_token)
        if not candidate:
            raise AuthorizationException("Sesión inválida")

        application = self._get_application(candidate, application_id)
        self._update_application(candidate["id"], application_id, {
            "status": "interview_scheduled",
            "interviewSlotId": slot.get("slotId"),
            "interviewDate": slot.get("slotDate"),
            "interviewTime": slot.get("slotTime"),
            "interviewScheduledAt": datetime.utcnow()
        })

        send_quietly(
            candidate["email"], "interview_confirmed",
            sender=settings.email_portal_from,
            nombre=candidate.get("nombre"),
            posicion=application.get("posicion"),
            tienda=application.get("tiendaNombre"),
            fecha=slot.get("slotDate"),
            hora=slot.get("slotTime")
        )
        logger.info(f"Interview booked: candidate={candidate['id']} app={application_id} {slot.get('slotDate')} {slot.get('slotTime')}")

    def notify_rescue(self, candidate_id: str, application_id: str, rq_id: str, posicion: str,
                      rescued_by: str = None) -> None:
        """Recruiter rescues a flow-B application: it moves to scheduling and the candidate is emailed."""
        if not candidate_id or not application_id:
            raise ValidationException("Datos incompletos")

        candidate = self.find_by_id(candidate_id)
        if not candidate:
            raise NotFoundException("Candidato no encontrado")

        self._get_application(candidate, application_id)
        now = datetime.utcnow()
        self._update_application(candidate_id, application_id, {
            "status": "pending_schedule",
            "flow": "A",
            "rescuedAt": now,
            "inRescueInbox": False
        })

        get_collection("rescue_inbox").update_many(
            {"candidateId": candidate_id, "applicationId": application_id},
            {"$set": {"status": "rescued", "rescuedAt": now, "rescuedBy": rescued_by}}
        )

        session = self._new_session()
        self.update(candidate_id, session)

        schedule_url = (
            f"{settings.public_base_url}/portal/agendar/{rq_id}"
            f"?token={session['portalSessionToken']}&appId={application_id}"
        )
        send_quietly(
            candidate["email"], "rescue_notification",
            sender=settings.email_portal_from,
            nombre=candidate.get("nombre"),
            posicion=posicion,
            schedule_url=schedule_url
        )
        logger.info(f"Rescue notify: candidate={candidate_id} app={application_id}")

    def rescue_inbox(self, marca_id: str = None, status: str = "pending_review") -> List[dict]:
        query: Dict[str, Any] = {}
        if marca_id:
            query["marcaId"] = marca_id
        if status:
            query["status"] = status
        return serialize_docs(get_collection("rescue_inbox").find(query).sort("createdAt", -1))

    # ============================================================
    # RECRUITER: VALIDATION / STATUS / HIRING
    # ============================================================

    def update_validation(self, candidate_id: str, update_type: str, data: Dict[str, Any],
                          validated_by: str = None) -> None:
        """Apply a DNI extraction or a CUL validation result to the candidate."""
        self.get(candidate_id)
        now = datetime.utcnow()

        if update_type == "dni_verification" and data:
            name_parts = (data.get("nombreCompleto") or "").split(" ")
            fields = {
                "nombre": name_parts[0] if name_parts else "",
                "apellidoPaterno": name_parts[1] if len(name_parts) > 1 else "",
                "apellidoMaterno": " ".join(name_parts[2:]),
                "dni": data.get("dni"),
                "fechaNacimiento": data.get("fechaNacimiento"),
                "direccion": data.get("direccion"),
                "sexo": data.get("sexo"),
                "dniVerified": True,
                "dniVerifiedAt": now,
                "dniExtractedData": data
            }
        elif update_type == "cul_validation" and data:
            fields = {
                "culValidationStatus": data.get("status"),
                "culAiObservation": data.get("aiObservation"),
                "culDenunciasEncontradas": data.get("denunciasEncontradas") or [],
                "culConfidence": data.get("confidence"),
                "culValidatedBy": validated_by,
                "culValidatedAt": now
            }
        else:
            raise ValidationException('Invalid updateType. Use "dni_verification" or "cul_validation"')

        self.update(candidate_id, fields)
        logger.info(f"Candidate {candidate_id} {update_type} updated")

    def update_application_status(self, candidate_id: str, application_id: str, action: str,
                                  user: dict, reason: str = None, cul_resultado: str = None,
                                  send_email: bool = False) -> dict:
        """
        Recruiter decision on one application.

        action:
            approve -> status 'approved'
            reject  -> status 'rejected' (optionally emails the candidate)
            cul     -> cul_resultado 'apto' | 'no_apto'
        """
        candidate = self.get(candidate_id)
        application = self._get_application(candidate, application_id)
        now = datetime.utcnow()

        if action == "approve":
            fields = {"status": "approved", "approvedBy": user["user_id"], "approvedAt": now}
        elif action == "reject":
            fields = {
                "status": "rejected",
                "rejectedBy": user["user_id"],
                "rejectedAt": now,
                "rejectionReason": reason
            }
        elif action == "cul":
            if cul_resultado not in ("apto", "no_apto"):
                raise ValidationException("cul_resultado must be 'apto' or 'no_apto'")
            fields = {"cul_resultado": cul_resultado, "cul_fecha": now}
        else:
            raise ValidationException(f"Unknown action '{action}'")

        self._update_application(candidate_id, application_id, fields)

        if action == "reject" and send_email and candidate.get("email"):
            send_quietly(
                candidate["email"], "rejection",
                nombre=candidate.get("nombre"),
                posicion=application.get("posicion"),
                company=application.get("marcaNombre")
            )

        logger.info(f"Application {application_id} {action} by {user.get('email')}")
        return {**application, **fields}

    def mark_candidate_hired(self, candidate_id: str, application_id: str, hired_by: str,
                             start_date: datetime) -> Dict[str, Any]:
        """
        Mark an application as hired, register the new hire for payroll,
        update the RQ's time-to-fill and close the RQ when it is full.
        """
        candidate = self.get(candidate_id)
        application = self._get_application(candidate, application_id)
        now = datetime.utcnow()

        self._update_application(candidate_id, application_id, {
            "hiredStatus": "hired",
            "hiringStatus": "hired",
            "hiredBy": hired_by,
            "hiredAt": now,
            "startDate": start_date
        })

        paterno = candidate.get("apellidoPaterno", "")
        materno = candidate.get("apellidoMaterno", "")
        get_collection("new_hires").insert_one({
            "candidateId": candidate_id,
            "applicationId": application_id,
            "nombres": candidate.get("nombre"),
            "apellidos": f"{paterno} {materno}".strip(),
            "nombreCompleto": f"{candidate.get('nombre', '')} {paterno} {materno}".strip(),
            "numeroDocumento": candidate.get("dni"),
            "tipoDocumento": "DNI",
            "posicion": application.get("posicion"),
            "marcaId": application.get("marcaId"),
            "marcaNombre": application.get("marcaNombre"),
            "tiendaId": application.get("tiendaId"),
            "tiendaNombre": application.get("tiendaNombre"),
            "fechaIngreso": start_date,
            "modalidad": application.get("modalidad") or "Full Time",
            "hiredAt": now,
            "createdAt": now,
            "hiredBy": hired_by,
            "holdingId": candidate.get("holdingId") or candidate.get("holdingSlug") or "ngr",
            "processedAt": None,
            "status": "pendiente"
        })

        rq_closed = False
        rq_id = application.get("rqId")
        if rq_id:
            rq_service = RQService()
            rq_service.record_time_to_fill(rq_id, candidate_id, now)
            rq_closed = rq_service.check_and_close_rq(rq_id)

        logger.info(f"Candidate {candidate_id} hired for RQ {rq_id} (rq closed: {rq_closed})")
        return {"success": True, "rqClosed": rq_closed}

    def mark_candidate_not_hired(self, candidate_id: str, application_id: str, hired_by: str, reason: str) -> None:
        candidate = self.get(candidate_id)
        self._get_application(candidate, application_id)
        self._update_application(candidate_id, application_id, {
            "hiredStatus": "not_hired",
            "hiringStatus": "not_hired",
            "hiredBy": hired_by,
            "notHiredReason": reason,
            "notHiredAt": datetime.utcnow()
        })

    def clean_reingreso(self, dni: str) -> Dict[str, Any]:
        """
        Release a returning employee: active store assignments become
        'released' and the selection markers are cleared so they can apply again.
        """
        if not dni:
            raise ValidationException("DNI is required")

        candidate = serialize_doc(self.collection.find_one({"dni": dni}))
        if not candidate:
            raise NotFoundException("Candidate not found")

        assignments = [
            {**a, "status": "released" if a.get("status") in ("assigned", "confirmed") else a.get("status")}
            for a in candidate.get("assignments") or []
        ]
        self.update(candidate["id"], {
            "assignments": assignments,
            "selectionStatus": None,
            "selectedForRQ": None
        })

        logger.info(f"Clean reingreso for candidate {candidate['id']}")
        return {
            "success": True,
            "candidateId": candidate["id"],
            "nombre": f"{candidate.get('nombre', '')} {candidate.get('apellidoPaterno', '')}".strip()
        }

    # ============================================================
    # RECRUITER: SEARCH
    # ============================================================

    def search(self, marca_id: str = None, status: str = None, cul_status: str = None,
               search: str = None, limit: int = 100) -> List[dict]:
        query: Dict[str, Any] = {}
        elem: Dict[str, Any] = {}
        if marca_id:
            elem["marcaId"] = marca_id
        if status:
            elem["status"] = status
        if elem:
            query["applications"] = {"$elemMatch": elem}
        if cul_status:
            query["culStatus"] = cul_status
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [
                {"nombre": pattern},
                {"apellidoPaterno": pattern},
                {"email": pattern},
                {"dni": pattern}
            ]

        candidates = self.find(query, sort=[("createdAt", -1)], limit=limit)
        for candidate in candidates:
            candidate.pop("portalSessionToken", None)
            candidate.pop("magicLinkToken", None)
        return candidates


def manager_availability(store_id: str) -> Optional[dict]:
    """Interview availability configured by the store's manager, if any."""
    if not store_id:
        raise ValidationException("storeId is required")
    manager = UserService().find_store_manager(store_id)
    if not manager:
        return None
    return manager.get("availability")


# ============================================================
# TALENT POOL (spontaneous CV submissions)
# ============================================================

class TalentPoolService(DocumentService):
    collection_name = "talent_pool"
    label = "Talent pool entry"

    def submit(self, data: Dict[str, Any], filename: str, keywords: List[str], summary: str) -> str:
        nombre = data.get("nombre") or ""
        apellidos = data.get("apellidos") or ""
        return self.insert({
            "nombre": nombre,
            "apellidos": apellidos,
            "nombreCompleto": f"{nombre} {apellidos}".strip(),
            "dni": data.get("dni") or "",
            "email": (data.get("email") or "").lower(),
            "telefono": data.get("telefono") or "",
            "expectativa": data.get("expectativa") or "",
            "holdingSlug": data.get("holdingSlug") or "ngr",
            "cvFilename": filename,
            "ai_keywords": keywords,
            "ai_summary": summary,
            "appliedAt": datetime.utcnow(),
            "status": "new",
            "source": "portal_talent_pool"
        })

    def list_entries(self, holding_slug: str = None, keyword: str = None) -> List[dict]:
        query: Dict[str, Any] = {}
        if holding_slug:
            query["holdingSlug"] = holding_slug
        if keyword:
            query["ai_keywords"] = {"$regex": re.escape(keyword), "$options": "i"}
        return self.find(query, sort=[("appliedAt", -1)])
