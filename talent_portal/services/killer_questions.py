"""
Killer Questions (KQ) - screening questions attached to job profiles.

A KQ is a dict:
    {"id", "question", "type": boolean|select|text, "options",
     "requiredAnswer", "isRequired"}

For boolean questions `requiredAnswer` is 'yes' or 'no'; for select
questions it is the exact option text.
"""

import copy
from datetime import datetime
from typing import List, Dict, Any

from talent_portal.services.mongo_service import DocumentService


DEFAULT_KQ_SUGGESTIONS: Dict[str, List[dict]] = {
    "operativo": [
        {
            "id": "carnet_sanidad",
            "question": "¿Cuentas con carnet de sanidad vigente?",
            "type": "boolean",
            "requiredAnswer": "yes",
            "isRequired": True
        },
        {
            "id": "disponibilidad_fds",
            "question": "¿Tienes disponibilidad para trabajar fines de semana?",
            "type": "boolean",
            "requiredAnswer": "yes",
            "isRequired": True
        },
        {
            "id": "experiencia",
            "question": "¿Tienes experiencia en atención al cliente?",
            "type": "boolean",
            "isRequired": False
        }
    ],
    "gerencial": [
        {
            "id": "experiencia_liderazgo",
            "question": "¿Tienes experiencia liderando equipos de trabajo?",
            "type": "boolean",
            "requiredAnswer": "yes",
            "isRequired": True
        },
        {
            "id": "estudios",
            "question": "¿Tienes estudios superiores en administración, negocios o afines?",
            "type": "boolean",
            "isRequired": True
        },
        {
            "id": "disponibilidad_viajes",
            "question": "¿Tienes disponibilidad para visitar múltiples tiendas?",
            "type": "boolean",
            "requiredAnswer": "yes",
            "isRequired": True
        }
    ]
}


def get_suggested_kqs(categoria: str) -> List[dict]:
    """Default questions for a category; unknown categories get the operativo set."""
    suggestions = DEFAULT_KQ_SUGGESTIONS.get(categoria) or DEFAULT_KQ_SUGGESTIONS["operativo"]
    return copy.deepcopy(suggestions)


def validate_kq_answers(questions: List[dict], answers: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check candidate answers against the profile's questions.

    A required question left unanswered fails. A question with a
    requiredAnswer fails when the answer differs (a missing answer differs).
    Each question id appears at most once in failedQuestions, in question order.

    Usage:
        result = validate_kq_answers(profile["killerQuestions"], {"carnet_sanidad": "yes"})
        if not result["passed"]:
            ...
    """
    failed: List[str] = []
    answers = answers or {}

    for kq in questions or []:
        answer = answers.get(kq["id"])

        if kq.get("isRequired") and not answer:
            failed.append(kq["id"])
            continue

        required_answer = kq.get("requiredAnswer")
        if required_answer and answer != required_answer:
            failed.append(kq["id"])

    return {"passed": len(failed) == 0, "failedQuestions": failed}


# ============================================================
# JOB PROFILES
# ============================================================

class JobProfileService(DocumentService):
    """Job profiles (posicion + modalidad + turno) and their KQs."""

    collection_name = "job_profiles"
    label = "Job profile"

    def list_profiles(self, holding_id: str = None, marca_id: str = None) -> List[dict]:
        query: Dict[str, Any] = {}
        if holding_id:
            query["holdingId"] = holding_id
        if marca_id:
            query["marcaIds"] = marca_id
        return self.find(query, sort=[("posicion", 1)])

    def create(self, data: dict, created_by: str) -> str:
        return self.insert({
            "killerQuestions": [],
            "isActive": True,
            **data,
            "createdBy": created_by
        })

    def get_kqs(self, profile_id: str) -> List[dict]:
        """Missing profile -> no questions."""
        profile = self.find_by_id(profile_id)
        if not profile:
            return []
        return profile.get("killerQuestions") or []

    def update_kqs(self, profile_id: str, questions: List[dict], updated_by: str) -> bool:
        return self.update(profile_id, {
            "killerQuestions": questions,
            "kqUpdatedAt": datetime.utcnow(),
            "kqUpdatedBy": updated_by
        })
