"""
AI Service - recruiter-side LLM features.

AI is used for:
1. CV <-> job matching (score + rationale)
2. Job description generation
3. CV parsing (text -> structured JSON for form auto-fill)
4. Document extraction: DNI, CUL (vision)
5. Talent pool keyword tagging

AI OUTPUT -> VALIDATED -> STORED ON THE CANDIDATE
The model never decides alone: CUL results only become 'apto' with an
explicit 'aprobar' recommendation and confidence >= 80.
"""

import json
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from talent_portal.core.exceptions import ExternalServiceException, ValidationException
from talent_portal.services.llm_client import get_llm_client, LLMClient
from talent_portal.services.candidate_service import CandidateService

logger = logging.getLogger(__name__)

CUL_APPROVE_CONFIDENCE = 80


# ============================================================
# PROMPTS
# ============================================================

CV_MATCH_PROMPT = """Eres un experto reclutador senior con 20 años de experiencia evaluando candidatos corporativos.
Analiza la compatibilidad entre un CV y un Job Description (JD).
Responde SOLO con JSON:
{
  "matchScore": <0-100>,
  "summary_rationale": "<2-3 oraciones>",
  "skill_breakdown": {
    "technical": {"score": <0-100>, "matched": [], "missing": []},
    "experience": {"score": <0-100>, "years_required": <n>, "years_found": <n>, "relevant_roles": []},
    "education": {"score": <0-100>, "required": "", "found": ""}
  },
  "red_flags": [],
  "green_flags": []
}
85-100 excelente, 70-84 bueno, 50-69 parcial, 30-49 bajo, 0-29 no apto.
No inventes información que no esté en el CV. Penaliza requisitos obligatorios faltantes."""

MATCH_CANDIDATE_PROMPT = """Actúa como un reclutador experto. Analiza el grado de afinidad entre un candidato y una vacante.
Considera experiencia, habilidades, formación y las respuestas a las Killer Questions.
Si el candidato falla claramente un requisito obligatorio, el puntaje debe ser menor a 30.
Responde SOLO con JSON:
{
  "matchScore": <0-100>,
  "resumenEjecutivo": "",
  "puntosFuertes": [],
  "puntosDebiles": [],
  "recomendacion": "Entrevistar / En espera / Descartar",
  "analisisDetallado": {"experiencia": "", "habilidades": "", "formacion": ""}
}"""

JD_PROMPT = """Eres un experto en redacción de Job Descriptions corporativos.
Genera un JD profesional y atractivo con:
1. Resumen del puesto (2-3 líneas)
2. Responsabilidades principales (5-8 bullets)
3. Requisitos obligatorios (4-6 bullets)
4. Requisitos deseables (3-4 bullets)
5. Beneficios (4-6 bullets)
Tono profesional pero accesible."""

PARSE_CV_PROMPT = """Analiza el CV y extrae la información estructurada. Responde SOLO con JSON:
{
  "nombre": "", "email": "", "telefono": "", "direccion": "", "resumen": "",
  "experiencia": [{"empresa": "", "cargo": "", "desde": "", "hasta": "", "descripcion": ""}],
  "educacion": [{"institucion": "", "titulo": "", "desde": "", "hasta": ""}],
  "habilidades": [], "idiomas": [], "certificaciones": []
}
Si un campo no está disponible usa null o []."""

DNI_PROMPT = """Analiza esta imagen de un DNI peruano y extrae los datos.
Responde ÚNICAMENTE con JSON:
{
  "nombreCompleto": "", "dni": "8 dígitos", "fechaNacimiento": "DD/MM/AAAA",
  "direccion": null, "sexo": "M" o "F", "confidence": <0-100>, "observacion": ""
}"""

CUL_PROMPT = """Analiza este Certificado Único Laboral (CUL) del Perú.

PRIMERO verifica que sea un CUL válido: logo del Ministerio de Trabajo y Promoción del Empleo,
título "CERTIFICADO ÚNICO LABORAL", código QR, número de certificado, secciones IDENTIDAD,
ANTECEDENTES POLICIALES, JUDICIALES y PENALES.

Si NO es un CUL válido responde:
{"esDocumentoValido": false, "tipoDocumentoDetectado": "", "recomendacion": "rechazar",
 "observacion": "El documento subido no es un Certificado Único Laboral válido"}

REGLAS:
- DNI distinto al del candidato ({candidate_dni}) -> rechazar (indicar "DNI mismatch")
- Más de 6 meses desde la emisión (hoy es {today}) -> revisar_manual (indicar "Vencido")
- Todos los antecedentes "No registra antecedentes" -> aprobar
- Cualquier antecedente con contenido -> rechazar
- Antecedentes ilegibles -> revisar_manual

Si es válido responde ÚNICAMENTE con:
{
  "esDocumentoValido": true,
  "datosPersonales": {"nombres": "", "apellidos": "", "numeroDocumento": "", "tipoDocumento": "DNI" o "CE",
                      "fechaNacimiento": "DD/MM/AAAA", "domicilio": ""},
  "fechaEmision": "DD/MM/AAAA",
  "antecedentes": {
    "policiales": {"estado": "limpio" o "con_registros", "detalle": ""},
    "judiciales": {"estado": "limpio" o "con_registros", "detalle": ""},
    "penales": {"estado": "limpio" o "con_registros", "detalle": ""}
  },
  "recomendacion": "aprobar" o "rechazar" o "revisar_manual",
  "observacion": "",
  "confidence": <0-100>
}"""

TALENT_KEYWORDS_PROMPT = """Analiza este CV para una base de datos de talento.
Extrae hasta 10 keywords (habilidades técnicas, blandas, años de experiencia clave)
y un resumen profesional de 2 líneas.
Responde SOLO con JSON: {"keywords": [], "summary": ""}"""

# Returned when the model answer cannot be parsed; forces a human look
CUL_SAFE_DEFAULT = {
    "esDocumentoValido": False,
    "recomendacion": "revisar_manual",
    "observacion": "Error al procesar el documento. Por favor verifique manualmente.",
    "confidence": 0,
}


# ============================================================
# VALIDATION HELPERS
# ============================================================

def _clamp_score(value: Any) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (ValueError, TypeError):
        return 0


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v]


def validate_parsed_cv(data: dict) -> dict:
    """
    Validate and sanitize parsed CV data.
    Ensures all fields exist with correct types.
    """
    validated = {
        "nombre": str(data.get("nombre") or "").strip(),
        "email": data.get("email") or None,
        "telefono": data.get("telefono") or None,
        "direccion": data.get("direccion") or None,
        "resumen": str(data.get("resumen") or "").strip(),
        "experiencia": [],
        "educacion": [],
        "habilidades": _string_list(data.get("habilidades")),
        "idiomas": _string_list(data.get("idiomas")),
        "certificaciones": _string_list(data.get("certificaciones")),
    }

    for exp in data.get("experiencia") or []:
        if isinstance(exp, dict):
            validated["experiencia"].append({
                "empresa": str(exp.get("empresa") or "").strip(),
                "cargo": str(exp.get("cargo") or "").strip(),
                "desde": exp.get("desde"),
                "hasta": exp.get("hasta"),
                "descripcion": str(exp.get("descripcion") or "").strip(),
            })

    for edu in data.get("educacion") or []:
        if isinstance(edu, dict):
            validated["educacion"].append({
                "institucion": str(edu.get("institucion") or "").strip(),
                "titulo": str(edu.get("titulo") or "").strip(),
                "desde": edu.get("desde"),
                "hasta": edu.get("hasta"),
            })

    return validated


def derive_cul_status(analysis: dict) -> Dict[str, str]:
    """
    Map a CUL analysis onto (validationStatus, message, candidate culStatus).

    invalid document            -> rejected_invalid_doc / no_apto
    aprobar and confidence >= 80 -> approved_ai / apto
    rechazar                    -> rejected_ai / no_apto
    anything else               -> pending_review / manual_review
    """
    if not analysis.get("esDocumentoValido"):
        status = "rejected_invalid_doc"
        message = analysis.get("observacion") or "Documento no válido"
    elif analysis.get("recomendacion") == "aprobar" and _clamp_score(analysis.get("confidence")) >= CUL_APPROVE_CONFIDENCE:
        status = "approved_ai"
        message = "CUL verificado - Sin antecedentes registrados"
    elif analysis.get("recomendacion") == "rechazar":
        status = "rejected_ai"
        message = analysis.get("observacion") or "Antecedentes encontrados"
    else:
        status = "pending_review"
        message = "Requiere revisión manual - La IA no pudo determinar con certeza"

    cul_status = {
        "approved_ai": "apto",
        "rejected_ai": "no_apto",
        "rejected_invalid_doc": "no_apto",
        "pending_review": "manual_review",
    }[status]
    return {"validationStatus": status, "validationMessage": message, "culStatus": cul_status}


def cul_findings(analysis: dict) -> List[str]:
    """'{key}: {detalle}' for every antecedentes section with records."""
    antecedentes = analysis.get("antecedentes")
    if not isinstance(antecedentes, dict):
        return []
    return [
        f"{key}: {value.get('detalle', '')}"
        for key, value in antecedentes.items()
        if isinstance(value, dict) and value.get("estado") == "con_registros"
    ]


# ============================================================
# AI SERVICE
# ============================================================

class AIService:
    """
    Usage:
        service = AIService()
        result = service.analyze_cv_match(cv_text, jd_text)
    """

    def __init__(self, client: LLMClient = None):
        self.ai_client = client or get_llm_client()

    def _json_call(self, system_prompt: str, user_content: str, max_tokens: int = 4096,
                   temperature: float = 0.3) -> dict:
        """Text call that must answer with JSON; unparseable answers become a 502."""
        response = self.ai_client._call_api(system_prompt, user_content, max_tokens=max_tokens,
                                            temperature=temperature)
        try:
            return self.ai_client._extract_json(response)
        except ValueError as e:
            logger.error(f"Unparseable model response: {e}; raw={response[:200]!r}")
            raise ExternalServiceException("Could not parse AI response", {"raw": response[:500]})

    def analyze_cv_match(self, cv_content: str, jd_content: str) -> dict:
        if not cv_content or not jd_content:
            raise ValidationException("cvContent and jdContent are required")

        result = self._json_call(
            CV_MATCH_PROMPT,
            f"### Job Description:\n{jd_content}\n\n### CV del Candidato:\n{cv_content}"
        )
        result["matchScore"] = _clamp_score(result.get("matchScore"))
        return result

    def match_candidate(self, job_profile: dict, candidate: dict, kq_answers: Any = None) -> dict:
        if not job_profile or not candidate:
            raise ValidationException("Job profile and candidate data required")

        cv = candidate.get("cvText") or json.dumps(candidate.get("parsedData") or {}, ensure_ascii=False)
        user_content = (
            f"### PERFIL DE LA VACANTE:\n{json.dumps(job_profile, ensure_ascii=False, default=str)}\n\n"
            f"### DATOS DEL CANDIDATO:\n- Nombre: {candidate.get('nombre', '')}\n"
            f"- CV / Experiencia: {cv}\n"
            f"- Respuestas a Killer Questions: {json.dumps(kq_answers or {}, ensure_ascii=False)}"
        )
        result = self._json_call(MATCH_CANDIDATE_PROMPT, user_content)
        result["matchScore"] = _clamp_score(result.get("matchScore"))
        return result

    def generate_jd(self, titulo: str, descripcion_base: str, similares: List[str] = None) -> str:
        if not titulo:
            raise ValidationException("titulo is required")

        user_content = (
            f"### Título del Puesto:\n{titulo}\n\n"
            f"### Descripción Base:\n{descripcion_base or ''}\n\n"
            f"### JDs Exitosos Similares (referencia):\n" + "\n---\n".join(similares or [])
        )
        return self.ai_client._call_api(JD_PROMPT, user_content, max_tokens=8192, temperature=0.7,
                                         model=self.ai_client.text_model)

    def parse_cv(self, cv_text: str) -> dict:
        if not cv_text or not cv_text.strip():
            raise ValidationException("CV content required")
        return validate_parsed_cv(self._json_call(PARSE_CV_PROMPT, cv_text, temperature=0.1))

    def parse_cv_file(self, file_bytes: bytes, mime_type: str) -> dict:
        return validate_parsed_cv(self.ai_client._call_vision(PARSE_CV_PROMPT, file_bytes, mime_type))

    def analyze_dni(self, file_bytes: bytes, mime_type: str) -> dict:
        return self.ai_client._call_vision(DNI_PROMPT, file_bytes, mime_type)

    def analyze_cul(self, file_bytes: bytes, mime_type: str, candidate_dni: str = None,
                    today: Optional[datetime] = None) -> dict:
        """
        Extract a CUL with the vision models.
        Any failure returns CUL_SAFE_DEFAULT so the document goes to manual review.
        """
        if not file_bytes:
            raise ValidationException("No CUL document provided")

        # The prompt embeds literal JSON, so str.format cannot be used
        prompt = (
            CUL_PROMPT
            .replace("{candidate_dni}", candidate_dni or "No provisto")
            .replace("{today}", (today or datetime.utcnow()).strftime("%d/%m/%Y"))
        )
        try:
            return self.ai_client._call_vision(prompt, file_bytes, mime_type or "image/jpeg")
        except ExternalServiceException as e:
            logger.error(f"CUL analysis failed, falling back to manual review: {e}")
            return dict(CUL_SAFE_DEFAULT)

    def auto_validate_cul(self, candidate_id: Optional[str], file_bytes: bytes, mime_type: str) -> dict:
        """Analyze the CUL and, when a candidate is given, store the outcome on it."""
        candidates = CandidateService()
        candidate = candidates.get(candidate_id) if candidate_id else None

        analysis = self.analyze_cul(file_bytes, mime_type, (candidate or {}).get("dni"))
        outcome = derive_cul_status(analysis)

        if candidate:
            candidates.update(candidate_id, {
                "culStatus": outcome["culStatus"],
                "culValidationStatus": outcome["validationStatus"],
                "culAiObservation": outcome["validationMessage"],
                "culFechaEmision": analysis.get("fechaEmision"),
                "culDocumentoNumero": (analysis.get("datosPersonales") or {}).get("numeroDocumento"),
                "culDenunciasEncontradas": cul_findings(analysis),
                "culConfidence": _clamp_score(analysis.get("confidence")),
                "culValidatedAt": datetime.utcnow()
            })
            logger.info(f"CUL auto-validated for {candidate_id}: {outcome['validationStatus']}")

        return {
            "success": True,
            **outcome,
            "esDocumentoValido": bool(analysis.get("esDocumentoValido")),
            "datosPersonales": analysis.get("datosPersonales"),
            "antecedentes": analysis.get("antecedentes"),
            "confidence": _clamp_score(analysis.get("confidence")),
            "recomendacion": analysis.get("recomendacion"),
        }

    def extract_talent_keywords(self, file_bytes: bytes, mime_type: str) -> Dict[str, Any]:
        """Keywords + summary for the talent pool. Failures give empty values."""
        try:
            parsed = self.ai_client._call_vision(TALENT_KEYWORDS_PROMPT, file_bytes, mime_type)
        except ExternalServiceException as e:
            logger.warning(f"Talent keyword extraction failed: {e}")
            return {"keywords": [], "summary": ""}
        return {
            "keywords": _string_list(parsed.get("keywords"))[:10],
            "summary": str(parsed.get("summary") or ""),
        }
