"""LLM client JSON handling, vision fallback and the CUL / CV helpers."""

import json
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from openai import OpenAIError

from talent_portal.core.exceptions import ExternalServiceException, ValidationException
from talent_portal.services.ai_service import (
    AIService,
    CUL_SAFE_DEFAULT,
    cul_findings,
    derive_cul_status,
    validate_parsed_cv,
)
from talent_portal.services.candidate_service import CandidateService
from talent_portal.services.llm_client import LLMClient

VALID_CUL = {
    "esDocumentoValido": True,
    "datosPersonales": {"nombres": "Ana", "apellidos": "Quispe", "numeroDocumento": "70123456"},
    "fechaEmision": "01/10/2026",
    "antecedentes": {
        "policiales": {"estado": "limpio", "detalle": ""},
        "judiciales": {"estado": "limpio", "detalle": ""},
        "penales": {"estado": "limpio", "detalle": ""},
    },
    "recomendacion": "aprobar",
    "confidence": 92,
}


def completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def llm():
    client = LLMClient(api_key="test-key", base_url="https://llm.example.com/v1/")
    client.client = MagicMock()
    client.vision_models = ["vision-a", "vision-b"]
    return client


# ============================================================
# LLM CLIENT
# ============================================================

def test_extract_json(llm):
    assert llm._extract_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert llm._extract_json('```\n{"a": 2}```') == {"a": 2}
    assert llm._extract_json('Aquí está: {"a": {"b": 3}} espero ayude') == {"a": {"b": 3}}

    with pytest.raises(ValueError):
        llm._extract_json("sin json")


def test_call_api_wraps_provider_errors(llm):
    llm.client.chat.completions.create.side_effect = OpenAIError("quota")
    with pytest.raises(ExternalServiceException):
        llm._call_api("system", "user")


def test_vision_falls_back_to_next_model(llm):
    llm.client.chat.completions.create.side_effect = [
        OpenAIError("model overloaded"),
        completion('{"ok": true}'),
    ]

    assert llm._call_vision("prompt", b"bytes", "image/png") == {"ok": True}

    calls = llm.client.chat.completions.create.call_args_list
    assert [c.kwargs["model"] for c in calls] == ["vision-a", "vision-b"]
    image = calls[1].kwargs["messages"][0]["content"][1]["image_url"]["url"]
    assert image == "data:image/png;base64,Ynl0ZXM="


def test_vision_all_models_fail(llm):
    llm.client.chat.completions.create.return_value = completion("no json here")
    with pytest.raises(ExternalServiceException):
        llm._call_vision("prompt", b"bytes", "image/png")


# ============================================================
# HELPERS
# ============================================================

def test_derive_cul_status():
    assert derive_cul_status(VALID_CUL) == {
        "validationStatus": "approved_ai",
        "validationMessage": "CUL verificado - Sin antecedentes registrados",
        "culStatus": "apto",
    }
    assert derive_cul_status({**VALID_CUL, "confidence": 79})["culStatus"] == "manual_review"
    assert derive_cul_status({**VALID_CUL, "recomendacion": "rechazar"})["validationStatus"] == "rejected_ai"
    assert derive_cul_status({**VALID_CUL, "recomendacion": "revisar_manual"})["culStatus"] == "manual_review"

    invalid = derive_cul_status({"esDocumentoValido": False, "observacion": "Es un recibo"})
    assert invalid == {"validationStatus": "rejected_invalid_doc", "validationMessage": "Es un recibo",
                       "culStatus": "no_apto"}
    assert derive_cul_status(CUL_SAFE_DEFAULT)["culStatus"] == "no_apto"


def test_cul_findings():
    analysis = {"antecedentes": {
        "policiales": {"estado": "con_registros", "detalle": "Hurto 2019"},
        "judiciales": {"estado": "limpio"},
        "penales": "ilegible",
    }}
    assert cul_findings(analysis) == ["policiales: Hurto 2019"]
    assert cul_findings({}) == []


def test_validate_parsed_cv():
    data = validate_parsed_cv({
        "nombre": "  Ana ",
        "experiencia": [{"empresa": "Bembos", "cargo": "Cajera"}, "basura"],
        "habilidades": ["Caja", "", None, " Inventario "],
        "idiomas": "español",
    })
    assert data["nombre"] == "Ana"
    assert data["email"] is None
    assert data["experiencia"] == [{"empresa": "Bembos", "cargo": "Cajera", "desde": None, "hasta": None,
                                    "descripcion": ""}]
    assert data["habilidades"] == ["Caja", "Inventario"]
    assert data["idiomas"] == []


# ============================================================
# AI SERVICE
# ============================================================

def test_analyze_cv_match_clamps_score(llm):
    llm.client.chat.completions.create.return_value = completion('{"matchScore": 130, "summary_rationale": "x"}')
    result = AIService(llm).analyze_cv_match("cv", "jd")
    assert result["matchScore"] == 100

    with pytest.raises(ValidationException):
        AIService(llm).analyze_cv_match("", "jd")


def test_unparseable_text_answer_is_502(llm):
    llm.client.chat.completions.create.return_value = completion("lo siento")
    with pytest.raises(ExternalServiceException) as exc:
        AIService(llm).parse_cv("Ana Quispe, cajera")
    assert exc.value.extra["raw"] == "lo siento"


def test_generate_jd_uses_text_model(llm):
    llm.text_model = "writer-model"
    llm.client.chat.completions.create.return_value = completion("## Cajero\n...")

    assert AIService(llm).generate_jd("Cajero", "Atención en caja") == "## Cajero\n..."
    assert llm.client.chat.completions.create.call_args.kwargs["model"] == "writer-model"


def test_analyze_cul_prompt_and_safe_default(llm):
    llm.client.chat.completions.create.return_value = completion(json.dumps(VALID_CUL))
    result = AIService(llm).analyze_cul(b"pdf", "application/pdf", "70123456", today=datetime(2026, 10, 18))

    assert result == VALID_CUL
    prompt = llm.client.chat.completions.create.call_args.kwargs["messages"][0]["content"][0]["text"]
    assert "(70123456)" in prompt and "18/10/2026" in prompt
    assert '{"esDocumentoValido": false' in prompt
    assert "{candidate_dni}" not in prompt

    llm.client.chat.completions.create.side_effect = OpenAIError("down")
    assert AIService(llm).analyze_cul(b"pdf", "application/pdf") == CUL_SAFE_DEFAULT

    with pytest.raises(ValidationException):
        AIService(llm).analyze_cul(b"", "application/pdf")


def test_auto_validate_cul_updates_candidate(llm):
    candidate_id = CandidateService().insert({"nombre": "Ana", "dni": "70123456", "culStatus": "pending"})
    llm.client.chat.completions.create.return_value = completion(json.dumps({
        **VALID_CUL,
        "recomendacion": "rechazar",
        "antecedentes": {**VALID_CUL["antecedentes"],
                         "penales": {"estado": "con_registros", "detalle": "Exp. 123"}},
    }))

    result = AIService(llm).auto_validate_cul(candidate_id, b"pdf", "application/pdf")

    assert result["validationStatus"] == "rejected_ai"
    assert result["culStatus"] == "no_apto"
    assert result["confidence"] == 92

    candidate = CandidateService().get(candidate_id)
    assert candidate["culStatus"] == "no_apto"
    assert candidate["culDocumentoNumero"] == "70123456"
    assert candidate["culDenunciasEncontradas"] == ["penales: Exp. 123"]
    assert candidate["culFechaEmision"] == "01/10/2026"


def test_talent_keywords_never_fail(llm):
    llm.client.chat.completions.create.return_value = completion(
        json.dumps({"keywords": [f"k{i}" for i in range(15)], "summary": "Cocinero"})
    )
    tags = AIService(llm).extract_talent_keywords(b"pdf", "application/pdf")
    assert len(tags["keywords"]) == 10
    assert tags["summary"] == "Cocinero"

    llm.client.chat.completions.create.return_value = completion("???")
    assert AIService(llm).extract_talent_keywords(b"pdf", "application/pdf") == {"keywords": [], "summary": ""}


# ============================================================
# ROUTES
# ============================================================

def test_talent_routes(client, make_user, llm):
    _, headers = make_user("recruiter")
    llm.client.chat.completions.create.return_value = completion(json.dumps(VALID_CUL))

    with patch("talent_portal.services.ai_service.get_llm_client", return_value=llm):
        response = client.post("/api/talent/analyze-cul", headers=headers,
                               files={"file": ("cul.pdf", b"%PDF", "application/pdf")},
                               data={"candidateDni": "70123456"})
        assert response.status_code == 200
        body = response.json()
        assert body["culStatus"] == "apto"
        assert body["analysis"]["fechaEmision"] == "01/10/2026"

        llm.client.chat.completions.create.return_value = completion('{"nombre": "Ana", "habilidades": ["Caja"]}')
        parsed = client.post("/api/talent/parse-cv-file", headers=headers,
                             files={"file": ("cv.txt", "Ana Quispe\nCajera".encode(), "text/plain")}).json()
        assert parsed["filename"] == "cv.txt"
        assert parsed["data"]["habilidades"] == ["Caja"]

        unsupported = client.post("/api/talent/analyze-document", headers=headers,
                                  files={"file": ("dni.gif", b"GIF89a", "image/gif")})
        assert unsupported.status_code == 400


def test_talent_routes_require_staff(client):
    assert client.post("/api/talent/parse-cv", json={"cvText": "x"}).status_code in (401, 403)
