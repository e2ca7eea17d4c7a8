"""Killer question validation and job profile routes."""

from talent_portal.services.killer_questions import get_suggested_kqs, validate_kq_answers

QUESTIONS = [
    {"id": "carnet", "type": "boolean", "requiredAnswer": "yes", "isRequired": True},
    {"id": "turno", "type": "select", "options": ["Mañana", "Noche"], "requiredAnswer": "Noche",
     "isRequired": False},
    {"id": "comentario", "type": "text", "isRequired": True},
    {"id": "opcional", "type": "boolean", "isRequired": False},
]


def test_all_answers_correct_passes():
    result = validate_kq_answers(QUESTIONS, {"carnet": "yes", "turno": "Noche", "comentario": "hola"})
    assert result == {"passed": True, "failedQuestions": []}


def test_wrong_and_missing_answers_fail_once_each_in_order():
    result = validate_kq_answers(QUESTIONS, {"carnet": "no", "turno": "Mañana"})
    assert result["passed"] is False
    assert result["failedQuestions"] == ["carnet", "turno", "comentario"]


def test_missing_optional_answer_with_required_answer_fails():
    result = validate_kq_answers(QUESTIONS, {"carnet": "yes", "comentario": "x"})
    assert result["failedQuestions"] == ["turno"]


def test_no_questions_passes():
    assert validate_kq_answers([], {})["passed"] is True


def test_suggestions_are_copies_and_default_to_operativo():
    first = get_suggested_kqs("gerencial")
    first[0]["question"] = "changed"
    assert get_suggested_kqs("gerencial")[0]["question"] != "changed"
    assert get_suggested_kqs("unknown") == get_suggested_kqs("operativo")


def test_job_profile_crud_and_kqs(client, make_user, tenant):
    _, headers = make_user("admin", holding_id=tenant["holding"]["id"])

    response = client.post("/api/job-profiles", headers=headers, json={
        "posicion": "Cocinero",
        "turno": "Noche",
        "marcaIds": [tenant["marca"]["id"]],
        "killerQuestions": [{"id": "carnet", "question": "¿Carnet?", "requiredAnswer": "yes"}]
    })
    assert response.status_code == 201
    profile_id = response.json()["id"]

    listed = client.get("/api/job-profiles", headers=headers, params={"marcaId": tenant["marca"]["id"]}).json()
    assert [p["posicion"] for p in listed["profiles"]] == ["Cocinero"]

    kqs = [{"id": "exp", "question": "¿Experiencia?", "type": "boolean", "requiredAnswer": "yes"}]
    response = client.put(f"/api/job-profiles/{profile_id}/killer-questions", headers=headers,
                          json={"killerQuestions": kqs})
    assert response.status_code == 200

    stored = client.get(f"/api/job-profiles/{profile_id}/killer-questions", headers=headers).json()
    assert [q["id"] for q in stored["killerQuestions"]] == ["exp"]

    # Public check used by the portal
    result = client.post(f"/api/job-profiles/{profile_id}/validate-kq", json={"answers": {"exp": "no"}}).json()
    assert result == {"passed": False, "failedQuestions": ["exp"]}

    assert client.delete(f"/api/job-profiles/{profile_id}", headers=headers).status_code == 200
    assert client.get(f"/api/job-profiles/{profile_id}", headers=headers).json()["isActive"] is False


def test_job_profile_write_requires_admin(client, make_user):
    _, headers = make_user("store_manager")
    response = client.post("/api/job-profiles", headers=headers, json={"posicion": "Cajero"})
    assert response.status_code == 403
    assert response.json()["success"] is False


def test_unknown_profile_is_404(client, make_user):
    _, headers = make_user("admin")
    response = client.get("/api/job-profiles/64b7f0c2a1b2c3d4e5f60718", headers=headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Job profile not found"
