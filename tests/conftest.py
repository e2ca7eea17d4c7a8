"""
Shared fixtures: an in-memory MongoDB (mongomock), the FastAPI test
client and helpers to create staff users with tokens.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from talent_portal.core.auth import create_access_token, hash_password
from talent_portal.core.rate_limit import rate_limiter
from talent_portal.db.mongodb import set_mongo_db
from talent_portal.main import app
from talent_portal.services.mongo_service import (
    UserService,
    HoldingService,
    MarcaService,
    TiendaService,
)
from talent_portal.services.killer_questions import JobProfileService


@pytest.fixture(autouse=True)
def mongo_db():
    db = mongomock.MongoClient().db
    set_mongo_db(db)
    rate_limiter.reset()
    yield db
    rate_limiter.reset()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user():
    """Create a staff user and return (user_dict, auth_headers)."""
    def _make(role="admin", email=None, holding_id=None, **fields):
        email = email or f"{role}@example.com"
        user_id = UserService().create(
            email, hash_password("password123"), role,
            displayName=role.title(), holdingId=holding_id, **fields
        )
        token = create_access_token({"sub": user_id, "role": role})
        user = {
            "user_id": user_id,
            "email": email,
            "role": role,
            "displayName": role.title(),
            "holdingId": holding_id,
            **fields
        }
        return user, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def tenant():
    """One holding with one marca and one tienda (with coordinates)."""
    holding_id = HoldingService().create({"nombre": "NGR", "slug": "ngr", "recruiterEmail": "rrhh@ngr.pe"})
    marca_id = MarcaService().create({"holdingId": holding_id, "nombre": "Bembos", "slug": "bembos",
                                      "logo": "https://cdn.example.com/bembos.png"})
    tienda_id = TiendaService().create({
        "holdingId": holding_id,
        "marcaId": marca_id,
        "nombre": "Bembos Larco",
        "distrito": "Miraflores",
        "direccion": "Av. Larco 123",
        "coordinates": {"lat": -12.1219, "lng": -77.0297}
    })
    return {
        "holding": HoldingService().get(holding_id),
        "marca": MarcaService().get(marca_id),
        "tienda": TiendaService().get(tienda_id),
    }


@pytest.fixture
def job_profile(tenant):
    profile_id = JobProfileService().create({
        "posicion": "Cajero",
        "modalidad": "Full Time",
        "turno": "Mañana",
        "categoria": "operativo",
        "descripcion": "Atención en caja",
        "requisitos": "Secundaria completa\nDisponibilidad inmediata",
        "salario": 1200,
        "holdingId": tenant["holding"]["id"],
        "marcaIds": [tenant["marca"]["id"]],
        "killerQuestions": [
            {"id": "carnet_sanidad", "question": "¿Carnet de sanidad?", "type": "boolean",
             "requiredAnswer": "yes", "isRequired": True}
        ]
    }, "seed")
    return JobProfileService().get(profile_id)
