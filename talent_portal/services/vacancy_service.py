"""
Vacancy Service - public read side of RQs.

A vacancy is an RQ in 'recruiting' status. Everything here is read-only.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from pymongo.errors import PyMongoError

from talent_portal.core.exceptions import NotFoundException, GoneException
from talent_portal.services.mongo_service import (
    HoldingService,
    MarcaService,
    TiendaService,
    serialize_docs,
)
from talent_portal.services.rq_service import RQService
from talent_portal.services.geo import sort_vacancies_by_distance

logger = logging.getLogger(__name__)

RECRUITING = "recruiting"


def to_public_vacancy(rq: dict) -> dict:
    """RQ -> portal card, with defaults for loosely-typed fields."""
    return {
        "id": rq["id"],
        "rqNumber": rq.get("rqNumber") or "",
        "posicion": rq.get("posicion") or "",
        "modalidad": rq.get("modalidad") or "Full Time",
        "turno": rq.get("turno") or "",
        "tiendaNombre": rq.get("tiendaNombre") or "",
        "tiendaDistrito": rq.get("tiendaDistrito") or rq.get("distrito") or "",
        "tiendaId": rq.get("tiendaId") or "",
        "marcaNombre": rq.get("marcaNombre") or "",
        "marcaId": rq.get("marcaId") or "",
        "vacantes": rq.get("vacantes") or 1,
        "categoria": rq.get("categoria") or "operativo",
        "storeCoordinates": rq.get("storeCoordinates"),
        "createdAt": rq.get("createdAt") or datetime.utcnow(),
    }


class VacancyService:
    """
    Usage:
        service = VacancyService()
        service.aggregate_vacancies()
    """

    def __init__(self):
        self.rqs = RQService()

    def _recruiting_rqs(self, query: Dict[str, Any] = None) -> List[dict]:
        return serialize_docs(self.rqs.collection.find({**(query or {}), "status": RECRUITING}))

    def list_vacancies(self) -> List[dict]:
        vacancies = [to_public_vacancy(rq) for rq in self._recruiting_rqs()]
        vacancies.sort(key=lambda v: v["createdAt"], reverse=True)
        return vacancies

    def aggregate_vacancies(self) -> List[dict]:
        """
        Group recruiting RQs by posicion-turno-modalidad-tiendaId.
        Store coordinates are fetched once per tienda.
        """
        coordinates_cache: Dict[str, Optional[dict]] = {}
        tiendas = TiendaService()
        aggregated: Dict[str, dict] = {}

        for rq in self._recruiting_rqs():
            turno = rq.get("turno") or "Sin turno"
            modalidad = rq.get("modalidad") or "Full Time"
            tienda_id = rq.get("tiendaId") or ""
            key = f"{rq.get('posicion')}-{turno}-{modalidad}-{tienda_id}"

            if key not in aggregated:
                if tienda_id and tienda_id not in coordinates_cache:
                    try:
                        coordinates_cache[tienda_id] = tiendas.get_coordinates(tienda_id)
                    except PyMongoError as e:
                        logger.warning(f"Store coordinates lookup failed for {tienda_id}: {e}")
                        coordinates_cache[tienda_id] = None

                aggregated[key] = {
                    "posicion": rq.get("posicion") or "",
                    "turno": turno,
                    "modalidad": modalidad,
                    "marcaNombre": rq.get("marcaNombre") or "",
                    "marcaId": rq.get("marcaId") or "",
                    "tiendaNombre": rq.get("tiendaNombre") or "",
                    "tiendaDistrito": rq.get("tiendaDistrito") or rq.get("distrito") or "",
                    "tiendaId": tienda_id,
                    "rqIds": [],
                    "totalVacantes": 0,
                    "storeCoordinates": coordinates_cache.get(tienda_id)
                }

            aggregated[key]["rqIds"].append(rq["id"])
            aggregated[key]["totalVacantes"] += rq.get("vacantes") or 1

        vacancies = list(aggregated.values())
        logger.info(f"Aggregated vacancies: {len(vacancies)} unique positions")
        return vacancies

    def count_vacancies(self) -> Dict[str, int]:
        rqs = self._recruiting_rqs()
        return {"count": sum(rq.get("vacantes") or 1 for rq in rqs), "rqCount": len(rqs)}

    def get_vacancy(self, rq_id: str) -> dict:
        rq = self.rqs.find_by_id(rq_id)
        if not rq:
            raise NotFoundException("Vacante no encontrada")
        if rq.get("status") != RECRUITING:
            raise GoneException("Esta vacante ya no está disponible")

        vacancy = to_public_vacancy(rq)
        vacancy.update({
            "description": rq.get("descripcion") or rq.get("description") or "",
            "requirements": rq.get("requisitos") or rq.get("requirements") or [],
            "jobProfileId": rq.get("jobProfileId"),
        })
        return vacancy

    def vacancies_by_marca(self, holding_slug: str = "ngr") -> Dict[str, Any]:
        """Per-marca vacancy counts for the careers landing page."""
        holding = HoldingService().find_by_id_or_slug(holding_slug) if holding_slug else None
        query = {"holdingId": holding["id"]} if holding else {}

        by_marca: Dict[str, dict] = {}
        total = 0
        for rq in self._recruiting_rqs(query):
            marca_id = rq.get("marcaId") or "unknown"
            vacantes = rq.get("vacantes") or 1
            entry = by_marca.setdefault(marca_id, {
                "marcaId": marca_id,
                "marcaNombre": rq.get("marcaNombre") or "Sin marca",
                "vacantesCount": 0
            })
            entry["vacantesCount"] += vacantes
            total += vacantes

        marca_service = MarcaService()
        marcas = []
        for entry in by_marca.values():
            marca = marca_service.find_by_id(entry["marcaId"]) or {}
            marcas.append({**entry, "logo": marca.get("logo") or "", "photo": marca.get("photo") or ""})

        marcas.sort(key=lambda m: m["vacantesCount"], reverse=True)
        return {"holding": holding_slug, "marcas": marcas, "totalVacantes": total}

    def nearby_vacancies(self, lat: float, lng: float) -> Dict[str, List[dict]]:
        return sort_vacancies_by_distance(self.aggregate_vacancies(), {"lat": lat, "lng": lng})
