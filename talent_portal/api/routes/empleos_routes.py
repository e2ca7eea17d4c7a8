"""
Careers Landing Routes

GET /empleos/vacancies-by-marca?holding= - Vacancy counts per marca
"""

from fastapi import APIRouter, Query

from talent_portal.services.vacancy_service import VacancyService

router = APIRouter(prefix="/empleos", tags=["Careers"])


@router.get("/vacancies-by-marca")
async def vacancies_by_marca(holding: str = Query("ngr")):
    return VacancyService().vacancies_by_marca(holding)
