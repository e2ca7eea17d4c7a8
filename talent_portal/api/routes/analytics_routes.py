"""
Analytics Routes - recruitment funnel metrics.

GET /analytics/dashboard - Volume, per-marca funnels, sources and drop-offs
GET /analytics/holding - Funnel and time metrics per marca
GET /analytics/marca/{marcaId} - Funnel and time metrics for one marca
GET /analytics/export.csv - Per-marca funnel as CSV

Dates are ISO 8601 query parameters (start, end).
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from talent_portal.core.auth import require_staff
from talent_portal.services.mongo_service import MarcaService
from talent_portal.services.analytics_service import (
    calculate_marca_metrics,
    calculate_holding_metrics,
    dashboard,
    export_funnel_csv,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


def _scope_holding(user: dict, holding_id: Optional[str]) -> Optional[str]:
    # Only super_admin may look across holdings
    if user["role"] == "super_admin":
        return holding_id
    return user.get("holdingId")


@router.get("/dashboard")
async def get_dashboard(
    holdingId: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    user: dict = Depends(require_staff)
):
    return dashboard(_scope_holding(user, holdingId), start, end)


@router.get("/holding")
async def holding_metrics(
    holdingId: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    user: dict = Depends(require_staff)
):
    return {"marcas": calculate_holding_metrics(start, end, _scope_holding(user, holdingId))}


@router.get("/marca/{marca_id}")
async def marca_metrics(
    marca_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    user: dict = Depends(require_staff)
):
    return {"marcaId": marca_id, **calculate_marca_metrics(marca_id, start, end)}


@router.get("/export.csv")
async def export_csv(
    holdingId: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    user: dict = Depends(require_staff)
):
    metrics = calculate_holding_metrics(start, end, _scope_holding(user, holdingId))
    marcas = MarcaService()
    names = {}
    for marca_id in metrics:
        marca = marcas.find_by_id(marca_id)
        names[marca_id] = marca.get("nombre", "") if marca else ""

    logger.info(f"Funnel export: {len(metrics)} marcas for {user['email']}")
    return Response(
        content=export_funnel_csv(metrics, names),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="funnel.csv"'}
    )
