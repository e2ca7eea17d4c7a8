"""
Analytics Service - recruitment funnel and dashboard metrics.

Funnel per marca:
    RQs created -> applications -> approved by store manager
    -> CUL apto -> hired

Rates are percentages; a zero denominator gives 0.
"""

import csv
import io
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from talent_portal.db.mongodb import get_collection
from talent_portal.services.mongo_service import serialize_docs

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

SOURCE_LABELS = {
    "portal_publico": "Portal de Empleos",
    "portal_talent_pool": "Banco de Talento",
    "whatsapp": "WhatsApp Directo",
    "link": "Link de Postulación",
    "referral": "Referido",
    "facebook": "Facebook",
    "linkedin": "LinkedIn",
    "indeed": "Indeed",
    "computrabajo": "CompuTrabajo",
    "volante": "Volante/Poster",
    "other": "Otros",
}

# Legacy free-text sources mapped onto the canonical keys
SOURCE_ALIASES = {
    "Bolsa de Trabajo": "link",
    "Redes Sociales": "facebook",
    "Referido": "referral",
    "Anuncio en Tienda": "volante",
}


def _pct(numerator: float, denominator: float) -> float:
    return (numerator / denominator) * 100 if denominator > 0 else 0.0


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored dates are naive UTC; aware query values are converted to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def _in_range(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def _is_hired(app: dict) -> bool:
    return app.get("hiringStatus") == "hired"


# ============================================================
# FUNNEL METRICS PER MARCA
# ============================================================

def compute_funnel(rqs: List[dict], applications: List[dict]) -> Dict[str, Any]:
    """Funnel counts and conversion rates from already-filtered data."""
    sm_approved = sum(1 for app in applications if app.get("status") == "approved")
    cul_aptos = sum(1 for app in applications if app.get("cul_resultado") == "apto")
    hired = sum(1 for app in applications if _is_hired(app))

    return {
        "rqsCreated": len(rqs),
        "candidatesInvited": 0,
        "applicationsCompleted": len(applications),
        "smApproved": sm_approved,
        "culAptos": cul_aptos,
        "hired": hired,
        "invitedToApplied": 0.0,
        "approvedToApto": _pct(cul_aptos, sm_approved),
        "aptoToHired": _pct(hired, cul_aptos),
        "overallConversion": _pct(hired, len(rqs)),
    }


def compute_time_metrics(rqs: List[dict], applications: List[dict]) -> Dict[str, float]:
    time_metrics = {
        "avgRQToFirstInvite": 0,
        "avgApprovalToApto": 0,
        "avgAptoToHired": 0,
        "avgRQToHired": 0,
    }

    apto_to_hired = [
        _days_between(app["cul_fecha"], app["hiredAt"])
        for app in applications
        if _is_hired(app) and app.get("cul_fecha") and app.get("hiredAt")
    ]
    if apto_to_hired:
        time_metrics["avgAptoToHired"] = sum(apto_to_hired) / len(apto_to_hired)

    # Simplified: hire dates are measured against the mean RQ creation time
    hired_dates = [app["hiredAt"] for app in applications if _is_hired(app) and app.get("hiredAt")]
    rq_dates = [rq["createdAt"] for rq in rqs if rq.get("createdAt")]
    if hired_dates and rq_dates:
        mean_rq_ts = sum(d.timestamp() for d in rq_dates) / len(rq_dates)
        total = sum(max(0, (d.timestamp() - mean_rq_ts) / SECONDS_PER_DAY) for d in hired_dates)
        time_metrics["avgRQToHired"] = total / len(hired_dates)

    return time_metrics


def _applications_for_marca(marca_id: str) -> List[dict]:
    applications = []
    for candidate in get_collection("candidates").find({"applications.marcaId": marca_id}, {"applications": 1}):
        applications.extend(app for app in candidate.get("applications", []) if app.get("marcaId") == marca_id)
    return applications


def calculate_marca_metrics(marca_id: str, start: Optional[datetime] = None,
                            end: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Funnel, time metrics and period for one marca.
    Without `start` every RQ and application counts.
    """
    start = to_naive_utc(start)
    end = to_naive_utc(end) or datetime.utcnow()

    rq_query: Dict[str, Any] = {"marcaId": marca_id}
    if start:
        rq_query["createdAt"] = {"$gte": start, "$lte": end}
    rqs = list(get_collection("rqs").find(rq_query))

    applications = _applications_for_marca(marca_id)
    if start:
        applications = [app for app in applications if _in_range(app.get("appliedAt"), start, end)]

    return {
        "funnel": compute_funnel(rqs, applications),
        "time": compute_time_metrics(rqs, applications),
        "period": {"start": start, "end": end},
    }


def calculate_holding_metrics(start: Optional[datetime] = None, end: Optional[datetime] = None,
                              holding_id: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """calculate_marca_metrics for every marca that has RQs."""
    query = {"holdingId": holding_id} if holding_id else {}
    marca_ids = sorted({m for m in get_collection("rqs").distinct("marcaId", query) if m})
    return {marca_id: calculate_marca_metrics(marca_id, start, end) for marca_id in marca_ids}


# ============================================================
# DASHBOARD BREAKDOWNS
# ============================================================

def volume_metrics(rqs: List[dict]) -> Dict[str, int]:
    """Cancelled RQs are reported but excluded from totals."""
    active = sum(1 for rq in rqs if rq.get("status") in ("active", "recruiting"))
    filled = sum(1 for rq in rqs if rq.get("status") == "filled")
    cancelled = sum(1 for rq in rqs if rq.get("status") == "cancelled")
    return {
        "totalRQs": active + filled,
        "openRQs": active,
        "filledRQs": filled,
        "cancelledRQs": cancelled,
        "totalPositionsRequested": sum(rq.get("vacantes") or 1 for rq in rqs if rq.get("status") != "cancelled"),
        "totalPositionsFilled": sum(rq.get("filledCount") or 0 for rq in rqs if rq.get("status") == "filled"),
    }


def source_breakdown(candidates: List[dict]) -> List[Dict[str, Any]]:
    """Candidates per acquisition source with each source's hire rate."""
    counts: Dict[str, Dict[str, int]] = {}
    for candidate in candidates:
        raw = candidate.get("source") or candidate.get("origenConvocatoria") or "other"
        source = SOURCE_ALIASES.get(raw, raw).lower()
        entry = counts.setdefault(source, {"total": 0, "hired": 0})
        entry["total"] += 1
        if any(app.get("hiredStatus") == "hired" for app in candidate.get("applications") or []):
            entry["hired"] += 1

    total = len(candidates)
    rows = [
        {
            "source": source,
            "label": SOURCE_LABELS.get(source, source),
            "count": data["total"],
            "percentage": _pct(data["total"], total),
            "hireRate": _pct(data["hired"], data["total"]),
        }
        for source, data in counts.items()
    ]
    return sorted(rows, key=lambda r: r["count"], reverse=True)


def dropoff_breakdown(candidates: List[dict]) -> List[Dict[str, Any]]:
    """Where applications stopped: counts by application status, rejected-like first."""
    counts: Dict[str, int] = {}
    for candidate in candidates:
        for app in candidate.get("applications") or []:
            status = app.get("status") or "unknown"
            counts[status] = counts.get(status, 0) + 1

    total = sum(counts.values())
    rows = [
        {"status": status, "count": count, "percentage": _pct(count, total)}
        for status, count in counts.items()
    ]
    return sorted(rows, key=lambda r: r["count"], reverse=True)


def dashboard(holding_id: Optional[str] = None, start: Optional[datetime] = None,
              end: Optional[datetime] = None) -> Dict[str, Any]:
    start, end = to_naive_utc(start), to_naive_utc(end)
    rq_query: Dict[str, Any] = {"holdingId": holding_id} if holding_id else {}
    if start:
        rq_query["createdAt"] = {"$gte": start, "$lte": end or datetime.utcnow()}
    rqs = serialize_docs(get_collection("rqs").find(rq_query))

    marca_ids = sorted({rq.get("marcaId") for rq in rqs if rq.get("marcaId")})
    candidate_query = {"applications.marcaId": {"$in": marca_ids}} if holding_id else {}
    candidates = serialize_docs(get_collection("candidates").find(candidate_query))

    return {
        "volume": volume_metrics(rqs),
        "marcas": calculate_holding_metrics(start, end, holding_id),
        "sources": source_breakdown(candidates),
        "dropoffs": dropoff_breakdown(candidates),
    }


# ============================================================
# CSV EXPORT
# ============================================================

FUNNEL_COLUMNS = [
    "rqsCreated", "applicationsCompleted", "smApproved", "culAptos", "hired",
    "approvedToApto", "aptoToHired", "overallConversion",
]


def export_funnel_csv(metrics_by_marca: Dict[str, Dict[str, Any]], marca_names: Dict[str, str] = None) -> str:
    """One row per marca. Percentages with two decimals, days with one."""
    marca_names = marca_names or {}
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["marcaId", "marca"] + FUNNEL_COLUMNS + ["avgAptoToHired", "avgRQToHired"])

    for marca_id, metrics in metrics_by_marca.items():
        funnel = metrics["funnel"]
        row = [marca_id, marca_names.get(marca_id, "")]
        for column in FUNNEL_COLUMNS:
            value = funnel[column]
            row.append(f"{value:.2f}" if isinstance(value, float) else value)
        row.append(f"{metrics['time']['avgAptoToHired']:.1f}")
        row.append(f"{metrics['time']['avgRQToHired']:.1f}")
        writer.writerow(row)

    return output.getvalue()
