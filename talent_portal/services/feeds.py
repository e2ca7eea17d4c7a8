"""
Job Feeds - Indeed XML, LinkedIn XML and schema.org JobPosting JSON-LD.

Published jobs are RQs in 'recruiting' status belonging to the holding.
Each RQ is first reduced to a feed job:

    {id, titulo, descripcion, requisitos, beneficios, tipoContrato,
     workplace, salarioMin, salarioMax, ciudad, createdAt, ...}

and the three builders below only read that shape.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from talent_portal.db.mongodb import get_collection
from talent_portal.services.mongo_service import serialize_docs

logger = logging.getLogger(__name__)

JOB_VALIDITY_DAYS = 60
DEFAULT_CITY = "Lima"
COUNTRY = "PE"
CURRENCY = "PEN"

INDEED_JOB_TYPES = {
    "tiempo_completo": "fulltime",
    "medio_tiempo": "parttime",
    "temporal": "contract",
    "practicas": "internship",
    "freelance": "contract",
}

LINKEDIN_EMPLOYMENT_TYPES = {
    "tiempo_completo": "full-time",
    "medio_tiempo": "part-time",
    "temporal": "contract",
    "practicas": "internship",
    "freelance": "contract",
}

LINKEDIN_WORKPLACE_TYPES = {
    "remoto": "remote",
    "presencial": "on-site",
    "hibrido": "hybrid",
}

SCHEMA_EMPLOYMENT_TYPES = {
    "tiempo_completo": "FULL_TIME",
    "medio_tiempo": "PART_TIME",
    "temporal": "TEMPORARY",
    "practicas": "INTERN",
    "freelance": "CONTRACTOR",
}

XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}


def escape_xml(value: Any) -> str:
    return "".join(XML_ESCAPES.get(ch, ch) for ch in str(value if value is not None else ""))


def _cdata(value: Any) -> str:
    # "]]>" cannot appear inside a CDATA section
    text = str(value if value is not None else "").replace("]]>", "]]]]><![CDATA[>")
    return f"<![CDATA[{text}]]>"


def _iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


# ============================================================
# RQ -> FEED JOB
# ============================================================

def _amount(value):
    """Whole salaries stored as floats (1200.0) are published as 1200."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def rq_to_job(rq: dict) -> Dict[str, Any]:
    """Reduce a serialized RQ to the fields the feeds publish."""
    tipo_contrato = rq.get("tipoContrato")
    if not tipo_contrato:
        tipo_contrato = "medio_tiempo" if rq.get("modalidad") == "Part Time" else "tiempo_completo"

    requisitos = rq.get("requisitos") or []
    if isinstance(requisitos, str):
        requisitos = [line for line in requisitos.splitlines() if line.strip()]

    beneficios = rq.get("beneficios") or []
    if isinstance(beneficios, str):
        beneficios = [line for line in beneficios.splitlines() if line.strip()]

    return {
        "id": rq["id"],
        "titulo": rq.get("posicion") or rq.get("titulo") or "",
        "descripcion": rq.get("descripcion") or rq.get("description") or "",
        "requisitos": requisitos,
        "beneficios": beneficios,
        "tipoContrato": tipo_contrato,
        "workplace": rq.get("workplace") or "presencial",
        "salarioMin": _amount(rq.get("salarioMin") or rq.get("salario")),
        "salarioMax": _amount(rq.get("salarioMax")),
        "mostrarSalario": bool(rq.get("mostrarSalario")),
        "ciudad": rq.get("tiendaDistrito") or rq.get("distrito") or DEFAULT_CITY,
        "marcaNombre": rq.get("marcaNombre") or "",
        "createdAt": rq.get("createdAt") or datetime.utcnow(),
    }


def published_jobs(holding_id: str) -> List[dict]:
    """Recruiting RQs of the holding as feed jobs, newest first."""
    rqs = serialize_docs(
        get_collection("rqs").find({"holdingId": holding_id, "status": "recruiting"}).sort("createdAt", -1)
    )
    return [rq_to_job(rq) for rq in rqs]


def _full_description(job: dict) -> str:
    parts = [job["descripcion"]]
    if job["requisitos"]:
        parts.append("Requisitos:\n" + "\n".join(f"- {r}" for r in job["requisitos"]))
    if job["beneficios"]:
        parts.append("Beneficios:\n" + "\n".join(f"- {b}" for b in job["beneficios"]))
    return "\n\n".join(p for p in parts if p)


def _job_url(base_url: str, job: dict) -> str:
    return f"{base_url.rstrip('/')}/careers/{job['id']}"


# ============================================================
# INDEED
# ============================================================

def _indeed_job(job: dict, company: str, base_url: str) -> str:
    lines = [
        "  <job>",
        f"    <title>{_cdata(job['titulo'])}</title>",
        f"    <date>{_cdata(job['createdAt'].strftime('%Y-%m-%d'))}</date>",
        f"    <referencenumber>{_cdata(job['id'])}</referencenumber>",
        f"    <url>{_cdata(_job_url(base_url, job))}</url>",
        f"    <company>{_cdata(company)}</company>",
        f"    <city>{_cdata(job['ciudad'])}</city>",
        f"    <state>{_cdata(DEFAULT_CITY)}</state>",
        f"    <country>{_cdata(COUNTRY)}</country>",
        f"    <description>{_cdata(_full_description(job))}</description>",
        f"    <jobtype>{_cdata(INDEED_JOB_TYPES.get(job['tipoContrato'], 'fulltime'))}</jobtype>",
    ]

    if job["salarioMin"]:
        salary = f"S/{job['salarioMin']:,}"
        if job["salarioMax"]:
            salary += f" - S/{job['salarioMax']:,}"
        lines.append(f"    <salary>{_cdata(salary + ' mensual')}</salary>")

    if job["workplace"] == "remoto":
        lines.append("    <remotetype>Fully Remote</remotetype>")

    lines.append("  </job>")
    return "\n".join(lines)


def build_indeed_xml(holding: dict, jobs: List[dict], base_url: str,
                     now: Optional[datetime] = None) -> str:
    """Indeed XML feed for one holding."""
    now = now or datetime.utcnow()
    company = holding.get("nombre") or ""
    body = "\n".join(_indeed_job(job, company, base_url) for job in jobs)

    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        "<source>\n"
        f"  <publisher>{escape_xml(company)}</publisher>\n"
        f"  <publisherurl>{escape_xml(base_url)}</publisherurl>\n"
        f"  <lastBuildDate>{_iso(now)}</lastBuildDate>\n"
        f"{body}\n"
        "</source>"
    )


# ============================================================
# LINKEDIN
# ============================================================

def _linkedin_job(job: dict, holding: dict, base_url: str) -> str:
    workplace = LINKEDIN_WORKPLACE_TYPES.get(job["workplace"], "on-site")
    hashtag = workplace.replace("-", "")
    description = f"{_full_description(job)}\n\n#LI-{hashtag}"
    posted_at = job["createdAt"]

    lines = [
        "  <job>",
        f"    <partnerJobId>{escape_xml(job['id'])}</partnerJobId>",
        f"    <company>{escape_xml(holding.get('nombre') or '')}</company>",
    ]
    if holding.get("linkedinCompanyId"):
        lines.append(f"    <companyId>{escape_xml(holding['linkedinCompanyId'])}</companyId>")

    lines += [
        f"    <title>{escape_xml(job['titulo'])}</title>",
        f"    <description>{_cdata(description)}</description>",
        "    <location>",
        f"      <city>{escape_xml(job['ciudad'])}</city>",
        f"      <country>{COUNTRY}</country>",
        "    </location>",
        f"    <workplaceTypes>{workplace}</workplaceTypes>",
        f"    <employmentType>{LINKEDIN_EMPLOYMENT_TYPES.get(job['tipoContrato'], 'full-time')}</employmentType>",
        f"    <applyUrl>{escape_xml(_job_url(base_url, job))}</applyUrl>",
        f"    <postedAt>{_iso(posted_at)}</postedAt>",
        f"    <expireAt>{_iso(posted_at + timedelta(days=JOB_VALIDITY_DAYS))}</expireAt>",
    ]

    if job["salarioMin"]:
        lines += [
            "    <salary>",
            f"      <currencyCode>{CURRENCY}</currencyCode>",
            f"      <minValue>{job['salarioMin']}</minValue>",
        ]
        if job["salarioMax"]:
            lines.append(f"      <maxValue>{job['salarioMax']}</maxValue>")
        lines += [
            "      <period>MONTHLY</period>",
            "    </salary>",
        ]

    if holding.get("recruiterEmail"):
        lines.append(f"    <jobPosterEmail>{escape_xml(holding['recruiterEmail'])}</jobPosterEmail>")

    lines.append("  </job>")
    return "\n".join(lines)


def build_linkedin_xml(holding: dict, jobs: List[dict], base_url: str,
                       now: Optional[datetime] = None) -> str:
    """LinkedIn Limited Listings XML feed for one holding."""
    now = now or datetime.utcnow()
    body = "\n".join(_linkedin_job(job, holding, base_url) for job in jobs)

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<source>\n"
        f"  <publisherUrl>{escape_xml(base_url)}</publisherUrl>\n"
        f"  <publisher>{escape_xml(holding.get('nombre') or '')}</publisher>\n"
        f"  <lastBuildDate>{_iso(now)}</lastBuildDate>\n"
        f"{body}\n"
        "</source>"
    )


# ============================================================
# JSON-LD
# ============================================================

def build_job_posting_jsonld(job: dict, company: str, logo_url: str = None) -> Dict[str, Any]:
    """schema.org JobPosting for search engine structured data."""
    posted_at = job["createdAt"]
    organization = {"@type": "Organization", "name": company}
    if logo_url:
        organization["logo"] = logo_url

    posting: Dict[str, Any] = {
        "@context": "https://schema.org/",
        "@type": "JobPosting",
        "title": job["titulo"],
        "description": _full_description(job),
        "datePosted": posted_at.strftime("%Y-%m-%d"),
        "validThrough": (posted_at + timedelta(days=JOB_VALIDITY_DAYS)).strftime("%Y-%m-%d"),
        "employmentType": SCHEMA_EMPLOYMENT_TYPES.get(job["tipoContrato"], "FULL_TIME"),
        "hiringOrganization": organization,
        "jobLocation": {
            "@type": "Place",
            "address": {
                "@type": "PostalAddress",
                "addressLocality": job.get("ciudad") or DEFAULT_CITY,
                "addressCountry": COUNTRY,
            },
        },
        "directApply": True,
        "identifier": {
            "@type": "PropertyValue",
            "name": company,
            "value": job["id"],
        },
    }

    if job["workplace"] == "remoto":
        posting["jobLocationType"] = "TELECOMMUTE"

    if job.get("mostrarSalario") and job.get("salarioMin"):
        if job.get("salarioMax"):
            value = {
                "@type": "QuantitativeValue",
                "minValue": job["salarioMin"],
                "maxValue": job["salarioMax"],
                "unitText": "MONTH",
            }
        else:
            value = {
                "@type": "QuantitativeValue",
                "value": job["salarioMin"],
                "unitText": "MONTH",
            }
        posting["baseSalary"] = {"@type": "MonetaryAmount", "currency": CURRENCY, "value": value}

    return posting
