"""Indeed / LinkedIn XML feeds and schema.org JobPosting."""

import xml.etree.ElementTree as ET
from datetime import datetime

from talent_portal.core.config import get_settings
from talent_portal.services.feeds import (
    build_indeed_xml,
    build_job_posting_jsonld,
    build_linkedin_xml,
    escape_xml,
    rq_to_job,
)
from talent_portal.services.rq_service import RQService

POSTED = datetime(2026, 1, 15, 8, 30, 0, 250000)
NOW = datetime(2026, 2, 1, 0, 0, 0)

HOLDING = {"id": "h1", "nombre": "NGR & Co", "recruiterEmail": "rrhh@ngr.pe", "linkedinCompanyId": "12345"}


def make_job(**overrides):
    rq = {
        "id": "rq1",
        "posicion": "Cajero <Senior>",
        "descripcion": "Atención en caja",
        "requisitos": "Secundaria completa\n\nDisponibilidad inmediata",
        "salario": 1200,
        "tiendaDistrito": "Miraflores",
        "createdAt": POSTED,
    }
    rq.update(overrides)
    return rq_to_job(rq)


def test_escape_xml():
    assert escape_xml("""<a href="x">Tom & Jerry's</a>""") == (
        "&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&apos;s&lt;/a&gt;"
    )
    assert escape_xml(None) == ""
    assert escape_xml(42) == "42"


def test_rq_to_job_defaults():
    job = rq_to_job({"id": "rq1", "modalidad": "Part Time"})
    assert job["tipoContrato"] == "medio_tiempo"
    assert job["workplace"] == "presencial"
    assert job["ciudad"] == "Lima"
    assert job["requisitos"] == []
    assert job["mostrarSalario"] is False

    job = make_job()
    assert job["tipoContrato"] == "tiempo_completo"
    assert job["requisitos"] == ["Secundaria completa", "Disponibilidad inmediata"]
    assert job["salarioMin"] == 1200


def test_indeed_xml():
    jobs = [make_job(), make_job(id="rq2", workplace="remoto", salarioMin=1000, salarioMax=1500,
                                tipoContrato="practicas")]
    root = ET.fromstring(build_indeed_xml(HOLDING, jobs, "https://jobs.example.com", now=NOW))

    assert root.tag == "source"
    assert root.findtext("publisher") == "NGR & Co"
    assert root.findtext("lastBuildDate") == "2026-02-01T00:00:00.000Z"

    first, second = root.findall("job")
    assert first.findtext("title") == "Cajero <Senior>"
    assert first.findtext("date") == "2026-01-15"
    assert first.findtext("url") == "https://jobs.example.com/careers/rq1"
    assert first.findtext("city") == "Miraflores"
    assert first.findtext("country") == "PE"
    assert first.findtext("jobtype") == "fulltime"
    assert first.findtext("salary") == "S/1,200 mensual"
    assert "- Secundaria completa" in first.findtext("description")
    assert first.find("remotetype") is None

    assert second.findtext("jobtype") == "internship"
    assert second.findtext("salary") == "S/1,000 - S/1,500 mensual"
    assert second.findtext("remotetype") == "Fully Remote"


def test_indeed_cdata_cannot_be_broken():
    job = make_job(descripcion="evil ]]> <tag>")
    root = ET.fromstring(build_indeed_xml(HOLDING, [job], "https://jobs.example.com", now=NOW))
    assert root.find("job").findtext("description").startswith("evil ]]> <tag>")


def test_linkedin_xml():
    jobs = [make_job(), make_job(id="rq2", workplace="hibrido", salarioMin=None, salario=None)]
    root = ET.fromstring(build_linkedin_xml(HOLDING, jobs, "https://jobs.example.com", now=NOW))

    first, second = root.findall("job")
    assert first.findtext("partnerJobId") == "rq1"
    assert first.findtext("companyId") == "12345"
    assert first.findtext("title") == "Cajero <Senior>"
    assert first.findtext("workplaceTypes") == "on-site"
    assert first.findtext("employmentType") == "full-time"
    assert first.findtext("postedAt") == "2026-01-15T08:30:00.250Z"
    assert first.findtext("expireAt") == "2026-03-16T08:30:00.250Z"
    assert first.findtext("description").endswith("#LI-onsite")
    assert first.find("salary").findtext("currencyCode") == "PEN"
    assert first.find("salary").findtext("minValue") == "1200"
    assert first.find("salary").find("maxValue") is None
    assert first.findtext("jobPosterEmail") == "rrhh@ngr.pe"
    assert first.find("location").findtext("city") == "Miraflores"

    assert second.findtext("workplaceTypes") == "hybrid"
    assert second.findtext("description").endswith("#LI-hybrid")
    assert second.find("salary") is None


def test_float_salaries_render_as_whole_amounts():
    jobs = [make_job(salario=1200.0, salarioMax=1500.0), make_job(id="rq2", salario=1025.5)]

    indeed = ET.fromstring(build_indeed_xml(HOLDING, jobs, "https://jobs.example.com", now=NOW))
    first, second = indeed.findall("job")
    assert first.findtext("salary") == "S/1,200 - S/1,500 mensual"
    assert second.findtext("salary") == "S/1,025.5 mensual"

    linkedin = ET.fromstring(build_linkedin_xml(HOLDING, jobs[:1], "https://jobs.example.com", now=NOW))
    salary = linkedin.find("job").find("salary")
    assert salary.findtext("minValue") == "1200"
    assert salary.findtext("maxValue") == "1500"


def test_job_posting_salary_rules():
    posting = build_job_posting_jsonld(make_job(), "NGR")
    assert "baseSalary" not in posting
    assert posting["datePosted"] == "2026-01-15"
    assert posting["validThrough"] == "2026-03-16"
    assert posting["employmentType"] == "FULL_TIME"
    assert "logo" not in posting["hiringOrganization"]

    posting = build_job_posting_jsonld(make_job(mostrarSalario=True), "NGR", "https://cdn/logo.png")
    assert posting["baseSalary"]["value"] == {"@type": "QuantitativeValue", "value": 1200, "unitText": "MONTH"}
    assert posting["hiringOrganization"]["logo"] == "https://cdn/logo.png"

    posting = build_job_posting_jsonld(make_job(mostrarSalario=True, salarioMax=1500, workplace="remoto"), "NGR")
    assert posting["baseSalary"]["value"]["minValue"] == 1200
    assert posting["baseSalary"]["value"]["maxValue"] == 1500
    assert posting["jobLocationType"] == "TELECOMMUTE"


# ============================================================
# ROUTES
# ============================================================

def test_feed_routes(client, make_user, job_profile, tenant):
    sm, _ = make_user("store_manager")
    service = RQService()
    rq_ids = service.create_rq_instances(job_profile, tenant["tienda"], tenant["marca"], 2, sm)
    service.update(rq_ids[0], {"status": "recruiting"})

    base_url = get_settings().public_base_url
    for path in ("/api/feeds/indeed/ngr", f"/api/feeds/linkedin/{tenant['holding']['id']}"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert response.headers["cache-control"] == "public, max-age=3600"

        jobs = ET.fromstring(response.text).findall("job")
        assert len(jobs) == 1
        assert rq_ids[0] in response.text
        assert base_url.rstrip("/") in response.text

    missing = client.get("/api/feeds/indeed/unknown")
    assert missing.status_code == 404
    assert missing.text == "Holding not found"


def test_job_posting_route(client, make_user, job_profile, tenant):
    sm, _ = make_user("store_manager")
    rq_id = RQService().create_rq_instances(job_profile, tenant["tienda"], tenant["marca"], 1, sm)[0]

    posting = client.get(f"/api/feeds/jobposting/{rq_id}").json()
    assert posting["@type"] == "JobPosting"
    assert posting["title"] == "Cajero"
    assert posting["hiringOrganization"]["name"] == "NGR"
    assert posting["identifier"]["value"] == rq_id

    assert client.get("/api/feeds/jobposting/64b7f0c2a1b2c3d4e5f60718").status_code == 404
