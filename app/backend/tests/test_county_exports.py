from __future__ import annotations

import io

import pytest
from fastapi.testclient import TestClient
from pypdf import PdfReader
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from harmonydesk.core.auth import ensure_user_principal
from harmonydesk.core.config import get_settings
from harmonydesk.models.entities import InvoiceStatus, User


def _headers(subject: str, email: str, display_name: str) -> dict[str, str]:
    return {
        "X-AUTH-SUBJECT": subject,
        "X-AUTH-EMAIL": email,
        "X-AUTH-DISPLAY-NAME": display_name,
    }


OWNER_HEADERS = _headers("subject-mediator-one", "mediator.one@test.local", "Mediator One")
OTHER_HEADERS = _headers("subject-mediator-two", "mediator.two@test.local", "Mediator Two")


def _pdf_text(content: bytes) -> list[str]:
    reader = PdfReader(io.BytesIO(content))
    return [page.extract_text() for page in reader.pages]


def test_csv_export_for_single_sent_invoice(client: TestClient, owner: User, seed_county, seed_invoice) -> None:
    county = seed_county(owner)
    seed_invoice(owner, county=county)

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"King-report.csv\"; filename*=UTF-8''King-report.csv"
    )
    assert response.content == (
        b'"Case Number","Matter","Bill To","Hours","Rate","Total"\n'
        b'"A1","Smith v. Turner","Reed","3.50","250.00","875.00"'
    )


def test_export_only_includes_sent_invoices_of_that_county_newest_first(
    client: TestClient, owner: User, seed_county, seed_invoice
) -> None:
    county = seed_county(owner)
    elsewhere = seed_county(owner, name="Pierce")
    seed_invoice(owner, county=county, case_number="OLD", age_minutes=30)
    seed_invoice(owner, county=county, case_number="NEW", age_minutes=5)
    seed_invoice(owner, county=county, case_number="DRAFT", status=InvoiceStatus.DRAFT)
    seed_invoice(owner, county=county, case_number="QUEUED", status=InvoiceStatus.FOR_COUNTY_REPORT)
    seed_invoice(owner, county=elsewhere, case_number="PIERCE")
    seed_invoice(owner, county=None, case_number="UNASSIGNED")

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    assert response.status_code == 200
    lines = response.text.split("\n")
    assert [line.split(",")[0] for line in lines[1:]] == ['"NEW"', '"OLD"']


def test_missing_numbers_export_as_zero(client: TestClient, owner: User, seed_county, seed_invoice) -> None:
    county = seed_county(owner)
    seed_invoice(owner, county=county, hours=None, rate=None)

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    assert response.status_code == 200
    assert response.text.endswith('"Reed","0.00","0.00","0.00"')


def test_format_override_wins_over_stored_csv(client: TestClient, owner: User, seed_county, seed_invoice) -> None:
    county = seed_county(owner)
    seed_invoice(owner, county=county)

    response = client.get(f"/api/v1/counties/{county.id}/export?format=pdf", headers=OWNER_HEADERS)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"King-report.pdf\"; filename*=UTF-8''King-report.pdf"
    )
    first_page = _pdf_text(response.content)[0]
    assert "King - Month End Report" in first_page
    assert "Format: PDF (grouped by case)" not in first_page


def test_grouped_county_pdf_carries_format_label(client: TestClient, owner: User, seed_county, seed_invoice) -> None:
    county = seed_county(owner, report_format="pdf_grouped_by_case")
    seed_invoice(owner, county=county)

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "Format: PDF (grouped by case)" in _pdf_text(response.content)[0]


def test_legacy_and_unknown_stored_formats(client: TestClient, owner: User, seed_county) -> None:
    legacy = seed_county(owner, name="Snohomish", report_format="pdf")
    unknown = seed_county(owner, name="Yakima", report_format="xlsx_summary")

    legacy_response = client.get(f"/api/v1/counties/{legacy.id}/export", headers=OWNER_HEADERS)
    unknown_response = client.get(f"/api/v1/counties/{unknown.id}/export", headers=OWNER_HEADERS)

    assert legacy_response.headers["content-type"] == "application/pdf"
    assert unknown_response.status_code == 200
    assert unknown_response.headers["content-type"].startswith("text/csv")


def test_long_report_spans_multiple_pages(client: TestClient, owner: User, seed_county, seed_invoice) -> None:
    county = seed_county(owner, report_format="pdf_line_per_invoice")
    for index in range(40):
        seed_invoice(owner, county=county, case_number=f"K-{index:03d}", age_minutes=index)

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    pages = _pdf_text(response.content)
    assert len(pages) == 2
    assert "Case #" in pages[1]
    assert "Total invoices: 40" in pages[0]


def test_preview_returns_totals_and_first_rows(client: TestClient, owner: User, seed_county, seed_invoice) -> None:
    county = seed_county(owner)
    for index in range(30):
        seed_invoice(owner, county=county, case_number=f"P-{index:03d}", hours="1", rate="100", age_minutes=index)

    response = client.get(f"/api/v1/counties/{county.id}/export?preview=true", headers=OWNER_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["county"] == {"id": str(county.id), "name": "King", "reportFormat": "csv_line_per_invoice"}
    assert body["exportKind"] == "csv"
    assert body["totals"] == {"cases": 30, "hours": 30.0, "amount": 3000.0}
    assert len(body["invoices"]) == 25
    first = body["invoices"][0]
    assert first["caseNumber"] == "P-000"
    assert first["total"] == 100.0
    assert set(first) == {"id", "caseNumber", "matter", "contact", "hours", "rate", "total", "createdAt"}


def test_preview_reports_override_kind(client: TestClient, owner: User, seed_county) -> None:
    county = seed_county(owner)

    response = client.get(f"/api/v1/counties/{county.id}/export?preview=1&format=pdf", headers=OWNER_HEADERS)

    assert response.status_code == 200
    assert response.json()["exportKind"] == "pdf"
    assert response.json()["invoices"] == []


def test_preview_limit_is_configurable(
    client: TestClient, owner: User, seed_county, seed_invoice, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("REPORT_PREVIEW_LIMIT", "2")
    get_settings.cache_clear()
    county = seed_county(owner)
    for index in range(3):
        seed_invoice(owner, county=county, case_number=f"L-{index}", age_minutes=index)

    response = client.get(f"/api/v1/counties/{county.id}/export?preview=true", headers=OWNER_HEADERS)

    assert [row["caseNumber"] for row in response.json()["invoices"]] == ["L-0", "L-1"]
    assert response.json()["totals"]["cases"] == 3


def test_county_of_another_owner_is_not_found(
    client: TestClient, db_session: Session, owner: User, seed_county, seed_invoice
) -> None:
    county = seed_county(owner)
    seed_invoice(owner, county=county, matter="Confidential matter")
    ensure_user_principal(
        db_session,
        auth_subject="subject-mediator-two",
        email="mediator.two@test.local",
        display_name="Mediator Two",
    )

    export = client.get(f"/api/v1/counties/{county.id}/export", headers=OTHER_HEADERS)
    preview = client.get(f"/api/v1/counties/{county.id}/export?preview=true", headers=OTHER_HEADERS)

    for response in (export, preview):
        assert response.status_code == 404
        assert response.json() == {"detail": "County not found."}
        assert "Confidential" not in response.text


def test_unknown_county_is_not_found(client: TestClient) -> None:
    response = client.get(
        "/api/v1/counties/00000000-0000-0000-0000-000000000000/export",
        headers=OWNER_HEADERS,
    )

    assert response.status_code == 404


def test_storage_failure_while_loading_invoices_returns_500(
    client: TestClient,
    db_session: Session,
    owner: User,
    seed_county,
    seed_invoice,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    county = seed_county(owner)
    seed_invoice(owner, county=county)

    def failing_scalars(*args, **kwargs):
        raise OperationalError("SELECT invoices", {}, Exception("connection reset"))

    monkeypatch.setattr(db_session, "scalars", failing_scalars)

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to load invoices for export."}
    assert "Smith" not in response.text


def test_export_requires_identity_when_fallback_disabled(
    client: TestClient, owner: User, seed_county, monkeypatch: pytest.MonkeyPatch
) -> None:
    county = seed_county(owner)
    monkeypatch.setenv("AUTH_ALLOW_DEV_PRINCIPAL", "false")
    get_settings.cache_clear()

    response = client.get(f"/api/v1/counties/{county.id}/export")

    assert response.status_code == 401


def test_unrecognized_override_falls_through_to_stored_pdf(
    client: TestClient, owner: User, seed_county, seed_invoice
) -> None:
    county = seed_county(owner, report_format="pdf_line_per_invoice")
    seed_invoice(owner, county=county)

    for override in ("docx", "x" * 65):
        response = client.get(
            f"/api/v1/counties/{county.id}/export",
            params={"format": override},
            headers=OWNER_HEADERS,
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"


def test_empty_csv_download_is_header_only(client: TestClient, owner: User, seed_county) -> None:
    county = seed_county(owner)

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    assert response.status_code == 200
    assert response.content == b'"Case Number","Matter","Bill To","Hours","Rate","Total"'


def test_empty_pdf_download_shows_zero_totals(client: TestClient, owner: User, seed_county) -> None:
    county = seed_county(owner, report_format="pdf_line_per_invoice")

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    assert response.status_code == 200
    pages = _pdf_text(response.content)
    assert len(pages) == 1
    assert "Total invoices: 0" in pages[0]
    assert "Total hours: 0.00" in pages[0]
    assert "Total amount: $0.00" in pages[0]


def test_storage_failure_while_loading_county_returns_500(
    client: TestClient,
    db_session: Session,
    owner: User,
    seed_county,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    county = seed_county(owner)
    original_scalar = db_session.scalar

    def failing_county_scalar(statement, *args, **kwargs):
        if "counties" in str(statement):
            raise OperationalError("SELECT counties", {}, Exception("connection reset"))
        return original_scalar(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "scalar", failing_county_scalar)

    for path in (f"/api/v1/counties/{county.id}/export", f"/api/v1/counties/{county.id}/export?preview=true"):
        response = client.get(path, headers=OWNER_HEADERS)

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to load county."}


def test_non_ascii_county_name_gets_ascii_fallback_filename(client: TestClient, owner: User, seed_county) -> None:
    county = seed_county(owner, name="Łódź")

    response = client.get(f"/api/v1/counties/{county.id}/export", headers=OWNER_HEADERS)

    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"odz-report.csv\"; filename*=UTF-8''%C5%81%C3%B3d%C5%BA-report.csv"
    )
