"""PDF report downloads."""
import pytest

from quickmed.services.report_service import REPORT_BUILDERS, build_inventory_report

REPORTS = "/api/v1/reports"


@pytest.mark.parametrize("name", sorted(REPORT_BUILDERS))
def test_every_report_is_a_pdf(client, admin_headers, customer, make_product, make_batch, make_order, name):
    product = make_product(name="Losartan <50mg>")
    make_batch(product, quantity=12)
    make_order(customer, [(product, 2)])

    resp = client.get(f"{REPORTS}/{name}", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert f"{name}-report.pdf" in resp.headers["content-disposition"]
    assert resp.content.startswith(b"%PDF")


def test_empty_database_still_renders(db):
    assert build_inventory_report(db).getvalue().startswith(b"%PDF")


def test_unknown_report_and_non_admin(client, admin_headers, customer_headers):
    assert client.get(f"{REPORTS}/payroll", headers=admin_headers).status_code == 404
    assert client.get(f"{REPORTS}/orders", headers=customer_headers).status_code == 403
