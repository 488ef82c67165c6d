import datetime
from decimal import Decimal

import pytest

from conftest import make_profile
from group_billing.domain.errors import RenderError
from group_billing.domain.models.invoice import Invoice, InvoiceLine, InvoiceType
from group_billing.infrastructure.external.reportlab_renderer import ReportLabInvoiceRenderer


@pytest.fixture
def invoice():
    line = InvoiceLine(
        description="Actividad Grupal: Pilates Suelo - 10/03/2026 (10:00-11:00) - Dra. Lopez",
        unit_price=Decimal("50.00"),
        vat_rate=Decimal("21"),
        irpf_rate=Decimal("15"),
        line_amount=Decimal("50.00"),
    )
    return Invoice(
        id=1,
        organization_id=1,
        invoice_number="F0001",
        invoice_type=InvoiceType.NORMAL,
        client_id=101,
        issue_date=datetime.date(2026, 3, 10),
        base_amount=Decimal("50.00"),
        vat_amount=Decimal("10.50"),
        irpf_amount=Decimal("7.50"),
        retention_amount=Decimal("0"),
        total_amount=Decimal("53.00"),
        notes="Cliente: Ana <Garcia> & Hijos\nServicio: Pilates - 50.00€",
        lines=[line],
    )


def test_renders_a_pdf(invoice, organization):
    content = ReportLabInvoiceRenderer().render(invoice, invoice.lines, organization, make_profile("Ana Garcia"))

    assert content.startswith(b"%PDF")
    assert len(content) > 1000


def test_renders_without_client_profile(invoice, organization):
    simplified = invoice.model_copy(update={"invoice_type": InvoiceType.SIMPLIFIED, "invoice_number": "SIMP0001"})
    assert ReportLabInvoiceRenderer().render(simplified, simplified.lines, organization, None).startswith(b"%PDF")


def test_reportlab_failures_become_render_errors(invoice, organization, monkeypatch):
    renderer = ReportLabInvoiceRenderer()

    def broken(*args):
        raise ValueError("fuente no encontrada")

    monkeypatch.setattr(renderer, "_build", broken)
    with pytest.raises(RenderError, match="F0001"):
        renderer.render(invoice, invoice.lines, organization, make_profile("Ana Garcia"))
