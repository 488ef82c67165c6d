# group_billing/infrastructure/external/reportlab_renderer.py
import io
import logging
from decimal import Decimal
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from group_billing.domain.errors import RenderError
from group_billing.domain.models.billing import BillingProfile, Organization
from group_billing.domain.models.invoice import Invoice, InvoiceLine, InvoiceType
from group_billing.domain.ports.document_renderer import DocumentRenderer

INVOICE_TITLES = {
    InvoiceType.NORMAL: "FACTURA",
    InvoiceType.SIMPLIFIED: "FACTURA SIMPLIFICADA",
    InvoiceType.RECTIFYING: "FACTURA RECTIFICATIVA",
}


def _money(value) -> str:
    return f"{Decimal(value):.2f} €"


def _percent(value) -> str:
    return f"{Decimal(value):g} %"


def _party_block(name, tax_id, address, postal_code, city, province) -> str:
    location = " ".join(part for part in (postal_code, city) if part)
    if province:
        location = f"{location}, {province}" if location else province
    parts = [f"<b>{escape(name or '')}</b>"]
    if tax_id:
        parts.append(f"CIF/NIF: {escape(tax_id)}")
    if address:
        parts.append(escape(address))
    if location:
        parts.append(escape(location))
    return "<br/>".join(parts)


class ReportLabInvoiceRenderer(DocumentRenderer):
    """Genera el PDF de una factura con ReportLab (A4, datos fiscales, líneas y totales)."""

    brand_color = colors.HexColor("#1E3A8A")
    dark_gray = colors.HexColor("#374151")
    light_gray = colors.HexColor("#F3F4F6")
    margin = 1.8 * cm

    def render(self, invoice: Invoice, lines: List[InvoiceLine], organization: Organization,
               client: BillingProfile) -> bytes:
        try:
            return self._build(invoice, lines, organization, client or BillingProfile())
        except Exception as e:
            raise RenderError(f"No se pudo generar el PDF de la factura {invoice.invoice_number}: {e}") from e

    def _build(self, invoice: Invoice, lines: List[InvoiceLine], organization: Organization,
               client: BillingProfile) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"Factura {invoice.invoice_number}",
            author=organization.name,
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "InvoiceTitle",
            parent=styles["Heading1"],
            fontSize=20,
            textColor=self.brand_color,
            spaceAfter=6,
        )
        body_style = ParagraphStyle(
            "InvoiceBody",
            parent=styles["Normal"],
            fontSize=9,
            leading=12,
            textColor=self.dark_gray,
        )

        story = []
        invoice_type = InvoiceType.parse(invoice.invoice_type)
        story.append(Paragraph(INVOICE_TITLES[invoice_type], title_style))
        story.append(Paragraph(
            f"Nº {escape(invoice.invoice_number)} · Fecha de emisión: {invoice.issue_date.strftime('%d/%m/%Y')}",
            body_style,
        ))
        story.append(Spacer(1, 0.6 * cm))

        parties = Table(
            [[
                Paragraph(_party_block(organization.name, organization.tax_id, organization.address,
                                       organization.postal_code, organization.city, organization.province),
                          body_style),
                Paragraph(_party_block(client.name, client.tax_id, client.address,
                                       client.postal_code, client.city, client.province), body_style),
            ]],
            colWidths=[8.5 * cm, 8.5 * cm],
        )
        parties.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("BOX", (1, 0), (1, 0), 0.5, colors.grey),
            ("LEFTPADDING", (0, 0), (-1, -1), 6),
            ("TOPPADDING", (0, 0), (-1, -1), 6),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ]))
        story.append(parties)
        story.append(Spacer(1, 0.8 * cm))

        table_data = [["Descripción", "Cant.", "Precio", "Dto.", "IVA", "Importe"]]
        for line in lines:
            table_data.append([
                Paragraph(escape(line.description), body_style),
                f"{Decimal(line.quantity):g}",
                _money(line.unit_price),
                _percent(line.discount_percentage),
                _percent(line.vat_rate),
                _money(line.line_amount),
            ])
        lines_table = Table(table_data, colWidths=[7.4 * cm, 1.4 * cm, 2.3 * cm, 1.6 * cm, 1.6 * cm, 2.7 * cm],
                            repeatRows=1)
        lines_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 9),
            ("FONT", (1, 1), (-1, -1), "Helvetica", 9),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ]))
        story.append(lines_table)
        story.append(Spacer(1, 0.6 * cm))

        totals_data = [["Base imponible", _money(invoice.base_amount)],
                       ["IVA", _money(invoice.vat_amount)]]
        if invoice.irpf_amount:
            totals_data.append(["IRPF", f"-{_money(invoice.irpf_amount)}"])
        if invoice.retention_amount:
            totals_data.append(["Retención", f"-{_money(invoice.retention_amount)}"])
        totals_data.append(["TOTAL", _money(invoice.total_amount)])
        totals = Table(totals_data, colWidths=[4 * cm, 3 * cm], hAlign="RIGHT")
        totals.setStyle(TableStyle([
            ("FONT", (0, 0), (-1, -1), "Helvetica", 9),
            ("FONT", (0, -1), (-1, -1), "Helvetica-Bold", 11),
            ("ALIGN", (1, 0), (1, -1), "RIGHT"),
            ("LINEABOVE", (0, -1), (-1, -1), 0.8, self.brand_color),
        ]))
        story.append(totals)

        if invoice.notes:
            story.append(Spacer(1, 0.8 * cm))
            story.append(Paragraph(escape(invoice.notes).replace("\n", "<br/>"), body_style))

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logging.info(f"PDF de la factura {invoice.invoice_number} generado ({len(pdf_bytes)} bytes).")
        return pdf_bytes
