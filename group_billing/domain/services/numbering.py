# group_billing/domain/services/numbering.py
from datetime import date
from typing import Optional

from group_billing.domain.models.billing import Organization
from group_billing.domain.models.invoice import InvoiceType

# Columna del contador de la organización para cada tipo de factura
COUNTER_FIELDS = {
    InvoiceType.NORMAL: "last_invoice_number",
    InvoiceType.SIMPLIFIED: "last_simplified_invoice_number",
    InvoiceType.RECTIFYING: "last_rectificative_invoice_number",
}


def counter_field(invoice_type: InvoiceType) -> str:
    return COUNTER_FIELDS[InvoiceType.parse(invoice_type)]


def format_invoice_number(organization: Organization, invoice_type: InvoiceType, number: int,
                          today: Optional[date] = None) -> str:
    """
    Formatea el número según el tipo:
    normal -> {prefijo}{0001}, simplificada -> SIMP{0001}, rectificativa -> REC{año}{0001}.
    """
    padded = str(number).zfill(organization.invoice_padding_length or 0)
    invoice_type = InvoiceType.parse(invoice_type)
    if invoice_type == InvoiceType.RECTIFYING:
        year = (today or date.today()).year
        return f"REC{year}{padded}"
    if invoice_type == InvoiceType.SIMPLIFIED:
        return f"SIMP{padded}"
    return f"{organization.invoice_prefix or ''}{padded}"
