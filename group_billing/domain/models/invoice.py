# group_billing/domain/models/invoice.py
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InvoiceType(str, Enum):
    NORMAL = "normal"
    SIMPLIFIED = "simplificada"
    RECTIFYING = "rectificativa"

    @classmethod
    def parse(cls, value) -> "InvoiceType":
        """
        Normaliza el tipo de factura recibido desde el frontend.
        Cualquier valor desconocido se trata como factura normal.
        """
        if isinstance(value, cls):
            return value
        cleaned = str(value).lower().strip()
        if cleaned == "normal":
            return cls.NORMAL
        if cleaned in ("rectificativa", "rectificative"):
            return cls.RECTIFYING
        if cleaned in ("simplificada", "simplified", "simple"):
            return cls.SIMPLIFIED
        logging.warning(f"Tipo de factura desconocido '{value}', se usará 'normal'.")
        return cls.NORMAL


class InvoiceLine(BaseModel):
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal
    discount_percentage: Decimal = Decimal("0")
    vat_rate: Decimal = Decimal("0")
    irpf_rate: Decimal = Decimal("0")
    retention_rate: Decimal = Decimal("0")
    line_amount: Decimal
    professional_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class Invoice(BaseModel):
    """
    Factura emitida por el pipeline. Una vez persistida no se modifica,
    salvo para adjuntar la URL del PDF (best-effort).
    """
    id: Optional[int] = None
    organization_id: int
    invoice_number: str
    invoice_type: InvoiceType = InvoiceType.NORMAL
    client_id: int
    group_activity_id: Optional[int] = None
    issue_date: date
    status: str = "sent"

    base_amount: Decimal
    vat_amount: Decimal
    irpf_amount: Decimal
    retention_amount: Decimal
    discount_amount: Decimal = Decimal("0")
    total_amount: Decimal

    notes: str = ""
    pdf_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    lines: List[InvoiceLine] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ExistingInvoice(BaseModel):
    """Resultado de la consulta de deduplicación por (actividad, cliente)."""
    client_id: int
    invoice_id: int
    invoice_number: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
