# group_billing/domain/ports/document_renderer.py
from abc import ABC, abstractmethod
from typing import List

from group_billing.domain.models.billing import BillingProfile, Organization
from group_billing.domain.models.invoice import Invoice, InvoiceLine


class DocumentRenderer(ABC):
    """Puerto para generar el PDF de una factura ya persistida."""
    @abstractmethod
    def render(self, invoice: Invoice, lines: List[InvoiceLine], organization: Organization,
               client: BillingProfile) -> bytes:
        """Retorna los bytes del PDF. Lanza RenderError si no se puede generar."""
        pass
