# group_billing/domain/ports/invoice_repository.py
from abc import ABC, abstractmethod
from typing import Iterable, List

from group_billing.domain.models.invoice import ExistingInvoice, Invoice, InvoiceLine, InvoiceType


class InvoiceRepository(ABC):
    """
    Contrato de persistencia de facturas. Las facturas se escriben una sola vez.
    """

    @abstractmethod
    def insert_invoice(self, invoice: Invoice, lines: List[InvoiceLine]) -> int:
        """
        Guarda la factura y sus líneas en una única transacción.
        Retorna el ID de la factura creada. Lanza PersistenceError si falla.
        """
        pass

    @abstractmethod
    def find_invoices_by_activity_and_clients(self, organization_id: int, activity_id: int,
                                              client_ids: Iterable[int]) -> List[ExistingInvoice]:
        """Facturas ya emitidas para la actividad y esos clientes, ordenadas por fecha de creación."""
        pass

    @abstractmethod
    def number_exists(self, organization_id: int, invoice_type: InvoiceType, invoice_number: str) -> bool:
        pass

    @abstractmethod
    def attach_document_url(self, invoice_id: int, url: str) -> None:
        """Único cambio permitido sobre una factura ya creada."""
        pass
