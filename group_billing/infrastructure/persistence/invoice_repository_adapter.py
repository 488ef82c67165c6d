# group_billing/infrastructure/persistence/invoice_repository_adapter.py
from typing import Iterable, List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from group_billing.domain.errors import PersistenceError
from group_billing.domain.models.invoice import ExistingInvoice, Invoice, InvoiceLine, InvoiceType
from group_billing.domain.ports.invoice_repository import InvoiceRepository
from .models import Factura, LineaFactura


class PostgreSQLInvoiceRepository(InvoiceRepository):
    def __init__(self, db: Session):
        self.db = db

    def insert_invoice(self, invoice: Invoice, lines: List[InvoiceLine]) -> int:
        """
        Inserta la factura y sus líneas y confirma ambas juntas:
        nunca queda una factura sin líneas.
        """
        db_factura = Factura(
            organization_id=invoice.organization_id,
            invoice_number=invoice.invoice_number,
            invoice_type=InvoiceType.parse(invoice.invoice_type).value,
            client_id=invoice.client_id,
            group_activity_id=invoice.group_activity_id,
            issue_date=invoice.issue_date,
            status=invoice.status,
            base_amount=invoice.base_amount,
            vat_amount=invoice.vat_amount,
            irpf_amount=invoice.irpf_amount,
            retention_amount=invoice.retention_amount,
            discount_amount=invoice.discount_amount,
            total_amount=invoice.total_amount,
            notes=invoice.notes,
            pdf_url=invoice.pdf_url,
            created_by=invoice.created_by,
        )
        db_factura.lines = [LineaFactura(**line.model_dump()) for line in lines]
        try:
            self.db.add(db_factura)
            self.db.flush()
            invoice_id = db_factura.id
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"No se pudo guardar la factura {invoice.invoice_number}: {e}") from e
        return invoice_id

    def find_invoices_by_activity_and_clients(self, organization_id: int, activity_id: int,
                                              client_ids: Iterable[int]) -> List[ExistingInvoice]:
        client_ids = list(client_ids)
        if not client_ids:
            return []
        try:
            rows = (
                self.db.query(Factura)
                .filter(
                    Factura.organization_id == organization_id,
                    Factura.group_activity_id == activity_id,
                    Factura.client_id.in_(client_ids),
                )
                .order_by(Factura.created_at.asc(), Factura.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"No se pudieron consultar las facturas de la actividad {activity_id}: {e}") from e
        return [
            ExistingInvoice(client_id=row.client_id, invoice_id=row.id,
                            invoice_number=row.invoice_number, created_at=row.created_at)
            for row in rows
        ]

    def number_exists(self, organization_id: int, invoice_type: InvoiceType, invoice_number: str) -> bool:
        try:
            found = (
                self.db.query(Factura.id)
                .filter(
                    Factura.organization_id == organization_id,
                    Factura.invoice_type == InvoiceType.parse(invoice_type).value,
                    Factura.invoice_number == invoice_number,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"No se pudo comprobar el número {invoice_number}: {e}") from e
        return found is not None

    def attach_document_url(self, invoice_id: int, url: str) -> None:
        try:
            updated = (
                self.db.query(Factura)
                .filter(Factura.id == invoice_id)
                .update({Factura.pdf_url: url}, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"No se pudo guardar la URL del PDF de la factura {invoice_id}: {e}") from e
        if updated != 1:
            raise PersistenceError(f"No se encontró la factura {invoice_id}")
