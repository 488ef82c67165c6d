# group_billing/infrastructure/persistence/counter_store_adapter.py
import logging
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from group_billing.domain.errors import AllocationError, CounterConflictError
from group_billing.domain.models.invoice import InvoiceType
from group_billing.domain.ports.counter_store import CounterStore
from group_billing.domain.services.numbering import counter_field
from .models import Organizacion


class PostgreSQLCounterStore(CounterStore):
    """
    Contador de facturas guardado en la fila de la organización.
    El incremento es un UPDATE condicional (compare-and-swap): solo se
    escribe si el valor no cambió desde la lectura, y se confirma en el acto.
    """
    def __init__(self, db: Session):
        self.db = db

    def read_counter(self, organization_id: int, invoice_type: InvoiceType) -> int:
        column = getattr(Organizacion, counter_field(invoice_type))
        try:
            value = self.db.query(column).filter(Organizacion.id == organization_id).scalar()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise AllocationError(f"No se pudo leer el contador de la organización {organization_id}: {e}") from e
        if value is None:
            raise AllocationError(f"No se encontró la organización {organization_id}")
        return value

    def atomic_increment(self, organization_id: int, invoice_type: InvoiceType,
                         expected: Optional[int] = None, new_value: Optional[int] = None) -> int:
        field = counter_field(invoice_type)
        column = getattr(Organizacion, field)
        current = expected if expected is not None else self.read_counter(organization_id, invoice_type)
        target = new_value if new_value is not None else current + 1
        if target <= current:
            raise AllocationError(f"El contador {field} solo puede avanzar ({current} -> {target})")
        try:
            updated = (
                self.db.query(Organizacion)
                .filter(Organizacion.id == organization_id, column == current)
                .update({column: target}, synchronize_session=False)
            )
            if updated != 1:
                self.db.rollback()
                raise CounterConflictError(
                    f"El contador {field} de la organización {organization_id} cambió durante la reserva"
                )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise AllocationError(f"No se pudo actualizar el contador {field}: {e}") from e

        logging.debug(f"Contador {field} de la organización {organization_id}: {current} -> {target}")
        return target
