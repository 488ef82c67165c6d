# group_billing/application/sequence_allocator.py
import logging
from datetime import date
from typing import Optional, Tuple

from pydantic import BaseModel

from group_billing.domain.errors import AllocationError
from group_billing.domain.models.billing import Organization
from group_billing.domain.models.invoice import InvoiceType
from group_billing.domain.ports.counter_store import CounterStore
from group_billing.domain.ports.invoice_repository import InvoiceRepository
from group_billing.domain.services.numbering import format_invoice_number

DEFAULT_MAX_ATTEMPTS = 1000


class AllocatedNumber(BaseModel):
    number: int
    formatted: str


class InvoiceSequenceAllocator:
    """
    Emite el siguiente número de factura único para (organización, tipo).

    Primero se busca un número libre a partir del valor actual del contador
    (las facturas importadas o con numeración manual pueden ocupar alguno)
    y después se avanza el contador con un único compare-and-swap. Si algo
    falla antes o durante ese paso, el contador queda intacto.
    """

    def __init__(self, counter_store: CounterStore, invoice_repo: InvoiceRepository,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.counter_store = counter_store
        self.invoice_repo = invoice_repo
        self.max_attempts = max_attempts

    def allocate(self, organization: Organization, invoice_type: InvoiceType,
                 today: Optional[date] = None) -> AllocatedNumber:
        invoice_type = InvoiceType.parse(invoice_type)
        try:
            current = self.counter_store.read_counter(organization.id, invoice_type)
            number, formatted = self._find_free_number(organization, invoice_type, current, today)
        except AllocationError:
            raise
        except Exception as e:
            raise AllocationError(f"No se pudo reservar el número de factura: {e}") from e

        try:
            self.counter_store.atomic_increment(organization.id, invoice_type, expected=current, new_value=number)
        except AllocationError:
            raise
        except Exception as e:
            raise AllocationError(f"No se pudo actualizar el contador: {e}") from e
        return AllocatedNumber(number=number, formatted=formatted)

    def _find_free_number(self, organization: Organization, invoice_type: InvoiceType, current: int,
                          today: Optional[date]) -> Tuple[int, str]:
        for attempt in range(1, self.max_attempts + 1):
            number = current + attempt
            formatted = format_invoice_number(organization, invoice_type, number, today=today)
            if not self.invoice_repo.number_exists(organization.id, invoice_type, formatted):
                return number, formatted
            logging.warning(
                f"El número {formatted} ya existe en la organización {organization.id}; "
                f"se descarta (intento {attempt}/{self.max_attempts})."
            )
        raise AllocationError("No se pudo generar un número de factura único")
