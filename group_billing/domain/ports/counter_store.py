# group_billing/domain/ports/counter_store.py
from abc import ABC, abstractmethod
from typing import Optional

from group_billing.domain.models.invoice import InvoiceType


class CounterStore(ABC):
    """
    Contador de facturas por (organización, tipo de factura).
    Es el único recurso compartido entre ejecuciones concurrentes.
    """

    @abstractmethod
    def read_counter(self, organization_id: int, invoice_type: InvoiceType) -> int:
        """Último número emitido para ese tipo."""
        pass

    @abstractmethod
    def atomic_increment(self, organization_id: int, invoice_type: InvoiceType,
                         expected: Optional[int] = None, new_value: Optional[int] = None) -> int:
        """
        Avanza el contador de forma atómica (compare-and-swap) y confirma la
        escritura. Solo escribe si el valor actual es `expected` (por defecto,
        el que se lee justo antes). El nuevo valor es `new_value`, o el actual
        más uno. Retorna el nuevo valor.
        Lanza CounterConflictError o AllocationError sin haber modificado el contador.
        """
        pass
