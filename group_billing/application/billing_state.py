# group_billing/application/billing_state.py
import logging
from typing import Dict, Iterable, List, Optional, Set

from group_billing.domain.errors import InvalidPhaseTransition
from group_billing.domain.models.invoice import ExistingInvoice
from group_billing.domain.models.pipeline import (
    PHASE_ORDER,
    BillingIssue,
    BillingPhase,
    BillingProgress,
    ParticipantBilled,
)
from group_billing.domain.ports.progress_observer import NullProgressObserver, ProgressObserver


class BillingRunState:
    """
    Estado observable de una ejecución: fase, contadores, errores y la
    selección de participantes que ve la UI.

    Las fases solo avanzan. ERROR es terminal y se puede alcanzar desde
    cualquier fase no terminal. La selección y el conjunto de ya facturados
    solo cambian al recibir un evento confirmado de participante facturado.
    """

    def __init__(self, observer: Optional[ProgressObserver] = None,
                 selection: Iterable[str] = (),
                 already_billed: Optional[Dict[int, ExistingInvoice]] = None):
        self.observer = observer or NullProgressObserver()
        self.progress = BillingProgress(phase=BillingPhase.VALIDATING)
        self.selection: Set[str] = set(selection)
        self.already_billed: Dict[int, ExistingInvoice] = dict(already_billed or {})

    @property
    def phase(self) -> BillingPhase:
        return self.progress.phase

    @property
    def errors(self) -> List[BillingIssue]:
        return self.progress.errors

    def _publish(self) -> None:
        try:
            self.observer.on_progress(self.progress.model_copy(deep=True))
        except Exception as e:
            logging.warning(f"El observador de progreso falló y se ignora: {e}")

    def advance(self, phase: BillingPhase, message: str = "") -> None:
        current = self.progress.phase
        if current in (BillingPhase.COMPLETED, BillingPhase.ERROR):
            raise InvalidPhaseTransition(f"La ejecución ya terminó en '{current.value}'")
        if phase != BillingPhase.ERROR and PHASE_ORDER.index(phase) <= PHASE_ORDER.index(current):
            raise InvalidPhaseTransition(f"No se puede pasar de '{current.value}' a '{phase.value}'")

        self.progress.phase = phase
        self.progress.current_item = None
        if phase == BillingPhase.CREATING_ARCHIVE:
            self.progress.archive_progress = 0.0
        if message:
            self.progress.message = message
        self._publish()

    def fail(self, message: str, issue: Optional[BillingIssue] = None) -> None:
        if issue is not None:
            self.progress.errors.append(issue)
        self.advance(BillingPhase.ERROR, message)

    def start_items(self, total: int, message: str = "") -> None:
        self.progress.current = 0
        self.progress.total = total
        if message:
            self.progress.message = message
        self._publish()

    def start_item(self, index: int, item_name: str, message: str = "") -> None:
        self.progress.current = index
        self.progress.current_item = item_name
        if message:
            self.progress.message = message
        self._publish()

    def record_issue(self, issue: BillingIssue) -> None:
        self.progress.errors.append(issue)
        self._publish()

    def set_archive_progress(self, percentage: float, message: str = "") -> None:
        self.progress.archive_progress = round(min(max(percentage, 0.0), 100.0), 2)
        if message:
            self.progress.message = message
        self._publish()

    def is_already_billed(self, client_id: int) -> bool:
        return client_id in self.already_billed

    def confirm_billed(self, event: ParticipantBilled) -> None:
        """Actualización optimista tras persistir: sale de la selección y pasa a ya facturado."""
        self.selection.discard(event.participant_id)
        self.already_billed.setdefault(event.client_id, event.invoice)
        try:
            self.observer.on_participant_billed(event)
        except Exception as e:
            logging.warning(f"El observador falló al notificar la factura {event.invoice.invoice_number}: {e}")
        self._publish()
