# group_billing/infrastructure/observers/logging_observer.py
import logging

from group_billing.domain.models.pipeline import BillingPhase, BillingProgress, ParticipantBilled
from group_billing.domain.ports.progress_observer import ProgressObserver


class LoggingProgressObserver(ProgressObserver):
    """Vuelca el progreso de la facturación al log del worker."""

    def __init__(self, run_id: str, logger: logging.Logger = None):
        self.run_id = run_id
        self.logger = logger or logging.getLogger("group_billing.progress")
        self._last_phase = None
        self._reported_errors = 0

    def on_progress(self, progress: BillingProgress) -> None:
        if progress.phase != self._last_phase:
            self._last_phase = progress.phase
            level = logging.ERROR if progress.phase == BillingPhase.ERROR else logging.INFO
            self.logger.log(level, f"[{self.run_id}] Fase '{progress.phase.value}': {progress.message}")

        for issue in progress.errors[self._reported_errors:]:
            self.logger.warning(f"[{self.run_id}] {issue.kind.value}: {issue.client_name or '-'}: {issue.message}")
        self._reported_errors = len(progress.errors)

        if progress.current_item:
            self.logger.debug(
                f"[{self.run_id}] {progress.percentage:.0f}% ({progress.current}/{progress.total}) "
                f"{progress.current_item}"
            )

    def on_participant_billed(self, event: ParticipantBilled) -> None:
        self.logger.info(
            f"[{self.run_id}] Participante {event.participant_id} facturado con {event.invoice.invoice_number}."
        )
