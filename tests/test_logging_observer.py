import logging

from group_billing.domain.errors import BillingErrorKind
from group_billing.domain.models.invoice import ExistingInvoice
from group_billing.domain.models.pipeline import BillingIssue, BillingPhase, BillingProgress, ParticipantBilled
from group_billing.infrastructure.observers.logging_observer import LoggingProgressObserver


def test_logs_phase_changes_once_and_each_new_error(caplog):
    caplog.set_level(logging.INFO)
    observer = LoggingProgressObserver("run-1")
    issue = BillingIssue(participant_id="p-1", client_name="Ana", kind=BillingErrorKind.RENDER, message="sin PDF")

    observer.on_progress(BillingProgress(phase=BillingPhase.GENERATING, message="Generando"))
    observer.on_progress(BillingProgress(phase=BillingPhase.GENERATING, message="Generando", errors=[issue]))
    observer.on_progress(BillingProgress(phase=BillingPhase.GENERATING, errors=[issue]))

    messages = [r.getMessage() for r in caplog.records]
    assert messages.count("[run-1] Fase 'generating': Generando") == 1
    assert messages.count("[run-1] render: Ana: sin PDF") == 1


def test_logs_billed_participants(caplog):
    caplog.set_level(logging.INFO)
    LoggingProgressObserver("run-2").on_participant_billed(ParticipantBilled(
        participant_id="p-3",
        client_id=103,
        invoice=ExistingInvoice(client_id=103, invoice_id=3, invoice_number="F0003"),
    ))

    assert "[run-2] Participante p-3 facturado con F0003." in caplog.text
