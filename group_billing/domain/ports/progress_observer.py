# group_billing/domain/ports/progress_observer.py
from abc import ABC, abstractmethod

from group_billing.domain.models.pipeline import BillingProgress, ParticipantBilled


class ProgressObserver(ABC):
    """
    Puerto de notificación hacia el host (UI, logs...). El pipeline no sabe
    cómo se muestran las actualizaciones.
    """

    @abstractmethod
    def on_progress(self, progress: BillingProgress) -> None:
        pass

    @abstractmethod
    def on_participant_billed(self, event: ParticipantBilled) -> None:
        pass


class NullProgressObserver(ProgressObserver):
    def on_progress(self, progress: BillingProgress) -> None:
        pass

    def on_participant_billed(self, event: ParticipantBilled) -> None:
        pass
