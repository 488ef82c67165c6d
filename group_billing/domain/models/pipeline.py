# group_billing/domain/models/pipeline.py
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from group_billing.domain.errors import BillingErrorKind
from group_billing.domain.models.invoice import ExistingInvoice, Invoice, InvoiceType


class BillingPhase(str, Enum):
    VALIDATING = "validating"
    GENERATING = "generating"
    CREATING_DOCUMENTS = "creating_documents"
    CREATING_ARCHIVE = "creating_archive"
    COMPLETED = "completed"
    ERROR = "error"


# ERROR es terminal y no forma parte de la secuencia.
PHASE_ORDER = [
    BillingPhase.VALIDATING,
    BillingPhase.GENERATING,
    BillingPhase.CREATING_DOCUMENTS,
    BillingPhase.CREATING_ARCHIVE,
    BillingPhase.COMPLETED,
]


class RunOutcome(str, Enum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIALLY_SUCCEEDED = "partially_succeeded"
    NONE_SUCCEEDED = "none_succeeded"
    FAILED_BEFORE_STARTING = "failed_before_starting"


class SkipReason(str, Enum):
    NOT_ELIGIBLE = "not_eligible"
    ALREADY_BILLED = "already_billed"
    NOT_IN_ROSTER = "not_in_roster"
    CANCELLED = "cancelled"


class GroupBillingRequest(BaseModel):
    """
    Petición de facturación de una actividad grupal.
    `participant_ids=None` factura la selección por defecto (elegibles y no facturados).
    """
    organization_id: int
    activity_id: int
    service_id: int
    participant_ids: Optional[List[str]] = None
    invoice_type: InvoiceType = InvoiceType.NORMAL
    created_by: Optional[str] = None


class BillingIssue(BaseModel):
    participant_id: Optional[str] = None
    client_name: Optional[str] = None
    kind: BillingErrorKind
    message: str


class SkippedParticipant(BaseModel):
    participant_id: str
    client_name: Optional[str] = None
    reason: SkipReason
    detail: Optional[str] = None


class BillingProgress(BaseModel):
    """Vista observable de la ejecución que se envía al observador en cada cambio."""
    phase: BillingPhase
    current: int = 0
    total: int = 0
    message: str = ""
    current_item: Optional[str] = None
    errors: List[BillingIssue] = Field(default_factory=list)
    archive_progress: Optional[float] = None

    @property
    def percentage(self) -> float:
        if self.phase == BillingPhase.CREATING_ARCHIVE and self.archive_progress is not None:
            return self.archive_progress
        if self.total == 0:
            return 100.0 if self.phase == BillingPhase.COMPLETED else 0.0
        return self.current / self.total * 100


class ParticipantBilled(BaseModel):
    """Evento confirmado: la factura del participante ya está persistida."""
    participant_id: str
    client_id: int
    invoice: ExistingInvoice


class RenderedDocument(BaseModel):
    invoice_id: int
    invoice_number: str
    client_name: str
    total_amount: Decimal
    content: bytes


class ArchiveEntry(BaseModel):
    filename: str
    content: bytes


class BillingArchive(BaseModel):
    filename: str
    content: bytes
    entry_count: int


class ParticipantOutcome(BaseModel):
    """
    Resultado de una iteración del bucle de generación: éxito con su factura
    o fallo etiquetado. Se particionan al terminar el bucle.
    """
    participant_id: str
    client_name: str
    invoice: Optional[Invoice] = None
    error: Optional[BillingIssue] = None

    @property
    def succeeded(self) -> bool:
        return self.invoice is not None


class BillingReport(BaseModel):
    run_id: str
    phase: BillingPhase
    outcome: RunOutcome
    success_count: int = 0
    invoices: List[Invoice] = Field(default_factory=list)
    errors: List[BillingIssue] = Field(default_factory=list)
    skipped: List[SkippedParticipant] = Field(default_factory=list)
    documents: List[RenderedDocument] = Field(default_factory=list)
    archive: Optional[BillingArchive] = None
    archive_filename: Optional[str] = None
    systemic_error: Optional[str] = None
    billed_clients: Dict[int, ExistingInvoice] = Field(default_factory=dict)

