# group_billing/domain/services/eligibility.py
"""
Filtro de elegibilidad y deduplicación de participantes.

1. Elegibilidad estructural: estado asistió/inscrito y perfil de facturación completo.
2. Deduplicación: se excluye a cualquier cliente que ya tenga factura para la actividad.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from group_billing.domain.models.billing import BillingProfile, GroupActivity, Participant, ParticipantStatus
from group_billing.domain.models.invoice import ExistingInvoice
from group_billing.domain.ports.invoice_repository import InvoiceRepository

BILLABLE_STATUSES = frozenset({ParticipantStatus.ATTENDED, ParticipantStatus.REGISTERED})

REQUIRED_PROFILE_FIELDS = ("name", "tax_id", "address", "postal_code", "city")

FIELD_LABELS = {
    "name": "Nombre",
    "tax_id": "CIF/NIF",
    "address": "Dirección",
    "postal_code": "Código Postal",
    "city": "Ciudad",
}


class ProfileValidation(BaseModel):
    is_valid: bool
    missing_fields: List[str] = Field(default_factory=list)

    @property
    def missing_labels(self) -> List[str]:
        return [FIELD_LABELS[f] for f in self.missing_fields]


class ParticipantEligibility(BaseModel):
    participant: Participant
    status_billable: bool
    validation: ProfileValidation
    already_billed: Optional[ExistingInvoice] = None

    @property
    def is_billable(self) -> bool:
        return self.status_billable and self.validation.is_valid and self.already_billed is None


class EligibilityReport(BaseModel):
    activity_id: int
    participants: List[ParticipantEligibility] = Field(default_factory=list)
    already_billed: Dict[int, ExistingInvoice] = Field(default_factory=dict)

    @property
    def eligible(self) -> List[Participant]:
        return [p.participant for p in self.participants if p.is_billable]

    @property
    def default_selection(self) -> List[str]:
        return [p.id for p in self.eligible]

    def find(self, participant_id: str) -> Optional[ParticipantEligibility]:
        return next((p for p in self.participants if p.participant.id == participant_id), None)


def validate_billing_profile(profile: Optional[BillingProfile]) -> ProfileValidation:
    """Un campo vacío o con solo espacios cuenta como ausente."""
    missing = []
    for field in REQUIRED_PROFILE_FIELDS:
        value = getattr(profile, field, None) if profile is not None else None
        if not value or not str(value).strip():
            missing.append(field)
    return ProfileValidation(is_valid=not missing, missing_fields=missing)


class EligibilityFilter:
    def __init__(self, invoice_repo: InvoiceRepository):
        self.invoice_repo = invoice_repo

    def evaluate(self, organization_id: int, activity: GroupActivity) -> EligibilityReport:
        annotated: List[ParticipantEligibility] = []
        for participant in activity.participants:
            status_billable = participant.status in BILLABLE_STATUSES
            validation = validate_billing_profile(participant.billing_profile)
            if participant.client_id is None:
                validation = ProfileValidation(is_valid=False, missing_fields=list(REQUIRED_PROFILE_FIELDS))
            annotated.append(ParticipantEligibility(
                participant=participant,
                status_billable=status_billable,
                validation=validation,
            ))

        candidate_ids = sorted({
            p.participant.client_id for p in annotated
            if p.status_billable and p.participant.client_id is not None
        })
        existing = self.find_already_billed(organization_id, activity.id, candidate_ids)

        for entry in annotated:
            if entry.status_billable and entry.participant.client_id in existing:
                entry.already_billed = existing[entry.participant.client_id]

        return EligibilityReport(activity_id=activity.id, participants=annotated, already_billed=existing)

    def find_already_billed(self, organization_id: int, activity_id: int,
                            client_ids: List[int]) -> Dict[int, ExistingInvoice]:
        """Mapa cliente -> primera factura emitida para la actividad."""
        if not client_ids:
            return {}
        found: Dict[int, ExistingInvoice] = {}
        existing = self.invoice_repo.find_invoices_by_activity_and_clients(organization_id, activity_id, client_ids)
        for invoice in existing:
            found.setdefault(invoice.client_id, invoice)
        return found
