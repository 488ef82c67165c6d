# group_billing/infrastructure/api/routers/group_billing_router.py
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from group_billing.application.use_cases.generate_group_invoices import GenerateGroupInvoicesUseCase
from group_billing.domain.errors import SystemicError
from group_billing.domain.models.invoice import InvoiceType
from group_billing.infrastructure.external.reportlab_renderer import ReportLabInvoiceRenderer
from group_billing.infrastructure.external.zip_archiver import ZipArchiver
from group_billing.infrastructure.persistence.counter_store_adapter import PostgreSQLCounterStore
from group_billing.infrastructure.persistence.database import get_db
from group_billing.infrastructure.persistence.invoice_repository_adapter import PostgreSQLInvoiceRepository
from group_billing.infrastructure.persistence.roster_repository_adapter import (
    PostgreSQLOrganizationRepository,
    PostgreSQLRosterProvider,
)
# Importamos la instancia de Celery, no la tarea específica
from group_billing.infrastructure.celery.worker import celery_app

router = APIRouter(prefix="/api/v1/actividades-grupales", tags=["Facturación Grupal"])


class GroupBillingBody(BaseModel):
    organization_id: int
    service_id: int
    participant_ids: Optional[List[str]] = None
    invoice_type: str = InvoiceType.NORMAL.value
    created_by: Optional[str] = None


class ParticipantEligibilityOut(BaseModel):
    participant_id: str
    client_id: Optional[int] = None
    client_name: str
    status: str
    billable: bool
    missing_fields: List[str] = []
    already_billed_invoice: Optional[str] = None


class EligibilityOut(BaseModel):
    activity_id: int
    default_selection: List[str]
    participants: List[ParticipantEligibilityOut]


def get_use_case(db: Session = Depends(get_db)) -> GenerateGroupInvoicesUseCase:
    invoice_repo = PostgreSQLInvoiceRepository(db)
    return GenerateGroupInvoicesUseCase(
        roster_provider=PostgreSQLRosterProvider(db),
        organization_repo=PostgreSQLOrganizationRepository(db),
        invoice_repo=invoice_repo,
        counter_store=PostgreSQLCounterStore(db),
        document_renderer=ReportLabInvoiceRenderer(),
        archiver=ZipArchiver(),
    )


@router.get("/{activity_id}/facturacion/elegibilidad", response_model=EligibilityOut,
            summary="Participantes facturables de una actividad grupal")
def get_eligibility(
    activity_id: int,
    organization_id: int = Query(..., description="Organización propietaria de la actividad."),
    use_case: GenerateGroupInvoicesUseCase = Depends(get_use_case),
):
    """
    Devuelve cada participante con su estado de elegibilidad, los campos
    que le faltan y, si ya se le facturó, el número de la factura existente.
    """
    try:
        report = use_case.preview(organization_id, activity_id)
    except SystemicError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return EligibilityOut(
        activity_id=report.activity_id,
        default_selection=report.default_selection,
        participants=[
            ParticipantEligibilityOut(
                participant_id=entry.participant.id,
                client_id=entry.participant.client_id,
                client_name=entry.participant.display_name,
                status=entry.participant.status.value,
                billable=entry.is_billable,
                missing_fields=entry.validation.missing_labels,
                already_billed_invoice=entry.already_billed.invoice_number if entry.already_billed else None,
            )
            for entry in report.participants
        ],
    )


@router.post("/{activity_id}/facturacion", status_code=202, summary="Facturar a los participantes de una actividad")
def create_group_invoices(activity_id: int, body: GroupBillingBody):
    """
    Lanza la facturación grupal en segundo plano. El resultado (facturas,
    errores por participante y ZIP) queda en el log del worker y en Drive.
    """
    if body.participant_ids is not None and not body.participant_ids:
        raise HTTPException(status_code=400, detail="No hay participantes seleccionados para facturar")

    run_id = str(uuid.uuid4())
    try:
        celery_app.send_task(
            'tasks.generate_group_invoices',
            args=[
                run_id,
                body.organization_id,
                activity_id,
                body.service_id,
                body.participant_ids,
                InvoiceType.parse(body.invoice_type).value,
                body.created_by,
            ]
        )
    except Exception as e:
        logging.error(f"[{run_id}] No se pudo encolar la facturación grupal: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "processing_queued", "run_id": run_id}
