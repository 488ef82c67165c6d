# group_billing/application/use_cases/generate_group_invoices.py
import logging
import threading
import uuid
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from pydantic import BaseModel

from group_billing.application.billing_state import BillingRunState
from group_billing.application.packager import ArtifactPackager, build_archive_filename
from group_billing.application.sequence_allocator import InvoiceSequenceAllocator
from group_billing.domain.errors import (
    BillingErrorKind,
    GroupBillingError,
    PackagingError,
    ParticipantValidationError,
    PersistenceError,
    RenderError,
    SystemicError,
)
from group_billing.domain.models.billing import GroupActivity, Organization, Participant, ParticipantStatus, Service
from group_billing.domain.models.invoice import ExistingInvoice, Invoice, InvoiceLine
from group_billing.domain.models.pipeline import (
    BillingArchive,
    BillingIssue,
    BillingPhase,
    BillingReport,
    GroupBillingRequest,
    ParticipantBilled,
    ParticipantOutcome,
    RenderedDocument,
    RunOutcome,
    SkippedParticipant,
    SkipReason,
)
from group_billing.domain.ports.archiver import Archiver
from group_billing.domain.ports.counter_store import CounterStore
from group_billing.domain.ports.document_renderer import DocumentRenderer
from group_billing.domain.ports.file_storage import FileStorage
from group_billing.domain.ports.invoice_repository import InvoiceRepository
from group_billing.domain.ports.organization_repository import OrganizationRepository
from group_billing.domain.ports.progress_observer import ProgressObserver
from group_billing.domain.ports.roster_provider import RosterProvider
from group_billing.domain.services.calculator import calculate_line_amounts
from group_billing.domain.services.eligibility import (
    BILLABLE_STATUSES,
    EligibilityFilter,
    EligibilityReport,
    validate_billing_profile,
)

T = TypeVar("T")


class BillingContext(BaseModel):
    organization: Organization
    service: Service
    activity: GroupActivity


def build_line_description(activity: GroupActivity) -> str:
    professional = activity.professional_name or "Sin profesional"
    return (
        f"Actividad Grupal: {activity.name} - {activity.date.strftime('%d/%m/%Y')} "
        f"({activity.start_time.strftime('%H:%M')}-{activity.end_time.strftime('%H:%M')}) - {professional}"
    )


def build_invoice_notes(activity: GroupActivity, service: Service, participant: Participant) -> str:
    """Bloque de notas con los datos fiscales del cliente y el contexto de la actividad."""
    profile = participant.billing_profile
    client_info = (
        f"Cliente: {profile.name}, CIF/NIF: {profile.tax_id}, "
        f"Dirección: {profile.address}, {profile.postal_code} {profile.city}, {profile.province or ''}"
    ).rstrip(", ")
    status_label = "Asistió" if participant.status == ParticipantStatus.ATTENDED else "Registrado"
    activity_info = (
        f"Factura generada para actividad grupal \"{activity.name}\" del {activity.date.strftime('%d/%m/%Y')}\n"
        f"Servicio: {service.name} - {service.price}€\n"
        f"Estado del participante: {status_label}"
    )
    return f"{client_info}\n\n{activity_info}"


def resolve_outcome(success_count: int, errors: List[BillingIssue],
                    skipped: List[SkippedParticipant]) -> RunOutcome:
    """Resultado global: todo bien solo si no hubo errores ni participantes cancelados."""
    cancelled = any(s.reason == SkipReason.CANCELLED for s in skipped)
    if not errors and not cancelled:
        return RunOutcome.ALL_SUCCEEDED
    if success_count == 0:
        return RunOutcome.NONE_SUCCEEDED
    return RunOutcome.PARTIALLY_SUCCEEDED


class GenerateGroupInvoicesUseCase:
    """
    Factura de una vez a los participantes de una actividad grupal.

    Fases: validating -> generating -> creating_documents -> creating_archive -> completed.
    Los participantes se procesan uno a uno. Un fallo de un participante
    se anota y el bucle continúa; solo un fallo al cargar el contexto
    (organización, servicio, actividad) termina la ejecución en `error`.
    """

    def __init__(
        self,
        roster_provider: RosterProvider,
        organization_repo: OrganizationRepository,
        invoice_repo: InvoiceRepository,
        counter_store: CounterStore,
        document_renderer: DocumentRenderer,
        archiver: Archiver,
        file_storage: Optional[FileStorage] = None,
        observer: Optional[ProgressObserver] = None,
        allocator: Optional[InvoiceSequenceAllocator] = None,
        packager: Optional[ArtifactPackager] = None,
    ):
        self.roster_provider = roster_provider
        self.organization_repo = organization_repo
        self.invoice_repo = invoice_repo
        self.document_renderer = document_renderer
        self.file_storage = file_storage
        self.observer = observer
        self.allocator = allocator or InvoiceSequenceAllocator(counter_store, invoice_repo)
        self.packager = packager or ArtifactPackager(archiver)
        self.eligibility_filter = EligibilityFilter(invoice_repo)

    # --- Contexto ---

    @staticmethod
    def _load(what: str, loader: Callable[[], Optional[T]]) -> T:
        try:
            value = loader()
        except Exception as e:
            raise SystemicError(f"No se pudieron obtener los datos de {what}: {e}") from e
        if value is None:
            raise SystemicError(f"No se encontró {what}")
        return value

    def _load_context(self, organization_id: int, activity_id: int, service_id: int) -> BillingContext:
        organization = self._load("la organización", lambda: self.organization_repo.get_organization(organization_id))
        service = self._load("el servicio", lambda: self.roster_provider.get_service(organization_id, service_id))
        activity = self._load("la actividad", lambda: self.roster_provider.get_activity(organization_id, activity_id))
        return BillingContext(organization=organization, service=service, activity=activity)

    def _evaluate(self, organization_id: int, activity: GroupActivity) -> EligibilityReport:
        try:
            return self.eligibility_filter.evaluate(organization_id, activity)
        except Exception as e:
            raise SystemicError(f"No se pudieron comprobar las facturas existentes: {e}") from e

    def preview(self, organization_id: int, activity_id: int) -> EligibilityReport:
        """Elegibilidad y facturas existentes, para sembrar la selección por defecto en la UI."""
        activity = self._load("la actividad", lambda: self.roster_provider.get_activity(organization_id, activity_id))
        return self._evaluate(organization_id, activity)

    @staticmethod
    def _resolve_selection(request: GroupBillingRequest,
                           eligibility: EligibilityReport) -> Tuple[List[Participant], List[SkippedParticipant]]:
        requested = request.participant_ids if request.participant_ids is not None else eligibility.default_selection
        selected: List[Participant] = []
        skipped: List[SkippedParticipant] = []

        for participant_id in dict.fromkeys(requested):
            entry = eligibility.find(participant_id)
            if entry is None:
                skipped.append(SkippedParticipant(participant_id=participant_id, reason=SkipReason.NOT_IN_ROSTER))
            elif entry.already_billed is not None:
                skipped.append(SkippedParticipant(
                    participant_id=participant_id,
                    client_name=entry.participant.display_name,
                    reason=SkipReason.ALREADY_BILLED,
                    detail=entry.already_billed.invoice_number,
                ))
            elif not entry.status_billable:
                skipped.append(SkippedParticipant(
                    participant_id=participant_id,
                    client_name=entry.participant.display_name,
                    reason=SkipReason.NOT_ELIGIBLE,
                    detail=f"Estado: {entry.participant.status.value}",
                ))
            elif not entry.validation.is_valid:
                skipped.append(SkippedParticipant(
                    participant_id=participant_id,
                    client_name=entry.participant.display_name,
                    reason=SkipReason.NOT_ELIGIBLE,
                    detail="Faltan: " + ", ".join(entry.validation.missing_labels),
                ))
            else:
                selected.append(entry.participant)
        return selected, skipped

    # --- Ejecución ---

    def execute(self, request: GroupBillingRequest, stop_event: Optional[threading.Event] = None,
                run_id: Optional[str] = None) -> BillingReport:
        run_id = run_id or uuid.uuid4().hex[:8]
        state = BillingRunState(self.observer)
        state.start_items(len(request.participant_ids or []),
                          "Validando datos de participantes y preparando el proceso...")
        logging.info(f"[{run_id}] Facturación grupal de la actividad {request.activity_id} "
                     f"(organización {request.organization_id}).")

        try:
            context = self._load_context(request.organization_id, request.activity_id, request.service_id)
            eligibility = self._evaluate(request.organization_id, context.activity)
        except SystemicError as e:
            logging.error(f"[{run_id}] Error en el proceso de facturación grupal: {e}")
            state.fail("Error en el proceso de facturación grupal",
                       BillingIssue(kind=BillingErrorKind.SYSTEMIC, message=str(e)))
            return BillingReport(
                run_id=run_id,
                phase=state.phase,
                outcome=RunOutcome.FAILED_BEFORE_STARTING,
                errors=list(state.errors),
                systemic_error=str(e),
            )

        selected, skipped = self._resolve_selection(request, eligibility)
        state.selection = {p.id for p in selected}
        state.already_billed = dict(eligibility.already_billed)
        if skipped:
            logging.info(f"[{run_id}] {len(skipped)} participantes descartados antes de empezar.")

        outcomes = self._generate_invoices(run_id, context, request, selected, skipped, state, stop_event)
        participants = {p.id: p for p in selected}
        documents = self._create_documents(run_id, context, outcomes, participants, state)

        archive_filename = build_archive_filename(context.activity.name, context.activity.date, len(documents))
        archive = None
        if documents:
            state.advance(BillingPhase.CREATING_ARCHIVE, "Empaquetando facturas en archivo ZIP...")
            try:
                archive = self.packager.pack(documents, archive_filename, on_progress=state.set_archive_progress)
            except PackagingError as e:
                logging.error(f"[{run_id}] Error al crear el ZIP: {e}")
                state.record_issue(BillingIssue(kind=e.kind, message=str(e)))

        invoices = [o.invoice for o in outcomes if o.succeeded]
        state.progress.current = state.progress.total
        state.advance(
            BillingPhase.COMPLETED,
            f"Proceso completado: {len(invoices)} facturas generadas para la actividad \"{context.activity.name}\".",
        )
        errors = list(state.errors)
        logging.info(f"[{run_id}] Facturación terminada: {len(invoices)} facturas, {len(errors)} errores, "
                     f"{len(skipped)} descartados.")

        return BillingReport(
            run_id=run_id,
            phase=state.phase,
            outcome=resolve_outcome(len(invoices), errors, skipped),
            success_count=len(invoices),
            invoices=invoices,
            errors=errors,
            skipped=skipped,
            documents=documents,
            archive=archive,
            archive_filename=archive_filename,
            billed_clients=dict(state.already_billed),
        )

    def _generate_invoices(self, run_id: str, context: BillingContext, request: GroupBillingRequest,
                           selected: List[Participant], skipped: List[SkippedParticipant],
                           state: BillingRunState,
                           stop_event: Optional[threading.Event]) -> List[ParticipantOutcome]:
        state.advance(BillingPhase.GENERATING, "Iniciando generación de facturas para actividad grupal...")
        state.start_items(len(selected))
        outcomes: List[ParticipantOutcome] = []

        for index, participant in enumerate(selected, start=1):
            if stop_event is not None and stop_event.is_set():
                pending = selected[index - 1:]
                logging.warning(f"[{run_id}] Cancelación solicitada; {len(pending)} participantes sin procesar.")
                skipped.extend(
                    SkippedParticipant(participant_id=p.id, client_name=p.display_name, reason=SkipReason.CANCELLED)
                    for p in pending
                )
                break

            name = participant.display_name
            state.start_item(index, name, f"Generando factura {index} de {len(selected)}")
            try:
                self._recheck_eligible(participant)
                existing = self._recheck_billed(context, participant, state)
                if existing is not None:
                    logging.info(f"[{run_id}] {name} ya tiene la factura {existing.invoice_number}; se omite.")
                    skipped.append(SkippedParticipant(
                        participant_id=participant.id,
                        client_name=name,
                        reason=SkipReason.ALREADY_BILLED,
                        detail=existing.invoice_number,
                    ))
                    continue
                invoice = self._bill_participant(run_id, context, request, participant)
            except GroupBillingError as e:
                logging.error(f"[{run_id}] Error generando la factura de {name}: {e}")
                issue = BillingIssue(participant_id=participant.id, client_name=name, kind=e.kind, message=str(e))
                state.record_issue(issue)
                outcomes.append(ParticipantOutcome(participant_id=participant.id, client_name=name, error=issue))
                continue

            outcomes.append(ParticipantOutcome(participant_id=participant.id, client_name=name, invoice=invoice))
            state.confirm_billed(ParticipantBilled(
                participant_id=participant.id,
                client_id=invoice.client_id,
                invoice=ExistingInvoice(
                    client_id=invoice.client_id,
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                ),
            ))
        return outcomes

    @staticmethod
    def _recheck_eligible(participant: Participant) -> None:
        if participant.status not in BILLABLE_STATUSES or participant.client_id is None:
            raise ParticipantValidationError(
                f"El participante ya no es facturable (estado: {participant.status.value})"
            )
        validation = validate_billing_profile(participant.billing_profile)
        if not validation.is_valid:
            raise ParticipantValidationError(
                "Datos de facturación incompletos. Faltan: " + ", ".join(validation.missing_labels)
            )

    def _recheck_billed(self, context: BillingContext, participant: Participant,
                        state: BillingRunState) -> Optional[ExistingInvoice]:
        """Vuelve a comprobar el duplicado justo antes de facturar (otra ejecución pudo adelantarse)."""
        client_id = participant.client_id
        if state.is_already_billed(client_id):
            return state.already_billed[client_id]
        try:
            found = self.eligibility_filter.find_already_billed(
                context.organization.id, context.activity.id, [client_id]
            )
        except GroupBillingError:
            raise
        except Exception as e:
            raise PersistenceError(f"No se pudo comprobar si ya estaba facturado: {e}") from e
        return found.get(client_id)

    def _bill_participant(self, run_id: str, context: BillingContext, request: GroupBillingRequest,
                          participant: Participant) -> Invoice:
        activity, service = context.activity, context.service
        allocated = self.allocator.allocate(context.organization, request.invoice_type, today=activity.date)

        amounts = calculate_line_amounts(
            unit_price=service.price,
            quantity=1,
            discount_percentage=0,
            vat_rate=service.vat_rate,
            irpf_rate=service.irpf_rate,
            retention_rate=service.retention_rate,
        )
        line = InvoiceLine(
            description=build_line_description(activity),
            quantity=1,
            unit_price=service.price,
            discount_percentage=0,
            vat_rate=service.vat_rate,
            irpf_rate=service.irpf_rate,
            retention_rate=service.retention_rate,
            line_amount=amounts.base_amount,
        )
        invoice = Invoice(
            organization_id=context.organization.id,
            invoice_number=allocated.formatted,
            invoice_type=request.invoice_type,
            client_id=participant.client_id,
            group_activity_id=activity.id,
            issue_date=activity.date,
            base_amount=amounts.base_amount,
            vat_amount=amounts.vat_amount,
            irpf_amount=amounts.irpf_amount,
            retention_amount=amounts.retention_amount,
            discount_amount=amounts.discount_amount,
            total_amount=amounts.total_amount,
            notes=build_invoice_notes(activity, service, participant),
            created_by=request.created_by,
            lines=[line],
        )

        # Si el guardado falla, el número ya está consumido en el contador y queda un hueco.
        try:
            invoice_id = self.invoice_repo.insert_invoice(invoice, [line])
        except PersistenceError:
            logging.warning(f"[{run_id}] Número {allocated.formatted} descartado por fallo al guardar la factura.")
            raise
        except Exception as e:
            logging.warning(f"[{run_id}] Número {allocated.formatted} descartado por fallo al guardar la factura.")
            raise PersistenceError(f"No se pudo guardar la factura {allocated.formatted}: {e}") from e

        logging.info(f"[{run_id}] Factura {allocated.formatted} creada para {participant.display_name}.")
        return invoice.model_copy(update={"id": invoice_id})

    def _create_documents(self, run_id: str, context: BillingContext, outcomes: List[ParticipantOutcome],
                          participants: Dict[str, Participant], state: BillingRunState) -> List[RenderedDocument]:
        billed = [o for o in outcomes if o.succeeded]
        if not billed:
            return []

        state.advance(BillingPhase.CREATING_DOCUMENTS, "Creando PDFs...")
        state.start_items(len(billed))
        documents: List[RenderedDocument] = []
        for index, outcome in enumerate(billed, start=1):
            invoice = outcome.invoice
            state.start_item(index, outcome.client_name, f"Generando PDF para {outcome.client_name}...")
            try:
                content = self._render(invoice, context, participants[outcome.participant_id])
            except RenderError as e:
                logging.error(f"[{run_id}] Factura {invoice.invoice_number} creada sin PDF: {e}")
                state.record_issue(BillingIssue(
                    participant_id=outcome.participant_id,
                    client_name=outcome.client_name,
                    kind=e.kind,
                    message=f"Factura {invoice.invoice_number} creada sin PDF: {e}",
                ))
                continue

            documents.append(RenderedDocument(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                client_name=outcome.client_name,
                total_amount=invoice.total_amount,
                content=content,
            ))
            self._store_document(run_id, context, invoice, content)
        return documents

    def _render(self, invoice: Invoice, context: BillingContext, participant: Participant) -> bytes:
        try:
            content = self.document_renderer.render(
                invoice, invoice.lines, context.organization, participant.billing_profile
            )
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(str(e)) from e
        if not content:
            raise RenderError("El generador de PDF no devolvió contenido")
        return content

    def _store_document(self, run_id: str, context: BillingContext, invoice: Invoice, content: bytes) -> None:
        """Sube el PDF y guarda su URL en la factura. Un fallo aquí solo se registra en el log."""
        if self.file_storage is None:
            return
        path = f"facturas/{context.organization.id}/factura-{invoice.invoice_number}.pdf"
        try:
            url = self.file_storage.upload(content, path)
            self.invoice_repo.attach_document_url(invoice.id, url)
        except Exception as e:
            logging.warning(f"[{run_id}] No se pudo guardar el PDF de {invoice.invoice_number}: {e}")

    def retry_packaging(self, report: BillingReport,
                        on_progress: Optional[Callable[[float, str], None]] = None) -> BillingReport:
        """
        Vuelve a crear el ZIP con los PDFs que ya están en memoria. No se
        vuelve a facturar a nadie. Lanza PackagingError si vuelve a fallar.
        """
        if not report.documents:
            raise PackagingError("No hay documentos que empaquetar")
        archive: BillingArchive = self.packager.pack(report.documents, report.archive_filename, on_progress)
        errors = [e for e in report.errors if e.kind != BillingErrorKind.PACKAGING]
        return report.model_copy(update={
            "archive": archive,
            "errors": errors,
            "outcome": resolve_outcome(report.success_count, errors, report.skipped),
        })
