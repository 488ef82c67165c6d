import logging
from typing import List, Optional
from celery import Celery

import config

# --- CONFIGURACIÓN DE CELERY PARA GOOGLE CLOUD PUB/SUB ---

CELERY_BROKER_URL = "pubsub://"

celery_app = Celery(
    'tasks',
    broker=CELERY_BROKER_URL,
    backend=None  # Pub/Sub no funciona como backend de resultados.
)

celery_app.conf.update(
    broker_transport_options={
        # Una facturación grupal con muchos participantes puede tardar varios minutos.
        'visibility_timeout': 1800,
        'topic': config.CELERY_PUBSUB_TOPIC,
        'subscription_name_prefix': 'group-billing-worker-sub'
    },
    task_ignore_result=True
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - [%(funcName)s] - %(message)s')

from group_billing.application.packager import ArtifactPackager
from group_billing.application.sequence_allocator import InvoiceSequenceAllocator
from group_billing.application.use_cases.generate_group_invoices import GenerateGroupInvoicesUseCase
from group_billing.domain.errors import PackagingError
from group_billing.domain.models.invoice import InvoiceType
from group_billing.domain.models.pipeline import BillingReport, GroupBillingRequest
from group_billing.infrastructure.external.google_drive_adapter import GoogleDriveFileStorage
from group_billing.infrastructure.external.reportlab_renderer import ReportLabInvoiceRenderer
from group_billing.infrastructure.external.zip_archiver import ZipArchiver
from group_billing.infrastructure.observers.logging_observer import LoggingProgressObserver
from group_billing.infrastructure.persistence.counter_store_adapter import PostgreSQLCounterStore
from group_billing.infrastructure.persistence.database import get_session_factory
from group_billing.infrastructure.persistence.invoice_repository_adapter import PostgreSQLInvoiceRepository
from group_billing.infrastructure.persistence.roster_repository_adapter import (
    PostgreSQLOrganizationRepository,
    PostgreSQLRosterProvider,
)


def build_use_case(db_session, run_id: str) -> GenerateGroupInvoicesUseCase:
    invoice_repo = PostgreSQLInvoiceRepository(db_session)
    counter_store = PostgreSQLCounterStore(db_session)
    archiver = ZipArchiver(compression_level=config.ARCHIVE_COMPRESSION_LEVEL)
    return GenerateGroupInvoicesUseCase(
        roster_provider=PostgreSQLRosterProvider(db_session),
        organization_repo=PostgreSQLOrganizationRepository(db_session),
        invoice_repo=invoice_repo,
        counter_store=counter_store,
        document_renderer=ReportLabInvoiceRenderer(),
        archiver=archiver,
        file_storage=GoogleDriveFileStorage(),
        observer=LoggingProgressObserver(run_id),
        allocator=InvoiceSequenceAllocator(counter_store, invoice_repo, max_attempts=config.MAX_NUMBER_ATTEMPTS),
        packager=ArtifactPackager(archiver, client_name_length=config.ARCHIVE_CLIENT_NAME_LENGTH),
    )


def publish_archive(use_case: GenerateGroupInvoicesUseCase, report: BillingReport,
                    organization_id: int) -> Optional[str]:
    """Sube el ZIP a Drive para que la UI pueda descargarlo. Un fallo aquí no invalida las facturas."""
    if report.archive is None or use_case.file_storage is None:
        return None
    path = f"facturas/{organization_id}/{report.archive.filename}"
    try:
        return use_case.file_storage.upload(report.archive.content, path, mime_type="application/zip")
    except Exception as e:
        logging.warning(f"[{report.run_id}] No se pudo subir el ZIP: {e}")
        return None


@celery_app.task(name="tasks.generate_group_invoices")
def generate_group_invoices(run_id: str, organization_id: int, activity_id: int, service_id: int,
                            participant_ids: Optional[List[str]] = None, invoice_type: str = "normal",
                            created_by: Optional[str] = None):
    logging.info(f"[{run_id}] >>> INICIO DE LA TAREA.")
    db_session = get_session_factory()()
    try:
        use_case = build_use_case(db_session, run_id)
        request = GroupBillingRequest(
            organization_id=organization_id,
            activity_id=activity_id,
            service_id=service_id,
            participant_ids=participant_ids,
            invoice_type=InvoiceType.parse(invoice_type),
            created_by=created_by,
        )
        report = use_case.execute(request, run_id=run_id)

        if report.archive is None and report.documents:
            logging.info(f"[{run_id}] Reintentando el empaquetado con los PDFs en memoria...")
            try:
                report = use_case.retry_packaging(report)
            except PackagingError as e:
                logging.error(f"[{run_id}] El ZIP vuelve a fallar: {e}")

        archive_url = publish_archive(use_case, report, organization_id)
        logging.info(
            f"[{run_id}] Resultado: {report.outcome.value}, {report.success_count} facturas, "
            f"{len(report.errors)} errores, ZIP: {archive_url or 'no disponible'}"
        )
        return {
            "run_id": run_id,
            "outcome": report.outcome.value,
            "success_count": report.success_count,
            "errors": [e.model_dump(mode="json") for e in report.errors],
            "archive_url": archive_url,
        }
    except Exception:
        logging.error(f"[{run_id}] ¡ERROR! Se ha capturado una excepción. Iniciando rollback.", exc_info=True)
        db_session.rollback()
        raise
    finally:
        logging.info(f"[{run_id}] Cerrando sesión de base de datos.")
        db_session.close()

