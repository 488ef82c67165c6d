# tests/conftest.py
import datetime
import threading
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from group_billing.application.packager import ArtifactPackager
from group_billing.application.use_cases.generate_group_invoices import GenerateGroupInvoicesUseCase
from group_billing.domain.errors import CounterConflictError, PersistenceError, RenderError, StorageError
from group_billing.domain.models.billing import (
    BillingProfile,
    GroupActivity,
    Organization,
    Participant,
    ParticipantStatus,
    Service,
)
from group_billing.domain.models.invoice import ExistingInvoice, Invoice, InvoiceType
from group_billing.domain.ports.counter_store import CounterStore
from group_billing.domain.ports.document_renderer import DocumentRenderer
from group_billing.domain.ports.file_storage import FileStorage
from group_billing.domain.ports.invoice_repository import InvoiceRepository
from group_billing.domain.ports.organization_repository import OrganizationRepository
from group_billing.domain.ports.progress_observer import ProgressObserver
from group_billing.domain.ports.roster_provider import RosterProvider
from group_billing.infrastructure.external.zip_archiver import ZipArchiver


# --- Dobles en memoria de los puertos ---

class InMemoryCounterStore(CounterStore):
    def __init__(self, fail_times: int = 0):
        self.counters: Dict[tuple, int] = {}
        self.fail_times = fail_times
        self.calls = 0
        self._lock = threading.Lock()

    def read_counter(self, organization_id, invoice_type):
        return self.counters.get((organization_id, InvoiceType.parse(invoice_type)), 0)

    def atomic_increment(self, organization_id, invoice_type, expected=None, new_value=None):
        key = (organization_id, InvoiceType.parse(invoice_type))
        with self._lock:
            self.calls += 1
            current = self.counters.get(key, 0)
            if self.fail_times > 0:
                self.fail_times -= 1
                raise CounterConflictError("conflicto simulado")
            if expected is not None and expected != current:
                raise CounterConflictError(f"se esperaba {expected} y el contador vale {current}")
            self.counters[key] = new_value if new_value is not None else current + 1
            return self.counters[key]


class InMemoryInvoiceRepository(InvoiceRepository):
    def __init__(self, fail_for_clients=()):
        self.invoices: List[Invoice] = []
        self.fail_for_clients = set(fail_for_clients)
        self.fail_lookups = False

    def insert_invoice(self, invoice, lines):
        if invoice.client_id in self.fail_for_clients:
            raise PersistenceError(f"fallo simulado al guardar {invoice.invoice_number}")
        for stored in self.invoices:
            same_number = (stored.organization_id, stored.invoice_type, stored.invoice_number) == \
                (invoice.organization_id, invoice.invoice_type, invoice.invoice_number)
            same_client = stored.group_activity_id is not None and \
                (stored.group_activity_id, stored.client_id) == (invoice.group_activity_id, invoice.client_id)
            if same_number or same_client:
                raise PersistenceError("violación de restricción única")
        invoice_id = len(self.invoices) + 1
        self.invoices.append(invoice.model_copy(update={"id": invoice_id, "lines": list(lines)}))
        return invoice_id

    def find_invoices_by_activity_and_clients(self, organization_id, activity_id, client_ids):
        if self.fail_lookups:
            raise PersistenceError("base de datos no disponible")
        client_ids = set(client_ids)
        return [
            ExistingInvoice(client_id=i.client_id, invoice_id=i.id, invoice_number=i.invoice_number)
            for i in self.invoices
            if i.organization_id == organization_id and i.group_activity_id == activity_id
            and i.client_id in client_ids
        ]

    def number_exists(self, organization_id, invoice_type, invoice_number):
        invoice_type = InvoiceType.parse(invoice_type)
        return any(
            i.organization_id == organization_id and i.invoice_type == invoice_type
            and i.invoice_number == invoice_number
            for i in self.invoices
        )

    def attach_document_url(self, invoice_id, url):
        index = invoice_id - 1
        self.invoices[index] = self.invoices[index].model_copy(update={"pdf_url": url})

    def by_client(self, client_id) -> Optional[Invoice]:
        return next((i for i in self.invoices if i.client_id == client_id), None)


class InMemoryRosterProvider(RosterProvider):
    def __init__(self, activity: Optional[GroupActivity], service: Optional[Service]):
        self.activity = activity
        self.service = service

    def get_activity(self, organization_id, activity_id):
        if self.activity is None or self.activity.id != activity_id:
            return None
        return self.activity

    def get_service(self, organization_id, service_id):
        if self.service is None or self.service.id != service_id:
            return None
        return self.service


class InMemoryOrganizationRepository(OrganizationRepository):
    def __init__(self, organization: Optional[Organization]):
        self.organization = organization

    def get_organization(self, organization_id):
        if self.organization is None or self.organization.id != organization_id:
            return None
        return self.organization


class FakeRenderer(DocumentRenderer):
    def __init__(self, fail_for_clients=()):
        self.fail_for_clients = set(fail_for_clients)
        self.rendered: List[str] = []

    def render(self, invoice, lines, organization, client):
        if invoice.client_id in self.fail_for_clients:
            raise RenderError(f"plantilla rota para {invoice.invoice_number}")
        self.rendered.append(invoice.invoice_number)
        return f"%PDF-1.4 factura {invoice.invoice_number} total {invoice.total_amount}".encode()


class InMemoryFileStorage(FileStorage):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.files: Dict[str, bytes] = {}

    def upload(self, content, path, mime_type="application/pdf"):
        if self.fail:
            raise StorageError("cuota de Drive excedida")
        self.files[path] = content
        return f"https://drive.example/{path}"


class RecordingObserver(ProgressObserver):
    def __init__(self):
        self.snapshots = []
        self.billed = []

    def on_progress(self, progress):
        self.snapshots.append(progress)

    def on_participant_billed(self, event):
        self.billed.append(event)

    @property
    def phases(self):
        seen = []
        for snapshot in self.snapshots:
            if not seen or seen[-1] != snapshot.phase:
                seen.append(snapshot.phase)
        return seen


# --- Datos de ejemplo ---

def make_profile(name, tax_id="12345678Z", **overrides):
    data = dict(name=name, tax_id=tax_id, address="Calle Mayor 1", postal_code="28001",
                city="Madrid", province="Madrid")
    data.update(overrides)
    return BillingProfile(**data)


def make_participant(participant_id, client_id, name, status=ParticipantStatus.ATTENDED, **profile_overrides):
    return Participant(
        id=participant_id,
        client_id=client_id,
        status=status,
        billing_profile=make_profile(name, **profile_overrides),
    )


def stored_invoice(number, invoice_type=InvoiceType.NORMAL, client_id=900):
    """Factura ya existente en el repositorio (importada o de otra ejecución)."""
    return Invoice(
        organization_id=1,
        invoice_number=number,
        invoice_type=invoice_type,
        client_id=client_id,
        issue_date=datetime.date(2026, 1, 5),
        base_amount=Decimal("10"),
        vat_amount=Decimal("0"),
        irpf_amount=Decimal("0"),
        retention_amount=Decimal("0"),
        total_amount=Decimal("10"),
    )


@pytest.fixture
def organization():
    return Organization(
        id=1,
        name="Clínica Fisio Centro",
        tax_id="B12345678",
        address="Avenida de América 10",
        postal_code="28002",
        city="Madrid",
        province="Madrid",
        invoice_prefix="F",
        invoice_padding_length=4,
    )


@pytest.fixture
def service():
    return Service(id=7, name="Pilates terapéutico", price=Decimal("50.00"), vat_rate=Decimal("21"))


@pytest.fixture
def participants():
    return [
        make_participant("p-1", 101, "Ana Garcia"),
        make_participant("p-2", 102, "Luis Perez", status=ParticipantStatus.REGISTERED),
        make_participant("p-3", 103, "Marta Ruiz"),
    ]


@pytest.fixture
def activity(participants):
    return GroupActivity(
        id=30,
        organization_id=1,
        name="Pilates Suelo",
        date=datetime.date(2026, 3, 10),
        start_time=datetime.time(10, 0),
        end_time=datetime.time(11, 0),
        professional_id=4,
        professional_name="Dra. Lopez",
        participants=participants,
    )


@pytest.fixture
def counter_store():
    return InMemoryCounterStore()


@pytest.fixture
def invoice_repo():
    return InMemoryInvoiceRepository()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def file_storage():
    return InMemoryFileStorage()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def make_use_case(organization, service, activity, counter_store, invoice_repo, renderer, file_storage, observer):
    """Construye el caso de uso con los dobles por defecto; cualquier pieza se puede sustituir."""

    def _make(**overrides):
        archiver = overrides.pop("archiver", ZipArchiver())
        deps = dict(
            roster_provider=InMemoryRosterProvider(activity, service),
            organization_repo=InMemoryOrganizationRepository(organization),
            invoice_repo=invoice_repo,
            counter_store=counter_store,
            document_renderer=renderer,
            archiver=archiver,
            file_storage=file_storage,
            observer=observer,
            packager=ArtifactPackager(archiver),
        )
        deps.update(overrides)
        return GenerateGroupInvoicesUseCase(**deps)

    return _make
