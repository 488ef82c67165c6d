# group_billing/infrastructure/persistence/roster_repository_adapter.py
import logging
from typing import Optional
from sqlalchemy.orm import Session, joinedload, selectinload

from group_billing.domain.models.billing import (
    BillingProfile,
    GroupActivity,
    Organization,
    Participant,
    ParticipantStatus,
    Service,
)
from group_billing.domain.ports.organization_repository import OrganizationRepository
from group_billing.domain.ports.roster_provider import RosterProvider
from .models import ActividadGrupal, Organizacion, Participante, Servicio


class PostgreSQLRosterProvider(RosterProvider):
    """Lee la actividad, sus participantes (con el cliente) y el servicio desde PostgreSQL."""

    def __init__(self, db: Session):
        self.db = db

    def _to_participant(self, row: Participante) -> Optional[Participant]:
        try:
            status = ParticipantStatus(row.status)
        except ValueError:
            logging.warning(f"Participante {row.id} con estado desconocido '{row.status}'; se ignora.")
            return None
        profile = BillingProfile.model_validate(row.client) if row.client is not None else None
        return Participant(id=row.id, client_id=row.client_id, status=status, billing_profile=profile)

    def get_activity(self, organization_id: int, activity_id: int) -> Optional[GroupActivity]:
        actividad = (
            self.db.query(ActividadGrupal)
            .options(
                joinedload(ActividadGrupal.professional),
                selectinload(ActividadGrupal.participants).joinedload(Participante.client),
            )
            .filter(ActividadGrupal.id == activity_id, ActividadGrupal.organization_id == organization_id)
            .first()
        )
        if actividad is None:
            return None

        participants = [p for p in (self._to_participant(row) for row in actividad.participants) if p is not None]
        return GroupActivity(
            id=actividad.id,
            organization_id=actividad.organization_id,
            name=actividad.name,
            date=actividad.date,
            start_time=actividad.start_time,
            end_time=actividad.end_time,
            professional_id=actividad.professional_id,
            professional_name=actividad.professional.name if actividad.professional else None,
            participants=participants,
        )

    def get_service(self, organization_id: int, service_id: int) -> Optional[Service]:
        servicio = (
            self.db.query(Servicio)
            .filter(Servicio.id == service_id, Servicio.organization_id == organization_id)
            .first()
        )
        return Service.model_validate(servicio) if servicio is not None else None


class PostgreSQLOrganizationRepository(OrganizationRepository):
    def __init__(self, db: Session):
        self.db = db

    def get_organization(self, organization_id: int) -> Optional[Organization]:
        organizacion = self.db.query(Organizacion).filter(Organizacion.id == organization_id).first()
        return Organization.model_validate(organizacion) if organizacion is not None else None
