# group_billing/domain/ports/roster_provider.py
from abc import ABC, abstractmethod
from typing import Optional

from group_billing.domain.models.billing import GroupActivity, Service


class RosterProvider(ABC):
    """Puerto de lectura de la actividad grupal, su lista de participantes y el servicio facturado."""

    @abstractmethod
    def get_activity(self, organization_id: int, activity_id: int) -> Optional[GroupActivity]:
        """
        Devuelve la actividad con sus participantes, cada uno con su estado
        y su perfil de facturación (posiblemente incompleto).
        """
        pass

    @abstractmethod
    def get_service(self, organization_id: int, service_id: int) -> Optional[Service]:
        pass
