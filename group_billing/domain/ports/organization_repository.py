# group_billing/domain/ports/organization_repository.py
from abc import ABC, abstractmethod
from typing import Optional

from group_billing.domain.models.billing import Organization


class OrganizationRepository(ABC):
    @abstractmethod
    def get_organization(self, organization_id: int) -> Optional[Organization]:
        """Busca la organización emisora por su ID."""
        pass
