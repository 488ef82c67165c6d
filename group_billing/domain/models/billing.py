# group_billing/domain/models/billing.py
import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ParticipantStatus(str, Enum):
    REGISTERED = "registered"
    ATTENDED = "attended"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class Organization(BaseModel):
    """
    Organización emisora. Guarda los datos fiscales que aparecen en el PDF
    y un contador monotónico por tipo de factura.
    """
    id: int
    name: str
    tax_id: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = "España"
    email: Optional[str] = None
    phone: Optional[str] = None

    invoice_prefix: str = ""
    invoice_padding_length: int = 4
    last_invoice_number: int = 0
    last_simplified_invoice_number: int = 0
    last_rectificative_invoice_number: int = 0

    model_config = ConfigDict(from_attributes=True)


class Service(BaseModel):
    """Servicio facturado. Sus tipos se aplican por igual a todas las facturas de la ejecución."""
    id: int
    name: str
    price: Decimal
    vat_rate: Decimal = Decimal("0")
    irpf_rate: Decimal = Decimal("0")
    retention_rate: Decimal = Decimal("0")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("vat_rate", "irpf_rate", "retention_rate", mode="before")
    @classmethod
    def _missing_rate_is_zero(cls, value):
        return Decimal("0") if value is None else value


class BillingProfile(BaseModel):
    """
    Datos de facturación del cliente tal como llegan del listado de
    participantes. Cualquier campo puede faltar; la validación se hace
    una sola vez en el filtro de elegibilidad.
    """
    name: Optional[str] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Participant(BaseModel):
    id: str
    client_id: Optional[int] = None
    status: ParticipantStatus
    billing_profile: Optional[BillingProfile] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def display_name(self) -> str:
        if self.billing_profile and self.billing_profile.name and self.billing_profile.name.strip():
            return self.billing_profile.name.strip()
        return "Sin nombre"


class GroupActivity(BaseModel):
    id: int
    organization_id: int
    name: str
    date: datetime.date
    start_time: datetime.time
    end_time: datetime.time
    professional_id: Optional[int] = None
    professional_name: Optional[str] = None
    participants: List[Participant] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
