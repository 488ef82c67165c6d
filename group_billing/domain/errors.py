# group_billing/domain/errors.py
from enum import Enum


class BillingErrorKind(str, Enum):
    VALIDATION = "validation"
    ALLOCATION = "allocation"
    PERSISTENCE = "persistence"
    RENDER = "render"
    STORAGE = "storage"
    PACKAGING = "packaging"
    SYSTEMIC = "systemic"


class GroupBillingError(Exception):
    """Error base de la facturación grupal. Cada subclase declara su `kind`."""
    kind = BillingErrorKind.SYSTEMIC


class ParticipantValidationError(GroupBillingError):
    kind = BillingErrorKind.VALIDATION


class AllocationError(GroupBillingError):
    """No se pudo reservar un número de factura. El contador no ha cambiado."""
    kind = BillingErrorKind.ALLOCATION


class CounterConflictError(AllocationError):
    """Otra ejecución actualizó el contador entre la lectura y la escritura."""


class PersistenceError(GroupBillingError):
    """Fallo al insertar la factura o sus líneas tras reservar el número."""
    kind = BillingErrorKind.PERSISTENCE


class RenderError(GroupBillingError):
    kind = BillingErrorKind.RENDER


class StorageError(GroupBillingError):
    kind = BillingErrorKind.STORAGE


class PackagingError(GroupBillingError):
    kind = BillingErrorKind.PACKAGING


class SystemicError(GroupBillingError):
    """No se pudo cargar el contexto (organización, servicio o actividad)."""
    kind = BillingErrorKind.SYSTEMIC


class InvalidPhaseTransition(Exception):
    pass
