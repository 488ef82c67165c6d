# group_billing/application/packager.py
import logging
import re
from datetime import date
from typing import Callable, List, Optional

from group_billing.domain.errors import GroupBillingError, PackagingError
from group_billing.domain.models.pipeline import ArchiveEntry, BillingArchive, RenderedDocument
from group_billing.domain.ports.archiver import Archiver

DEFAULT_CLIENT_NAME_LENGTH = 30

# Reparto del porcentaje: las entradas ocupan hasta el 90 %, el cierre del archivo el 95 %.
ENTRIES_SHARE = 90.0
FINALIZING_PROGRESS = 95.0


def clean_client_name(client_name: str, max_length: int = DEFAULT_CLIENT_NAME_LENGTH) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", client_name or "")
    cleaned = re.sub(r"\s+", "_", cleaned)
    return cleaned[:max_length]


def build_entry_filename(invoice_number: str, client_name: str,
                         max_length: int = DEFAULT_CLIENT_NAME_LENGTH) -> str:
    return f"{invoice_number}_{clean_client_name(client_name, max_length)}.pdf"


def build_archive_filename(activity_name: str, activity_date: date, invoice_count: int) -> str:
    safe_name = re.sub(r"[^a-zA-Z0-9]", "_", activity_name or "")
    return f"facturas_actividad_{safe_name}_{activity_date.isoformat()}_{invoice_count}_facturas.zip"


class ArtifactPackager:
    """
    Empaqueta los PDFs de una ejecución en un único archivo.

    Trabaja solo con los buffers en memoria, así que puede volver a
    llamarse si el empaquetado falla sin volver a facturar a nadie.
    """

    def __init__(self, archiver: Archiver, client_name_length: int = DEFAULT_CLIENT_NAME_LENGTH):
        self.archiver = archiver
        self.client_name_length = client_name_length

    def build_entries(self, documents: List[RenderedDocument]) -> List[ArchiveEntry]:
        entries: List[ArchiveEntry] = []
        seen = set()
        for document in documents:
            filename = build_entry_filename(document.invoice_number, document.client_name, self.client_name_length)
            if filename in seen:
                raise PackagingError(f"Nombre de archivo duplicado en el ZIP: {filename}")
            seen.add(filename)
            entries.append(ArchiveEntry(filename=filename, content=document.content))
        return entries

    def pack(self, documents: List[RenderedDocument], archive_filename: str,
             on_progress: Optional[Callable[[float, str], None]] = None) -> BillingArchive:
        notify = on_progress or (lambda percentage, message: None)
        entries = self.build_entries(documents)
        total = len(entries)

        def entry_added(index: int, count: int) -> None:
            if index >= count:
                notify(FINALIZING_PROGRESS, "Comprimiendo archivo ZIP...")
                return
            filename = entries[index - 1].filename
            notify(index / count * ENTRIES_SHARE, f"Añadiendo {filename} al ZIP... ({index}/{count})")

        notify(0.0, "Empaquetando facturas en archivo ZIP...")
        try:
            content = self.archiver.pack(entries, entry_added)
        except GroupBillingError:
            raise
        except Exception as e:
            raise PackagingError(f"No se pudo crear el archivo ZIP: {e}") from e

        notify(100.0, "ZIP listo para descarga")
        logging.info(f"Archivo {archive_filename} creado con {total} facturas ({len(content)} bytes).")
        return BillingArchive(filename=archive_filename, content=content, entry_count=total)
