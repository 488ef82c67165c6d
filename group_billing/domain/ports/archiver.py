# group_billing/domain/ports/archiver.py
from abc import ABC, abstractmethod
from typing import Callable, List

from group_billing.domain.models.pipeline import ArchiveEntry


class Archiver(ABC):
    """Puerto para empaquetar los documentos en un único archivo descargable."""
    @abstractmethod
    def pack(self, entries: List[ArchiveEntry], on_progress: Callable[[int, int], None]) -> bytes:
        """
        Añade cada entrada llamando a `on_progress(indice, total)` tras cada una
        (indice empieza en 1) y retorna los bytes del archivo final.
        """
        pass
