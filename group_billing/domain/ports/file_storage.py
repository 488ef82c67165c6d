# group_billing/domain/ports/file_storage.py
from abc import ABC, abstractmethod


class FileStorage(ABC):
    """Puerto para el almacenamiento de archivos en la nube."""
    @abstractmethod
    def upload(self, content: bytes, path: str, mime_type: str = "application/pdf") -> str:
        """
        Sube el contenido con el nombre indicado en `path`.
        Retorna la URL pública del archivo. Lanza StorageError si falla.
        """
        pass
