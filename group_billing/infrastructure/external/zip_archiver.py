# group_billing/infrastructure/external/zip_archiver.py
import io
import zipfile
from typing import Callable, List

from group_billing.domain.errors import PackagingError
from group_billing.domain.models.pipeline import ArchiveEntry
from group_billing.domain.ports.archiver import Archiver


class ZipArchiver(Archiver):
    """Archivo ZIP en memoria con compresión DEFLATE."""

    def __init__(self, compression_level: int = 6):
        self.compression_level = compression_level

    def pack(self, entries: List[ArchiveEntry], on_progress: Callable[[int, int], None]) -> bytes:
        zip_buffer = io.BytesIO()
        total = len(entries)
        try:
            with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED,
                                 compresslevel=self.compression_level) as zip_file:
                for index, entry in enumerate(entries, start=1):
                    zip_file.writestr(entry.filename, entry.content)
                    on_progress(index, total)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as e:
            raise PackagingError(f"Error al comprimir el ZIP: {e}") from e
        return zip_buffer.getvalue()
