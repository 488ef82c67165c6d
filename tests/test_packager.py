import datetime
import io
import zipfile
from decimal import Decimal

import pytest

from group_billing.application.packager import (
    ArtifactPackager,
    build_archive_filename,
    build_entry_filename,
    clean_client_name,
)
from group_billing.domain.errors import PackagingError
from group_billing.domain.models.pipeline import RenderedDocument
from group_billing.infrastructure.external.zip_archiver import ZipArchiver


def document(number, client_name, invoice_id=1):
    return RenderedDocument(
        invoice_id=invoice_id,
        invoice_number=number,
        client_name=client_name,
        total_amount=Decimal("60.50"),
        content=f"%PDF {number}".encode(),
    )


def test_client_name_is_cleaned_and_truncated():
    assert clean_client_name("María  José O'Neil") == "Mara_Jos_ONeil"
    assert len(clean_client_name("Nombre " * 10)) == 30
    assert build_entry_filename("F0001", "Ana García") == "F0001_Ana_Garca.pdf"


def test_archive_filename():
    name = build_archive_filename("Yoga & Respiración", datetime.date(2026, 5, 4), 12)
    assert name == "facturas_actividad_Yoga___Respiraci_n_2026-05-04_12_facturas.zip"


def test_same_client_name_gets_distinct_entries():
    packager = ArtifactPackager(ZipArchiver())
    archive = packager.pack(
        [document("F0001", "Ana Garcia"), document("F0002", "Ana Garcia", invoice_id=2)],
        "facturas.zip",
    )

    with zipfile.ZipFile(io.BytesIO(archive.content)) as zf:
        assert sorted(zf.namelist()) == ["F0001_Ana_Garcia.pdf", "F0002_Ana_Garcia.pdf"]
        assert zf.read("F0002_Ana_Garcia.pdf") == b"%PDF F0002"
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())
    assert archive.entry_count == 2
    assert archive.filename == "facturas.zip"


def test_duplicate_entry_names_are_rejected():
    packager = ArtifactPackager(ZipArchiver())
    with pytest.raises(PackagingError, match="duplicado"):
        packager.pack([document("F0001", "Ana"), document("F0001", "Ana")], "facturas.zip")


def test_progress_goes_from_zero_to_one_hundred():
    updates = []
    docs = [document(f"F000{n}", f"Cliente {n}", invoice_id=n) for n in range(1, 5)]

    ArtifactPackager(ZipArchiver()).pack(docs, "facturas.zip", on_progress=lambda p, m: updates.append((p, m)))

    assert [p for p, _ in updates] == [0.0, 22.5, 45.0, 67.5, 95.0, 100.0]
    assert updates[1][1] == "Añadiendo F0001_Cliente_1.pdf al ZIP... (1/4)"
    assert updates[-1][1] == "ZIP listo para descarga"


def test_archiver_failure_becomes_packaging_error():
    class BrokenArchiver(ZipArchiver):
        def pack(self, entries, on_progress):
            raise OSError("disco lleno")

    with pytest.raises(PackagingError, match="disco lleno"):
        ArtifactPackager(BrokenArchiver()).pack([document("F0001", "Ana")], "facturas.zip")
