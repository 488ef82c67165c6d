from group_billing.domain.models.pipeline import BillingArchive, BillingPhase, BillingReport, RunOutcome
from group_billing.infrastructure.celery import worker
import config


def test_use_case_builds_without_google_token(tmp_path, monkeypatch, caplog):
    monkeypatch.setattr(config, "TOKEN_FILE", str(tmp_path / "token.json"))

    use_case = worker.build_use_case(None, "r1")

    report = BillingReport(
        run_id="r1",
        phase=BillingPhase.COMPLETED,
        outcome=RunOutcome.ALL_SUCCEEDED,
        success_count=1,
        archive=BillingArchive(filename="Pilates_10-03-2026_1_facturas.zip", content=b"PK", entry_count=1),
    )
    assert worker.publish_archive(use_case, report, organization_id=1) is None
    assert "No se pudo subir el ZIP" in caplog.text


def test_publish_archive_survives_unexpected_storage_errors(caplog):
    class ExplodingStorage:
        def upload(self, content, path, mime_type="application/pdf"):
            raise ConnectionResetError("conexión cortada")

    class UseCase:
        file_storage = ExplodingStorage()

    report = BillingReport(
        run_id="r2",
        phase=BillingPhase.COMPLETED,
        outcome=RunOutcome.ALL_SUCCEEDED,
        archive=BillingArchive(filename="Yoga_1_facturas.zip", content=b"PK", entry_count=1),
    )
    assert worker.publish_archive(UseCase(), report, organization_id=1) is None
    assert "conexión cortada" in caplog.text
