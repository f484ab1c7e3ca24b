import json

import pytest
from sqlalchemy.exc import OperationalError

from buildtask.exceptions import GenerationError, NotFoundError, StorageError, ValidationError
from buildtask.models import Report
from buildtask.schemas.reports import ReportKind
from buildtask.services.report_documents import DocumentGeneratorRegistry, EmployeeLoadDocument
from buildtask.services.report_generation import ReportGenerationService
from tests.conftest import stored_files


def capture_render(service, kind, monkeypatch):
    """Record the bytes the generator produced for kind"""
    generator = service.generators.get(kind)
    original = generator.render
    captured = []

    def render(rows, parameters=None):
        content = original(rows, parameters)
        captured.append(content)
        return content

    monkeypatch.setattr(generator, "render", render)
    return captured


def test_generate_construction_progress(db, store, site_manager, foundation_team):
    service = ReportGenerationService(db, store)
    report = service.generate_report(
        "construction-progress", "2024-01-01", "2024-01-31", site_manager.id, foundation_team.id
    )

    assert report.id is not None
    assert report.type.name == ReportKind.CONSTRUCTION_PROGRESS.type_name
    assert report.created_by_id == site_manager.id
    assert report.file_name.startswith("construction-progress_")
    assert report.file_name.endswith(".pdf")

    parameters = json.loads(report.parameters)
    assert parameters["dateFrom"] == "2024-01-01"
    assert parameters["scopeId"] == foundation_team.id
    assert parameters["completedPercentage"] == 50
    assert parameters["delayedCount"] == 1

    files = stored_files(store)
    assert len(files) == 1
    assert str(files[0]) == report.file_path
    assert files[0].parent == store.storage_root / "construction-progress"


def test_download_returns_rendered_bytes(db, store, site_manager, monkeypatch):
    service = ReportGenerationService(db, store)
    captured = capture_render(service, ReportKind.EMPLOYEE_LOAD, monkeypatch)

    report = service.generate_report(ReportKind.EMPLOYEE_LOAD, "2024-01-01", "2024-01-31", site_manager.id)

    assert len(captured) == 1
    assert service.download(report.id) == captured[0]


def test_each_generation_gets_its_own_file(db, store, site_manager):
    service = ReportGenerationService(db, store)
    first = service.generate_report("team-efficiency", "2024-01-01", "2024-01-31", site_manager.id)
    second = service.generate_report("team-efficiency", "2024-01-01", "2024-01-31", site_manager.id)

    assert first.file_name != second.file_name
    assert len(stored_files(store)) == 2


def test_unknown_creator_leaves_nothing(db, store, foundation_team):
    service = ReportGenerationService(db, store)
    with pytest.raises(NotFoundError):
        service.generate_report("construction-progress", "2024-01-01", "2024-01-31", 999, foundation_team.id)

    assert db.query(Report).count() == 0
    assert stored_files(store) == []


def test_invalid_dates_leave_nothing(db, store, site_manager):
    service = ReportGenerationService(db, store)
    with pytest.raises(ValidationError):
        service.generate_report("employee-load", "2024-01-31", "2024-01-01", site_manager.id)

    assert db.query(Report).count() == 0
    assert stored_files(store) == []


def test_unknown_kind(db, store, site_manager):
    with pytest.raises(ValidationError):
        ReportGenerationService(db, store).generate_report("weekly", "2024-01-01", "2024-01-31", site_manager.id)


def test_render_failure_leaves_nothing(db, store, site_manager, monkeypatch):
    service = ReportGenerationService(db, store)

    def failing_render(rows, parameters=None):
        raise GenerationError("row 0 is missing required field(s): employeeName")

    monkeypatch.setattr(service.generators.get(ReportKind.EMPLOYEE_LOAD), "render", failing_render)
    with pytest.raises(GenerationError):
        service.generate_report("employee-load", "2024-01-01", "2024-01-31", site_manager.id)

    assert db.query(Report).count() == 0
    assert stored_files(store) == []


def test_storage_failure_leaves_no_row(db, store, site_manager, monkeypatch):
    service = ReportGenerationService(db, store)

    def failing_write(path, data):
        raise StorageError("disk full")

    monkeypatch.setattr(store, "write", failing_write)
    with pytest.raises(StorageError):
        service.generate_report("employee-load", "2024-01-01", "2024-01-31", site_manager.id)

    assert db.query(Report).count() == 0


def test_insert_failure_removes_written_file(db, store, site_manager, monkeypatch):
    service = ReportGenerationService(db, store)

    def failing_commit():
        raise OperationalError("INSERT INTO reports", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(OperationalError):
        service.generate_report("employee-load", "2024-01-01", "2024-01-31", site_manager.id)
    monkeypatch.undo()

    assert db.query(Report).count() == 0
    assert stored_files(store) == []


def test_download_missing_file(db, store, site_manager):
    service = ReportGenerationService(db, store)
    report = service.generate_report("employee-load", "2024-01-01", "2024-01-31", site_manager.id)
    store.delete(report.file_path)

    with pytest.raises(NotFoundError):
        service.download(report.id)


def test_download_unknown_report(db, store):
    with pytest.raises(NotFoundError):
        ReportGenerationService(db, store).download(42)


def test_download_refuses_path_outside_storage_root(db, store, site_manager, tmp_path):
    service = ReportGenerationService(db, store)
    report = service.generate_report("employee-load", "2024-01-01", "2024-01-31", site_manager.id)

    outside = tmp_path / "secret.txt"
    outside.write_bytes(b"host file")
    report.file_path = str(outside)
    db.commit()

    with pytest.raises(NotFoundError):
        service.download(report.id)


def test_missing_generator_is_a_generation_error(db, store, site_manager):
    registry = DocumentGeneratorRegistry()
    registry.register(EmployeeLoadDocument())
    service = ReportGenerationService(db, store, generators=registry)

    with pytest.raises(GenerationError):
        service.generate_report("team-efficiency", "2024-01-01", "2024-01-31", site_manager.id)

    assert db.query(Report).count() == 0
    assert stored_files(store) == []
