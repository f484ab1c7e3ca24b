# buildtask/services/report_generation.py
import json
from datetime import datetime
from typing import Optional, Union
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buildtask.config.settings import settings
from buildtask.exceptions import NotFoundError
from buildtask.models import Report, ReportType, User
from buildtask.schemas.reports import ReportKind
from buildtask.services.artifact_store import ArtifactStore
from buildtask.services.report_data import DateInput, ReportDataService, parse_kind
from buildtask.services.report_documents import DocumentGeneratorRegistry, build_default_registry

logger = logging.getLogger(__name__)


class ReportGenerationService:
    """
    Generates a report end to end: aggregate, render, write the artifact and
    persist the catalog row.

    Any failure before the artifact is written leaves neither a file nor a
    catalog row. The file write and the catalog insert are not one atomic
    unit; if the insert fails the freshly written file is removed best-effort
    and the database error is re-raised.
    """

    def __init__(
        self,
        db: Session,
        store: ArtifactStore,
        generators: Optional[DocumentGeneratorRegistry] = None,
        file_extension: str = settings.REPORT_FILE_EXTENSION,
    ):
        self.db = db
        self.store = store
        self.generators = generators or build_default_registry()
        self.data_service = ReportDataService(db)
        self.file_extension = file_extension

    def generate_report(
        self,
        kind: Union[str, ReportKind],
        date_from: DateInput,
        date_to: DateInput,
        creator_id: int,
        scope_id: Optional[int] = None,
    ) -> Report:
        """
        Generate a report and record it in the catalog

        Args:
            kind: Report kind discriminator
            date_from: First day of the reporting window
            date_to: Last day of the reporting window
            creator_id: Id of the user requesting the report
            scope_id: Optional team or user id narrowing the aggregation

        Returns:
            The persisted Report

        Raises:
            ValidationError, NotFoundError, GenerationError, StorageError,
            or the database error raised by the catalog insert
        """
        kind = parse_kind(kind)

        # 1. Resolve creator and report type
        creator = self.db.query(User).filter(User.id == creator_id).first()
        if not creator:
            raise NotFoundError(f"User {creator_id} not found")
        report_type = self.db.query(ReportType).filter(ReportType.name == kind.type_name).first()
        if not report_type:
            raise NotFoundError(f"Report type '{kind.type_name}' not found")

        # 2. Aggregate
        metrics = self.data_service.collect(kind, scope_id, date_from, date_to)
        parameters = {
            "dateFrom": metrics.dateFrom.isoformat(),
            "dateTo": metrics.dateTo.isoformat(),
            "scopeId": scope_id,
            **metrics.summary(),
        }

        # 3. Render
        generator = self.generators.get(kind)
        rows = [row.model_dump() for row in metrics.rows]
        document = generator.render(rows, parameters)

        # 4. Write artifact
        file_name = self.store.unique_file_name(kind.slug, self.file_extension)
        file_path = self.store.resolve_path(kind.slug, file_name)
        self.store.write(file_path, document)

        # 5. Persist catalog row
        report = Report(
            name=report_type.name,
            type_id=report_type.id,
            created_by_id=creator.id,
            parameters=json.dumps(parameters, ensure_ascii=False),
            file_name=file_name,
            file_path=str(file_path),
            created_at=datetime.utcnow(),
        )
        try:
            self.db.add(report)
            self.db.commit()
            self.db.refresh(report)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving catalog row for {file_path}: {str(e)}")
            self._discard_orphan(file_path)
            raise

        logger.info(
            f"Report {report.id} ({kind.value}) generated by user {creator.id}: {file_name}"
        )
        return report

    def download(self, report_id: int) -> bytes:
        """
        Read the artifact bytes of a catalogued report

        Raises:
            NotFoundError: If the row or its file is missing or unreadable, or the
                stored path lies outside the storage root
        """
        report = self.db.query(Report).filter(Report.id == report_id).first()
        if not report:
            raise NotFoundError(f"Report {report_id} not found")
        if not self.store.contains(report.file_path):
            logger.error(f"Report {report_id} points outside the storage root: {report.file_path}")
            raise NotFoundError(f"Report file for report {report_id} not found")
        return self.store.read(report.file_path)

    def _discard_orphan(self, file_path) -> None:
        try:
            self.store.delete(file_path)
        except OSError as e:
            logger.error(f"Orphaned report file left at {file_path}: {str(e)}")
