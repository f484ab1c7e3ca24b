# buildtask/services/report_catalog.py
# Read/write access to report catalog rows and report types
from pathlib import Path
from typing import List, Optional
import logging
import re

from sqlalchemy.orm import Session, joinedload

from buildtask.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from buildtask.models import Report, ReportType, User
from buildtask.schemas.reports import ReportKind, ReportTypeCreate, ReportTypeUpdate, ReportUpdate
from buildtask.services.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)


def report_type_slug(type_name: str) -> str:
    """Artifact directory of a report type: the kind slug for built-in types, else the slugified name"""
    for kind in ReportKind:
        if kind.type_name == type_name:
            return kind.slug
    return re.sub(r"[^a-z0-9]+", "-", type_name.lower()).strip("-") or "report"


class ReportQueryService:
    """CRUD over catalog rows. Deleting a row leaves its artifact file on disk."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Report).options(joinedload(Report.type), joinedload(Report.created_by))

    def list_reports(self) -> List[Report]:
        return self._query().order_by(Report.created_at.desc(), Report.id.desc()).all()

    def get_report(self, report_id: int) -> Report:
        report = self._query().filter(Report.id == report_id).first()
        if not report:
            raise NotFoundError(f"Report {report_id} not found")
        return report

    def list_by_type(self, type_id: int) -> List[Report]:
        return self._query().filter(Report.type_id == type_id).order_by(Report.id).all()

    def list_by_creator(self, user_id: int) -> List[Report]:
        return self._query().filter(Report.created_by_id == user_id).order_by(Report.id).all()

    def update_report(self, report_id: int, data: ReportUpdate, store: ArtifactStore) -> Report:
        """
        Replace all mutable fields of a catalog row

        The file must stay in the directory of the (possibly new) report type:
        file_path has to resolve to <storage root>/<type slug>/<file_name>.

        Raises:
            NotFoundError: Unknown report, report type or user
            ValidationError: file_name or file_path outside the type directory
            ConflictError: file_name already used by another report of the type
        """
        report = self.get_report(report_id)

        report_type = self.db.query(ReportType).filter(ReportType.id == data.type_id).first()
        if not report_type:
            raise NotFoundError(f"Report type {data.type_id} not found")
        if not self.db.query(User).filter(User.id == data.created_by_id).first():
            raise NotFoundError(f"User {data.created_by_id} not found")

        try:
            expected_path = store.resolve_path(report_type_slug(report_type.name), data.file_name)
        except StorageError as e:
            raise ValidationError(e.message) from None
        if Path(data.file_path).resolve() != expected_path:
            raise ValidationError(f"file_path must be {expected_path} for file_name {data.file_name!r}")

        duplicate = (
            self.db.query(Report)
            .filter(
                Report.type_id == data.type_id,
                Report.file_name == data.file_name,
                Report.id != report.id,
            )
            .first()
        )
        if duplicate:
            raise ConflictError(f"File name {data.file_name!r} is already used by report {duplicate.id}")

        report.name = data.name
        report.type_id = data.type_id
        report.created_by_id = data.created_by_id
        report.parameters = data.parameters
        report.file_name = data.file_name
        report.file_path = str(expected_path)
        self.db.commit()
        self.db.refresh(report)
        return report

    def delete_report(self, report_id: int) -> None:
        report = self.get_report(report_id)
        file_path = report.file_path
        # TODO: delete file_path through ArtifactStore; the artifact currently leaks
        self.db.delete(report)
        self.db.commit()
        logger.info(f"Report {report_id} removed from catalog; file kept at {file_path}")


class ReportTypeService:
    """CRUD over report types; a type still referenced by reports cannot be deleted"""

    def __init__(self, db: Session):
        self.db = db

    def list_types(self) -> List[ReportType]:
        return self.db.query(ReportType).order_by(ReportType.id).all()

    def get_type(self, type_id: int) -> ReportType:
        report_type = self.db.query(ReportType).filter(ReportType.id == type_id).first()
        if not report_type:
            raise NotFoundError(f"Report type {type_id} not found")
        return report_type

    def get_by_name(self, name: str) -> Optional[ReportType]:
        return self.db.query(ReportType).filter(ReportType.name == name).first()

    def create_type(self, data: ReportTypeCreate) -> ReportType:
        if self.get_by_name(data.name):
            raise ConflictError(f"Report type '{data.name}' already exists")
        report_type = ReportType(
            name=data.name,
            description=data.description,
            template_path=data.template_path,
        )
        self.db.add(report_type)
        self.db.commit()
        self.db.refresh(report_type)
        return report_type

    def update_type(self, type_id: int, data: ReportTypeUpdate) -> ReportType:
        report_type = self.get_type(type_id)
        existing = self.get_by_name(data.name)
        if existing and existing.id != report_type.id:
            raise ConflictError(f"Report type '{data.name}' already exists")
        report_type.name = data.name
        report_type.description = data.description
        report_type.template_path = data.template_path
        self.db.commit()
        self.db.refresh(report_type)
        return report_type

    def delete_type(self, type_id: int) -> None:
        """
        Raises:
            NotFoundError: Unknown type
            ConflictError: At least one report references the type
        """
        report_type = self.get_type(type_id)
        referenced = self.db.query(Report).filter(Report.type_id == type_id).count()
        if referenced:
            raise ConflictError(
                f"Cannot delete report type '{report_type.name}': {referenced} report(s) reference it"
            )
        self.db.delete(report_type)
        self.db.commit()

    def ensure_default_types(self) -> List[ReportType]:
        """Create the report types backing each report kind if they are missing"""
        created = []
        for kind in ReportKind:
            if self.get_by_name(kind.type_name):
                continue
            report_type = ReportType(
                name=kind.type_name,
                description=DEFAULT_TYPE_DESCRIPTIONS[kind],
                template_path=f"templates/{kind.slug}.pdf",
            )
            self.db.add(report_type)
            created.append(report_type)
        if created:
            self.db.commit()
            logger.info(f"Created {len(created)} default report type(s)")
        return created


DEFAULT_TYPE_DESCRIPTIONS = {
    ReportKind.CONSTRUCTION_PROGRESS: "Task completion and delays for a team over a period",
    ReportKind.EMPLOYEE_LOAD: "Task count and estimated hours per employee",
    ReportKind.TEAM_EFFICIENCY: "Average completion time and open/closed tasks per team",
}
