# buildtask/routers/reports.py
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional

from buildtask.database import get_db
from buildtask.schemas.reports import ReportGenerateResponse, ReportKind
from buildtask.services.artifact_store import ArtifactStore
from buildtask.services.report_catalog import ReportQueryService
from buildtask.services.report_generation import ReportGenerationService
from buildtask.utils.dependencies import get_artifact_store

router = APIRouter(prefix="/api/generate-report", tags=["Report generation"])

MEDIA_TYPES = {
    "pdf": "application/pdf",
}

@router.post("/{kind}", response_model=ReportGenerateResponse)
def generate_report(
    kind: ReportKind,
    dateFrom: str = Query(..., description="First day of the period (YYYY-MM-DD)"),
    dateTo: str = Query(..., description="Last day of the period (YYYY-MM-DD)"),
    userId: int = Query(..., description="Id of the user generating the report"),
    teamId: Optional[int] = Query(None, description="Team scope (construction progress, team efficiency)"),
    targetUserId: Optional[int] = Query(None, description="Employee scope (employee load)"),
    db: Session = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """Generate a report, store the PDF and return its catalog id"""
    scope_id = targetUserId if kind == ReportKind.EMPLOYEE_LOAD else teamId

    service = ReportGenerationService(db, store)
    report = service.generate_report(kind, dateFrom, dateTo, creator_id=userId, scope_id=scope_id)

    return ReportGenerateResponse(
        reportId=report.id,
        fileName=report.file_name,
        message=f"{report.name} generated successfully",
    )

@router.get("/download/{report_id}")
def download_report(
    report_id: int,
    db: Session = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """Stream the stored document of a report"""
    report = ReportQueryService(db).get_report(report_id)
    content = ReportGenerationService(db, store).download(report.id)

    extension = report.file_name.rsplit(".", 1)[-1].lower()
    return Response(
        content=content,
        media_type=MEDIA_TYPES.get(extension, "application/octet-stream"),
        headers={"Content-Disposition": f'attachment; filename="{report.file_name}"'},
    )
