# buildtask/routers/report_catalog.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from buildtask.database import get_db
from buildtask.schemas.reports import (
    ReportOut,
    ReportUpdate,
    ReportTypeCreate,
    ReportTypeOut,
    ReportTypeUpdate,
)
from buildtask.services.artifact_store import ArtifactStore
from buildtask.services.report_catalog import ReportQueryService, ReportTypeService
from buildtask.utils.dependencies import get_artifact_store

router = APIRouter(prefix="/database")

# Reports

@router.get("/reports", response_model=List[ReportOut], tags=["Reports"])
def list_reports(db: Session = Depends(get_db)):
    return [ReportOut.from_record(r) for r in ReportQueryService(db).list_reports()]

@router.get("/reports/type/{type_id}", response_model=List[ReportOut], tags=["Reports"])
def list_reports_by_type(type_id: int, db: Session = Depends(get_db)):
    ReportTypeService(db).get_type(type_id)
    return [ReportOut.from_record(r) for r in ReportQueryService(db).list_by_type(type_id)]

@router.get("/reports/user/{user_id}", response_model=List[ReportOut], tags=["Reports"])
def list_reports_by_creator(user_id: int, db: Session = Depends(get_db)):
    return [ReportOut.from_record(r) for r in ReportQueryService(db).list_by_creator(user_id)]

@router.get("/reports/{report_id}", response_model=ReportOut, tags=["Reports"])
def get_report(report_id: int, db: Session = Depends(get_db)):
    return ReportOut.from_record(ReportQueryService(db).get_report(report_id))

@router.put("/reports/{report_id}", response_model=ReportOut, tags=["Reports"])
def update_report(
    report_id: int,
    report_data: ReportUpdate,
    db: Session = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """Replace a catalog row; the file must stay in its report type directory"""
    service = ReportQueryService(db)
    service.update_report(report_id, report_data, store)
    return ReportOut.from_record(service.get_report(report_id))

@router.delete("/reports/{report_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Reports"])
def delete_report(report_id: int, db: Session = Depends(get_db)):
    """Remove the catalog row; the stored file is kept"""
    ReportQueryService(db).delete_report(report_id)

# Report types

@router.get("/report-types", response_model=List[ReportTypeOut], tags=["Report types"])
def list_report_types(db: Session = Depends(get_db)):
    return ReportTypeService(db).list_types()

@router.get("/report-types/{type_id}", response_model=ReportTypeOut, tags=["Report types"])
def get_report_type(type_id: int, db: Session = Depends(get_db)):
    return ReportTypeService(db).get_type(type_id)

@router.post("/report-types", response_model=ReportTypeOut, status_code=status.HTTP_201_CREATED, tags=["Report types"])
def create_report_type(type_data: ReportTypeCreate, db: Session = Depends(get_db)):
    return ReportTypeService(db).create_type(type_data)

@router.put("/report-types/{type_id}", response_model=ReportTypeOut, tags=["Report types"])
def update_report_type(type_id: int, type_data: ReportTypeUpdate, db: Session = Depends(get_db)):
    return ReportTypeService(db).update_type(type_id, type_data)

@router.delete("/report-types/{type_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Report types"])
def delete_report_type(type_id: int, db: Session = Depends(get_db)):
    """Delete a report type; fails with 409 while reports reference it"""
    ReportTypeService(db).delete_type(type_id)
