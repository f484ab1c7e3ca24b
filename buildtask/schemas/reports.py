from pydantic import BaseModel, Field
from typing import Annotated, Dict, List, Literal, Optional, Union
from datetime import date, datetime
import enum


class ReportKind(str, enum.Enum):
    CONSTRUCTION_PROGRESS = "construction-progress"
    EMPLOYEE_LOAD = "employee-load"
    TEAM_EFFICIENCY = "team-efficiency"

    @property
    def slug(self) -> str:
        """Directory name used for artifacts of this kind"""
        return self.value

    @property
    def type_name(self) -> str:
        """Name of the ReportType row catalogued for this kind"""
        return REPORT_TYPE_NAMES[self]


REPORT_TYPE_NAMES = {
    ReportKind.CONSTRUCTION_PROGRESS: "Construction progress report",
    ReportKind.EMPLOYEE_LOAD: "Employee load report",
    ReportKind.TEAM_EFFICIENCY: "Team efficiency report",
}


# Aggregated rows

class ConstructionProgressRow(BaseModel):
    taskName: str
    status: str
    plannedEnd: Optional[date] = None
    actualEnd: Optional[date] = None

class EmployeeLoadRow(BaseModel):
    employeeId: int
    employeeName: str
    taskCount: int
    totalHours: float
    tasksByStatus: Dict[str, int] = {}

class TeamEfficiencyRow(BaseModel):
    teamName: str
    avgCompletionHours: float
    openIssues: int
    closedIssues: int
    totalTasksCount: int = 0
    onTimeTasksCount: int = 0
    delayedTasksCount: int = 0
    avgDelayDays: float = 0.0
    activeTeamMembersCount: int = 0
    tasksPerMember: float = 0.0
    tasksByPriority: Dict[str, int] = {}
    efficiencyScore: float = 0.0


# Aggregated metrics, one variant per report kind

class ConstructionProgressMetrics(BaseModel):
    kind: Literal[ReportKind.CONSTRUCTION_PROGRESS] = ReportKind.CONSTRUCTION_PROGRESS
    dateFrom: date
    dateTo: date
    rows: List[ConstructionProgressRow] = []
    totalTasks: int = 0
    completedCount: int = 0
    completedPercentage: int = 0
    delayedCount: int = 0
    tasksByStatus: Dict[str, int] = {}

    def summary(self) -> dict:
        return {
            "totalTasks": self.totalTasks,
            "completedCount": self.completedCount,
            "completedPercentage": self.completedPercentage,
            "delayedCount": self.delayedCount,
            "tasksByStatus": self.tasksByStatus,
        }

class EmployeeLoadMetrics(BaseModel):
    kind: Literal[ReportKind.EMPLOYEE_LOAD] = ReportKind.EMPLOYEE_LOAD
    dateFrom: date
    dateTo: date
    rows: List[EmployeeLoadRow] = []
    workingDays: int = 0

    def summary(self) -> dict:
        return {"employeeCount": len(self.rows), "workingDays": self.workingDays}

class TeamEfficiencyMetrics(BaseModel):
    kind: Literal[ReportKind.TEAM_EFFICIENCY] = ReportKind.TEAM_EFFICIENCY
    dateFrom: date
    dateTo: date
    rows: List[TeamEfficiencyRow] = []

    def summary(self) -> dict:
        with_tasks = [r for r in self.rows if r.totalTasksCount > 0]
        total = sum(r.totalTasksCount for r in self.rows)
        completed = sum(r.closedIssues for r in self.rows)
        return {
            "teamCount": len(self.rows),
            "teamsWithTasksCount": len(with_tasks),
            "totalTasksCount": total,
            "totalCompletedTasksCount": completed,
            "overallCompletionRate": completed / total * 100 if total else 0.0,
        }

AggregatedMetrics = Annotated[
    Union[ConstructionProgressMetrics, EmployeeLoadMetrics, TeamEfficiencyMetrics],
    Field(discriminator="kind"),
]


# Generation

class ReportGenerateResponse(BaseModel):
    reportId: int
    fileName: str
    message: str


# Catalog

class ReportTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    template_path: Optional[str] = None

class ReportTypeUpdate(ReportTypeCreate):
    pass

class ReportTypeOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    template_path: Optional[str] = None

    model_config = {
        "from_attributes": True
    }

class ReportUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type_id: int
    created_by_id: int
    parameters: Optional[str] = None
    file_name: str
    file_path: str

class ReportOut(BaseModel):
    id: int
    name: str
    type_id: int
    created_by_id: int
    parameters: Optional[str] = None
    file_name: str
    file_path: str
    created_at: datetime
    type_name: Optional[str] = None
    created_by_name: Optional[str] = None

    model_config = {
        "from_attributes": True
    }

    @classmethod
    def from_record(cls, report) -> "ReportOut":
        out = cls.model_validate(report)
        out.type_name = report.type.name if report.type else None
        out.created_by_name = report.created_by.name if report.created_by else None
        return out
