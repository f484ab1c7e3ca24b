from .reports import (
    ReportKind,
    AggregatedMetrics,
    ConstructionProgressMetrics,
    EmployeeLoadMetrics,
    TeamEfficiencyMetrics,
    ReportGenerateResponse,
    ReportTypeCreate,
    ReportTypeUpdate,
    ReportTypeOut,
    ReportUpdate,
    ReportOut,
)
