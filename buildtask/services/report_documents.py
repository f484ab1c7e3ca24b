# buildtask/services/report_documents.py
# PDF document generators, one per report kind
from io import BytesIO
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from xml.sax.saxutils import escape
import logging

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from buildtask.exceptions import GenerationError
from buildtask.schemas.reports import ReportKind

logger = logging.getLogger(__name__)

EMPTY_CELL = "-"


def get_report_styles() -> Dict[str, ParagraphStyle]:
    """Paragraph styles shared by all report documents"""
    styles = getSampleStyleSheet()
    return {
        'ReportTitle': ParagraphStyle(
            'ReportTitle',
            parent=styles['Heading1'],
            fontSize=18,
            textColor=colors.HexColor('#1a1a1a'),
            spaceAfter=12,
            alignment=TA_LEFT,
            fontName='Helvetica-Bold'
        ),
        'ReportHeading': ParagraphStyle(
            'ReportHeading',
            parent=styles['Heading2'],
            fontSize=13,
            textColor=colors.HexColor('#333333'),
            spaceBefore=10,
            spaceAfter=8,
            fontName='Helvetica-Bold'
        ),
        'ReportBody': ParagraphStyle(
            'ReportBody',
            parent=styles['BodyText'],
            fontSize=10,
            spaceAfter=4,
            fontName='Helvetica'
        ),
        'TableHeader': ParagraphStyle(
            'TableHeader',
            parent=styles['Normal'],
            fontSize=9,
            textColor=colors.white,
            fontName='Helvetica-Bold'
        ),
        'TableCell': ParagraphStyle(
            'TableCell',
            parent=styles['Normal'],
            fontSize=9,
            fontName='Helvetica'
        ),
    }


def get_table_style() -> TableStyle:
    return TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4a5568')),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('TOPPADDING', (0, 0), (-1, 0), 8),
        ('BOTTOMPADDING', (0, 1), (-1, -1), 5),
        ('TOPPADDING', (0, 1), (-1, -1), 5),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f7fafc')]),
    ])


def draw_page_footer(canvas, doc):
    """Draw a rule, the document title and the page number at the bottom of each page"""
    width = doc.pagesize[0]
    canvas.saveState()
    canvas.setStrokeColor(colors.HexColor('#cccccc'))
    canvas.setLineWidth(0.5)
    canvas.line(2 * cm, 1.6 * cm, width - 2 * cm, 1.6 * cm)

    canvas.setFont('Helvetica', 8)
    canvas.setFillColor(colors.HexColor('#666666'))
    canvas.drawString(2 * cm, 1.1 * cm, doc.title or "")
    canvas.drawRightString(width - 2 * cm, 1.1 * cm, f"Page {canvas.getPageNumber()}")
    canvas.restoreState()


def format_value(value: Any) -> str:
    """Render a cell value as display text"""
    if value is None or value == "":
        return EMPTY_CELL
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, float):
        return f"{value:.1f}"
    if isinstance(value, Mapping):
        return ", ".join(f"{k}: {v}" for k, v in value.items()) or EMPTY_CELL
    return str(value)


class ReportDocumentGenerator:
    """
    Base class for report document generators.

    Subclasses declare the table columns and which row fields are required;
    render() validates every row before any output is produced, so a bad row
    aborts the whole document.
    """

    kind: ReportKind
    title: str = "Report"
    # (row field, column header)
    columns: Sequence[Tuple[str, str]] = ()
    required_fields: Sequence[str] = ()
    # (parameter key, label) shown in the summary block when present
    summary_fields: Sequence[Tuple[str, str]] = ()
    pagesize = A4

    def __init__(self):
        self.styles = get_report_styles()

    def validate_rows(self, rows: Sequence[Mapping[str, Any]]) -> None:
        """
        Check that every row carries the fields this document needs

        Raises:
            GenerationError: On the first incomplete or malformed row
        """
        for index, row in enumerate(rows):
            if not isinstance(row, Mapping):
                raise GenerationError(
                    f"{self.title}: row {index} is not a mapping ({type(row).__name__})"
                )
            missing = [field for field in self.required_fields if row.get(field) is None]
            if missing:
                raise GenerationError(
                    f"{self.title}: row {index} is missing required field(s): {', '.join(missing)}"
                )

    def render(self, rows: Sequence[Mapping[str, Any]], parameters: Optional[Mapping[str, Any]] = None) -> bytes:
        """
        Render rows and parameters into a PDF document

        Args:
            rows: Aggregated rows as mappings keyed by field name
            parameters: Request parameters and summary values

        Returns:
            PDF content as bytes

        Raises:
            GenerationError: If a row is incomplete or the PDF cannot be built
        """
        parameters = dict(parameters or {})
        rows = list(rows)
        self.validate_rows(rows)

        buffer = BytesIO()
        # invariant=1 drops the creation date and random document id from the PDF
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.pagesize,
            rightMargin=2 * cm,
            leftMargin=2 * cm,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            title=self.title,
            invariant=1,
        )
        try:
            doc.build(
                self.build_story(rows, parameters),
                onFirstPage=draw_page_footer,
                onLaterPages=draw_page_footer,
            )
        except Exception as e:
            logger.error(f"Error rendering {self.kind.value} document: {str(e)}")
            raise GenerationError(f"{self.title}: rendering failed: {str(e)}") from e

        pdf_bytes = buffer.getvalue()
        buffer.close()
        return pdf_bytes

    def build_story(self, rows: List[Mapping[str, Any]], parameters: Dict[str, Any]) -> list:
        story = [Paragraph(escape(self.title), self.styles['ReportTitle'])]

        period = f"{format_value(parameters.get('dateFrom'))} to {format_value(parameters.get('dateTo'))}"
        story.append(Paragraph(f"<b>Period:</b> {escape(period)}", self.styles['ReportBody']))
        if parameters.get('generatedAt'):
            story.append(Paragraph(
                f"<b>Generated:</b> {escape(format_value(parameters['generatedAt']))}",
                self.styles['ReportBody'],
            ))

        summary = [
            (label, parameters[key]) for key, label in self.summary_fields if key in parameters
        ]
        if summary:
            story.append(Paragraph("Summary", self.styles['ReportHeading']))
            for label, value in summary:
                story.append(Paragraph(
                    f"<b>{escape(label)}:</b> {escape(format_value(value))}",
                    self.styles['ReportBody'],
                ))

        story.append(Spacer(1, 0.4 * cm))
        story.append(Paragraph("Details", self.styles['ReportHeading']))
        if rows:
            story.append(self.build_table(rows))
        else:
            story.append(Paragraph("No data for the selected period.", self.styles['ReportBody']))
        return story

    def build_table(self, rows: List[Mapping[str, Any]]) -> Table:
        header = [Paragraph(escape(label), self.styles['TableHeader']) for _, label in self.columns]
        data = [header]
        for row in rows:
            data.append([
                Paragraph(escape(format_value(row.get(field))), self.styles['TableCell'])
                for field, _ in self.columns
            ])
        table = Table(data, repeatRows=1)
        table.setStyle(get_table_style())
        return table


class ConstructionProgressDocument(ReportDocumentGenerator):
    kind = ReportKind.CONSTRUCTION_PROGRESS
    title = "Construction Progress Report"
    columns = (
        ("taskName", "Task"),
        ("status", "Status"),
        ("plannedEnd", "Planned end"),
        ("actualEnd", "Actual end"),
    )
    required_fields = ("taskName", "status")
    summary_fields = (
        ("totalTasks", "Tasks in period"),
        ("completedCount", "Completed tasks"),
        ("completedPercentage", "Completed (%)"),
        ("delayedCount", "Delayed tasks"),
        ("tasksByStatus", "Tasks by status"),
    )


class EmployeeLoadDocument(ReportDocumentGenerator):
    kind = ReportKind.EMPLOYEE_LOAD
    title = "Employee Load Report"
    columns = (
        ("employeeId", "ID"),
        ("employeeName", "Employee"),
        ("taskCount", "Tasks"),
        ("totalHours", "Total hours"),
        ("tasksByStatus", "Tasks by status"),
    )
    required_fields = ("employeeId", "employeeName", "taskCount", "totalHours")
    summary_fields = (
        ("employeeCount", "Employees"),
        ("workingDays", "Working days in period"),
    )


class TeamEfficiencyDocument(ReportDocumentGenerator):
    kind = ReportKind.TEAM_EFFICIENCY
    title = "Team Efficiency Report"
    columns = (
        ("teamName", "Team"),
        ("avgCompletionHours", "Avg. completion (h)"),
        ("openIssues", "Open"),
        ("closedIssues", "Closed"),
        ("onTimeTasksCount", "On time"),
        ("delayedTasksCount", "Delayed"),
        ("avgDelayDays", "Avg. delay (days)"),
        ("activeTeamMembersCount", "Active members"),
        ("tasksPerMember", "Tasks per member"),
        ("tasksByPriority", "Tasks by priority"),
        ("efficiencyScore", "Efficiency score"),
    )
    required_fields = ("teamName", "avgCompletionHours", "openIssues", "closedIssues")
    summary_fields = (
        ("teamCount", "Teams"),
        ("teamsWithTasksCount", "Teams with tasks"),
        ("totalTasksCount", "Tasks in period"),
        ("totalCompletedTasksCount", "Completed tasks"),
        ("overallCompletionRate", "Overall completion (%)"),
    )
    pagesize = landscape(A4)


class DocumentGeneratorRegistry:
    """Registry resolving a report kind to its document generator"""

    def __init__(self):
        self._generators: Dict[ReportKind, ReportDocumentGenerator] = {}

    def register(self, generator: ReportDocumentGenerator) -> None:
        if generator.kind in self._generators:
            raise ValueError(f"Generator for '{generator.kind.value}' is already registered")
        self._generators[generator.kind] = generator

    def get(self, kind: ReportKind) -> ReportDocumentGenerator:
        """
        Raises:
            GenerationError: If no generator is registered for kind
        """
        if kind not in self._generators:
            raise GenerationError(f"No document generator registered for '{kind}'")
        return self._generators[kind]

    def kinds(self) -> List[ReportKind]:
        return list(self._generators.keys())


def build_default_registry() -> DocumentGeneratorRegistry:
    registry = DocumentGeneratorRegistry()
    registry.register(ConstructionProgressDocument())
    registry.register(EmployeeLoadDocument())
    registry.register(TeamEfficiencyDocument())
    return registry
