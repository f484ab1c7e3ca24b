# buildtask/services/report_data.py
import re
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple, Union
import logging

from sqlalchemy.orm import Session

from buildtask.exceptions import NotFoundError, ValidationError
from buildtask.models import Task, Team, User
from buildtask.schemas.reports import (
    ReportKind,
    ConstructionProgressMetrics,
    ConstructionProgressRow,
    EmployeeLoadMetrics,
    EmployeeLoadRow,
    TeamEfficiencyMetrics,
    TeamEfficiencyRow,
)

logger = logging.getLogger(__name__)

# Flat per-task estimate used for load and efficiency figures; there is no
# time tracking behind it.
HOURS_PER_TASK = 8.0
HOURS_PER_DAY = 8

DateInput = Union[str, date]

DATE_FORMAT = "%Y-%m-%d"
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(value: DateInput, field: str) -> date:
    """
    Parse a calendar date given as a date or a 'YYYY-MM-DD' string

    Only the extended form with two-digit month and day is accepted.

    Raises:
        ValidationError: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format: {value!r}")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(f"{field} is not a valid date: {value!r}") from None


def parse_date_range(date_from: DateInput, date_to: DateInput) -> Tuple[date, date]:
    start = parse_date(date_from, "dateFrom")
    end = parse_date(date_to, "dateTo")
    if start > end:
        raise ValidationError(f"dateFrom ({start}) must not be after dateTo ({end})")
    return start, end


def parse_kind(kind: Union[str, ReportKind]) -> ReportKind:
    try:
        return ReportKind(kind)
    except ValueError:
        supported = ", ".join(k.value for k in ReportKind)
        raise ValidationError(f"Unsupported report kind: {kind!r}. Supported kinds: {supported}") from None


def completion_percentage(completed: int, total: int) -> int:
    """round(completed / total * 100) with halves rounded up; 0 for an empty set"""
    if total == 0:
        return 0
    return (completed * 200 + total) // (2 * total)


def is_delayed(task: Task) -> bool:
    """A task is delayed only when it was completed after its deadline"""
    if task.completed_date is None or task.deadline is None:
        return False
    return task.completed_date > task.deadline


def status_label(task: Task) -> str:
    return task.status.name if task.status is not None else "UNKNOWN"


def working_days(start: date, end: date) -> int:
    """Calendar days in [start, end] less an approximate two weekend days per seven; at least 1"""
    days = (end - start).days + 1
    return max(1, days - days * 2 // 7)


def efficiency_score(total: int, closed: int, on_time: int, active_members: int) -> float:
    """
    Weighted team score capped at 100

    50% completion rate and 30% on-time rate of closed tasks, both only once
    something is closed, plus 20% member load: whole tasks per active member
    times 20, capped at 100.
    """
    if total == 0:
        return 0.0
    score = 0.0
    if closed > 0:
        completion_rate = closed / total * 100
        on_time_rate = on_time / closed * 100
        score = completion_rate * 0.5 + on_time_rate * 0.3
    if active_members > 0:
        member_load = min(100, (total // active_members) * 20)
        score += member_load * 0.2
    return min(100.0, score)


class ReportDataService:
    """Computes aggregated metrics for the report kinds from the task read model"""

    def __init__(self, db: Session):
        self.db = db

    def collect(
        self,
        kind: ReportKind,
        scope_id: Optional[int],
        date_from: DateInput,
        date_to: DateInput,
    ):
        """
        Compute metrics for one report request

        Args:
            kind: Report kind to compute
            scope_id: Team id (construction progress, team efficiency) or
                user id (employee load); optional except for construction progress
            date_from: First day of the window, inclusive
            date_to: Last day of the window, inclusive

        Returns:
            The AggregatedMetrics variant matching kind

        Raises:
            ValidationError: Bad date range or missing required scope
            NotFoundError: Scope id does not exist
        """
        start, end = parse_date_range(date_from, date_to)
        kind = parse_kind(kind)

        if kind == ReportKind.CONSTRUCTION_PROGRESS:
            if scope_id is None:
                raise ValidationError("teamId is required for the construction progress report")
            return self.collect_construction_progress(scope_id, start, end)
        if kind == ReportKind.EMPLOYEE_LOAD:
            return self.collect_employee_load(scope_id, start, end)
        return self.collect_team_efficiency(scope_id, start, end)

    def collect_construction_progress(self, team_id: int, start: date, end: date) -> ConstructionProgressMetrics:
        team = self._get_team(team_id)

        tasks = (
            self.db.query(Task)
            .filter(
                Task.team_id == team.id,
                Task.start_date.isnot(None),
                Task.start_date >= start,
                Task.start_date <= end,
            )
            .order_by(Task.start_date, Task.id)
            .all()
        )

        total = len(tasks)
        completed = len([t for t in tasks if t.completed_date is not None])
        delayed = len([t for t in tasks if is_delayed(t)])
        by_status = Counter(t.status.name for t in tasks if t.status is not None)

        rows = [
            ConstructionProgressRow(
                taskName=t.title,
                status=status_label(t),
                plannedEnd=t.deadline,
                actualEnd=t.completed_date,
            )
            for t in tasks
        ]

        logger.info(
            f"Construction progress for team {team.id}: {total} tasks, "
            f"{completed} completed, {delayed} delayed"
        )
        return ConstructionProgressMetrics(
            dateFrom=start,
            dateTo=end,
            rows=rows,
            totalTasks=total,
            completedCount=completed,
            completedPercentage=completion_percentage(completed, total),
            delayedCount=delayed,
            tasksByStatus=dict(sorted(by_status.items())),
        )

    def collect_employee_load(self, user_id: Optional[int], start: date, end: date) -> EmployeeLoadMetrics:
        if user_id is None:
            users = self.db.query(User).order_by(User.id).all()
        else:
            users = [self._get_user(user_id)]

        window_start, window_end = self._datetime_window(start, end)
        rows: List[EmployeeLoadRow] = []
        for user in users:
            tasks = (
                self.db.query(Task)
                .filter(
                    Task.created_by == user.id,
                    Task.created_at >= window_start,
                    Task.created_at < window_end,
                )
                .all()
            )
            by_status = Counter(status_label(t) for t in tasks)
            rows.append(EmployeeLoadRow(
                employeeId=user.id,
                employeeName=user.name,
                taskCount=len(tasks),
                totalHours=len(tasks) * HOURS_PER_TASK,
                tasksByStatus=dict(sorted(by_status.items())),
            ))

        logger.info(f"Employee load computed for {len(rows)} user(s)")
        return EmployeeLoadMetrics(
            dateFrom=start,
            dateTo=end,
            rows=rows,
            workingDays=working_days(start, end),
        )

    def collect_team_efficiency(self, team_id: Optional[int], start: date, end: date) -> TeamEfficiencyMetrics:
        if team_id is None:
            teams = self.db.query(Team).order_by(Team.id).all()
        else:
            teams = [self._get_team(team_id)]

        window_start, window_end = self._datetime_window(start, end)
        rows: List[TeamEfficiencyRow] = []
        for team in teams:
            tasks = (
                self.db.query(Task)
                .filter(
                    Task.team_id == team.id,
                    Task.created_at >= window_start,
                    Task.created_at < window_end,
                )
                .all()
            )
            rows.append(self._team_efficiency_row(team, tasks))

        logger.info(f"Team efficiency computed for {len(rows)} team(s)")
        return TeamEfficiencyMetrics(dateFrom=start, dateTo=end, rows=rows)

    def _team_efficiency_row(self, team: Team, tasks: List[Task]) -> TeamEfficiencyRow:
        active_members = len([m for m in team.members if m.is_active])
        if not tasks:
            return TeamEfficiencyRow(
                teamName=team.name,
                avgCompletionHours=0.0,
                openIssues=0,
                closedIssues=0,
                activeTeamMembersCount=active_members,
            )

        closed = [t for t in tasks if t.completed_date is not None]
        durations = [
            (t.completed_date - t.start_date).days * HOURS_PER_DAY
            for t in closed
            if t.start_date is not None
        ]
        avg_hours = sum(durations) / len(durations) if durations else 0.0

        with_deadline = [t for t in closed if t.deadline is not None]
        delays = [
            (t.completed_date - t.deadline).days for t in with_deadline if t.completed_date > t.deadline
        ]
        on_time = len(with_deadline) - len(delays)
        by_priority = Counter(
            t.priority.name if t.priority is not None else "UNSPECIFIED" for t in tasks
        )

        return TeamEfficiencyRow(
            teamName=team.name,
            avgCompletionHours=float(avg_hours),
            openIssues=len(tasks) - len(closed),
            closedIssues=len(closed),
            totalTasksCount=len(tasks),
            onTimeTasksCount=on_time,
            delayedTasksCount=len(delays),
            avgDelayDays=sum(delays) / len(delays) if delays else 0.0,
            activeTeamMembersCount=active_members,
            tasksPerMember=len(tasks) / active_members if active_members else 0.0,
            tasksByPriority=dict(sorted(by_priority.items())),
            efficiencyScore=efficiency_score(len(tasks), len(closed), on_time, active_members),
        )

    def _get_team(self, team_id: int) -> Team:
        team = self.db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise NotFoundError(f"Team {team_id} not found")
        return team

    def _get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def _datetime_window(start: date, end: date) -> Tuple[datetime, datetime]:
        """Half-open [start 00:00, end+1 00:00) window matching created_at dates in range"""
        return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)
