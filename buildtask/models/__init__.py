from .user import User
from .team import Team, team_members
from .task import Task, TaskStatus, TaskPriority
from .report import Report, ReportType
