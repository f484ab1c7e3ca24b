from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from buildtask.database import Base, get_db
from buildtask.models import Task, TaskPriority, TaskStatus, Team, User
from buildtask.services.artifact_store import ArtifactStore
from buildtask.services.report_catalog import ReportTypeService
from buildtask.utils.dependencies import get_artifact_store


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    ReportTypeService(session).ensure_default_types()
    yield session
    session.close()


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "reports")


@pytest.fixture
def client(db, store):
    from main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_artifact_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def stored_files(store):
    return [p for p in store.storage_root.rglob("*") if p.is_file()]


def make_user(db, name="Site Manager", email=None, is_active=True):
    user = User(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_team(db, name="Foundation crew", members=()):
    team = Team(name=name, members=list(members))
    db.add(team)
    db.commit()
    db.refresh(team)
    return team


def make_task(db, creator, team=None, title="Task", status=TaskStatus.NEW,
              start_date=None, deadline=None, completed_date=None, created_at=None,
              priority=TaskPriority.MEDIUM):
    task = Task(
        title=title,
        created_by=creator.id,
        team_id=team.id if team else None,
        status=status,
        priority=priority,
        start_date=start_date,
        deadline=deadline,
        completed_date=completed_date,
        created_at=created_at or datetime(2024, 1, 10, 9, 0),
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@pytest.fixture
def site_manager(db):
    return make_user(db)


@pytest.fixture
def foundation_team(db, site_manager):
    """Team with four tasks started in January 2024 plus two outside the window"""
    team = make_team(db)
    # on time
    make_task(db, site_manager, team, "Excavation", TaskStatus.FINISHED,
              start_date=date(2024, 1, 2), deadline=date(2024, 1, 10), completed_date=date(2024, 1, 8))
    # late
    make_task(db, site_manager, team, "Rebar", TaskStatus.FINISHED,
              start_date=date(2024, 1, 5), deadline=date(2024, 1, 12), completed_date=date(2024, 1, 15))
    # open, past deadline but not completed
    make_task(db, site_manager, team, "Formwork", TaskStatus.IN_PROGRESS,
              start_date=date(2024, 1, 10), deadline=date(2024, 1, 20))
    make_task(db, site_manager, team, "Pouring", TaskStatus.NEW,
              start_date=date(2024, 1, 25))
    # outside the window
    make_task(db, site_manager, team, "Curing", TaskStatus.NEW, start_date=date(2024, 2, 5))
    make_task(db, site_manager, team, "Survey", TaskStatus.NEW)
    return team
