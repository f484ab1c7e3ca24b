# create_tables.py
import argparse
import logging

from buildtask.config.settings import settings
from buildtask.database import Base, SessionLocal, engine
import buildtask.models  # noqa: F401  registers the tables on Base.metadata
from buildtask.services.report_catalog import ReportTypeService

logger = logging.getLogger("create_tables")

def create_tables(drop_existing: bool = False):
    """Create all tables and the default report types"""
    if drop_existing:
        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    Base.metadata.create_all(bind=engine)
    logger.info("All tables created successfully")

    create_default_report_types()

def create_default_report_types():
    db = SessionLocal()
    try:
        created = ReportTypeService(db).ensure_default_types()
        if created:
            for report_type in created:
                logger.info(f"Report type created: {report_type.name}")
        else:
            logger.info("Default report types already exist")
    finally:
        db.close()

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    parser = argparse.ArgumentParser(description="Create the reporting database schema")
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    args = parser.parse_args()
    create_tables(drop_existing=args.drop)
