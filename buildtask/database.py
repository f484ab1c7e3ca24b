from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from buildtask.config.settings import settings

engine = create_engine(settings.DATABASE_URL, **settings.get_engine_options())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Imported wherever a DB session is needed
def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
