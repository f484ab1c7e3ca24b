# buildtask/models/report.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from buildtask.database import Base
from datetime import datetime

class ReportType(Base):
    __tablename__ = "report_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    template_path = Column(String(255), nullable=True)

    reports = relationship("Report", back_populates="type")

class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    type_id = Column(Integer, ForeignKey("report_types.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    parameters = Column(Text, nullable=True)  # JSON-serialized request parameters
    file_name = Column(String(255), nullable=False)  # Unique within the type directory
    file_path = Column(String(500), nullable=False)  # <storage-root>/<type-slug>/<file_name>
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    type = relationship("ReportType", back_populates="reports")
    created_by = relationship("User", back_populates="reports")
