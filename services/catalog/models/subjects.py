# services/catalog/models/subjects.py
from sqlalchemy import Column, String, Enum, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from shared.db import Base, generate_uuid, utcnow
import enum


class EducationStage(str, enum.Enum):
    ELEMENTARY = "ELEMENTARY"
    JUNIOR_HIGH = "JUNIOR_HIGH"
    SENIOR_HIGH = "SENIOR_HIGH"


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)            # e.g. "Mathematics"
    category = Column(String(100), nullable=True)         # e.g. "Core"
    strand = Column(String(100), nullable=True)           # senior high strand, e.g. "STEM"
    education_stage = Column(Enum(EducationStage), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("name", "education_stage", name="uq_subject_name_stage"),
    )

    materials = relationship("Material", back_populates="subject")
