# services/catalog/models/materials.py
import re

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship
from shared.db import Base, generate_uuid, utcnow

GRADE_LEVEL_MIN = 1
GRADE_LEVEL_MAX = 12


def format_grade_level(grade: int) -> str:
    return f"Grade {grade}"


def parse_grade_level(value: str) -> int:
    match = re.search(r"\d+", value or "")
    return int(match.group()) if match else 0


class Material(Base):
    __tablename__ = "materials"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    grade_level = Column(String(20), nullable=False)      # stored as "Grade 7"
    quantity = Column(Integer, nullable=False, default=0)
    source = Column(String(255), nullable=True)           # e.g. "DepEd Central"
    subject_id = Column(String(36), ForeignKey("subjects.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_material_quantity_non_negative"),
        Index("ix_material_subject_id", "subject_id"),
        Index("ix_material_grade_level", "grade_level"),
    )

    subject = relationship("Subject", back_populates="materials", lazy="joined")

    @property
    def education_stage(self):
        # Always read through the subject; never stored on the material
        return self.subject.education_stage if self.subject is not None else None
