# services/directory/models/schools.py

from sqlalchemy import Column, String, Integer, Enum, DateTime, CheckConstraint, Index, func
from shared.db import Base, generate_uuid, utcnow
import enum

SCHOOL_CODE_PREFIX = "SCH-"


class SchoolType(str, enum.Enum):
    ELEMENTARY = "ELEMENTARY"
    SECONDARY = "SECONDARY"
    INTEGRATED = "INTEGRATED"


class School(Base):
    __tablename__ = "schools"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    school_id = Column(String(20), unique=True, nullable=False)   # display code, "SCH-000001"
    schoolname = Column(String(255), nullable=False)
    schooltype = Column(Enum(SchoolType), nullable=False)
    municipality = Column(String(100), nullable=False)
    congressional_district = Column(Integer, nullable=False)
    zone = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("congressional_district IN (1, 2)", name="ck_school_congressional_district"),
        Index(
            "uq_school_name_municipality_ci",
            func.lower(schoolname),
            func.lower(municipality),
            unique=True,
        ),
        Index("ix_school_municipality", "municipality"),
    )


def format_school_code(number: int) -> str:
    return f"{SCHOOL_CODE_PREFIX}{number:06d}"
